"""Tests for RevisionAssistant."""

from unittest.mock import MagicMock, patch

import pytest
from factories import judgment, session

from equilibrium.assist.assistant import RevisionAssistant, default_adapter
from equilibrium.assist.deterministic import BACKGROUND_ASSUMPTION, draft_principles
from equilibrium.assist.strategies import DeterministicRevisionStrategy, ValidatingRevisionStrategy
from equilibrium.config import Settings
from equilibrium.protocols import ModelAdapterError, ValidationError
from equilibrium.types import ActionType, PrincipleScope


@pytest.fixture
def model_settings():
    return Settings(_env_file=None, send_to_model=True, model_timeout_s=2.0)


@pytest.fixture
def tagged_session():
    return session(
        judgments=(
            judgment("j1", 80, "Lying is wrong.", tags=("Honesty",)),
            judgment("j2", 70, "Breaking promises is wrong.", tags=("honesty",)),
            judgment("j3", 60, "Helping strangers is required.", tags=("Care",)),
            judgment("j4", 40, "Art matters."),
        )
    )


class TestDefaults:
    def test_model_disabled_by_default(self, settings):
        assistant = RevisionAssistant(settings=settings)
        assert assistant.adapter is None
        assert assistant.model_enabled is False
        assert isinstance(assistant.strategy(session()), DeterministicRevisionStrategy)

    def test_adapter_without_send_flag_is_not_used(self, settings):
        assistant = RevisionAssistant(settings=settings, adapter=MagicMock())
        assert assistant.model_enabled is False

    def test_enabled_model_gets_validating_strategy(self, model_settings, dilemma_session):
        assistant = RevisionAssistant(settings=model_settings, adapter=MagicMock())
        assert isinstance(assistant.strategy(dilemma_session), ValidatingRevisionStrategy)

    def test_default_adapter_none_without_keys(self, monkeypatch, model_settings):
        monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
        monkeypatch.delenv("CLAUDE_API_KEY", raising=False)
        assert default_adapter(model_settings) is None

    def test_default_adapter_swallows_configuration_errors(self, model_settings):
        with patch(
            "equilibrium.models.auto.auto_configure_model", side_effect=ValueError("no key")
        ):
            assert default_adapter(model_settings) is None


class TestSummarizeJudgment:
    def test_deterministic_summary(self, settings, empty_session):
        assistant = RevisionAssistant(settings=settings)
        result = assistant.summarize_judgment(
            empty_session, "j1", "Lying is always wrong. It erodes trust. It also hurts."
        )
        assert result.summary == "Judgment j1 claims: Lying is always wrong. It erodes trust."
        assert result.assumptions[-1] == BACKGROUND_ASSUMPTION
        assert len(result.assumptions) == 3

    def test_summary_uses_session_context(self, settings, dilemma_session):
        assistant = RevisionAssistant(settings=settings)
        result = assistant.summarize_judgment(dilemma_session, "j1", "Action A is required.")
        assert "Context anchor:" in result.summary

    def test_text_is_escaped(self, settings, empty_session):
        result = RevisionAssistant(settings=settings).summarize_judgment(
            empty_session, "j1", "<b>Bold</b> claim."
        )
        assert "<b>" not in result.summary
        assert "&lt;b&gt;" in result.summary

    @pytest.mark.parametrize("judgment_id,text", [("", "text"), ("j1", "   ")])
    def test_requires_id_and_text(self, settings, empty_session, judgment_id, text):
        with pytest.raises(ValidationError):
            RevisionAssistant(settings=settings).summarize_judgment(
                empty_session, judgment_id, text
            )

    def test_model_summary(self, model_settings, empty_session):
        adapter = MagicMock()
        adapter.generate_json.return_value = {
            "summary": "A short summary.",
            "assumptions": ["one", "", "two"],
        }
        result = RevisionAssistant(settings=model_settings, adapter=adapter).summarize_judgment(
            empty_session, "j1", "Some text."
        )
        assert result.summary == "A short summary."
        assert result.assumptions == ["one", "two"]

    def test_model_failure_falls_back(self, model_settings, empty_session, caplog):
        adapter = MagicMock()
        adapter.generate_json.side_effect = ModelAdapterError("rate_limit", "slow down")
        with caplog.at_level("WARNING"):
            result = RevisionAssistant(
                settings=model_settings, adapter=adapter
            ).summarize_judgment(empty_session, "j1", "Some text.")
        assert result.summary.startswith("Judgment j1 claims:")
        assert "slow down" in caplog.text

    def test_invalid_model_output_falls_back(self, model_settings, empty_session):
        adapter = MagicMock()
        adapter.generate_json.return_value = ["not", "an", "object"]
        result = RevisionAssistant(settings=model_settings, adapter=adapter).summarize_judgment(
            empty_session, "j1", "Some text."
        )
        assert result.summary.startswith("Judgment j1 claims:")


class TestGeneratePrinciples:
    def test_groups_by_first_tag(self, settings, tagged_session):
        drafts = RevisionAssistant(settings=settings).generate_principles(
            tagged_session, ["j1", "j2", "j3", "j4"]
        )
        assert [d.title for d in drafts] == [
            "Care Coherence Principle",
            "General Coherence Principle",
            "Honesty Coherence Principle",
        ]
        honesty = drafts[2]
        assert honesty.supporting_judgment_ids == ["j1", "j2"]
        assert honesty.scope is PrincipleScope.CONTEXTUAL
        assert honesty.statement.startswith("Honesty principle: Avoid actions")
        assert drafts[0].statement.startswith("Care principle: Treat actions")

    def test_unknown_ids_raise(self, settings, tagged_session):
        with pytest.raises(ValidationError, match="No matching judgments"):
            RevisionAssistant(settings=settings).generate_principles(tagged_session, ["zzz"])

    def test_model_drafts(self, model_settings, tagged_session):
        adapter = MagicMock()
        adapter.generate_json.return_value = [
            {"title": "Honesty", "statement": "Do not deceive.", "scope": "sometimes",
             "supportingJudgmentIds": ["j1"]},
            {"title": "No support", "statement": "x", "supportingJudgmentIds": []},
        ]
        drafts = RevisionAssistant(settings=model_settings, adapter=adapter).generate_principles(
            tagged_session, ["j1"]
        )
        assert len(drafts) == 1
        assert drafts[0].scope is PrincipleScope.CONTEXTUAL
        assert drafts[0].supporting_judgment_ids == ["j1"]


class TestSuggestRevisions:
    def test_deterministic_suggestions(self, settings, dilemma_session):
        proposals = RevisionAssistant(settings=settings).suggest_revisions(
            dilemma_session, ["j1", "j2"]
        )
        assert len(proposals) == settings.max_suggestions
        assert proposals[0].action_type is ActionType.REJECT_JUDGMENT

    def test_max_suggestions_is_clamped(self, settings, dilemma_session):
        proposals = RevisionAssistant(settings=settings).suggest_revisions(
            dilemma_session, ["j1", "j2", "p1"], max_suggestions=50
        )
        assert len(proposals) <= 6

    def test_model_error_falls_back_to_engine(self, model_settings, dilemma_session):
        adapter = MagicMock()
        adapter.generate_json.side_effect = RuntimeError("down")
        proposals = RevisionAssistant(settings=model_settings, adapter=adapter).suggest_revisions(
            dilemma_session, ["j1", "j2"], 2
        )
        assert [p.target_id for p in proposals] == ["j2", "j1"]

    def test_apply(self, settings, dilemma_session):
        assistant = RevisionAssistant(settings=settings)
        top = assistant.suggest_revisions(dilemma_session, ["j1", "j2"], 1)[0]
        updated = assistant.apply(dilemma_session, top)
        assert updated.find_judgment("j2").rejected is True


class TestRetrieverCache:
    def test_reuses_index_until_session_changes(self, settings, dilemma_session):
        assistant = RevisionAssistant(settings=settings)
        first = assistant._retriever_for(dilemma_session)
        assert assistant._retriever_for(dilemma_session) is first

        changed = type(dilemma_session)(id=dilemma_session.id, updated_at="later")
        assert assistant._retriever_for(changed) is not first
        assert len(assistant._indexed) == 1

    def test_cache_is_bounded_least_recently_used_first(self):
        assistant = RevisionAssistant(
            settings=Settings(_env_file=None, send_to_model=False, retriever_cache_size=2)
        )
        s1, s2, s3 = (session(id=f"wre_{i}") for i in range(3))
        assistant._retriever_for(s1)
        assistant._retriever_for(s2)
        assistant._retriever_for(s1)
        assistant._retriever_for(s3)

        assert list(assistant._indexed) == ["wre_0", "wre_2"]

    def test_forget_drops_index(self, settings, dilemma_session):
        assistant = RevisionAssistant(settings=settings)
        first = assistant._retriever_for(dilemma_session)
        assistant.forget(dilemma_session.id)
        assistant.forget("wre_unknown")

        assert dilemma_session.id not in assistant._indexed
        assert assistant._retriever_for(dilemma_session) is not first

    def test_injected_retriever_wins(self, settings, dilemma_session):
        retriever = MagicMock()
        retriever.retrieve.return_value = []
        assistant = RevisionAssistant(settings=settings, retriever=retriever)
        assistant.summarize_judgment(dilemma_session, "j1", "Text.")
        retriever.retrieve.assert_called_once_with("Text.", 2)


class TestDeterministicDrafts:
    def test_universal_scope_detected(self):
        drafts = draft_principles([judgment("j1", text="Never lie.")])
        assert drafts[0]["scope"] == "universal"

    def test_snippet_hint_appended(self):
        drafts = draft_principles([judgment("j1", text="Art matters.")], ["related text"])
        assert drafts[0]["statement"].endswith(" Context: related text.")
