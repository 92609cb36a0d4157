"""Tests for shared session types."""

import math

import pytest
from factories import NOW, judgment, link, principle, session

from equilibrium.types import (
    CoherenceWeights,
    ConflictSet,
    EntityType,
    Judgment,
    Principle,
    PrincipleScope,
    Relation,
    Session,
    SessionPatch,
    clamp,
    make_id,
)


class TestHelpers:
    def test_make_id(self):
        ident = make_id("j")
        assert ident.startswith("j_")
        assert len(ident) == 10
        assert make_id("j") != make_id("j")

    @pytest.mark.parametrize(
        "value,expected",
        [(5, 5.0), (-1, 0.0), (200, 100.0), (math.nan, 0.0), (math.inf, 0.0), ("x", 0.0)],
    )
    def test_clamp(self, value, expected):
        assert clamp(value, 0.0, 100.0) == expected


class TestEntityInvariants:
    def test_judgment_confidence_clamped(self):
        assert Judgment(id="j", text="t", confidence=150).confidence == 100.0
        assert Judgment(id="j", text="t", confidence=math.nan).confidence == 0.0

    def test_principle_plausibility_clamped(self):
        assert Principle(id="p", text="t", plausibility=-0.3).plausibility == 0.0

    def test_principle_scope_coerced_from_string(self):
        assert Principle(id="p", text="t", scope="defeasible").scope is PrincipleScope.DEFEASIBLE

    def test_link_enums_coerced(self):
        l1 = link("j1", "p1", "supports")
        assert l1.from_type is EntityType.JUDGMENT
        assert l1.to_type is EntityType.PRINCIPLE
        assert l1.relation is Relation.SUPPORTS

    def test_unknown_relation_rejected(self):
        with pytest.raises(ValueError):
            link("j1", "j2", "implies")


class TestWireFormat:
    def test_judgment_camel_case(self):
        data = judgment("j1", 70, tags=("a",)).to_dict()
        assert data["sourceNote"] == ""
        assert data["createdAt"] == NOW
        assert data["tags"] == ["a"]

    def test_session_round_trip(self, dilemma_session):
        data = dilemma_session.to_dict()
        assert "lastReport" not in data
        assert Session.from_dict(data) == dilemma_session

    def test_from_dict_accepts_snake_case(self):
        s = Session.from_dict(
            {
                "id": "s1",
                "judgments": [{"id": "j1", "text": "t", "confidence": 10, "source_note": "n"}],
                "links": [
                    {"id": "l1", "from_type": "judgment", "from_id": "j1",
                     "to_type": "judgment", "to_id": "j1", "relation": "supports"}
                ],
            }
        )
        assert s.judgments[0].source_note == "n"
        assert s.links[0].from_id == "j1"

    def test_last_report_not_part_of_equality(self, dilemma_session):
        from dataclasses import replace

        assert replace(dilemma_session, last_report={"coherenceScore": 1}) == dilemma_session

    def test_patch_to_dict_omits_unset_collections(self):
        patch = SessionPatch(judgments=(judgment("j1"),))
        assert set(patch.to_dict()) == {"judgments"}
        assert SessionPatch.from_dict(patch.to_dict()) == patch

    def test_weights_from_partial_dict(self):
        weights = CoherenceWeights.from_dict({"agreementRatio": 1})
        assert weights.agreement_ratio == 1
        assert weights.avg_confidence_supported == 0.35
        assert weights.parsimony_penalty == 0.15


class TestSession:
    def test_find(self, dilemma_session):
        assert dilemma_session.find_judgment("j2").text == "Action A is forbidden."
        assert dilemma_session.find_principle("p1").plausibility == 0.92
        assert dilemma_session.find_judgment("p1") is None

    def test_with_entry_appends(self):
        s = session(judgments=(judgment("j1"),))
        logged = s.with_entry("alice", "ADD_JUDGMENT", "Added j1")
        assert len(logged.revision_log) == 1
        assert logged.revision_log[0].actor_id == "alice"
        assert logged.updated_at != NOW
        assert s.revision_log == ()

    def test_lists_are_frozen_to_tuples(self):
        s = Session(id="s", judgments=[judgment("j1")], principles=[principle("p1")])
        assert isinstance(s.judgments, tuple)
        assert isinstance(s.principles, tuple)

    def test_patch_is_empty(self):
        assert SessionPatch().is_empty()
        assert not SessionPatch(links=()).is_empty()


class TestConflictSet:
    def test_key_and_size(self):
        conflict = ConflictSet(ids=("a", "b", "c"), reason="r")
        assert conflict.key == "a|b|c"
        assert conflict.size == 3
        assert conflict.to_dict() == {"ids": ["a", "b", "c"], "reason": "r", "size": 3}
