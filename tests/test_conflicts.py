"""Tests for minimal conflict set detection."""

import random

import pytest
from factories import judgment, link, principle, random_session, session

from equilibrium.engine.conflicts import (
    MAX_CONFLICT_SET_SIZE,
    PAIR_REASON,
    TRIAD_REASON,
    UNIVERSAL_REASON,
    build_conflict_graph,
    detect_conflicts,
)
from equilibrium.types import EntityType, PrincipleScope, Relation


def _keys(conflicts):
    return [c.key for c in conflicts]


class TestPairs:
    def test_conflict_link_yields_pair(self):
        s = session(judgments=(judgment("j1"), judgment("j2")), links=(link("j1", "j2"),))
        conflicts = detect_conflicts(s)
        assert _keys(conflicts) == ["j1|j2"]
        assert conflicts[0].reason == PAIR_REASON
        assert conflicts[0].size == 2

    def test_direction_does_not_matter(self):
        forward = session(judgments=(judgment("j1"), judgment("j2")), links=(link("j1", "j2"),))
        backward = session(judgments=(judgment("j1"), judgment("j2")), links=(link("j2", "j1"),))
        assert detect_conflicts(forward) == detect_conflicts(backward)

    def test_duplicate_links_are_deduplicated(self):
        s = session(
            judgments=(judgment("j1"), judgment("j2")),
            links=(link("j1", "j2", id="a"), link("j2", "j1", id="b")),
        )
        assert _keys(detect_conflicts(s)) == ["j1|j2"]

    def test_supports_links_are_ignored(self):
        s = session(
            judgments=(judgment("j1"), judgment("j2")), links=(link("j1", "j2", "supports"),)
        )
        assert detect_conflicts(s) == []

    def test_dangling_conflict_link_is_ignored(self):
        s = session(judgments=(judgment("j1"),), links=(link("j1", "gone"),))
        assert detect_conflicts(s) == []
        assert build_conflict_graph(s) == {"j1": set()}

    def test_rejected_judgments_still_form_pairs(self):
        s = session(
            judgments=(judgment("j1", rejected=True), judgment("j2")), links=(link("j1", "j2"),)
        )
        assert _keys(detect_conflicts(s)) == ["j1|j2"]


class TestTriads:
    def test_triangle_yields_pairs_and_one_triad(self, triangle_session):
        conflicts = detect_conflicts(triangle_session)
        assert _keys(conflicts) == ["a|b", "a|c", "b|c", "a|b|c"]
        assert conflicts[-1].reason == TRIAD_REASON
        assert conflicts[-1].size == 3

    def test_open_path_has_no_triad(self):
        s = session(
            judgments=(judgment("a"), judgment("b"), judgment("c")),
            links=(link("a", "b"), link("b", "c")),
        )
        assert all(c.size == 2 for c in detect_conflicts(s))

    def test_four_clique_reports_no_set_larger_than_three(self):
        ids = ["a", "b", "c", "d"]
        links = tuple(link(x, y) for i, x in enumerate(ids) for y in ids[i + 1:])
        s = session(judgments=tuple(judgment(i) for i in ids), links=links)
        conflicts = detect_conflicts(s)
        assert max(c.size for c in conflicts) == 3
        assert sum(1 for c in conflicts if c.size == 2) == 6
        assert sum(1 for c in conflicts if c.size == 3) == 4

    def test_ids_are_sorted_within_each_set(self):
        s = session(
            judgments=(judgment("z"), judgment("m"), judgment("a")),
            links=(link("z", "m"), link("m", "a"), link("z", "a")),
        )
        for conflict in detect_conflicts(s):
            assert list(conflict.ids) == sorted(conflict.ids)


class TestUniversalPrinciples:
    def test_universal_principle_vs_confident_judgment(self, dilemma_session):
        conflicts = detect_conflicts(dilemma_session)
        assert _keys(conflicts) == ["j1|j2", "j2|p1"]
        assert conflicts[1].reason == UNIVERSAL_REASON

    def test_either_link_direction_counts(self):
        s = session(
            judgments=(judgment("j1", 90),), principles=(principle("p1"),),
            links=(link("j1", "p1"),),
        )
        assert _keys(detect_conflicts(s)) == ["j1|p1"]

    def test_low_confidence_judgment_is_not_a_conflict(self):
        s = session(
            judgments=(judgment("j1", 49),), principles=(principle("p1"),),
            links=(link("p1", "j1"),),
        )
        assert detect_conflicts(s) == []

    def test_threshold_is_inclusive(self):
        s = session(
            judgments=(judgment("j1", 50),), principles=(principle("p1"),),
            links=(link("p1", "j1"),),
        )
        assert _keys(detect_conflicts(s)) == ["j1|p1"]

    def test_rejected_judgment_is_not_a_conflict(self):
        s = session(
            judgments=(judgment("j1", 90, rejected=True),), principles=(principle("p1"),),
            links=(link("p1", "j1"),),
        )
        assert detect_conflicts(s) == []

    def test_defeasible_principle_is_not_a_conflict(self):
        s = session(
            judgments=(judgment("j1", 90),),
            principles=(principle("p1", scope=PrincipleScope.DEFEASIBLE),),
            links=(link("p1", "j1"),),
        )
        assert detect_conflicts(s) == []


class TestOrdering:
    def test_sorted_by_size_then_key(self, triangle_session):
        conflicts = detect_conflicts(triangle_session)
        assert conflicts == sorted(conflicts, key=lambda c: (c.size, c.key))

    def test_deterministic(self, triangle_session):
        assert detect_conflicts(triangle_session) == detect_conflicts(triangle_session)


# =============================================================================
# Seeded random sessions (property-based without hypothesis)
# =============================================================================

SEEDS = [0, 7, 42, 123, 456, 789, 1024, 2024]


def _judgment_conflict_edges(s):
    judgment_ids = {j.id for j in s.judgments}
    return {
        tuple(sorted((lk.from_id, lk.to_id)))
        for lk in s.links
        if lk.relation is Relation.CONFLICTS
        and lk.from_type is EntityType.JUDGMENT
        and lk.to_type is EntityType.JUDGMENT
        and lk.from_id in judgment_ids
        and lk.to_id in judgment_ids
    }


def _reversed(s):
    return session(
        s.judgments,
        s.principles,
        tuple(link(lk.to_id, lk.from_id, lk.relation.value, id=lk.id) for lk in s.links),
    )


class TestRandomSessions:
    @pytest.mark.parametrize("seed", SEEDS)
    def test_each_pair_matches_a_conflict_link_exactly_once(self, seed):
        rng = random.Random(seed)
        for _ in range(25):
            s = random_session(rng)
            pairs = [c.ids for c in detect_conflicts(s) if c.reason == PAIR_REASON]
            assert len(pairs) == len(set(pairs))
            assert set(pairs) == _judgment_conflict_edges(s)

    @pytest.mark.parametrize("seed", SEEDS)
    def test_triads_have_all_three_edges(self, seed):
        rng = random.Random(seed)
        for _ in range(25):
            s = random_session(rng, max_judgments=6, max_links=20)
            edges = _judgment_conflict_edges(s)
            for conflict in detect_conflicts(s):
                if conflict.reason != TRIAD_REASON:
                    continue
                a, b, c = conflict.ids
                assert {(a, b), (a, c), (b, c)} <= edges

    @pytest.mark.parametrize("seed", SEEDS)
    def test_link_direction_does_not_matter(self, seed):
        rng = random.Random(seed)
        for _ in range(25):
            s = random_session(rng)
            assert detect_conflicts(_reversed(s)) == detect_conflicts(s)

    @pytest.mark.parametrize("seed", SEEDS)
    def test_sets_are_sorted_unique_and_bounded(self, seed):
        rng = random.Random(seed)
        for _ in range(25):
            s = random_session(rng)
            conflicts = detect_conflicts(s)
            keys = [c.key for c in conflicts]
            assert len(keys) == len(set(keys))
            assert conflicts == sorted(conflicts, key=lambda c: (c.size, c.key))
            for conflict in conflicts:
                assert 2 <= conflict.size <= MAX_CONFLICT_SET_SIZE
                assert list(conflict.ids) == sorted(conflict.ids)

    @pytest.mark.parametrize("seed", SEEDS)
    def test_universal_conflicts_need_live_high_confidence_judgment(self, seed):
        rng = random.Random(seed)
        for _ in range(25):
            s = random_session(rng)
            for conflict in detect_conflicts(s):
                if conflict.reason != UNIVERSAL_REASON:
                    continue
                ids = set(conflict.ids)
                principle_ = next(p for p in s.principles if p.id in ids)
                judgment_ = next(j for j in s.judgments if j.id in ids)
                assert principle_.scope is PrincipleScope.UNIVERSAL
                assert not judgment_.rejected
                assert judgment_.confidence >= 50
