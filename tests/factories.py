"""Builders for session values used across the tests."""

from equilibrium.types import (
    CoherenceWeights,
    EntityType,
    Judgment,
    Link,
    Principle,
    PrincipleScope,
    Relation,
    Session,
)

NOW = "2026-01-01T00:00:00+00:00"


def judgment(id, confidence=50, text=None, tags=(), rejected=False):
    return Judgment(
        id=id,
        text=text or f"Judgment {id}",
        confidence=confidence,
        tags=tags,
        rejected=rejected,
        created_at=NOW,
        updated_at=NOW,
    )


def principle(id, plausibility=0.5, scope=PrincipleScope.UNIVERSAL, text=None):
    return Principle(
        id=id,
        text=text or f"Principle {id}",
        scope=scope,
        plausibility=plausibility,
        created_at=NOW,
        updated_at=NOW,
    )


def link(from_id, to_id, relation="conflicts", id=None):
    """Link between ids; ids starting with ``p`` are principles."""

    def _type(entity_id):
        return EntityType.PRINCIPLE if entity_id.startswith("p") else EntityType.JUDGMENT

    return Link(
        id=id or f"l_{from_id}_{to_id}",
        from_type=_type(from_id),
        from_id=from_id,
        to_type=_type(to_id),
        to_id=to_id,
        relation=Relation(relation),
        created_at=NOW,
    )


def session(judgments=(), principles=(), links=(), id="wre_test"):
    return Session(
        id=id,
        judgments=judgments,
        principles=principles,
        links=links,
        created_at=NOW,
        updated_at=NOW,
    )


def random_session(rng, max_judgments=7, max_principles=3, max_links=14):
    """A seeded random session with rejected judgments, dangling and duplicate links."""
    judgments = tuple(
        judgment(
            f"j{i}",
            rng.choice([0, 20, 50, 80, 100, rng.uniform(0, 100)]),
            rejected=rng.random() < 0.2,
        )
        for i in range(rng.randint(0, max_judgments))
    )
    principles = tuple(
        principle(f"p{i}", rng.random(), scope=rng.choice(list(PrincipleScope)))
        for i in range(rng.randint(0, max_principles))
    )
    # "ghost" and "pghost" never exist, so links to them dangle.
    ids = [j.id for j in judgments] + [p.id for p in principles] + ["ghost", "pghost"]
    links = []
    for i in range(rng.randint(0, max_links)):
        from_id, to_id = rng.sample(ids, 2)
        relation = rng.choice(["supports", "conflicts"])
        links.append(link(from_id, to_id, relation, id=f"l{i}"))
        if rng.random() < 0.2:
            links.append(link(from_id, to_id, relation, id=f"l{i}_dup"))
    return session(judgments, principles, tuple(links))


def random_weights(rng):
    """Raw weights in [0, 1]; each term is zero about half the time."""
    return CoherenceWeights(*(rng.choice([0.0, rng.random()]) for _ in range(3)))
