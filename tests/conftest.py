"""
Pytest fixtures and test configuration for equilibrium tests.
"""

import pytest
from factories import judgment, link, principle, session

from equilibrium.config import Settings


@pytest.fixture
def empty_session():
    return session()


@pytest.fixture
def dilemma_session():
    """j1 (required) and j2 (forbidden) conflict; universal p1 conflicts with j2."""
    return session(
        judgments=(
            judgment("j1", 95, "Action A is required."),
            judgment("j2", 95, "Action A is forbidden."),
        ),
        principles=(principle("p1", 0.92, text="Always do A."),),
        links=(link("j1", "j2"), link("p1", "j2")),
    )


@pytest.fixture
def triangle_session():
    """Three judgments in a full conflict triangle plus an unrelated fourth."""
    return session(
        judgments=(
            judgment("a", 80),
            judgment("b", 70),
            judgment("c", 60),
            judgment("d", 50),
        ),
        links=(link("a", "b"), link("b", "c"), link("a", "c")),
    )


@pytest.fixture
def settings():
    """Settings with model use switched off and no .env influence."""
    return Settings(_env_file=None, send_to_model=False)
