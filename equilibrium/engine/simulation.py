"""Patch simulation.

The only way to ask "what would the score be if ...". A simulated session
is a new value: the input is never touched and no revision entry is
appended, so a simulation can never pass for a committed edit.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Optional

from equilibrium.types import Session, SessionPatch, utc_now


def simulate_patch(session: Session, patch: Optional[SessionPatch] = None) -> Session:
    """Return ``session`` with the patch's collections swapped in."""
    patch = patch or SessionPatch()
    return replace(
        session,
        judgments=patch.judgments if patch.judgments is not None else session.judgments,
        principles=patch.principles if patch.principles is not None else session.principles,
        links=patch.links if patch.links is not None else session.links,
        updated_at=utc_now(),
    )
