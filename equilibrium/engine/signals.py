"""Stance signals.

Judgments and principles are scored on one common scale: a stance in
[-1, 1], where -1 means "points firmly against" and +1 "points firmly for".
"""

from __future__ import annotations

from typing import Union

from equilibrium.types import Judgment, Principle, clamp


def judgment_signal(judgment: Judgment) -> float:
    """-1 for a rejected judgment, else confidence mapped from [0, 100]."""
    if judgment.rejected:
        return -1.0
    return clamp((judgment.confidence / 100.0) * 2.0 - 1.0, -1.0, 1.0)


def principle_signal(principle: Principle) -> float:
    """Plausibility mapped from [0, 1]."""
    return clamp(principle.plausibility * 2.0 - 1.0, -1.0, 1.0)


def signal(entity: Union[Judgment, Principle]) -> float:
    if isinstance(entity, Judgment):
        return judgment_signal(entity)
    return principle_signal(entity)
