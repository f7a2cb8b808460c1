"""Additive scoring with the reasons that fired."""

from __future__ import annotations


def clamp(value: float, *, minimum: float, maximum: float) -> float:
    return max(minimum, min(maximum, value))


class ScoreCard:
    """Accumulates weighted signals on top of a base score and records which fired."""

    def __init__(self, base: float) -> None:
        self.raw_score = base
        self.reasons: list[str] = []

    def add(self, reason: str, amount: float) -> None:
        self.raw_score += amount
        self.reasons.append(reason)

    def clamped(self, *, minimum: float = 0.0, maximum: float = 1.0) -> float:
        return clamp(self.raw_score, minimum=minimum, maximum=maximum)
