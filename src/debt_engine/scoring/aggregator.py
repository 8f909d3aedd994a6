"""Weighted combination of raw signal scores into a composite."""

from __future__ import annotations

from typing import Mapping, Optional, Sequence

from ..config import DEFAULT_WEIGHTS, SIGNAL_NAMES
from .models import ComponentScore, ScoreComponents


def aggregate(
    raw_scores: Mapping[str, float],
    weights: Mapping[str, float],
    evidence: Optional[Mapping[str, Sequence[str]]] = None,
) -> tuple[ScoreComponents, float]:
    """Build the eight weighted components and their composite.

    A signal missing from ``raw_scores`` scores 0; a missing weight falls back
    to that slot's default. The composite is the plain sum of contributions
    and is not clamped: keeping it in [0, 100] is up to the weight map.
    """
    evidence = evidence or {}
    slots = {
        name: ComponentScore.build(
            raw_scores.get(name, 0.0),
            weights.get(name, DEFAULT_WEIGHTS[name]),
            evidence.get(name, ()),
        )
        for name in SIGNAL_NAMES
    }
    components = ScoreComponents(**slots)
    return components, components.total_contribution()
