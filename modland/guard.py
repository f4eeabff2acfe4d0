"""Extinction guard: rerun a whole simulation when it collapses.

Only meaningful with free sex ratio or free male success; with both
balancing modes on, census size is constant and selection thresholds
that leave a sex without breeders fail on every attempt alike.

Each attempt k receives its own run seed (``rng.run_seed_sequence(seed, k)``),
so a restart never replays the random draws that led to extinction.
A restart redraws the founders from its own stream, except when the caller
supplied a founder object: that object is reused on every attempt so
comparative runs keep identical starting genetics, and only the modifier
alleles and later draws are fresh.
"""

from __future__ import annotations

import warnings
from typing import Callable

from modland.errors import PopulationExtinct
from modland.generation import SimulationResult


def run_with_restarts(
    attempt: Callable[[int], SimulationResult],
    max_restarts: int,
    raise_on_failure: bool = False,
) -> SimulationResult:
    """Call ``attempt(k)`` for k = 0, 1, ... until a run completes.

    Args:
        attempt: Runs one full simulation for attempt index k.
        max_restarts: Restarts allowed after the first attempt.
        raise_on_failure: Raise PopulationExtinct instead of returning
            the last extinct result when restarts are exhausted.

    A founder object bound into ``attempt`` is not redrawn on restart;
    only the per-attempt random streams change.

    Returns:
        The first completed result, or the last extinct one. In both
        cases ``n_restarts`` records how many restarts were used.
    """
    if max_restarts < 0:
        raise ValueError(f"max_restarts must be non-negative, got {max_restarts}")

    for k in range(max_restarts + 1):
        result = attempt(k)
        result.n_restarts = k
        if result.completed:
            return result
        if k < max_restarts:
            warnings.warn(
                f"Population extinct at generation {result.extinct_at} "
                f"(attempt {k + 1}/{max_restarts + 1}); restarting",
                RuntimeWarning,
                stacklevel=2,
            )

    if raise_on_failure:
        raise PopulationExtinct(
            result.extinct_at,
            f"Population extinct at generation {result.extinct_at} after "
            f"{max_restarts} restarts",
        )
    return result
