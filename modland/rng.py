"""Seeded RNG factory for reproducible simulations.

Uses NumPy's SeedSequence → PCG64 hierarchy to guarantee:
  - Statistical independence between streams
  - Bit-exact replay with the same master seed
  - Identical offspring regardless of how many workers build them

Layout for one run attempt (spawn keys relative to the master seed):

    (attempt,)                      run root
    (attempt, 0)                    'founders'   haplotype pool + founder pairs
    (attempt, 1)                    'modifiers'  founder modifier alleles
    (attempt, 2)                    'mating'     selection-free scheduling draws
    (attempt, 3)                    offspring root
    (attempt, 3, g)                 generation g offspring root
    (attempt, 3, g, i)              offspring i of generation g

Restart attempts never share a stream with each other.
"""

from __future__ import annotations

from typing import Dict, List

import numpy as np


STREAM_NAMES = ('founders', 'modifiers', 'mating')
_OFFSPRING_CHILD = len(STREAM_NAMES)


def run_seed_sequence(master_seed: int, attempt: int = 0) -> np.random.SeedSequence:
    """Root SeedSequence for one run attempt of a master seed.

    Equivalent to ``SeedSequence(master_seed).spawn(attempt + 1)[attempt]``.
    """
    if master_seed < 0:
        raise ValueError(f"master_seed must be non-negative, got {master_seed}")
    if attempt < 0:
        raise ValueError(f"attempt must be non-negative, got {attempt}")
    return np.random.SeedSequence(master_seed, spawn_key=(attempt,))


def _child(ss: np.random.SeedSequence, *key: int) -> np.random.SeedSequence:
    # Keyed construction instead of ss.spawn(): spawn() is stateful on ss
    return np.random.SeedSequence(
        ss.entropy,
        spawn_key=tuple(ss.spawn_key) + tuple(key),
        pool_size=ss.pool_size,
    )


def create_rng_hierarchy(run_ss: np.random.SeedSequence) -> Dict[str, np.random.Generator]:
    """Create the named RNG streams for one run.

    Streams created:
      - 'founders':  founder haplotype pool and haplotype pairs
      - 'modifiers': Hardy-Weinberg modifier alleles of founders
      - 'mating':    offspring sex and paternity scheduling

    Args:
        run_ss: Run root from run_seed_sequence().

    Returns:
        Dictionary mapping stream names to numpy Generator instances.

    Example:
        >>> rngs = create_rng_hierarchy(run_seed_sequence(42))
        >>> rngs['mating'].random()  # reproducible
    """
    return {
        name: np.random.Generator(np.random.PCG64(_child(run_ss, i)))
        for i, name in enumerate(STREAM_NAMES)
    }


def generation_seed_sequence(
    run_ss: np.random.SeedSequence,
    generation: int,
) -> np.random.SeedSequence:
    """Root of the offspring streams for the offspring of ``generation``."""
    return _child(run_ss, _OFFSPRING_CHILD, generation)


def spawn_offspring_rngs(
    gen_ss: np.random.SeedSequence,
    n_offspring: int,
) -> List[np.random.Generator]:
    """One independent Generator per scheduled offspring.

    Offspring ``i`` always receives the same stream for a given
    generation root, so results do not depend on evaluation order.
    """
    return [
        np.random.Generator(np.random.PCG64(_child(gen_ss, i)))
        for i in range(n_offspring)
    ]

