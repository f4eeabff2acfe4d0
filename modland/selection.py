"""Truncation selection on phenotype within each sex.

The top floor(threshold × n_sex) individuals of each sex breed. Ranking is
by phenotype descending; ties at the cutoff are broken by ascending ID, so
the breeder set is fully determined by the population.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

import numpy as np

from modland.errors import InvalidConfiguration
from modland.types import Population, Sex

# Absorbs binary representation error, e.g. 0.29 * 100 = 28.999999999999996
_FLOOR_TOL = 1e-9


@dataclass(frozen=True)
class BreederSets:
    """Row indices (into the Population arrays) of breeding individuals."""
    females: np.ndarray
    males: np.ndarray

    @property
    def is_empty(self) -> bool:
        """True if either sex has no breeders (extinction)."""
        return len(self.females) == 0 or len(self.males) == 0


def n_breeders(threshold: float, n_sex: int) -> int:
    """floor(threshold × n_sex), tolerant of float rounding."""
    if not (0.0 < threshold <= 1.0):
        raise InvalidConfiguration(f"threshold must be in (0, 1], got {threshold}")
    return int(math.floor(threshold * n_sex + _FLOOR_TOL))


def rank_by_phenotype(phenotype: np.ndarray, ids: np.ndarray) -> np.ndarray:
    """Argsort by phenotype descending, then ID ascending."""
    return np.lexsort((ids, -phenotype.astype(np.int64)))


def select_breeders(
    population: Population,
    threshold_female: float,
    threshold_male: float,
) -> BreederSets:
    """Mark the breeders of each sex.

    Returns:
        BreederSets with row indices ordered by rank (best first). A set
        may be empty; the caller treats that as extinction.
    """
    phenotype = population.phenotype
    chosen = {}
    for sex, thresh in ((Sex.FEMALE, threshold_female), (Sex.MALE, threshold_male)):
        rows = population.indices_of(sex)
        k = n_breeders(thresh, len(rows))
        order = rank_by_phenotype(phenotype[rows], population.ids[rows])
        chosen[sex] = rows[order[:k]]
    return BreederSets(females=chosen[Sex.FEMALE], males=chosen[Sex.MALE])
