"""Core data types for modland.

This module is the SINGLE SOURCE OF TRUTH for:
  - Sex enumeration (0=female, 1=male)
  - RECORD_DTYPE: per-individual output record of one generation
  - ASSIGNMENT_DTYPE: (mother, father, offspring sex) rows from the scheduler
  - Individual: immutable view of one member of a generation
  - Population: structure-of-arrays container for one generation

Genotype layout:
  haplotypes  (n, 2, n_loci) int8 — axis 1 is the haplotype copy
  modifiers   (n, 2)         int8 — the two modifier alleles
Phenotype is the count of 1-alleles across both haplotypes and is never
stored independently of the haplotypes.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Optional

import numpy as np

from modland.errors import InvalidConfiguration


# ═══════════════════════════════════════════════════════════════════════
# ENUMERATIONS
# ═══════════════════════════════════════════════════════════════════════

class Sex(IntEnum):
    """Sex of an individual, stored as int8."""
    FEMALE = 0
    MALE   = 1


# Founders have no parents
NO_PARENT = -1


# ═══════════════════════════════════════════════════════════════════════
# RECORD DTYPES
# ═══════════════════════════════════════════════════════════════════════

RECORD_DTYPE = np.dtype([
    ('generation',        np.int32),   # generation index (0 = founders)
    ('id',                np.int64),   # unique, increasing across the run
    ('mother_id',         np.int64),   # NO_PARENT for founders
    ('father_id',         np.int64),   # NO_PARENT for founders
    ('sex',               np.int8),    # Sex enum
    ('phenotype',         np.int32),   # count of 1-alleles, in [0, 2*n_loci]
    ('modifier_genotype', np.int8),    # 0, 1 or 2
    ('bred',              np.bool_),   # parent of at least one offspring
])

ASSIGNMENT_DTYPE = np.dtype([
    ('mother_id', np.int64),
    ('father_id', np.int64),
    ('sex',       np.int8),
])


def allocate_records(n: int) -> np.ndarray:
    """Allocate a zeroed record array of length ``n``."""
    return np.zeros(n, dtype=RECORD_DTYPE)


# ═══════════════════════════════════════════════════════════════════════
# INDIVIDUAL / POPULATION
# ═══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class Individual:
    """Read-only view of one individual. Arrays are private copies."""
    id: int
    generation: int
    mother_id: int
    father_id: int
    sex: Sex
    haplotypes: np.ndarray   # (2, n_loci) int8
    modifiers: np.ndarray    # (2,) int8

    @property
    def phenotype(self) -> int:
        return int(self.haplotypes.sum())

    @property
    def modifier_genotype(self) -> int:
        return int(self.modifiers.sum())


def _frozen(arr: np.ndarray, dtype) -> np.ndarray:
    out = np.array(arr, dtype=dtype, copy=True)
    out.setflags(write=False)
    return out


class Population:
    """All individuals of one generation, stored as parallel arrays.

    The population owns private, read-only copies of every array passed in,
    so no haplotype or modifier allele is ever shared with another
    population or mutated after construction.
    """

    def __init__(
        self,
        generation: int,
        ids: np.ndarray,
        mother_ids: np.ndarray,
        father_ids: np.ndarray,
        sex: np.ndarray,
        haplotypes: np.ndarray,
        modifiers: np.ndarray,
    ):
        self.generation = int(generation)
        self.ids = _frozen(ids, np.int64)
        self.mother_ids = _frozen(mother_ids, np.int64)
        self.father_ids = _frozen(father_ids, np.int64)
        self.sex = _frozen(sex, np.int8)
        self.haplotypes = _frozen(haplotypes, np.int8)
        self.modifiers = _frozen(modifiers, np.int8)

        n = len(self.ids)
        if self.haplotypes.ndim != 3 or self.haplotypes.shape[:2] != (n, 2):
            raise InvalidConfiguration(
                f"haplotypes must have shape (n, 2, n_loci) with n={n}, "
                f"got {self.haplotypes.shape}"
            )
        if self.modifiers.shape != (n, 2):
            raise InvalidConfiguration(
                f"modifiers must have shape ({n}, 2), got {self.modifiers.shape}"
            )
        for name in ('mother_ids', 'father_ids', 'sex'):
            if len(getattr(self, name)) != n:
                raise InvalidConfiguration(f"{name} must have length {n}")

    def __len__(self) -> int:
        return len(self.ids)

    @property
    def n_loci(self) -> int:
        return self.haplotypes.shape[2]

    @property
    def phenotype(self) -> np.ndarray:
        """(n,) int32 — count of 1-alleles across both haplotypes."""
        return self.haplotypes.sum(axis=(1, 2), dtype=np.int32)

    @property
    def modifier_genotype(self) -> np.ndarray:
        """(n,) int8 — number of B alleles at the modifier locus."""
        return self.modifiers.sum(axis=1, dtype=np.int8)

    def indices_of(self, sex: Sex) -> np.ndarray:
        """Row indices of all individuals of the given sex, in ID order."""
        return np.where(self.sex == int(sex))[0]

    def n_of(self, sex: Sex) -> int:
        return int(np.count_nonzero(self.sex == int(sex)))

    def index_by_id(self) -> dict:
        """Map individual ID → row index."""
        return {int(i): k for k, i in enumerate(self.ids)}

    def individual(self, row: int) -> Individual:
        return Individual(
            id=int(self.ids[row]),
            generation=self.generation,
            mother_id=int(self.mother_ids[row]),
            father_id=int(self.father_ids[row]),
            sex=Sex(int(self.sex[row])),
            haplotypes=self.haplotypes[row].copy(),
            modifiers=self.modifiers[row].copy(),
        )

    def records(self, bred: Optional[np.ndarray] = None) -> np.ndarray:
        """Build the per-individual output records for this generation.

        Args:
            bred: Optional (n,) bool mask of individuals that produced
                offspring. All False if omitted.

        Returns:
            (n,) structured array with RECORD_DTYPE.
        """
        rec = allocate_records(len(self))
        rec['generation'] = self.generation
        rec['id'] = self.ids
        rec['mother_id'] = self.mother_ids
        rec['father_id'] = self.father_ids
        rec['sex'] = self.sex
        rec['phenotype'] = self.phenotype
        rec['modifier_genotype'] = self.modifier_genotype
        if bred is not None:
            rec['bred'] = bred
        return rec
