"""Founder population construction.

Builds the generation-0 genetics once, so that several runs (e.g. with and
without a modifier effect) can start from identical founders:

  1. A pool of ``n_founder_haplotypes`` haplotypes; locus l of each carries
     a 1 with probability ``allele_freqs[l]``, independently.
  2. ``n_females + n_males`` founders, each drawing two haplotypes from the
     pool with replacement.

Allele-frequency convention: ``allele_freqs[l]`` is the frequency of the
1 allele (the trait-increasing allele) at locus l. Higher values give more
1s and a higher mean phenotype.

Modifier alleles are NOT part of the founder object. They are drawn at
Hardy-Weinberg proportions from a modifier frequency when a run starts
(see ``founder_population``), so the same founders can seed runs with
different modifier frequencies.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from modland.errors import InvalidConfiguration
from modland.types import NO_PARENT, Population, Sex


# ═══════════════════════════════════════════════════════════════════════
# FOUNDER OBJECT
# ═══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class FounderPopulation:
    """Immutable founder genetics shared across runs.

    Founder rows are ordered females first, then males; founder i gets
    ID i + 1.
    """
    haplotype_pool: np.ndarray   # (n_founder_haplotypes, n_loci) int8
    haplotypes: np.ndarray       # (n_females + n_males, 2, n_loci) int8
    allele_freqs: np.ndarray     # (n_loci,) float64
    n_females: int
    n_males: int

    @property
    def n_loci(self) -> int:
        return self.haplotypes.shape[2]

    @property
    def n_founders(self) -> int:
        return self.n_females + self.n_males

    @property
    def sex(self) -> np.ndarray:
        return np.repeat(
            np.array([Sex.FEMALE, Sex.MALE], dtype=np.int8),
            [self.n_females, self.n_males],
        )

    @property
    def phenotype(self) -> np.ndarray:
        return self.haplotypes.sum(axis=(1, 2), dtype=np.int32)


def _read_only(arr: np.ndarray) -> np.ndarray:
    arr.setflags(write=False)
    return arr


# ═══════════════════════════════════════════════════════════════════════
# CONSTRUCTION
# ═══════════════════════════════════════════════════════════════════════

def validate_allele_freqs(allele_freqs, n_loci: int) -> np.ndarray:
    """Check an allele-frequency vector and return it as float64.

    Raises:
        InvalidConfiguration: wrong length or any value outside [0, 1].
    """
    if n_loci <= 0:
        raise InvalidConfiguration(f"n_loci must be positive, got {n_loci}")
    freqs = np.asarray(allele_freqs, dtype=np.float64)
    if freqs.shape != (n_loci,):
        raise InvalidConfiguration(
            f"allele_freqs must have length n_loci={n_loci}, got shape {freqs.shape}"
        )
    if np.any(~np.isfinite(freqs)) or np.any(freqs < 0.0) or np.any(freqs > 1.0):
        raise InvalidConfiguration("allele_freqs must all lie in [0, 1]")
    return freqs


def create_founders(
    allele_freqs,
    n_founder_haplotypes: int,
    n_loci: int,
    n_females: int,
    n_males: int,
    rng: np.random.Generator,
) -> FounderPopulation:
    """Sample the founder haplotype pool and the founders' haplotype pairs.

    Args:
        allele_freqs: (n_loci,) probability of a 1 allele at each locus.
        n_founder_haplotypes: Pool size.
        n_loci: Loci per haplotype.
        n_females, n_males: Founder census per sex.
        rng: Random generator.

    Returns:
        FounderPopulation with read-only arrays.

    Raises:
        InvalidConfiguration: non-positive counts or out-of-range frequencies.
    """
    freqs = validate_allele_freqs(allele_freqs, n_loci)
    if n_founder_haplotypes <= 0:
        raise InvalidConfiguration(
            f"n_founder_haplotypes must be positive, got {n_founder_haplotypes}"
        )
    if n_females <= 0 or n_males <= 0:
        raise InvalidConfiguration(
            f"n_females and n_males must be positive, got {n_females}, {n_males}"
        )

    pool = (rng.random((n_founder_haplotypes, n_loci)) < freqs).astype(np.int8)

    n_founders = n_females + n_males
    picks = rng.integers(0, n_founder_haplotypes, size=(n_founders, 2))
    haplotypes = pool[picks]    # fancy indexing copies: no shared rows

    return FounderPopulation(
        haplotype_pool=_read_only(pool),
        haplotypes=_read_only(haplotypes),
        allele_freqs=_read_only(freqs.copy()),
        n_females=int(n_females),
        n_males=int(n_males),
    )


def assign_founder_modifiers(
    n: int,
    modifier_freq: float,
    rng: np.random.Generator,
) -> np.ndarray:
    """Draw modifier alleles at Hardy-Weinberg proportions.

    Each of the two alleles is independently B (1) with probability
    ``modifier_freq``, giving genotype frequencies (1-q)², 2q(1-q), q².

    Returns:
        (n, 2) int8 modifier alleles.
    """
    if not (0.0 <= modifier_freq <= 1.0):
        raise InvalidConfiguration(
            f"modifier_freq must be in [0, 1], got {modifier_freq}"
        )
    return (rng.random((n, 2)) < modifier_freq).astype(np.int8)


def founder_population(
    founders: FounderPopulation,
    modifier_freq: float,
    rng: np.random.Generator,
) -> Population:
    """Generation-0 Population from a founder object and a modifier frequency."""
    n = founders.n_founders
    return Population(
        generation=0,
        ids=np.arange(1, n + 1, dtype=np.int64),
        mother_ids=np.full(n, NO_PARENT, dtype=np.int64),
        father_ids=np.full(n, NO_PARENT, dtype=np.int64),
        sex=founders.sex,
        haplotypes=founders.haplotypes,
        modifiers=assign_founder_modifiers(n, modifier_freq, rng),
    )


def polarize_minor_allele_frequencies(
    maf,
    n_loci: int,
    rng: np.random.Generator,
) -> np.ndarray:
    """Turn observed minor-allele frequencies into 1-allele frequencies.

    Samples ``n_loci`` MAFs without replacement, then at each locus adds
    0.5 with probability 0.5, so roughly half the loci have the 1 allele
    as the common allele.

    Args:
        maf: Observed minor-allele frequencies, values in [0, 0.5].
        n_loci: Number of loci to draw (≤ len(maf)).
        rng: Random generator.

    Returns:
        (n_loci,) float64 frequencies in [0, 1].
    """
    maf = np.asarray(maf, dtype=np.float64)
    if len(maf) < n_loci:
        raise InvalidConfiguration(
            f"need at least n_loci={n_loci} MAF values, got {len(maf)}"
        )
    if np.any(maf < 0.0) or np.any(maf > 0.5):
        raise InvalidConfiguration("minor-allele frequencies must lie in [0, 0.5]")
    freqs = rng.choice(maf, size=n_loci, replace=False)
    return freqs + (rng.random(n_loci) < 0.5) * 0.5
