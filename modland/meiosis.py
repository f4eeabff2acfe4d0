"""Meiosis: gamete formation with a genotype-dependent recombination map.

One meiosis per transmitted gamete:
  1. Each boundary i between loci i and i+1 crosses over independently
     with probability rec_map[i] (no interference).
  2. A random starting strand is chosen; the active strand toggles at
     every crossover. The recombinant copies each locus from the active
     strand, and its complement from the other strand.
  3. A fair coin picks which of the two recombinants is transmitted.

The modifier locus is unlinked: its allele is drawn by a separate fair
coin. Siblings never share a meiosis.
"""

from __future__ import annotations

from typing import Tuple

import numpy as np

from modland.recombination import RecombinationModel


def crossover_mask(rec_map: np.ndarray, rng: np.random.Generator) -> np.ndarray:
    """(n_loci − 1,) bool — True where a crossover occurs."""
    return rng.random(len(rec_map)) < rec_map


def gamete(
    haplotype_pair: np.ndarray,
    rec_map: np.ndarray,
    rng: np.random.Generator,
) -> Tuple[np.ndarray, int]:
    """Produce one recombinant haplotype from a parent's two copies.

    Args:
        haplotype_pair: (2, n_loci) int8 parental haplotypes.
        rec_map: (n_loci − 1,) crossover probabilities.
        rng: Random generator.

    Returns:
        (haplotype, n_crossovers): a fresh (n_loci,) int8 array and the
        number of crossovers in this meiosis.
    """
    n_loci = haplotype_pair.shape[1]
    crossovers = crossover_mask(rec_map, rng)

    start = int(rng.integers(0, 2))
    strand = np.empty(n_loci, dtype=np.intp)
    strand[0] = 0
    strand[1:] = np.cumsum(crossovers)
    strand = (strand + start) % 2

    loci = np.arange(n_loci)
    if rng.random() < 0.5:
        haplotype = haplotype_pair[strand, loci]
    else:
        haplotype = haplotype_pair[1 - strand, loci]

    return haplotype.astype(np.int8, copy=True), int(crossovers.sum())


def modifier_gamete(modifier_pair: np.ndarray, rng: np.random.Generator) -> int:
    """Transmit one of the two modifier alleles uniformly at random."""
    return int(modifier_pair[int(rng.integers(0, 2))])


def make_offspring(
    mother_haplotypes: np.ndarray,
    mother_modifiers: np.ndarray,
    father_haplotypes: np.ndarray,
    father_modifiers: np.ndarray,
    model: RecombinationModel,
    rng: np.random.Generator,
) -> Tuple[np.ndarray, np.ndarray, int]:
    """Build one offspring's genome from two independent meioses.

    Each parent's map is selected by that parent's modifier genotype.
    Draw order per offspring is fixed (maternal gamete, paternal gamete,
    maternal modifier, paternal modifier) so a given stream always yields
    the same offspring.

    Returns:
        (haplotypes, modifiers, n_crossovers): (2, n_loci) int8 with the
        maternal copy first, (2,) int8, and total crossovers over both
        meioses.
    """
    mat_map = model.map_for(int(mother_modifiers.sum()))
    pat_map = model.map_for(int(father_modifiers.sum()))

    mat_hap, mat_co = gamete(mother_haplotypes, mat_map, rng)
    pat_hap, pat_co = gamete(father_haplotypes, pat_map, rng)

    modifiers = np.array(
        [modifier_gamete(mother_modifiers, rng), modifier_gamete(father_modifiers, rng)],
        dtype=np.int8,
    )
    return np.stack([mat_hap, pat_hap]), modifiers, mat_co + pat_co
