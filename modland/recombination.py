"""Recombination maps indexed by modifier genotype.

A map is a vector of n_loci − 1 crossover probabilities, one per boundary
between adjacent loci. Either:

  - ONE map: used for every individual (no modifier effect), or
  - THREE maps: index = modifier genotype (0 = AA, 1 = AB, 2 = BB).

Map construction helpers: a base map is sampled from adjacent-marker
distances of a linkage map, the BB map scales it by the modifier effect,
and the heterozygote map is their mean.
"""

from __future__ import annotations

from typing import Sequence

import numpy as np

from modland.errors import MapGenotypeMismatch


class RecombinationModel:
    """Read-only set of genotype-indexed recombination maps.

    Args:
        maps: Sequence of 1 or 3 probability vectors (length n_loci − 1).
        n_loci: Number of loci on the simulated chromosome.

    Raises:
        MapGenotypeMismatch: map count not 1 or 3, wrong length, or any
            probability outside [0, 1].
    """

    def __init__(self, maps: Sequence, n_loci: int):
        maps = list(maps)
        if len(maps) not in (1, 3):
            raise MapGenotypeMismatch(
                f"expected 1 or 3 recombination maps, got {len(maps)}"
            )
        if n_loci <= 0:
            raise MapGenotypeMismatch(f"n_loci must be positive, got {n_loci}")

        frozen = []
        for g, m in enumerate(maps):
            arr = np.array(m, dtype=np.float64, copy=True).reshape(-1)
            if len(arr) != n_loci - 1:
                raise MapGenotypeMismatch(
                    f"map {g} has length {len(arr)}, expected n_loci - 1 = {n_loci - 1}"
                )
            if np.any(~np.isfinite(arr)) or np.any(arr < 0.0) or np.any(arr > 1.0):
                raise MapGenotypeMismatch(
                    f"map {g} contains probabilities outside [0, 1]"
                )
            arr.setflags(write=False)
            frozen.append(arr)

        self._maps = tuple(frozen)
        self.n_loci = int(n_loci)

    @property
    def n_maps(self) -> int:
        return len(self._maps)

    @property
    def has_modifier_effect(self) -> bool:
        """True when meiosis depends on the modifier genotype."""
        return self.n_maps == 3

    def map_for(self, modifier_genotype: int) -> np.ndarray:
        """Crossover probabilities for a parent of the given genotype.

        With a single map the genotype is ignored.
        """
        if self.n_maps == 1:
            return self._maps[0]
        g = int(modifier_genotype)
        if g not in (0, 1, 2):
            raise MapGenotypeMismatch(
                f"modifier genotype must be 0, 1 or 2, got {modifier_genotype}"
            )
        return self._maps[g]

    def expected_crossovers(self) -> np.ndarray:
        """(n_maps,) expected crossovers per meiosis under each map."""
        return np.array([m.sum() for m in self._maps])

    def __repr__(self) -> str:
        return f"RecombinationModel(n_maps={self.n_maps}, n_loci={self.n_loci})"


# ═══════════════════════════════════════════════════════════════════════
# MAP CONSTRUCTION
# ═══════════════════════════════════════════════════════════════════════

def sample_map_from_distances(
    cm_positions,
    n_loci: int,
    rng: np.random.Generator,
    sampling_interval: int = 1,
    max_cm: float = 2.0,
) -> np.ndarray:
    """Sample a base map from a linkage map's cumulative cM positions.

    Markers are thinned to every ``sampling_interval``-th position,
    adjacent distances outside [0, max_cm) are discarded (chromosome
    breaks and map errors), and n_loci − 1 distances are drawn with
    replacement and converted from cM to crossover probability (÷100).

    Returns:
        (n_loci − 1,) float64 crossover probabilities.
    """
    if sampling_interval < 1:
        raise MapGenotypeMismatch(
            f"sampling_interval must be >= 1, got {sampling_interval}"
        )
    positions = np.asarray(cm_positions, dtype=np.float64)[::sampling_interval]
    dist = np.diff(positions)
    dist = dist[(dist >= 0.0) & (dist < max_cm)]
    if len(dist) == 0:
        raise MapGenotypeMismatch("no usable inter-marker distances in linkage map")
    return rng.choice(dist, size=n_loci - 1, replace=True) / 100.0


def build_modifier_maps(base_map, effect: float = 2.0) -> list:
    """Three genotype-indexed maps from a base (AA) map.

    AA = base, BB = base × effect, AB = (AA + BB) / 2.

    Both AA and BB are clipped to [0, 0.5] (0.5 = free recombination), so
    at a boundary where base × effect exceeds 0.5 the BB probability is
    0.5, not the plain product; an unclipped BB map can be passed to
    ``RecombinationModel`` directly when that is wanted.
    """
    aa = np.asarray(base_map, dtype=np.float64)
    bb = np.clip(aa * effect, 0.0, 0.5)
    aa = np.clip(aa, 0.0, 0.5)
    ab = (aa + bb) / 2.0
    return [aa, ab, bb]
