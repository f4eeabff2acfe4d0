"""Mating scheduler: breeders → (mother, father, offspring sex) assignments.

Every breeding female has a fixed litter of ``offspring_per_female``.
Two independent balancing modes:

  force_equal_sex
      Each litter is split as evenly as possible between the sexes; the
      odd offspring of an odd litter gets its sex by a fair coin.
      Otherwise every offspring's sex is an independent fair coin.

  force_equal_male_success
      Fathers are dealt round-robin over a shuffled slot order, so the
      offspring counts of any two breeding males differ by at most one.
      Otherwise each offspring's father is drawn uniformly with
      replacement.

The scheduler only returns the assignment table; it creates no
individuals.
"""

from __future__ import annotations

import numpy as np

from modland.errors import InvalidConfiguration
from modland.types import ASSIGNMENT_DTYPE, Sex


def assign_offspring_sex(
    n_mothers: int,
    offspring_per_female: int,
    force_equal_sex: bool,
    rng: np.random.Generator,
) -> np.ndarray:
    """Offspring sexes, litter by litter.

    Returns:
        (n_mothers × offspring_per_female,) int8 Sex values; entries
        [k·L, (k+1)·L) belong to mother k.
    """
    n_slots = n_mothers * offspring_per_female
    if not force_equal_sex:
        return rng.integers(0, 2, size=n_slots).astype(np.int8)

    half = offspring_per_female // 2
    odd = offspring_per_female % 2 == 1
    sexes = np.empty(n_slots, dtype=np.int8)
    for k in range(n_mothers):
        litter = [Sex.FEMALE] * half + [Sex.MALE] * half
        if odd:
            litter.append(Sex(int(rng.integers(0, 2))))
        sexes[k * offspring_per_female:(k + 1) * offspring_per_female] = (
            rng.permutation(np.array(litter, dtype=np.int8))
        )
    return sexes


def assign_fathers(
    male_ids: np.ndarray,
    n_slots: int,
    force_equal_male_success: bool,
    rng: np.random.Generator,
) -> np.ndarray:
    """Father ID for each offspring slot.

    In balanced mode, males are shuffled, tiled to cover every slot (so
    which males get one extra offspring is random), and the tiled list is
    shuffled across slots.
    """
    male_ids = np.asarray(male_ids, dtype=np.int64)
    if not force_equal_male_success:
        return rng.choice(male_ids, size=n_slots, replace=True)

    n_rounds = -(-n_slots // len(male_ids))
    dealt = np.tile(rng.permutation(male_ids), n_rounds)[:n_slots]
    return rng.permutation(dealt)


def build_assignments(
    female_ids: np.ndarray,
    male_ids: np.ndarray,
    offspring_per_female: int,
    force_equal_sex: bool,
    force_equal_male_success: bool,
    rng: np.random.Generator,
) -> np.ndarray:
    """Schedule every offspring of the next generation.

    Args:
        female_ids: IDs of breeding females.
        male_ids: IDs of breeding males.
        offspring_per_female: Fixed litter size.
        force_equal_sex: Balance sexes within litters.
        force_equal_male_success: Balance offspring counts across males.
        rng: Random generator.

    Returns:
        (n_females × offspring_per_female,) ASSIGNMENT_DTYPE array, grouped
        by mother in the order of ``female_ids``.

    Raises:
        InvalidConfiguration: empty breeder set or non-positive litter.
    """
    female_ids = np.asarray(female_ids, dtype=np.int64)
    male_ids = np.asarray(male_ids, dtype=np.int64)
    if len(female_ids) == 0 or len(male_ids) == 0:
        raise InvalidConfiguration("cannot schedule matings without breeders of both sexes")
    if offspring_per_female <= 0:
        raise InvalidConfiguration(
            f"offspring_per_female must be positive, got {offspring_per_female}"
        )

    n_slots = len(female_ids) * offspring_per_female
    assignments = np.zeros(n_slots, dtype=ASSIGNMENT_DTYPE)
    assignments['mother_id'] = np.repeat(female_ids, offspring_per_female)
    assignments['sex'] = assign_offspring_sex(
        len(female_ids), offspring_per_female, force_equal_sex, rng
    )
    assignments['father_id'] = assign_fathers(
        male_ids, n_slots, force_equal_male_success, rng
    )
    return assignments
