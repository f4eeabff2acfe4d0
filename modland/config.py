"""Configuration system for modland.

Hierarchical YAML configuration with deep-merge support:
  base.yaml → scenario override → sweep overrides
"""

from __future__ import annotations

import dataclasses
import numbers
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from modland.errors import InvalidConfiguration
from modland.selection import n_breeders


# ═══════════════════════════════════════════════════════════════════════
# CONFIGURATION DATACLASSES
# ═══════════════════════════════════════════════════════════════════════

@dataclass
class SimulationSection:
    """Run length and control."""
    n_generations: int = 100
    seed: int = 42
    max_restarts: int = 0          # Extinction restarts (0 = report extinction)
    parallel_workers: int = 1      # Threads building offspring (1 = serial)


@dataclass
class GenomeSection:
    """Simulated chromosome."""
    n_loci: int = 100                  # Equal-effect additive loci
    n_founder_haplotypes: int = 100    # Size of the founder haplotype pool


@dataclass
class PopulationSection:
    """Census sizes and reproductive output."""
    n_females: int = 50
    n_males: int = 50
    offspring_per_female: int = 2      # Fixed litter size


@dataclass
class SelectionSection:
    """Truncation selection: fraction of each sex allowed to breed."""
    threshold_female: float = 1.0
    threshold_male: float = 0.4


@dataclass
class MatingSection:
    """Balancing of offspring sex and paternity.

    With both switches on, the census stays at n_females females and
    n_males males, provided the breeding females replace both sexes one
    for one (validate_config rejects configurations where they do not).
    Disabling either switch lets census sizes drift.
    """
    force_equal_sex: bool = True
    force_equal_male_success: bool = True


@dataclass
class ModifierSection:
    """Recombination modifier locus."""
    founder_freq: float = 0.4      # Frequency of the B allele in founders
    effect: float = 2.0            # BB map = AA map × effect (see recombination.py)


@dataclass
class SimulationConfig:
    """Complete simulation configuration.

    Load from YAML via `load_config()`. Sections map 1:1 to YAML top-level keys.
    """
    simulation: SimulationSection = field(default_factory=SimulationSection)
    genome: GenomeSection = field(default_factory=GenomeSection)
    population: PopulationSection = field(default_factory=PopulationSection)
    selection: SelectionSection = field(default_factory=SelectionSection)
    mating: MatingSection = field(default_factory=MatingSection)
    modifier: ModifierSection = field(default_factory=ModifierSection)


_SECTION_MAP = {
    'simulation': SimulationSection,
    'genome': GenomeSection,
    'population': PopulationSection,
    'selection': SelectionSection,
    'mating': MatingSection,
    'modifier': ModifierSection,
}


# ═══════════════════════════════════════════════════════════════════════
# YAML LOADING & MERGING
# ═══════════════════════════════════════════════════════════════════════

def deep_merge(base: Dict, override: Dict) -> Dict:
    """Recursively merge override into base. Modifies base in place.

    - Dict values are merged recursively
    - Non-dict values are replaced
    - Keys in override but not base are added

    Returns:
        The merged base dictionary.
    """
    for key, value in override.items():
        if (
            key in base
            and isinstance(base[key], dict)
            and isinstance(value, dict)
        ):
            deep_merge(base[key], value)
        else:
            base[key] = value
    return base


def _dict_to_section(section_cls, data: Dict) -> Any:
    """Convert a dict to a dataclass, ignoring unknown keys."""
    valid_fields = {f.name for f in dataclasses.fields(section_cls)}
    filtered = {k: v for k, v in data.items() if k in valid_fields}
    return section_cls(**filtered)


def _yaml_to_config(data: Dict) -> SimulationConfig:
    """Convert a merged YAML dict to a SimulationConfig."""
    sections = {}
    for key, cls in _SECTION_MAP.items():
        if key in data and isinstance(data[key], dict):
            sections[key] = _dict_to_section(cls, data[key])
        else:
            sections[key] = cls()
    return SimulationConfig(**sections)


def config_to_dict(config: SimulationConfig) -> Dict[str, Dict[str, Any]]:
    """Plain nested dict of a config (YAML-serializable)."""
    return dataclasses.asdict(config)


def _require_positive_int(value, name: str) -> None:
    if isinstance(value, bool) or not isinstance(value, numbers.Integral) or value <= 0:
        raise InvalidConfiguration(f"{name} must be a positive integer, got {value!r}")


def _check_constant_census(config: SimulationConfig) -> None:
    """Balanced mating must reproduce n_females females and n_males males.

    Each breeding female leaves offspring_per_female // 2 daughters and as
    many sons, so the census is constant only if the litter is even, the
    sexes are equal in size and the breeders refill each sex exactly.
    """
    pop = config.population
    breeders = n_breeders(config.selection.threshold_female, pop.n_females)
    if (
        pop.n_females != pop.n_males
        or pop.offspring_per_female % 2 != 0
        or breeders * (pop.offspring_per_female // 2) != pop.n_females
    ):
        raise InvalidConfiguration(
            f"balanced mating cannot keep the census constant: "
            f"{breeders} breeding females x {pop.offspring_per_female} offspring "
            f"!= {pop.n_females} females + {pop.n_males} males "
            f"(needs n_females == n_males, an even litter and "
            f"floor(threshold_female * n_females) * offspring_per_female "
            f"== n_females + n_males)"
        )


def validate_config(config: SimulationConfig) -> None:
    """Validate configuration constraints. Raises InvalidConfiguration on failure.

    Checks:
      - Counts (loci, haplotypes, females, males, litter, generations) positive
      - Selection thresholds in (0, 1]
      - Modifier founder frequency in [0, 1]
      - Seed, restart limit and worker count in range
      - With both balancing modes on, a constant census (see
        _check_constant_census)

    Warns (UserWarning) when a balancing mode is disabled, since census
    size may then drift between generations.
    """
    _require_positive_int(config.genome.n_loci, "genome.n_loci")
    _require_positive_int(config.genome.n_founder_haplotypes,
                          "genome.n_founder_haplotypes")
    _require_positive_int(config.population.n_females, "population.n_females")
    _require_positive_int(config.population.n_males, "population.n_males")
    _require_positive_int(config.population.offspring_per_female,
                          "population.offspring_per_female")
    _require_positive_int(config.simulation.n_generations,
                          "simulation.n_generations")
    _require_positive_int(config.simulation.parallel_workers,
                          "simulation.parallel_workers")

    for name in ('threshold_female', 'threshold_male'):
        thresh = getattr(config.selection, name)
        if not (0.0 < thresh <= 1.0):
            raise InvalidConfiguration(
                f"selection.{name} must be in (0, 1], got {thresh}"
            )

    freq = config.modifier.founder_freq
    if not (0.0 <= freq <= 1.0):
        raise InvalidConfiguration(
            f"modifier.founder_freq must be in [0, 1], got {freq}"
        )
    if config.modifier.effect < 0:
        raise InvalidConfiguration(
            f"modifier.effect must be non-negative, got {config.modifier.effect}"
        )

    if config.simulation.seed is None or config.simulation.seed < 0:
        raise InvalidConfiguration("simulation.seed must be non-negative")
    if config.simulation.max_restarts < 0:
        raise InvalidConfiguration("simulation.max_restarts must be non-negative")

    if config.mating.force_equal_sex and config.mating.force_equal_male_success:
        _check_constant_census(config)
    else:
        warnings.warn(
            "mating.force_equal_sex or mating.force_equal_male_success is "
            "disabled: census size may drift and the population can go "
            "extinct.",
            UserWarning,
            stacklevel=2,
        )


def load_config(
    base_path: Union[str, Path],
    scenario_path: Optional[Union[str, Path]] = None,
    sweep_overrides: Optional[Dict] = None,
) -> SimulationConfig:
    """Load and merge hierarchical YAML configuration.

    Merge order: base → scenario → sweep overrides.
    Each layer overrides only the fields it specifies.

    Args:
        base_path: Path to base configuration YAML.
        scenario_path: Optional scenario override YAML.
        sweep_overrides: Optional dict of parameter sweep overrides.

    Returns:
        Validated SimulationConfig.

    Raises:
        FileNotFoundError: If base_path doesn't exist.
        InvalidConfiguration: If validation fails.
    """
    base_path = Path(base_path)
    if not base_path.exists():
        raise FileNotFoundError(f"Config file not found: {base_path}")

    with open(base_path) as f:
        config_dict = yaml.safe_load(f) or {}

    if scenario_path is not None:
        scenario_path = Path(scenario_path)
        if scenario_path.exists():
            with open(scenario_path) as f:
                scenario = yaml.safe_load(f) or {}
            deep_merge(config_dict, scenario)

    if sweep_overrides is not None:
        deep_merge(config_dict, sweep_overrides)

    config = _yaml_to_config(config_dict)
    validate_config(config)
    return config


def default_config() -> SimulationConfig:
    """Return a SimulationConfig with all default values."""
    config = SimulationConfig()
    validate_config(config)
    return config
