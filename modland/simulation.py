"""Top-level entry points: validate inputs, build founders, run, guard.

    config = default_config()
    founders = make_founders(config, allele_freqs, seed=1)

    with_modifier = simulate(config, base_map=base_map, founders=founders)
    config.modifier.founder_freq = 0.0
    without_modifier = simulate(config, base_map=base_map, founders=founders)

Both runs share the same generation-0 haplotypes; only the modifier
alleles and everything downstream differ.

Given a ``base_map``, the three genotype maps are built with
``config.modifier.effect``; explicit ``maps`` bypass that setting.
"""

from __future__ import annotations

from functools import partial
from pathlib import Path
from typing import Dict, Optional, Sequence, Union

import numpy as np

from modland.config import SimulationConfig, load_config, validate_config
from modland.errors import InvalidConfiguration
from modland.founders import (
    FounderPopulation,
    create_founders,
    founder_population,
    validate_allele_freqs,
)
from modland.generation import GenerationLoop, SimulationResult
from modland.guard import run_with_restarts
from modland.perf import PerfMonitor
from modland.recombination import RecombinationModel, build_modifier_maps
from modland.rng import create_rng_hierarchy, run_seed_sequence


def _founders_from_config(
    config: SimulationConfig,
    allele_freqs,
    rng: np.random.Generator,
) -> FounderPopulation:
    return create_founders(
        allele_freqs,
        config.genome.n_founder_haplotypes,
        config.genome.n_loci,
        config.population.n_females,
        config.population.n_males,
        rng,
    )


def make_founders(
    config: SimulationConfig,
    allele_freqs,
    seed: Optional[int] = None,
) -> FounderPopulation:
    """Founder object for sharing across runs.

    Uses the same stream a run with this seed would use for its own
    founders, so ``simulate(config, maps, allele_freqs, seed=s)`` and
    ``simulate(config, maps, founders=make_founders(config, allele_freqs, s), seed=s)``
    are identical.
    """
    validate_config(config)
    seed = config.simulation.seed if seed is None else seed
    rngs = create_rng_hierarchy(run_seed_sequence(seed, 0))
    return _founders_from_config(config, allele_freqs, rngs['founders'])


def check_founders(founders: FounderPopulation, config: SimulationConfig) -> None:
    """Raise InvalidConfiguration if a founder object does not fit the config."""
    expected = (
        config.genome.n_loci,
        config.population.n_females,
        config.population.n_males,
    )
    got = (founders.n_loci, founders.n_females, founders.n_males)
    if got != expected:
        raise InvalidConfiguration(
            f"founder object has (n_loci, n_females, n_males) = {got}, "
            f"config expects {expected}"
        )


def build_model(
    config: SimulationConfig,
    maps: Optional[Sequence] = None,
    base_map=None,
) -> RecombinationModel:
    """Recombination model from explicit maps or from a base (AA) map.

    Exactly one of ``maps`` and ``base_map`` must be given. A base map is
    expanded with ``build_modifier_maps(base_map, config.modifier.effect)``.
    """
    if (maps is None) == (base_map is None):
        raise InvalidConfiguration("pass exactly one of maps or base_map")
    if maps is None:
        maps = build_modifier_maps(base_map, config.modifier.effect)
    return RecombinationModel(maps, config.genome.n_loci)


def run_attempt(
    config: SimulationConfig,
    model: RecombinationModel,
    seed: int,
    attempt: int,
    allele_freqs=None,
    founders: Optional[FounderPopulation] = None,
    perf: Optional[PerfMonitor] = None,
) -> SimulationResult:
    """One full run on the streams of (seed, attempt).

    Founders are drawn from the attempt's own 'founders' stream unless a
    founder object is supplied.
    """
    run_ss = run_seed_sequence(seed, attempt)
    rngs = create_rng_hierarchy(run_ss)
    if founders is None:
        founders = _founders_from_config(config, allele_freqs, rngs['founders'])

    gen0 = founder_population(founders, config.modifier.founder_freq, rngs['modifiers'])
    loop = GenerationLoop(
        gen0,
        model,
        config,
        rngs['mating'],
        run_ss,
        modifier_freq=config.modifier.founder_freq,
        perf=perf,
    )
    return loop.run()


def simulate(
    config: SimulationConfig,
    maps: Optional[Sequence] = None,
    allele_freqs=None,
    founders: Optional[FounderPopulation] = None,
    seed: Optional[int] = None,
    max_restarts: Optional[int] = None,
    raise_on_failure: bool = False,
    perf: Optional[PerfMonitor] = None,
    base_map=None,
) -> SimulationResult:
    """Run the model, restarting on extinction up to ``max_restarts`` times.

    Args:
        config: Simulation configuration (validated here).
        maps: 1 map (no modifier effect) or 3 maps indexed by modifier
            genotype, each of length n_loci − 1.
        allele_freqs: (n_loci,) probability of a 1 allele per locus. Required
            unless ``founders`` is given.
        founders: Pre-built founder object shared across runs.
        seed: Master seed (default: config.simulation.seed).
        max_restarts: Override of config.simulation.max_restarts.
        raise_on_failure: Raise PopulationExtinct if every attempt collapses.
        perf: Optional component timer.
        base_map: (n_loci − 1,) AA map; the AB and BB maps follow from
            config.modifier.effect. Use instead of ``maps``.

    Returns:
        SimulationResult tagged COMPLETED or EXTINCT.

    Raises:
        InvalidConfiguration: Bad parameters, frequencies or founder object,
            or not exactly one of maps and base_map.
        MapGenotypeMismatch: Map count not 1 or 3, or wrong map length.
    """
    validate_config(config)
    model = build_model(config, maps, base_map)

    if founders is not None:
        check_founders(founders, config)
    elif allele_freqs is None:
        raise InvalidConfiguration("either allele_freqs or founders is required")
    else:
        validate_allele_freqs(allele_freqs, config.genome.n_loci)

    seed = config.simulation.seed if seed is None else seed
    if seed < 0:
        raise InvalidConfiguration(f"seed must be non-negative, got {seed}")
    if max_restarts is None:
        max_restarts = config.simulation.max_restarts

    attempt = partial(
        run_attempt,
        config,
        model,
        seed,
        allele_freqs=allele_freqs,
        founders=founders,
        perf=perf,
    )
    return run_with_restarts(attempt, max_restarts, raise_on_failure=raise_on_failure)


def simulate_from_config(
    config_path: Union[str, Path],
    maps: Optional[Sequence] = None,
    allele_freqs=None,
    founders: Optional[FounderPopulation] = None,
    scenario_path: Optional[Union[str, Path]] = None,
    sweep_overrides: Optional[Dict] = None,
    base_map=None,
    **kwargs,
) -> SimulationResult:
    """Load a YAML config (with optional overrides) and run ``simulate``.

    With ``base_map``, the YAML ``modifier.effect`` sets the BB map.
    """
    config = load_config(config_path, scenario_path, sweep_overrides)
    return simulate(
        config,
        maps,
        allele_freqs=allele_freqs,
        founders=founders,
        base_map=base_map,
        **kwargs,
    )
