"""Generation loop: selection → scheduling → meiosis → next generation.

State machine per run:

    RUNNING ──step──▶ RUNNING            (offspring produced)
    RUNNING ──step──▶ EXTINCT            (no breeders of a sex; terminal)
    RUNNING ──after n_generations──▶ COMPLETED

Each generation's records are appended only once the generation is
final (its ``bred`` flags known), so a result never holds a partially
recorded generation. Extinction is returned as data, never raised.

Offspring are independent given the assignment table: offspring i of
generation g draws only from its own stream (rng.spawn_offspring_rngs)
and its ID is fixed by its position in the table, so serial and threaded
construction give identical populations.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Union

import numpy as np

from modland.config import SimulationConfig
from modland.errors import PopulationExtinct
from modland.mating import build_assignments
from modland.meiosis import make_offspring
from modland.perf import PerfMonitor
from modland.recombination import RecombinationModel
from modland.rng import generation_seed_sequence, spawn_offspring_rngs
from modland.selection import select_breeders
from modland.types import RECORD_DTYPE, Population


# ═══════════════════════════════════════════════════════════════════════
# STATES & OUTCOMES
# ═══════════════════════════════════════════════════════════════════════

class GenerationState(Enum):
    RUNNING = "running"
    COMPLETED = "completed"
    EXTINCT = "extinct"


class RunStatus(Enum):
    """Terminal status of a run."""
    COMPLETED = "completed"
    EXTINCT = "extinct"


@dataclass(frozen=True)
class ExtinctSignal:
    """Returned by step() when a sex has no breeders."""
    generation: int
    n_breeding_females: int
    n_breeding_males: int


@dataclass
class StepOutcome:
    """A successful generation transition."""
    population: Population          # the new generation
    bred: np.ndarray                # (n_parents,) bool over the old generation
    mean_crossovers: float          # per gamete, this transition


@dataclass
class SimulationResult:
    """Per-generation records of one run.

    ``records[g]`` is the RECORD_DTYPE array of generation g. A completed
    run holds generations 0..n_generations; an extinct run stops at the
    generation whose breeders collapsed (``extinct_at``).
    """
    records: List[np.ndarray] = field(default_factory=list)
    status: RunStatus = RunStatus.COMPLETED
    extinct_at: Optional[int] = None
    n_generations: int = 0                 # requested
    modifier_freq: float = 0.0
    n_restarts: int = 0
    mean_crossovers: List[float] = field(default_factory=list)
    final_population: Optional[Population] = None

    @property
    def completed(self) -> bool:
        return self.status is RunStatus.COMPLETED

    @property
    def n_generations_completed(self) -> int:
        """Number of transitions made (last generation index)."""
        return len(self.records) - 1

    def generation(self, g: int) -> np.ndarray:
        return self.records[g]

    def table(self) -> np.ndarray:
        """All generations concatenated, ordered by generation then ID."""
        if not self.records:
            return np.empty(0, dtype=RECORD_DTYPE)
        return np.concatenate(self.records)

    def population_sizes(self) -> np.ndarray:
        return np.array([len(r) for r in self.records], dtype=np.int64)

    def raise_if_extinct(self) -> None:
        if self.status is RunStatus.EXTINCT:
            raise PopulationExtinct(self.extinct_at)


# ═══════════════════════════════════════════════════════════════════════
# ONE GENERATION
# ═══════════════════════════════════════════════════════════════════════

def _rows_for(population: Population, ids: np.ndarray) -> np.ndarray:
    # ids within a generation are sorted ascending
    return np.searchsorted(population.ids, ids)


def step(
    population: Population,
    model: RecombinationModel,
    config: SimulationConfig,
    mating_rng: np.random.Generator,
    offspring_ss: np.random.SeedSequence,
    next_id: int,
    perf: Optional[PerfMonitor] = None,
) -> Union[StepOutcome, ExtinctSignal]:
    """Advance one generation.

    Args:
        population: Current (parental) generation.
        model: Genotype-indexed recombination maps.
        config: Validated configuration.
        mating_rng: Stream for offspring sex and paternity.
        offspring_ss: Root of this generation's per-offspring streams.
        next_id: First ID to assign to the offspring.
        perf: Optional component timer.

    Returns:
        StepOutcome, or ExtinctSignal if either sex has no breeders.
    """
    perf = perf or PerfMonitor(enabled=False)

    with perf.track("selection"):
        breeders = select_breeders(
            population,
            config.selection.threshold_female,
            config.selection.threshold_male,
        )
    if breeders.is_empty:
        return ExtinctSignal(
            generation=population.generation,
            n_breeding_females=len(breeders.females),
            n_breeding_males=len(breeders.males),
        )

    with perf.track("mating"):
        assignments = build_assignments(
            population.ids[breeders.females],
            population.ids[breeders.males],
            config.population.offspring_per_female,
            config.mating.force_equal_sex,
            config.mating.force_equal_male_success,
            mating_rng,
        )

    n_off = len(assignments)
    mother_rows = _rows_for(population, assignments['mother_id'])
    father_rows = _rows_for(population, assignments['father_id'])
    offspring_rngs = spawn_offspring_rngs(offspring_ss, n_off)
    haps = population.haplotypes
    mods = population.modifiers

    def build(i: int):
        m, f = mother_rows[i], father_rows[i]
        return make_offspring(haps[m], mods[m], haps[f], mods[f], model, offspring_rngs[i])

    with perf.track("meiosis"):
        workers = config.simulation.parallel_workers
        if workers > 1 and n_off > 1:
            with ThreadPoolExecutor(max_workers=workers) as pool:
                built = list(pool.map(build, range(n_off)))
        else:
            built = [build(i) for i in range(n_off)]

    child_haps = np.stack([b[0] for b in built])
    child_mods = np.stack([b[1] for b in built])
    crossovers = sum(b[2] for b in built)

    children = Population(
        generation=population.generation + 1,
        ids=next_id + np.arange(n_off, dtype=np.int64),
        mother_ids=assignments['mother_id'],
        father_ids=assignments['father_id'],
        sex=assignments['sex'],
        haplotypes=child_haps,
        modifiers=child_mods,
    )
    bred = np.isin(
        population.ids,
        np.concatenate([assignments['mother_id'], assignments['father_id']]),
    )
    return StepOutcome(
        population=children,
        bred=bred,
        mean_crossovers=crossovers / (2.0 * n_off),
    )


# ═══════════════════════════════════════════════════════════════════════
# FULL RUN
# ═══════════════════════════════════════════════════════════════════════

class GenerationLoop:
    """Drives a founder population through ``n_generations`` steps.

    Usage:
        loop = GenerationLoop(gen0, model, config, mating_rng, run_ss)
        result = loop.run()
    """

    def __init__(
        self,
        founders: Population,
        model: RecombinationModel,
        config: SimulationConfig,
        mating_rng: np.random.Generator,
        run_ss: np.random.SeedSequence,
        modifier_freq: float = 0.0,
        perf: Optional[PerfMonitor] = None,
    ):
        self.population = founders
        self.model = model
        self.config = config
        self.mating_rng = mating_rng
        self.run_ss = run_ss
        self.perf = perf or PerfMonitor(enabled=False)
        self.state = GenerationState.RUNNING
        self.next_id = int(founders.ids.max()) + 1
        self.result = SimulationResult(
            n_generations=config.simulation.n_generations,
            modifier_freq=modifier_freq,
        )

    def advance(self) -> GenerationState:
        """Run one step and finalize the parental generation's records."""
        if self.state is not GenerationState.RUNNING:
            raise RuntimeError(f"cannot advance a loop in state {self.state.value}")

        current = self.population
        with self.perf.generation():
            outcome = step(
                current,
                self.model,
                self.config,
                self.mating_rng,
                generation_seed_sequence(self.run_ss, current.generation),
                self.next_id,
                self.perf,
            )

        if isinstance(outcome, ExtinctSignal):
            self.result.records.append(current.records())
            self.result.status = RunStatus.EXTINCT
            self.result.extinct_at = outcome.generation
            self.result.final_population = current
            self.state = GenerationState.EXTINCT
            return self.state

        self.result.records.append(current.records(outcome.bred))
        self.result.mean_crossovers.append(outcome.mean_crossovers)
        self.population = outcome.population
        self.next_id += len(outcome.population)

        if self.population.generation >= self.config.simulation.n_generations:
            self.result.records.append(self.population.records())
            self.result.final_population = self.population
            self.state = GenerationState.COMPLETED
        return self.state

    def run(self) -> SimulationResult:
        while self.state is GenerationState.RUNNING:
            self.advance()
        return self.result
