"""Tests for modland.generation — one-generation step and the run loop."""

import numpy as np
import pytest

from modland.config import SimulationConfig, validate_config
from modland.errors import PopulationExtinct
from modland.founders import create_founders, founder_population
from modland.generation import (
    ExtinctSignal,
    GenerationLoop,
    GenerationState,
    RunStatus,
    SimulationResult,
    StepOutcome,
    step,
)
from modland.perf import PerfMonitor
from modland.recombination import RecombinationModel, build_modifier_maps
from modland.rng import create_rng_hierarchy, generation_seed_sequence, run_seed_sequence
from modland.types import RECORD_DTYPE, Sex


N_LOCI = 20


def _config(n_f=10, n_m=10, litter=2, tf=1.0, tm=0.5, n_gen=5, workers=1,
            equal_sex=True, equal_male=True):
    config = SimulationConfig()
    config.genome.n_loci = N_LOCI
    config.genome.n_founder_haplotypes = 30
    config.population.n_females = n_f
    config.population.n_males = n_m
    config.population.offspring_per_female = litter
    config.selection.threshold_female = tf
    config.selection.threshold_male = tm
    config.simulation.n_generations = n_gen
    config.simulation.parallel_workers = workers
    config.mating.force_equal_sex = equal_sex
    config.mating.force_equal_male_success = equal_male
    return config


def _gen0(config, modifier_freq=0.5, seed=1):
    rng = np.random.default_rng(seed)
    f = create_founders(np.full(N_LOCI, 0.5), config.genome.n_founder_haplotypes,
                        N_LOCI, config.population.n_females, config.population.n_males, rng)
    return founder_population(f, modifier_freq, rng)


def _model():
    return RecombinationModel(build_modifier_maps(np.full(N_LOCI - 1, 0.05)), N_LOCI)


def _loop(config, seed=1, model=None, modifier_freq=0.5, perf=None):
    run_ss = run_seed_sequence(seed)
    rngs = create_rng_hierarchy(run_ss)
    return GenerationLoop(
        _gen0(config, modifier_freq, seed), model or _model(), config,
        rngs['mating'], run_ss, modifier_freq=modifier_freq, perf=perf,
    )


class RecordingModel(RecombinationModel):
    """Logs every genotype used to look up a map."""

    def __init__(self, maps, n_loci):
        super().__init__(maps, n_loci)
        self.lookups = []

    def map_for(self, modifier_genotype):
        self.lookups.append(int(modifier_genotype))
        return super().map_for(modifier_genotype)


# ═══════════════════════════════════════════════════════════════════════
# STEP
# ═══════════════════════════════════════════════════════════════════════

class TestStep:
    def _step(self, config, pop, model=None, next_id=1000, seed=0):
        return step(pop, model or _model(), config, np.random.default_rng(seed),
                    generation_seed_sequence(run_seed_sequence(seed), pop.generation),
                    next_id)

    def test_outcome_shape(self):
        config = _config()
        pop = _gen0(config)
        out = self._step(config, pop)
        assert isinstance(out, StepOutcome)
        child = out.population
        assert child.generation == 1
        assert len(child) == config.population.n_females * 2
        np.testing.assert_array_equal(child.ids, 1000 + np.arange(len(child)))
        assert out.bred.shape == (len(pop),)

    def test_parents_from_previous_generation(self):
        config = _config(tm=0.3)
        pop = _gen0(config)
        out = self._step(config, pop)
        assert set(out.population.mother_ids) <= set(pop.ids[pop.sex == Sex.FEMALE])
        assert set(out.population.father_ids) <= set(pop.ids[pop.sex == Sex.MALE])

    def test_bred_marks_exactly_parents(self):
        config = _config(tm=0.3)
        pop = _gen0(config)
        out = self._step(config, pop)
        parents = set(out.population.mother_ids) | set(out.population.father_ids)
        np.testing.assert_array_equal(out.bred, [i in parents for i in pop.ids])
        # only top 3 of 10 males breed
        assert out.bred[pop.sex == Sex.MALE].sum() <= 3

    def test_only_top_males_father(self):
        config = _config(tm=0.2)
        pop = _gen0(config)
        out = self._step(config, pop)
        males = np.where(pop.sex == Sex.MALE)[0]
        top = males[np.lexsort((pop.ids[males], -pop.phenotype[males]))][:2]
        assert set(out.population.father_ids) == set(pop.ids[top])

    def test_extinct_signal_when_no_male_breeders(self):
        config = _config(n_f=5, n_m=5, tm=0.1)
        pop = _gen0(config)
        out = self._step(config, pop)
        assert isinstance(out, ExtinctSignal)
        assert out.generation == 0
        assert out.n_breeding_males == 0
        assert out.n_breeding_females == 5

    def test_phenotype_in_range(self):
        config = _config()
        out = self._step(config, _gen0(config))
        ph = out.population.phenotype
        assert ph.min() >= 0 and ph.max() <= 2 * N_LOCI

    def test_modifier_mendelian_determinism(self):
        """AA mothers × BB fathers → every offspring AB."""
        config = _config()
        pop = _gen0(config)
        mods = np.where((pop.sex == Sex.FEMALE)[:, None], 0, 1).astype(np.int8)
        mods = np.broadcast_to(mods, (len(pop), 2))
        pop = type(pop)(pop.generation, pop.ids, pop.mother_ids, pop.father_ids,
                        pop.sex, pop.haplotypes, mods)
        for seed in range(5):
            out = self._step(config, pop, seed=seed)
            np.testing.assert_array_equal(out.population.modifier_genotype, 1)

    def test_map_lookups_follow_parent_genotype(self):
        config = _config(n_f=20, n_m=20, tm=0.5)
        pop = _gen0(config, modifier_freq=0.5, seed=3)
        model = RecordingModel(build_modifier_maps(np.full(N_LOCI - 1, 0.05)), N_LOCI)
        out = self._step(config, pop, model=model)

        genotype = dict(zip(pop.ids.tolist(), pop.modifier_genotype.tolist()))
        expected = []
        for m, f in zip(out.population.mother_ids, out.population.father_ids):
            expected += [genotype[int(m)], genotype[int(f)]]
        assert model.lookups == expected

    def test_zero_map_offspring_haplotypes_are_parental(self):
        config = _config()
        pop = _gen0(config)
        model = RecombinationModel([np.zeros(N_LOCI - 1)], N_LOCI)
        out = self._step(config, pop, model=model)
        rows = {int(i): k for k, i in enumerate(pop.ids)}
        for c in range(len(out.population)):
            mat = pop.haplotypes[rows[int(out.population.mother_ids[c])]]
            pat = pop.haplotypes[rows[int(out.population.father_ids[c])]]
            child = out.population.haplotypes[c]
            assert any(np.array_equal(child[0], h) for h in mat)
            assert any(np.array_equal(child[1], h) for h in pat)
        assert out.mean_crossovers == 0.0

    def test_parallel_matches_serial(self):
        serial = _config(workers=1)
        threaded = _config(workers=4)
        pop = _gen0(serial)
        a = self._step(serial, pop, seed=11)
        b = self._step(threaded, pop, seed=11)
        np.testing.assert_array_equal(a.population.haplotypes, b.population.haplotypes)
        np.testing.assert_array_equal(a.population.modifiers, b.population.modifiers)
        np.testing.assert_array_equal(a.population.ids, b.population.ids)


# ═══════════════════════════════════════════════════════════════════════
# LOOP
# ═══════════════════════════════════════════════════════════════════════

class TestGenerationLoop:
    def test_completes_with_all_generations(self):
        config = _config(n_gen=6)
        result = _loop(config).run()
        assert isinstance(result, SimulationResult)
        assert result.status is RunStatus.COMPLETED
        assert result.completed
        assert result.extinct_at is None
        assert len(result.records) == 7
        assert result.n_generations_completed == 6
        assert len(result.mean_crossovers) == 6
        for g, rec in enumerate(result.records):
            assert rec.dtype == RECORD_DTYPE
            np.testing.assert_array_equal(rec['generation'], g)

    def test_constant_census_with_balancing(self):
        config = _config(n_f=8, n_m=8, litter=4, tf=0.5, n_gen=5)
        validate_config(config)
        result = _loop(config).run()
        assert result.completed
        np.testing.assert_array_equal(result.population_sizes(), [16] * 6)
        for rec in result.records:
            assert (rec["sex"] == Sex.FEMALE).sum() == 8
            assert (rec["sex"] == Sex.MALE).sum() == 8

    def test_ids_unique_and_increasing(self):
        result = _loop(_config(n_gen=4)).run()
        ids = result.table()['id']
        assert np.all(np.diff(ids) > 0)

    def test_parents_in_previous_generation(self):
        result = _loop(_config(n_gen=4)).run()
        for g in range(1, len(result.records)):
            prev = set(result.records[g - 1]['id'])
            rec = result.records[g]
            assert set(rec['mother_id']) <= prev
            assert set(rec['father_id']) <= prev

    def test_bred_flags(self):
        result = _loop(_config(n_gen=3, tm=0.3)).run()
        for g in range(len(result.records) - 1):
            rec, nxt = result.records[g], result.records[g + 1]
            parents = set(nxt['mother_id']) | set(nxt['father_id'])
            np.testing.assert_array_equal(rec['bred'], [i in parents for i in rec['id']])
            males = rec['sex'] == Sex.MALE
            assert rec['bred'][males].sum() <= int(0.3 * males.sum())
        assert not result.records[-1]['bred'].any()

    def test_phenotype_and_genotype_bounds(self):
        table = _loop(_config(n_gen=5)).run().table()
        assert table['phenotype'].min() >= 0
        assert table['phenotype'].max() <= 2 * N_LOCI
        assert set(np.unique(table['modifier_genotype'])) <= {0, 1, 2}

    def test_extinction_recorded_as_data(self):
        config = _config(n_f=5, n_m=5, tm=0.1)
        loop = _loop(config)
        result = loop.run()
        assert loop.state is GenerationState.EXTINCT
        assert result.status is RunStatus.EXTINCT
        assert result.extinct_at == 0
        assert len(result.records) == 1
        assert not result.records[0]['bred'].any()
        with pytest.raises(PopulationExtinct) as exc:
            result.raise_if_extinct()
        assert exc.value.generation == 0

    def test_cannot_advance_after_terminal(self):
        loop = _loop(_config(n_gen=1))
        assert loop.advance() is GenerationState.COMPLETED
        with pytest.raises(RuntimeError):
            loop.advance()

    def test_perf_tracks_components(self):
        perf = PerfMonitor(enabled=True)
        _loop(_config(n_gen=3), perf=perf).run()
        stats = perf.get_stats()
        assert stats['selection'].call_count == 3
        assert stats['mating'].call_count == 3
        assert stats['meiosis'].call_count == 3
        assert len(perf.generation_times) == 3
        summary = perf.summary()
        assert set(summary) == {'selection', 'mating', 'meiosis', 'generation'}
        assert summary['generation'] >= summary['meiosis']
        report = perf.report()
        assert report.startswith('3 generations')
        assert 'slowest step' in report

    def test_perf_counts_extinct_step(self):
        perf = PerfMonitor(enabled=True)
        _loop(_config(n_f=5, n_m=5, tm=0.1), perf=perf).run()
        assert len(perf.generation_times) == 1
        assert 'mating' not in perf.get_stats()

    def test_disabled_perf_records_nothing(self):
        perf = PerfMonitor(enabled=False)
        _loop(_config(n_gen=2), perf=perf).run()
        assert perf.generation_times == []
        assert perf.get_stats() == {}
        assert perf.summary() == {}

    def test_perf_reset(self):
        perf = PerfMonitor(enabled=True)
        _loop(_config(n_gen=2), perf=perf).run()
        perf.reset()
        assert perf.generation_times == []
        assert perf.total_time() == 0.0

    def test_population_sizes(self):
        result = _loop(_config(n_f=4, n_m=4, litter=2, n_gen=2)).run()
        np.testing.assert_array_equal(result.population_sizes(), [8, 8, 8])

    def test_empty_result_table(self):
        assert SimulationResult().table().dtype == RECORD_DTYPE
