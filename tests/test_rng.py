"""Tests for modland.rng — seeded RNG hierarchy and stream layout."""

import numpy as np
import pytest

from modland.rng import (
    STREAM_NAMES,
    create_rng_hierarchy,
    generation_seed_sequence,
    run_seed_sequence,
    spawn_offspring_rngs,
)


class TestRunSeedSequence:
    def test_matches_spawn(self):
        """Attempt k is the k-th spawned child of the master seed."""
        children = np.random.SeedSequence(7).spawn(3)
        for k in range(3):
            a = np.random.Generator(np.random.PCG64(run_seed_sequence(7, k))).random(5)
            b = np.random.Generator(np.random.PCG64(children[k])).random(5)
            np.testing.assert_array_equal(a, b)

    def test_attempts_differ(self):
        a = np.random.Generator(np.random.PCG64(run_seed_sequence(7, 0))).random(5)
        b = np.random.Generator(np.random.PCG64(run_seed_sequence(7, 1))).random(5)
        assert not np.array_equal(a, b)

    def test_negative_seed_raises(self):
        with pytest.raises(ValueError):
            run_seed_sequence(-1)

    def test_negative_attempt_raises(self):
        with pytest.raises(ValueError):
            run_seed_sequence(1, attempt=-1)


class TestCreateRngHierarchy:
    def test_returns_correct_keys(self):
        rngs = create_rng_hierarchy(run_seed_sequence(42))
        assert set(rngs) == set(STREAM_NAMES)

    def test_generators_are_independent(self):
        rngs = create_rng_hierarchy(run_seed_sequence(42))
        vals = {name: rng.random() for name, rng in rngs.items()}
        assert len(set(vals.values())) == len(vals)

    def test_reproducibility(self):
        rngs1 = create_rng_hierarchy(run_seed_sequence(42))
        rngs2 = create_rng_hierarchy(run_seed_sequence(42))
        for name in rngs1:
            np.testing.assert_array_equal(rngs1[name].random(100), rngs2[name].random(100))

    def test_repeat_calls_on_same_root(self):
        """Building the hierarchy twice from one root does not advance it."""
        root = run_seed_sequence(3)
        a = create_rng_hierarchy(root)['mating'].random(10)
        b = create_rng_hierarchy(root)['mating'].random(10)
        np.testing.assert_array_equal(a, b)

    def test_generator_type(self):
        for rng in create_rng_hierarchy(run_seed_sequence(1)).values():
            assert isinstance(rng.bit_generator, np.random.PCG64)


class TestOffspringStreams:
    def test_count(self):
        gen_ss = generation_seed_sequence(run_seed_sequence(1), 0)
        assert len(spawn_offspring_rngs(gen_ss, 7)) == 7

    def test_prefix_stable(self):
        """Offspring i's stream doesn't depend on how many siblings exist."""
        gen_ss = generation_seed_sequence(run_seed_sequence(1), 4)
        few = spawn_offspring_rngs(gen_ss, 3)
        many = spawn_offspring_rngs(gen_ss, 10)
        for i in range(3):
            np.testing.assert_array_equal(few[i].random(20), many[i].random(20))

    def test_generations_differ(self):
        run_ss = run_seed_sequence(1)
        a = spawn_offspring_rngs(generation_seed_sequence(run_ss, 0), 1)[0].random(5)
        b = spawn_offspring_rngs(generation_seed_sequence(run_ss, 1), 1)[0].random(5)
        assert not np.array_equal(a, b)

    def test_offspring_streams_distinct_from_named_streams(self):
        run_ss = run_seed_sequence(5)
        named = {n: r.random() for n, r in create_rng_hierarchy(run_ss).items()}
        off = spawn_offspring_rngs(generation_seed_sequence(run_ss, 0), 5)
        off_vals = {r.random() for r in off}
        assert not off_vals & set(named.values())

