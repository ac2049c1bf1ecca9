"""Tests for the frame pipeline (simulation) and the statistics recorder."""

import logging

import numpy as np
import pytest

from collisions import FrameCollisions
from conftest import make_config, make_params
from parameters import SimulationVolume
from particle_store import ParticleStore
from simulation import Simulation
from stats import CollisionStatsRecorder, CollisionsTracker


class TestCollisionStatsRecorder:

    def test_appends_one_record_per_frame(self):
        recorder = CollisionStatsRecorder()
        recorder.record(FrameCollisions(3, 2.5, 4, 0, np.array([1, 2]), np.array([0.5, 1.5])))
        recorder.record(FrameCollisions(0, 0.0, 0, 0, np.zeros(0), np.zeros(0)))

        assert len(recorder.tracker) == 2
        assert recorder.tracker.num_collisions == [3, 0]
        assert recorder.tracker.num_atoms == [2.5, 0.0]
        assert recorder.tracker.num_particles == [4, 0]
        assert recorder.total_collisions == 3

    def test_uses_supplied_tracker(self):
        tracker = CollisionsTracker()
        CollisionStatsRecorder(tracker).record(FrameCollisions(1, 2.0, 1, 0, np.ones(1), np.ones(1)))
        assert tracker.num_collisions == [1]


class TestSimulation:

    def test_records_every_frame(self):
        sim = Simulation(make_config(), np.random.default_rng(0))
        sim.run(15)
        assert sim.step_count == 15
        assert len(sim.tracker) == 15
        assert sim.recorder.total_collisions == sum(sim.tracker.num_collisions)
        assert sim.recorder.total_collisions > 0

    def test_same_seed_same_tracker(self):
        trackers = []
        for _ in range(2):
            sim = Simulation(make_config(), np.random.default_rng(11))
            sim.run()
            trackers.append(sim.tracker)
        assert trackers[0] == trackers[1]

    def test_different_seed_different_tracker(self):
        first = Simulation(make_config(), np.random.default_rng(1))
        second = Simulation(make_config(), np.random.default_rng(2))
        first.run()
        second.run()
        assert first.tracker != second.tracker

    def test_occupied_boxes_hold_at_least_two(self):
        sim = Simulation(make_config(), np.random.default_rng(0))
        sim.run(5)
        for mean_atoms, occupied in zip(sim.tracker.num_atoms, sim.tracker.num_particles):
            assert occupied > 0
            assert mean_atoms >= 2.0

    def test_collisions_disabled(self):
        sim = Simulation(make_config(apply_collisions=False), np.random.default_rng(0))
        frame = sim.step()
        assert frame is None
        assert len(sim.tracker) == 0

    def test_collisions_conserve_momentum_without_forces(self):
        sim = Simulation(make_config(trap_frequencies=None), np.random.default_rng(4))
        momentum_before = sim.store.get_total_momentum()
        energy_before = sim.store.get_total_kinetic_energy()
        sim.run(10)

        assert sim.recorder.total_collisions > 0
        np.testing.assert_allclose(sim.store.get_total_momentum(), momentum_before, atol=1e-30)
        assert sim.store.get_total_kinetic_energy() == pytest.approx(energy_before, rel=1e-9)

    def test_injected_store_and_providers(self):
        store = ParticleStore(np.zeros((2, 3)), [[1.0, 0.0, 0.0], [0.0, 0.0, 0.0]], 1.0, 1e-19, 1.0)
        calls = []

        class Recorder:
            def add_forces(self, target):
                calls.append(target)

        sim = Simulation(make_config(), np.random.default_rng(0), store=store, force_providers=[Recorder()])
        sim.run(3)
        assert sim.store is store
        assert calls == [store, store, store]

    @pytest.mark.parametrize("macroparticle", [1.0, 400.0])
    def test_injected_store_uses_macroparticle_weight(self, macroparticle):
        store = ParticleStore([[0.1, 0.1, 0.1], [0.2, 0.2, 0.2]], [[1.0, 0.0, 0.0], [-1.0, 0.0, 0.0]], 1.0, 0.25)
        params = make_params(macroparticle=macroparticle, box_number=2)
        sim = Simulation(make_config(collisions=params, trap_frequencies=None), np.random.default_rng(0), store=store)
        frame = sim.step()

        np.testing.assert_array_equal(store.weights, [macroparticle, macroparticle])
        # 0.5 * n * (W / V) * sigma * v_rel * dt with n = 2, V = 1, v_rel = 2
        assert frame.expected[0] == pytest.approx(0.5 * 2 * 2 * macroparticle * 0.25 * 2.0 * 1.0e-6)

    def test_explicit_store_weights_are_kept(self):
        store = ParticleStore(np.zeros((2, 3)), np.zeros((2, 3)), 1.0, 1e-19, [3.0, 5.0])
        Simulation(make_config(), np.random.default_rng(0), store=store)
        np.testing.assert_array_equal(store.weights, [3.0, 5.0])

    def test_particles_leaving_the_volume_are_deactivated(self):
        volume = SimulationVolume(radius=1.0)
        store = ParticleStore([[0.0, 0.0, 0.0], [0.9, 0.0, 0.0]], [[0.0, 0.0, 0.0], [1.0e6, 0.0, 0.0]], 1.0, 1e-19, 1.0)
        sim = Simulation(make_config(volume=volume, trap_frequencies=None), np.random.default_rng(0), store=store)
        sim.step()

        assert sim.lost_particles == 1
        assert list(store.active) == [True, False]
        frozen = store.positions[1].copy()
        sim.step()
        np.testing.assert_array_equal(store.positions[1], frozen)
        assert sim.lost_particles == 1

    def test_trap_keeps_cloud_bounded(self):
        sim = Simulation(make_config(atom_number=200, total_steps=200, dt=1.0e-5), np.random.default_rng(0))
        radius_before = sim.store.get_rms_radius()
        sim.run()
        assert sim.store.get_rms_radius() < 2 * radius_before

    def test_periodic_debug_log(self, caplog):
        sim = Simulation(make_config(log_interval=5), np.random.default_rng(0))
        with caplog.at_level(logging.DEBUG, logger="atom_cloud"):
            sim.run(10)
        messages = [r.getMessage() for r in caplog.records if r.getMessage().startswith("Step=")]
        assert len(messages) == 2

    def test_on_step_receives_frame_index(self):
        sim = Simulation(make_config(), np.random.default_rng(0))
        seen = []
        sim.run(4, on_step=lambda i, s: seen.append((i, len(s.tracker))))
        assert seen == [(0, 1), (1, 2), (2, 3), (3, 4)]
