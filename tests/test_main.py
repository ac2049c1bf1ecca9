"""Tests for configuration loading and the top-level run (main)."""

import json
from pathlib import Path

import numpy as np
import pytest

import main
from errors import ConfigurationError


def small_config(tmp_path, **simulation_overrides):
    simulation = {
        "dt": 1.0e-6,
        "total_steps": 120,
        "atom_number": 200,
        "mass_amu": 87.0,
        "position_sigma": 2.0e-6,
        "velocity_sigma": 0.004,
        "trap_frequencies": [1500.0, 1500.0, 2100.0],
        "log_interval": 50,
    }
    simulation.update(simulation_overrides)
    return {
        "run_id": "test_run",
        "master_seed": 42,
        "logging": {"level": "INFO", "format": "%(levelname)s - %(message)s"},
        "simulation": simulation,
        "collisions": {
            "macroparticle": 400.0,
            "box_number": 100,
            "box_width": 1.0e-6,
            "sigma": 1.0e-14,
            "collision_limit": 10000.0,
        },
        "output": {
            "interval": 50,
            "snapshot_interval": 100,
            "collisions_path": str(tmp_path / "data" / "collisions.txt"),
            "xyz_path": str(tmp_path / "data" / "position.xyz"),
        },
    }


class TestBuildSimulation:

    def test_builds_from_config(self, tmp_path):
        simulation, outputs = main.build_simulation(small_config(tmp_path))
        assert len(simulation.store) == 200
        assert outputs.stats_writer is not None
        assert len(outputs.snapshot_writers) == 1

    def test_invalid_config_stops_before_running(self, tmp_path):
        config = small_config(tmp_path)
        config["collisions"]["sigma"] = 0.0
        with pytest.raises(ConfigurationError):
            main.build_simulation(config)

    def test_missing_section(self, tmp_path):
        config = small_config(tmp_path)
        del config["collisions"]
        with pytest.raises(ConfigurationError):
            main.build_simulation(config)

    def test_seeded_runs_match(self, tmp_path):
        trackers = []
        for _ in range(2):
            simulation, outputs = main.build_simulation(small_config(tmp_path, total_steps=30))
            main.run(simulation, outputs)
            outputs.close()
            trackers.append(simulation.tracker)
        assert trackers[0] == trackers[1]


class TestRun:

    def test_outputs_written_on_cadence(self, tmp_path):
        simulation, outputs = main.build_simulation(small_config(tmp_path))
        assert main.run(simulation, outputs) is True
        outputs.close()

        blocks = (tmp_path / "data" / "collisions.txt").read_bytes().split(b"\r\n")
        assert blocks[0] == b"50"
        assert len(blocks[1].split()) == 51
        assert blocks[4] == b"100"
        assert len(blocks[5].split()) == 101
        assert (tmp_path / "data" / "position.xyz").read_text().splitlines()[1] == "step 100"

    def test_closed_viewer_stops_run(self, tmp_path):
        class ClosedViewer:
            def draw(self, store):
                return False

        simulation, outputs = main.build_simulation(small_config(tmp_path))
        assert main.run(simulation, outputs, ClosedViewer()) is False
        assert simulation.step_count == 1


class TestMain:

    def test_end_to_end(self, tmp_path, monkeypatch):
        config_path = tmp_path / "config.json"
        config_path.write_text(json.dumps(small_config(tmp_path, total_steps=60)))
        monkeypatch.chdir(tmp_path)

        main.main(str(config_path))

        assert (tmp_path / "runs" / "test_run" / "simulation.log").exists()
        assert (tmp_path / "data" / "collisions.txt").read_bytes().startswith(b"50\r\n")

    def test_unreadable_config(self, tmp_path):
        with pytest.raises(ConfigurationError):
            main.load_config(str(tmp_path / "missing.json"))

    def test_example_config_is_valid(self):
        config = main.load_config(str(Path(__file__).resolve().parent.parent / "config.json"))
        simulation, _ = main.build_simulation(config)

        volume = simulation.config.volume
        assert volume.radius == pytest.approx(60.0e-6 / np.sqrt(2.0), rel=1e-4)
        assert volume.radius < 2 * simulation.config.position_sigma
