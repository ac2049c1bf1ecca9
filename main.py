# main.py

import json
import logging
import sys
import time

import numpy as np

import logger_setup
from errors import ConfigurationError
from output import OutputManager
from parameters import OutputConfig, SimulationConfig
from simulation import Simulation

# Get the application's dedicated logger
logger = logging.getLogger("atom_cloud")


def load_config(config_path='config.json'):
    try:
        with open(config_path, 'r') as f:
            return json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigurationError(f"Cannot load configuration from {config_path}: {e}") from e


def build_simulation(config: dict):
    """
    Validates the configuration and builds the simulation and its outputs.
    Raises ConfigurationError before anything runs if a value is invalid.
    """
    sim_config = SimulationConfig.from_dict(config.get('simulation', {}), config.get('collisions', {}))
    output_config = OutputConfig.from_dict(config.get('output', {}))

    # Initialize the master random number generator (RNG)
    rng = np.random.default_rng(config.get('master_seed'))
    logger.info(f"Master RNG initialized with seed: {config.get('master_seed')}")

    return Simulation(sim_config, rng), OutputManager(output_config)


def run(simulation: Simulation, outputs: OutputManager, viewer=None, frame_skip=1):
    """
    Runs the configured number of frames, flushing outputs on their cadence.
    Returns False if the viewer window was closed before the end of the run.
    """
    for i in range(simulation.config.total_steps):
        simulation.step()
        outputs.on_step(i, simulation.store, simulation.tracker)

        if viewer is not None and i % frame_skip == 0:
            if not viewer.draw(simulation.store):
                logger.info(f"Viewer closed at step {i}. Stopping.")
                return False
    return True


def main(config_path='config.json'):
    """
    Main function to initialize and run the atom cloud simulation.
    """
    # --- Setup ---
    config = load_config(config_path)
    logger_setup.setup_logging(config_path)

    logger.info("Application starting...")
    logger.info(f"Loaded configuration: {config}")

    simulation, outputs = build_simulation(config)

    viewer = None
    render_config = config.get('render', {})
    if render_config.get('enabled', False):
        from viewer import CloudViewer
        viewer = CloudViewer(render_config.get('field_of_view', 2.0e-4))

    start = time.perf_counter()
    try:
        run(simulation, outputs, viewer, render_config.get('frame_skip', 1))
    finally:
        outputs.close()
        if viewer is not None:
            viewer.close()

    elapsed_ms = (time.perf_counter() - start) * 1e3
    logger.info(
        f"Simulation completed in {elapsed_ms:.0f} ms. "
        f"Steps={simulation.step_count}, TotalCollisions={simulation.recorder.total_collisions}, "
        f"CapHits={simulation.engine.total_cap_hits}, Lost={simulation.lost_particles}."
    )
    logger.info("Application shutting down.")


if __name__ == "__main__":
    main(*sys.argv[1:2])
