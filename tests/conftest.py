"""Shared fixtures for the simulator test suite."""

import logging

import numpy as np
import pytest

from parameters import CollisionParameters, SimulationConfig


def make_params(**overrides) -> CollisionParameters:
    values = dict(
        macroparticle=1.0,
        box_number=4,
        box_width=1.0,
        sigma=0.25,
        collision_limit=1.0e6,
    )
    values.update(overrides)
    return CollisionParameters(**values)


def make_config(**overrides) -> SimulationConfig:
    collisions = overrides.pop('collisions', None) or make_params(
        macroparticle=400.0,
        box_number=100,
        box_width=1.0e-6,
        sigma=1.0e-14,
        collision_limit=1.0e4,
    )
    values = dict(
        dt=1.0e-6,
        total_steps=20,
        atom_number=400,
        mass_amu=87.0,
        position_sigma=2.0e-6,
        velocity_sigma=0.004,
        collisions=collisions,
        trap_frequencies=(1500.0, 1500.0, 2100.0),
        log_interval=5,
    )
    values.update(overrides)
    return SimulationConfig(**values)


@pytest.fixture
def rng():
    return np.random.default_rng(1234)


@pytest.fixture(autouse=True)
def quiet_logger():
    """Lets pytest's caplog see the application logger without console noise."""
    logger = logging.getLogger("atom_cloud")
    logger.propagate = True
    yield logger
