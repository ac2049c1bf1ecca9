# forces.py

"""
Force providers

A force provider adds its contribution to `store.forces` once per frame,
before the integrator runs. Contributions are additive; providers never
overwrite or reset the accumulator.

The harmonic trap below stands in for an optical dipole trap near its
centre, where the potential of a crossed-beam trap is well approximated by
a parabola with angular frequencies omega_x, omega_y, omega_z.
"""

import logging
import numpy as np

from particle_store import ParticleStore

logger = logging.getLogger("atom_cloud")


class ForceProvider:
    """Interface for anything that contributes a force to every particle."""

    def add_forces(self, store: ParticleStore):
        raise NotImplementedError


class HarmonicTrap(ForceProvider):
    """
    F = -m * omega^2 * (r - centre), component-wise.
    """
    def __init__(self, trap_frequencies, centre=(0.0, 0.0, 0.0)):
        self.omega_sq = np.asarray(trap_frequencies, dtype=np.float64)**2
        self.centre = np.asarray(centre, dtype=np.float64)
        logger.info(f"Harmonic trap created with angular frequencies {tuple(trap_frequencies)} rad/s.")

    def add_forces(self, store: ParticleStore):
        displacement = store.positions - self.centre
        store.forces -= store.masses[:, np.newaxis] * self.omega_sq * displacement

    def potential_energy(self, store: ParticleStore):
        displacement = store.positions[store.active] - self.centre
        return float(np.sum(0.5 * store.masses[store.active, np.newaxis] * self.omega_sq * displacement**2))


class UniformGravity(ForceProvider):
    def __init__(self, acceleration):
        self.acceleration = np.asarray(acceleration, dtype=np.float64)

    def add_forces(self, store: ParticleStore):
        store.forces += store.masses[:, np.newaxis] * self.acceleration
