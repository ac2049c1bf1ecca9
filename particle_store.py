# particle_store.py

import logging
import numpy as np

import constants

logger = logging.getLogger("atom_cloud")


class ParticleStore:
    """
    Holds the state of every simulated particle as NumPy arrays (Structure of Arrays).

    Data Contract:
    - Inputs:
        - positions, velocities (array-like, shape (N, 3)): SI units.
        - masses (array-like, shape (N,) or scalar): kg.
        - cross_sections (array-like or scalar): Collisional cross-section per particle (m^2).
        - weights (array-like or scalar, optional): Number of real atoms each particle
          represents. Left as None when omitted; the Simulation then fills it from
          the macroparticle factor.
    - Outputs: None. The arrays are read and written in place by the other components.
    - Side Effects: None.
    - Invariants: All arrays keep the same length N for the whole run. A particle's
      index is its stable identity. `forces` only ever holds the current frame's
      field evaluation; the Integrator zeroes it after use.
    """
    def __init__(self, positions, velocities, masses, cross_sections, weights=None):
        self.positions = np.array(positions, dtype=np.float64).reshape(-1, 3)
        self.num_particles = self.positions.shape[0]
        self.velocities = np.array(velocities, dtype=np.float64).reshape(-1, 3)
        if self.velocities.shape[0] != self.num_particles:
            raise ValueError(
                f"velocities has {self.velocities.shape[0]} rows, expected {self.num_particles}."
            )

        self.masses = self._per_particle(masses, "masses")
        self.cross_sections = self._per_particle(cross_sections, "cross_sections")
        self.weights = None
        if weights is not None:
            self.set_weights(weights)
        self.inverse_masses = 1.0 / self.masses

        self.forces = np.zeros((self.num_particles, 3), dtype=np.float64)
        self.old_forces = np.zeros((self.num_particles, 3), dtype=np.float64)
        self.active = np.ones(self.num_particles, dtype=np.bool_)

    def set_weights(self, weights):
        self.weights = self._per_particle(weights, "weights")

    def _per_particle(self, values, name):
        array = np.broadcast_to(np.asarray(values, dtype=np.float64), (self.num_particles,)).copy()
        if np.any(array <= 0):
            raise ValueError(f"All {name} must be positive.")
        return array

    @classmethod
    def gaussian_cloud(cls, atom_number: int, mass: float, position_sigma: float,
                       velocity_sigma: float, cross_section: float, weight: float,
                       rng: np.random.Generator):
        """
        Creates a cloud with normally distributed positions and velocities centred
        on the origin, drawn from the supplied generator.
        """
        positions = rng.normal(0.0, position_sigma, (atom_number, 3))
        velocities = rng.normal(0.0, velocity_sigma, (atom_number, 3))
        logger.info(
            f"Gaussian cloud created: N={atom_number}, sigma_r={position_sigma:.2e} m, "
            f"sigma_v={velocity_sigma:.2e} m/s."
        )
        return cls(positions, velocities, mass, cross_section, weight)

    def __len__(self):
        return self.num_particles

    @property
    def active_count(self) -> int:
        return int(np.count_nonzero(self.active))

    def active_indices(self) -> np.ndarray:
        return np.flatnonzero(self.active)

    def snapshot(self) -> dict:
        """Returns copies of the kinematic state, safe to hand to writers."""
        return {
            'positions': self.positions.copy(),
            'velocities': self.velocities.copy(),
            'active': self.active.copy(),
        }

    def get_total_kinetic_energy(self):
        """
        Calculates the total kinetic energy of the active particles.
        KE = sum(0.5 * m * v^2)
        """
        vel_sq = np.sum(self.velocities[self.active]**2, axis=1)
        return float(np.sum(0.5 * self.masses[self.active] * vel_sq))

    def get_total_momentum(self):
        return np.sum(self.masses[self.active, np.newaxis] * self.velocities[self.active], axis=0)

    def get_temperature(self):
        """
        Kinetic temperature of the active particles, T = m <|v - <v>|^2> / (3 k_B).
        """
        if self.active_count == 0:
            return 0.0
        vel = self.velocities[self.active]
        masses = self.masses[self.active]
        thermal = vel - np.mean(vel, axis=0)
        return float(np.mean(masses * np.sum(thermal**2, axis=1)) / (3 * constants.BOLTZMANN_CONSTANT))

    def get_rms_radius(self):
        if self.active_count == 0:
            return 0.0
        return float(np.sqrt(np.mean(np.sum(self.positions[self.active]**2, axis=1))))
