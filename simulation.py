# simulation.py

import logging
import numpy as np

import constants
from binning import SpatialBinner
from collisions import CollisionEngine
from forces import HarmonicTrap, UniformGravity
from integrator import VelocityVerletIntegrator
from parameters import SimulationConfig
from particle_store import ParticleStore
from stats import CollisionStatsRecorder

logger = logging.getLogger("atom_cloud")


class Simulation:
    """
    Drives the per-frame pipeline: Forces -> Integrate -> Bin -> Collide -> Record.

    Data Contract:
    - Inputs:
        - config (SimulationConfig): The validated run configuration.
        - rng (np.random.Generator): The master seeded random number generator.
        - store (ParticleStore, optional): Initial particle state. A Gaussian cloud
          is drawn from `rng` when omitted. A store without weights gets the
          configured macroparticle factor.
        - force_providers (list, optional): Objects with `add_forces(store)`. Built
          from the config when omitted.
    - Outputs: None. This class modifies its internal state.
    - Side Effects: Owns the ParticleStore and the CollisionsTracker for the run.
    - Invariants: Between calls to `step` the state is a consistent snapshot, so a
      caller may stop at any frame boundary. Nothing else persists across frames.
    """
    def __init__(self, config: SimulationConfig, rng: np.random.Generator, store: ParticleStore = None,
                 force_providers=None):
        self.config = config
        self.rng = rng
        params = config.collisions

        if store is None:
            store = ParticleStore.gaussian_cloud(
                atom_number=config.atom_number,
                mass=config.mass_amu * constants.AMU,
                position_sigma=config.position_sigma,
                velocity_sigma=config.velocity_sigma,
                cross_section=params.sigma,
                weight=params.macroparticle,
                rng=rng,
            )
        elif store.weights is None:
            store.set_weights(params.macroparticle)
        self.store = store

        if force_providers is None:
            force_providers = []
            if config.trap_frequencies is not None:
                force_providers.append(HarmonicTrap(config.trap_frequencies))
            if config.gravity is not None:
                force_providers.append(UniformGravity(config.gravity))
        self.force_providers = force_providers

        self.integrator = VelocityVerletIntegrator(config.dt)
        self.binner = SpatialBinner(params.box_number, params.box_width)
        self.engine = CollisionEngine(params, rng)
        self.recorder = CollisionStatsRecorder()

        self.step_count = 0
        self.lost_particles = 0
        self.last_frame = None

        logger.info(f"Simulation created for {len(store)} particles, dt={config.dt:.2e} s.")
        logger.info(
            f"Collision grid: {params.box_number}^3 boxes of width {params.box_width:.2e} m, "
            f"sigma={params.sigma:.2e} m^2, macroparticle={params.macroparticle:g}, "
            f"collisions {'enabled' if config.apply_collisions else 'disabled'}."
        )

    @property
    def tracker(self):
        return self.recorder.tracker

    def _accumulate_forces(self):
        for provider in self.force_providers:
            provider.add_forces(self.store)

    def _apply_volume(self):
        """Deactivates particles that have left the simulation volume."""
        volume = self.config.volume
        if volume is None:
            return
        store = self.store
        displacement = store.positions - np.asarray(volume.centre)
        outside = store.active & (np.sum(displacement**2, axis=1) > volume.radius**2)
        lost = int(np.count_nonzero(outside))
        if lost:
            store.active[outside] = False
            self.lost_particles += lost
            logger.debug(f"Step {self.step_count}: {lost} particle(s) left the simulation volume.")

    def step(self):
        """
        Runs one full frame and returns the frame's collision outcome, or None
        when collisions are disabled.
        """
        store = self.store

        # --- 1. External forces for the current positions ---
        self._accumulate_forces()

        # --- 2. Kinematics ---
        self.integrator.step(store)
        self._apply_volume()

        frame = None
        if self.config.apply_collisions:
            # --- 3. Rebuild the boxes from scratch with the new positions ---
            partition = self.binner.build(store.positions, store.active)

            # --- 4. Collisions, then statistics ---
            frame = self.engine.resolve(
                partition, store.velocities, store.masses, store.cross_sections, store.weights, self.config.dt
            )
            self.recorder.record(frame)

        self.last_frame = frame
        self.step_count += 1

        if self.step_count % self.config.log_interval == 0:
            self._log_state(frame)
        return frame

    def run(self, steps: int = None, on_step=None):
        """
        Runs `steps` frames (the configured total by default). `on_step(i, sim)` is
        called after each frame with the zero-based index of the completed frame.
        """
        if steps is None:
            steps = self.config.total_steps
        for i in range(steps):
            self.step()
            if on_step is not None:
                on_step(i, self)

    def get_total_energy(self):
        energy = self.store.get_total_kinetic_energy()
        for provider in self.force_providers:
            if hasattr(provider, 'potential_energy'):
                energy += provider.potential_energy(self.store)
        return energy

    def _log_state(self, frame):
        collisions = frame.num_collisions if frame is not None else 0
        logger.debug(
            f"Step={self.step_count}, "
            f"Active={self.store.active_count}, "
            f"Lost={self.lost_particles}, "
            f"T={self.store.get_temperature() * 1e9:.1f} nK, "
            f"R_RMS={self.store.get_rms_radius():.2e} m, "
            f"E={self.get_total_energy():.3e} J, "
            f"Collisions={collisions}, "
            f"TotalCollisions={self.recorder.total_collisions}"
        )
