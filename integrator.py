# integrator.py

import logging
import numpy as np

from particle_store import ParticleStore

logger = logging.getLogger("atom_cloud")


class VelocityVerletIntegrator:
    """
    Fixed-timestep Velocity Verlet integrator driven by one external force
    evaluation per frame.

    The velocity update of a Verlet step needs the force at both ends of the
    step, so it is split across frames:

        v(t)      = v(t-dt) + 0.5 * (a(t-dt) + a(t)) * dt    (finishes last step)
        p(t+dt)   = p(t) + v(t)dt + 0.5a(t)dt^2

    The first frame has no previous force and only drifts.

    After `step` returns, positions are at t+dt but velocities are still v(t):
    the half-kick from a(t+dt) lands on the next frame. Collisions, energy and
    temperature diagnostics, and velocity snapshots written between frames
    therefore read velocities one timestep behind the positions.

    Data Contract:
    - Inputs: dt (float) - The global timestep in seconds.
    - Outputs: None. `step` modifies the store in place.
    - Side Effects: Resets `store.forces` to zero after consuming it and keeps a
      copy in `store.old_forces`.
    - Invariants: `store.forces` must hold the complete force for the current
      positions when `step` is called.
    """
    def __init__(self, dt: float):
        self.dt = dt
        self._primed = False

    def step(self, store: ParticleStore):
        dt = self.dt
        active = store.active
        inverse_masses = store.inverse_masses[:, np.newaxis]
        accelerations = store.forces * inverse_masses

        if self._primed:
            old_accelerations = store.old_forces * inverse_masses
            store.velocities[active] += 0.5 * (old_accelerations[active] + accelerations[active]) * dt

        store.positions[active] += store.velocities[active] * dt + 0.5 * accelerations[active] * dt**2

        store.old_forces[:] = store.forces
        store.forces.fill(0.0)
        self._primed = True

