# collisions.py

import logging
from dataclasses import dataclass

import numba
import numpy as np

from binning import BoxPartition
from parameters import CollisionParameters

logger = logging.getLogger("atom_cloud")

# --- JIT-Compiled Collision Kernels ---
# These functions operate only on NumPy arrays and scalars, as required by
# Numba's nopython mode. All random numbers are drawn beforehand from the
# injected generator, so the kernels themselves are deterministic.

@numba.jit(nopython=True, fastmath=True)
def _box_statistics_jit(offsets, indices, velocities, cross_sections, weights, sample_limit):
    """
    Per-box mean relative speed, mean cross-section and total collision weight.

    Boxes with up to `sample_limit` members average |v_i - v_j| over all pairs.
    Larger boxes average over consecutive members only, which keeps the cost
    linear in the box population.
    """
    num_boxes = len(offsets) - 1
    mean_vrel = np.zeros(num_boxes)
    mean_sigma = np.zeros(num_boxes)
    weight_sum = np.zeros(num_boxes)

    for b in range(num_boxes):
        start = offsets[b]
        end = offsets[b + 1]
        count = end - start

        sigma_total = 0.0
        weight_total = 0.0
        for i in range(start, end):
            p = indices[i]
            sigma_total += cross_sections[p]
            weight_total += weights[p]
        mean_sigma[b] = sigma_total / count
        weight_sum[b] = weight_total

        if count < 2:
            continue

        vrel_total = 0.0
        pairs = 0
        if count <= sample_limit:
            for i in range(start, end):
                p1 = indices[i]
                for j in range(i + 1, end):
                    p2 = indices[j]
                    dx = velocities[p1, 0] - velocities[p2, 0]
                    dy = velocities[p1, 1] - velocities[p2, 1]
                    dz = velocities[p1, 2] - velocities[p2, 2]
                    vrel_total += np.sqrt(dx * dx + dy * dy + dz * dz)
                    pairs += 1
        else:
            for i in range(start, end - 1):
                p1 = indices[i]
                p2 = indices[i + 1]
                dx = velocities[p1, 0] - velocities[p2, 0]
                dy = velocities[p1, 1] - velocities[p2, 1]
                dz = velocities[p1, 2] - velocities[p2, 2]
                vrel_total += np.sqrt(dx * dx + dy * dy + dz * dz)
                pairs += 1
        mean_vrel[b] = vrel_total / pairs

    return mean_vrel, mean_sigma, weight_sum


@numba.jit(nopython=True, fastmath=True)
def _elastic_collision_jit(v1, v2, m1, m2, cos_theta, phi):
    """
    Elastic two-body collision with isotropic scattering in the centre-of-mass frame.
    Returns the post-collision velocities. Momentum and kinetic energy are conserved.
    """
    total_mass = m1 + m2
    vcm = (m1 * v1 + m2 * v2) / total_mass
    rel = v1 - v2
    g = np.sqrt(rel[0] * rel[0] + rel[1] * rel[1] + rel[2] * rel[2])

    sin_theta = np.sqrt(max(0.0, 1.0 - cos_theta * cos_theta))
    new_rel = np.empty(3)
    new_rel[0] = g * sin_theta * np.cos(phi)
    new_rel[1] = g * sin_theta * np.sin(phi)
    new_rel[2] = g * cos_theta

    return vcm + (m2 / total_mass) * new_rel, vcm - (m1 / total_mass) * new_rel


@numba.jit(nopython=True)
def _apply_collisions_jit(first, second, cos_thetas, phis, velocities, masses):
    """
    Applies the collision events in order, modifying velocities in place.
    A particle may take part in several events of the same frame.
    """
    for e in range(len(first)):
        i = first[e]
        j = second[e]
        v_i, v_j = _elastic_collision_jit(
            velocities[i].copy(), velocities[j].copy(), masses[i], masses[j], cos_thetas[e], phis[e]
        )
        velocities[i] = v_i
        velocities[j] = v_j


def elastic_collision(v1, v2, m1: float, m2: float, rng: np.random.Generator):
    """
    Performs a single elastic collision between two particles with a randomly
    oriented post-collision relative velocity.

    Data Contract:
    - Inputs: velocities (3-vectors, m/s), masses (kg), the generator that supplies
      the scattering angles.
    - Outputs: (v1_new, v2_new) as new arrays. The inputs are not modified.
    """
    cos_theta = rng.uniform(-1.0, 1.0)
    phi = rng.uniform(0.0, 2.0 * np.pi)
    return _elastic_collision_jit(
        np.asarray(v1, dtype=np.float64), np.asarray(v2, dtype=np.float64),
        float(m1), float(m2), cos_theta, phi
    )


@dataclass
class FrameCollisions:
    """Outcome of one frame's collision pass."""
    num_collisions: int
    mean_atoms: float
    occupied_boxes: int
    cap_hits: int
    box_collisions: np.ndarray
    expected: np.ndarray


class CollisionEngine:
    """
    Stochastic binary collision model resolved box by box.

    For each box holding n >= 2 particles the expected number of simulated
    collisions in one timestep is

        lambda = 0.5 * n * (W / V) * sigma * v_rel * dt

    where W is the summed collision weight (real atoms) of the box, V the box
    volume, sigma the mean cross-section of the members and v_rel their mean
    relative speed. A discrete number of events is drawn from lambda, capped at
    the collision limit, and each event scatters a uniformly chosen pair of
    distinct box members elastically.

    Data Contract:
    - Inputs:
        - params (CollisionParameters): Validated collision model parameters.
        - rng (np.random.Generator): The generator used for every random draw.
    - Outputs: A FrameCollisions per call to `resolve`.
    - Side Effects: Modifies the velocities of colliding particles only.
    - Invariants: No box ever realizes more than `collision_limit` collisions.
      Boxes with fewer than 2 particles realize none and are not counted as occupied.
    """
    def __init__(self, params: CollisionParameters, rng: np.random.Generator):
        self.params = params
        self.rng = rng
        self.limit = int(np.floor(params.collision_limit))
        self.total_cap_hits = 0

    def expected_collisions(self, counts, weight_sums, mean_sigma, mean_vrel, dt):
        """Expected simulated collisions per box. Zero for boxes with fewer than 2 particles."""
        density = weight_sums / self.params.box_volume
        expected = 0.5 * counts * density * mean_sigma * mean_vrel * dt
        expected[counts < 2] = 0.0
        return expected

    def draw_collision_counts(self, expected):
        """
        Converts expected counts into integer event counts, never above the limit.
        """
        capped = np.minimum(expected, self.params.collision_limit)
        if self.params.count_mode == "poisson":
            draws = self.rng.poisson(capped)
        else:
            # Whole part always happens, the remainder with matching probability
            whole = np.floor(capped)
            extra = self.rng.random(len(capped)) < (capped - whole)
            draws = whole.astype(np.int64) + extra
        return np.minimum(draws, self.limit).astype(np.int64)

    def _pick_pairs(self, partition: BoxPartition, box_collisions):
        """Draws two distinct members of the box uniformly at random for every event."""
        counts = partition.counts
        event_box = np.repeat(np.arange(partition.num_boxes), box_collisions)
        n = counts[event_box]
        # u * n can round up to n when u is within one ulp of 1
        first = np.minimum(np.floor(self.rng.random(len(event_box)) * n).astype(np.int64), n - 1)
        second = np.minimum(np.floor(self.rng.random(len(event_box)) * (n - 1)).astype(np.int64), n - 2)
        # Skip over the first pick so the pair is always distinct
        second += second >= first
        base = partition.offsets[event_box]
        return partition.indices[base + first], partition.indices[base + second]

    def resolve(self, partition: BoxPartition, velocities, masses, cross_sections, weights, dt) -> FrameCollisions:
        """
        Runs one frame's collision pass over every box of the partition.
        """
        counts = partition.counts
        occupied = counts >= 2
        occupied_boxes = int(np.count_nonzero(occupied))

        if partition.num_boxes == 0:
            return FrameCollisions(0, 0.0, 0, 0, np.zeros(0, dtype=np.int64), np.zeros(0))

        mean_vrel, mean_sigma, weight_sums = _box_statistics_jit(
            partition.offsets, partition.indices, velocities,
            cross_sections, weights, self.params.relative_speed_sample
        )
        expected = self.expected_collisions(counts, weight_sums, mean_sigma, mean_vrel, dt)

        cap_hits = int(np.count_nonzero(expected > self.params.collision_limit))
        if cap_hits:
            if self.total_cap_hits == 0:
                logger.warning(
                    f"Collision limit {self.params.collision_limit:g} exceeded in {cap_hits} box(es) "
                    f"(max expected {np.max(expected):.3g}). Consider a smaller timestep or box width."
                )
            else:
                logger.debug(f"Collision limit exceeded in {cap_hits} box(es).")
            self.total_cap_hits += cap_hits

        box_collisions = self.draw_collision_counts(expected)
        num_collisions = int(np.sum(box_collisions))

        if num_collisions > 0:
            first, second = self._pick_pairs(partition, box_collisions)
            cos_thetas = self.rng.uniform(-1.0, 1.0, num_collisions)
            phis = self.rng.uniform(0.0, 2.0 * np.pi, num_collisions)
            _apply_collisions_jit(first, second, cos_thetas, phis, velocities, masses)

        mean_atoms = float(np.mean(counts[occupied])) if occupied_boxes else 0.0
        return FrameCollisions(num_collisions, mean_atoms, occupied_boxes, cap_hits, box_collisions, expected)
