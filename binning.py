# binning.py

import logging
import numpy as np

logger = logging.getLogger("atom_cloud")


class BoxPartition:
    """
    One frame's assignment of particles to collision boxes, in a flattened
    Numba-friendly format.

    - box_ids: Linear ids of the non-empty boxes, ascending.
    - offsets: offsets[b] is the start of box b in `indices`. The count of box b
      is offsets[b + 1] - offsets[b].
    - indices: Particle indices grouped by box, ascending within each box.

    A partition is never updated in place. The binner produces a new one each frame.
    """
    def __init__(self, box_ids, offsets, indices, box_number):
        self.box_ids = box_ids
        self.offsets = offsets
        self.indices = indices
        self.box_number = box_number

    @property
    def num_boxes(self) -> int:
        return len(self.box_ids)

    @property
    def counts(self) -> np.ndarray:
        return np.diff(self.offsets)

    def members(self, box: int) -> np.ndarray:
        return self.indices[self.offsets[box]:self.offsets[box + 1]]

    def coordinates(self, box: int):
        """Integer grid coordinate (kx, ky, kz) of the box, where k = floor(x / box_width)."""
        n = self.box_number
        linear_id = int(self.box_ids[box])
        half = n // 2
        return (
            linear_id % n - half,
            (linear_id // n) % n - half,
            linear_id // (n * n) - half,
        )

    def as_dict(self) -> dict:
        """Maps each box coordinate to the particle indices it holds."""
        return {self.coordinates(b): self.members(b) for b in range(self.num_boxes)}


class SpatialBinner:
    """
    Partitions space into a regular grid of cubic boxes centred on the origin
    and assigns every active particle to exactly one box.

    Data Contract:
    - Inputs: box_number (boxes per axis), box_width (m).
    - Outputs: A fresh BoxPartition per call to `build`.
    - Side Effects: None. No state is carried between frames.
    - Invariants: Box membership is a partition of the in-grid active particles.
      A particle on a box boundary belongs to the box on the positive side.
      Particles outside the grid are left out; this is not an error.
    """
    def __init__(self, box_number: int, box_width: float):
        self.box_number = int(box_number)
        self.box_width = float(box_width)
        self._half = self.box_number // 2

    def box_coordinates(self, positions: np.ndarray) -> np.ndarray:
        """Integer grid coordinate of each position, floor(x / box_width) per axis."""
        return np.floor(positions / self.box_width).astype(np.int64)

    def build(self, positions: np.ndarray, active=None) -> BoxPartition:
        """
        Rebuilds the partition from raw positions.

        This O(n) operation involves three passes:
        1. Compute the box of each particle and drop those outside the grid.
        2. Sort the particle indices by box.
        3. Find the start offset of every non-empty box.
        """
        n = self.box_number
        coords = self.box_coordinates(positions) + self._half
        in_grid = np.all((coords >= 0) & (coords < n), axis=1)
        if active is not None:
            in_grid &= active

        candidates = np.flatnonzero(in_grid)
        coords = coords[candidates]
        linear_ids = coords[:, 0] + n * coords[:, 1] + n * n * coords[:, 2]

        # Stable sort keeps particle indices ascending inside each box
        order = np.argsort(linear_ids, kind='stable')
        sorted_ids = linear_ids[order]
        indices = candidates[order]

        box_ids, starts = np.unique(sorted_ids, return_index=True)
        offsets = np.empty(len(box_ids) + 1, dtype=np.int64)
        offsets[:-1] = starts
        offsets[-1] = len(indices)

        return BoxPartition(box_ids, offsets, indices, n)
