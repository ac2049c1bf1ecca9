# stats.py

import logging
from dataclasses import dataclass, field
from typing import List

from collisions import FrameCollisions

logger = logging.getLogger("atom_cloud")


@dataclass
class CollisionsTracker:
    """
    Append-only per-frame collision statistics for the whole run.

    - num_collisions: Collisions resolved in the frame.
    - num_atoms: Mean particles per occupied box (a proxy for cloud density).
    - num_particles: Number of occupied boxes.
    """
    num_collisions: List[int] = field(default_factory=list)
    num_atoms: List[float] = field(default_factory=list)
    num_particles: List[int] = field(default_factory=list)

    def __len__(self):
        return len(self.num_collisions)


class CollisionStatsRecorder:
    """
    Appends one record to the tracker after every collision pass.

    Data Contract:
    - Inputs: tracker (CollisionsTracker) - The sequence to append to. A new one is
      created if not supplied.
    - Outputs: None.
    - Side Effects: Grows the tracker by exactly one record per `record` call.
      Records are never evicted.
    """
    def __init__(self, tracker: CollisionsTracker = None):
        self.tracker = tracker if tracker is not None else CollisionsTracker()
        self.total_collisions = 0

    def record(self, frame: FrameCollisions):
        self.tracker.num_collisions.append(int(frame.num_collisions))
        self.tracker.num_atoms.append(float(frame.mean_atoms))
        self.tracker.num_particles.append(int(frame.occupied_boxes))
        self.total_collisions += frame.num_collisions
