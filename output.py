# output.py

"""
File writers for periodic output.

Writers only read simulation state between frames. A writer that cannot
reach its destination raises OutputError; the in-memory state it was
reading stays intact either way.
"""

import logging
import os

import constants
from errors import OutputError
from particle_store import ParticleStore
from stats import CollisionsTracker

logger = logging.getLogger("atom_cloud")


def _ensure_parent_dir(path):
    parent = os.path.dirname(path)
    if parent:
        os.makedirs(parent, exist_ok=True)


class _FileWriter:
    """Opens its destination lazily and truncates it once, on first use."""
    def __init__(self, path: str):
        self.path = path
        self._file = None

    def _handle(self):
        if self._file is None:
            try:
                _ensure_parent_dir(self.path)
                self._file = open(self.path, 'w', newline='')
            except OSError as e:
                raise OutputError(f"Cannot open output file {self.path}: {e}") from e
            logger.info(f"Writing output to {self.path}")
        return self._file

    def _write(self, text: str):
        handle = self._handle()
        try:
            handle.write(text)
            handle.flush()
        except OSError as e:
            raise OutputError(f"Cannot write to {self.path}: {e}") from e

    def close(self):
        if self._file is not None:
            self._file.close()
            self._file = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()


class CollisionStatsWriter(_FileWriter):
    """
    Writes the accumulated collision statistics as a block of four
    CRLF-terminated lines per flush:

        <step>
        <collisions, space-joined>
        <mean atoms per occupied box, 2 decimals, space-joined>
        <occupied boxes, space-joined>
    """
    def write(self, step: int, tracker: CollisionsTracker):
        collisions = " ".join(str(n) for n in tracker.num_collisions)
        atoms = " ".join(f"{n:.2f}" for n in tracker.num_atoms)
        particles = " ".join(str(n) for n in tracker.num_particles)
        self._write(f"{step}\r\n{collisions}\r\n{atoms}\r\n{particles}\r\n")


class TextSnapshotWriter(_FileWriter):
    """
    Writes one vector quantity ('positions' or 'velocities') of every active
    particle: a `step-<i>, <count>` header, then `<index>: (x, y, z)` lines.
    """
    def __init__(self, path: str, quantity: str):
        if quantity not in ('positions', 'velocities'):
            raise ValueError(f"Unknown snapshot quantity: {quantity}")
        super().__init__(path)
        self.quantity = quantity

    def write(self, step: int, store: ParticleStore):
        values = getattr(store, self.quantity)
        indices = store.active_indices()
        lines = [f"step-{step}, {len(indices)}\n"]
        for i in indices:
            x, y, z = (float(c) for c in values[i])
            lines.append(f"{i}: ({x!r}, {y!r}, {z!r})\n")
        self._write("".join(lines))


class XYZWriter(_FileWriter):
    """
    Writes active particle positions as frames of an XYZ trajectory, scaled to
    micrometres so that common viewers display the cloud at a sensible size.
    """
    def __init__(self, path: str, scale: float = constants.XYZ_SCALE):
        super().__init__(path)
        self.scale = scale

    def write(self, step: int, store: ParticleStore):
        positions = store.positions[store.active] * self.scale
        lines = [f"{len(positions)}\n", f"step {step}\n"]
        lines.extend(f"H\t{x:.6f}\t{y:.6f}\t{z:.6f}\n" for x, y, z in positions)
        self._write("".join(lines))


class OutputManager:
    """
    Owns every configured writer and decides, from the step index, which of
    them write. Statistics are flushed on `interval`, particle snapshots on
    `snapshot_interval`, always for step indices greater than zero.
    """
    def __init__(self, output_config):
        self.config = output_config
        self.stats_writer = None
        self.snapshot_writers = []
        if output_config.collisions_path:
            self.stats_writer = CollisionStatsWriter(output_config.collisions_path)
        if output_config.positions_path:
            self.snapshot_writers.append(TextSnapshotWriter(output_config.positions_path, 'positions'))
        if output_config.velocities_path:
            self.snapshot_writers.append(TextSnapshotWriter(output_config.velocities_path, 'velocities'))
        if output_config.xyz_path:
            self.snapshot_writers.append(XYZWriter(output_config.xyz_path))

    def on_step(self, step: int, store: ParticleStore, tracker: CollisionsTracker):
        if step <= 0:
            return
        if self.stats_writer is not None and step % self.config.interval == 0:
            self.stats_writer.write(step, tracker)
        if step % self.config.snapshot_interval == 0:
            for writer in self.snapshot_writers:
                writer.write(step, store)

    def close(self):
        if self.stats_writer is not None:
            self.stats_writer.close()
        for writer in self.snapshot_writers:
            writer.close()
