# parameters.py

"""
Run configuration

Immutable configuration objects built once from the parsed `config.json`
and passed explicitly to every component. Nothing in the physics core reads
ambient global state.

Data Contract:
- Inputs: The sections of the config dictionary ('simulation', 'collisions',
  'output').
- Outputs: Frozen dataclasses.
- Invariants: Every object returned by a `from_dict` constructor has been
  validated. An invalid value raises ConfigurationError before any step runs.
"""

import math
from dataclasses import dataclass
from typing import Optional, Tuple

from errors import ConfigurationError

COUNT_MODES = ("poisson", "stochastic_rounding")
# Largest ceiling the Poisson draw accepts as a mean
MAX_COLLISION_LIMIT = float(2**62)


def _require_positive(name, value):
    if not value > 0:
        raise ConfigurationError(f"'{name}' must be positive, got {value!r}.")


@dataclass(frozen=True)
class CollisionParameters:
    """
    Parameters of the binary collision model.

    - macroparticle: Number of real atoms represented by one simulated particle.
    - box_number: Number of collision boxes along each axis. The grid is
      centred on the origin.
    - box_width: Edge length of a cubic collision box (m).
    - sigma: Collisional cross-section (m^2).
    - collision_limit: Maximum number of collisions resolved in one box in
      one frame.
    - count_mode: 'poisson' or 'stochastic_rounding'.
    - relative_speed_sample: Boxes with more members than this estimate the
      mean relative speed from consecutive member pairs instead of all pairs.
    """
    macroparticle: float
    box_number: int
    box_width: float
    sigma: float
    collision_limit: float
    count_mode: str = "poisson"
    relative_speed_sample: int = 64

    def __post_init__(self):
        _require_positive("macroparticle", self.macroparticle)
        _require_positive("box_width", self.box_width)
        _require_positive("sigma", self.sigma)
        if int(self.box_number) != self.box_number or self.box_number <= 0:
            raise ConfigurationError(f"'box_number' must be a positive integer, got {self.box_number!r}.")
        if not math.isfinite(self.collision_limit) or not 0 <= self.collision_limit <= MAX_COLLISION_LIMIT:
            raise ConfigurationError(
                f"'collision_limit' must be between 0 and {MAX_COLLISION_LIMIT:.3g}, got {self.collision_limit!r}."
            )
        if self.count_mode not in COUNT_MODES:
            raise ConfigurationError(f"'count_mode' must be one of {COUNT_MODES}, got {self.count_mode!r}.")
        if self.relative_speed_sample < 2:
            raise ConfigurationError("'relative_speed_sample' must be at least 2.")

    @property
    def box_volume(self) -> float:
        return self.box_width ** 3

    @classmethod
    def from_dict(cls, config: dict) -> "CollisionParameters":
        try:
            return cls(
                macroparticle=float(config['macroparticle']),
                box_number=config['box_number'],
                box_width=float(config['box_width']),
                sigma=float(config['sigma']),
                collision_limit=float(config['collision_limit']),
                count_mode=config.get('count_mode', "poisson"),
                relative_speed_sample=int(config.get('relative_speed_sample', 64)),
            )
        except KeyError as e:
            raise ConfigurationError(f"Missing collision parameter: {e.args[0]}") from e


@dataclass(frozen=True)
class SimulationVolume:
    """Inclusive spherical region. Particles leaving it are deactivated."""
    radius: float
    centre: Tuple[float, float, float] = (0.0, 0.0, 0.0)

    def __post_init__(self):
        _require_positive("volume.radius", self.radius)


@dataclass(frozen=True)
class SimulationConfig:
    """
    Top-level run configuration.

    - dt: Fixed global timestep (s).
    - total_steps: Number of frames to run.
    - atom_number: Number of simulated particles in the initial cloud.
    - mass_amu: Particle mass in atomic mass units.
    - position_sigma / velocity_sigma: Standard deviations of the Gaussian
      initial cloud (m, m/s).
    - trap_frequencies: Angular trap frequencies (rad/s) of the harmonic
      force provider, or None for no trap.
    - gravity: Constant acceleration (m/s^2) or None.
    - apply_collisions: Enables the collision pass.
    """
    dt: float
    total_steps: int
    atom_number: int
    mass_amu: float
    position_sigma: float
    velocity_sigma: float
    collisions: CollisionParameters
    trap_frequencies: Optional[Tuple[float, float, float]] = None
    gravity: Optional[Tuple[float, float, float]] = None
    apply_collisions: bool = True
    volume: Optional[SimulationVolume] = None
    log_interval: int = 1000

    def __post_init__(self):
        _require_positive("dt", self.dt)
        _require_positive("mass_amu", self.mass_amu)
        if self.total_steps < 0:
            raise ConfigurationError(f"'total_steps' must not be negative, got {self.total_steps!r}.")
        if self.atom_number < 0:
            raise ConfigurationError(f"'atom_number' must not be negative, got {self.atom_number!r}.")
        if self.position_sigma < 0 or self.velocity_sigma < 0:
            raise ConfigurationError("Initial cloud widths must not be negative.")
        _require_positive("log_interval", self.log_interval)
        for name in ("trap_frequencies", "gravity"):
            value = getattr(self, name)
            if value is not None and len(value) != 3:
                raise ConfigurationError(f"'{name}' must have three components, got {value!r}.")

    @classmethod
    def from_dict(cls, sim_config: dict, collision_config: dict) -> "SimulationConfig":
        trap = sim_config.get('trap_frequencies')
        gravity = sim_config.get('gravity')
        try:
            volume = None
            if sim_config.get('volume') is not None:
                volume_config = sim_config['volume']
                volume = SimulationVolume(
                    radius=float(volume_config['radius']),
                    centre=tuple(volume_config.get('centre', (0.0, 0.0, 0.0))),
                )
            return cls(
                dt=float(sim_config['dt']),
                total_steps=int(sim_config['total_steps']),
                atom_number=int(sim_config['atom_number']),
                mass_amu=float(sim_config['mass_amu']),
                position_sigma=float(sim_config.get('position_sigma', 0.0)),
                velocity_sigma=float(sim_config.get('velocity_sigma', 0.0)),
                collisions=CollisionParameters.from_dict(collision_config),
                trap_frequencies=tuple(trap) if trap is not None else None,
                gravity=tuple(gravity) if gravity is not None else None,
                apply_collisions=bool(sim_config.get('apply_collisions', True)),
                volume=volume,
                log_interval=int(sim_config.get('log_interval', 1000)),
            )
        except KeyError as e:
            raise ConfigurationError(f"Missing simulation parameter: {e.args[0]}") from e


@dataclass(frozen=True)
class OutputConfig:
    """
    File output cadence and destinations. Any path left as None is not written.
    """
    interval: int = 50
    collisions_path: Optional[str] = None
    positions_path: Optional[str] = None
    velocities_path: Optional[str] = None
    xyz_path: Optional[str] = None
    snapshot_interval: int = 100

    def __post_init__(self):
        _require_positive("output.interval", self.interval)
        _require_positive("output.snapshot_interval", self.snapshot_interval)

    @classmethod
    def from_dict(cls, config: dict) -> "OutputConfig":
        return cls(
            interval=int(config.get('interval', 50)),
            collisions_path=config.get('collisions_path'),
            positions_path=config.get('positions_path'),
            velocities_path=config.get('velocities_path'),
            xyz_path=config.get('xyz_path'),
            snapshot_interval=int(config.get('snapshot_interval', 100)),
        )
