# errors.py

"""
Exception hierarchy for the simulator.

Degenerate frames (empty boxes, collision ceilings being hit) are handled
inline and never raise. Only setup problems and output failures surface here.
"""


class SimulationError(Exception):
    """Base class for all simulator errors."""


class ConfigurationError(SimulationError):
    """Raised at setup when a configuration value is invalid. The run must not start."""


class OutputError(SimulationError):
    """Raised when a writer cannot persist simulation data to its destination."""
