"""Exception taxonomy for the shallow-water solver.

Every condition listed here is fatal: callers are expected to let it
propagate to the entry point, which aborts all ranks.
"""


class SimulationError(Exception):
    """Base class for all solver errors."""


class ConfigurationError(SimulationError, ValueError):
    """Invalid run configuration (process count, grid size, parameters)."""


class HaloExchangeError(SimulationError, RuntimeError):
    """Halo exchange protocol violation, e.g. a receive of the wrong size."""


class NumericalInstabilityError(SimulationError, FloatingPointError):
    """Height became non-positive, usually because dt violates the CFL condition."""


class OutputError(SimulationError, OSError):
    """A result file could not be written."""
