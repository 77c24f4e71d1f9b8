"""Distributed 2D shallow-water solver.

Solver Hierarchy:
-----------------
ShallowWaterSolver (abstract base - decomposition, time loop, output)
└── LaxFriedrichsSolver (explicit Lax-Friedrichs with halo exchange)
"""

from .base import ShallowWaterSolver
from .datastructures import (
    Parameters,
    LaxFriedrichsParameters,
    Metrics,
    TimeSeries,
    TileFields,
)
from .decomposition import Face, ProcessGrid, TileGeometry, decompose
from .errors import (
    SimulationError,
    ConfigurationError,
    HaloExchangeError,
    NumericalInstabilityError,
    OutputError,
)
from .halo import (
    HaloExchanger,
    SendrecvHaloExchanger,
    NonBlockingHaloExchanger,
    apply_reflective_boundaries,
    create_halo_exchanger,
)
from .lax_friedrichs import LaxFriedrichsSolver

__version__ = "0.1.0"

__all__ = [
    # Base solver
    "ShallowWaterSolver",
    # Data structures
    "Parameters",
    "LaxFriedrichsParameters",
    "Metrics",
    "TimeSeries",
    "TileFields",
    # Decomposition
    "Face",
    "ProcessGrid",
    "TileGeometry",
    "decompose",
    # Halo exchange
    "HaloExchanger",
    "SendrecvHaloExchanger",
    "NonBlockingHaloExchanger",
    "apply_reflective_boundaries",
    "create_halo_exchanger",
    # Errors
    "SimulationError",
    "ConfigurationError",
    "HaloExchangeError",
    "NumericalInstabilityError",
    "OutputError",
    # Concrete solver
    "LaxFriedrichsSolver",
]
