"""Lax-Friedrichs solver for the 2D shallow-water equations.

One step on every rank:

1. halo exchange (neighbour faces by message, global edges by reflection)
2. fluxes over the full padded tile
3. Lax-Friedrichs update of the interior into the next-state buffers
4. swap next-state buffers into the current state
5. re-assert reflective ghosts on global edges

The scheme is only stable for dt small relative to dx/dy and the wave
speed sqrt(g h). dt is not checked against the CFL limit; an unstable dt
produces unbounded or negative heights, which ``check_positivity`` turns
into a NumericalInstabilityError.
"""

import logging
import time

from .base import ShallowWaterSolver
from .datastructures import LaxFriedrichsParameters, TileFields
from .halo import apply_reflective_boundaries, create_halo_exchanger
from .initial_conditions import initialize_tile
from .kernels import compute_fluxes, lax_friedrichs_step

log = logging.getLogger(__name__)


class LaxFriedrichsSolver(ShallowWaterSolver):
    """Explicit Lax-Friedrichs solver on a q x q process grid.

    Parameters
    ----------
    params : LaxFriedrichsParameters
        Grid resolution, time step, domain length, final time and run-time
        settings (halo exchange strategy, positivity check).
    comm : mpi4py.MPI.Comm, optional
        Communicator of the process grid.
    """

    Parameters = LaxFriedrichsParameters

    def __init__(self, **kwargs):
        """Initialize Lax-Friedrichs solver."""
        super().__init__(**kwargs)

        geo = self.geometry
        self.lambda_x = 0.5 * self.params.dt / geo.dx
        self.lambda_y = 0.5 * self.params.dt / geo.dy

        # Allocate internal solver arrays
        self.arrays = TileFields.allocate(geo.nx_local, geo.ny_local)
        initialize_tile(self.arrays, self.grid, geo)

        self.halo = create_halo_exchanger(
            self.params.halo_exchange, self.comm, self.grid, geo.shape
        )

        if self.is_root:
            log.info(
                f"Grid {geo.nx}x{geo.ny} on {self.grid.q}x{self.grid.q} ranks "
                f"({geo.nx_local}x{geo.ny_local} per rank), dt={self.params.dt}, "
                f"lambda=({self.lambda_x:.4g}, {self.lambda_y:.4g}), halo={self.halo.name}"
            )

    def step(self):
        """Perform one Lax-Friedrichs step on the local tile."""
        a = self.arrays  # Shorthand for readability

        t0 = time.perf_counter()
        self.halo.exchange(a.h, a.uh, a.vh)
        t1 = time.perf_counter()

        compute_fluxes(a, self.params.g)
        t2 = time.perf_counter()

        lax_friedrichs_step(a, self.lambda_x, self.lambda_y)

        # Swap buffers (zero-copy), then restore wall ghosts for the next flux pass
        a.swap()
        apply_reflective_boundaries(a.h, a.uh, a.vh, self.grid)
        t3 = time.perf_counter()

        self.halo_time += t1 - t0
        self.flux_time += t2 - t1
        self.update_time += t3 - t2
