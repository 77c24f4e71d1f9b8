"""Abstract base solver for the distributed shallow-water problem."""

from abc import ABC, abstractmethod
import logging
import time

import mlflow
import numpy as np
from mpi4py import MPI

from .datastructures import Metrics, TimeSeries
from .decomposition import ProcessGrid, decompose
from .errors import ConfigurationError, NumericalInstabilityError
from .output import assemble_height, gather_height, write_gathered_results, write_results

log = logging.getLogger(__name__)


class ShallowWaterSolver(ABC):
    """Abstract base solver for the 2D shallow-water equations on a process grid.

    Handles:
    - Parameter management (input configuration)
    - Domain decomposition (process grid and tile geometry)
    - Time loop, diagnostics and metrics
    - Gathering and writing results

    Subclasses must:
    - Set Parameters class attribute (e.g., LaxFriedrichsParameters)
    - Allocate and initialize ``self.arrays`` (a TileFields) in __init__
    - Implement step() - advance the tile state by one dt
    """

    Parameters = None  # Subclasses set this to their parameters dataclass

    def __init__(self, params=None, comm=None, **kwargs):
        """Initialize solver with parameters.

        Parameters
        ----------
        params : Parameters, optional
            Parameters object. If not provided, kwargs are used to create params.
        comm : mpi4py.MPI.Comm, optional
            Communicator of the process grid. Defaults to MPI.COMM_WORLD.
        **kwargs
            Configuration parameters passed to Parameters class if params is None.
        """
        if params is None:
            if self.Parameters is None:
                raise ValueError("Subclass must define Parameters class attribute")
            params = self.Parameters(**kwargs)

        if params.dt <= 0:
            raise ConfigurationError(f"Time step must be positive, got dt={params.dt}")

        self.params = params
        self.comm = comm if comm is not None else MPI.COMM_WORLD
        self.grid = ProcessGrid.from_comm(self.comm)
        self.geometry = decompose(self.grid, params.nx, params.x_length)

        self.metrics = Metrics()
        self.time_series = None  # Populated by solve()
        self.arrays = None  # Allocated by subclass

        self.time = 0.0
        self.n_steps = 0

        # Accumulated per-phase timings, filled in by step()
        self.halo_time = 0.0
        self.flux_time = 0.0
        self.update_time = 0.0

    @property
    def is_root(self) -> bool:
        return self.grid.rank == 0

    @abstractmethod
    def step(self):
        """Advance the local tile by one time step (exchange, update, swap)."""
        pass

    # =========================================================================
    # Global diagnostics (collective: every rank must call these together)
    # =========================================================================

    def total_mass(self) -> float:
        """Integral of h over the global domain."""
        local = float(np.sum(self.arrays.h[1:-1, 1:-1])) * self.geometry.dx * self.geometry.dy
        return self.comm.allreduce(local, op=MPI.SUM)

    def height_range(self):
        interior = self.arrays.h[1:-1, 1:-1]
        h_min = self.comm.allreduce(float(interior.min()), op=MPI.MIN)
        h_max = self.comm.allreduce(float(interior.max()), op=MPI.MAX)
        return h_min, h_max

    def _sample(self, time_series: TimeSeries):
        mass = self.total_mass()
        h_min, h_max = self.height_range()
        time_series.append(self.n_steps, self.time, mass, h_min, h_max)
        return mass, h_min, h_max

    def _check_positivity(self):
        h_min = self.comm.allreduce(float(self.arrays.h[1:-1, 1:-1].min()), op=MPI.MIN)
        if not h_min > 0.0:
            raise NumericalInstabilityError(
                f"Non-positive height {h_min:.6e} at step {self.n_steps} (t={self.time:.6f}); "
                f"dt={self.params.dt} likely violates the CFL condition"
            )

    # =========================================================================
    # Time loop
    # =========================================================================

    def solve(self, t_final: float = None):
        """Advance the solution until time >= t_final.

        Each iteration runs step() and then advances time by dt. The loop stops
        at the first time that reaches or exceeds t_final, so the final time can
        overshoot t_final by up to one dt.

        Stores results in solver attributes:
        - self.time_series : TimeSeries with sampled global diagnostics
        - self.metrics : Metrics with timings and final diagnostics

        Parameters
        ----------
        t_final : float, optional
            Final simulation time. If None, uses params.t_final.
        """
        if t_final is None:
            t_final = self.params.t_final
        log_every = max(1, getattr(self.params, "log_every", 50))
        check_positivity = getattr(self.params, "check_positivity", False)

        time_series = TimeSeries()
        initial_mass, _, _ = self._sample(time_series)

        time_start = time.time()
        mlflow_time = 0.0

        while self.time < t_final:
            self.step()
            self.time += self.params.dt
            self.n_steps += 1

            if check_positivity:
                self._check_positivity()

            if self.n_steps % log_every == 0:
                mass, h_min, h_max = self._sample(time_series)
                if self.is_root:
                    log.info(
                        f"Step {self.n_steps}: t={self.time:.4f}, mass={mass:.6e}, "
                        f"h in [{h_min:.6f}, {h_max:.6f}]"
                    )
                    # Live MLflow logging (timed separately)
                    if mlflow.active_run():
                        t_log_start = time.time()
                        mlflow.log_metrics(
                            {"total_mass": mass, "min_height": h_min, "max_height": h_max},
                            step=self.n_steps,
                        )
                        mlflow_time += time.time() - t_log_start

        wall_time = time.time() - time_start - mlflow_time

        if time_series.step[-1] != self.n_steps:
            self._sample(time_series)
        self.time_series = time_series

        self.metrics = Metrics(
            steps=self.n_steps,
            final_time=self.time,
            wall_time_seconds=wall_time,
            halo_time_seconds=self.halo_time,
            flux_time_seconds=self.flux_time,
            update_time_seconds=self.update_time,
            initial_mass=initial_mass,
            final_mass=time_series.total_mass[-1],
            min_height=time_series.min_height[-1],
            max_height=time_series.max_height[-1],
        )

        if self.is_root:
            log.info(
                f"Problem size: {self.params.nx}, time steps taken: {self.n_steps}, "
                f"elapsed time: {wall_time:f} s"
            )
            log.info(
                f"Flux computation: {self.flux_time:f} s, halo exchange: {self.halo_time:f} s"
            )
        return self.metrics

    # =========================================================================
    # Results
    # =========================================================================

    def gather_height(self):
        """Global height field H[y, x] on rank 0, None elsewhere (collective)."""
        flat = gather_height(self.comm, self.grid, self.arrays.h)
        return None if flat is None else assemble_height(flat)

    def write_results(self, path):
        """Gather the height field and write it on rank 0 (collective).

        Returns the path on rank 0, None elsewhere.
        """
        flat = gather_height(self.comm, self.grid, self.arrays.h)
        if flat is None:
            return None
        return write_gathered_results(path, flat, self.params.nx, self.geometry.dx)

    def write_state(self, path):
        """Write this tile's full state (h, uh, vh) with physical coordinates."""
        a = self.arrays
        return write_results(path, self.geometry.x, self.geometry.y, a.h, a.uh, a.vh)
