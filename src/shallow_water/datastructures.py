"""Data structures for solver configuration and results.

Structure:
- Parameters: Input configuration (logged to MLflow at start)
- Metrics: Output results (logged to MLflow at end)
- TimeSeries: Diagnostics sampled during the time loop
- TileFields: Per-rank state, next-state and flux arrays (ghost-padded)
"""

from dataclasses import dataclass, asdict, field
from typing import List

import numpy as np
import pandas as pd


# ========================================================
# Parameters (Input Configuration)
# ========================================================


@dataclass
class Parameters:
    """Base solver parameters - input configuration for all solvers."""

    nx: int = 401
    dt: float = 0.002
    x_length: float = 10.0
    t_final: float = 0.5
    g: float = 9.81  # gravitational acceleration [m/s^2]
    method: str = ""

    def to_dataframe(self):
        return pd.DataFrame([asdict(self)])

    def to_mlflow(self) -> dict:
        return asdict(self)


@dataclass
class LaxFriedrichsParameters(Parameters):
    """Lax-Friedrichs solver parameters (extends Parameters with run-time settings)."""

    halo_exchange: str = "sendrecv"  # "sendrecv" or "nonblocking"
    check_positivity: bool = False
    log_every: int = 50  # steps between diagnostics samples
    method: str = "Lax-Friedrichs"


# ========================================================
# Metrics (Output Results)
# ========================================================


@dataclass
class Metrics:
    """Solver metrics - output results computed during/after solving."""

    steps: int = 0
    final_time: float = 0.0
    wall_time_seconds: float = 0.0
    halo_time_seconds: float = 0.0
    flux_time_seconds: float = 0.0
    update_time_seconds: float = 0.0
    initial_mass: float = 0.0
    final_mass: float = 0.0
    min_height: float = 0.0
    max_height: float = 0.0

    def to_dataframe(self):
        return pd.DataFrame([asdict(self)])

    def to_mlflow(self) -> dict:
        return asdict(self)


# ========================================================
# Time Series (Diagnostics History)
# ========================================================


@dataclass
class TimeSeries:
    """Global diagnostics, one entry per sample."""

    step: List[int] = field(default_factory=list)
    time: List[float] = field(default_factory=list)
    total_mass: List[float] = field(default_factory=list)
    min_height: List[float] = field(default_factory=list)
    max_height: List[float] = field(default_factory=list)

    def append(self, step, time, total_mass, min_height, max_height):
        self.step.append(step)
        self.time.append(time)
        self.total_mass.append(total_mass)
        self.min_height.append(min_height)
        self.max_height.append(max_height)

    def __len__(self):
        return len(self.step)

    def to_dataframe(self) -> pd.DataFrame:
        """Convert to DataFrame with one row per sample."""
        return pd.DataFrame(asdict(self))

    def to_mlflow_batch(self) -> list:
        """Convert to a list of mlflow Metric entities for MlflowClient.log_batch."""
        import time

        from mlflow.entities import Metric

        timestamp = int(time.time() * 1000)
        batch = []
        for key in ("total_mass", "min_height", "max_height"):
            for step, value in zip(self.step, getattr(self, key)):
                batch.append(Metric(key=key, value=float(value), timestamp=timestamp, step=int(step)))
        return batch


# ========================================================
# Tile Fields (Per-Rank Arrays)
# ========================================================


@dataclass
class TileFields:
    """Internal per-tile arrays - current state, next state, and flux buffers.

    Every array has shape (ny_local + 2, nx_local + 2) and is indexed
    [i, j] with i the row (y) and j the column (x). Row 0 / column 0 and the
    last row / column are the ghost layer.
    """

    # Current solution state
    h: np.ndarray
    uh: np.ndarray
    vh: np.ndarray

    # Next state (written by the update, then swapped in)
    h_next: np.ndarray
    uh_next: np.ndarray
    vh_next: np.ndarray

    # x-direction fluxes
    fh: np.ndarray
    fuh: np.ndarray
    fvh: np.ndarray

    # y-direction fluxes
    gh: np.ndarray
    guh: np.ndarray
    gvh: np.ndarray

    @classmethod
    def allocate(cls, nx_local: int, ny_local: int):
        """Allocate all arrays with ghost padding."""
        shape = (ny_local + 2, nx_local + 2)
        return cls(
            # Current solution
            h=np.zeros(shape),
            uh=np.zeros(shape),
            vh=np.zeros(shape),
            # Next state
            h_next=np.zeros(shape),
            uh_next=np.zeros(shape),
            vh_next=np.zeros(shape),
            # Flux buffers
            fh=np.zeros(shape),
            fuh=np.zeros(shape),
            fvh=np.zeros(shape),
            gh=np.zeros(shape),
            guh=np.zeros(shape),
            gvh=np.zeros(shape),
        )

    @property
    def state(self):
        return self.h, self.uh, self.vh

    def swap(self):
        """Make the next-state buffers current (zero-copy)."""
        self.h, self.h_next = self.h_next, self.h
        self.uh, self.uh_next = self.uh_next, self.uh
        self.vh, self.vh_next = self.vh_next, self.vh
