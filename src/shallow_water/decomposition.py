"""Process-grid domain decomposition.

The global N x N grid is split across a square q x q grid of MPI ranks.
Rank r sits at (coord_x, coord_y) = (r % q, r // q), so ranks are laid out
row by row starting from the bottom-left tile:

              q=2                      q=3
        +-------+-------+       +----+----+----+
        |   2   |   3   |       |  6 |  7 |  8 |
        +-------+-------+       +----+----+----+
        |   0   |   1   |       |  3 |  4 |  5 |
        +-------+-------+       +----+----+----+
                                |  0 |  1 |  2 |
                                +----+----+----+

A face without a neighbour lies on the global domain edge and gets the
reflective boundary condition instead of a message.
"""

import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional

import numpy as np

from .errors import ConfigurationError

log = logging.getLogger(__name__)


class Face(Enum):
    """The four faces of a tile, in the order the halo exchange visits them."""

    LEFT = "left"
    RIGHT = "right"
    BOTTOM = "bottom"
    TOP = "top"

    @property
    def opposite(self) -> "Face":
        return _OPPOSITE[self]

    @property
    def axis(self) -> str:
        """'x' for left/right faces, 'y' for bottom/top faces."""
        return "x" if self in (Face.LEFT, Face.RIGHT) else "y"


_OPPOSITE = {
    Face.LEFT: Face.RIGHT,
    Face.RIGHT: Face.LEFT,
    Face.BOTTOM: Face.TOP,
    Face.TOP: Face.BOTTOM,
}


@dataclass(frozen=True)
class ProcessGrid:
    """Position of one rank in the q x q process grid.

    Use :meth:`create` or :meth:`from_comm` rather than the constructor, so
    the square-count precondition is checked.
    """

    rank: int
    size: int
    q: int
    coord_x: int
    coord_y: int
    neighbors: Dict[Face, Optional[int]] = field(compare=False)

    @classmethod
    def create(cls, rank: int, size: int) -> "ProcessGrid":
        if size < 1:
            raise ConfigurationError(f"Process count must be positive, got {size}")
        q = math.isqrt(size)
        if q * q != size:
            raise ConfigurationError(
                f"Process count {size} is not a perfect square "
                f"(closest square grid is {q}x{q} = {q * q})"
            )
        if not 0 <= rank < size:
            raise ConfigurationError(f"Rank {rank} outside [0, {size})")

        coord_x, coord_y = rank % q, rank // q
        neighbors = {
            Face.LEFT: rank - 1 if coord_x > 0 else None,
            Face.RIGHT: rank + 1 if coord_x < q - 1 else None,
            Face.BOTTOM: rank - q if coord_y > 0 else None,
            Face.TOP: rank + q if coord_y < q - 1 else None,
        }
        return cls(rank, size, q, coord_x, coord_y, neighbors)

    @classmethod
    def from_comm(cls, comm) -> "ProcessGrid":
        """Build the grid entry for the calling rank of an mpi4py communicator."""
        return cls.create(comm.Get_rank(), comm.Get_size())

    @staticmethod
    def coords_of(rank: int, q: int) -> tuple:
        return rank % q, rank // q

    def neighbor(self, face: Face) -> Optional[int]:
        return self.neighbors[face]

    def is_boundary(self, face: Face) -> bool:
        """True if this face lies on the global domain edge."""
        return self.neighbors[face] is None

    @property
    def interior_faces(self) -> list:
        return [f for f in Face if not self.is_boundary(f)]

    @property
    def boundary_faces(self) -> list:
        return [f for f in Face if self.is_boundary(f)]


@dataclass(frozen=True)
class TileGeometry:
    """Local grid sizes, spacing and cell-centre coordinates of one tile."""

    nx: int
    ny: int
    nx_local: int
    ny_local: int
    x_length: float
    dx: float
    dy: float
    x: np.ndarray = field(repr=False, compare=False)
    y: np.ndarray = field(repr=False, compare=False)

    @property
    def shape(self) -> tuple:
        """Ghost-padded array shape (rows = y, columns = x)."""
        return (self.ny_local + 2, self.nx_local + 2)

    def padded_coordinates(self):
        """Cell-centre coordinates including the ghost layer on both sides."""
        x = np.concatenate(([self.x[0] - self.dx], self.x, [self.x[-1] + self.dx]))
        y = np.concatenate(([self.y[0] - self.dy], self.y, [self.y[-1] + self.dy]))
        return x, y


def decompose(grid: ProcessGrid, nx: int, x_length: float) -> TileGeometry:
    """Split a square nx x nx grid of physical size x_length into equal tiles.

    Raises
    ------
    ConfigurationError
        If nx is not a positive multiple of the process-grid side q.
    """
    if nx < 1:
        raise ConfigurationError(f"Grid resolution must be positive, got nx={nx}")
    if x_length <= 0:
        raise ConfigurationError(f"Domain length must be positive, got {x_length}")
    if nx % grid.q != 0:
        raise ConfigurationError(
            f"Grid {nx}x{nx} is not evenly divisible by process grid "
            f"{grid.q}x{grid.q} ({nx} / {grid.q} = {nx / grid.q:.2f})"
        )

    ny = nx
    nx_local = nx // grid.q
    ny_local = ny // grid.q
    dx = x_length / nx
    dy = x_length / ny
    # Global cell indices, so every tile reproduces the single-tile coordinates exactly
    kx = grid.coord_x * nx_local + np.arange(nx_local)
    ky = grid.coord_y * ny_local + np.arange(ny_local)
    x = -x_length / 2 + dx / 2 + kx * dx
    y = -x_length / 2 + dy / 2 + ky * dy

    return TileGeometry(
        nx=nx,
        ny=ny,
        nx_local=nx_local,
        ny_local=ny_local,
        x_length=x_length,
        dx=dx,
        dy=dy,
        x=x,
        y=y,
    )
