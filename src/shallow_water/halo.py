"""Halo exchange between neighbouring tiles.

Each tile carries a one-cell ghost layer. Before every flux pass the ghost
cells on all four faces must be filled:

- interior face: the neighbour's outermost interior row/column, exchanged
  by message (all three state fields packed into a single buffer);
- global-edge face: reflective wall, computed locally.

Corner ghost cells are never read by the 5-point stencil and are left alone.

Two strategies are provided:

- SendrecvHaloExchanger: one blocking ``Sendrecv`` per interior face.
- NonBlockingHaloExchanger: ``Irecv``/``Isend`` for every face, then one
  ``Waitall``.
"""

import logging
from abc import ABC, abstractmethod

import numpy as np
from mpi4py import MPI

from .decomposition import Face, ProcessGrid
from .errors import ConfigurationError, HaloExchangeError

log = logging.getLogger(__name__)

INTERIOR = slice(1, -1)

# (outermost interior line, ghost line) for each face of a padded [i, j] array
FACE_SLICES = {
    Face.LEFT: ((INTERIOR, 1), (INTERIOR, 0)),
    Face.RIGHT: ((INTERIOR, -2), (INTERIOR, -1)),
    Face.BOTTOM: ((1, INTERIOR), (0, INTERIOR)),
    Face.TOP: ((-2, INTERIOR), (-1, INTERIOR)),
}

# Tag = direction of travel of the message across the face
TAGS = {
    Face.LEFT: 10,
    Face.RIGHT: 11,
    Face.BOTTOM: 20,
    Face.TOP: 21,
}


def apply_reflective_boundaries(h, uh, vh, grid: ProcessGrid):
    """Fill ghost cells on global-edge faces with the reflective wall condition.

    Height is mirrored, the momentum component normal to the wall is
    negated and the tangential component is copied.
    """
    for face in grid.boundary_faces:
        edge, ghost = FACE_SLICES[face]
        if face.axis == "x":
            normal, tangential = uh, vh
        else:
            normal, tangential = vh, uh
        h[ghost] = h[edge]
        normal[ghost] = -normal[edge]
        tangential[ghost] = tangential[edge]


class HaloExchanger(ABC):
    """Fills every ghost cell of (h, uh, vh) before a flux pass.

    Parameters
    ----------
    comm : mpi4py.MPI.Comm
        Communicator whose ranks form the process grid.
    grid : ProcessGrid
        This rank's position and neighbour table.
    shape : tuple
        Ghost-padded tile shape (ny_local + 2, nx_local + 2).
    """

    name = ""

    def __init__(self, comm, grid: ProcessGrid, shape):
        self.comm = comm
        self.grid = grid
        ny_local, nx_local = shape[0] - 2, shape[1] - 2

        # Buffers are sized from the tile shape, which is identical on every
        # rank, so both ends of each exchange agree on the message size.
        self._send = {}
        self._recv = {}
        for face in grid.interior_faces:
            n = ny_local if face.axis == "x" else nx_local
            self._send[face] = np.empty((3, n))
            self._recv[face] = np.empty((3, n))

        partners = {face.value: grid.neighbor(face) for face in grid.interior_faces}
        log.debug(f"{type(self).__name__}: rank {grid.rank} exchanges with {partners}")

    def exchange(self, h, uh, vh):
        """Resolve all four faces: communicate interior faces, reflect edge faces."""
        fields = (h, uh, vh)
        if self._send:
            self._communicate(fields)
        apply_reflective_boundaries(h, uh, vh, self.grid)

    @abstractmethod
    def _communicate(self, fields):
        """Exchange every interior face with its neighbour."""
        pass

    def _pack(self, face, fields):
        edge, _ = FACE_SLICES[face]
        buf = self._send[face]
        for k, field in enumerate(fields):
            buf[k] = field[edge]

    def _unpack(self, face, fields):
        _, ghost = FACE_SLICES[face]
        buf = self._recv[face]
        for k, field in enumerate(fields):
            field[ghost] = buf[k]

    def _check_count(self, face, status):
        count = status.Get_count(MPI.DOUBLE)
        expected = self._recv[face].size
        if count != expected:
            raise HaloExchangeError(
                f"Rank {self.grid.rank}: received {count} values across the "
                f"{face.value} face from rank {self.grid.neighbor(face)}, expected {expected}"
            )


class SendrecvHaloExchanger(HaloExchanger):
    """Blocking exchange, one combined Sendrecv per interior face.

    Faces are visited in the same order (left, right, bottom, top) on every
    rank. All x-direction pairs complete before any rank enters the
    y-direction, so the pairwise calls cannot form a waiting cycle.
    """

    name = "sendrecv"

    def _communicate(self, fields):
        for face in self.grid.interior_faces:
            neighbor = self.grid.neighbor(face)
            self._pack(face, fields)
            status = MPI.Status()
            self.comm.Sendrecv(
                self._send[face],
                dest=neighbor,
                sendtag=TAGS[face],
                recvbuf=self._recv[face],
                source=neighbor,
                recvtag=TAGS[face.opposite],
                status=status,
            )
            self._check_count(face, status)
            self._unpack(face, fields)


class NonBlockingHaloExchanger(HaloExchanger):
    """Post all receives, then all sends, then wait for everything."""

    name = "nonblocking"

    def _communicate(self, fields):
        faces = self.grid.interior_faces

        requests = [
            self.comm.Irecv(self._recv[face], source=self.grid.neighbor(face), tag=TAGS[face.opposite])
            for face in faces
        ]
        for face in faces:
            self._pack(face, fields)
            requests.append(
                self.comm.Isend(self._send[face], dest=self.grid.neighbor(face), tag=TAGS[face])
            )

        statuses = [MPI.Status() for _ in requests]
        MPI.Request.Waitall(requests, statuses)

        for face, status in zip(faces, statuses):
            self._check_count(face, status)
            self._unpack(face, fields)


_STRATEGIES = {
    SendrecvHaloExchanger.name: SendrecvHaloExchanger,
    NonBlockingHaloExchanger.name: NonBlockingHaloExchanger,
}


def create_halo_exchanger(strategy: str, comm, grid: ProcessGrid, shape) -> HaloExchanger:
    """Factory for halo exchange strategies ("sendrecv" or "nonblocking")."""
    try:
        cls = _STRATEGIES[strategy.lower()]
    except KeyError:
        raise ConfigurationError(
            f"Unknown halo_exchange: {strategy}. Use one of {sorted(_STRATEGIES)}"
        ) from None
    return cls(comm, grid, shape)
