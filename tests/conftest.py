"""Pytest configuration and fixtures for shallow-water solver tests."""

import queue
import sys
import threading
from pathlib import Path

import numpy as np
import pytest
from mpi4py import MPI

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from shallow_water.halo import TAGS, SendrecvHaloExchanger  # noqa: E402

TIMEOUT = 30.0


# =============================================================================
# Thread-per-rank communicator
# =============================================================================


class _World:
    """State shared by the ranks of one ThreadComm group."""

    def __init__(self, size):
        self.size = size
        self.barrier = threading.Barrier(size, timeout=TIMEOUT)
        self.slots = [None] * size
        self._mailboxes = {}
        self._lock = threading.Lock()
        self.log = []  # (source, dest, tag) of every point-to-point message

    def mailbox(self, source, dest, tag):
        with self._lock:
            return self._mailboxes.setdefault((source, dest, tag), queue.Queue())


class ThreadComm:
    """Runs several ranks as threads of one process.

    Implements the part of the mpi4py Comm interface the solver uses
    (Get_rank, Get_size, Barrier, Sendrecv, Gather, allreduce), so tiles of
    a decomposed run can be tested without an MPI launcher.
    """

    def __init__(self, world, rank):
        self.world = world
        self.rank = rank

    def Get_rank(self):
        return self.rank

    def Get_size(self):
        return self.world.size

    def Barrier(self):
        self.world.barrier.wait()

    def Sendrecv(self, sendbuf, dest, sendtag=0, recvbuf=None, source=MPI.ANY_SOURCE,
                 recvtag=MPI.ANY_TAG, status=None):
        self.world.log.append((self.rank, dest, sendtag))
        self.world.mailbox(self.rank, dest, sendtag).put(np.array(sendbuf, copy=True))

        try:
            data = self.world.mailbox(source, self.rank, recvtag).get(timeout=TIMEOUT)
        except queue.Empty:
            raise TimeoutError(
                f"rank {self.rank}: no message from {source} with tag {recvtag}"
            ) from None

        flat = recvbuf.reshape(-1)
        if data.size > flat.size:
            raise MPI.Exception(MPI.ERR_TRUNCATE)
        flat[:data.size] = data.reshape(-1)
        if status is not None:
            status.Set_elements(MPI.DOUBLE, data.size)

    def Gather(self, sendbuf, recvbuf, root=0):
        self.world.slots[self.rank] = np.array(sendbuf, copy=True)
        self.Barrier()
        if self.rank == root:
            recvbuf[:] = np.concatenate(self.world.slots)
        self.Barrier()

    def allreduce(self, sendobj, op=MPI.SUM):
        self.world.slots[self.rank] = sendobj
        self.Barrier()
        if op == MPI.SUM:
            result = sum(self.world.slots)
        elif op == MPI.MIN:
            result = min(self.world.slots)
        elif op == MPI.MAX:
            result = max(self.world.slots)
        else:
            raise NotImplementedError(op)
        self.Barrier()
        return result


def run_ranks(size, target):
    """Run target(comm) on `size` thread ranks and return the per-rank results."""
    world = _World(size)
    results = [None] * size
    errors = []

    def worker(rank):
        try:
            results[rank] = target(ThreadComm(world, rank))
        except BaseException as exc:  # reported to the test thread below
            errors.append(exc)
            world.barrier.abort()

    threads = [threading.Thread(target=worker, args=(r,), daemon=True) for r in range(size)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=10 * TIMEOUT)

    if errors:
        raise errors[0]
    if any(t.is_alive() for t in threads):
        raise TimeoutError("ranks did not finish")
    return results


# =============================================================================
# Deliberately incomplete exchange
# =============================================================================


class XOnlyHaloExchanger(SendrecvHaloExchanger):
    """Exchanges the left/right faces only; bottom/top ghosts keep stale values."""

    def _communicate(self, fields):
        for face in self.grid.interior_faces:
            if face.axis != "x":
                continue
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


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def spmd():
    """Run a function on N thread ranks: spmd(N, fn) -> [result per rank]."""
    return run_ranks


@pytest.fixture
def serial_comm():
    """Single-process communicator for reference runs."""
    return MPI.COMM_SELF


@pytest.fixture
def small_params():
    """Parameters for a small, stable 16x16 run."""
    return {
        "nx": 16,
        "dt": 0.01,
        "x_length": 10.0,
        "t_final": 0.2,
        "log_every": 5,
        "check_positivity": True,
    }


@pytest.fixture
def x_only_exchanger():
    """Halo exchanger class that skips the y-direction neighbours."""
    return XOnlyHaloExchanger
