"""Result gathering and text-file serialization.

Each rank packs its interior heights (x outer, y inner) and sends them to
rank 0, which places tile values into the global array with the tile-major
mapping

    global_index = coord_x * n_local^2 * q + j * n_local * q + coord_y * n_local + i

and writes one line per cell: ``x  y  h  0.0  0.0``. The two zero columns
keep the format readable by tools written for the single-process output,
which also carries momentum.
"""

import logging
from pathlib import Path

import numpy as np
import pandas as pd

from .decomposition import ProcessGrid
from .errors import OutputError

log = logging.getLogger(__name__)

LINE_FORMAT = "  %24.16g\t%24.16g\t%24.16g\t%24.16g\t%24.16g"
COLUMNS = ["x", "y", "h", "uh", "vh"]


def pack_interior(field: np.ndarray) -> np.ndarray:
    """Interior values of a padded [i, j] array, j (x) outer and i (y) inner."""
    return np.ascontiguousarray(field[1:-1, 1:-1].T).ravel()


def global_index(coord_x, coord_y, i, j, n_local: int, q: int):
    """Position of local interior cell (i, j) of tile (coord_x, coord_y) in the output array."""
    return coord_x * n_local * n_local * q + j * n_local * q + coord_y * n_local + i


def gather_height(comm, grid: ProcessGrid, h: np.ndarray):
    """Collect the interior heights of every tile on rank 0.

    Returns
    -------
    np.ndarray or None
        Flat array of length N*N in output order on rank 0, None on other ranks.
    """
    local = pack_interior(h)
    n_local = h.shape[0] - 2
    n_global = n_local * grid.q

    recv = np.empty(grid.size * local.size) if grid.rank == 0 else None
    comm.Gather(local, recv, root=0)
    if grid.rank != 0:
        return None

    # Packed order within a tile: j outer, i inner
    j, i = np.meshgrid(np.arange(n_local), np.arange(n_local), indexing="ij")
    j, i = j.ravel(), i.ravel()

    flat = np.empty(n_global * n_global)
    for p in range(grid.size):
        coord_x, coord_y = ProcessGrid.coords_of(p, grid.q)
        block = recv[p * local.size:(p + 1) * local.size]
        flat[global_index(coord_x, coord_y, i, j, n_local, grid.q)] = block
    return flat


def assemble_height(flat: np.ndarray) -> np.ndarray:
    """Reshape a gathered flat array to H[y, x]."""
    n = int(round(np.sqrt(flat.size)))
    return flat.reshape(n, n).T


def _open_for_writing(path):
    path = Path(path)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        return open(path, "w")
    except OSError as exc:
        raise OutputError(f"Could not open the output file {path}: {exc}") from exc


def write_gathered_results(path, flat: np.ndarray, n: int, dx: float) -> Path:
    """Write gathered heights in the distributed output format (rank 0 only).

    Lines run over i (outer) and j (inner) with x = i*dx, y = j*dx and value
    flat[j*n + i]; momentum columns are zero-filled.
    """
    i, j = np.meshgrid(np.arange(n), np.arange(n), indexing="ij")
    i, j = i.ravel(), j.ravel()
    zeros = np.zeros(n * n)
    data = np.column_stack([i * dx, j * dx, flat[j * n + i], zeros, zeros])

    with _open_for_writing(path) as fh:
        np.savetxt(fh, data, fmt=LINE_FORMAT)
    log.info(f"Wrote {n}x{n} height field to {path}")
    return Path(path)


def write_results(path, x, y, h, uh, vh) -> Path:
    """Write the full state of a single padded tile with physical coordinates.

    Lines run over rows (y) outer and columns (x) inner.
    """
    X, Y = np.meshgrid(x, y)
    interior = (slice(1, -1), slice(1, -1))
    data = np.column_stack([
        X.ravel(),
        Y.ravel(),
        h[interior].ravel(),
        uh[interior].ravel(),
        vh[interior].ravel(),
    ])

    with _open_for_writing(path) as fh:
        np.savetxt(fh, data, fmt=LINE_FORMAT)
    log.info(f"Wrote {len(y)}x{len(x)} state to {path}")
    return Path(path)


def load_results(path) -> pd.DataFrame:
    """Read an output file into a DataFrame with columns x, y, h, uh, vh."""
    return pd.read_csv(path, sep=r"\s+", header=None, names=COLUMNS)
