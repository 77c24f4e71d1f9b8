"""Initial conditions: a Gaussian hump of water at rest."""

import logging

import numpy as np

from .datastructures import TileFields
from .decomposition import ProcessGrid, TileGeometry
from .halo import apply_reflective_boundaries

log = logging.getLogger(__name__)


def gaussian_hump(x, y):
    """Height 1 + 0.4 exp(-5 (x^2 + y^2)), centred on the domain origin."""
    return 1.0 + 0.4 * np.exp(-5.0 * (x * x + y * y))


def initialize_tile(fields: TileFields, grid: ProcessGrid, geometry: TileGeometry):
    """Set the initial state of one tile, ghost layer included.

    The hump is evaluated on the whole padded tile, so ghosts on interior
    faces already hold the neighbour's values and the corners get a finite
    positive height. Global-edge ghosts are then overwritten with the
    reflective boundary values, and the next-state buffers are seeded with
    the same state.
    """
    x, y = geometry.padded_coordinates()
    X, Y = np.meshgrid(x, y)  # X[i, j] = x[j], Y[i, j] = y[i]

    fields.h[:] = gaussian_hump(X, Y)
    fields.uh[:] = 0.0
    fields.vh[:] = 0.0
    apply_reflective_boundaries(fields.h, fields.uh, fields.vh, grid)

    np.copyto(fields.h_next, fields.h)
    np.copyto(fields.uh_next, fields.uh)
    np.copyto(fields.vh_next, fields.vh)

    log.info(
        f"rank = {grid.rank}, ({grid.coord_x},{grid.coord_y}), "
        f"grid = ({geometry.x[0]:f}, {geometry.x[-1]:f}) x ({geometry.y[0]:f}, {geometry.y[-1]:f})"
    )
