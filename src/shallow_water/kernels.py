"""Flux and Lax-Friedrichs update kernels.

All arrays are ghost-padded tiles indexed [i, j] (row = y, column = x).
Fluxes are evaluated on every cell including ghosts; the update writes the
interior only.
"""

import numpy as np

from .datastructures import TileFields


def compute_fluxes(fields: TileFields, g: float):
    """Compute the x-fluxes (f*) and y-fluxes (g*) over the full tile.

    f = (uh, uh^2/h + g h^2/2, uh vh/h)
    g = (vh, uh vh/h, vh^2/h + g h^2/2)
    """
    h, uh, vh = fields.state
    pressure = 0.5 * g * h * h
    cross = uh * vh / h

    np.copyto(fields.fh, uh)
    np.add(uh * uh / h, pressure, out=fields.fuh)
    np.copyto(fields.fvh, cross)

    np.copyto(fields.gh, vh)
    np.copyto(fields.guh, cross)
    np.add(vh * vh / h, pressure, out=fields.gvh)


def lax_friedrichs_update(q, f, g, q_next, lambda_x: float, lambda_y: float):
    """One Lax-Friedrichs update of a single conserved quantity on interior cells.

    q_next = 1/4 (q_L + q_R + q_B + q_T) - lambda_x (f_R - f_L) - lambda_y (g_T - g_B)

    Parameters
    ----------
    q, f, g : np.ndarray
        Quantity and its x- and y-fluxes, ghost cells filled.
    q_next : np.ndarray
        Output buffer; only the interior is written.
    lambda_x, lambda_y : float
        0.5 * dt / dx and 0.5 * dt / dy.
    """
    left, right = q[1:-1, :-2], q[1:-1, 2:]
    bottom, top = q[:-2, 1:-1], q[2:, 1:-1]

    q_next[1:-1, 1:-1] = (
        0.25 * (left + right + bottom + top)
        - lambda_x * (f[1:-1, 2:] - f[1:-1, :-2])
        - lambda_y * (g[2:, 1:-1] - g[:-2, 1:-1])
    )


def lax_friedrichs_step(fields: TileFields, lambda_x: float, lambda_y: float):
    """Write the next state of (h, uh, vh) into the next-state buffers."""
    lax_friedrichs_update(fields.h, fields.fh, fields.gh, fields.h_next, lambda_x, lambda_y)
    lax_friedrichs_update(fields.uh, fields.fuh, fields.guh, fields.uh_next, lambda_x, lambda_y)
    lax_friedrichs_update(fields.vh, fields.fvh, fields.gvh, fields.vh_next, lambda_x, lambda_y)
