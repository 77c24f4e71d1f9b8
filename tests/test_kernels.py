"""Tests for the flux and Lax-Friedrichs update kernels."""

import numpy as np
import pytest

from shallow_water.datastructures import TileFields
from shallow_water.kernels import compute_fluxes, lax_friedrichs_step, lax_friedrichs_update

G = 9.81


@pytest.fixture
def fields():
    """A 4x5 tile with a positive height and non-zero momenta everywhere."""
    a = TileFields.allocate(nx_local=5, ny_local=4)
    rng = np.random.default_rng(42)
    a.h[:] = 1.0 + rng.random(a.h.shape)
    a.uh[:] = rng.standard_normal(a.h.shape)
    a.vh[:] = rng.standard_normal(a.h.shape)
    return a


class TestFluxes:
    """x- and y-fluxes of the conserved variables."""

    def test_flux_formulas(self, fields):
        compute_fluxes(fields, G)
        h, uh, vh = fields.h, fields.uh, fields.vh

        np.testing.assert_allclose(fields.fh, uh)
        np.testing.assert_allclose(fields.fuh, uh ** 2 / h + 0.5 * G * h ** 2)
        np.testing.assert_allclose(fields.fvh, uh * vh / h)
        np.testing.assert_allclose(fields.gh, vh)
        np.testing.assert_allclose(fields.guh, uh * vh / h)
        np.testing.assert_allclose(fields.gvh, vh ** 2 / h + 0.5 * G * h ** 2)

    def test_lake_at_rest(self):
        a = TileFields.allocate(3, 3)
        a.h[:] = 2.0
        compute_fluxes(a, G)

        for flux in (a.fh, a.fvh, a.gh, a.guh):
            np.testing.assert_array_equal(flux, 0.0)
        np.testing.assert_allclose(a.fuh, 0.5 * G * 4.0)
        np.testing.assert_allclose(a.gvh, 0.5 * G * 4.0)

    def test_flux_buffers_reused(self, fields):
        buffers = [fields.fh, fields.fuh, fields.fvh, fields.gh, fields.guh, fields.gvh]
        compute_fluxes(fields, G)
        after = [fields.fh, fields.fuh, fields.fvh, fields.gh, fields.guh, fields.gvh]
        assert all(a is b for a, b in zip(buffers, after))


class TestUpdate:
    """Single-quantity Lax-Friedrichs update."""

    def test_single_cell_by_hand(self):
        q = np.zeros((3, 3))
        f = np.zeros((3, 3))
        g = np.zeros((3, 3))
        # Neighbours of the only interior cell (1, 1)
        q[1, 0], q[1, 2], q[0, 1], q[2, 1] = 1.0, 2.0, 3.0, 4.0
        f[1, 0], f[1, 2] = 5.0, 7.0
        g[0, 1], g[2, 1] = 1.0, 4.0
        q_next = np.full((3, 3), -1.0)

        lax_friedrichs_update(q, f, g, q_next, lambda_x=0.1, lambda_y=0.2)

        # 0.25 * 10 - 0.1 * 2 - 0.2 * 3
        assert q_next[1, 1] == pytest.approx(1.7)

    def test_only_interior_written(self, fields):
        compute_fluxes(fields, G)
        fields.h_next[:] = np.nan
        lax_friedrichs_update(fields.h, fields.fh, fields.gh, fields.h_next, 0.05, 0.05)

        assert np.all(np.isfinite(fields.h_next[1:-1, 1:-1]))
        assert np.all(np.isnan(fields.h_next[0, :]))
        assert np.all(np.isnan(fields.h_next[-1, :]))
        assert np.all(np.isnan(fields.h_next[:, 0]))
        assert np.all(np.isnan(fields.h_next[:, -1]))

    def test_constant_state_without_flux_gradient(self):
        q = np.full((5, 5), 3.0)
        f = np.full((5, 5), 8.0)
        g = np.full((5, 5), -2.0)
        q_next = np.zeros((5, 5))
        lax_friedrichs_update(q, f, g, q_next, 0.3, 0.3)
        np.testing.assert_allclose(q_next[1:-1, 1:-1], 3.0)

    def test_matches_loop_formula(self, fields):
        compute_fluxes(fields, G)
        lx, ly = 0.04, 0.07
        lax_friedrichs_step(fields, lx, ly)

        h, fh, gh = fields.h, fields.fh, fields.gh
        ny, nx = h.shape
        for i in range(1, ny - 1):
            for j in range(1, nx - 1):
                expected = (
                    0.25 * (h[i, j - 1] + h[i, j + 1] + h[i - 1, j] + h[i + 1, j])
                    - lx * (fh[i, j + 1] - fh[i, j - 1])
                    - ly * (gh[i + 1, j] - gh[i - 1, j])
                )
                assert fields.h_next[i, j] == pytest.approx(expected, rel=1e-14)

    def test_step_updates_all_three_quantities(self, fields):
        compute_fluxes(fields, G)
        state_before = [a.copy() for a in fields.state]
        lax_friedrichs_step(fields, 0.05, 0.05)

        for before, after in zip(state_before, fields.state):
            np.testing.assert_array_equal(before, after)
        for nxt in (fields.h_next, fields.uh_next, fields.vh_next):
            assert not np.allclose(nxt[1:-1, 1:-1], 0.0)


class TestSwap:
    def test_swap_exchanges_references(self):
        a = TileFields.allocate(2, 2)
        h, h_next = a.h, a.h_next
        a.swap()
        assert a.h is h_next and a.h_next is h
