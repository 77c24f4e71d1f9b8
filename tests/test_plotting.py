"""Smoke tests for the height plot."""

import matplotlib

matplotlib.use("Agg")

from shallow_water import LaxFriedrichsSolver  # noqa: E402
from shallow_water.output import load_results  # noqa: E402
from shallow_water.plotting import plot_height  # noqa: E402


def test_plot_height_writes_figure(serial_comm, tmp_path):
    solver = LaxFriedrichsSolver(comm=serial_comm, nx=8, dt=0.01, t_final=0.05)
    solver.solve()
    results = load_results(solver.write_results(tmp_path / "final.dat"))

    out = plot_height(results, tmp_path / "plots" / "final.png", title="t=0.05")

    assert out.exists()
    assert out.stat().st_size > 0


def test_plot_full_state(serial_comm, tmp_path):
    solver = LaxFriedrichsSolver(comm=serial_comm, nx=6, dt=0.01, t_final=0.0)
    results = load_results(solver.write_state(tmp_path / "state.dat"))
    assert plot_height(results, tmp_path / "state.pdf").exists()
