"""
Shallow-water solver - unified entry point.

Usage:
    mpiexec -n 4 python main.py
    mpiexec -n 4 python main.py nx=400 dt=0.002 t_final=0.2
    mpiexec -n 9 python main.py nx=399 solver.halo_exchange=nonblocking
    python main.py nx=101 mlflow.enabled=true output.plot=true

Every rank runs the same program. Rank 0 writes the output files and owns
the MLflow run.
"""

import logging
import os
import sys
from pathlib import Path

import hydra
import mlflow
from dotenv import load_dotenv
from hydra.errors import InstantiationException
from hydra.utils import instantiate
from mlflow.tracking import MlflowClient
from mpi4py import MPI
from omegaconf import DictConfig, OmegaConf

load_dotenv()
sys.path.insert(0, str(Path(__file__).parent / "src"))

from shallow_water import SimulationError  # noqa: E402
from shallow_water.output import load_results  # noqa: E402

log = logging.getLogger(__name__)


def create_solver(cfg: DictConfig):
    """Instantiate solver using Hydra's instantiate on solver subtree.

    Common parameters from root config are passed to the solver constructor.
    Solver errors raised in the constructor are re-raised unwrapped, so the
    entry point handles them like any other SimulationError.
    """
    try:
        return instantiate(
            cfg.solver,
            nx=cfg.nx,
            dt=cfg.dt,
            x_length=cfg.x_length,
            t_final=cfg.t_final,
            g=cfg.g,
            _convert_="partial",
        )
    except InstantiationException as exc:
        if isinstance(exc.__cause__, SimulationError):
            raise exc.__cause__ from None
        raise


def setup_mlflow(cfg: DictConfig) -> str:
    """Point MLflow at the tracking store and select the experiment.

    MLFLOW_TRACKING_URI from the environment (or .env) takes precedence over
    mlflow.tracking_uri in the config.
    """
    tracking_uri = os.environ.get("MLFLOW_TRACKING_URI", cfg.mlflow.tracking_uri)
    mlflow.set_tracking_uri(tracking_uri)
    experiment = mlflow.set_experiment(cfg.mlflow.experiment_name)
    log.info(f"MLflow tracking URI: {tracking_uri} (experiment id {experiment.experiment_id})")
    return experiment.name


def write_outputs(solver, cfg: DictConfig, filename: str):
    """Gather and write one snapshot (collective). Returns the path on rank 0."""
    path = Path(cfg.output.dir) / filename
    written = solver.write_results(path)
    if written is not None and cfg.output.get("full_state", False) and solver.grid.size == 1:
        solver.write_state(path.with_name(f"{path.stem}_state{path.suffix}"))
    return written


def run(cfg: DictConfig, comm) -> None:
    """Build the solver, run it, and write/track results."""
    solver = create_solver(cfg)
    is_root = solver.is_root
    use_mlflow = is_root and cfg.mlflow.get("enabled", False)

    if use_mlflow:
        log.info(f"MLflow experiment: {setup_mlflow(cfg)}")
        run_name = f"{cfg.solver.method}_N{cfg.nx}_P{comm.Get_size()}"
        mlflow.start_run(run_name=run_name, tags={"solver": cfg.solver.method})
        mlflow.log_params({**solver.params.to_mlflow(), "processes": comm.Get_size()})
        mlflow.log_dict(OmegaConf.to_container(cfg), "config.yaml")

    try:
        artifacts = []
        if cfg.output.get("write_init", True):
            artifacts.append(write_outputs(solver, cfg, cfg.output.init_file))

        solver.solve()
        artifacts.append(write_outputs(solver, cfg, cfg.output.final_file))

        if is_root and cfg.output.get("plot", False):
            from shallow_water.plotting import plot_height

            final = artifacts[-1]
            artifacts.append(
                plot_height(
                    load_results(final),
                    final.with_suffix(".png"),
                    title=f"h at t={solver.time:.3f}, N={cfg.nx}",
                )
            )

        if use_mlflow:
            mlflow.log_metrics(solver.metrics.to_mlflow())
            batch = solver.time_series.to_mlflow_batch()
            if batch:
                MlflowClient().log_batch(mlflow.active_run().info.run_id, metrics=batch)
            for path in artifacts:
                if path is not None:
                    mlflow.log_artifact(str(path))
    finally:
        if use_mlflow:
            mlflow.end_run()

    if is_root:
        log.info(
            f"Done: {solver.metrics.steps} steps, t={solver.metrics.final_time:.4f}, "
            f"time={solver.metrics.wall_time_seconds:.2f}s"
        )


@hydra.main(config_path="conf", config_name="config", version_base=None)
def main(cfg: DictConfig) -> None:
    """Hydra entry point - every rank runs the solver; any solver error aborts all ranks."""
    comm = MPI.COMM_WORLD
    if comm.Get_rank() == 0:
        log.info(
            f"Solver: {cfg.solver.method}, N={cfg.nx}, dt={cfg.dt}, "
            f"t_final={cfg.t_final}, processes={comm.Get_size()}"
        )

    try:
        run(cfg, comm)
    except SimulationError as exc:
        log.critical(f"{type(exc).__name__}: {exc}")
        comm.Abort(1)


if __name__ == "__main__":
    main()
