"""Height-field plot from an output file."""

import logging
from pathlib import Path

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd

log = logging.getLogger(__name__)


def plot_height(results: pd.DataFrame, output_path, title: str = "") -> Path:
    """Plot the height column of a results DataFrame as a filled image.

    Parameters
    ----------
    results : pd.DataFrame
        Output of :func:`shallow_water.output.load_results`.
    output_path : str or Path
        Figure file to write (format from the suffix).
    title : str, optional
        Figure title.
    """
    x_unique = np.sort(results["x"].unique())
    y_unique = np.sort(results["y"].unique())
    nx, ny = len(x_unique), len(y_unique)

    sorted_df = results.sort_values(["x", "y"])
    H = sorted_df["h"].values.reshape(nx, ny)

    fig, ax = plt.subplots(figsize=(6, 5))
    mesh = ax.pcolormesh(y_unique, x_unique, H, shading="auto", cmap="viridis")
    ax.set_aspect("equal")
    ax.set_xlabel("y")
    ax.set_ylabel("x")
    if title:
        ax.set_title(title)
    fig.colorbar(mesh, ax=ax, label="h")
    fig.tight_layout()

    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(output_path, dpi=150, bbox_inches="tight")
    plt.close(fig)

    log.info(f"Saved height plot to {output_path}")
    return output_path
