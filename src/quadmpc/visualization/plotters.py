"""
Plotting utilities for closed-loop runs and MPC predictions.

- Position tracking against the reference
- Applied commands with their bounds
- 3D flight path (Y-up world drawn with Y vertical)
- Predicted horizon of the last controller solve
"""

from typing import List, Optional, Tuple

import matplotlib.pyplot as plt
import numpy as np
from matplotlib.axes import Axes
from matplotlib.figure import Figure

from quadmpc.sim import ClosedLoopResult

COMMAND_NAMES = ["Thrust [kg·m/s²]", "Roll rate [rad/s]", "Pitch rate [rad/s]", "Yaw rate [rad/s]"]


# =============================================================================
# Time Series Plots
# =============================================================================


def plot_tracking(
    result: ClosedLoopResult,
    title: str = "Position Tracking",
    figsize: Tuple[float, float] = (10, 8),
    grid: bool = True,
) -> Tuple[Figure, np.ndarray]:
    """
    Plot plant position against the reference, per axis, plus the error norm.

    Parameters
    ----------
    result : ClosedLoopResult
        Logged closed-loop run.
    title : str
        Figure title.
    figsize : tuple
        Figure size (width, height).
    grid : bool
        Show grid.

    Returns
    -------
    fig : Figure
        Matplotlib figure.
    axes : ndarray of Axes
        Four axes: x, y, z and error.

    Example
    -------
    >>> result = simulate_closed_loop(mpc, plant, reference, duration=3.0)
    >>> fig, axes = plot_tracking(result)
    >>> plt.show()
    """
    fig, axes = plt.subplots(4, 1, figsize=figsize, sharex=True)

    for i, label in enumerate(["x [m]", "y [m]", "z [m]"]):
        axes[i].plot(result.t, result.positions[:, i], linewidth=1.5, label="actual")
        axes[i].plot(result.t, result.references[:, i], "k--", linewidth=1, label="reference")
        axes[i].set_ylabel(label)
        if grid:
            axes[i].grid(True, alpha=0.3)
    axes[0].legend(loc="best")

    axes[3].plot(result.t, result.position_errors, "r", linewidth=1.5)
    axes[3].set_ylabel("error [m]")
    axes[3].set_xlabel("Time [s]")
    if grid:
        axes[3].grid(True, alpha=0.3)

    fig.suptitle(title)
    fig.tight_layout()

    return fig, axes


def plot_commands(
    result: ClosedLoopResult,
    bounds: Optional[Tuple[np.ndarray, np.ndarray]] = None,
    title: str = "Commands",
    figsize: Tuple[float, float] = (10, 6),
    grid: bool = True,
) -> Tuple[Figure, np.ndarray]:
    """
    Plot the applied thrust and body-rate commands.

    Parameters
    ----------
    result : ClosedLoopResult
        Logged closed-loop run.
    bounds : tuple of arrays, optional
        (lower, upper) input bounds to show as dashed lines.
    title : str
        Figure title.
    figsize : tuple
        Figure size.
    grid : bool
        Show grid.

    Returns
    -------
    fig : Figure
    axes : ndarray of Axes
    """
    u = result.commands
    t_u = result.t[: len(u)]

    fig, axes = plt.subplots(2, 2, figsize=figsize, sharex=True)
    axes = axes.flatten()

    for i, name in enumerate(COMMAND_NAMES):
        axes[i].step(t_u, u[:, i], where="post", linewidth=1.5)
        axes[i].set_ylabel(name)

        if bounds is not None:
            lb, ub = bounds
            axes[i].axhline(lb[i], color="r", linestyle="--", alpha=0.7)
            axes[i].axhline(ub[i], color="r", linestyle="--", alpha=0.7)

        if grid:
            axes[i].grid(True, alpha=0.3)

    for ax in axes[2:]:
        ax.set_xlabel("Time [s]")

    fig.suptitle(title)
    fig.tight_layout()

    return fig, axes


# =============================================================================
# Trajectory Plots
# =============================================================================


def plot_flight_path(
    result: ClosedLoopResult,
    title: str = "Flight Path",
    figsize: Tuple[float, float] = (10, 8),
    ax: Optional[Axes] = None,
) -> Tuple[Figure, Axes]:
    """
    Plot the 3D flight path and reference with world +Y drawn vertically.

    Returns
    -------
    fig : Figure
    ax : Axes3D
    """
    if ax is None:
        fig = plt.figure(figsize=figsize)
        ax = fig.add_subplot(111, projection="3d")
    else:
        fig = ax.figure

    p = result.positions
    r = result.references

    # Matplotlib's vertical axis is the third one
    ax.plot(p[:, 0], p[:, 2], p[:, 1], linewidth=2, label="actual")
    ax.plot(r[:, 0], r[:, 2], r[:, 1], "k--", linewidth=1, label="reference")
    ax.scatter([p[0, 0]], [p[0, 2]], [p[0, 1]], c="green", s=60, label="Start")
    ax.scatter([p[-1, 0]], [p[-1, 2]], [p[-1, 1]], c="red", s=60, label="End")

    ax.set_xlabel("X [m]")
    ax.set_ylabel("Z [m]")
    ax.set_zlabel("Y (up) [m]")
    ax.set_title(title)
    ax.legend()

    return fig, ax


def plot_prediction(
    predicted_positions: np.ndarray,
    reference_positions: Optional[np.ndarray] = None,
    dt: float = 0.05,
    labels: Optional[List[str]] = None,
    title: str = "Predicted Horizon",
    figsize: Tuple[float, float] = (10, 6),
) -> Tuple[Figure, np.ndarray]:
    """
    Plot a predicted horizon against the sampled reference.

    Parameters
    ----------
    predicted_positions : np.ndarray, shape (N + 1, 3)
        Positions from ``SQPMPC.predicted_states()``.
    reference_positions : np.ndarray, shape (N + 1, 3), optional
        Positions from ``SQPMPC.reference_waypoints()``.
    dt : float
        Horizon step used for the time axis.
    labels : list of str, optional
        Axis labels.

    Returns
    -------
    fig : Figure
    axes : ndarray of Axes
    """
    predicted_positions = np.asarray(predicted_positions)
    if labels is None:
        labels = ["x [m]", "y [m]", "z [m]"]

    t = dt * np.arange(len(predicted_positions))

    fig, axes = plt.subplots(3, 1, figsize=figsize, sharex=True)
    for i in range(3):
        axes[i].plot(t, predicted_positions[:, i], "o-", markersize=3, label="predicted")
        if reference_positions is not None:
            axes[i].plot(t, np.asarray(reference_positions)[:, i], "k--", label="reference")
        axes[i].set_ylabel(labels[i])
        axes[i].grid(True, alpha=0.3)
    axes[0].legend(loc="best")
    axes[-1].set_xlabel("Horizon time [s]")

    fig.suptitle(title)
    fig.tight_layout()

    return fig, axes
