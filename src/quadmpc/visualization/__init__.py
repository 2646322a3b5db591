"""
Visualization utilities for quadmpc (matplotlib).

Plotting
--------
- plot_tracking: Position against reference, per axis, with error norm
- plot_commands: Applied thrust and body-rate commands
- plot_flight_path: 3D flight path with Y drawn vertically
- plot_prediction: Predicted horizon against the sampled reference

Example
-------
>>> from quadmpc import SQPMPC, QuadrotorPlant, hover_reference, simulate_closed_loop
>>> from quadmpc.visualization import plot_tracking
>>>
>>> plant = QuadrotorPlant(position=[0.0, 1.5, 0.0])
>>> result = simulate_closed_loop(SQPMPC(), plant, hover_reference([0.0, 1.0, 0.0]), duration=2.0)
>>> fig, axes = plot_tracking(result)
>>> plt.show()
"""

from quadmpc.visualization.plotters import (
    plot_commands,
    plot_flight_path,
    plot_prediction,
    plot_tracking,
)

__all__ = [
    "plot_commands",
    "plot_flight_path",
    "plot_prediction",
    "plot_tracking",
]
