#!/usr/bin/env python3
"""
Example 01: Hover and Circle Tracking

Demonstrates fundamental quadmpc usage:
- Creating the SQP-MPC controller and a plant
- Closing the loop on a hover step and a horizontal circle
- Using visualization utilities

Outputs saved to: examples/outputs/
"""

import logging
from pathlib import Path

import matplotlib.pyplot as plt
import numpy as np

import quadmpc as qm
from quadmpc.visualization import plot_commands, plot_flight_path, plot_prediction, plot_tracking

# Output directory
OUTPUT_DIR = Path(__file__).parent / "outputs"


def circle_reference(radius: float, speed: float, height: float):
    """Horizontal circle in the X-Z plane at constant speed, facing along the path."""
    omega = speed / radius

    def reference(t: float) -> qm.Waypoint:
        c, s = np.cos(omega * t), np.sin(omega * t)
        return qm.Waypoint(
            position=[radius * c, height, radius * s],
            velocity=[-speed * s, 0.0, speed * c],
            acceleration=[-speed * omega * c, 0.0, -speed * omega * s],
            jerk=[speed * omega**2 * s, 0.0, -speed * omega**2 * c],
            heading=0.0,
            heading_rate=0.0,
            time=t,
        )

    return reference


def hover_step_example():
    """Recover a 0.5 m altitude offset."""
    print("=" * 60)
    print("Hover Step")
    print("=" * 60)

    mpc = qm.SQPMPC()
    plant = qm.QuadrotorPlant(position=[0.0, 1.5, 0.0])
    reference = qm.hover_reference([0.0, 1.0, 0.0])
    print(f"Controller: {mpc}")

    result = qm.simulate_closed_loop(mpc, plant, reference, duration=3.0, control_dt=0.02)

    errors = result.position_errors
    print(f"Initial error: {errors[0]:.3f} m")
    print(f"Final error:   {errors[-1]:.4f} m")
    print(f"Last SQP: {mpc.last_diagnostics}")

    # --- Plots ---

    fig1, _ = plot_tracking(result, title="Hover Step")
    fig1.savefig(OUTPUT_DIR / "01a_hover_tracking.png", dpi=150)
    print("Saved: 01a_hover_tracking.png")

    cfg = mpc.config
    bounds = (
        np.array([cfg.min_thrust, -cfg.max_rate, -cfg.max_rate, -cfg.max_yaw_rate]),
        np.array([cfg.max_thrust, cfg.max_rate, cfg.max_rate, cfg.max_yaw_rate]),
    )
    fig2, _ = plot_commands(result, bounds=bounds, title="Hover Step Commands")
    fig2.savefig(OUTPUT_DIR / "01a_hover_commands.png", dpi=150)
    print("Saved: 01a_hover_commands.png")

    plt.close("all")


def circle_example():
    """Track a 2 m radius circle at 2 m/s."""
    print("\n" + "=" * 60)
    print("Circle Tracking")
    print("=" * 60)

    reference = circle_reference(radius=2.0, speed=2.0, height=1.5)

    mpc = qm.SQPMPC()
    plant = qm.QuadrotorPlant(position=reference(0.0).position)
    plant.set_velocity(*reference(0.0).velocity)

    result = qm.simulate_closed_loop(mpc, plant, reference, duration=2 * np.pi, control_dt=0.02)

    errors = result.position_errors
    print(f"Mean error: {errors.mean():.3f} m")
    print(f"Max error:  {errors.max():.3f} m")

    # --- Plots ---

    fig1, _ = plot_flight_path(result, title="Circle Tracking")
    fig1.savefig(OUTPUT_DIR / "01b_circle_path.png", dpi=150)
    print("Saved: 01b_circle_path.png")

    fig2, _ = plot_tracking(result, title="Circle Tracking")
    fig2.savefig(OUTPUT_DIR / "01b_circle_tracking.png", dpi=150)
    print("Saved: 01b_circle_tracking.png")

    # Predicted horizon of the last solve
    predicted = np.array([s.position for s in mpc.predicted_states()])
    sampled = np.array([w.position for w in mpc.reference_waypoints()])
    fig3, _ = plot_prediction(predicted, sampled, dt=mpc.config.dt, title="Last Predicted Horizon")
    fig3.savefig(OUTPUT_DIR / "01b_circle_prediction.png", dpi=150)
    print("Saved: 01b_circle_prediction.png")

    plt.close("all")


def main():
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    print("#" * 60)
    print("# quadmpc Example 01: Hover and Circle Tracking")
    print("#" * 60)

    # Create output directory
    OUTPUT_DIR.mkdir(exist_ok=True)
    print(f"\nOutputs: {OUTPUT_DIR.absolute()}\n")

    hover_step_example()
    circle_example()

    print("\n" + "=" * 60)
    print("Done!")
    print("=" * 60)


if __name__ == "__main__":
    main()
