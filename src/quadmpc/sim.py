"""
Stateful quadrotor plant and closed-loop simulation.

``QuadrotorPlant`` is the "true" vehicle the controller is run against. It
shares parameters with the prediction model but integrates differently:
attitude uses the exact exponential map for constant body rates, and
translation is semi-implicit Euler (velocity first, then position with the
updated velocity). The mismatch is small but keeps closed-loop tests honest.
"""

from dataclasses import dataclass
from typing import List, Optional

import numpy as np

from quadmpc.systems.quadrotor import MAX_DT, RATE_TO_OMEGA, QuadrotorParams, default_params
from quadmpc.types import ControlCommand, DroneState, ReferenceFn
from quadmpc.utils.quaternion import quat_integrate_exact, quat_rotate
from quadmpc.utils.rotations import yaw_quaternion

DEFAULT_START_POSITION = (0.0, 2.0, 0.0)


class QuadrotorPlant:
    """
    Quadrotor plant with first-order actuator lag.

    Parameters
    ----------
    params : QuadrotorParams, optional
        Physical parameters. If None, uses default parameters.
    position : array_like, shape (3,), optional
        Initial position. Defaults to (0, 2, 0).

    Examples
    --------
    >>> plant = QuadrotorPlant(position=[0.0, 1.0, 0.0])
    >>> plant.step(ControlCommand(thrust=9.81), 0.02)
    >>> plant.get_state().position
    array([0., 1., 0.])
    """

    def __init__(self, params: Optional[QuadrotorParams] = None, position=None):
        if params is None:
            params = default_params()
        self.params = params
        self.time = 0.0
        self.reset(position)

    def reset(self, position=None) -> None:
        """Return to a level hover at ``position`` (default (0, 2, 0)) with time zero."""
        if position is None:
            position = DEFAULT_START_POSITION
        self.position = np.array(position, dtype=np.float64)
        self.velocity = np.zeros(3)
        self.orientation = np.array([1.0, 0.0, 0.0, 0.0])
        self.thrust = self.params.hover_thrust
        self.rates = np.zeros(3)  # [roll, pitch, yaw]
        self.time = 0.0

    # =========================================================================
    # Integration
    # =========================================================================

    def step(self, command: ControlCommand, dt: float) -> None:
        """
        Advance the plant by dt seconds under a constant command.

        dt is clamped to ``MAX_DT``.
        """
        dt = min(dt, MAX_DT)
        p = self.params

        alpha_thrust, alpha_rate = p.actuator_gains(dt)
        self.thrust += alpha_thrust * (command.thrust - self.thrust)
        commanded_rates = np.array([command.roll_rate, command.pitch_rate, command.yaw_rate])
        self.rates = self.rates + alpha_rate * (commanded_rates - self.rates)

        omega = RATE_TO_OMEGA @ self.rates
        self.orientation = quat_integrate_exact(self.orientation, omega, dt)

        thrust_world = quat_rotate(self.orientation, np.array([0.0, self.thrust, 0.0]))
        accel = thrust_world / p.mass - p.linear_drag * self.velocity
        accel[1] -= p.gravity

        self.velocity = self.velocity + accel * dt
        self.position = self.position + self.velocity * dt
        self.time += dt

    # =========================================================================
    # State Access
    # =========================================================================

    def get_state(self) -> DroneState:
        """Current pose and velocity stamped with the plant time."""
        return DroneState(
            position=self.position.copy(),
            orientation=self.orientation.copy(),
            velocity=self.velocity.copy(),
            timestamp=self.time,
        )

    def get_actuators(self) -> np.ndarray:
        """Lagged [thrust, roll, pitch, yaw] actuator state."""
        return np.concatenate([[self.thrust], self.rates])

    def set_state(
        self,
        state: Optional[DroneState] = None,
        thrust: Optional[float] = None,
        rates: Optional[np.ndarray] = None,
    ) -> None:
        """Overwrite any of pose/velocity, thrust state and rate state."""
        if state is not None:
            self.position = state.position.copy()
            self.velocity = state.velocity.copy()
            self.orientation = state.orientation.copy()
        if thrust is not None:
            self.thrust = float(thrust)
        if rates is not None:
            self.rates = np.array(rates, dtype=np.float64)

    def set_position(self, x: float, y: float, z: float) -> None:
        self.position = np.array([x, y, z], dtype=np.float64)

    def set_velocity(self, vx: float, vy: float, vz: float) -> None:
        self.velocity = np.array([vx, vy, vz], dtype=np.float64)

    def set_heading(self, yaw: float) -> None:
        """Level the vehicle at heading ``yaw`` about +Y."""
        self.orientation = yaw_quaternion(yaw)

    @property
    def speed(self) -> float:
        return float(np.linalg.norm(self.velocity))


# =============================================================================
# Closed-Loop Simulation
# =============================================================================


@dataclass
class ClosedLoopResult:
    """
    Logged closed-loop run.

    Attributes
    ----------
    t : np.ndarray, shape (n_steps + 1,)
        Sample times.
    positions : np.ndarray, shape (n_steps + 1, 3)
        Plant positions.
    velocities : np.ndarray, shape (n_steps + 1, 3)
        Plant velocities.
    orientations : np.ndarray, shape (n_steps + 1, 4)
        Plant quaternions.
    references : np.ndarray, shape (n_steps + 1, 3)
        Reference positions at the sample times.
    commands : np.ndarray, shape (n_steps, 4)
        Commands applied on each interval.
    """

    t: np.ndarray
    positions: np.ndarray
    velocities: np.ndarray
    orientations: np.ndarray
    references: np.ndarray
    commands: np.ndarray

    @property
    def position_errors(self) -> np.ndarray:
        """Euclidean position error at each sample time."""
        return np.linalg.norm(self.positions - self.references, axis=1)


def simulate_closed_loop(
    controller,
    plant: QuadrotorPlant,
    reference_fn: ReferenceFn,
    duration: float,
    control_dt: float = 0.02,
    pass_actuators: bool = False,
) -> ClosedLoopResult:
    """
    Run a controller against a plant at a fixed control rate.

    Parameters
    ----------
    controller : SQPMPC
        Anything with ``compute_control(state, reference_fn, time, actuators=None)``.
    plant : QuadrotorPlant
        Plant to drive. Its state is advanced in place.
    reference_fn : callable
        Reference provider ``t -> Waypoint``.
    duration : float
        Simulated duration [s].
    control_dt : float, optional
        Control period [s], at most ``MAX_DT``. Default 0.02 (50 Hz).
    pass_actuators : bool, optional
        Give the controller the plant's actuator state instead of letting it
        assume hover thrust and zero rates.

    Returns
    -------
    ClosedLoopResult

    Raises
    ------
    ValueError
        If ``control_dt`` is not in (0, MAX_DT].
    """
    if not 0 < control_dt <= MAX_DT:
        raise ValueError(f"control_dt must be in (0, {MAX_DT}], got {control_dt}")

    n_steps = int(round(duration / control_dt))
    t0 = plant.time

    t = t0 + control_dt * np.arange(n_steps + 1)
    positions = np.zeros((n_steps + 1, 3))
    velocities = np.zeros((n_steps + 1, 3))
    orientations = np.zeros((n_steps + 1, 4))
    references = np.zeros((n_steps + 1, 3))
    commands: List[np.ndarray] = []

    for k in range(n_steps + 1):
        state = plant.get_state()
        positions[k] = state.position
        velocities[k] = state.velocity
        orientations[k] = state.orientation
        references[k] = reference_fn(t[k]).position

        if k == n_steps:
            break

        actuators = plant.get_actuators() if pass_actuators else None
        command = controller.compute_control(state, reference_fn, t[k], actuators=actuators)
        commands.append(command.as_array())
        plant.step(command, control_dt)

    return ClosedLoopResult(
        t=t,
        positions=positions,
        velocities=velocities,
        orientations=orientations,
        references=references,
        commands=np.array(commands).reshape(-1, 4),
    )
