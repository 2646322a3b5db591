"""
Quadrotor prediction model with lagged thrust and body-rate actuators.

A discrete-time model of a rate-controlled quadrotor used by the MPC for
prediction and linearization. Commanded collective thrust and body rates
reach the vehicle through first-order lags; attitude is a unit quaternion
propagated with an explicit Euler step and renormalized.

Dynamics (one step of length dt)
--------------------------------
    α_T = 1 - exp(-dt/τ_T),  α_R = 1 - exp(-dt/τ_R)
    T'  = T + α_T·(T_c - T)
    r'  = r + α_R·(r_c - r)                      (roll, pitch, yaw rates)
    ω   = [pitch', yaw', roll']                  (body X, Y, Z)
    q_u = q + (dt/2)·Ω(ω)·q,   q' = q_u / ‖q_u‖
    a   = (T'/m)·d(q') - g·e_y - k_d·v
    v'  = v + a·dt
    p'  = p + v·dt + (1/2)·a·dt²

where d(q) = C(q)·e_y is the body +Y (thrust) axis in the world frame.

State Vector (n=14)
-------------------
    x = [p(3), v(3), q(4), T, roll_rate, pitch_rate, yaw_rate]

    Index 0-2: position (world, Y-up)
    Index 3-5: velocity (world)
    Index 6-9: quaternion [q_w, q_x, q_y, q_z] (body to world)
    Index 10-13: lagged actuator state

Control Vector (m=4)
--------------------
    u = [T_c, roll_rate_c, pitch_rate_c, yaw_rate_c]

Frame Convention
----------------
    - World frame is Y-up; gravity acts along -Y
    - Body +Y is the thrust axis; roll is about body +Z, pitch about body +X

The analytical Jacobian differentiates the discrete map above exactly,
including the quaternion renormalization J_n = (I - q̂q̂ᵀ)/‖q_u‖.
"""

from dataclasses import dataclass
from typing import List, Optional, Tuple

import numpy as np

from quadmpc.base import DynamicalSystem
from quadmpc.types import ControlCommand, DroneState
from quadmpc.utils.quaternion import (
    QUAT_NORM_EPS,
    omega_matrix,
    quat_integrate,
    quat_normalize,
    quat_rate_matrix,
    quat_rotate,
)
from quadmpc.utils.rotations import yaw_quaternion

# =============================================================================
# Constants
# =============================================================================

MAX_DT = 0.05  # Upper bound on integration step [s], applied by callers

# State layout
POSITION = slice(0, 3)
VELOCITY = slice(3, 6)
QUATERNION = slice(6, 10)
ACTUATOR = slice(10, 14)
THRUST_STATE = 10
ROLL_STATE = 11
PITCH_STATE = 12
YAW_STATE = 13

# Input layout
THRUST = 0
ROLL_RATE = 1
PITCH_RATE = 2
YAW_RATE = 3

# Maps [roll, pitch, yaw] rates onto body angular velocity [ωx, ωy, ωz]
RATE_TO_OMEGA = np.array(
    [
        [0.0, 1.0, 0.0],
        [0.0, 0.0, 1.0],
        [1.0, 0.0, 0.0],
    ]
)


# =============================================================================
# Parameter Dataclass
# =============================================================================


@dataclass
class QuadrotorParams:
    """
    Parameters for the quadrotor prediction model.

    Attributes
    ----------
    mass : float
        Vehicle mass [kg]. Thrust is mass × acceleration, so T/mass is the
        specific thrust in m/s².
    gravity : float
        Gravitational acceleration magnitude [m/s²].
    linear_drag : float
        Linear drag coefficient [1/s].
    tau_thrust : float
        Thrust actuator time constant [s].
    tau_rate : float
        Body-rate actuator time constant [s].
    """

    mass: float = 1.0
    gravity: float = 9.81
    linear_drag: float = 0.3
    tau_thrust: float = 0.04
    tau_rate: float = 0.03

    def __post_init__(self):
        """Validate parameters."""
        if self.mass <= 0:
            raise ValueError(f"mass must be positive, got {self.mass}")
        if self.gravity <= 0:
            raise ValueError(f"gravity must be positive, got {self.gravity}")
        if self.linear_drag < 0:
            raise ValueError(f"linear_drag must be non-negative, got {self.linear_drag}")
        if self.tau_thrust <= 0:
            raise ValueError(f"tau_thrust must be positive, got {self.tau_thrust}")
        if self.tau_rate <= 0:
            raise ValueError(f"tau_rate must be positive, got {self.tau_rate}")

    @property
    def hover_thrust(self) -> float:
        """Thrust that balances gravity."""
        return self.mass * self.gravity

    def actuator_gains(self, dt: float) -> Tuple[float, float]:
        """Per-step lag gains (α_T, α_R) for a step of length dt."""
        alpha_thrust = 1.0 - np.exp(-dt / self.tau_thrust)
        alpha_rate = 1.0 - np.exp(-dt / self.tau_rate)
        return alpha_thrust, alpha_rate


def default_params() -> QuadrotorParams:
    """Create default quadrotor parameters."""
    return QuadrotorParams()


# =============================================================================
# Thrust Direction
# =============================================================================


def thrust_axis(q: np.ndarray) -> np.ndarray:
    """
    Body +Y axis expressed in the world frame.

    d(q) = [2(xy - wz), 1 - 2(x² + z²), 2(wx + yz)]
    """
    w, x, y, z = q
    return np.array(
        [
            2.0 * (x * y - w * z),
            1.0 - 2.0 * (x * x + z * z),
            2.0 * (w * x + y * z),
        ]
    )


def thrust_axis_jacobian(q: np.ndarray) -> np.ndarray:
    """
    Derivative of :func:`thrust_axis` with respect to [w, x, y, z].

    Returns
    -------
    np.ndarray, shape (3, 4)
    """
    w, x, y, z = q
    return np.array(
        [
            [-2.0 * z, 2.0 * y, 2.0 * x, -2.0 * w],
            [0.0, -4.0 * x, 0.0, -4.0 * z],
            [2.0 * x, 2.0 * w, 2.0 * z, 2.0 * y],
        ]
    )


def normalization_jacobian(q_unnormalized: np.ndarray) -> np.ndarray:
    """
    Jacobian of q ↦ q/‖q‖: J_n = (I - q̂q̂ᵀ)/‖q‖.

    Identity when the norm is degenerate, matching the skipped
    normalization in the dynamics.
    """
    norm = np.linalg.norm(q_unnormalized)
    if norm < QUAT_NORM_EPS:
        return np.eye(4)
    q_hat = q_unnormalized / norm
    return (np.eye(4) - np.outer(q_hat, q_hat)) / norm


# =============================================================================
# Main System Class
# =============================================================================


class QuadrotorModel(DynamicalSystem):
    """
    Quadrotor prediction model with first-order actuator lag.

    Parameters
    ----------
    params : QuadrotorParams, optional
        System parameters. If None, uses default parameters.

    Examples
    --------
    >>> model = QuadrotorModel()
    >>> x0 = model.hover_state(position=[0.0, 1.0, 0.0])
    >>> u0 = model.hover_input()
    >>> x1 = model.dynamics(x0, u0, 0.02)
    >>> A, B, c = model.linearize(x0, u0, 0.02)

    Notes
    -----
    ``dynamics`` does not clamp dt; callers keep it below ``MAX_DT``.
    """

    def __init__(self, params: Optional[QuadrotorParams] = None):
        if params is None:
            params = default_params()
        super().__init__(params)

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def n_state(self) -> int:
        """Dimension of state vector [p, v, q, actuators]."""
        return 14

    @property
    def n_control(self) -> int:
        """Dimension of control vector [T_c, roll, pitch, yaw]."""
        return 4

    @property
    def state_names(self) -> List[str]:
        """Names for each state element."""
        return [
            "p_x",
            "p_y",
            "p_z",
            "v_x",
            "v_y",
            "v_z",
            "q_w",
            "q_x",
            "q_y",
            "q_z",
            "thrust",
            "roll_rate",
            "pitch_rate",
            "yaw_rate",
        ]

    @property
    def control_names(self) -> List[str]:
        """Names for each control element."""
        return ["thrust_cmd", "roll_rate_cmd", "pitch_rate_cmd", "yaw_rate_cmd"]

    # =========================================================================
    # State Accessors
    # =========================================================================

    def get_position(self, x: np.ndarray) -> np.ndarray:
        """Extract position vector (world frame) from state."""
        return np.asarray(x)[POSITION]

    def get_velocity(self, x: np.ndarray) -> np.ndarray:
        """Extract velocity vector (world frame) from state."""
        return np.asarray(x)[VELOCITY]

    def get_quaternion(self, x: np.ndarray) -> np.ndarray:
        """Extract quaternion from state."""
        return np.asarray(x)[QUATERNION]

    def get_actuators(self, x: np.ndarray) -> np.ndarray:
        """Extract lagged [thrust, roll, pitch, yaw] actuator state."""
        return np.asarray(x)[ACTUATOR]

    def pack_state(
        self,
        position: np.ndarray,
        velocity: np.ndarray,
        quaternion: np.ndarray,
        thrust: float,
        rates: Optional[np.ndarray] = None,
    ) -> np.ndarray:
        """
        Pack components into state vector.

        Parameters
        ----------
        position : np.ndarray, shape (3,)
            Position in world frame.
        velocity : np.ndarray, shape (3,)
            Velocity in world frame.
        quaternion : np.ndarray, shape (4,)
            Attitude quaternion [q_w, q_x, q_y, q_z].
        thrust : float
            Lagged thrust state.
        rates : np.ndarray, shape (3,), optional
            Lagged [roll, pitch, yaw] rate state. Defaults to zeros.

        Returns
        -------
        np.ndarray, shape (14,)
            State vector.
        """
        if rates is None:
            rates = np.zeros(3)
        return np.concatenate(
            [
                np.asarray(position, dtype=np.float64),
                np.asarray(velocity, dtype=np.float64),
                np.asarray(quaternion, dtype=np.float64),
                [float(thrust)],
                np.asarray(rates, dtype=np.float64),
            ]
        )

    def hover_state(self, position=(0.0, 0.0, 0.0), yaw: float = 0.0) -> np.ndarray:
        """State at rest at ``position`` with heading ``yaw`` and hover thrust."""
        return self.pack_state(
            position=position,
            velocity=np.zeros(3),
            quaternion=yaw_quaternion(yaw),
            thrust=self.params.hover_thrust,
        )

    def hover_input(self) -> np.ndarray:
        """Input that holds a level hover: hover thrust and zero rates."""
        return np.array([self.params.hover_thrust, 0.0, 0.0, 0.0])

    def thrust_direction(self, x: np.ndarray) -> np.ndarray:
        """Unit thrust axis in the world frame for state x."""
        return thrust_axis(quat_normalize(self.get_quaternion(x)))

    def normalize_state(self, x: np.ndarray) -> np.ndarray:
        """Return a copy of x with a unit quaternion."""
        x = np.asarray(x, dtype=np.float64).copy()
        x[QUATERNION] = quat_normalize(x[QUATERNION])
        return x

    # =========================================================================
    # Conversions
    # =========================================================================

    def from_drone_state(
        self,
        drone_state: DroneState,
        thrust: Optional[float] = None,
        rates: Optional[np.ndarray] = None,
    ) -> np.ndarray:
        """
        Build a model state from a measured DroneState.

        The measurement carries no actuator information; the thrust state
        defaults to the hover thrust and the rate states to zero.
        """
        if thrust is None:
            thrust = self.params.hover_thrust
        return self.pack_state(
            position=drone_state.position,
            velocity=drone_state.velocity,
            quaternion=drone_state.orientation,
            thrust=thrust,
            rates=rates,
        )

    def to_drone_state(self, x: np.ndarray, timestamp: float = 0.0) -> DroneState:
        """Drop the actuator state and return a DroneState."""
        x = np.asarray(x, dtype=np.float64)
        return DroneState(
            position=x[POSITION].copy(),
            orientation=x[QUATERNION].copy(),
            velocity=x[VELOCITY].copy(),
            timestamp=timestamp,
        )

    def input_to_command(self, u: np.ndarray, timestamp: float = 0.0) -> ControlCommand:
        return ControlCommand.from_array(u, timestamp)

    def command_to_input(self, command: ControlCommand) -> np.ndarray:
        return command.as_array()

    # =========================================================================
    # Dynamics
    # =========================================================================

    def dynamics(self, x: np.ndarray, u: np.ndarray, dt: float) -> np.ndarray:
        """
        Discrete dynamics: x_{k+1} = f(x_k, u_k, dt).

        Parameters
        ----------
        x : np.ndarray, shape (14,)
            State vector.
        u : np.ndarray, shape (4,)
            Commanded [thrust, roll_rate, pitch_rate, yaw_rate].
        dt : float
            Step duration (not clamped here).

        Returns
        -------
        np.ndarray, shape (14,)
            Next state.
        """
        x = np.asarray(x, dtype=np.float64)
        u = np.asarray(u, dtype=np.float64)
        p = self.params

        alpha_thrust, alpha_rate = p.actuator_gains(dt)

        v = x[VELOCITY]
        q = x[QUATERNION]
        thrust = x[THRUST_STATE] + alpha_thrust * (u[THRUST] - x[THRUST_STATE])
        rates = x[ROLL_STATE:] + alpha_rate * (u[ROLL_RATE:] - x[ROLL_STATE:])

        omega = RATE_TO_OMEGA @ rates
        q_new = quat_integrate(q, omega, dt)

        thrust_world = quat_rotate(q_new, np.array([0.0, thrust, 0.0]))
        a = thrust_world / p.mass - p.linear_drag * v
        a[1] -= p.gravity

        x_next = np.empty(14)
        x_next[POSITION] = x[POSITION] + v * dt + 0.5 * a * dt * dt
        x_next[VELOCITY] = v + a * dt
        x_next[QUATERNION] = q_new
        x_next[THRUST_STATE] = thrust
        x_next[ROLL_STATE:] = rates

        return x_next

    def jacobians(self, x: np.ndarray, u: np.ndarray, dt: float) -> Tuple[np.ndarray, np.ndarray]:
        """
        Analytical Jacobians of the discrete map.

        Structure (state 14x14, input 14x4):
            [∂p'/∂x]   [I  *  *  *]        [*]
            [∂v'/∂x] = [0  *  *  *]   B =  [*]
            [∂q'/∂x]   [0  0  *  *]        [*]
            [∂a'/∂x]   [0  0  0  D]        [D]

        with D diagonal lag blocks.

        Parameters
        ----------
        x : np.ndarray, shape (14,)
            State vector.
        u : np.ndarray, shape (4,)
            Control vector.
        dt : float
            Step duration.

        Returns
        -------
        A : np.ndarray, shape (14, 14)
        B : np.ndarray, shape (14, 4)
        """
        x = np.asarray(x, dtype=np.float64)
        u = np.asarray(u, dtype=np.float64)
        p = self.params

        alpha_thrust, alpha_rate = p.actuator_gains(dt)

        q = x[QUATERNION]
        thrust = x[THRUST_STATE] + alpha_thrust * (u[THRUST] - x[THRUST_STATE])
        rates = x[ROLL_STATE:] + alpha_rate * (u[ROLL_RATE:] - x[ROLL_STATE:])
        omega = RATE_TO_OMEGA @ rates

        # --- Quaternion update and its normalization ---
        q_unnorm = q + 0.5 * dt * (omega_matrix(omega) @ q)
        J_norm = normalization_jacobian(q_unnorm)
        q_new = quat_normalize(q_unnorm)

        # ∂q'/∂q and ∂q'/∂(rates after lag)
        dq_dq = J_norm @ (np.eye(4) + 0.5 * dt * omega_matrix(omega))
        dq_drates = J_norm @ (0.5 * dt * quat_rate_matrix(q) @ RATE_TO_OMEGA)

        # --- Acceleration ---
        d = thrust_axis(q_new)
        D = thrust_axis_jacobian(q_new)
        scale = thrust / p.mass

        da_dv = -p.linear_drag * np.eye(3)
        da_dq = scale * D @ dq_dq
        da_dthrust = d / p.mass  # w.r.t. lagged thrust T'
        da_drates = scale * D @ dq_drates  # w.r.t. lagged rates r'

        half_dt2 = 0.5 * dt * dt

        # --- State Jacobian ---
        A = np.zeros((14, 14))

        da_dact = np.zeros((3, 4))
        da_dact[:, 0] = (1.0 - alpha_thrust) * da_dthrust
        da_dact[:, 1:] = (1.0 - alpha_rate) * da_drates

        A[POSITION, POSITION] = np.eye(3)
        A[POSITION, VELOCITY] = dt * np.eye(3) + half_dt2 * da_dv
        A[POSITION, QUATERNION] = half_dt2 * da_dq
        A[POSITION, ACTUATOR] = half_dt2 * da_dact

        A[VELOCITY, VELOCITY] = np.eye(3) + dt * da_dv
        A[VELOCITY, QUATERNION] = dt * da_dq
        A[VELOCITY, ACTUATOR] = dt * da_dact

        A[QUATERNION, QUATERNION] = dq_dq
        A[QUATERNION, ROLL_STATE:] = (1.0 - alpha_rate) * dq_drates

        A[THRUST_STATE, THRUST_STATE] = 1.0 - alpha_thrust
        for i in (ROLL_STATE, PITCH_STATE, YAW_STATE):
            A[i, i] = 1.0 - alpha_rate

        # --- Input Jacobian ---
        B = np.zeros((14, 4))

        da_du = np.zeros((3, 4))
        da_du[:, THRUST] = alpha_thrust * da_dthrust
        da_du[:, ROLL_RATE:] = alpha_rate * da_drates

        B[POSITION, :] = half_dt2 * da_du
        B[VELOCITY, :] = dt * da_du
        B[QUATERNION, ROLL_RATE:] = alpha_rate * dq_drates
        B[THRUST_STATE, THRUST] = alpha_thrust
        B[ROLL_STATE, ROLL_RATE] = alpha_rate
        B[PITCH_STATE, PITCH_RATE] = alpha_rate
        B[YAW_STATE, YAW_RATE] = alpha_rate

        return A, B


# =============================================================================
# Factory Functions
# =============================================================================


def create_quadrotor(
    mass: float = 1.0,
    gravity: float = 9.81,
    linear_drag: float = 0.3,
    tau_thrust: float = 0.04,
    tau_rate: float = 0.03,
) -> QuadrotorModel:
    """Create a QuadrotorModel with specified parameters."""
    params = QuadrotorParams(
        mass=mass,
        gravity=gravity,
        linear_drag=linear_drag,
        tau_thrust=tau_thrust,
        tau_rate=tau_rate,
    )
    return QuadrotorModel(params)
