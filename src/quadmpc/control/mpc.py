"""
Sequential-quadratic-programming model predictive controller.

Each call to :meth:`SQPMPC.compute_control` samples the reference over the
horizon, rolls out a nominal trajectory, and then repeats a bounded number
of SQP iterations:

    1. linearize the model along the nominal trajectory
    2. condense the per-step (A, B, c) into sensitivities x_k = Φ_k x_0 + Ψ_k U + o_k
    3. build the QP in the input perturbation δU

           H = Σ_k Ψ_kᵀ Q_k Ψ_k + blkdiag(R)
           g = Σ_k Ψ_kᵀ Q_k (x_k^nom ⊖ x_k^ref) + R (u^nom - u^ref)

       where ⊖ subtracts with the reference quaternion moved into the
       hemisphere of the nominal one
    4. solve with input bounds expressed relative to the nominal inputs
    5. apply δU and re-roll the nonlinear model

Only the first input of the final sequence is returned. The controller
always produces a command; QP or SQP non-convergence is reported through
:attr:`SQPMPC.last_diagnostics` and logged at DEBUG level.

References
----------
- Rawlings, Mayne & Diehl (2017) - Model Predictive Control: Theory, Computation, and Design
- Foehn et al. (2021) - Time-optimal planning for quadrotor waypoint flight
"""

import dataclasses
import logging
from dataclasses import dataclass, field
from typing import List, NamedTuple, Optional, Tuple

import numpy as np

from quadmpc.base import LINEARIZATION_METHODS, Linearization
from quadmpc.solvers.qp import QPOptions, QPProblem, solve_qp
from quadmpc.systems.quadrotor import MAX_DT, QUATERNION, QuadrotorModel
from quadmpc.types import ControlCommand, DroneState, ReferenceFn, Waypoint
from quadmpc.utils.quaternion import quat_hemisphere_align
from quadmpc.utils.rotations import acceleration_to_quaternion, wrap_angle

logger = logging.getLogger(__name__)


# =============================================================================
# Configuration
# =============================================================================


@dataclass(frozen=True)
class MPCConfig:
    """
    Controller configuration. Immutable for the lifetime of a controller.

    Attributes
    ----------
    horizon_steps : int
        Number of prediction steps N.
    dt : float
        Prediction step [s], at most ``MAX_DT``.
    position_weight, velocity_weight : float
        State cost on position and velocity error.
    attitude_weight : float
        Cost on the q_x and q_z quaternion error (pitch and roll).
    yaw_weight : float
        Cost on the q_y quaternion error (heading).
    thrust_weight, rate_weight : float
        Input cost on thrust and body-rate deviation from the reference.
    terminal_weight : float
        Multiplier applied to Q for the terminal state.
    min_thrust, max_thrust : float
        Thrust command bounds, in the same mass × acceleration units as
        ``ControlCommand.thrust`` (m/s² at unit mass).
    max_rate : float
        Roll/pitch rate bound [rad/s].
    max_yaw_rate : float
        Yaw rate bound [rad/s].
    sqp_iterations : int
        Maximum SQP iterations per call.
    sqp_tolerance : float
        Early exit when ‖δU‖ falls below this value.
    command_delay : float
        Reference look-ahead compensating actuation latency [s].
    qp_max_iterations : int
        Iteration cap of each QP solve.
    qp_tolerance : float
        Step-norm tolerance of each QP solve.
    actuator_weight : float
        State cost on the lagged actuator states.
    max_tilt : float
        Clamp on reference roll/pitch angles [rad].
    warm_start : bool
        Initialize from the shifted previous solution instead of the
        reference feedforward rollout.
    linearization : str
        'analytical' or 'numerical'.
    """

    horizon_steps: int = 15
    dt: float = 0.05

    position_weight: float = 400.0
    velocity_weight: float = 1.0
    attitude_weight: float = 10.0
    yaw_weight: float = 10.0
    thrust_weight: float = 0.5
    rate_weight: float = 1.0
    terminal_weight: float = 1.0

    min_thrust: float = 2.0
    max_thrust: float = 20.0
    max_rate: float = 10.0
    max_yaw_rate: float = 3.0

    sqp_iterations: int = 3
    sqp_tolerance: float = 1e-4
    command_delay: float = 0.05

    qp_max_iterations: int = 50
    qp_tolerance: float = 1e-6
    actuator_weight: float = 0.01
    max_tilt: float = np.pi / 4
    warm_start: bool = False
    linearization: str = "analytical"

    def __post_init__(self):  # noqa: C901
        """Validate configuration."""
        if self.horizon_steps < 1:
            raise ValueError(f"horizon_steps must be at least 1, got {self.horizon_steps}")
        if not 0 < self.dt <= MAX_DT:
            raise ValueError(f"dt must be in (0, {MAX_DT}], got {self.dt}")

        for name in (
            "position_weight",
            "velocity_weight",
            "attitude_weight",
            "yaw_weight",
            "thrust_weight",
            "rate_weight",
            "terminal_weight",
            "actuator_weight",
        ):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must be non-negative, got {getattr(self, name)}")

        if self.min_thrust < 0:
            raise ValueError("min_thrust must be non-negative")
        if self.max_thrust <= self.min_thrust:
            raise ValueError("max_thrust must be > min_thrust")
        if self.max_rate <= 0:
            raise ValueError(f"max_rate must be positive, got {self.max_rate}")
        if self.max_yaw_rate <= 0:
            raise ValueError(f"max_yaw_rate must be positive, got {self.max_yaw_rate}")

        if self.sqp_iterations < 1:
            raise ValueError(f"sqp_iterations must be at least 1, got {self.sqp_iterations}")
        if self.sqp_tolerance < 0:
            raise ValueError("sqp_tolerance must be non-negative")
        if self.command_delay < 0:
            raise ValueError("command_delay must be non-negative")
        if self.qp_max_iterations < 1:
            raise ValueError(f"qp_max_iterations must be at least 1, got {self.qp_max_iterations}")
        if self.qp_tolerance < 0:
            raise ValueError("qp_tolerance must be non-negative")
        if not 0 < self.max_tilt <= np.pi / 2:
            raise ValueError("max_tilt must be in (0, π/2]")
        if self.linearization not in LINEARIZATION_METHODS:
            available = ", ".join(LINEARIZATION_METHODS)
            raise ValueError(f"Unknown linearization method: '{self.linearization}'. Available methods: {available}")

    def replace(self, **changes) -> "MPCConfig":
        """Return a validated copy with the given fields changed."""
        return dataclasses.replace(self, **changes)

    def state_weights(self) -> np.ndarray:
        """Diagonal of Q: [p(3), v(3), q_w, q_x, q_y, q_z, actuators(4)]."""
        return np.array(
            [self.position_weight] * 3
            + [self.velocity_weight] * 3
            + [0.0, self.attitude_weight, self.yaw_weight, self.attitude_weight]
            + [self.actuator_weight] * 4
        )

    def input_weights(self) -> np.ndarray:
        """Diagonal of R: [thrust, roll, pitch, yaw]."""
        return np.array([self.thrust_weight, self.rate_weight, self.rate_weight, self.rate_weight])


def default_config() -> MPCConfig:
    """Create the default controller configuration."""
    return MPCConfig()


# =============================================================================
# Data Containers
# =============================================================================


class MPCReference(NamedTuple):
    """Reference sampled over the horizon."""

    states: np.ndarray  # (N + 1, n_state)
    inputs: np.ndarray  # (N, n_control)
    waypoints: List[Waypoint]


class PredictionMatrices(NamedTuple):
    """
    Condensed linear prediction x_k = Φ_k x_0 + Ψ_k U + o_k.

    U stacks the N inputs as a vector of length N·n_control.
    """

    Phi: np.ndarray  # (N + 1, n_state, n_state)
    Psi: np.ndarray  # (N + 1, n_state, N * n_control)
    offsets: np.ndarray  # (N + 1, n_state)


@dataclass
class SQPDiagnostics:
    """
    Convergence information of the last ``compute_control`` call.

    Attributes
    ----------
    sqp_iterations : int
        SQP iterations performed.
    converged : bool
        True if the final ‖δU‖ fell below ``sqp_tolerance``.
    qp_converged, qp_iterations : list
        Per-SQP-iteration QP convergence flags and iteration counts.
    improvement : float
        ‖δU‖ of the last SQP iteration.
    cost : float
        Tracking cost of the final trajectory (see :meth:`SQPMPC.trajectory_cost`).
    """

    sqp_iterations: int = 0
    converged: bool = False
    qp_converged: List[bool] = field(default_factory=list)
    qp_iterations: List[int] = field(default_factory=list)
    improvement: float = np.inf
    cost: float = np.inf


# =============================================================================
# Condensation Helpers
# =============================================================================


def condense(linearizations: List[Linearization]) -> PredictionMatrices:
    """
    Condense per-step linearizations into horizon sensitivities.

    Forward recursion with Φ_0 = I, Ψ_0 = 0, o_0 = 0:

        Φ_{k+1} = A_k Φ_k
        Ψ_{k+1} = A_k Ψ_k + [0 … B_k … 0]
        o_{k+1} = A_k o_k + c_k

    Parameters
    ----------
    linearizations : list of Linearization
        (A_k, B_k, c_k) for k = 0 … N-1.

    Returns
    -------
    PredictionMatrices
    """
    N = len(linearizations)
    n_state, n_control = linearizations[0].B.shape
    n_z = N * n_control

    Phi = np.zeros((N + 1, n_state, n_state))
    Psi = np.zeros((N + 1, n_state, n_z))
    offsets = np.zeros((N + 1, n_state))
    Phi[0] = np.eye(n_state)

    for k, (A, B, c) in enumerate(linearizations):
        Phi[k + 1] = A @ Phi[k]
        Psi[k + 1] = A @ Psi[k]
        Psi[k + 1][:, k * n_control : (k + 1) * n_control] += B
        offsets[k + 1] = A @ offsets[k] + c

    return PredictionMatrices(Phi, Psi, offsets)


def state_residual(x: np.ndarray, x_ref: np.ndarray) -> np.ndarray:
    """
    Difference x - x_ref with the reference quaternion hemisphere-aligned.

    The reference quaternion is negated when its dot product with the
    quaternion of ``x`` is negative.
    """
    x = np.asarray(x, dtype=np.float64)
    x_ref = np.array(x_ref, dtype=np.float64)
    x_ref[QUATERNION] = quat_hemisphere_align(x_ref[QUATERNION], x[QUATERNION])
    return x - x_ref


# =============================================================================
# Controller
# =============================================================================


class SQPMPC:
    """
    Receding-horizon SQP controller for the quadrotor model.

    Parameters
    ----------
    config : MPCConfig, optional
        Controller configuration. If None, uses defaults.
    model : QuadrotorModel, optional
        Prediction model. If None, uses a default QuadrotorModel.

    Examples
    --------
    >>> from quadmpc.types import DroneState, hover_reference
    >>> mpc = SQPMPC()
    >>> state = DroneState(position=[0.0, 1.0, 0.0])
    >>> command = mpc.compute_control(state, hover_reference([0.0, 1.0, 0.0]), 0.0)
    >>> command.thrust  # hover thrust
    9.81
    """

    def __init__(self, config: Optional[MPCConfig] = None, model: Optional[QuadrotorModel] = None):
        if config is None:
            config = default_config()
        if model is None:
            model = QuadrotorModel()

        self.config = config
        self.model = model

        self.N = config.horizon_steps
        self.nx = model.n_state
        self.nu = model.n_control

        self.Q = np.diag(config.state_weights())
        self.R = np.diag(config.input_weights())
        self.Qf = config.terminal_weight * self.Q

        self._qp_options = QPOptions(max_iterations=config.qp_max_iterations, tolerance=config.qp_tolerance)

        self._prev_states: Optional[np.ndarray] = None
        self._prev_inputs: Optional[np.ndarray] = None
        self._predicted_times: Optional[np.ndarray] = None
        self._reference_waypoints: List[Waypoint] = []
        self._last_diagnostics: Optional[SQPDiagnostics] = None

        logger.info(
            "SQPMPC initialized: N=%d, dt=%.3f s, sqp_iterations=%d, linearization=%s, warm_start=%s",
            self.N,
            config.dt,
            config.sqp_iterations,
            config.linearization,
            config.warm_start,
        )

    # =========================================================================
    # Main Entry Point
    # =========================================================================

    def compute_control(
        self,
        current_state: DroneState,
        reference_fn: ReferenceFn,
        current_time: float,
        actuators: Optional[np.ndarray] = None,
    ) -> ControlCommand:
        """
        Compute the control command for the current tick.

        Parameters
        ----------
        current_state : DroneState
            Measured vehicle state.
        reference_fn : callable
            Reference provider ``t -> Waypoint``.
        current_time : float
            Current trajectory time [s].
        actuators : np.ndarray, shape (4,), optional
            Estimated [thrust, roll, pitch, yaw] actuator state. Defaults to
            hover thrust and zero rates.

        Returns
        -------
        ControlCommand
            First input of the optimized sequence, stamped with the state's
            timestamp.

        Raises
        ------
        ValueError
            If ``actuators`` is given with a shape other than (4,).
        """
        if actuators is None:
            x0 = self.model.from_drone_state(current_state)
        else:
            actuators = np.asarray(actuators, dtype=np.float64)
            if actuators.shape != (4,):
                raise ValueError(f"actuators must have shape (4,), got {actuators.shape}")
            x0 = self.model.from_drone_state(current_state, thrust=actuators[0], rates=actuators[1:])

        reference = self.sample_reference(reference_fn, current_time)
        states, inputs = self.initialize_trajectory(x0, reference)

        diagnostics = SQPDiagnostics()

        for _ in range(self.config.sqp_iterations):
            linearizations = self.linearize_trajectory(states, inputs)
            problem = self.build_qp(states, inputs, reference, linearizations)
            solution = solve_qp(problem, self._qp_options)

            diagnostics.qp_converged.append(solution.converged)
            diagnostics.qp_iterations.append(solution.iterations)
            if not solution.converged:
                logger.debug(
                    "QP not converged after %d iterations (residual %.3e)", solution.iterations, solution.residual
                )

            states, inputs, improvement = self.update_trajectory(x0, inputs, solution.x)
            diagnostics.sqp_iterations += 1
            diagnostics.improvement = improvement

            if improvement < self.config.sqp_tolerance:
                diagnostics.converged = True
                break

        if not diagnostics.converged:
            logger.debug(
                "SQP stopped after %d iterations with |dU| = %.3e", diagnostics.sqp_iterations, diagnostics.improvement
            )

        diagnostics.cost = self.trajectory_cost(states, inputs, reference)

        self._prev_states = states
        self._prev_inputs = inputs
        self._predicted_times = current_time + self.config.dt * np.arange(self.N + 1)
        self._reference_waypoints = reference.waypoints
        self._last_diagnostics = diagnostics

        return self.model.input_to_command(inputs[0], current_state.timestamp)

    # =========================================================================
    # SQP Building Blocks
    # =========================================================================

    def sample_reference(self, reference_fn: ReferenceFn, current_time: float) -> MPCReference:
        """
        Sample the reference at the N+1 horizon nodes.

        Node k is taken at current_time + command_delay + k·dt. The
        reference attitude points the thrust axis along the gravity-
        compensated acceleration at the wrapped heading; the feedforward
        thrust is the magnitude of that vector.
        """
        cfg = self.config
        params = self.model.params
        gravity = params.gravity

        states = np.zeros((self.N + 1, self.nx))
        inputs = np.zeros((self.N, self.nu))
        waypoints = []

        for k in range(self.N + 1):
            t = current_time + cfg.command_delay + k * cfg.dt
            wp = reference_fn(t)
            waypoints.append(wp)

            heading = wrap_angle(wp.heading)
            q_ref = acceleration_to_quaternion(wp.acceleration, heading, gravity, cfg.max_tilt)

            states[k] = self.model.pack_state(
                position=wp.position,
                velocity=wp.velocity,
                quaternion=q_ref,
                thrust=params.hover_thrust,
                rates=[0.0, 0.0, wp.heading_rate],
            )

            if k < self.N:
                thrust_vector = wp.acceleration + np.array([0.0, gravity, 0.0])
                inputs[k] = [params.mass * np.linalg.norm(thrust_vector), 0.0, 0.0, wp.heading_rate]

        return MPCReference(states, inputs, waypoints)

    def initialize_trajectory(self, x0: np.ndarray, reference: MPCReference) -> Tuple[np.ndarray, np.ndarray]:
        """
        Nominal (states, inputs) the SQP iterations start from.

        The default rolls out the reference feedforward inputs from x0. With
        ``warm_start`` enabled and a previous solution cached, the previous
        inputs are shifted by one step and the last reference input appended.
        """
        if self.config.warm_start and self._prev_inputs is not None:
            inputs = np.vstack([self._prev_inputs[1:], reference.inputs[-1:]])
        else:
            inputs = reference.inputs.copy()

        states = self.model.rollout(x0, inputs, self.config.dt)
        return states, inputs

    def linearize_trajectory(self, states: np.ndarray, inputs: np.ndarray) -> List[Linearization]:
        """Linearize the model at every (x_k, u_k) of the nominal trajectory."""
        return [
            self.model.linearize(states[k], inputs[k], self.config.dt, method=self.config.linearization)
            for k in range(self.N)
        ]

    def build_qp(
        self,
        states: np.ndarray,
        inputs: np.ndarray,
        reference: MPCReference,
        linearizations: List[Linearization],
    ) -> QPProblem:
        """
        Condensed QP in the input perturbation δU.

        Parameters
        ----------
        states : np.ndarray, shape (N + 1, n_state)
            Nominal states.
        inputs : np.ndarray, shape (N, n_control)
            Nominal inputs.
        reference : MPCReference
            Sampled reference.
        linearizations : list of Linearization
            Per-step linearization along the nominal trajectory.

        Returns
        -------
        QPProblem
            Hessian, gradient and input bounds relative to the nominal inputs.
        """
        prediction = condense(linearizations)
        n_z = self.N * self.nu

        H = np.zeros((n_z, n_z))
        g = np.zeros(n_z)

        for k in range(self.N + 1):
            Q_k = self.Qf if k == self.N else self.Q
            Psi_k = prediction.Psi[k]
            residual = state_residual(states[k], reference.states[k])

            H += Psi_k.T @ Q_k @ Psi_k
            g += Psi_k.T @ (Q_k @ residual)

        for k in range(self.N):
            block = slice(k * self.nu, (k + 1) * self.nu)
            H[block, block] += self.R
            g[block] += self.R @ (inputs[k] - reference.inputs[k])

        lb, ub = self.input_bounds(inputs)
        return QPProblem(H=H, g=g, lb=lb, ub=ub)

    def input_bounds(self, inputs: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """Bounds on δU so that nominal + δU respects the input limits."""
        cfg = self.config
        u_min = np.array([cfg.min_thrust, -cfg.max_rate, -cfg.max_rate, -cfg.max_yaw_rate])
        u_max = np.array([cfg.max_thrust, cfg.max_rate, cfg.max_rate, cfg.max_yaw_rate])

        lb = (u_min - inputs).reshape(-1)
        ub = (u_max - inputs).reshape(-1)
        return lb, ub

    def update_trajectory(
        self, x0: np.ndarray, inputs: np.ndarray, du: np.ndarray
    ) -> Tuple[np.ndarray, np.ndarray, float]:
        """Apply δU, re-roll the nonlinear model and report ‖δU‖."""
        du = np.asarray(du, dtype=np.float64)
        new_inputs = inputs + du.reshape(self.N, self.nu)
        new_states = self.model.rollout(x0, new_inputs, self.config.dt)
        return new_states, new_inputs, float(np.linalg.norm(du))

    def trajectory_cost(self, states: np.ndarray, inputs: np.ndarray, reference: MPCReference) -> float:
        """
        Quadratic tracking cost of a trajectory.

        Σ_k r_kᵀ Q_k r_k + Σ_k (u_k - u_k^ref)ᵀ R (u_k - u_k^ref), with r_k the
        hemisphere-aligned state residual and Q_N = Qf.
        """
        cost = 0.0
        for k in range(self.N + 1):
            Q_k = self.Qf if k == self.N else self.Q
            r = state_residual(states[k], reference.states[k])
            cost += r @ Q_k @ r
        for k in range(self.N):
            du = inputs[k] - reference.inputs[k]
            cost += du @ self.R @ du
        return float(cost)

    # =========================================================================
    # Read-only Accessors
    # =========================================================================

    @property
    def last_diagnostics(self) -> Optional[SQPDiagnostics]:
        """Diagnostics of the last call, or None before the first call."""
        return self._last_diagnostics

    def predicted_states(self) -> List[DroneState]:
        """Predicted states of the last solve as DroneStates (empty before the first call)."""
        if self._prev_states is None:
            return []
        return [
            self.model.to_drone_state(x, timestamp=float(t)) for x, t in zip(self._prev_states, self._predicted_times)
        ]

    def predicted_trajectory(self) -> Optional[Tuple[np.ndarray, np.ndarray]]:
        """Copies of the last (states, inputs) arrays, or None before the first call."""
        if self._prev_states is None:
            return None
        return self._prev_states.copy(), self._prev_inputs.copy()

    def reference_waypoints(self) -> List[Waypoint]:
        """Waypoints sampled on the last call."""
        return list(self._reference_waypoints)

    @staticmethod
    def tracking_error(state: DroneState, waypoint: Waypoint) -> float:
        """Euclidean position error between a state and a waypoint."""
        return float(np.linalg.norm(waypoint.position - state.position))

    def reset(self) -> None:
        """Clear the warm-start cache, predictions, references and diagnostics."""
        self._prev_states = None
        self._prev_inputs = None
        self._predicted_times = None
        self._reference_waypoints = []
        self._last_diagnostics = None

    def __repr__(self) -> str:
        return f"SQPMPC(N={self.N}, dt={self.config.dt}, linearization='{self.config.linearization}')"
