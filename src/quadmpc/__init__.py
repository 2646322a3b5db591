"""
quadmpc - SQP model predictive control for a quaternion quadrotor model.

The package provides a discrete quadrotor model with analytical and
finite-difference linearization, a box-constrained QP solver, and a
receding-horizon SQP controller, plus a plant simulation to close the loop.

Visualization utilities are available in the `quadmpc.visualization` submodule:
    from quadmpc.visualization import plot_tracking
"""

__version__ = "0.1.0"

from quadmpc.base import LINEARIZATION_METHODS, DynamicalSystem, Linearization
from quadmpc.control import (
    SQPMPC,
    MPCConfig,
    SQPDiagnostics,
    default_config,
)
from quadmpc.sim import ClosedLoopResult, QuadrotorPlant, simulate_closed_loop
from quadmpc.solvers import (
    QPOptions,
    QPProblem,
    QPSolution,
    solve_qp,
    solve_unconstrained,
)
from quadmpc.systems import (
    MAX_DT,
    QuadrotorModel,
    QuadrotorParams,
    create_quadrotor,
)
from quadmpc.types import ControlCommand, DroneState, Waypoint, hover_reference
from quadmpc.utils import (
    quat_multiply,
    quat_normalize,
    quat_rotate,
    wrap_angle,
    yaw_quaternion,
)

__all__ = [
    "LINEARIZATION_METHODS",
    "MAX_DT",
    "SQPMPC",
    "ClosedLoopResult",
    "ControlCommand",
    "DroneState",
    # Core
    "DynamicalSystem",
    "Linearization",
    # Control
    "MPCConfig",
    # Solvers
    "QPOptions",
    "QPProblem",
    "QPSolution",
    # Systems
    "QuadrotorModel",
    "QuadrotorParams",
    # Simulation
    "QuadrotorPlant",
    "SQPDiagnostics",
    "Waypoint",
    "__version__",
    "create_quadrotor",
    "default_config",
    "hover_reference",
    "quat_multiply",
    "quat_normalize",
    "quat_rotate",
    "simulate_closed_loop",
    "solve_qp",
    "solve_unconstrained",
    "wrap_angle",
    "yaw_quaternion",
]
