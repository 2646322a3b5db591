"""
Value types exchanged between the controller, the plant and the caller.

DroneState
    Pose and velocity reported by the plant once per control tick.
ControlCommand
    Collective thrust and body rates produced by the controller.
Waypoint
    One sample of a reference trajectory. Reference providers are plain
    callables ``t -> Waypoint``.

All vectors are numpy arrays of shape (3,) in the Y-up world frame;
orientations are scalar-first unit quaternions [w, x, y, z] (body to world).
Timestamps are in seconds.
"""

from dataclasses import dataclass, field
from typing import Callable

import numpy as np

from quadmpc.utils.quaternion import quat_identity


def _vec3(value) -> np.ndarray:
    arr = np.asarray(value, dtype=np.float64).reshape(-1)
    if arr.shape != (3,):
        raise ValueError(f"Expected a 3-vector, got shape {arr.shape}")
    return arr


@dataclass
class DroneState:
    """
    Measured vehicle state.

    Attributes
    ----------
    position : np.ndarray, shape (3,)
        World-frame position [m].
    orientation : np.ndarray, shape (4,)
        Unit quaternion [w, x, y, z], body to world.
    velocity : np.ndarray, shape (3,)
        World-frame velocity [m/s].
    timestamp : float
        Time of the measurement [s].
    """

    position: np.ndarray = field(default_factory=lambda: np.zeros(3))
    orientation: np.ndarray = field(default_factory=quat_identity)
    velocity: np.ndarray = field(default_factory=lambda: np.zeros(3))
    timestamp: float = 0.0

    def __post_init__(self):
        self.position = _vec3(self.position)
        self.velocity = _vec3(self.velocity)
        self.orientation = np.asarray(self.orientation, dtype=np.float64).reshape(-1)
        if self.orientation.shape != (4,):
            raise ValueError(f"orientation must have 4 components, got shape {self.orientation.shape}")

    def copy(self) -> "DroneState":
        return DroneState(
            position=self.position.copy(),
            orientation=self.orientation.copy(),
            velocity=self.velocity.copy(),
            timestamp=self.timestamp,
        )


@dataclass
class ControlCommand:
    """
    Commanded collective thrust and body rates.

    Attributes
    ----------
    thrust : float
        Collective thrust as mass × acceleration [kg·m/s²]. Equals the
        commanded acceleration in m/s² at the default unit mass.
    roll_rate : float
        Rate about body +Z [rad/s].
    pitch_rate : float
        Rate about body +X [rad/s].
    yaw_rate : float
        Rate about body +Y [rad/s].
    timestamp : float
        Time the command was issued [s].
    """

    thrust: float = 0.0
    roll_rate: float = 0.0
    pitch_rate: float = 0.0
    yaw_rate: float = 0.0
    timestamp: float = 0.0

    def as_array(self) -> np.ndarray:
        """Input vector [thrust, roll_rate, pitch_rate, yaw_rate]."""
        return np.array([self.thrust, self.roll_rate, self.pitch_rate, self.yaw_rate])

    @classmethod
    def from_array(cls, u: np.ndarray, timestamp: float = 0.0) -> "ControlCommand":
        u = np.asarray(u, dtype=np.float64)
        return cls(
            thrust=float(u[0]),
            roll_rate=float(u[1]),
            pitch_rate=float(u[2]),
            yaw_rate=float(u[3]),
            timestamp=timestamp,
        )


@dataclass
class Waypoint:
    """
    Reference trajectory sample.

    Attributes
    ----------
    position, velocity, acceleration, jerk : np.ndarray, shape (3,)
        World-frame kinematic reference.
    heading : float
        Yaw about world +Y [rad].
    heading_rate : float
        Yaw rate [rad/s].
    time : float
        Time from the start of the trajectory [s].
    """

    position: np.ndarray = field(default_factory=lambda: np.zeros(3))
    velocity: np.ndarray = field(default_factory=lambda: np.zeros(3))
    acceleration: np.ndarray = field(default_factory=lambda: np.zeros(3))
    jerk: np.ndarray = field(default_factory=lambda: np.zeros(3))
    heading: float = 0.0
    heading_rate: float = 0.0
    time: float = 0.0

    def __post_init__(self):
        self.position = _vec3(self.position)
        self.velocity = _vec3(self.velocity)
        self.acceleration = _vec3(self.acceleration)
        self.jerk = _vec3(self.jerk)


ReferenceFn = Callable[[float], Waypoint]


def hover_reference(position, heading: float = 0.0) -> ReferenceFn:
    """
    Reference provider for a stationary hover.

    Parameters
    ----------
    position : array_like, shape (3,)
        Hover position.
    heading : float, optional
        Constant heading in radians.

    Returns
    -------
    callable
        ``t -> Waypoint`` with zero velocity, acceleration and jerk.

    Examples
    --------
    >>> ref = hover_reference([0.0, 1.0, 0.0])
    >>> ref(2.0).position
    array([0., 1., 0.])
    """
    target = _vec3(position).copy()

    def reference(t: float) -> Waypoint:
        return Waypoint(position=target.copy(), heading=heading, time=t)

    return reference
