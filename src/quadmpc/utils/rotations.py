"""
Rotation utilities for a Y-up world frame.

The vehicle frame used throughout quadmpc is Y-up: thrust acts along the
body +Y axis, gravity acts along world -Y, and heading (yaw) is a rotation
about +Y. Body-frame roll is about +Z and pitch is about +X.

Conventions
-----------
- Angles are in radians
- Attitude quaternions are scalar-first [w, x, y, z], body to world
- Heading is measured about +Y and wrapped to [-π, π)
- Tilt attitudes are composed yaw-pitch-roll: q = q_yaw(Y) ⊗ q_pitch(X) ⊗ q_roll(Z)

References
----------
- Diebel (2006) - Representing Attitude: Euler Angles, Unit Quaternions, and Rotation Vectors
- Mellinger & Kumar (2011) - Minimum snap trajectory generation and control for quadrotors
"""

from typing import Tuple

import numpy as np

# =============================================================================
# Heading and Tilt Quaternions
# =============================================================================


def yaw_quaternion(yaw: float) -> np.ndarray:
    """
    Quaternion for a pure heading rotation about +Y.

    Parameters
    ----------
    yaw : float
        Heading in radians.

    Returns
    -------
    np.ndarray, shape (4,)
        Unit quaternion [cos(ψ/2), 0, sin(ψ/2), 0].
    """
    half = 0.5 * yaw
    return np.array([np.cos(half), 0.0, np.sin(half), 0.0])


def tilt_quaternion(yaw: float, pitch: float, roll: float) -> np.ndarray:
    """
    Compose heading, pitch and roll into a single attitude quaternion.

    Computes q = q_yaw(Y) ⊗ q_pitch(X) ⊗ q_roll(Z) in closed form.

    Parameters
    ----------
    yaw : float
        Rotation about world +Y (radians).
    pitch : float
        Rotation about body +X (radians).
    roll : float
        Rotation about body +Z (radians).

    Returns
    -------
    np.ndarray, shape (4,)
        Unit quaternion [w, x, y, z].
    """
    cy, sy = np.cos(0.5 * yaw), np.sin(0.5 * yaw)
    cp, sp = np.cos(0.5 * pitch), np.sin(0.5 * pitch)
    cr, sr = np.cos(0.5 * roll), np.sin(0.5 * roll)

    return np.array(
        [
            cy * cp * cr + sy * sp * sr,
            cy * sp * cr + sy * cp * sr,
            sy * cp * cr - cy * sp * sr,
            cy * cp * sr - sy * sp * cr,
        ]
    )


def quat_to_yaw(q: np.ndarray) -> float:
    """
    Extract heading (rotation about +Y) from an attitude quaternion.

    Parameters
    ----------
    q : np.ndarray, shape (4,)
        Unit quaternion [w, x, y, z].

    Returns
    -------
    float
        Heading in radians, in [-π, π].
    """
    w, x, y, z = np.asarray(q, dtype=np.float64)
    return float(np.arctan2(2.0 * (w * y + z * x), 1.0 - 2.0 * (x * x + y * y)))


def acceleration_to_tilt(
    acceleration: np.ndarray,
    yaw: float,
    gravity: float = 9.81,
    max_tilt: float = np.pi / 4,
) -> Tuple[float, float]:
    """
    Tilt angles that point the thrust axis along a desired acceleration.

    Gravity is added to the vertical component and the result is expressed
    in the heading frame (rotated by -yaw about Y). The angles are chosen so
    that tilt_quaternion(yaw, pitch, roll) maps body +Y exactly onto the
    thrust direction whenever neither clamp is active:

        pitch = atan2(a_z, a_y)
        roll  = -atan2(a_x, √(a_y² + a_z²))

    Parameters
    ----------
    acceleration : np.ndarray, shape (3,)
        Desired world-frame acceleration (without gravity compensation).
    yaw : float
        Heading in radians.
    gravity : float
        Gravitational acceleration magnitude.
    max_tilt : float
        Symmetric clamp applied to both angles.

    Returns
    -------
    pitch, roll : float
        Angles about body +X and body +Z in radians.
    """
    ax, ay, az = np.asarray(acceleration, dtype=np.float64)
    ay = ay + gravity

    cy, sy = np.cos(yaw), np.sin(yaw)
    ax_h = ax * cy - az * sy
    az_h = ax * sy + az * cy

    pitch = np.arctan2(az_h, ay)
    roll = -np.arctan2(ax_h, np.sqrt(ay * ay + az_h * az_h))

    roll = float(np.clip(roll, -max_tilt, max_tilt))
    pitch = float(np.clip(pitch, -max_tilt, max_tilt))
    return pitch, roll


def acceleration_to_quaternion(
    acceleration: np.ndarray,
    yaw: float,
    gravity: float = 9.81,
    max_tilt: float = np.pi / 4,
) -> np.ndarray:
    """
    Attitude quaternion that produces a desired acceleration at a given heading.

    See :func:`acceleration_to_tilt` for the tilt convention.

    Examples
    --------
    >>> acceleration_to_quaternion(np.zeros(3), 0.0)
    array([1., 0., 0., 0.])
    """
    pitch, roll = acceleration_to_tilt(acceleration, yaw, gravity, max_tilt)
    return tilt_quaternion(yaw, pitch, roll)


# =============================================================================
# Angle Utilities
# =============================================================================


def wrap_angle(angle: float) -> float:
    """
    Wrap angle to [-π, π).

    Parameters
    ----------
    angle : float
        Angle in radians.

    Returns
    -------
    float
        Wrapped angle in [-π, π).
    """
    return (angle + np.pi) % (2 * np.pi) - np.pi
