"""
Utility functions for quadmpc.

Modules
-------
quaternion : Quaternion operations (scalar-first convention)
rotations : Y-up heading/tilt helpers and angle wrapping
"""

from quadmpc.utils.quaternion import (
    # Kinematics
    omega_matrix,
    quat_derivative,
    quat_from_axis_angle,
    # Sign handling
    quat_hemisphere_align,
    # Utilities
    quat_identity,
    quat_integrate,
    quat_integrate_exact,
    # Core operations
    quat_multiply,
    quat_normalize,
    quat_random,
    quat_rate_matrix,
    # Rotation
    quat_rotate,
)
from quadmpc.utils.rotations import (
    acceleration_to_quaternion,
    acceleration_to_tilt,
    quat_to_yaw,
    tilt_quaternion,
    wrap_angle,
    yaw_quaternion,
)

__all__ = [
    "acceleration_to_quaternion",
    "acceleration_to_tilt",
    "omega_matrix",
    "quat_derivative",
    "quat_from_axis_angle",
    "quat_hemisphere_align",
    "quat_identity",
    "quat_integrate",
    "quat_integrate_exact",
    "quat_multiply",
    "quat_normalize",
    "quat_random",
    "quat_rate_matrix",
    "quat_rotate",
    "quat_to_yaw",
    "tilt_quaternion",
    "wrap_angle",
    "yaw_quaternion",
]
