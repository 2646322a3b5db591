"""
Dynamical system models for quadmpc.

Available Systems
-----------------
- QuadrotorModel: 14-state quadrotor with lagged thrust and body-rate actuators
"""

from quadmpc.systems.quadrotor import (
    MAX_DT,
    QuadrotorModel,
    QuadrotorParams,
    create_quadrotor,
)

__all__ = [
    "MAX_DT",
    "QuadrotorModel",
    "QuadrotorParams",
    "create_quadrotor",
]
