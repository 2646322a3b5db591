"""
Pytest configuration and shared fixtures for quadmpc tests.
"""

import numpy as np
import pytest

from quadmpc.systems.quadrotor import QuadrotorModel
from quadmpc.utils.quaternion import quat_normalize
from quadmpc.utils.rotations import tilt_quaternion

# =============================================================================
# Random Seed Fixture
# =============================================================================


@pytest.fixture
def rng():
    """Provide a seeded random number generator for reproducibility."""
    return np.random.default_rng(42)


# =============================================================================
# Model Fixtures
# =============================================================================


@pytest.fixture
def model():
    """Default quadrotor prediction model."""
    return QuadrotorModel()


@pytest.fixture
def operating_points(model):
    """
    Representative (name, x, u) operating points.

    hover, forward flight, banked turn and an aggressive maneuver.
    """
    g = model.params.gravity

    hover_x = model.hover_state(position=[0.0, 1.0, 0.0])
    hover_u = model.hover_input()

    forward_x = model.pack_state(
        position=[1.0, 2.0, -0.5],
        velocity=[4.0, 0.0, 0.0],
        quaternion=tilt_quaternion(0.0, 0.0, -0.2),
        thrust=g / np.cos(0.2),
        rates=[0.0, 0.0, 0.0],
    )
    forward_u = np.array([g / np.cos(0.2), 0.1, 0.0, 0.0])

    banked_x = model.pack_state(
        position=[2.0, 1.5, 2.0],
        velocity=[-2.0, 0.0, 2.0],
        quaternion=tilt_quaternion(0.7, 0.15, 0.35),
        thrust=11.0,
        rates=[0.3, -0.2, 0.5],
    )
    banked_u = np.array([11.5, 0.2, -0.1, 0.6])

    aggressive_x = model.pack_state(
        position=[-3.0, 4.0, 1.0],
        velocity=[6.0, -2.0, -5.0],
        quaternion=quat_normalize(np.array([0.8, 0.3, -0.4, 0.35])),
        thrust=16.0,
        rates=[3.0, -4.0, 1.5],
    )
    aggressive_u = np.array([18.0, -5.0, 6.0, -2.0])

    return [
        ("hover", hover_x, hover_u),
        ("forward", forward_x, forward_u),
        ("banked", banked_x, banked_u),
        ("aggressive", aggressive_x, aggressive_u),
    ]


# =============================================================================
# Common Test Utilities
# =============================================================================


def assert_unit_quaternion(q, tol=1e-10):
    """Assert that q is a unit quaternion."""
    assert q.shape == (4,), f"Expected shape (4,), got {q.shape}"

    norm = np.linalg.norm(q)
    np.testing.assert_allclose(norm, 1.0, atol=tol, err_msg=f"Quaternion norm is {norm}, expected 1.0")


def assert_same_rotation(q1, q2, tol=1e-10):
    """Assert that q1 and q2 encode the same rotation (q ≡ -q)."""
    q1 = np.asarray(q1)
    q2 = np.asarray(q2)
    if np.dot(q1, q2) < 0:
        q2 = -q2
    np.testing.assert_allclose(q1, q2, atol=tol)


@pytest.fixture
def assert_unit_quat():
    """Fixture providing unit quaternion assertion."""
    return assert_unit_quaternion


@pytest.fixture
def assert_rotation_equal():
    """Fixture providing sign-insensitive quaternion comparison."""
    return assert_same_rotation


# =============================================================================
# Pytest Configuration
# =============================================================================


def pytest_configure(config):
    """Configure custom markers."""
    config.addinivalue_line("markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')")
    config.addinivalue_line("markers", "integration: marks tests as integration tests")
