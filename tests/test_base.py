"""
Tests for the DynamicalSystem abstract base class.

These tests verify:
1. Abstract class behavior (cannot instantiate directly)
2. Default method implementations
3. Rollout
4. Linearization and Jacobian verification utilities
"""

from typing import List

import numpy as np
import pytest

from quadmpc import DynamicalSystem, Linearization
from quadmpc.base import relative_error

# =============================================================================
# Test Fixtures - Concrete System Implementations
# =============================================================================


class DoubleIntegrator1D(DynamicalSystem):
    """
    Discrete 1D double integrator.

    State: [position, velocity]
    Control: [acceleration]
    Dynamics: p' = p + v·dt + a·dt²/2, v' = v + a·dt
    """

    @property
    def n_state(self) -> int:
        return 2

    @property
    def n_control(self) -> int:
        return 1

    @property
    def state_names(self) -> List[str]:
        return ["position", "velocity"]

    @property
    def control_names(self) -> List[str]:
        return ["acceleration"]

    def dynamics(self, x, u, dt):
        p, v = np.asarray(x, dtype=np.float64)
        a = float(np.asarray(u)[0])
        return np.array([p + v * dt + 0.5 * a * dt * dt, v + a * dt])

    def jacobians(self, x, u, dt):  # noqa: ARG002
        A = np.array([[1.0, dt], [0.0, 1.0]])
        B = np.array([[0.5 * dt * dt], [dt]])
        return A, B


class Pendulum(DynamicalSystem):
    """
    Pendulum stepped with explicit Euler.

    State: [theta, theta_dot]
    Control: [torque]
    """

    def __init__(self, params=None):
        if params is None:
            params = {"mass": 1.0, "length": 1.0, "gravity": 9.81}
        super().__init__(params)

    @property
    def n_state(self) -> int:
        return 2

    @property
    def n_control(self) -> int:
        return 1

    @property
    def state_names(self) -> List[str]:
        return ["theta", "theta_dot"]

    @property
    def control_names(self) -> List[str]:
        return ["torque"]

    def dynamics(self, x, u, dt):
        m = self.params["mass"]
        l = self.params["length"]
        g = self.params["gravity"]

        theta, theta_dot = np.asarray(x, dtype=np.float64)
        theta_ddot = -g / l * np.sin(theta) + u[0] / (m * l**2)
        return np.array([theta + dt * theta_dot, theta_dot + dt * theta_ddot])

    def jacobians(self, x, u, dt):  # noqa: ARG002
        m = self.params["mass"]
        l = self.params["length"]
        g = self.params["gravity"]

        A = np.array([[1.0, dt], [-dt * g / l * np.cos(x[0]), 1.0]])
        B = np.array([[0.0], [dt / (m * l**2)]])
        return A, B


class BrokenPendulum(Pendulum):
    """Pendulum with a wrong sign in its analytical Jacobian."""

    def jacobians(self, x, u, dt):
        A, B = super().jacobians(x, u, dt)
        A[1, 0] = -A[1, 0]
        return A, B


class IncompleteSystem(DynamicalSystem):
    """System that doesn't implement all abstract methods - for testing."""

    @property
    def n_state(self) -> int:
        return 2

    @property
    def n_control(self) -> int:
        return 1

    # Missing: state_names, control_names, dynamics, jacobians


@pytest.fixture
def double_integrator():
    return DoubleIntegrator1D()


@pytest.fixture
def pendulum():
    return Pendulum()


# =============================================================================
# Test: Abstract Class Behavior
# =============================================================================


class TestAbstractBehavior:
    """Tests for abstract class enforcement."""

    def test_cannot_instantiate_base_class(self):
        """DynamicalSystem should not be instantiable directly."""
        with pytest.raises(TypeError):
            DynamicalSystem()

    def test_incomplete_implementation_raises(self):
        """Incomplete implementations should raise TypeError."""
        with pytest.raises(TypeError):
            IncompleteSystem()


# =============================================================================
# Test: Properties
# =============================================================================


class TestProperties:
    """Tests for system properties."""

    def test_dimensions(self, double_integrator, pendulum):
        assert double_integrator.n_state == 2
        assert double_integrator.n_control == 1
        assert pendulum.n_state == 2

    def test_names_match_dimensions(self, double_integrator):
        assert len(double_integrator.state_names) == double_integrator.n_state
        assert len(double_integrator.control_names) == double_integrator.n_control

    def test_params_default_none(self, double_integrator):
        assert double_integrator.params is None

    def test_params_custom(self):
        pend = Pendulum(params={"mass": 2.0, "length": 0.5, "gravity": 10.0})
        assert pend.params["mass"] == 2.0
        assert pend.params["length"] == 0.5

    def test_repr(self, double_integrator):
        repr_str = repr(double_integrator)
        assert "DoubleIntegrator1D" in repr_str
        assert "n_state=2" in repr_str
        assert "n_control=1" in repr_str

    def test_normalize_state_default_identity(self, double_integrator):
        x = np.array([1.5, -2.0])
        np.testing.assert_array_equal(double_integrator.normalize_state(x), x)


# =============================================================================
# Test: Rollout
# =============================================================================


class TestRollout:
    """Tests for sequential application of the dynamics."""

    def test_rollout_shape(self, double_integrator):
        states = double_integrator.rollout(np.zeros(2), np.ones((5, 1)), 0.1)
        assert states.shape == (6, 2)

    def test_rollout_starts_at_x0(self, double_integrator):
        x0 = np.array([1.0, 2.0])
        states = double_integrator.rollout(x0, np.zeros((3, 1)), 0.1)
        np.testing.assert_array_equal(states[0], x0)

    def test_rollout_constant_acceleration(self, double_integrator):
        """Exact discretization reproduces p = a t² / 2."""
        states = double_integrator.rollout(np.zeros(2), np.ones((10, 1)), 0.1)
        np.testing.assert_allclose(states[-1], [0.5, 1.0])

    def test_rollout_empty_inputs(self, double_integrator):
        states = double_integrator.rollout(np.array([3.0, 0.0]), np.zeros((0, 1)), 0.1)
        assert states.shape == (1, 2)

    def test_rollout_matches_stepping(self, pendulum):
        inputs = np.array([[0.5], [-0.2], [0.0], [1.0]])
        states = pendulum.rollout(np.array([0.3, 0.0]), inputs, 0.05)

        x = np.array([0.3, 0.0])
        for k, u in enumerate(inputs):
            x = pendulum.dynamics(x, u, 0.05)
            np.testing.assert_allclose(states[k + 1], x)


# =============================================================================
# Test: Linearization
# =============================================================================


class TestLinearization:
    """Tests for Jacobians and the affine linearization."""

    def test_numerical_matches_analytical_linear(self, double_integrator):
        x = np.array([1.0, 2.0])
        u = np.array([0.3])
        A_num, B_num = double_integrator.jacobian_numerical(x, u, 0.1)
        A, B = double_integrator.jacobians(x, u, 0.1)

        np.testing.assert_allclose(A_num, A, atol=1e-6)
        np.testing.assert_allclose(B_num, B, atol=1e-6)

    def test_numerical_matches_analytical_nonlinear(self, pendulum):
        x = np.array([0.8, -0.4])
        u = np.array([0.2])
        A_num, B_num = pendulum.jacobian_numerical(x, u, 0.05)
        A, B = pendulum.jacobians(x, u, 0.05)

        np.testing.assert_allclose(A_num, A, atol=1e-5)
        np.testing.assert_allclose(B_num, B, atol=1e-5)

    @pytest.mark.parametrize("method", ["analytical", "numerical"])
    def test_linearize_returns_named_tuple(self, pendulum, method):
        lin = pendulum.linearize(np.array([0.2, 0.0]), np.array([0.0]), 0.05, method=method)

        assert isinstance(lin, Linearization)
        assert lin.A.shape == (2, 2)
        assert lin.B.shape == (2, 1)
        assert lin.c.shape == (2,)

    def test_affine_term_reproduces_dynamics(self, pendulum):
        """A x + B u + c equals f(x, u) at the operating point."""
        x = np.array([1.1, 0.7])
        u = np.array([-0.5])
        A, B, c = pendulum.linearize(x, u, 0.05)

        np.testing.assert_allclose(A @ x + B @ u + c, pendulum.dynamics(x, u, 0.05), atol=1e-12)

    def test_affine_term_zero_for_linear_system(self, double_integrator):
        _, _, c = double_integrator.linearize(np.array([1.0, 2.0]), np.array([0.3]), 0.1)
        np.testing.assert_allclose(c, 0.0, atol=1e-12)

    def test_unknown_method_raises(self, pendulum):
        with pytest.raises(ValueError, match="analytical, numerical"):
            pendulum.linearize(np.zeros(2), np.zeros(1), 0.05, method="rk4")


class TestJacobianVerification:
    """Tests for verify_jacobians."""

    def test_correct_jacobians_pass(self, pendulum):
        passed, errors = pendulum.verify_jacobians(np.array([0.8, -0.4]), np.array([0.2]), 0.05)

        assert passed
        assert errors["A_relative_error"] < 1e-4
        assert errors["B_relative_error"] < 1e-4

    def test_wrong_jacobians_fail(self):
        passed, errors = BrokenPendulum().verify_jacobians(np.array([0.8, -0.4]), np.array([0.2]), 0.05)

        assert not passed
        assert errors["A_relative_error"] > 1e-2


class TestRelativeError:
    def test_relative(self):
        assert np.isclose(relative_error(np.array([1.1]), np.array([1.0])), 0.1)

    def test_zero_reference_falls_back_to_absolute(self):
        assert np.isclose(relative_error(np.array([0.5, 0.0]), np.zeros(2)), 0.5)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
