"""
Abstract base class for discrete-time dynamical systems.

Models used by the controller inherit from this class. A model provides a
one-step discrete map x_{k+1} = f(x_k, u_k, dt) together with its analytical
Jacobians; the base class supplies finite-difference Jacobians, the affine
linearization residual, sequential rollout and Jacobian verification.
"""

from abc import ABC, abstractmethod
from typing import Dict, List, NamedTuple, Tuple

import numpy as np

LINEARIZATION_METHODS = ("analytical", "numerical")


class Linearization(NamedTuple):
    """
    First-order model of one discrete step about an operating point.

    x_{k+1} ≈ A @ x_k + B @ u_k + c
    """

    A: np.ndarray
    B: np.ndarray
    c: np.ndarray


class DynamicalSystem(ABC):
    """
    Abstract base class for discrete-time dynamical systems.

    Attributes
    ----------
    params : object
        System parameters. Structure depends on the specific system.
    """

    def __init__(self, params=None):
        self.params = params

    # =========================================================================
    # Abstract Properties - Subclasses MUST define these
    # =========================================================================

    @property
    @abstractmethod
    def n_state(self) -> int:
        """Dimension of the state vector x."""
        pass

    @property
    @abstractmethod
    def n_control(self) -> int:
        """Dimension of the control vector u."""
        pass

    @property
    @abstractmethod
    def state_names(self) -> List[str]:
        """Human-readable names for each state element."""
        pass

    @property
    @abstractmethod
    def control_names(self) -> List[str]:
        """Human-readable names for each control element."""
        pass

    # =========================================================================
    # Abstract Methods - Subclasses MUST implement these
    # =========================================================================

    @abstractmethod
    def dynamics(self, x: np.ndarray, u: np.ndarray, dt: float) -> np.ndarray:
        """
        Discrete-time dynamics: x_{k+1} = f(x_k, u_k, dt).

        Parameters
        ----------
        x : np.ndarray, shape (n_state,)
            Current state vector.
        u : np.ndarray, shape (n_control,)
            Control input, held constant over the step.
        dt : float
            Step duration.

        Returns
        -------
        np.ndarray, shape (n_state,)
            Next state.
        """
        pass

    @abstractmethod
    def jacobians(self, x: np.ndarray, u: np.ndarray, dt: float) -> Tuple[np.ndarray, np.ndarray]:
        """
        Analytical Jacobians of the discrete map.

        Returns
        -------
        A : np.ndarray, shape (n_state, n_state)
            ∂f/∂x at (x, u).
        B : np.ndarray, shape (n_state, n_control)
            ∂f/∂u at (x, u).
        """
        pass

    # =========================================================================
    # Concrete Methods - Default implementations (can be overridden)
    # =========================================================================

    def normalize_state(self, x: np.ndarray) -> np.ndarray:
        """
        Project a state back onto the valid state manifold.

        Identity by default. Systems with constrained coordinates (e.g. unit
        quaternions) override this; it is applied to perturbed states during
        finite differencing.
        """
        return np.asarray(x, dtype=np.float64)

    def jacobian_numerical(
        self, x: np.ndarray, u: np.ndarray, dt: float, eps: float = 1e-6
    ) -> Tuple[np.ndarray, np.ndarray]:
        """
        Compute Jacobians numerically using one-sided differences.

        Each perturbed state is passed through :meth:`normalize_state`
        before evaluation. This is the reference the analytical Jacobians
        are checked against.

        Parameters
        ----------
        x : np.ndarray, shape (n_state,)
            State at which to compute Jacobians.
        u : np.ndarray, shape (n_control,)
            Control at which to compute Jacobians.
        dt : float
            Step duration.
        eps : float, optional
            Perturbation size.

        Returns
        -------
        A_num : np.ndarray, shape (n_state, n_state)
            Numerical state Jacobian.
        B_num : np.ndarray, shape (n_state, n_control)
            Numerical control Jacobian.
        """
        x = np.asarray(x, dtype=np.float64)
        u = np.asarray(u, dtype=np.float64)
        f0 = self.dynamics(x, u, dt)

        A_num = np.zeros((self.n_state, self.n_state))
        for j in range(self.n_state):
            x_plus = x.copy()
            x_plus[j] += eps
            x_plus = self.normalize_state(x_plus)
            A_num[:, j] = (self.dynamics(x_plus, u, dt) - f0) / eps

        B_num = np.zeros((self.n_state, self.n_control))
        for j in range(self.n_control):
            u_plus = u.copy()
            u_plus[j] += eps
            B_num[:, j] = (self.dynamics(x, u_plus, dt) - f0) / eps

        return A_num, B_num

    def affine_term(self, x: np.ndarray, u: np.ndarray, dt: float, A: np.ndarray, B: np.ndarray) -> np.ndarray:
        """Residual c = f(x, u) - A x - B u of a linearization."""
        x = np.asarray(x, dtype=np.float64)
        u = np.asarray(u, dtype=np.float64)
        return self.dynamics(x, u, dt) - A @ x - B @ u

    def linearize(self, x: np.ndarray, u: np.ndarray, dt: float, method: str = "analytical") -> Linearization:
        """
        Linearize one discrete step about an operating point.

        Parameters
        ----------
        x : np.ndarray, shape (n_state,)
            State operating point.
        u : np.ndarray, shape (n_control,)
            Control operating point.
        dt : float
            Step duration.
        method : str, optional
            'analytical' (default) or 'numerical'.

        Returns
        -------
        Linearization
            (A, B, c) with x_{k+1} ≈ A x + B u + c.

        Raises
        ------
        ValueError
            If an unknown linearization method is specified.
        """
        if method == "analytical":
            A, B = self.jacobians(x, u, dt)
        elif method == "numerical":
            A, B = self.jacobian_numerical(x, u, dt)
        else:
            available = ", ".join(LINEARIZATION_METHODS)
            raise ValueError(f"Unknown linearization method: '{method}'. Available methods: {available}")

        c = self.affine_term(x, u, dt, A, B)
        return Linearization(A, B, c)

    def rollout(self, x0: np.ndarray, inputs: np.ndarray, dt: float) -> np.ndarray:
        """
        Apply the dynamics sequentially to an input sequence.

        Parameters
        ----------
        x0 : np.ndarray, shape (n_state,)
            Initial state.
        inputs : np.ndarray, shape (N, n_control)
            Inputs applied at each step.
        dt : float
            Step duration.

        Returns
        -------
        np.ndarray, shape (N + 1, n_state)
            States x_0 ... x_N, starting with a copy of x0.
        """
        inputs = np.asarray(inputs, dtype=np.float64).reshape(-1, self.n_control)
        states = np.zeros((len(inputs) + 1, self.n_state))
        states[0] = np.asarray(x0, dtype=np.float64)

        for k, u_k in enumerate(inputs):
            states[k + 1] = self.dynamics(states[k], u_k, dt)

        return states

    def verify_jacobians(
        self, x: np.ndarray, u: np.ndarray, dt: float, eps: float = 1e-6, tol: float = 1e-2
    ) -> Tuple[bool, Dict[str, float]]:
        """
        Verify analytical Jacobians against numerical computation.

        Parameters
        ----------
        x : np.ndarray, shape (n_state,)
            State at which to verify.
        u : np.ndarray, shape (n_control,)
            Control at which to verify.
        dt : float
            Step duration.
        eps : float, optional
            Perturbation size for numerical Jacobians.
        tol : float, optional
            Tolerance for relative Frobenius error.

        Returns
        -------
        passed : bool
            True if both Jacobians are within tolerance.
        errors : dict
            Dictionary with relative errors for A and B matrices.
        """
        A_analytical, B_analytical = self.jacobians(x, u, dt)
        A_numerical, B_numerical = self.jacobian_numerical(x, u, dt, eps)

        A_error = relative_error(A_analytical, A_numerical)
        B_error = relative_error(B_analytical, B_numerical)

        passed = (A_error < tol) and (B_error < tol)
        errors = {"A_relative_error": A_error, "B_relative_error": B_error}

        return passed, errors

    def __repr__(self) -> str:
        """String representation of the system."""
        return f"{self.__class__.__name__}(n_state={self.n_state}, n_control={self.n_control})"


def relative_error(approx: np.ndarray, reference: np.ndarray) -> float:
    """
    Relative Frobenius error ‖approx - reference‖ / ‖reference‖.

    Falls back to the absolute error when the reference is zero.
    """
    diff = np.linalg.norm(approx - reference)
    ref_norm = np.linalg.norm(reference)
    if ref_norm > 0:
        return float(diff / ref_norm)
    return float(diff)
