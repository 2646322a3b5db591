"""
Box-constrained quadratic program solver.

Solves problems of the form

    min  (1/2) xᵀHx + gᵀx
    s.t. lb ≤ x ≤ ub
         A_eq x = b_eq      (optional)

with accelerated projected-gradient descent (Nesterov / FISTA momentum).
The solver is meant for receding-horizon control: it runs a bounded number
of cheap iterations and returns the best available iterate together with a
convergence flag. It never raises for numerical reasons; degenerate inputs
are absorbed by small regularization terms.

An unconstrained path solves Hx = -g directly through a regularized
Cholesky factorization.

References
----------
- Beck & Teboulle (2009) - A fast iterative shrinkage-thresholding algorithm
- Nesterov (1983) - A method for solving the convex programming problem
  with convergence rate O(1/k²)
"""

from dataclasses import dataclass
from typing import Optional

import numpy as np

# Regularization applied to pivots and eigenvalue estimates
REGULARIZATION = 1e-10
STEP_REGULARIZATION = 1e-8


# =============================================================================
# Problem, Options and Solution
# =============================================================================


@dataclass
class QPProblem:
    """
    Quadratic program data.

    Attributes
    ----------
    H : np.ndarray, shape (n, n)
        Hessian, expected symmetric positive semi-definite.
    g : np.ndarray, shape (n,)
        Linear term.
    lb, ub : np.ndarray, shape (n,), optional
        Box bounds. Missing bounds default to -inf / +inf.
    A_eq : np.ndarray, shape (m, n), optional
        Equality constraint matrix.
    b_eq : np.ndarray, shape (m,), optional
        Equality constraint right-hand side.
    """

    H: np.ndarray
    g: np.ndarray
    lb: Optional[np.ndarray] = None
    ub: Optional[np.ndarray] = None
    A_eq: Optional[np.ndarray] = None
    b_eq: Optional[np.ndarray] = None

    def __post_init__(self):
        """Convert to arrays and validate shapes."""
        self.g = np.asarray(self.g, dtype=np.float64).reshape(-1)
        n = self.g.shape[0]

        self.H = np.asarray(self.H, dtype=np.float64)
        if self.H.shape != (n, n):
            raise ValueError(f"H must be ({n},{n}), got {self.H.shape}")

        self.lb = np.full(n, -np.inf) if self.lb is None else np.asarray(self.lb, dtype=np.float64).reshape(-1)
        self.ub = np.full(n, np.inf) if self.ub is None else np.asarray(self.ub, dtype=np.float64).reshape(-1)
        if self.lb.shape != (n,):
            raise ValueError(f"lb must be ({n},), got {self.lb.shape}")
        if self.ub.shape != (n,):
            raise ValueError(f"ub must be ({n},), got {self.ub.shape}")

        if (self.A_eq is None) != (self.b_eq is None):
            raise ValueError("A_eq and b_eq must be given together")
        if self.A_eq is not None:
            self.A_eq = np.atleast_2d(np.asarray(self.A_eq, dtype=np.float64))
            self.b_eq = np.asarray(self.b_eq, dtype=np.float64).reshape(-1)
            if self.A_eq.shape[1] != n:
                raise ValueError(f"A_eq must have {n} columns, got {self.A_eq.shape[1]}")
            if self.b_eq.shape != (self.A_eq.shape[0],):
                raise ValueError(f"b_eq must be ({self.A_eq.shape[0]},), got {self.b_eq.shape}")

    @property
    def n_variables(self) -> int:
        return self.g.shape[0]

    @property
    def has_equality(self) -> bool:
        return self.A_eq is not None and self.A_eq.shape[0] > 0

    def cost(self, x: np.ndarray) -> float:
        """Objective value (1/2) xᵀHx + gᵀx."""
        x = np.asarray(x, dtype=np.float64)
        return float(0.5 * x @ self.H @ x + self.g @ x)


@dataclass
class QPOptions:
    """
    Solver options.

    Attributes
    ----------
    max_iterations : int
        Iteration cap.
    tolerance : float
        Convergence threshold on the step norm ‖x_{k+1} - x_k‖.
    warm_start : np.ndarray, optional
        Initial iterate. Defaults to zeros.
    step_size : float, optional
        Fixed gradient step. Defaults to 1/(λ̄ + 1e-8) with λ̄ a Gershgorin
        bound on the largest eigenvalue of H.
    """

    max_iterations: int = 100
    tolerance: float = 1e-6
    warm_start: Optional[np.ndarray] = None
    step_size: Optional[float] = None

    def __post_init__(self):
        if self.max_iterations < 1:
            raise ValueError(f"max_iterations must be at least 1, got {self.max_iterations}")
        if self.tolerance < 0:
            raise ValueError(f"tolerance must be non-negative, got {self.tolerance}")
        if self.step_size is not None and self.step_size <= 0:
            raise ValueError(f"step_size must be positive, got {self.step_size}")


@dataclass
class QPSolution:
    """
    Solver result.

    ``x`` is the best available iterate whether or not the solver converged.

    Attributes
    ----------
    x : np.ndarray, shape (n,)
        Final iterate.
    cost : float
        Objective value at x.
    iterations : int
        Number of iterations performed.
    converged : bool
        True if the step norm fell below the tolerance.
    residual : float
        Final step norm.
    """

    x: np.ndarray
    cost: float
    iterations: int
    converged: bool
    residual: float


# =============================================================================
# Accelerated Projected Gradient
# =============================================================================


def gershgorin_bound(H: np.ndarray) -> float:
    """
    Upper bound on the largest eigenvalue of H.

    max_i ( H_ii + Σ_{j≠i} |H_ij| ), floored at zero.
    """
    H = np.asarray(H, dtype=np.float64)
    if H.size == 0:
        return 0.0
    diag = np.diag(H)
    off_diag = np.sum(np.abs(H), axis=1) - np.abs(diag)
    return float(max(0.0, np.max(diag + off_diag)))


def estimate_step_size(H: np.ndarray) -> float:
    """Gradient step 1/(λ̄ + 1e-8) from the Gershgorin eigenvalue bound."""
    return 1.0 / (gershgorin_bound(H) + STEP_REGULARIZATION)


def project_box(x: np.ndarray, lb: np.ndarray, ub: np.ndarray) -> np.ndarray:
    """Clip x onto [lb, ub] element-wise."""
    return np.minimum(ub, np.maximum(lb, x))


def project_equality(x: np.ndarray, A_eq: np.ndarray, b_eq: np.ndarray) -> np.ndarray:
    """
    Least-squares projection onto {x : A_eq x = b_eq}.

    x ← x + A_eqᵀ (A_eq A_eqᵀ)⁻¹ (b_eq - A_eq x)
    """
    residual = b_eq - A_eq @ x
    multipliers = solve_linear_system(A_eq @ A_eq.T, residual)
    return x + A_eq.T @ multipliers


def solve_qp(problem: QPProblem, options: Optional[QPOptions] = None) -> QPSolution:
    """
    Solve a box-constrained QP with Nesterov-accelerated projected gradient.

    Each iteration evaluates the gradient at the momentum point y, takes a
    gradient step, projects onto the box (and, if present, onto the
    equality constraints followed by a second box projection), then
    updates the momentum with t ← (1 + √(1 + 4t²))/2, β = (t_old - 1)/t.

    Parameters
    ----------
    problem : QPProblem
        Problem data.
    options : QPOptions, optional
        Solver options. Defaults to ``QPOptions()``.

    Returns
    -------
    QPSolution
        Best available iterate and convergence information.

    Examples
    --------
    >>> problem = QPProblem(H=np.eye(2), g=np.array([2.0, 3.0]), lb=-np.ones(2), ub=np.ones(2))
    >>> solve_qp(problem).x
    array([-1., -1.])
    """
    if options is None:
        options = QPOptions()

    n = problem.n_variables
    if options.warm_start is not None:
        x = np.asarray(options.warm_start, dtype=np.float64).reshape(-1).copy()
        if x.shape != (n,):
            raise ValueError(f"warm_start must be ({n},), got {x.shape}")
    else:
        x = np.zeros(n)
    y = x.copy()

    step = options.step_size if options.step_size is not None else estimate_step_size(problem.H)

    t = 1.0
    converged = False
    iterations = 0
    residual = np.inf

    for k in range(options.max_iterations):
        iterations = k + 1

        grad = problem.H @ y + problem.g
        x_new = project_box(y - step * grad, problem.lb, problem.ub)

        if problem.has_equality:
            x_new = project_equality(x_new, problem.A_eq, problem.b_eq)
            x_new = project_box(x_new, problem.lb, problem.ub)

        t_new = 0.5 * (1.0 + np.sqrt(1.0 + 4.0 * t * t))
        beta = (t - 1.0) / t_new
        y = x_new + beta * (x_new - x)

        residual = float(np.linalg.norm(x_new - x))
        x = x_new
        t = t_new

        if residual < options.tolerance:
            converged = True
            break

    return QPSolution(
        x=x,
        cost=problem.cost(x),
        iterations=iterations,
        converged=converged,
        residual=residual,
    )


# =============================================================================
# Unconstrained Path
# =============================================================================


def cholesky(A: np.ndarray) -> np.ndarray:
    """
    Regularized Cholesky factorization A = L Lᵀ.

    Diagonal entries are sqrt(max(0, ·) + 1e-10) and off-diagonal divisions
    are guarded by +1e-10, so the factorization completes for singular or
    slightly indefinite input.

    Parameters
    ----------
    A : np.ndarray, shape (n, n)
        Symmetric matrix.

    Returns
    -------
    np.ndarray, shape (n, n)
        Lower-triangular factor L.
    """
    A = np.asarray(A, dtype=np.float64)
    n = A.shape[0]
    L = np.zeros((n, n))

    for i in range(n):
        for j in range(i + 1):
            s = L[i, :j] @ L[j, :j]
            if i == j:
                L[i, j] = np.sqrt(max(0.0, A[i, i] - s) + REGULARIZATION)
            else:
                L[i, j] = (A[i, j] - s) / (L[j, j] + REGULARIZATION)

    return L


def forward_substitution(L: np.ndarray, b: np.ndarray) -> np.ndarray:
    """Solve L x = b for lower-triangular L."""
    L = np.asarray(L, dtype=np.float64)
    b = np.asarray(b, dtype=np.float64)
    n = b.shape[0]
    x = np.zeros(n)
    for i in range(n):
        x[i] = (b[i] - L[i, :i] @ x[:i]) / (L[i, i] + REGULARIZATION)
    return x


def backward_substitution(L: np.ndarray, b: np.ndarray) -> np.ndarray:
    """Solve Lᵀ x = b for lower-triangular L."""
    L = np.asarray(L, dtype=np.float64)
    b = np.asarray(b, dtype=np.float64)
    n = b.shape[0]
    x = np.zeros(n)
    for i in range(n - 1, -1, -1):
        x[i] = (b[i] - L[i + 1 :, i] @ x[i + 1 :]) / (L[i, i] + REGULARIZATION)
    return x


def solve_unconstrained(H: np.ndarray, g: np.ndarray) -> np.ndarray:
    """
    Minimize (1/2) xᵀHx + gᵀx without constraints by solving Hx = -g.

    Parameters
    ----------
    H : np.ndarray, shape (n, n)
        Symmetric positive (semi-)definite Hessian.
    g : np.ndarray, shape (n,)
        Linear term.

    Returns
    -------
    np.ndarray, shape (n,)
        Minimizer (regularized if H is singular).

    Examples
    --------
    >>> solve_unconstrained(np.array([[2.0, 1.0], [1.0, 1.0]]), np.array([1.0, -1.0]))
    array([-2.,  3.])
    """
    H = np.asarray(H, dtype=np.float64)
    g = np.asarray(g, dtype=np.float64).reshape(-1)
    if H.shape != (g.shape[0], g.shape[0]):
        raise ValueError(f"H must be ({g.shape[0]},{g.shape[0]}), got {H.shape}")

    L = cholesky(H)
    y = forward_substitution(L, -g)
    return backward_substitution(L, y)


def solve_linear_system(A: np.ndarray, b: np.ndarray) -> np.ndarray:
    """
    Gaussian elimination with partial pivoting.

    Pivots are guarded by +1e-10 so singular systems return a finite,
    best-effort answer instead of raising.
    """
    M = np.array(A, dtype=np.float64)
    r = np.array(b, dtype=np.float64).reshape(-1)
    n = r.shape[0]

    for k in range(n):
        pivot = k + int(np.argmax(np.abs(M[k:, k])))
        if pivot != k:
            M[[k, pivot]] = M[[pivot, k]]
            r[[k, pivot]] = r[[pivot, k]]

        for i in range(k + 1, n):
            factor = M[i, k] / (M[k, k] + REGULARIZATION)
            M[i, k:] -= factor * M[k, k:]
            r[i] -= factor * r[k]

    x = np.zeros(n)
    for i in range(n - 1, -1, -1):
        x[i] = (r[i] - M[i, i + 1 :] @ x[i + 1 :]) / (M[i, i] + REGULARIZATION)
    return x
