"""
Tests for the box-constrained QP solver.

These tests verify:
1. Problem validation
2. Closed-form unconstrained and bound-active solutions
3. Equality constraints
4. Cholesky path and substitutions
5. Best-effort behavior on degenerate problems
"""

import numpy as np
import pytest

from quadmpc.solvers.qp import (
    QPOptions,
    QPProblem,
    QPSolution,
    backward_substitution,
    cholesky,
    estimate_step_size,
    forward_substitution,
    gershgorin_bound,
    project_box,
    solve_linear_system,
    solve_qp,
    solve_unconstrained,
)

# =============================================================================
# Test: Problem and Options
# =============================================================================


class TestProblemValidation:
    """Tests for QPProblem and QPOptions."""

    def test_default_bounds_are_infinite(self):
        problem = QPProblem(H=np.eye(3), g=np.zeros(3))

        assert problem.n_variables == 3
        assert np.all(np.isneginf(problem.lb))
        assert np.all(np.isposinf(problem.ub))
        assert not problem.has_equality

    def test_hessian_shape_mismatch(self):
        with pytest.raises(ValueError):
            QPProblem(H=np.eye(3), g=np.zeros(2))

    def test_bound_shape_mismatch(self):
        with pytest.raises(ValueError):
            QPProblem(H=np.eye(2), g=np.zeros(2), lb=np.zeros(3))

    def test_equality_requires_both_parts(self):
        with pytest.raises(ValueError):
            QPProblem(H=np.eye(2), g=np.zeros(2), A_eq=np.ones((1, 2)))

    def test_equality_column_mismatch(self):
        with pytest.raises(ValueError):
            QPProblem(H=np.eye(2), g=np.zeros(2), A_eq=np.ones((1, 3)), b_eq=np.zeros(1))

    def test_cost(self):
        problem = QPProblem(H=np.array([[2.0, 0.0], [0.0, 4.0]]), g=np.array([1.0, -1.0]))
        # 0.5 * (2 + 4) + (1 - 1)
        assert np.isclose(problem.cost(np.ones(2)), 3.0)

    def test_invalid_options(self):
        with pytest.raises(ValueError):
            QPOptions(max_iterations=0)
        with pytest.raises(ValueError):
            QPOptions(tolerance=-1.0)
        with pytest.raises(ValueError):
            QPOptions(step_size=0.0)


# =============================================================================
# Test: Step Size
# =============================================================================


class TestStepSize:
    def test_gershgorin_bound_dominates_spectrum(self, rng):
        M = rng.standard_normal((6, 6))
        H = M @ M.T
        assert gershgorin_bound(H) >= np.max(np.linalg.eigvalsh(H)) - 1e-12

    def test_gershgorin_bound_known(self):
        assert gershgorin_bound(np.array([[2.0, 1.0], [1.0, 1.0]])) == 3.0

    def test_gershgorin_bound_zero_matrix(self):
        assert gershgorin_bound(np.zeros((3, 3))) == 0.0

    def test_step_size_finite_for_zero_hessian(self):
        step = estimate_step_size(np.zeros((2, 2)))
        assert np.isfinite(step)
        assert step > 0

    def test_project_box(self):
        x = project_box(np.array([-3.0, 0.5, 7.0]), -np.ones(3), np.ones(3))
        np.testing.assert_array_equal(x, [-1.0, 0.5, 1.0])


# =============================================================================
# Test: Accelerated Projected Gradient
# =============================================================================


class TestSolveQP:
    """Closed-form checks for solve_qp."""

    def test_identity_unconstrained(self):
        """H = I, g = [2, 3] gives x = -g."""
        solution = solve_qp(QPProblem(H=np.eye(2), g=np.array([2.0, 3.0])))

        assert isinstance(solution, QPSolution)
        assert solution.converged
        np.testing.assert_allclose(solution.x, [-2.0, -3.0], atol=1e-6)

    def test_identity_box_active(self):
        """Both bounds active at the solution."""
        problem = QPProblem(H=np.eye(2), g=np.array([2.0, 3.0]), lb=-np.ones(2), ub=np.ones(2))
        solution = solve_qp(problem)

        assert solution.converged
        np.testing.assert_allclose(solution.x, [-1.0, -1.0])
        assert np.isclose(solution.cost, problem.cost(solution.x))

    def test_cross_term_hessian(self):
        """H = [[2, 1], [1, 1]], g = [1, -1] gives x = -H⁻¹g = [-2, 3]."""
        problem = QPProblem(H=np.array([[2.0, 1.0], [1.0, 1.0]]), g=np.array([1.0, -1.0]))
        solution = solve_qp(problem, QPOptions(max_iterations=20000, tolerance=1e-12))

        np.testing.assert_allclose(solution.x, [-2.0, 3.0], atol=1e-3)

    def test_solution_within_bounds(self, rng):
        M = rng.standard_normal((5, 5))
        problem = QPProblem(H=M @ M.T + np.eye(5), g=10.0 * rng.standard_normal(5), lb=-0.5 * np.ones(5), ub=np.ones(5))
        solution = solve_qp(problem)

        assert np.all(solution.x >= problem.lb)
        assert np.all(solution.x <= problem.ub)

    def test_matches_unconstrained_path(self, rng):
        M = rng.standard_normal((4, 4))
        H = M @ M.T + 2.0 * np.eye(4)
        g = rng.standard_normal(4)

        solution = solve_qp(QPProblem(H=H, g=g), QPOptions(max_iterations=20000, tolerance=1e-12))
        np.testing.assert_allclose(solution.x, solve_unconstrained(H, g), atol=1e-4)

    def test_iteration_cap_reports_non_convergence(self):
        problem = QPProblem(H=np.array([[2.0, 1.0], [1.0, 1.0]]), g=np.array([1.0, -1.0]))
        solution = solve_qp(problem, QPOptions(max_iterations=3, tolerance=1e-12))

        assert not solution.converged
        assert solution.iterations == 3
        assert np.all(np.isfinite(solution.x))

    def test_warm_start_at_optimum(self):
        problem = QPProblem(H=np.eye(2), g=np.array([2.0, 3.0]))
        solution = solve_qp(problem, QPOptions(warm_start=np.array([-2.0, -3.0])))

        assert solution.converged
        assert solution.iterations == 1
        np.testing.assert_allclose(solution.x, [-2.0, -3.0])

    def test_warm_start_shape_mismatch(self):
        with pytest.raises(ValueError):
            solve_qp(QPProblem(H=np.eye(2), g=np.zeros(2)), QPOptions(warm_start=np.zeros(3)))

    def test_fixed_step_size(self):
        solution = solve_qp(QPProblem(H=np.eye(2), g=np.array([2.0, 3.0])), QPOptions(step_size=0.5))
        np.testing.assert_allclose(solution.x, [-2.0, -3.0], atol=1e-4)


class TestEqualityConstraints:
    def test_equality_satisfied(self):
        """min ½‖x‖² s.t. x1 + x2 = 1 gives [0.5, 0.5]."""
        problem = QPProblem(H=np.eye(2), g=np.zeros(2), A_eq=np.array([[1.0, 1.0]]), b_eq=np.array([1.0]))
        solution = solve_qp(problem, QPOptions(max_iterations=500))

        assert np.isclose(solution.x.sum(), 1.0, atol=1e-6)
        np.testing.assert_allclose(solution.x, [0.5, 0.5], atol=1e-4)

    def test_equality_with_bounds(self):
        problem = QPProblem(
            H=np.eye(3),
            g=np.zeros(3),
            lb=np.zeros(3),
            ub=np.ones(3),
            A_eq=np.array([[1.0, 1.0, 1.0]]),
            b_eq=np.array([1.5]),
        )
        solution = solve_qp(problem, QPOptions(max_iterations=500))

        assert np.all(solution.x >= 0.0)
        assert np.all(solution.x <= 1.0)
        np.testing.assert_allclose(solution.x, [0.5, 0.5, 0.5], atol=1e-4)


class TestDegenerateProblems:
    """The solver returns finite iterates instead of raising."""

    def test_zero_hessian(self):
        problem = QPProblem(H=np.zeros((2, 2)), g=np.array([1.0, -1.0]), lb=-np.ones(2), ub=np.ones(2))
        solution = solve_qp(problem)

        assert np.all(np.isfinite(solution.x))
        np.testing.assert_allclose(solution.x, [-1.0, 1.0])

    def test_singular_hessian(self):
        H = np.array([[1.0, 1.0], [1.0, 1.0]])
        solution = solve_qp(QPProblem(H=H, g=np.array([1.0, 1.0]), lb=-np.ones(2), ub=np.ones(2)))
        assert np.all(np.isfinite(solution.x))

    def test_rank_deficient_equality(self):
        problem = QPProblem(
            H=np.eye(2),
            g=np.zeros(2),
            A_eq=np.array([[1.0, 1.0], [2.0, 2.0]]),
            b_eq=np.array([1.0, 2.0]),
        )
        solution = solve_qp(problem, QPOptions(max_iterations=50))
        assert np.all(np.isfinite(solution.x))

    def test_singular_unconstrained(self):
        x = solve_unconstrained(np.zeros((2, 2)), np.zeros(2))
        assert np.all(np.isfinite(x))


# =============================================================================
# Test: Unconstrained Path
# =============================================================================


class TestCholesky:
    def test_factorization(self, rng):
        M = rng.standard_normal((5, 5))
        A = M @ M.T + np.eye(5)
        L = cholesky(A)

        np.testing.assert_allclose(L, np.tril(L))
        np.testing.assert_allclose(L @ L.T, A, atol=1e-8)

    def test_substitutions(self, rng):
        M = rng.standard_normal((4, 4))
        L = cholesky(M @ M.T + np.eye(4))
        b = rng.standard_normal(4)

        np.testing.assert_allclose(L @ forward_substitution(L, b), b, atol=1e-8)
        np.testing.assert_allclose(L.T @ backward_substitution(L, b), b, atol=1e-8)

    def test_solve_unconstrained_cross_term(self):
        x = solve_unconstrained(np.array([[2.0, 1.0], [1.0, 1.0]]), np.array([1.0, -1.0]))
        np.testing.assert_allclose(x, [-2.0, 3.0], atol=1e-6)

    def test_solve_unconstrained_shape_mismatch(self):
        with pytest.raises(ValueError):
            solve_unconstrained(np.eye(3), np.zeros(2))

    def test_solve_linear_system_needs_pivoting(self):
        A = np.array([[0.0, 1.0], [1.0, 0.0]])
        np.testing.assert_allclose(solve_linear_system(A, np.array([2.0, 3.0])), [3.0, 2.0], atol=1e-8)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
