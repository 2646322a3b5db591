"""Quadratic programming solvers."""

from quadmpc.solvers.qp import (
    QPOptions,
    QPProblem,
    QPSolution,
    cholesky,
    solve_qp,
    solve_unconstrained,
)

__all__ = [
    "QPOptions",
    "QPProblem",
    "QPSolution",
    "cholesky",
    "solve_qp",
    "solve_unconstrained",
]
