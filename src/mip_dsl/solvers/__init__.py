"""Solver abstraction layer."""

from .base import (
    BaseSolver,
    InfeasibleError,
    SolveFailure,
    SolverError,
    SolverUnavailableError,
    UnboundedError,
)
from .factory import SolverFactory
from .lp_format import to_lp
from .pulp_solver import PulpSolver
from .scip_solver import SCIPSolver

__all__ = [
    "BaseSolver",
    "InfeasibleError",
    "PulpSolver",
    "SCIPSolver",
    "SolveFailure",
    "SolverError",
    "SolverFactory",
    "SolverUnavailableError",
    "UnboundedError",
    "to_lp",
]
