"""Base solver abstraction layer."""

from abc import ABC, abstractmethod
from typing import Any

from ..models.problem import ProblemSnapshot
from ..models.solution import OptimizationSolution
from ..utils.logger import get_logger

logger = get_logger(__name__)


class SolverError(Exception):
    """Base class for solver-related errors."""
    pass


class SolveFailure(SolverError):
    """The solver ran but did not produce a usable solution."""

    def __init__(self, message: str, solution: OptimizationSolution | None = None):
        super().__init__(message)
        self.solution = solution


class InfeasibleError(SolveFailure):
    """The problem has no feasible solution."""
    pass


class UnboundedError(SolveFailure):
    """The objective can be improved without limit."""
    pass


class SolverUnavailableError(SolveFailure):
    """The solver backend is not installed or cannot be started."""
    pass


def constraint_holds(lhs: float, operator: str, rhs: float, tolerance: float = 1e-9) -> bool:
    if operator == "<=":
        return lhs <= rhs + tolerance
    if operator == ">=":
        return lhs >= rhs - tolerance
    return abs(lhs - rhs) <= tolerance


class BaseSolver(ABC):
    """Abstract base class for optimization solvers."""

    name = "base"

    def __init__(self, config: dict[str, Any]):
        """Initialize the solver.

        Args:
            config: Solver configuration dictionary
        """
        self.config = config
        self.timeout = config.get("timeout", 3600)
        self.msg = bool(config.get("msg", False))
        self.parameters = dict(config.get("parameters", {}))

    def solve(self, snapshot: ProblemSnapshot) -> OptimizationSolution:
        """Solve a problem snapshot.

        Args:
            snapshot: Problem to solve

        Returns:
            Optimization solution

        Raises:
            InfeasibleError: If the problem is infeasible
            UnboundedError: If the problem is unbounded
            SolverError: If the problem is too large or solving fails
        """
        self.validate_snapshot(snapshot)
        self._check_constant_constraints(snapshot)

        logger.info(
            f"Starting {self.name} on '{snapshot.name}': "
            f"{snapshot.num_variables} variables, {snapshot.num_constraints} constraints"
        )
        solution = self._solve(snapshot)
        logger.info(f"Optimization completed with status: {solution.status}")

        if solution.status == "infeasible":
            raise InfeasibleError(f"Problem '{snapshot.name}' is infeasible", solution)
        if solution.status == "unbounded":
            raise UnboundedError(f"Problem '{snapshot.name}' is unbounded", solution)
        if solution.status == "infeasible_or_unbounded":
            raise SolveFailure(f"Problem '{snapshot.name}' is infeasible or unbounded", solution)
        return solution

    @abstractmethod
    def _solve(self, snapshot: ProblemSnapshot) -> OptimizationSolution:
        """Run the backend on a validated snapshot."""
        pass

    @abstractmethod
    def get_solver_info(self) -> dict[str, Any]:
        """Get solver information.

        Returns:
            Dictionary with solver name, version, capabilities
        """
        pass

    @abstractmethod
    def set_parameters(self, params: dict[str, Any]) -> None:
        """Set solver parameters.

        Args:
            params: Parameter dictionary
        """
        pass

    def validate_snapshot(self, snapshot: ProblemSnapshot) -> bool:
        """Check the snapshot against the configured size limits.

        Raises:
            SolverError: If the problem is too large
        """
        max_variables = self.config.get("max_variables")
        if max_variables is not None and snapshot.num_variables > max_variables:
            raise SolverError(
                f"Too many variables: {snapshot.num_variables} (max: {max_variables})"
            )
        max_constraints = self.config.get("max_constraints")
        if max_constraints is not None and snapshot.num_constraints > max_constraints:
            raise SolverError(
                f"Too many constraints: {snapshot.num_constraints} (max: {max_constraints})"
            )
        return True

    def _check_constant_constraints(self, snapshot: ProblemSnapshot) -> None:
        """Constraints without variables are decided here, not by the backend."""
        for constraint in snapshot.constraints:
            if constraint.coefficients:
                continue
            if not constraint_holds(0.0, constraint.operator, constraint.rhs):
                logger.error(f"Constraint '{constraint.name}' can never hold: 0 {constraint.operator} {constraint.rhs}")
                raise InfeasibleError(
                    f"Constraint '{constraint.name}' has no variables and is violated: "
                    f"0 {constraint.operator} {constraint.rhs}"
                )

    def _extract_solution_status(self, solver_status: Any) -> str:
        """Extract standardized status from solver-specific status.

        Args:
            solver_status: Solver-specific status object

        Returns:
            Standardized status string
        """
        return "unknown"

    def _is_optimal(self, status: str) -> bool:
        """Check if status indicates optimal solution."""
        return status.lower() in ["optimal", "opt", "optimum"]

    def _is_feasible(self, status: str) -> bool:
        """Check if status indicates feasible solution."""
        return status.lower() not in ["infeasible", "infeas", "unbounded", "infeasible_or_unbounded"]
