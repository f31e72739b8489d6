"""SCIP solver implementation using pyscipopt."""

import os
import tempfile
from typing import Any

try:
    import pyscipopt
except ImportError:
    pyscipopt = None

from ..models.problem import ProblemSnapshot
from ..models.solution import OptimizationSolution, SolutionConstraint
from ..utils.logger import get_logger
from .base import BaseSolver, SolverError, SolverUnavailableError
from .lp_format import to_lp, variable_names

logger = get_logger(__name__)


class SCIPSolver(BaseSolver):
    """SCIP solver reading the LP text written for a snapshot."""

    name = "SCIP"

    def __init__(self, config: dict[str, Any]):
        """Initialize SCIP solver.

        Args:
            config: Solver configuration
        """
        super().__init__(config)

        if pyscipopt is None:
            raise SolverUnavailableError("pyscipopt is not available")

        self.model = None

    def _solve(self, snapshot: ProblemSnapshot) -> OptimizationSolution:
        fd, file_path = tempfile.mkstemp(suffix=".lp", prefix="mip_dsl_")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(to_lp(snapshot))

            self.model = pyscipopt.Model(snapshot.name)
            if not self.msg:
                self.model.hideOutput()
            self._apply_parameters()
            self.model.readProblem(file_path)
            logger.info(f"Problem loaded: {self.model.getNVars()} variables, {self.model.getNConss()} constraints")

            self.model.optimize()
            return self._extract_solution(snapshot)
        except SolverError:
            raise
        except Exception as e:
            logger.error(f"SCIP solver failed: {e}")
            raise SolverError(f"SCIP solving failed: {e}") from e
        finally:
            self.model = None
            if os.path.exists(file_path):
                os.unlink(file_path)

    def _apply_parameters(self) -> None:
        """Apply solver parameters to SCIP model."""
        for param_name, param_value in self.parameters.items():
            try:
                self.model.setParam(param_name, param_value)
                logger.debug(f"Set SCIP parameter {param_name} = {param_value}")
            except (KeyError, LookupError, ValueError, TypeError) as e:
                logger.warning(f"Failed to set SCIP parameter {param_name}: {e}")

        if self.timeout and self.timeout > 0:
            self.model.setParam("limits/time", self.timeout)

    def _extract_solution(self, snapshot: ProblemSnapshot) -> OptimizationSolution:
        """Extract solution from SCIP model, keyed by canonical variable names."""
        status = self._extract_solution_status(self.model.getStatus())

        variables = {}
        objective_value = None
        constraints = []
        if self._is_feasible(status) and self.model.getNSols() > 0:
            canonical = {lp: name for name, lp in variable_names(snapshot).items()}
            for var in self.model.getVars():
                name = canonical.get(var.name, var.name)
                variables[name] = self.model.getVal(var)
            if snapshot.objective is not None:
                objective_value = self.model.getObjVal() + snapshot.objective.constant
            constraints = [
                SolutionConstraint(name=spec.name, activity=spec.activity(variables))
                for spec in snapshot.constraints
            ]

        return OptimizationSolution(
            status=status,
            objective_value=objective_value,
            variables=variables,
            constraints=constraints,
            solve_time=self.model.getSolvingTime(),
            solver_info={
                "solver_name": "SCIP",
                "solver_version": self.model.version(),
                "nodes": self.model.getNNodes(),
                "gap": self.model.getGap(),
            },
        )

    def _extract_solution_status(self, scip_status: Any) -> str:
        """Convert SCIP status to standardized status.

        Args:
            scip_status: SCIP status string

        Returns:
            Standardized status string
        """
        status_map = {
            "optimal": "optimal",
            "infeasible": "infeasible",
            "unbounded": "unbounded",
            "inforunbd": "infeasible_or_unbounded",
            "nodelimit": "node_limit",
            "timelimit": "time_limit",
            "memlimit": "memory_limit",
            "gaplimit": "gap_limit",
            "sollimit": "solution_limit",
            "bestsollimit": "best_solution_limit",
            "userinterrupt": "user_interrupt",
            "terminate": "terminated",
            "unknown": "unknown",
        }

        scip_status_str = str(scip_status).lower()
        return status_map.get(scip_status_str, "unknown")

    def get_solver_info(self) -> dict[str, Any]:
        """Get SCIP solver information.

        Returns:
            Solver information dictionary
        """
        if pyscipopt is None:
            return {
                "name": "SCIP",
                "available": False,
                "error": "pyscipopt not installed",
            }

        temp_model = pyscipopt.Model("temp")
        return {
            "name": "SCIP",
            "available": True,
            "version": temp_model.version(),
            "description": "Solving Constraint Integer Programs",
            "capabilities": ["LP", "MIP"],
        }

    def set_parameters(self, params: dict[str, Any]) -> None:
        """Set SCIP parameters.

        Args:
            params: Parameter dictionary
        """
        self.parameters.update(params)

        if self.model:
            self._apply_parameters()
