"""CBC solver implementation using PuLP."""

import math
import re
import time
from typing import Any

import pulp

from ..models.problem import ProblemSnapshot
from ..models.solution import OptimizationSolution, SolutionConstraint
from ..utils.logger import get_logger
from .base import BaseSolver, SolverError, SolverUnavailableError

logger = get_logger(__name__)

CATEGORIES = {
    "continuous": pulp.LpContinuous,
    "integer": pulp.LpInteger,
    "binary": pulp.LpBinary,
}

SENSES = {
    "<=": pulp.LpConstraintLE,
    ">=": pulp.LpConstraintGE,
    "==": pulp.LpConstraintEQ,
}


class PulpSolver(BaseSolver):
    """Builds a PuLP model from a snapshot and solves it with CBC."""

    name = "PuLP/CBC"

    def _solve(self, snapshot: ProblemSnapshot) -> OptimizationSolution:
        model, lp_vars = self._build_model(snapshot)
        backend = self._backend()
        if not backend.available():
            raise SolverUnavailableError("CBC solver is not available through PuLP")

        start_time = time.time()
        try:
            model.solve(backend)
        except pulp.PulpSolverError as e:
            logger.error(f"PuLP solver failed: {e}")
            raise SolverError(f"CBC solving failed: {e}") from e
        solve_time = time.time() - start_time

        return self._extract_solution(snapshot, model, lp_vars, solve_time)

    def _backend(self) -> Any:
        options = [f"{key} {value}" for key, value in self.parameters.items()]
        return pulp.PULP_CBC_CMD(
            msg=self.msg,
            timeLimit=self.timeout if self.timeout and self.timeout > 0 else None,
            options=options,
        )

    def _build_model(self, snapshot: ProblemSnapshot) -> tuple[Any, dict[str, Any]]:
        sense = pulp.LpMinimize
        if snapshot.objective is not None and snapshot.objective.direction == "maximize":
            sense = pulp.LpMaximize
        model = pulp.LpProblem(re.sub(r"\W", "_", snapshot.name) or "problem", sense)

        lp_vars = {}
        for spec in snapshot.variables:
            lp_vars[spec.name] = pulp.LpVariable(
                spec.name,
                lowBound=None if spec.type == "binary" or math.isinf(spec.lower) else spec.lower,
                upBound=None if spec.type == "binary" or math.isinf(spec.upper) else spec.upper,
                cat=CATEGORIES[spec.type],
            )

        if snapshot.objective is not None:
            objective = snapshot.objective
            model += (
                pulp.lpSum(c * lp_vars[v] for v, c in objective.coefficients.items()) + objective.constant,
                "objective",
            )

        for spec in snapshot.constraints:
            if not spec.coefficients:
                continue
            expression = pulp.lpSum(c * lp_vars[v] for v, c in spec.coefficients.items())
            model += pulp.LpConstraint(expression, sense=SENSES[spec.operator], rhs=spec.rhs, name=spec.id)

        return model, lp_vars

    def _extract_solution(
        self,
        snapshot: ProblemSnapshot,
        model: Any,
        lp_vars: dict[str, Any],
        solve_time: float,
    ) -> OptimizationSolution:
        status = self._extract_solution_status(model.status, getattr(model, "sol_status", None))

        variables = {}
        objective_value = None
        constraints = []
        if self._is_feasible(status) and status not in ("not_solved", "undefined"):
            for name, var in lp_vars.items():
                if var.varValue is not None:
                    variables[name] = float(var.varValue)
            if snapshot.objective is not None:
                objective_value = snapshot.objective.value(variables)
            for spec in snapshot.constraints:
                lp_constraint = model.constraints.get(spec.id)
                constraints.append(
                    SolutionConstraint(
                        name=spec.name,
                        activity=spec.activity(variables),
                        slack=getattr(lp_constraint, "slack", None),
                        dual_value=getattr(lp_constraint, "pi", None),
                    )
                )

        return OptimizationSolution(
            status=status,
            objective_value=objective_value,
            variables=variables,
            constraints=constraints,
            solve_time=solve_time,
            solver_info={
                "solver_name": "CBC",
                "interface": "PuLP",
                "pulp_status": pulp.LpStatus.get(model.status, str(model.status)),
            },
        )

    def _extract_solution_status(self, pulp_status: Any, sol_status: Any = None) -> str:
        """Convert PuLP status codes to standardized status."""
        status_map = {
            pulp.LpStatusOptimal: "optimal",
            pulp.LpStatusNotSolved: "not_solved",
            pulp.LpStatusInfeasible: "infeasible",
            pulp.LpStatusUnbounded: "unbounded",
            pulp.LpStatusUndefined: "undefined",
        }
        status = status_map.get(pulp_status, "unknown")
        if status == "optimal" and sol_status == pulp.LpSolutionIntegerFeasible:
            return "feasible"
        return status

    def get_solver_info(self) -> dict[str, Any]:
        """Get CBC solver information."""
        backend = pulp.PULP_CBC_CMD(msg=False)
        return {
            "name": "CBC",
            "interface": "PuLP",
            "available": bool(backend.available()),
            "version": pulp.__version__ if hasattr(pulp, "__version__") else None,
            "description": "COIN-OR Branch and Cut",
            "capabilities": ["LP", "MIP"],
        }

    def set_parameters(self, params: dict[str, Any]) -> None:
        """Set CBC command-line options.

        Args:
            params: Option name to value
        """
        self.parameters.update(params)
