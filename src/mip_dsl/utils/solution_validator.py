"""Solution validation against a problem snapshot."""

import math
from typing import Any

from ..models.problem import ConstraintSpec, ProblemSnapshot
from ..models.solution import OptimizationSolution, SolutionValidation
from ..utils.logger import get_logger

logger = get_logger(__name__)


class SolutionValidator:
    """Validates optimization solutions against problem constraints."""

    def __init__(self, tolerance: float = 1e-6):
        """Initialize the validator.

        Args:
            tolerance: Numerical tolerance for constraint checking
        """
        self.tolerance = tolerance

    def validate_solution(
        self,
        snapshot: ProblemSnapshot,
        solution: OptimizationSolution | dict[str, float],
    ) -> SolutionValidation:
        """Validate solution against problem constraints.

        Args:
            snapshot: Problem the solution belongs to
            solution: Solution, or a mapping of variable name to value

        Returns:
            Validation result
        """
        if isinstance(solution, OptimizationSolution):
            variable_values = solution.variables
        else:
            variable_values = dict(solution)

        constraint_violations = self._check_linear_constraints(snapshot, variable_values)
        bound_violations = self._check_variable_bounds(snapshot, variable_values)
        integer_violations = self._check_integer_constraints(snapshot, variable_values)

        total_violations = (
            len(constraint_violations) +
            len(bound_violations) +
            len(integer_violations)
        )

        logger.info(f"Solution validation completed: {total_violations} violations found")

        return SolutionValidation(
            is_valid=total_violations == 0,
            tolerance_used=self.tolerance,
            constraint_violations=constraint_violations,
            bound_violations=bound_violations,
            integer_violations=integer_violations,
            summary={
                "total_constraints_checked": snapshot.num_constraints,
                "total_variables_checked": snapshot.num_variables,
                "violations_found": total_violations,
            },
        )

    def _check_linear_constraints(
        self,
        snapshot: ProblemSnapshot,
        variable_values: dict[str, float],
    ) -> list[dict[str, Any]]:
        """Check linear constraints satisfaction."""
        violations = []
        for constraint in snapshot.constraints:
            lhs_value = constraint.activity(variable_values)
            violation = self._check_constraint_satisfaction(lhs_value, constraint)
            if violation:
                violations.append(violation)
        return violations

    def _check_constraint_satisfaction(
        self,
        lhs_value: float,
        constraint: ConstraintSpec,
    ) -> dict[str, Any] | None:
        """Check if a single constraint is satisfied."""
        rhs_value = constraint.rhs
        if constraint.operator == "<=" and lhs_value > rhs_value + self.tolerance:
            return {
                "constraint_name": constraint.name,
                "lhs_value": lhs_value,
                "sense": "<=",
                "rhs_value": rhs_value,
                "violation": lhs_value - rhs_value,
                "type": "upper_bound",
            }
        if constraint.operator == ">=" and lhs_value < rhs_value - self.tolerance:
            return {
                "constraint_name": constraint.name,
                "lhs_value": lhs_value,
                "sense": ">=",
                "rhs_value": rhs_value,
                "violation": rhs_value - lhs_value,
                "type": "lower_bound",
            }
        if constraint.operator == "==" and abs(lhs_value - rhs_value) > self.tolerance:
            return {
                "constraint_name": constraint.name,
                "lhs_value": lhs_value,
                "sense": "==",
                "rhs_value": rhs_value,
                "violation": abs(lhs_value - rhs_value),
                "type": "equality",
            }
        return None

    def _check_variable_bounds(
        self,
        snapshot: ProblemSnapshot,
        variable_values: dict[str, float],
    ) -> list[dict[str, Any]]:
        """Check variable bound constraints."""
        violations = []
        for var in snapshot.variables:
            if var.name not in variable_values:
                continue
            value = variable_values[var.name]
            if not math.isinf(var.lower) and value < var.lower - self.tolerance:
                violations.append({
                    "variable_name": var.name,
                    "value": value,
                    "lower_bound": var.lower,
                    "violation": var.lower - value,
                    "type": "lower_bound",
                })
            if not math.isinf(var.upper) and value > var.upper + self.tolerance:
                violations.append({
                    "variable_name": var.name,
                    "value": value,
                    "upper_bound": var.upper,
                    "violation": value - var.upper,
                    "type": "upper_bound",
                })
        return violations

    def _check_integer_constraints(
        self,
        snapshot: ProblemSnapshot,
        variable_values: dict[str, float],
    ) -> list[dict[str, Any]]:
        """Check integrality of integer and binary variables."""
        violations = []
        for var in snapshot.variables:
            if not var.is_integral or var.name not in variable_values:
                continue
            value = variable_values[var.name]
            distance = abs(value - round(value))
            if distance > self.tolerance:
                violations.append({
                    "variable_name": var.name,
                    "value": value,
                    "nearest_integer": round(value),
                    "violation": distance,
                    "type": var.type,
                })
        return violations
