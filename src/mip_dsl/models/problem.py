"""Solver-neutral snapshot of a compiled problem."""

import math
from typing import Any, Literal

from pydantic import BaseModel, Field


class VariableSpec(BaseModel):
    """One decision variable as seen by a solver."""

    name: str = Field(description="Canonical variable name, e.g. ship(S1,C2)")
    family: str
    index: list[Any] = Field(default_factory=list)
    type: Literal["continuous", "integer", "binary"] = "continuous"
    lower: float = -math.inf
    upper: float = math.inf
    description: str | None = None

    @property
    def is_integral(self) -> bool:
        return self.type in ("integer", "binary")


class ConstraintSpec(BaseModel):
    """Linear constraint ``sum(coefficients[v] * v) operator rhs``."""

    id: str
    name: str
    description: str | None = None
    coefficients: dict[str, float] = Field(default_factory=dict)
    operator: Literal["<=", ">=", "=="]
    rhs: float = 0.0

    def activity(self, values: dict[str, float]) -> float:
        return sum(c * values.get(v, 0.0) for v, c in self.coefficients.items())


class ObjectiveSpec(BaseModel):
    coefficients: dict[str, float] = Field(default_factory=dict)
    constant: float = 0.0
    direction: Literal["minimize", "maximize"] = "minimize"

    def value(self, values: dict[str, float]) -> float:
        return self.constant + sum(c * values.get(v, 0.0) for v, c in self.coefficients.items())


class ProblemSnapshot(BaseModel):
    """Everything a solver adapter needs, in deterministic order."""

    name: str
    description: str | None = None
    variables: list[VariableSpec] = Field(default_factory=list)
    constraints: list[ConstraintSpec] = Field(default_factory=list)
    objective: ObjectiveSpec | None = None

    @property
    def num_variables(self) -> int:
        return len(self.variables)

    @property
    def num_constraints(self) -> int:
        return len(self.constraints)

    def variable(self, name: str) -> VariableSpec | None:
        for spec in self.variables:
            if spec.name == name:
                return spec
        return None
