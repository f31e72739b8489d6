"""Builds constraints and objectives from compiled expressions."""

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from ..exceptions import InvalidDirection
from ..utils.logger import get_logger
from .ast import as_node
from .compiler import ExpressionCompiler
from .environment import DeclarationContext, SymbolEnvironment
from .polynomial import Polynomial
from .registry import render_index_value

logger = get_logger(__name__)

CONSTRAINT_ID_FORMAT = "c{:08d}"


class Direction(str, Enum):
    MINIMIZE = "minimize"
    MAXIMIZE = "maximize"

    @classmethod
    def parse(cls, value: Any) -> "Direction":
        """Accept enum members or case-insensitive strings, British spelling included.

        Raises:
            InvalidDirection: For any other value
        """
        if isinstance(value, Direction):
            return value
        if isinstance(value, str):
            normalized = value.strip().lower().replace("isation", "ization").replace("ise", "ize")
            aliases = {
                "min": cls.MINIMIZE,
                "minimize": cls.MINIMIZE,
                "minimization": cls.MINIMIZE,
                "max": cls.MAXIMIZE,
                "maximize": cls.MAXIMIZE,
                "maximization": cls.MAXIMIZE,
            }
            if normalized in aliases:
                return aliases[normalized]
        raise InvalidDirection(
            f"Objective direction must be 'minimize' or 'maximize', got {value!r}"
        )


@dataclass(frozen=True)
class Constraint:
    """One normalized constraint ``lhs op rhs``; ``lhs`` has no constant term."""

    id: str
    name: str
    lhs: Polynomial
    op: str
    rhs: float
    description: str | None = None
    bindings: dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        return f"{self.name}: {self.lhs} {self.op} {self.rhs:g}"


@dataclass(frozen=True)
class Objective:
    polynomial: Polynomial
    direction: Direction

    def __str__(self) -> str:
        return f"{self.direction.value} {self.polynomial}"


class _Placeholders(dict):
    """Leaves unknown ``{name}`` placeholders untouched."""

    def __missing__(self, key: str) -> str:
        return "{" + key + "}"


def interpolate(template: str | None, bindings: Mapping[str, Any]) -> str | None:
    """Fill ``{symbol}`` placeholders with generator binding values."""
    if template is None:
        return None
    values = _Placeholders({k: render_index_value(v) for k, v in bindings.items()})
    try:
        return template.format_map(values)
    except (ValueError, IndexError, AttributeError, KeyError):
        logger.warning(f"Could not interpolate description template '{template}'")
        return template


def default_constraint_name(constraint_id: str, bindings: Mapping[str, Any]) -> str:
    if not bindings:
        return constraint_id
    return "constraint_" + "_".join(render_index_value(v) for v in bindings.values())


class Assembler:
    """Compiles declarations into ``Constraint`` and ``Objective`` records.

    Constraint declarations are all-or-nothing: the complete list is built
    before anything is returned, so a failure in any iteration leaves the
    caller's model untouched.
    """

    def __init__(self, compiler: ExpressionCompiler):
        self.compiler = compiler

    def constraints(
        self,
        clauses: Any,
        expr: Any,
        env: SymbolEnvironment,
        description: str | None = None,
        first_id: int = 0,
    ) -> list[Constraint]:
        expr = as_node(expr)
        env = env.with_declaration(DeclarationContext("constraints", description or str(expr)))
        built: list[Constraint] = []
        for inner in self.compiler.expander.iterate(clauses, env):
            lhs, op, rhs = self.compiler.compile_comparison(expr, inner)
            constraint_id = CONSTRAINT_ID_FORMAT.format(first_id + len(built))
            bindings = dict(inner.bindings)
            text = interpolate(description, bindings)
            built.append(
                Constraint(
                    id=constraint_id,
                    name=text if text else default_constraint_name(constraint_id, bindings),
                    lhs=lhs,
                    op=op,
                    rhs=rhs,
                    description=text,
                    bindings=bindings,
                )
            )
        logger.debug(f"Assembled {len(built)} constraints from '{expr}'")
        return built

    def objective(self, expr: Any, direction: Any, env: SymbolEnvironment) -> Objective:
        parsed = Direction.parse(direction)
        env = env.with_declaration(DeclarationContext("objective", parsed.value))
        polynomial = self.compiler.compile(expr, env)
        return Objective(polynomial=polynomial, direction=parsed)
