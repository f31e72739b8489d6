"""CPLEX LP file writer."""

import math
import re

from ..models.problem import ProblemSnapshot

# Written in place of an infinite bound.
LP_INFINITY = 1e30

# Longest line we emit; readers differ in their limits.
MAX_LINE_LENGTH = 200

_ILLEGAL_CHARS = re.compile(r"[^A-Za-z0-9_!\"#$%&(),.;?@'{}|~]")

SENSES = {"<=": "<=", ">=": ">=", "==": "="}


def lp_name(name: str) -> str:
    """Make a name legal in LP files.

    Illegal characters become ``_``. Names that would read as a number or as
    exponent notation get the ``var_`` prefix.
    """
    name = _ILLEGAL_CHARS.sub("_", name) or "_"
    if name[0] in "eE.0123456789":
        name = "var_" + name
    return name


def _unique(names: list[str]) -> list[str]:
    seen: dict[str, int] = {}
    result = []
    for name in names:
        candidate = name
        while candidate in seen:
            seen[name] += 1
            candidate = f"{name}_{seen[name]}"
        seen.setdefault(candidate, 1)
        result.append(candidate)
    return result


def variable_names(snapshot: ProblemSnapshot) -> dict[str, str]:
    """Map canonical variable names to the names written to the LP file."""
    names = _unique([lp_name(v.name) for v in snapshot.variables])
    return {v.name: n for v, n in zip(snapshot.variables, names)}


def constraint_names(snapshot: ProblemSnapshot) -> dict[str, str]:
    """Map constraint ids to the row names written to the LP file."""
    names = _unique([lp_name(c.name) for c in snapshot.constraints])
    return {c.id: n for c, n in zip(snapshot.constraints, names)}


def format_number(value: float) -> str:
    if math.isinf(value):
        return "1e+30" if value > 0 else "-1e+30"
    if value == int(value) and abs(value) < 1e15:
        return str(int(value))
    return repr(value)


def _expression(coefficients: dict[str, float], names: dict[str, str]) -> list[str]:
    terms = []
    for variable, coefficient in coefficients.items():
        sign = "-" if coefficient < 0 else "+"
        magnitude = format_number(abs(coefficient))
        terms.append(f"{sign} {magnitude} {names[variable]}")
    if terms and terms[0].startswith("+ "):
        terms[0] = terms[0][2:]
    return terms


def _wrap(head: str, terms: list[str], tail: str = "") -> list[str]:
    lines = []
    current = head
    for term in terms:
        if len(current) + len(term) + 1 > MAX_LINE_LENGTH and current.strip():
            lines.append(current)
            current = "   "
        current += " " + term
    if tail:
        current += " " + tail
    lines.append(current)
    return lines


def to_lp(snapshot: ProblemSnapshot) -> str:
    """Render a snapshot as CPLEX LP text.

    The objective constant is not written; solvers add it back to the
    objective value. Constraints without variables are left out.
    """
    var_names = variable_names(snapshot)
    row_names = constraint_names(snapshot)
    lines = [f"\\ Problem: {snapshot.name}"]

    objective = snapshot.objective
    lines.append("Maximize" if objective is not None and objective.direction == "maximize" else "Minimize")
    terms = _expression(objective.coefficients, var_names) if objective is not None else []
    if not terms and snapshot.variables:
        terms = [f"0 {var_names[snapshot.variables[0].name]}"]
    lines.extend(_wrap(" obj:", terms))

    lines.append("Subject To")
    for constraint in snapshot.constraints:
        if not constraint.coefficients:
            continue
        tail = f"{SENSES[constraint.operator]} {format_number(constraint.rhs)}"
        lines.extend(_wrap(f" {row_names[constraint.id]}:", _expression(constraint.coefficients, var_names), tail))

    lines.append("Bounds")
    for var in snapshot.variables:
        if var.type == "binary":
            continue
        name = var_names[var.name]
        if math.isinf(var.lower) and var.lower < 0 and math.isinf(var.upper) and var.upper > 0:
            lines.append(f" {name} free")
        else:
            lines.append(f" {format_number(var.lower)} <= {name} <= {format_number(var.upper)}")

    integers = [var_names[v.name] for v in snapshot.variables if v.type == "integer"]
    if integers:
        lines.append("General")
        lines.extend(_wrap("", integers))
    binaries = [var_names[v.name] for v in snapshot.variables if v.type == "binary"]
    if binaries:
        lines.append("Binary")
        lines.extend(_wrap("", binaries))

    lines.append("End")
    return "\n".join(lines) + "\n"
