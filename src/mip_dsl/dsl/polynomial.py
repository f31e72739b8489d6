"""Canonical polynomial over named decision variables."""

import math
from collections.abc import Iterable, Mapping
from typing import Any

Monomial = tuple[str, ...]

CONSTANT: Monomial = ()


def _monomial(names: Iterable[str]) -> Monomial:
    return tuple(sorted(names))


class Polynomial:
    """Mapping from monomial to coefficient.

    A monomial is the sorted tuple of variable names it multiplies (so it is
    an ordered multiset); ``()`` is the constant term. Coefficients of equal
    monomials are summed on construction. Iteration order is sorted, which
    makes rendering and comparison independent of construction order.
    """

    __slots__ = ("_terms",)

    def __init__(self, terms: Mapping[Monomial, float] | Iterable[tuple[Monomial, float]] = ()):
        items = terms.items() if isinstance(terms, Mapping) else terms
        merged: dict[Monomial, float] = {}
        for monomial, coefficient in items:
            key = _monomial(monomial)
            merged[key] = merged.get(key, 0.0) + float(coefficient)
        self._terms = merged

    @classmethod
    def const(cls, value: float) -> "Polynomial":
        return cls({CONSTANT: value})

    @classmethod
    def variable(cls, name: str, coefficient: float = 1.0) -> "Polynomial":
        return cls({(name,): coefficient})

    @classmethod
    def zero(cls) -> "Polynomial":
        return cls()

    # Inspection

    @property
    def terms(self) -> dict[Monomial, float]:
        """Terms in sorted monomial order."""
        return dict(sorted(self._terms.items()))

    @property
    def constant(self) -> float:
        return self._terms.get(CONSTANT, 0.0)

    def coefficient(self, *names: str) -> float:
        return self._terms.get(_monomial(names), 0.0)

    def degree(self) -> int:
        return max((len(m) for m, c in self._terms.items() if c != 0.0), default=0)

    def is_constant(self) -> bool:
        """True when no monomial with a non-zero coefficient mentions a variable."""
        return self.degree() == 0

    def has_variables(self) -> bool:
        return not self.is_constant()

    def variables(self) -> list[str]:
        names = {name for monomial, c in self._terms.items() if c != 0.0 for name in monomial}
        return sorted(names)

    def split_constant(self) -> tuple["Polynomial", float]:
        """Return ``(polynomial without constant term, constant)``."""
        rest = {m: c for m, c in self._terms.items() if m != CONSTANT}
        return Polynomial(rest), self.constant

    def linear_coefficients(self) -> dict[str, float]:
        """Coefficients of degree-1 monomials keyed by variable name.

        Raises:
            ValueError: If the polynomial has terms of degree two or more
        """
        if self.degree() > 1:
            raise ValueError(f"Polynomial is not linear: {self}")
        return {m[0]: c for m, c in sorted(self._terms.items()) if len(m) == 1}

    def evaluate(self, values: Mapping[str, float]) -> float:
        """Evaluate with every variable taken from ``values``.

        Raises:
            KeyError: If a variable has no value
        """
        total = 0.0
        for monomial, coefficient in self._terms.items():
            term = coefficient
            for name in monomial:
                term *= values[name]
            total += term
        return total

    # Arithmetic

    def prune(self, tolerance: float = 0.0) -> "Polynomial":
        """Drop monomials whose coefficient magnitude is at most ``tolerance``."""
        return Polynomial({m: c for m, c in self._terms.items() if abs(c) > tolerance})

    def scale(self, factor: float) -> "Polynomial":
        return Polynomial({m: c * factor for m, c in self._terms.items()})

    def __add__(self, other: Any) -> "Polynomial":
        if isinstance(other, (int, float)):
            other = Polynomial.const(other)
        if not isinstance(other, Polynomial):
            return NotImplemented
        merged = dict(self._terms)
        for monomial, coefficient in other._terms.items():
            merged[monomial] = merged.get(monomial, 0.0) + coefficient
        return Polynomial(merged)

    __radd__ = __add__

    def __neg__(self) -> "Polynomial":
        return self.scale(-1.0)

    def __sub__(self, other: Any) -> "Polynomial":
        if isinstance(other, (int, float)):
            other = Polynomial.const(other)
        if not isinstance(other, Polynomial):
            return NotImplemented
        return self + (-other)

    def __rsub__(self, other: Any) -> "Polynomial":
        return (-self) + other

    def __mul__(self, other: Any) -> "Polynomial":
        if isinstance(other, (int, float)):
            return self.scale(other)
        if not isinstance(other, Polynomial):
            return NotImplemented
        product: dict[Monomial, float] = {}
        for m1, c1 in self._terms.items():
            for m2, c2 in other._terms.items():
                key = _monomial(m1 + m2)
                product[key] = product.get(key, 0.0) + c1 * c2
        return Polynomial(product)

    __rmul__ = __mul__

    @staticmethod
    def sum(polynomials: Iterable["Polynomial"]) -> "Polynomial":
        merged: dict[Monomial, float] = {}
        for polynomial in polynomials:
            for monomial, coefficient in polynomial._terms.items():
                merged[monomial] = merged.get(monomial, 0.0) + coefficient
        return Polynomial(merged)

    # Comparison and rendering

    def __eq__(self, other: object) -> bool:
        if isinstance(other, (int, float)):
            other = Polynomial.const(other)
        if not isinstance(other, Polynomial):
            return NotImplemented
        return self.prune().terms == other.prune().terms

    def __hash__(self) -> int:
        return hash(tuple(self.prune().terms.items()))

    def __bool__(self) -> bool:
        return any(c != 0.0 for c in self._terms.values())

    def __len__(self) -> int:
        return len(self._terms)

    def __repr__(self) -> str:
        return f"Polynomial({self.terms!r})"

    def __str__(self) -> str:
        parts = []
        for monomial, coefficient in self.terms.items():
            if monomial == CONSTANT:
                body = _format_number(abs(coefficient))
            else:
                factor = " * ".join(monomial)
                magnitude = abs(coefficient)
                body = factor if magnitude == 1.0 else f"{_format_number(magnitude)} {factor}"
            sign = "-" if coefficient < 0 else "+"
            parts.append((sign, body))
        if not parts:
            return "0"
        first_sign, first_body = parts[0]
        text = ("-" if first_sign == "-" else "") + first_body
        for sign, body in parts[1:]:
            text += f" {sign} {body}"
        return text


def _format_number(value: float) -> str:
    if math.isfinite(value) and value == int(value) and abs(value) < 1e16:
        return str(int(value))
    return repr(value)
