"""Exception classes for mip-dsl model compilation."""

from typing import Any


class DslError(Exception):
    """Base class for errors raised while compiling a model declaration.

    Every error carries enough context to locate the failing generator
    iteration without re-deriving it: the offending expression text, the
    declaration it belongs to and the generator bindings active at the time.
    """

    def __init__(
        self,
        message: str,
        *,
        symbol: str | None = None,
        expression: str | None = None,
        declaration: str | None = None,
        bindings: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.symbol = symbol
        self.expression = expression
        self.declaration = declaration
        self.bindings = dict(bindings) if bindings else {}

    @property
    def kind(self) -> str:
        """Short error name, e.g. ``UndefinedSymbol``."""
        return type(self).__name__

    def with_context(
        self,
        *,
        expression: str | None = None,
        declaration: str | None = None,
        bindings: dict[str, Any] | None = None,
    ) -> "DslError":
        """Fill in context fields that are still empty and return self."""
        if self.expression is None and expression is not None:
            self.expression = expression
        if self.declaration is None and declaration is not None:
            self.declaration = declaration
        if not self.bindings and bindings:
            self.bindings = dict(bindings)
        return self

    def __str__(self) -> str:
        parts = [f"{self.kind}: {self.message}"]
        if self.expression is not None:
            parts.append(f"in expression: {self.expression}")
        if self.declaration is not None:
            parts.append(f"in declaration: {self.declaration}")
        if self.bindings:
            rendered = ", ".join(f"{k}={v!r}" for k, v in self.bindings.items())
            parts.append(f"with bindings: {rendered}")
        return "\n  ".join(parts)


class UndefinedSymbol(DslError):
    """A bare name resolves to no binding, parameter or variable family."""
    pass


class UndefinedVariable(DslError):
    """A variable family or one of its instances does not exist."""
    pass


class UndefinedConstant(DslError):
    """A constant access refers to a name that is not a model parameter."""
    pass


class AmbiguousSymbol(DslError):
    """A name could resolve to more than one kind of entity."""
    pass


class DuplicateFamily(DslError):
    """A variable family is redeclared with a conflicting type."""
    pass


class InvalidBounds(DslError):
    """Variable bounds conflict with the variable type."""
    pass


class IndexOutOfBounds(DslError):
    """List access past the end of the supplied data."""
    pass


class MissingKey(DslError):
    """Map or record access with an absent key or field."""
    pass


class NonlinearExpression(DslError):
    """An operation would multiply two variable-bearing expressions."""
    pass


class UnsupportedOperation(DslError):
    """An operation that has no linear meaning, e.g. division by a variable."""
    pass


class WildcardOutsideAggregation(DslError):
    """A wildcard index is used outside of ``sum``."""
    pass


class UnresolvedWildcardDomain(DslError):
    """No unambiguous domain can be inferred for a wildcard."""
    pass


class InvalidDirection(DslError):
    """Objective direction is neither minimize nor maximize."""
    pass


class IndexArityMismatch(DslError):
    """A variable is indexed with the wrong number of indices."""
    pass


class NameCollision(DslError):
    """Two distinct index tuples map to the same canonical variable name."""
    pass


class InvalidDomain(DslError):
    """A generator domain is not a finite collection of values."""
    pass
