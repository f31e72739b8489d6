"""Symbol lookup for one compilation pass."""

from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Any

from ..exceptions import AmbiguousSymbol, DslError, UndefinedSymbol
from .registry import VariableFamily, VariableRegistry


class ResolutionKind(Enum):
    BINDING = "binding"
    PARAMETER = "parameter"
    VARIABLE_FAMILY = "variable_family"
    UNDEFINED = "undefined"


@dataclass(frozen=True)
class Resolution:
    kind: ResolutionKind
    value: Any = None

    @property
    def is_family(self) -> bool:
        return self.kind is ResolutionKind.VARIABLE_FAMILY

    @property
    def is_constant(self) -> bool:
        return self.kind in (ResolutionKind.BINDING, ResolutionKind.PARAMETER)


@dataclass(frozen=True)
class DeclarationContext:
    """Which declaration is being compiled, for error messages."""

    kind: str
    label: str | None = None

    def __str__(self) -> str:
        return self.kind if self.label is None else f"{self.kind} '{self.label}'"


class BindingEnvironment(Mapping):
    """Ordered, immutable symbol-to-value bindings of one generator point.

    Each binding remembers whether a generator introduced it; only those may
    shadow a variable family of the same name.
    """

    __slots__ = ("_values", "_generated")

    def __init__(self, values: Mapping[str, Any] | None = None, generated: frozenset[str] = frozenset()):
        self._values = dict(values or {})
        self._generated = frozenset(generated)

    def bind(self, name: str, value: Any, generated: bool = True) -> "BindingEnvironment":
        """Return a child environment with ``name`` bound; inner bindings win."""
        values = dict(self._values)
        values.pop(name, None)
        values[name] = value
        flags = self._generated | {name} if generated else self._generated - {name}
        return BindingEnvironment(values, flags)

    def is_generated(self, name: str) -> bool:
        return name in self._generated

    def __getitem__(self, name: str) -> Any:
        return self._values[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"BindingEnvironment({self._values!r})"


class SymbolEnvironment:
    """Resolves bare names against bindings, model parameters and variable families.

    Lookup order is bindings first (innermost wins), then parameters, then
    variable families. Environments are never mutated; ``with_bindings``
    returns a new one for an inner scope.
    """

    def __init__(
        self,
        parameters: Mapping[str, Any] | None = None,
        registry: VariableRegistry | None = None,
        bindings: BindingEnvironment | None = None,
        declaration: DeclarationContext | None = None,
    ):
        params = parameters if parameters is not None else {}
        self.parameters = params if isinstance(params, MappingProxyType) else MappingProxyType(dict(params))
        self.registry = registry if registry is not None else VariableRegistry()
        self.bindings = bindings if bindings is not None else BindingEnvironment()
        self.declaration = declaration

    def with_bindings(self, bindings: BindingEnvironment) -> "SymbolEnvironment":
        return SymbolEnvironment(self.parameters, self.registry, bindings, self.declaration)

    def bind(self, name: str, value: Any) -> "SymbolEnvironment":
        return self.with_bindings(self.bindings.bind(name, value))

    def with_declaration(self, declaration: DeclarationContext) -> "SymbolEnvironment":
        return SymbolEnvironment(self.parameters, self.registry, self.bindings, declaration)

    def resolve(self, name: str) -> Resolution:
        """Classify ``name``.

        Raises:
            AmbiguousSymbol: If a caller-supplied binding or a parameter shadows
                a variable family
        """
        is_family = self.registry.has_family(name)
        if name in self.bindings:
            if is_family and not self.bindings.is_generated(name):
                raise self.error(
                    AmbiguousSymbol,
                    f"'{name}' is both a binding and a variable family",
                    symbol=name,
                )
            return Resolution(ResolutionKind.BINDING, self.bindings[name])
        if name in self.parameters:
            if is_family:
                raise self.error(
                    AmbiguousSymbol,
                    f"'{name}' is both a model parameter and a variable family",
                    symbol=name,
                )
            return Resolution(ResolutionKind.PARAMETER, self.parameters[name])
        if is_family:
            return Resolution(ResolutionKind.VARIABLE_FAMILY, self.registry.family(name))
        return Resolution(ResolutionKind.UNDEFINED)

    def require(self, name: str) -> Resolution:
        """Like ``resolve`` but raises ``UndefinedSymbol`` for unknown names."""
        resolution = self.resolve(name)
        if resolution.kind is ResolutionKind.UNDEFINED:
            raise self.error(UndefinedSymbol, f"Undefined symbol '{name}'", symbol=name)
        return resolution

    def family(self, name: str) -> VariableFamily | None:
        return self.registry.family(name) if self.registry.has_family(name) else None

    def error(self, cls: type[DslError], message: str, node: Any = None, symbol: str | None = None) -> DslError:
        """Build ``cls`` carrying this environment's declaration and bindings."""
        return cls(
            message,
            symbol=symbol,
            expression=None if node is None else str(node),
            declaration=None if self.declaration is None else str(self.declaration),
            bindings=dict(self.bindings),
        )

    def annotate(self, err: DslError, node: Any = None) -> DslError:
        """Attach context to an error raised below this environment."""
        return err.with_context(
            expression=None if node is None else str(node),
            declaration=None if self.declaration is None else str(self.declaration),
            bindings=dict(self.bindings),
        )
