"""Variable families, variable instances and their canonical names."""

import copy
import math
import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from ..exceptions import (
    DuplicateFamily,
    IndexArityMismatch,
    InvalidBounds,
    NameCollision,
    UndefinedVariable,
    UnresolvedWildcardDomain,
)
from ..utils.logger import get_logger

logger = get_logger(__name__)

# Prefix for components an LP reader would take for exponent notation, and
# for string components that would otherwise read like a number.
ESCAPE_PREFIX = "var_"

# Written as ``_XX`` hex escapes: characters with a meaning of their own in LP
# files, the separators of a canonical name, and an underscore that would
# itself read as an escape.
_ESCAPED_CHARS = re.compile(r"[\s+\-*/^\[\]<>=:\\,()]|_(?=[0-9A-F]{2}|U[0-9A-F]{4})")

# How numbers and booleans render inside a canonical name.
_NUMERIC_TEXT = re.compile(r"-?(\d+(\.\d+)?(e[+-]?\d+)?|inf)|nan|true|false")


class VariableType(str, Enum):
    """Decision variable types."""
    CONTINUOUS = "continuous"
    INTEGER = "integer"
    BINARY = "binary"

    @classmethod
    def parse(cls, value: "VariableType | str") -> "VariableType":
        if isinstance(value, VariableType):
            return value
        normalized = str(value).strip().lower()
        if normalized in ("real", "float"):
            return cls.CONTINUOUS
        if normalized in ("int",):
            return cls.INTEGER
        if normalized in ("bool", "boolean"):
            return cls.BINARY
        try:
            return cls(normalized)
        except ValueError:
            valid = ", ".join(t.value for t in cls)
            raise ValueError(f"Unknown variable type: {value!r}. Valid types: {valid}") from None


def render_index_value(value: Any) -> str:
    """Render one index value the way it appears inside a canonical name."""
    if isinstance(value, Enum):
        value = value.value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return repr(value)
    return str(value)


def _hex_escape(match: re.Match) -> str:
    code = ord(match.group())
    return f"_{code:02X}" if code < 0x100 else f"_U{code:04X}"


def encode_component(value: Any) -> str:
    """Encode one index value as a component of a canonical name.

    The encoding can be reversed, so distinct strings and numbers never share
    a component: escaped characters become ``_XX`` hex codes (``"a b"`` is
    ``a_20b``), and ``ESCAPE_PREFIX`` goes in front of components that start
    with ``e``/``E`` or with the prefix itself, and of strings that read like
    a number or boolean (``"1"`` is ``var_1``, ``1`` is ``1``).
    """
    text = render_index_value(value)
    encoded = _ESCAPED_CHARS.sub(_hex_escape, text)
    plain = value.value if isinstance(value, Enum) else value
    if (
        encoded[:1] in ("e", "E")
        or encoded.startswith(ESCAPE_PREFIX)
        or (isinstance(plain, str) and _NUMERIC_TEXT.fullmatch(text))
    ):
        encoded = ESCAPE_PREFIX + encoded
    return encoded


def canonical_name(family_name: str, index: Sequence[Any] = ()) -> str:
    """Canonical identifier of a variable instance.

    ``x`` for a scalar, ``x(1,2)`` or ``ship(S1,C2)`` for indexed variables.
    """
    if not index:
        return family_name
    return f"{family_name}({','.join(encode_component(v) for v in index)})"


@dataclass(frozen=True)
class VariableFamily:
    """A named group of decision variables sharing type and bounds."""

    name: str
    type: VariableType
    min_bound: float | int | None = None
    max_bound: float | int | None = None
    description: str | None = None
    arity: int | None = None
    domains: tuple[tuple[Any, ...], ...] | None = None

    @property
    def lower(self) -> float:
        """Effective lower bound, ``-inf`` when unbounded."""
        if self.type is VariableType.BINARY:
            return 0.0
        return -math.inf if self.min_bound is None else float(self.min_bound)

    @property
    def upper(self) -> float:
        """Effective upper bound, ``inf`` when unbounded."""
        if self.type is VariableType.BINARY:
            return 1.0
        return math.inf if self.max_bound is None else float(self.max_bound)


@dataclass(frozen=True)
class VariableInstance:
    family: VariableFamily
    index: tuple[Any, ...]
    name: str
    description: str | None = None

    @property
    def type(self) -> VariableType:
        return self.family.type

    def __str__(self) -> str:
        return self.name


def validate_bounds(
    name: str,
    var_type: VariableType,
    min_bound: Any,
    max_bound: Any,
) -> None:
    """Check bound values against the variable type.

    Raises:
        InvalidBounds: On binary bounds, non-integral integer bounds or min > max
    """
    if var_type is VariableType.BINARY:
        if min_bound is not None or max_bound is not None:
            raise InvalidBounds(
                f"Binary variable family '{name}' cannot have explicit bounds",
                symbol=name,
            )
        return

    for label, bound in (("min_bound", min_bound), ("max_bound", max_bound)):
        if bound is None:
            continue
        if isinstance(bound, bool) or not isinstance(bound, (int, float)) or math.isnan(bound):
            raise InvalidBounds(
                f"{label} of variable family '{name}' must be a number, got {bound!r}",
                symbol=name,
            )
        if var_type is VariableType.INTEGER and not math.isinf(bound) and not float(bound).is_integer():
            raise InvalidBounds(
                f"Integer variable family '{name}' cannot have non-integral {label} {bound!r}",
                symbol=name,
            )

    if min_bound is not None and max_bound is not None and min_bound > max_bound:
        raise InvalidBounds(
            f"Variable family '{name}' has min_bound {min_bound!r} greater than max_bound {max_bound!r}",
            symbol=name,
        )


@dataclass
class _FamilyState:
    family: VariableFamily
    # Declared key set for closed families, None while the family is open.
    declared_keys: dict[tuple, None] | None = None
    # Per position, the distinct value sets contributed by separate declarations.
    declared_domains: list[list[frozenset]] = field(default_factory=list)


class VariableRegistry:
    """Owns variable families and the instances created from them.

    Instances are kept in creation order so that every consumer sees the
    same, deterministic ordering.
    """

    def __init__(self):
        self._families: dict[str, _FamilyState] = {}
        self._instances: dict[tuple[str, tuple], VariableInstance] = {}
        self._by_name: dict[str, tuple[str, tuple]] = {}

    def copy(self) -> "VariableRegistry":
        """Independent copy; families and instances are immutable and shared."""
        clone = VariableRegistry()
        clone._families = {
            name: _FamilyState(
                family=state.family,
                declared_keys=None if state.declared_keys is None else dict(state.declared_keys),
                declared_domains=copy.deepcopy(state.declared_domains),
            )
            for name, state in self._families.items()
        }
        clone._instances = dict(self._instances)
        clone._by_name = dict(self._by_name)
        return clone

    # Families

    def declare_family(
        self,
        name: str,
        var_type: VariableType | str = VariableType.CONTINUOUS,
        min_bound: float | int | None = None,
        max_bound: float | int | None = None,
        description: str | None = None,
        arity: int | None = None,
        domains: Sequence[Iterable[Any]] | None = None,
    ) -> VariableFamily:
        """Declare a variable family, or return the existing one.

        Redeclaring a family with the same type is allowed and returns the
        original definition; a later declaration only adds instances. Its
        bounds are still validated, and bounds that differ from the original
        ones are logged and ignored.

        Raises:
            DuplicateFamily: If the family exists with a different type
            InvalidBounds: If the bounds conflict with the type
        """
        var_type = VariableType.parse(var_type)
        frozen_domains = None
        if domains is not None:
            frozen_domains = tuple(tuple(d) for d in domains)
            if arity is None:
                arity = len(frozen_domains)
            elif arity != len(frozen_domains):
                raise IndexArityMismatch(
                    f"Variable family '{name}' declares arity {arity} "
                    f"but {len(frozen_domains)} index domains",
                    symbol=name,
                )

        existing = self._families.get(name)
        if existing is not None:
            family = existing.family
            if family.type is not var_type:
                raise DuplicateFamily(
                    f"Variable family '{name}' already declared as {family.type.value}, "
                    f"cannot redeclare as {var_type.value}",
                    symbol=name,
                )
            if arity is not None and family.arity is not None and arity != family.arity:
                raise IndexArityMismatch(
                    f"Variable family '{name}' has arity {family.arity}, redeclared with arity {arity}",
                    symbol=name,
                )
            validate_bounds(name, var_type, min_bound, max_bound)
            for label, old, new in (
                ("min_bound", family.min_bound, min_bound),
                ("max_bound", family.max_bound, max_bound),
            ):
                if new is not None and new != old:
                    logger.warning(
                        f"Variable family '{name}' keeps {label} {old!r}; "
                        f"ignoring {new!r} from a later declaration"
                    )
            if family.arity is None and arity is not None:
                family = VariableFamily(
                    name=family.name,
                    type=family.type,
                    min_bound=family.min_bound,
                    max_bound=family.max_bound,
                    description=family.description,
                    arity=arity,
                    domains=family.domains,
                )
                existing.family = family
            logger.debug(f"Reusing variable family '{name}'")
            return family

        validate_bounds(name, var_type, min_bound, max_bound)
        family = VariableFamily(
            name=name,
            type=var_type,
            min_bound=min_bound,
            max_bound=max_bound,
            description=description,
            arity=arity,
            domains=frozen_domains,
        )
        self._families[name] = _FamilyState(family=family)
        logger.debug(f"Declared variable family '{name}' ({var_type.value}, arity={arity})")
        return family

    def has_family(self, name: str) -> bool:
        return name in self._families

    def family(self, name: str) -> VariableFamily:
        """Look up a family definition.

        Raises:
            UndefinedVariable: If no family has this name
        """
        state = self._families.get(name)
        if state is None:
            raise UndefinedVariable(f"Variable family '{name}' is not defined", symbol=name)
        return state.family

    @property
    def families(self) -> list[VariableFamily]:
        return [state.family for state in self._families.values()]

    def record_declaration(self, name: str, keys: Sequence[tuple]) -> None:
        """Record the index keys enumerated by one ``variables`` declaration.

        The family becomes closed: later references must use declared keys.
        """
        state = self._families[name]
        if state.declared_keys is None:
            state.declared_keys = {}
        for key in keys:
            state.declared_keys[key] = None
        if not keys:
            return
        arity = len(keys[0])
        while len(state.declared_domains) < arity:
            state.declared_domains.append([])
        for position in range(arity):
            values = frozenset(key[position] for key in keys)
            if values not in state.declared_domains[position]:
                state.declared_domains[position].append(values)

    # Instances

    def instantiate(self, family_name: str, index: Sequence[Any] = (), description: str | None = None) -> VariableInstance:
        """Return the instance for ``(family_name, index)``, creating it once.

        Raises:
            UndefinedVariable: Unknown family, or an index outside the declared keys
            IndexArityMismatch: Wrong number of indices
            NameCollision: The canonical name is taken by another index tuple
        """
        index = tuple(index)
        key = (family_name, index)
        instance = self._instances.get(key)
        if instance is not None:
            return instance

        state = self._families.get(family_name)
        if state is None:
            raise UndefinedVariable(
                f"Variable family '{family_name}' is not defined", symbol=family_name
            )
        family = state.family
        if family.arity is not None and len(index) != family.arity:
            raise IndexArityMismatch(
                f"Variable family '{family_name}' takes {family.arity} indices, got {len(index)}",
                symbol=family_name,
            )
        if family.domains is not None:
            for position, (value, domain) in enumerate(zip(index, family.domains)):
                if value not in domain:
                    raise UndefinedVariable(
                        f"Index {value!r} at position {position} is outside the declared "
                        f"domain of variable family '{family_name}'",
                        symbol=family_name,
                    )
        if state.declared_keys is not None and index not in state.declared_keys:
            raise UndefinedVariable(
                f"Variable {canonical_name(family_name, index)} was not declared "
                f"in variable family '{family_name}'",
                symbol=family_name,
            )

        name = canonical_name(family_name, index)
        owner = self._by_name.get(name)
        if owner is not None:
            raise NameCollision(
                f"Index {index!r} of variable family '{family_name}' maps to the canonical "
                f"name '{name}', already used by index {owner[1]!r} of '{owner[0]}'",
                symbol=family_name,
            )

        if family.arity is None:
            family = self._fix_arity(state, len(index))

        instance = VariableInstance(family=family, index=index, name=name, description=description)
        self._instances[key] = instance
        self._by_name[name] = key
        return instance

    def _fix_arity(self, state: _FamilyState, arity: int) -> VariableFamily:
        old = state.family
        state.family = VariableFamily(
            name=old.name,
            type=old.type,
            min_bound=old.min_bound,
            max_bound=old.max_bound,
            description=old.description,
            arity=arity,
            domains=old.domains,
        )
        # Instances keep pointing at the family object they were built with;
        # rebind them so every instance sees the same definition.
        for key, instance in list(self._instances.items()):
            if key[0] == old.name:
                self._instances[key] = VariableInstance(
                    family=state.family,
                    index=instance.index,
                    name=instance.name,
                    description=instance.description,
                )
        return state.family

    def get(self, name: str) -> VariableInstance | None:
        """Look up an instance by canonical name."""
        key = self._by_name.get(name)
        return None if key is None else self._instances[key]

    @property
    def instances(self) -> list[VariableInstance]:
        return list(self._instances.values())

    def __len__(self) -> int:
        return len(self._instances)

    # Wildcard support

    def keys(self, family_name: str) -> list[tuple]:
        """Known index keys of a family: declared keys, then any instantiated ones."""
        state = self._families.get(family_name)
        if state is None:
            raise UndefinedVariable(
                f"Variable family '{family_name}' is not defined", symbol=family_name
            )
        ordered: dict[tuple, None] = dict(state.declared_keys or {})
        for (name, index) in self._instances:
            if name == family_name:
                ordered.setdefault(index, None)
        if not ordered and state.family.domains is not None:
            ordered = {key: None for key in _product(state.family.domains)}
        return list(ordered)

    def matching_keys(self, family_name: str, pattern: Sequence[Any], is_wildcard) -> list[tuple]:
        """Keys whose concrete positions equal ``pattern``; wildcard positions match anything.

        Raises:
            UnresolvedWildcardDomain: If no key is known, or a wildcard position
                was declared with conflicting domains
        """
        for position, value in enumerate(pattern):
            if is_wildcard(value):
                self._check_unambiguous(family_name, position)
        keys = self.keys(family_name)
        if not keys:
            raise UnresolvedWildcardDomain(
                f"Cannot infer wildcard domain: variable family '{family_name}' has no "
                f"declared or instantiated indices",
                symbol=family_name,
            )
        result = []
        for key in keys:
            if len(key) != len(pattern):
                raise IndexArityMismatch(
                    f"Variable family '{family_name}' takes {len(key)} indices, got {len(pattern)}",
                    symbol=family_name,
                )
            if all(is_wildcard(p) or p == k for p, k in zip(pattern, key)):
                result.append(key)
        return result

    def _check_unambiguous(self, family_name: str, position: int) -> None:
        state = self._families.get(family_name)
        if state is None:
            raise UndefinedVariable(
                f"Variable family '{family_name}' is not defined", symbol=family_name
            )
        if position < len(state.declared_domains) and len(state.declared_domains[position]) > 1:
            raise UnresolvedWildcardDomain(
                f"Cannot infer wildcard domain: index position {position} of variable family "
                f"'{family_name}' was declared with different domains by separate declarations",
                symbol=family_name,
            )


def _product(domains: Sequence[Sequence[Any]]) -> list[tuple]:
    keys: list[tuple] = [()]
    for domain in domains:
        keys = [key + (value,) for key in keys for value in domain]
    return keys
