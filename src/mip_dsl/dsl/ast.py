"""Expression tree consumed by the compiler.

Nodes are immutable dataclasses. Python operators on nodes build larger
trees, so a model can be written close to its mathematical form::

    ship = var("ship")
    s = sym("s")
    supply = param("supply")

    sum_of(ship(s, WILDCARD)) <= supply[s]

``==`` and ``!=`` keep their structural meaning on nodes; use
``lhs.eq(rhs)`` for an equality constraint and ``a.ne(b)`` in filters.
Filter conditions combine with ``&``, ``|`` and ``~``::

    sum_of(x(i, j), gen("i", nodes), gen("j", nodes), i.ne(j))
"""

from collections.abc import Callable, Iterator, Mapping
from dataclasses import dataclass, replace
from typing import Any

ARITHMETIC_OPERATORS = ("+", "-", "*", "/")
CONSTRAINT_OPERATORS = ("<=", ">=", "==")
COMPARISON_OPERATORS = CONSTRAINT_OPERATORS + ("<", ">", "!=")
BOOLEAN_OPERATORS = ("and", "or")


def as_node(value: Any) -> "Node":
    """Wrap plain Python values as ``Literal`` nodes."""
    if isinstance(value, Node):
        return value
    return Literal(value)


class Node:
    """Base class for expression nodes."""

    __slots__ = ()

    def __add__(self, other: Any) -> "BinOp":
        return BinOp("+", self, as_node(other))

    def __radd__(self, other: Any) -> "BinOp":
        return BinOp("+", as_node(other), self)

    def __sub__(self, other: Any) -> "BinOp":
        return BinOp("-", self, as_node(other))

    def __rsub__(self, other: Any) -> "BinOp":
        return BinOp("-", as_node(other), self)

    def __mul__(self, other: Any) -> "BinOp":
        return BinOp("*", self, as_node(other))

    def __rmul__(self, other: Any) -> "BinOp":
        return BinOp("*", as_node(other), self)

    def __truediv__(self, other: Any) -> "BinOp":
        return BinOp("/", self, as_node(other))

    def __rtruediv__(self, other: Any) -> "BinOp":
        return BinOp("/", as_node(other), self)

    def __neg__(self) -> "Neg":
        return Neg(self)

    def __pos__(self) -> "Node":
        return self

    def __le__(self, other: Any) -> "Compare":
        return Compare("<=", self, as_node(other))

    def __ge__(self, other: Any) -> "Compare":
        return Compare(">=", self, as_node(other))

    def __lt__(self, other: Any) -> "Compare":
        return Compare("<", self, as_node(other))

    def __gt__(self, other: Any) -> "Compare":
        return Compare(">", self, as_node(other))

    def eq(self, other: Any) -> "Compare":
        """Build an equality comparison ``self == other``."""
        return Compare("==", self, as_node(other))

    def ne(self, other: Any) -> "Compare":
        """Build an inequality test ``self != other`` for filter clauses."""
        return Compare("!=", self, as_node(other))

    def __and__(self, other: Any) -> "BoolOp":
        return BoolOp("and", self, as_node(other))

    def __or__(self, other: Any) -> "BoolOp":
        return BoolOp("or", self, as_node(other))

    def __invert__(self) -> "Not":
        return Not(self)

    def __getitem__(self, key: Any) -> "Access":
        return Access(self, as_node(key))

    def attr(self, name: str) -> "Attr":
        """Build a record field access ``self.name``."""
        return Attr(self, name)

    def children(self) -> tuple["Node", ...]:
        return ()

    def map_children(self, fn: Callable[["Node"], "Node"]) -> "Node":
        return self


@dataclass(frozen=True)
class Literal(Node):
    value: Any

    def __str__(self) -> str:
        if isinstance(self.value, str):
            return repr(self.value)
        return str(self.value)


@dataclass(frozen=True)
class Symbol(Node):
    name: str

    def __call__(self, *indices: Any) -> "VarRef":
        return VarRef(self.name, tuple(as_node(i) for i in indices))

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class Wildcard(Node):
    def __str__(self) -> str:
        return "_"


WILDCARD = Wildcard()


@dataclass(frozen=True)
class VarRef(Node):
    name: str
    indices: tuple[Node, ...] = ()

    def children(self) -> tuple[Node, ...]:
        return self.indices

    def map_children(self, fn: Callable[[Node], Node]) -> Node:
        return replace(self, indices=tuple(fn(i) for i in self.indices))

    def __str__(self) -> str:
        return f"{self.name}({', '.join(str(i) for i in self.indices)})"


@dataclass(frozen=True)
class Access(Node):
    base: Node
    key: Node

    def children(self) -> tuple[Node, ...]:
        return (self.base, self.key)

    def map_children(self, fn: Callable[[Node], Node]) -> Node:
        return replace(self, base=fn(self.base), key=fn(self.key))

    def __str__(self) -> str:
        return f"{self.base}[{self.key}]"


@dataclass(frozen=True)
class Attr(Node):
    base: Node
    name: str

    def children(self) -> tuple[Node, ...]:
        return (self.base,)

    def map_children(self, fn: Callable[[Node], Node]) -> Node:
        return replace(self, base=fn(self.base))

    def __str__(self) -> str:
        return f"{self.base}.{self.name}"


@dataclass(frozen=True)
class BinOp(Node):
    op: str
    left: Node
    right: Node

    def __post_init__(self):
        if self.op not in ARITHMETIC_OPERATORS:
            raise ValueError(f"Unknown arithmetic operator: {self.op}")

    def children(self) -> tuple[Node, ...]:
        return (self.left, self.right)

    def map_children(self, fn: Callable[[Node], Node]) -> Node:
        return replace(self, left=fn(self.left), right=fn(self.right))

    def __str__(self) -> str:
        return f"{_wrap(self.left)} {self.op} {_wrap(self.right)}"


@dataclass(frozen=True)
class Neg(Node):
    operand: Node

    def children(self) -> tuple[Node, ...]:
        return (self.operand,)

    def map_children(self, fn: Callable[[Node], Node]) -> Node:
        return replace(self, operand=fn(self.operand))

    def __str__(self) -> str:
        return f"-{_wrap(self.operand)}"


@dataclass(frozen=True)
class Range(Node):
    """Inclusive integer range ``start..stop``."""

    start: Node
    stop: Node

    def children(self) -> tuple[Node, ...]:
        return (self.start, self.stop)

    def map_children(self, fn: Callable[[Node], Node]) -> Node:
        return replace(self, start=fn(self.start), stop=fn(self.stop))

    def __str__(self) -> str:
        return f"{self.start}..{self.stop}"


@dataclass(frozen=True)
class Generator:
    """Generator clause: bind ``symbol`` to every value of ``domain``.

    ``domain`` is either a node evaluated against the current environment or
    a plain Python collection (range, list, tuple, set, dict keys).
    """

    symbol: str
    domain: Any

    def __str__(self) -> str:
        return f"for {self.symbol} in {self.domain}"


@dataclass(frozen=True)
class Filter:
    """Filter clause: keep only the bindings for which ``condition`` holds.

    The condition may use every symbol bound by the clauses before it.
    """

    condition: "Node"

    def __str__(self) -> str:
        return f"if {self.condition}"


Clause = Generator | Filter


@dataclass(frozen=True)
class Sum(Node):
    """Aggregation. Without clauses the body must contain wildcards."""

    body: Node
    clauses: tuple[Clause, ...] = ()

    def children(self) -> tuple[Node, ...]:
        return (self.body,)

    def map_children(self, fn: Callable[[Node], Node]) -> Node:
        return replace(self, body=fn(self.body))

    def __str__(self) -> str:
        if not self.clauses:
            return f"sum({self.body})"
        return f"sum({self.body} {' '.join(str(c) for c in self.clauses)})"


@dataclass(frozen=True)
class For(Node):
    clauses: tuple[Clause, ...]
    body: Node

    def children(self) -> tuple[Node, ...]:
        return (self.body,)

    def map_children(self, fn: Callable[[Node], Node]) -> Node:
        return replace(self, body=fn(self.body))

    def __str__(self) -> str:
        return f"[{self.body} {' '.join(str(c) for c in self.clauses)}]"


@dataclass(frozen=True)
class Compare(Node):
    op: str
    left: Node
    right: Node

    def __post_init__(self):
        if self.op not in COMPARISON_OPERATORS:
            raise ValueError(f"Unknown comparison operator: {self.op}")

    def children(self) -> tuple[Node, ...]:
        return (self.left, self.right)

    def map_children(self, fn: Callable[[Node], Node]) -> Node:
        return replace(self, left=fn(self.left), right=fn(self.right))

    def __str__(self) -> str:
        return f"{self.left} {self.op} {self.right}"


@dataclass(frozen=True)
class BoolOp(Node):
    op: str
    left: Node
    right: Node

    def __post_init__(self):
        if self.op not in BOOLEAN_OPERATORS:
            raise ValueError(f"Unknown boolean operator: {self.op}")

    def children(self) -> tuple[Node, ...]:
        return (self.left, self.right)

    def map_children(self, fn: Callable[[Node], Node]) -> Node:
        return replace(self, left=fn(self.left), right=fn(self.right))

    def __str__(self) -> str:
        return f"{_wrap(self.left)} {self.op} {_wrap(self.right)}"


@dataclass(frozen=True)
class Not(Node):
    operand: Node

    def children(self) -> tuple[Node, ...]:
        return (self.operand,)

    def map_children(self, fn: Callable[[Node], Node]) -> Node:
        return replace(self, operand=fn(self.operand))

    def __str__(self) -> str:
        return f"not {_wrap(self.operand)}"


def _wrap(node: Node) -> str:
    if isinstance(node, (BinOp, Compare, BoolOp)):
        return f"({node})"
    return str(node)


# Constructors

def sym(name: str) -> Symbol:
    """Reference a generator symbol, model parameter or variable family."""
    return Symbol(name)


var = sym
param = sym


def gen(symbol: str, domain: Any) -> Generator:
    return Generator(symbol, domain)


def where(condition: Any) -> Filter:
    return Filter(as_node(condition))


def irange(start: Any, stop: Any) -> Range:
    return Range(as_node(start), as_node(stop))


def as_clauses(clauses: Any) -> tuple[Clause, ...]:
    """Normalize generator clauses.

    Accepts ``Generator`` and ``Filter`` objects, ``(symbol, domain)`` pairs,
    bare condition nodes (taken as filters), or a mapping of symbol to domain
    (ordered, first entry outermost).
    """
    if clauses is None:
        return ()
    if isinstance(clauses, (Generator, Filter)):
        return (clauses,)
    if isinstance(clauses, Mapping):
        return tuple(Generator(str(k), v) for k, v in clauses.items())
    result = []
    for clause in clauses:
        if isinstance(clause, (Generator, Filter)):
            result.append(clause)
        elif isinstance(clause, (Compare, BoolOp, Not)):
            result.append(Filter(clause))
        elif isinstance(clause, tuple) and len(clause) == 2 and isinstance(clause[0], str):
            result.append(Generator(clause[0], clause[1]))
        else:
            raise TypeError(f"Invalid generator clause: {clause!r}")
    return tuple(result)


def generator_symbols(clauses: tuple[Clause, ...]) -> list[str]:
    """Symbols bound by the generator clauses, filters skipped."""
    return [c.symbol for c in clauses if isinstance(c, Generator)]


def sum_of(body: Any, *clauses: Any) -> Sum:
    """``sum(body)`` over wildcards, or over explicit generator clauses."""
    return Sum(as_node(body), as_clauses(clauses))


def for_each(clauses: Any, body: Any) -> For:
    return For(as_clauses(clauses), as_node(body))


# Traversal

def _is_aggregate(node: Node) -> bool:
    return isinstance(node, (Sum, For))


def iter_local_nodes(node: Node) -> Iterator[Node]:
    """Depth-first walk that does not enter nested aggregations."""
    yield node
    for child in node.children():
        if _is_aggregate(child):
            yield child
            continue
        yield from iter_local_nodes(child)


def contains_wildcard(node: Node) -> bool:
    """True if a wildcard belongs to this aggregation level."""
    return any(isinstance(n, Wildcard) for n in iter_local_nodes(node))


def bind_wildcards(node: Node, values: tuple) -> Node:
    """Substitute one implicit index tuple for the wildcards at this aggregation level.

    The wildcards of a variable reference take the values of the tuple in
    order, so ``x(_, 2, _)`` bound to ``(a, b)`` becomes ``x(a, 2, b)``.
    Any other wildcard, such as the key of ``w[_]``, takes the first value.
    """
    if isinstance(node, Wildcard):
        return Literal(values[0])
    if _is_aggregate(node):
        return node
    if isinstance(node, VarRef):
        remaining = iter(values)
        return replace(
            node,
            indices=tuple(
                Literal(next(remaining)) if isinstance(index, Wildcard) else bind_wildcards(index, values)
                for index in node.indices
            ),
        )
    return node.map_children(lambda child: bind_wildcards(child, values))


def _clause_node(clause: Clause) -> Any:
    return clause.condition if isinstance(clause, Filter) else clause.domain


def referenced_symbols(value: Any) -> set[str]:
    """Names of all ``Symbol`` nodes inside ``value``, clauses included."""
    if isinstance(value, Filter):
        value = value.condition
    if not isinstance(value, Node):
        return set()
    names = set()
    stack = [value]
    while stack:
        node = stack.pop()
        if isinstance(node, Symbol):
            names.add(node.name)
        if isinstance(node, (Sum, For)):
            for clause in node.clauses:
                names |= referenced_symbols(_clause_node(clause))
        stack.extend(node.children())
    return names
