"""Generator clause expansion and wildcard domain inference."""

from collections.abc import Callable, Iterable, Iterator, Mapping, Set
from typing import Any, TypeVar

from ..exceptions import DslError, InvalidDomain, UnresolvedWildcardDomain, UnsupportedOperation
from .ast import (
    Access,
    Clause,
    Filter,
    For,
    Generator,
    Node,
    Sum,
    VarRef,
    Wildcard,
    as_clauses,
    referenced_symbols,
)
from .environment import SymbolEnvironment

T = TypeVar("T")

Evaluate = Callable[[Node, SymbolEnvironment], Any]


def to_domain(value: Any) -> list[Any]:
    """Turn an evaluated domain into an ordered list of values.

    Mappings contribute their keys, sets are sorted when their values are
    comparable so that iteration order does not depend on hashing.

    Raises:
        InvalidDomain: For strings, bytes and non-iterable values
    """
    if isinstance(value, (str, bytes)):
        raise InvalidDomain(f"A string is not a valid generator domain: {value!r}")
    if isinstance(value, Mapping):
        return list(value.keys())
    if isinstance(value, Set):
        try:
            return sorted(value)
        except TypeError:
            return sorted(value, key=repr)
    if isinstance(value, Iterable):
        return list(value)
    raise InvalidDomain(f"Generator domain must be a finite collection, got {type(value).__name__}: {value!r}")


def _is_wildcard(value: Any) -> bool:
    return isinstance(value, Wildcard)


class GeneratorExpander:
    """Enumerates the Cartesian product of generator clauses.

    The first clause is the outermost loop. A clause domain is evaluated once
    per expansion, or once per outer binding when it mentions a symbol bound
    by an earlier clause. Filter clauses drop the bindings for which their
    condition is false.
    """

    def __init__(self, evaluate: Evaluate):
        self._evaluate = evaluate

    def iterate(self, clauses: Any, env: SymbolEnvironment) -> Iterator[SymbolEnvironment]:
        clauses = as_clauses(clauses)
        if not clauses:
            yield env
            return

        dependent = []
        bound: set[str] = set()
        for clause in clauses:
            if isinstance(clause, Filter):
                dependent.append(True)
                continue
            dependent.append(bool(referenced_symbols(clause.domain) & bound))
            bound.add(clause.symbol)

        yield from self._walk(clauses, dependent, 0, env, {})

    def expand(
        self,
        clauses: Any,
        env: SymbolEnvironment,
        body: Callable[[SymbolEnvironment], T],
    ) -> list[T]:
        """Apply ``body`` to every binding, in generator order."""
        return [body(inner) for inner in self.iterate(clauses, env)]

    def domain_values(self, clause: Generator, env: SymbolEnvironment) -> list[Any]:
        domain = clause.domain
        try:
            if isinstance(domain, Node):
                domain = self._evaluate(domain, env)
            return to_domain(domain)
        except DslError as err:
            raise env.annotate(err, clause) from None

    def accepts(self, clause: Filter, env: SymbolEnvironment) -> bool:
        """Evaluate a filter condition for the current bindings."""
        try:
            result = self._evaluate(clause.condition, env)
        except DslError as err:
            raise env.annotate(err, clause) from None
        if not isinstance(result, bool):
            raise env.error(
                UnsupportedOperation,
                f"Filter condition must be true or false, got {type(result).__name__}: {result!r}",
                node=clause,
            )
        return result

    def _walk(
        self,
        clauses: tuple[Clause, ...],
        dependent: list[bool],
        depth: int,
        env: SymbolEnvironment,
        cache: dict[int, list[Any]],
    ) -> Iterator[SymbolEnvironment]:
        if depth == len(clauses):
            yield env
            return
        clause = clauses[depth]
        if isinstance(clause, Filter):
            if self.accepts(clause, env):
                yield from self._walk(clauses, dependent, depth + 1, env, cache)
            return
        if dependent[depth]:
            values = self.domain_values(clause, env)
        else:
            if depth not in cache:
                cache[depth] = self.domain_values(clause, env)
            values = cache[depth]
        for value in values:
            yield from self._walk(clauses, dependent, depth + 1, env.bind(clause.symbol, value), cache)


class WildcardResolver:
    """Infers what a wildcard ranges over from the variable registry and parameters.

    Wildcards are grouped into sites. The wildcards of one variable reference
    form a single site whose values are index tuples, so ``x(_, _)`` ranges
    over the existing keys of ``x``. A parameter key ``w[_]`` is a site of
    width one. All sites of a body share one implicit index.
    """

    def __init__(self, evaluate: Evaluate):
        self._evaluate = evaluate

    def matching_keys(self, ref: VarRef, env: SymbolEnvironment) -> list[tuple]:
        """Every known key of ``ref``'s family that agrees with its concrete indices."""
        pattern = self._pattern(ref, env)
        return env.registry.matching_keys(ref.name, pattern, _is_wildcard)

    def domain(self, body: Node, env: SymbolEnvironment) -> list[tuple]:
        """Index tuples of the implicit index shared by all wildcard sites in ``body``.

        The result keeps the order of the first site and the tuples present
        at every site.

        Raises:
            UnresolvedWildcardDomain: If no site yields a domain, the sites
                differ in width, or they have nothing in common
        """
        sites: list[tuple[str, int, list[tuple]]] = []
        self._collect_sites(body, env, sites)

        if not sites:
            raise env.error(
                UnresolvedWildcardDomain,
                "Cannot infer wildcard domain: wildcards must index a variable or a parameter",
                node=body,
            )
        labels = ", ".join(label for label, _, _ in sites)
        if len({width for _, width, _ in sites}) > 1:
            raise env.error(
                UnresolvedWildcardDomain,
                f"Wildcard sites {labels} use different numbers of wildcards",
                node=body,
            )

        result = sites[0][2]
        for _, _, other in sites[1:]:
            present = set(other)
            result = [values for values in result if values in present]
        if not result and len(sites) > 1:
            raise env.error(
                UnresolvedWildcardDomain,
                f"Wildcard domains of {labels} have no value in common",
                node=body,
            )
        return result

    def _collect_sites(self, node: Node, env: SymbolEnvironment, sites: list) -> None:
        if isinstance(node, VarRef):
            positions = [p for p, index in enumerate(node.indices) if isinstance(index, Wildcard)]
            if positions:
                keys = self.matching_keys(node, env)
                values = dict.fromkeys(tuple(key[p] for p in positions) for key in keys)
                sites.append((str(node), len(positions), list(values)))
        elif isinstance(node, Access) and isinstance(node.key, Wildcard):
            sites.append((str(node), 1, [(key,) for key in self._container_keys(node, env)]))
        for child in node.children():
            if not isinstance(child, (Sum, For, Wildcard)):
                self._collect_sites(child, env, sites)

    def _pattern(self, ref: VarRef, env: SymbolEnvironment) -> tuple:
        return tuple(
            index if isinstance(index, Wildcard) else self._evaluate(index, env)
            for index in ref.indices
        )

    def _container_keys(self, node: Access, env: SymbolEnvironment) -> list[Any]:
        container = self._evaluate(node.base, env)
        if isinstance(container, Mapping):
            return list(container.keys())
        if isinstance(container, (list, tuple)):
            return list(range(len(container)))
        raise env.error(
            UnresolvedWildcardDomain,
            f"Cannot infer wildcard domain from {type(container).__name__} '{node.base}'",
            node=node,
        )


def aggregate_clauses(node: Sum | For) -> tuple[tuple[Clause, ...], Node]:
    """Clauses and body of an aggregation, looking through ``sum(for ...)``."""
    if isinstance(node, Sum) and not node.clauses and isinstance(node.body, For):
        return node.body.clauses, node.body.body
    return node.clauses, node.body
