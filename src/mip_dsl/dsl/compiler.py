"""Compiles expression trees into canonical polynomials."""

import math
import numbers
import operator
from collections.abc import Hashable, Mapping, Sequence
from enum import Enum
from typing import Any

from ..exceptions import (
    DslError,
    IndexOutOfBounds,
    InvalidDomain,
    MissingKey,
    NonlinearExpression,
    UndefinedConstant,
    UndefinedVariable,
    UnsupportedOperation,
    WildcardOutsideAggregation,
)
from ..utils.logger import get_logger
from .ast import (
    Access,
    Attr,
    CONSTRAINT_OPERATORS,
    BinOp,
    BoolOp,
    Compare,
    For,
    Literal,
    Neg,
    Node,
    Not,
    Range,
    Sum,
    Symbol,
    VarRef,
    Wildcard,
    as_node,
    bind_wildcards,
    contains_wildcard,
)
from .environment import ResolutionKind, SymbolEnvironment
from .generators import GeneratorExpander, WildcardResolver, aggregate_clauses
from .polynomial import Polynomial

logger = get_logger(__name__)

_ORDERINGS = {
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
}


def is_number(value: Any) -> bool:
    return isinstance(value, numbers.Real) and not isinstance(value, bool)


class ExpressionCompiler:
    """Turns expression nodes into polynomials over canonical variable names.

    ``compile`` produces a polynomial, ``evaluate`` produces a plain Python
    value for subexpressions that must be constant (indices, keys, domains,
    bounds). Every ``DslError`` leaving the compiler names the innermost
    failing expression, the declaration and the active bindings.
    """

    def __init__(self, prune_zero_terms: bool = True):
        self.prune_zero_terms = prune_zero_terms
        self.expander = GeneratorExpander(self.evaluate)
        self.wildcards = WildcardResolver(self.evaluate)

    # Polynomial compilation

    def compile(self, node: Any, env: SymbolEnvironment) -> Polynomial:
        polynomial = self._compile(as_node(node), env)
        return polynomial.prune() if self.prune_zero_terms else polynomial

    def compile_comparison(self, node: Any, env: SymbolEnvironment) -> tuple[Polynomial, str, float]:
        """Normalize ``L op R`` to ``(L - R without constant, op, -constant)``."""
        node = as_node(node)
        if not isinstance(node, Compare):
            raise env.error(
                UnsupportedOperation,
                "A constraint must be a comparison (<=, >= or ==)",
                node=node,
            )
        if node.op not in CONSTRAINT_OPERATORS:
            raise env.error(
                UnsupportedOperation,
                f"Constraints use <=, >= or ==, not {node.op}",
                node=node,
            )
        difference = self.compile(node.left, env) - self.compile(node.right, env)
        lhs, constant = difference.split_constant()
        if self.prune_zero_terms:
            lhs = lhs.prune()
        return lhs, node.op, 0.0 - constant

    def _compile(self, node: Node, env: SymbolEnvironment) -> Polynomial:
        try:
            return self._dispatch(node, env)
        except DslError as err:
            raise env.annotate(err, node) from None

    def _dispatch(self, node: Node, env: SymbolEnvironment) -> Polynomial:
        if isinstance(node, Literal):
            return self._constant(node.value, node, env)
        if isinstance(node, Symbol):
            return self._compile_symbol(node, env)
        if isinstance(node, VarRef):
            return self._compile_varref(node, env)
        if isinstance(node, (Access, Attr)):
            return self._constant(self.evaluate(node, env), node, env)
        if isinstance(node, BinOp):
            return self._compile_binop(node, env)
        if isinstance(node, Neg):
            return -self._compile(node.operand, env)
        if isinstance(node, (Sum, For)):
            return self._compile_aggregate(node, env)
        if isinstance(node, Wildcard):
            raise env.error(
                WildcardOutsideAggregation, "Wildcard used outside of sum", node=node
            )
        if isinstance(node, Range):
            raise env.error(
                UnsupportedOperation, "A range cannot be used as a value", node=node
            )
        if isinstance(node, (Compare, BoolOp, Not)):
            raise env.error(
                UnsupportedOperation, "A condition cannot be used as a value", node=node
            )
        raise env.error(UnsupportedOperation, f"Unknown expression node {type(node).__name__}", node=node)

    def _constant(self, value: Any, node: Node, env: SymbolEnvironment) -> Polynomial:
        if not is_number(value):
            raise env.error(
                UnsupportedOperation,
                f"Expected a number, got {type(value).__name__}: {value!r}",
                node=node,
            )
        return Polynomial.const(float(value))

    def _compile_symbol(self, node: Symbol, env: SymbolEnvironment) -> Polynomial:
        resolution = env.require(node.name)
        if resolution.is_constant:
            return self._constant(resolution.value, node, env)
        family = resolution.value
        if family.arity:
            raise env.error(
                WildcardOutsideAggregation,
                f"Indexed variable family '{family.name}' used without indices outside of sum",
                node=node,
                symbol=family.name,
            )
        instance = env.registry.instantiate(family.name, ())
        return Polynomial.variable(instance.name)

    def _compile_varref(self, node: VarRef, env: SymbolEnvironment) -> Polynomial:
        self._require_family(node, env)
        index = []
        for item in node.indices:
            if isinstance(item, Wildcard):
                raise env.error(
                    WildcardOutsideAggregation,
                    f"Wildcard index of '{node.name}' used outside of sum",
                    node=node,
                    symbol=node.name,
                )
            index.append(self._index_value(item, env))
        instance = env.registry.instantiate(node.name, tuple(index))
        return Polynomial.variable(instance.name)

    def _require_family(self, node: VarRef, env: SymbolEnvironment) -> None:
        resolution = env.resolve(node.name)
        if resolution.is_family:
            return
        if resolution.is_constant:
            raise env.error(
                UnsupportedOperation,
                f"'{node.name}' is a constant, not a variable family, and cannot be indexed with ()",
                node=node,
                symbol=node.name,
            )
        raise env.error(
            UndefinedVariable,
            f"Variable family '{node.name}' is not defined",
            node=node,
            symbol=node.name,
        )

    def _index_value(self, node: Node, env: SymbolEnvironment) -> Any:
        value = self.evaluate(node, env)
        if isinstance(value, (list, dict, set)):
            raise env.error(
                UnsupportedOperation,
                f"Variable index must be a scalar, got {type(value).__name__}",
                node=node,
            )
        return value

    def _compile_binop(self, node: BinOp, env: SymbolEnvironment) -> Polynomial:
        left = self._compile(node.left, env)
        right = self._compile(node.right, env)
        if node.op == "+":
            return left + right
        if node.op == "-":
            return left - right
        if node.op == "*":
            if left.has_variables() and right.has_variables():
                raise env.error(
                    NonlinearExpression,
                    "Product of two expressions that both contain variables",
                    node=node,
                )
            return left * right
        if right.has_variables():
            raise env.error(UnsupportedOperation, "Division by an expression containing variables", node=node)
        divisor = right.constant
        if divisor == 0.0:
            raise env.error(UnsupportedOperation, "Division by zero", node=node)
        return left.scale(1.0 / divisor)

    def _compile_aggregate(self, node: Sum | For, env: SymbolEnvironment) -> Polynomial:
        clauses, body = aggregate_clauses(node)
        if not clauses:
            return self._compile_aggregate_body(body, env)
        return Polynomial.sum(
            self.expander.expand(clauses, env, lambda inner: self._compile_aggregate_body(body, inner))
        )

    def _compile_aggregate_body(self, body: Node, env: SymbolEnvironment) -> Polynomial:
        if isinstance(body, Symbol):
            family = env.family(body.name)
            if family is not None and family.arity and env.resolve(body.name).is_family:
                return self._sum_instances(body.name, env.registry.keys(body.name), env)
        if not contains_wildcard(body):
            return self._compile(body, env)
        if isinstance(body, VarRef):
            self._require_family(body, env)
            return self._sum_instances(body.name, self.wildcards.matching_keys(body, env), env)
        tuples = self.wildcards.domain(body, env)
        logger.debug(f"Wildcards in '{body}' expand over {len(tuples)} index tuples")
        return Polynomial.sum(self._compile(bind_wildcards(body, values), env) for values in tuples)

    def _sum_instances(self, family_name: str, keys: Sequence[tuple], env: SymbolEnvironment) -> Polynomial:
        terms = []
        for key in keys:
            instance = env.registry.instantiate(family_name, key)
            terms.append(Polynomial.variable(instance.name))
        return Polynomial.sum(terms)

    # Constant evaluation

    def evaluate(self, node: Any, env: SymbolEnvironment) -> Any:
        """Evaluate a subexpression that must not depend on decision variables."""
        node = as_node(node)
        try:
            return self._evaluate(node, env)
        except DslError as err:
            raise env.annotate(err, node) from None

    def _evaluate(self, node: Node, env: SymbolEnvironment) -> Any:
        if isinstance(node, Literal):
            return node.value
        if isinstance(node, Symbol):
            resolution = env.require(node.name)
            if resolution.is_constant:
                return resolution.value
            raise env.error(
                UnsupportedOperation,
                f"Variable family '{node.name}' used where a constant is required",
                node=node,
                symbol=node.name,
            )
        if isinstance(node, Access):
            base = self._container(node.base, env)
            key = self.evaluate(node.key, env)
            return self._lookup(base, key, node, env)
        if isinstance(node, Attr):
            base = self._container(node.base, env)
            return self._field(base, node.name, node, env)
        if isinstance(node, BinOp):
            return self._arithmetic(node, env)
        if isinstance(node, Neg):
            operand = self.evaluate(node.operand, env)
            self._require_number(operand, node, env)
            return -operand
        if isinstance(node, Range):
            return self._range(node, env)
        if isinstance(node, Compare):
            return self._comparison(node, env)
        if isinstance(node, BoolOp):
            left = self._condition(node.left, env)
            if node.op == "and":
                return left and self._condition(node.right, env)
            return left or self._condition(node.right, env)
        if isinstance(node, Not):
            return not self._condition(node.operand, env)
        if isinstance(node, For):
            return self.expander.expand(node.clauses, env, lambda inner: self.evaluate(node.body, inner))
        if isinstance(node, Sum):
            polynomial = self.compile(node, env)
            if polynomial.has_variables():
                raise env.error(
                    UnsupportedOperation,
                    "Sum over variables used where a constant is required",
                    node=node,
                )
            return polynomial.constant
        if isinstance(node, Wildcard):
            raise env.error(WildcardOutsideAggregation, "Wildcard used outside of sum", node=node)
        if isinstance(node, VarRef):
            raise env.error(
                UnsupportedOperation,
                f"Variable {node} used where a constant is required",
                node=node,
                symbol=node.name,
            )
        raise env.error(UnsupportedOperation, f"Cannot evaluate {type(node).__name__} as a constant", node=node)

    def _container(self, node: Node, env: SymbolEnvironment) -> Any:
        if isinstance(node, Symbol):
            resolution = env.resolve(node.name)
            if resolution.kind is ResolutionKind.VARIABLE_FAMILY:
                raise env.error(
                    UndefinedConstant,
                    f"'{node.name}' is a variable family, not a model parameter",
                    node=node,
                    symbol=node.name,
                )
            if resolution.kind is ResolutionKind.UNDEFINED:
                raise env.error(
                    UndefinedConstant,
                    f"Undefined constant '{node.name}'",
                    node=node,
                    symbol=node.name,
                )
            return resolution.value
        return self.evaluate(node, env)

    def _lookup(self, container: Any, key: Any, node: Node, env: SymbolEnvironment) -> Any:
        if isinstance(container, Mapping):
            for candidate in _key_candidates(key):
                if candidate in container:
                    return container[candidate]
            raise env.error(MissingKey, f"Key {key!r} not found in '{node.base}'", node=node)
        if isinstance(container, Sequence) and not isinstance(container, str):
            if not isinstance(key, numbers.Integral) or isinstance(key, bool):
                raise env.error(
                    UnsupportedOperation,
                    f"List index must be an integer, got {type(key).__name__}: {key!r}",
                    node=node,
                )
            if key < 0 or key >= len(container):
                raise env.error(
                    IndexOutOfBounds,
                    f"Index {key} out of bounds for '{node.base}' of length {len(container)}",
                    node=node,
                )
            return container[key]
        if isinstance(key, str):
            return self._field(container, key, node, env)
        raise env.error(
            UnsupportedOperation,
            f"Cannot index {type(container).__name__} value of '{node.base}'",
            node=node,
        )

    def _field(self, record: Any, name: str, node: Node, env: SymbolEnvironment) -> Any:
        if isinstance(record, Mapping):
            for candidate in _key_candidates(name):
                if candidate in record:
                    return record[candidate]
        elif not name.startswith("_") and hasattr(record, name):
            return getattr(record, name)
        raise env.error(MissingKey, f"Field '{name}' not found in '{node.base}'", node=node)

    def _arithmetic(self, node: BinOp, env: SymbolEnvironment) -> Any:
        left = self.evaluate(node.left, env)
        right = self.evaluate(node.right, env)
        self._require_number(left, node, env)
        self._require_number(right, node, env)
        if node.op == "+":
            return left + right
        if node.op == "-":
            return left - right
        if node.op == "*":
            return left * right
        if right == 0:
            raise env.error(UnsupportedOperation, "Division by zero", node=node)
        return left / right

    def _require_number(self, value: Any, node: Node, env: SymbolEnvironment) -> None:
        if not is_number(value):
            raise env.error(
                UnsupportedOperation,
                f"Arithmetic on non-numeric value {type(value).__name__}: {value!r}",
                node=node,
            )

    def _comparison(self, node: Compare, env: SymbolEnvironment) -> bool:
        left = self.evaluate(node.left, env)
        right = self.evaluate(node.right, env)
        if node.op == "==":
            return bool(left == right)
        if node.op == "!=":
            return bool(left != right)
        try:
            return bool(_ORDERINGS[node.op](left, right))
        except TypeError:
            raise env.error(
                UnsupportedOperation,
                f"Cannot compare {type(left).__name__} {left!r} with {type(right).__name__} {right!r}",
                node=node,
            ) from None

    def _condition(self, node: Node, env: SymbolEnvironment) -> bool:
        value = self.evaluate(node, env)
        if not isinstance(value, bool):
            raise env.error(
                UnsupportedOperation,
                f"Expected a condition, got {type(value).__name__}: {value!r}",
                node=node,
            )
        return value

    def _range(self, node: Range, env: SymbolEnvironment) -> range:
        bounds = []
        for bound in (node.start, node.stop):
            value = self.evaluate(bound, env)
            if not is_number(value) or not math.isfinite(value) or value != int(value):
                raise env.error(
                    InvalidDomain,
                    f"Range bounds must be integers, got {value!r}",
                    node=node,
                )
            bounds.append(int(value))
        return range(bounds[0], bounds[1] + 1)


def _key_candidates(key: Any) -> list[Any]:
    """The key itself, then its str/int counterpart."""
    if not isinstance(key, Hashable):
        return []
    candidates = [key]
    if isinstance(key, Enum):
        candidates.append(key.value)
    elif isinstance(key, str):
        if key.removeprefix("-").isdecimal():
            candidates.append(int(key))
    elif isinstance(key, numbers.Integral) and not isinstance(key, bool):
        candidates.append(str(key))
    return candidates
