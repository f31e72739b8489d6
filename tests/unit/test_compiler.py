"""Tests for the expression compiler."""

import math
from dataclasses import dataclass

import pytest

from mip_dsl.dsl.ast import WILDCARD, for_each, gen, irange, sum_of, sym, var, where
from mip_dsl.dsl.compiler import ExpressionCompiler
from mip_dsl.dsl.polynomial import Polynomial
from mip_dsl.exceptions import (
    IndexOutOfBounds,
    InvalidDomain,
    MissingKey,
    NonlinearExpression,
    UndefinedConstant,
    UndefinedSymbol,
    UndefinedVariable,
    UnsupportedOperation,
    WildcardOutsideAggregation,
)


@dataclass
class Plant:
    capacity: int
    region: str


def declare(registry, name, keys, var_type="continuous"):
    arity = len(keys[0]) if keys else 0
    registry.declare_family(name, var_type, arity=arity)
    registry.record_declaration(name, keys)
    for key in keys:
        registry.instantiate(name, key)


def p(**coefficients):
    """Polynomial from keyword coefficients; ``const`` is the constant term."""
    terms = {}
    for name, value in coefficients.items():
        terms[() if name == "const" else (name,)] = value
    return Polynomial(terms)


class TestConstants:
    """Test cases for constant subexpressions."""

    def test_literal_and_parameter(self, compiler, make_env):
        """Test numbers from literals and parameters."""
        env = make_env({"n": 4})
        assert compiler.compile(3, env) == Polynomial.const(3)
        assert compiler.compile(sym("n") * 2 + 1, env) == Polynomial.const(9)

    def test_non_numeric_literal(self, compiler, make_env):
        """Test that strings cannot be values."""
        with pytest.raises(UnsupportedOperation):
            compiler.compile(sym("name") + 1, make_env({"name": "abc"}))

    def test_undefined_symbol(self, compiler, make_env):
        """Test an unknown bare name."""
        with pytest.raises(UndefinedSymbol) as exc_info:
            compiler.compile(sym("ghost") + 1, make_env())
        assert exc_info.value.symbol == "ghost"
        assert exc_info.value.expression == "ghost"

    def test_nested_access(self, compiler, make_env):
        """Test dict and list lookups driven by bindings."""
        env = make_env({"cost": {"S1": [5, 7]}}).bind("s", "S1").bind("k", 1)
        assert compiler.evaluate(sym("cost")[sym("s")][sym("k")], env) == 7

    def test_key_type_fallback(self, compiler, make_env):
        """Test str and int keys are interchangeable."""
        env = make_env({"by_int": {1: 10}, "by_str": {"2": 20}})
        assert compiler.evaluate(sym("by_int")["1"], env) == 10
        assert compiler.evaluate(sym("by_str")[2], env) == 20

    def test_non_decimal_digit_key(self, compiler, make_env):
        """Test a digit-like string that is not a decimal number."""
        env = make_env({"by_int": {2: 10}})
        with pytest.raises(MissingKey):
            compiler.evaluate(sym("by_int")["²"], env)

    def test_record_fields(self, compiler, make_env):
        """Test attribute access on objects and mappings."""
        env = make_env({"plants": [Plant(100, "north")], "meta": {"size": 3}})
        assert compiler.evaluate(sym("plants")[0].attr("capacity"), env) == 100
        assert compiler.evaluate(sym("meta").attr("size"), env) == 3

    def test_missing_key(self, compiler, make_env):
        """Test a key absent from a map."""
        env = make_env({"cost": {"S1": 1}}).bind("s", "S9")
        with pytest.raises(MissingKey) as exc_info:
            compiler.compile(sym("cost")[sym("s")], env)
        assert exc_info.value.bindings == {"s": "S9"}
        assert exc_info.value.expression == "cost[s]"

    def test_missing_field(self, compiler, make_env):
        """Test a field absent from a record."""
        env = make_env({"plants": [Plant(100, "north")]})
        with pytest.raises(MissingKey):
            compiler.evaluate(sym("plants")[0].attr("weight"), env)

    def test_index_out_of_bounds(self, compiler, make_env):
        """Test a list index past the end."""
        env = make_env({"w": [1, 2]})
        with pytest.raises(IndexOutOfBounds):
            compiler.evaluate(sym("w")[2], env)
        with pytest.raises(IndexOutOfBounds):
            compiler.evaluate(sym("w")[-1], env)

    def test_access_on_undefined_constant(self, compiler, make_env):
        """Test access whose base is not a parameter."""
        with pytest.raises(UndefinedConstant):
            compiler.evaluate(sym("nothing")[1], make_env())

    def test_access_on_variable_family(self, compiler, make_env, registry):
        """Test access whose base is a variable family."""
        declare(registry, "x", [(1,)])
        with pytest.raises(UndefinedConstant):
            compiler.evaluate(sym("x")[1], make_env())

    def test_range_and_comprehension_values(self, compiler, make_env):
        """Test constant evaluation of ranges and for-comprehensions."""
        env = make_env({"n": 3})
        assert list(compiler.evaluate(irange(1, sym("n")), env)) == [1, 2, 3]
        squares = for_each([gen("i", irange(1, 3))], sym("i") * sym("i"))
        assert compiler.evaluate(squares, env) == [1, 4, 9]

    def test_range_with_infinite_bound(self, compiler, make_env):
        """Test that inf and nan are not range bounds."""
        env = make_env({"big": math.inf, "bad": math.nan})
        with pytest.raises(InvalidDomain):
            compiler.evaluate(irange(1, sym("big")), env)
        with pytest.raises(InvalidDomain):
            compiler.evaluate(irange(sym("bad"), 3), env)

    def test_conditions(self, compiler, make_env):
        """Test comparisons and boolean operators as constants."""
        env = make_env({"n": 3}).bind("i", 2)
        i, n = sym("i"), sym("n")
        assert compiler.evaluate(i < n, env) is True
        assert compiler.evaluate(i.ne(2), env) is False
        assert compiler.evaluate((i > 5) | ~(n <= 2), env) is True
        with pytest.raises(UnsupportedOperation):
            compiler.evaluate(i & n, env)

    def test_condition_as_value(self, compiler, make_env):
        """Test that a comparison cannot be a polynomial term."""
        with pytest.raises(UnsupportedOperation):
            compiler.compile((sym("n") < 3) + 1, make_env({"n": 1}))

    def test_constant_sum(self, compiler, make_env):
        """Test a sum over parameters used as a number."""
        env = make_env({"d": {"a": 2, "b": 3}})
        assert compiler.evaluate(sum_of(sym("d")[sym("k")], gen("k", sym("d"))), env) == 5.0


class TestVariables:
    """Test cases for variable references."""

    def test_scalar_family(self, compiler, make_env, registry):
        """Test a bare scalar family name."""
        declare(registry, "z", [()])
        assert compiler.compile(2 * sym("z"), make_env()) == p(z=2)

    def test_indexed_reference(self, compiler, make_env, registry):
        """Test a variable reference with bound indices."""
        declare(registry, "ship", [("S1", "C1"), ("S1", "C2")])
        env = make_env().bind("s", "S1")
        result = compiler.compile(var("ship")(sym("s"), "C2"), env)
        assert result.terms == {("ship(S1,C2)",): 1.0}

    def test_indexed_family_without_indices(self, compiler, make_env, registry):
        """Test an indexed family used bare outside of sum."""
        declare(registry, "x", [(1,), (2,)])
        with pytest.raises(WildcardOutsideAggregation):
            compiler.compile(sym("x") + 1, make_env())

    def test_wildcard_outside_sum(self, compiler, make_env, registry):
        """Test a wildcard index outside of aggregation."""
        declare(registry, "x", [(1,), (2,)])
        with pytest.raises(WildcardOutsideAggregation) as exc_info:
            compiler.compile(var("x")(WILDCARD) + 1, make_env())
        assert exc_info.value.expression == "x(_)"

    def test_undefined_family(self, compiler, make_env):
        """Test a call on an unknown name."""
        with pytest.raises(UndefinedVariable):
            compiler.compile(var("y")(1), make_env())

    def test_undeclared_index(self, compiler, make_env, registry):
        """Test an index outside the declared keys."""
        declare(registry, "x", [(1,), (2,)])
        with pytest.raises(UndefinedVariable) as exc_info:
            compiler.compile(var("x")(7), make_env())
        assert exc_info.value.expression == "x(7)"

    def test_calling_a_constant(self, compiler, make_env):
        """Test call syntax on a parameter."""
        with pytest.raises(UnsupportedOperation):
            compiler.compile(var("n")(1), make_env({"n": [1, 2]}))

    def test_variable_as_index(self, compiler, make_env, registry):
        """Test that indices must be constant."""
        declare(registry, "x", [(1,)])
        declare(registry, "y", [(1,)])
        with pytest.raises(UnsupportedOperation):
            compiler.compile(var("x")(var("y")(1)), make_env())


class TestArithmetic:
    """Test cases for linear arithmetic."""

    def test_linear_combination(self, compiler, make_env, registry):
        """Test sums, differences and scaling."""
        declare(registry, "a", [()])
        declare(registry, "b", [()])
        result = compiler.compile(3 * sym("a") - (sym("b") - 2) / 2, make_env())
        assert result == p(a=3, b=-0.5, const=1)

    def test_negation(self, compiler, make_env, registry):
        """Test unary minus."""
        declare(registry, "a", [()])
        assert compiler.compile(-(sym("a") + 1), make_env()) == p(a=-1, const=-1)

    def test_product_of_variables(self, compiler, make_env, registry):
        """Test that products of variable expressions are rejected."""
        declare(registry, "a", [()])
        declare(registry, "b", [()])
        with pytest.raises(NonlinearExpression) as exc_info:
            compiler.compile(1 + sym("a") * sym("b"), make_env())
        assert exc_info.value.expression == "a * b"

    def test_division_by_variable(self, compiler, make_env, registry):
        """Test that dividing by a variable is rejected."""
        declare(registry, "a", [()])
        with pytest.raises(UnsupportedOperation):
            compiler.compile(1 / sym("a"), make_env())

    def test_division_by_zero(self, compiler, make_env, registry):
        """Test dividing by a zero constant."""
        declare(registry, "a", [()])
        with pytest.raises(UnsupportedOperation):
            compiler.compile(sym("a") / sym("z"), make_env({"z": 0}))

    def test_zero_terms_pruned_by_default(self, compiler, make_env, registry):
        """Test that cancelled variables disappear."""
        declare(registry, "a", [()])
        declare(registry, "b", [()])
        result = compiler.compile(sym("a") - sym("a") + sym("b"), make_env())
        assert result.terms == {("b",): 1.0}

    def test_zero_terms_kept_without_pruning(self, make_env, registry):
        """Test the prune_zero_terms switch."""
        declare(registry, "a", [()])
        result = ExpressionCompiler(prune_zero_terms=False).compile(sym("a") - sym("a"), make_env())
        assert result.terms == {("a",): 0.0}


class TestAggregation:
    """Test cases for sum and for."""

    def test_sum_with_clauses(self, compiler, make_env, registry):
        """Test an explicit generator sum with coefficients."""
        declare(registry, "x", [(1,), (2,), (3,)])
        env = make_env({"w": {1: 2, 2: 3, 3: 4}})
        result = compiler.compile(sum_of(sym("w")[sym("i")] * var("x")(sym("i")), gen("i", [1, 2, 3])), env)
        assert result.terms == {("x(1)",): 2.0, ("x(2)",): 3.0, ("x(3)",): 4.0}

    def test_wildcard_sum_matches_explicit_sum(self, compiler, make_env, registry):
        """Test sum(x(_)) equals the sum over the declared domain."""
        declare(registry, "x", [(1,), (2,), (3,)])
        env = make_env()
        wildcard = compiler.compile(sum_of(var("x")(WILDCARD)), env)
        explicit = compiler.compile(sum_of(for_each([gen("i", [1, 2, 3])], var("x")(sym("i")))), env)
        assert wildcard == explicit
        assert wildcard.variables() == ["x(1)", "x(2)", "x(3)"]

    def test_wildcard_with_concrete_position(self, compiler, make_env, registry):
        """Test a partially bound wildcard reference."""
        declare(registry, "ship", [("S1", "C1"), ("S1", "C2"), ("S2", "C1")])
        env = make_env().bind("s", "S1")
        result = compiler.compile(sum_of(var("ship")(sym("s"), WILDCARD)), env)
        assert result.variables() == ["ship(S1,C1)", "ship(S1,C2)"]

    def test_wildcard_over_two_positions(self, compiler, make_env, registry):
        """Test a bare reference with several wildcards sums every key."""
        declare(registry, "q", [(1, 1), (1, 2), (2, 1)])
        result = compiler.compile(sum_of(var("q")(WILDCARD, WILDCARD)), make_env())
        assert len(result.variables()) == 3

    def test_scaled_multi_wildcard_body(self, compiler, make_env, registry):
        """Test sum(2 * x(_, _)) covers every key like sum(x(_, _))."""
        declare(registry, "x", [(1, 1), (1, 2), (2, 1), (2, 2)])
        env = make_env()
        plain = compiler.compile(sum_of(var("x")(WILDCARD, WILDCARD)), env)
        scaled = compiler.compile(sum_of(2 * var("x")(WILDCARD, WILDCARD)), env)
        assert scaled == plain * 2
        assert scaled.variables() == ["x(1,1)", "x(1,2)", "x(2,1)", "x(2,2)"]

    def test_two_wildcard_references_share_keys(self, compiler, make_env, registry):
        """Test a compound body of two-position references."""
        declare(registry, "x", [(1, "a"), (2, "b")])
        declare(registry, "y", [(1, "a"), (2, "b"), (3, "c")])
        result = compiler.compile(sum_of(var("x")(WILDCARD, WILDCARD) - var("y")(WILDCARD, WILDCARD)), make_env())
        assert result.terms == {
            ("x(1,a)",): 1.0,
            ("x(2,b)",): 1.0,
            ("y(1,a)",): -1.0,
            ("y(2,b)",): -1.0,
        }

    def test_sum_with_filter(self, compiler, make_env, registry):
        """Test a filtered generator sum."""
        declare(registry, "x", [(i, j) for i in (1, 2, 3) for j in (1, 2, 3)])
        i, j = sym("i"), sym("j")
        nodes = [1, 2, 3]
        off_diagonal = sum_of(var("x")(i, j), gen("i", nodes), gen("j", nodes), i.ne(j))
        assert compiler.compile(off_diagonal, make_env()).variables() == [
            "x(1,2)", "x(1,3)", "x(2,1)", "x(2,3)", "x(3,1)", "x(3,2)"
        ]
        upper = sum_of(var("x")(i, j), gen("i", nodes), gen("j", nodes), where(i < j))
        assert compiler.compile(upper, make_env()).variables() == ["x(1,2)", "x(1,3)", "x(2,3)"]

    def test_compound_wildcard_body(self, compiler, make_env, registry):
        """Test a wildcard shared by a parameter and a variable."""
        declare(registry, "x", [("a",), ("b",)])
        env = make_env({"w": {"a": 2, "b": 5}})
        result = compiler.compile(sum_of(sym("w")[WILDCARD] * var("x")(WILDCARD)), env)
        assert result.terms == {("x(a)",): 2.0, ("x(b)",): 5.0}

    def test_sum_of_bare_family(self, compiler, make_env, registry):
        """Test sum(x) over all instances of x."""
        declare(registry, "x", [(1,), (2,)])
        assert compiler.compile(sum_of(sym("x")), make_env()).variables() == ["x(1)", "x(2)"]

    def test_for_outside_sum_is_summed(self, compiler, make_env, registry):
        """Test a bare for-comprehension in polynomial position."""
        declare(registry, "x", [(1,), (2,)])
        result = compiler.compile(for_each([gen("i", [1, 2])], 2 * var("x")(sym("i"))), make_env())
        assert result == Polynomial({("x(1)",): 2.0, ("x(2)",): 2.0})

    def test_nested_sums(self, compiler, make_env, registry):
        """Test a sum inside a sum with dependent domains."""
        declare(registry, "x", [(1, 1), (1, 2), (2, 2)])
        inner = sum_of(var("x")(sym("i"), sym("j")), gen("j", irange(sym("i"), 2)))
        result = compiler.compile(sum_of(inner, gen("i", [1, 2])), make_env())
        assert result.variables() == ["x(1,1)", "x(1,2)", "x(2,2)"]

    def test_error_inside_sum_reports_bindings(self, compiler, make_env, registry):
        """Test the failing iteration is visible in the error."""
        declare(registry, "x", [(1,), (2,)])
        env = make_env({"w": {1: 1}})
        with pytest.raises(MissingKey) as exc_info:
            compiler.compile(sum_of(sym("w")[sym("i")] * var("x")(sym("i")), gen("i", [1, 2])), env)
        assert exc_info.value.bindings == {"i": 2}

    def test_deterministic_output(self, compiler, make_env, registry):
        """Test that term order does not depend on construction order."""
        declare(registry, "x", [(1,), (2,)])
        env = make_env()
        first = compiler.compile(var("x")(2) + var("x")(1), env)
        second = compiler.compile(var("x")(1) + var("x")(2), env)
        assert list(first.terms) == list(second.terms)
        assert str(first) == str(second) == "x(1) + x(2)"


class TestComparison:
    """Test cases for constraint normalization."""

    def test_constant_moves_to_rhs(self, compiler, make_env, registry):
        """Test L op R becomes (L - R without constant) op -constant."""
        declare(registry, "x", [()])
        declare(registry, "y", [()])
        lhs, op, rhs = compiler.compile_comparison(sym("x") + 3 <= 2 * sym("y") + 5, make_env())
        assert lhs == p(x=1, y=-2)
        assert op == "<="
        assert rhs == 2.0

    def test_equality(self, compiler, make_env, registry):
        """Test == constraints via eq."""
        declare(registry, "x", [()])
        lhs, op, rhs = compiler.compile_comparison(sym("x").eq(4), make_env())
        assert (lhs, op, rhs) == (p(x=1), "==", 4.0)

    def test_zero_rhs_is_positive(self, compiler, make_env, registry):
        """Test that a zero right-hand side is never negative zero."""
        declare(registry, "x", [()])
        _, _, rhs = compiler.compile_comparison(sym("x") >= 0, make_env())
        assert str(rhs) == "0.0"

    def test_strict_comparison_is_not_a_constraint(self, compiler, make_env, registry):
        """Test that <, > and != are rejected as constraint operators."""
        declare(registry, "x", [()])
        for node in (sym("x") < 3, sym("x") > 3, sym("x").ne(3)):
            with pytest.raises(UnsupportedOperation):
                compiler.compile_comparison(node, make_env())

    def test_not_a_comparison(self, compiler, make_env, registry):
        """Test that a plain expression is not a constraint."""
        declare(registry, "x", [()])
        with pytest.raises(UnsupportedOperation):
            compiler.compile_comparison(sym("x") + 1, make_env())
