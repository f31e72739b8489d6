"""Modeling language core: expression trees, compiler and problem model."""

from .assembler import Constraint, Direction, Objective
from .ast import (
    WILDCARD,
    Filter,
    Generator,
    Node,
    Symbol,
    for_each,
    gen,
    irange,
    param,
    sum_of,
    sym,
    var,
    where,
)
from .compiler import ExpressionCompiler
from .environment import BindingEnvironment, SymbolEnvironment
from .polynomial import Polynomial
from .problem import Problem
from .registry import VariableFamily, VariableInstance, VariableRegistry, VariableType, canonical_name

__all__ = [
    "WILDCARD",
    "BindingEnvironment",
    "Constraint",
    "Direction",
    "ExpressionCompiler",
    "Filter",
    "Generator",
    "Node",
    "Objective",
    "Polynomial",
    "Problem",
    "Symbol",
    "SymbolEnvironment",
    "VariableFamily",
    "VariableInstance",
    "VariableRegistry",
    "VariableType",
    "canonical_name",
    "for_each",
    "gen",
    "irange",
    "param",
    "sum_of",
    "sym",
    "var",
    "where",
]
