"""MIP DSL - declarative modeling of linear and mixed-integer programs."""

__version__ = "0.1.0"

from .dsl import (
    WILDCARD,
    Direction,
    Problem,
    VariableType,
    for_each,
    gen,
    irange,
    param,
    sum_of,
    sym,
    var,
    where,
)
from .exceptions import DslError

__all__ = [
    "WILDCARD",
    "Direction",
    "DslError",
    "Problem",
    "VariableType",
    "for_each",
    "gen",
    "irange",
    "param",
    "sum_of",
    "sym",
    "var",
    "where",
]
