"""Problem model and the declaration API."""

from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Any

from ..exceptions import DslError, InvalidDirection, UndefinedVariable
from ..models.problem import (
    ConstraintSpec,
    ObjectiveSpec,
    ProblemSnapshot,
    VariableSpec,
)
from ..models.solution import OptimizationSolution
from ..solvers.factory import SolverFactory
from ..solvers.lp_format import to_lp
from ..utils.config_manager import ConfigManager
from ..utils.logger import get_logger
from ..utils.solution_validator import SolutionValidator
from .assembler import Assembler, Constraint, Direction, Objective, interpolate
from .ast import Generator, Node, as_clauses, generator_symbols
from .compiler import ExpressionCompiler
from .environment import DeclarationContext, SymbolEnvironment
from .registry import VariableFamily, VariableInstance, VariableRegistry, VariableType, canonical_name

logger = get_logger(__name__)


@dataclass(frozen=True)
class Problem:
    """An LP/MIP model built from declarations.

    A ``Problem`` is never modified in place. Every declaration returns a new
    ``Problem`` and leaves the receiver as it was, so a declaration that
    fails halfway has no effect::

        problem = (
            Problem.new("transport", direction="minimize", parameters=data)
            .variables("ship", [gen("s", suppliers), gen("c", customers)], min_bound=0)
            .constraints([gen("s", suppliers)], sum_of(ship(s, WILDCARD)) <= supply[s], "supply_{s}")
            .objective(sum_of(cost[s][c] * ship(s, c), gen("s", suppliers), gen("c", customers)))
        )
    """

    name: str
    description: str | None = None
    direction: Direction | None = None
    parameters: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))
    registry: VariableRegistry = field(default_factory=VariableRegistry)
    constraint_list: tuple[Constraint, ...] = ()
    objective_spec: Objective | None = None
    compiler: ExpressionCompiler = field(default_factory=ExpressionCompiler, compare=False, repr=False)

    @classmethod
    def new(
        cls,
        name: str,
        description: str | None = None,
        direction: Direction | str | None = None,
        parameters: Mapping[str, Any] | None = None,
        prune_zero_terms: bool | None = None,
    ) -> "Problem":
        """Start an empty model.

        ``prune_zero_terms`` defaults to ``compiler.prune_zero_terms`` from the
        configuration.
        """
        if prune_zero_terms is None:
            prune_zero_terms = ConfigManager().get("compiler.prune_zero_terms", True)
        return cls(
            name=name,
            description=description,
            direction=None if direction is None else Direction.parse(direction),
            parameters=MappingProxyType(dict(parameters or {})),
            compiler=ExpressionCompiler(prune_zero_terms=prune_zero_terms),
        )

    def _environment(self, registry: VariableRegistry, declaration: DeclarationContext) -> SymbolEnvironment:
        return SymbolEnvironment(self.parameters, registry, declaration=declaration)

    # Declarations

    def variables(
        self,
        name: str,
        generators: Any = (),
        var_type: VariableType | str = VariableType.CONTINUOUS,
        min_bound: Any = None,
        max_bound: Any = None,
        description: str | None = None,
        domains: list[Any] | None = None,
        arity: int | None = None,
    ) -> "Problem":
        """Declare a variable family with one instance per generator binding.

        Bounds may be numbers or constant expressions over the model
        parameters. ``description`` may reference generator symbols as
        ``{symbol}`` placeholders. Filter clauses among ``generators`` leave
        out the bindings they reject, so no instance is created for them.
        """
        registry = self.registry.copy()
        env = self._environment(registry, DeclarationContext("variables", name))
        clauses = as_clauses(generators)
        symbols = generator_symbols(clauses)
        try:
            min_value = self._bound(min_bound, env)
            max_value = self._bound(max_bound, env)
            evaluated_domains = None
            if domains is not None:
                evaluated_domains = [
                    self.compiler.expander.domain_values(Generator(f"_{i}", d), env)
                    for i, d in enumerate(domains)
                ]
                if not symbols:
                    clauses = tuple(Generator(f"_{i}", d) for i, d in enumerate(evaluated_domains)) + clauses
                    symbols = generator_symbols(clauses)
            registry.declare_family(
                name,
                var_type,
                min_bound=min_value,
                max_bound=max_value,
                description=description,
                arity=arity if arity is not None else len(symbols),
                domains=evaluated_domains,
            )

            points = [
                (tuple(inner.bindings[s] for s in symbols), dict(inner.bindings))
                for inner in self.compiler.expander.iterate(clauses, env)
            ]
            registry.record_declaration(name, [key for key, _ in points])
            for key, bindings in points:
                registry.instantiate(name, key, description=interpolate(description, bindings))
        except DslError as err:
            raise env.annotate(err) from None

        logger.debug(f"Declared {len(points)} variables in family '{name}'")
        return replace(self, registry=registry)

    def _bound(self, value: Any, env: SymbolEnvironment) -> Any:
        if isinstance(value, Node):
            return self.compiler.evaluate(value, env)
        return value

    def constraints(self, generators: Any, expr: Any, description: str | None = None) -> "Problem":
        """Add one constraint per generator binding."""
        registry = self.registry.copy()
        env = self._environment(registry, DeclarationContext("constraints"))
        built = Assembler(self.compiler).constraints(
            generators, expr, env, description=description, first_id=len(self.constraint_list)
        )
        return replace(self, registry=registry, constraint_list=self.constraint_list + tuple(built))

    def constraint(self, expr: Any, description: str | None = None) -> "Problem":
        """Add a single constraint."""
        return self.constraints((), expr, description)

    def objective(self, expr: Any, direction: Direction | str | None = None) -> "Problem":
        """Set the objective, replacing any earlier one.

        Falls back to the direction given to ``Problem.new``.
        """
        if direction is None:
            direction = self.direction
        if direction is None:
            raise InvalidDirection(
                "Objective direction must be 'minimize' or 'maximize', got None",
                declaration="objective",
            )
        registry = self.registry.copy()
        env = self._environment(registry, DeclarationContext("objective"))
        objective = Assembler(self.compiler).objective(expr, direction, env)
        if self.objective_spec is not None:
            logger.info(
                f"Replacing objective of problem '{self.name}' "
                f"({self.objective_spec.direction.value} -> {objective.direction.value})"
            )
        return replace(self, registry=registry, objective_spec=objective, direction=objective.direction)

    # Read API

    def family(self, name: str) -> VariableFamily:
        return self.registry.family(name)

    def variable(self, family_name: str, *index: Any) -> VariableInstance:
        """Look up an existing variable instance.

        Raises:
            UndefinedVariable: If the instance was never created
        """
        family = self.registry.family(family_name)
        instance = self.registry.get(canonical_name(family_name, index))
        if instance is None or instance.family.name != family.name:
            raise UndefinedVariable(
                f"Variable {canonical_name(family_name, index)} does not exist",
                symbol=family_name,
            )
        return instance

    @property
    def variable_instances(self) -> list[VariableInstance]:
        return self.registry.instances

    @property
    def constraints_list(self) -> list[Constraint]:
        return list(self.constraint_list)

    def objective_value_of(self, values: Mapping[str, float]) -> float | None:
        """Objective value for the given variable values, ``None`` without objective."""
        if self.objective_spec is None:
            return None
        return self.objective_spec.polynomial.evaluate(values)

    def snapshot(self) -> ProblemSnapshot:
        """Solver-neutral, fully linear view of the model."""
        variables = [
            VariableSpec(
                name=instance.name,
                family=instance.family.name,
                index=[_plain(v) for v in instance.index],
                type=instance.type.value,
                lower=instance.family.lower,
                upper=instance.family.upper,
                description=instance.description,
            )
            for instance in self.registry.instances
        ]
        constraints = [
            ConstraintSpec(
                id=c.id,
                name=c.name,
                description=c.description,
                coefficients=c.lhs.linear_coefficients(),
                operator=c.op,
                rhs=c.rhs,
            )
            for c in self.constraint_list
        ]
        objective = None
        if self.objective_spec is not None:
            linear, constant = self.objective_spec.polynomial.split_constant()
            objective = ObjectiveSpec(
                coefficients=linear.linear_coefficients(),
                constant=constant,
                direction=self.objective_spec.direction.value,
            )
        return ProblemSnapshot(
            name=self.name,
            description=self.description,
            variables=variables,
            constraints=constraints,
            objective=objective,
        )

    def to_lp(self) -> str:
        """Render the model in CPLEX LP format."""
        return to_lp(self.snapshot())

    def solve(
        self,
        solver: str | None = None,
        config_manager: ConfigManager | None = None,
        validate_solution: bool = True,
        **parameters: Any,
    ) -> OptimizationSolution:
        """Solve with a registered solver adapter.

        ``solver`` defaults to ``solvers.default`` from the configuration;
        keyword arguments override the solver configuration (``timeout``,
        ``msg``) or are passed on as solver parameters. Optimal solutions
        are checked against the model with ``validation.tolerance``.
        """
        if config_manager is None:
            config_manager = ConfigManager()
        config = config_manager.solver_config()
        for key in ("timeout", "msg"):
            if key in parameters:
                config[key] = parameters.pop(key)
        config["parameters"] = {**config.get("parameters", {}), **parameters}

        solver_name = solver or config_manager.get("solvers.default", "pulp")
        logger.info(
            f"Solving problem '{self.name}' with {solver_name}: "
            f"{len(self.registry)} variables, {len(self.constraint_list)} constraints"
        )
        backend = SolverFactory.create_solver(solver_name, config)
        snapshot = self.snapshot()
        solution = backend.solve(snapshot)

        if validate_solution and solution.is_optimal:
            validator = SolutionValidator(config_manager.get("validation.tolerance", 1e-6))
            solution.validation = validator.validate_solution(snapshot, solution)
            logger.info(f"Solution validation completed: valid={solution.validation.is_valid}")
        return solution

    def __str__(self) -> str:
        lines = [f"Problem '{self.name}'"]
        if self.objective_spec is not None:
            lines.append(f"  {self.objective_spec}")
        lines.extend(f"  {c}" for c in self.constraint_list)
        return "\n".join(lines)


def _plain(value: Any) -> Any:
    if isinstance(value, (str, int, float, bool)) or value is None:
        return value
    enum_value = getattr(value, "value", None)
    if isinstance(enum_value, (str, int, float)):
        return enum_value
    return str(value)

