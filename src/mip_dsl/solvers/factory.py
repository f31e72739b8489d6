"""Lookup of solver adapters by the names used in ``solvers.default``."""

from typing import Any, ClassVar

from .base import BaseSolver
from .pulp_solver import PulpSolver
from .scip_solver import SCIPSolver


class SolverFactory:
    """Maps solver names to the adapters that turn a problem snapshot into a solution.

    ``pulp`` and ``cbc`` both name the PuLP adapter, which runs the bundled
    CBC binary. Names are case insensitive.
    """

    _SOLVER_REGISTRY: ClassVar[dict[str, type[BaseSolver]]] = {
        "pulp": PulpSolver,
        "cbc": PulpSolver,
        "scip": SCIPSolver,
    }

    @classmethod
    def get_available_solvers(cls) -> list[str]:
        """Solver names accepted by ``create_solver``, in registration order."""
        return list(cls._SOLVER_REGISTRY)

    @classmethod
    def create_solver(cls, solver_name: str, config: dict[str, Any]) -> BaseSolver:
        """Build the adapter for ``solver_name``.

        Args:
            solver_name: Solver name, e.g. the ``solvers.default`` setting
            config: Solver section of the configuration (``timeout``,
                ``msg``, ``parameters``)

        Raises:
            ValueError: If no adapter is registered under this name
        """
        solver_class = cls._SOLVER_REGISTRY.get(solver_name.lower())
        if solver_class is None:
            raise ValueError(
                f"No solver adapter named '{solver_name}'; "
                f"choose one of: {', '.join(cls.get_available_solvers())}"
            )
        return solver_class(config)

    @classmethod
    def is_solver_available(cls, solver_name: str) -> bool:
        """True if an adapter is registered under ``solver_name``.

        The backend library itself may still be missing; the SCIP adapter
        reports that when it solves.
        """
        return solver_name.lower() in cls._SOLVER_REGISTRY
