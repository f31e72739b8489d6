"""Configuration data models."""

from typing import Any

from pydantic import BaseModel, Field


class LoggingConfig(BaseModel):
    """Logging configuration."""
    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class CompilerConfig(BaseModel):
    """Expression compiler configuration."""
    prune_zero_terms: bool = Field(
        True, description="Drop monomials whose coefficient is exactly zero"
    )


class SolverConfig(BaseModel):
    """Solver configuration."""
    default: str = "pulp"
    timeout: int = Field(3600, description="Timeout for solver in seconds")
    msg: bool = Field(False, description="Let the backend print its own log")
    parameters: dict[str, Any] = Field(
        default_factory=dict, description="Backend-specific solver parameters"
    )


class ValidationConfig(BaseModel):
    """Model size limits and solution checking."""
    max_variables: int = 100000
    max_constraints: int = 100000
    tolerance: float = Field(1e-6, description="Tolerance for solution validation")


class Config(BaseModel):
    """Main configuration container."""
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    compiler: CompilerConfig = Field(default_factory=CompilerConfig)
    solvers: SolverConfig = Field(default_factory=SolverConfig)
    validation: ValidationConfig = Field(default_factory=ValidationConfig)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Config":
        """Create config from dictionary."""
        return cls.model_validate(data)
