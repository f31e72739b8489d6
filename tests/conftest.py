"""pytest configuration and shared fixtures."""

import os
import tempfile
from pathlib import Path

import pytest
import yaml

from mip_dsl.dsl import Problem
from mip_dsl.dsl.compiler import ExpressionCompiler
from mip_dsl.dsl.environment import DeclarationContext, SymbolEnvironment
from mip_dsl.dsl.registry import VariableRegistry
from mip_dsl.utils.config_manager import ConfigManager

from fixtures.sample_problems import (
    TRANSPORTATION_DATA,
    build_transportation_problem,
)


@pytest.fixture
def temp_config_dir():
    """Create temporary configuration directory."""
    with tempfile.TemporaryDirectory() as temp_dir:
        yield Path(temp_dir)


@pytest.fixture
def mock_config():
    """Configuration used for testing."""
    return {
        "logging": {
            "level": "DEBUG",
            "format": "%(name)s - %(levelname)s - %(message)s",
        },
        "compiler": {"prune_zero_terms": True},
        "solvers": {"default": "pulp", "timeout": 60, "msg": False, "parameters": {}},
        "validation": {"max_variables": 1000, "max_constraints": 1000, "tolerance": 1e-6},
    }


@pytest.fixture
def config_manager(temp_config_dir, mock_config):
    """Create ConfigManager instance for testing."""
    with open(temp_config_dir / "default.yaml", "w") as f:
        yaml.dump(mock_config, f)

    return ConfigManager(str(temp_config_dir))


@pytest.fixture
def registry():
    """Empty variable registry."""
    return VariableRegistry()


@pytest.fixture
def compiler():
    return ExpressionCompiler()


@pytest.fixture
def make_env(registry):
    """Build a symbol environment over the shared registry."""

    def _make(parameters=None, label="test"):
        return SymbolEnvironment(
            parameters or {},
            registry,
            declaration=DeclarationContext("constraints", label),
        )

    return _make


@pytest.fixture
def transportation_data():
    return TRANSPORTATION_DATA


@pytest.fixture
def transportation_problem():
    """Balanced transportation model with supply and demand constraints."""
    return build_transportation_problem()


@pytest.fixture
def empty_problem():
    return Problem.new("empty", direction="minimize")


@pytest.fixture(autouse=True)
def setup_test_environment():
    """Keep environment overrides from leaking into tests."""
    saved = {
        key: os.environ.pop(key)
        for key in list(os.environ)
        if key.startswith("MIP_DSL_") or key == "ENVIRONMENT"
    }

    yield

    for key in list(os.environ):
        if key.startswith("MIP_DSL_") or key == "ENVIRONMENT":
            os.environ.pop(key)
    os.environ.update(saved)
