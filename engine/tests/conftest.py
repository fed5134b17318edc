"""Shared fixtures for engine tests."""

import pytest
import pytest_asyncio

from engine.src.config import Settings
from engine.src.models import BuildPlan
from engine.src.pipeline_engine import PipelineEngine

def make_settings(**overrides) -> Settings:
    values = {
        "max_concurrent_jobs": 3,
        "kill_grace_period": 0.5,
    }
    values.update(overrides)
    return Settings(**values)

def make_plan(**overrides) -> BuildPlan:
    """A plan that only runs shell builtins, so tests need no toolchain."""
    values = {
        "language": "python",
        "package_manager": "pip",
        "install_command": "true",
        "audit_command": "true",
    }
    values.update(overrides)
    return BuildPlan(**values)

@pytest.fixture
def settings():
    return make_settings()

@pytest_asyncio.fixture
async def engine(settings):
    engine = PipelineEngine(settings)
    yield engine
    await engine.shutdown(timeout=5)
