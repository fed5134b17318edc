"""Tests for stage plan construction."""

from engine.src.models import BuildPlan, StepStatus
from engine.src.services.stage_plan import (
    DEFAULT_AUDIT_COMMAND,
    STAGE_TABLE,
    build_stages,
)

from conftest import make_plan, make_settings

def stage_names(stages):
    return [stage.name for stage in stages]

def test_minimal_plan_has_setup_and_security():
    stages = build_stages(make_plan(), make_settings())
    assert stage_names(stages) == ["setup", "security"]

def test_full_javascript_plan():
    plan = BuildPlan(
        language="typescript",
        package_manager="yarn",
        install_command="yarn install",
        test_command="yarn test",
        build_command="yarn build",
        has_tests=True,
        has_docker=True,
        image_tag="app:ci",
    )
    stages = build_stages(plan, make_settings())

    assert stage_names(stages) == ["setup", "lint", "test", "security", "build", "containerize"]
    commands = {stage.name: stage.steps[0].command for stage in stages}
    assert commands["setup"] == "yarn install"
    assert "eslint" in commands["lint"]
    assert commands["test"] == "yarn test"
    assert commands["security"] == "yarn audit"
    assert commands["build"] == "yarn build"
    assert commands["containerize"] == "docker build -t app:ci ."

def test_stage_order_follows_table():
    plan = make_plan(
        lint_command="ruff check .",
        test_command="pytest",
        has_tests=True,
        build_command="python -m build",
        has_docker=True,
    )
    stages = build_stages(plan, make_settings())
    assert stage_names(stages) == [entry.name for entry in STAGE_TABLE]

def test_absent_build_command_omits_stage():
    stages = build_stages(make_plan(build_command=None), make_settings())
    assert "build" not in stage_names(stages)

def test_python_without_lint_convention_has_no_lint_stage():
    stages = build_stages(make_plan(), make_settings())
    assert "lint" not in stage_names(stages)

def test_explicit_lint_command_adds_lint_stage():
    stages = build_stages(make_plan(lint_command="ruff check ."), make_settings())
    assert stages[1].name == "lint"
    assert stages[1].steps[0].command == "ruff check ."

def test_audit_command_by_package_manager():
    pip_plan = BuildPlan(language="python", package_manager="pip", install_command="pip install .")
    unknown_plan = BuildPlan(language="go", package_manager="go", install_command="go mod download")

    pip_audit = build_stages(pip_plan, make_settings())[-1].steps[0].command
    unknown_audit = build_stages(unknown_plan, make_settings())[-1].steps[0].command

    assert pip_audit.startswith("pip-audit")
    assert unknown_audit == DEFAULT_AUDIT_COMMAND

def test_default_image_tag():
    settings = make_settings(default_image_tag="local/build:latest")
    stages = build_stages(make_plan(has_docker=True), settings)
    assert stages[-1].steps[0].command == "docker build -t local/build:latest ."

def test_timeouts_come_from_settings():
    settings = make_settings(setup_timeout=1.5, security_timeout=2.5, build_timeout=30)
    stages = build_stages(make_plan(build_command="make"), settings)

    timeouts = {stage.name: stage.steps[0].timeout for stage in stages}
    assert timeouts == {"setup": 1.5, "security": 2.5, "build": 30}

def test_new_stages_are_pending():
    for stage in build_stages(make_plan(build_command="make"), make_settings()):
        assert stage.status == StepStatus.PENDING
        assert all(step.status == StepStatus.PENDING for step in stage.steps)
