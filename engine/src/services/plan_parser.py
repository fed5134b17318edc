"""
Build plan YAML parser and validator.
"""

import os
import yaml
from typing import Any, Dict, Optional

from pydantic import ValidationError

from engine.src.models.plan import BuildPlan

class PlanConfigError(Exception):
    """Raised when a build plan file is invalid."""
    pass

COMMAND_FIELDS = [
    "install_command",
    "lint_command",
    "test_command",
    "build_command",
    "containerize_command",
    "audit_command",
]

def parse_plan_config(yaml_content: str) -> BuildPlan:
    """Parse build plan YAML (or JSON, which YAML accepts) from a string."""
    try:
        config = yaml.safe_load(yaml_content)
    except yaml.YAMLError as e:
        raise PlanConfigError(f"Invalid YAML: {e}")

    return parse_plan_dict(config)

def load_plan_file(path: str) -> BuildPlan:
    if not os.path.exists(path):
        raise PlanConfigError(f"Plan file not found: {path}")

    with open(path, "r") as f:
        return parse_plan_config(f.read())

def parse_plan_dict(config: Optional[Dict[str, Any]]) -> BuildPlan:
    """Validate build plan structure and build the model."""
    if not config:
        raise PlanConfigError("Empty build plan")

    if not isinstance(config, dict):
        raise PlanConfigError("Build plan must be a dictionary")

    # Scanner output nests the commands under "commands"
    commands = config.get("commands", {})
    if not isinstance(commands, dict):
        raise PlanConfigError("Build plan 'commands' must be a dictionary")

    values = {key: value for key, value in config.items() if key != "commands"}
    for name, command in commands.items():
        values.setdefault(f"{name}_command", command)

    if "language" not in values:
        raise PlanConfigError("Build plan missing 'language'")

    if "install_command" not in values:
        raise PlanConfigError("Build plan missing 'install_command'")

    for field in COMMAND_FIELDS:
        command = values.get(field)
        if command is not None and not isinstance(command, str):
            raise PlanConfigError(f"Build plan '{field}' must be a string")

    try:
        return BuildPlan(**values)
    except ValidationError as e:
        errors = "; ".join(
            f"{'.'.join(str(part) for part in error['loc']) or 'plan'}: {error['msg']}"
            for error in e.errors()
        )
        raise PlanConfigError(f"Invalid build plan: {errors}")
