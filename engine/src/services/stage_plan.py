"""
Stage plan construction.

A build plan is turned into an ordered list of stages by walking
STAGE_TABLE. Each row decides whether its stage applies to the plan and
which command its single step runs. Stages that do not apply are left
out of the job entirely rather than being added as skipped.
"""

from dataclasses import dataclass
from typing import Callable, List, Optional

from engine.src.config import Settings, get_settings
from engine.src.models.plan import BuildPlan
from engine.src.models.step import Stage, Step

# Languages with a conventional lint command
LINT_CONVENTIONS = {
    "javascript": "npm run lint || npx eslint . --ext .js,.jsx,.ts,.tsx",
    "typescript": "npm run lint || npx eslint . --ext .js,.jsx,.ts,.tsx",
}

AUDIT_COMMANDS = {
    "npm": "npm audit",
    "yarn": "yarn audit",
    "pnpm": "pnpm audit",
    "pip": 'pip-audit || echo "pip-audit not installed, skipping"',
    "poetry": 'pip-audit || echo "pip-audit not installed, skipping"',
}
DEFAULT_AUDIT_COMMAND = "npm audit"

@dataclass(frozen=True)
class StageSpec:
    name: str
    step_name: str
    timeout_setting: str
    applies: Callable[[BuildPlan], bool]
    command: Callable[[BuildPlan, Settings], str]

def lint_command(plan: BuildPlan) -> Optional[str]:
    return plan.lint_command or LINT_CONVENTIONS.get(plan.language)

def audit_command(plan: BuildPlan) -> str:
    if plan.audit_command:
        return plan.audit_command
    return AUDIT_COMMANDS.get(plan.package_manager, DEFAULT_AUDIT_COMMAND)

def containerize_command(plan: BuildPlan, settings: Settings) -> str:
    if plan.containerize_command:
        return plan.containerize_command
    tag = plan.image_tag or settings.default_image_tag
    return f"docker build -t {tag} ."

STAGE_TABLE: List[StageSpec] = [
    StageSpec(
        name="setup",
        step_name="Install Dependencies",
        timeout_setting="setup_timeout",
        applies=lambda plan: True,
        command=lambda plan, settings: plan.install_command,
    ),
    StageSpec(
        name="lint",
        step_name="Run Linter",
        timeout_setting="lint_timeout",
        applies=lambda plan: lint_command(plan) is not None,
        command=lambda plan, settings: lint_command(plan),
    ),
    StageSpec(
        name="test",
        step_name="Run Tests",
        timeout_setting="test_timeout",
        applies=lambda plan: plan.has_tests,
        command=lambda plan, settings: plan.test_command,
    ),
    StageSpec(
        name="security",
        step_name="Audit Dependencies",
        timeout_setting="security_timeout",
        applies=lambda plan: True,
        command=lambda plan, settings: audit_command(plan),
    ),
    StageSpec(
        name="build",
        step_name="Build Project",
        timeout_setting="build_timeout",
        applies=lambda plan: bool(plan.build_command),
        command=lambda plan, settings: plan.build_command,
    ),
    StageSpec(
        name="containerize",
        step_name="Build Docker Image",
        timeout_setting="containerize_timeout",
        applies=lambda plan: plan.has_docker,
        command=containerize_command,
    ),
]

def build_stages(
    plan: BuildPlan,
    settings: Optional[Settings] = None,
    table: Optional[List[StageSpec]] = None,
) -> List[Stage]:
    """Derive the ordered stage list for a build plan."""
    settings = settings or get_settings()
    stages = []

    for entry in table or STAGE_TABLE:
        if not entry.applies(plan):
            continue

        step = Step(
            name=entry.step_name,
            command=entry.command(plan, settings),
            timeout=getattr(settings, entry.timeout_setting),
        )
        stages.append(Stage(name=entry.name, steps=[step]))

    return stages
