"""
Build plan models - the input the engine receives from the project scanner.
"""

from pydantic import BaseModel, ConfigDict, field_validator, model_validator
from typing import Optional

class BuildPlan(BaseModel):
    language: str
    package_manager: str = "npm"

    install_command: str
    lint_command: Optional[str] = None
    test_command: Optional[str] = None
    build_command: Optional[str] = None
    containerize_command: Optional[str] = None
    audit_command: Optional[str] = None  # Overrides the package manager default

    has_tests: bool = False
    has_docker: bool = False
    image_tag: Optional[str] = None

    model_config = ConfigDict(frozen=True)

    @field_validator("install_command")
    @classmethod
    def install_command_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("install_command must not be empty")
        return value

    @field_validator("language", "package_manager")
    @classmethod
    def lowercase(cls, value: str) -> str:
        return value.strip().lower()

    @model_validator(mode="after")
    def tests_need_command(self) -> "BuildPlan":
        if self.has_tests and not self.test_command:
            raise ValueError("has_tests is set but no test_command was given")
        return self
