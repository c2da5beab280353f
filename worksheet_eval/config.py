"""
Evaluator configuration.

The project/build collaborator supplies most of these values; everything
has a default so that ``EvaluatorConfig()`` evaluates Python worksheets
with the current interpreter.
"""

import sys
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, field_validator

LAUNCHER_PATH = Path(__file__).parent / "launcher.py"


def default_runtime_command(language: str) -> list[str]:
    """Runtime launcher for a language; it receives ``-cp <path> <entry>``."""
    if language == "java":
        return ["java"]
    return [sys.executable, str(LAUNCHER_PATH)]


class EvaluatorConfig(BaseModel):
    """Configuration shared by every evaluation an Evaluator performs."""
    language: Literal["python", "java"] = Field("python", description="Compiler backend and runtime family")
    runtime_command: list[str] | None = Field(
        None, description="Runtime launcher and its leading arguments (default depends on language)"
    )
    javac_command: str = Field("javac", description="javac executable for the java backend")
    compiler_classpath: list[str] = Field(
        default_factory=list, description="Extra classpath entries given to the compiler only"
    )
    compiler_arguments: list[str] = Field(default_factory=list, description="Extra compiler options")
    output_directory: str | None = Field(
        None, description="Compiler output directory (-d); in-memory output when unset"
    )
    source_directory: str | None = Field(
        None, description="Where instrumented sources are written (default: current working directory)"
    )
    timeout_sec: float | None = Field(None, gt=0, description="Deadline for the child process")
    compile_timeout_sec: float = Field(60.0, gt=0, description="Deadline for an external compiler")
    output_encoding: str = Field("utf-8", description="Encoding of the captured child output")

    @field_validator("runtime_command")
    @classmethod
    def _runtime_command_not_empty(cls, value: list[str] | None) -> list[str] | None:
        if value is not None and not value:
            raise ValueError("runtime_command must name an executable")
        return value

    @property
    def resolved_runtime_command(self) -> list[str]:
        return list(self.runtime_command or default_runtime_command(self.language))

    def to_json(self) -> str:
        """Serialize to JSON string."""
        return self.model_dump_json(indent=2)

    @classmethod
    def from_json(cls, json_str: str) -> "EvaluatorConfig":
        """Parse from JSON string."""
        return cls.model_validate_json(json_str)

    @classmethod
    def from_file(cls, path: Path | str) -> "EvaluatorConfig":
        return cls.from_json(Path(path).read_text(encoding="utf-8"))
