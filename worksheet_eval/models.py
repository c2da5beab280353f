"""
Core data models for the evaluation pipeline.

These models define the contracts between the stages:
- Caller → Evaluator (EvaluationRequest)
- SourceMaterializer → CompilationDriver (MaterializedSource)
- CompilationDriver → Evaluator (CompilationReport)
- ProcessExecutor → Evaluator (ExecutionResult)
- Evaluator → Caller (EvaluationOutcome)
"""

import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import ClassVar, Sequence, Union

from .virtual_directory import VirtualDirectory


# ============================================================================
# Enums
# ============================================================================

class Severity(str, Enum):
    """Severity of a compiler diagnostic."""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class OutcomeStatus(str, Enum):
    """Which variant of EvaluationOutcome was produced."""
    SUCCESS = "success"
    COMPILE_FAILURE = "compile_failure"
    EXECUTION_FAILURE = "execution_failure"


class FailureKind(str, Enum):
    """Why an evaluation ended in ExecutionFailure."""
    IO = "io"                                    # Source could not be written
    COMPILER_INVOCATION = "compiler_invocation"  # Compiler could not be started
    EXECUTION = "execution"                      # Child process spawn/pipe/wait failure
    TIMEOUT = "timeout"
    CANCELLED = "cancelled"
    INTERNAL = "internal"                        # Unexpected fault caught at the boundary


# ============================================================================
# Request / Materialization
# ============================================================================

@dataclass(frozen=True)
class EvaluationRequest:
    """Everything the caller supplies for one evaluation."""
    entry_point: str                   # Fully qualified name, e.g. "foo.Main"
    instrumented_source: str
    classpath_entries: tuple[str, ...] = ()
    working_directory: Path = field(default_factory=Path.cwd)

    def __post_init__(self):
        source = self.instrumented_source
        if not isinstance(source, str):
            object.__setattr__(self, "instrumented_source", "".join(source))
        object.__setattr__(
            self, "classpath_entries", tuple(str(e) for e in self.classpath_entries)
        )
        object.__setattr__(self, "working_directory", Path(self.working_directory))

    @property
    def entry_simple_name(self) -> str:
        return simple_name(self.entry_point)


@dataclass(frozen=True)
class MaterializedSource:
    """An instrumented source file written to disk."""
    file_path: Path
    entry_simple_name: str


def simple_name(entry_point: str) -> str:
    """Return the part of a dotted name after its last separator."""
    return entry_point[entry_point.rfind(".") + 1:]


# ============================================================================
# Compilation
# ============================================================================

@dataclass(frozen=True)
class Position:
    """1-based source position; column is None when the compiler omits it."""
    line: int
    column: int | None = None

    def __str__(self) -> str:
        if self.column is None:
            return str(self.line)
        return f"{self.line}:{self.column}"


@dataclass(frozen=True)
class Diagnostic:
    """One compiler-reported message."""
    severity: Severity
    message: str
    position: Position | None = None

    def to_dict(self) -> dict:
        return {
            "severity": self.severity.value,
            "message": self.message,
            "line": self.position.line if self.position else None,
            "column": self.position.column if self.position else None,
        }


@dataclass
class CompilationReport:
    """Diagnostics from one compiler run, in emission order."""
    diagnostics: list[Diagnostic] = field(default_factory=list)
    output_location: VirtualDirectory | None = None
    source_path: Path | None = None

    @property
    def has_errors(self) -> bool:
        return any(d.severity == Severity.ERROR for d in self.diagnostics)

    @property
    def errors(self) -> list[Diagnostic]:
        return [d for d in self.diagnostics if d.severity == Severity.ERROR]

    @property
    def warnings(self) -> list[Diagnostic]:
        return [d for d in self.diagnostics if d.severity == Severity.WARNING]

    def to_dict(self) -> dict:
        return {
            "source_path": str(self.source_path) if self.source_path else None,
            "has_errors": self.has_errors,
            "diagnostics": [d.to_dict() for d in self.diagnostics],
        }


# ============================================================================
# Execution
# ============================================================================

@dataclass(frozen=True)
class ExecutionResult:
    """Captured output of a finished child process."""
    combined_output: str
    exit_code: int


# ============================================================================
# Outcome (Evaluator → Caller)
# ============================================================================

@dataclass(frozen=True)
class Success:
    """The program compiled and ran; output is returned even on non-zero exit."""
    output: str
    exit_code: int = 0

    status: ClassVar[OutcomeStatus] = OutcomeStatus.SUCCESS

    def to_dict(self) -> dict:
        return {"status": self.status.value, "output": self.output, "exit_code": self.exit_code}


@dataclass(frozen=True)
class CompileFailure:
    """The compiler ran and reported at least one error; nothing was executed."""
    report: CompilationReport

    status: ClassVar[OutcomeStatus] = OutcomeStatus.COMPILE_FAILURE

    def to_dict(self) -> dict:
        return {"status": self.status.value, "report": self.report.to_dict()}


@dataclass(frozen=True)
class ExecutionFailure:
    """Some stage could not be carried out; cause is human-readable."""
    cause: str
    kind: FailureKind = FailureKind.EXECUTION

    status: ClassVar[OutcomeStatus] = OutcomeStatus.EXECUTION_FAILURE

    @property
    def timed_out(self) -> bool:
        return self.kind == FailureKind.TIMEOUT

    def to_dict(self) -> dict:
        return {"status": self.status.value, "kind": self.kind.value, "cause": self.cause}


EvaluationOutcome = Union[Success, CompileFailure, ExecutionFailure]


def join_classpath(entries: Sequence[str]) -> str:
    """Join classpath entries with the platform path separator."""
    return os.pathsep.join(str(e) for e in entries)
