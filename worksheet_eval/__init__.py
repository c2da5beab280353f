"""Worksheet Eval - compile and run instrumented worksheet source, capturing its output."""

from .config import EvaluatorConfig
from .errors import (
    CompilerInvocationError,
    EvaluationCancelled,
    EvaluatorError,
    ExecutionError,
    ExecutionTimeout,
    MaterializationError,
)
from .evaluator import Evaluator
from .models import (
    CompilationReport,
    CompileFailure,
    Diagnostic,
    EvaluationOutcome,
    EvaluationRequest,
    ExecutionFailure,
    ExecutionResult,
    FailureKind,
    Position,
    Severity,
    Success,
)

__version__ = "1.0.0"
__all__ = [
    "Evaluator",
    "EvaluatorConfig",
    "EvaluationRequest",
    "EvaluationOutcome",
    "Success",
    "CompileFailure",
    "ExecutionFailure",
    "FailureKind",
    "CompilationReport",
    "Diagnostic",
    "Position",
    "Severity",
    "ExecutionResult",
    "EvaluatorError",
    "MaterializationError",
    "CompilerInvocationError",
    "ExecutionError",
    "ExecutionTimeout",
    "EvaluationCancelled",
]
