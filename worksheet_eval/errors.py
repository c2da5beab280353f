"""
Error taxonomy for the evaluation pipeline.

Each stage raises one of these; only the Evaluator turns them into an
EvaluationOutcome. Compile errors reported by the compiler are not
exceptions: they are diagnostics on a CompilationReport.
"""


class EvaluatorError(Exception):
    """Base class for every failure raised by a pipeline stage."""


class MaterializationError(EvaluatorError):
    """The instrumented source could not be written to disk."""


class CompilerInvocationError(EvaluatorError):
    """The compiler could not be started or configured."""


class ExecutionError(EvaluatorError):
    """The child runtime could not be spawned, read from or waited on."""


class ExecutionTimeout(ExecutionError):
    """The child runtime did not finish before its deadline and was killed."""

    def __init__(self, timeout_sec: float):
        super().__init__(f"Execution timed out after {timeout_sec:g}s")
        self.timeout_sec = timeout_sec


class EvaluationCancelled(ExecutionError):
    """The evaluation was cancelled by the caller."""

    def __init__(self, message: str = "Evaluation cancelled"):
        super().__init__(message)
