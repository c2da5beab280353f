"""
Evaluator - the single entry point for running instrumented worksheets.

Sequences the pipeline for one request:
1. SourceMaterializer - write the instrumented source to disk
2. CompilationDriver - compile it, collecting diagnostics
3. ProcessExecutor - run the entry point in a child runtime

Compile errors short-circuit before anything is spawned. Every failure is
returned as an EvaluationOutcome; nothing escapes evaluate() as an exception.
"""

import logging
import tempfile
import threading
from contextlib import contextmanager
from pathlib import Path

from .compiler import BaseCompiler, CompilationDriver, create_compiler
from .config import EvaluatorConfig
from .errors import (
    CompilerInvocationError,
    EvaluationCancelled,
    ExecutionError,
    ExecutionTimeout,
    MaterializationError,
)
from .executor import ProcessExecutor
from .materializer import SourceMaterializer
from .models import (
    CompilationReport,
    CompileFailure,
    EvaluationOutcome,
    EvaluationRequest,
    ExecutionFailure,
    FailureKind,
    Success,
)

logger = logging.getLogger(__name__)


class _EntryLock:
    """A lock plus the number of evaluations holding or waiting on it."""

    def __init__(self):
        self.lock = threading.Lock()
        self.users = 0


# Evaluations writing the same source file must not overlap; entries go away when unused
_entry_locks: dict[tuple[str, str], _EntryLock] = {}
_entry_locks_guard = threading.Lock()


@contextmanager
def _entry_lock(source_path: Path):
    key = (str(source_path.parent.resolve()), source_path.name)
    with _entry_locks_guard:
        entry = _entry_locks.get(key)
        if entry is None:
            entry = _entry_locks[key] = _EntryLock()
        entry.users += 1

    try:
        with entry.lock:
            yield
    finally:
        with _entry_locks_guard:
            entry.users -= 1
            if entry.users == 0:
                del _entry_locks[key]


def _is_set(event: threading.Event | None) -> bool:
    return event is not None and event.is_set()


class Evaluator:
    """
    Compile and run instrumented source, returning the captured output.

    Usage:
        evaluator = Evaluator(EvaluatorConfig())
        outcome = evaluator.evaluate(EvaluationRequest("foo.Main", source, [], project_dir))
        if isinstance(outcome, Success):
            print(outcome.output)
    """

    def __init__(
        self,
        config: EvaluatorConfig | None = None,
        compiler: BaseCompiler | None = None,
        executor: ProcessExecutor | None = None,
    ):
        self.config = config or EvaluatorConfig()
        self.compiler = compiler or create_compiler(self.config)
        self.executor = executor or ProcessExecutor(encoding=self.config.output_encoding)
        self.materializer = SourceMaterializer(
            self.compiler.source_extension, self.config.source_directory
        )
        self.driver = CompilationDriver(self.compiler, self.config)

    def evaluate(
        self,
        request: EvaluationRequest,
        cancel_event: threading.Event | None = None,
    ) -> EvaluationOutcome:
        """
        Evaluate one request.

        Args:
            request: Entry point, instrumented source, classpath and working directory
            cancel_event: Set it from another thread to abandon the evaluation

        Returns:
            Success, CompileFailure or ExecutionFailure
        """
        try:
            source_path = self.materializer.source_path(request.entry_point)
            with _entry_lock(source_path):
                return self._evaluate(request, cancel_event)
        except MaterializationError as e:
            return ExecutionFailure(str(e), FailureKind.IO)
        except Exception as e:
            logger.error("Unexpected failure evaluating %s", request.entry_point, exc_info=True)
            return ExecutionFailure(f"{type(e).__name__}: {e}", FailureKind.INTERNAL)

    def _evaluate(
        self,
        request: EvaluationRequest,
        cancel_event: threading.Event | None,
    ) -> EvaluationOutcome:
        materialized = self.materializer.materialize(request.entry_point, request.instrumented_source)

        if _is_set(cancel_event):
            return ExecutionFailure("Evaluation cancelled", FailureKind.CANCELLED)

        try:
            report = self.driver.compile(
                materialized.file_path,
                extra_arguments=self.compiler.entry_point_arguments(request.entry_point),
                classpath_entries=request.classpath_entries,
            )
        except CompilerInvocationError as e:
            logger.warning("Compiler invocation failed: %s", e)
            return ExecutionFailure(str(e), FailureKind.COMPILER_INVOCATION)

        if report.has_errors:
            return CompileFailure(report)

        if _is_set(cancel_event):
            return ExecutionFailure("Evaluation cancelled", FailureKind.CANCELLED)

        try:
            result = self._run(request, report, cancel_event)
        except ExecutionTimeout as e:
            return ExecutionFailure(str(e), FailureKind.TIMEOUT)
        except EvaluationCancelled as e:
            return ExecutionFailure(str(e), FailureKind.CANCELLED)
        except ExecutionError as e:
            return ExecutionFailure(str(e), FailureKind.EXECUTION)

        return Success(result.combined_output, result.exit_code)

    def _run(self, request: EvaluationRequest, report: CompilationReport, cancel_event):
        classpath = list(request.classpath_entries)
        if self.config.output_directory:
            # The child runs in the request's working directory, not ours
            output_directory = str(Path(self.config.output_directory).resolve())
            if output_directory not in classpath:
                classpath.append(output_directory)

        run_kwargs = dict(
            runtime_command=self.config.resolved_runtime_command,
            entry_point=request.entry_point,
            working_directory=request.working_directory,
            timeout=self.config.timeout_sec,
            cancel_event=cancel_event,
        )

        if report.output_location is None:
            return self.executor.run(classpath_entries=classpath, **run_kwargs)

        with tempfile.TemporaryDirectory(prefix="worksheet-classes-") as classes_dir:
            report.output_location.export(Path(classes_dir))
            return self.executor.run(classpath_entries=[classes_dir] + classpath, **run_kwargs)
