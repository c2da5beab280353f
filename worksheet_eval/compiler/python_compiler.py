"""
PythonCompiler - CPython's bytecode compiler driven in-process.

The instrumented file is compiled with ``compile()`` and emitted as a
sourceless ``.pyc`` laid out by module name (``foo.Main`` becomes
``foo/Main.pyc``), which the launcher can then import from its classpath.

Supported options:
    -d DIR              write bytecode below DIR instead of memory
    -cp/-classpath PATH accepted for symmetry with javac; unused
    -module NAME        dotted module name to emit (default: file stem)
    -optimize LEVEL     0, 1 or 2, as for ``python -O``
    -Werror             report warnings as errors
    -nowarn             drop warnings
"""

import importlib.util
import logging
import marshal
import struct
import threading
import warnings
from dataclasses import dataclass
from pathlib import Path
from typing import Sequence

from .base import BaseCompiler
from ..errors import CompilerInvocationError
from ..materializer import SourceMaterializer
from ..models import CompilationReport, Diagnostic, Position, Severity
from ..virtual_directory import VirtualDirectory

logger = logging.getLogger(__name__)

# Warning capture swaps interpreter-global filters
_COMPILE_LOCK = threading.Lock()

_FLAG_OPTIONS = {"-Werror": "fatal_warnings", "-nowarn": "no_warnings"}
_VALUE_OPTIONS = {
    "-d": "output_directory",
    "-cp": "classpath",
    "-classpath": "classpath",
    "-module": "module",
    "-optimize": "optimize",
}


@dataclass
class PythonCompilerSettings:
    """Settings for one compilation, parsed fresh from its arguments."""
    source: Path
    output_directory: Path | None = None
    classpath: str = ""
    module: str | None = None
    optimize: int = -1
    fatal_warnings: bool = False
    no_warnings: bool = False

    @classmethod
    def from_arguments(cls, arguments: Sequence[str]) -> "PythonCompilerSettings":
        values: dict = {}
        sources: list[str] = []
        args = list(arguments)
        i = 0
        while i < len(args):
            arg = args[i]
            if arg in _FLAG_OPTIONS:
                values[_FLAG_OPTIONS[arg]] = True
            elif arg in _VALUE_OPTIONS:
                if i + 1 >= len(args):
                    raise CompilerInvocationError(f"Missing value for option {arg}")
                values[_VALUE_OPTIONS[arg]] = args[i + 1]
                i += 1
            elif arg.startswith("-"):
                raise CompilerInvocationError(f"Unknown compiler option: {arg}")
            else:
                sources.append(arg)
            i += 1

        if len(sources) != 1:
            raise CompilerInvocationError(
                f"Expected exactly one source file, got {len(sources)}: {sources}"
            )

        if "optimize" in values:
            try:
                values["optimize"] = int(values["optimize"])
            except ValueError:
                raise CompilerInvocationError(f"Invalid optimization level: {values['optimize']}")
            if values["optimize"] not in (-1, 0, 1, 2):
                raise CompilerInvocationError(f"Invalid optimization level: {values['optimize']}")

        if "output_directory" in values:
            values["output_directory"] = Path(values["output_directory"])

        settings = cls(source=Path(sources[0]), **values)
        if settings.module is None:
            settings.module = _module_from_source(settings.source)
        if not all(part.isidentifier() for part in settings.module.split(".")):
            raise CompilerInvocationError(f"Not a valid module name: {settings.module!r}")
        return settings


def _module_from_source(source: Path) -> str:
    stem = source.stem
    if stem.endswith(SourceMaterializer.SUFFIX):
        stem = stem[: -len(SourceMaterializer.SUFFIX)]
    return stem


def _pyc_bytes(code, source: bytes, mtime: float) -> bytes:
    """Timestamp-based pyc: magic, flags, mtime, source size, marshalled code."""
    header = importlib.util.MAGIC_NUMBER + struct.pack(
        "<III", 0, int(mtime) & 0xFFFFFFFF, len(source) & 0xFFFFFFFF
    )
    return header + marshal.dumps(code)


class PythonCompiler(BaseCompiler):
    """Compile instrumented Python source to importable bytecode."""

    name = "python"
    source_extension = "py"

    def entry_point_arguments(self, entry_point: str) -> list[str]:
        return ["-module", entry_point]

    def run(self, arguments: Sequence[str]) -> CompilationReport:
        settings = PythonCompilerSettings.from_arguments(arguments)
        source_path = settings.source

        try:
            source = source_path.read_bytes()
            mtime = source_path.stat().st_mtime
        except OSError as e:
            raise CompilerInvocationError(f"Cannot read source {source_path}: {e}") from e

        logger.info("compiling: %s", source_path)
        report = CompilationReport(source_path=source_path)

        code = None
        with _COMPILE_LOCK, warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter("always")
            try:
                code = compile(
                    source, str(source_path), "exec",
                    dont_inherit=True, optimize=settings.optimize,
                )
            except SyntaxError as e:
                report.diagnostics.extend(self._warning_diagnostics(caught, settings))
                report.diagnostics.append(self._syntax_error_diagnostic(e))
            except (ValueError, RecursionError, MemoryError) as e:
                raise CompilerInvocationError(f"Compiler failed on {source_path}: {e}") from e
            else:
                report.diagnostics.extend(self._warning_diagnostics(caught, settings))

        if report.has_errors:
            return report

        relative = settings.module.replace(".", "/") + ".pyc"
        data = _pyc_bytes(code, source, mtime)

        if settings.output_directory is None:
            vdir = VirtualDirectory()
            vdir.write(relative, data)
            report.output_location = vdir
        else:
            target = settings.output_directory.joinpath(*relative.split("/"))
            try:
                target.parent.mkdir(parents=True, exist_ok=True)
                target.write_bytes(data)
            except OSError as e:
                raise CompilerInvocationError(f"Cannot write bytecode to {target}: {e}") from e
            logger.debug("Wrote %s", target)

        return report

    @staticmethod
    def _syntax_error_diagnostic(error: SyntaxError) -> Diagnostic:
        position = None
        if error.lineno:
            position = Position(line=error.lineno, column=error.offset or None)
        return Diagnostic(Severity.ERROR, error.msg or str(error), position)

    @staticmethod
    def _warning_diagnostics(caught, settings: PythonCompilerSettings) -> list[Diagnostic]:
        if settings.no_warnings:
            return []
        severity = Severity.ERROR if settings.fatal_warnings else Severity.WARNING
        diagnostics = []
        for record in caught:
            position = Position(line=record.lineno) if record.lineno else None
            diagnostics.append(Diagnostic(severity, str(record.message), position))
        return diagnostics
