"""
JavacCompiler - Java compilation with javac.

javac runs as a subprocess (there is no in-process JVM compiler from
Python). Its diagnostics are parsed from standard error:

    Main$instrumented.java:3: error: ';' expected
            System.out.println("hi")
                                    ^
    Note: Some input files use unchecked or unsafe operations.
    1 error

Note: javac requires a *public* top-level class to live in a file of the
same name, so instrumented Java sources should declare the entry class
without the ``public`` modifier.
"""

import logging
import re
import subprocess
import tempfile
from pathlib import Path
from typing import Sequence

from .base import BaseCompiler
from ..errors import CompilerInvocationError
from ..models import CompilationReport, Diagnostic, Position, Severity
from ..virtual_directory import VirtualDirectory

logger = logging.getLogger(__name__)

# javac exit statuses: 0 OK, 1 compile errors, 2 bad command line, 3 system error, 4 abnormal
JAVAC_OK_STATUSES = (0, 1)

HEADER_PATTERN = re.compile(r"^(?P<file>.+?\.java):(?P<line>\d+): (?P<kind>error|warning): (?P<message>.*)$")
BARE_PATTERN = re.compile(r"^(?P<kind>error|warning): (?P<message>.*)$")
NOTE_PATTERN = re.compile(r"^Note: (?P<message>.*)$")
SUMMARY_PATTERN = re.compile(r"^\d+ (errors?|warnings?)$")
CARET_PATTERN = re.compile(r"^(?P<indent>\s*)\^\s*$")

_SEVERITIES = {"error": Severity.ERROR, "warning": Severity.WARNING}


def parse_javac_output(output: str) -> list[Diagnostic]:
    """
    Parse javac's standard error into diagnostics, preserving order.

    A header line opens a diagnostic; the echoed source line that follows
    is skipped, the caret line gives the column, and indented lines after
    the caret (``symbol:``, ``location:``) extend the message.
    """
    diagnostics: list[Diagnostic] = []
    current: dict | None = None

    def flush():
        if current is not None:
            position = None
            if current["line"] is not None:
                position = Position(current["line"], current["column"])
            diagnostics.append(
                Diagnostic(current["severity"], "\n".join(current["message"]), position)
            )

    for line in output.splitlines():
        header = HEADER_PATTERN.match(line)
        bare = BARE_PATTERN.match(line)
        note = NOTE_PATTERN.match(line)

        if header or bare or note or SUMMARY_PATTERN.match(line):
            flush()
            current = None
            if header:
                current = {
                    "severity": _SEVERITIES[header.group("kind")],
                    "message": [header.group("message")],
                    "line": int(header.group("line")),
                    "column": None,
                    "caret_seen": False,
                }
            elif bare:
                current = {
                    "severity": _SEVERITIES[bare.group("kind")],
                    "message": [bare.group("message")],
                    "line": None,
                    "column": None,
                    "caret_seen": True,
                }
            elif note:
                diagnostics.append(Diagnostic(Severity.INFO, note.group("message")))
            continue

        if current is None:
            continue

        caret = CARET_PATTERN.match(line)
        if caret and not current["caret_seen"]:
            current["column"] = len(caret.group("indent")) + 1
            current["caret_seen"] = True
        elif current["caret_seen"] and line.strip():
            current["message"].append(line.strip())

    flush()
    return diagnostics


class JavacCompiler(BaseCompiler):
    """
    Compile instrumented Java source using javac directly.

    Usage:
        compiler = JavacCompiler()
        report = compiler.run(["-cp", classpath, "Main$instrumented.java"])
    """

    name = "javac"
    source_extension = "java"

    def __init__(self, javac_command: str = "javac", timeout_sec: float = 60.0):
        self.javac_command = javac_command
        self.timeout_sec = timeout_sec

    def run(self, arguments: Sequence[str]) -> CompilationReport:
        arguments = list(arguments)
        if not arguments or arguments[-1].startswith("-"):
            raise CompilerInvocationError("No source file given to javac")
        source_path = Path(arguments[-1])

        if "-d" in arguments:
            return self._compile(arguments, source_path)

        # No output directory: compile into a scratch directory and keep the classes in memory
        with tempfile.TemporaryDirectory(prefix="worksheet-javac-") as scratch:
            report = self._compile(["-d", scratch] + arguments, source_path)
            if not report.has_errors:
                report.output_location = VirtualDirectory.from_directory(Path(scratch))
            return report

    def _compile(self, arguments: list[str], source_path: Path) -> CompilationReport:
        cmd = [self.javac_command] + arguments
        logger.info("compiling: %s", source_path)

        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=self.timeout_sec,
            )
        except FileNotFoundError as e:
            raise CompilerInvocationError(f"javac not found: {self.javac_command}") from e
        except subprocess.TimeoutExpired as e:
            raise CompilerInvocationError(f"Compilation timed out after {self.timeout_sec:g}s") from e
        except OSError as e:
            raise CompilerInvocationError(f"Could not start javac: {e}") from e

        if result.returncode not in JAVAC_OK_STATUSES:
            detail = (result.stderr or result.stdout or "").strip()[-1000:]
            raise CompilerInvocationError(
                f"javac failed with exit code {result.returncode}: {detail}"
            )

        diagnostics = parse_javac_output(result.stderr)
        report = CompilationReport(diagnostics=diagnostics, source_path=source_path)

        if result.returncode == 1 and not report.has_errors:
            # Errors we could not parse still mean the compile failed
            report.diagnostics.append(
                Diagnostic(Severity.ERROR, result.stderr.strip() or "javac reported errors")
            )
        return report
