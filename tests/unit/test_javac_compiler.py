"""
Unit tests for JavacCompiler.

javac itself is mocked; these tests cover argument handling and the
parsing of javac's diagnostics.
"""

import subprocess
import pytest
from pathlib import Path
from unittest.mock import Mock, patch

import sys
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from worksheet_eval.compiler import JavacCompiler, parse_javac_output
from worksheet_eval.errors import CompilerInvocationError
from worksheet_eval.models import Position, Severity


# ============================================================================
# Realistic javac output samples
# ============================================================================

MISSING_SEMICOLON = '''\
Main$instrumented.java:3: error: ';' expected
        System.out.println("hi")
                                ^
1 error
'''

UNKNOWN_SYMBOL_WITH_NOTE = '''\
Main$instrumented.java:5: error: cannot find symbol
        int y = x + 1;
                ^
  symbol:   variable x
  location: class Main
Main$instrumented.java:7: warning: [removal] Integer(int) in Integer has been deprecated and marked for removal
        Integer boxed = new Integer(1);
                        ^
Note: Some input files use unchecked or unsafe operations.
Note: Recompile with -Xlint:unchecked for details.
1 error
1 warning
'''


# ============================================================================
# Parser
# ============================================================================

class TestParseJavacOutput:
    """Tests for turning javac stderr into diagnostics."""

    def test_single_error_with_column(self):
        diagnostics = parse_javac_output(MISSING_SEMICOLON)

        assert len(diagnostics) == 1
        assert diagnostics[0].severity == Severity.ERROR
        assert diagnostics[0].message == "';' expected"
        assert diagnostics[0].position == Position(3, 33)

    def test_mixed_diagnostics_keep_order(self):
        diagnostics = parse_javac_output(UNKNOWN_SYMBOL_WITH_NOTE)

        assert [d.severity for d in diagnostics] == [
            Severity.ERROR, Severity.WARNING, Severity.INFO, Severity.INFO,
        ]

    def test_continuation_lines_extend_message(self):
        error = parse_javac_output(UNKNOWN_SYMBOL_WITH_NOTE)[0]

        assert error.message == "cannot find symbol\nsymbol:   variable x\nlocation: class Main"
        assert error.position == Position(5, 17)

    def test_bare_error_has_no_position(self):
        diagnostics = parse_javac_output("error: invalid flag: -bogus\n")

        assert diagnostics[0].severity == Severity.ERROR
        assert diagnostics[0].position is None

    def test_empty_output(self):
        assert parse_javac_output("") == []


# ============================================================================
# Compiler
# ============================================================================

class TestJavacCompilerRun:
    """Tests for driving javac as a subprocess."""

    @patch('subprocess.run')
    def test_compile_errors_are_data(self, mock_subprocess):
        mock_subprocess.return_value = Mock(returncode=1, stdout="", stderr=MISSING_SEMICOLON)

        report = JavacCompiler().run(["-d", "out", "Main$instrumented.java"])

        assert report.has_errors is True
        assert report.output_location is None
        assert report.source_path == Path("Main$instrumented.java")

    @patch('subprocess.run')
    def test_explicit_output_directory_passed_through(self, mock_subprocess):
        mock_subprocess.return_value = Mock(returncode=0, stdout="", stderr="")

        report = JavacCompiler(javac_command="/opt/jdk/bin/javac").run(
            ["-cp", "lib.jar", "-d", "out", "Main$instrumented.java"]
        )

        cmd = mock_subprocess.call_args[0][0]
        assert cmd == ["/opt/jdk/bin/javac", "-cp", "lib.jar", "-d", "out", "Main$instrumented.java"]
        assert report.output_location is None

    @patch('subprocess.run')
    def test_without_output_directory_classes_kept_in_memory(self, mock_subprocess):
        def fake_javac(cmd, **kwargs):
            out = Path(cmd[cmd.index("-d") + 1])
            (out / "demo").mkdir()
            (out / "demo" / "Main.class").write_bytes(b"\xca\xfe\xba\xbe")
            return Mock(returncode=0, stdout="", stderr="")

        mock_subprocess.side_effect = fake_javac

        report = JavacCompiler().run(["Main$instrumented.java"])

        assert report.has_errors is False
        assert report.output_location.read("demo/Main.class") == b"\xca\xfe\xba\xbe"

    @patch('subprocess.run')
    def test_unparsed_failure_still_an_error(self, mock_subprocess):
        mock_subprocess.return_value = Mock(returncode=1, stdout="", stderr="something odd\n")

        report = JavacCompiler().run(["-d", "out", "Main$instrumented.java"])

        assert report.has_errors is True

    @patch('subprocess.run')
    def test_command_line_error_is_invocation_error(self, mock_subprocess):
        mock_subprocess.return_value = Mock(
            returncode=2, stdout="", stderr="error: invalid flag: -bogus\n"
        )

        with pytest.raises(CompilerInvocationError, match="exit code 2"):
            JavacCompiler().run(["-bogus", "-d", "out", "Main$instrumented.java"])

    @patch('subprocess.run')
    def test_missing_javac(self, mock_subprocess):
        mock_subprocess.side_effect = FileNotFoundError("javac")

        with pytest.raises(CompilerInvocationError, match="javac not found"):
            JavacCompiler().run(["-d", "out", "Main$instrumented.java"])

    @patch('subprocess.run')
    def test_timeout(self, mock_subprocess):
        mock_subprocess.side_effect = subprocess.TimeoutExpired(cmd="javac", timeout=1)

        with pytest.raises(CompilerInvocationError, match="timed out"):
            JavacCompiler(timeout_sec=1).run(["-d", "out", "Main$instrumented.java"])

    def test_no_source_file(self):
        with pytest.raises(CompilerInvocationError):
            JavacCompiler().run(["-d", "out"])

    def test_source_extension(self):
        assert JavacCompiler().source_extension == "java"
        assert JavacCompiler().entry_point_arguments("demo.Main") == []
