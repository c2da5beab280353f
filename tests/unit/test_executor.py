"""
Unit tests for ProcessExecutor.

Child processes are real Python interpreters started through the
classpath launcher, with plain ``.py`` modules on the classpath.
"""

import os
import textwrap
import threading
import time
import pytest
from pathlib import Path
from unittest.mock import patch

import sys
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from worksheet_eval.config import LAUNCHER_PATH
from worksheet_eval.errors import EvaluationCancelled, ExecutionError, ExecutionTimeout
from worksheet_eval.executor import ProcessExecutor

RUNTIME = [sys.executable, str(LAUNCHER_PATH)]


@pytest.fixture
def executor():
    return ProcessExecutor()


@pytest.fixture
def classpath(tmp_path):
    directory = tmp_path / "classes"
    directory.mkdir()
    return directory


@pytest.fixture
def run_module(executor, classpath, work_dir, write_module):
    """Write a module into the classpath and run it."""
    def _run(source: str, module: str = "demo.Main", **kwargs):
        write_module(classpath, module, textwrap.dedent(source))
        return executor.run(RUNTIME, [str(classpath)], module, work_dir, **kwargs)
    return _run


# ============================================================================
# Command construction
# ============================================================================

class TestBuildCommand:

    def test_runtime_classpath_entry_point(self):
        cmd = ProcessExecutor.build_command(["java"], ["/a", "/b"], "foo.Main")

        assert cmd == ["java", "-cp", f"/a{os.pathsep}/b", "foo.Main"]

    def test_runtime_leading_arguments_kept(self):
        cmd = ProcessExecutor.build_command(["python3", "launcher.py"], [], "Main")

        assert cmd == ["python3", "launcher.py", "-cp", "", "Main"]


# ============================================================================
# Capture
# ============================================================================

class TestOutputCapture:
    """Tests for combined stdout/stderr capture."""

    def test_captures_stdout_exactly(self, run_module):
        result = run_module('print("hello")\n')

        assert result.combined_output == "hello\n"
        assert result.exit_code == 0

    def test_stderr_is_captured(self, run_module):
        result = run_module('import sys\nsys.stderr.write("oops\\n")\n')

        assert result.combined_output == "oops\n"

    def test_per_stream_order_preserved(self, run_module):
        result = run_module('''\
            import sys
            for i in range(5):
                print(i, flush=True)
                sys.stderr.write(f"e{i}\\n")
                sys.stderr.flush()
        ''')

        out_lines = [line for line in result.combined_output.splitlines() if not line.startswith("e")]
        err_lines = [line for line in result.combined_output.splitlines() if line.startswith("e")]
        assert out_lines == ["0", "1", "2", "3", "4"]
        assert err_lines == ["e0", "e1", "e2", "e3", "e4"]

    def test_large_output_on_both_streams_does_not_deadlock(self, run_module):
        """Both streams overflow a pipe buffer; all bytes must arrive."""
        result = run_module('''\
            import sys
            sys.stdout.write("o" * 100000)
            sys.stdout.flush()
            sys.stderr.write("e" * 100000)
            sys.stderr.flush()
        ''', timeout=60)

        assert len(result.combined_output) >= 200000
        assert result.combined_output.count("o") == 100000
        assert result.combined_output.count("e") == 100000

    def test_undecodable_bytes_replaced(self, run_module):
        result = run_module('import sys\nsys.stdout.buffer.write(b"ok\\xff")\n')

        assert result.combined_output == "ok\ufffd"


# ============================================================================
# Process environment
# ============================================================================

class TestChildEnvironment:

    def test_runs_in_working_directory(self, run_module, work_dir):
        result = run_module('import os\nprint(os.getcwd())\n')

        assert Path(result.combined_output.strip()).resolve() == work_dir.resolve()

    def test_stdin_is_not_inherited(self, run_module):
        result = run_module('import sys\nprint(repr(sys.stdin.read()))\n', timeout=30)

        assert result.combined_output == "''\n"

    def test_classpath_replaces_launcher_directory(self, run_module):
        result = run_module('import sys\nprint(any(p.endswith("worksheet_eval") for p in sys.path))\n')

        assert result.combined_output == "False\n"

    def test_entry_point_runs_as_main(self, run_module):
        result = run_module('if __name__ == "__main__":\n    print("main")\n')

        assert result.combined_output == "main\n"

    @pytest.mark.parametrize("module", ["json.Main", "email.Main", "test.Sheet"])
    def test_entry_package_shadowing_stdlib(self, run_module, module):
        result = run_module('print("from classpath")\n', module)

        assert result.combined_output == "from classpath\n"
        assert result.exit_code == 0

    def test_first_classpath_entry_wins(self, executor, tmp_path, work_dir, write_module):
        first, second = tmp_path / "first", tmp_path / "second"
        write_module(first, "demo.Main", 'print("first")\n')
        write_module(second, "demo.Main", 'print("second")\n')

        result = executor.run(RUNTIME, [str(first), str(second)], "demo.Main", work_dir)

        assert result.combined_output == "first\n"

    def test_unknown_entry_point(self, executor, classpath, work_dir):
        result = executor.run(RUNTIME, [str(classpath)], "demo.Missing", work_dir)

        assert result.exit_code == 1
        assert "Could not find or load main module demo.Missing" in result.combined_output


# ============================================================================
# Exit status and failures
# ============================================================================

class TestExitStatus:

    def test_non_zero_exit_is_not_an_error(self, run_module):
        result = run_module('import sys\nsys.stdout.write("partial")\nsys.exit(1)\n')

        assert result.combined_output == "partial"
        assert result.exit_code == 1

    def test_uncaught_exception_output_captured(self, run_module):
        result = run_module('raise RuntimeError("boom")\n')

        assert result.exit_code == 1
        assert "RuntimeError: boom" in result.combined_output

    @pytest.mark.skipif(os.name != "posix", reason="signals are POSIX only")
    def test_killed_by_signal_is_an_error(self, run_module):
        with pytest.raises(ExecutionError, match="SIGKILL"):
            run_module('import os, signal\nos.kill(os.getpid(), signal.SIGKILL)\n')

    def test_missing_runtime(self, executor, work_dir):
        with pytest.raises(ExecutionError) as exc_info:
            executor.run(["no-such-runtime-for-worksheets"], [], "demo.Main", work_dir)

        assert str(exc_info.value)

    def test_missing_working_directory(self, executor, tmp_path):
        with pytest.raises(ExecutionError):
            executor.run(RUNTIME, [], "demo.Main", tmp_path / "missing")


class TestTimeoutAndCancellation:

    def test_timeout_kills_child(self, run_module):
        started = time.monotonic()

        with pytest.raises(ExecutionTimeout):
            run_module('import time\ntime.sleep(30)\n', timeout=0.5)

        assert time.monotonic() - started < 15

    def test_cancellation_kills_child(self, run_module):
        cancel = threading.Event()
        timer = threading.Timer(0.5, cancel.set)
        timer.start()
        started = time.monotonic()

        try:
            with pytest.raises(EvaluationCancelled):
                run_module('import time\ntime.sleep(30)\n', cancel_event=cancel)
        finally:
            timer.cancel()

        assert time.monotonic() - started < 15

    def test_drain_threads_are_joined(self, run_module):
        before = {t.name for t in threading.enumerate()}

        run_module('print("x")\n')

        after = {t.name for t in threading.enumerate()}
        assert not {"stdout-drain", "stderr-drain"} & (after - before)

    @pytest.mark.skipif(os.name != "posix", reason="process groups are POSIX only")
    def test_background_process_holding_pipes_is_killed(self, run_module):
        """The child exits but leaves a process behind that inherited its output pipes."""
        started = time.monotonic()

        result = run_module('''\
            import subprocess, sys
            subprocess.Popen([sys.executable, "-c", "import time; time.sleep(30)"])
            print("done", flush=True)
        ''', timeout=60)

        assert result.combined_output == "done\n"
        assert result.exit_code == 0
        assert time.monotonic() - started < 10
        leaked = [t.name for t in threading.enumerate() if t.name.endswith("-drain") and t.is_alive()]
        assert leaked == []

    @patch('worksheet_eval.executor.ProcessExecutor._wait')
    def test_wait_failure_is_an_execution_error(self, mock_wait, run_module):
        mock_wait.side_effect = OSError("wait failed")

        with pytest.raises(ExecutionError, match="wait failed"):
            run_module('import time\ntime.sleep(30)\n')
