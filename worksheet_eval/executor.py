"""
ProcessExecutor - run a compiled entry point in a child runtime and capture
everything it writes to stdout and stderr.

Both pipes are drained by their own thread into one shared buffer as data
arrives, so a child that fills one pipe while the parent is blocked on the
other cannot deadlock. Order within a stream is preserved; the interleaving
of the two streams follows arrival order as the OS schedules it.
"""

import logging
import os
import signal
import subprocess
import threading
import time
from pathlib import Path
from typing import IO, Sequence

from .errors import EvaluationCancelled, ExecutionError, ExecutionTimeout
from .models import ExecutionResult, join_classpath

logger = logging.getLogger(__name__)

CHUNK_SIZE = 65536
POLL_INTERVAL_SEC = 0.05
JOIN_TIMEOUT_SEC = 5.0
DRAIN_GRACE_SEC = 1.0


class _OutputBuffer:
    """Byte buffer shared by the drain threads."""

    def __init__(self):
        self._data = bytearray()
        self._lock = threading.Lock()

    def append(self, chunk: bytes) -> None:
        with self._lock:
            self._data.extend(chunk)

    def getvalue(self) -> bytes:
        with self._lock:
            return bytes(self._data)


class _StreamPump:
    """Copies one child pipe into the shared buffer until EOF."""

    def __init__(self, stream: IO[bytes], sink: _OutputBuffer, name: str):
        self._stream = stream
        self._sink = sink
        self.name = name
        self.error: BaseException | None = None
        self._thread = threading.Thread(target=self._run, name=f"{name}-drain", daemon=True)

    def start(self) -> None:
        self._thread.start()

    def join(self, timeout: float | None = None) -> None:
        self._thread.join(timeout=timeout)

    def is_alive(self) -> bool:
        return self._thread.is_alive()

    def _run(self) -> None:
        try:
            while True:
                chunk = self._stream.read1(CHUNK_SIZE)
                if not chunk:
                    break
                self._sink.append(chunk)
        except (OSError, ValueError) as e:
            self.error = e


class ProcessExecutor:
    """
    Launch ``<runtime> -cp <classpath> <entry point>`` and capture its output.

    Usage:
        executor = ProcessExecutor()
        result = executor.run(["java"], ["/project/classes"], "foo.Main", project_dir)
    """

    def __init__(self, encoding: str = "utf-8"):
        self.encoding = encoding

    @staticmethod
    def build_command(
        runtime_command: Sequence[str],
        classpath_entries: Sequence[str],
        entry_point: str,
    ) -> list[str]:
        return list(runtime_command) + ["-cp", join_classpath(classpath_entries), entry_point]

    def run(
        self,
        runtime_command: Sequence[str],
        classpath_entries: Sequence[str],
        entry_point: str,
        working_directory: Path,
        timeout: float | None = None,
        cancel_event: threading.Event | None = None,
    ) -> ExecutionResult:
        """
        Run the entry point and wait for it to finish.

        A non-zero exit code is returned, not raised.

        Raises:
            ExecutionTimeout: the deadline passed; the child was killed
            EvaluationCancelled: cancel_event was set; the child was killed
            ExecutionError: the child could not be spawned, read or waited on
        """
        cmd = self.build_command(runtime_command, classpath_entries, entry_point)
        logger.debug("Running %s in %s", " ".join(cmd), working_directory)

        try:
            process = subprocess.Popen(
                cmd,
                cwd=working_directory,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                start_new_session=(os.name == "posix"),
            )
        except OSError as e:
            logger.error("Error launching instrumented code.", exc_info=True)
            raise ExecutionError(f"Could not start {cmd[0]}: {e}") from e

        buffer = _OutputBuffer()
        pumps = [
            _StreamPump(process.stdout, buffer, "stdout"),
            _StreamPump(process.stderr, buffer, "stderr"),
        ]
        for pump in pumps:
            pump.start()

        try:
            exit_code = self._wait(process, timeout, cancel_event)
        except OSError as e:
            self._kill(process)
            raise ExecutionError(f"Failed waiting for {cmd[0]}: {e}") from e
        except BaseException:
            self._kill(process)
            raise
        finally:
            self._finish_pumps(process, pumps)

        logger.debug("Process finished with exit code: %d", exit_code)

        for pump in pumps:
            if pump.error is not None:
                raise ExecutionError(f"I/O failure reading {pump.name}: {pump.error}")

        if exit_code < 0:
            raise ExecutionError(f"Process was killed by {_signal_name(-exit_code)}")

        return ExecutionResult(
            combined_output=buffer.getvalue().decode(self.encoding, errors="replace"),
            exit_code=exit_code,
        )

    def _wait(
        self,
        process: subprocess.Popen,
        timeout: float | None,
        cancel_event: threading.Event | None,
    ) -> int:
        deadline = time.monotonic() + timeout if timeout is not None else None

        while True:
            if cancel_event is not None and cancel_event.is_set():
                raise EvaluationCancelled()

            wait_for = POLL_INTERVAL_SEC
            if deadline is not None:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    raise ExecutionTimeout(timeout)
                wait_for = min(wait_for, remaining)

            try:
                return process.wait(timeout=wait_for)
            except subprocess.TimeoutExpired:
                continue

    @staticmethod
    def _kill(process: subprocess.Popen) -> None:
        """Kill the child and anything it started in its session, even after the child exited."""
        try:
            if os.name == "posix":
                os.killpg(process.pid, signal.SIGKILL)
            elif process.poll() is None:
                process.kill()
        except (ProcessLookupError, PermissionError):
            if process.poll() is None:
                process.kill()
        process.wait()

    def _finish_pumps(self, process: subprocess.Popen, pumps: list[_StreamPump]) -> None:
        for pump in pumps:
            pump.join(timeout=DRAIN_GRACE_SEC)

        if any(pump.is_alive() for pump in pumps):
            # Something the child started still holds a pipe open
            logger.warning("Output pipes still open after exit; killing the process group")
            self._kill(process)

        for pump, stream in zip(pumps, (process.stdout, process.stderr)):
            pump.join(timeout=JOIN_TIMEOUT_SEC)
            if pump.is_alive():
                # Escaped the process group; closing the pipe now would block on the reader
                logger.warning("%s drain did not finish; abandoning it", pump.name)
                continue
            stream.close()


def _signal_name(signum: int) -> str:
    try:
        return signal.Signals(signum).name
    except ValueError:
        return f"signal {signum}"
