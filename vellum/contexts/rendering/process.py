"""
External process capability.

The compiler talks to its binary only through ProcessRunner.run(). Each child
runs in its own session so that a timeout kills the whole process group (TeX
engines and wrapper scripts fork helpers), and the child is always reaped
before run() returns or raises.
"""

import os
import signal
import subprocess
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Protocol, Sequence


@dataclass
class ProcessResult:
    """
    Outcome of one finished process.

    Attributes:
        exit_code: Process return code
        stdout: Captured standard output (decoded, invalid bytes replaced)
        stderr: Captured standard error
        elapsed_s: Wall-clock runtime in seconds
    """

    exit_code: int
    stdout: str = ""
    stderr: str = ""
    elapsed_s: float = 0.0


class ProcessTimeout(Exception):
    """
    Process exceeded its timeout and was killed.

    Attributes:
        args_list: Command that timed out
        timeout: Bound that was exceeded (seconds)
        stdout: Output captured before the kill
        stderr: Error output captured before the kill
    """

    def __init__(self, args_list: Sequence[str], timeout: float, stdout: str = "", stderr: str = ""):
        self.args_list = list(args_list)
        self.timeout = timeout
        self.stdout = stdout
        self.stderr = stderr
        super().__init__(f"Command timed out after {timeout:.1f}s: {' '.join(self.args_list)}")


class ProcessRunner(Protocol):
    """Runs a command to completion with an upper time bound."""

    def run(
        self, args: Sequence[str], timeout: float, cwd: Optional[Path] = None
    ) -> ProcessResult: ...


def _decode(output) -> str:
    if output is None:
        return ""
    if isinstance(output, bytes):
        return output.decode("utf-8", errors="replace")
    return output


class SubprocessRunner:
    """
    ProcessRunner backed by subprocess.Popen.

    Raises:
        FileNotFoundError: If the binary does not exist
        PermissionError: If the binary is not executable
        ProcessTimeout: If the process group had to be killed
    """

    def run(
        self, args: Sequence[str], timeout: float, cwd: Optional[Path] = None
    ) -> ProcessResult:
        start_time = time.monotonic()

        with subprocess.Popen(
            list(args),
            cwd=str(cwd) if cwd is not None else None,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            start_new_session=True,
        ) as process:
            try:
                stdout, stderr = process.communicate(timeout=timeout)
            except subprocess.TimeoutExpired:
                _kill_process_group(process)
                stdout, stderr = process.communicate()
                raise ProcessTimeout(args, timeout, _decode(stdout), _decode(stderr))
            except BaseException:
                _kill_process_group(process)
                raise

        return ProcessResult(
            exit_code=process.returncode,
            stdout=_decode(stdout),
            stderr=_decode(stderr),
            elapsed_s=time.monotonic() - start_time,
        )


def _kill_process_group(process: subprocess.Popen) -> None:
    """SIGKILL the child's process group (the child leads its own session)."""
    try:
        os.killpg(process.pid, signal.SIGKILL)
    except (ProcessLookupError, PermissionError):
        # Group already gone; make sure the direct child is dead anyway
        process.kill()
