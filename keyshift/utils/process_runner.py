# File: keyshift/utils/process_runner.py
"""Narrow async interface for running external tools (yt-dlp, ffmpeg, ffprobe)."""
import asyncio
import logging
from dataclasses import dataclass
from typing import Optional, Protocol, Sequence

logger = logging.getLogger(__name__)

EXIT_NOT_FOUND = 127
EXIT_TIMED_OUT = -9


@dataclass(frozen=True)
class ProcessResult:
    exit_code: int
    stdout: bytes = b""
    stderr: bytes = b""

    @property
    def ok(self) -> bool:
        return self.exit_code == 0

    def stdout_text(self) -> str:
        return self.stdout.decode(errors="replace")

    def stderr_tail(self, max_lines: int = 5) -> str:
        """Last few lines of stderr, for log messages."""
        lines = self.stderr.decode(errors="replace").strip().splitlines()
        return "\n".join(lines[-max_lines:]) if lines else "No stderr captured"


class ProcessRunner(Protocol):
    async def run(self, command: str, args: Sequence[str], timeout: Optional[float] = None) -> ProcessResult:
        ...


class SubprocessRunner:
    """
    Runs executables with asyncio subprocesses.

    Process failures never raise: a missing executable is reported as exit
    code 127 and a timeout kills the child and reports EXIT_TIMED_OUT, so
    callers decide fatality from the exit code alone.
    """

    async def run(self, command: str, args: Sequence[str], timeout: Optional[float] = None) -> ProcessResult:
        logger.debug(f"Running: {command} {' '.join(args)}")
        try:
            proc = await asyncio.create_subprocess_exec(
                command,
                *args,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError:
            logger.error(f"Executable not found: '{command}'")
            return ProcessResult(EXIT_NOT_FOUND, b"", f"{command}: command not found".encode())
        except PermissionError as e:
            logger.error(f"Executable '{command}' could not be started: {e}")
            return ProcessResult(EXIT_NOT_FOUND, b"", str(e).encode())

        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning(f"'{command}' timed out after {timeout}s. Killing process {proc.pid}.")
            proc.kill()
            await proc.wait()
            return ProcessResult(EXIT_TIMED_OUT, b"", f"{command} timed out after {timeout}s".encode())
        except asyncio.CancelledError:
            if proc.returncode is None:
                proc.kill()
                await proc.wait()
            raise

        return ProcessResult(proc.returncode, stdout or b"", stderr or b"")
