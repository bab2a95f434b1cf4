"""
Tool Runner - blocking execution of external build tools.

Build stages never call subprocess directly; they go through a ToolRunner so
tests can substitute a scripted fake.

Security:
- No shell=True anywhere
- Commands are lists, never strings
- Sanitized environment (no credentials leak into user builds)
"""
import logging
import subprocess
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Protocol

logger = logging.getLogger(__name__)

MAX_OUTPUT_SIZE = 256 * 1024  # per stream


@dataclass
class CommandResult:
    """Result of a subprocess command."""
    command: list[str]
    exit_code: int
    stdout: str
    stderr: str
    duration_ms: int
    timed_out: bool = False

    @property
    def ok(self) -> bool:
        return self.exit_code == 0 and not self.timed_out


class ToolRunner(Protocol):
    """Runs one external command to completion."""

    def run(self, cmd: list[str], cwd: Path) -> CommandResult:
        ...


def _sanitize_env(tool_dir: Optional[str] = None) -> dict:
    """Create a sanitized environment for subprocess execution."""
    path = "/usr/local/bin:/usr/bin:/bin"
    if tool_dir and tool_dir not in path.split(":"):
        path = f"{tool_dir}:{path}"

    return {
        "PATH": path,
        # The only writable location on the serverless host
        "HOME": "/tmp",
        "LANG": "C.UTF-8",
        "LC_ALL": "C.UTF-8",
        "NODE_ENV": "production",
        # Keep ANSI escapes out of captured stderr
        "NO_COLOR": "1",
        "FORCE_COLOR": "0",
    }


def _truncate(text: str) -> str:
    if len(text) > MAX_OUTPUT_SIZE:
        return text[:MAX_OUTPUT_SIZE] + f"\n... (truncated, {len(text)} total chars)"
    return text


class SubprocessToolRunner:
    """Production runner: shells out with subprocess.run, no shell."""

    def __init__(self, timeout: Optional[int] = None, env_override: Optional[dict] = None):
        self._timeout = timeout
        self._env_override = env_override or {}

    def run(self, cmd: list[str], cwd: Path) -> CommandResult:
        """
        Execute a command and wait for it to exit.

        Launch failures (missing binary, permission denied) are reported as
        exit code -1 with the OS error as stderr, never raised.
        """
        if not isinstance(cmd, list) or len(cmd) == 0:
            raise ValueError("Command must be a non-empty list")

        env = _sanitize_env(str(Path(cmd[0]).parent) if "/" in cmd[0] else None)
        env.update(self._env_override)

        start_time = datetime.now(timezone.utc)
        timed_out = False

        try:
            result = subprocess.run(
                cmd,
                cwd=str(cwd),
                env=env,
                capture_output=True,
                timeout=self._timeout,
                text=True,
                errors="replace",
            )
            stdout = result.stdout or ""
            stderr = result.stderr or ""
            exit_code = result.returncode

        except subprocess.TimeoutExpired as e:
            stdout = e.stdout.decode("utf-8", errors="replace") if isinstance(e.stdout, bytes) else (e.stdout or "")
            stderr = e.stderr.decode("utf-8", errors="replace") if isinstance(e.stderr, bytes) else (e.stderr or "")
            stderr = f"{stderr}\nTimed out after {self._timeout}s".lstrip()
            exit_code = -1
            timed_out = True
            logger.warning(f"command_timeout cmd={cmd[0]} timeout={self._timeout}")

        except (OSError, subprocess.SubprocessError) as e:
            stdout = ""
            stderr = f"Failed to execute {cmd[0]}: {e}"
            exit_code = -1
            logger.warning(f"command_launch_failed cmd={cmd[0]} error={type(e).__name__}")

        duration_ms = int((datetime.now(timezone.utc) - start_time).total_seconds() * 1000)

        return CommandResult(
            command=cmd,
            exit_code=exit_code,
            stdout=_truncate(stdout),
            stderr=_truncate(stderr),
            duration_ms=duration_ms,
            timed_out=timed_out,
        )
