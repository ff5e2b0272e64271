"""Process execution primitives for delegated version-control commands.

Two flavours are provided:
- ``run_command`` captures stdout/stderr for parsing (stdin is still
  inherited so credential prompts reach the user unless detached).
- ``run_interactive`` hands the whole terminal to the child, for
  checkouts, rebases and passthrough commands.
"""

from __future__ import annotations

__all__ = [
    "CommandResult",
    "run_command",
    "run_interactive",
]

import logging
import subprocess
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

# Conventional shell status for "command not found / not executable".
EXEC_FAILURE_CODE = 127


@dataclass(frozen=True)
class CommandResult:
    """Captured result of a command execution."""

    command: list[str]
    cwd: str
    exit_code: int
    stdout: str
    stderr: str

    @property
    def success(self) -> bool:
        """Return whether the command completed successfully."""
        return self.exit_code == 0


def _normalize_args(args: Sequence[str]) -> list[str]:
    """Coerce *args* to a validated ``list[str]``, rejecting non-string items."""
    normalized: list[str] = []
    for value in args:
        if not isinstance(value, str):
            msg = "args must contain only strings"
            raise TypeError(msg)
        normalized.append(value)
    if not normalized:
        raise ValueError("command must be non-empty")
    return normalized


def run_command(
    command: Sequence[str],
    cwd: str | Path,
    *,
    detach_stdin: bool = False,
    env: Mapping[str, str] | None = None,
) -> CommandResult:
    """Execute *command* in *cwd*, capturing its output."""
    argv = _normalize_args(command)
    logger.debug("run %s in %s", argv, cwd)
    try:
        completed = subprocess.run(
            argv,
            cwd=cwd,
            capture_output=True,
            text=True,
            check=False,
            stdin=subprocess.DEVNULL if detach_stdin else None,
            env=dict(env) if env is not None else None,
        )
    except OSError as exc:
        return CommandResult(
            command=argv,
            cwd=str(cwd),
            exit_code=EXEC_FAILURE_CODE,
            stdout="",
            stderr=str(exc),
        )

    return CommandResult(
        command=argv,
        cwd=str(cwd),
        exit_code=completed.returncode,
        stdout=completed.stdout,
        stderr=completed.stderr,
    )


def run_interactive(command: Sequence[str], cwd: str | Path) -> CommandResult:
    """Execute *command* attached to the controlling terminal.

    Output goes straight to the user, so the returned result carries the
    exit code only.
    """
    argv = _normalize_args(command)
    logger.debug("run (interactive) %s in %s", argv, cwd)
    try:
        completed = subprocess.run(argv, cwd=cwd, check=False)
    except OSError as exc:
        return CommandResult(
            command=argv,
            cwd=str(cwd),
            exit_code=EXEC_FAILURE_CODE,
            stdout="",
            stderr=str(exc),
        )
    return CommandResult(
        command=argv,
        cwd=str(cwd),
        exit_code=completed.returncode,
        stdout="",
        stderr="",
    )
