from __future__ import annotations

import logging
import shlex
import subprocess
from collections.abc import Sequence
from dataclasses import dataclass

from cukernels.errors import ToolchainError, ToolchainNotFoundError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProcessResult:
    """Outcome of one toolchain subprocess: exit status and both captured streams."""

    command: tuple[str, ...]
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def command_line(self) -> str:
        return shlex.join(self.command)

    def describe_failure(self) -> str:
        return (f"Command: {self.command_line}\n"
                f"Exit status: {self.returncode}\n"
                f"--- stdout ---\n{self.stdout}\n"
                f"--- stderr ---\n{self.stderr}")


def run_process(command: Sequence[str], install_hint: str | None = None) -> ProcessResult:
    """Run ``command`` to completion and capture its output.

    There is no timeout: a hung toolchain stalls the caller.

    Raises
    ------
    ToolchainNotFoundError
        If the executable does not exist.
    """
    command = tuple(str(part) for part in command)
    logger.debug("Running: %s", shlex.join(command))
    try:
        proc = subprocess.run(
            command,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            encoding="utf-8",
            errors="replace",
        )
    except FileNotFoundError as err:
        msg = f"Cannot execute '{command[0]}': not found."
        if install_hint:
            msg += f" {install_hint}"
        raise ToolchainNotFoundError(msg) from err
    return ProcessResult(command, proc.returncode, proc.stdout or "", proc.stderr or "")


def check_result(result: ProcessResult, what: str) -> ProcessResult:
    """Return ``result`` unchanged when it succeeded, raise ``ToolchainError`` otherwise."""
    if not result.ok:
        raise ToolchainError(f"{what} failed.\n{result.describe_failure()}", result)
    return result
