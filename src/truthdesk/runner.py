"""
Proxy for the external ``truthgit`` command-line tool.

The process launch sits behind the CommandRunner protocol so the CLI proxy
can be driven by a fake in tests. Calls are single-shot: no retries and no
timeout.
"""
from __future__ import annotations

import logging
import os
import subprocess
from dataclasses import dataclass
from typing import List, Optional, Protocol, Sequence

from truthdesk.errors import CommandError, CommandOutputError

logger = logging.getLogger(__name__)

BIN_ENV = "TRUTHGIT_BIN"
DEFAULT_BIN = "truthgit"


@dataclass(frozen=True)
class CommandResult:
    returncode: int
    stdout: bytes = b""
    stderr: bytes = b""

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def stderr_text(self) -> str:
        return self.stderr.decode("utf-8", errors="replace")


class CommandRunner(Protocol):
    """Runs an argv to completion and captures its output."""

    def run(self, argv: Sequence[str]) -> CommandResult:
        ...


class SubprocessRunner:
    """CommandRunner backed by subprocess.run."""

    def run(self, argv: Sequence[str]) -> CommandResult:
        try:
            proc = subprocess.run(list(argv), capture_output=True, check=False)
        except OSError as e:
            raise CommandError(f"Failed to run {argv[0]}: {e}") from e
        return CommandResult(returncode=proc.returncode, stdout=proc.stdout, stderr=proc.stderr)


def truthgit_bin() -> str:
    return os.environ.get(BIN_ENV) or DEFAULT_BIN


class TruthGitCLI:
    """Thin wrapper over the truthgit executable."""

    def __init__(
        self,
        runner: Optional[CommandRunner] = None,
        executable: Optional[str] = None,
    ):
        self.runner = runner if runner is not None else SubprocessRunner()
        self.executable = executable or truthgit_bin()

    def _invoke(self, args: Sequence[str], failure: str) -> str:
        argv: List[str] = [self.executable, *args]
        logger.debug("Running %s", argv)
        result = self.runner.run(argv)
        if not result.ok:
            stderr = result.stderr_text
            raise CommandError(f"{failure}: {stderr}", returncode=result.returncode, stderr=stderr)
        try:
            return result.stdout.decode("utf-8")
        except UnicodeDecodeError as e:
            raise CommandOutputError(f"Invalid UTF-8 output: {e}", returncode=result.returncode) from e

    def run(self, args: Sequence[str]) -> str:
        """Run ``truthgit <args>`` and return its stdout."""
        return self._invoke(args, "TruthGit error")

    def verify_local(self, claim: str, domain: str) -> str:
        """Run a local verification; returns the tool's JSON output as text."""
        return self._invoke(["verify", claim, "--domain", domain, "--json"], "Verification failed")


__all__ = [
    "CommandResult",
    "CommandRunner",
    "SubprocessRunner",
    "TruthGitCLI",
    "truthgit_bin",
]
