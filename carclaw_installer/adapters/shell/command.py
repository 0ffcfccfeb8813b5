"""
Command runner — the one place external programs are executed.

Every package manager call, git invocation, and service manager
command in the installer goes through a CommandRunner. Commands run
synchronously with captured output. The runner never raises: a
missing binary or a timeout comes back as a failed CommandResult.

Tests substitute ``RecordingRunner`` (see ``adapters/mock.py``).
"""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

EXIT_NOT_FOUND = 127
EXIT_TIMEOUT = 124


@dataclass
class CommandResult:
    """Outcome of one external command."""

    args: list[str]
    returncode: int = 0
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def output(self) -> str:
        """stdout and stderr combined, stripped."""
        return "\n".join(p for p in (self.stdout.strip(), self.stderr.strip()) if p)

    @property
    def error_text(self) -> str:
        """Best single-line-ish explanation of a failure."""
        return (
            self.stderr.strip()
            or self.stdout.strip()
            or f"Command exited with code {self.returncode}"
        )


class CommandRunner:
    """Run external commands synchronously.

    Args:
        privilege_prefix: Prepended to commands run with
            ``privileged=True`` when not already root (``("sudo",)``
            on Debian, empty on macOS).
        timeout: Default timeout in seconds per command.
    """

    def __init__(
        self,
        privilege_prefix: tuple[str, ...] | list[str] = (),
        timeout: int = 900,
    ):
        self._privilege_prefix = tuple(privilege_prefix)
        self._timeout = timeout

    def which(self, name: str) -> str | None:
        """Absolute path of an executable on PATH, or None."""
        return shutil.which(name)

    def path_exists(self, path: Path | str) -> bool:
        return Path(path).exists()

    def run(
        self,
        args: list[str],
        *,
        cwd: Path | str | None = None,
        input_text: str | None = None,
        privileged: bool = False,
        timeout: int | None = None,
        env: dict[str, str] | None = None,
    ) -> CommandResult:
        """Run ``args`` and capture its output."""
        full = self._with_privilege(list(args), privileged)
        return self._execute(full, cwd=cwd, input_text=input_text, timeout=timeout, env=env)

    def run_shell(
        self,
        command: str,
        *,
        cwd: Path | str | None = None,
        privileged: bool = False,
        timeout: int | None = None,
    ) -> CommandResult:
        """Run a shell pipeline (vendor install scripts piped from curl)."""
        full = self._with_privilege(["sh", "-c", command], privileged)
        return self._execute(full, cwd=cwd, input_text=None, timeout=timeout, env=None)

    # ── Internals ───────────────────────────────────────────────

    def _with_privilege(self, args: list[str], privileged: bool) -> list[str]:
        if not privileged or not self._privilege_prefix:
            return args
        if hasattr(os, "geteuid") and os.geteuid() == 0:
            return args
        return [*self._privilege_prefix, *args]

    def _execute(
        self,
        args: list[str],
        *,
        cwd: Path | str | None,
        input_text: str | None,
        timeout: int | None,
        env: dict[str, str] | None,
    ) -> CommandResult:
        effective_timeout = timeout or self._timeout
        logger.debug("Executing: %s (cwd=%s)", " ".join(args), cwd or ".")

        run_env = None
        if env:
            run_env = {**os.environ, **env}

        try:
            proc = subprocess.run(
                args,
                cwd=str(cwd) if cwd else None,
                input=input_text,
                capture_output=True,
                text=True,
                timeout=effective_timeout,
                env=run_env,
            )
        except FileNotFoundError as e:
            return CommandResult(args=args, returncode=EXIT_NOT_FOUND, stderr=str(e))
        except subprocess.TimeoutExpired:
            return CommandResult(
                args=args,
                returncode=EXIT_TIMEOUT,
                stderr=f"Command timed out after {effective_timeout}s",
            )
        except OSError as e:
            return CommandResult(args=args, returncode=1, stderr=f"Command execution error: {e}")

        result = CommandResult(
            args=args,
            returncode=proc.returncode,
            stdout=proc.stdout or "",
            stderr=proc.stderr or "",
        )
        if not result.ok:
            logger.debug("Command failed (%d): %s", result.returncode, result.error_text)
        return result
