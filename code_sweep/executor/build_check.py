"""Post-cleanup build validation through an external command."""

from __future__ import annotations

import logging
import shlex
import subprocess
import time
from pathlib import Path

from code_sweep.models import BuildValidationResult

logger = logging.getLogger(__name__)

# Build logs print their errors last
_MAX_OUTPUT = 20_000


class BuildRunner:
    """Run the configured build command. Exit code zero means pass."""

    def __init__(self, command: str, timeout: float | None = None):
        self.command = command
        self.timeout = timeout

    def run(self, cwd: Path) -> BuildValidationResult:
        logger.info("Running build check %r in %s", self.command, cwd)
        start = time.monotonic()
        try:
            argv = shlex.split(self.command)
        except ValueError as e:
            return BuildValidationResult(
                passed=False, command=self.command, output=f"Invalid build command: {e}",
            )
        if not argv:
            return BuildValidationResult(passed=False, command=self.command, output="Empty build command")

        try:
            proc = subprocess.run(
                argv,
                cwd=cwd,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except FileNotFoundError:
            return BuildValidationResult(
                passed=False,
                command=self.command,
                returncode=127,
                output=f"Command not found: {argv[0]}",
                duration=time.monotonic() - start,
            )
        except subprocess.TimeoutExpired as e:
            output = e.stdout or ""
            if isinstance(output, bytes):
                output = output.decode("utf-8", errors="replace")
            return BuildValidationResult(
                passed=False,
                command=self.command,
                output=(output + f"\nTimed out after {self.timeout}s")[-_MAX_OUTPUT:],
                duration=time.monotonic() - start,
            )

        output = (proc.stdout or "") + (proc.stderr or "")
        result = BuildValidationResult(
            passed=proc.returncode == 0,
            command=self.command,
            returncode=proc.returncode,
            output=output[-_MAX_OUTPUT:],
            duration=time.monotonic() - start,
        )
        if result.passed:
            logger.info("Build check passed in %.1fs", result.duration)
        else:
            logger.warning("Build check failed with exit code %s", proc.returncode)
        return result
