"""
Shell command adapter — run a command line and capture its output.

Used for check tests, ``when`` guards, remediation installs and module
hooks.
"""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
import time
from pathlib import Path

from devduck.adapters.base import Adapter, ExecutionContext
from devduck.core.models.action import Receipt

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 300


class ShellCommandAdapter(Adapter):
    """Execute shell commands.

    Action params:
        command (str): The command line.
        timeout (float): Seconds before the command is killed (default: 300).
        env (dict[str, str]): Variables layered over the process environment.
    """

    @property
    def name(self) -> str:
        return "shell"

    def is_available(self) -> bool:
        return shutil.which("sh") is not None

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        if not context.params.get("command", ""):
            return False, "Missing required param: 'command'"
        cwd = context.working_dir
        if cwd and not Path(cwd).is_dir():
            return False, f"Working directory does not exist: {cwd}"
        return True, ""

    def execute(self, context: ExecutionContext) -> Receipt:
        command = context.params["command"]
        timeout = context.params.get("timeout", DEFAULT_TIMEOUT)
        cwd = context.working_dir
        env = {**os.environ, **(context.params.get("env") or {})}

        logger.debug("Executing: %s (cwd=%s)", command, cwd)
        start = time.monotonic()

        try:
            result = subprocess.run(
                command,
                shell=True,
                cwd=cwd,
                env=env,
                stdin=subprocess.DEVNULL,
                capture_output=True,
                text=True,
                timeout=timeout,
            )
        except subprocess.TimeoutExpired:
            return Receipt.failure(
                adapter=self.name,
                action_id=context.action.id,
                error=f"Command timed out after {timeout}s",
                timed_out=True,
                metadata={"command": command, "timeout": timeout},
            )
        except OSError as e:
            return Receipt.failure(
                adapter=self.name,
                action_id=context.action.id,
                error=f"Command execution error: {e}",
                metadata={"command": command},
            )

        elapsed_ms = int((time.monotonic() - start) * 1000)
        output = result.stdout.strip()
        stderr = result.stderr.strip()

        if result.returncode == 0:
            return Receipt.success(
                adapter=self.name,
                action_id=context.action.id,
                output=output,
                duration_ms=elapsed_ms,
                metadata={"command": command, "return_code": 0, "stderr": stderr},
            )
        return Receipt.failure(
            adapter=self.name,
            action_id=context.action.id,
            error=stderr or output or f"Command exited with code {result.returncode}",
            output=output,
            duration_ms=elapsed_ms,
            metadata={"command": command, "return_code": result.returncode},
        )
