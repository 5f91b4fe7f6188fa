"""
Git adapter — fetch external repositories and projects.

Uses the git CLI. Only the operations the download steps need are
exposed: clone into a destination, and pull an existing checkout.
"""

from __future__ import annotations

import logging
import shutil
import subprocess
from pathlib import Path

from devduck.adapters.base import Adapter, ExecutionContext
from devduck.core.models.action import Receipt

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 300


class GitAdapter(Adapter):
    """Git operations.

    Action params:
        operation (str): 'clone' or 'pull'.
        url (str): Repository URL (for 'clone').
        dest (str): Checkout directory.
        depth (int): Shallow clone depth (for 'clone', optional).
        timeout (int): Timeout in seconds (default: 300).
    """

    VALID_OPS = {"clone", "pull"}

    @property
    def name(self) -> str:
        return "git"

    def is_available(self) -> bool:
        return shutil.which("git") is not None

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        operation = context.params.get("operation", "")
        if operation not in self.VALID_OPS:
            return False, f"Unknown operation '{operation}'. Valid: {', '.join(sorted(self.VALID_OPS))}"
        if not context.params.get("dest"):
            return False, "Missing required param: 'dest'"
        if operation == "clone" and not context.params.get("url"):
            return False, "Missing required param: 'url' for clone operation"
        if not self.is_available():
            return False, "git executable not found"
        return True, ""

    def execute(self, context: ExecutionContext) -> Receipt:
        operation = context.params["operation"]
        dest = Path(context.params["dest"])
        timeout = context.params.get("timeout", DEFAULT_TIMEOUT)

        try:
            if operation == "clone":
                return self._clone(context, dest, timeout)
            return self._pull(context, dest, timeout)
        except subprocess.TimeoutExpired:
            return Receipt.failure(
                adapter=self.name,
                action_id=context.action.id,
                error=f"git {operation} timed out after {timeout}s",
                timed_out=True,
            )
        except (OSError, RuntimeError) as e:
            return Receipt.failure(
                adapter=self.name,
                action_id=context.action.id,
                error=f"Git error: {e}",
                metadata={"operation": operation, "dest": str(dest)},
            )

    # ── Operations ──────────────────────────────────────────────

    def _clone(self, ctx: ExecutionContext, dest: Path, timeout: int) -> Receipt:
        url = ctx.params["url"]
        if (dest / ".git").exists():
            return Receipt.skip(
                adapter=self.name,
                action_id=ctx.action.id,
                reason=f"Already cloned: {dest}",
                metadata={"dest": str(dest), "existed": True},
            )
        if dest.exists() and any(dest.iterdir()):
            return Receipt.failure(
                adapter=self.name,
                action_id=ctx.action.id,
                error=f"Destination exists and is not a git checkout: {dest}",
            )

        dest.parent.mkdir(parents=True, exist_ok=True)
        args = ["clone"]
        if ctx.params.get("depth"):
            args += ["--depth", str(ctx.params["depth"])]
        args += [url, str(dest)]
        output = self._git(args, str(dest.parent), timeout)
        logger.info("Cloned %s into %s", url, dest)
        return Receipt.success(
            adapter=self.name,
            action_id=ctx.action.id,
            output=output.strip(),
            metadata={"url": url, "dest": str(dest), "created": True},
        )

    def _pull(self, ctx: ExecutionContext, dest: Path, timeout: int) -> Receipt:
        if not (dest / ".git").exists():
            return Receipt.failure(
                adapter=self.name,
                action_id=ctx.action.id,
                error=f"Not a git checkout: {dest}",
            )
        output = self._git(["pull", "--ff-only"], str(dest), timeout)
        return Receipt.success(
            adapter=self.name,
            action_id=ctx.action.id,
            output=output.strip(),
            metadata={"dest": str(dest)},
        )

    def _git(self, args: list[str], cwd: str, timeout: int) -> str:
        """Run a git command and return stdout."""
        result = subprocess.run(
            ["git", *args],
            cwd=cwd,
            capture_output=True,
            text=True,
            timeout=timeout,
            stdin=subprocess.DEVNULL,
        )
        if result.returncode != 0:
            raise RuntimeError(result.stderr.strip() or f"git {args[0]} failed")
        return result.stdout
