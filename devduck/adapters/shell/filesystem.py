"""
Filesystem adapter — existence checks and project links.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from devduck.adapters.base import Adapter, ExecutionContext
from devduck.core.models.action import Receipt

logger = logging.getLogger(__name__)


class FilesystemAdapter(Adapter):
    """File and link operations with receipts.

    Action params:
        operation (str): 'exists', 'mkdir' or 'symlink'.
        path (str): Target path; ``~`` expands, relative paths resolve
            against the working directory.
        target (str): Link target (for 'symlink').

    'exists' fails when the path is missing, so it can back a check
    directly.
    """

    VALID_OPS = {"exists", "mkdir", "symlink"}

    @property
    def name(self) -> str:
        return "filesystem"

    def is_available(self) -> bool:
        return True

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        operation = context.params.get("operation", "")
        if not operation:
            return False, "Missing required param: 'operation'"
        if operation not in self.VALID_OPS:
            return False, f"Unknown operation '{operation}'. Valid: {', '.join(sorted(self.VALID_OPS))}"
        if not context.params.get("path", ""):
            return False, "Missing required param: 'path'"
        if operation == "symlink" and not context.params.get("target"):
            return False, "Missing required param: 'target' for symlink operation"
        return True, ""

    def execute(self, context: ExecutionContext) -> Receipt:
        operation = context.params["operation"]
        target = self._resolve(context, context.params["path"])

        try:
            if operation == "exists":
                return self._exists(context, target)
            if operation == "mkdir":
                return self._mkdir(context, target)
            return self._symlink(context, target)
        except OSError as e:
            return Receipt.failure(
                adapter=self.name,
                action_id=context.action.id,
                error=f"Filesystem error: {e}",
                metadata={"operation": operation, "path": str(target)},
            )

    @staticmethod
    def _resolve(context: ExecutionContext, raw: str) -> Path:
        path = Path(raw).expanduser()
        if not path.is_absolute():
            path = Path(context.working_dir) / path
        return path

    def _exists(self, ctx: ExecutionContext, target: Path) -> Receipt:
        if not target.exists():
            return Receipt.failure(
                adapter=self.name,
                action_id=ctx.action.id,
                error=f"Path does not exist: {target}",
                metadata={"exists": False, "path": str(target)},
            )
        return Receipt.success(
            adapter=self.name,
            action_id=ctx.action.id,
            output=str(target),
            metadata={"exists": True, "is_dir": target.is_dir(), "path": str(target)},
        )

    def _mkdir(self, ctx: ExecutionContext, target: Path) -> Receipt:
        target.mkdir(parents=True, exist_ok=True)
        return Receipt.success(
            adapter=self.name,
            action_id=ctx.action.id,
            output=f"Directory created: {target}",
            metadata={"path": str(target)},
        )

    def _symlink(self, ctx: ExecutionContext, link: Path) -> Receipt:
        source = self._resolve(ctx, ctx.params["target"]).resolve()
        if not source.exists():
            return Receipt.failure(
                adapter=self.name,
                action_id=ctx.action.id,
                error=f"Link target does not exist: {source}",
            )

        if link.is_symlink():
            if Path(os.readlink(link)) == source:
                return Receipt.success(
                    adapter=self.name,
                    action_id=ctx.action.id,
                    output=f"Link already present: {link}",
                    metadata={"path": str(link), "target": str(source), "existed": True},
                )
            link.unlink()
        elif link.exists():
            # A real directory is never replaced
            return Receipt.skip(
                adapter=self.name,
                action_id=ctx.action.id,
                reason=f"{link} exists and is not a link",
                metadata={"path": str(link), "existed": True},
            )

        link.parent.mkdir(parents=True, exist_ok=True)
        link.symlink_to(source, target_is_directory=source.is_dir())
        logger.debug("Linked %s -> %s", link, source)
        return Receipt.success(
            adapter=self.name,
            action_id=ctx.action.id,
            output=f"Linked {link} -> {source}",
            metadata={"path": str(link), "target": str(source), "created": True},
        )
