"""
Adapter registry — dispatch for every side effect the pipeline performs.

Adapters are registered explicitly by name; ``default_registry()``
builds the standard set. A registry instance belongs to one install
context, so tests can swap adapters without touching shared state.
"""

from __future__ import annotations

import logging
import time
from typing import Any

from devduck.adapters.base import Adapter, ExecutionContext
from devduck.core.models.action import Action, Receipt

logger = logging.getLogger(__name__)


class AdapterRegistry:
    """Registry and dispatcher for adapters."""

    def __init__(self, workspace_root: str = ".", dry_run: bool = False):
        self._adapters: dict[str, Adapter] = {}
        self.workspace_root = workspace_root
        self.dry_run = dry_run

    def register(self, adapter: Adapter) -> None:
        name = adapter.name
        if name in self._adapters:
            logger.warning("Overwriting existing adapter: %s", name)
        self._adapters[name] = adapter
        logger.debug("Registered adapter: %s", name)

    def unregister(self, name: str) -> None:
        self._adapters.pop(name, None)

    def get(self, name: str) -> Adapter | None:
        return self._adapters.get(name)

    def list_adapters(self) -> list[str]:
        return list(self._adapters.keys())

    def adapter_status(self) -> dict[str, dict[str, Any]]:
        """Availability of all registered adapters."""
        status = {}
        for name, adapter in self._adapters.items():
            try:
                available = adapter.is_available()
            except Exception:
                available = False
            status[name] = {
                "name": name,
                "available": available,
                "type": adapter.__class__.__name__,
            }
        return status

    def execute_action(self, action: Action) -> Receipt:
        """Execute an action through its adapter. Never raises.

        Resolves the adapter, validates, executes (or skips when the
        registry is in dry-run mode) and stamps the duration.
        """
        start_time = time.monotonic()

        context = ExecutionContext(
            action=action,
            workspace_root=self.workspace_root,
            dry_run=self.dry_run,
            params=action.params,
        )

        adapter = self._adapters.get(action.adapter)
        if adapter is None:
            return Receipt.failure(
                adapter=action.adapter,
                action_id=action.id,
                error=f"No adapter registered for '{action.adapter}'",
            )

        try:
            is_valid, error_msg = adapter.validate(context)
        except Exception as e:
            return Receipt.failure(
                adapter=action.adapter,
                action_id=action.id,
                error=f"Validation error: {e}",
            )
        if not is_valid:
            return Receipt.failure(
                adapter=action.adapter,
                action_id=action.id,
                error=f"Validation failed: {error_msg}",
            )

        if self.dry_run:
            return Receipt.skip(
                adapter=action.adapter,
                action_id=action.id,
                reason=f"[dry-run] Would execute {action.adapter}:{action.id}",
                metadata={"dry_run": True},
            )

        try:
            receipt = adapter.execute(context)
        except Exception as e:
            logger.error("Adapter %s raised during execution: %s", action.adapter, e)
            receipt = Receipt.failure(
                adapter=action.adapter,
                action_id=action.id,
                error=f"Unexpected error: {e}",
            )

        receipt.duration_ms = int((time.monotonic() - start_time) * 1000)
        return receipt


def default_registry(workspace_root: str = ".", dry_run: bool = False) -> AdapterRegistry:
    """Registry holding the standard adapters."""
    from devduck.adapters.http.probe import HttpProbeAdapter
    from devduck.adapters.shell.command import ShellCommandAdapter
    from devduck.adapters.shell.filesystem import FilesystemAdapter
    from devduck.adapters.vcs.git import GitAdapter

    registry = AdapterRegistry(workspace_root=workspace_root, dry_run=dry_run)
    for adapter in (ShellCommandAdapter(), FilesystemAdapter(), HttpProbeAdapter(), GitAdapter()):
        registry.register(adapter)
    return registry
