"""
Adapter base — the contract between the pipeline and the outside world.

Checks, hooks and download steps never spawn processes, open sockets
or touch links directly. They build an Action and dispatch it through
the AdapterRegistry, which hands it to one of these adapters.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from pydantic import BaseModel, Field

from devduck.core.models.action import Action, Receipt


class ExecutionContext(BaseModel):
    """Everything an adapter needs to execute an action."""

    action: Action
    workspace_root: str = "."
    dry_run: bool = False
    params: dict[str, Any] = Field(default_factory=dict)

    @property
    def working_dir(self) -> str:
        """Action's working directory, defaulting to the workspace root."""
        return self.action.cwd or self.workspace_root


class Adapter(ABC):
    """Abstract base class for all adapters.

    Adapters perform side effects and return receipts. They do not
    raise: every failure, timeout included, is captured in the Receipt.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """The adapter identifier (e.g. 'shell', 'http', 'git')."""

    @abstractmethod
    def is_available(self) -> bool:
        """Whether the underlying tool exists. Fast, never raises."""

    @abstractmethod
    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        """Validate that the action can be executed.

        Returns:
            (is_valid, error_message). error_message is empty if valid.
        """

    @abstractmethod
    def execute(self, context: ExecutionContext) -> Receipt:
        """Execute the action and return a receipt."""

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name={self.name!r}>"
