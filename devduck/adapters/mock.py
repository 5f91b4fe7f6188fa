"""
Mock adapter — test double that records calls and returns canned receipts.
"""

from __future__ import annotations

from devduck.adapters.base import Adapter, ExecutionContext
from devduck.core.models.action import Receipt


class MockAdapter(Adapter):
    """Stands in for any adapter name.

    Succeeds by default. Responses can be set per action ID, and each
    response may be a list consumed one call at a time, which is how
    "fails, then passes after remediation" is modelled in tests.
    """

    def __init__(self, adapter_name: str = "mock", available: bool = True, default_output: str = ""):
        self._name = adapter_name
        self._available = available
        self._default_output = default_output
        self._responses: dict[str, list[Receipt]] = {}
        self._call_log: list[ExecutionContext] = []

    @property
    def name(self) -> str:
        return self._name

    @property
    def call_log(self) -> list[ExecutionContext]:
        return self._call_log

    @property
    def call_count(self) -> int:
        return len(self._call_log)

    def calls_for(self, action_id: str) -> int:
        return sum(1 for ctx in self._call_log if ctx.action.id == action_id)

    def is_available(self) -> bool:
        return self._available

    def set_response(self, action_id: str, *receipts: Receipt) -> None:
        """Queue receipts for ``action_id``. The last one repeats."""
        self._responses[action_id] = list(receipts)

    def set_failure(self, action_id: str, error: str = "Mock failure") -> None:
        self.set_response(action_id, Receipt.failure(self._name, action_id, error))

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        return True, ""

    def execute(self, context: ExecutionContext) -> Receipt:
        self._call_log.append(context)
        queued = self._responses.get(context.action.id)
        if queued:
            return queued.pop(0) if len(queued) > 1 else queued[0]
        return Receipt.success(
            adapter=self._name,
            action_id=context.action.id,
            output=self._default_output,
            metadata={"mock": True},
        )

    def reset(self) -> None:
        self._call_log.clear()
        self._responses.clear()
