"""Adapters — the pipeline's only route to processes, sockets and the filesystem.

Public re-exports for convenient access.
"""

from devduck.adapters.base import Adapter, ExecutionContext
from devduck.adapters.mock import MockAdapter
from devduck.adapters.registry import AdapterRegistry, default_registry

__all__ = [
    "Adapter",
    "AdapterRegistry",
    "ExecutionContext",
    "MockAdapter",
    "default_registry",
]
