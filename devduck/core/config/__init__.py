"""Configuration layers: storage, merge rules and extends resolution."""

from devduck.core.config.merge import deep_merge
from devduck.core.config.resolver import ResolvedConfig, resolve, resolve_workspace
from devduck.core.config.store import find_config_file, read_layer, write_layer

__all__ = [
    "ResolvedConfig",
    "deep_merge",
    "find_config_file",
    "read_layer",
    "resolve",
    "resolve_workspace",
    "write_layer",
]
