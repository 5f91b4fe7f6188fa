"""
Deep merge for configuration layers.

Rules:
    mapping + mapping  → merged key by key, recursively
    list + list        → identity-keyed fields (see IDENTITY_KEYS) are
                         concatenated and de-duplicated, the later item
                         taking the earlier item's position; any other
                         list is replaced by the override
    anything else      → override wins

Inputs are never mutated; the result shares no containers with them.
"""

from __future__ import annotations

import copy
from typing import Any

# Array fields whose items carry an identity, and the property holding it
IDENTITY_KEYS: dict[str, str] = {
    "projects": "src",
    "checks": "name",
    "env": "name",
}


def item_identity(field: str, item: Any) -> str | None:
    """Identity of ``item`` within identity-keyed ``field``, or None."""
    key_prop = IDENTITY_KEYS.get(field)
    if key_prop is None or not isinstance(item, dict):
        return None
    value = item.get(key_prop)
    if isinstance(value, str) and value.strip():
        return value
    return None


def merge_keyed_list(field: str, base: list[Any], override: list[Any]) -> list[Any]:
    """Concatenate and de-duplicate by identity, overriding in place."""
    out: list[Any] = []
    positions: dict[str, int] = {}
    for item in [*base, *override]:
        ident = item_identity(field, item)
        if ident is not None and ident in positions:
            out[positions[ident]] = copy.deepcopy(item)
            continue
        if ident is not None:
            positions[ident] = len(out)
        out.append(copy.deepcopy(item))
    return out


def deep_merge(base: Any, override: Any, field: str = "") -> Any:
    """Merge ``override`` on top of ``base`` and return a new value.

    Args:
        base: Lower-priority value.
        override: Higher-priority value.
        field: Name of the key both values sit under (selects list rules).
    """
    if isinstance(base, dict) and isinstance(override, dict):
        out = copy.deepcopy(base)
        for key, value in override.items():
            if key in out:
                out[key] = deep_merge(out[key], value, key)
            else:
                out[key] = copy.deepcopy(value)
        return out

    if isinstance(base, list) and isinstance(override, list) and field in IDENTITY_KEYS:
        return merge_keyed_list(field, base, override)

    return copy.deepcopy(override)


def merge_module_settings(defaults: dict[str, Any], overrides: dict[str, Any]) -> dict[str, Any]:
    """Apply per-module settings over a module's defaults.

    Nested mappings merge one level deep; everything else is replaced.
    """
    out = copy.deepcopy(defaults)
    for key, value in overrides.items():
        if isinstance(out.get(key), dict) and isinstance(value, dict):
            out[key] = {**out[key], **copy.deepcopy(value)}
        else:
            out[key] = copy.deepcopy(value)
    return out
