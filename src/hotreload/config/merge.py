"""Layered merge of raw option dicts.

System, user and project config files, environment overrides and the
options passed to setup() are merged in that order before validation.
"""

from __future__ import annotations

from typing import Any


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Merge ``override`` into a copy of ``base``.

    - Nested dicts (the ``logging`` section) are merged key by key
    - None in ``override`` leaves the base value in place
    - Everything else is replaced

    Neither input is mutated.
    """
    result = base.copy()

    for key, value in override.items():
        if value is None:
            continue

        current = result.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            result[key] = deep_merge(current, value)
        else:
            result[key] = value

    return result


def merge_layers(*layers: dict[str, Any] | None) -> dict[str, Any]:
    """Merge option layers in order, later layers winning."""
    result: dict[str, Any] = {}
    for layer in layers:
        if layer:
            result = deep_merge(result, layer)
    return result
