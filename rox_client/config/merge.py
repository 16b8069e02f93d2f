"""Typed configuration trees and their layered merge.

User-level and project-level documents are converted to a tree of
``ScalarNode``, ``ListNode`` and ``MapNode`` before merging, so the merge
dispatches on the node type instead of guessing from key shapes:

- map + map: merged key by key, recursively
- list + list: concatenated, override items after base items
- anything else: the override replaces the base
"""

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class ScalarNode:
    """A leaf value (string, number, boolean or null)."""

    value: Any


@dataclass(frozen=True)
class ListNode:
    """A sequence of nodes."""

    items: tuple["ConfigNode", ...] = ()


@dataclass(frozen=True)
class MapNode:
    """An ordered mapping from keys to nodes."""

    entries: Mapping[str, "ConfigNode"] = field(default_factory=dict)


type ConfigNode = ScalarNode | ListNode | MapNode


def to_node(raw: Any) -> ConfigNode:
    """Convert plain data (as loaded from YAML) to a configuration tree."""
    if isinstance(raw, Mapping):
        return MapNode({str(key): to_node(value) for key, value in raw.items()})
    if isinstance(raw, Sequence) and not isinstance(raw, str | bytes):
        return ListNode(tuple(to_node(item) for item in raw))
    return ScalarNode(raw)


def to_raw(node: ConfigNode) -> Any:
    """Convert a configuration tree back to plain data."""
    match node:
        case MapNode(entries):
            return {key: to_raw(value) for key, value in entries.items()}
        case ListNode(items):
            return [to_raw(item) for item in items]
        case ScalarNode(value):
            return value


def merge(base: ConfigNode, override: ConfigNode) -> ConfigNode:
    """Merge ``override`` on top of ``base``."""
    match base, override:
        case MapNode(base_entries), MapNode(override_entries):
            merged = dict(base_entries)
            for key, value in override_entries.items():
                merged[key] = merge(base_entries[key], value) if key in base_entries else value
            return MapNode(merged)
        case ListNode(base_items), ListNode(override_items):
            return ListNode(base_items + override_items)
        case _:
            return override


def set_path(node: ConfigNode, path: Sequence[str], value: Any) -> ConfigNode:
    """Replace the value at ``path`` with a scalar, creating maps on the way.

    This is a flat replacement, not a merge: whatever was at ``path`` is lost.
    """
    if not path:
        return ScalarNode(value)

    entries = dict(node.entries) if isinstance(node, MapNode) else {}
    head, *rest = path
    entries[head] = set_path(entries.get(head, MapNode()), rest, value)
    return MapNode(entries)
