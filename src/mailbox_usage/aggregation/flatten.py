"""Flatten aggregated folder trees into path-qualified report rows."""

from __future__ import annotations

from mailbox_usage.graph.models import PATH_SEPARATOR, FlatFolderEntry, FolderNode

BYTES_PER_GIB = 1024**3
GIB_DECIMALS = 3


def _qualified_path(parent_path: str | None, display_name: str) -> str:
    if parent_path is None:
        return display_name
    return f"{parent_path}{PATH_SEPARATOR}{display_name}"


def flatten(node: FolderNode, parent_path: str | None = None) -> list[FlatFolderEntry]:
    """Walk a folder tree depth-first, pre-order, one entry per node.

    The root's path is its own display name; every other node's path is its
    parent's path plus ``/`` plus its display name. Uses an explicit stack,
    so arbitrarily deep trees do not hit the interpreter's recursion limit.
    """
    entries: list[FlatFolderEntry] = []
    stack = [(node, _qualified_path(parent_path, node.display_name))]
    while stack:
        current, path = stack.pop()
        entries.append(
            FlatFolderEntry(
                id=current.id,
                display_name=current.display_name,
                folder_path=path,
                own_bytes=current.own_bytes,
                cumulative_bytes=current.cumulative_bytes,
                total_item_count=current.total_item_count,
                unread_item_count=current.unread_item_count,
            )
        )
        # Reversed so the first child is popped next.
        stack.extend(
            (child, _qualified_path(path, child.display_name))
            for child in reversed(current.children)
        )
    return entries


def flatten_all(roots: list[FolderNode]) -> list[FlatFolderEntry]:
    return [entry for root in roots for entry in flatten(root)]


def total_bytes(roots: list[FolderNode]) -> int:
    """Grand total: the sum of each top-level folder's cumulative bytes."""
    return sum(root.cumulative_bytes for root in roots)


def bytes_to_gib(num_bytes: int) -> float:
    return round(num_bytes / BYTES_PER_GIB, GIB_DECIMALS)
