"""Data models for Microsoft Graph mail folders and the size report."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

# Graph API JSON field names
FIELD_ID = "id"
FIELD_DISPLAY_NAME = "displayName"
FIELD_SIZE_IN_BYTES = "sizeInBytes"
FIELD_TOTAL_ITEM_COUNT = "totalItemCount"
FIELD_UNREAD_ITEM_COUNT = "unreadItemCount"

# OData response keys
ODATA_NEXT_LINK = "@odata.nextLink"
ODATA_VALUE = "value"

PATH_SEPARATOR = "/"


def _count(raw: dict[str, Any], key: str) -> int:
    """Read a non-negative integer field, treating missing or null as 0."""
    value = raw.get(key)
    return max(int(value), 0) if value is not None else 0


@dataclass
class FolderNode:
    """A mail folder with its own size and the cumulative size of its subtree."""

    id: str
    display_name: str
    own_bytes: int
    cumulative_bytes: int
    total_item_count: int = 0
    unread_item_count: int = 0
    children: list[FolderNode] = field(default_factory=list)

    @classmethod
    def from_graph(cls, raw: dict[str, Any], children: list[FolderNode]) -> FolderNode:
        """Map a raw Graph mailFolder dict plus its aggregated children to a node."""
        own_bytes = _count(raw, FIELD_SIZE_IN_BYTES)
        return cls(
            id=raw.get(FIELD_ID, ""),
            display_name=raw.get(FIELD_DISPLAY_NAME) or "",
            own_bytes=own_bytes,
            cumulative_bytes=own_bytes + sum(child.cumulative_bytes for child in children),
            total_item_count=_count(raw, FIELD_TOTAL_ITEM_COUNT),
            unread_item_count=_count(raw, FIELD_UNREAD_ITEM_COUNT),
            children=children,
        )


@dataclass(frozen=True)
class FlatFolderEntry:
    """One row of the flattened folder report."""

    id: str
    display_name: str
    folder_path: str
    own_bytes: int
    cumulative_bytes: int
    total_item_count: int
    unread_item_count: int
