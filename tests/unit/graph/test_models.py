"""Unit tests for graph/models.py: FolderNode mapping from Graph JSON."""

from mailbox_usage.graph.models import FolderNode


def _leaf(id: str, size: int) -> FolderNode:
    return FolderNode(id=id, display_name=id, own_bytes=size, cumulative_bytes=size)


class TestFolderNodeFromGraph:
    def test_maps_fields(self) -> None:
        raw = {
            "id": "inbox-id",
            "displayName": "Inbox",
            "sizeInBytes": 100,
            "totalItemCount": 7,
            "unreadItemCount": 2,
        }
        node = FolderNode.from_graph(raw, [])

        assert node.id == "inbox-id"
        assert node.display_name == "Inbox"
        assert node.own_bytes == 100
        assert node.cumulative_bytes == 100
        assert node.total_item_count == 7
        assert node.unread_item_count == 2
        assert node.children == []

    def test_cumulative_bytes_includes_children(self) -> None:
        children = [_leaf("a", 50), _leaf("b", 25)]
        node = FolderNode.from_graph({"id": "p", "displayName": "P", "sizeInBytes": 10}, children)

        assert node.cumulative_bytes == 85
        assert node.children == children

    def test_missing_or_null_counts_are_zero(self) -> None:
        node = FolderNode.from_graph({"id": "x", "displayName": None, "sizeInBytes": None}, [])

        assert node.display_name == ""
        assert node.own_bytes == 0
        assert node.total_item_count == 0
        assert node.unread_item_count == 0
