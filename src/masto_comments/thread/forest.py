from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, Iterator

from masto_comments.schema import StatusRecord, coerce_id, parse_status


@dataclass
class ForestNode:
    status: StatusRecord
    children: list[str] = field(default_factory=list)

    @property
    def id(self) -> str:
        return self.status.id


class ThreadForest:
    """Reply forest built from a flat list of statuses.

    Consecutive replies by the same account to their own status are folded into
    the status they reply to: the content is appended and the folded id resolves
    to the same node, so later replies to it attach to the merged comment.
    Statuses whose parent is absent from the fetched set become roots.
    """

    def __init__(self) -> None:
        self._node_by_id: dict[str, ForestNode] = {}
        self._roots: list[str] = []

    @classmethod
    def from_statuses(cls, statuses: Iterable[StatusRecord | dict[str, Any]]) -> "ThreadForest":
        forest = cls()
        for status in statuses:
            if not isinstance(status, StatusRecord):
                status = parse_status(status)
            forest.add(status)
        return forest

    def add(self, status: StatusRecord) -> ForestNode:
        parent = None
        if status.in_reply_to_id is not None:
            parent = self._node_by_id.get(status.in_reply_to_id)

        if parent is not None and parent.status.account.id == status.account.id:
            parent.status.content += status.content
            self._node_by_id[status.id] = parent
            return parent

        node = ForestNode(status)
        self._node_by_id[status.id] = node
        if parent is None:
            self._roots.append(status.id)
        else:
            parent.children.append(status.id)
        return node

    def __getitem__(self, status_id: Any) -> ForestNode:
        return self._node_by_id[coerce_id(status_id)]

    def __contains__(self, status_id: Any) -> bool:
        return coerce_id(status_id) in self._node_by_id

    @property
    def roots(self) -> list[str]:
        return self._roots

    def children_for(self, node_or_id: ForestNode | Any) -> list[str]:
        if isinstance(node_or_id, ForestNode):
            return node_or_id.children
        return self[node_or_id].children

    def index_items(self) -> Iterator[tuple[str, ForestNode]]:
        """Every indexed id with its node, folded ids included."""
        return iter(self._node_by_id.items())

    def nodes(self) -> list[ForestNode]:
        """Distinct nodes in the order they were first indexed."""
        seen: set[int] = set()
        out: list[ForestNode] = []
        for node in self._node_by_id.values():
            if id(node) in seen:
                continue
            seen.add(id(node))
            out.append(node)
        return out

    def statuses(self) -> list[StatusRecord]:
        return [node.status for node in self.nodes()]
