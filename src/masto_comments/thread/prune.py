from __future__ import annotations

from typing import Any, Mapping

from masto_comments.schema import PRUNE_MARKERS, coerce_id
from masto_comments.thread.forest import ThreadForest


def reestablish_prunings(forest: ThreadForest, prunings: Mapping[Any, str] | None) -> int:
    """Carry manually set prune markers through a full rebuild of the comment tree.

    The persisted record is keyed by status id. Every indexed id is consulted, in
    index order, so a merged comment picks up a marker stored under any of its
    folded ids; a node that already carries a marker is never overwritten.
    Returns the number of nodes that received a marker.
    """
    if not prunings:
        return 0

    markers = {coerce_id(key): value for key, value in prunings.items()}
    annotated = 0
    for status_id, node in forest.index_items():
        if node.status.prune is not None:
            continue
        marker = markers.get(status_id)
        if marker is None:
            continue
        if marker not in PRUNE_MARKERS:
            raise ValueError(f"Unknown prune marker {marker!r} for status {status_id}")
        node.status.prune = marker
        annotated += 1
    return annotated
