from __future__ import annotations

from typing import Any, Iterable, Mapping

from masto_comments.content.sanitizer import clean_content
from masto_comments.thread.forest import ThreadForest


def gather_comments(forest: ThreadForest, status_ids: Iterable[str]) -> dict[str, dict[str, Any]]:
    # A status that is not public/unlisted hides its whole subtree, public replies included.
    comments: dict[str, dict[str, Any]] = {}
    for status_id in status_ids:
        node = forest[status_id]
        status = node.status
        if not status.is_visible:
            continue
        comments[status.id] = remove_empty_values(
            {
                "name": status.account.display_name,
                "url": status.account.url,
                "timestamp": status.created_at,
                "mastodon_account_id": status.account.id,
                "comment_url": status.url,
                "prune": status.prune,
                "content": clean_content(status.content),
                "replies": gather_comments(forest, node.children),
            }
        )
    return comments


def remove_empty_values(values: Mapping[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in values.items() if value is not None and len(value) > 0}
