from masto_comments.thread.forest import ThreadForest
from masto_comments.thread.gather import gather_comments, remove_empty_values


def _raw(status_id, parent=None, account="alice", visibility="public", content="<p>hi</p>") -> dict:
    return {
        "id": status_id,
        "in_reply_to_id": parent,
        "created_at": "2024-01-01T00:00:00.000Z",
        "url": f"https://example.social/@{account}/{status_id}",
        "visibility": visibility,
        "content": content,
        "account": {
            "id": f"acct-{account}",
            "display_name": account.title(),
            "url": f"https://example.social/@{account}",
        },
    }


def test_gather_builds_nested_comment_views() -> None:
    forest = ThreadForest.from_statuses(
        [
            _raw("1", account="blogger", content="<p>New post</p>"),
            _raw("2", parent="1", account="alice", content="<p>Nice   post</p>"),
        ]
    )

    comments = gather_comments(forest, forest.roots)

    assert comments == {
        "1": {
            "name": "Blogger",
            "url": "https://example.social/@blogger",
            "timestamp": "2024-01-01T00:00:00.000Z",
            "mastodon_account_id": "acct-blogger",
            "comment_url": "https://example.social/@blogger/1",
            "content": "<p>New post</p>",
            "replies": {
                "2": {
                    "name": "Alice",
                    "url": "https://example.social/@alice",
                    "timestamp": "2024-01-01T00:00:00.000Z",
                    "mastodon_account_id": "acct-alice",
                    "comment_url": "https://example.social/@alice/2",
                    "content": "<p>Nice post</p>",
                }
            },
        }
    }


def test_private_status_hides_its_subtree() -> None:
    forest = ThreadForest.from_statuses(
        [
            _raw("1", account="alice", visibility="private"),
            _raw("2", parent="1", account="bob", visibility="public"),
        ]
    )

    assert gather_comments(forest, forest.roots) == {}


def test_public_reply_under_private_parent_is_dropped() -> None:
    # Whether such a reply should instead be re-parented to the nearest visible
    # ancestor is undecided; this pins the current behavior.
    forest = ThreadForest.from_statuses(
        [
            _raw("1", account="blogger"),
            _raw("2", parent="1", account="alice", visibility="direct"),
            _raw("3", parent="2", account="bob", visibility="public"),
            _raw("4", parent="1", account="carol", visibility="unlisted"),
        ]
    )

    comments = gather_comments(forest, forest.roots)

    assert list(comments["1"]["replies"]) == ["4"]
    assert "3" in forest
    assert "replies" not in comments["1"]["replies"]["4"]


def test_gather_preserves_arrival_order() -> None:
    forest = ThreadForest.from_statuses(
        [
            _raw("1", account="blogger"),
            _raw("30", parent="1", account="bob"),
            _raw("10", parent="1", account="carol"),
            _raw("20", parent="1", account="dave"),
        ]
    )

    comments = gather_comments(forest, forest.roots)

    assert list(comments["1"]["replies"]) == ["30", "10", "20"]


def test_empty_fields_are_dropped() -> None:
    raw = _raw("1", content="")
    raw["account"]["url"] = None
    raw["url"] = ""
    forest = ThreadForest.from_statuses([raw])

    view = gather_comments(forest, forest.roots)["1"]

    assert set(view) == {"name", "timestamp", "mastodon_account_id"}


def test_prune_marker_passes_through() -> None:
    forest = ThreadForest.from_statuses(
        [_raw("1", account="blogger"), _raw("2", parent="1", account="alice")]
    )
    forest["2"].status.prune = "subtree"

    comments = gather_comments(forest, forest.roots)

    assert comments["1"]["replies"]["2"]["prune"] == "subtree"
    assert "prune" not in comments["1"]


def test_merged_comment_is_keyed_by_first_status() -> None:
    forest = ThreadForest.from_statuses(
        [
            _raw("1", account="blogger"),
            _raw("2", parent="1", account="alice", content="<p>part one</p>"),
            _raw("3", parent="2", account="alice", content="<p>part two</p>"),
        ]
    )

    replies = gather_comments(forest, forest.roots)["1"]["replies"]

    assert list(replies) == ["2"]
    assert replies["2"]["content"] == "<p>part one</p><p>part two</p>"


def test_remove_empty_values() -> None:
    assert remove_empty_values(
        {"a": "x", "b": "", "c": {}, "d": None, "e": {"k": 1}}
    ) == {"a": "x", "e": {"k": 1}}


def test_status_without_visibility_is_omitted() -> None:
    forest = ThreadForest.from_statuses(
        [
            {"id": "1", "account": {"id": "a"}, "content": "<p>secret</p>"},
            {"id": "2", "in_reply_to_id": "1", "account": {"id": "b"}, "visibility": "public"},
        ]
    )

    assert gather_comments(forest, forest.roots) == {}
