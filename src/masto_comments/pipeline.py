from __future__ import annotations

import sys
from pathlib import Path
from typing import Any, Iterable, Mapping

from masto_comments.avatars import AvatarCache
from masto_comments.blog import list_post_ids, load_post, load_prunings, write_comments
from masto_comments.config import ProjectContext
from masto_comments.errors import MissingRootError
from masto_comments.ingest.mastodon import MastodonClient, Timeouts
from masto_comments.schema import StatusRecord, coerce_id
from masto_comments.thread.forest import ThreadForest
from masto_comments.thread.gather import gather_comments
from masto_comments.thread.prune import reestablish_prunings


def create_comment_data(
    statuses: Iterable[StatusRecord | dict[str, Any]],
    root_status_id: Any,
    prunings: Mapping[Any, str] | None = None,
    avatars: AvatarCache | None = None,
) -> dict[str, dict[str, Any]]:
    """Turn a flat list of fetched statuses into the nested comment map for a post.

    The designated root status is the blog post's own announcement, so it is
    always marked ``prune: self`` for the renderer.
    """
    forest = ThreadForest.from_statuses(statuses)
    reestablish_prunings(forest, prunings)

    if avatars is not None:
        avatars.update(forest.statuses())

    comments = gather_comments(forest, forest.roots)
    root_id = coerce_id(root_status_id)
    if root_id not in comments:
        raise MissingRootError(f"Root status {root_id!r} is not among the visible top-level comments")
    comments[root_id]["prune"] = "self"
    return comments


def build_client(context: ProjectContext) -> MastodonClient:
    config = context.config
    return MastodonClient(
        config.mastodon_base_url,
        context.require_token(),
        Timeouts(connect=config.connect_timeout, read=config.read_timeout),
    )


def build_avatar_cache(context: ProjectContext) -> AvatarCache:
    return AvatarCache(
        context.avatars_dir,
        sizes=context.config.avatar_sizes,
        image_format=context.config.avatar_format,
    )


def sync_post(
    context: ProjectContext,
    blog: str,
    post_id: str,
    client: MastodonClient,
    avatars: AvatarCache | None = None,
) -> Path | None:
    print(f"Fetching comments for {blog} : {post_id}")
    post = load_post(context.posts_dir(blog), post_id)
    if not post.is_mastodon:
        print("  (not a Mastodon post)")
        return None

    statuses: dict[str, StatusRecord] = {}
    for root_id in post.comment_roots:
        print(f"Fetching comments from {root_id}...", file=sys.stderr)
        for status in client.fetch_thread(root_id):
            statuses.setdefault(status.id, status)
    print(f"Found {len(statuses)} comments total", file=sys.stderr)

    data = create_comment_data(
        statuses.values(),
        post.mastodon_post_id,
        prunings=load_prunings(post),
        avatars=avatars,
    )
    print(f"Writing comments to {post.comments_file}")
    return write_comments(post, data)


def sync_blog(
    context: ProjectContext,
    blog: str,
    client: MastodonClient,
    avatars: AvatarCache | None = None,
) -> list[Path]:
    written: list[Path] = []
    for post_id in list_post_ids(context.posts_dir(blog)):
        output_file = sync_post(context, blog, post_id, client, avatars)
        if output_file is not None:
            written.append(output_file)
    print(f"blog={blog} posts_written={len(written)}")
    return written
