from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

import yaml

from masto_comments.errors import PostLookupError
from masto_comments.schema import coerce_id


FRONT_MATTER_RE = re.compile(r"\A---[ \t]*\r?\n(.*?)\r?\n---[ \t]*(?:\r?\n|\Z)", re.DOTALL)
COMMENTS_SUFFIX = ".comments.json"


@dataclass(frozen=True)
class BlogPost:
    id: str
    source: Path
    mastodon_post_id: str | None = None
    additional_comment_sources: tuple[str, ...] = ()
    prunings: dict[str, str] = field(default_factory=dict)

    @property
    def is_mastodon(self) -> bool:
        return self.mastodon_post_id is not None

    @property
    def comment_roots(self) -> list[str]:
        """Ids of every status whose reply tree counts as comments on this post."""
        if self.mastodon_post_id is None:
            return []
        return [self.mastodon_post_id, *self.additional_comment_sources]

    @property
    def comments_file(self) -> Path:
        return self.source.parent / f"{self.id}{COMMENTS_SUFFIX}"


def list_post_ids(posts_dir: Path) -> list[str]:
    _require_directory(posts_dir)
    return sorted({path.stem for path in posts_dir.glob("*/*.md")})


def find_post_source(posts_dir: Path, post_id: str) -> Path:
    _require_directory(posts_dir)
    file_pattern = f"*/{post_id}.md"
    post_sources = sorted(posts_dir.glob(file_pattern))
    if len(post_sources) != 1:
        found = ", ".join(str(path) for path in post_sources)
        raise PostLookupError(
            f"Cannot locate unique source for blog post {post_id!r}"
            f"\n  Searching for: {posts_dir / file_pattern}"
            f"\n  Found: [{found}]"
        )
    return post_sources[0]


def load_post(posts_dir: Path, post_id: str) -> BlogPost:
    source = find_post_source(posts_dir, post_id)
    meta = read_front_matter(source)

    mastodon = meta.get("mastodon") or {}
    if not isinstance(mastodon, dict):
        raise PostLookupError(f"Front matter 'mastodon' in {source} must be a mapping")
    additional = mastodon.get("additional_comment_sources") or []
    prunings = meta.get("prunings") or {}
    if not isinstance(prunings, dict):
        raise PostLookupError(f"Front matter 'prunings' in {source} must be a mapping")

    return BlogPost(
        id=post_id,
        source=source,
        mastodon_post_id=coerce_id(mastodon.get("post_id")),
        additional_comment_sources=tuple(
            status_id for status_id in (coerce_id(item) for item in additional) if status_id
        ),
        prunings={coerce_id(key): str(value) for key, value in prunings.items()},
    )


def read_front_matter(path: Path) -> dict[str, Any]:
    text = path.read_text(encoding="utf-8")
    match = FRONT_MATTER_RE.match(text)
    if match is None:
        return {}
    try:
        data = yaml.safe_load(match.group(1))
    except yaml.YAMLError as e:
        raise PostLookupError(f"Failed to parse front matter in {path}: {e}") from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise PostLookupError(f"Front matter in {path} must be a mapping")
    return data


def collect_prunings(comments: Mapping[str, Any]) -> dict[str, str]:
    """Prune markers set anywhere in a previously written comment tree."""
    found: dict[str, str] = {}
    for status_id, comment in comments.items():
        if not isinstance(comment, Mapping):
            continue
        marker = comment.get("prune")
        if marker:
            found[str(status_id)] = marker
        found.update(collect_prunings(comment.get("replies") or {}))
    return found


def load_prunings(post: BlogPost) -> dict[str, str]:
    prunings: dict[str, str] = {}
    if post.comments_file.exists():
        with post.comments_file.open("r", encoding="utf-8") as handle:
            prunings.update(collect_prunings(json.load(handle)))
    prunings.update(post.prunings)
    return prunings


def write_comments(post: BlogPost, data: Mapping[str, Any]) -> Path:
    output_file = post.comments_file
    output_file.write_text(
        json.dumps(data, indent=2, ensure_ascii=False) + "\n",
        encoding="utf-8",
    )
    return output_file


def _require_directory(posts_dir: Path) -> None:
    if not posts_dir.is_dir():
        raise PostLookupError(f"Not a directory: {posts_dir}")
