from __future__ import annotations

import json
from pathlib import Path

import typer

from masto_comments.blog import collect_prunings
from masto_comments.config import load_context
from masto_comments.content.sanitizer import clean_content
from masto_comments.errors import (
    ConfigError,
    ContentNormalizationError,
    FetchError,
    MalformedStatusError,
    MissingRootError,
    PostLookupError,
)
from masto_comments.ingest.mastodon import load_statuses
from masto_comments.pipeline import (
    build_avatar_cache,
    build_client,
    create_comment_data,
    sync_blog,
    sync_post,
)

app = typer.Typer(help="Sync Mastodon reply threads into blog post comments.")

HANDLED_ERRORS = (
    ConfigError,
    ContentNormalizationError,
    FetchError,
    MalformedStatusError,
    MissingRootError,
    PostLookupError,
    ValueError,
)


@app.command("sync-all")
def sync_all_command(
    project_dir: str = typer.Option(".", "--project-dir", help="Site project directory."),
    config: str | None = typer.Option(None, "--config", help="Path to YAML config."),
    no_avatars: bool = typer.Option(False, "--no-avatars", help="Skip avatar downloads."),
) -> None:
    try:
        context = load_context(project_dir, config)
        client = build_client(context)
        avatars = None if no_avatars else build_avatar_cache(context)
        for blog in context.config.blogs:
            sync_blog(context, blog, client, avatars)
    except HANDLED_ERRORS as exc:
        _fail(exc)


@app.command("sync-post")
def sync_post_command(
    blog: str = typer.Option(..., "--blog", help="Blog name."),
    post_id: str = typer.Option(..., "--post-id", help="Blog post id."),
    project_dir: str = typer.Option(".", "--project-dir", help="Site project directory."),
    config: str | None = typer.Option(None, "--config", help="Path to YAML config."),
    no_avatars: bool = typer.Option(False, "--no-avatars", help="Skip avatar downloads."),
) -> None:
    try:
        context = load_context(project_dir, config)
        client = build_client(context)
        avatars = None if no_avatars else build_avatar_cache(context)
        sync_post(context, blog, post_id, client, avatars)
    except HANDLED_ERRORS as exc:
        _fail(exc)


@app.command("build")
def build_command(
    input: str = typer.Option(..., "--input", help="Path to JSONL or CSV status dump."),
    root: str = typer.Option(..., "--root", help="Id of the status announcing the post."),
    prunings: str | None = typer.Option(
        None, "--prunings", help="Previously written comments JSON or id-to-marker JSON."
    ),
    output: str | None = typer.Option(None, "--output", help="Output JSON path (default: stdout)."),
) -> None:
    try:
        statuses = load_statuses(input)
        markers = _read_prunings(Path(prunings)) if prunings else None
        data = create_comment_data(statuses, root, prunings=markers)
    except HANDLED_ERRORS as exc:
        _fail(exc)

    rendered = json.dumps(data, indent=2, ensure_ascii=False)
    if output is None:
        typer.echo(rendered)
    else:
        Path(output).write_text(rendered + "\n", encoding="utf-8")
        typer.echo(f"comments_written={len(data)} output={output}")


@app.command("clean-content")
def clean_content_command(
    text: str = typer.Option(..., "--text", help="Status HTML to normalize."),
) -> None:
    try:
        typer.echo(clean_content(text))
    except ContentNormalizationError as exc:
        _fail(exc)


def _read_prunings(path: Path) -> dict[str, str]:
    with path.open("r", encoding="utf-8") as handle:
        data = json.load(handle)
    if not isinstance(data, dict):
        raise ValueError(f"Prunings file {path} must contain a JSON object")
    markers = {str(key): value for key, value in data.items() if isinstance(value, str)}
    markers.update(collect_prunings(data))
    return markers


def _fail(exc: Exception) -> None:
    typer.echo(f"Error: {exc}", err=True)
    raise typer.Exit(code=1)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
