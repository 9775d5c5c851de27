from __future__ import annotations

import json
import mimetypes
import re
import sys
from collections import defaultdict
from pathlib import Path
from typing import Callable, Iterable
from urllib.parse import urlsplit

import requests
from PIL import Image, ImageOps

from masto_comments.errors import FetchError
from masto_comments.schema import StatusRecord


MISSING_AVATAR_RE = re.compile(r"missing\.\w+$")
META_FILE_NAME = "_.json"


class AvatarCache:
    """Keeps a local, resized copy of each comment author's avatar.

    Raw images are revalidated with their ETag, so an unchanged avatar costs one
    304 response per sync.
    """

    def __init__(
        self,
        avatars_dir: Path,
        sizes: Iterable[int] = (80,),
        image_format: str = "webp",
        session_factory: Callable[[], requests.Session] = requests.Session,
        timeout: float | tuple[float, float] = (4.0, 30.0),
    ) -> None:
        self.avatars_dir = Path(avatars_dir)
        self.sizes = tuple(sizes)
        self.image_format = image_format
        self.session_factory = session_factory
        self.timeout = timeout

    def update(self, statuses: Iterable[StatusRecord]) -> int:
        avatar_urls: dict[str, str] = {}
        for status in statuses:
            if status.account.avatar_static:
                avatar_urls[status.account.id] = status.account.avatar_static

        by_server: dict[str, list[tuple[str, str]]] = defaultdict(list)
        for account_id, url in avatar_urls.items():
            parts = urlsplit(url)
            by_server[f"{parts.scheme}://{parts.netloc}"].append((account_id, url))

        updated = 0
        for accounts in by_server.values():
            with self.session_factory() as session:
                for account_id, url in accounts:
                    if MISSING_AVATAR_RE.search(urlsplit(url).path):
                        continue
                    self.update_one(session, account_id, url)
                    updated += 1
        return updated

    def update_one(self, session: requests.Session, account_id: str, url: str) -> Path:
        avatar_dir = self.avatars_dir / account_id
        avatar_dir.mkdir(parents=True, exist_ok=True)
        meta_file = avatar_dir / META_FILE_NAME
        raw_image_file = next(iter(sorted(avatar_dir.glob("raw.*"))), None)

        meta: dict[str, str] = {}
        if meta_file.exists() and raw_image_file is not None:
            meta = json.loads(meta_file.read_text(encoding="utf-8"))

        path = urlsplit(url).path
        print(f"Fetching avatar for {account_id}: {path} → {avatar_dir} ...", end="", file=sys.stderr, flush=True)

        headers = {"If-None-Match": meta["etag"]} if meta.get("etag") else {}
        try:
            resp = session.get(url, headers=headers, timeout=self.timeout)
            if resp.status_code != 304:
                resp.raise_for_status()
        except requests.RequestException as e:
            print("failed", file=sys.stderr)
            raise FetchError(f"Avatar request failed for account {account_id}: {e}") from e

        if resp.status_code == 304 and raw_image_file is not None:
            print("not modified", file=sys.stderr)
        else:
            print(f"{len(resp.content)} bytes", file=sys.stderr)
            if raw_image_file is not None:
                raw_image_file.unlink()
            raw_image_file = avatar_dir / f"raw.{_extension_for(resp.headers.get('Content-Type'))}"
            raw_image_file.write_bytes(resp.content)
            meta_file.write_text(json.dumps({"etag": resp.headers.get("ETag")}), encoding="utf-8")

        for size in self.sizes:
            self._write_size(raw_image_file, avatar_dir, size)
        return raw_image_file

    def _write_size(self, raw_image_file: Path, avatar_dir: Path, size: int) -> Path:
        outfile = avatar_dir / f"sizes.{size}x{size}.{self.image_format}"
        with Image.open(raw_image_file) as image:
            resized = ImageOps.contain(image, (size, size))
            if resized.mode not in ("RGB", "RGBA"):
                resized = resized.convert("RGBA")
            resized.save(outfile, format=self.image_format.upper())
        outfile.chmod(0o644)
        return outfile


def _extension_for(content_type: str | None) -> str:
    mime_type = (content_type or "").split(";")[0].strip().lower()
    extension = mimetypes.guess_extension(mime_type) if mime_type else None
    if extension is None:
        return "bin"
    return extension.lstrip(".")
