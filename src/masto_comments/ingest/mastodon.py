from __future__ import annotations

import json
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable

import pandas as pd
import requests

from masto_comments.errors import FetchError, MalformedStatusError
from masto_comments.schema import StatusRecord, parse_status


@dataclass(frozen=True)
class Timeouts:
    connect: float = 4.0
    # The context request can take a while on large threads.
    read: float = 120.0

    def as_tuple(self) -> tuple[float, float]:
        return (self.connect, self.read)


class MastodonClient:
    def __init__(
        self,
        base_url: str,
        token: str,
        timeouts: Timeouts | None = None,
        session: requests.Session | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeouts = timeouts or Timeouts()
        self.session = session or requests.Session()
        self.session.headers.update({"Authorization": f"Bearer {token}"})

    def status(self, status_id: str) -> StatusRecord:
        return parse_status(self._get(f"/api/v1/statuses/{status_id}"))

    def context(self, status_id: str) -> dict[str, list[StatusRecord]]:
        payload = self._get(f"/api/v1/statuses/{status_id}/context")
        return {
            "ancestors": [parse_status(raw) for raw in payload.get("ancestors", [])],
            "descendants": [parse_status(raw) for raw in payload.get("descendants", [])],
        }

    def fetch_thread(self, root_status_id: str) -> list[StatusRecord]:
        """Return the root status followed by every descendant the server knows of."""
        root = self.status(root_status_id)
        return [root] + self.context(root_status_id)["descendants"]

    def _get(self, path: str) -> Any:
        url = f"{self.base_url}{path}"
        try:
            resp = self.session.get(url, timeout=self.timeouts.as_tuple())
            resp.raise_for_status()
            return resp.json()
        except requests.RequestException as e:
            raise FetchError(f"Mastodon request failed: GET {url}: {e}") from e
        except ValueError as e:
            raise FetchError(f"Mastodon returned invalid JSON for GET {url}") from e


def load_statuses(input_path: str | Path) -> list[StatusRecord]:
    """Load a dumped thread (one status per JSONL line or CSV row) in file order."""
    input_file = Path(input_path)
    suffix = input_file.suffix.lower()
    statuses: list[StatusRecord] = []
    total_read = 0

    def process_records(records: Iterable[dict[str, Any]]) -> None:
        nonlocal total_read
        for raw in records:
            total_read += 1
            statuses.append(parse_status(raw))

    if suffix == ".csv":
        for chunk in pd.read_csv(input_file, chunksize=1000, keep_default_na=False, dtype=str):
            process_records(chunk.to_dict(orient="records"))
    elif suffix == ".jsonl":
        with input_file.open("r", encoding="utf-8") as handle:
            for line_number, line in enumerate(handle, start=1):
                line = line.strip()
                if not line:
                    continue
                try:
                    raw = json.loads(line)
                except json.JSONDecodeError as e:
                    raise MalformedStatusError(
                        f"{input_file}:{line_number}: not a JSON status record ({e.msg})"
                    ) from e
                process_records([raw])
    else:
        raise ValueError("Unsupported input format. Use .jsonl or .csv")

    print(f"total_read={total_read} total_loaded={len(statuses)}", file=sys.stderr)
    return statuses
