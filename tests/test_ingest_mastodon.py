from __future__ import annotations

from pathlib import Path

import pandas as pd
import pytest
import requests

from masto_comments.errors import FetchError, MalformedStatusError
from masto_comments.ingest.mastodon import MastodonClient, Timeouts, load_statuses


FIXTURE_PATH = Path(__file__).parent / "fixtures" / "thread_sample.jsonl"


class FakeResponse:
    def __init__(self, payload, status_code: int = 200) -> None:
        self.payload = payload
        self.status_code = status_code

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Client Error")

    def json(self):
        return self.payload


class FakeSession:
    def __init__(self, routes: dict[str, FakeResponse]) -> None:
        self.routes = routes
        self.headers: dict[str, str] = {}
        self.calls: list[tuple[str, object]] = []

    def get(self, url: str, timeout=None) -> FakeResponse:
        self.calls.append((url, timeout))
        return self.routes[url]


def _account(account_id: str) -> dict:
    return {"id": account_id, "display_name": account_id.title()}


def test_load_statuses_jsonl() -> None:
    statuses = load_statuses(FIXTURE_PATH)

    assert [status.id for status in statuses] == ["1", "2", "3", "4", "5", "6", "7"]
    assert statuses[1].in_reply_to_id == "1"
    assert statuses[4].visibility == "direct"


def test_load_statuses_csv(tmp_path: Path) -> None:
    csv_path = tmp_path / "thread.csv"
    pd.DataFrame(
        [
            {"id": "10", "in_reply_to_id": "", "account.id": "1", "content": "<p>root</p>"},
            {"id": "11", "in_reply_to_id": "10", "account.id": "2", "content": "<p>reply</p>"},
        ]
    ).to_csv(csv_path, index=False)

    statuses = load_statuses(csv_path)

    assert [status.id for status in statuses] == ["10", "11"]
    assert statuses[0].in_reply_to_id is None
    assert statuses[1].in_reply_to_id == "10"
    assert statuses[1].account.id == "2"
    assert not any(status.is_visible for status in statuses)


def test_load_statuses_rejects_bad_json_line(tmp_path: Path) -> None:
    dump = tmp_path / "thread.jsonl"
    dump.write_text('{"id": "1", "account": {"id": "a"}}\n{not json\n', encoding="utf-8")

    with pytest.raises(MalformedStatusError, match=":2:"):
        load_statuses(dump)


def test_load_statuses_rejects_unknown_format(tmp_path: Path) -> None:
    dump = tmp_path / "thread.txt"
    dump.write_text("", encoding="utf-8")

    with pytest.raises(ValueError, match="Unsupported input format"):
        load_statuses(dump)


def test_fetch_thread_returns_root_then_descendants() -> None:
    base = "https://example.social"
    session = FakeSession(
        {
            f"{base}/api/v1/statuses/1": FakeResponse({"id": 1, "account": _account("blogger")}),
            f"{base}/api/v1/statuses/1/context": FakeResponse(
                {
                    "ancestors": [],
                    "descendants": [
                        {"id": 2, "in_reply_to_id": 1, "account": _account("alice")},
                        {"id": 3, "in_reply_to_id": 2, "account": _account("bob")},
                    ],
                }
            ),
        }
    )
    client = MastodonClient(base + "/", "secret", Timeouts(connect=1, read=2), session=session)

    statuses = client.fetch_thread("1")

    assert [status.id for status in statuses] == ["1", "2", "3"]
    assert session.headers["Authorization"] == "Bearer secret"
    assert session.calls[0] == (f"{base}/api/v1/statuses/1", (1, 2))


def test_fetch_thread_http_error() -> None:
    session = FakeSession(
        {"https://example.social/api/v1/statuses/1": FakeResponse({"error": "Record not found"}, 404)}
    )
    client = MastodonClient("https://example.social", "secret", session=session)

    with pytest.raises(FetchError, match="404"):
        client.fetch_thread("1")
