from __future__ import annotations

import json
from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ValidationError, field_validator

from masto_comments.errors import MalformedStatusError


PruneMarker = Literal["self", "subtree"]
PRUNE_MARKERS: tuple[str, ...] = ("self", "subtree")
VISIBLE_VISIBILITIES = frozenset({"public", "unlisted"})
ACCOUNT_FIELDS = ("id", "display_name", "url", "avatar_static")


def coerce_id(value: Any) -> str | None:
    """Normalize a status or account identifier to its string form."""
    if value is None:
        return None
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    text = str(value).strip()
    return text or None


class Account(BaseModel):
    id: str
    display_name: str = ""
    url: str = ""
    avatar_static: str = ""

    @field_validator("id", mode="before")
    @classmethod
    def _normalize_id(cls, value: Any) -> Any:
        return coerce_id(value)

    @field_validator("display_name", "url", "avatar_static", mode="before")
    @classmethod
    def _none_as_empty(cls, value: Any) -> Any:
        return "" if value is None else value


class StatusRecord(BaseModel):
    id: str
    in_reply_to_id: str | None = None
    account: Account
    created_at: str = ""
    url: str = ""
    visibility: str = ""
    content: str = ""
    prune: PruneMarker | None = None

    @field_validator("id", "in_reply_to_id", mode="before")
    @classmethod
    def _normalize_ids(cls, value: Any) -> Any:
        return coerce_id(value)

    @field_validator("created_at", mode="before")
    @classmethod
    def _timestamp_as_text(cls, value: Any) -> Any:
        if isinstance(value, datetime):
            return value.isoformat().replace("+00:00", "Z")
        return "" if value is None else value

    @field_validator("url", "content", mode="before")
    @classmethod
    def _none_as_empty(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("visibility", mode="before")
    @classmethod
    def _normalize_visibility(cls, value: Any) -> Any:
        if value is None:
            return ""
        return str(value).strip().lower()

    @property
    def is_visible(self) -> bool:
        return self.visibility in VISIBLE_VISIBILITIES


def parse_status(raw: dict[str, Any]) -> StatusRecord:
    """Build a StatusRecord from a Mastodon API payload or a flattened dump row.

    Prune markers present in the payload are discarded: they are only ever
    applied from the persisted pruning record.
    """
    if not isinstance(raw, dict):
        raise MalformedStatusError(f"Status record must be a mapping, got {type(raw).__name__}")
    if coerce_id(raw.get("id")) is None:
        raise MalformedStatusError(f"Status record is missing an id: {_preview(raw)}")

    payload = {key: value for key, value in raw.items() if "." not in key}
    payload.pop("prune", None)
    payload["account"] = _extract_account(raw)

    try:
        return StatusRecord.model_validate(payload)
    except ValidationError as e:
        raise MalformedStatusError(_format_validation_errors(e, raw.get("id"))) from e


def _extract_account(raw: dict[str, Any]) -> dict[str, Any]:
    account_data = _parse_maybe_json(raw.get("account"))
    if isinstance(account_data, dict):
        return account_data

    flattened: dict[str, Any] = {}
    for key in ACCOUNT_FIELDS:
        value = raw.get(f"account.{key}")
        if value not in (None, ""):
            flattened[key] = value
    return flattened


def _parse_maybe_json(value: Any) -> Any:
    if not isinstance(value, str):
        return value
    value = value.strip()
    if not value.startswith("{"):
        return value
    try:
        return json.loads(value)
    except json.JSONDecodeError:
        return value


def _preview(raw: dict[str, Any], limit: int = 120) -> str:
    text = json.dumps(raw, ensure_ascii=False, default=str)
    if len(text) > limit:
        return text[:limit] + "…"
    return text


def _format_validation_errors(err: ValidationError, status_id: Any) -> str:
    lines: list[str] = [f"Invalid status record {status_id!r}:"]
    for item in err.errors():
        loc = ".".join(str(part) for part in item.get("loc", [])) or "<root>"
        msg = item.get("msg", "invalid value")
        lines.append(f"- {loc}: {msg}")
    return "\n".join(lines)
