from __future__ import annotations

import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Annotated, Mapping

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from masto_comments.errors import ConfigError


DEFAULT_CONFIG_NAME = "comments.yaml"
_ENV_NAME_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

PositiveFloat = Annotated[float, Field(gt=0)]
PositiveInt = Annotated[int, Field(ge=1)]


class SyncConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    mastodon_base_url: str = "https://hachyderm.io"
    token_env: str = "MASTODON_API_TOKEN"
    connect_timeout: PositiveFloat = 4.0
    read_timeout: PositiveFloat = 120.0
    data_dir: str = "data"
    blogs: list[str] = Field(default_factory=lambda: ["music", "teaching"])
    avatar_sizes: list[PositiveInt] = Field(default_factory=lambda: [80])
    avatar_format: str = "webp"

    @field_validator("mastodon_base_url")
    @classmethod
    def _base_url_has_scheme(cls, value: str) -> str:
        value = value.strip().rstrip("/")
        if not value.startswith(("http://", "https://")):
            raise ValueError("must start with http:// or https://")
        return value

    @field_validator("token_env")
    @classmethod
    def _valid_env_name(cls, value: str) -> str:
        name = (value or "").strip()
        if not _ENV_NAME_RE.fullmatch(name):
            raise ValueError("must be a valid environment variable name")
        return name

    @field_validator("blogs")
    @classmethod
    def _non_empty_names(cls, values: list[str]) -> list[str]:
        names = [item.strip() for item in values if item and item.strip()]
        if not names:
            raise ValueError("must contain at least one blog name")
        return names


@dataclass(frozen=True)
class ProjectContext:
    """Everything a sync run needs, loaded once and passed to each collaborator."""

    project_dir: Path
    config: SyncConfig
    environ: Mapping[str, str]

    @property
    def data_dir(self) -> Path:
        return self.project_dir / self.config.data_dir

    @property
    def avatars_dir(self) -> Path:
        return self.data_dir / "avatars" / "mastodon"

    def posts_dir(self, blog: str) -> Path:
        return self.data_dir / blog / "blog.posts"

    def require_token(self) -> str:
        token = (self.environ.get(self.config.token_env) or "").strip()
        if not token:
            raise ConfigError(f"Missing required environment variable: {self.config.token_env}")
        return token


def load_config(path: str | Path) -> SyncConfig:
    """
    Load a YAML config file and validate it into a SyncConfig.

    Raises ConfigError with a readable validation message on failure.
    """
    p = Path(path)

    if not p.exists():
        raise ConfigError(f"Config file not found: {p}")

    try:
        raw_text = p.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Failed to read config file: {p}") from e

    try:
        data = yaml.safe_load(raw_text)
    except yaml.YAMLError as e:
        raise ConfigError(f"Failed to parse YAML in {p}: {e}") from e

    if data is None:
        data = {}

    if not isinstance(data, dict):
        raise ConfigError(f"Top-level YAML in {p} must be a mapping/object")

    try:
        return SyncConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(_format_pydantic_errors(e, p)) from e


def load_context(
    project_dir: str | Path,
    config_path: str | Path | None = None,
    *,
    environ: Mapping[str, str] | None = None,
) -> ProjectContext:
    root = Path(project_dir)
    if config_path is not None:
        config = load_config(config_path)
    elif (root / DEFAULT_CONFIG_NAME).exists():
        config = load_config(root / DEFAULT_CONFIG_NAME)
    else:
        config = SyncConfig()

    return ProjectContext(
        project_dir=root,
        config=config,
        environ=os.environ if environ is None else environ,
    )


def _format_pydantic_errors(err: ValidationError, path: Path) -> str:
    lines: list[str] = [f"Invalid configuration in {path}:"]
    for item in err.errors():
        loc = ".".join(str(part) for part in item.get("loc", [])) or "<root>"
        msg = item.get("msg", "invalid value")
        lines.append(f"- {loc}: {msg}")
    return "\n".join(lines)
