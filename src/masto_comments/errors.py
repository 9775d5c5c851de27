from __future__ import annotations


class MalformedStatusError(ValueError):
    """Raised when a status record cannot be indexed (missing or invalid fields)."""


class ContentNormalizationError(ValueError):
    """Raised when a comment body cannot be parsed as an HTML fragment."""


class MissingRootError(LookupError):
    """Raised when the designated root status is absent from the gathered comments."""


class ConfigError(RuntimeError):
    """Raised when configuration is missing or invalid."""


class FetchError(RuntimeError):
    """Raised when a Mastodon API request fails."""


class PostLookupError(RuntimeError):
    """Raised when a blog post or its source file cannot be uniquely located."""
