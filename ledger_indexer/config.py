"""Process settings, resolved once at startup and passed down explicitly.

Precedence: CLI option, then environment (``DATABASE_URL``, ``ES_URL``,
``CONCURRENCY``), then the defaults below. A ``.env`` in the working
directory is loaded by the CLI before ``Settings.from_env`` runs.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, replace

DEFAULT_ES_URL = "http://localhost:9200"
DEFAULT_CONCURRENCY = 5


def _int_env(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw.strip())
    except ValueError as e:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from e


@dataclass(frozen=True, slots=True)
class Settings:
    database_url: str | None = None
    es_url: str = DEFAULT_ES_URL
    concurrency: int = DEFAULT_CONCURRENCY

    def __post_init__(self) -> None:
        if self.concurrency < 1:
            raise ValueError("concurrency must be a positive integer")
        if not self.es_url:
            raise ValueError("es_url must not be empty")

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> Settings:
        env = os.environ if env is None else env
        return cls(
            database_url=env.get("DATABASE_URL") or None,
            es_url=env.get("ES_URL") or DEFAULT_ES_URL,
            concurrency=_int_env(env, "CONCURRENCY", DEFAULT_CONCURRENCY),
        )

    def with_overrides(
        self,
        *,
        database_url: str | None = None,
        es_url: str | None = None,
        concurrency: int | None = None,
    ) -> Settings:
        """Return a copy with every non-``None`` override applied."""

        changes: dict[str, object] = {}
        if database_url is not None:
            changes["database_url"] = database_url
        if es_url is not None:
            changes["es_url"] = es_url
        if concurrency is not None:
            changes["concurrency"] = concurrency
        return replace(self, **changes) if changes else self


__all__ = ["DEFAULT_CONCURRENCY", "DEFAULT_ES_URL", "Settings"]
