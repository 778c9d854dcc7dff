"""Pytest configuration for test isolation.

The CLI loads a ``.env`` from the current working directory and every
component reads ``DATABASE_URL``, ``ES_URL``, ``CONCURRENCY`` and
``LEDGER_INDEXER_LOG_LEVEL`` from the environment. A developer's shell or a
stray ``.env`` in the checkout would leak into tests, so each test runs with
those variables cleared and with its own temporary directory as CWD.
"""

from __future__ import annotations

from pathlib import Path

import pytest

_ENV_VARS = ("DATABASE_URL", "ES_URL", "CONCURRENCY", "LEDGER_INDEXER_LOG_LEVEL")


@pytest.fixture(autouse=True)
def _isolate_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Clear settings variables and run from a per-test working directory."""

    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    workdir = tmp_path / "cwd"
    # Ensure the directory exists to make behavior explicit and help debugging.
    workdir.mkdir(parents=True, exist_ok=True)
    monkeypatch.chdir(workdir)
