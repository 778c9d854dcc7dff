import pytest

from ledger_indexer.config import DEFAULT_CONCURRENCY, DEFAULT_ES_URL, Settings


def test_defaults_when_environment_is_empty():
    settings = Settings.from_env({})
    assert settings == Settings(
        database_url=None, es_url=DEFAULT_ES_URL, concurrency=DEFAULT_CONCURRENCY
    )


def test_reads_environment():
    settings = Settings.from_env(
        {"DATABASE_URL": "sqlite:///core.db", "ES_URL": "http://es:9200", "CONCURRENCY": " 8 "}
    )
    assert (settings.database_url, settings.es_url, settings.concurrency) == (
        "sqlite:///core.db",
        "http://es:9200",
        8,
    )


def test_blank_values_fall_back_to_defaults():
    settings = Settings.from_env({"DATABASE_URL": "", "ES_URL": "", "CONCURRENCY": "  "})
    assert settings == Settings()


def test_process_environment_is_the_default_source(monkeypatch):
    monkeypatch.setenv("ES_URL", "http://search:9200")
    assert Settings.from_env().es_url == "http://search:9200"


@pytest.mark.parametrize("value", ["abc", "0", "-2"])
def test_invalid_concurrency(value):
    with pytest.raises(ValueError, match="(?i)concurrency"):
        Settings.from_env({"CONCURRENCY": value})


def test_overrides_win_over_environment():
    base = Settings.from_env({"ES_URL": "http://env:9200", "CONCURRENCY": "2"})
    assert base.with_overrides() is base

    merged = base.with_overrides(es_url="http://cli:9200", database_url="sqlite://")
    assert (merged.es_url, merged.database_url, merged.concurrency) == (
        "http://cli:9200",
        "sqlite://",
        2,
    )
    assert base.with_overrides(concurrency=9).concurrency == 9
