import io
import logging

import pytest

from ledger_indexer import logging_setup


@pytest.fixture
def pkg_logger(monkeypatch: pytest.MonkeyPatch):
    logger = logging.getLogger("ledger_indexer")
    saved = (list(logger.handlers), logger.level, logger.propagate)
    monkeypatch.setattr(logging_setup, "_CONFIGURED", False)
    logger.handlers.clear()
    yield logger
    logger.handlers[:] = saved[0]
    logger.setLevel(saved[1])
    logger.propagate = saved[2]


def test_configure_once_and_write_to_stream(pkg_logger):
    out = io.StringIO()
    logging_setup.configure_logging("warning", fmt="%(name)s %(message)s", stream=out)
    logging_setup.configure_logging("debug", stream=io.StringIO())

    log = logging_setup.get_logger("ledger_indexer.export")
    log.info("export:hidden")
    log.warning("export:batch_incomplete batch=1/2")

    assert out.getvalue() == "ledger_indexer.export export:batch_incomplete batch=1/2\n"
    assert len(pkg_logger.handlers) == 1


def test_level_from_environment(pkg_logger, monkeypatch):
    monkeypatch.setenv("LEDGER_INDEXER_LOG_LEVEL", "ERROR")
    logging_setup.configure_logging(stream=io.StringIO())
    assert pkg_logger.level == logging.ERROR


def test_set_level_updates_logger_and_handler(pkg_logger):
    logging_setup.configure_logging("INFO", stream=io.StringIO())
    logging_setup.set_level("DEBUG")
    assert pkg_logger.level == logging.DEBUG
    assert all(h.level == logging.DEBUG for h in pkg_logger.handlers)


def test_unknown_level_is_rejected(pkg_logger):
    with pytest.raises(ValueError, match="Unknown log level"):
        logging_setup.configure_logging("loud")
