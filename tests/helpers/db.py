"""DB helpers for tests: bootstrap a temporary SQLite DB and seed ledger history."""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path
from typing import Any

from sqlalchemy import text as sql_text

from ledger_indexer.db import Database, LedgerHeaderModel, TxFeeHistoryModel, TxHistoryModel

_HEADER_COLUMNS = {"hash", "prev_hash", "ledger_seq", "close_time"}

# Column names of the node's history tables that the models must map.
_NODE_COLUMNS = {
    "ledgerheaders": {"ledgerhash", "prevhash", "ledgerseq", "closetime", "data"},
    "txhistory": {"ledgerseq", "txindex", "txid", "txbody", "txresult", "txmeta"},
    "txfeehistory": {"ledgerseq", "txindex", "txid", "txchanges"},
}


def bootstrap_sqlite_db(db_file: Path) -> Database:
    """Create a SQLite database file, initialize the history tables, return the handle.

    Using a file-backed SQLite DB ensures multiple SQLAlchemy connections share
    the same state (in-memory DBs are per-connection by default).
    """

    url = f"sqlite+pysqlite:///{db_file}"
    # Ensure parent exists before engine creation attempts any writes
    db_file.parent.mkdir(parents=True, exist_ok=True)
    database = Database(url)
    database.create_schema()
    _assert_node_schema(database)
    return database


def seed_ledgers(database: Database, ledgers: Iterable[dict[str, Any]]) -> None:
    """Insert ledger dicts (as built by ``tests.helpers.ledgers.ledger_dict``)."""

    with database.session_scope() as session:
        for led in ledgers:
            header = led["header"]
            seq = header["ledger_seq"]
            session.add(
                LedgerHeaderModel(
                    ledgerhash=header["hash"],
                    prevhash=header.get("prev_hash"),
                    ledgerseq=seq,
                    closetime=int(header["close_time"].timestamp()),
                    data={k: v for k, v in header.items() if k not in _HEADER_COLUMNS},
                )
            )
            for i, tx in enumerate(led.get("transactions") or []):
                session.add(
                    TxHistoryModel(
                        ledgerseq=seq,
                        txindex=i + 1,
                        txid=tx["tx_id"],
                        txbody=tx["envelope"],
                        txresult=tx.get("result"),
                        txmeta=tx.get("meta"),
                    )
                )
            for i, fee in enumerate(led.get("fees") or []):
                session.add(
                    TxFeeHistoryModel(
                        ledgerseq=seq,
                        txindex=i + 1,
                        txid=fee["tx_id"],
                        txchanges=fee["changes"],
                    )
                )


def _assert_node_schema(database: Database) -> None:
    """Fail when the created tables differ from the node's history table columns."""

    with database.session_scope() as session:
        for table, expected in _NODE_COLUMNS.items():
            rows = session.execute(sql_text(f"PRAGMA table_info('{table}')")).fetchall()
            got = {row[1] for row in rows}  # (cid, name, type, notnull, dflt_value, pk)
            missing = expected - got
            extra = got - expected
            assert not missing and not extra, (
                f"{table} differs from the node schema: missing={missing or '-'}, "
                f"extra={extra or '-'}"
            )
