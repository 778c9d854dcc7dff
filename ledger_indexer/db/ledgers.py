"""Read ledger record sets from the ledger node's history tables.

The three history tables are read per half-open sequence range, grouped by
ledger and validated into :class:`~ledger_indexer.rows.LedgerRecord` objects
in ascending sequence order. Transaction and fee rows keep their
``txindex`` order, which is the ledger's application order.
"""

from __future__ import annotations

import time
from collections import defaultdict
from collections.abc import Callable, Iterator
from datetime import UTC, datetime
from typing import Any, Protocol

from sqlalchemy import func, select

from ..logging_setup import get_logger
from ..rows import LedgerRecord
from .client import Database
from .models import LedgerHeaderModel, TxFeeHistoryModel, TxHistoryModel

logger = get_logger("ledger_indexer.db.ledgers")

DEFAULT_FOLLOW_WINDOW = 50


class LedgerSource(Protocol):
    def stream(self, first: int, end: int) -> Iterator[LedgerRecord]: ...


def _header_fields(m: LedgerHeaderModel) -> dict[str, Any]:
    return {
        **(m.data or {}),
        "hash": m.ledgerhash,
        "prev_hash": m.prevhash,
        "ledger_seq": m.ledgerseq,
        "close_time": datetime.fromtimestamp(m.closetime, UTC),
    }


def _tx_fields(m: TxHistoryModel) -> dict[str, Any]:
    return {
        "tx_id": m.txid,
        "ledger_seq": m.ledgerseq,
        "envelope": m.txbody,
        "result": m.txresult or {},
        "meta": m.txmeta or {},
    }


def _fee_fields(m: TxFeeHistoryModel) -> dict[str, Any]:
    return {"tx_id": m.txid, "ledger_seq": m.ledgerseq, "changes": m.txchanges or []}


class SqlLedgerSource:
    def __init__(self, database: Database) -> None:
        self.database = database

    def stream(self, first: int, end: int) -> Iterator[LedgerRecord]:
        """Yield the records of every ledger in ``[first, end)`` present in the database.

        Missing headers are skipped silently here; callers that require a
        contiguous range check sequence numbers themselves.
        """

        if end <= first:
            return
        with self.database.session_scope() as session:
            headers = session.scalars(
                select(LedgerHeaderModel)
                .where(LedgerHeaderModel.ledgerseq >= first, LedgerHeaderModel.ledgerseq < end)
                .order_by(LedgerHeaderModel.ledgerseq)
            ).all()
            txs = session.scalars(
                select(TxHistoryModel)
                .where(TxHistoryModel.ledgerseq >= first, TxHistoryModel.ledgerseq < end)
                .order_by(TxHistoryModel.ledgerseq, TxHistoryModel.txindex)
            ).all()
            fees = session.scalars(
                select(TxFeeHistoryModel)
                .where(TxFeeHistoryModel.ledgerseq >= first, TxFeeHistoryModel.ledgerseq < end)
                .order_by(TxFeeHistoryModel.ledgerseq, TxFeeHistoryModel.txindex)
            ).all()

        txs_by_seq: dict[int, list[dict[str, Any]]] = defaultdict(list)
        for t in txs:
            txs_by_seq[t.ledgerseq].append(_tx_fields(t))
        fees_by_seq: dict[int, list[dict[str, Any]]] = defaultdict(list)
        for f in fees:
            fees_by_seq[f.ledgerseq].append(_fee_fields(f))

        logger.debug(
            "db:stream first=%d end=%d ledgers=%d transactions=%d fees=%d",
            first,
            end,
            len(headers),
            len(txs),
            len(fees),
        )
        for h in headers:
            yield LedgerRecord.model_validate(
                {
                    "header": _header_fields(h),
                    "transactions": txs_by_seq.get(h.ledgerseq, []),
                    "fees": fees_by_seq.get(h.ledgerseq, []),
                }
            )

    def first_ledger_seq(self) -> int | None:
        with self.database.session_scope() as session:
            return session.scalar(select(func.min(LedgerHeaderModel.ledgerseq)))

    def last_ledger_seq(self) -> int | None:
        with self.database.session_scope() as session:
            return session.scalar(select(func.max(LedgerHeaderModel.ledgerseq)))

    def ledger_count(self) -> int:
        with self.database.session_scope() as session:
            return int(session.scalar(select(func.count(LedgerHeaderModel.ledgerseq))) or 0)

    def follow(
        self,
        start: int,
        *,
        poll_interval: float = 1.0,
        window: int = DEFAULT_FOLLOW_WINDOW,
        sleep: Callable[[float], None] = time.sleep,
        should_stop: Callable[[], bool] = lambda: False,
    ) -> Iterator[LedgerRecord]:
        """Yield ledgers from ``start`` onward as the node closes them.

        Polls ``last_ledger_seq()`` every ``poll_interval`` seconds while
        caught up. A backlog is read at most ``window`` ledgers per query.
        Runs until ``should_stop()`` returns true.
        """

        if window < 1:
            raise ValueError(f"window must be >= 1, got {window}")
        next_seq = start
        while not should_stop():
            last = self.last_ledger_seq()
            if last is None or last < next_seq:
                sleep(poll_interval)
                continue
            end = min(last + 1, next_seq + window)
            for record in self.stream(next_seq, end):
                yield record
                next_seq = record.seq + 1
            # Headers absent below ``end`` must not make us re-read the window.
            next_seq = max(next_seq, end)


__all__ = ["DEFAULT_FOLLOW_WINDOW", "LedgerSource", "SqlLedgerSource"]
