"""Bulk document builder: one ledger's raw records to bulk-protocol NDJSON.

Each document becomes two lines::

    {"index":{"_index":"<collection>","_id":"<id>"}}
    {<document>}

Identical inputs give byte-identical output: document order is fixed, every
``to_document()`` has a fixed key order and serialization is compact JSON.
"""

from __future__ import annotations

import io
import json
from collections.abc import Iterator
from dataclasses import dataclass
from typing import TextIO

from .balances import extract_balances
from .documents import BalanceSource, Document, LedgerHeader, Memo, Transaction
from .operations import decode_operation, merge_results
from .paging import for_fee, for_ledger, for_operation_meta, for_transaction
from .rows import LedgerHeaderRow, LedgerRecord, TxHistoryRow

_SEPARATORS = (",", ":")


def _dumps(obj: object) -> str:
    return json.dumps(obj, separators=_SEPARATORS, ensure_ascii=False)


def serialize_for_bulk(doc: Document, buffer: TextIO) -> None:
    """Append ``doc`` as an action line plus a source line to ``buffer``."""

    action = {"index": {"_index": doc.INDEX_NAME, "_id": doc.doc_id}}
    buffer.write(_dumps(action))
    buffer.write("\n")
    buffer.write(_dumps(doc.to_document()))
    buffer.write("\n")


def build_header(
    row: LedgerHeaderRow, *, transaction_count: int, operation_count: int
) -> LedgerHeader:
    return LedgerHeader(
        seq=row.ledger_seq,
        hash=row.hash,
        prev_hash=row.prev_hash,
        close_time=row.close_time,
        paging_token=for_ledger(row.ledger_seq),
        transaction_count=transaction_count,
        operation_count=operation_count,
        protocol_version=row.protocol_version,
        total_coins=row.total_coins,
        fee_pool=row.fee_pool,
        base_fee=row.base_fee,
        base_reserve=row.base_reserve,
        max_tx_set_size=row.max_tx_set_size,
    )


def build_transaction(header: LedgerHeaderRow, row: TxHistoryRow, index: int) -> Transaction:
    """Transaction document for the row at 0-based ``index`` of the ledger."""

    seq = header.ledger_seq
    return Transaction(
        id=row.tx_id,
        index=index,
        seq=seq,
        order=f"{seq}:{index}",
        close_time=header.close_time,
        paging_token=for_transaction(seq, index),
        successful=row.result.code == 0,
        result_code=row.result.code,
        source_account_id=row.envelope.source_account,
        fee=row.envelope.fee,
        fee_charged=row.result.fee_charged,
        operation_count=len(row.envelope.operations),
        memo=Memo.from_raw(row.envelope.memo),
    )


@dataclass(frozen=True, slots=True)
class LedgerBulk:
    seq: int
    payload: str
    documents: int


class BulkMaker:
    """Builds every document derived from one :class:`LedgerRecord`.

    Phases, in order: the ledger header, all transactions, all operations
    (results merged), balances from each transaction's operation metadata,
    balances from each fee-history row.
    """

    def __init__(self, record: LedgerRecord) -> None:
        self.record = record
        self.header_row = record.header
        self.seq = record.header.ledger_seq
        self.close_time = record.header.close_time
        self.transactions = [
            build_transaction(self.header_row, row, i) for i, row in enumerate(record.transactions)
        ]

    def documents(self) -> Iterator[Document]:
        yield self._ledger()
        yield from self.transactions
        yield from self._operations_with_results()
        yield from self._balances_from_metas()
        yield from self._balances_from_fee_history()

    def _ledger(self) -> LedgerHeader:
        return build_header(
            self.header_row,
            transaction_count=len(self.transactions),
            operation_count=sum(tx.operation_count for tx in self.transactions),
        )

    def _operations_with_results(self) -> Iterator[Document]:
        for tx, row in zip(self.transactions, self.record.transactions, strict=True):
            decoded = [
                decode_operation(tx, raw_op, op_index)
                for op_index, raw_op in enumerate(row.envelope.operations)
            ]
            yield from merge_results(decoded, row.result.results)

    def _balances_from_metas(self) -> Iterator[Document]:
        for tx_index, row in enumerate(self.record.transactions):
            for op_index, meta in enumerate(row.meta.operations):
                yield from extract_balances(
                    meta.changes,
                    close_time=self.close_time,
                    source=BalanceSource.OPERATION,
                    paging_token=for_operation_meta(self.seq, tx_index, op_index),
                )

    def _balances_from_fee_history(self) -> Iterator[Document]:
        for fee_index, fee_row in enumerate(self.record.fees):
            yield from extract_balances(
                fee_row.changes,
                close_time=self.close_time,
                source=BalanceSource.FEE,
                paging_token=for_fee(self.seq, fee_index),
            )

    def make(self, buffer: TextIO) -> int:
        """Serialize all documents into ``buffer``; return how many were written."""

        count = 0
        for doc in self.documents():
            serialize_for_bulk(doc, buffer)
            count += 1
        return count

    def build(self) -> LedgerBulk:
        buffer = io.StringIO()
        count = self.make(buffer)
        return LedgerBulk(seq=self.record.seq, payload=buffer.getvalue(), documents=count)


def build_ledger_bulk(record: LedgerRecord) -> str:
    return BulkMaker(record).build().payload


__all__ = [
    "BulkMaker",
    "LedgerBulk",
    "build_header",
    "build_ledger_bulk",
    "build_transaction",
    "serialize_for_bulk",
]
