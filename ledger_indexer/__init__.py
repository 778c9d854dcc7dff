"""Public interface for the ``ledger_indexer`` package.

Turns a ledger node's history (headers, transactions, operations, fee
charges) into deterministically keyed documents and bulk-indexes them into an
Elasticsearch-compatible backend. This module only re-exports the stable
import surface; there is no runtime logic here.
"""

from .bulk import BulkMaker, build_ledger_bulk, serialize_for_bulk
from .documents import (
    AccountFlags,
    Asset,
    Balance,
    BalanceSource,
    LedgerHeader,
    Memo,
    Operation,
    Price,
    PriceError,
    Thresholds,
    Transaction,
)
from .export import ExportConfig, ExportPipeline, ExportRangeError, ExportResult, ExportState
from .ingest import IngestConfig, IngestPipeline, LedgerGapError
from .operations import OperationType, append_result, decode_operation
from .paging import PagingToken
from .rows import LedgerRecord
from .sink import ElasticsearchSink, IndexSink
from .submission import RetriesExhaustedError

__all__ = [
    # Pipelines
    "BulkMaker",
    "ExportConfig",
    "ExportPipeline",
    "ExportResult",
    "ExportState",
    "IngestConfig",
    "IngestPipeline",
    "build_ledger_bulk",
    "serialize_for_bulk",
    # Decoding
    "OperationType",
    "append_result",
    "decode_operation",
    # Documents / types
    "AccountFlags",
    "Asset",
    "Balance",
    "BalanceSource",
    "LedgerHeader",
    "LedgerRecord",
    "Memo",
    "Operation",
    "PagingToken",
    "Price",
    "Thresholds",
    "Transaction",
    # Collaborators
    "ElasticsearchSink",
    "IndexSink",
    # Errors
    "ExportRangeError",
    "LedgerGapError",
    "PriceError",
    "RetriesExhaustedError",
]
