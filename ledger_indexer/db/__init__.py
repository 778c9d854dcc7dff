"""db: access to the ledger node's history tables (SQLAlchemy).

Public exports
--------------
- ``Base`` and ORM models for ``ledgerheaders``, ``txhistory``, ``txfeehistory``
- ``Database`` (engine + session scope)
- ``SqlLedgerSource`` (ledger record sets per sequence range)
"""

from __future__ import annotations

from .client import Database
from .ledgers import LedgerSource, SqlLedgerSource
from .models import Base, LedgerHeaderModel, TxFeeHistoryModel, TxHistoryModel

metadata = Base.metadata

__all__ = [
    "Base",
    "Database",
    "LedgerHeaderModel",
    "LedgerSource",
    "SqlLedgerSource",
    "TxFeeHistoryModel",
    "TxHistoryModel",
    "metadata",
]
