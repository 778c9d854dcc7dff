"""Validated shapes for raw ledger rows handed over by the data layer.

Binary decoding of the ledger wire format happens outside this package: the
data layer supplies each ledger's header, transaction and fee-history rows
with their envelope/result/meta columns already decoded into JSON-compatible
mappings. The models below are the contract for that hand-off.

Validation is deliberately lax about representation (int64 amounts often
arrive as strings and are coerced to ``int``; unknown keys are ignored) and
strict about structure. Operation bodies stay untyped mappings here: the
operation decoder validates them per kind so that one malformed or unknown
operation never rejects the whole ledger.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator


class _Row(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")


class RawAsset(_Row):
    """Asset as found in operation bodies and trustline entries.

    Accepts the ``"native"`` string shorthand as well as the full mapping form
    ``{"type": "credit_alphanum4", "code": "USD", "issuer": "G..."}``.
    """

    type: Literal["native", "credit_alphanum4", "credit_alphanum12"] = "native"
    code: str | None = None
    issuer: str | None = None

    @model_validator(mode="before")
    @classmethod
    def _expand_shorthand(cls, data: Any) -> Any:
        if data == "native":
            return {"type": "native"}
        return data

    @model_validator(mode="after")
    def _credit_requires_code_and_issuer(self) -> RawAsset:
        if self.type != "native" and (not self.code or not self.issuer):
            raise ValueError(f"{self.type} asset requires both code and issuer")
        return self


class RawPrice(_Row):
    # d == 0 is accepted here; the decoder reports it as a decode anomaly.
    n: int
    d: int


class RawOperation(_Row):
    source_account: str | None = None
    type: str
    body: dict[str, Any] = Field(default_factory=dict)


class RawMemo(_Row):
    type: str = "none"
    value: str | int | None = None


class RawEnvelope(_Row):
    source_account: str
    fee: int = 0
    seq_num: int = 0
    memo: RawMemo | None = None
    operations: list[RawOperation] = Field(default_factory=list)


class RawOperationResult(_Row):
    """Per-operation result: outer code (0 = inner result present) and inner code."""

    code: int = 0
    inner_code: int | None = None


class RawTransactionResult(_Row):
    fee_charged: int = 0
    code: int = 0
    results: list[RawOperationResult] | None = None


class RawLedgerEntry(_Row):
    """Post-change state of a ledger entry (or its key, for removals)."""

    type: str
    account_id: str | None = None
    asset: RawAsset | None = None
    balance: int | None = None


class RawLedgerEntryChange(_Row):
    type: Literal["created", "updated", "removed", "state"]
    entry: RawLedgerEntry


class RawOperationMeta(_Row):
    changes: list[RawLedgerEntryChange] = Field(default_factory=list)


class RawTransactionMeta(_Row):
    version: int = 0
    operations: list[RawOperationMeta] = Field(default_factory=list)


class LedgerHeaderRow(_Row):
    hash: str
    prev_hash: str | None = None
    ledger_seq: int = Field(gt=0)
    close_time: datetime
    protocol_version: int | None = None
    total_coins: int | None = None
    fee_pool: int | None = None
    base_fee: int | None = None
    base_reserve: int | None = None
    max_tx_set_size: int | None = None


class TxHistoryRow(_Row):
    tx_id: str
    ledger_seq: int
    envelope: RawEnvelope
    result: RawTransactionResult = Field(default_factory=RawTransactionResult)
    meta: RawTransactionMeta = Field(default_factory=RawTransactionMeta)


class TxFeeHistoryRow(_Row):
    tx_id: str
    ledger_seq: int
    changes: list[RawLedgerEntryChange] = Field(default_factory=list)


class LedgerRecord(_Row):
    """One ledger's complete raw record set, rows in ledger application order."""

    header: LedgerHeaderRow
    transactions: list[TxHistoryRow] = Field(default_factory=list)
    fees: list[TxFeeHistoryRow] = Field(default_factory=list)

    @property
    def seq(self) -> int:
        return self.header.ledger_seq

    @model_validator(mode="after")
    def _rows_belong_to_header(self) -> LedgerRecord:
        seq = self.header.ledger_seq
        for row in (*self.transactions, *self.fees):
            if row.ledger_seq != seq:
                raise ValueError(
                    f"row {row.tx_id} belongs to ledger {row.ledger_seq}, not {seq}"
                )
        return self


__all__ = [
    "LedgerHeaderRow",
    "LedgerRecord",
    "RawAsset",
    "RawEnvelope",
    "RawLedgerEntry",
    "RawLedgerEntryChange",
    "RawMemo",
    "RawOperation",
    "RawOperationMeta",
    "RawOperationResult",
    "RawPrice",
    "RawTransactionMeta",
    "RawTransactionResult",
    "TxFeeHistoryRow",
    "TxHistoryRow",
]
