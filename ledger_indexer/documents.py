"""Document model: the records written to the search backend.

Every document type exposes ``INDEX_NAME`` (its target collection, a pure
function of the type), ``doc_id`` (stable identity, so re-indexing a ledger
overwrites instead of duplicating) and ``to_document()`` (a plain dict with a
fixed key order, so serialization is byte-deterministic).

Optional fields use ``None`` for "not present in the source" and are left
out of the serialized document; they are never coerced to zero/false.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from enum import StrEnum
from fractions import Fraction
from typing import Any, ClassVar, Protocol

from .paging import PagingToken
from .rows import RawAsset, RawMemo, RawPrice

LEDGERS_INDEX = "ledgers"
TRANSACTIONS_INDEX = "transactions"
OPERATIONS_INDEX = "operations"
BALANCES_INDEX = "balances"

INDEX_NAMES: tuple[str, ...] = (
    LEDGERS_INDEX,
    TRANSACTIONS_INDEX,
    OPERATIONS_INDEX,
    BALANCES_INDEX,
)

# Account flag bits as defined by the ledger protocol.
AUTH_REQUIRED_FLAG = 0x1
AUTH_REVOCABLE_FLAG = 0x2
AUTH_IMMUTABLE_FLAG = 0x4


class PriceError(ValueError):
    """Raised when a price ratio cannot be turned into a decimal."""


class Document(Protocol):
    INDEX_NAME: ClassVar[str]

    @property
    def doc_id(self) -> str: ...

    def to_document(self) -> dict[str, Any]: ...


def format_time(value: datetime) -> str:
    """Render a close time as UTC ISO-8601 with a ``Z`` suffix."""

    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).strftime("%Y-%m-%dT%H:%M:%SZ")


def _compact(fields: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in fields.items() if v is not None}


# ---------------------------------------------------------------------------
# Value types
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Asset:
    code: str
    issuer: str | None
    key: str

    @classmethod
    def native(cls) -> Asset:
        return cls(code="native", issuer=None, key="native")

    @classmethod
    def credit(cls, code: str, issuer: str) -> Asset:
        return cls(code=code, issuer=issuer, key=f"{code}-{issuer}")

    @classmethod
    def from_raw(cls, raw: RawAsset) -> Asset:
        if raw.type == "native":
            return cls.native()
        assert raw.code is not None and raw.issuer is not None  # enforced by RawAsset
        return cls.credit(raw.code, raw.issuer)

    def to_document(self) -> dict[str, Any]:
        return _compact({"code": self.code, "issuer": self.issuer, "key": self.key})


@dataclass(frozen=True, slots=True)
class Price:
    n: int
    d: int

    @classmethod
    def from_raw(cls, raw: RawPrice) -> Price:
        return cls(n=raw.n, d=raw.d)

    def decimal(self) -> float:
        if self.d == 0:
            raise PriceError(f"price {self.n}/{self.d} has a zero denominator")
        return float(Fraction(self.n, self.d))

    def to_document(self) -> dict[str, Any]:
        return {"n": self.n, "d": self.d}


@dataclass(frozen=True, slots=True)
class Thresholds:
    low: int | None = None
    medium: int | None = None
    high: int | None = None
    master: int | None = None

    @property
    def is_empty(self) -> bool:
        return all(v is None for v in (self.low, self.medium, self.high, self.master))

    def to_document(self) -> dict[str, Any]:
        return _compact(
            {"low": self.low, "medium": self.medium, "high": self.high, "master": self.master}
        )


@dataclass(frozen=True, slots=True)
class AccountFlags:
    required: bool = False
    revocable: bool = False
    immutable: bool = False

    @classmethod
    def from_mask(cls, mask: int) -> AccountFlags:
        return cls(
            required=bool(mask & AUTH_REQUIRED_FLAG),
            revocable=bool(mask & AUTH_REVOCABLE_FLAG),
            immutable=bool(mask & AUTH_IMMUTABLE_FLAG),
        )

    def to_document(self) -> dict[str, Any]:
        return {"required": self.required, "revocable": self.revocable, "immutable": self.immutable}


@dataclass(frozen=True, slots=True)
class Memo:
    type: str
    value: str

    @classmethod
    def from_raw(cls, raw: RawMemo | None) -> Memo | None:
        if raw is None or raw.type == "none":
            return None
        return cls(type=raw.type, value="" if raw.value is None else str(raw.value))

    def to_document(self) -> dict[str, Any]:
        return {"type": self.type, "value": self.value}


# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class LedgerHeader:
    INDEX_NAME: ClassVar[str] = LEDGERS_INDEX

    seq: int
    hash: str
    prev_hash: str | None
    close_time: datetime
    paging_token: PagingToken
    transaction_count: int = 0
    operation_count: int = 0
    protocol_version: int | None = None
    total_coins: int | None = None
    fee_pool: int | None = None
    base_fee: int | None = None
    base_reserve: int | None = None
    max_tx_set_size: int | None = None

    @property
    def doc_id(self) -> str:
        return str(self.seq)

    def to_document(self) -> dict[str, Any]:
        return _compact(
            {
                "seq": self.seq,
                "hash": self.hash,
                "prev_hash": self.prev_hash,
                "paging_token": str(self.paging_token),
                "close_time": format_time(self.close_time),
                "transaction_count": self.transaction_count,
                "operation_count": self.operation_count,
                "protocol_version": self.protocol_version,
                "total_coins": self.total_coins,
                "fee_pool": self.fee_pool,
                "base_fee": self.base_fee,
                "base_reserve": self.base_reserve,
                "max_tx_set_size": self.max_tx_set_size,
            }
        )


@dataclass(frozen=True, slots=True)
class Transaction:
    INDEX_NAME: ClassVar[str] = TRANSACTIONS_INDEX

    id: str
    index: int
    seq: int
    order: str
    close_time: datetime
    paging_token: PagingToken
    successful: bool
    result_code: int
    source_account_id: str
    fee: int = 0
    fee_charged: int = 0
    operation_count: int = 0
    memo: Memo | None = None

    @property
    def doc_id(self) -> str:
        return self.order

    def to_document(self) -> dict[str, Any]:
        return _compact(
            {
                "id": self.id,
                "idx": self.index,
                "seq": self.seq,
                "order": self.order,
                "paging_token": str(self.paging_token),
                "close_time": format_time(self.close_time),
                "successful": self.successful,
                "result_code": self.result_code,
                "source_account_id": self.source_account_id,
                "fee": self.fee,
                "fee_charged": self.fee_charged,
                "operation_count": self.operation_count,
                "memo": self.memo.to_document() if self.memo else None,
            }
        )


@dataclass(frozen=True, slots=True)
class Operation:
    INDEX_NAME: ClassVar[str] = OPERATIONS_INDEX

    # Envelope shared by every kind
    tx_id: str
    tx_index: int
    index: int
    seq: int
    order: str
    close_time: datetime
    paging_token: PagingToken
    tx_source_account_id: str
    type: str
    source_account_id: str
    successful: bool = True
    result_code: int = 0
    memo: Memo | None = None

    # Kind-dependent, present only for the kinds that set them
    source_asset: Asset | None = None
    source_amount: int | None = None
    destination_account_id: str | None = None
    destination_asset: Asset | None = None
    destination_amount: int | None = None
    offer_id: int | None = None
    offer_price: float | None = None
    offer_price_n_d: Price | None = None
    trust_limit: int | None = None
    authorize: bool | None = None
    bump_to: int | None = None
    path: tuple[Asset, ...] | None = None
    thresholds: Thresholds | None = None
    home_domain: str | None = None
    inflation_dest_id: str | None = None
    set_flags: AccountFlags | None = None
    clear_flags: AccountFlags | None = None

    @property
    def doc_id(self) -> str:
        return self.order

    def to_document(self) -> dict[str, Any]:
        def _doc(value: Any) -> Any:
            return value.to_document() if value is not None else None

        return _compact(
            {
                "tx_id": self.tx_id,
                "tx_idx": self.tx_index,
                "idx": self.index,
                "seq": self.seq,
                "order": self.order,
                "paging_token": str(self.paging_token),
                "close_time": format_time(self.close_time),
                "successful": self.successful,
                "result_code": self.result_code,
                "tx_source_account_id": self.tx_source_account_id,
                "type": self.type,
                "source_account_id": self.source_account_id,
                "source_asset": _doc(self.source_asset),
                "source_amount": self.source_amount,
                "destination_account_id": self.destination_account_id,
                "destination_asset": _doc(self.destination_asset),
                "destination_amount": self.destination_amount,
                "offer_id": self.offer_id,
                "offer_price": self.offer_price,
                "offer_price_n_d": _doc(self.offer_price_n_d),
                "trust_limit": self.trust_limit,
                "authorize": self.authorize,
                "bump_to": self.bump_to,
                "path": [a.to_document() for a in self.path] if self.path is not None else None,
                "thresholds": _doc(self.thresholds),
                "home_domain": self.home_domain,
                "inflation_dest_id": self.inflation_dest_id,
                "set_flags": _doc(self.set_flags),
                "clear_flags": _doc(self.clear_flags),
                "memo": _doc(self.memo),
            }
        )


class BalanceSource(StrEnum):
    OPERATION = "from-operation"
    FEE = "from-fee"


@dataclass(frozen=True, slots=True)
class Balance:
    INDEX_NAME: ClassVar[str] = BALANCES_INDEX

    paging_token: PagingToken
    seq: int
    account_id: str
    asset: Asset
    balance: int
    source: BalanceSource
    close_time: datetime
    diff: int | None = None

    @property
    def doc_id(self) -> str:
        return str(self.paging_token)

    def to_document(self) -> dict[str, Any]:
        return _compact(
            {
                "paging_token": str(self.paging_token),
                "seq": self.seq,
                "account_id": self.account_id,
                "asset": self.asset.to_document(),
                "balance": self.balance,
                "diff": self.diff,
                "source": str(self.source),
                "close_time": format_time(self.close_time),
            }
        )


__all__ = [
    "AUTH_IMMUTABLE_FLAG",
    "AUTH_REQUIRED_FLAG",
    "AUTH_REVOCABLE_FLAG",
    "AccountFlags",
    "Asset",
    "BALANCES_INDEX",
    "Balance",
    "BalanceSource",
    "Document",
    "INDEX_NAMES",
    "LEDGERS_INDEX",
    "LedgerHeader",
    "Memo",
    "OPERATIONS_INDEX",
    "Operation",
    "Price",
    "PriceError",
    "TRANSACTIONS_INDEX",
    "Thresholds",
    "Transaction",
    "format_time",
]
