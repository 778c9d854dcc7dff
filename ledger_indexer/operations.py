"""Operation decoder.

``decode_operation`` turns one raw operation of a transaction into an
:class:`~ledger_indexer.documents.Operation`. Dispatch goes through
``_HANDLERS``, a table keyed by the closed :class:`OperationType` enum; every
member has an entry (kinds without indexed fields map to ``_no_fields``).

Decoding never aborts the ledger. Anomalies degrade the document instead:

- an unknown type tag or a body that fails validation yields an
  envelope-only document (linkage fields and the raw type tag);
- a price with a zero denominator yields a partial document: fields decoded
  before the price are kept, both price fields stay absent.

Per-operation results are merged afterwards with :func:`append_result` /
:func:`merge_results`.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from dataclasses import replace
from enum import StrEnum
from typing import Any, TypeAlias

from pydantic import BaseModel, ConfigDict, ValidationError

from .documents import AccountFlags, Asset, Operation, Price, PriceError, Thresholds, Transaction
from .logging_setup import get_logger
from .paging import for_operation
from .rows import RawAsset, RawOperation, RawOperationResult, RawPrice

logger = get_logger("ledger_indexer.operations")


class OperationType(StrEnum):
    CREATE_ACCOUNT = "create_account"
    PAYMENT = "payment"
    PATH_PAYMENT = "path_payment"
    MANAGE_OFFER = "manage_offer"
    CREATE_PASSIVE_OFFER = "create_passive_offer"
    SET_OPTIONS = "set_options"
    CHANGE_TRUST = "change_trust"
    ALLOW_TRUST = "allow_trust"
    ACCOUNT_MERGE = "account_merge"
    INFLATION = "inflation"
    MANAGE_DATA = "manage_data"
    BUMP_SEQUENCE = "bump_sequence"

    @classmethod
    def parse(cls, tag: str) -> OperationType | None:
        try:
            return cls(tag)
        except ValueError:
            return None


# ---------------------------------------------------------------------------
# Per-kind bodies
# ---------------------------------------------------------------------------


class _Body(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")


class CreateAccountBody(_Body):
    destination: str
    starting_balance: int


class PaymentBody(_Body):
    destination: str
    asset: RawAsset
    amount: int


class PathPaymentBody(_Body):
    send_asset: RawAsset
    send_max: int
    destination: str
    dest_asset: RawAsset
    dest_amount: int
    path: list[RawAsset] = []


class OfferBody(_Body):
    selling: RawAsset
    buying: RawAsset
    amount: int
    price: RawPrice
    offer_id: int | None = None


class SetOptionsBody(_Body):
    inflation_dest: str | None = None
    clear_flags: int | None = None
    set_flags: int | None = None
    master_weight: int | None = None
    low_threshold: int | None = None
    med_threshold: int | None = None
    high_threshold: int | None = None
    home_domain: str | None = None


class ChangeTrustBody(_Body):
    line: RawAsset
    limit: int


class AllowTrustBody(_Body):
    trustor: str
    asset_code: str
    authorize: bool


class AccountMergeBody(_Body):
    destination: str


class BumpSequenceBody(_Body):
    bump_to: int


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------

# A handler validates the raw body and writes kind-specific fields into
# ``fields``. Fields written before an exception are kept for PriceError.
Handler: TypeAlias = Callable[[Mapping[str, Any], Operation, dict[str, Any]], None]


def _create_account(body: Mapping[str, Any], op: Operation, fields: dict[str, Any]) -> None:
    b = CreateAccountBody.model_validate(body)
    fields["source_amount"] = b.starting_balance
    fields["destination_account_id"] = b.destination


def _payment(body: Mapping[str, Any], op: Operation, fields: dict[str, Any]) -> None:
    b = PaymentBody.model_validate(body)
    fields["source_amount"] = b.amount
    fields["source_asset"] = Asset.from_raw(b.asset)
    fields["destination_account_id"] = b.destination


def _path_payment(body: Mapping[str, Any], op: Operation, fields: dict[str, Any]) -> None:
    b = PathPaymentBody.model_validate(body)
    fields["source_asset"] = Asset.from_raw(b.send_asset)
    fields["source_amount"] = b.send_max
    fields["destination_account_id"] = b.destination
    fields["destination_asset"] = Asset.from_raw(b.dest_asset)
    fields["destination_amount"] = b.dest_amount
    fields["path"] = tuple(Asset.from_raw(a) for a in b.path)


def _offer(body: Mapping[str, Any], op: Operation, fields: dict[str, Any]) -> None:
    b = OfferBody.model_validate(body)
    fields["source_amount"] = b.amount
    fields["source_asset"] = Asset.from_raw(b.buying)
    fields["destination_asset"] = Asset.from_raw(b.selling)
    fields["offer_id"] = b.offer_id
    price = Price.from_raw(b.price)
    decimal = price.decimal()
    fields["offer_price"] = decimal
    fields["offer_price_n_d"] = price


def _set_options(body: Mapping[str, Any], op: Operation, fields: dict[str, Any]) -> None:
    b = SetOptionsBody.model_validate(body)
    fields["inflation_dest_id"] = b.inflation_dest
    fields["home_domain"] = b.home_domain

    thresholds = Thresholds(
        low=b.low_threshold,
        medium=b.med_threshold,
        high=b.high_threshold,
        master=b.master_weight,
    )
    if not thresholds.is_empty:
        fields["thresholds"] = thresholds

    # A present-but-zero mask is still an explicit flag set.
    if b.set_flags is not None:
        fields["set_flags"] = AccountFlags.from_mask(b.set_flags)
    if b.clear_flags is not None:
        fields["clear_flags"] = AccountFlags.from_mask(b.clear_flags)


def _change_trust(body: Mapping[str, Any], op: Operation, fields: dict[str, Any]) -> None:
    b = ChangeTrustBody.model_validate(body)
    fields["source_asset"] = Asset.from_raw(b.line)
    fields["trust_limit"] = b.limit


def _allow_trust(body: Mapping[str, Any], op: Operation, fields: dict[str, Any]) -> None:
    # The issuer of the authorized asset is the operation's source account.
    b = AllowTrustBody.model_validate(body)
    fields["destination_account_id"] = b.trustor
    fields["source_asset"] = Asset.credit(b.asset_code, op.source_account_id)
    fields["authorize"] = b.authorize


def _account_merge(body: Mapping[str, Any], op: Operation, fields: dict[str, Any]) -> None:
    b = AccountMergeBody.model_validate(body)
    fields["destination_account_id"] = b.destination


def _bump_sequence(body: Mapping[str, Any], op: Operation, fields: dict[str, Any]) -> None:
    b = BumpSequenceBody.model_validate(body)
    fields["bump_to"] = b.bump_to


def _no_fields(body: Mapping[str, Any], op: Operation, fields: dict[str, Any]) -> None:
    return None


_HANDLERS: dict[OperationType, Handler] = {
    OperationType.CREATE_ACCOUNT: _create_account,
    OperationType.PAYMENT: _payment,
    OperationType.PATH_PAYMENT: _path_payment,
    OperationType.MANAGE_OFFER: _offer,
    OperationType.CREATE_PASSIVE_OFFER: _offer,
    OperationType.SET_OPTIONS: _set_options,
    OperationType.CHANGE_TRUST: _change_trust,
    OperationType.ALLOW_TRUST: _allow_trust,
    OperationType.ACCOUNT_MERGE: _account_merge,
    OperationType.INFLATION: _no_fields,
    OperationType.MANAGE_DATA: _no_fields,
    OperationType.BUMP_SEQUENCE: _bump_sequence,
}


def handler_for(kind: OperationType) -> Handler:
    return _HANDLERS[kind]


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def envelope(tx: Transaction, raw_op: RawOperation, index: int) -> Operation:
    """Build the fields shared by every operation kind."""

    return Operation(
        tx_id=tx.id,
        tx_index=tx.index,
        index=index,
        seq=tx.seq,
        order=f"{tx.order}:{index}",
        close_time=tx.close_time,
        paging_token=for_operation(tx.seq, tx.index, index),
        tx_source_account_id=tx.source_account_id,
        type=raw_op.type,
        source_account_id=raw_op.source_account or tx.source_account_id,
        memo=tx.memo,
    )


def decode_operation(tx: Transaction, raw_op: RawOperation, index: int) -> Operation:
    """Decode the operation at 0-based ``index`` of ``tx``.

    Pure given its inputs; anomalies are logged and produce an envelope-only
    or partial document rather than an exception.
    """

    op = envelope(tx, raw_op, index)

    kind = OperationType.parse(raw_op.type)
    if kind is None:
        logger.warning("operations:unknown_type order=%s type=%s", op.order, raw_op.type)
        return op

    fields: dict[str, Any] = {}
    try:
        handler_for(kind)(raw_op.body, op, fields)
    except ValidationError as e:
        logger.warning(
            "operations:malformed_body order=%s type=%s errors=%d",
            op.order,
            kind,
            e.error_count(),
        )
        return op
    except PriceError as e:
        logger.warning("operations:invalid_price order=%s type=%s error=%s", op.order, kind, e)

    return replace(op, **fields) if fields else op


def append_result(op: Operation, result: RawOperationResult | None) -> Operation:
    """Merge a per-operation result code into an already decoded operation.

    An outer code of ``0`` means the inner result is present; the inner code
    then decides success and becomes the reported code.
    """

    if result is None:
        return op
    inner_ok = result.inner_code in (None, 0)
    successful = result.code == 0 and inner_ok
    if result.code == 0 and result.inner_code is not None:
        code = result.inner_code
    else:
        code = result.code
    return replace(op, successful=successful, result_code=code)


def merge_results(
    operations: Sequence[Operation], results: Sequence[RawOperationResult] | None
) -> list[Operation]:
    """Apply ``results`` by index; extra entries on either side are ignored."""

    if not results:
        return list(operations)
    if len(results) != len(operations):
        logger.debug(
            "operations:result_count_mismatch operations=%d results=%d",
            len(operations),
            len(results),
        )
    merged = [append_result(op, res) for op, res in zip(operations, results, strict=False)]
    merged.extend(operations[len(merged) :])
    return merged


__all__ = [
    "OperationType",
    "append_result",
    "decode_operation",
    "envelope",
    "handler_for",
    "merge_results",
]
