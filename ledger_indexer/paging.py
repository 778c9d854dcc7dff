"""Paging tokens: one lexically sortable key per document of a ledger.

A token is the tuple ``(ledger_seq, transaction_order, operation_order,
aux_order1, aux_order2)`` rendered as zero-padded decimal fields of fixed
width, so comparing the strings byte-wise gives the same answer as comparing
the tuples. Tokens for the documents of one ledger are laid out as::

    header             (seq, 0,     0,     0, 0)
    transaction k      (seq, k,     0,     0, 0)      k = 1-based tx position
    operation j of k   (seq, k,     j,     0, 0)      j = 1-based op position
    balance, op meta   (seq, k,     j,     1, n)      n = 1-based within change set
    balance, fee       (seq, k,     255,   2, n)

which places every balance after the record that caused it and before the
next transaction.
"""

from __future__ import annotations

from dataclasses import dataclass, replace

# Reserved operation order for records not tied to a single operation.
NO_OPERATION_ORDER = 255

AUX_STRUCTURAL = 0
AUX_BALANCE_FROM_META = 1
AUX_BALANCE_FROM_FEE = 2

# (field, width) in rendering order
_LAYOUT: tuple[tuple[str, int], ...] = (
    ("ledger_seq", 10),
    ("transaction_order", 4),
    ("operation_order", 3),
    ("aux_order1", 1),
    ("aux_order2", 4),
)


@dataclass(frozen=True, slots=True, order=True)
class PagingToken:
    ledger_seq: int
    transaction_order: int = 0
    operation_order: int = 0
    aux_order1: int = AUX_STRUCTURAL
    aux_order2: int = 0

    def __post_init__(self) -> None:
        for name, width in _LAYOUT:
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int):
                raise ValueError(f"PagingToken.{name} must be an integer, got {value!r}")
            if not 0 <= value < 10**width:
                raise ValueError(
                    f"PagingToken.{name}={value} does not fit in {width} decimal digits"
                )

    def with_aux2(self, aux_order2: int) -> PagingToken:
        return replace(self, aux_order2=aux_order2)

    def __str__(self) -> str:
        return "".join(f"{getattr(self, name):0{width}d}" for name, width in _LAYOUT)


def for_ledger(seq: int) -> PagingToken:
    return PagingToken(seq)


def for_transaction(seq: int, tx_index: int) -> PagingToken:
    """Token of the transaction at 0-based ``tx_index``."""
    return PagingToken(seq, tx_index + 1)


def for_operation(seq: int, tx_index: int, op_index: int) -> PagingToken:
    return PagingToken(seq, tx_index + 1, op_index + 1)


def for_operation_meta(seq: int, tx_index: int, op_index: int) -> PagingToken:
    """Base token for balances derived from one operation's metadata."""
    return PagingToken(seq, tx_index + 1, op_index + 1, AUX_BALANCE_FROM_META)


def for_fee(seq: int, fee_index: int) -> PagingToken:
    """Base token for balances derived from one fee charge."""
    return PagingToken(seq, fee_index + 1, NO_OPERATION_ORDER, AUX_BALANCE_FROM_FEE)


__all__ = [
    "AUX_BALANCE_FROM_FEE",
    "AUX_BALANCE_FROM_META",
    "AUX_STRUCTURAL",
    "NO_OPERATION_ORDER",
    "PagingToken",
    "for_fee",
    "for_ledger",
    "for_operation",
    "for_operation_meta",
    "for_transaction",
]
