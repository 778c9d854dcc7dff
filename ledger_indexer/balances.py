"""Balance extraction from ledger entry change sets."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime

from .documents import Asset, Balance, BalanceSource
from .logging_setup import get_logger
from .paging import PagingToken
from .rows import RawLedgerEntry, RawLedgerEntryChange

logger = get_logger("ledger_indexer.balances")

_BALANCE_ENTRY_TYPES = frozenset({"account", "trustline"})
_EMITTING_CHANGES = frozenset({"created", "updated"})


def _entry_asset(entry: RawLedgerEntry) -> Asset | None:
    if entry.type == "account":
        return Asset.native()
    if entry.asset is None:
        return None
    return Asset.from_raw(entry.asset)


class BalanceExtractor:
    """Filter-and-annotate pass over one change set.

    Each ``created`` or ``updated`` change of a balance-bearing entry (account
    or trustline) becomes one :class:`Balance` carrying the post-change value,
    in input order, without collapsing repeated changes to the same entry.
    ``removed`` changes emit nothing. ``state`` changes are pre-images: they
    emit nothing but let the next emission for that entry carry a ``diff``.

    ``paging_token`` is the base token of the change set; the n-th emitted
    balance (1-based) gets ``aux_order2 = n``.
    """

    def __init__(
        self,
        changes: Sequence[RawLedgerEntryChange],
        *,
        close_time: datetime,
        source: BalanceSource,
        paging_token: PagingToken,
    ) -> None:
        self.changes = changes
        self.close_time = close_time
        self.source = source
        self.paging_token = paging_token

    def extract(self) -> list[Balance]:
        out: list[Balance] = []
        prior: dict[tuple[str, str], int] = {}

        for change in self.changes:
            entry = change.entry
            if entry.type not in _BALANCE_ENTRY_TYPES or entry.account_id is None:
                continue
            asset = _entry_asset(entry)
            if asset is None:
                logger.debug(
                    "balances:skip_trustline_without_asset account=%s token=%s",
                    entry.account_id,
                    self.paging_token,
                )
                continue
            key = (entry.account_id, asset.key)

            if change.type == "removed":
                prior.pop(key, None)
                continue
            if entry.balance is None:
                continue
            if change.type == "state":
                prior[key] = entry.balance
                continue
            if change.type not in _EMITTING_CHANGES:
                continue

            previous = 0 if change.type == "created" else prior.get(key)
            diff = entry.balance - previous if previous is not None else None
            prior[key] = entry.balance

            out.append(
                Balance(
                    paging_token=self.paging_token.with_aux2(len(out) + 1),
                    seq=self.paging_token.ledger_seq,
                    account_id=entry.account_id,
                    asset=asset,
                    balance=entry.balance,
                    source=self.source,
                    close_time=self.close_time,
                    diff=diff,
                )
            )
        return out


def extract_balances(
    changes: Sequence[RawLedgerEntryChange],
    *,
    close_time: datetime,
    source: BalanceSource,
    paging_token: PagingToken,
) -> list[Balance]:
    return BalanceExtractor(
        changes, close_time=close_time, source=source, paging_token=paging_token
    ).extract()


__all__ = ["BalanceExtractor", "extract_balances"]
