from datetime import UTC, datetime, timedelta, timezone

import pytest

from ledger_indexer.documents import (
    AccountFlags,
    Asset,
    Balance,
    BalanceSource,
    LedgerHeader,
    Memo,
    Price,
    PriceError,
    Thresholds,
    Transaction,
    format_time,
)
from ledger_indexer.paging import for_ledger, for_operation_meta, for_transaction
from ledger_indexer.rows import RawAsset, RawMemo

CLOSE = datetime(2019, 3, 1, 12, 30, 5, tzinfo=UTC)


def test_asset_keys():
    assert Asset.native().to_document() == {"code": "native", "key": "native"}
    raw = RawAsset.model_validate({"type": "credit_alphanum4", "code": "USD", "issuer": "GI"})
    usd = Asset.from_raw(raw)
    assert usd == Asset(code="USD", issuer="GI", key="USD-GI")
    assert Asset.from_raw(RawAsset.model_validate("native")) == Asset.native()


def test_credit_asset_without_issuer_is_rejected_at_validation():
    with pytest.raises(ValueError):
        RawAsset.model_validate({"type": "credit_alphanum4", "code": "USD"})


def test_price_decimal_is_exact_ratio():
    assert Price(1, 4).decimal() == 0.25
    assert Price(10, 3).decimal() == pytest.approx(3.3333333333)


def test_price_with_zero_denominator_raises():
    with pytest.raises(PriceError):
        Price(5, 0).decimal()
    assert issubclass(PriceError, ValueError)


def test_thresholds_only_serialize_present_fields():
    assert Thresholds(master=3).to_document() == {"master": 3}
    assert Thresholds(low=0).to_document() == {"low": 0}
    assert Thresholds().is_empty
    assert not Thresholds(high=0).is_empty


def test_account_flags_from_mask():
    assert AccountFlags.from_mask(0).to_document() == {
        "required": False,
        "revocable": False,
        "immutable": False,
    }
    flags = AccountFlags.from_mask(0b101)
    assert (flags.required, flags.revocable, flags.immutable) == (True, False, True)


def test_memo_none_type_means_absent():
    assert Memo.from_raw(None) is None
    assert Memo.from_raw(RawMemo(type="none")) is None
    assert Memo.from_raw(RawMemo(type="id", value=42)) == Memo(type="id", value="42")


def test_close_time_is_rendered_in_utc():
    plus_two = timezone(timedelta(hours=2))
    assert format_time(datetime(2019, 3, 1, 14, 30, 5, tzinfo=plus_two)) == "2019-03-01T12:30:05Z"
    assert format_time(datetime(2019, 3, 1, 12, 30, 5)) == "2019-03-01T12:30:05Z"


def test_identity_and_collection_per_document_type():
    header = LedgerHeader(
        seq=9, hash="h", prev_hash=None, close_time=CLOSE, paging_token=for_ledger(9)
    )
    tx = Transaction(
        id="t",
        index=0,
        seq=9,
        order="9:0",
        close_time=CLOSE,
        paging_token=for_transaction(9, 0),
        successful=True,
        result_code=0,
        source_account_id="GA",
    )
    balance = Balance(
        paging_token=for_operation_meta(9, 0, 0).with_aux2(1),
        seq=9,
        account_id="GA",
        asset=Asset.native(),
        balance=10,
        source=BalanceSource.OPERATION,
        close_time=CLOSE,
    )
    assert (header.INDEX_NAME, header.doc_id) == ("ledgers", "9")
    assert (tx.INDEX_NAME, tx.doc_id) == ("transactions", "9:0")
    assert (balance.INDEX_NAME, balance.doc_id) == ("balances", str(balance.paging_token))

    doc = header.to_document()
    assert "prev_hash" not in doc
    assert doc["close_time"] == "2019-03-01T12:30:05Z"
    assert doc["paging_token"] == "0000000009" + "0" * 12

    bdoc = balance.to_document()
    assert bdoc["source"] == "from-operation"
    assert "diff" not in bdoc
