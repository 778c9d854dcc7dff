import io
import json

from ledger_indexer.bulk import BulkMaker, build_ledger_bulk, serialize_for_bulk
from ledger_indexer.paging import for_ledger

from tests.helpers.ledgers import ALICE, BOB, CAROL, busy_ledger, ledger, payment, tx_row
from tests.helpers.sink_stub import parse_bulk


def test_serialize_for_bulk_writes_action_and_source_lines():
    buffer = io.StringIO()
    doc = BulkMaker(ledger(5))._ledger()
    serialize_for_bulk(doc, buffer)
    lines = buffer.getvalue().split("\n")
    assert lines[0] == '{"index":{"_index":"ledgers","_id":"5"}}'
    assert json.loads(lines[1])["paging_token"] == str(for_ledger(5))
    assert lines[2] == ""


def test_empty_ledger_yields_only_the_header():
    payload = build_ledger_bulk(ledger(5))
    docs = parse_bulk(payload)
    assert len(docs) == 1
    action, header = docs[0]
    assert action == {"index": {"_index": "ledgers", "_id": "5"}}
    assert (header["transaction_count"], header["operation_count"]) == (0, 0)


def test_documents_come_out_in_phase_order():
    docs = parse_bulk(build_ledger_bulk(busy_ledger(900)))
    collections = [action["index"]["_index"] for action, _ in docs]
    assert collections == (
        ["ledgers"] + ["transactions"] * 2 + ["operations"] * 3 + ["balances"] * 6
    )
    sources = [doc["source"] for action, doc in docs if action["index"]["_index"] == "balances"]
    assert sources == ["from-operation"] * 4 + ["from-fee"] * 2


def test_busy_ledger_contents():
    docs = [doc for _, doc in parse_bulk(build_ledger_bulk(busy_ledger(900)))]
    header, tx_a, tx_b, op_a0, op_a1, op_b0, *balances = docs

    assert (header["transaction_count"], header["operation_count"]) == (2, 3)
    assert header["protocol_version"] == 10

    assert (tx_a["order"], tx_a["idx"], tx_a["successful"]) == ("900:0", 0, True)
    assert tx_b["source_account_id"] == BOB

    assert op_a0["order"] == "900:0:0" and op_a0["successful"] is True
    assert (op_a1["successful"], op_a1["result_code"]) == (False, -2)
    assert op_b0["type"] == "create_account" and op_b0["tx_source_account_id"] == BOB

    assert [(b["account_id"], b["balance"], b.get("diff")) for b in balances] == [
        (ALICE, 950, -50),
        (BOB, 60, 50),
        (CAROL, 25, None),
        (CAROL, 500, 500),
        (ALICE, 1000, -100),
        (BOB, 60, None),
    ]


def test_paging_tokens_are_unique_and_sort_causes_before_effects():
    docs = [doc for _, doc in parse_bulk(build_ledger_bulk(busy_ledger(900)))]
    tokens = [doc["paging_token"] for doc in docs]
    assert len(set(tokens)) == len(tokens)

    by_token = sorted(docs, key=lambda d: d["paging_token"])

    def kind(doc: dict) -> str:
        if "balance" in doc:
            return "balance"
        if "tx_id" in doc:
            return "op"
        return "tx" if "idx" in doc else "ledger"

    kinds = [kind(d) for d in by_token]
    assert kinds == [
        "ledger",
        "tx", "op", "balance", "balance", "op", "balance", "balance",
        "tx", "op", "balance", "balance",
    ]


def test_bulk_output_is_byte_identical_across_runs():
    assert build_ledger_bulk(busy_ledger(77)) == build_ledger_bulk(busy_ledger(77))


def test_build_reports_document_count():
    record = ledger(
        12, transactions=[tx_row(12, "cc" * 32, operations=[payment(), payment(), payment()])]
    )
    bulk = BulkMaker(record).build()
    assert bulk.seq == 12
    assert bulk.documents == 1 + 1 + 3
    assert bulk.payload.count("\n") == 2 * bulk.documents
