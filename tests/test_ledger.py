import pandas as pd
import pytest

from bankrecon.ledger import infer_instrument, load_collections
from bankrecon.models import CHEQUE, DRAFT, GENERIC, PARSE_FAILURE


@pytest.fixture
def ledger_frame():
    return pd.DataFrame(
        [
            ["C001", "750 000", "12345", "20/06/2025", None],
            ["C003", 2000000, "20/06/2025", "20/06/2025", ""],
            ["C004", 100000, None, "20/06/2025", "Reconciled"],
            ["C005", 50000, None, "2025-06-20", None],
        ],
        columns=["Code Client", "Montant", "No.Chq /Bd", "Date", "Statut"],
    )


def test_load_pending_collections(ledger_frame):
    result = load_collections(ledger_frame)
    assert result.success
    records = result.data
    assert [r.client_code for r in records] == ["C001", "C003", "C005"]

    cheque, draft, generic = records
    assert (cheque.instrument_type, cheque.check_number, cheque.amount) == (CHEQUE, "12345", 750_000)
    assert (draft.instrument_type, draft.draft_due_date, draft.amount) == (DRAFT, "2025-06-20", 2_000_000)
    assert generic.instrument_type == GENERIC
    assert all(r.statement_date == "2025-06-20" for r in records)


def test_explicit_type_column_overrides_inference():
    frame = pd.DataFrame([["C1", 1000, "999", "EFFET", "25/06/2025"]],
                         columns=["Client", "Amount", "No Chq Bd", "Type", "Due Date"])
    [record] = load_collections(frame).data
    assert record.instrument_type == DRAFT
    assert record.draft_due_date == "2025-06-25"


def test_missing_required_columns_fail():
    result = load_collections(pd.DataFrame([[1, 2]], columns=["Foo", "Bar"]))
    assert not result.success
    assert result.errors[0].code == PARSE_FAILURE
    assert "client_code" in result.errors[0].message


def test_reads_csv_files(tmp_path):
    path = tmp_path / "collections.csv"
    path.write_text("Client Code,Amount,Date\nC9,\"1 000\",20/06/2025\n", encoding="utf-8")
    [record] = load_collections(str(path)).data
    assert (record.client_code, record.amount, record.statement_date) == ("C9", 1000, "2025-06-20")


@pytest.mark.parametrize("value,expected", [
    ("20/06/2025", DRAFT),
    ("0045781", CHEQUE),
    (45781.0, CHEQUE),
    ("VIR", GENERIC),
    (None, GENERIC),
])
def test_infer_instrument(value, expected):
    assert infer_instrument(value)["instrument_type"] == expected
