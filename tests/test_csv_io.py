import pytest

from moneytracker.csv_io import (
    ImportFormatError,
    employees_to_csv,
    incoming_to_csv,
    ledger_from_json,
    ledger_to_json,
    normalize_key,
    outgoing_to_csv,
    read_csv_rows,
)
from moneytracker.schemas import Employee, Ledger, Transaction


@pytest.fixture()
def ledger():
    return Ledger(
        employees=[Employee(id="e1", name="Ravi", cut_type="flat", cut_value=50)],
        transactions=[
            Transaction(id="t1", type="outgoing", employee_id="e1", amount=1000, date="2024-01-09",
                        mode="UPI", ref="401234567890", note="stock", cut_override=75, created_at=1),
            Transaction(id="t2", type="return", amount=925.5, date="2024-01-10", source="Ravi, via office",
                        created_at=2),
        ],
    )


def test_normalize_key():
    assert normalize_key("Cut Type") == normalize_key("cut_type") == normalize_key("cutType") == "cuttype"


def test_read_csv_rows_strips_bom_and_blank_rows():
    rows = read_csv_rows("\ufeffName,Cut Type\nRavi,flat\n,\n")
    assert rows == [{"name": "Ravi", "cuttype": "flat"}]


def test_read_csv_rows_empty():
    assert read_csv_rows("") == []


def test_employees_export(ledger):
    assert employees_to_csv(ledger) == '"name","cut_type","cut_value"\n"Ravi","flat","50"\n'


def test_outgoing_export_uses_employee_name(ledger):
    lines = outgoing_to_csv(ledger).splitlines()
    assert lines[0] == '"date","time","employee","amount","mode","ref","note","cut","image_url"'
    assert lines[1] == '"2024-01-09","","Ravi","1000","UPI","401234567890","stock","75",""'
    assert len(lines) == 2


def test_incoming_export_quotes_commas(ledger):
    lines = incoming_to_csv(ledger).splitlines()
    assert lines[1] == '"2024-01-10","","925.5","","","Ravi, via office","",""'


def test_json_round_trip(ledger):
    text = ledger_to_json(ledger)
    assert '"cutType": "flat"' in text
    assert '"employeeId": "e1"' in text
    assert ledger_from_json(text) == ledger


@pytest.mark.parametrize("text,message", [
    ("{not json", "Failed to parse JSON."),
    ('{"employees": {}}', "Invalid JSON structure."),
    ("[]", "Invalid JSON structure."),
])
def test_bad_json_is_rejected(text, message):
    with pytest.raises(ImportFormatError) as exc:
        ledger_from_json(text)
    assert str(exc.value) == message


def test_json_with_invalid_transaction_is_rejected():
    bad = '{"employees": [], "transactions": [{"id": "x", "type": "gift", "amount": 1}]}'
    with pytest.raises(ImportFormatError):
        ledger_from_json(bad)
