from datetime import date

import pytest

from lienscout.core.errors import RecordValidationError
from lienscout.core.models import FilingStatus, FilingType
from lienscout.ingestion.normalize import (
    normalize_record,
    normalize_records,
    parse_filing_date,
    parse_lien_amount,
)


def test_camel_case_record():
    filing = normalize_record(
        {
            "id": "NY-2020-001",
            "filingDate": "2020-03-15",
            "debtorName": "Bella Cafe Inc",
            "securedPartyName": "Main Street Bank",
            "status": "Lapsed",
            "filingType": "UCC-3",
            "lienAmount": "$125,000.00",
        },
        region="NY",
    )

    assert filing.id == "NY-2020-001"
    assert filing.filing_date == date(2020, 3, 15)
    assert filing.debtor_name == "Bella Cafe Inc"
    assert filing.secured_party_name == "Main Street Bank"
    assert filing.jurisdiction == "NY"
    assert filing.status == FilingStatus.LAPSED
    assert filing.filing_type == FilingType.UCC_3
    assert filing.lien_amount == 125000.0


def test_snake_case_and_portal_headers():
    filing = normalize_record(
        {
            "file_number": "201903150042",
            "date_filed": "03/15/2019",
            "debtor_name": "Delta Builders",
            "secured_party": "Equipment Finance Co",
            "state": "tx",
            "status": "active",
        },
        region="CA",
    )

    assert filing.id == "201903150042"
    assert filing.filing_date == date(2019, 3, 15)
    assert filing.jurisdiction == "TX"
    assert filing.status == FilingStatus.ACTIVE
    assert filing.filing_type == FilingType.UCC_1
    assert filing.lien_amount is None


def test_missing_id_gets_deterministic_id():
    record = {"filingDate": "2021-01-01", "debtorName": "Acme Corp."}
    first = normalize_record(record, "NY")
    second = normalize_record(dict(record, debtorName="ACME CORP"), "NY")

    assert first.id.startswith("ucc-")
    assert first.id == second.id


@pytest.mark.parametrize("record", [
    {"filingDate": "2021-01-01"},
    {"debtorName": "No Date LLC"},
    {"debtorName": "Bad Date LLC", "filingDate": "not a date"},
    "not a mapping",
])
def test_invalid_records_raise(record):
    with pytest.raises(RecordValidationError):
        normalize_record(record, "NY")


def test_unknown_status_defaults_to_lapsed():
    filing = normalize_record({"debtorName": "X", "filingDate": "2020-01-01", "status": "weird"}, "NY")
    assert filing.status == FilingStatus.LAPSED


@pytest.mark.parametrize("value,expected", [
    (None, None),
    ("", None),
    ("0", None),
    (-5, None),
    ("abc", None),
    ("1,500", 1500.0),
    (2500, 2500.0),
])
def test_parse_lien_amount(value, expected):
    assert parse_lien_amount(value) == expected


def test_parse_filing_date_accepts_date_objects():
    assert parse_filing_date(date(2020, 5, 1)) == date(2020, 5, 1)


def test_batch_skips_invalid_and_dedupes():
    records = [
        {"id": "A", "filingDate": "2020-01-01", "debtorName": "One"},
        {"id": "A", "filingDate": "2020-01-01", "debtorName": "One"},
        {"id": "B", "filingDate": "garbage", "debtorName": "Two"},
        {"id": "C", "filingDate": "2020-02-01", "debtorName": "Three"},
    ]

    filings, skipped = normalize_records(records, "NY")

    assert [f.id for f in filings] == ["A", "C"]
    assert skipped == 1


def test_batch_dedupes_across_calls_with_shared_ids():
    seen = set()
    normalize_records([{"id": "A", "filingDate": "2020-01-01", "debtorName": "One"}], "NY", seen)
    filings, _ = normalize_records([{"id": "A", "filingDate": "2020-01-01", "debtorName": "One"}], "CA", seen)

    assert filings == []
