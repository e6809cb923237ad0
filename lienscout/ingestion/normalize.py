"""
Normalize provider-shaped filing records into NormalizedFiling.

Providers disagree on key casing (filing_date vs filingDate), date formats and
status vocabularies; everything is folded into one representation here.
"""
import logging
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Optional, Tuple

from dateutil import parser as date_parser

from lienscout.core.data_types import NormalizedFiling
from lienscout.core.errors import RecordValidationError
from lienscout.core.models import FilingStatus, FilingType
from lienscout.core.utils import normalize_name, stable_id

logger = logging.getLogger(__name__)

FIELD_ALIASES = {
    "id": ("id", "filing_id", "filingId", "file_number", "fileNumber"),
    "filing_date": ("filing_date", "filingDate", "date_filed", "dateFiled"),
    "debtor_name": ("debtor_name", "debtorName", "debtor"),
    "secured_party_name": ("secured_party_name", "securedPartyName", "secured_party", "securedParty"),
    "lien_amount": ("lien_amount", "lienAmount", "amount"),
    "status": ("status", "filing_status", "filingStatus"),
    "filing_type": ("filing_type", "filingType", "type"),
    "jurisdiction": ("jurisdiction", "state"),
}

STATUS_MAP = {
    "active": FilingStatus.ACTIVE,
    "terminated": FilingStatus.TERMINATED,
    "lapsed": FilingStatus.LAPSED,
    "expired": FilingStatus.LAPSED,
}


def _pick(record: Dict[str, Any], field_name: str) -> Any:
    for key in FIELD_ALIASES[field_name]:
        value = record.get(key)
        if value not in (None, ""):
            return value
    return None


def parse_filing_date(value: Any) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        raise RecordValidationError(f"Unparseable filing date: {value!r}")
    try:
        return date_parser.parse(value).date()
    except (ValueError, OverflowError) as e:
        raise RecordValidationError(f"Unparseable filing date: {value!r}") from e


def parse_lien_amount(value: Any) -> Optional[float]:
    if value is None:
        return None
    if isinstance(value, str):
        value = value.replace("$", "").replace(",", "").strip()
        if not value:
            return None
    try:
        amount = float(value)
    except (TypeError, ValueError):
        logger.debug(f"Ignoring unparseable lien amount {value!r}")
        return None
    return amount if amount > 0 else None


def parse_status(value: Any) -> FilingStatus:
    return STATUS_MAP.get(str(value or "").strip().lower(), FilingStatus.LAPSED)


def parse_filing_type(value: Any) -> FilingType:
    return FilingType.UCC_3 if str(value or "").strip().upper() in ("UCC-3", "UCC3") else FilingType.UCC_1


def normalize_record(record: Dict[str, Any], region: str) -> NormalizedFiling:
    """Build a NormalizedFiling from one raw record. Raises RecordValidationError."""
    if not isinstance(record, dict):
        raise RecordValidationError(f"Expected a mapping, got {type(record).__name__}")

    debtor = str(_pick(record, "debtor_name") or "").strip()
    if not debtor:
        raise RecordValidationError("Record has no debtor name", record)

    raw_date = _pick(record, "filing_date")
    if raw_date is None:
        raise RecordValidationError("Record has no filing date", record)
    filing_date = parse_filing_date(raw_date)

    jurisdiction = str(_pick(record, "jurisdiction") or region).strip().upper()

    filing_id = _pick(record, "id")
    if filing_id is None:
        filing_id = stable_id("ucc", jurisdiction, normalize_name(debtor), filing_date.isoformat())

    return NormalizedFiling(
        id=str(filing_id),
        filing_date=filing_date,
        debtor_name=debtor,
        secured_party_name=str(_pick(record, "secured_party_name") or "").strip(),
        jurisdiction=jurisdiction,
        status=parse_status(_pick(record, "status")),
        filing_type=parse_filing_type(_pick(record, "filing_type")),
        lien_amount=parse_lien_amount(_pick(record, "lien_amount")),
    )


def normalize_records(
    records: Iterable[Dict[str, Any]],
    region: str,
    seen_ids: Optional[set] = None,
) -> Tuple[List[NormalizedFiling], int]:
    """
    Normalize a batch, skipping invalid records and duplicate filing ids.
    Returns (filings, skipped_count). Pass seen_ids to dedupe across calls.
    """
    seen = seen_ids if seen_ids is not None else set()
    filings: List[NormalizedFiling] = []
    skipped = 0

    for record in records:
        try:
            filing = normalize_record(record, region)
        except RecordValidationError as e:
            skipped += 1
            logger.warning(f"Skipping malformed {region} record: {e}")
            continue

        if filing.id in seen:
            logger.debug(f"Duplicate filing {filing.id} dropped")
            continue
        seen.add(filing.id)
        filings.append(filing)

    return filings, skipped
