"""
CSV Codec — risk collection ⇄ CSV text.

Export writes a fixed column order. Import is header-driven, so columns may
come in any order and optional columns may be missing. Every imported value is
trimmed and every text field re-sanitized; rows without a title or description
are dropped. A payload that fails the formula-injection check imports nothing.
"""

from __future__ import annotations

import csv
import io
import logging
import math
from collections.abc import Callable, Iterable, Sequence
from datetime import datetime

from pydantic import ValidationError

from riskregister.core.sanitization import sanitize_risk_input, validate_csv_content
from riskregister.core.timestamps import parse_iso, to_iso
from riskregister.models.enums import RiskStatus
from riskregister.models.risk_models import CSVImportResult, Risk

logger = logging.getLogger("riskregister.csv")

CSV_COLUMNS: list[str] = [
    "id",
    "title",
    "description",
    "probability",
    "impact",
    "riskScore",
    "category",
    "status",
    "mitigationPlan",
    "creationDate",
    "lastModified",
]

_NEEDS_QUOTING = (",", '"', "\n", "\r")


def _quote(text: str) -> str:
    return '"' + text.replace('"', '""') + '"'


def _plain(text: str) -> str:
    """Leave a value bare unless it would break the row."""
    if any(ch in text for ch in _NEEDS_QUOTING):
        return _quote(text)
    return text


def export_csv(risks: Iterable[Risk]) -> str:
    """Serialize risks to CSV, one row per risk in collection order."""
    lines = [",".join(CSV_COLUMNS)]
    for risk in risks:
        lines.append(
            ",".join([
                _plain(risk.id),
                _quote(risk.title),
                _quote(risk.description),
                str(risk.probability),
                str(risk.impact),
                str(risk.risk_score),
                _plain(risk.category),
                risk.status.value,
                _quote(risk.mitigation_plan),
                to_iso(risk.creation_date),
                to_iso(risk.last_modified),
            ])
        )
    return "\n".join(lines)


def _cell(row: dict[str | None, object], name: str) -> str:
    value = row.get(name)
    return value.strip() if isinstance(value, str) else ""


def _parse_rating(text: str) -> float:
    """Numeric rating, or 1 when the cell is empty, zero or not a number."""
    try:
        value = float(text)
    except ValueError:
        return 1
    if not math.isfinite(value) or value == 0:
        return 1
    return value


def _parse_status(text: str) -> RiskStatus:
    try:
        return RiskStatus(text.lower())
    except ValueError:
        return RiskStatus.OPEN


def parse_csv(
    csv_text: str,
    *,
    default_category: str,
    id_factory: Callable[[], str],
    clock: Callable[[], datetime],
    existing_ids: Sequence[str] = (),
) -> CSVImportResult:
    """
    Parse CSV text into validated risk records.

    Ids found in the file are kept unless they clash with ``existing_ids`` or
    an earlier row, in which case a fresh id is generated.

    Returns:
        CSVImportResult with the parsed risks (file order), the number of
        rejected rows and whether the payload was refused as an injection.
    """
    if not validate_csv_content(csv_text):
        return CSVImportResult(injection_detected=True)

    reader = csv.DictReader(io.StringIO(csv_text))
    if reader.fieldnames is None:
        return CSVImportResult()
    # spreadsheet exports often start with a byte order mark
    reader.fieldnames = [name.lstrip("\ufeff").strip() for name in reader.fieldnames]

    taken = set(existing_ids)
    risks: list[Risk] = []
    rejected = 0

    try:
        rows = list(reader)
    except csv.Error as e:
        logger.warning(f"CSV parsing error: {e}")
        return CSVImportResult()

    for line_no, row in enumerate(rows, start=2):
        text = sanitize_risk_input({
            "title": _cell(row, "title"),
            "description": _cell(row, "description"),
            "category": _cell(row, "category"),
            "mitigation_plan": _cell(row, "mitigationPlan"),
        })
        if not text["title"] or not text["description"]:
            logger.info(f"CSV row {line_no} dropped: missing title or description")
            rejected += 1
            continue

        risk_id = _cell(row, "id")
        if not risk_id or risk_id in taken:
            if risk_id:
                logger.info(f"CSV row {line_no}: id '{risk_id}' already in use; assigning a new id")
            risk_id = id_factory()
        now = clock()

        try:
            risk = Risk(
                id=risk_id,
                title=text["title"],
                description=text["description"],
                probability=_parse_rating(_cell(row, "probability")),
                impact=_parse_rating(_cell(row, "impact")),
                category=text["category"] or default_category,
                status=_parse_status(_cell(row, "status")),
                mitigation_plan=text["mitigation_plan"],
                creation_date=parse_iso(_cell(row, "creationDate")) or now,
                last_modified=parse_iso(_cell(row, "lastModified")) or now,
            )
        except ValidationError as e:
            logger.info(f"CSV row {line_no} dropped: {e.error_count()} invalid field(s)")
            rejected += 1
            continue

        taken.add(risk.id)
        risks.append(risk)

    if rejected:
        logger.warning(f"CSV import dropped {rejected} malformed row(s)")
    return CSVImportResult(risks=risks, rejected_rows=rejected)
