from __future__ import annotations

import argparse
import csv
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import pandas as pd

from .common import load_config
from .config_loader import PhonebookConfig
from .logging_utils import configure_logging
from .models import CandidateContact, ContactSource, ImportSummary
from .normalization import warn_missing
from .repository import ContactRepository, SqliteContactRepository
from .service import ContactService
from .sources import CSV_FIELDS, load_csv_records

logger = logging.getLogger(__name__)

REPORT_COLUMNS = [
    "status",
    "source",
    "first_name",
    "last_name",
    "phone_number",
    "email",
    "contact_id",
    "detail",
]


def _contact_row(
    status: str, contact: CandidateContact, detail: str = "", **extra: Any
) -> Dict[str, Any]:
    row = {column: "" for column in REPORT_COLUMNS}
    row.update(
        {
            "status": status,
            "source": contact.source.value,
            "first_name": contact.first_name,
            "last_name": contact.last_name,
            "phone_number": contact.phone_number,
            "email": contact.email or "",
            "detail": detail,
        }
    )
    row.update(extra)
    return row


def summary_rows(summary: ImportSummary, source: ContactSource) -> List[Dict[str, Any]]:
    rows: List[Dict[str, Any]] = []
    for stored in summary.imported:
        rows.append(_contact_row("imported", stored, contact_id=stored.id))
    for candidate, result in summary.duplicates:
        matched = ", ".join(str(match.existing_contact.id) for match in result.duplicates)
        rows.append(_contact_row("duplicate", candidate, f"matches contact(s) {matched}"))
    for item, message in summary.errors:
        if isinstance(item, CandidateContact):
            rows.append(_contact_row("error", item, message))
        else:
            row = {column: "" for column in REPORT_COLUMNS}
            row.update({"status": "error", "source": source.value, "detail": message})
            rows.append(row)
    for failure in summary.parse_failures:
        row = {column: "" for column in REPORT_COLUMNS}
        row.update(
            {
                "status": "unparsed",
                "source": source.value,
                "detail": f"line {failure.line_number}: {failure.reason}: {failure.line}",
            }
        )
        rows.append(row)
    return rows


def _csv_mapping(config: PhonebookConfig) -> Dict[str, str]:
    mapping = {name: name for name in CSV_FIELDS}
    mapping.update(config.imports.csv_mapping)
    return mapping


def import_csv(service: ContactService, path: str, config: PhonebookConfig) -> ImportSummary:
    records, errors = load_csv_records(
        path,
        _csv_mapping(config),
        default_relationship_type=config.imports.default_relationship_type,
        default_data_owner=config.imports.default_data_owner,
    )
    summary = service.import_source_records(records, ContactSource.CSV)
    summary.total += len(errors)
    for error in errors:
        summary.errors.append((error["data"], f"row {error['row']}: {error['error']}"))
    return summary


def build(
    args: argparse.Namespace,
    config: Optional[PhonebookConfig] = None,
    repository: Optional[ContactRepository] = None,
) -> pd.DataFrame:
    config = config or load_config(args)
    if repository is None:
        repository = SqliteContactRepository(config.storage.database)
    service = ContactService(repository, config)

    rows: List[Dict[str, Any]] = []
    raw_file = getattr(args, "raw_file", None)
    if raw_file and not warn_missing(raw_file, "Raw text"):
        text = Path(raw_file).read_text(encoding="utf-8")
        summary = service.import_raw_text(text)
        logger.info("Raw text import: %s", summary.to_dict())
        rows.extend(summary_rows(summary, ContactSource.RAW_DATA))

    csv_path = getattr(args, "csv", None)
    if csv_path:
        summary = import_csv(service, csv_path, config)
        logger.info("CSV import: %s", summary.to_dict())
        rows.extend(summary_rows(summary, ContactSource.CSV))

    return pd.DataFrame(rows, columns=REPORT_COLUMNS)


def main() -> int:
    parser = argparse.ArgumentParser(description="Import contacts into a phonebook database.")
    parser.add_argument("--config", type=str, default=None, help="Path to YAML config.")
    parser.add_argument(
        "--raw-file", type=str, default=None, help="Free-form text, one contact per line."
    )
    parser.add_argument("--csv", type=str, default=None, help="CSV export to import.")
    parser.add_argument("--database", type=str, default=None, help="SQLite database path.")
    parser.add_argument("--enhanced", action="store_true", default=None)
    parser.add_argument("--relationship-type", type=str, default=None)
    parser.add_argument("--data-owner", type=str, default=None)
    parser.add_argument("--out-dir", type=str, default=None)
    parser.add_argument("--log-level", type=str, default=None, help="Override logging level")
    args = parser.parse_args()

    config = load_config(args)
    configure_logging(config, level_override=args.log_level)

    with SqliteContactRepository(config.storage.database) as repository:
        report_df = build(args, config=config, repository=repository)

    out_dir = config.outputs.dir
    report_path = out_dir / "import_report.csv"
    report_df.to_csv(str(report_path), index=False, encoding="utf-8", quoting=csv.QUOTE_ALL)
    logger.info("Saved: %s", report_path)

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
