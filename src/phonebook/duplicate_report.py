from __future__ import annotations

import argparse
import csv
import json
import logging
from typing import Any, Dict, List, Optional, Tuple

import pandas as pd

from .common import load_config
from .config_loader import PhonebookConfig
from .duplicates import DuplicateDetector
from .logging_utils import configure_logging
from .repository import ContactRepository, SqliteContactRepository

logger = logging.getLogger(__name__)

REPORT_COLUMNS = [
    "contact_id",
    "contact_name",
    "contact_phone",
    "contact_email",
    "duplicate_id",
    "duplicate_name",
    "duplicate_phone",
    "duplicate_email",
    "similarity_score",
    "is_exact_match",
    "match_reasons",
]


def build(
    args: argparse.Namespace,
    config: Optional[PhonebookConfig] = None,
    repository: Optional[ContactRepository] = None,
) -> Tuple[pd.DataFrame, Dict[str, Any]]:
    config = config or load_config(args)
    if repository is None:
        repository = SqliteContactRepository(config.storage.database)
    detector = DuplicateDetector(repository, config.dedupe)

    rows: List[Dict[str, Any]] = []
    for contact, result in detector.scan():
        for match in result.duplicates:
            other = match.existing_contact
            rows.append(
                {
                    "contact_id": contact.id,
                    "contact_name": contact.full_name,
                    "contact_phone": contact.phone_number,
                    "contact_email": contact.email or "",
                    "duplicate_id": other.id,
                    "duplicate_name": other.full_name,
                    "duplicate_phone": other.phone_number,
                    "duplicate_email": other.email or "",
                    "similarity_score": round(match.similarity_score, 2),
                    "is_exact_match": match.is_exact_match,
                    "match_reasons": "|".join(match.match_reasons),
                }
            )

    report_df = pd.DataFrame(rows, columns=REPORT_COLUMNS)
    if not report_df.empty:
        report_df = report_df.sort_values(
            ["similarity_score", "contact_id"], ascending=[False, True], kind="mergesort"
        ).reset_index(drop=True)
    return report_df, detector.stats()


def main() -> int:
    parser = argparse.ArgumentParser(description="Report likely duplicate contacts.")
    parser.add_argument("--config", type=str, default=None, help="Path to YAML config.")
    parser.add_argument("--database", type=str, default=None, help="SQLite database path.")
    parser.add_argument("--duplicate-threshold", type=float, default=None)
    parser.add_argument("--exact-match-threshold", type=float, default=None)
    parser.add_argument("--out-dir", type=str, default=None)
    parser.add_argument("--log-level", type=str, default=None, help="Override logging level")
    args = parser.parse_args()

    config = load_config(args)
    configure_logging(config, level_override=args.log_level)

    with SqliteContactRepository(config.storage.database) as repository:
        report_df, stats = build(args, config=config, repository=repository)

    out_dir = config.outputs.dir
    report_path = out_dir / "duplicate_report.csv"
    stats_path = out_dir / "duplicate_stats.json"
    report_df.to_csv(str(report_path), index=False, encoding="utf-8", quoting=csv.QUOTE_ALL)
    with open(stats_path, "w", encoding="utf-8") as handle:
        json.dump(stats, handle, indent=2, ensure_ascii=False)

    logger.info("Potential duplicate groups: %d", stats["total_potential_duplicates"])
    logger.info("Saved: %s", report_path)
    logger.info("Saved: %s", stats_path)

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
