import csv
import json
import logging
import sys
from types import SimpleNamespace

import pandas as pd
import pytest

from phonebook import duplicate_report, import_contacts
from phonebook.common import ensure_candidate, load_config
from phonebook.logging_utils import configure_logging, effective_level_name, level_value
from phonebook.models import CandidateContact
from phonebook.repository import InMemoryContactRepository, SqliteContactRepository
from phonebook.service import ContactService


def _args(**overrides):
    base = dict(
        config=None,
        raw_file=None,
        csv=None,
        database=None,
        enhanced=None,
        relationship_type=None,
        data_owner=None,
        out_dir=None,
        log_level=None,
    )
    base.update(overrides)
    return SimpleNamespace(**base)


def test_load_config_merges_yaml_and_overrides(tmp_path):
    config_path = tmp_path / "phonebook.yaml"
    config_path.write_text(
        "\n".join(
            [
                "storage:",
                "  database: book.db",
                "parser:",
                "  enhanced: true",
                "dedupe:",
                "  phone_weight: 0.5",
                "  exact_match_threshold: 0.9",
                "imports:",
                "  default_relationship_type: Lead",
                "  csv_mapping:",
                "    first_name: First Name",
                "outputs:",
                f"  dir: {tmp_path}",
                "logging:",
                "  level: info",
            ]
        ),
        encoding="utf-8",
    )

    config = load_config(_args(config=str(config_path), phone_weight=0.6, data_owner="ops"))

    assert config.storage.database == "book.db"
    assert config.parser.enhanced is True
    assert config.dedupe.phone_weight == pytest.approx(0.6)
    assert config.dedupe.exact_match_threshold == pytest.approx(0.9)
    assert config.dedupe.email_weight == pytest.approx(0.4)
    assert config.imports.default_relationship_type == "Lead"
    assert config.imports.default_data_owner == "ops"
    assert config.imports.csv_mapping == {"first_name": "First Name"}
    assert config.outputs.dir == tmp_path
    assert config.logging.level == "INFO"


def test_load_config_defaults(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    config = load_config(SimpleNamespace())
    assert config.storage.database is None
    assert config.parser.enhanced is False
    assert config.dedupe.duplicate_threshold == pytest.approx(0.4)
    assert config.outputs.dir.resolve() == tmp_path.resolve()
    assert config.logging.level == "WARNING"


def test_configure_logging_prefers_environment(monkeypatch):
    root = logging.getLogger()
    previous = root.level
    config = load_config(_args(log_level="ERROR"))
    try:
        monkeypatch.setenv("PHONEBOOK_LOG_LEVEL", "debug")
        configure_logging(config, level_override="INFO")
        assert root.level == logging.DEBUG

        monkeypatch.delenv("PHONEBOOK_LOG_LEVEL")
        configure_logging(config, level_override="INFO")
        assert root.level == logging.INFO

        configure_logging(config)
        assert root.level == logging.ERROR
    finally:
        root.setLevel(previous)


def test_level_names_resolve_with_fallback(monkeypatch):
    monkeypatch.delenv("PHONEBOOK_LOG_LEVEL", raising=False)
    config = load_config(_args())
    assert effective_level_name(config) == "WARNING"
    assert effective_level_name(config, " debug ") == "DEBUG"
    assert level_value("INFO") == logging.INFO
    assert level_value("15") == 15
    assert level_value("CHATTY") == logging.WARNING


def test_ensure_candidate():
    contact = CandidateContact(first_name="Ann")
    assert ensure_candidate(contact) is contact
    assert ensure_candidate({"first_name": "Bob"}).first_name == "Bob"
    with pytest.raises(TypeError):
        ensure_candidate(["Ann"])


def test_import_build_reports_every_outcome(tmp_path):
    raw = tmp_path / "contacts.txt"
    raw.write_text(
        "Ann Lee, 415-555-2671, ann@example.com\n"
        "Annie Lee, 415-555-2671\n"
        "hello there friend\n",
        encoding="utf-8",
    )
    export = tmp_path / "export.csv"
    pd.DataFrame(
        [
            {"first_name": "Bob", "last_name": "Ray", "phone_number": "212-555-0100"},
            {"first_name": "NoPhone", "last_name": "", "phone_number": ""},
        ]
    ).to_csv(export, index=False, encoding="utf-8", quoting=csv.QUOTE_ALL)

    repo = InMemoryContactRepository()
    report = import_contacts.build(_args(raw_file=str(raw), csv=str(export)), repository=repo)

    assert list(report.columns) == import_contacts.REPORT_COLUMNS
    assert list(report["status"]) == ["imported", "duplicate", "unparsed", "imported", "error"]
    assert list(report["source"]) == ["Raw Data", "Raw Data", "Raw Data", "CSV", "CSV"]
    assert {c.first_name for c in repo.all()} == {"Ann", "Bob"}
    assert report.iloc[4]["detail"].startswith("row 2: Missing required fields")


def test_import_main_writes_report(tmp_path, monkeypatch):
    raw = tmp_path / "contacts.txt"
    raw.write_text("Ann Lee, 415-555-2671\nBob Ray 212-555-0100\n", encoding="utf-8")
    database = tmp_path / "book.db"
    monkeypatch.setattr(
        sys,
        "argv",
        [
            "phonebook-import",
            "--raw-file",
            str(raw),
            "--database",
            str(database),
            "--out-dir",
            str(tmp_path),
        ],
    )

    assert import_contacts.main() == 0

    report = pd.read_csv(tmp_path / "import_report.csv", dtype=str, keep_default_na=False)
    assert list(report["status"]) == ["imported", "imported"]
    with SqliteContactRepository(str(database)) as repo:
        assert sorted(c.first_name for c in repo.all()) == ["Ann", "Bob"]


def test_duplicate_report_build_and_main(tmp_path, monkeypatch):
    database = tmp_path / "book.db"
    with SqliteContactRepository(str(database)) as repo:
        first = repo.insert(
            CandidateContact(first_name="Ann", last_name="Lee", phone_number="+14155552671")
        )
        second = repo.insert(
            CandidateContact(first_name="Anne", last_name="Lee", phone_number="+14155552671")
        )
        repo.insert(
            CandidateContact(first_name="Bob", last_name="Ray", phone_number="+12125550100")
        )

        report, stats = duplicate_report.build(_args(), repository=repo)

    assert len(report) == 1
    row = report.iloc[0]
    assert row["contact_id"] == first.id
    assert row["duplicate_id"] == second.id
    assert row["similarity_score"] == pytest.approx(0.7)
    assert bool(row["is_exact_match"]) is False
    assert row["match_reasons"] == "Phone number match|Name similarity"
    assert stats["total_potential_duplicates"] == 1

    monkeypatch.setattr(
        sys,
        "argv",
        ["phonebook-duplicates", "--database", str(database), "--out-dir", str(tmp_path)],
    )
    assert duplicate_report.main() == 0
    written = pd.read_csv(tmp_path / "duplicate_report.csv", dtype=str, keep_default_na=False)
    assert list(written["duplicate_id"]) == [str(second.id)]
    stats_written = json.loads((tmp_path / "duplicate_stats.json").read_text(encoding="utf-8"))
    assert stats_written["phone_duplicates"] == [{"phone_number": "+14155552671", "count": 2}]


def test_import_csv_counts_rejected_rows(tmp_path):
    export = tmp_path / "export.csv"
    pd.DataFrame(
        [
            {"first_name": "Bob", "last_name": "Ray", "phone_number": "212-555-0100"},
            {"first_name": "NoPhone", "last_name": "", "phone_number": ""},
            {"first_name": "", "last_name": "Nameless", "phone_number": "415-555-2671"},
        ]
    ).to_csv(export, index=False, encoding="utf-8", quoting=csv.QUOTE_ALL)
    config = load_config(_args())
    service = ContactService(InMemoryContactRepository(), config)

    summary = import_contacts.import_csv(service, str(export), config)

    assert summary.to_dict() == {
        "total": 3,
        "imported": 1,
        "duplicates": 0,
        "errors": 2,
        "failed": 2,
    }
