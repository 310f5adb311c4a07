import logging

from phonebook import parser
from phonebook.models import ContactSource, RelationshipType
from phonebook.normalization import format_phone_number
from phonebook.parser import (
    parse_alternative_formats,
    parse_by_pattern,
    parse_contact_line,
    parse_raw_contact_data,
    parse_raw_contact_data_enhanced,
    parse_raw_text,
    parse_raw_text_report,
    parse_space_separated,
)


def test_comma_line():
    contact = parse_contact_line("John Doe, +1-123-456-7890, john@example.com, Client")
    assert contact.first_name == "John"
    assert contact.last_name == "Doe"
    assert contact.phone_number == "+11234567890"
    assert contact.email == "john@example.com"
    assert contact.relationship_type is RelationshipType.CLIENT


def test_comma_line_drops_invalid_email():
    contact = parse_contact_line("John Doe, 415-555-2671, john-at-example")
    assert contact.email is None
    assert contact.relationship_type is RelationshipType.OTHER


def test_tab_line():
    contact = parse_contact_line("Mary Jane Watson\t(212) 555-0100\tmj@daily.com\tsupplier")
    assert (contact.first_name, contact.last_name) == ("Mary", "Jane Watson")
    assert contact.phone_number == "+12125550100"
    assert contact.email == "mj@daily.com"
    assert contact.relationship_type is RelationshipType.VENDOR


def test_space_line():
    contact = parse_contact_line("Jane Smith 987-654-3210")
    assert contact.first_name == "Jane"
    assert contact.last_name == "Smith"
    assert contact.phone_number == format_phone_number("987-654-3210")
    assert contact.email is None
    assert contact.relationship_type is RelationshipType.OTHER


def test_space_line_with_email_and_type():
    contact = parse_space_separated("Bob Jones 5551234567 bob@example.com vendor")
    assert contact.full_name == "Bob Jones"
    assert contact.phone_number == "+15551234567"
    assert contact.email == "bob@example.com"
    assert contact.relationship_type is RelationshipType.VENDOR


def test_space_line_needs_three_tokens_and_a_phone():
    assert parse_space_separated("Jane 9876543210") is None
    assert parse_space_separated("just some words") is None


def test_pattern_strategy():
    contact = parse_by_pattern("Alice Wong (555) 123-4567 alice@example.com")
    assert (contact.first_name, contact.last_name) == ("Alice", "Wong")
    assert contact.phone_number == "+15551234567"
    assert contact.email == "alice@example.com"
    assert contact.relationship_type is RelationshipType.OTHER


def test_pattern_strategy_needs_name_and_phone():
    assert parse_by_pattern("no phone here") is None
    assert parse_by_pattern("555-123-4567;") is None


def test_dash_strategy():
    contact = parse_alternative_formats("Carol King - 555-987-6543 - carol@example.com")
    assert contact.full_name == "Carol King"
    assert contact.phone_number == "+15559876543"
    assert contact.email == "carol@example.com"
    assert parse_alternative_formats("Carol King") is None


def test_unmatched_line_returns_none():
    assert parse_contact_line("hello") is None


def test_batch_skips_malformed_line():
    text = "\n".join(
        [
            "John Doe, 555-123-4567",
            "",
            "   ",
            "nonsense words here",
            "Jane Smith 987-654-3210",
            "Bob Lee, 5551112222, bob@example.com",
        ]
    )
    report = parse_raw_text_report(text)
    assert [c.first_name for c in report.contacts] == ["John", "Jane", "Bob"]
    assert report.total_lines == 4
    assert len(report.failures) == 1
    failure = report.failures[0]
    assert failure.line_number == 2
    assert failure.line == "nonsense words here"
    assert failure.reason == "no strategy matched"
    assert all(c.source is ContactSource.RAW_DATA for c in report.contacts)
    assert parse_raw_text(text) == report.contacts


def test_enhanced_batch_rejects_short_phone():
    text = "Tim, 12345\nAnn Lee, 415-555-2671, ann.example.com"
    basic = parse_raw_contact_data(text)
    assert [c.first_name for c in basic] == ["Tim", "Ann"]

    report = parse_raw_text_report(text, enhanced=True)
    assert [c.first_name for c in report.contacts] == ["Ann"]
    assert report.contacts[0].email is None
    assert [(f.line_number, f.reason) for f in report.failures] == [(1, "failed validation")]
    assert parse_raw_contact_data_enhanced("Tim, 12345") == []


def test_basic_batch_reports_missing_phone():
    report = parse_raw_text_report("Solo, , solo@example.com")
    assert report.contacts == []
    assert report.failures[0].reason == "missing first name or phone number"


def test_line_that_raises_is_skipped(monkeypatch, caplog):
    def boom(line):
        if line.startswith("bad"):
            raise ValueError("boom")
        return None

    strategies = (("boom", boom),) + tuple(parser.LINE_STRATEGIES)
    monkeypatch.setattr(parser, "LINE_STRATEGIES", strategies)

    with caplog.at_level(logging.WARNING, logger="phonebook.parser"):
        report = parse_raw_text_report("bad line\nJohn Doe, 555-123-4567")

    assert [c.first_name for c in report.contacts] == ["John"]
    assert report.failures[0].reason == "error: boom"
    assert "Error parsing line 1" in caplog.text


def test_empty_input():
    assert parse_raw_text(None) == []
    assert parse_raw_text_report("\n\n").total_lines == 0


def test_unmatched_line_logs_a_warning(caplog):
    with caplog.at_level(logging.WARNING, logger="phonebook.parser"):
        report = parse_raw_text_report("John Doe, 555-123-4567\nnothing useful here")

    assert [f.line_number for f in report.failures] == [2]
    assert "Error parsing line 2: no strategy matched" in caplog.text
