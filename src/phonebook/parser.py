from __future__ import annotations

import logging
import re
from typing import Callable, List, Optional, Sequence, Tuple

from .errors import ParseLineFailure
from .models import CandidateContact, ContactSource, ParseFailure, ParseReport, RelationshipType
from .normalization import (
    detect_relationship_type,
    format_phone_number,
    parse_name,
    validate_email,
    validate_parsed_contact,
)

logger = logging.getLogger(__name__)

LineStrategy = Callable[[str], Optional[CandidateContact]]

PHONE_CHAR_PATTERN = re.compile(r"[\d\-()\s]")
RELATIONSHIP_TOKEN_PATTERN = re.compile(r"^(client|vendor|lead|partner|other)$", re.IGNORECASE)
PHONE_PATTERNS = (
    re.compile(r"(\+?\d{1,3}[-.\s]?)?\(?([0-9]{3})\)?[-.\s]?([0-9]{3})[-.\s]?([0-9]{4})"),
    re.compile(r"(\+?\d{1,3}[-.\s]?)?([0-9]{3})[-.\s]?([0-9]{3})[-.\s]?([0-9]{4})"),
)
EMAIL_PATTERN = re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}")
STRAY_PUNCTUATION = re.compile(r"[,;]")
DASH_DELIMITER = " - "


def _parse_delimited(line: str, delimiter: str) -> Optional[CandidateContact]:
    parts = [part.strip() for part in line.split(delimiter)]
    if len(parts) < 2:
        return None
    first, last = parse_name(parts[0])
    contact = CandidateContact(first_name=first, last_name=last)
    if parts[1]:
        contact.phone_number = format_phone_number(parts[1]) or ""
    if len(parts) > 2 and parts[2]:
        contact.email = validate_email(parts[2])
    if len(parts) > 3 and parts[3]:
        contact.relationship_type = detect_relationship_type(parts[3])
    return contact


def parse_comma_separated(line: str) -> Optional[CandidateContact]:
    """``Name, Phone[, Email[, Type]]``"""
    return _parse_delimited(line, ",")


def parse_tab_separated(line: str) -> Optional[CandidateContact]:
    return _parse_delimited(line, "\t")


def parse_space_separated(line: str) -> Optional[CandidateContact]:
    tokens = line.split()
    if len(tokens) < 3:
        return None

    name_parts: List[str] = []
    phone_number: Optional[str] = None
    email: Optional[str] = None
    relationship = RelationshipType.OTHER

    for token in tokens:
        if not phone_number and PHONE_CHAR_PATTERN.search(token):
            phone_number = format_phone_number(token)
        elif not email and "@" in token:
            email = validate_email(token)
        elif RELATIONSHIP_TOKEN_PATTERN.match(token):
            relationship = RelationshipType.coerce(token.title())
        else:
            name_parts.append(token)

    if not name_parts or not phone_number:
        return None

    first, last = parse_name(" ".join(name_parts))
    return CandidateContact(
        first_name=first,
        last_name=last,
        phone_number=phone_number,
        email=email,
        relationship_type=relationship,
    )


def parse_by_pattern(line: str) -> Optional[CandidateContact]:
    phone_match = None
    for pattern in PHONE_PATTERNS:
        phone_match = pattern.search(line)
        if phone_match:
            break
    if phone_match is None:
        return None

    email_match = EMAIL_PATTERN.search(line)
    email = validate_email(email_match.group(0)) if email_match else None

    name_text = line.replace(phone_match.group(0), "", 1)
    if email_match:
        name_text = name_text.replace(email_match.group(0), "", 1)
    name_text = STRAY_PUNCTUATION.sub("", name_text).strip()
    if not name_text:
        return None

    first, last = parse_name(name_text)
    return CandidateContact(
        first_name=first,
        last_name=last,
        phone_number=format_phone_number(phone_match.group(0)) or "",
        email=email,
        relationship_type=RelationshipType.OTHER,
    )


def parse_alternative_formats(line: str) -> Optional[CandidateContact]:
    """``Name - Phone[ - Email]``; only tried on the enhanced path."""
    parts = [part.strip() for part in line.split(DASH_DELIMITER)]
    if len(parts) < 2:
        return None
    first, last = parse_name(parts[0])
    contact = CandidateContact(first_name=first, last_name=last)
    if parts[1]:
        contact.phone_number = format_phone_number(parts[1]) or ""
    if len(parts) > 2 and parts[2]:
        contact.email = validate_email(parts[2])
    return contact


LINE_STRATEGIES: Sequence[Tuple[str, LineStrategy]] = (
    ("comma", parse_comma_separated),
    ("tab", parse_tab_separated),
    ("space", parse_space_separated),
    ("pattern", parse_by_pattern),
)


def parse_contact_line(line: str) -> Optional[CandidateContact]:
    for name, strategy in LINE_STRATEGIES:
        contact = strategy(line)
        if contact is not None:
            logger.debug("Parsed line with %s strategy: %s", name, line)
            return contact
    return None


def _parse_line_checked(line: str, line_number: int, enhanced: bool) -> CandidateContact:
    contact = parse_contact_line(line)
    if contact is None and enhanced:
        contact = parse_alternative_formats(line)
    if contact is None:
        raise ParseLineFailure(line_number, line, "no strategy matched")
    if enhanced:
        if not validate_parsed_contact(contact):
            raise ParseLineFailure(line_number, line, "failed validation")
    elif not (contact.first_name and contact.phone_number):
        raise ParseLineFailure(line_number, line, "missing first name or phone number")
    return contact.replace(source=ContactSource.RAW_DATA)


def parse_raw_text_report(text: Optional[str], enhanced: bool = False) -> ParseReport:
    lines = [line.strip() for line in (text or "").split("\n") if line.strip()]
    report = ParseReport(total_lines=len(lines))
    for line_number, line in enumerate(lines, start=1):
        try:
            report.contacts.append(_parse_line_checked(line, line_number, enhanced))
        except ParseLineFailure as failure:
            logger.warning("Error parsing line %d: %s", line_number, failure.reason)
            report.failures.append(ParseFailure(line_number, line, failure.reason))
        except Exception as exc:
            logger.warning("Error parsing line %d: %s", line_number, exc)
            report.failures.append(ParseFailure(line_number, line, f"error: {exc}"))
    return report


def parse_raw_text(text: Optional[str], enhanced: bool = False) -> List[CandidateContact]:
    return parse_raw_text_report(text, enhanced=enhanced).contacts


def parse_raw_contact_data(text: Optional[str]) -> List[CandidateContact]:
    return parse_raw_text(text, enhanced=False)


def parse_raw_contact_data_enhanced(text: Optional[str]) -> List[CandidateContact]:
    return parse_raw_text(text, enhanced=True)
