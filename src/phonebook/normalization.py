from __future__ import annotations

import logging
import os
import re
from typing import Any, Optional, Sequence, Tuple

import pandas as pd

from .models import CandidateContact, RelationshipType

logger = logging.getLogger(__name__)

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
NON_DIGIT_RE = re.compile(r"\D")
MIN_PHONE_DIGITS = 10

# Checked in order; the first rule with a matching keyword wins.
RELATIONSHIP_KEYWORDS: Sequence[Tuple[RelationshipType, Tuple[str, ...]]] = (
    (RelationshipType.CLIENT, ("client", "customer")),
    (RelationshipType.VENDOR, ("vendor", "supplier")),
    (RelationshipType.LEAD, ("lead", "prospect")),
    (RelationshipType.PARTNER, ("partner", "associate")),
)


def digits_only(value: Optional[str]) -> str:
    return NON_DIGIT_RE.sub("", value or "")


def format_phone_number(raw: Optional[str]) -> Optional[str]:
    """
    Best-effort international formatting of a phone number.

    Ten digits are treated as North American (``+1`` prefix), eleven digits
    starting with ``1`` and twelve starting with ``91`` get a bare ``+``, and
    any other run of at least ten digits is treated as an international
    number. Shorter inputs come back unmodified so callers never lose data;
    check the digit count before trusting the result.
    """
    if not raw:
        return None
    cleaned = digits_only(raw)
    if len(cleaned) == 10:
        return f"+1{cleaned}"
    if len(cleaned) == 11 and cleaned.startswith("1"):
        return f"+{cleaned}"
    if len(cleaned) == 12 and cleaned.startswith("91"):
        return f"+{cleaned}"
    if len(cleaned) >= MIN_PHONE_DIGITS:
        return f"+{cleaned}"
    return raw


def validate_email(raw: Optional[str]) -> Optional[str]:
    if not raw:
        return None
    return raw if EMAIL_RE.match(raw) else None


def parse_name(text: Optional[str]) -> Tuple[str, str]:
    tokens = (text or "").split()
    if not tokens:
        return "", ""
    if len(tokens) == 1:
        return tokens[0], ""
    return tokens[0], " ".join(tokens[1:])


def detect_relationship_type(text: Optional[str]) -> RelationshipType:
    if not text:
        return RelationshipType.OTHER
    lowered = text.lower()
    for relationship, keywords in RELATIONSHIP_KEYWORDS:
        if any(keyword in lowered for keyword in keywords):
            return relationship
    return RelationshipType.OTHER


def has_valid_phone_length(phone: Optional[str]) -> bool:
    return len(digits_only(phone)) >= MIN_PHONE_DIGITS


def validate_parsed_contact(contact: CandidateContact) -> bool:
    if not contact.first_name or not contact.phone_number:
        return False
    if not has_valid_phone_length(contact.phone_number):
        return False
    if contact.email and "@" not in contact.email:
        return False
    return True


def is_valid_candidate(contact: CandidateContact) -> bool:
    return bool(contact.first_name) and has_valid_phone_length(contact.phone_number)


def read_csv_frame(path: Optional[str]) -> pd.DataFrame:
    """Read a CSV export with every cell as a string and blanks kept as ``""``."""
    if not path:
        return pd.DataFrame()
    return pd.read_csv(path, dtype=str, keep_default_na=False)


def _coerce_to_string(value: Any) -> str:
    if pd.isna(value):
        return ""
    return str(value or "").strip()


def safe_get(row: Any, key: Optional[str]) -> str:
    if not key:
        return ""
    try:
        return _coerce_to_string(row.get(key, ""))
    except (AttributeError, KeyError, TypeError):
        try:
            if hasattr(row, "__contains__") and key in row:
                return _coerce_to_string(row[key])
            return ""
        except (KeyError, TypeError, AttributeError):
            return ""


def warn_missing(path: Optional[str], label: str) -> bool:
    if not path or not os.path.exists(path):
        logger.warning("%s path missing: %s", label, path)
        return True
    return False
