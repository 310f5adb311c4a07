"""Map records from external contact sources onto candidates.

Only the record shapes are handled here: a CSV export with a caller-supplied
column mapping, a Google People API ``person`` resource and a Zoho CRM
``Contacts`` record. Fetching them over the network is left to callers.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, NamedTuple, Optional, Tuple

from .models import CandidateContact, ContactSource, RelationshipType
from .normalization import (
    format_phone_number,
    read_csv_frame,
    safe_get,
    validate_email,
    warn_missing,
)

logger = logging.getLogger(__name__)

CSV_FIELDS = (
    "first_name",
    "last_name",
    "phone_number",
    "email",
    "relationship_type",
    "data_owner",
)
MISSING_REQUIRED = "Missing required fields (first_name or phone_number)"

LEAD_SOURCE_KEYWORDS = (
    (RelationshipType.CLIENT, ("client", "customer")),
    (RelationshipType.VENDOR, ("vendor", "supplier")),
    (RelationshipType.LEAD, ("lead", "prospect")),
    (RelationshipType.PARTNER, ("partner",)),
)


class SourceRecord(NamedTuple):
    first_name: str
    last_name: str
    email: str
    phone_number: str
    relationship_type: Optional[str] = None
    data_owner: Optional[str] = None


def load_csv_records(
    path: str,
    field_mapping: Dict[str, str],
    default_relationship_type: str = "Other",
    default_data_owner: Optional[str] = None,
) -> Tuple[List[SourceRecord], List[Dict[str, Any]]]:
    """
    Read ``path`` and map its columns onto contact fields.

    ``field_mapping`` maps a contact field name to the CSV column holding it.
    Rows without a first name or phone number are returned as error entries
    ``{"row", "error", "data"}`` instead of records.
    """
    if warn_missing(path, "CSV"):
        return [], []
    frame = read_csv_frame(path)
    records: List[SourceRecord] = []
    errors: List[Dict[str, Any]] = []
    for _, row in frame.iterrows():
        values = {name: safe_get(row, field_mapping.get(name)) for name in CSV_FIELDS}
        if not values["first_name"] or not values["phone_number"]:
            errors.append(
                {"row": len(records) + 1, "error": MISSING_REQUIRED, "data": row.to_dict()}
            )
            continue
        records.append(
            SourceRecord(
                first_name=values["first_name"],
                last_name=values["last_name"],
                email=values["email"],
                phone_number=values["phone_number"],
                relationship_type=values["relationship_type"] or default_relationship_type,
                data_owner=values["data_owner"] or default_data_owner,
            )
        )
    logger.info("Loaded %d record(s) from %s, %d rejected", len(records), path, len(errors))
    return records, errors


def _pick_primary(entries: List[Dict[str, Any]]) -> Dict[str, Any]:
    for entry in entries:
        if (entry.get("metadata") or {}).get("primary"):
            return entry
    return entries[0]


def _pick_phone(entries: List[Dict[str, Any]]) -> Dict[str, Any]:
    for entry in entries:
        metadata = entry.get("metadata") or {}
        if metadata.get("primary"):
            return entry
        if (metadata.get("source") or {}).get("type") == "PROFILE":
            return entry
        if "mobile" in str(entry.get("formattedType") or "").lower():
            return entry
    return entries[0]


def parse_gmail_person(person: Dict[str, Any]) -> Optional[SourceRecord]:
    first_name = last_name = email = phone = ""

    names = person.get("names") or []
    if names:
        first_name = names[0].get("givenName") or ""
        last_name = names[0].get("familyName") or ""

    emails = person.get("emailAddresses") or []
    if emails:
        email = _pick_primary(emails).get("value") or ""

    phones = person.get("phoneNumbers") or []
    if phones:
        chosen = _pick_phone(phones)
        phone = chosen.get("canonicalForm") or chosen.get("value") or ""

    if not (first_name or last_name or email):
        return None
    return SourceRecord(first_name, last_name, email, phone)


def relationship_from_lead_source(lead_source: Optional[str]) -> RelationshipType:
    text = (lead_source or "").lower()
    for relationship, keywords in LEAD_SOURCE_KEYWORDS:
        if any(keyword in text for keyword in keywords):
            return relationship
    return RelationshipType.OTHER


def parse_zoho_record(record: Dict[str, Any]) -> Optional[SourceRecord]:
    first_name = record.get("First_Name") or ""
    last_name = record.get("Last_Name") or ""
    email = record.get("Email") or ""
    if not (first_name or last_name or email):
        return None
    return SourceRecord(
        first_name=first_name,
        last_name=last_name,
        email=email,
        phone_number=record.get("Phone") or "",
        relationship_type=relationship_from_lead_source(record.get("Lead_Source")).value,
    )


def candidate_from_record(
    record: SourceRecord,
    source: Any,
    relationship_type: Optional[str] = None,
    data_owner: Optional[str] = None,
) -> CandidateContact:
    """The record's own relationship type and owner win over the defaults given here."""
    return CandidateContact(
        first_name=(record.first_name or "").strip(),
        last_name=(record.last_name or "").strip(),
        phone_number=format_phone_number(record.phone_number) or "",
        email=validate_email(record.email),
        relationship_type=RelationshipType.coerce(record.relationship_type or relationship_type),
        data_owner=record.data_owner or data_owner,
        source=ContactSource.coerce(source, default=ContactSource.CSV),
    )
