from __future__ import annotations

import re
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional, Tuple


class RelationshipType(str, Enum):
    CLIENT = "Client"
    VENDOR = "Vendor"
    LEAD = "Lead"
    PARTNER = "Partner"
    OTHER = "Other"

    @classmethod
    def coerce(cls, value: Any) -> "RelationshipType":
        if isinstance(value, cls):
            return value
        text = str(value or "").strip().lower()
        for member in cls:
            if member.value.lower() == text:
                return member
        return cls.OTHER

    @classmethod
    def is_known(cls, value: Any) -> bool:
        if isinstance(value, cls):
            return True
        return str(value or "") in {member.value for member in cls}


class ContactSource(str, Enum):
    GMAIL = "Gmail"
    ZOHO = "Zoho"
    CSV = "CSV"
    RAW_DATA = "Raw Data"

    @classmethod
    def coerce(
        cls, value: Any, default: Optional["ContactSource"] = None
    ) -> "ContactSource":
        if isinstance(value, cls):
            return value
        key = re.sub(r"[\s_]+", "", str(value or "").lower())
        for member in cls:
            if member.value.lower().replace(" ", "") == key:
                return member
        return default or cls.RAW_DATA


class ContactStatus(str, Enum):
    ACTIVE = "Active"
    INACTIVE = "Inactive"

    @classmethod
    def coerce(cls, value: Any) -> "ContactStatus":
        if isinstance(value, cls):
            return value
        text = str(value or "").strip().lower()
        return cls.INACTIVE if text == cls.INACTIVE.value.lower() else cls.ACTIVE


def _text(payload: Dict[str, Any], key: str) -> str:
    return str(payload.get(key, "") or "").strip()


def _optional_text(payload: Dict[str, Any], key: str) -> Optional[str]:
    value = _text(payload, key)
    return value or None


def _parse_timestamp(value: Any) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value))


@dataclass
class CandidateContact:
    first_name: str = ""
    last_name: str = ""
    phone_number: str = ""
    email: Optional[str] = None
    relationship_type: RelationshipType = RelationshipType.OTHER
    data_owner: Optional[str] = None
    source: ContactSource = ContactSource.RAW_DATA

    @property
    def full_name(self) -> str:
        return f"{self.first_name or ''} {self.last_name or ''}".strip()

    @classmethod
    def from_mapping(cls, payload: Dict[str, Any]) -> "CandidateContact":
        return cls(
            first_name=_text(payload, "first_name"),
            last_name=_text(payload, "last_name"),
            phone_number=_text(payload, "phone_number"),
            email=_optional_text(payload, "email"),
            relationship_type=RelationshipType.coerce(payload.get("relationship_type")),
            data_owner=_optional_text(payload, "data_owner"),
            source=ContactSource.coerce(payload.get("source")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "first_name": self.first_name,
            "last_name": self.last_name,
            "phone_number": self.phone_number,
            "email": self.email,
            "relationship_type": self.relationship_type.value,
            "data_owner": self.data_owner,
            "source": self.source.value,
        }

    def replace(self, **changes: Any) -> "CandidateContact":
        return replace(self, **changes)


@dataclass
class StoredContact(CandidateContact):
    id: int = 0
    status: ContactStatus = ContactStatus.ACTIVE
    notes: Optional[str] = None
    created_by: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_mapping(cls, payload: Dict[str, Any]) -> "StoredContact":
        return cls(
            id=int(payload.get("id") or 0),
            first_name=_text(payload, "first_name"),
            last_name=_text(payload, "last_name"),
            phone_number=_text(payload, "phone_number"),
            email=_optional_text(payload, "email"),
            relationship_type=RelationshipType.coerce(payload.get("relationship_type")),
            data_owner=_optional_text(payload, "data_owner"),
            source=ContactSource.coerce(payload.get("source")),
            status=ContactStatus.coerce(payload.get("status")),
            notes=payload.get("notes") or None,
            created_by=payload.get("created_by"),
            created_at=_parse_timestamp(payload.get("created_at")),
            updated_at=_parse_timestamp(payload.get("updated_at")),
        )

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update(
            {
                "id": self.id,
                "status": self.status.value,
                "notes": self.notes,
                "created_by": self.created_by,
                "created_at": self.created_at.isoformat() if self.created_at else None,
                "updated_at": self.updated_at.isoformat() if self.updated_at else None,
            }
        )
        return data

    def to_candidate(self) -> CandidateContact:
        return CandidateContact(
            first_name=self.first_name,
            last_name=self.last_name,
            phone_number=self.phone_number,
            email=self.email,
            relationship_type=self.relationship_type,
            data_owner=self.data_owner,
            source=self.source,
        )


@dataclass(frozen=True)
class DuplicateMatch:
    existing_contact: StoredContact
    similarity_score: float
    match_reasons: Tuple[str, ...] = ()
    is_exact_match: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "existing_contact": self.existing_contact.to_dict(),
            "similarity_score": self.similarity_score,
            "match_reasons": list(self.match_reasons),
            "is_exact_match": self.is_exact_match,
        }


@dataclass(frozen=True)
class DuplicateResult:
    duplicates: Tuple[DuplicateMatch, ...] = ()

    @property
    def has_duplicates(self) -> bool:
        return bool(self.duplicates)

    @property
    def total_duplicates(self) -> int:
        return len(self.duplicates)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "has_duplicates": self.has_duplicates,
            "duplicates": [match.to_dict() for match in self.duplicates],
            "total_duplicates": self.total_duplicates,
        }


@dataclass(frozen=True)
class MergeResult:
    merged_contact: StoredContact
    deleted_ids: FrozenSet[int] = frozenset()

    @property
    def deleted_count(self) -> int:
        return len(self.deleted_ids)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "merged_contact": self.merged_contact.to_dict(),
            "deleted_ids": sorted(self.deleted_ids),
            "deleted_count": self.deleted_count,
        }


@dataclass(frozen=True)
class ParseFailure:
    line_number: int
    line: str
    reason: str

    def to_dict(self) -> Dict[str, Any]:
        return {"line_number": self.line_number, "line": self.line, "reason": self.reason}


@dataclass
class ParseReport:
    contacts: List[CandidateContact] = field(default_factory=list)
    failures: List[ParseFailure] = field(default_factory=list)
    total_lines: int = 0


@dataclass
class ValidationResult:
    contact: CandidateContact
    errors: List[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def to_dict(self) -> Dict[str, Any]:
        return {
            "contact": self.contact.to_dict(),
            "is_valid": self.is_valid,
            "errors": list(self.errors),
        }


@dataclass
class ImportSummary:
    total: int = 0
    imported: List[StoredContact] = field(default_factory=list)
    duplicates: List[Tuple[CandidateContact, DuplicateResult]] = field(default_factory=list)
    errors: List[Tuple[Any, str]] = field(default_factory=list)
    parse_failures: List[ParseFailure] = field(default_factory=list)

    @property
    def failed(self) -> int:
        return self.total - len(self.imported) - len(self.duplicates)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total": self.total,
            "imported": len(self.imported),
            "duplicates": len(self.duplicates),
            "errors": len(self.errors),
            "failed": self.failed,
        }

