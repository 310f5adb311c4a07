from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterable, Iterator, List, Optional, Protocol, Sequence, Tuple

from .errors import NotFoundFailure, RepositoryFailure
from .models import CandidateContact, ContactStatus, StoredContact
from .normalization import digits_only
from .similarity import normalize_phone_number

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = (
    "first_name",
    "last_name",
    "phone_number",
    "email",
    "relationship_type",
    "data_owner",
    "source",
    "status",
    "notes",
)

SCHEMA = """
CREATE TABLE IF NOT EXISTS contacts (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    first_name TEXT NOT NULL,
    last_name TEXT,
    phone_number TEXT NOT NULL,
    email TEXT,
    relationship_type TEXT DEFAULT 'Other',
    data_owner TEXT,
    source TEXT NOT NULL,
    status TEXT DEFAULT 'Active',
    notes TEXT,
    created_by INTEGER,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_contacts_phone ON contacts(phone_number);
CREATE INDEX IF NOT EXISTS idx_contacts_email ON contacts(email);
CREATE INDEX IF NOT EXISTS idx_contacts_owner ON contacts(data_owner);
CREATE INDEX IF NOT EXISTS idx_contacts_type ON contacts(relationship_type);
CREATE INDEX IF NOT EXISTS idx_contacts_source ON contacts(source);
"""


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _storable(value: Any) -> Any:
    return value.value if isinstance(value, Enum) else value


@dataclass(frozen=True)
class CandidateQuery:
    """
    Broad prefilter for duplicate detection.

    A stored contact matches when ANY populated predicate holds: the same
    phone string, a phone containing the candidate's normalized or raw
    digits, the exact same email, or a case-insensitive match on first name,
    last name or full name. Repositories decide how to evaluate it.
    """

    phone_number: str = ""
    phone_normalized: str = ""
    phone_digits: str = ""
    email: str = ""
    first_name: str = ""
    last_name: str = ""
    full_name: str = ""
    exclude_id: Optional[int] = None

    @classmethod
    def for_candidate(
        cls, candidate: CandidateContact, exclude_id: Optional[int] = None
    ) -> "CandidateQuery":
        phone = candidate.phone_number or ""
        return cls(
            phone_number=phone,
            phone_normalized=normalize_phone_number(phone) if phone else "",
            phone_digits=digits_only(phone),
            email=candidate.email or "",
            first_name=candidate.first_name or "",
            last_name=candidate.last_name or "",
            full_name=candidate.full_name,
            exclude_id=exclude_id,
        )

    @property
    def has_conditions(self) -> bool:
        return bool(self.phone_number or self.email or self.full_name)

    def phone_patterns(self) -> List[str]:
        return [digits for digits in (self.phone_normalized, self.phone_digits) if digits]

    def matches(self, contact: StoredContact) -> bool:
        if self.exclude_id is not None and contact.id == self.exclude_id:
            return False
        if not self.has_conditions:
            return True
        stored_phone = contact.phone_number or ""
        if self.phone_number:
            if stored_phone == self.phone_number:
                return True
            if any(pattern in stored_phone for pattern in self.phone_patterns()):
                return True
        if self.email and contact.email == self.email:
            return True
        if self.full_name:
            if self.first_name and (contact.first_name or "").lower() == self.first_name.lower():
                return True
            if self.last_name and (contact.last_name or "").lower() == self.last_name.lower():
                return True
            if contact.full_name.lower() == self.full_name.lower():
                return True
        return False


class ContactRepository(Protocol):
    def find_candidates(
        self, candidate: CandidateContact, exclude_id: Optional[int] = None
    ) -> List[StoredContact]:
        ...

    def insert(
        self,
        contact: CandidateContact,
        status: ContactStatus = ContactStatus.ACTIVE,
        notes: Optional[str] = None,
        created_by: Optional[int] = None,
    ) -> StoredContact:
        ...

    def update(self, contact_id: int, fields: Dict[str, Any]) -> StoredContact:
        ...

    def delete_many(self, ids: Iterable[int]) -> int:
        ...

    def get(self, contact_id: int) -> Optional[StoredContact]:
        ...

    def get_many(self, ids: Sequence[int]) -> List[StoredContact]:
        ...

    def all(self) -> List[StoredContact]:
        ...


def _check_fields(fields: Dict[str, Any]) -> Dict[str, Any]:
    unknown = set(fields) - set(UPDATABLE_FIELDS)
    if unknown:
        raise ValueError(f"Unsupported contact field(s): {', '.join(sorted(unknown))}")
    return fields


class InMemoryContactRepository:
    """Dictionary-backed repository with the same semantics as the SQLite one."""

    def __init__(self, contacts: Iterable[StoredContact] = ()):
        self._contacts: Dict[int, StoredContact] = {}
        self._next_id = 1
        for contact in contacts:
            self._contacts[contact.id] = contact
            self._next_id = max(self._next_id, contact.id + 1)

    def _newest_first(self, contacts: Iterable[StoredContact]) -> List[StoredContact]:
        epoch = datetime.min.replace(tzinfo=timezone.utc)

        def sort_key(contact: StoredContact) -> Tuple[datetime, int]:
            created = contact.created_at or epoch
            if created.tzinfo is None:
                created = created.replace(tzinfo=timezone.utc)
            return created, contact.id

        return sorted(contacts, key=sort_key, reverse=True)

    def find_candidates(
        self, candidate: CandidateContact, exclude_id: Optional[int] = None
    ) -> List[StoredContact]:
        query = CandidateQuery.for_candidate(candidate, exclude_id)
        return self._newest_first(c for c in self._contacts.values() if query.matches(c))

    def insert(
        self,
        contact: CandidateContact,
        status: ContactStatus = ContactStatus.ACTIVE,
        notes: Optional[str] = None,
        created_by: Optional[int] = None,
    ) -> StoredContact:
        now = _utcnow()
        stored = StoredContact(
            id=self._next_id,
            first_name=contact.first_name,
            last_name=contact.last_name,
            phone_number=contact.phone_number,
            email=contact.email,
            relationship_type=contact.relationship_type,
            data_owner=contact.data_owner,
            source=contact.source,
            status=ContactStatus.coerce(status),
            notes=notes,
            created_by=created_by,
            created_at=now,
            updated_at=now,
        )
        self._contacts[stored.id] = stored
        self._next_id += 1
        return stored

    def update(self, contact_id: int, fields: Dict[str, Any]) -> StoredContact:
        existing = self._contacts.get(contact_id)
        if existing is None:
            raise NotFoundFailure(contact_id)
        changes = {name: _storable(value) for name, value in _check_fields(fields).items()}
        payload = {**existing.to_dict(), **changes}
        updated = StoredContact.from_mapping(payload)
        updated = replace(updated, created_at=existing.created_at, updated_at=_utcnow())
        self._contacts[contact_id] = updated
        return updated

    def delete_many(self, ids: Iterable[int]) -> int:
        removed = 0
        for contact_id in ids:
            if self._contacts.pop(contact_id, None) is not None:
                removed += 1
        return removed

    def get(self, contact_id: int) -> Optional[StoredContact]:
        return self._contacts.get(contact_id)

    def get_many(self, ids: Sequence[int]) -> List[StoredContact]:
        return [self._contacts[i] for i in ids if i in self._contacts]

    def all(self) -> List[StoredContact]:
        return self._newest_first(self._contacts.values())


class SqliteContactRepository:
    def __init__(self, database: Optional[str] = None):
        self.database = database or ":memory:"
        try:
            self.conn = sqlite3.connect(self.database)
        except sqlite3.Error as exc:
            raise RepositoryFailure(f"Unable to open {self.database}: {exc}") from exc
        self.conn.row_factory = sqlite3.Row
        self.initialize()

    def __enter__(self) -> "SqliteContactRepository":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    @contextmanager
    def _guard(self, action: str) -> Iterator[sqlite3.Connection]:
        try:
            yield self.conn
            self.conn.commit()
        except sqlite3.Error as exc:
            self.conn.rollback()
            logger.error("Query execution error during %s: %s", action, exc)
            raise RepositoryFailure(f"{action} failed: {exc}") from exc

    def initialize(self) -> None:
        with self._guard("schema setup") as conn:
            conn.executescript(SCHEMA)

    def close(self) -> None:
        self.conn.close()

    @staticmethod
    def _to_contact(row: sqlite3.Row) -> StoredContact:
        return StoredContact.from_mapping(dict(row))

    def find_candidates(
        self, candidate: CandidateContact, exclude_id: Optional[int] = None
    ) -> List[StoredContact]:
        query = CandidateQuery.for_candidate(candidate, exclude_id)
        where: List[str] = []
        params: List[Any] = []
        if query.exclude_id is not None:
            where.append("id != ?")
            params.append(query.exclude_id)

        conditions: List[str] = []
        if query.phone_number:
            phone_terms = ["phone_number = ?"]
            params.append(query.phone_number)
            for pattern in query.phone_patterns():
                phone_terms.append("phone_number LIKE ?")
                params.append(f"%{pattern}%")
            conditions.append(f"({' OR '.join(phone_terms)})")
        if query.email:
            conditions.append("email = ?")
            params.append(query.email)
        if query.full_name:
            name_terms = []
            if query.first_name:
                name_terms.append("LOWER(first_name) = LOWER(?)")
                params.append(query.first_name)
            if query.last_name:
                name_terms.append("LOWER(last_name) = LOWER(?)")
                params.append(query.last_name)
            name_terms.append(
                "LOWER(TRIM(first_name || ' ' || COALESCE(last_name, ''))) = LOWER(?)"
            )
            params.append(query.full_name)
            conditions.append(f"({' OR '.join(name_terms)})")
        if conditions:
            where.append(f"({' OR '.join(conditions)})")

        sql = "SELECT * FROM contacts"
        if where:
            sql += " WHERE " + " AND ".join(where)
        sql += " ORDER BY created_at DESC, id DESC"
        with self._guard("candidate lookup") as conn:
            rows = conn.execute(sql, params).fetchall()
        return [self._to_contact(row) for row in rows]

    def insert(
        self,
        contact: CandidateContact,
        status: ContactStatus = ContactStatus.ACTIVE,
        notes: Optional[str] = None,
        created_by: Optional[int] = None,
    ) -> StoredContact:
        now = _utcnow().isoformat()
        with self._guard("insert") as conn:
            cursor = conn.execute(
                """INSERT INTO contacts (
                    first_name, last_name, phone_number, email, relationship_type,
                    data_owner, source, status, notes, created_by, created_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    contact.first_name,
                    contact.last_name,
                    contact.phone_number,
                    contact.email,
                    _storable(contact.relationship_type),
                    contact.data_owner,
                    _storable(contact.source),
                    _storable(ContactStatus.coerce(status)),
                    notes,
                    created_by,
                    now,
                    now,
                ),
            )
            new_id = cursor.lastrowid
        stored = self.get(new_id)
        if stored is None:
            raise RepositoryFailure(f"inserted contact {new_id} could not be read back")
        return stored

    def update(self, contact_id: int, fields: Dict[str, Any]) -> StoredContact:
        _check_fields(fields)
        if self.get(contact_id) is None:
            raise NotFoundFailure(contact_id)
        if fields:
            assignments = ", ".join(f"{name} = ?" for name in fields)
            params = [_storable(value) for value in fields.values()]
            params.extend([_utcnow().isoformat(), contact_id])
            with self._guard("update") as conn:
                conn.execute(
                    f"UPDATE contacts SET {assignments}, updated_at = ? WHERE id = ?", params
                )
        updated = self.get(contact_id)
        if updated is None:
            raise NotFoundFailure(contact_id)
        return updated

    def delete_many(self, ids: Iterable[int]) -> int:
        id_list = list(ids)
        if not id_list:
            return 0
        placeholders = ",".join("?" * len(id_list))
        with self._guard("delete") as conn:
            cursor = conn.execute(f"DELETE FROM contacts WHERE id IN ({placeholders})", id_list)
        return cursor.rowcount

    def get(self, contact_id: int) -> Optional[StoredContact]:
        with self._guard("lookup") as conn:
            row = conn.execute("SELECT * FROM contacts WHERE id = ?", (contact_id,)).fetchone()
        return self._to_contact(row) if row else None

    def get_many(self, ids: Sequence[int]) -> List[StoredContact]:
        id_list = list(ids)
        if not id_list:
            return []
        placeholders = ",".join("?" * len(id_list))
        with self._guard("lookup") as conn:
            rows = conn.execute(
                f"SELECT * FROM contacts WHERE id IN ({placeholders})", id_list
            ).fetchall()
        by_id = {row["id"]: self._to_contact(row) for row in rows}
        return [by_id[i] for i in id_list if i in by_id]

    def all(self) -> List[StoredContact]:
        with self._guard("listing") as conn:
            rows = conn.execute(
                "SELECT * FROM contacts ORDER BY created_at DESC, id DESC"
            ).fetchall()
        return [self._to_contact(row) for row in rows]
