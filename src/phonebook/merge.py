from __future__ import annotations

import logging
from dataclasses import replace
from typing import Iterable, List, Optional, Sequence

from .errors import NotFoundFailure
from .models import MergeResult, StoredContact
from .repository import ContactRepository

logger = logging.getLogger(__name__)

FILL_FIELDS = (
    "first_name",
    "last_name",
    "phone_number",
    "email",
    "relationship_type",
    "data_owner",
)
NOTES_SEPARATOR = "\n\n"


def merged_note(contact_id: int, notes: str) -> str:
    return f"Merged from contact ID {contact_id}: {notes}"


def merge_records(primary: StoredContact, duplicates: Iterable[StoredContact]) -> StoredContact:
    """
    Fold ``duplicates`` into ``primary`` without touching storage.

    A field on the primary is only filled when it is empty; the first
    duplicate (in iteration order) that has a value wins. Notes from every
    duplicate are appended, each prefixed with the id it came from.
    """
    merged = primary
    for duplicate in duplicates:
        changes = {}
        for name in FILL_FIELDS:
            if not getattr(merged, name) and getattr(duplicate, name):
                changes[name] = getattr(duplicate, name)
        if duplicate.notes:
            note = merged_note(duplicate.id, duplicate.notes)
            changes["notes"] = f"{merged.notes}{NOTES_SEPARATOR}{note}" if merged.notes else note
        if changes:
            merged = replace(merged, **changes)
    return merged


class ContactMerger:
    def __init__(self, repository: ContactRepository):
        self.repository = repository

    def _load_duplicates(
        self, primary_id: int, duplicate_ids: Sequence[int]
    ) -> List[StoredContact]:
        wanted: List[int] = []
        for contact_id in duplicate_ids:
            if contact_id == primary_id or contact_id in wanted:
                continue
            wanted.append(contact_id)
        found = self.repository.get_many(wanted)
        found_ids = {contact.id for contact in found}
        for contact_id in wanted:
            if contact_id not in found_ids:
                logger.warning("Duplicate contact %d not found; skipping", contact_id)
        return found

    def merge(self, primary_id: int, duplicate_ids: Sequence[int]) -> MergeResult:
        primary: Optional[StoredContact] = self.repository.get(primary_id)
        if primary is None:
            raise NotFoundFailure(primary_id, "Primary contact not found")

        duplicates = self._load_duplicates(primary_id, duplicate_ids)
        merged = merge_records(primary, duplicates)

        fields = {name: getattr(merged, name) for name in FILL_FIELDS}
        fields["notes"] = merged.notes
        # update then delete; a failure in between leaves the duplicates in place
        updated = self.repository.update(primary_id, fields)
        deleted_ids = frozenset(contact.id for contact in duplicates)
        self.repository.delete_many(sorted(deleted_ids))
        logger.info("Merged %d contact(s) into %d", len(deleted_ids), primary_id)
        return MergeResult(merged_contact=updated, deleted_ids=deleted_ids)
