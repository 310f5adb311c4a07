from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from .common import ensure_candidate
from .config_loader import PhonebookConfig
from .duplicates import DuplicateDetector
from .errors import DuplicateConflict, NotFoundFailure, RepositoryFailure, ValidationFailure
from .merge import ContactMerger
from .models import (
    CandidateContact,
    ContactSource,
    ContactStatus,
    DuplicateResult,
    ImportSummary,
    MergeResult,
    RelationshipType,
    StoredContact,
    ValidationResult,
)
from .normalization import is_valid_candidate
from .parser import parse_raw_text_report
from .repository import ContactRepository
from .sources import SourceRecord, candidate_from_record

logger = logging.getLogger(__name__)

INVALID_CANDIDATE = "Missing first name or a phone number with at least 10 digits"

ContactPayload = Union[CandidateContact, Mapping[str, Any]]


def validation_errors(contact: ContactPayload) -> List[str]:
    """Field checks applied before a contact is created or validated for import."""
    if isinstance(contact, CandidateContact):
        payload: Mapping[str, Any] = contact.to_dict()
    else:
        payload = contact
    errors: List[str] = []
    if not str(payload.get("first_name") or "").strip():
        errors.append("First name is required")
    if not str(payload.get("phone_number") or "").strip():
        errors.append("Phone number is required")
    email = payload.get("email")
    if email and "@" not in str(email):
        errors.append("Invalid email format")
    relationship = payload.get("relationship_type")
    if relationship and not RelationshipType.is_known(relationship):
        errors.append("Invalid relationship type")
    return errors


class ContactService:
    """
    Transport-free entry points over a contact repository.

    Parsing, duplicate detection and merging are exposed directly; the
    import helpers combine them the way a bulk import does: invalid
    candidates become errors, candidates with likely duplicates are reported
    instead of stored, and everything else is inserted.
    """

    def __init__(self, repository: ContactRepository, config: Optional[PhonebookConfig] = None):
        self.repository = repository
        self.config = config or PhonebookConfig()
        self.detector = DuplicateDetector(repository, self.config.dedupe)
        self.merger = ContactMerger(repository)

    def parse_raw_text(self, text: Optional[str]) -> List[CandidateContact]:
        return parse_raw_text_report(text, enhanced=self.config.parser.enhanced).contacts

    def detect_duplicates(
        self, candidate: CandidateContact, exclude_id: Optional[int] = None
    ) -> DuplicateResult:
        return self.detector.detect(candidate, exclude_id=exclude_id)

    def merge_contacts(self, primary_id: int, duplicate_ids: Sequence[int]) -> MergeResult:
        return self.merger.merge(primary_id, duplicate_ids)

    def import_candidates(
        self,
        candidates: Iterable[CandidateContact],
        source: Any = None,
        created_by: Optional[int] = None,
    ) -> ImportSummary:
        batch = list(candidates)
        summary = ImportSummary(total=len(batch))
        for candidate in batch:
            if source is not None:
                candidate = candidate.replace(source=ContactSource.coerce(source))
            if not is_valid_candidate(candidate):
                logger.info("Dropping invalid candidate %r", candidate.full_name)
                summary.errors.append((candidate, INVALID_CANDIDATE))
                continue
            result = self.detector.detect(candidate)
            if result.has_duplicates:
                logger.info(
                    "Candidate %r conflicts with %d stored contact(s)",
                    candidate.full_name,
                    result.total_duplicates,
                )
                summary.duplicates.append((candidate, result))
                continue
            try:
                summary.imported.append(self.repository.insert(candidate, created_by=created_by))
            except RepositoryFailure as exc:
                logger.warning("Failed to insert contact %r: %s", candidate.full_name, exc)
                summary.errors.append((candidate, f"Failed to insert contact: {exc}"))
        logger.info(
            "Import finished: %d total, %d imported, %d duplicates, %d errors",
            summary.total,
            len(summary.imported),
            len(summary.duplicates),
            len(summary.errors),
        )
        return summary

    def import_raw_text(
        self, text: Optional[str], created_by: Optional[int] = None
    ) -> ImportSummary:
        report = parse_raw_text_report(text, enhanced=self.config.parser.enhanced)
        summary = self.import_candidates(report.contacts, created_by=created_by)
        summary.parse_failures = list(report.failures)
        return summary

    def import_source_records(
        self,
        records: Iterable[SourceRecord],
        source: Any,
        relationship_type: Optional[str] = None,
        data_owner: Optional[str] = None,
        created_by: Optional[int] = None,
    ) -> ImportSummary:
        imports = self.config.imports
        candidates = [
            candidate_from_record(
                record,
                source,
                relationship_type=relationship_type or imports.default_relationship_type,
                data_owner=data_owner or imports.default_data_owner,
            )
            for record in records
        ]
        return self.import_candidates(candidates, source=source, created_by=created_by)

    def create_contact(
        self,
        candidate: ContactPayload,
        status: ContactStatus = ContactStatus.ACTIVE,
        notes: Optional[str] = None,
        force: bool = False,
        created_by: Optional[int] = None,
    ) -> StoredContact:
        errors = validation_errors(candidate)
        if errors:
            raise ValidationFailure(errors, candidate)
        contact = ensure_candidate(candidate)
        if not force:
            result = self.detector.detect(contact)
            if result.has_duplicates:
                raise DuplicateConflict(result, contact)
        return self.repository.insert(contact, status=status, notes=notes, created_by=created_by)

    def update_contact(
        self, contact_id: int, fields: Dict[str, Any], force: bool = False
    ) -> StoredContact:
        existing = self.repository.get(contact_id)
        if existing is None:
            raise NotFoundFailure(contact_id)
        payload = {**existing.to_dict(), **fields}
        proposed = StoredContact.from_mapping(payload).to_candidate()
        errors = validation_errors(payload)
        if errors:
            raise ValidationFailure(errors, proposed)
        if not force:
            result = self.detector.detect(proposed, exclude_id=contact_id)
            if result.has_duplicates:
                raise DuplicateConflict(result, proposed)
        return self.repository.update(contact_id, fields)

    def validate_import(self, contacts: Iterable[ContactPayload]) -> Dict[str, Any]:
        validation_results: List[ValidationResult] = []
        duplicate_results: List[Tuple[CandidateContact, DuplicateResult]] = []
        for item in contacts:
            candidate = ensure_candidate(item)
            validation = ValidationResult(contact=candidate, errors=validation_errors(item))
            validation_results.append(validation)
            if not validation.is_valid:
                continue
            result = self.detector.detect(candidate)
            if result.has_duplicates:
                duplicate_results.append((candidate, result))
        valid = sum(1 for validation in validation_results if validation.is_valid)
        return {
            "validation_results": validation_results,
            "duplicate_results": duplicate_results,
            "summary": {
                "total": len(validation_results),
                "valid": valid,
                "invalid": len(validation_results) - valid,
                "duplicates": len(duplicate_results),
            },
        }
