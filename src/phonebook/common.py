from __future__ import annotations

from typing import Any, Mapping

from .config_loader import PhonebookConfig, load_pipeline_config
from .duplicates import DuplicateDetector, DuplicateScorer
from .merge import ContactMerger, merge_records
from .models import (
    CandidateContact,
    ContactSource,
    ContactStatus,
    DuplicateMatch,
    DuplicateResult,
    MergeResult,
    RelationshipType,
    StoredContact,
)
from .normalization import (
    detect_relationship_type,
    format_phone_number,
    parse_name,
    read_csv_frame,
    safe_get,
    validate_email,
    validate_parsed_contact,
    warn_missing,
)
from .parser import parse_raw_text
from .repository import InMemoryContactRepository, SqliteContactRepository
from .similarity import calculate_similarity

__all__ = [
    "CandidateContact",
    "ContactMerger",
    "ContactSource",
    "ContactStatus",
    "DuplicateDetector",
    "DuplicateMatch",
    "DuplicateResult",
    "DuplicateScorer",
    "InMemoryContactRepository",
    "MergeResult",
    "PhonebookConfig",
    "RelationshipType",
    "SqliteContactRepository",
    "StoredContact",
    "calculate_similarity",
    "detect_relationship_type",
    "ensure_candidate",
    "format_phone_number",
    "load_config",
    "load_pipeline_config",
    "merge_records",
    "parse_name",
    "parse_raw_text",
    "read_csv_frame",
    "safe_get",
    "validate_email",
    "validate_parsed_contact",
    "warn_missing",
]


def load_config(args: Any) -> PhonebookConfig:
    return load_pipeline_config(args)


def ensure_candidate(obj: Any) -> CandidateContact:
    if isinstance(obj, CandidateContact):
        return obj
    if isinstance(obj, Mapping):
        return CandidateContact.from_mapping(dict(obj))
    raise TypeError(f"Unsupported contact payload type: {type(obj)!r}")
