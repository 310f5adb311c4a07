from __future__ import annotations

from typing import Any, List, Optional, Sequence

from .models import DuplicateResult


class PhonebookError(Exception):
    """Base class for failures raised by the contact core."""


class ParseLineFailure(PhonebookError):
    def __init__(self, line_number: int, line: str, reason: str):
        super().__init__(f"line {line_number}: {reason}")
        self.line_number = line_number
        self.line = line
        self.reason = reason


class ValidationFailure(PhonebookError):
    def __init__(self, errors: Sequence[str], contact: Any = None):
        self.errors: List[str] = list(errors)
        self.contact = contact
        super().__init__("; ".join(self.errors) or "validation failed")


class DuplicateConflict(PhonebookError):
    def __init__(self, result: DuplicateResult, contact: Any = None):
        self.result = result
        self.contact = contact
        super().__init__(f"{result.total_duplicates} duplicate contact(s) found")


class NotFoundFailure(PhonebookError):
    def __init__(self, contact_id: Any, message: Optional[str] = None):
        self.contact_id = contact_id
        super().__init__(message or f"contact {contact_id} not found")


class RepositoryFailure(PhonebookError):
    """Raised by repositories when the storage engine fails; never retried here."""


__all__ = [
    "DuplicateConflict",
    "NotFoundFailure",
    "ParseLineFailure",
    "PhonebookError",
    "RepositoryFailure",
    "ValidationFailure",
]
