from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass
from typing import Any, Dict, FrozenSet, Iterable, List, Optional, Set, Tuple

from .config_loader import DedupeConfig
from .models import CandidateContact, DuplicateMatch, DuplicateResult, StoredContact
from .repository import ContactRepository
from .similarity import are_emails_similar, are_names_similar, are_phone_numbers_similar

logger = logging.getLogger(__name__)

PHONE_REASON = "Phone number match"
EMAIL_REASON = "Email match"
NAME_REASON = "Name similarity"


@dataclass
class DuplicateSignals:
    score: float
    reasons: Tuple[str, ...]


class DuplicateScorer:
    def __init__(self, config: Optional[DedupeConfig] = None):
        self.config = config or DedupeConfig()

    def compute(self, candidate: CandidateContact, existing: CandidateContact) -> DuplicateSignals:
        cfg = self.config
        score = 0.0
        reasons: List[str] = []

        if candidate.phone_number and existing.phone_number:
            if are_phone_numbers_similar(
                candidate.phone_number, existing.phone_number, cfg.phone_similarity_threshold
            ):
                score += cfg.phone_weight
                reasons.append(PHONE_REASON)

        if candidate.email and existing.email:
            if are_emails_similar(
                candidate.email, existing.email, cfg.email_local_similarity_threshold
            ):
                score += cfg.email_weight
                reasons.append(EMAIL_REASON)

        if are_names_similar(
            candidate.full_name, existing.full_name, cfg.name_similarity_threshold
        ):
            score += cfg.name_weight
            reasons.append(NAME_REASON)

        return DuplicateSignals(score=score, reasons=tuple(reasons))


class DuplicateDetector:
    """
    Finds stored contacts that likely describe the same person as a candidate.

    The repository supplies a broad, newest-first prefilter; every survivor is
    scored with :class:`DuplicateScorer` and kept when its score reaches
    ``duplicate_threshold``. Matches at or above ``exact_match_threshold`` are
    flagged as exact. Scores are not capped, so all three signals together
    yield 1.1.
    """

    def __init__(self, repository: ContactRepository, config: Optional[DedupeConfig] = None):
        self.repository = repository
        self.config = config or DedupeConfig()
        self.scorer = DuplicateScorer(self.config)

    def detect(
        self, candidate: CandidateContact, exclude_id: Optional[int] = None
    ) -> DuplicateResult:
        existing_contacts = self.repository.find_candidates(candidate, exclude_id=exclude_id)
        logger.debug(
            "Prefilter returned %d contact(s) for %s", len(existing_contacts), candidate.full_name
        )
        matches: List[DuplicateMatch] = []
        for existing in existing_contacts:
            signals = self.scorer.compute(candidate, existing)
            if signals.score < self.config.duplicate_threshold:
                continue
            matches.append(
                DuplicateMatch(
                    existing_contact=existing,
                    similarity_score=signals.score,
                    match_reasons=signals.reasons,
                    is_exact_match=signals.score >= self.config.exact_match_threshold,
                )
            )
        # sorted() is stable, so equal scores keep prefilter order
        matches = sorted(matches, key=lambda match: match.similarity_score, reverse=True)
        return DuplicateResult(duplicates=tuple(matches))

    def scan(
        self, contacts: Optional[Iterable[StoredContact]] = None
    ) -> List[Tuple[StoredContact, DuplicateResult]]:
        corpus = list(contacts) if contacts is not None else self.repository.all()
        corpus.sort(key=lambda contact: contact.id)
        findings: List[Tuple[StoredContact, DuplicateResult]] = []
        reported: Set[FrozenSet[int]] = set()
        for contact in corpus:
            result = self.detect(contact.to_candidate(), exclude_id=contact.id)
            fresh: List[DuplicateMatch] = []
            for match in result.duplicates:
                pair = frozenset((contact.id, match.existing_contact.id))
                if pair in reported:
                    continue
                reported.add(pair)
                fresh.append(match)
            if fresh:
                findings.append((contact, DuplicateResult(duplicates=tuple(fresh))))
        logger.info("Scanned %d contact(s), %d with duplicates", len(corpus), len(findings))
        return findings

    def stats(self) -> Dict[str, Any]:
        contacts = self.repository.all()
        phones = Counter(c.phone_number for c in contacts if c.phone_number)
        emails = Counter(c.email for c in contacts if c.email)
        names = Counter((c.first_name, c.last_name or "") for c in contacts if c.first_name)

        phone_groups = [
            {"phone_number": value, "count": count}
            for value, count in phones.most_common()
            if count > 1
        ]
        email_groups = [
            {"email": value, "count": count} for value, count in emails.most_common() if count > 1
        ]
        name_groups = [
            {"first_name": first, "last_name": last, "count": count}
            for (first, last), count in names.most_common()
            if count > 1
        ]
        return {
            "phone_duplicates": phone_groups,
            "email_duplicates": email_groups,
            "name_duplicates": name_groups,
            "total_potential_duplicates": len(phone_groups) + len(email_groups) + len(name_groups),
        }
