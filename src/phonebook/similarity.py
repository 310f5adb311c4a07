from __future__ import annotations

from typing import Optional

from .normalization import digits_only

NAME_SIMILARITY_THRESHOLD = 0.7
PHONE_SIMILARITY_THRESHOLD = 0.8
EMAIL_LOCAL_SIMILARITY_THRESHOLD = 0.8


def levenshtein_distance(a: str, b: str) -> int:
    if len(a) < len(b):
        a, b = b, a
    previous = list(range(len(b) + 1))
    for i, char_a in enumerate(a, start=1):
        current = [i]
        for j, char_b in enumerate(b, start=1):
            if char_a == char_b:
                current.append(previous[j - 1])
            else:
                current.append(min(previous[j - 1], previous[j], current[j - 1]) + 1)
        previous = current
    return previous[-1]


def calculate_similarity(a: Optional[str], b: Optional[str]) -> float:
    """Case-insensitive edit-distance similarity in ``[0, 1]``."""
    s1 = (a or "").strip().lower()
    s2 = (b or "").strip().lower()
    if s1 == s2:
        return 1.0
    if not s1 or not s2:
        return 0.0
    distance = levenshtein_distance(s1, s2)
    return 1.0 - distance / max(len(s1), len(s2))


def normalize_phone_number(phone: Optional[str]) -> str:
    cleaned = digits_only(phone)
    if len(cleaned) == 11 and cleaned.startswith("1"):
        cleaned = cleaned[1:]
    return cleaned


def are_phone_numbers_similar(
    phone1: Optional[str],
    phone2: Optional[str],
    threshold: float = PHONE_SIMILARITY_THRESHOLD,
) -> bool:
    normalized1 = normalize_phone_number(phone1)
    normalized2 = normalize_phone_number(phone2)
    if not normalized1 or not normalized2:
        return False
    if normalized1 == normalized2:
        return True
    # extension and partial variants
    if normalized1 in normalized2 or normalized2 in normalized1:
        return True
    return calculate_similarity(normalized1, normalized2) > threshold


def are_names_similar(
    name1: Optional[str], name2: Optional[str], threshold: float = NAME_SIMILARITY_THRESHOLD
) -> bool:
    if not name1 or not name2:
        return False
    return calculate_similarity(name1, name2) > threshold


def are_emails_similar(
    email1: Optional[str],
    email2: Optional[str],
    threshold: float = EMAIL_LOCAL_SIMILARITY_THRESHOLD,
) -> bool:
    if not email1 or not email2:
        return False
    if email1.lower() == email2.lower():
        return True
    local1, _, domain1 = email1.partition("@")
    local2, _, domain2 = email2.partition("@")
    if domain1 and domain2 and domain1 == domain2:
        return calculate_similarity(local1, local2) > threshold
    return False
