import pytest

from phonebook.config_loader import DedupeConfig
from phonebook.duplicates import DuplicateDetector, DuplicateScorer
from phonebook.models import CandidateContact
from phonebook.repository import InMemoryContactRepository, SqliteContactRepository


def _contact(first="", last="", phone="", email=None):
    return CandidateContact(first_name=first, last_name=last, phone_number=phone, email=email)


@pytest.fixture
def repo():
    return InMemoryContactRepository()


def test_phone_only_match_is_not_exact(repo):
    repo.insert(_contact("Alice", "Anders", "+15551234567"))
    result = DuplicateDetector(repo).detect(_contact("Zed", "Quinn", "555-123-4567"))

    assert result.has_duplicates
    assert result.total_duplicates == 1
    match = result.duplicates[0]
    assert match.similarity_score == pytest.approx(0.4)
    assert match.match_reasons == ("Phone number match",)
    assert match.is_exact_match is False


def test_phone_and_email_match_is_exact(repo):
    repo.insert(_contact("Alice", "Anders", "+15551234567", "alice@example.com"))
    result = DuplicateDetector(repo).detect(_contact("", "", "+15551234567", "alice@example.com"))

    match = result.duplicates[0]
    assert match.similarity_score == pytest.approx(0.8)
    assert match.match_reasons == ("Phone number match", "Email match")
    assert match.is_exact_match is True


def test_all_signals_score_above_one(repo):
    repo.insert(_contact("Alice", "Anders", "+15551234567", "alice@example.com"))
    result = DuplicateDetector(repo).detect(
        _contact("Alice", "Anders", "(555) 123-4567", "ALICE@example.com")
    )
    match = result.duplicates[0]
    assert match.similarity_score == pytest.approx(1.1)
    assert match.match_reasons == ("Phone number match", "Email match", "Name similarity")


def test_name_only_match_is_below_threshold(repo):
    repo.insert(_contact("Alice", "Anders", "+15551234567"))
    result = DuplicateDetector(repo).detect(_contact("Alice", "Anders", "+19998887777"))
    assert not result.has_duplicates
    assert result.duplicates == ()


def test_results_sorted_by_score_with_ties_newest_first(repo):
    older = repo.insert(_contact("Bob", "Ray", "+15551234567"))
    newer = repo.insert(_contact("Cy", "Doe", "+15551234567"))
    strong = repo.insert(_contact("Zed", "Quinn", "+15551234567", "zq@example.com"))

    result = DuplicateDetector(repo).detect(_contact("Zed", "Quinn", "5551234567"))
    ids = [match.existing_contact.id for match in result.duplicates]
    assert ids == [strong.id, newer.id, older.id]
    assert [m.similarity_score for m in result.duplicates] == pytest.approx([0.7, 0.4, 0.4])


def test_exclude_id_skips_the_record_itself(repo):
    stored = repo.insert(_contact("Alice", "Anders", "+15551234567"))
    detector = DuplicateDetector(repo)
    assert not detector.detect(stored.to_candidate(), exclude_id=stored.id).has_duplicates
    assert detector.detect(stored.to_candidate()).has_duplicates


def test_custom_weights_and_thresholds():
    config = DedupeConfig(phone_weight=0.5, duplicate_threshold=0.6)
    scorer = DuplicateScorer(config)
    signals = scorer.compute(
        _contact("Zed", "Quinn", "+15551234567"), _contact("Alice", "Anders", "5551234567")
    )
    assert signals.score == pytest.approx(0.5)

    repo = InMemoryContactRepository()
    repo.insert(_contact("Alice", "Anders", "+15551234567"))
    result = DuplicateDetector(repo, config).detect(_contact("Zed", "Quinn", "5551234567"))
    assert not result.has_duplicates


def test_scan_reports_each_pair_once(tmp_path):
    with SqliteContactRepository(str(tmp_path / "book.db")) as repo:
        first = repo.insert(_contact("Alice", "Anders", "+15551234567", "alice@example.com"))
        second = repo.insert(_contact("Alicia", "Anders", "+15551234567", "alice@example.org"))
        repo.insert(_contact("Bob", "Ray", "+12125550100"))

        findings = DuplicateDetector(repo).scan()

    assert len(findings) == 1
    anchor, result = findings[0]
    assert anchor.id == first.id
    assert [m.existing_contact.id for m in result.duplicates] == [second.id]


def test_stats_groups_identical_values(repo):
    repo.insert(_contact("Ann", "Lee", "+14155552671", "ann@example.com"))
    repo.insert(_contact("Ann", "Lee", "+14155552671", "ann@work.com"))
    repo.insert(_contact("Bob", "Ray", "+12125550100", "ann@example.com"))
    repo.insert(_contact("Cy", "", "+16175550000"))

    stats = DuplicateDetector(repo).stats()
    assert stats["phone_duplicates"] == [{"phone_number": "+14155552671", "count": 2}]
    assert stats["email_duplicates"] == [{"email": "ann@example.com", "count": 2}]
    assert stats["name_duplicates"] == [{"first_name": "Ann", "last_name": "Lee", "count": 2}]
    assert stats["total_potential_duplicates"] == 3
