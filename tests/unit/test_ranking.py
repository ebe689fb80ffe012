# ABOUTME: Unit tests for suggestion scoring against the local library.
# ABOUTME: Validates score bounds, ownership detection, the two-word bonus, and ordering.

from shelfmirror.core.ranking import (
    MAX_SCORE,
    MIN_SCORE,
    LibraryProfile,
    rank,
    score_candidate,
)
from shelfmirror.db.mapping import LibraryRecord, ListCacheEntry, SuggestedCandidate


def _candidate(book: dict, base_genres: list[str] | None = None) -> SuggestedCandidate:
    return SuggestedCandidate(
        source_key=str(book.get("id", book.get("title"))),
        book=book,
        base_genres=base_genres or [],
    )


def _profile(*records: LibraryRecord, genres: list[str] | None = None) -> LibraryProfile:
    entries = [ListCacheEntry(local_id=0, local_title="", base_genres=genres or [])]
    return LibraryProfile.build(list(records), entries)


class TestOwnership:
    """Tests for detecting candidates already in the library."""

    def test_isbn_match_without_title_overlap(self) -> None:
        """A shared ISBN marks the candidate owned even with an unrelated title."""
        profile = _profile(LibraryRecord(id=1, title="Dune", isbn="9780441013593"))
        ranked = score_candidate(
            _candidate({"id": 9, "title": "Spice Wars", "isbn13": "9780441013593"}), profile
        )
        assert ranked.already_in_library is True
        assert ranked.matched_by_isbn is True
        assert ranked.library_id == 1
        assert ranked.title_word_match_count == 0

    def test_exact_title_match(self) -> None:
        """A normalized title match marks the candidate owned but not by ISBN."""
        profile = _profile(LibraryRecord(id=4, title="Piranesi"))
        ranked = score_candidate(_candidate({"id": 5, "title": "PIRANESI!"}), profile)
        assert ranked.already_in_library is True
        assert ranked.matched_by_isbn is False
        assert ranked.library_id == 4

    def test_not_owned(self) -> None:
        profile = _profile(LibraryRecord(id=1, title="Dune"))
        ranked = score_candidate(_candidate({"id": 2, "title": "Hyperion"}), profile)
        assert ranked.already_in_library is False
        assert ranked.library_id is None


class TestScore:
    """Tests for the score arithmetic."""

    def test_two_word_title_bonus(self) -> None:
        """Two keywords shared with one library title earn the bonus."""
        profile = _profile(LibraryRecord(id=1, title="The Fifth Season"))
        ranked = score_candidate(_candidate({"id": 3, "title": "Fifth Season Anthology"}), profile)
        assert ranked.debug["title_two_word_bonus"] == 1
        assert ranked.debug["title_bonus_words"] == ["fifth", "season"]
        assert ranked.title_bonus_words == ["fifth", "season"]
        # 5 title + 1 bonus - 1 no author match - 1 no ISBN
        assert ranked.score == 4

    def test_one_shared_word_gets_no_bonus(self) -> None:
        profile = _profile(LibraryRecord(id=1, title="The Fifth Season"))
        ranked = score_candidate(_candidate({"id": 3, "title": "Season of Storms"}), profile)
        assert ranked.debug["title_two_word_bonus"] == 0
        assert "title_bonus_words" not in ranked.debug

    def test_author_match_and_genre_overlap(self) -> None:
        profile = _profile(
            LibraryRecord(id=1, title="Dune", authors=["Frank Herbert"]),
            genres=["Science Fiction"],
        )
        book = {
            "id": 8,
            "title": "Children of Dune",
            "cached_contributors": [{"author": {"name": "frank herbert"}}],
            "cached_tags": {"Genre": [{"tag": "Science Fiction"}]},
            "isbn13": "9780441104024",
        }
        ranked = score_candidate(_candidate(book), profile)
        assert ranked.author_match is True
        assert ranked.genre_match_count == 2
        assert ranked.debug["genre_words_matched"] == ["science", "fiction"]
        # 5 title + 3 author + 0 ISBN + 2 genre words
        assert ranked.score == 10

    def test_candidate_genres_fall_back_to_base_genres(self) -> None:
        profile = _profile(LibraryRecord(id=1, title="Dune"), genres=["Horror"])
        ranked = score_candidate(_candidate({"id": 2, "title": "Carrie"}, ["Horror"]), profile)
        assert ranked.genre_match_count == 1

    def test_score_clamped_low(self) -> None:
        """A candidate with no signal scores the minimum."""
        ranked = score_candidate(_candidate({"id": 1, "title": "Xyzzy"}), _profile())
        assert ranked.score == MIN_SCORE
        assert ranked.debug["final_score"] == MIN_SCORE

    def test_score_clamped_high(self) -> None:
        genres = [f"topic{i:02d}" for i in range(30)]
        profile = _profile(LibraryRecord(id=1, title="Anything"), genres=genres)
        ranked = score_candidate(_candidate({"id": 2, "title": "Other", "genres": genres}), profile)
        assert ranked.genre_match_count == 30
        assert ranked.score == MAX_SCORE

    def test_scoring_is_deterministic(self) -> None:
        """Re-scoring unchanged inputs reproduces score and breakdown."""
        profile = _profile(
            LibraryRecord(id=1, title="The Fifth Season", authors=["N. K. Jemisin"]),
            genres=["Fantasy"],
        )
        candidate = _candidate(
            {"id": 3, "title": "The Obelisk Gate", "authors": ["N. K. Jemisin"], "genres": ["Fantasy"]}
        )
        first = score_candidate(candidate, profile)
        second = score_candidate(candidate, profile)
        assert first.score == second.score
        assert first.debug == second.debug


class TestRank:
    """Tests for ordering ranked suggestions."""

    def test_orders_by_score_then_tie_breakers(self) -> None:
        profile = _profile(
            LibraryRecord(id=1, title="The Fifth Season", authors=["N. K. Jemisin"]),
        )
        candidates = [
            _candidate({"id": 10, "title": "Unrelated"}),
            _candidate({"id": 11, "title": "Fifth Season Anthology"}),
            _candidate({"id": 12, "title": "The Stone Sky", "authors": ["N. K. Jemisin"]}),
        ]
        ranked = rank(candidates, profile)
        assert [r.candidate.source_key for r in ranked] == ["11", "12", "10"]
