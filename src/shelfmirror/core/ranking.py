# ABOUTME: Scores suggested books against the local library.
# ABOUTME: Title, author, genre, and ISBN heuristics with a clamped score and a debug breakdown.

import logging
from dataclasses import dataclass, field
from typing import Any

from shelfmirror.catalog.payload import (
    book_genres,
    extract_authors,
    extract_isbns,
    extract_title,
    normalize_isbn,
    normalize_title,
    title_keywords,
)
from shelfmirror.db.mapping import LibraryRecord, ListCacheEntry, SuggestedCandidate

logger = logging.getLogger(__name__)

MIN_SCORE = 1
MAX_SCORE = 20
TITLE_SCORE = 5
AUTHOR_MATCH = 3
AUTHOR_MISS = -1
NO_ISBN = -1
TWO_WORD_MIN_OVERLAP = 2


@dataclass
class LibraryProfile:
    """Signals derived from the whole library, shared by every candidate."""

    authors: set[str] = field(default_factory=set)
    title_words: set[str] = field(default_factory=set)
    book_title_words: list[tuple[int, set[str]]] = field(default_factory=list)
    isbn_index: dict[str, int] = field(default_factory=dict)
    title_index: dict[str, int] = field(default_factory=dict)
    genre_words: set[str] = field(default_factory=set)

    @classmethod
    def build(
        cls, records: list[LibraryRecord], cache_entries: list[ListCacheEntry]
    ) -> "LibraryProfile":
        profile = cls()
        for record in records:
            profile.authors.update(a.strip().casefold() for a in record.authors if a.strip())
            words = set(title_keywords(record.title))
            profile.title_words.update(words)
            if words:
                profile.book_title_words.append((record.id, words))
            isbn = normalize_isbn(record.isbn)
            if isbn:
                profile.isbn_index.setdefault(isbn, record.id)
            title = normalize_title(record.title)
            if title:
                profile.title_index.setdefault(title, record.id)
        for entry in cache_entries:
            for genre in entry.base_genres:
                profile.genre_words.update(title_keywords(genre))
        return profile


@dataclass
class RankedSuggestion:
    candidate: SuggestedCandidate
    score: int
    author_match: bool
    genre_match_count: int
    title_word_match_count: int
    already_in_library: bool = False
    matched_by_isbn: bool = False
    library_id: int | None = None
    title_bonus_words: list[str] = field(default_factory=list)
    debug: dict[str, Any] = field(default_factory=dict)


def score_candidate(candidate: SuggestedCandidate, profile: LibraryProfile) -> RankedSuggestion:
    """Score one candidate; a pure function of the candidate and the profile."""
    book = candidate.book
    title = extract_title(book)
    words = title_keywords(title)
    shared_title = [w for w in words if w in profile.title_words]
    authors = extract_authors(book)
    genres = book_genres(book) or candidate.base_genres
    genre_words: list[str] = []
    for genre in genres:
        genre_words.extend(w for w in title_keywords(genre) if w not in genre_words)
    genre_overlap = [w for w in genre_words if w in profile.genre_words]
    isbns = extract_isbns(book)

    author_match = any(a.casefold() in profile.authors for a in authors)
    title_score = TITLE_SCORE if shared_title else 0
    author_adjustment = AUTHOR_MATCH if author_match else AUTHOR_MISS
    isbn_adjustment = 0 if isbns else NO_ISBN
    genre_adjustment = len(genre_overlap)

    best_words: list[str] = []
    for _, book_words in profile.book_title_words:
        overlap = [w for w in words if w in book_words]
        if len(overlap) > len(best_words):
            best_words = overlap
    two_word_bonus = 1 if len(best_words) >= TWO_WORD_MIN_OVERLAP else 0

    raw = title_score + author_adjustment + isbn_adjustment + genre_adjustment + two_word_bonus
    score = max(MIN_SCORE, min(MAX_SCORE, raw))

    ranked = RankedSuggestion(
        candidate=candidate,
        score=score,
        author_match=author_match,
        genre_match_count=len(genre_overlap),
        title_word_match_count=len(shared_title),
        title_bonus_words=best_words if two_word_bonus else [],
    )

    for isbn in isbns:
        if isbn in profile.isbn_index:
            ranked.already_in_library = True
            ranked.matched_by_isbn = True
            ranked.library_id = profile.isbn_index[isbn]
            break
    if not ranked.already_in_library:
        normalized = normalize_title(title)
        if normalized and normalized in profile.title_index:
            ranked.already_in_library = True
            ranked.library_id = profile.title_index[normalized]

    ranked.debug = {
        "shared_title_words": len(shared_title),
        "authors": len(authors),
        "genres": len(genres),
        "genre_word_overlap": len(genre_overlap),
        "title_score": title_score,
        "author_adjustment": author_adjustment,
        "isbn_adjustment": isbn_adjustment,
        "genre_adjustment": genre_adjustment,
        "title_two_word_bonus": two_word_bonus,
        "final_score": score,
    }
    if genre_overlap:
        ranked.debug["genre_words_matched"] = genre_overlap
    if two_word_bonus:
        ranked.debug["title_bonus_words"] = best_words
    return ranked


def sort_key(ranked: RankedSuggestion) -> tuple[int, bool, bool, int, int]:
    return (
        ranked.score,
        ranked.already_in_library,
        ranked.author_match,
        ranked.genre_match_count,
        ranked.title_word_match_count,
    )


def rank(
    candidates: list[SuggestedCandidate], profile: LibraryProfile
) -> list[RankedSuggestion]:
    """Score candidates and order them best first."""
    ranked = [score_candidate(candidate, profile) for candidate in candidates]
    ranked.sort(key=sort_key, reverse=True)
    return ranked
