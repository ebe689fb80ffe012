# ABOUTME: Pure extraction functions over opaque Hardcover book payloads.
# ABOUTME: Tolerates missing and alternate shapes, returning empty values instead of raising.

import json
import re
from typing import Any

STOPWORDS = frozenset({"the", "and", "for", "in", "it", "an", "of", "a"})

_GENRE_KEYS = ("Genre", "Genres", "genre", "genres")
_TOKEN_RE = re.compile(r"[a-z0-9]+")
_WHITESPACE_RE = re.compile(r"\s+")


def normalize_isbn(value: Any) -> str:
    """Strip everything but letters and digits, uppercasing a trailing X."""
    if value is None:
        return ""
    return "".join(ch for ch in str(value) if ch.isalnum()).upper()


def normalize_title(value: Any) -> str:
    """Lowercase, drop punctuation, and collapse whitespace."""
    if not value:
        return ""
    text = "".join(ch for ch in str(value).lower() if ch.isalnum() or ch.isspace())
    return _WHITESPACE_RE.sub(" ", text).strip()


def title_keywords(title: Any) -> list[str]:
    """Distinct lowercase alphanumeric tokens of 3+ characters, minus stopwords."""
    if not title:
        return []
    words: list[str] = []
    for token in _TOKEN_RE.findall(str(title).lower()):
        if len(token) >= 3 and token not in STOPWORDS and token not in words:
            words.append(token)
    return words


def dedupe(values: list[str]) -> list[str]:
    """Trim values and drop case-insensitive duplicates, keeping first-seen order."""
    seen: set[str] = set()
    result = []
    for value in values:
        text = value.strip()
        key = text.casefold()
        if text and key not in seen:
            seen.add(key)
            result.append(text)
    return result


def _text(value: Any) -> str | None:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def extract_title(book: dict[str, Any]) -> str:
    return _text(book.get("title")) or _text(book.get("name")) or ""


def extract_slug(book: dict[str, Any]) -> str | None:
    return _text(book.get("slug"))


def extract_external_id(book: dict[str, Any]) -> str | None:
    """Return the catalog id when it is an integer or a numeric string."""
    value = book.get("id")
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return str(value)
    if isinstance(value, str) and value.strip().isdigit():
        return value.strip()
    return None


def source_key(book: dict[str, Any]) -> str:
    """Dedup key: the id, else the slug, else the title."""
    value = book.get("id")
    if value is not None and not isinstance(value, bool) and str(value).strip():
        return str(value).strip()
    return extract_slug(book) or extract_title(book)


def extract_rating(book: dict[str, Any]) -> float | None:
    value = book.get("rating")
    if isinstance(value, bool) or value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _tag_name(tag: dict[str, Any]) -> str | None:
    for key in ("name", "label"):
        if name := _text(tag.get(key)):
            return name
    nested = tag.get("tag")
    if name := _text(nested):
        return name
    if isinstance(nested, dict) and (name := _text(nested.get("name")) or _text(nested.get("tag"))):
        return name
    if name := _text(tag.get("tagSlug")):
        return name
    for key in ("genre", "base_genre"):
        inner = tag.get(key)
        if isinstance(inner, dict) and (name := _text(inner.get("name"))):
            return name
    return None


def _collect_genres(value: Any, out: list[str]) -> None:
    if value is None:
        return
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return
        if text[0] in "[{":
            try:
                parsed = json.loads(text)
            except json.JSONDecodeError:
                out.append(text)
                return
            _collect_genres(parsed, out)
            return
        out.append(text)
        return
    if isinstance(value, list):
        for item in value:
            if isinstance(item, str):
                if item.strip():
                    out.append(item)
            elif isinstance(item, dict):
                if name := _tag_name(item):
                    out.append(name)
            elif isinstance(item, list):
                _collect_genres(item, out)
        return
    if isinstance(value, dict):
        for key in _GENRE_KEYS:
            inner = value.get(key)
            if isinstance(inner, str) and inner.strip():
                out.append(inner)
                return
            if isinstance(inner, list):
                before = len(out)
                _collect_genres(inner, out)
                if len(out) > before:
                    return
        for inner in value.values():
            if isinstance(inner, (list, str)):
                _collect_genres(inner, out)


def extract_genres(tags: Any) -> list[str]:
    """Normalize a tag payload of any known shape into genre names.

    Accepts a plain or JSON-encoded string, a list of strings or tag objects,
    or an object keyed by "Genre"/"genres"/etc. Names are deduplicated
    case-insensitively in first-seen order.
    """
    found: list[str] = []
    _collect_genres(tags, found)
    return dedupe(found)


def book_genres(book: dict[str, Any]) -> list[str]:
    for key in ("cached_tags", "genres", "tags"):
        if book.get(key):
            return extract_genres(book[key])
    return []


def extract_authors(book: dict[str, Any]) -> list[str]:
    """Author names from cached contributors, falling back to contributions."""
    names: list[str] = []
    for contributor in book.get("cached_contributors") or []:
        if isinstance(contributor, str):
            names.append(contributor)
        elif isinstance(contributor, dict):
            author = contributor.get("author")
            name = _text(contributor.get("name"))
            if not name and isinstance(author, dict):
                name = _text(author.get("name"))
            if name:
                names.append(name)
    if not names:
        for contribution in book.get("contributions") or []:
            author = contribution.get("author") if isinstance(contribution, dict) else None
            if isinstance(author, dict) and (name := _text(author.get("name"))):
                names.append(name)
    if not names:
        for author in book.get("authors") or []:
            if isinstance(author, str):
                names.append(author)
            elif isinstance(author, dict) and (name := _text(author.get("name"))):
                names.append(name)
    return dedupe(names)


def extract_isbns(book: dict[str, Any]) -> list[str]:
    """Normalized ISBNs from default editions and top-level ISBN fields."""
    raw: list[Any] = []
    for edition_key in ("default_physical_edition", "default_ebook_edition"):
        edition = book.get(edition_key)
        if isinstance(edition, dict):
            raw.extend([edition.get("isbn_13"), edition.get("isbn_10")])
    for key in ("isbn13", "isbn_13", "isbn10", "isbn_10", "isbn", "isbns"):
        value = book.get(key)
        if isinstance(value, list):
            raw.extend(value)
        else:
            raw.append(value)
    result: list[str] = []
    for value in raw:
        isbn = normalize_isbn(value) if isinstance(value, (str, int)) else ""
        if isbn and isbn not in result:
            result.append(isbn)
    return result


def extract_cover_url(book: dict[str, Any]) -> str | None:
    image = book.get("image")
    if isinstance(image, dict) and (url := _text(image.get("url"))):
        return url
    return _text(image) or _text(book.get("cover_url")) or _text(book.get("coverUrl"))
