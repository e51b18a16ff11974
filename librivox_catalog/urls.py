from __future__ import annotations

import re
from enum import Enum
from typing import Dict, List, Optional, Tuple
from urllib.parse import parse_qs, urlencode, urlsplit, urlunsplit

from .constants import AUTHOR_BASE_URL, READER_BASE_URL, RESERVED_PATH_SEGMENTS, SITE_BASE_URL

_SEGMENT_RE = re.compile(r"^[A-Za-z0-9-]+$")
_DIGITS_RE = re.compile(r"^\d+$")
_ARCHIVE_DETAILS_RE = re.compile(r"https?://(?:www\.)?archive\.org/details/([^/?#]+)")
_LIFE_DATES_RE = re.compile(r"(-?\d{1,4})\s*[-–]\s*(-?\d{1,4})")


class UrlKind(str, Enum):
    CHAPTER = "chapter"
    AUTHOR = "author"
    READER = "reader"
    BOOK = "book"
    UNKNOWN = "unknown"


def _decompose(url: Optional[str]) -> Optional[Tuple[List[str], Dict[str, List[str]], str]]:
    if not url:
        return None
    parts = urlsplit(url.strip())
    if parts.scheme not in {"http", "https"} or not parts.netloc:
        return None
    segments = [segment for segment in parts.path.split("/") if segment]
    return segments, parse_qs(parts.query), parts.path


def _first_query_value(query: Dict[str, List[str]], key: str) -> Optional[str]:
    values = query.get(key)
    if not values:
        return None
    value = values[0].strip()
    return value or None


def _is_channel(segments: List[str], prefix: str) -> bool:
    return len(segments) == 2 and segments[0] == prefix and _DIGITS_RE.match(segments[1]) is not None


def _is_book_path(segments: List[str]) -> bool:
    if _is_channel(segments, "group"):
        return True
    # Dated archive and category paths have more than one segment.
    if len(segments) != 1:
        return False
    segment = segments[0]
    return segment.lower() not in RESERVED_PATH_SEGMENTS and _SEGMENT_RE.match(segment) is not None


def classify_url(url: Optional[str]) -> UrlKind:
    """Classify ``url`` using the fixed priority chapter > author > reader > book."""

    decomposed = _decompose(url)
    if decomposed is None:
        return UrlKind.UNKNOWN
    segments, query, path = decomposed
    if not segments:
        return UrlKind.UNKNOWN

    chapter = _first_query_value(query, "chapter")
    if chapter is not None and _DIGITS_RE.match(chapter) and _is_book_path(segments):
        return UrlKind.CHAPTER
    if _is_channel(segments, "author"):
        return UrlKind.AUTHOR
    if _is_channel(segments, "reader"):
        return UrlKind.READER
    if _is_book_path(segments) and not is_collection_url(url):
        return UrlKind.BOOK
    return UrlKind.UNKNOWN


def is_book_url(url: Optional[str]) -> bool:
    return classify_url(url) is UrlKind.BOOK


def is_chapter_url(url: Optional[str]) -> bool:
    return classify_url(url) is UrlKind.CHAPTER


def is_channel_url(url: Optional[str]) -> bool:
    return classify_url(url) in {UrlKind.AUTHOR, UrlKind.READER}


def is_collection_url(url: Optional[str]) -> bool:
    decomposed = _decompose(url)
    if decomposed is None:
        return False
    return "collection" in decomposed[2].lower()


def extract_book_id(url: Optional[str]) -> Optional[str]:
    decomposed = _decompose(url)
    if decomposed is None:
        return None
    value = _first_query_value(decomposed[1], "id")
    if value and _DIGITS_RE.match(value):
        return value
    return None


def extract_slug(url: Optional[str]) -> Optional[str]:
    decomposed = _decompose(url)
    if decomposed is None:
        return None
    segments = decomposed[0]
    if len(segments) == 1 and _is_book_path(segments):
        return segments[0]
    return None


def extract_author_id(url: Optional[str]) -> Optional[str]:
    decomposed = _decompose(url)
    if decomposed is None or not _is_channel(decomposed[0], "author"):
        return None
    return decomposed[0][1]


def extract_reader_id(url: Optional[str]) -> Optional[str]:
    decomposed = _decompose(url)
    if decomposed is None or not _is_channel(decomposed[0], "reader"):
        return None
    return decomposed[0][1]


def extract_chapter_index(url: Optional[str]) -> Optional[int]:
    decomposed = _decompose(url)
    if decomposed is None:
        return None
    value = _first_query_value(decomposed[1], "chapter")
    if value is None or not _DIGITS_RE.match(value):
        return None
    return int(value)


def extract_archive_identifier(url: Optional[str]) -> Optional[str]:
    if not url:
        return None
    match = _ARCHIVE_DETAILS_RE.search(url)
    return match.group(1) if match else None


def strip_query(url: str) -> str:
    parts = urlsplit(url.strip())
    return urlunsplit((parts.scheme, parts.netloc, parts.path, "", ""))


def canonical_book_key(url: str) -> str:
    """Return the cache/dedup key for a book URL: its numeric id, else its bare page URL."""

    book_id = extract_book_id(url)
    if book_id:
        return book_id
    return strip_query(url).rstrip("/")


def with_query(url: str, **params: object) -> str:
    parts = urlsplit(url.strip())
    query = parse_qs(parts.query)
    for key, value in params.items():
        query[key] = [str(value)]
    encoded = urlencode({key: values[0] for key, values in query.items()})
    return urlunsplit((parts.scheme, parts.netloc, parts.path, encoded, ""))


def without_query_param(url: str, key: str) -> str:
    parts = urlsplit(url.strip())
    query = {name: values[0] for name, values in parse_qs(parts.query).items() if name != key}
    return urlunsplit((parts.scheme, parts.netloc, parts.path, urlencode(query), ""))


def book_url(url_librivox: Optional[str], book_id: Optional[str]) -> str:
    base = (url_librivox or "").strip()
    if not base:
        if not book_id:
            return ""
        base = f"{SITE_BASE_URL}/audiobook-{book_id}/"
    if book_id:
        return with_query(base, id=book_id)
    return base


def author_url(author_id: Optional[str]) -> str:
    return f"{AUTHOR_BASE_URL}/{author_id}" if author_id else ""


def reader_url(reader_id: Optional[str]) -> str:
    return f"{READER_BASE_URL}/{reader_id}" if reader_id else ""


def parse_duration(text: Optional[str]) -> int:
    """Convert ``H:MM:SS`` or ``MM:SS`` into seconds.

    Malformed input yields 0 instead of raising.
    """

    if not text or not isinstance(text, str):
        return 0
    parts = text.strip().split(":")
    if len(parts) not in (2, 3):
        return 0
    values: List[int] = []
    for part in parts:
        part = part.strip()
        if not part.isdigit():
            return 0
        values.append(int(part))
    if len(values) == 3:
        hours, minutes, seconds = values
        return hours * 3600 + minutes * 60 + seconds
    minutes, seconds = values
    return minutes * 60 + seconds


def parse_life_dates(text: Optional[str]) -> Tuple[Optional[str], Optional[str]]:
    if not text:
        return None, None
    match = _LIFE_DATES_RE.search(text.replace("(", " ").replace(")", " "))
    if not match:
        return None, None
    return match.group(1), match.group(2)
