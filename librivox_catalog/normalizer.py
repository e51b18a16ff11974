"""Turn heterogeneous catalog records into canonical entities.

Every function here tolerates missing fields by walking an ordered fallback
chain down to a documented default; none of them raise on partial input.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Union

from .constants import (
    DEFAULT_AUTHOR_AVATAR,
    DEFAULT_BOOK_COVER,
    DEFAULT_READER_AVATAR,
    EXTERNAL_AUTHOR_LINKS,
    UNKNOWN_AUTHOR,
    UNKNOWN_TITLE,
)
from .models import AuthorEntity, BookDetail, CatalogEntry, ChapterEntry, ReaderEntity
from .urls import (
    author_url,
    book_url,
    extract_author_id,
    extract_book_id,
    extract_reader_id,
    parse_duration,
    parse_life_dates,
    reader_url,
)


@dataclass(frozen=True)
class ApiBookRecord:
    """A ``books[n]`` object from the JSON feed."""

    payload: Mapping[str, Any]


@dataclass(frozen=True)
class ScrapedBookRecord:
    """Fields lifted from an audiobook HTML page by structural position."""

    title: Optional[str] = None
    description: Optional[str] = None
    cover_url: Optional[str] = None
    authors: List[Dict[str, Any]] = field(default_factory=list)
    chapters: List[Dict[str, Any]] = field(default_factory=list)


BookRecord = Union[ApiBookRecord, ScrapedBookRecord]


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _first(*values: Any) -> str:
    for value in values:
        text = _text(value)
        if text:
            return text
    return ""


def _coerce_seconds(value: Any) -> int:
    if isinstance(value, bool):
        return 0
    if isinstance(value, (int, float)):
        return max(int(value), 0)
    text = _text(value)
    if not text:
        return 0
    if text.isdigit():
        return int(text)
    if ":" in text:
        return parse_duration(text)
    return 0


def _coerce_count(value: Any) -> int:
    try:
        return max(int(value), 0)
    except (TypeError, ValueError):
        return 0


def author_links(raw: Mapping[str, Any], profile_url: str) -> Dict[str, str]:
    links: Dict[str, str] = {}
    if profile_url:
        links["LibriVox"] = profile_url
    for label, key, template in EXTERNAL_AUTHOR_LINKS:
        value = _text(raw.get(key))
        if value:
            links[label] = template.format(value=value)
    return links


def normalize_author(raw: Optional[Mapping[str, Any]]) -> AuthorEntity:
    raw = raw or {}
    author_id = _first(raw.get("id"), extract_author_id(_text(raw.get("url"))))
    combined = f"{_text(raw.get('first_name'))} {_text(raw.get('last_name'))}".strip()
    name = _first(raw.get("author"), combined, raw.get("name")) or UNKNOWN_AUTHOR
    profile_url = author_url(author_id) or _text(raw.get("url"))

    dob = _text(raw.get("dob")) or None
    dod = _text(raw.get("dod")) or None
    if not (dob and dod) and raw.get("lifeDates"):
        dob, dod = parse_life_dates(_text(raw.get("lifeDates")))

    return AuthorEntity(
        id=author_id,
        name=name,
        url=profile_url,
        thumbnail=_first(raw.get("imageurl"), raw.get("thumbnail")) or DEFAULT_AUTHOR_AVATAR,
        description=_text(raw.get("description")),
        links=author_links(raw, profile_url),
        dob=dob,
        dod=dod,
    )


def normalize_reader(raw: Optional[Mapping[str, Any]]) -> ReaderEntity:
    raw = raw or {}
    reader_id = _first(raw.get("id"), raw.get("reader_id"), extract_reader_id(_text(raw.get("url"))))
    return ReaderEntity(
        id=reader_id,
        name=_first(raw.get("display_name"), raw.get("name")) or f"Reader {reader_id}".strip(),
        url=reader_url(reader_id) or _text(raw.get("url")),
        thumbnail=_text(raw.get("thumbnail")) or DEFAULT_READER_AVATAR,
        description=_text(raw.get("description")),
        section_count=_coerce_count(raw.get("section_count")),
        book_count=_coerce_count(raw.get("audiobook_count") or raw.get("project_count")),
    )


def normalize_chapter(raw: Optional[Mapping[str, Any]], index: int) -> ChapterEntry:
    raw = raw or {}
    readers = [normalize_reader(item) for item in raw.get("readers") or [] if isinstance(item, Mapping)]
    return ChapterEntry(
        index=index,
        title=_first(raw.get("title"), raw.get("chapterName")) or f"Chapter {index + 1}",
        duration=_coerce_seconds(raw.get("playtime", raw.get("duration"))),
        file_url=_first(raw.get("listen_url"), raw.get("file_url")),
        section_id=_first(raw.get("section_id"), raw.get("id")),
        stream_id=_first(raw.get("hls_id"), raw.get("stream_id")),
        readers=readers,
    )


def _book_authors(raw: Mapping[str, Any]) -> List[AuthorEntity]:
    authors = [normalize_author(item) for item in raw.get("authors") or [] if isinstance(item, Mapping)]
    return authors or [normalize_author(None)]


def _book_thumbnail(raw: Mapping[str, Any]) -> str:
    return (
        _first(raw.get("coverart_jpg"), raw.get("coverart_thumbnail"), raw.get("coverImage"))
        or DEFAULT_BOOK_COVER
    )


def normalize_book(raw: Optional[Mapping[str, Any]]) -> CatalogEntry:
    raw = raw or {}
    url_librivox = _text(raw.get("url_librivox"))
    book_id = _first(raw.get("id"), extract_book_id(url_librivox))
    authors = _book_authors(raw)
    sections = raw.get("sections")
    duration = _coerce_seconds(raw.get("totaltimesecs")) if raw.get("totaltimesecs") is not None else None
    return CatalogEntry(
        id=book_id,
        title=_text(raw.get("title")) or UNKNOWN_TITLE,
        author=authors[0],
        authors=authors,
        url=book_url(url_librivox, book_id),
        thumbnail=_book_thumbnail(raw),
        chapter_count=len(sections) if isinstance(sections, list) else -1,
        description=_text(raw.get("description")),
        duration=duration,
    )


def normalize_book_detail(record: BookRecord, *, url: str, source: str, view_count: int = -1) -> BookDetail:
    """Normalize either record variant into a ``BookDetail``."""

    if isinstance(record, ApiBookRecord):
        raw = record.payload
        authors = _book_authors(raw)
        chapters = [
            normalize_chapter(section, index)
            for index, section in enumerate(raw.get("sections") or [])
            if isinstance(section, Mapping)
        ]
        url_librivox = _text(raw.get("url_librivox"))
        book_id = _first(raw.get("id"), extract_book_id(url_librivox), extract_book_id(url))
        return BookDetail(
            id=book_id,
            title=_text(raw.get("title")) or UNKNOWN_TITLE,
            description=_text(raw.get("description")),
            chapters=chapters,
            author=authors[0],
            authors=authors,
            # Detail views prefer the smaller thumbnail.
            cover_url=_first(raw.get("coverart_thumbnail"), raw.get("coverart_jpg")) or DEFAULT_BOOK_COVER,
            view_count=view_count,
            url=book_url(url_librivox, book_id) or url,
            source=source,
        )

    authors = [normalize_author(item) for item in record.authors] or [normalize_author(None)]
    chapters = []
    for index, row in enumerate(record.chapters):
        readers = [normalize_reader(item) for item in row.get("readers") or []]
        chapters.append(
            ChapterEntry(
                index=index,
                title=_text(row.get("title")) or f"Chapter {index + 1}",
                duration=parse_duration(row.get("duration_text")),
                file_url=_text(row.get("file_url")),
                readers=readers,
            )
        )
    return BookDetail(
        id=extract_book_id(url) or "",
        title=_text(record.title) or UNKNOWN_TITLE,
        description=_text(record.description),
        chapters=chapters,
        author=authors[0],
        authors=authors,
        cover_url=_text(record.cover_url) or DEFAULT_BOOK_COVER,
        view_count=view_count,
        url=url,
        source=source,
    )
