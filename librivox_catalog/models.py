from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, List, Mapping, Optional

from .constants import DEFAULT_AUTHOR_AVATAR, DEFAULT_BOOK_COVER, DEFAULT_READER_AVATAR, UNKNOWN_AUTHOR


def _as_str(value: Any) -> str:
    if value is None:
        return ""
    return str(value)


def _as_int(value: Any, default: int = 0) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


@dataclass(frozen=True)
class AuthorEntity:
    id: str
    name: str
    url: str = ""
    thumbnail: str = DEFAULT_AUTHOR_AVATAR
    description: str = ""
    links: Dict[str, str] = field(default_factory=dict)
    dob: Optional[str] = None
    dod: Optional[str] = None

    @property
    def estimated_age(self) -> Optional[int]:
        try:
            return int(str(self.dod)) - int(str(self.dob))
        except (TypeError, ValueError):
            return None

    @property
    def display_name(self) -> str:
        if self.dob and self.dod:
            return f"{self.name} ({self.dob} - {self.dod})"
        return self.name

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "url": self.url,
            "thumbnail": self.thumbnail,
            "description": self.description,
            "links": dict(self.links),
            "dob": self.dob,
            "dod": self.dod,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "AuthorEntity":
        return cls(
            id=_as_str(payload.get("id")),
            name=_as_str(payload.get("name")) or UNKNOWN_AUTHOR,
            url=_as_str(payload.get("url")),
            thumbnail=_as_str(payload.get("thumbnail")) or DEFAULT_AUTHOR_AVATAR,
            description=_as_str(payload.get("description")),
            links={str(k): str(v) for k, v in dict(payload.get("links") or {}).items()},
            dob=payload.get("dob"),
            dod=payload.get("dod"),
        )


@dataclass(frozen=True)
class ReaderEntity:
    id: str
    name: str
    url: str = ""
    thumbnail: str = DEFAULT_READER_AVATAR
    description: str = ""
    section_count: int = 0
    book_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "url": self.url,
            "thumbnail": self.thumbnail,
            "description": self.description,
            "section_count": self.section_count,
            "book_count": self.book_count,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "ReaderEntity":
        reader_id = _as_str(payload.get("id"))
        return cls(
            id=reader_id,
            name=_as_str(payload.get("name")) or f"Reader {reader_id}",
            url=_as_str(payload.get("url")),
            thumbnail=_as_str(payload.get("thumbnail")) or DEFAULT_READER_AVATAR,
            description=_as_str(payload.get("description")),
            section_count=_as_int(payload.get("section_count")),
            book_count=_as_int(payload.get("book_count")),
        )


# Cached reader profiles share the listing shape.
ReaderInfo = ReaderEntity


@dataclass(frozen=True)
class CatalogEntry:
    id: str
    title: str
    author: AuthorEntity
    url: str
    thumbnail: str = DEFAULT_BOOK_COVER
    chapter_count: int = -1
    authors: List[AuthorEntity] = field(default_factory=list)
    description: str = ""
    duration: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "author": self.author.to_dict(),
            "authors": [author.to_dict() for author in self.authors],
            "url": self.url,
            "thumbnail": self.thumbnail,
            "chapter_count": self.chapter_count,
            "description": self.description,
            "duration": self.duration,
        }


@dataclass(frozen=True)
class ChapterEntry:
    index: int
    title: str
    duration: int = 0
    file_url: str = ""
    section_id: str = ""
    stream_id: str = ""
    readers: List[ReaderEntity] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "index": self.index,
            "title": self.title,
            "duration": self.duration,
            "file_url": self.file_url,
            "section_id": self.section_id,
            "stream_id": self.stream_id,
            "readers": [reader.to_dict() for reader in self.readers],
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "ChapterEntry":
        index = _as_int(payload.get("index"))
        return cls(
            index=index,
            title=_as_str(payload.get("title")) or f"Chapter {index + 1}",
            duration=_as_int(payload.get("duration")),
            file_url=_as_str(payload.get("file_url")),
            section_id=_as_str(payload.get("section_id")),
            stream_id=_as_str(payload.get("stream_id")),
            readers=[ReaderEntity.from_dict(item) for item in payload.get("readers") or []],
        )


@dataclass(frozen=True)
class BookDetail:
    id: str
    title: str
    description: str
    chapters: List[ChapterEntry]
    author: AuthorEntity
    authors: List[AuthorEntity]
    cover_url: str = DEFAULT_BOOK_COVER
    view_count: int = -1
    url: str = ""
    source: str = ""

    def chapter(self, index: int) -> Optional[ChapterEntry]:
        for chapter in self.chapters:
            if chapter.index == index:
                return chapter
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "chapters": [chapter.to_dict() for chapter in self.chapters],
            "author": self.author.to_dict(),
            "authors": [author.to_dict() for author in self.authors],
            "cover_url": self.cover_url,
            "view_count": self.view_count,
            "url": self.url,
            "source": self.source,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "BookDetail":
        authors = [AuthorEntity.from_dict(item) for item in payload.get("authors") or []]
        author_payload = payload.get("author")
        if author_payload:
            author = AuthorEntity.from_dict(author_payload)
        elif authors:
            author = authors[0]
        else:
            author = AuthorEntity(id="", name=UNKNOWN_AUTHOR)
        return cls(
            id=_as_str(payload.get("id")),
            title=_as_str(payload.get("title")),
            description=_as_str(payload.get("description")),
            chapters=[ChapterEntry.from_dict(item) for item in payload.get("chapters") or []],
            author=author,
            authors=authors or [author],
            cover_url=_as_str(payload.get("cover_url")) or DEFAULT_BOOK_COVER,
            view_count=_as_int(payload.get("view_count"), -1),
            url=_as_str(payload.get("url")),
            source=_as_str(payload.get("source")),
        )


@dataclass(frozen=True)
class AudioSource:
    name: str
    container: str
    codec: str
    url: str
    duration: int = 0
    language: str = "Unknown"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "container": self.container,
            "codec": self.codec,
            "url": self.url,
            "duration": self.duration,
            "language": self.language,
        }


@dataclass(frozen=True)
class ChapterDetail:
    id: str
    title: str
    description: str
    author: AuthorEntity
    url: str
    duration: int
    thumbnail: str
    sources: List[AudioSource]
    chapter: ChapterEntry
    view_count: int = -1

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "author": self.author.to_dict(),
            "url": self.url,
            "duration": self.duration,
            "thumbnail": self.thumbnail,
            "sources": [source.to_dict() for source in self.sources],
            "chapter": self.chapter.to_dict(),
            "view_count": self.view_count,
        }


@dataclass(frozen=True)
class PagerContext:
    """Immutable cursor snapshot consumed by one ``Pager.next_page`` call."""

    kind: str
    endpoint: str
    query: str = ""
    limit: int = 10
    offset: int = 0
    page: int = 1
    seen_ids: FrozenSet[str] = frozenset()
    latest_loaded: bool = False


@dataclass(frozen=True)
class Page:
    items: List[Any]
    has_more: bool
    next_context: PagerContext
