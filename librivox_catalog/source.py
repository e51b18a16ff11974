from __future__ import annotations

import html
import logging
from typing import Any, Mapping, Optional, Union

import httpx

from .audio import AudioSourceResolver
from .cache import CatalogState, DetailCache, save_state_file
from .config import CatalogConfig
from .errors import DataAbsence
from .http import CatalogHttpClient
from .models import AuthorEntity, BookDetail, ChapterDetail, ChapterEntry, PagerContext, ReaderEntity
from .pager import (
    Pager,
    author_books_pager,
    author_search_pager,
    empty_pager,
    home_pager,
    reader_books_pager,
    search_pager,
)
from .resolver import CatalogSourceResolver
from .urls import (
    UrlKind,
    canonical_book_key,
    classify_url,
    extract_author_id,
    extract_chapter_index,
    extract_reader_id,
    is_book_url,
    is_chapter_url,
    is_channel_url,
    without_query_param,
)
from .utils import configure_logging, get_state_path

logger = logging.getLogger(__name__)


def _link(name: str, url: str) -> str:
    label = html.escape(name)
    if url:
        return f'<a href="{html.escape(url, quote=True)}">{label}</a>'
    return label


def describe_chapter(detail: BookDetail, chapter: ChapterEntry) -> str:
    """Book description followed by author and reader attribution."""

    authors_text = ""
    if detail.authors:
        label = "Authors" if len(detail.authors) > 1 else "Author"
        authors_text = f"{label}: " + ", ".join(_link(author.name, author.url) for author in detail.authors)
    readers = [reader for reader in chapter.readers if reader.name]
    readers_text = ""
    if readers:
        readers_text = "\n\nRead by: " + ", ".join(_link(reader.name, reader.url) for reader in readers)
    return f"{detail.description}\n\n{authors_text}{readers_text}"


class LibriVoxSource:
    """Session object the host drives; owns config, transport and persisted state."""

    def __init__(
        self,
        *,
        base_config: Optional[CatalogConfig] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self._base_config = base_config
        self._transport = transport
        self.config: Optional[CatalogConfig] = None
        self.state = CatalogState()
        self._http: Optional[CatalogHttpClient] = None
        self._resolver: Optional[CatalogSourceResolver] = None
        self._cache: Optional[DetailCache] = None
        self._audio: Optional[AudioSourceResolver] = None

    def initialize(
        self,
        config: Optional[Mapping[str, Any]] = None,
        settings: Optional[Mapping[str, Any]] = None,
        persisted_state: Optional[str] = None,
    ) -> None:
        base = self._base_config or CatalogConfig.from_env()
        self.config = base.with_host(config, settings)
        configure_logging(self.config.log_level)
        self._http = CatalogHttpClient(
            self.config.normalized_api_base_url(),
            api_key=self.config.api_key,
            timeout=self.config.timeout,
            verify=self.config.verify_ssl,
            user_agent=self.config.user_agent,
            transport=self._transport,
        )
        self._resolver = CatalogSourceResolver(self._http)
        self.state = CatalogState.load(persisted_state)
        self._cache = DetailCache(self.state, self._resolver)
        self._audio = AudioSourceResolver(self._http, enable_adaptive=self.config.enable_adaptive_streaming)
        logger.debug(
            "Catalog source initialized with %d cached books and %d cached readers",
            len(self.state.book_details),
            len(self.state.readers),
        )

    def _require(self) -> CatalogConfig:
        if self.config is None or self._cache is None:
            raise RuntimeError("LibriVoxSource.initialize() must be called first")
        return self.config

    @property
    def cache(self) -> DetailCache:
        if self._cache is None:
            raise RuntimeError("LibriVoxSource.initialize() must be called first")
        return self._cache

    @property
    def audio(self) -> AudioSourceResolver:
        if self._audio is None:
            raise RuntimeError("LibriVoxSource.initialize() must be called first")
        return self._audio

    def persist_state(self) -> str:
        return self.state.save()

    def persist_state_to_file(self, path: Optional[str] = None) -> str:
        target = path or get_state_path()
        save_state_file(target, self.persist_state())
        return target

    def get_home(self) -> Pager:
        config = self._require()
        return home_pager(
            self._http, self.state.latest_release_ids, limit=config.home_page_size, language=config.language
        )

    def search(self, query: str) -> Pager:
        config = self._require()
        return search_pager(self._http, query, limit=config.search_page_size)

    def search_authors(self, query: str) -> Pager:
        self._require()
        return author_search_pager(self._http, query)

    def is_book_url(self, url: str) -> bool:
        return is_book_url(url)

    def is_chapter_url(self, url: str) -> bool:
        return is_chapter_url(url)

    def is_channel_url(self, url: str) -> bool:
        return is_channel_url(url)

    def get_book_detail(self, url: str) -> BookDetail:
        self._require()
        kind = classify_url(url)
        if kind is UrlKind.CHAPTER:
            url = without_query_param(url, "chapter")
        elif kind is not UrlKind.BOOK:
            raise DataAbsence(f"Not an audiobook URL: {url}")
        return self.cache.get_or_fetch(url)

    def get_channel(self, url: str) -> Union[AuthorEntity, ReaderEntity]:
        self._require()
        kind = classify_url(url)
        if kind is UrlKind.AUTHOR:
            return self.cache.get_or_fetch_author(extract_author_id(url) or "")
        if kind is UrlKind.READER:
            return self.cache.get_or_fetch_reader(extract_reader_id(url) or "")
        raise DataAbsence(f"Not a channel URL: {url}")

    def get_channel_contents(self, url: str) -> Pager:
        config = self._require()
        kind = classify_url(url)
        if kind is UrlKind.AUTHOR:
            return author_books_pager(self._http, extract_author_id(url) or "", limit=config.author_page_size)
        if kind is UrlKind.READER:
            return reader_books_pager(self._http, extract_reader_id(url) or "", limit=config.reader_page_size)
        logger.warning("No channel listing for %s", url)
        return empty_pager(PagerContext(kind="unknown", endpoint=url))

    def get_chapter_detail(self, url: str) -> ChapterDetail:
        self._require()
        index = extract_chapter_index(url) if is_chapter_url(url) else None
        if index is None:
            raise DataAbsence(f"Not a chapter URL: {url}")
        book_page_url = without_query_param(url, "chapter")
        detail = self.cache.get_or_fetch(book_page_url)
        chapter = detail.chapter(index)
        if chapter is None:
            raise DataAbsence(f"Chapter not found: {index}")
        sources = self.audio.resolve_sources(chapter)
        book_id = detail.id or canonical_book_key(book_page_url)
        return ChapterDetail(
            id=f"{book_id}_chapter_{index}",
            title=chapter.title,
            description=describe_chapter(detail, chapter),
            author=detail.author,
            url=url,
            duration=chapter.duration,
            thumbnail=detail.cover_url,
            sources=sources,
            chapter=chapter,
            view_count=detail.view_count,
        )
