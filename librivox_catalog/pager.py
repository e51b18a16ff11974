"""One cursor pager shared by every listing in the catalog.

Each listing supplies a strategy ``(PagerContext) -> Page``; the pager only
tracks the current cursor and whether another page may exist. Strategies
never raise catalog errors: a failed fetch degrades to an empty page with
``has_more=False`` and the cursor left where it was.
"""

from __future__ import annotations

import dataclasses
import logging
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from .constants import (
    API_FEED_AUDIOBOOKS,
    API_FEED_AUDIOBOOKS_SEARCH,
    API_FEED_AUTHOR_AUDIOBOOKS,
    API_FEED_AUTHORS_SEARCH,
    API_FEED_LATEST_RELEASES,
    API_FEED_READER_SECTIONS,
    DEFAULT_BOOK_COVER,
    DEFAULT_LANGUAGE,
    DETAIL_QUERY,
    SITE_BASE_URL,
)
from .errors import CatalogError, MalformedResponse
from .http import CatalogHttpClient
from .models import CatalogEntry, Page, PagerContext
from .normalizer import normalize_author, normalize_book
from .urls import is_collection_url

logger = logging.getLogger(__name__)

PagerStrategy = Callable[[PagerContext], Page]

KIND_HOME = "home"
KIND_SEARCH = "search"
KIND_AUTHOR_BOOKS = "author-books"
KIND_READER_BOOKS = "reader-books"
KIND_AUTHOR_SEARCH = "author-search"


class Pager:
    """Stateful wrapper that feeds each page's context into the next request."""

    def __init__(self, strategy: PagerStrategy, context: PagerContext) -> None:
        self._strategy = strategy
        self.context = context
        self.results: List[Any] = []
        self.has_more = True

    def next_page(self) -> Page:
        if not self.has_more:
            return Page(items=[], has_more=False, next_context=self.context)
        page = self._strategy(self.context)
        self.results = list(page.items)
        self.has_more = page.has_more
        self.context = page.next_context
        return page


def empty_pager(context: PagerContext) -> Pager:
    pager = Pager(lambda ctx: Page(items=[], has_more=False, next_context=ctx), context)
    pager.has_more = False
    return pager


def _degraded(context: PagerContext, exc: Exception, items: Optional[List[Any]] = None) -> Page:
    logger.warning("Listing %s at offset %s degraded: %s", context.kind, context.offset, exc)
    return Page(items=list(items or []), has_more=False, next_context=context)


def _advance(context: PagerContext, **changes: Any) -> PagerContext:
    return dataclasses.replace(context, offset=context.offset + context.limit, **changes)


def _fetch_records(
    http: CatalogHttpClient,
    path: str,
    params: Mapping[str, Any],
    *,
    key: str = "books",
) -> List[Mapping[str, Any]]:
    payload = http.get_json(path, params={k: v for k, v in params.items() if v is not None})
    if isinstance(payload, list):
        records = payload
    elif isinstance(payload, Mapping):
        records = payload.get(key)
        if records is None:
            return []
    else:
        raise MalformedResponse(f"Unexpected {type(payload).__name__} payload from {path}")
    if not isinstance(records, list):
        raise MalformedResponse(f"Expected a list under '{key}' from {path}")
    return [record for record in records if isinstance(record, Mapping)]


def _book_id_sort_key(record: Mapping[str, Any]) -> int:
    try:
        return int(record.get("id") or 0)
    except (TypeError, ValueError):
        return 0


def home_feed_strategy(http: CatalogHttpClient, dedup: Any, *, language: Optional[str] = None) -> PagerStrategy:
    """Latest releases first, then the full catalog with those ids filtered out.

    ``dedup`` is the session ``DedupSet``; it is extended with every latest
    release id before any catalog page is filtered against it.
    """

    def strategy(context: PagerContext) -> Page:
        items: List[CatalogEntry] = []
        if not context.latest_loaded:
            try:
                latest = _fetch_records(http, API_FEED_LATEST_RELEASES, DETAIL_QUERY)
            except CatalogError as exc:
                logger.warning("Latest releases unavailable: %s", exc)
                latest = []
            seen = set()
            for record in latest:
                entry = normalize_book(record)
                if not entry.id or entry.id in seen:
                    continue
                seen.add(entry.id)
                dedup.add(entry.id)
                items.append(entry)
            context = dataclasses.replace(context, latest_loaded=True)

        params: Dict[str, Any] = {
            **DETAIL_QUERY,
            "sort_field": "id",
            "sort_order": "desc",
            "limit": context.limit,
            "offset": context.offset,
        }
        if language and language != DEFAULT_LANGUAGE:
            params["language"] = language
        try:
            records = _fetch_records(http, context.endpoint, params)
        except CatalogError as exc:
            return _degraded(context, exc, items)

        for record in records:
            entry = normalize_book(record)
            if entry.id and entry.id not in dedup:
                items.append(entry)
        return Page(items=items, has_more=len(records) == context.limit, next_context=_advance(context))

    return strategy


def search_strategy(http: CatalogHttpClient) -> PagerStrategy:
    def strategy(context: PagerContext) -> Page:
        params = {
            **DETAIL_QUERY,
            "limit": context.limit,
            "offset": context.offset,
            "q": context.query.lower().strip(),
        }
        try:
            records = _fetch_records(http, context.endpoint, params)
        except CatalogError as exc:
            return _degraded(context, exc)
        # In-progress and abandoned projects have no catalog page yet.
        items = [normalize_book(record) for record in records if record.get("url_librivox")]
        return Page(items=items, has_more=len(records) == context.limit, next_context=_advance(context))

    return strategy


def author_books_strategy(http: CatalogHttpClient) -> PagerStrategy:
    def strategy(context: PagerContext) -> Page:
        params = {**DETAIL_QUERY, "limit": context.limit, "offset": context.offset}
        try:
            records = _fetch_records(http, context.endpoint, params)
        except CatalogError as exc:
            return _degraded(context, exc)
        ordered = sorted(records, key=_book_id_sort_key, reverse=True)
        items = [normalize_book(record) for record in ordered]
        return Page(items=items, has_more=len(records) == context.limit, next_context=_advance(context))

    return strategy


def _group_sections(sections: List[Mapping[str, Any]]) -> List[Dict[str, Any]]:
    grouped: Dict[str, Dict[str, Any]] = {}
    for section in sections:
        book_id = str(section.get("audiobook_id") or "").strip()
        if not book_id or not section.get("audiobook_title") or book_id in grouped:
            continue
        grouped[book_id] = {
            "id": book_id,
            "title": section.get("audiobook_title"),
            "description": section.get("audiobook_description") or "Audiobook narrated in part by this reader",
            "url_librivox": section.get("audiobook_url") or f"{SITE_BASE_URL}/audiobook-{book_id}/",
            "language": section.get("language") or "English",
            "coverart_jpg": section.get("coverart_jpg") or DEFAULT_BOOK_COVER,
            "authors": section.get("audiobook_authors") or [],
        }
    return list(grouped.values())


def _reader_books(payload: Any) -> Tuple[int, List[Mapping[str, Any]]]:
    """Return ``(raw_count, book_records)`` for either reader listing shape."""

    if isinstance(payload, list):
        valid = [item for item in payload if isinstance(item, Mapping)]
        # A bare list is sections when its items point at a parent audiobook.
        if any(item.get("audiobook_id") for item in valid):
            return len(payload), _group_sections(valid)
        return len(payload), valid
    if isinstance(payload, Mapping):
        books = payload.get("books")
        if isinstance(books, list):
            records = [book for book in books if isinstance(book, Mapping)]
            return len(books), records
        sections = payload.get("sections")
        if isinstance(sections, Mapping):
            sections = sections.get("sections")
        if isinstance(sections, list):
            valid = [section for section in sections if isinstance(section, Mapping)]
            return len(sections), _group_sections(valid)
    raise MalformedResponse("Reader listing has neither books nor sections")


def reader_books_strategy(http: CatalogHttpClient) -> PagerStrategy:
    def strategy(context: PagerContext) -> Page:
        offset = (context.page - 1) * context.limit
        try:
            payload = http.get_json(
                context.endpoint, params={"format": "json", "limit": context.limit, "offset": offset}
            )
            raw_count, books = _reader_books(payload)
        except CatalogError as exc:
            return _degraded(context, exc)

        items: List[CatalogEntry] = []
        seen = set(context.seen_ids)
        for record in books:
            if is_collection_url(str(record.get("url_librivox") or "")):
                continue
            entry = normalize_book(record)
            if not entry.id or entry.id in seen:
                continue
            seen.add(entry.id)
            items.append(entry)
        next_context = dataclasses.replace(
            context,
            page=context.page + 1,
            offset=context.page * context.limit,
            seen_ids=frozenset(seen),
        )
        return Page(items=items, has_more=raw_count == context.limit, next_context=next_context)

    return strategy


def author_search_strategy(http: CatalogHttpClient) -> PagerStrategy:
    def strategy(context: PagerContext) -> Page:
        try:
            records = _fetch_records(http, context.endpoint, {"q": context.query.strip()}, key="authors")
        except CatalogError as exc:
            return _degraded(context, exc)
        items = [normalize_author(record) for record in records]
        return Page(items=items, has_more=False, next_context=context)

    return strategy


def home_pager(http: CatalogHttpClient, dedup: Any, *, limit: int, language: Optional[str] = None) -> Pager:
    context = PagerContext(kind=KIND_HOME, endpoint=API_FEED_AUDIOBOOKS, limit=limit)
    return Pager(home_feed_strategy(http, dedup, language=language), context)


def search_pager(http: CatalogHttpClient, query: str, *, limit: int) -> Pager:
    context = PagerContext(kind=KIND_SEARCH, endpoint=API_FEED_AUDIOBOOKS_SEARCH, query=query or "", limit=limit)
    return Pager(search_strategy(http), context)


def author_books_pager(http: CatalogHttpClient, author_id: str, *, limit: int) -> Pager:
    context = PagerContext(
        kind=KIND_AUTHOR_BOOKS,
        endpoint=API_FEED_AUTHOR_AUDIOBOOKS.format(author_id=author_id),
        limit=limit,
    )
    return Pager(author_books_strategy(http), context)


def reader_books_pager(http: CatalogHttpClient, reader_id: str, *, limit: int) -> Pager:
    context = PagerContext(
        kind=KIND_READER_BOOKS,
        endpoint=API_FEED_READER_SECTIONS.format(reader_id=reader_id),
        limit=limit,
    )
    return Pager(reader_books_strategy(http), context)


def author_search_pager(http: CatalogHttpClient, query: str) -> Pager:
    context = PagerContext(kind=KIND_AUTHOR_SEARCH, endpoint=API_FEED_AUTHORS_SEARCH, query=query or "", limit=0)
    return Pager(author_search_strategy(http), context)
