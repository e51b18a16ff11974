from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Callable, List, Mapping, Optional, Tuple

from .constants import (
    API_FEED_AUDIOBOOK_BY_ID,
    API_FEED_AUDIOBOOK_BY_SLUG,
    API_FEED_AUTHOR_BY_ID,
    API_FEED_READERS,
    API_FEED_READERS_WITH_STATS,
    ARCHIVE_VIEWS_URL,
    DETAIL_QUERY,
)
from .errors import CatalogError, MalformedResponse, ResolutionExhausted
from .http import CatalogHttpClient
from .models import AuthorEntity, BookDetail, ReaderInfo
from .normalizer import ApiBookRecord, normalize_author, normalize_book_detail, normalize_reader
from .scraper import parse_book_page
from .urls import extract_archive_identifier, extract_book_id, extract_slug, reader_url

logger = logging.getLogger(__name__)

SOURCE_API_ID = "api-id"
SOURCE_API_SLUG = "api-slug"
SOURCE_HTML = "html"

ResolutionStrategy = Callable[[str], Optional[BookDetail]]


@dataclass(frozen=True)
class Resolution:
    detail: BookDetail
    source: str


def _first_record(payload: Any, key: str) -> Optional[Mapping[str, Any]]:
    if isinstance(payload, Mapping):
        records = payload.get(key)
    else:
        records = None
    if isinstance(records, list) and records and isinstance(records[0], Mapping):
        return records[0]
    return None


def placeholder_reader(reader_id: str) -> ReaderInfo:
    return ReaderInfo(
        id=reader_id,
        name=f"Reader {reader_id}",
        url=reader_url(reader_id),
        description="LibriVox volunteer reader.",
    )


class CatalogSourceResolver:
    """Resolve single catalog entities, escalating from the API to page scraping."""

    def __init__(self, http: CatalogHttpClient) -> None:
        self._http = http

    def strategies(self) -> List[Tuple[str, ResolutionStrategy]]:
        return [
            (SOURCE_API_ID, self._resolve_by_id),
            (SOURCE_API_SLUG, self._resolve_by_slug),
            (SOURCE_HTML, self._resolve_from_html),
        ]

    def resolve_book(self, url: str) -> Resolution:
        """Try each strategy once, in order; the first usable detail wins.

        A strategy returning ``None`` does not apply to ``url`` and is skipped.
        Raises ``ResolutionExhausted`` when nothing produced a detail.
        """

        failures: List[Tuple[str, str]] = []
        for name, strategy in self.strategies():
            try:
                detail = strategy(url)
            except CatalogError as exc:
                logger.warning("Resolution strategy %s failed for %s: %s", name, url, exc)
                failures.append((name, str(exc)))
                continue
            if detail is None:
                continue
            logger.debug("Resolved %s via %s", url, name)
            return Resolution(detail=detail, source=name)
        raise ResolutionExhausted(url, failures)

    def _detail_from_payload(self, payload: Any, *, url: str, source: str) -> BookDetail:
        book = _first_record(payload, "books")
        if book is None:
            raise MalformedResponse("No book data found in API response")
        if not isinstance(book.get("sections"), list):
            raise MalformedResponse("Book record has no sections list")
        view_count = self.fetch_view_count(extract_archive_identifier(book.get("url_iarchive")))
        return normalize_book_detail(ApiBookRecord(book), url=url, source=source, view_count=view_count)

    def _resolve_by_id(self, url: str) -> Optional[BookDetail]:
        book_id = extract_book_id(url)
        if not book_id:
            return None
        payload = self._http.get_json(API_FEED_AUDIOBOOK_BY_ID.format(book_id=book_id), params=DETAIL_QUERY)
        return self._detail_from_payload(payload, url=url, source=SOURCE_API_ID)

    def _resolve_by_slug(self, url: str) -> Optional[BookDetail]:
        # Slugs are only consulted for URLs without an id.
        slug = None if extract_book_id(url) else extract_slug(url)
        if not slug:
            return None
        payload = self._http.get_json(API_FEED_AUDIOBOOK_BY_SLUG.format(slug=slug), params=DETAIL_QUERY)
        return self._detail_from_payload(payload, url=url, source=SOURCE_API_SLUG)

    def _resolve_from_html(self, url: str) -> Optional[BookDetail]:
        record = parse_book_page(self._http.get_page(url), base_url=url)
        return normalize_book_detail(record, url=url, source=SOURCE_HTML)

    def fetch_view_count(self, identifier: Optional[str]) -> int:
        if not identifier:
            return -1
        response = self._http.get(f"{ARCHIVE_VIEWS_URL}/{identifier}")
        if not response.success:
            return -1
        try:
            payload = json.loads(response.body)
        except ValueError:
            logger.debug("Unparseable view count payload for %s", identifier)
            return -1
        stats = payload.get(identifier) if isinstance(payload, Mapping) else None
        if isinstance(stats, Mapping) and stats.get("have_data"):
            try:
                return int(stats.get("all_time") or -1)
            except (TypeError, ValueError):
                return -1
        return -1

    def fetch_author(self, author_id: str) -> Optional[AuthorEntity]:
        payload = self._http.get_json(API_FEED_AUTHOR_BY_ID.format(author_id=author_id), params={"format": "json"})
        record = _first_record(payload, "authors")
        if record is None:
            return None
        return normalize_author(record)

    def fetch_reader_info(self, reader_id: str) -> Optional[ReaderInfo]:
        """Look up a reader profile, preferring the statistics endpoint.

        Returns ``None`` when neither endpoint knows the reader.
        """

        for path, with_stats in ((API_FEED_READERS_WITH_STATS, True), (API_FEED_READERS, False)):
            try:
                payload = self._http.get_json(path, params={"id": reader_id, "format": "json"})
            except CatalogError as exc:
                logger.warning("Reader lookup %s failed for %s: %s", path, reader_id, exc)
                continue
            record = _first_record(payload, "readers")
            if record is None:
                continue
            reader = normalize_reader({**record, "id": record.get("id") or reader_id})
            return ReaderInfo(
                id=reader.id,
                name=reader.name,
                url=reader.url,
                thumbnail=reader.thumbnail,
                description=self._describe_reader(record, with_stats=with_stats),
                section_count=reader.section_count,
                book_count=reader.book_count,
            )
        return None

    @staticmethod
    def _describe_reader(record: Mapping[str, Any], *, with_stats: bool) -> str:
        name = str(record.get("display_name") or "").strip()
        if not with_stats:
            return f"LibriVox volunteer reader {name}".strip() + "."
        description = f"LibriVox reader {name}" if name else "LibriVox volunteer reader"
        try:
            sections = int(record.get("section_count") or 0)
            books = int(record.get("audiobook_count") or 0)
        except (TypeError, ValueError):
            sections = books = 0
        if sections > 0:
            description += f" who has recorded {sections} sections"
        if books > 0:
            description += f" across {books} audiobooks"
        return description + "."
