from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Optional, Union

from .errors import DataAbsence
from .models import AuthorEntity, BookDetail, ReaderInfo
from .resolver import CatalogSourceResolver, placeholder_reader
from .urls import canonical_book_key

logger = logging.getLogger(__name__)

STATE_VERSION = 1


class DedupSet:
    """Insertion-ordered set of book ids that only ever grows."""

    def __init__(self, ids: Optional[Iterable[Any]] = None) -> None:
        self._order: List[str] = []
        self._members: set = set()
        self.add_all(ids or [])

    def add(self, book_id: Any) -> bool:
        value = str(book_id or "").strip()
        if not value or value in self._members:
            return False
        self._members.add(value)
        self._order.append(value)
        return True

    def add_all(self, ids: Iterable[Any]) -> int:
        return sum(1 for book_id in ids if self.add(book_id))

    def __contains__(self, book_id: object) -> bool:
        return str(book_id or "").strip() in self._members

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._order))

    def __len__(self) -> int:
        return len(self._order)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, DedupSet):
            return self._order == other._order
        return NotImplemented

    def to_list(self) -> List[str]:
        return list(self._order)


@dataclass
class CatalogState:
    authors: List[AuthorEntity] = field(default_factory=list)
    readers: Dict[str, ReaderInfo] = field(default_factory=dict)
    book_details: Dict[str, BookDetail] = field(default_factory=dict)
    latest_release_ids: DedupSet = field(default_factory=DedupSet)

    def find_author(self, author_id: str) -> Optional[AuthorEntity]:
        for author in self.authors:
            if author.id == author_id:
                return author
        return None

    def remember_author(self, author: AuthorEntity) -> None:
        if author.id and self.find_author(author.id) is None:
            self.authors.append(author)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": STATE_VERSION,
            "authors": [author.to_dict() for author in self.authors],
            "readers": {key: reader.to_dict() for key, reader in self.readers.items()},
            "bookDetails": {key: detail.to_dict() for key, detail in self.book_details.items()},
            "latestReleaseIds": self.latest_release_ids.to_list(),
        }

    def save(self) -> str:
        # Serialize one complete snapshot; callers never see a partial blob.
        return json.dumps(self.to_dict())

    @classmethod
    def load(cls, serialized: Optional[str]) -> "CatalogState":
        """Restore state from ``serialized``; absent or corrupt input yields an empty state."""

        if not serialized:
            return cls()
        try:
            payload = json.loads(serialized)
        except (TypeError, ValueError) as exc:
            logger.warning("Failed to restore catalog state: %s", exc)
            return cls()
        if not isinstance(payload, dict):
            logger.warning("Ignoring catalog state of type %s", type(payload).__name__)
            return cls()

        try:
            version = int(payload.get("version", 0) or 0)
        except (TypeError, ValueError):
            version = -1
        if version not in {0, STATE_VERSION}:
            logger.warning("Ignoring catalog state with unsupported version %s", payload.get("version"))
            return cls()

        state = cls()
        for entry in _as_list(payload.get("authors")):
            try:
                state.remember_author(AuthorEntity.from_dict(entry))
            except Exception as exc:
                logger.warning("Skipping cached author entry: %s", exc)
        for key, entry in _as_dict(payload.get("readers")).items():
            try:
                state.readers[str(key)] = ReaderInfo.from_dict({"id": key, **entry})
            except Exception as exc:
                logger.warning("Skipping cached reader %s: %s", key, exc)
        for key, entry in _as_dict(payload.get("bookDetails")).items():
            try:
                state.book_details[str(key)] = BookDetail.from_dict(entry)
            except Exception as exc:
                logger.warning("Skipping cached book detail %s: %s", key, exc)
        state.latest_release_ids.add_all(_as_list(payload.get("latestReleaseIds")))
        return state


def _as_list(value: Any) -> List[Any]:
    return list(value) if isinstance(value, list) else []


def _as_dict(value: Any) -> Dict[str, Any]:
    if not isinstance(value, dict):
        return {}
    return {key: entry for key, entry in value.items() if isinstance(entry, dict)}


def save_state_file(path: Union[str, Path], blob: str) -> None:
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = target.with_suffix(".tmp")
    with tmp_path.open("w", encoding="utf-8") as handle:
        handle.write(blob)
    os.replace(tmp_path, target)


def load_state_file(path: Union[str, Path]) -> Optional[str]:
    target = Path(path)
    if not target.exists():
        return None
    try:
        return target.read_text(encoding="utf-8")
    except OSError as exc:
        logger.warning("Unable to read catalog state %s: %s", target, exc)
        return None


class DetailCache:
    """Memoize book, reader and author lookups inside the persisted ``CatalogState``."""

    def __init__(self, state: CatalogState, resolver: CatalogSourceResolver) -> None:
        self._state = state
        self._resolver = resolver

    @property
    def state(self) -> CatalogState:
        return self._state

    def get_or_fetch(self, url: str) -> BookDetail:
        key = canonical_book_key(url)
        cached = self._state.book_details.get(key)
        if cached is not None:
            logger.debug("Book detail cache hit for %s", key)
            return cached
        logger.debug("Book detail cache miss for %s", key)
        resolution = self._resolver.resolve_book(url)
        detail = resolution.detail
        self._state.book_details[key] = detail
        # Slug and page resolutions are keyed by URL; listings link by id.
        if detail.id and detail.id != key:
            self._state.book_details[detail.id] = detail
        return detail

    def get_or_fetch_reader(self, reader_id: str) -> ReaderInfo:
        cached = self._state.readers.get(reader_id)
        if cached is not None:
            return cached
        info = self._resolver.fetch_reader_info(reader_id)
        if info is None:
            # Unknown readers get a placeholder that is not cached, so a later
            # session can still pick up the real profile.
            return placeholder_reader(reader_id)
        self._state.readers[reader_id] = info
        return info

    def get_or_fetch_author(self, author_id: str) -> AuthorEntity:
        cached = self._state.find_author(author_id)
        if cached is not None:
            return cached
        author = self._resolver.fetch_author(author_id)
        if author is None:
            raise DataAbsence(f"Author not found: {author_id}")
        self._state.remember_author(author)
        return author
