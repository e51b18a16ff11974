from __future__ import annotations

from typing import Any, Dict, List, Optional
from urllib.parse import urljoin

from bs4 import BeautifulSoup, Tag

from .errors import MalformedResponse
from .normalizer import ScrapedBookRecord
from .urls import extract_author_id, extract_reader_id


def _text(node: Optional[Tag]) -> Optional[str]:
    if node is None:
        return None
    value = node.get_text(" ", strip=True)
    return value or None


def _href(node: Optional[Tag], base_url: str) -> str:
    if node is None:
        return ""
    href = (node.get("href") or "").strip()
    return urljoin(base_url, href) if href else ""


def _parse_people(links: List[Tag], base_url: str, *, readers: bool) -> List[Dict[str, Any]]:
    extract = extract_reader_id if readers else extract_author_id
    people: List[Dict[str, Any]] = []
    for link in links:
        href = _href(link, base_url)
        people.append({"name": _text(link) or "", "url": href, "id": extract(href) or ""})
    return people


def _parse_chapter_row(row: Tag, base_url: str) -> Dict[str, Any]:
    name_link = row.select_one("a.chapter-name")
    cells = row.find_all("td")
    reader_links = cells[2].find_all("a") if len(cells) > 2 else []
    return {
        "title": _text(name_link),
        "file_url": _href(name_link, base_url),
        "duration_text": _text(cells[-1]) if cells else None,
        "readers": _parse_people(reader_links, base_url, readers=True),
    }


def parse_book_page(html_payload: str, *, base_url: str) -> ScrapedBookRecord:
    """Extract an audiobook page into a ``ScrapedBookRecord``.

    Raises ``MalformedResponse`` when the page carries no chapter rows, since
    nothing playable could be built from it.
    """

    if not html_payload or not html_payload.strip():
        raise MalformedResponse(f"Empty audiobook page: {base_url}")
    soup = BeautifulSoup(html_payload, "html.parser")

    rows = soup.select(".chapter-download tr")
    chapters = [_parse_chapter_row(row, base_url) for row in rows if row.find("td") is not None]
    if not chapters:
        raise MalformedResponse(f"No chapter rows found on {base_url}")

    cover = soup.select_one(".book-page-image img") or soup.select_one(".book-page-book-cover img")
    cover_src = (cover.get("src") or "").strip() if cover is not None else ""

    return ScrapedBookRecord(
        title=_text(soup.select_one(".content-wrap h1")),
        description=_text(soup.select_one(".content-wrap .description")),
        cover_url=urljoin(base_url, cover_src) if cover_src else None,
        authors=_parse_people(soup.select(".book-page-author a"), base_url, readers=False),
        chapters=chapters,
    )
