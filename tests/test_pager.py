import dataclasses

import httpx

from librivox_catalog.cache import DedupSet
from librivox_catalog.models import Page, PagerContext
from librivox_catalog.pager import (
    Pager,
    author_books_pager,
    author_search_pager,
    empty_pager,
    home_pager,
    reader_books_pager,
    search_pager,
)
from tests.conftest import api


def _book(book_id, **extra):
    record = {
        "id": str(book_id),
        "title": f"Book {book_id}",
        "url_librivox": f"https://librivox.org/book-{book_id}/",
        "authors": [{"id": "1", "first_name": "Ann", "last_name": "Author"}],
    }
    record.update(extra)
    return record


def _paged_books(total, start_id=100):
    """Serve ``total`` descending ids honoring limit/offset."""

    ids = list(range(start_id + total - 1, start_id - 1, -1))

    def handler(request: httpx.Request) -> httpx.Response:
        limit = int(request.url.params.get("limit", "10"))
        offset = int(request.url.params.get("offset", "0"))
        chunk = ids[offset : offset + limit]
        return httpx.Response(200, json={"books": [_book(book_id) for book_id in chunk]})

    return handler


def test_offset_advances_by_page_size_until_exhausted(router, http_client) -> None:
    router.add_handler(api("feed/audiobooks/search"), _paged_books(25))
    pager = search_pager(http_client, "  Moby ", limit=10)

    offsets = []
    sizes = []
    while pager.has_more:
        offsets.append(pager.context.offset)
        page = pager.next_page()
        sizes.append(len(page.items))

    assert offsets == [0, 10, 20]
    assert sizes == [10, 10, 5]
    assert pager.context.offset == 30
    assert router.params_for(api("feed/audiobooks/search"))[0]["q"] == "moby"


def test_exact_multiple_needs_one_extra_empty_page(router, http_client) -> None:
    router.add_handler(api("feed/audiobooks/search"), _paged_books(20))
    pager = search_pager(http_client, "moby", limit=10)

    items = []
    while pager.has_more:
        items.extend(pager.next_page().items)

    assert len(items) == 20
    assert len(router.requests) == 3
    assert pager.has_more is False


def test_exhausted_pager_does_not_fetch_again(router, http_client) -> None:
    router.add(api("feed/audiobooks/search"), {"books": [_book(1)]})
    pager = search_pager(http_client, "moby", limit=10)

    assert len(pager.next_page().items) == 1
    assert pager.next_page().items == []
    assert len(router.requests) == 1


def test_search_drops_entries_without_catalog_page(router, http_client) -> None:
    router.add(
        api("feed/audiobooks/search"),
        {"books": [_book(1), _book(2, url_librivox=""), _book(3)]},
    )

    page = search_pager(http_client, "moby", limit=50).next_page()

    assert [entry.id for entry in page.items] == ["1", "3"]


def test_home_feed_never_repeats_latest_releases(router, http_client) -> None:
    router.add(api("feed/latest_releases"), {"books": [_book(104), _book(102)]})
    router.add_handler(api("feed/audiobooks"), _paged_books(5))
    dedup = DedupSet()
    pager = home_pager(http_client, dedup, limit=3)

    first = pager.next_page()
    second = pager.next_page()

    latest_ids = [entry.id for entry in first.items[:2]]
    catalog_ids = [entry.id for entry in first.items[2:]] + [entry.id for entry in second.items]
    assert latest_ids == ["104", "102"]
    assert catalog_ids == ["103", "101", "100"]
    assert not set(latest_ids) & set(catalog_ids)
    assert list(dedup) == ["104", "102"]
    # Latest releases are fetched once per session.
    assert router.paths().count(api("feed/latest_releases")) == 1
    assert pager.context.offset == 6


def test_home_feed_language_filter(router, http_client) -> None:
    router.add(api("feed/latest_releases"), {"books": []})
    router.add(api("feed/audiobooks"), {"books": []})

    home_pager(http_client, DedupSet(), limit=10, language="German").next_page()
    home_pager(http_client, DedupSet(), limit=10, language="All").next_page()

    params = router.params_for(api("feed/audiobooks"))
    assert params[0]["language"] == "German"
    assert "language" not in params[1]
    assert params[0]["sort_order"] == "desc"


def test_home_feed_survives_latest_release_failure(router, http_client) -> None:
    router.add(api("feed/latest_releases"), status=500)
    router.add(api("feed/audiobooks"), {"books": [_book(7)]})

    page = home_pager(http_client, DedupSet(), limit=10).next_page()

    assert [entry.id for entry in page.items] == ["7"]


def test_listing_failure_degrades_to_empty_page(router, http_client) -> None:
    router.add(api("feed/audiobooks/search"), status=500)
    pager = search_pager(http_client, "moby", limit=10)

    page = pager.next_page()

    assert page.items == []
    assert page.has_more is False
    assert page.next_context.offset == 0


def test_malformed_listing_degrades_to_empty_page(router, http_client) -> None:
    router.add(api("feed/audiobooks/search"), text="<html>oops</html>")

    page = search_pager(http_client, "moby", limit=10).next_page()

    assert page.items == []
    assert page.has_more is False


def test_author_books_sorted_by_descending_id(router, http_client) -> None:
    router.add(api("feed/authors/142/audiobooks"), {"books": [_book(5), _book(40), _book(12)]})

    page = author_books_pager(http_client, "142", limit=50).next_page()

    assert [entry.id for entry in page.items] == ["40", "12", "5"]
    assert page.has_more is False


def test_reader_books_groups_sections_by_audiobook(router, http_client) -> None:
    sections = [
        {"audiobook_id": "10", "audiobook_title": "Moby Dick", "audiobook_url": "https://librivox.org/moby-dick/"},
        {"audiobook_id": "10", "audiobook_title": "Moby Dick", "audiobook_url": "https://librivox.org/moby-dick/"},
        {"audiobook_id": "11", "audiobook_title": "Emma"},
        {"audiobook_id": "12", "audiobook_title": "Poems", "audiobook_url": "https://librivox.org/poetry-collection-3/"},
        {"audiobook_id": "", "audiobook_title": "Orphan"},
    ]
    router.add(api("feed/readers/88/sections"), {"sections": {"sections": sections}})

    page = reader_books_pager(http_client, "88", limit=50).next_page()

    assert [entry.id for entry in page.items] == ["10", "11"]
    assert page.items[1].url == "https://librivox.org/audiobook-11/?id=11"
    assert page.has_more is False


def test_reader_books_accepts_bare_book_list(router, http_client) -> None:
    router.add(api("feed/readers/88/sections"), [_book(1), _book(2)])

    page = reader_books_pager(http_client, "88", limit=50).next_page()

    assert [entry.id for entry in page.items] == ["1", "2"]
    assert page.has_more is False


def test_reader_books_groups_bare_section_list(router, http_client) -> None:
    sections = [
        {"audiobook_id": "10", "audiobook_title": "Moby Dick", "audiobook_url": "https://librivox.org/moby-dick/"},
        {"audiobook_id": "10", "audiobook_title": "Moby Dick", "audiobook_url": "https://librivox.org/moby-dick/"},
        {"audiobook_id": "11", "audiobook_title": "Emma"},
    ]
    router.add(api("feed/readers/88/sections"), sections)

    page = reader_books_pager(http_client, "88", limit=50).next_page()

    assert [entry.id for entry in page.items] == ["10", "11"]
    assert page.items[0].url == "https://librivox.org/moby-dick/?id=10"


def test_reader_books_dedups_across_pages(router, http_client) -> None:
    router.add(api("feed/readers/88/sections"), {"books": [_book(1), _book(2)]})
    router.add(api("feed/readers/88/sections"), {"books": [_book(2), _book(3)]})
    router.add(api("feed/readers/88/sections"), {"books": []})
    pager = reader_books_pager(http_client, "88", limit=2)

    first = pager.next_page()
    second = pager.next_page()

    assert [entry.id for entry in first.items] == ["1", "2"]
    assert [entry.id for entry in second.items] == ["3"]
    assert second.next_context.page == 3
    assert [params["offset"] for params in router.params_for(api("feed/readers/88/sections"))] == ["0", "2"]


def test_author_search_is_single_page(router, http_client) -> None:
    router.add(api("feed/authors/search"), {"authors": [{"id": "142", "first_name": "Herman", "last_name": "Melville"}]})

    pager = author_search_pager(http_client, " melville ")
    page = pager.next_page()

    assert [author.name for author in page.items] == ["Herman Melville"]
    assert page.has_more is False
    assert router.params_for(api("feed/authors/search"))[0]["q"] == "melville"


def test_empty_pager_never_calls_strategy() -> None:
    pager = empty_pager(PagerContext(kind="unknown", endpoint=""))
    assert pager.has_more is False
    assert pager.next_page().items == []


def test_pager_feeds_context_forward() -> None:
    seen = []

    def strategy(context):
        seen.append(context.offset)
        next_context = dataclasses.replace(context, offset=context.offset + context.limit)
        return Page(items=[context.offset], has_more=context.offset < 20, next_context=next_context)

    pager = Pager(strategy, PagerContext(kind="test", endpoint="x", limit=10))

    items = []
    while pager.has_more:
        items.extend(pager.next_page().items)

    assert items == [0, 10, 20]
    assert seen == [0, 10, 20]
