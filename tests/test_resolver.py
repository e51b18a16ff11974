import pytest

from librivox_catalog.constants import ARCHIVE_VIEWS_URL
from librivox_catalog.errors import ResolutionExhausted, TransportFailure
from librivox_catalog.resolver import (
    SOURCE_API_ID,
    SOURCE_API_SLUG,
    SOURCE_HTML,
    CatalogSourceResolver,
)
from tests.conftest import api
from tests.test_scraper import BOOK_PAGE

BOOK_WITH_ID = "https://librivox.org/moby-dick/?id=4321"
BOOK_WITHOUT_ID = "https://librivox.org/moby-dick/"


def _book_payload():
    return {
        "books": [
            {
                "id": "4321",
                "title": "Moby Dick",
                "url_librivox": "https://librivox.org/moby-dick/",
                "url_iarchive": "http://www.archive.org/details/moby_dick_librivox",
                "authors": [{"id": "142", "first_name": "Herman", "last_name": "Melville"}],
                "sections": [{"id": "900", "title": "Loomings", "playtime": "754"}],
            }
        ]
    }


def test_resolve_by_id_never_scrapes(router, http_client) -> None:
    router.add(api("feed/audiobooks/id/4321"), _book_payload())
    router.add(
        f"{ARCHIVE_VIEWS_URL}/moby_dick_librivox",
        {"moby_dick_librivox": {"have_data": True, "all_time": 1234}},
    )

    resolution = CatalogSourceResolver(http_client).resolve_book(BOOK_WITH_ID)

    assert resolution.source == SOURCE_API_ID
    assert resolution.detail.title == "Moby Dick"
    assert resolution.detail.view_count == 1234
    assert resolution.detail.chapters[0].section_id == "900"
    assert "https://librivox.org/moby-dick/" not in router.paths()
    assert router.params_for(api("feed/audiobooks/id/4321"))[0]["extended"] == "1"


def test_resolve_by_slug_when_url_has_no_id(router, http_client) -> None:
    router.add(api("feed/audiobooks/slug/moby-dick"), _book_payload())

    resolution = CatalogSourceResolver(http_client).resolve_book(BOOK_WITHOUT_ID)

    assert resolution.source == SOURCE_API_SLUG
    assert resolution.detail.id == "4321"
    # The archive views endpoint is unrouted here, so the count is unknown.
    assert resolution.detail.view_count == -1


def test_falls_back_to_html_when_endpoints_fail(router, http_client) -> None:
    router.add(BOOK_WITHOUT_ID, text=BOOK_PAGE)

    resolution = CatalogSourceResolver(http_client).resolve_book(BOOK_WITHOUT_ID)

    assert resolution.source == SOURCE_HTML
    assert resolution.detail.title == "Moby Dick"
    assert len(resolution.detail.chapters) == 2
    assert resolution.detail.chapters[0].duration == 754
    assert router.paths() == [api("feed/audiobooks/slug/moby-dick"), BOOK_WITHOUT_ID]


def test_missing_sections_escalates_to_html(router, http_client) -> None:
    router.add(api("feed/audiobooks/id/4321"), {"books": [{"id": "4321", "title": "Moby Dick"}]})
    router.add(BOOK_WITH_ID.split("?")[0], text=BOOK_PAGE)

    resolution = CatalogSourceResolver(http_client).resolve_book(BOOK_WITH_ID)

    assert resolution.source == SOURCE_HTML
    assert resolution.detail.id == "4321"


def test_exhausted_chain_raises_with_every_failure(router, http_client) -> None:
    router.add(api("feed/audiobooks/id/4321"), status=500)
    router.add(BOOK_WITH_ID.split("?")[0], status=503)

    with pytest.raises(ResolutionExhausted) as excinfo:
        CatalogSourceResolver(http_client).resolve_book(BOOK_WITH_ID)

    assert [name for name, _ in excinfo.value.failures] == [SOURCE_API_ID, SOURCE_HTML]
    assert "Unable to resolve audiobook details" in str(excinfo.value)


def test_fetch_view_count_tolerates_bad_payloads(router, http_client) -> None:
    resolver = CatalogSourceResolver(http_client)
    router.add(f"{ARCHIVE_VIEWS_URL}/nodata", {"nodata": {"have_data": False, "all_time": 5}})
    router.add(f"{ARCHIVE_VIEWS_URL}/broken", text="not json")

    assert resolver.fetch_view_count(None) == -1
    assert resolver.fetch_view_count("nodata") == -1
    assert resolver.fetch_view_count("broken") == -1
    assert resolver.fetch_view_count("missing") == -1


def test_fetch_author(router, http_client) -> None:
    router.add(api("feed/authors/id/142"), {"authors": [{"id": "142", "first_name": "Herman", "last_name": "Melville"}]})
    router.add(api("feed/authors/id/999"), {"authors": []})
    resolver = CatalogSourceResolver(http_client)

    assert resolver.fetch_author("142").name == "Herman Melville"
    assert resolver.fetch_author("999") is None


def test_fetch_author_transport_failure_propagates(router, http_client) -> None:
    router.add(api("feed/authors/id/142"), status=500)
    with pytest.raises(TransportFailure):
        CatalogSourceResolver(http_client).fetch_author("142")


def test_fetch_reader_info_prefers_stats(router, http_client) -> None:
    router.add(
        api("feed/readers/with_stats"),
        {"readers": [{"id": "88", "display_name": "Stewart Wills", "section_count": 40, "audiobook_count": 6}]},
    )

    info = CatalogSourceResolver(http_client).fetch_reader_info("88")

    assert info.name == "Stewart Wills"
    assert info.section_count == 40
    assert info.book_count == 6
    assert info.description == "LibriVox reader Stewart Wills who has recorded 40 sections across 6 audiobooks."
    assert router.params_for(api("feed/readers/with_stats"))[0]["id"] == "88"


def test_fetch_reader_info_falls_back_to_plain_listing(router, http_client) -> None:
    router.add(api("feed/readers/with_stats"), status=500)
    router.add(api("feed/readers"), {"readers": [{"display_name": "Ruth Golding"}]})

    info = CatalogSourceResolver(http_client).fetch_reader_info("90")

    assert info.id == "90"
    assert info.name == "Ruth Golding"
    assert info.description == "LibriVox volunteer reader Ruth Golding."


def test_fetch_reader_info_unknown_reader(router, http_client) -> None:
    router.add(api("feed/readers/with_stats"), {"readers": []})
    router.add(api("feed/readers"), {"readers": []})

    assert CatalogSourceResolver(http_client).fetch_reader_info("404") is None
