from __future__ import annotations

SITE_BASE_URL = "https://librivox.org"
AUTHOR_BASE_URL = f"{SITE_BASE_URL}/author"
READER_BASE_URL = f"{SITE_BASE_URL}/reader"

# Upstream endpoint paths have moved several times; these reflect the most
# recent schema and are relative to the configured API base.
API_BASE_URL = "https://librivox-api.openaudiobooks.org/api"
API_FEED_AUDIOBOOKS = "feed/audiobooks"
API_FEED_AUDIOBOOK_BY_ID = "feed/audiobooks/id/{book_id}"
API_FEED_AUDIOBOOK_BY_SLUG = "feed/audiobooks/slug/{slug}"
API_FEED_AUDIOBOOKS_SEARCH = "feed/audiobooks/search"
API_FEED_LATEST_RELEASES = "feed/latest_releases"
API_FEED_AUTHOR_BY_ID = "feed/authors/id/{author_id}"
API_FEED_AUTHORS_SEARCH = "feed/authors/search"
API_FEED_AUTHOR_AUDIOBOOKS = "feed/authors/{author_id}/audiobooks"
API_FEED_READERS = "feed/readers"
API_FEED_READERS_WITH_STATS = "feed/readers/with_stats"
API_FEED_READER_SECTIONS = "feed/readers/{reader_id}/sections"
API_V2_PROXY = "v2/proxy/{section_id}.mp3"
API_V2_HLS = "v2/hls/{stream_id}.m3u8"

ARCHIVE_VIEWS_URL = "https://be-api.us.archive.org/views/v1/short"

DETAIL_QUERY = {"format": "json", "extended": 1, "coverart": 1}

DEFAULT_BOOK_COVER = "https://grayjay-plugin-librivox.pages.dev/assets/default-book-cover.png"
DEFAULT_AUTHOR_AVATAR = "https://grayjay-plugin-librivox.pages.dev/LibriVoxIcon.png"
DEFAULT_READER_AVATAR = DEFAULT_AUTHOR_AVATAR

UNKNOWN_AUTHOR = "Unknown Author"
UNKNOWN_TITLE = "Unknown Title"
DEFAULT_LANGUAGE = "All"

HOME_PAGE_SIZE = 10
SEARCH_PAGE_SIZE = 50
AUTHOR_PAGE_SIZE = 50
READER_PAGE_SIZE = 50

AUDIO_CODEC = "mp4a.40.2"
MIME_MPEG = "audio/mpeg"
MIME_HLS = "application/x-mpegURL"

EXTERNAL_AUTHOR_LINKS = (
    ("Wikipedia", "wikipediaurl", "{value}"),
    ("Wikidata", "wikidata_id", "https://www.wikidata.org/wiki/{value}"),
    ("ISNI", "isni_id", "https://isni.org/isni/{value}"),
    ("Viaf", "viaf_id", "https://viaf.org/en/viaf/{value}/"),
    ("Open Library", "openlibrary_id", "https://openlibrary.org/authors/{value}/"),
    ("Project Gutenberg", "project_gutenberg_id", "https://www.gutenberg.org/ebooks/author/{value}/"),
)

RESERVED_PATH_SEGMENTS = frozenset(
    {"search", "pages", "category", "reader", "author", "group", "collections", "api"}
)
