from __future__ import annotations

from typing import List

from .constants import API_V2_HLS, API_V2_PROXY, AUDIO_CODEC, MIME_HLS, MIME_MPEG
from .errors import NoPlayableSource
from .http import CatalogHttpClient
from .models import AudioSource, ChapterEntry


class AudioSourceResolver:
    """Rank the playable representations of a chapter."""

    def __init__(self, http: CatalogHttpClient, *, enable_adaptive: bool = False) -> None:
        self._http = http
        self._enable_adaptive = enable_adaptive

    def proxy_url(self, section_id: str) -> str:
        return self._http.api_url(API_V2_PROXY.format(section_id=section_id))

    def hls_url(self, stream_id: str) -> str:
        return self._http.api_url(API_V2_HLS.format(stream_id=stream_id))

    def resolve_sources(self, chapter: ChapterEntry) -> List[AudioSource]:
        """Return sources ordered adaptive, proxied, direct.

        Only candidates whose inputs are present are built; an empty result
        raises ``NoPlayableSource``.
        """

        duration = chapter.duration
        sources: List[AudioSource] = []
        if self._enable_adaptive and chapter.stream_id:
            sources.append(
                AudioSource(
                    name="audio (adaptive)",
                    container=MIME_HLS,
                    codec=AUDIO_CODEC,
                    url=self.hls_url(chapter.stream_id),
                    duration=duration,
                )
            )
        if chapter.section_id:
            sources.append(
                AudioSource(
                    name="audio (cached v2)",
                    container=MIME_MPEG,
                    codec=AUDIO_CODEC,
                    url=self.proxy_url(chapter.section_id),
                    duration=duration,
                )
            )
        if chapter.file_url:
            sources.append(
                AudioSource(
                    name="audio (archive.org)",
                    container=MIME_MPEG,
                    codec=AUDIO_CODEC,
                    url=chapter.file_url,
                    duration=duration,
                )
            )
        if not sources:
            raise NoPlayableSource(f"No playable audio source for chapter {chapter.index}: {chapter.title}")
        return sources
