from __future__ import annotations

import dataclasses
import os
from dataclasses import dataclass
from typing import Any, List, Mapping, Optional

from .constants import (
    API_BASE_URL,
    AUTHOR_PAGE_SIZE,
    DEFAULT_LANGUAGE,
    HOME_PAGE_SIZE,
    READER_PAGE_SIZE,
    SEARCH_PAGE_SIZE,
)
from .utils import load_environment


def coerce_bool(value: Any, default: bool = False) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"true", "1", "yes", "on"}:
            return True
        if lowered in {"false", "0", "no", "off"}:
            return False
        return default
    if value is None:
        return default
    return bool(value)


def coerce_int(value: Any, default: int, *, minimum: int = 1) -> int:
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        return default
    return parsed if parsed >= minimum else default


def load_options_for_setting(host_config: Optional[Mapping[str, Any]], setting_key: str) -> List[str]:
    """Return the option labels the host declares for ``setting_key``."""

    for setting in (host_config or {}).get("settings") or []:
        if isinstance(setting, Mapping) and setting.get("variable") == setting_key:
            return [str(option) for option in setting.get("options") or []]
    return []


@dataclass(frozen=True)
class CatalogConfig:
    api_base_url: str = API_BASE_URL
    api_key: Optional[str] = None
    timeout: float = 30.0
    verify_ssl: bool = True
    user_agent: str = "librivox-catalog/1.0"
    home_page_size: int = HOME_PAGE_SIZE
    search_page_size: int = SEARCH_PAGE_SIZE
    author_page_size: int = AUTHOR_PAGE_SIZE
    reader_page_size: int = READER_PAGE_SIZE
    enable_adaptive_streaming: bool = False
    language: str = DEFAULT_LANGUAGE
    log_level: str = "INFO"

    def normalized_api_base_url(self) -> str:
        base = (self.api_base_url or "").strip()
        if not base:
            raise ValueError("Catalog API base URL is required")
        return base.rstrip("/")

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "CatalogConfig":
        if environ is None:
            load_environment()
            environ = os.environ
        defaults = cls()
        try:
            timeout = float(environ.get("LIBRIVOX_TIMEOUT", defaults.timeout))
        except (TypeError, ValueError):
            timeout = defaults.timeout
        return cls(
            api_base_url=environ.get("LIBRIVOX_API_BASE_URL") or defaults.api_base_url,
            api_key=environ.get("LIBRIVOX_API_KEY") or None,
            timeout=timeout,
            verify_ssl=coerce_bool(environ.get("LIBRIVOX_VERIFY_SSL"), True),
            enable_adaptive_streaming=coerce_bool(environ.get("LIBRIVOX_ENABLE_ADAPTIVE_STREAMING"), False),
            language=environ.get("LIBRIVOX_LANGUAGE") or defaults.language,
            log_level=environ.get("LIBRIVOX_LOG_LEVEL") or defaults.log_level,
        )

    def with_host(
        self,
        host_config: Optional[Mapping[str, Any]] = None,
        settings: Optional[Mapping[str, Any]] = None,
    ) -> "CatalogConfig":
        """Overlay host configuration and user settings onto this config."""

        host_config = host_config or {}
        settings = settings or {}
        changes: dict = {}

        if host_config.get("apiBaseUrl"):
            changes["api_base_url"] = str(host_config["apiBaseUrl"])
        if host_config.get("apiKey"):
            changes["api_key"] = str(host_config["apiKey"])

        language = settings.get("language")
        if not language:
            options = load_options_for_setting(host_config, "languageOptionIndex")
            index = coerce_int(settings.get("languageOptionIndex"), 0, minimum=0)
            if 0 <= index < len(options):
                language = options[index]
        if language:
            changes["language"] = str(language)

        if "enableAdaptiveStreaming" in settings:
            changes["enable_adaptive_streaming"] = coerce_bool(
                settings.get("enableAdaptiveStreaming"), self.enable_adaptive_streaming
            )
        if "homePageSize" in settings:
            changes["home_page_size"] = coerce_int(settings.get("homePageSize"), self.home_page_size)

        return dataclasses.replace(self, **changes) if changes else self
