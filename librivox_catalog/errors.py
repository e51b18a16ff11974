from __future__ import annotations

from typing import Optional


class CatalogError(RuntimeError):
    """Raised when the catalog adapter encounters an unrecoverable error."""


class TransportFailure(CatalogError):
    """Non-success HTTP status or a transport-level error."""

    def __init__(self, message: str, *, url: str = "", status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.url = url
        self.status_code = status_code


class MalformedResponse(CatalogError):
    """JSON or HTML payload does not have the expected structure."""


class DataAbsence(CatalogError):
    """A requested entity is missing from an otherwise successful response."""


class NoPlayableSource(DataAbsence):
    """A chapter resolved, but no audio source could be built for it."""


class ResolutionExhausted(CatalogError):
    """Every detail resolution strategy failed."""

    def __init__(self, url: str, failures: Optional[list] = None) -> None:
        self.url = url
        self.failures = list(failures or [])
        detail = "; ".join(f"{name}: {reason}" for name, reason in self.failures)
        message = f"Unable to resolve audiobook details for {url}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)
