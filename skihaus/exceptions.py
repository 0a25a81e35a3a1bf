"""Error taxonomy for the conditions pipeline.

Only errors raised outside the provider isolation boundary are fatal; the
rest are caught where they occur and reduce a single record or a single
write.
"""
from __future__ import annotations


class SkihausError(Exception):
    """Base class for pipeline errors."""


class NetworkError(SkihausError):
    """Timeout, abort, connection failure or non-success response status."""

    def __init__(self, message: str, *, url: str | None = None, status_code: int | None = None) -> None:
        super().__init__(message)
        self.url = url
        self.status_code = status_code


class ParseError(SkihausError):
    """A response arrived but did not contain the expected structure."""


class UnmappedNameError(SkihausError, KeyError):
    """A provider-supplied name has no canonical identifier."""

    def __init__(self, raw_name: str) -> None:
        super().__init__(raw_name)
        self.raw_name = raw_name

    def __str__(self) -> str:
        return f"No canonical name registered for {self.raw_name!r}"


class StorageError(SkihausError):
    """The persistence backend could not complete a write."""
