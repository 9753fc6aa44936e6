"""Exceptions raised by the vector store layer."""

from __future__ import annotations


class StoreError(RuntimeError):
    """The vector engine could not complete an operation.

    Raised for unreachable, locked, corrupt, or mis-configured databases so
    that advisory callers can degrade instead of failing.
    """


class DuplicateSourceError(StoreError):
    """A knowledge source with the same URL is already registered."""

    def __init__(self, url: str) -> None:
        super().__init__(f"A knowledge source is already registered for '{url}'.")
        self.url = url
