"""Exceptions raised by history backends and the key codec."""


class HistoryError(Exception):
    """Base class for crawl history errors."""


class BackendUnavailable(HistoryError):
    """The backend could not be reached (connection refused, pool exhausted, timeout)."""


class BackendQueryError(HistoryError):
    """A read or write failed on a live backend connection."""


class DecodeError(HistoryError):
    """A persisted key cannot be turned back into a request."""
