"""
Exception hierarchy for csvlink.

All exceptions inherit from :class:`CsvLinkError` so callers can catch
broadly (``except CsvLinkError``) or narrowly (``except ConnectionError``).

Writing to a closed link and out-of-range channel targets are *not*
errors: the former is dropped, the latter clamped.
"""


class CsvLinkError(Exception):
    """Base exception for all csvlink errors."""


class ConnectionError(CsvLinkError):  # noqa: A001 – intentional shadow of builtin
    """Raised when a serial port is unavailable, busy, missing or access is denied."""


class ValidationError(CsvLinkError):
    """Raised when configuration or constructor arguments are invalid."""
