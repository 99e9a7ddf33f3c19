from __future__ import annotations


class AlertError(Exception):
    """Base class for errors surfaced to callers of the alert service."""


class ValidationFailed(AlertError):
    pass


class NotFound(AlertError):
    pass


class Unauthorized(AlertError):
    pass


class StoreError(AlertError):
    """The backing store could not be read or written."""
