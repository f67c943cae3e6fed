from __future__ import annotations

"""Exception taxonomy shared by the gateways, dispatch and form flows."""

from typing import Dict, Optional


class MoodifyError(Exception):
    """Base class for every recoverable failure in the app."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ConfigurationError(MoodifyError):
    """A required setting (e.g. the Last.fm API key) is missing."""


class TrackSourceError(MoodifyError):
    """The music-tag API could not be reached or answered with an error."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class ShapeMismatchError(MoodifyError):
    """The music-tag API answered, but not with the expected nested lists."""


class GatewayError(MoodifyError):
    """Auth or table operation failed on the session backend.

    ``message`` is the backend's raw text; callers match on substrings of it.
    """

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class DuplicateRowError(GatewayError):
    """Insert rejected because an identical row already exists."""


class FormValidationError(MoodifyError):
    def __init__(self, field_errors: Dict[str, str]):
        super().__init__("; ".join(f"{k}: {v}" for k, v in field_errors.items()))
        self.field_errors = field_errors
