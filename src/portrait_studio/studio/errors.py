"""Error kinds surfaced to the studio user."""
from __future__ import annotations

UNKNOWN_ERROR_MESSAGE = "Lỗi không xác định."


class StudioError(Exception):
    """Base error carrying a single user-facing message."""

    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InvalidInputError(StudioError):
    """A non-image file was selected."""

    status_code = 400


class MissingFieldError(StudioError):
    """A required field was empty when it was needed."""

    status_code = 400

    def __init__(self, message: str, index: int | None = None) -> None:
        super().__init__(message)
        self.index = index


class PreprocessError(StudioError):
    """The source image could not be decoded, padded or re-encoded."""

    status_code = 422


class AnalysisError(StudioError):
    status_code = 502


class GenerationCallError(StudioError):
    """A single variation call failed, answered with text, or was blocked."""

    status_code = 502


class UnknownError(StudioError):
    status_code = 500

    def __init__(self, message: str = UNKNOWN_ERROR_MESSAGE) -> None:
        super().__init__(message)


def wrap_error(exc: BaseException) -> StudioError:
    """Return ``exc`` unchanged if it is a studio error, else wrap it."""
    if isinstance(exc, StudioError):
        return exc
    return UnknownError()
