from __future__ import annotations


class TutorError(Exception):
    """Base for failures that the HTTP boundary turns into ``{"error": ...}``."""

    status_code: int = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationFailure(TutorError):
    """Unknown action or missing required field. Raised before any side effect."""

    status_code = 400


class UploadFailure(TutorError):
    """The Files API rejected an upload, or its payload could not be decoded."""


class ModelCallFailure(TutorError):
    """The generation call failed (transport, quota, safety block...)."""


class ActionTimeout(ModelCallFailure):
    """The whole action ran past its outer deadline."""


class MalformedModelOutput(TutorError):
    """A structured action's response was not the expected JSON shape."""
