"""Error taxonomy shared by the repository, image adapter and HTTP layers.

Each error carries the HTTP status it maps to, so ``main.py`` can translate
every one of them with a single exception handler.
"""

from fastapi import status


class QuizDeskError(Exception):
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    kind: str = "Error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"error": self.kind, "message": self.message}


class NotFound(QuizDeskError):
    """A quiz or submission id that does not exist."""

    status_code = status.HTTP_404_NOT_FOUND
    kind = "NotFound"


class ValidationError(QuizDeskError):
    """Input rejected before it reaches the store (blank title, foreign answer ids)."""

    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    kind = "ValidationError"


class UpstreamError(QuizDeskError):
    """The database or the image API failed."""

    status_code = status.HTTP_502_BAD_GATEWAY
    kind = "UpstreamError"


class ParseError(QuizDeskError):
    """A stored JSON blob cannot be decoded back into nested entities."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    kind = "ParseError"
