"""Exception hierarchy for explanation and API failures."""
from typing import List

from fastapi import HTTPException, status


class MetisClewError(Exception):
    """Base exception for all application errors."""

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(self) or "Unknown error"
        )


class MissingFieldsError(MetisClewError):
    """Raised when an explanation request lacks required fields."""

    def __init__(self, fields: List[str]):
        self.fields = fields
        super().__init__(f"Missing required fields: {', '.join(fields)}")

    def to_http_exception(self) -> HTTPException:
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(self))


class ExplanationTimeoutError(MetisClewError):
    """Raised when the LLM does not answer within the timeout."""

    def __init__(self, timeout: float):
        self.timeout = timeout
        super().__init__(
            f"AI request timed out (>{timeout:g}s). Please try again with shorter code."
        )

    def to_http_exception(self) -> HTTPException:
        return HTTPException(status_code=status.HTTP_504_GATEWAY_TIMEOUT, detail=str(self))


class ExplanationServiceError(MetisClewError):
    """Raised when the LLM provider returns an error."""

    def __init__(self, original_error: Exception):
        self.original_error = original_error
        super().__init__(f"AI service error: {original_error}")

    def to_http_exception(self) -> HTTPException:
        return HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(self))


class ApiError(MetisClewError):
    """Raised by the HTTP client when the backend call fails."""

    def __init__(self, message: str, status_code: int = 0):
        self.status_code = status_code
        super().__init__(message)

    @property
    def is_auth_error(self) -> bool:
        return self.status_code in (401, 403)
