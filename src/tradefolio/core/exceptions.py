"""Application-level exceptions."""

from typing import Optional


class AppError(Exception):
    """Base exception for application errors."""

    status_code = 400

    def __init__(self, message: str, code: str = "APP_ERROR"):
        self.message = message
        self.code = code
        super().__init__(message)


class ValidationError(AppError):
    """Raised when input validation fails."""

    def __init__(self, message: str):
        super().__init__(message, code="VALIDATION_ERROR")


class NotFoundError(AppError):
    """Raised when a requested resource is not found."""

    status_code = 404

    def __init__(self, resource: str, identifier: str):
        super().__init__(f"{resource} not found: {identifier}", code="NOT_FOUND")


class QuoteUnavailableError(AppError):
    """Raised at the API boundary when no source (and no cache) has a price."""

    status_code = 404

    def __init__(self, identifier: str):
        self.identifier = identifier
        super().__init__(f"No quote available for {identifier}", code="NO_QUOTE")


class QuoteSourceError(AppError):
    """
    Raised by a quote source when an upstream call fails.

    The resolver treats every QuoteSourceError as a soft failure and moves on
    to the next source; `retryable` tells the source's own retry loop whether
    another attempt makes sense.
    """

    def __init__(
        self,
        message: str,
        source: str,
        code: str = "SOURCE_ERROR",
        status_code: Optional[int] = None,
        retryable: bool = False,
    ):
        super().__init__(message, code=code)
        self.source = source
        self.upstream_status = status_code
        self.retryable = retryable

    def __str__(self) -> str:
        return f"[{self.source}] {self.message}"
