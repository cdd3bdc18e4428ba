"""Application error taxonomy.

Every error raised on purpose inside the graph engine is an ``AppError``.
The API layer turns these into JSON bodies with the right status code;
anything else is reported as a generic internal error so upstream detail
never leaks to callers.
"""

from __future__ import annotations

from typing import Any


class AppError(Exception):
    """Base class for expected application failures."""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        code: str = "INTERNAL_ERROR",
        retryable: bool = False,
    ):
        self.message = message
        self.status_code = status_code
        self.code = code
        self.retryable = retryable
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {"error": {"code": self.code, "message": self.message}}


class ValidationError(AppError):
    def __init__(self, message: str):
        super().__init__(message, status_code=400, code="VALIDATION_ERROR")


class AuthError(AppError):
    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message, status_code=401, code="UNAUTHORIZED")


class NotFoundError(AppError):
    def __init__(self, message: str):
        super().__init__(message, status_code=404, code="NOT_FOUND")


class TopicNotFoundError(NotFoundError):
    def __init__(self, topic_id: str):
        self.topic_id = topic_id
        super().__init__(f"Topic {topic_id} not found")


class SourceNotFoundError(NotFoundError):
    def __init__(self, source_id: str):
        self.source_id = source_id
        super().__init__(f"Source {source_id} not found")


class DirectionStateError(AppError):
    """Raised when a research direction is moved out of a terminal state."""

    def __init__(self, direction_id: str, status: str):
        self.direction_id = direction_id
        self.status = status
        super().__init__(
            f"Research direction {direction_id} is already {status}",
            status_code=409,
            code="DIRECTION_STATE",
        )


class ExternalServiceError(AppError):
    """Upstream embedding/search/analysis failure.

    The caller only ever sees ``"<service> is temporarily unavailable"``;
    ``detail`` is kept for logs.
    """

    def __init__(
        self,
        service: str,
        upstream_status: int | None = None,
        detail: str | None = None,
    ):
        self.service = service
        self.upstream_status = upstream_status
        self.detail = detail
        retryable = upstream_status is None or upstream_status >= 500 or upstream_status == 429
        super().__init__(
            f"{service} is temporarily unavailable",
            status_code=502,
            code="EXTERNAL_SERVICE_ERROR",
            retryable=retryable,
        )

    def __str__(self) -> str:
        parts = [self.message]
        if self.upstream_status is not None:
            parts.append(f"status={self.upstream_status}")
        if self.detail:
            parts.append(self.detail)
        return " | ".join(parts)


class MalformedAnalysisError(AppError):
    """The analysis model answered, but not with a usable JSON document."""

    def __init__(self, detail: str, raw: str = ""):
        self.detail = detail
        self.raw = raw
        super().__init__(
            "Analysis returned a malformed response",
            status_code=502,
            code="MALFORMED_ANALYSIS",
        )

    def __str__(self) -> str:
        return f"{self.message}: {self.detail}"
