"""Error taxonomy for the daylog core.

Store errors (ValidationError, NotFoundError) are raised before or instead of
any persistence and are surfaced to callers verbatim. Provider errors carry a
classified ErrorKind so upstream logic never inspects free-text messages.
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    """Closed classification of remote provider failures."""

    QUOTA = "quota"
    RATE_LIMIT = "rate_limit"
    AUTH = "auth"
    NOT_FOUND = "not_found"
    TRANSIENT = "transient"
    FATAL = "fatal"


class DaylogError(Exception):
    """Base class for all daylog errors."""


class ValidationError(DaylogError, ValueError):
    """A required field is missing or empty after trimming."""


class NotFoundError(DaylogError, KeyError):
    """No record exists for the given id."""

    def __init__(self, record_id: str) -> None:
        super().__init__(record_id)
        self.record_id = record_id

    def __str__(self) -> str:
        return f"not found: {self.record_id}"


class ProviderError(DaylogError):
    """A remote provider call failed.

    Attributes:
        kind: Classified failure kind.
        cause: The raw exception raised by the provider SDK, if any.
    """

    kind: ErrorKind = ErrorKind.FATAL

    def __init__(
        self,
        message: str,
        *,
        kind: ErrorKind | None = None,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(message)
        if kind is not None:
            self.kind = kind
        self.cause = cause


class ProviderQuotaError(ProviderError):
    kind = ErrorKind.QUOTA


class ProviderAuthError(ProviderError):
    kind = ErrorKind.AUTH


class ModelNotFoundError(ProviderError):
    kind = ErrorKind.NOT_FOUND


class EmbeddingError(DaylogError):
    """The provider returned no usable vector for a batch."""


class RemoteTimeoutError(DaylogError, TimeoutError):
    """A queued or in-flight remote call exceeded its deadline."""


class MalformedVectorError(DaylogError, ValueError):
    """A stored vector is not a numeric sequence of usable length."""


class DimensionMismatchError(DaylogError, ValueError):
    """A vector's length differs from existing vectors under the same model key."""

    def __init__(self, model_key: str, expected: int, actual: int) -> None:
        super().__init__(
            f"Vector for model '{model_key}' has {actual} dimensions, "
            f"existing vectors have {expected}."
        )
        self.model_key = model_key
        self.expected = expected
        self.actual = actual


class IndexClearError(DaylogError):
    """The vector index could not be bulk-cleared."""


def provider_error_for(kind: ErrorKind, message: str, cause: BaseException | None = None) -> ProviderError:
    """Return the ProviderError subclass matching *kind*."""
    cls = {
        ErrorKind.QUOTA: ProviderQuotaError,
        ErrorKind.AUTH: ProviderAuthError,
        ErrorKind.NOT_FOUND: ModelNotFoundError,
    }.get(kind, ProviderError)
    return cls(message, kind=kind, cause=cause)
