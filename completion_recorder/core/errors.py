"""Project error hierarchy."""


class RecorderError(Exception):
    """Base error."""


class StoreConfigError(RecorderError):
    """Raised when store configuration (dsn, schema) is invalid."""


class StoreUnavailableError(RecorderError):
    """Raised when the backing store cannot be reached during construction."""


class CompletionError(RecorderError):
    """Upstream completion failure carried as a stream element.

    Completion streams yield instances of this class (rather than raising them)
    so that a failed element does not terminate the stream.
    """

    code = "completion_error"

    def __init__(self, message: str = "", *, code: str | None = None) -> None:
        super().__init__(message)
        if code is not None:
            self.code = code


class RateLimitExceededError(CompletionError):
    code = "rate_limit_exceeded"


class UpstreamApiError(CompletionError):
    code = "upstream_api_error"
