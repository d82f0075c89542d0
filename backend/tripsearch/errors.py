"""Error taxonomy for the search engine.

Only SearchValidationError and RateLimitError cross the engine boundary.
AdapterError is raised inside provider adapters and converted into a failed
ProviderOutcome before the coordinator ever sees it.
"""

from enum import Enum


class FailureKind(str, Enum):
    TIMEOUT = "timeout"
    AUTH_ERROR = "auth_error"
    QUOTA_EXCEEDED = "quota_exceeded"
    MALFORMED_RESPONSE = "malformed_response"
    NETWORK_ERROR = "network_error"
    UPSTREAM_ERROR = "upstream_error"
    NOT_CONFIGURED = "not_configured"


class SearchError(Exception):
    """Base class for errors returned to engine callers."""


class SearchValidationError(SearchError):
    def __init__(self, message: str, errors: list[dict] | None = None):
        super().__init__(message)
        self.errors = errors or []


class RateLimitError(SearchError):
    def __init__(self, caller_id: str, retry_after: float, limit: int):
        super().__init__(
            f"Rate limit of {limit} requests exceeded for {caller_id!r}; retry in {retry_after:.1f}s"
        )
        self.caller_id = caller_id
        self.retry_after = retry_after
        self.limit = limit


class AdapterError(Exception):
    """Provider-level failure, always absorbed by the coordinator."""

    def __init__(self, kind: FailureKind, message: str, status_code: int | None = None):
        super().__init__(message)
        self.kind = kind
        self.status_code = status_code


class CurrencyRateUnavailable(Exception):
    def __init__(self, from_currency: str, to_currency: str, reason: str = ""):
        super().__init__(f"No rate for {from_currency}->{to_currency}{': ' + reason if reason else ''}")
        self.from_currency = from_currency
        self.to_currency = to_currency
