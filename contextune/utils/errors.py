"""Custom exception hierarchy for contextune.

All application exceptions inherit from :class:`ContextuneError`, which
carries an optional ``provider_name`` so error handlers can identify which
external collaborator (e.g. "spotify", "openweathermap", "sqlite_history")
caused the failure.

The hierarchy follows the stages of a recommendation request:

    ContextuneError  (base -- catch-all for any contextune error)
    +-- NotFoundError            (user / profile / rule / recommendation absent)
    +-- NoCandidatesError        (fetch stage produced zero usable tracks)
    +-- ExternalServiceError     (catalog, profile, rule-store, weather calls)
    |   +-- RateLimitError       (upstream answered HTTP 429)
    +-- ServiceUnavailableError  (the whole request cannot be served)
    +-- ConfigurationError       (invalid settings or rule documents)

Ranking and selection never raise to callers; they degrade to best-effort
defaults instead.  Audit-log write failures are caught where they happen.
"""


class ContextuneError(Exception):
    """Base exception for all contextune errors.

    Every subclass carries a human-readable ``message`` and an optional
    ``provider_name`` identifying which external service triggered the
    error.  ``__str__`` prefixes the provider name in brackets for
    structured log output, e.g. ``[spotify] Rate limit exceeded``.
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        provider_name: str | None = None,
    ) -> None:
        self._message = message
        self._provider_name = provider_name
        super().__init__(self._message)

    @property
    def message(self) -> str:
        return self._message

    @property
    def provider_name(self) -> str | None:
        return self._provider_name

    def __str__(self) -> str:
        if self._provider_name:
            return f"[{self._provider_name}] {self._message}"
        return self._message


# ---------------------------------------------------------------------------
# Lookup / data errors
# ---------------------------------------------------------------------------

class NotFoundError(ContextuneError):
    """Raised when a user, profile, rule or recommendation record is absent."""

    def __init__(
        self,
        message: str = "Requested resource was not found",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class NoCandidatesError(ContextuneError):
    """Raised when candidate fetching yields zero tracks even after fallback.

    No synthetic tracks are fabricated in this case; the request fails.
    """

    def __init__(
        self,
        message: str = "No candidate tracks could be fetched",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# External collaborator errors
# ---------------------------------------------------------------------------

class ExternalServiceError(ContextuneError):
    """Raised when a catalog, profile, rule-store or weather call fails.

    Depending on the stage it happens in, the orchestrator either absorbs
    it (the branch is treated as empty) or fails the request.
    """

    def __init__(
        self,
        message: str = "External service call failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class RateLimitError(ExternalServiceError):
    """Raised when an upstream API rate limit is exceeded.

    The core never retries; retry policy belongs to the caller.
    """

    def __init__(
        self,
        message: str = "Rate limit exceeded",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Request-level / configuration errors
# ---------------------------------------------------------------------------

class ServiceUnavailableError(ContextuneError):
    """Raised when no recommendation branch produced tracks, or the request
    was cancelled or ran past its deadline."""

    def __init__(
        self,
        message: str = "Recommendation service is temporarily unavailable",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ConfigurationError(ContextuneError):
    """Raised when configuration or a rule document is invalid at load time."""

    def __init__(
        self,
        message: str = "Invalid or missing configuration",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
