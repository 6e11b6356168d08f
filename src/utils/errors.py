"""Custom exception hierarchy for ContentLens.

All application exceptions inherit from :class:`ContentLensError`, which
carries an optional ``provider_name`` so error handlers can identify which
external service (e.g. "openai", "tavily", "supadata") caused the failure.

The hierarchy is organized by pipeline concern:

    ContentLensError  (base -- catch-all for any ContentLens error)
    +-- ProviderError              (external call failed; carries status_code/retryable)
    |   +-- LLMError               (completion API failure)
    |   +-- RateLimitError         (HTTP 429 from any vendor)
    |   +-- ProviderUnavailableError (service down / unreachable)
    |   +-- SearchError            (web search failure)
    |   +-- AcquisitionError       (scrape / metadata / transcript fetch)
    |   +-- PodcastResolutionError (no playable audio; never retryable)
    +-- ResponseParseError         (model output is not usable JSON)
    |   +-- SectionDecodeError     (section payload failed validation)
    +-- DatastoreError             (persistence failure)
    +-- ConfigurationError         (startup / missing credentials)
    +-- PipelineError              (orchestration failure)
    +-- ProcessContentError        (entry-point failure mapped to an HTTP status)

Retry decisions branch on ``ProviderError.retryable`` instead of matching
error strings.
"""

from __future__ import annotations


class ContentLensError(Exception):
    """Base exception for all ContentLens errors.

    Every subclass carries a human-readable ``message`` and an optional
    ``provider_name`` identifying which external service triggered the
    error.  The ``__str__`` method prefixes the provider name in brackets
    for structured log output, e.g. ``[openai] Rate limit exceeded``.
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
# External service / provider errors
# ---------------------------------------------------------------------------


def _default_retryable(status_code: int | None) -> bool:
    """Network errors, 429 and 5xx are transient; any other 4xx is final."""
    if status_code is None or status_code == 429:
        return True
    return not 400 <= status_code < 500


class ProviderError(ContentLensError):
    """Raised when a call to an external provider fails.

    ``status_code`` is the HTTP status returned by the vendor (``None`` for
    network errors and timeouts).  ``retryable`` is derived from it unless
    given explicitly.
    """

    def __init__(
        self,
        message: str = "External provider call failed",
        provider_name: str | None = None,
        status_code: int | None = None,
        retryable: bool | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
        self._status_code = status_code
        self._retryable = _default_retryable(status_code) if retryable is None else retryable

    @property
    def status_code(self) -> int | None:
        return self._status_code

    @property
    def retryable(self) -> bool:
        return self._retryable


class LLMError(ProviderError):
    """Raised when an LLM API call fails or returns an empty response."""

    def __init__(
        self,
        message: str = "LLM API call failed",
        provider_name: str | None = None,
        status_code: int | None = None,
        retryable: bool | None = None,
    ) -> None:
        super().__init__(
            message=message,
            provider_name=provider_name,
            status_code=status_code,
            retryable=retryable,
        )


class RateLimitError(ProviderError):
    """Raised when an API rate limit is exceeded (always HTTP 429)."""

    def __init__(
        self,
        message: str = "Rate limit exceeded",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name, status_code=429)


class ProviderUnavailableError(ProviderError):
    """Raised when an external service is not configured or unreachable."""

    def __init__(
        self,
        message: str = "External service is unavailable",
        provider_name: str | None = None,
        status_code: int | None = None,
        retryable: bool | None = None,
    ) -> None:
        super().__init__(
            message=message,
            provider_name=provider_name,
            status_code=status_code,
            retryable=retryable,
        )


class SearchError(ProviderError):
    """Raised when a web search call fails."""

    def __init__(
        self,
        message: str = "Web search failed",
        provider_name: str | None = None,
        status_code: int | None = None,
        retryable: bool | None = None,
    ) -> None:
        super().__init__(
            message=message,
            provider_name=provider_name,
            status_code=status_code,
            retryable=retryable,
        )


class AcquisitionError(ProviderError):
    """Raised when fetching source text or metadata fails."""

    def __init__(
        self,
        message: str = "Content acquisition failed",
        provider_name: str | None = None,
        status_code: int | None = None,
        retryable: bool | None = None,
    ) -> None:
        super().__init__(
            message=message,
            provider_name=provider_name,
            status_code=status_code,
            retryable=retryable,
        )


class PodcastResolutionError(ProviderError):
    """Raised when no playable audio URL can be discovered for a podcast.

    The message is user-actionable (e.g. "paste the RSS feed instead") and
    the error is never retried.
    """

    def __init__(
        self,
        message: str = "Could not find a playable audio file for this podcast",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name, retryable=False)


# ---------------------------------------------------------------------------
# Model output errors
# ---------------------------------------------------------------------------


class ResponseParseError(ContentLensError):
    """Raised when model output cannot be parsed as JSON by any strategy."""

    def __init__(
        self,
        message: str = "Model response could not be parsed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class SectionDecodeError(ResponseParseError):
    """Raised when a section payload fails validation for its section type."""

    def __init__(
        self,
        message: str = "Section payload is invalid",
        provider_name: str | None = None,
        section: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
        self._section = section

    @property
    def section(self) -> str | None:
        return self._section


# ---------------------------------------------------------------------------
# Persistence / orchestration / configuration errors
# ---------------------------------------------------------------------------


class DatastoreError(ContentLensError):
    """Raised when a datastore read or write fails."""

    def __init__(
        self,
        message: str = "Datastore operation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ConfigurationError(ContentLensError):
    """Raised when configuration is invalid or missing at startup."""

    def __init__(
        self,
        message: str = "Invalid or missing configuration",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class PipelineError(ContentLensError):
    """Raised when pipeline orchestration fails (invalid state transition, etc.)."""

    def __init__(
        self,
        message: str = "Pipeline orchestration failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ProcessContentError(ContentLensError):
    """Raised by the processing entry point; maps to an HTTP status code.

    ``message`` is always safe to show to the end user.  ``upgrade_required``
    is set for quota and tier denials.
    """

    def __init__(
        self,
        message: str,
        status_code: int,
        upgrade_required: bool = False,
        tier: str | None = None,
    ) -> None:
        super().__init__(message=message)
        self._status_code = status_code
        self._upgrade_required = upgrade_required
        self._tier = tier

    @property
    def status_code(self) -> int:
        return self._status_code

    @property
    def upgrade_required(self) -> bool:
        return self._upgrade_required

    @property
    def tier(self) -> str | None:
        return self._tier
