"""Utility modules for ContentLens.

Available utility modules (re-exported here for convenience):

- **errors** -- Exception hierarchy rooted at ContentLensError; provider
  errors carry an HTTP status code and a ``retryable`` flag.
- **error_classifier** -- The closed failure taxonomy, raw-error
  classification, user-safe messages and failure sentinels.
- **concurrency** -- throttled gather, settle-all and race-with-deadline
  joins used by enrichment and section generation.
- **logging** -- structlog setup with a dual-renderer pattern: coloured
  console output in development, structured JSON in production.
- **text_normalizer** -- URL, query and claim normalization plus title
  similarity for podcast episode matching.
- **timing** -- Stopwatch with an injectable clock.
"""

from src.utils.concurrency import Settled, race_with_deadline, settle_all, throttled_gather
from src.utils.error_classifier import (
    AcquisitionSubtype,
    ErrorCategory,
    classify_error,
    failure_sentinel,
    is_failure_sentinel,
    user_friendly_message,
)
from src.utils.errors import (
    AcquisitionError,
    ConfigurationError,
    ContentLensError,
    DatastoreError,
    LLMError,
    PipelineError,
    ProcessContentError,
    ProviderError,
    ProviderUnavailableError,
    RateLimitError,
    SearchError,
)
from src.utils.logging import configure_logging, get_logger
from src.utils.text_normalizer import (
    extract_domain,
    normalize_claim_text,
    normalize_query,
    normalize_url,
)
from src.utils.timing import Stopwatch

__all__ = [
    "AcquisitionError",
    "AcquisitionSubtype",
    "ConfigurationError",
    "ContentLensError",
    "DatastoreError",
    "ErrorCategory",
    "LLMError",
    "PipelineError",
    "ProcessContentError",
    "ProviderError",
    "ProviderUnavailableError",
    "RateLimitError",
    "SearchError",
    "Settled",
    "Stopwatch",
    "classify_error",
    "configure_logging",
    "extract_domain",
    "failure_sentinel",
    "get_logger",
    "is_failure_sentinel",
    "normalize_claim_text",
    "normalize_query",
    "normalize_url",
    "race_with_deadline",
    "settle_all",
    "throttled_gather",
    "user_friendly_message",
]
