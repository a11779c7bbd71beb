"""Utility modules for contextune.

- **confidence** -- weighted branch confidence, level mapping and
  population variance for diversity metrics.
- **errors** -- domain exception hierarchy rooted at ContextuneError.
- **concurrency** -- semaphore-bounded gather and fan-out helpers for
  catalog calls.
- **logging** -- structlog setup with console/JSON dual rendering.
"""

from contextune.utils.concurrency import parallel_fetch, throttled_gather
from contextune.utils.confidence import (
    ConfidenceLevel,
    calculate_confidence,
    clamp_unit,
    confidence_to_level,
    mean,
    population_variance,
)
from contextune.utils.errors import (
    ConfigurationError,
    ContextuneError,
    ExternalServiceError,
    NoCandidatesError,
    NotFoundError,
    RateLimitError,
    ServiceUnavailableError,
)
from contextune.utils.logging import configure_logging, get_logger

__all__ = [
    "ConfidenceLevel",
    "ConfigurationError",
    "ContextuneError",
    "ExternalServiceError",
    "NoCandidatesError",
    "NotFoundError",
    "RateLimitError",
    "ServiceUnavailableError",
    "calculate_confidence",
    "clamp_unit",
    "configure_logging",
    "confidence_to_level",
    "get_logger",
    "mean",
    "parallel_fetch",
    "population_variance",
    "throttled_gather",
]
