"""Exception hierarchy for municipal data access.

Registry and translation errors are raised before any request is sent and
are never retried. Remote errors derive from :class:`MunicipalDataError` and
carry the source id, HTTP status code (when there was a response) and the
raw error payload so callers can decide whether to retry, alert or degrade.
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, Iterable


class MunicipalIntelError(Exception):
    """Base class for every error raised by this package."""


# ---------------------------------------------------------------------------
# Registry / configuration
# ---------------------------------------------------------------------------


class SourceNotFoundError(MunicipalIntelError):
    """Raised when no descriptor is registered under the requested id."""

    def __init__(self, source_id: str):
        self.source_id = source_id
        super().__init__(f"Municipality not found: {source_id}")


class DuplicateSourceError(MunicipalIntelError):
    """Raised when registering a descriptor whose id is already taken."""

    def __init__(self, source_id: str):
        self.source_id = source_id
        super().__init__(f"Source with ID '{source_id}' already exists")


class InvalidSourceError(MunicipalIntelError):
    """Raised when a descriptor is missing required fields or is inconsistent."""


class UnsupportedAccessMethodError(MunicipalIntelError):
    """Raised for portal and scraping sources, which have no client yet."""

    def __init__(self, source_id: str, access_method: str):
        self.source_id = source_id
        self.access_method = access_method
        super().__init__(
            f"{access_method.capitalize()} clients not yet implemented for {source_id}"
        )


class UnsupportedApiTypeError(MunicipalIntelError):
    """Raised for API dialects other than Socrata."""

    def __init__(self, source_id: str, api_type: str):
        self.source_id = source_id
        self.api_type = api_type
        super().__init__(f"{api_type} API clients not yet implemented for {source_id}")


class MissingApiConfigError(MunicipalIntelError):
    """Raised when an ``api`` source carries no API configuration."""

    def __init__(self, source_id: str):
        self.source_id = source_id
        super().__init__(f"API configuration missing for {source_id}")


class UnknownDatasetError(MunicipalIntelError):
    """Raised when a request names a dataset the source does not publish."""

    def __init__(self, source_id: str, dataset_id: str, valid: Iterable[str]):
        self.source_id = source_id
        self.dataset_id = dataset_id
        self.valid = sorted(valid)
        super().__init__(
            f"Dataset '{dataset_id}' not found for {source_id}. "
            f"Valid datasets: {', '.join(self.valid)}"
        )


class InvalidDateParameterError(MunicipalIntelError):
    """Raised when a date filter is not a well-formed instant."""

    def __init__(self, param: str, value: Any, reason: str):
        self.param = param
        self.value = value
        super().__init__(f"Invalid {param}: {reason} (got {value!r})")


# ---------------------------------------------------------------------------
# Remote data errors
# ---------------------------------------------------------------------------


class MunicipalDataError(MunicipalIntelError):
    """Any failure talking to a remote source.

    Also used directly for non-2xx responses without a more specific kind
    and for transport failures (``status_code`` is ``None`` then).
    """

    def __init__(
        self,
        message: str,
        source: str,
        status_code: int | None = None,
        details: Any = None,
    ):
        self.source = source
        self.status_code = status_code
        self.details = details
        super().__init__(message)


class MissingFieldMappingError(MunicipalDataError):
    """Raised when an operation needs a concept the dataset does not map."""

    def __init__(self, source: str, concept: str):
        self.concept = concept
        super().__init__(
            f"Missing field mapping for '{concept}' in source {source}. "
            "Please add it to field_mappings in the registry.",
            source,
        )


class AuthenticationError(MunicipalDataError):
    """HTTP 401/403: the app token was rejected."""

    def __init__(self, source: str, status_code: int = 401, details: Any = None):
        super().__init__("Authentication failed", source, status_code, details)


class RateLimitError(MunicipalDataError):
    """HTTP 429: the portal throttled us. ``reset_time`` hints when to retry."""

    def __init__(self, source: str, reset_time: datetime | None = None, details: Any = None):
        self.reset_time = reset_time
        super().__init__("Rate limit exceeded", source, 429, details)


class ServiceUnavailableError(MunicipalDataError):
    """HTTP 503: the portal is temporarily down."""

    def __init__(self, source: str, details: Any = None):
        super().__init__("Service is temporarily unavailable", source, 503, details)
