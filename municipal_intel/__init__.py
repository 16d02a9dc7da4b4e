"""Uniform search over municipal open-data portals."""

from .clients import ClientFactory
from .config import Settings, get_settings
from .errors import (
    AuthenticationError,
    DuplicateSourceError,
    InvalidDateParameterError,
    InvalidSourceError,
    MissingApiConfigError,
    MissingFieldMappingError,
    MunicipalDataError,
    MunicipalIntelError,
    RateLimitError,
    ServiceUnavailableError,
    SourceNotFoundError,
    UnknownDatasetError,
    UnsupportedAccessMethodError,
    UnsupportedApiTypeError,
)
from .intel import MunicipalIntel, create_municipal_intel
from .models import (
    MunicipalProject,
    SearchCapabilities,
    SearchRequest,
    SearchResponse,
    SortField,
    SortOrder,
)
from .sources import SourceDescriptor, SourceRegistry

__all__ = [
    "AuthenticationError",
    "ClientFactory",
    "DuplicateSourceError",
    "InvalidDateParameterError",
    "InvalidSourceError",
    "MissingApiConfigError",
    "MissingFieldMappingError",
    "MunicipalDataError",
    "MunicipalIntel",
    "MunicipalIntelError",
    "MunicipalProject",
    "RateLimitError",
    "SearchCapabilities",
    "SearchRequest",
    "SearchResponse",
    "ServiceUnavailableError",
    "Settings",
    "SortField",
    "SortOrder",
    "SourceDescriptor",
    "SourceNotFoundError",
    "SourceRegistry",
    "UnknownDatasetError",
    "UnsupportedAccessMethodError",
    "UnsupportedApiTypeError",
    "create_municipal_intel",
    "get_settings",
]
