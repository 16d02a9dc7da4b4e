"""Declarative descriptions of municipal data sources and their registry."""

from .audit import AuditIssue, audit_source, audit_sources
from .models import (
    ApiAuth,
    ApiConfig,
    ApiType,
    Concept,
    DatasetSpec,
    PortalConfig,
    Priority,
    RateLimit,
    ScrapingConfig,
    SourceDescriptor,
    SourceType,
)
from .registry import RegistryInfo, SourceRegistry

__all__ = [
    "ApiAuth",
    "ApiConfig",
    "ApiType",
    "AuditIssue",
    "Concept",
    "DatasetSpec",
    "PortalConfig",
    "Priority",
    "RateLimit",
    "RegistryInfo",
    "ScrapingConfig",
    "SourceDescriptor",
    "SourceRegistry",
    "SourceType",
    "audit_source",
    "audit_sources",
]
