"""Pydantic v2 models describing municipal data sources.

A :class:`SourceDescriptor` is the declarative record for one municipality.
API sources carry an :class:`ApiConfig` whose ``datasets`` map dataset ids to
:class:`DatasetSpec` entries. Each dataset maps logical :class:`Concept`
values (submit date, value, status ...) to the dataset's physical field names
and holds two derivation functions used during normalisation.

All descriptor models are frozen: built-in descriptors are shared across
concurrent searches and must never be mutated in place.

Hierarchy:
  Enums
    SourceType        -- api | portal | scraping
    ApiType           -- socrata | arcgis | custom
    PortalSystem
    Priority
    Concept           -- logical data attributes

  Sub-models
    ApiAuth
    RateLimit
    DatasetSpec
    ApiConfig         -- enforces default_dataset in datasets
    PortalConfig
    ScrapingConfig

  SourceDescriptor
  StateSources        -- state-level grouping
  RegistryData        -- versioned built-in registry payload
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Callable, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

RecordFn = Callable[[Dict[str, Any]], str]

# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class SourceType(str, Enum):
    """How a source's data is accessed. Only ``api`` has a client."""

    api = "api"
    portal = "portal"
    scraping = "scraping"


class ApiType(str, Enum):
    """Wire dialects. Only ``socrata`` is implemented."""

    socrata = "socrata"
    arcgis = "arcgis"
    custom = "custom"


class PortalSystem(str, Enum):
    accela = "accela"
    custom = "custom"
    ebuild = "eBUILD"
    epermits = "ePermits"
    myjax = "MyJax"


class Priority(str, Enum):
    high = "high"
    medium = "medium"
    low = "low"


class Concept(str, Enum):
    """Logical attributes a dataset may map to one of its physical fields."""

    id = "id"
    title = "title"
    status = "status"
    submit_date = "submit_date"
    approval_date = "approval_date"
    value = "value"
    address = "address"
    description = "description"
    applicant = "applicant"


# ---------------------------------------------------------------------------
# Sub-models
# ---------------------------------------------------------------------------


class ApiAuth(BaseModel):
    """Token requirements for an API source."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    required: bool = False
    recommended: bool = False
    type: Optional[Literal["app_token", "api_key", "oauth"]] = None
    header: Optional[str] = None


class RateLimit(BaseModel):
    """Published request ceilings. ``"shared"``/``"unknown"`` defer to settings."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    limit: Optional[Union[int, Literal["unknown", "shared"]]] = None
    period: Optional[Literal["second", "minute", "hour", "day"]] = None
    with_token: Optional[int] = None
    without_token: Optional[Union[int, Literal["shared"]]] = None


class DatasetSpec(BaseModel):
    """One remote dataset: where it lives, what it publishes, how to read it.

    ``known_fields`` is informational and used for drift audits; ``field_mappings``
    values should, in steady state, be members of ``known_fields``.

    ``full_address`` is exposed for callers that need a one-line location;
    ``describe`` embeds the same address. ``text_date_fields`` names date
    columns stored as ``MM/DD/YYYY`` text, which cannot be range-filtered
    with SoQL timestamps.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    endpoint: str
    name: str
    known_fields: List[str] = Field(default_factory=list)
    field_mappings: Dict[Concept, str] = Field(default_factory=dict)
    text_date_fields: List[str] = Field(default_factory=list)
    full_address: Optional[RecordFn] = Field(default=None, exclude=True)
    describe: Optional[RecordFn] = Field(default=None, exclude=True)

    def field_for(self, concept: Concept | str) -> str | None:
        """Physical field mapped to *concept*, or ``None`` when unmapped."""
        return self.field_mappings.get(Concept(concept))


class ApiConfig(BaseModel):
    """API access configuration for a source."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    type: ApiType
    base_url: str
    datasets: Dict[str, DatasetSpec] = Field(default_factory=dict)
    default_dataset: str
    endpoints: Dict[str, str] = Field(default_factory=dict)
    authentication: Optional[ApiAuth] = None
    rate_limit: Optional[RateLimit] = None

    @field_validator("base_url")
    @classmethod
    def check_base_url(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError("base_url must start with http:// or https://")
        return v.rstrip("/")

    @model_validator(mode="after")
    def check_default_dataset(self) -> "ApiConfig":
        if self.default_dataset not in self.datasets:
            raise ValueError(
                f"default_dataset '{self.default_dataset}' is not one of "
                f"{sorted(self.datasets)}"
            )
        return self


class PortalConfig(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    url: str
    system: PortalSystem
    login_required: bool = False


class ScrapingConfig(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    url: str
    format: Optional[Literal["html", "pdf"]] = None
    selectors: Dict[str, str] = Field(default_factory=dict)
    has_pdfs: bool = False
    requires_js: bool = False


# ---------------------------------------------------------------------------
# Source descriptor
# ---------------------------------------------------------------------------


class SourceDescriptor(BaseModel):
    """Declarative configuration for one municipal data source.

    Required fields: id, name, state, type, priority. ``enabled``,
    ``last_checked`` and ``last_error`` are runtime bookkeeping; the registry
    applies them through an overlay and never mutates built-in descriptors.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str = Field(min_length=1)
    name: str = Field(min_length=1)
    state: str = Field(min_length=2, max_length=2)
    type: SourceType
    priority: Priority

    api: Optional[ApiConfig] = None
    portal: Optional[PortalConfig] = None
    scraping: Optional[ScrapingConfig] = None

    urls: Dict[str, str] = Field(default_factory=dict)
    coverage: List[str] = Field(default_factory=list)
    update_frequency: Optional[str] = None

    enabled: bool = True
    last_checked: Optional[str] = None
    last_error: Optional[str] = None

    @field_validator("state")
    @classmethod
    def upper_state(cls, v: str) -> str:
        return v.upper()

    @property
    def datasets(self) -> Dict[str, DatasetSpec]:
        return self.api.datasets if self.api else {}

    @property
    def default_dataset_id(self) -> str | None:
        return self.api.default_dataset if self.api else None


class StateSources(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    municipalities: List[SourceDescriptor] = Field(default_factory=list)


class RegistryData(BaseModel):
    """Versioned set of built-in descriptors grouped by state code."""

    model_config = ConfigDict(frozen=True)

    version: str
    last_updated: str
    sources: Dict[str, StateSources]
