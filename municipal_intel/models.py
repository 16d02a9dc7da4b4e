"""Request and response models for the uniform search API.

Hierarchy:
  Enums
    SortField
    SortOrder

  Request
    SearchRequest          -- uniform search parameters, source-agnostic

  Responses
    MunicipalProject       -- uniform entity: derived description + raw record
    SearchResponse         -- page of projects plus filter adjustments

  Discovery
    DatasetInfo
    MunicipalityInfo
    SearchCapabilities
    FieldSchema
    HealthCheck

``MunicipalProject`` deliberately carries no typed title/status/date/value
fields. Portal coverage of those columns is too inconsistent; the derived
``description`` plus the verbatim ``raw_data`` are what every source can
guarantee.
"""

from __future__ import annotations

from datetime import date, datetime, time, timezone
from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator

from municipal_intel.errors import InvalidDateParameterError

# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class SortField(str, Enum):
    submit_date = "submit_date"
    approval_date = "approval_date"
    value = "value"
    address = "address"


class SortOrder(str, Enum):
    asc = "asc"
    desc = "desc"


# ---------------------------------------------------------------------------
# Request
# ---------------------------------------------------------------------------


def coerce_instant(value: object, param: str) -> datetime | None:
    """Turn a date filter input into a ``datetime``.

    Accepts ``datetime``, ``date`` (midnight) and ISO-8601 strings, including a
    trailing ``Z``. Anything else fails fast rather than being passed through
    to the wire query.

    Raises:
        InvalidDateParameterError: The value is not a well-formed instant.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime.combine(value, time.min)
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            raise InvalidDateParameterError(
                param, value, "expected an ISO-8601 date such as '2024-01-01'"
            ) from None
    kind = "list" if isinstance(value, (list, tuple)) else type(value).__name__
    raise InvalidDateParameterError(param, value, f"expected a datetime, got {kind}")


class SearchRequest(BaseModel):
    """Uniform search parameters.

    Every filter is optional. Filters a dataset cannot honour are dropped
    and reported in ``SearchResponse.adjustments``.
    """

    model_config = ConfigDict(extra="forbid")

    municipality_id: Optional[str] = None
    dataset_id: Optional[str] = None

    addresses: List[str] = Field(default_factory=list)
    statuses: List[str] = Field(default_factory=list)
    keywords: List[str] = Field(default_factory=list)

    submit_date_from: Optional[datetime] = None
    submit_date_to: Optional[datetime] = None
    approval_date_from: Optional[datetime] = None
    approval_date_to: Optional[datetime] = None

    min_value: Optional[float] = Field(None, ge=0, allow_inf_nan=False)
    max_value: Optional[float] = Field(None, ge=0, allow_inf_nan=False)

    limit: int = Field(100, ge=1, le=50000)
    offset: int = Field(0, ge=0)

    sort_by: SortField = SortField.submit_date
    sort_order: SortOrder = SortOrder.desc

    @field_validator(
        "submit_date_from",
        "submit_date_to",
        "approval_date_from",
        "approval_date_to",
        mode="before",
    )
    @classmethod
    def check_instant(cls, v: object, info: ValidationInfo) -> object:
        # Not a ValueError: escapes validation unwrapped.
        return coerce_instant(v, info.field_name)


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------


class MunicipalProject(BaseModel):
    """A normalised record from any source."""

    model_config = ConfigDict(extra="ignore")

    id: str
    source: str
    description: str
    url: Optional[str] = None
    raw_data: Dict[str, Any] = Field(default_factory=dict)
    last_updated: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class SearchResponse(BaseModel):
    projects: List[MunicipalProject] = Field(default_factory=list)
    total: int = 0
    page: int = 1
    page_size: int
    has_more: bool = False
    adjustments: List[str] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Discovery
# ---------------------------------------------------------------------------


class DatasetInfo(BaseModel):
    id: str
    name: str


class MunicipalityInfo(BaseModel):
    id: str
    name: str
    state: str
    datasets: List[DatasetInfo] = Field(default_factory=list)


class SearchCapabilities(BaseModel):
    """Filters and sorts a dataset can honour, derived from its mappings."""

    supported_filters: List[str]
    supported_sorts: List[SortField]
    limitations: List[str] = Field(default_factory=list)


class FieldSchema(BaseModel):
    name: str
    type: Literal["string", "number", "date"]
    searchable: bool
    description: Optional[str] = None


class HealthCheck(BaseModel):
    status: Literal["healthy", "degraded", "unhealthy"]
    latency_ms: Optional[float] = None
    error: Optional[str] = None
    last_checked: datetime
