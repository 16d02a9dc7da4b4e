"""Translate a uniform :class:`SearchRequest` into a SoQL query.

SoQL is the query dialect of Socrata open-data portals: ``$select``,
``$where``, ``$order``, ``$limit``, ``$offset`` and ``$q`` (full text) query
parameters against ``/resource/<id>.json``.

Each filter is mapped through the dataset's ``field_mappings``. When the
concept a filter needs is unmapped, the filter is dropped and a readable
adjustment is recorded so the caller knows the result set is wider than
asked for.

Rules the translation relies on:

- Socrata stores cost/valuation columns as text, so value filters are cast
  (``field::number >= 9000``). A lexical comparison would rank ``'9000'``
  above ``'80000'``.
- Floating timestamps reject a timezone suffix. Aware datetimes are converted
  to UTC and written as ``YYYY-MM-DDTHH:MM:SS.fff``.
- When the sort concept is unmapped, the system ``:created_at`` column is
  used instead of failing the query.
"""
from __future__ import annotations

import logging
from datetime import timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from municipal_intel.errors import InvalidDateParameterError, MissingApiConfigError, UnknownDatasetError
from municipal_intel.models import SearchRequest, SortField, coerce_instant
from municipal_intel.sources.models import Concept, DatasetSpec, SourceDescriptor

logger = logging.getLogger(__name__)

FALLBACK_ORDER_FIELD = ":created_at"

_SORT_CONCEPTS = {
    SortField.submit_date: Concept.submit_date,
    SortField.approval_date: Concept.approval_date,
    SortField.value: Concept.value,
    SortField.address: Concept.address,
}

# (request attribute, concept, comparison)
_DATE_FILTERS = (
    ("submit_date_from", Concept.submit_date, ">="),
    ("submit_date_to", Concept.submit_date, "<="),
    ("approval_date_from", Concept.approval_date, ">="),
    ("approval_date_to", Concept.approval_date, "<="),
)

_VALUE_FILTERS = (
    ("min_value", ">="),
    ("max_value", "<="),
)


class SoQLQuery(BaseModel):
    """SoQL query parameters. Dump with :meth:`to_params` for the wire."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    select: Optional[str] = Field(None, alias="$select")
    where: Optional[str] = Field(None, alias="$where")
    order: Optional[str] = Field(None, alias="$order")
    limit: Optional[int] = Field(None, alias="$limit")
    offset: Optional[int] = Field(None, alias="$offset")
    q: Optional[str] = Field(None, alias="$q")

    def to_params(self) -> dict[str, str]:
        """Query-string parameters, omitting unset clauses."""
        return {k: str(v) for k, v in self.model_dump(by_alias=True, exclude_none=True).items()}

    def as_count(self) -> "SoQLQuery":
        """The same filters, counting matches instead of returning rows."""
        return self.model_copy(
            update={"select": "count(*) as total", "limit": 1, "order": None, "offset": None}
        )


# ---------------------------------------------------------------------------
# Literals
# ---------------------------------------------------------------------------


def quote(value: str) -> str:
    """SoQL string literal; embedded single quotes are doubled."""
    return "'" + value.replace("'", "''") + "'"


def format_number(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else repr(float(value))


def format_timestamp(value: object, param: str) -> str:
    """Serialise a date filter as a SoQL floating timestamp.

    Raises:
        InvalidDateParameterError: *value* is not a valid instant.
    """
    instant = coerce_instant(value, param)
    if instant is None:
        raise InvalidDateParameterError(param, value, "a date is required")
    if instant.tzinfo is not None:
        instant = instant.astimezone(timezone.utc).replace(tzinfo=None)
    return instant.strftime("%Y-%m-%dT%H:%M:%S") + f".{instant.microsecond // 1000:03d}"


# ---------------------------------------------------------------------------
# Translation
# ---------------------------------------------------------------------------


def resolve_dataset(source: SourceDescriptor, dataset_id: str | None = None) -> tuple[str, DatasetSpec]:
    """Return ``(dataset_id, spec)``, defaulting to the source's default dataset.

    Raises:
        MissingApiConfigError: The source has no API configuration.
        UnknownDatasetError: *dataset_id* is not published by the source.
    """
    if source.api is None:
        raise MissingApiConfigError(source.id)
    effective = dataset_id or source.api.default_dataset
    dataset = source.api.datasets.get(effective)
    if dataset is None:
        raise UnknownDatasetError(source.id, effective, source.api.datasets)
    return effective, dataset


def translate(request: SearchRequest, source: SourceDescriptor) -> tuple[SoQLQuery, list[str]]:
    """Build the SoQL query for *request* against *source*.

    Returns:
        ``(query, adjustments)`` where ``adjustments`` holds one message per
        filter that was dropped because the dataset lacks the needed mapping.

    Raises:
        MissingApiConfigError, UnknownDatasetError: Bad source/dataset.
        InvalidDateParameterError: A date filter is malformed.
    """
    dataset_id, dataset = resolve_dataset(source, request.dataset_id)
    adjustments: list[str] = []
    where: list[str] = []

    def field_for(param: str, concept: Concept) -> str | None:
        field = dataset.field_for(concept)
        if field is None:
            adjustments.append(
                f"{source.id.upper()}: Skipped {param} filter - no {concept.value} "
                f"field available in dataset '{dataset_id}'"
            )
            logger.info("%s/%s: skipping %s filter, %s is unmapped", source.id, dataset_id, param, concept.value)
        return field

    for param, concept, op in _DATE_FILTERS:
        value = getattr(request, param)
        if value is None:
            continue
        stamp = format_timestamp(value, param)
        field = field_for(param, concept)
        if field and field in dataset.text_date_fields:
            adjustments.append(
                f"{source.id.upper()}: Skipped {param} filter - {concept.value} field "
                f"'{field}' stores text dates in dataset '{dataset_id}'"
            )
            logger.info("%s/%s: skipping %s filter, %s holds text dates", source.id, dataset_id, param, field)
        elif field:
            where.append(f"{field} {op} '{stamp}'")

    for param, op in _VALUE_FILTERS:
        value = getattr(request, param)
        if value is None:
            continue
        field = field_for(param, Concept.value)
        if field:
            where.append(f"{field}::number {op} {format_number(value)}")

    if request.statuses:
        field = field_for("statuses", Concept.status)
        if field:
            where.append(f"{field} in ({', '.join(quote(s) for s in request.statuses)})")

    if request.addresses:
        field = field_for("addresses", Concept.address)
        if field:
            clauses = [f"upper({field}) like upper({quote(f'%{a}%')})" for a in request.addresses]
            where.append(f"({' OR '.join(clauses)})")

    query = SoQLQuery(
        where=" AND ".join(where) or None,
        order=_order_clause(request, dataset),
        limit=request.limit,
        offset=request.offset,
        q=" ".join(request.keywords) or None,
    )
    return query, adjustments


def _order_clause(request: SearchRequest, dataset: DatasetSpec) -> str:
    field = dataset.field_for(_SORT_CONCEPTS[request.sort_by])
    if field is None:
        logger.debug("No %s mapping, ordering by %s", request.sort_by.value, FALLBACK_ORDER_FIELD)
        field = FALLBACK_ORDER_FIELD
    return f"{field} {request.sort_order.value}"


def id_query(dataset: DatasetSpec, source_id: str, record_id: str) -> SoQLQuery:
    """Query for one record by its mapped id (with or without the source prefix)."""
    field = dataset.field_for(Concept.id)
    prefix = f"{source_id}-"
    if record_id.startswith(prefix):
        record_id = record_id[len(prefix):]
    return SoQLQuery(where=f"{field} = {quote(record_id)}", limit=1)
