"""Convert raw Socrata rows into :class:`MunicipalProject` entities."""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Mapping

from municipal_intel.models import MunicipalProject
from municipal_intel.sources.models import Concept, DatasetSpec, SourceDescriptor

logger = logging.getLogger(__name__)

UNKNOWN_ID = "unknown"
DEFAULT_DESCRIPTION = "Municipal Project"


def record_id(record: Mapping[str, Any], dataset: DatasetSpec) -> str:
    """The record's mapped id value, or ``"unknown"`` when absent."""
    field = dataset.field_for(Concept.id)
    value = record.get(field) if field else None
    if value is None or value == "":
        return UNKNOWN_ID
    return str(value)


def describe(record: Mapping[str, Any], source: SourceDescriptor, dataset: DatasetSpec) -> str:
    """Run the dataset's description function, never raising.

    A failing derivation (malformed embedded date, unexpected type ...) is
    logged and replaced with ``"<source name> Record"`` so one bad row cannot
    abort a page of results.
    """
    if dataset.describe is None:
        return DEFAULT_DESCRIPTION
    try:
        description = dataset.describe(dict(record))
    except Exception as exc:
        logger.warning("Error generating description for %s: %s", source.id, exc)
        return f"{source.name} Record"
    return description or f"{source.name} Record"


def project_url(base: str | None, source_id: str, dataset_id: str, rid: str) -> str | None:
    if not base:
        return None
    return f"{base.rstrip('/')}/{source_id}/{dataset_id}/{rid}"


def normalize(
    record: Mapping[str, Any],
    source: SourceDescriptor,
    dataset_id: str,
    dataset: DatasetSpec,
    *,
    url_base: str | None = None,
    now: datetime | None = None,
) -> MunicipalProject:
    """Build the uniform entity for one raw row.

    ``raw_data`` keeps the row verbatim. ``last_updated`` is the time of
    normalisation, not a date reported by the source.
    """
    rid = record_id(record, dataset)
    fields = {
        "id": f"{source.id}-{rid}",
        "source": source.id,
        "description": describe(record, source, dataset),
        "url": project_url(url_base, source.id, dataset_id, rid),
        "raw_data": dict(record),
    }
    if now is not None:
        fields["last_updated"] = now
    return MunicipalProject(**fields)
