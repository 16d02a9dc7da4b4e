"""Registry consistency checks.

Portals rename and drop columns without notice. The audit flags mappings
that point at fields no longer listed for their dataset so drift is caught
before it silently empties a filter.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from municipal_intel.sources.models import SourceDescriptor, SourceType


@dataclass(frozen=True)
class AuditIssue:
    source_id: str
    dataset_id: str | None
    message: str

    def __str__(self) -> str:
        where = f"{self.source_id}/{self.dataset_id}" if self.dataset_id else self.source_id
        return f"{where}: {self.message}"


def audit_source(source: SourceDescriptor) -> list[AuditIssue]:
    """Return every consistency problem found in *source*."""
    issues: list[AuditIssue] = []
    if source.type == SourceType.api and source.api is None:
        issues.append(AuditIssue(source.id, None, "api source has no api configuration"))
        return issues
    if source.api is None:
        return issues

    if source.api.default_dataset not in source.api.datasets:
        issues.append(
            AuditIssue(
                source.id,
                None,
                f"default dataset '{source.api.default_dataset}' is not defined",
            )
        )

    for dataset_id, dataset in source.api.datasets.items():
        known = set(dataset.known_fields)
        for concept, field in dataset.field_mappings.items():
            if field not in known:
                issues.append(
                    AuditIssue(
                        source.id,
                        dataset_id,
                        f"{concept.value} maps to '{field}' which is not a known field",
                    )
                )
        if not dataset.endpoint.startswith("/"):
            issues.append(
                AuditIssue(source.id, dataset_id, f"endpoint '{dataset.endpoint}' is not a path")
            )
    return issues


def audit_sources(sources: Iterable[SourceDescriptor]) -> list[AuditIssue]:
    return [issue for source in sources for issue in audit_source(source)]
