"""MunicipalIntel: uniform search across registered municipal sources.

The facade resolves a source in the registry, asks the factory for the
matching protocol client and delegates. The registry and factory are
injected so tests (and applications holding several configurations) never
share hidden global state::

    intel = MunicipalIntel()
    response = await intel.search(SearchRequest(municipality_id="sf", min_value=1_000_000))
    for project in response.projects:
        print(project.id, project.description)
    for note in response.adjustments:
        print("note:", note)
"""
from __future__ import annotations

import logging
from typing import Any, Mapping

from municipal_intel.clients import ClientFactory
from municipal_intel.config import Settings, get_settings
from municipal_intel.errors import SourceNotFoundError
from municipal_intel.models import (
    DatasetInfo,
    FieldSchema,
    HealthCheck,
    MunicipalityInfo,
    MunicipalProject,
    SearchCapabilities,
    SearchRequest,
    SearchResponse,
    SortField,
)
from municipal_intel.socrata.query import resolve_dataset
from municipal_intel.sources.audit import AuditIssue, audit_sources
from municipal_intel.sources.models import Concept, Priority, SourceDescriptor, SourceType
from municipal_intel.sources.registry import RegistryInfo, SourceRegistry

logger = logging.getLogger(__name__)

# Filters every dataset can take, plus those that depend on a mapping.
_BASE_FILTERS = ["statuses", "addresses", "keywords"]
_OPTIONAL_FILTERS = (
    (Concept.submit_date, ["submit_date_from", "submit_date_to"], SortField.submit_date),
    (Concept.value, ["min_value", "max_value"], SortField.value),
    (Concept.approval_date, ["approval_date_from", "approval_date_to"], SortField.approval_date),
)


def _field_type(name: str) -> str:
    lowered = name.lower()
    if "date" in lowered:
        return "date"
    if any(token in lowered for token in ("cost", "value", "amount")):
        return "number"
    return "string"


class MunicipalIntel:
    """Entry point for searching and inspecting municipal data sources."""

    def __init__(
        self,
        settings: Settings | None = None,
        registry: SourceRegistry | None = None,
        factory: ClientFactory | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.registry = registry or SourceRegistry()
        self.factory = factory or ClientFactory(self.settings)

    # -----------------------------------------------------------------------
    # Search
    # -----------------------------------------------------------------------

    def _source_for(self, request: SearchRequest) -> SourceDescriptor:
        if request.municipality_id:
            return self.registry.require_source(request.municipality_id)
        ready = self.registry.get_implementation_ready_sources()
        if not ready:
            raise SourceNotFoundError("<any implementation-ready source>")
        logger.debug("No municipality given, using %s", ready[0].id)
        return ready[0]

    async def search(self, request: SearchRequest) -> SearchResponse:
        """Search one municipality.

        Raises:
            SourceNotFoundError: Unknown ``municipality_id``.
            UnsupportedAccessMethodError, UnsupportedApiTypeError,
            MissingApiConfigError: The source has no usable client.
            UnknownDatasetError, InvalidDateParameterError: Bad request.
            MunicipalDataError: The portal failed.
        """
        source = self._source_for(request)
        async with self.factory.create_client(source) as client:
            response = await client.search(request)
        logger.info(
            "Search on %s returned %d of %d projects (%d adjustments)",
            source.id,
            len(response.projects),
            response.total,
            len(response.adjustments),
        )
        return response

    async def get_project(
        self, municipality_id: str, project_id: str, dataset_id: str | None = None
    ) -> MunicipalProject | None:
        source = self.registry.require_source(municipality_id)
        async with self.factory.create_client(source) as client:
            return await client.get_project(project_id, dataset_id)

    async def health_check(self, municipality_id: str) -> HealthCheck:
        """Probe a source and record the outcome in the registry's status overlay."""
        source = self.registry.require_source(municipality_id)
        async with self.factory.create_client(source) as client:
            result = await client.health_check()
        self.registry.update_source_status(
            source.id,
            last_checked=result.last_checked.isoformat(),
            last_error=result.error,
        )
        if result.status != "healthy":
            logger.warning("Health check failed for %s: %s", source.id, result.error)
        return result

    # -----------------------------------------------------------------------
    # Discovery
    # -----------------------------------------------------------------------

    def get_available_municipalities(self) -> list[MunicipalityInfo]:
        """Enabled API sources with the datasets each one publishes."""
        return [
            MunicipalityInfo(
                id=source.id,
                name=source.name,
                state=source.state,
                datasets=[DatasetInfo(id=k, name=d.name) for k, d in source.datasets.items()],
            )
            for source in self.registry.list_sources(type=SourceType.api, enabled=True)
        ]

    def get_search_capabilities(
        self, municipality_id: str, dataset_id: str | None = None
    ) -> SearchCapabilities:
        """Filters and sorts the (default) dataset can honour."""
        source = self.registry.require_source(municipality_id)
        _, dataset = resolve_dataset(source, dataset_id)

        filters = list(_BASE_FILTERS)
        sorts = [SortField.address]
        limitations = []
        for concept, params, sort in _OPTIONAL_FILTERS:
            field = dataset.field_for(concept)
            if field and field in dataset.text_date_fields:
                sorts.append(sort)
                limitations.append(
                    f"{field} stores text dates - {'/'.join(params)} filters not supported"
                )
            elif field:
                filters.extend(params)
                sorts.append(sort)
            else:
                limitations.append(
                    f"No {concept.value} field available - "
                    f"{'/'.join(params)} filters not supported"
                )
        return SearchCapabilities(
            supported_filters=filters, supported_sorts=sorts, limitations=limitations
        )

    def get_dataset_schema(
        self, municipality_id: str, dataset_id: str | None = None
    ) -> list[FieldSchema]:
        """Known fields of a dataset with a coarse type and whether they are mapped."""
        source = self.registry.require_source(municipality_id)
        _, dataset = resolve_dataset(source, dataset_id)
        mapped = {field: concept for concept, field in dataset.field_mappings.items()}
        return [
            FieldSchema(
                name=name,
                type=_field_type(name),
                searchable=name in mapped,
                description=(
                    f"Searchable field mapped to: {mapped[name].value}" if name in mapped else None
                ),
            )
            for name in dataset.known_fields
        ]

    def get_sources(
        self,
        state: str | None = None,
        type: SourceType | str | None = None,
        priority: Priority | str | None = None,
        enabled: bool | None = None,
    ) -> list[SourceDescriptor]:
        return self.registry.list_sources(state=state, type=type, priority=priority, enabled=enabled)

    # -----------------------------------------------------------------------
    # Registry management
    # -----------------------------------------------------------------------

    def set_socrata_token(self, token: str | None) -> None:
        self.factory.set_socrata_token(token)

    def register_source(self, source: SourceDescriptor | Mapping[str, Any]) -> SourceDescriptor:
        return self.registry.register_source(source)

    def unregister_source(self, source_id: str) -> bool:
        return self.registry.unregister_source(source_id)

    def is_builtin_source(self, source_id: str) -> bool:
        return self.registry.is_builtin_source(source_id)

    def get_registry_info(self) -> RegistryInfo:
        return self.registry.get_registry_info()

    def audit(self) -> list[AuditIssue]:
        """Consistency problems across every registered source."""
        issues = audit_sources(self.registry.get_all_sources())
        for issue in issues:
            logger.warning("Registry audit: %s", issue)
        return issues


def create_municipal_intel(**settings: Any) -> MunicipalIntel:
    """Build a facade with settings overrides, e.g. ``socrata_app_token="..."``."""
    return MunicipalIntel(Settings(**settings) if settings else None)
