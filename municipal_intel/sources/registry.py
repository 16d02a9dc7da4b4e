"""Source registry: built-in descriptors plus a runtime overlay.

The registry is an explicit object handed to the components that need it,
not a module-level singleton::

    registry = SourceRegistry()              # built-ins loaded
    registry.register_source(my_descriptor)  # optional runtime additions
    source = registry.get_source("sf")

Built-in descriptors are frozen and never mutated. Runtime descriptors live
in a separate overlay, and status bookkeeping (``enabled``, ``last_checked``,
``last_error``) for any source is kept in a status overlay that is merged in
on read. Both overlays are guarded by a lock so concurrent callers can
register sources and record health checks safely.
"""
from __future__ import annotations

import logging
import threading
from typing import Any, Mapping, Optional

from pydantic import BaseModel, ValidationError

from municipal_intel.errors import DuplicateSourceError, InvalidSourceError, SourceNotFoundError
from municipal_intel.sources.builtin import BUILTIN_REGISTRY
from municipal_intel.sources.models import (
    ApiType,
    Priority,
    RegistryData,
    SourceDescriptor,
    SourceType,
)

logger = logging.getLogger(__name__)

_REQUIRED_FIELDS = ("id", "name", "state", "type", "priority")
_STATUS_FIELDS = frozenset({"enabled", "last_checked", "last_error"})


class RegistryInfo(BaseModel):
    version: str
    last_updated: str
    total_sources: int


class SourceRegistry:
    """Holds every known :class:`SourceDescriptor`, grouped by state."""

    def __init__(self, builtin: RegistryData = BUILTIN_REGISTRY) -> None:
        self._data = builtin
        self._builtin: dict[str, SourceDescriptor] = {}
        for state, group in builtin.sources.items():
            for source in group.municipalities:
                self._builtin[source.id] = source.model_copy(update={"state": state.upper()})
        self._runtime: dict[str, SourceDescriptor] = {}
        self._status: dict[str, dict[str, Any]] = {}
        self._lock = threading.Lock()

    # -----------------------------------------------------------------------
    # Lookup
    # -----------------------------------------------------------------------

    def _with_status(self, source: SourceDescriptor) -> SourceDescriptor:
        status = self._status.get(source.id)
        return source.model_copy(update=status) if status else source

    def get_all_sources(self) -> list[SourceDescriptor]:
        """Built-in sources in state order, followed by runtime sources."""
        with self._lock:
            sources = list(self._builtin.values()) + list(self._runtime.values())
            return [self._with_status(s) for s in sources]

    def get_source(self, source_id: str) -> Optional[SourceDescriptor]:
        """Resolve *source_id*, returning ``None`` when unknown."""
        with self._lock:
            source = self._builtin.get(source_id) or self._runtime.get(source_id)
            return self._with_status(source) if source else None

    def require_source(self, source_id: str) -> SourceDescriptor:
        """Resolve *source_id* or raise :class:`SourceNotFoundError`."""
        source = self.get_source(source_id)
        if source is None:
            raise SourceNotFoundError(source_id)
        return source

    def list_sources(
        self,
        *,
        state: str | None = None,
        type: SourceType | str | None = None,
        priority: Priority | str | None = None,
        enabled: bool | None = None,
    ) -> list[SourceDescriptor]:
        """Filter all sources; every criterion left as ``None`` is ignored."""
        sources = self.get_all_sources()
        if state:
            sources = [s for s in sources if s.state.lower() == state.lower()]
        if type:
            sources = [s for s in sources if s.type == SourceType(type)]
        if priority:
            sources = [s for s in sources if s.priority == Priority(priority)]
        if enabled is not None:
            sources = [s for s in sources if s.enabled == enabled]
        return sources

    def get_sources_by_state(self, state: str) -> list[SourceDescriptor]:
        return self.list_sources(state=state)

    def get_sources_by_priority(self, priority: Priority | str) -> list[SourceDescriptor]:
        return self.list_sources(priority=priority)

    def get_sources_by_type(self, type: SourceType | str) -> list[SourceDescriptor]:
        return self.list_sources(type=type)

    def get_api_sources(self) -> list[SourceDescriptor]:
        return self.list_sources(type=SourceType.api)

    def get_socrata_sources(self) -> list[SourceDescriptor]:
        return [s for s in self.get_api_sources() if s.api and s.api.type == ApiType.socrata]

    def get_enabled_sources(self) -> list[SourceDescriptor]:
        return self.list_sources(enabled=True)

    def get_implementation_ready_sources(self) -> list[SourceDescriptor]:
        """High-priority, API-backed, enabled sources."""
        return self.list_sources(type=SourceType.api, priority=Priority.high, enabled=True)

    def search_sources(self, query: str) -> list[SourceDescriptor]:
        """Case-insensitive substring match on id or name."""
        q = query.lower()
        return [s for s in self.get_all_sources() if q in s.id.lower() or q in s.name.lower()]

    def get_sources_for_location(self, city: str, state: str | None = None) -> list[SourceDescriptor]:
        """Sources whose name or coverage mentions *city*, optionally within *state*."""
        c = city.lower()
        matches = []
        for source in self.get_all_sources():
            if state and source.state.lower() != state.lower():
                continue
            if c in source.name.lower() or any(c in area.lower() for area in source.coverage):
                matches.append(source)
        return matches

    # -----------------------------------------------------------------------
    # Built-in / runtime split
    # -----------------------------------------------------------------------

    def is_builtin_source(self, source_id: str) -> bool:
        return source_id in self._builtin

    def get_builtin_sources(self) -> list[SourceDescriptor]:
        with self._lock:
            return [self._with_status(s) for s in self._builtin.values()]

    def get_runtime_sources(self) -> list[SourceDescriptor]:
        with self._lock:
            return list(self._runtime.values())

    def get_registry_info(self) -> RegistryInfo:
        return RegistryInfo(
            version=self._data.version,
            last_updated=self._data.last_updated,
            total_sources=len(self._builtin) + len(self._runtime),
        )

    # -----------------------------------------------------------------------
    # Mutation (runtime overlay only)
    # -----------------------------------------------------------------------

    def register_source(self, source: SourceDescriptor | Mapping[str, Any]) -> SourceDescriptor:
        """Add a runtime source.

        Accepts a :class:`SourceDescriptor` or a plain mapping, which is
        validated first.

        Raises:
            InvalidSourceError: Required fields are missing or invalid.
            DuplicateSourceError: The id is taken by a built-in or runtime source.
        """
        if not isinstance(source, SourceDescriptor):
            missing = [f for f in _REQUIRED_FIELDS if not source.get(f)]
            if missing:
                raise InvalidSourceError(
                    f"Source must have {', '.join(_REQUIRED_FIELDS)} (missing: {', '.join(missing)})"
                )
            try:
                source = SourceDescriptor.model_validate(source)
            except ValidationError as exc:
                raise InvalidSourceError(f"Invalid source configuration: {exc}") from exc

        with self._lock:
            if source.id in self._builtin or source.id in self._runtime:
                raise DuplicateSourceError(source.id)
            self._runtime[source.id] = source

        logger.info("Registered runtime source %s (%s)", source.id, source.name)
        return source

    def unregister_source(self, source_id: str) -> bool:
        """Remove a runtime source. Returns ``False`` for unknown or built-in ids."""
        with self._lock:
            removed = self._runtime.pop(source_id, None)
            if removed is not None:
                self._status.pop(source_id, None)
        if removed is None:
            return False
        logger.info("Unregistered runtime source %s", source_id)
        return True

    def update_source_status(self, source_id: str, **updates: Any) -> SourceDescriptor:
        """Record ``enabled``/``last_checked``/``last_error`` for a source.

        Updates go to the status overlay; built-in descriptors are untouched.
        """
        unknown = set(updates) - _STATUS_FIELDS
        if unknown:
            raise ValueError(f"Cannot update fields: {', '.join(sorted(unknown))}")
        with self._lock:
            if source_id not in self._builtin and source_id not in self._runtime:
                raise SourceNotFoundError(source_id)
            self._status.setdefault(source_id, {}).update(updates)
        return self.require_source(source_id)
