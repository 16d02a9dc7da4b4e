"""SocrataClient: async access to one Socrata-backed municipal source.

Assembles rate-limit accounting, tenacity retries, SoQL translation and row
normalisation behind a small set of methods: search, get_project, get_by_url,
get_available_types and health_check.

Usage::

    from municipal_intel.config import get_settings
    from municipal_intel.socrata.client import SocrataClient

    async with SocrataClient(source, get_settings()) as client:
        response = await client.search(SearchRequest(min_value=50000, limit=10))

Retry strategy
--------------
- Transport errors (connect, timeout, read) and 5xx responses are retried:
  ``max_retries`` extra attempts with exponential backoff starting at
  ``retry_base_delay`` seconds (1s → 2s → 4s by default). The last error is
  re-raised unchanged.
- 401/403 raise AuthenticationError immediately, not retried.
- 429 raises RateLimitError immediately, with a reset-time hint.
- Other 4xx raise MunicipalDataError immediately.
"""
from __future__ import annotations

import asyncio
import logging
import time
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable
from urllib.parse import urlparse

import httpx
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from municipal_intel.config import Settings
from municipal_intel.errors import (
    AuthenticationError,
    MissingApiConfigError,
    MissingFieldMappingError,
    MunicipalDataError,
    RateLimitError,
    ServiceUnavailableError,
    UnsupportedApiTypeError,
)
from municipal_intel.models import HealthCheck, MunicipalProject, SearchRequest, SearchResponse
from municipal_intel.socrata.normalize import normalize
from municipal_intel.socrata.query import SoQLQuery, id_query, resolve_dataset, translate
from municipal_intel.socrata.ratelimit import RateLimiter, ceiling_for
from municipal_intel.sources.models import ApiType, Concept, DatasetSpec, SourceDescriptor

logger = logging.getLogger(__name__)

DEFAULT_TOKEN_HEADER = "X-App-Token"


def is_transient(exc: BaseException) -> bool:
    """True for failures worth retrying: transport errors and 5xx responses."""
    if isinstance(exc, (AuthenticationError, RateLimitError, MissingFieldMappingError)):
        return False
    if isinstance(exc, MunicipalDataError):
        return exc.status_code is None or exc.status_code >= 500
    return False


def _payload(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text


class SocrataClient:
    """Async client for a Socrata-backed :class:`SourceDescriptor`.

    Intended to be used as an async context manager so that the underlying
    httpx.AsyncClient is always properly closed::

        async with SocrataClient(source, settings) as client:
            response = await client.search(request)

    Args:
        source: Descriptor with ``api.type == "socrata"``.
        settings: Timeouts, retry bounds and default rate-limit ceilings.
        app_token: Overrides ``settings.socrata_app_token``.
        limiter: Shared rate limiter; one is created when omitted.
        sleep: Backoff sleep, injectable for tests.
    """

    def __init__(
        self,
        source: SourceDescriptor,
        settings: Settings,
        *,
        app_token: str | None = None,
        limiter: RateLimiter | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if source.api is None:
            raise MissingApiConfigError(source.id)
        if source.api.type != ApiType.socrata:
            raise UnsupportedApiTypeError(source.id, source.api.type.value)

        self.source = source
        self._settings = settings
        token = app_token or settings.socrata_app_token

        headers = {"User-Agent": settings.user_agent, "Accept": "application/json"}
        if token:
            auth = source.api.authentication
            headers[(auth.header if auth and auth.header else None) or DEFAULT_TOKEN_HEADER] = token

        self._client = httpx.AsyncClient(
            base_url=source.api.base_url,
            headers=headers,
            timeout=httpx.Timeout(settings.request_timeout),
        )
        self._limiter = limiter or RateLimiter(
            ceiling_for(source, settings, bool(token)), settings.rate_limit_window
        )
        self._max_retries = settings.max_retries
        self._base_delay = settings.retry_base_delay
        self._sleep = sleep

    async def __aenter__(self) -> "SocrataClient":
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()

    async def close(self) -> None:
        await self._client.aclose()

    # -----------------------------------------------------------------------
    # Internal transport layer
    # -----------------------------------------------------------------------

    async def _send(self, endpoint: str, query: SoQLQuery) -> httpx.Response:
        """Single GET attempt. Maps status codes to error kinds."""
        await self._limiter.acquire()
        try:
            response = await self._client.get(endpoint, params=query.to_params())
        except httpx.TransportError as exc:
            raise MunicipalDataError(
                f"Request to {self.source.id} failed: {exc!r}", self.source.id
            ) from exc

        status = response.status_code
        if status in (401, 403):
            raise AuthenticationError(self.source.id, status, _payload(response))
        if status == 429:
            raise RateLimitError(self.source.id, self._reset_hint(response), _payload(response))
        if status == 503:
            raise ServiceUnavailableError(self.source.id, _payload(response))
        if status >= 400:
            raise MunicipalDataError(
                f"HTTP {status} from {self.source.id}",
                self.source.id,
                status,
                _payload(response),
            )
        return response

    def _reset_hint(self, response: httpx.Response) -> datetime:
        retry_after = response.headers.get("Retry-After", "")
        if retry_after.isdigit():
            return datetime.now(timezone.utc) + timedelta(seconds=int(retry_after))
        return self._limiter.reset_time()

    def _log_retry(self, state: RetryCallState) -> None:
        exc = state.outcome.exception() if state.outcome else None
        logger.warning(
            "Retryable error from %s: %s; retrying in %.1fs (attempt %d/%d, %.1fs waited so far)",
            self.source.id,
            exc,
            state.next_action.sleep if state.next_action else 0.0,
            state.attempt_number,
            self._max_retries + 1,
            state.idle_for,
        )

    async def _get(self, endpoint: str, query: SoQLQuery) -> httpx.Response:
        """GET with bounded exponential-backoff retry on transient failures."""
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self._max_retries + 1),
            wait=wait_exponential(multiplier=self._base_delay),
            retry=retry_if_exception(is_transient),
            before_sleep=self._log_retry,
            reraise=True,
            sleep=self._sleep,
        )
        async for attempt in retrying:
            with attempt:
                return await self._send(endpoint, query)
        # Unreachable: reraise=True means the loop returns or raises.
        raise RuntimeError("Retry loop exited without returning or raising")

    async def query(self, dataset: DatasetSpec, query: SoQLQuery) -> list[dict[str, Any]]:
        """Run *query* against *dataset* and return the raw rows."""
        response = await self._get(dataset.endpoint, query)
        try:
            rows = response.json()
        except ValueError:
            rows = None
        if not isinstance(rows, list) or not all(isinstance(row, dict) for row in rows):
            raise MunicipalDataError(
                f"Unexpected payload from {self.source.id}",
                self.source.id,
                response.status_code,
                _payload(response),
            )
        logger.debug("Retrieved %d records from %s%s", len(rows), self.source.id, dataset.endpoint)
        return rows

    # -----------------------------------------------------------------------
    # Public methods
    # -----------------------------------------------------------------------

    def _normalize(self, row: dict[str, Any], dataset_id: str, dataset: DatasetSpec) -> MunicipalProject:
        return normalize(
            row, self.source, dataset_id, dataset, url_base=self._settings.project_url_base
        )

    async def search(self, request: SearchRequest) -> SearchResponse:
        """Search the requested (or default) dataset.

        When a full page comes back a second ``count(*)`` query resolves the
        total; otherwise the total is ``offset + rows returned``.

        Raises:
            UnknownDatasetError: ``request.dataset_id`` is not published.
            InvalidDateParameterError: A date filter is malformed.
            MunicipalDataError: The portal failed (after retries if transient).
        """
        dataset_id, dataset = resolve_dataset(self.source, request.dataset_id)
        query, adjustments = translate(request, self.source)

        rows = await self.query(dataset, query)
        projects = [self._normalize(row, dataset_id, dataset) for row in rows]

        total = request.offset + len(projects)
        if len(rows) == request.limit:
            count_rows = await self.query(dataset, query.as_count())
            try:
                total = int(count_rows[0]["total"])
            except (IndexError, KeyError, TypeError, ValueError):
                logger.warning("Unusable count response from %s: %r", self.source.id, count_rows)

        return SearchResponse(
            projects=projects,
            total=total,
            page=request.offset // request.limit + 1,
            page_size=request.limit,
            has_more=total > request.offset + len(projects),
            adjustments=adjustments,
        )

    async def get_project(self, project_id: str, dataset_id: str | None = None) -> MunicipalProject | None:
        """Fetch one record by id (``"sf-123"`` or ``"123"``); ``None`` if absent.

        Raises:
            MissingFieldMappingError: The dataset has no ``id`` mapping.
        """
        dataset_id, dataset = resolve_dataset(self.source, dataset_id)
        if dataset.field_for(Concept.id) is None:
            raise MissingFieldMappingError(self.source.id, Concept.id.value)
        rows = await self.query(dataset, id_query(dataset, self.source.id, project_id))
        return self._normalize(rows[0], dataset_id, dataset) if rows else None

    async def get_by_url(self, url: str) -> MunicipalProject | None:
        """Fetch the record behind a project URL produced by this package.

        Returns ``None`` for URLs that do not point at this source.
        """
        parts = [p for p in urlparse(url).path.split("/") if p]
        if len(parts) < 3 or parts[-3] != self.source.id:
            return None
        dataset_id, project_id = parts[-2], parts[-1]
        if dataset_id not in self.source.datasets:
            return None
        return await self.get_project(project_id, dataset_id)

    async def get_available_types(self, dataset_id: str | None = None) -> list[str]:
        """Distinct values of the dataset's ``title`` column."""
        _, dataset = resolve_dataset(self.source, dataset_id)
        field = dataset.field_for(Concept.title)
        if field is None:
            return []
        rows = await self.query(dataset, SoQLQuery(select=f"distinct {field}", limit=1000))
        return [row[field] for row in rows if row.get(field)]

    async def health_check(self, dataset_id: str | None = None) -> HealthCheck:
        """Fetch a single row and report latency, or the failure."""
        _, dataset = resolve_dataset(self.source, dataset_id)
        started = time.perf_counter()
        try:
            await self.query(dataset, SoQLQuery(limit=1))
        except MunicipalDataError as exc:
            return HealthCheck(
                status="unhealthy",
                latency_ms=(time.perf_counter() - started) * 1000,
                error=str(exc),
                last_checked=datetime.now(timezone.utc),
            )
        return HealthCheck(
            status="healthy",
            latency_ms=(time.perf_counter() - started) * 1000,
            last_checked=datetime.now(timezone.utc),
        )
