"""Client dispatch: pick the protocol client for a source descriptor.

Only Socrata API sources have a client today; portal and scraping sources,
and API dialects other than Socrata, fail with a "not yet supported" error
before any request is sent.
"""
from __future__ import annotations

import logging

from municipal_intel.config import Settings, get_settings
from municipal_intel.errors import (
    MissingApiConfigError,
    UnsupportedAccessMethodError,
    UnsupportedApiTypeError,
)
from municipal_intel.socrata.client import SocrataClient
from municipal_intel.socrata.ratelimit import RateLimiter, ceiling_for
from municipal_intel.sources.models import ApiType, SourceDescriptor, SourceType

logger = logging.getLogger(__name__)


class ClientFactory:
    """Creates clients and owns one rate limiter per source.

    Limiters outlive individual clients so the hourly window is honoured
    across searches.
    """

    def __init__(self, settings: Settings | None = None) -> None:
        self.settings = settings or get_settings()
        self._limiters: dict[str, RateLimiter] = {}

    def create_client(self, source: SourceDescriptor) -> SocrataClient:
        """Return a client for *source*.

        Raises:
            UnsupportedAccessMethodError: ``source.type`` is not ``api``.
            MissingApiConfigError: The source has no API configuration.
            UnsupportedApiTypeError: The API dialect is not Socrata.
        """
        if source.type != SourceType.api:
            raise UnsupportedAccessMethodError(source.id, source.type.value)
        if source.api is None:
            raise MissingApiConfigError(source.id)
        if source.api.type != ApiType.socrata:
            raise UnsupportedApiTypeError(source.id, source.api.type.value)
        return SocrataClient(source, self.settings, limiter=self._limiter_for(source))

    def _limiter_for(self, source: SourceDescriptor) -> RateLimiter:
        limiter = self._limiters.get(source.id)
        if limiter is None:
            has_token = bool(self.settings.socrata_app_token)
            limiter = RateLimiter(
                ceiling_for(source, self.settings, has_token), self.settings.rate_limit_window
            )
            self._limiters[source.id] = limiter
            logger.debug("Rate limiter for %s: %d requests per window", source.id, limiter.limit)
        return limiter

    def set_socrata_token(self, token: str | None) -> None:
        """Use *token* for subsequent clients. Ceilings are recomputed."""
        self.update_config(socrata_app_token=token)

    def update_config(self, **updates: object) -> None:
        self.settings = self.settings.model_copy(update=updates)
        self._limiters.clear()
