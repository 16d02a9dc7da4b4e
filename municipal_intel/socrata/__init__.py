"""Socrata (SoQL) access: query translation, normalisation and the async client."""

from .client import SocrataClient
from .normalize import normalize
from .query import SoQLQuery, resolve_dataset, translate
from .ratelimit import RateLimiter

__all__ = [
    "RateLimiter",
    "SoQLQuery",
    "SocrataClient",
    "normalize",
    "resolve_dataset",
    "translate",
]
