"""Core infrastructure: settings, logging, exceptions."""

from .config import Settings, get_settings, settings
from .exceptions import (
    AppException,
    BadRequestError,
    CorruptCacheEntryError,
    InvalidSnapshotError,
    MissingIndicatorError,
    ProviderError,
    ProviderQuotaExceededError,
    StoreUnavailableError,
)


__all__ = [
    "AppException",
    "BadRequestError",
    "CorruptCacheEntryError",
    "InvalidSnapshotError",
    "MissingIndicatorError",
    "ProviderError",
    "ProviderQuotaExceededError",
    "Settings",
    "StoreUnavailableError",
    "get_settings",
    "settings",
]
