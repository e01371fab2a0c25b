"""Public interface for the data.go.kr source adapters."""

from __future__ import annotations

from .nps import NpsWorkplaceSource
from .registry import (
    DataGoKrBulkSource,
    DataGoKrSource,
    FieldMap,
    FscDiscoverySource,
    NtsStatusSource,
    build_registry,
)
from .schema import DataGoKrAPIError, extract_items, should_cache_payload

__all__ = [
    "DataGoKrAPIError",
    "DataGoKrBulkSource",
    "DataGoKrSource",
    "FieldMap",
    "FscDiscoverySource",
    "NpsWorkplaceSource",
    "NtsStatusSource",
    "build_registry",
    "extract_items",
    "should_cache_payload",
]
