"""Multi-source query orchestration."""

from __future__ import annotations

from .cache import QueryCache
from .fanout import BoundedFanout
from .orchestrator import Orchestrator

__all__ = ["BoundedFanout", "Orchestrator", "QueryCache"]
