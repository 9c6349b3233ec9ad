"""Google Cloud adapters built on the cloudpath transport."""

from __future__ import annotations

from .audit_log import AuditLogAdapter, EventProcessor
from .compute import ComputeAdapter
from .endpoints import COMPUTE_ENDPOINT, LOGGING_ENDPOINT, via_psc
from .filters import build_filter

__all__ = [
    "COMPUTE_ENDPOINT",
    "LOGGING_ENDPOINT",
    "AuditLogAdapter",
    "ComputeAdapter",
    "EventProcessor",
    "build_filter",
    "via_psc",
]
