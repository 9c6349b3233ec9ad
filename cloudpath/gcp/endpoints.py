"""Well-known Google Cloud API endpoints."""

from __future__ import annotations

from dataclasses import replace

from cloudpath.endpoints import PrivateServiceConnect, ServiceEndpoint

LOGGING_ENDPOINT = ServiceEndpoint("https://logging.googleapis.com/")
COMPUTE_ENDPOINT = ServiceEndpoint("https://compute.googleapis.com/compute/v1/")


def via_psc(endpoint: ServiceEndpoint, psc_endpoint: str) -> ServiceEndpoint:
    """Return ``endpoint`` routed through a PSC forwarding rule."""
    return replace(endpoint, psc=PrivateServiceConnect(psc_endpoint))
