"""Endpoint resolution from device enrollment state.

A ``ServiceEndpoint`` describes every way an API can be reached. ``resolve``
picks one of them for the current enrollment state and returns immutable
``EndpointDirections``. Resolution is a pure mapping: it never checks
whether the chosen address is reachable.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING

from loguru import logger
from yarl import URL

from cloudpath.auth import DeviceEnrollment, Enrolled
from cloudpath.errors import ConfigurationError

if TYPE_CHECKING:
    from loguru import Logger

_GOOGLEAPIS_SUFFIX = ".googleapis.com"
_MTLS_SUFFIX = ".mtls.googleapis.com"


class TransportType(StrEnum):
    DIRECT = "direct"
    PRIVATE_SERVICE_CONNECT = "private_service_connect"


@dataclass(frozen=True, slots=True)
class PrivateServiceConnect:
    """PSC endpoint to dial instead of the public host.

    Args:
        endpoint: Hostname or IP address of the PSC forwarding rule,
            e.g. ``www-endpoint.p.googleapis.com`` or ``10.0.0.5``.
    """

    endpoint: str


@dataclass(frozen=True, slots=True)
class ServiceEndpoint:
    """All the ways to reach one API.

    Example:
        >>> endpoint = ServiceEndpoint("https://logging.googleapis.com/")
        >>> endpoint.mtls
        URL('https://logging.mtls.googleapis.com/')
    """

    canonical_uri: str
    mtls_uri: str | None = None
    psc: PrivateServiceConnect | None = None

    @property
    def canonical(self) -> URL:
        return URL(self.canonical_uri)

    @property
    def mtls(self) -> URL:
        if self.mtls_uri:
            return URL(self.mtls_uri)
        return _mtls_variant(self.canonical)


@dataclass(frozen=True, slots=True)
class EndpointDirections:
    base_uri: URL
    transport: TransportType
    requires_client_certificate: bool
    host_override: str | None = None

    def __str__(self) -> str:
        parts = [f"{self.base_uri}", f"transport={self.transport}"]
        if self.host_override:
            parts.append(f"host={self.host_override}")
        parts.append(f"mtls={self.requires_client_certificate}")
        return " ".join(parts)


def _mtls_variant(uri: URL) -> URL:
    host = uri.host or ""
    if host.endswith(_GOOGLEAPIS_SUFFIX) and not host.endswith(_MTLS_SUFFIX):
        return uri.with_host(host.removesuffix(_GOOGLEAPIS_SUFFIX) + _MTLS_SUFFIX)
    return uri


def resolve(
    endpoint: ServiceEndpoint,
    enrollment: DeviceEnrollment,
    *,
    log: Logger | None = None,
) -> EndpointDirections:
    """Resolve the network path and trust mode for ``enrollment``.

    Enrolled devices use the mTLS variant of the endpoint and present their
    certificate. When PSC is configured, the PSC address is dialed while the
    expected hostname travels in the ``Host`` header.

    Raises:
        ConfigurationError: If the PSC endpoint equals the expected hostname.
    """
    log = log or logger.bind(component="endpoints")
    enrolled = isinstance(enrollment, Enrolled)
    target = endpoint.mtls if enrolled else endpoint.canonical

    if endpoint.psc is None:
        directions = EndpointDirections(
            base_uri=target,
            transport=TransportType.DIRECT,
            requires_client_certificate=enrolled,
        )
    else:
        if not target.host or endpoint.psc.endpoint == target.host:
            raise ConfigurationError(
                f"PSC endpoint {endpoint.psc.endpoint!r} must differ from "
                f"the service host {target.host!r}"
            )
        directions = EndpointDirections(
            base_uri=target.with_host(endpoint.psc.endpoint),
            transport=TransportType.PRIVATE_SERVICE_CONNECT,
            requires_client_certificate=enrolled,
            host_override=target.host,
        )

    log.info("Using endpoint {directions}", directions=directions)
    return directions
