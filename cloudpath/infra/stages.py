"""Request pipeline stages.

Each stage transforms an ``OutgoingRequest`` before it is sent and may
observe the response. Stages are independent; the transport factory picks
the ones a set of endpoint directions needs and composes them in order.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import aiohttp
from loguru import logger

from cloudpath.auth import Credential, DeviceEnrollment, Enrolled
from cloudpath.errors import ConfigurationError
from cloudpath.infra.certificates import CertificateStore
from cloudpath.infra.http import OutgoingRequest

if TYPE_CHECKING:
    from ssl import SSLContext

    from loguru import Logger


class UserAgentStage:
    def __init__(self, user_agent: str) -> None:
        self._user_agent = user_agent

    async def prepare(self, request: OutgoingRequest) -> None:
        request.headers.setdefault("User-Agent", self._user_agent)

    def observe(self, request: OutgoingRequest, response: aiohttp.ClientResponse) -> None:
        pass


class CredentialStage:
    """Attaches the caller's credential to every request."""

    def __init__(self, credential: Credential, *, log: Logger | None = None) -> None:
        self._credential = credential
        self._log = log or logger.bind(component="stages")

    async def prepare(self, request: OutgoingRequest) -> None:
        request.headers.update(await self._credential.headers())

    def observe(self, request: OutgoingRequest, response: aiohttp.ClientResponse) -> None:
        if response.status == 401:
            self._log.warning("Credential rejected by {host}", host=request.url.host)


class ClientCertificateStage:
    """Presents the device certificate during the TLS handshake.

    The SSL context is built when the stage is created so that a missing
    certificate or an unsupported runtime fails before any request is sent.
    """

    def __init__(self, context: SSLContext) -> None:
        self._context = context

    @classmethod
    def create(
        cls,
        enrollment: DeviceEnrollment | None,
        store: CertificateStore,
    ) -> ClientCertificateStage:
        """Build the stage for an enrolled device.

        Raises:
            ConfigurationError: If the device holds no certificate, or the
                runtime cannot present client certificates.
        """
        if not isinstance(enrollment, Enrolled) or enrollment.certificate is None:
            raise ConfigurationError(
                "Endpoint requires a client certificate, but the device has none"
            )
        if not store.supports_client_certificates:
            raise ConfigurationError(
                "Endpoint requires a client certificate, but this runtime "
                "cannot present client certificates"
            )
        return cls(store.create_ssl_context(enrollment.certificate))

    @property
    def context(self) -> SSLContext:
        return self._context

    async def prepare(self, request: OutgoingRequest) -> None:
        request.ssl = self._context

    def observe(self, request: OutgoingRequest, response: aiohttp.ClientResponse) -> None:
        pass


class HostRewriteStage:
    """Sends the service hostname while dialing a PSC address.

    The URL (and therefore the socket target) is left alone; only the
    ``Host`` header and, for https, the TLS server name are replaced so that
    routing and certificate validation see the original hostname.
    """

    def __init__(self, host: str) -> None:
        if not host:
            raise ConfigurationError("PSC transport requires a host override")
        self._host = host

    @property
    def host(self) -> str:
        return self._host

    async def prepare(self, request: OutgoingRequest) -> None:
        if request.url.host == self._host:
            raise ConfigurationError(
                f"PSC request already targets {self._host}; nothing to rewrite"
            )
        request.headers["Host"] = self._host
        if request.url.scheme == "https":
            request.server_hostname = self._host

    def observe(self, request: OutgoingRequest, response: aiohttp.ClientResponse) -> None:
        pass
