"""Builds API clients from resolved endpoint directions."""

from __future__ import annotations

from typing import TYPE_CHECKING

from loguru import logger

from cloudpath.auth import Authorization
from cloudpath.constants import DEFAULT_TIMEOUT_SECONDS, DEFAULT_USER_AGENT
from cloudpath.endpoints import EndpointDirections, TransportType
from cloudpath.infra.certificates import CertificateStore, SystemCertificateStore
from cloudpath.infra.http import ApiClient, Stage
from cloudpath.infra.stages import (
    ClientCertificateStage,
    CredentialStage,
    HostRewriteStage,
    UserAgentStage,
)

if TYPE_CHECKING:
    from loguru import Logger


class TransportFactory:
    """Composes the request pipeline for a set of endpoint directions.

    Stage order is fixed: user agent, credential, client certificate, host
    rewrite. Building performs no network I/O, and the resulting client can
    be shared by concurrent calls.

    Example:
        directions = resolve(LOGGING_ENDPOINT, authorization.enrollment)
        async with TransportFactory().build(directions, authorization) as client:
            ...
    """

    def __init__(
        self,
        *,
        certificate_store: CertificateStore | None = None,
        user_agent: str = DEFAULT_USER_AGENT,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        log: Logger | None = None,
    ) -> None:
        self._certificate_store = certificate_store or SystemCertificateStore()
        self._user_agent = user_agent
        self._timeout = timeout
        self._log = log or logger.bind(component="transport")

    def stages(
        self,
        directions: EndpointDirections,
        authorization: Authorization | None,
    ) -> tuple[Stage, ...]:
        stages: list[Stage] = [UserAgentStage(self._user_agent)]

        if authorization is not None:
            stages.append(CredentialStage(authorization.credential, log=self._log))

        if directions.requires_client_certificate:
            enrollment = authorization.enrollment if authorization else None
            stages.append(ClientCertificateStage.create(enrollment, self._certificate_store))

        if directions.transport is TransportType.PRIVATE_SERVICE_CONNECT:
            stages.append(HostRewriteStage(directions.host_override or ""))

        return tuple(stages)

    def build(
        self,
        directions: EndpointDirections,
        authorization: Authorization | None,
    ) -> ApiClient:
        """Create a client for ``directions``.

        Raises:
            ConfigurationError: If a client certificate is required but
                unavailable, or PSC directions lack a host override.
        """
        stages = self.stages(directions, authorization)
        self._log.debug(
            "Built client for {uri} with stages {stages}",
            uri=directions.base_uri,
            stages=[type(s).__name__ for s in stages],
        )
        return ApiClient(
            directions.base_uri,
            stages,
            timeout=self._timeout,
            log=self._log.bind(component="http"),
        )
