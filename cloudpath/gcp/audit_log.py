"""Cloud Logging audit log adapter.

Lists Compute Engine audit events for a set of projects and feeds them to
an ``EventProcessor`` one entry at a time.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import datetime
from typing import TYPE_CHECKING, Any, Protocol

from loguru import logger

from cloudpath.cancellation import Cancellation
from cloudpath.endpoints import ServiceEndpoint, resolve
from cloudpath.errors import AccessDeniedError, ErrorKind
from cloudpath.gcp.endpoints import LOGGING_ENDPOINT
from cloudpath.gcp.filters import build_filter
from cloudpath.infra.paging import (
    Consumer,
    PageRequest,
    StreamFailed,
    StreamOutcome,
    stream_pages,
)
from cloudpath.infra.retry import BackoffPolicy
from cloudpath.transport import TransportFactory

if TYPE_CHECKING:
    from loguru import Logger

    from cloudpath.auth import Authorization
    from cloudpath.infra.http import ApiClient

MAX_PAGE_SIZE = 1000
ORDER_BY = "timestamp desc"
DEFAULT_BACKOFF = BackoffPolicy(initial_delay=0.1, max_attempts=10, multiplier=2.0)


class EventProcessor(Protocol):
    @property
    def supported_methods(self) -> Sequence[str]: ...

    @property
    def supported_severities(self) -> Sequence[str]: ...

    def process(self, entry: dict[str, Any]) -> None: ...


class AuditLogAdapter:
    def __init__(
        self,
        client: ApiClient,
        *,
        policy: BackoffPolicy = DEFAULT_BACKOFF,
        log: Logger | None = None,
    ) -> None:
        self._client = client
        self._policy = policy
        self._log = log or logger.bind(component="audit_log")

    @classmethod
    def create(
        cls,
        authorization: Authorization,
        *,
        endpoint: ServiceEndpoint = LOGGING_ENDPOINT,
        factory: TransportFactory | None = None,
        policy: BackoffPolicy = DEFAULT_BACKOFF,
        log: Logger | None = None,
    ) -> AuditLogAdapter:
        directions = resolve(endpoint, authorization.enrollment, log=log)
        client = (factory or TransportFactory(log=log)).build(directions, authorization)
        return cls(client, policy=policy, log=log)

    @property
    def client(self) -> ApiClient:
        return self._client

    async def close(self) -> None:
        await self._client.close()

    async def __aenter__(self) -> AuditLogAdapter:
        return self

    async def __aexit__(self, *_: Any) -> None:
        await self.close()

    async def list_events(
        self,
        request: PageRequest,
        callback: Consumer,
        policy: BackoffPolicy,
        cancellation: Cancellation | None = None,
    ) -> StreamOutcome:
        self._log.debug("Listing log entries: {body}", body=request.body)
        outcome = await stream_pages(
            self._client, request, callback, policy, cancellation, log=self._log,
        )
        match outcome:
            case StreamFailed(error=error) if error.kind is ErrorKind.ACCESS_DENIED:
                return StreamFailed(
                    error=AccessDeniedError(
                        "Access to audit logs has been denied", cause=error,
                    ),
                    pages=outcome.pages,
                    records=outcome.records,
                )
            case _:
                return outcome

    async def list_instance_events(
        self,
        project_ids: Iterable[str],
        zones: Iterable[str] | None,
        instance_ids: Iterable[int] | None,
        start_time: datetime,
        processor: EventProcessor,
        cancellation: Cancellation | None = None,
    ) -> StreamOutcome:
        """Stream audit events of the given projects, newest first.

        Raises:
            ValueError: If ``project_ids`` is empty or ``start_time`` is
                not UTC.
        """
        projects = list(project_ids)
        if not projects:
            raise ValueError("At least one project id is required")

        self._log.info(
            "Listing instance events for {projects} since {start}",
            projects=", ".join(projects), start=start_time,
        )
        request = PageRequest(
            method="POST",
            path="v2/entries:list",
            body={
                "resourceNames": [f"projects/{p}" for p in projects],
                "filter": build_filter(
                    zones,
                    instance_ids,
                    processor.supported_methods,
                    processor.supported_severities,
                    start_time,
                ),
                "pageSize": MAX_PAGE_SIZE,
                "orderBy": ORDER_BY,
            },
            items_field="entries",
        )
        return await self.list_events(request, processor.process, self._policy, cancellation)
