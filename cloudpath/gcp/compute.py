"""Compute Engine instance inventory."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from typing import TYPE_CHECKING, Any

from loguru import logger

from cloudpath.batch import gather_best_effort
from cloudpath.cancellation import Cancellation
from cloudpath.endpoints import ServiceEndpoint, resolve
from cloudpath.gcp.endpoints import COMPUTE_ENDPOINT
from cloudpath.infra.paging import PageRequest, stream_pages
from cloudpath.infra.retry import BackoffPolicy
from cloudpath.transport import TransportFactory

if TYPE_CHECKING:
    from loguru import Logger

    from cloudpath.auth import Authorization
    from cloudpath.infra.http import ApiClient

MAX_RESULTS = "500"

type Instance = dict[str, Any]


class ComputeAdapter:
    def __init__(
        self,
        client: ApiClient,
        *,
        policy: BackoffPolicy | None = None,
        log: Logger | None = None,
    ) -> None:
        self._client = client
        self._policy = policy or BackoffPolicy()
        self._log = log or logger.bind(component="compute")

    @classmethod
    def create(
        cls,
        authorization: Authorization,
        *,
        endpoint: ServiceEndpoint = COMPUTE_ENDPOINT,
        factory: TransportFactory | None = None,
        policy: BackoffPolicy | None = None,
        log: Logger | None = None,
    ) -> ComputeAdapter:
        directions = resolve(endpoint, authorization.enrollment, log=log)
        client = (factory or TransportFactory(log=log)).build(directions, authorization)
        return cls(client, policy=policy, log=log)

    async def close(self) -> None:
        await self._client.close()

    async def __aenter__(self) -> ComputeAdapter:
        return self

    async def __aexit__(self, *_: Any) -> None:
        await self.close()

    async def list_instances(
        self,
        project_id: str,
        zone: str,
        cancellation: Cancellation | None = None,
    ) -> list[Instance]:
        """List the instances of one zone.

        Raises:
            ApiError: The classified failure, or ``OperationCancelledError``.
        """
        instances: list[Instance] = []
        request = PageRequest(
            method="GET",
            path=f"projects/{project_id}/zones/{zone}/instances",
            params={"maxResults": MAX_RESULTS},
            items_field="items",
        )
        outcome = await stream_pages(
            self._client, request, instances.append, self._policy, cancellation, log=self._log,
        )
        outcome.unwrap()
        return instances

    async def list_project_instances(
        self,
        project_ids: Iterable[str],
        zones: Sequence[str],
        cancellation: Cancellation | None = None,
    ) -> dict[str, list[Instance]]:
        """List instances of several projects, tolerating per-project failures.

        Raises:
            BatchError: Listing some projects failed; successful projects
                are available on the error.
            ReauthenticationRequiredError: The credential must be refreshed;
                the whole listing should be restarted.
            OperationCancelledError: The listing was cancelled.
        """

        async def list_project(project_id: str) -> list[Instance]:
            instances: list[Instance] = []
            for zone in zones:
                instances.extend(await self.list_instances(project_id, zone, cancellation))
            return instances

        return await gather_best_effort(project_ids, list_project, log=self._log)
