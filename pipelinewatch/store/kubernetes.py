"""Object store backed by the Kubernetes API server."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx

from ..contracts import StepRun, WorkflowRun
from .base import ObjectStore
from .errors import ConflictError, NotFoundError, StoreError, TransientStoreError

logger = logging.getLogger(__name__)

API_PREFIX = "/apis/tekton.dev/v1"
MERGE_PATCH = "application/merge-patch+json"


class KubernetesObjectStore(ObjectStore):
    """Read PipelineRuns and TaskRuns through the Tekton v1 REST API."""

    def __init__(
        self,
        api_url: str = "https://kubernetes.default.svc",
        token: Optional[str] = None,
        verify_ssl: bool = True,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.api_url = api_url.rstrip("/")
        self.token = token
        self.verify_ssl = verify_ssl
        self.timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def connect(self) -> None:
        headers = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        self._client = httpx.AsyncClient(
            base_url=self.api_url,
            headers=headers,
            verify=self.verify_ssl,
            timeout=self.timeout,
            transport=self._transport,
        )

    async def disconnect(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    async def _request(self, method: str, path: str, **kwargs: Any) -> Dict[str, Any]:
        if not self._client:
            await self.connect()
        try:
            resp = await self._client.request(method, path, **kwargs)
        except (httpx.TimeoutException, httpx.TransportError) as e:
            raise TransientStoreError(f"{method} {path}: {e}") from e

        if resp.status_code == 404:
            raise NotFoundError(f"{method} {path}: not found")
        if resp.status_code == 409:
            raise ConflictError(f"{method} {path}: {resp.text}")
        if resp.status_code == 429 or resp.status_code >= 500:
            raise TransientStoreError(f"{method} {path}: HTTP {resp.status_code}")
        if resp.status_code >= 400:
            raise StoreError(f"{method} {path}: HTTP {resp.status_code} {resp.text}")
        try:
            return resp.json()
        except ValueError as e:
            raise StoreError(f"{method} {path}: invalid JSON response: {e}") from e

    @staticmethod
    def _path(resource: str, namespace: Optional[str], name: Optional[str] = None) -> str:
        path = API_PREFIX
        if namespace:
            path += f"/namespaces/{namespace}"
        path += f"/{resource}"
        if name:
            path += f"/{name}"
        return path

    async def get_workflow_run(self, namespace: str, name: str) -> WorkflowRun:
        data = await self._request("GET", self._path("pipelineruns", namespace, name))
        return WorkflowRun.from_manifest(data)

    async def get_step_run(self, namespace: str, name: str) -> StepRun:
        data = await self._request("GET", self._path("taskruns", namespace, name))
        return StepRun.from_manifest(data)

    async def patch_labels(self, run: WorkflowRun, labels: Dict[str, str]) -> WorkflowRun:
        metadata: Dict[str, Any] = {"labels": labels}
        # the API server rejects the merge patch with 409 if the version moved on
        if run.resource_version:
            metadata["resourceVersion"] = run.resource_version
        data = await self._request(
            "PATCH",
            self._path("pipelineruns", run.namespace, run.name),
            json={"metadata": metadata},
            headers={"Content-Type": MERGE_PATCH},
        )
        logger.debug(f"patched labels {labels} onto pipelinerun {run.key}")
        return WorkflowRun.from_manifest(data)

    async def list_workflow_runs(self, namespace: Optional[str] = None) -> List[WorkflowRun]:
        data = await self._request("GET", self._path("pipelineruns", namespace))
        return [WorkflowRun.from_manifest(item) for item in data.get("items") or []]

    async def list_step_runs(self, namespace: Optional[str] = None) -> List[StepRun]:
        data = await self._request("GET", self._path("taskruns", namespace))
        return [StepRun.from_manifest(item) for item in data.get("items") or []]
