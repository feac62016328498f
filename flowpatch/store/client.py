# flowpatch/store/client.py
"""
Remote workflow store backed by the n8n public REST API.

Only the versioned get/put pair the editor needs is implemented:

    get(id)                          -> (workflow, etag or None)
    put(id, workflow, if_match=etag) -> stored workflow, or PreconditionFailed on 412
"""
from __future__ import annotations

import time
from typing import Any, Dict, Optional, Tuple

import httpx

from flowpatch.config import Settings
from flowpatch.errors import PreconditionFailed, StoreError, WorkflowNotFoundError
from flowpatch.utils.logger import get_logger, redact

logger = get_logger("store")


class N8nStore:
    def __init__(
        self,
        base_url: str,
        api_key: Optional[str] = None,
        username: Optional[str] = None,
        password: Optional[str] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        headers = {"Content-Type": "application/json", "Accept": "application/json"}
        auth = None
        if api_key:
            headers["X-N8N-API-KEY"] = api_key
        elif username and password:
            auth = httpx.BasicAuth(username, password)

        self.base_url = base_url.rstrip("/")
        self._client = httpx.Client(
            base_url=f"{self.base_url}/api/v1",
            headers=headers,
            auth=auth,
            timeout=timeout,
            transport=transport,
            event_hooks={"request": [_trace_request], "response": [_trace_response]},
        )

    @classmethod
    def from_settings(cls, settings: Settings, transport: Optional[httpx.BaseTransport] = None) -> "N8nStore":
        return cls(
            settings.base_url,
            api_key=settings.api_key,
            username=settings.username,
            password=settings.password,
            timeout=settings.timeout,
            transport=transport,
        )

    # ---------- Store contract ----------

    def get(self, workflow_id) -> Tuple[Dict[str, Any], Optional[str]]:
        response = self._send("GET", f"/workflows/{workflow_id}", workflow_id)
        return _unwrap(response.json()), response.headers.get("etag")

    def put(self, workflow_id, workflow: Dict[str, Any], if_match: Optional[str] = None) -> Dict[str, Any]:
        headers = {"If-Match": if_match} if if_match else None
        response = self._send("PUT", f"/workflows/{workflow_id}", workflow_id, json=workflow, headers=headers)
        return _unwrap(response.json())

    # ---------- Lifecycle ----------

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "N8nStore":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    # ---------- Internals ----------

    def _send(self, method: str, path: str, workflow_id, **kwargs) -> httpx.Response:
        try:
            response = self._client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            raise StoreError(f"{method} {path} failed: {e}") from e

        if response.status_code == 412:
            raise PreconditionFailed()
        if response.status_code == 404:
            raise WorkflowNotFoundError(f"Workflow {workflow_id} not found", status=404)
        if response.is_error:
            raise StoreError(
                f"{method} {path} returned {response.status_code}: {redact(response.text)[:500]}",
                status=response.status_code,
            )
        return response


def _unwrap(payload: Any) -> Dict[str, Any]:
    """Some n8n versions wrap single resources as {"data": {...}}."""
    if isinstance(payload, dict) and isinstance(payload.get("data"), dict) and "nodes" not in payload:
        return payload["data"]
    return payload


def _trace_request(request: httpx.Request) -> None:
    request.extensions["flowpatch_start"] = time.monotonic()
    logger.debug(f"HTTP request {request.method} {request.url} headers={redact(dict(request.headers))}")


def _trace_response(response: httpx.Response) -> None:
    start = response.request.extensions.get("flowpatch_start")
    elapsed_ms = (time.monotonic() - start) * 1000 if start is not None else 0.0
    logger.debug(f"HTTP response {response.status_code} {response.request.url} ({elapsed_ms:.0f} ms)")
