# flowpatch/service.py
"""
WorkflowEditor: the caller-facing surface.

Two apply paths share one store:
  - apply_batch: read once, run the batch processor on a private copy, write
    back under If-Match. A lost race is reported, not retried.
  - create_node / update_node / connect_nodes / delete_node / set_node_position:
    point mutations run through the retrying concurrency controller. Edit errors
    raise OperationError, lost races beyond the retry budget raise ConcurrencyError.
"""
from __future__ import annotations

import time
from typing import Any, Callable, Dict, List, Optional, Sequence

from flowpatch.catalog.registry import NodeCatalog, build_catalog, default_catalog
from flowpatch.config import Settings
from flowpatch.errors import PreconditionFailed, StoreError
from flowpatch.model.graph import generate_node_id
from flowpatch.operations import mutations
from flowpatch.operations.processor import apply_operations
from flowpatch.store.client import N8nStore
from flowpatch.store.concurrency import DEFAULT_BASE_DELAY, DEFAULT_MAX_ATTEMPTS, perform_workflow_update
from flowpatch.utils.logger import get_logger
from flowpatch.validation.validator import validate_full_node_config

logger = get_logger("service")

VERSION_DRIFT = "Version drift detected: workflow was modified by another process"


class WorkflowEditor:
    def __init__(
        self,
        store,
        catalog: Optional[NodeCatalog] = None,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        base_delay: float = DEFAULT_BASE_DELAY,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.store = store
        self.catalog = catalog or default_catalog()
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self._sleep = sleep

    @classmethod
    def from_settings(cls, settings: Settings, **store_kwargs) -> "WorkflowEditor":
        catalog = build_catalog(settings.catalog_paths) if settings.catalog_paths else None
        return cls(
            N8nStore.from_settings(settings, **store_kwargs),
            catalog=catalog,
            max_attempts=settings.max_attempts,
            base_delay=settings.base_delay,
        )

    # ---------- Reads ----------

    def get_workflow(self, workflow_id) -> Dict[str, Any]:
        workflow, _ = self.store.get(workflow_id)
        return workflow

    # ---------- Batch path ----------

    def apply_batch(self, workflow_id, operations: Optional[List[Dict[str, Any]]]) -> Dict[str, Any]:
        """
        Apply `operations` atomically and persist the result.

        Returns {"success": True, "workflow": stored} or
        {"success": False, "errors": [{"operationIndex", "operation", "error", "details"?}]}.
        Store failures are reported with operationIndex -1.
        """
        ops = operations if isinstance(operations, list) else []
        first = ops[0] if ops else {"type": "unknown"}

        try:
            workflow, etag = self.store.get(workflow_id)
        except StoreError as e:
            return _store_failure(first, f"Failed to retrieve workflow: {e}", e)

        result = apply_operations(workflow, ops)
        if not result["success"]:
            return result

        try:
            stored = self.store.put(workflow_id, result["workflow"], if_match=etag)
        except PreconditionFailed as e:
            logger.warning(f"Batch on workflow {workflow_id} lost a concurrent write race")
            return _store_failure(first, VERSION_DRIFT, e)
        except StoreError as e:
            return _store_failure(first, f"Failed to save workflow: {e}", e)

        logger.info(f"Applied {len(ops)} operation(s) to workflow {workflow_id}")
        return {"success": True, "workflow": stored}

    # ---------- Point mutations ----------

    def create_node(
        self,
        workflow_id,
        node_type: str,
        name: Optional[str] = None,
        parameters: Optional[Dict[str, Any]] = None,
        position: Optional[Sequence[float]] = None,
        credentials: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        # generated once so every retry appends the same node
        node_id = generate_node_id()
        self._update(workflow_id, mutations.add_node(node_id, node_type, name, parameters, position, credentials))
        return {"nodeId": node_id}

    def update_node(
        self,
        workflow_id,
        node_id: str,
        name: Optional[str] = None,
        parameters: Optional[Dict[str, Any]] = None,
        credentials: Optional[Dict[str, Any]] = None,
        type_version: Optional[int] = None,
    ) -> Dict[str, Any]:
        self._update(workflow_id, mutations.update_node(node_id, name, parameters, credentials, type_version))
        return {"nodeId": node_id}

    def connect_nodes(self, workflow_id, from_: Dict[str, Any], to: Dict[str, Any]) -> Dict[str, Any]:
        """`from_` is {"nodeId", "outputIndex"?}, `to` is {"nodeId", "inputIndex"?}."""
        self._update(workflow_id, mutations.connect(
            from_["nodeId"],
            to["nodeId"],
            output_index=from_.get("outputIndex") or 0,
            input_index=to.get("inputIndex") or 0,
        ))
        return {"ok": True}

    def delete_node(self, workflow_id, node_id: str) -> Dict[str, Any]:
        self._update(workflow_id, mutations.delete_node(node_id))
        return {"ok": True}

    def set_node_position(self, workflow_id, node_id: str, x: float, y: float) -> Dict[str, Any]:
        self._update(workflow_id, mutations.set_position(node_id, x, y))
        return {"ok": True}

    # ---------- Catalog / validation ----------

    def validate_node_config(
        self,
        node_type: str,
        parameters: Optional[Dict[str, Any]],
        credentials: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        return validate_full_node_config(node_type, parameters, credentials, catalog=self.catalog)

    def list_node_types(self) -> List[Dict[str, Any]]:
        return self.catalog.list_node_types()

    def get_node_examples(self, node_type: str) -> List[Dict[str, Any]]:
        return self.catalog.get_node_examples(node_type)

    # ---------- Internals ----------

    def _update(self, workflow_id, mutate) -> Dict[str, Any]:
        return perform_workflow_update(
            self.store,
            workflow_id,
            mutate,
            max_attempts=self.max_attempts,
            base_delay=self.base_delay,
            sleep=self._sleep,
        )


def _store_failure(operation: Any, message: str, exc: Exception) -> Dict[str, Any]:
    return {
        "success": False,
        "errors": [{
            "operationIndex": -1,
            "operation": operation,
            "error": message,
            "details": str(exc),
        }],
    }
