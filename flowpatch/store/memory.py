# flowpatch/store/memory.py
from __future__ import annotations

import uuid
from typing import Any, Dict, Optional, Tuple

from flowpatch.errors import PreconditionFailed, WorkflowNotFoundError
from flowpatch.model.graph import clone_document


class MemoryStore:
    """
    In-process workflow store with the same versioned get/put contract as
    N8nStore. Each successful put bumps the version tag; a put presenting a
    stale tag raises PreconditionFailed.
    """

    def __init__(self) -> None:
        self._docs: Dict[str, Dict[str, Any]] = {}
        self._versions: Dict[str, int] = {}
        self.writes = 0

    def create(self, workflow: Dict[str, Any], workflow_id: Optional[str] = None) -> str:
        workflow_id = str(workflow_id or workflow.get("id") or uuid.uuid4().hex[:16])
        doc = clone_document(workflow)
        doc["id"] = workflow_id
        self._docs[workflow_id] = doc
        self._versions[workflow_id] = 1
        return workflow_id

    def version(self, workflow_id) -> str:
        self._require(workflow_id)
        return f'W/"{self._versions[str(workflow_id)]}"'

    def get(self, workflow_id) -> Tuple[Dict[str, Any], Optional[str]]:
        doc = self._require(workflow_id)
        return clone_document(doc), self.version(workflow_id)

    def put(self, workflow_id, workflow: Dict[str, Any], if_match: Optional[str] = None) -> Dict[str, Any]:
        self._require(workflow_id)
        if if_match is not None and if_match != self.version(workflow_id):
            raise PreconditionFailed()
        key = str(workflow_id)
        doc = clone_document(workflow)
        doc["id"] = key
        self._docs[key] = doc
        self._versions[key] += 1
        self.writes += 1
        return clone_document(doc)

    def _require(self, workflow_id) -> Dict[str, Any]:
        doc = self._docs.get(str(workflow_id))
        if doc is None:
            raise WorkflowNotFoundError(f"Workflow {workflow_id} not found", status=404)
        return doc
