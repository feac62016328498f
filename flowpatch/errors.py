# flowpatch/errors.py
"""Exception types for edit, store and concurrency failures."""

from __future__ import annotations

from typing import Optional


class FlowpatchError(Exception):
    """Base flowpatch exception."""


class ConfigError(FlowpatchError):
    """Invalid environment configuration."""


class OperationError(FlowpatchError):
    """An edit cannot be applied to the workflow as it currently stands."""


class NodeNotFoundError(OperationError):
    """A node id or name does not resolve to a node in the workflow."""


class StoreError(FlowpatchError):
    """The remote workflow store failed to serve a request."""

    def __init__(self, message: str, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.status = status


class WorkflowNotFoundError(StoreError):
    """The store has no workflow under the requested id."""


class PreconditionFailed(StoreError):
    """The store rejected a write because the version tag no longer matches."""

    def __init__(self, message: str = "Precondition failed: the workflow has been modified by another user",
                 status: Optional[int] = 412) -> None:
        super().__init__(message, status=status)


class ConcurrencyError(FlowpatchError):
    """A point mutation kept losing the version race until attempts ran out."""

    def __init__(self, workflow_id, attempts: int) -> None:
        super().__init__(
            f"Workflow {workflow_id} was modified concurrently; "
            f"gave up after {attempts} attempt(s). Fetch the latest version and retry."
        )
        self.workflow_id = workflow_id
        self.attempts = attempts
