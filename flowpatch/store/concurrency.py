# flowpatch/store/concurrency.py
from __future__ import annotations

import time
from typing import Any, Callable, Dict

from flowpatch.errors import ConcurrencyError, PreconditionFailed
from flowpatch.utils.logger import get_logger

logger = get_logger("concurrency")

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_BASE_DELAY = 0.1


def perform_workflow_update(
    store,
    workflow_id,
    mutate: Callable[[Dict[str, Any]], None],
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    base_delay: float = DEFAULT_BASE_DELAY,
    sleep: Callable[[float], None] = time.sleep,
) -> Dict[str, Any]:
    """
    Fetch, mutate and store a workflow under an If-Match precondition.

    A lost version race (PreconditionFailed) restarts the whole cycle from a
    fresh read, waiting base_delay * 2**n before retry n. Anything `mutate`
    raises propagates at once. When every attempt loses the race a
    ConcurrencyError is raised, chained to the last precondition failure.

    Returns the document as stored.
    """
    if max_attempts < 1:
        raise ValueError(f"max_attempts must be >= 1, got {max_attempts}")

    last: PreconditionFailed | None = None
    for attempt in range(1, max_attempts + 1):
        workflow, etag = store.get(workflow_id)
        mutate(workflow)
        try:
            stored = store.put(workflow_id, workflow, if_match=etag)
        except PreconditionFailed as e:
            last = e
            if attempt == max_attempts:
                break
            delay = base_delay * 2 ** attempt
            logger.warning(
                f"Workflow {workflow_id} changed during update "
                f"(attempt {attempt}/{max_attempts}); retrying in {delay:.2f}s"
            )
            sleep(delay)
            continue
        if attempt > 1:
            logger.info(f"Workflow {workflow_id} updated on attempt {attempt}")
        return stored

    logger.error(f"Workflow {workflow_id}: giving up after {max_attempts} conflicting attempt(s)")
    raise ConcurrencyError(workflow_id, max_attempts) from last
