"""Bridge a callback-style bulk-action API to the awaitable contract.

The legacy API takes an ``on_complete`` callback and returns immediately.
The adapter resolves a future from that callback so the state machine can
await the outcome directly. Late or repeated callbacks are ignored.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Sequence
from typing import Any

import structlog

from sprint_rollover.collaborators.base import BulkActionCollaborator
from sprint_rollover.collaborators.contracts import BoardIssue, BulkActionResult

logger = structlog.get_logger()

CompletionCallback = Callable[[Any], None]
QueueFunction = Callable[[list[BoardIssue], str, CompletionCallback], None]


def _coerce_result(payload: Any) -> BulkActionResult:
    if isinstance(payload, BulkActionResult):
        return payload
    if payload is None:
        return BulkActionResult()
    if isinstance(payload, dict):
        return BulkActionResult.model_validate(payload)
    return BulkActionResult(message=str(payload))


class CallbackBulkActionAdapter(BulkActionCollaborator):
    """Wrap ``queue(issues, command_text, on_complete)`` as an awaitable call."""

    def __init__(self, queue: QueueFunction, *, timeout_s: float | None = None) -> None:
        self._queue = queue
        self._timeout_s = timeout_s

    async def select_and_queue(
        self, issues: Sequence[BoardIssue], command_text: str
    ) -> BulkActionResult:
        loop = asyncio.get_running_loop()
        future: asyncio.Future[BulkActionResult] = loop.create_future()

        def _resolve(payload: Any) -> None:
            if future.done():
                logger.warning("bulk_action_completion_ignored", reason="already_resolved")
                return
            future.set_result(_coerce_result(payload))

        def _on_complete(payload: Any = None) -> None:
            # The legacy side may call back from a worker thread.
            loop.call_soon_threadsafe(_resolve, payload)

        self._queue(list(issues), command_text, _on_complete)
        logger.info("bulk_action_queued", issues=len(issues))

        if self._timeout_s is None:
            return await future
        return await asyncio.wait_for(future, timeout=self._timeout_s)
