"""Continuation-style task execution.

Tasks are stateful work units whose ``run`` returns the next task to schedule (or
``None``). The external scheduler consumes those continuations; ``TaskQueue`` is
the in-process stand-in used by the CLI and the tests.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING, Protocol

from orgsync.domain.model import ErrorCode, ErrorLogEntry

if TYPE_CHECKING:
    from collections.abc import Callable

    from orgsync.domain.ports import ErrorSink, StoreUnitOfWork, WarehouseSource

log = getLogger(__name__)


@dataclass(slots=True)
class PipelineContext:
    """Collaborators handed to every task invocation."""

    source: WarehouseSource
    unit_of_work_factory: Callable[[], StoreUnitOfWork]
    error_sink: ErrorSink


class Task(Protocol):
    def run(self, context: PipelineContext) -> Task | None: ...


@dataclass(slots=True)
class TaskQueue:
    """FIFO executor that runs tasks one at a time and enqueues their continuations."""

    context: PipelineContext
    _pending: deque[Task] = field(default_factory=deque["Task"])

    def submit(self, task: Task) -> None:
        self._pending.append(task)

    def __len__(self) -> int:
        return len(self._pending)

    def drain(self, *, max_steps: int | None = None) -> int:
        """Run queued tasks until the queue is empty; return the number of steps."""

        steps = 0
        while self._pending:
            if max_steps is not None and steps >= max_steps:
                break
            task = self._pending.popleft()
            successor = self._run_one(task)
            steps += 1
            if successor is not None:
                self._pending.append(successor)
        return steps

    def _run_one(self, task: Task) -> Task | None:
        try:
            return task.run(self.context)
        except Exception as exc:  # noqa: BLE001
            log.exception("Task %s failed", type(task).__name__)
            self.context.error_sink.append(
                [
                    ErrorLogEntry(
                        operation=f"task.{type(task).__name__}",
                        message=str(exc) or type(exc).__name__,
                        error_code=ErrorCode.UNEXPECTED,
                    )
                ]
            )
            return None


__all__ = ["PipelineContext", "Task", "TaskQueue"]
