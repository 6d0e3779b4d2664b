"""
Отложенные задачи с отменой.

TaskScope владеет задачами одной сессии; cancel_all() вызывается на любом
выходе из сессии, чтобы колбэк не сработал по уже сброшенному заказу.
"""
import asyncio
import logging
from typing import Awaitable, Callable

logger = logging.getLogger(__name__)


class TaskScope:
    def __init__(self, name: str = "session") -> None:
        self.name = name
        self._tasks: set[asyncio.Task] = set()
        self._closed = False

    @property
    def pending(self) -> int:
        return sum(1 for t in self._tasks if not t.done())

    @property
    def closed(self) -> bool:
        return self._closed

    def schedule(
        self,
        delay: float,
        callback: Callable[[], Awaitable[None]],
        label: str = "task",
    ) -> asyncio.Task:
        """Запускает callback через delay секунд."""
        if self._closed:
            raise RuntimeError(f"Scope {self.name} уже закрыт")

        async def runner() -> None:
            await asyncio.sleep(delay)
            await callback()

        task = asyncio.create_task(runner(), name=f"{self.name}:{label}")
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        logger.debug("task_scheduled", extra={"scope": self.name, "label": label, "delay": delay})
        return task

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(
                "scheduled_task_failed",
                extra={"scope": self.name, "task": task.get_name(), "error": str(exc)},
                exc_info=exc,
            )

    def cancel_all(self) -> int:
        """Отменяет все ожидающие задачи. Returns: сколько отменено"""
        cancelled = 0
        for task in list(self._tasks):
            if not task.done():
                task.cancel()
                cancelled += 1
        self._tasks.clear()
        if cancelled:
            logger.debug("tasks_cancelled", extra={"scope": self.name, "count": cancelled})
        return cancelled

    def close(self) -> None:
        self.cancel_all()
        self._closed = True

    async def __aenter__(self) -> "TaskScope":
        return self

    async def __aexit__(self, *exc_info) -> None:
        self.close()
