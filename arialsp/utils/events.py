"""Event, disposable and cancellation primitives shared by the client components."""

import asyncio
import logging
from typing import Any, Callable, Generic, List, Optional, TypeAlias, TypeVar

T = TypeVar("T")

# Event listener types
Listener: TypeAlias = Callable[[Any], Any]

logger = logging.getLogger("arialsp.events")


class Disposable:
    """Releases a resource exactly once."""

    def __init__(self, on_dispose: Optional[Callable[[], None]] = None):
        self._on_dispose = on_dispose
        self.disposed = False

    def dispose(self) -> None:
        if self.disposed:
            return
        self.disposed = True
        callback, self._on_dispose = self._on_dispose, None
        if callback is not None:
            callback()


class CompositeDisposable(Disposable):
    """A group of disposables released together.

    Members added after the group was disposed are released immediately.
    """

    def __init__(self, *items: Disposable):
        super().__init__()
        self._items: List[Disposable] = list(items)

    def add(self, item: Disposable) -> Disposable:
        """Add a member to the group.

        Args:
            item: The disposable to track.

        Returns:
            The same disposable, for chaining.
        """
        if self.disposed:
            item.dispose()
        else:
            self._items.append(item)
        return item

    def __len__(self) -> int:
        return len(self._items)

    def dispose(self) -> None:
        if self.disposed:
            return
        self.disposed = True
        items, self._items = self._items, []
        for item in items:
            item.dispose()


class EventEmitter(Generic[T]):
    """Fans an event out to registered listeners."""

    def __init__(self, name: str = "event"):
        self.name = name
        self._listeners: List[Listener] = []
        self._pending: set = set()
        self.disposed = False

    def event(self, listener: Listener) -> Disposable:
        """Subscribe a listener.

        Args:
            listener: Callable invoked with the event payload. Coroutine
                functions are scheduled on the running loop.

        Returns:
            A disposable that unsubscribes the listener.
        """
        if self.disposed:
            return Disposable()
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return Disposable(remove)

    def fire(self, payload: Optional[T] = None) -> None:
        """Deliver the payload to every listener."""
        for listener in list(self._listeners):
            try:
                result = listener(payload)
            except Exception as e:
                logger.error(f"Listener for {self.name} failed: {e}")
                continue
            if asyncio.iscoroutine(result):
                self._schedule(result)

    def _schedule(self, coro: Any) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            coro.close()
            logger.error(f"No running event loop, async listener of {self.name} was not run")
            return
        task = loop.create_task(coro)
        self._pending.add(task)
        task.add_done_callback(self._task_done)

    def _task_done(self, task: "asyncio.Task[Any]") -> None:
        self._pending.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error(f"Async listener for {self.name} failed: {task.exception()}")

    async def drain(self) -> None:
        """Wait for listeners that were scheduled as tasks."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    def dispose(self) -> None:
        self.disposed = True
        self._listeners.clear()


class CancellationToken:
    """Signals that the caller is no longer interested in a result."""

    def __init__(self) -> None:
        self._event = asyncio.Event()

    @property
    def is_cancellation_requested(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    async def wait(self) -> None:
        await self._event.wait()
