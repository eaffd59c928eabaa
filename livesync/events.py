"""Event handler registration shared by the controller components."""

import asyncio
import inspect
import logging
from typing import Any, Callable, Dict, List, Set

logger = logging.getLogger(__name__)


def log_task_exception(task: asyncio.Task) -> None:
    """Done-callback that reports a background task's failure."""
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error(f"Background task {task.get_name()} failed: {exc}", exc_info=exc)


class EventEmitter:
    """
    Mixin providing the `@obj.event` decorator.

    Handlers are registered under their function name (`on_state`,
    `on_message`, ...). Coroutine handlers are scheduled on the running loop
    and tracked until they finish; exceptions raised by handlers are logged
    and never reach the emitter.
    """

    def __init__(self) -> None:
        self._event_handlers: Dict[str, List[Callable]] = {}
        self._handler_tasks: Set[asyncio.Task] = set()

    def event(self, func: Callable) -> Callable:
        """Decorator for registering event handlers."""
        self._event_handlers.setdefault(func.__name__, []).append(func)
        logger.debug(f"Registered event handler: {func.__name__}")
        return func

    def _dispatch_event(self, event_name: str, *args: Any) -> None:
        """Dispatch an event to registered handlers."""
        for handler in self._event_handlers.get(event_name, []):
            try:
                if inspect.iscoroutinefunction(handler):
                    task = asyncio.get_running_loop().create_task(
                        handler(*args), name=f"{event_name}:{handler.__name__}"
                    )
                    self._handler_tasks.add(task)
                    task.add_done_callback(self._handler_tasks.discard)
                    task.add_done_callback(log_task_exception)
                else:
                    handler(*args)
            except Exception as e:
                logger.error(f"Error in event handler {event_name}: {e}", exc_info=True)
