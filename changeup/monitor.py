"""Window event monitor.

Seeds the identity index from the Sway tree, then applies window focus/new/close
events to the shared state strictly in delivery order.
"""

import asyncio
import logging
from collections import deque
from typing import Iterator

from i3ipc import Event
from i3ipc.aio import Connection

from .errors import EventStreamClosed, MalformedEventError
from .models import ConId
from .state import StateManager

logger = logging.getLogger(__name__)

WINDOW_CONTAINER_TYPES = ("con", "floating_con")
HANDLED_CHANGES = ("focus", "close", "new")

# Queued once the Sway connection stops delivering events
_STREAM_END = object()


def scan_tree(root) -> Iterator:
    """Yield every leaf window container of a Sway tree, breadth first."""
    pending = deque([root])
    while pending:
        node = pending.popleft()
        children = list(getattr(node, "nodes", None) or [])
        floating = list(getattr(node, "floating_nodes", None) or [])

        if getattr(node, "type", None) in WINDOW_CONTAINER_TYPES and not children:
            yield node

        pending.extend(children)
        pending.extend(floating)


class EventMonitor:
    """Consumes Sway window events and keeps the FocusState current."""

    def __init__(self, state_manager: StateManager, conn: Connection) -> None:
        """
        Args:
            state_manager: Shared state and its lock
            conn: Connected i3ipc.aio Connection used for the subscription
        """
        self.state_manager = state_manager
        self.conn = conn
        self.events_processed = 0
        self._queue: asyncio.Queue = asyncio.Queue()
        self._end_reason = "connection main loop exited"

    async def start(self) -> None:
        """Scan the tree and subscribe to window events.

        Raises whatever the tree query raises; a failed startup scan is fatal.
        """
        await self.scan()

        self.conn.on(Event.WINDOW, self._enqueue)
        self.conn.on(Event.SHUTDOWN, self._on_shutdown)
        await self.conn.subscribe([Event.WINDOW, Event.SHUTDOWN])
        logger.info("Subscribed to Sway window events")

    async def scan(self) -> int:
        """Index every existing window. Returns the number indexed."""
        tree = await self.conn.get_tree()

        indexed = 0
        async with self.state_manager.exclusive() as state:
            for con in scan_tree(tree):
                if state.record_new(con.id, ConId.from_container(con)):
                    indexed += 1
                else:
                    logger.debug(f"Skipping window {con.id}: no app_id or class")

        logger.info(f"Initial tree scan indexed {indexed} windows")
        return indexed

    def _enqueue(self, conn, event) -> None:
        self._queue.put_nowait(event)

    def _on_shutdown(self, conn, event) -> None:
        self._end_reason = f"Sway shutdown ({getattr(event, 'change', 'unknown')})"
        self._queue.put_nowait(_STREAM_END)

    async def run(self) -> None:
        """
        Process events until the stream ends.

        Never returns normally.

        Raises:
            EventStreamClosed: When the Sway connection stops
            MalformedEventError: When an event has an unexpected shape
        """
        logger.info("Event monitor running")
        main_task = asyncio.create_task(self.conn.main(), name="sway-main")
        main_task.add_done_callback(lambda _: self._queue.put_nowait(_STREAM_END))

        try:
            while True:
                event = await self._queue.get()
                if event is _STREAM_END:
                    break
                await self.handle_event(event)
        finally:
            if not main_task.done():
                main_task.cancel()

        if main_task.done() and not main_task.cancelled() and main_task.exception():
            error = main_task.exception()
            raise EventStreamClosed(str(error) or type(error).__name__) from error
        raise EventStreamClosed(self._end_reason)

    async def handle_event(self, event) -> None:
        """Apply one window event to the state under the lock."""
        change = getattr(event, "change", None)
        if not isinstance(change, str):
            raise MalformedEventError(f"missing change field in {event!r}")

        if change not in HANDLED_CHANGES:
            return

        container = getattr(event, "container", None)
        if container is None:
            raise MalformedEventError(f"window::{change} without a container")

        handle = getattr(container, "id", None)
        if not isinstance(handle, int) or isinstance(handle, bool):
            raise MalformedEventError(f"window::{change} container id is {handle!r}")

        async with self.state_manager.exclusive() as state:
            if change == "focus":
                state.record_focus(handle)
            elif change == "close":
                state.record_close(handle)
            else:
                con_id = ConId.from_container(container)
                if not state.record_new(handle, con_id):
                    logger.debug(f"Not tracking window {handle}: no app_id or class")

            self.events_processed += 1
            logger.debug(f"window::{change} {handle}: {state.summary()}")
