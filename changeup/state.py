"""State manager for the changeup daemon.

Holds the focus history, the identity index and the active ruleset behind a
single asyncio lock shared by the event monitor and the IPC server.
"""

import asyncio
import contextlib
import logging
from collections import deque
from typing import AsyncIterator, Dict, Iterator, Optional, Set

from i3ipc.aio import Connection

from .constants import HISTORY_LEN
from .errors import CommandError
from .models import ConId, RuleSet

logger = logging.getLogger(__name__)


async def send_command(conn: Connection, command: str) -> None:
    """
    Send one command to Sway over an i3ipc.aio connection.

    Raises:
        CommandError: If the command could not be delivered or Sway
            rejected it
    """
    try:
        replies = await conn.command(command)
    except Exception as e:
        raise CommandError(command, str(e) or type(e).__name__) from e

    for reply in replies or []:
        if not reply.success:
            raise CommandError(command, reply.error or "unknown error")

    logger.debug(f"Sway command ok: {command}")


class FocusHistory:
    """Recently focused handles, oldest first, without duplicates."""

    def __init__(self, capacity: int = HISTORY_LEN) -> None:
        self._items: deque = deque(maxlen=capacity)

    @property
    def capacity(self) -> int:
        return self._items.maxlen

    def push(self, handle: int) -> None:
        """Move handle to the tail; the head is evicted once over capacity."""
        self.discard(handle)
        self._items.append(handle)

    def discard(self, handle: int) -> bool:
        try:
            self._items.remove(handle)
        except ValueError:
            return False
        return True

    @property
    def now_on(self) -> Optional[int]:
        return self._items[-1] if self._items else None

    @property
    def last(self) -> Optional[int]:
        return self._items[-2] if len(self._items) >= 2 else None

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[int]:
        return iter(self._items)

    def __contains__(self, handle: object) -> bool:
        return handle in self._items


class FocusState:
    """
    The mutable aggregate shared between the monitor and the IPC server.

    Mutators are synchronous; callers hold StateManager's lock around them.
    """

    def __init__(self) -> None:
        self.history = FocusHistory()
        self.last: Optional[int] = None
        self.now_on: Optional[int] = None
        self.index: Dict[ConId, Set[int]] = {}
        self.ruleset: RuleSet = {}
        # handle -> identity it is indexed under
        self._owners: Dict[int, ConId] = {}

    def _refresh(self) -> None:
        self.last = self.history.last
        self.now_on = self.history.now_on

    def record_focus(self, handle: int) -> None:
        self.history.push(handle)
        self._refresh()

    def record_new(self, handle: int, con_id: Optional[ConId]) -> bool:
        """Index a window under its identity. Returns False if it has none."""
        if con_id is None:
            return False

        previous = self._owners.get(handle)
        if previous is not None and previous != con_id:
            self._unindex(handle)

        self.index.setdefault(con_id, set()).add(handle)
        self._owners[handle] = con_id
        return True

    def record_close(self, handle: int) -> None:
        """Forget a window. Closing an unknown handle is a no-op."""
        self.history.discard(handle)
        self._unindex(handle)
        self._refresh()

    def _unindex(self, handle: int) -> None:
        con_id = self._owners.pop(handle, None)
        if con_id is None:
            return

        windows = self.index.get(con_id)
        if windows is None:
            return
        windows.discard(handle)
        if not windows:
            del self.index[con_id]

    def identity_of(self, handle: int) -> Optional[ConId]:
        return self._owners.get(handle)

    def windows_for(self, con_id: ConId) -> Set[int]:
        return set(self.index.get(con_id, ()))

    def summary(self) -> dict:
        return {
            "last": self.last,
            "now_on": self.now_on,
            "history": list(self.history),
            "identities": len(self.index),
            "windows": len(self._owners),
        }


class StateManager:
    """Owns the FocusState, its lock, and the Sway command connection."""

    def __init__(self, conn: Optional[Connection] = None) -> None:
        self.state = FocusState()
        self.conn = conn
        self._lock = asyncio.Lock()

    @contextlib.asynccontextmanager
    async def exclusive(self) -> AsyncIterator[FocusState]:
        """Hold the state lock for a whole read-modify-write sequence."""
        async with self._lock:
            yield self.state

    async def run_command(self, command: str) -> None:
        """
        Send one command to Sway.

        Raises:
            CommandError: If the command could not be delivered or Sway
                rejected it
        """
        if self.conn is None:
            raise CommandError(command, "not connected to Sway")
        await send_command(self.conn, command)

    async def try_command(self, command: str) -> bool:
        """Best-effort variant of run_command: failures are logged only."""
        try:
            await self.run_command(command)
        except CommandError as e:
            logger.error(e.message)
            return False
        return True
