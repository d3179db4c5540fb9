"""
Keybinding manager for Sway.

Keeps the configured actions bound in Sway: on every config reload the old
bindings are removed and the new ones added via bindsym/unbindsym commands.
Each binding calls back into changeup-client.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Iterable, List, Optional, Set

from i3ipc.aio import Connection

from .errors import CommandError
from .models import KeyBinding
from .state import send_command

logger = logging.getLogger(__name__)

ConnectFactory = Callable[[], Awaitable[Connection]]


async def connect_sway() -> Connection:
    return await Connection().connect()


class KeybindingManager:
    """Applies keymap changes to Sway in detached background tasks."""

    def __init__(self, connect: ConnectFactory = connect_sway):
        """
        Initialize keybinding manager.

        Args:
            connect: Coroutine factory opening a Sway connection; called
                lazily and again after a delivery failure
        """
        self._connect = connect
        self.sway: Optional[Connection] = None
        self._actions: List[KeyBinding] = []
        self._tasks: Set[asyncio.Task] = set()
        # One reconciliation at a time, so unbinds and binds never interleave
        self._run_lock = asyncio.Lock()

    @property
    def actions(self) -> List[KeyBinding]:
        return list(self._actions)

    def replace_actions(self, actions: Iterable[KeyBinding]) -> List[KeyBinding]:
        """
        Swap the stored keymap and reconcile Sway in the background.

        Returns:
            The previous keymap
        """
        new_actions = list(actions)
        old_actions, self._actions = self._actions, new_actions
        self._spawn(self._reconcile(old_actions, new_actions), "replace")
        return old_actions

    def reload_actions(self) -> None:
        """Re-issue bind commands for the current keymap."""
        self._spawn(self._reconcile([], list(self._actions)), "reload")

    async def wait_idle(self) -> None:
        """Wait for outstanding reconciliation tasks."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _spawn(self, coro, label: str) -> None:
        task = asyncio.create_task(coro, name=f"keybindings-{label}")
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)

    def _on_task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(f"Keybinding reconciliation failed: {error}")

    async def _reconcile(self, old_actions: List[KeyBinding], new_actions: List[KeyBinding]) -> None:
        async with self._run_lock:
            failed = 0
            for command in [a.unbind_command() for a in old_actions] + [a.bind_command() for a in new_actions]:
                if not await self._issue(command):
                    failed += 1

            logger.info(
                f"Keybindings reconciled: {len(old_actions)} unbound, "
                f"{len(new_actions)} bound, {failed} failed"
            )

    async def _issue(self, command: str) -> bool:
        if self.sway is None:
            try:
                self.sway = await self._connect()
            except Exception as e:
                logger.error(f"Cannot connect to Sway for '{command}': {e}")
                return False

        try:
            await send_command(self.sway, command)
        except CommandError as e:
            logger.error(e.message)
            if e.__cause__ is not None:
                # Delivery failure rather than a rejected command
                self.sway = None
            return False
        return True
