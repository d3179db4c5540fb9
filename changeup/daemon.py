"""Main daemon entry point.

Connects to Sway, loads the config, seeds the window index, and then runs the
event monitor and the IPC server side by side until one of them stops.
"""

import argparse
import asyncio
import logging
import os
import signal
import sys
from pathlib import Path
from typing import Optional

from i3ipc.aio import Connection

try:
    from systemd import journal
    SYSTEMD_AVAILABLE = True
except ImportError:
    SYSTEMD_AVAILABLE = False

from . import __version__
from .config import load_config
from .constants import SERVICE_NAME, ConfigPaths, socket_path
from .errors import ConfigLoadError
from .ipc_server import IPCServer
from .keybindings import KeybindingManager
from .models import ChangeUpConfig
from .monitor import EventMonitor
from .state import StateManager

logger = logging.getLogger(__name__)


async def connect_with_retry(max_attempts: int = 10, initial_delay: float = 0.1) -> Connection:
    """Connect to Sway with exponential backoff retry.

    Args:
        max_attempts: Maximum connection attempts
        initial_delay: Delay before the second attempt, doubled up to 5s

    Returns:
        Connected i3ipc.aio.Connection

    Raises:
        ConnectionError: If connection fails after max attempts
    """
    delay = initial_delay

    for attempt in range(1, max_attempts + 1):
        try:
            logger.info(f"Attempting to connect to Sway (attempt {attempt}/{max_attempts})")

            # No auto-reconnect: a dropped connection means missed events
            conn = await Connection(auto_reconnect=False).connect()

            version = await conn.get_version()
            logger.info(f"Connected to Sway version {version.human_readable}")
            return conn

        except Exception as e:
            logger.warning(f"Connection attempt {attempt} failed: {e}")

            if attempt < max_attempts:
                logger.debug(f"Waiting {delay:.1f}s before retry...")
                await asyncio.sleep(delay)
                delay = min(delay * 2, 5.0)

    raise ConnectionError(f"Failed to connect to Sway after {max_attempts} attempts")


class ChangeUpDaemon:
    """Main daemon class."""

    def __init__(self, config_path: Optional[Path] = None, sock_path: Optional[Path] = None) -> None:
        self.config_path = Path(config_path) if config_path else ConfigPaths.CONFIG_FILE
        self.socket_path = Path(sock_path) if sock_path else socket_path()
        self.state_manager = StateManager()
        self.keybindings = KeybindingManager()
        self.monitor: Optional[EventMonitor] = None
        self.ipc_server: Optional[IPCServer] = None
        self.shutdown_event = asyncio.Event()

    def load_initial_config(self) -> ChangeUpConfig:
        """Load the startup config.

        A missing default config file starts the daemon empty; any other
        load failure is fatal.
        """
        if self.config_path == ConfigPaths.CONFIG_FILE and not self.config_path.exists():
            logger.warning(f"No config at {self.config_path}, starting with an empty ruleset")
            return ChangeUpConfig()
        return load_config(self.config_path)

    async def initialize(self, conn: Optional[Connection] = None) -> None:
        """Initialize daemon components.

        Args:
            conn: Existing Sway connection (a new one is opened if None)

        Raises:
            ConfigLoadError: If the initial config cannot be loaded
            ConnectionError: If Sway cannot be reached
        """
        logger.info("Initializing changeup daemon...")

        config = self.load_initial_config()

        if conn is None:
            conn = await connect_with_retry()
        self.state_manager.conn = conn

        async with self.state_manager.exclusive() as state:
            state.ruleset = config.ruleset

        self.monitor = EventMonitor(self.state_manager, conn)
        await self.monitor.start()

        self.keybindings.replace_actions(config.actions)

        self.ipc_server = IPCServer(self.state_manager, self.keybindings, self.socket_path)
        await self.ipc_server.start()

        logger.info("Daemon initialized")

    async def run(self) -> int:
        """Race the monitor, the IPC server and the shutdown signal.

        Returns:
            Exit code: 0 after a shutdown signal, 1 when a task stops
        """
        monitor_task = asyncio.create_task(self.monitor.run(), name="event-monitor")
        ipc_task = asyncio.create_task(self.ipc_server.serve(), name="ipc-server")
        shutdown_task = asyncio.create_task(self.shutdown_event.wait(), name="shutdown")

        done, pending = await asyncio.wait(
            [monitor_task, ipc_task, shutdown_task], return_when=asyncio.FIRST_COMPLETED
        )

        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)

        exit_code = 0
        for task in done:
            if task is shutdown_task:
                logger.info("Shutdown requested")
                continue

            exit_code = 1
            if task.cancelled():
                logger.error(f"{task.get_name()} was cancelled")
            elif task.exception() is not None:
                error = task.exception()
                logger.error(f"{task.get_name()} terminated: {error}", exc_info=error)
            else:
                logger.error(f"{task.get_name()} exited")

        await self.shutdown()
        return exit_code

    async def shutdown(self) -> None:
        """Stop the IPC server and wait briefly for keybinding tasks."""
        logger.info("Shutting down daemon...")

        if self.ipc_server:
            try:
                await asyncio.wait_for(self.ipc_server.stop(), timeout=5.0)
            except asyncio.TimeoutError:
                logger.warning("IPC server shutdown timed out after 5s (continuing)")

        try:
            await asyncio.wait_for(self.keybindings.wait_idle(), timeout=2.0)
        except asyncio.TimeoutError:
            logger.warning("Keybinding tasks still running at shutdown")

        logger.info("Daemon shutdown complete")

    def setup_signal_handlers(self) -> None:
        """Setup signal handlers for graceful shutdown."""
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, self.shutdown_event.set)


def setup_logging(level: Optional[str] = None) -> None:
    """Setup logging to systemd journal or stderr."""
    log_level = (level or os.environ.get("LOG_LEVEL", "INFO")).upper()

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    if SYSTEMD_AVAILABLE:
        handler = journal.JournalHandler(SYSLOG_IDENTIFIER=SERVICE_NAME)
    else:
        handler = logging.StreamHandler(sys.stderr)

    formatter = logging.Formatter(
        "%(levelname)s [%(name)s] %(message)s"
    )
    handler.setFormatter(formatter)
    root_logger.addHandler(handler)

    logger.info(f"Logging configured: level={log_level}")


async def main_async(args: argparse.Namespace) -> int:
    """Async main function.

    Returns:
        Exit code (0 = success, non-zero = error)
    """
    daemon = ChangeUpDaemon(config_path=args.config, sock_path=args.socket)

    try:
        daemon.setup_signal_handlers()
        await daemon.initialize()
    except ConfigLoadError as e:
        logger.error(f"Fatal: {e.message}")
        return 1
    except Exception as e:
        logger.error(f"Fatal error during startup: {e}", exc_info=True)
        return 1

    return await daemon.run()


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Sway focus history daemon",
        prog="changeup-daemon"
    )
    parser.add_argument("--config", type=Path, help=f"Config file (default: {ConfigPaths.CONFIG_FILE})")
    parser.add_argument("--socket", type=Path, help="IPC socket path")
    parser.add_argument("--log-level", help="Logging level (default: $LOG_LEVEL or INFO)")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser.parse_args(argv)


def main() -> None:
    """Main entry point."""
    args = parse_args()
    setup_logging(args.log_level)

    logger.info(f"changeup daemon {__version__} starting (PID {os.getpid()})")

    try:
        sys.exit(asyncio.run(main_async(args)))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        sys.exit(0)


if __name__ == "__main__":
    main()
