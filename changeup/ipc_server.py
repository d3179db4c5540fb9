"""
IPC Server for changeup

JSON-RPC 2.0 server on a Unix socket, one request per line. Every method that
reads or changes the focus state holds the state lock for its whole run,
including the Sway command it sends.
"""

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, Optional

from . import __version__
from .config import dump_actions, dump_ruleset, load_config
from .errors import (
    ChangeUpError,
    ErrorCode,
    WindowNotFoundError,
    error_response,
    validate_params,
)
from .keybindings import KeybindingManager
from .models import ChangeUpConfig, ConId, focus_command
from .resolver import execute_decision, resolve_rule_focus
from .state import StateManager

logger = logging.getLogger(__name__)

PROPERTIES = ("version", "ruleset", "actions", "last_viewed_exists", "last_viewed")


class IPCServer:
    """JSON-RPC IPC server exposing focus history and rule focus."""

    def __init__(
        self,
        state_manager: StateManager,
        keybindings: KeybindingManager,
        socket_path: Path,
        loader: Callable[[str], ChangeUpConfig] = load_config,
    ):
        """
        Initialize IPC server.

        Args:
            state_manager: Shared focus state
            keybindings: Keymap holder and reconciler
            socket_path: Unix socket to listen on
            loader: Config loader used by reload_config
        """
        self.state_manager = state_manager
        self.keybindings = keybindings
        self.socket_path = Path(socket_path)
        self.loader = loader
        self.server: Optional[asyncio.AbstractServer] = None

        self._methods: Dict[str, Callable[[Dict[str, Any]], Awaitable[Any]]] = {
            "ping": self._handle_ping,
            "reload_config": self._handle_reload_config,
            "get_ruleset": self._handle_get_ruleset,
            "get_actions": self._handle_get_actions,
            "focus": self._handle_focus,
            "rule_focus": self._handle_rule_focus,
            "jump_to_last_viewed": self._handle_jump_to_last_viewed,
            "get_property": self._handle_get_property,
        }

    async def start(self):
        """Start listening."""
        self.socket_path.parent.mkdir(parents=True, exist_ok=True)

        # Remove stale socket from a previous run
        if self.socket_path.exists():
            self.socket_path.unlink()

        self.server = await asyncio.start_unix_server(
            self._handle_client,
            path=str(self.socket_path)
        )

        logger.info(f"IPC server listening on {self.socket_path}")

    async def serve(self):
        """Accept clients until the server is closed."""
        if self.server is None:
            await self.start()
        await self.server.serve_forever()

    async def stop(self):
        """Stop IPC server."""
        if self.server:
            self.server.close()
            await self.server.wait_closed()
            self.server = None

        if self.socket_path.exists():
            self.socket_path.unlink()

        logger.info("IPC server stopped")

    async def _handle_client(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter):
        """
        Handle client connection.

        Args:
            reader: Stream reader
            writer: Stream writer
        """
        logger.debug("Client connected")

        try:
            while True:
                data = await reader.readline()
                if not data:
                    break

                response = await self._handle_line(data)

                writer.write((json.dumps(response) + "\n").encode())
                await writer.drain()

        except (ConnectionResetError, BrokenPipeError) as e:
            logger.debug(f"Client went away: {e}")
        except Exception as e:
            logger.error(f"Client handler error: {e}", exc_info=True)
        finally:
            writer.close()
            try:
                await writer.wait_closed()
            except (ConnectionResetError, BrokenPipeError):
                pass
            logger.debug("Client disconnected")

    async def _handle_line(self, data: bytes) -> Dict[str, Any]:
        try:
            request = json.loads(data.decode())
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            return error_response(ChangeUpError(
                code=ErrorCode.PARSE_ERROR,
                message=f"Invalid JSON: {e}"
            ))

        return await self._handle_request(request)

    async def _handle_request(self, request: Any) -> Dict[str, Any]:
        """
        Handle one JSON-RPC request.

        Args:
            request: Decoded JSON-RPC request

        Returns:
            JSON-RPC response dict
        """
        if not isinstance(request, dict):
            return error_response(ChangeUpError(
                code=ErrorCode.INVALID_REQUEST,
                message="Request must be a JSON object"
            ))

        method = request.get("method")
        params = request.get("params") or {}
        request_id = request.get("id")

        logger.debug(f"Received request: {method}")

        try:
            if not method or not isinstance(method, str):
                raise ChangeUpError(
                    code=ErrorCode.INVALID_REQUEST,
                    message="Missing 'method' field in request",
                    suggestion="Provide 'method' field in JSON-RPC request"
                )

            handler = self._methods.get(method)
            if handler is None:
                raise ChangeUpError(
                    code=ErrorCode.METHOD_NOT_FOUND,
                    message=f"Method not found: {method}",
                    context={"available_methods": sorted(self._methods)}
                )

            result = await handler(params)

            return {
                "jsonrpc": "2.0",
                "result": result,
                "id": request_id
            }

        except ChangeUpError as e:
            logger.warning(f"{method} failed: {e.message}")
            return error_response(e, request_id)

        except Exception as e:
            logger.error(f"Unexpected error handling {method}: {e}", exc_info=True)
            return error_response(e, request_id)

    async def _handle_ping(self, params: Dict[str, Any]) -> str:
        """Liveness check; also re-asserts the keybindings."""
        validate_params(params, required=[], optional=[])
        self.keybindings.reload_actions()
        return "pong"

    async def _handle_reload_config(self, params: Dict[str, Any]) -> str:
        """Load a config file and swap in its ruleset and actions."""
        validate_params(params, required=["path"], optional=[])

        # Raises ConfigLoadError before anything is touched
        config = self.loader(params["path"])

        async with self.state_manager.exclusive() as state:
            state.ruleset = config.ruleset
            self.keybindings.replace_actions(config.actions)

        logger.info(f"Reloaded configuration from {params['path']}")
        return "done"

    async def _handle_get_ruleset(self, params: Dict[str, Any]) -> Dict[str, Any]:
        validate_params(params, required=[], optional=[])
        async with self.state_manager.exclusive() as state:
            return dump_ruleset(state.ruleset)

    async def _handle_get_actions(self, params: Dict[str, Any]) -> list:
        validate_params(params, required=[], optional=[])
        return dump_actions(self.keybindings.actions)

    async def _handle_focus(self, params: Dict[str, Any]) -> Dict[str, Any]:
        """Focus a window whose app_id equals the target."""
        validate_params(params, required=["target"], optional=[])
        target = params["target"]

        async with self.state_manager.exclusive() as state:
            windows = state.windows_for(ConId.by_app_id(target))
            if not windows:
                raise WindowNotFoundError(target)

            handle = min(windows)
            await self.state_manager.try_command(focus_command(handle))

        return {"handle": handle}

    async def _handle_rule_focus(self, params: Dict[str, Any]) -> Dict[str, Any]:
        """Resolve a rule and carry out the decision."""
        validate_params(params, required=["target"], optional=[])

        async with self.state_manager.exclusive() as state:
            decision = resolve_rule_focus(state, params["target"])
            logger.info(f"rule_focus {params['target']}: {decision.mode.value}")
            await execute_decision(self.state_manager, state, decision)

        return decision.to_dict()

    async def _handle_jump_to_last_viewed(self, params: Dict[str, Any]) -> Dict[str, Any]:
        """Focus the previously focused window, if any."""
        validate_params(params, required=[], optional=[])

        async with self.state_manager.exclusive() as state:
            last = state.last
            if last is not None:
                await self.state_manager.try_command(focus_command(last))
            else:
                logger.info("No last viewed window yet")

        return {"handle": last}

    async def _handle_get_property(self, params: Dict[str, Any]) -> Any:
        validate_params(params, required=["name"], optional=[])
        name = params["name"]

        if name == "version":
            return __version__
        if name == "actions":
            return dump_actions(self.keybindings.actions)

        if name not in PROPERTIES:
            raise ChangeUpError(
                code=ErrorCode.INVALID_PARAMS,
                message=f"Unknown property: {name}",
                context={"properties": list(PROPERTIES)}
            )

        async with self.state_manager.exclusive() as state:
            if name == "ruleset":
                return dump_ruleset(state.ruleset)
            if name == "last_viewed_exists":
                return state.last is not None
            return state.last if state.last is not None else -1
