#!/usr/bin/env python3
"""
changeup client

Thin command-line wrapper over the daemon's JSON-RPC methods; this is what the
Sway keybindings execute.
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Any, Dict, Optional

from .constants import socket_path


class ChangeUpClient:
    """JSON-RPC client for the changeup daemon."""

    def __init__(self, sock_path: Optional[Path] = None):
        self.socket_path = Path(sock_path) if sock_path else socket_path()

    async def send_request(self, method: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """
        Send JSON-RPC request to daemon.

        Args:
            method: RPC method name
            params: Method parameters

        Returns:
            The response's result

        Raises:
            ConnectionError: If the daemon socket does not exist
            RuntimeError: If the request fails or the daemon returns an error
        """
        if not self.socket_path.exists():
            raise ConnectionError(f"Daemon not running (socket not found: {self.socket_path})")

        request = {
            "jsonrpc": "2.0",
            "method": method,
            "params": params or {},
            "id": 1
        }

        try:
            reader, writer = await asyncio.open_unix_connection(str(self.socket_path))

            writer.write((json.dumps(request) + "\n").encode())
            await writer.drain()

            data = await reader.readline()

            writer.close()
            await writer.wait_closed()
        except OSError as e:
            raise RuntimeError(f"Failed to communicate with daemon: {e}") from e

        if not data:
            raise RuntimeError("Daemon closed the connection without replying")

        response = json.loads(data.decode())
        if "error" in response:
            raise RuntimeError(response["error"]["message"])

        return response.get("result")

    async def cmd_init(self, args) -> int:
        print(await self.send_request("ping"))
        return 0

    async def cmd_last(self, args) -> int:
        await self.send_request("jump_to_last_viewed")
        return 0

    async def cmd_config(self, args) -> int:
        path = str(Path(args.path).expanduser().resolve())
        print(await self.send_request("reload_config", {"path": path}))
        return 0

    async def cmd_focus(self, args) -> int:
        await self.send_request("focus", {"target": args.target})
        return 0

    async def cmd_rule_focus(self, args) -> int:
        await self.send_request("rule_focus", {"target": args.target})
        return 0

    async def cmd_show(self, args) -> int:
        name = args.what.replace("-", "_")
        result = await self.send_request("get_property", {"name": name})

        if args.json or isinstance(result, (dict, list)):
            print(json.dumps(result, indent=2))
        else:
            print(result)
        return 0

    def build_parser(self) -> argparse.ArgumentParser:
        parser = argparse.ArgumentParser(
            description="Control the changeup focus daemon",
            prog="changeup-client"
        )
        parser.add_argument("--socket", type=Path, help="IPC socket path")

        subparsers = parser.add_subparsers(dest="command", help="Command to execute")

        subparsers.add_parser("init", help="Ping the daemon and re-apply keybindings")
        subparsers.add_parser("last", help="Jump back to the previously focused window")

        config_parser = subparsers.add_parser("config", help="Load a config file")
        config_parser.add_argument("path", help="Path to config.toml")

        focus_parser = subparsers.add_parser("focus", help="Focus a window by app_id")
        focus_parser.add_argument("target", help="Application id")

        rule_parser = subparsers.add_parser("rule-focus", help="Run a focus-or-launch rule")
        rule_parser.add_argument("target", help="Rule name")

        show_parser = subparsers.add_parser("show", help="Show daemon state")
        show_parser.add_argument(
            "what",
            choices=["ruleset", "actions", "last-viewed", "last-viewed-exists", "version"]
        )
        show_parser.add_argument("--json", action="store_true", help="Output as JSON")

        return parser

    def run(self, argv=None) -> int:
        """Run CLI."""
        parser = self.build_parser()
        args = parser.parse_args(argv)

        if not args.command:
            parser.print_help(sys.stderr)
            return 1

        if args.socket:
            self.socket_path = args.socket

        cmd_map = {
            "init": self.cmd_init,
            "last": self.cmd_last,
            "config": self.cmd_config,
            "focus": self.cmd_focus,
            "rule-focus": self.cmd_rule_focus,
            "show": self.cmd_show,
        }

        try:
            return asyncio.run(cmd_map[args.command](args))
        except KeyboardInterrupt:
            print("Interrupted", file=sys.stderr)
            return 130
        except Exception as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1


def main():
    """Main entry point."""
    cli = ChangeUpClient()
    sys.exit(cli.run())


if __name__ == "__main__":
    main()
