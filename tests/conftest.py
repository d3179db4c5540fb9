"""Shared fixtures for changeup tests."""

import shutil
import tempfile
from pathlib import Path
from unittest.mock import AsyncMock, Mock

import pytest
from i3ipc.aio import Connection

from changeup.keybindings import KeybindingManager
from changeup.state import StateManager


def make_window(con_id, app_id=None, window_class=None, con_type="con"):
    """Leaf window container as i3ipc.aio returns it."""
    return Mock(
        id=con_id,
        app_id=app_id,
        window_class=window_class,
        window_properties=None,
        type=con_type,
        nodes=[],
        floating_nodes=[],
    )


def make_node(con_type, nodes=None, floating_nodes=None, con_id=0):
    """Non-window tree node (root, output, workspace, split)."""
    return Mock(
        id=con_id,
        app_id=None,
        window_class=None,
        window_properties=None,
        type=con_type,
        nodes=nodes or [],
        floating_nodes=floating_nodes or [],
    )


def make_event(change, container):
    return Mock(change=change, container=container)


def ok_reply():
    return Mock(success=True, error=None)


def failed_reply(error="Unknown/invalid command"):
    return Mock(success=False, error=error)


@pytest.fixture
def mock_sway():
    """Mock Sway connection; commands succeed and the tree is empty."""
    conn = AsyncMock(spec=Connection)
    conn.on = Mock()
    conn.get_tree.return_value = make_node("root")
    conn.command.return_value = [ok_reply()]
    return conn


@pytest.fixture
def state_manager(mock_sway):
    return StateManager(conn=mock_sway)


@pytest.fixture
def keybinding_sway():
    """Separate mock connection used by the keybinding manager."""
    conn = AsyncMock(spec=Connection)
    conn.command.return_value = [ok_reply()]
    return conn


@pytest.fixture
def keybindings(keybinding_sway):
    return KeybindingManager(connect=AsyncMock(return_value=keybinding_sway))


@pytest.fixture
def short_tmp():
    """Temporary directory with a path short enough for a Unix socket."""
    path = Path(tempfile.mkdtemp(prefix="cu"))
    yield path
    shutil.rmtree(path, ignore_errors=True)


@pytest.fixture
def write_config(tmp_path):
    """Write TOML text to a config file and return its path."""
    def _write(text, name="config.toml"):
        path = tmp_path / name
        path.write_text(text)
        return path
    return _write


SAMPLE_CONFIG = """
actions = [
    { type = "Last", key = "Mod4+Tab" },
    { type = "RuleFocus", key = "Mod4+t", target = "terminal" },
    { type = "RuleFocus", key = "Mod4+b", target = "browser" },
]

[ruleset.terminal]
link = ["foot", "class:Alacritty"]
exec = "foot"

[ruleset.browser]
link = ["firefox"]
"""
