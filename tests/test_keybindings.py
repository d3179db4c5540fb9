"""Tests for keybinding reconciliation."""

from unittest.mock import AsyncMock

import pytest
from i3ipc.aio import Connection

from changeup.config import dump_actions
from changeup.keybindings import KeybindingManager
from changeup.models import LastKeymap, RuleFocusKeymap

from conftest import failed_reply, ok_reply

OLD = [
    LastKeymap(key="Mod4+Tab"),
    RuleFocusKeymap(key="Mod4+t", target="terminal"),
]
NEW = [
    LastKeymap(key="Mod1+Tab"),
    RuleFocusKeymap(key="Mod4+b", target="browser"),
]


def sent(conn):
    return [c.args[0] for c in conn.command.await_args_list]


@pytest.mark.asyncio
async def test_initial_bind(keybindings, keybinding_sway):
    assert keybindings.replace_actions(OLD) == []
    await keybindings.wait_idle()

    assert sent(keybinding_sway) == [
        "bindsym Mod4+Tab exec changeup-client last",
        "bindsym Mod4+t exec changeup-client rule-focus terminal",
    ]
    assert keybindings.actions == OLD


@pytest.mark.asyncio
async def test_replace_unbinds_old_before_binding_new(keybindings, keybinding_sway):
    keybindings.replace_actions(OLD)
    await keybindings.wait_idle()
    keybinding_sway.command.reset_mock()

    assert keybindings.replace_actions(NEW) == OLD
    await keybindings.wait_idle()

    assert sent(keybinding_sway) == [
        "unbindsym Mod4+Tab",
        "unbindsym Mod4+t",
        "bindsym Mod1+Tab exec changeup-client last",
        "bindsym Mod4+b exec changeup-client rule-focus browser",
    ]


@pytest.mark.asyncio
async def test_back_to_back_replacements_run_in_order(keybindings, keybinding_sway):
    keybindings.replace_actions(OLD)
    keybindings.replace_actions(NEW)
    await keybindings.wait_idle()

    commands = sent(keybinding_sway)
    assert commands.index("bindsym Mod4+t exec changeup-client rule-focus terminal") < \
        commands.index("unbindsym Mod4+t")
    assert keybindings.actions == NEW


@pytest.mark.asyncio
async def test_reload_rebinds_current_actions(keybindings, keybinding_sway):
    keybindings.replace_actions(OLD)
    await keybindings.wait_idle()
    keybinding_sway.command.reset_mock()

    keybindings.reload_actions()
    await keybindings.wait_idle()

    assert sent(keybinding_sway) == [a.bind_command() for a in OLD]


@pytest.mark.asyncio
async def test_rejected_command_does_not_stop_the_rest(keybindings, keybinding_sway):
    keybinding_sway.command.side_effect = [[failed_reply()], [ok_reply()]]

    keybindings.replace_actions(OLD)
    await keybindings.wait_idle()

    assert len(sent(keybinding_sway)) == 2
    # Rejected, not undelivered: the connection is kept
    assert keybindings.sway is keybinding_sway


@pytest.mark.asyncio
async def test_delivery_failure_reconnects():
    broken = AsyncMock(spec=Connection)
    broken.command.side_effect = BrokenPipeError()
    fresh = AsyncMock(spec=Connection)
    fresh.command.return_value = [ok_reply()]
    connect = AsyncMock(side_effect=[broken, fresh])

    manager = KeybindingManager(connect=connect)
    manager.replace_actions(OLD)
    await manager.wait_idle()

    assert connect.await_count == 2
    assert sent(broken) == ["bindsym Mod4+Tab exec changeup-client last"]
    assert sent(fresh) == ["bindsym Mod4+t exec changeup-client rule-focus terminal"]
    assert manager.sway is fresh


@pytest.mark.asyncio
async def test_connect_failure_is_logged_per_command():
    connect = AsyncMock(side_effect=FileNotFoundError("no SWAYSOCK"))

    manager = KeybindingManager(connect=connect)
    manager.replace_actions(OLD)
    await manager.wait_idle()

    assert connect.await_count == 2
    assert manager.sway is None
    assert manager.actions == OLD


@pytest.mark.asyncio
async def test_actions_property_is_a_copy(keybindings):
    keybindings.replace_actions(OLD)
    keybindings.actions.clear()
    await keybindings.wait_idle()

    assert keybindings.actions == OLD


@pytest.mark.asyncio
async def test_replaced_actions_serialize_back_unchanged():
    connect = AsyncMock(side_effect=ConnectionRefusedError())
    manager = KeybindingManager(connect=connect)

    manager.replace_actions(NEW)

    # Independent of the reconciliation outcome
    assert dump_actions(manager.actions) == dump_actions(NEW)
    await manager.wait_idle()
    assert dump_actions(manager.actions) == [
        {"type": "Last", "key": "Mod1+Tab"},
        {"type": "RuleFocus", "key": "Mod4+b", "target": "browser"},
    ]
