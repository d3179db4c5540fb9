"""Tests for window identities and config models."""

import logging

import pytest
from pydantic import ValidationError

from changeup.models import (
    ChangeUpConfig,
    ConId,
    IdentityKind,
    KeyBinding,
    LastKeymap,
    Rule,
    RuleFocusKeymap,
    focus_command,
)

from conftest import make_window


class TestConId:

    def test_app_id_and_class_never_equal(self):
        assert ConId.by_app_id("firefox") != ConId.by_window_class("firefox")
        assert ConId.by_app_id("firefox") == ConId.by_app_id("firefox")

    def test_hashable_as_index_key(self):
        index = {ConId.by_app_id("foot"): {1}}
        assert ConId(IdentityKind.APP_ID, "foot") in index
        assert ConId.by_window_class("foot") not in index

    def test_from_container_prefers_app_id(self):
        con = make_window(1, app_id="foot", window_class="Foot")
        assert ConId.from_container(con) == ConId.by_app_id("foot")

    def test_from_container_falls_back_to_class(self):
        con = make_window(1, window_class="Alacritty")
        assert ConId.from_container(con) == ConId.by_window_class("Alacritty")

    def test_from_container_reads_window_properties(self):
        con = make_window(1)
        con.window_properties = {"class": "Gimp", "instance": "gimp"}
        assert ConId.from_container(con) == ConId.by_window_class("Gimp")

    def test_from_container_without_identity(self):
        assert ConId.from_container(make_window(1)) is None

    def test_from_container_empty_app_id(self):
        assert ConId.from_container(make_window(1, app_id="")) is None

    @pytest.mark.parametrize("link,expected", [
        ("firefox", ConId.by_app_id("firefox")),
        ("class:Alacritty", ConId.by_window_class("Alacritty")),
        ("app_id:org.gnome.Nautilus", ConId.by_app_id("org.gnome.Nautilus")),
        ("class:", ConId.by_app_id("class:")),
        ("steam_app:123", ConId.by_app_id("steam_app:123")),
    ])
    def test_from_link(self, link, expected):
        assert ConId.from_link(link) == expected

    def test_str(self):
        assert str(ConId.by_window_class("Gimp")) == "class:Gimp"


def test_focus_command():
    assert focus_command(42) == "[con_id=42] focus"


class TestRule:

    def test_exec_alias(self):
        rule = Rule.model_validate({"link": ["foot"], "exec": "foot --server"})
        assert rule.exec_cmd == "foot --server"
        assert rule.exec_command() == "exec foot --server"

    def test_without_exec(self):
        rule = Rule.model_validate({"link": ["foot"]})
        assert rule.exec_command() is None

    def test_identities_keep_order(self):
        rule = Rule(link=["foot", "class:XTerm"])
        assert rule.identities() == [
            ConId.by_app_id("foot"),
            ConId.by_window_class("XTerm"),
        ]

    def test_rejects_blank_link(self):
        with pytest.raises(ValidationError):
            Rule(link=["foot", "  "])

    def test_rejects_blank_exec(self):
        with pytest.raises(ValidationError):
            Rule.model_validate({"link": [], "exec": " "})

    def test_rejects_unknown_fields(self):
        with pytest.raises(ValidationError):
            Rule.model_validate({"link": [], "command": "foot"})


class TestKeymaps:

    def test_last_commands(self):
        action = LastKeymap(key="Mod4+Tab")
        assert action.bind_command() == "bindsym Mod4+Tab exec changeup-client last"
        assert action.unbind_command() == "unbindsym Mod4+Tab"

    def test_rule_focus_commands(self):
        action = RuleFocusKeymap(key="Mod4+t", target="terminal")
        assert action.bind_command() == "bindsym Mod4+t exec changeup-client rule-focus terminal"
        assert action.unbind_command() == "unbindsym Mod4+t"

    def test_rule_focus_quotes_target(self):
        action = RuleFocusKeymap(key="Mod4+t", target="it's")
        assert action.bind_command().endswith("rule-focus 'it'\"'\"'s'")

    @pytest.mark.parametrize("key", ["", "   "])
    def test_rejects_blank_keys(self, key):
        with pytest.raises(ValidationError):
            LastKeymap(key=key)

    @pytest.mark.parametrize("key", ["--no-repeat Mod4+Tab", "--release Mod4+x"])
    def test_accepts_bindsym_flags(self, key):
        assert LastKeymap(key=key).key == key

    def test_flagged_key_commands(self):
        action = RuleFocusKeymap(key=" --release Mod4+x ", target="terminal")
        assert action.bind_command() == "bindsym --release Mod4+x exec changeup-client rule-focus terminal"
        assert action.unbind_command() == "unbindsym --release Mod4+x"

    def test_rule_name_with_space_is_quoted(self):
        action = RuleFocusKeymap(key="Mod4+m", target="mail client")
        assert action.bind_command().endswith("rule-focus 'mail client'")

    def test_base_binding_is_abstract(self):
        with pytest.raises(TypeError):
            KeyBinding(key="Mod4+Tab")


class TestChangeUpConfig:

    def test_empty(self):
        config = ChangeUpConfig()
        assert config.ruleset == {}
        assert config.actions == []

    def test_discriminates_action_types(self):
        config = ChangeUpConfig.model_validate({
            "ruleset": {"terminal": {"link": ["foot"]}},
            "actions": [
                {"type": "Last", "key": "Mod4+Tab"},
                {"type": "RuleFocus", "key": "Mod4+t", "target": "terminal"},
            ],
        })
        assert isinstance(config.actions[0], LastKeymap)
        assert isinstance(config.actions[1], RuleFocusKeymap)

    def test_rejects_unknown_action_type(self):
        with pytest.raises(ValidationError):
            ChangeUpConfig.model_validate({"actions": [{"type": "Spawn", "key": "Mod4+s"}]})

    def test_dangling_target_only_warns(self, caplog):
        with caplog.at_level(logging.WARNING, logger="changeup.models"):
            config = ChangeUpConfig.model_validate({
                "actions": [{"type": "RuleFocus", "key": "Mod4+b", "target": "browser"}],
            })

        assert config.actions[0].target == "browser"
        assert "browser" in caplog.text
