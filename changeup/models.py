"""
Data models for changeup.

Window identities used as grouping keys, and the pydantic schema of the
config file (rules and keybinding actions).
"""

import logging
import shlex
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Annotated, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .constants import CLIENT_BIN

logger = logging.getLogger(__name__)


class IdentityKind(str, Enum):
    """Which window property an identity was taken from."""
    APP_ID = "app_id"
    WINDOW_CLASS = "class"


@dataclass(frozen=True)
class ConId:
    """
    Identity of a window for grouping purposes.

    Equal only when both the kind and the value match, so a Wayland app_id
    never equals an X11 class with the same text.
    """

    kind: IdentityKind
    value: str

    @classmethod
    def by_app_id(cls, value: str) -> "ConId":
        return cls(IdentityKind.APP_ID, value)

    @classmethod
    def by_window_class(cls, value: str) -> "ConId":
        return cls(IdentityKind.WINDOW_CLASS, value)

    @classmethod
    def from_container(cls, container) -> Optional["ConId"]:
        """
        Derive the identity of an i3ipc container.

        Prefers the Wayland app_id, then the X11 window class. Returns None
        for containers that carry neither.
        """
        app_id = getattr(container, "app_id", None)
        if app_id:
            return cls.by_app_id(app_id)

        window_class = getattr(container, "window_class", None)
        if window_class:
            return cls.by_window_class(window_class)

        # Older i3ipc releases only expose the raw dict
        properties = getattr(container, "window_properties", None)
        if isinstance(properties, dict) and properties.get("class"):
            return cls.by_window_class(properties["class"])

        return None

    @classmethod
    def from_link(cls, link: str) -> "ConId":
        """
        Parse a rule link.

        Plain strings are application ids; "class:" and "app_id:" prefixes
        pick the variant explicitly.
        """
        prefix, sep, rest = link.partition(":")
        if sep and rest:
            if prefix == IdentityKind.WINDOW_CLASS.value:
                return cls.by_window_class(rest)
            if prefix == IdentityKind.APP_ID.value:
                return cls.by_app_id(rest)
        return cls.by_app_id(link)

    def __str__(self) -> str:
        return f"{self.kind.value}:{self.value}"


def focus_command(handle: int) -> str:
    """Sway command focusing a container by its con_id."""
    return f"[con_id={handle}] focus"


def exec_command(command: str) -> str:
    """Sway command launching a shell command."""
    return f"exec {command}"


def _check_not_blank(value: str, field: str) -> str:
    value = value.strip()
    if not value:
        raise ValueError(f"{field} cannot be empty")
    return value


class Rule(BaseModel):
    """
    Focus-or-launch rule.

    Links are checked in order; the first with a live window wins. When none
    has one, the optional exec command is launched.
    """

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    link: List[str] = Field(default_factory=list, description="Identities to look for, in order")
    exec_cmd: Optional[str] = Field(None, alias="exec", description="Fallback shell command")

    @field_validator("link")
    @classmethod
    def validate_links(cls, v: List[str]) -> List[str]:
        for link in v:
            if not link.strip():
                raise ValueError("Rule links cannot be empty")
        return v

    @field_validator("exec_cmd")
    @classmethod
    def validate_exec(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.strip():
            raise ValueError("exec cannot be empty")
        return v.strip() if v else v

    def identities(self) -> List[ConId]:
        return [ConId.from_link(link) for link in self.link]

    def exec_command(self) -> Optional[str]:
        if self.exec_cmd is None:
            return None
        return exec_command(self.exec_cmd)


class KeyBinding(BaseModel, ABC):
    """
    Common part of every action: the key it is bound to.

    The key is passed to bindsym as is, so flags such as --release or
    --no-repeat may precede the key combo.
    """

    model_config = ConfigDict(extra="forbid")

    key: str

    @field_validator("key")
    @classmethod
    def validate_key(cls, v: str) -> str:
        return _check_not_blank(v, "key")

    @abstractmethod
    def client_args(self) -> str:
        """Arguments for changeup-client when the key is pressed."""

    def bind_command(self) -> str:
        return f"bindsym {self.key} exec {CLIENT_BIN} {self.client_args()}"

    def unbind_command(self) -> str:
        return f"unbindsym {self.key}"


class LastKeymap(KeyBinding):
    """Binding that jumps back to the previously focused window."""

    type: Literal["Last"] = "Last"

    def client_args(self) -> str:
        return "last"


class RuleFocusKeymap(KeyBinding):
    """Binding that runs a named rule."""

    type: Literal["RuleFocus"] = "RuleFocus"
    target: str

    @field_validator("target")
    @classmethod
    def validate_target(cls, v: str) -> str:
        return _check_not_blank(v, "target")

    def client_args(self) -> str:
        return f"rule-focus {shlex.quote(self.target)}"


Keymap = Annotated[Union[LastKeymap, RuleFocusKeymap], Field(discriminator="type")]

RuleSet = Dict[str, Rule]


class ChangeUpConfig(BaseModel):
    """Top-level config file: [ruleset.<name>] tables and the actions list."""

    model_config = ConfigDict(extra="forbid")

    ruleset: RuleSet = Field(default_factory=dict)
    actions: List[Keymap] = Field(default_factory=list)

    @model_validator(mode="after")
    def check_targets(self):
        """Warn about RuleFocus actions whose rule is not defined.

        Such keys stay bound; pressing one reports the missing rule.
        """
        missing = [
            action.target for action in self.actions
            if isinstance(action, RuleFocusKeymap) and action.target not in self.ruleset
        ]
        if missing:
            logger.warning(f"RuleFocus targets without a rule: {', '.join(missing)}")
        return self
