"""Rule-based focus resolution.

Given a snapshot of the FocusState and a rule name, decide whether to jump
back, focus an existing window, launch the rule's command, or do nothing.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .errors import NoSuchRuleError
from .models import focus_command
from .state import FocusState, StateManager

logger = logging.getLogger(__name__)


class FocusMode(str, Enum):
    JUMP_BACK = "JumpBack"
    FOCUS_HANDLE = "FocusHandle"
    EXEC = "Exec"
    NOOP = "NoOp"


@dataclass(frozen=True)
class FocusDecision:
    mode: FocusMode
    handle: Optional[int] = None
    command: Optional[str] = None

    def to_dict(self) -> dict:
        result = {"decision": self.mode.value}
        if self.handle is not None:
            result["handle"] = self.handle
        if self.command is not None:
            result["command"] = self.command
        return result


def resolve_rule_focus(state: FocusState, rule_name: str) -> FocusDecision:
    """
    Decide what a rule-focus request should do.

    The first link with a live window decides: if the focused window belongs
    to it the result is JUMP_BACK, otherwise FOCUS_HANDLE on the lowest handle
    of that identity. With no live link the rule's exec command is used, or
    NOOP when it has none.

    Raises:
        NoSuchRuleError: If the rule is not in the active ruleset
    """
    rule = state.ruleset.get(rule_name)
    if rule is None:
        raise NoSuchRuleError(rule_name)

    for con_id in rule.identities():
        windows = state.index.get(con_id)
        if not windows:
            continue

        if state.now_on is not None and state.now_on in windows:
            return FocusDecision(FocusMode.JUMP_BACK)

        return FocusDecision(FocusMode.FOCUS_HANDLE, handle=min(windows))

    command = rule.exec_command()
    if command is None:
        return FocusDecision(FocusMode.NOOP)
    return FocusDecision(FocusMode.EXEC, command=command)


async def execute_decision(state_manager: StateManager, state: FocusState, decision: FocusDecision) -> None:
    """Issue the Sway command for a decision. Failures are logged only."""
    if decision.mode == FocusMode.JUMP_BACK:
        if state.last is None:
            logger.info("Jump back requested but there is no previous window")
            return
        await state_manager.try_command(focus_command(state.last))

    elif decision.mode == FocusMode.FOCUS_HANDLE:
        await state_manager.try_command(focus_command(decision.handle))

    elif decision.mode == FocusMode.EXEC:
        await state_manager.try_command(decision.command)

    else:
        logger.info("Rule matched no window and has no exec command")
