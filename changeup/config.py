"""
Configuration loader for changeup.

Loads config.toml:
- [ruleset.<name>] tables (link list + optional exec)
- the top-level actions list (keybindings)
"""

import logging
import tomllib
from pathlib import Path
from typing import Any, Dict, List, Union

from pydantic import ValidationError

from .errors import ConfigLoadError
from .models import ChangeUpConfig, KeyBinding, RuleSet

logger = logging.getLogger(__name__)


def load_config(path: Union[str, Path]) -> ChangeUpConfig:
    """
    Load and validate a TOML config file.

    Args:
        path: Path to the config file

    Returns:
        Parsed ChangeUpConfig

    Raises:
        ConfigLoadError: If the file is missing, unreadable, not valid TOML,
            or does not match the schema
    """
    path = Path(path).expanduser()

    try:
        with open(path, "rb") as f:
            data = tomllib.load(f)
    except FileNotFoundError:
        raise ConfigLoadError(str(path), "File not found")
    except PermissionError:
        raise ConfigLoadError(str(path), "Permission denied")
    except IsADirectoryError:
        raise ConfigLoadError(str(path), "Is a directory")
    except tomllib.TOMLDecodeError as e:
        raise ConfigLoadError(str(path), f"Invalid TOML: {e}")

    try:
        config = ChangeUpConfig.model_validate(data)
    except ValidationError as e:
        reasons = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        raise ConfigLoadError(str(path), reasons)

    logger.info(
        f"Loaded {path}: {len(config.ruleset)} rules, {len(config.actions)} actions"
    )
    return config


def dump_ruleset(ruleset: RuleSet) -> Dict[str, Dict[str, Any]]:
    """Serialize a ruleset in the same shape as the config file tables."""
    return {
        name: rule.model_dump(by_alias=True, exclude_none=True)
        for name, rule in ruleset.items()
    }


def dump_actions(actions: List[KeyBinding]) -> List[Dict[str, Any]]:
    """Serialize keymap entries in the same shape as the config file."""
    return [action.model_dump() for action in actions]
