"""
Error types for the changeup daemon and its JSON-RPC surface.

Every error the daemon reports to a client carries an ErrorCode; anything else
raised inside a handler is reported as INTERNAL_ERROR.
"""

from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(Enum):
    """
    Error codes for changeup.

    JSON-RPC standard codes:
    - -32700: Parse error
    - -32600: Invalid request
    - -32601: Method not found
    - -32602: Invalid params
    - -32603: Internal error

    Custom codes:
    - 1100-1199: Configuration errors
    - 1200-1299: Lookup errors
    - 1400-1499: Sway IPC errors
    """

    # JSON-RPC standard errors
    PARSE_ERROR = -32700
    INVALID_REQUEST = -32600
    METHOD_NOT_FOUND = -32601
    INVALID_PARAMS = -32602
    INTERNAL_ERROR = -32603

    # Configuration errors (1100-1199)
    CONFIG_LOAD_FAILED = 1100

    # Lookup errors (1200-1299)
    RULE_NOT_FOUND = 1200
    WINDOW_NOT_FOUND = 1201

    # Sway IPC errors (1400-1499)
    SWAY_IPC_FAILED = 1400
    MALFORMED_EVENT = 1401
    EVENT_STREAM_CLOSED = 1402


class ChangeUpError(Exception):
    """Base exception for changeup errors."""

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        suggestion: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        """
        Initialize error.

        Args:
            code: Error code from ErrorCode enum
            message: Human-readable error message
            suggestion: Suggested recovery action
            context: Additional context for debugging
        """
        self.code = code
        self.message = message
        self.suggestion = suggestion
        self.context = context or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to a JSON-RPC error object."""
        result = {
            "code": self.code.value,
            "message": self.message
        }

        if self.suggestion:
            result["suggestion"] = self.suggestion

        if self.context:
            result["context"] = self.context

        return result


class ConfigLoadError(ChangeUpError):
    """Configuration file could not be read, parsed or validated."""

    def __init__(self, file_path: str, reason: str):
        super().__init__(
            code=ErrorCode.CONFIG_LOAD_FAILED,
            message=f"Failed to load configuration from {file_path}: {reason}",
            suggestion="Check file syntax and permissions",
            context={"file_path": file_path, "reason": reason}
        )


class NoSuchRuleError(ChangeUpError):
    """Rule name is not present in the active ruleset."""

    def __init__(self, rule_name: str):
        super().__init__(
            code=ErrorCode.RULE_NOT_FOUND,
            message=f"No such rule: {rule_name}",
            suggestion="Add a [ruleset.<name>] table to the config and reload",
            context={"rule": rule_name}
        )


class WindowNotFoundError(ChangeUpError):
    """No live window is indexed under the requested identity."""

    def __init__(self, target: str):
        super().__init__(
            code=ErrorCode.WINDOW_NOT_FOUND,
            message=f"No window found for {target}",
            context={"target": target}
        )


class CommandError(ChangeUpError):
    """A Sway command was rejected or could not be delivered."""

    def __init__(self, command: str, reason: str):
        super().__init__(
            code=ErrorCode.SWAY_IPC_FAILED,
            message=f"Sway command '{command}' failed: {reason}",
            suggestion="Ensure Sway is running and IPC socket is accessible",
            context={"command": command, "reason": reason}
        )


class MalformedEventError(ChangeUpError):
    """A window event did not have the expected shape."""

    def __init__(self, reason: str):
        super().__init__(
            code=ErrorCode.MALFORMED_EVENT,
            message=f"Malformed window event: {reason}"
        )


class EventStreamClosed(ChangeUpError):
    """The Sway event subscription ended."""

    def __init__(self, reason: str = "connection main loop exited"):
        super().__init__(
            code=ErrorCode.EVENT_STREAM_CLOSED,
            message=f"Sway event stream closed: {reason}"
        )


def error_response(error: Exception, request_id: Optional[Any] = None) -> Dict[str, Any]:
    """
    Create JSON-RPC error response from exception.

    Args:
        error: Exception to convert
        request_id: JSON-RPC request ID

    Returns:
        JSON-RPC error response dictionary
    """
    if isinstance(error, ChangeUpError):
        error_dict = error.to_dict()
    else:
        error_dict = {
            "code": ErrorCode.INTERNAL_ERROR.value,
            "message": str(error),
            "suggestion": "Check daemon logs for details"
        }

    return {
        "jsonrpc": "2.0",
        "error": error_dict,
        "id": request_id
    }


def validate_params(params: Dict[str, Any], required: list, optional: Optional[list] = None) -> None:
    """
    Validate request parameters.

    Args:
        params: Request parameters dictionary
        required: List of required parameter names
        optional: List of optional parameter names

    Raises:
        ChangeUpError: If required parameters are missing or unknown parameters provided
    """
    if not isinstance(params, dict):
        raise ChangeUpError(
            code=ErrorCode.INVALID_PARAMS,
            message="'params' must be an object",
            suggestion="Send named parameters, e.g. {\"target\": \"firefox\"}"
        )

    missing = [key for key in required if key not in params]
    if missing:
        raise ChangeUpError(
            code=ErrorCode.INVALID_PARAMS,
            message=f"Missing required parameters: {', '.join(missing)}",
            suggestion=f"Provide required parameters: {', '.join(missing)}",
            context={"missing": missing, "required": required}
        )

    if optional is not None:
        allowed = set(required + optional)
        unknown = [key for key in params.keys() if key not in allowed]
        if unknown:
            raise ChangeUpError(
                code=ErrorCode.INVALID_PARAMS,
                message=f"Unknown parameters: {', '.join(unknown)}",
                suggestion="Remove unknown parameters",
                context={"unknown": unknown, "allowed": sorted(allowed)}
            )

    for key in required:
        if not isinstance(params[key], str) or not params[key]:
            raise ChangeUpError(
                code=ErrorCode.INVALID_PARAMS,
                message=f"Parameter '{key}' must be a non-empty string",
                context={"param": key}
            )
