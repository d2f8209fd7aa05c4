"""Typed error taxonomy for the switch console core.

Components raise these; only the MCP boundary (server.py) turns them into
responses. Every error carries a ``context`` dict so callers can attach
recovery hints (e.g. the id of a backup taken before a failed apply).
"""
from typing import Any, Optional


class SwitchConsoleError(Exception):
    """Base class for all console errors."""

    kind = "error"

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.message = message
        self.context: dict[str, Any] = dict(context)

    def with_context(self, **context: Any) -> "SwitchConsoleError":
        """Attach extra context and return self (for re-raising)."""
        self.context.update(context)
        return self

    def to_dict(self) -> dict[str, Any]:
        data = {"error": self.message, "kind": self.kind}
        data.update(self.context)
        return data


class ValidationError(SwitchConsoleError):
    """Malformed input, always detected before any device call."""

    kind = "validation"

    def __init__(self, message: str, errors: Optional[list[str]] = None, **context: Any):
        super().__init__(message, **context)
        self.errors = list(errors) if errors else [message]

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["errors"] = self.errors
        return data


class ConflictError(ValidationError):
    """Resource already exists (duplicate VLAN, port-channel)."""

    kind = "conflict"


class PermissionDeniedError(ValidationError):
    """Current user lacks the permission for an operation."""

    kind = "permission_denied"


class NotFoundError(SwitchConsoleError):
    """Referenced switch, backup, VLAN or port-channel does not exist."""

    kind = "not_found"

    def __init__(self, message: str, resource: str = "", identifier: Any = None, **context: Any):
        super().__init__(message, **context)
        self.resource = resource
        self.identifier = identifier


class DeviceError(SwitchConsoleError):
    """Base for failures talking to a switch."""

    kind = "device"


class DeviceCommunicationError(DeviceError):
    """Network, timeout, TLS or HTTP-level failure reaching the switch."""

    kind = "device_communication"

    def __init__(self, message: str, status_code: Optional[int] = None, **context: Any):
        super().__init__(message, **context)
        self.status_code = status_code


class DeviceCommandError(DeviceError):
    """Switch answered but rejected a command (syntax, privilege)."""

    kind = "device_command"

    def __init__(
        self,
        message: str,
        code: Optional[int] = None,
        failed_index: Optional[int] = None,
        failed_command: Optional[str] = None,
        device_messages: Optional[list[str]] = None,
        **context: Any,
    ):
        super().__init__(message, **context)
        self.code = code
        self.failed_index = failed_index
        self.failed_command = failed_command
        self.device_messages = list(device_messages or [])

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        if self.failed_command is not None:
            data["failed_command"] = self.failed_command
        if self.device_messages:
            data["device_messages"] = self.device_messages
        return data


class PersistenceError(SwitchConsoleError):
    """Local datastore failure."""

    kind = "persistence"
