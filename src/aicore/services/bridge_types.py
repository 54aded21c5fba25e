"""Wire types shared by the host router and the page-embedded executor."""

from __future__ import annotations

import enum
import uuid
from dataclasses import dataclass, field
from typing import Any, Mapping

__all__ = [
    "Command",
    "Response",
    "SessionState",
    "BridgeError",
    "ContextUnavailableError",
    "ProtocolError",
    "COMMAND_ENVELOPE",
    "RESPONSE_ENVELOPE",
    "ERROR_CONTEXT_UNAVAILABLE",
    "ERROR_TIMEOUT",
    "ERROR_SESSION_CLOSED",
    "ERROR_DUPLICATE_ID",
    "ERROR_MALFORMED_RESPONSE",
    "generate_command_id",
]

COMMAND_ENVELOPE = "bridge:command"
RESPONSE_ENVELOPE = "bridge:response"

# Machine-readable failure strings carried in ``Response.error``.
ERROR_CONTEXT_UNAVAILABLE = "context unavailable"
ERROR_TIMEOUT = "timeout"
ERROR_SESSION_CLOSED = "session closed"
ERROR_DUPLICATE_ID = "duplicate command id"
ERROR_MALFORMED_RESPONSE = "malformed response"
_UNKNOWN_ERROR = "unknown error"


def generate_command_id() -> str:
    """Return a fresh correlation id for a command."""

    return f"cmd_{uuid.uuid4().hex}"


class SessionState(str, enum.Enum):
    """Lifecycle of one automation session."""

    UNINITIALIZED = "uninitialized"
    LAUNCHING = "launching"
    READY = "ready"
    CLOSING = "closing"
    CLOSED = "closed"


class BridgeError(RuntimeError):
    """Base class for bridge-level failures."""


class ContextUnavailableError(BridgeError):
    """Raised by a transport when the target page context cannot be reached."""

    def __init__(self, context_id: str | None, reason: str = "") -> None:
        self.context_id = context_id
        self.reason = reason
        detail = f" ({reason})" if reason else ""
        super().__init__(f"Page context {context_id!r} is unavailable{detail}")


class ProtocolError(BridgeError):
    """Raised when a payload does not match the command/response schema."""


@dataclass(slots=True, frozen=True)
class Command:
    """A single browser action addressed to a page context.

    Attributes:
        id: Correlation key, unique among outstanding commands.
        action: Action name understood by the page executor.
        fields: Action-specific arguments.
    """

    id: str
    action: str
    fields: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def create(cls, action: str, **fields: Any) -> "Command":
        """Build a command with a generated id, dropping ``None`` fields."""

        payload = {key: value for key, value in fields.items() if value is not None}
        return cls(id=generate_command_id(), action=action, fields=payload)

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "Command":
        if not isinstance(payload, Mapping):
            raise ProtocolError("Command must be an object")
        command_id = payload.get("id")
        action = payload.get("action")
        if not isinstance(command_id, str) or not command_id:
            raise ProtocolError("Command requires a non-empty string 'id'")
        if not isinstance(action, str) or not action:
            raise ProtocolError("Command requires a non-empty string 'action'")
        extras = {key: value for key, value in payload.items() if key not in ("id", "action")}
        return cls(id=command_id, action=action, fields=extras)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = dict(self.fields)
        payload["id"] = self.id
        payload["action"] = self.action
        return payload

    def get(self, key: str, default: Any = None) -> Any:
        return self.fields.get(key, default)


@dataclass(slots=True, frozen=True)
class Response:
    """Outcome of one command; ``id`` always echoes the command id."""

    id: str
    success: bool
    data: Any = None
    error: str | None = None

    def __post_init__(self) -> None:
        if not self.success and not (isinstance(self.error, str) and self.error.strip()):
            object.__setattr__(self, "error", _UNKNOWN_ERROR)

    @classmethod
    def ok(cls, command_id: str, data: Any = None) -> "Response":
        return cls(id=command_id, success=True, data=data)

    @classmethod
    def failure(cls, command_id: str, error: str) -> "Response":
        return cls(id=command_id, success=False, error=error)

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "Response":
        if not isinstance(payload, Mapping):
            raise ProtocolError("Response must be an object")
        response_id = payload.get("id")
        if not isinstance(response_id, str) or not response_id:
            raise ProtocolError("Response requires a non-empty string 'id'")
        success = payload.get("success")
        if not isinstance(success, bool):
            raise ProtocolError("Response requires a boolean 'success'")
        error = payload.get("error")
        return cls(
            id=response_id,
            success=success,
            data=payload.get("data"),
            error=str(error) if error is not None else None,
        )

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"id": self.id, "success": self.success}
        if self.data is not None:
            payload["data"] = self.data
        if self.error is not None:
            payload["error"] = self.error
        return payload
