"""Service layer helpers (bridge, settings, etc.)."""

from .bridge_types import (
    BridgeError,
    Command,
    ContextUnavailableError,
    ProtocolError,
    Response,
    SessionState,
    generate_command_id,
)

__all__ = [
    "BridgeError",
    "Command",
    "ContextUnavailableError",
    "ProtocolError",
    "Response",
    "SessionState",
    "generate_command_id",
]
