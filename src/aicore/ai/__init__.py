"""AI layer: provider client, chat types, tools and the request pipeline."""

from .client import AIClient, AIStreamEvent, ClientSettings
from .types import Message, ModelResponse, ParsedToolCall

__all__ = [
    "AIClient",
    "AIStreamEvent",
    "ClientSettings",
    "Message",
    "ModelResponse",
    "ParsedToolCall",
]
