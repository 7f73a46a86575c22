"""Services behind the therapist endpoint."""

from serenity.app.services.moderation import ModerationGate
from serenity.app.services.prompt import SYSTEM_PROMPT, assemble_messages
from serenity.app.services.relay import CompletionRelay, StreamPipe

__all__ = [
    "ModerationGate",
    "SYSTEM_PROMPT",
    "assemble_messages",
    "CompletionRelay",
    "StreamPipe",
]
