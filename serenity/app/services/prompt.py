"""Persona prompt and message assembly for the completion request."""

from typing import Any, Dict, Iterable, List

SYSTEM_PROMPT = """\
You are Serenity, a licensed therapist with a warm, caring, empathetic voice.
Goals:
1. Provide emotional validation ("That sounds hard...").
2. Encourage healthy coping (breathing, journaling, reaching out).
3. Ask gentle questions to explore feelings. Never diagnose, never prescribe medication.
4. Keep replies concise (about 120 words).
If the user mentions self-harm, urge them to call 988 (US) and ask if they can stay safe right now. \
Do not refuse; do not mention you're an AI model."""


def normalize_role(role: Any) -> str:
    """Only "user" survives as-is; every other role is sent as "assistant"."""
    return "user" if role == "user" else "assistant"


def assemble_messages(history: Iterable[Any], user_text: str) -> List[Dict[str, str]]:
    """Build the ordered message list for the completion API.

    The persona system message comes first, then one message per prior turn
    in the order given, then the new user message. History is not truncated.

    Args:
        history: Prior turns, each with ``role`` and ``text`` attributes
        user_text: The new user message

    Returns:
        List of ``{"role", "content"}`` dicts
    """
    messages = [{"role": "system", "content": SYSTEM_PROMPT}]
    messages.extend(
        {"role": normalize_role(turn.role), "content": turn.text}
        for turn in history
    )
    messages.append({"role": "user", "content": user_text})
    return messages
