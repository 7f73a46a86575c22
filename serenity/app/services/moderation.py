"""Moderation gate in front of the completion call."""

from typing import Any, Dict

from serenity.app.core.logging import get_logger
from serenity.app.providers.base import BaseProvider

logger = get_logger(__name__)


def extract_flagged(data: Any) -> bool | None:
    """Read ``results[0].flagged`` from a moderation response.

    Returns:
        The verdict, or None if the response doesn't carry a boolean one
    """
    try:
        flagged = data["results"][0]["flagged"]
    except (KeyError, IndexError, TypeError):
        return None
    return flagged if isinstance(flagged, bool) else None


class ModerationGate:
    """Single blocking call to the moderation classifier.

    No caching and no retry. When the classifier answers 2xx but without a
    usable verdict the gate lets the text through unless ``fail_closed`` is
    set; either way a warning is logged.
    """

    def __init__(self, provider: BaseProvider, fail_closed: bool = False):
        self.provider = provider
        self.fail_closed = fail_closed

    async def is_flagged(self, text: str) -> bool:
        """Return True if the classifier flags ``text``.

        Raises:
            UpstreamError: If the moderation endpoint answers non-2xx
        """
        try:
            data: Dict[str, Any] | None = await self.provider.moderate(text)
        except ValueError:
            data = None

        verdict = extract_flagged(data)
        if verdict is None:
            logger.warning(
                "Moderation response had no verdict",
                extra={"fail_closed": self.fail_closed},
            )
            return self.fail_closed
        return verdict
