"""Notification content providers.

The scheduler asks for one payload per user per cycle. Content generation
itself lives elsewhere; the built-in provider serves configured quotes.
"""

import json
import random
from abc import ABC, abstractmethod

from notifier.config import get_config
from notifier.schemas.notification import PushPayload


class BaseContentProvider(ABC):
    """Abstract base class for notification content sources."""

    @abstractmethod
    async def get_payload(self) -> PushPayload:
        """
        Produce the payload for one user's notification.

        Returns:
            PushPayload with title, body and string metadata
        """
        pass


class StaticQuoteProvider(BaseContentProvider):
    """Picks a random quote from config.yml (or the built-in list)."""

    def __init__(
        self,
        quotes: list[dict[str, str]] | None = None,
        title: str | None = None,
        rng: random.Random | None = None,
    ) -> None:
        content = get_config().content
        self.quotes = quotes if quotes is not None else content.quotes
        self.title = title or content.title
        self._rng = rng or random.Random()

    async def get_payload(self) -> PushPayload:
        if not self.quotes:
            raise ValueError("No quotes configured")

        quote = self._rng.choice(self.quotes)
        text = quote.get("text", "")
        author = quote.get("author", "Unknown")

        return PushPayload(
            title=self.title,
            body=f'"{text}" - {author}',
            metadata={"quote": json.dumps(quote, ensure_ascii=False)},
        )
