"""Tests for notification content providers."""

import json
import random

import pytest

from notifier.services.content_provider import StaticQuoteProvider

pytestmark = pytest.mark.asyncio

QUOTES = [
    {"text": "Be here now.", "author": "Ram Dass", "category": "awareness"},
    {"text": "Let it be.", "author": "Anonymous", "category": "acceptance"},
]


class TestStaticQuoteProvider:
    """Tests for StaticQuoteProvider."""

    async def test_builds_payload_from_quote(self):
        """Body quotes the text and credits the author."""
        provider = StaticQuoteProvider(quotes=QUOTES[:1], title="Wisdom")

        payload = await provider.get_payload()

        assert payload.title == "Wisdom"
        assert payload.body == '"Be here now." - Ram Dass'
        assert json.loads(payload.metadata["quote"]) == QUOTES[0]

    async def test_metadata_values_are_strings(self):
        """Push data must be string to string."""
        payload = await StaticQuoteProvider(quotes=QUOTES).get_payload()

        assert all(isinstance(v, str) for v in payload.metadata.values())

    async def test_seeded_rng_is_deterministic(self):
        """The same seed picks the same quote."""
        first = await StaticQuoteProvider(quotes=QUOTES, rng=random.Random(7)).get_payload()
        second = await StaticQuoteProvider(quotes=QUOTES, rng=random.Random(7)).get_payload()

        assert first == second

    async def test_missing_author(self):
        """Quotes without an author are credited to Unknown."""
        provider = StaticQuoteProvider(quotes=[{"text": "Breathe."}])

        payload = await provider.get_payload()

        assert payload.body == '"Breathe." - Unknown'

    async def test_no_quotes_raises(self):
        """An empty quote list is a configuration error."""
        with pytest.raises(ValueError):
            await StaticQuoteProvider(quotes=[]).get_payload()
