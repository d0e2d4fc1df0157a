"""Tests for notify.py: Discord delivery and its failure modes."""

from types import SimpleNamespace

import discord
import pytest

from remind_bot.notify import DeliveryError, DiscordSink


def _http_error(cls, status: int):
    return cls(SimpleNamespace(status=status, reason="nope"), "nope")


class FakeChannel(discord.abc.Messageable):
    def __init__(self, error: Exception | None = None):
        self.sent: list[tuple[str, dict]] = []
        self.error = error

    async def _get_channel(self):
        return self

    async def send(self, content=None, **kwargs):
        if self.error is not None:
            raise self.error
        self.sent.append((content, kwargs))


class FakeClient:
    def __init__(self, cached=None, fetched=None, fetch_error=None):
        self.cached = cached
        self.fetched = fetched
        self.fetch_error = fetch_error
        self.fetch_calls: list[int] = []

    def get_channel(self, channel_id):
        return self.cached

    async def fetch_channel(self, channel_id):
        self.fetch_calls.append(channel_id)
        if self.fetch_error is not None:
            raise self.fetch_error
        return self.fetched


@pytest.mark.asyncio
async def test_deliver_to_cached_channel_with_buttons():
    channel = FakeChannel()
    client = FakeClient(cached=channel)

    await DiscordSink(client).deliver(1, "hello")

    [(content, kwargs)] = channel.sent
    assert content == "hello"
    ids = [item.custom_id for item in kwargs["view"].children]
    assert ids == ["postpone:5", "postpone:15", "postpone:30"]
    assert client.fetch_calls == []


@pytest.mark.asyncio
async def test_deliver_fetches_uncached_channel():
    channel = FakeChannel()
    client = FakeClient(fetched=channel)

    await DiscordSink(client).deliver(42, "hello")

    assert client.fetch_calls == [42]
    assert len(channel.sent) == 1


@pytest.mark.asyncio
async def test_deliver_unknown_channel():
    client = FakeClient(fetch_error=_http_error(discord.NotFound, 404))

    with pytest.raises(DeliveryError):
        await DiscordSink(client).deliver(1, "hello")


@pytest.mark.asyncio
async def test_deliver_non_messageable_channel():
    client = FakeClient(cached=object())

    with pytest.raises(DeliveryError, match="does not accept messages"):
        await DiscordSink(client).deliver(1, "hello")


@pytest.mark.asyncio
async def test_deliver_forbidden():
    channel = FakeChannel(error=_http_error(discord.Forbidden, 403))

    with pytest.raises(DeliveryError):
        await DiscordSink(FakeClient(cached=channel)).deliver(1, "hello")
