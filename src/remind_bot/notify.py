"""Notification sinks: where a fired reminder's message goes."""

from __future__ import annotations

from typing import Protocol

import discord

from remind_bot.views import postpone_view


class DeliveryError(Exception):
    """The sink could not deliver a message."""


class NotificationSink(Protocol):
    async def deliver(self, channel: int, message: str) -> None:
        """Send message to channel. Raises DeliveryError on failure."""
        ...


class DiscordSink:
    """Posts reminders to Discord channels with postpone buttons attached."""

    def __init__(self, client: discord.Client) -> None:
        self._client = client

    async def deliver(self, channel: int, message: str) -> None:
        try:
            target = self._client.get_channel(channel) or await self._client.fetch_channel(
                channel
            )
        except discord.HTTPException as e:
            raise DeliveryError(f"Cannot resolve channel {channel}: {e}") from e
        if not isinstance(target, discord.abc.Messageable):
            raise DeliveryError(f"Channel {channel} does not accept messages")
        try:
            await target.send(message, view=postpone_view())
        except discord.HTTPException as e:
            raise DeliveryError(f"Cannot send to channel {channel}: {e}") from e
