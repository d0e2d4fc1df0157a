"""Discord UI: postpone buttons on delivered reminders and the reminder menu."""

from __future__ import annotations

import re
from datetime import timedelta
from typing import TYPE_CHECKING

import discord
from discord.ui import Button, DynamicItem, Select, View

from remind_bot.slots import ReminderId

if TYPE_CHECKING:
    from remind_bot.scheduling.manager import ReminderListing, ReminderManager

POSTPONE_MINUTES = (5, 15, 30)
_MAX_OPTIONS = 25  # Discord select menu limit
_MAX_LABEL = 100

# Buttons are reconstructed from custom_id on restart; module-level ref
# is the only way to reach the manager from DynamicItem.
_manager: ReminderManager | None = None


def init(manager: ReminderManager) -> None:
    """Must be called before any button interaction is processed."""
    global _manager
    _manager = manager


def _truncate(text: str, limit: int = _MAX_LABEL) -> str:
    return text if len(text) <= limit else text[: limit - 3] + "..."


class PostponeButton(DynamicItem[Button], template=r"postpone:(?P<minutes>\d+)"):
    """Re-sends the reminder's message once after N minutes.

    The message text is read back from the message the button is attached to,
    which keeps the custom_id short.
    """

    def __init__(self, minutes: int) -> None:
        super().__init__(
            Button(
                label=f"+{minutes} min",
                style=discord.ButtonStyle.secondary,
                custom_id=f"postpone:{minutes}",
            )
        )
        self.minutes = minutes

    @classmethod
    async def from_custom_id(
        cls,
        interaction: discord.Interaction,
        item: Button,
        match: re.Match[str],
    ) -> PostponeButton:
        return cls(int(match.group("minutes")))

    async def callback(self, interaction: discord.Interaction) -> None:
        assert _manager is not None
        message = interaction.message.content if interaction.message else ""
        if not message or interaction.channel_id is None:
            await interaction.response.send_message("nothing to postpone", ephemeral=True)
            return
        _manager.add_delayed(
            interaction.channel_id, message, timedelta(minutes=self.minutes)
        )
        await interaction.response.send_message(
            f"postponed {self.minutes} min", ephemeral=True
        )


def postpone_view() -> View:
    view = View(timeout=None)
    for minutes in POSTPONE_MINUTES:
        view.add_item(PostponeButton(minutes))
    return view


def menu_options(
    listings: list[ReminderListing], selected: str | None = None
) -> list[discord.SelectOption]:
    return [
        discord.SelectOption(
            label=_truncate(item.message) or "(empty)",
            description=_truncate(item.schedule),
            value=str(item.id),
            default=str(item.id) == selected,
        )
        for item in listings[:_MAX_OPTIONS]
    ]


class ReminderMenu(View):
    """Select a reminder of this channel and delete it."""

    def __init__(self, manager: ReminderManager, channel: int) -> None:
        super().__init__(timeout=600)
        self.manager = manager
        self.channel = channel
        self.selected: str | None = None
        self.refresh()

    @property
    def content(self) -> str:
        listings = self.manager.list_reminders(self.channel)
        if not listings:
            return "no reminders"
        tz = self.manager.channel_timezone(self.channel)
        extra = len(listings) - _MAX_OPTIONS
        more = f" (showing first {_MAX_OPTIONS}, {extra} more)" if extra > 0 else ""
        return f"Channel timezone: {tz.key}{more}"

    def refresh(self) -> None:
        """Rebuild components from the store's current state."""
        self.clear_items()
        listings = self.manager.list_reminders(self.channel)
        if not listings:
            return
        select: Select[ReminderMenu] = Select(
            custom_id="menu-reminders",
            min_values=0,
            max_values=1,
            options=menu_options(listings, self.selected),
        )
        select.callback = self._on_select  # type: ignore[method-assign]
        self.add_item(select)

        delete: Button[ReminderMenu] = Button(
            label="Delete",
            style=discord.ButtonStyle.danger,
            custom_id="menu-delete",
            disabled=self.selected is None,
        )
        delete.callback = self._on_delete  # type: ignore[method-assign]
        self.add_item(delete)

    async def _on_select(self, interaction: discord.Interaction) -> None:
        values = (interaction.data or {}).get("values") or []
        self.selected = values[0] if values else None
        self.refresh()
        await interaction.response.edit_message(content=self.content, view=self)

    async def _on_delete(self, interaction: discord.Interaction) -> None:
        if self.selected is not None:
            self.manager.remove_reminder(self.channel, ReminderId.parse(self.selected))
            self.selected = None
        self.refresh()
        await interaction.response.edit_message(content=self.content, view=self)
