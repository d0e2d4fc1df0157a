"""Discord bot exposing the reminder manager as slash commands."""

import logging
from datetime import timedelta

import discord
from discord import app_commands
from discord.ext import commands

from remind_bot.config import DEV_GUILD
from remind_bot.notify import DiscordSink
from remind_bot.scheduling.manager import ReminderManager
from remind_bot.scheduling.reminders import CronFields, InvalidSchedule
from remind_bot.storage import InvalidTimezone, Store
from remind_bot.views import PostponeButton, ReminderMenu
from remind_bot.views import init as init_views

log = logging.getLogger(__name__)

_MAX_REPLY_LEN = 2000  # Discord message limit

INVALID_TZ_REPLY = (
    "invalid timezone (list of timezone names: <https://w.wiki/4Jx>, "
    "capitalization matters!)"
)

_CRON_DESCRIBE = {
    "msg": "Message to be sent",
    "minute": "Minute (0-59)",
    "hour": "Hour (0-23)",
    "dom": "Day of month (1-31)",
    "month": "Month (1-12 or Jan-Dec)",
    "dow": "Day of week (Sun-Sat)",
    "year": "Year",
}


# --- Command handlers (pure, return the reply text) ---


def remind_reply(
    manager: ReminderManager,
    channel: int,
    msg: str,
    fields: CronFields,
    *,
    once: bool = False,
) -> str:
    try:
        manager.add_from_fields(channel, msg, fields, once=once)
    except InvalidSchedule as e:
        log.info("Rejected schedule in channel %s: %s", channel, e)
        return "invalid cron expression"
    return "done"


def remindin_reply(
    manager: ReminderManager,
    channel: int,
    msg: str,
    mins: int = 0,
    hours: int = 0,
    days: int = 0,
) -> str:
    try:
        manager.add_delayed(channel, msg, timedelta(minutes=mins, hours=hours, days=days))
    except OverflowError:
        return "delay too large"
    return "done"


def list_reply(manager: ReminderManager, channel: int) -> str:
    listings = manager.list_reminders(channel)
    if not listings:
        return "no reminders"
    text = "\n".join(f"{item.schedule} | {item.message}" for item in listings)
    if len(text) > _MAX_REPLY_LEN:
        text = text[: _MAX_REPLY_LEN - 3] + "..."
    return text


def tz_reply(manager: ReminderManager, channel: int, tz: str) -> str:
    try:
        manager.set_channel_timezone(channel, tz)
    except InvalidTimezone:
        return INVALID_TZ_REPLY
    return "done"


def create_bot(store: Store) -> tuple[commands.Bot, ReminderManager]:
    """Wire the store, the Discord sink and the manager into a bot."""
    intents = discord.Intents.default()

    bot = commands.Bot(
        command_prefix="!",
        intents=intents,
        activity=discord.Activity(type=discord.ActivityType.watching, name="the clock"),
    )
    manager = ReminderManager(store, DiscordSink(bot))
    _ready_fired = False

    def _channel(interaction: discord.Interaction) -> int:
        assert interaction.channel_id is not None
        return interaction.channel_id

    @bot.tree.command(
        name="remindme", description="Sends message at scheduled time(s) using cron format"
    )
    @app_commands.describe(**_CRON_DESCRIBE)
    @app_commands.rename(minute="min")
    async def slash_remindme(
        interaction: discord.Interaction,
        msg: str,
        minute: str | None = None,
        hour: str | None = None,
        dom: str | None = None,
        month: str | None = None,
        dow: str | None = None,
        year: str | None = None,
    ):
        fields = CronFields(minute, hour, dom, month, dow, year)
        reply = remind_reply(manager, _channel(interaction), msg, fields)
        await interaction.response.send_message(reply)

    @bot.tree.command(
        name="remindonce",
        description="Sends message once at a scheduled time using cron format",
    )
    @app_commands.describe(**_CRON_DESCRIBE)
    @app_commands.rename(minute="min")
    async def slash_remindonce(
        interaction: discord.Interaction,
        msg: str,
        minute: str | None = None,
        hour: str | None = None,
        dom: str | None = None,
        month: str | None = None,
        dow: str | None = None,
        year: str | None = None,
    ):
        fields = CronFields(minute, hour, dom, month, dow, year)
        reply = remind_reply(manager, _channel(interaction), msg, fields, once=True)
        await interaction.response.send_message(reply)

    @bot.tree.command(name="remindin", description="Sends delayed message")
    @app_commands.describe(
        msg="Message to be sent", mins="Minutes", hours="Hours", days="Days"
    )
    async def slash_remindin(
        interaction: discord.Interaction,
        msg: str,
        mins: app_commands.Range[int, 0] = 0,
        hours: app_commands.Range[int, 0] = 0,
        days: app_commands.Range[int, 0] = 0,
    ):
        reply = remindin_reply(manager, _channel(interaction), msg, mins, hours, days)
        await interaction.response.send_message(reply)

    @bot.tree.command(name="list", description="Lists all reminders for this channel")
    async def slash_list(interaction: discord.Interaction):
        await interaction.response.send_message(list_reply(manager, _channel(interaction)))

    @bot.tree.command(name="menu", description="Show all reminders for this channel")
    async def slash_menu(interaction: discord.Interaction):
        menu = ReminderMenu(manager, _channel(interaction))
        await interaction.response.send_message(menu.content, view=menu)

    @bot.tree.command(name="tz", description="Set timezone for this channel")
    @app_commands.describe(tz="IANA timezone name")
    async def slash_tz(interaction: discord.Interaction, tz: str):
        await interaction.response.send_message(tz_reply(manager, _channel(interaction), tz))

    @bot.event
    async def on_ready():
        nonlocal _ready_fired
        log.info("Connected as %s", bot.user)

        # on_ready fires again on every reconnect; reminders must only start once
        if _ready_fired:
            return
        _ready_fired = True

        init_views(manager)
        bot.add_dynamic_items(PostponeButton)
        manager.start_all()

        if DEV_GUILD is not None:
            guild = discord.Object(id=DEV_GUILD)
            bot.tree.copy_global_to(guild=guild)
            synced = await bot.tree.sync(guild=guild)
        else:
            synced = await bot.tree.sync()
        log.info("Synced %d slash commands", len(synced))

    @bot.tree.error
    async def on_app_command_error(
        interaction: discord.Interaction,
        error: app_commands.AppCommandError,
    ) -> None:
        if not interaction.response.is_done():
            await interaction.response.send_message("something went wrong", ephemeral=True)
        raise error

    return bot, manager
