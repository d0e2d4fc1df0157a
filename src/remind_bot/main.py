"""Entry point for remind-bot."""

from __future__ import annotations

import asyncio
import atexit
import logging
import os
import signal
import sys
from pathlib import Path
from typing import TYPE_CHECKING

import discord
from dotenv import load_dotenv

if TYPE_CHECKING:
    from discord.ext.commands import Bot

    from remind_bot.scheduling.manager import ReminderManager

from remind_bot.config import DATA_DIR, DB_FILE, LOG_LEVEL

PID_FILE = DATA_DIR / "bot.pid"


HELP = """\
remind-bot -- cron-style Discord reminders, per channel and timezone

commands:
  remind-bot                     Run the Discord bot
  remind-bot reminders list      Show stored reminders (read-only)
  remind-bot reminders check     Validate a schedule and preview fire times
  remind-bot help                Show this help message

examples:
  remind-bot reminders list --channel 123456789012345678
  remind-bot reminders check --cron "30 8 * * mon-fri *" --tz Europe/Paris
"""

log = logging.getLogger(__name__)


def _check_already_running() -> None:
    """The store file has a single writer; refuse to start a second bot."""
    PID_FILE.parent.mkdir(parents=True, exist_ok=True)
    if PID_FILE.exists():
        pid = int(PID_FILE.read_text().strip() or 0)
        proc_cmdline = Path(f"/proc/{pid}/cmdline")
        if pid and proc_cmdline.exists() and "remind-bot" in proc_cmdline.read_bytes().decode(
            errors="replace"
        ):
            print(f"remind-bot is already running (pid {pid})")
            raise SystemExit(1)
    PID_FILE.write_text(str(os.getpid()))
    atexit.register(PID_FILE.unlink, missing_ok=True)


def _dispatch_subcommand() -> bool:
    """Route CLI subcommands. Returns True if handled."""
    if len(sys.argv) < 2:
        return False
    cmd = sys.argv[1]
    rest = sys.argv[2:]
    if cmd in ("help", "--help", "-h"):
        print(HELP)
        return True
    if cmd == "reminders":
        from remind_bot.scheduling.reminder_cmd import run_reminders_command

        run_reminders_command(rest)
        return True
    return False


async def _run(bot: Bot, manager: ReminderManager, token: str) -> None:
    """Run the bot; on exit cancel pending timers (they replay on next start)."""
    loop = asyncio.get_running_loop()
    _background_tasks: set[asyncio.Task[None]] = set()

    def _on_signal(sig_name: str) -> None:
        async def _shutdown() -> None:
            log.info("Received %s, shutting down", sig_name)
            if not bot.is_closed():
                await bot.close()

        task = loop.create_task(_shutdown())
        _background_tasks.add(task)
        task.add_done_callback(_background_tasks.discard)

    loop.add_signal_handler(signal.SIGTERM, _on_signal, "SIGTERM")
    loop.add_signal_handler(signal.SIGINT, _on_signal, "SIGINT")

    try:
        await bot.start(token)
    except asyncio.CancelledError:
        pass  # Signal handler already closed the bot
    finally:
        if not bot.is_closed():
            await bot.close()
        await manager.shutdown()


def main() -> None:
    if _dispatch_subcommand():
        return

    load_dotenv()
    discord.utils.setup_logging(level=LOG_LEVEL)  # type: ignore[arg-type]

    token = os.environ.get("DISCORD_TOKEN")
    if not token:
        print("Set DISCORD_TOKEN in .env")
        raise SystemExit(1)

    _check_already_running()

    from remind_bot.bot import create_bot
    from remind_bot.storage import PersistenceError, Store

    try:
        store = Store.open(DB_FILE)
    except PersistenceError as e:
        print(e, file=sys.stderr)
        raise SystemExit(1)

    with store:
        bot, manager = create_bot(store)
        asyncio.run(_run(bot, manager, token))


if __name__ == "__main__":
    main()
