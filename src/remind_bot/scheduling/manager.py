"""Reminder manager: one asyncio timer task per live reminder.

Each task computes its next fire time, sleeps, re-checks the store and only
then delivers. Removal is cooperative: there is no cancel signal, so a task
whose reminder was removed keeps sleeping until its next fire time and then
retires without delivering. The channel timezone is captured when the task
starts; later timezone changes only affect reminders started afterwards, and
listings show running reminders in the timezone their task uses.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from pathlib import Path
from zoneinfo import ZoneInfo

from remind_bot.notify import NotificationSink
from remind_bot.scheduling.reminders import (
    CronFields,
    Once,
    Reminder,
    describe,
    next_fire_time,
    utcnow,
)
from remind_bot.slots import ReminderId
from remind_bot.storage import UTC, ChannelEntry, Store

log = logging.getLogger(__name__)


async def _wait_until(fire_at: datetime) -> None:
    """Sleep until fire_at; returns at once if it is not in the future."""
    remaining = (fire_at - utcnow()).total_seconds()
    if remaining > 0:
        await asyncio.sleep(remaining)


@dataclass(frozen=True, slots=True)
class ReminderListing:
    id: ReminderId
    schedule: str
    message: str


class ReminderManager:
    def __init__(self, store: Store, sink: NotificationSink) -> None:
        self.store = store
        self.sink = sink
        self._tasks: set[asyncio.Task[None]] = set()
        # Timezone each running task captured when it started.
        self._armed_tz: dict[tuple[int, ReminderId], ZoneInfo] = {}

    @classmethod
    def with_file(cls, path: Path | str, sink: NotificationSink) -> ReminderManager:
        return cls(Store.open(path), sink)

    @property
    def tasks(self) -> frozenset[asyncio.Task[None]]:
        return frozenset(self._tasks)

    # --- Store-facing operations ---

    def add_reminder(self, channel: int, reminder: Reminder) -> ReminderId:
        rid = self.store.insert(channel, reminder)
        # Read after insert: the insert may have just created the channel entry.
        tz = self.store.get_timezone(channel) or UTC
        self._start(channel, tz, rid, reminder)
        return rid

    def remove_reminder(self, channel: int, rid: ReminderId) -> bool:
        """The timer task notices on its next wake and retires without firing."""
        return self.store.remove(channel, rid)

    def start_all(self) -> int:
        """Replay every persisted reminder. Call once per process."""
        count = 0
        for channel, tz, rid, reminder in self.store.all_reminders():
            self._start(channel, tz, rid, reminder)
            count += 1
        log.info("Started %d persisted reminders", count)
        return count

    def set_channel_timezone(self, channel: int, tz_name: str) -> None:
        self.store.set_timezone(channel, tz_name)

    def channel_timezone(self, channel: int) -> ZoneInfo:
        return self.store.get_timezone(channel) or UTC

    def channel_entry(self, channel: int) -> ChannelEntry | None:
        return self.store.get_channel_entry(channel)

    def list_reminders(self, channel: int) -> list[ReminderListing]:
        """Running reminders are described in the timezone their task captured."""
        entry = self.store.get_channel_entry(channel)
        if entry is None:
            return []
        now = utcnow()
        listings = []
        for rid, r in entry.reminders.items():
            tz = self._armed_tz.get((channel, rid), entry.tz)
            listings.append(
                ReminderListing(id=rid, schedule=describe(r, tz, now), message=r.message)
            )
        return listings

    # --- Command-facing constructors ---

    def add_from_fields(
        self, channel: int, message: str, fields: CronFields, *, once: bool = False
    ) -> ReminderId:
        """Raises InvalidSchedule before anything is stored."""
        tz = self.channel_timezone(channel)
        expr = fields.expression()
        if once:
            reminder = Reminder.once_from_cron(message, expr, tz)
        else:
            reminder = Reminder.recurring(message, expr, tz)
        return self.add_reminder(channel, reminder)

    def add_delayed(self, channel: int, message: str, delay: timedelta) -> ReminderId:
        return self.add_reminder(channel, Reminder.after(message, delay))

    # --- Timer tasks ---

    def _start(self, channel: int, tz: ZoneInfo, rid: ReminderId, reminder: Reminder) -> None:
        task = asyncio.get_running_loop().create_task(
            self._run(channel, tz, rid, reminder), name=f"reminder-{channel}-{rid}"
        )
        key = (channel, rid)
        self._armed_tz[key] = tz
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        task.add_done_callback(lambda _: self._armed_tz.pop(key, None))

    async def _run(
        self, channel: int, tz: ZoneInfo, rid: ReminderId, reminder: Reminder
    ) -> None:
        log.debug("Reminder %s/%s armed (%s)", channel, rid, reminder.kind)
        fire_at = next_fire_time(reminder.kind, tz, utcnow())
        while fire_at is not None:
            await _wait_until(fire_at)

            if not self.store.has_reminder(channel, rid):
                log.info("Reminder %s/%s was removed, not firing", channel, rid)
                return

            await self._fire(channel, rid, reminder)

            if isinstance(reminder.kind, Once):
                break
            # Timers can wake early by the wall clock; step past the instant just fired.
            fire_at = next_fire_time(reminder.kind, tz, max(utcnow(), fire_at))

        self.store.remove(channel, rid)
        log.info("Reminder %s/%s retired", channel, rid)

    async def _fire(self, channel: int, rid: ReminderId, reminder: Reminder) -> None:
        log.info("Firing reminder %s/%s", channel, rid)
        try:
            await self.sink.deliver(channel, reminder.message)
        except Exception:
            log.exception("Reminder %s/%s delivery failed", channel, rid)

    async def shutdown(self) -> None:
        """Cancel every pending timer; persisted reminders resume on next start."""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
