"""Channel-keyed reminder store mirrored to a single JSON file.

The file is opened once and rewritten in full (seek, write, truncate) after
every mutation while the lock is held. A missing or corrupt file loads as an
empty store.
"""

from __future__ import annotations

import json
import logging
import threading
from collections.abc import Iterator
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, TextIO
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from remind_bot.scheduling.reminders import (
    InvalidSchedule,
    Once,
    Recurring,
    Reminder,
    build_trigger,
)
from remind_bot.slots import ReminderId, SlotMap

UTC = ZoneInfo("UTC")

log = logging.getLogger(__name__)


class InvalidTimezone(ValueError):
    """Not a name in the IANA timezone database."""


class PersistenceError(OSError):
    """The backing file could not be opened."""


def parse_timezone(name: str) -> ZoneInfo:
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError, TypeError) as e:
        raise InvalidTimezone(f"Unknown timezone: {name!r}") from e


@dataclass(slots=True)
class ChannelEntry:
    tz: ZoneInfo = UTC
    reminders: SlotMap[Reminder] = field(default_factory=SlotMap)

    def copy(self) -> ChannelEntry:
        return ChannelEntry(tz=self.tz, reminders=self.reminders.copy())


# --- JSON encoding ---


def _encode_reminder(reminder: Reminder) -> dict[str, str]:
    kind = reminder.kind
    if isinstance(kind, Once):
        return {"kind": "once", "fire_at": kind.fire_at.isoformat(), "msg": reminder.message}
    return {"kind": "recurring", "sched": kind.expr, "msg": reminder.message}


def _decode_reminder(data: dict[str, Any], tz: ZoneInfo) -> Reminder:
    message = str(data["msg"])
    kind = data["kind"]
    if kind == "once":
        fire_at = datetime.fromisoformat(data["fire_at"])
        return Reminder.once_at(message, fire_at)
    if kind == "recurring":
        expr = str(data["sched"])
        build_trigger(expr, tz)
        return Reminder(message=message, kind=Recurring(expr))
    raise ValueError(f"Unknown reminder kind: {kind!r}")


def _encode(data: dict[int, ChannelEntry]) -> str:
    return json.dumps(
        {
            str(channel): {
                "tz": entry.tz.key,
                "reminders": {
                    str(rid): _encode_reminder(r) for rid, r in entry.reminders.items()
                },
            }
            for channel, entry in data.items()
        }
    )


def _decode(text: str) -> dict[int, ChannelEntry]:
    """Skips corrupt channel and reminder records rather than failing the load."""
    raw = json.loads(text)
    if not isinstance(raw, dict):
        raise ValueError("Top-level JSON value is not an object")
    data: dict[int, ChannelEntry] = {}
    for channel_key, record in raw.items():
        try:
            channel = int(channel_key)
            tz_name = record.get("tz", "UTC")
            reminders = dict(record.get("reminders", {}))
        except (ValueError, TypeError, AttributeError):
            log.warning("Skipping corrupt channel record: %s", channel_key)
            continue
        try:
            tz = parse_timezone(tz_name)
        except InvalidTimezone:
            log.warning("Channel %s has unknown timezone %r, using UTC", channel, tz_name)
            tz = UTC
        entry = ChannelEntry(tz=tz)
        for rid_text, item in reminders.items():
            try:
                entry.reminders.restore(ReminderId.parse(rid_text), _decode_reminder(item, tz))
            except (ValueError, KeyError, TypeError, InvalidSchedule):
                log.warning("Skipping corrupt reminder %s in channel %s", rid_text, channel)
        data[channel] = entry
    return data


class Store:
    """Process-wide reminder state. Sole writer of its file."""

    def __init__(self, path: Path, file: TextIO, data: dict[int, ChannelEntry]) -> None:
        self.path = path
        self._file = file
        self._data = data
        self._lock = threading.Lock()

    @classmethod
    def open(cls, path: Path | str) -> Store:
        path = Path(path)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.touch(exist_ok=True)
            file = path.open("r+", encoding="utf-8")
        except OSError as e:
            raise PersistenceError(f"Cannot open store file {path}: {e}") from e

        data: dict[int, ChannelEntry] = {}
        try:
            contents = file.read()
            if contents.strip():
                data = _decode(contents)
        except OSError as e:
            file.close()
            raise PersistenceError(f"Cannot read store file {path}: {e}") from e
        except ValueError:
            # includes UnicodeDecodeError and json.JSONDecodeError
            log.warning("Store file %s is corrupt, starting empty", path)
        log.info(
            "Loaded %d reminders across %d channels from %s",
            sum(len(e.reminders) for e in data.values()),
            len(data),
            path,
        )
        return cls(path, file, data)

    def close(self) -> None:
        with self._lock:
            self._file.close()

    def __enter__(self) -> Store:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _persist(self) -> None:
        """Full rewrite in place. Caller must hold the lock."""
        try:
            self._file.seek(0)
            self._file.write(_encode(self._data))
            self._file.truncate()
            self._file.flush()
        except (OSError, ValueError):
            # ValueError: write to a closed file
            log.exception("Failed to persist store to %s", self.path)

    def insert(self, channel: int, reminder: Reminder) -> ReminderId:
        with self._lock:
            entry = self._data.setdefault(channel, ChannelEntry())
            rid = entry.reminders.insert(reminder)
            self._persist()
        return rid

    def remove(self, channel: int, rid: ReminderId) -> bool:
        """No-op when already gone, so concurrent removals are harmless."""
        with self._lock:
            entry = self._data.get(channel)
            removed = entry is not None and entry.reminders.remove(rid) is not None
            self._persist()
        return removed

    def set_timezone(self, channel: int, tz_name: str) -> None:
        tz = parse_timezone(tz_name)
        with self._lock:
            self._data.setdefault(channel, ChannelEntry()).tz = tz
            self._persist()

    def get_timezone(self, channel: int) -> ZoneInfo | None:
        with self._lock:
            entry = self._data.get(channel)
            return entry.tz if entry is not None else None

    def has_reminder(self, channel: int, rid: ReminderId) -> bool:
        with self._lock:
            entry = self._data.get(channel)
            return entry is not None and rid in entry.reminders

    def get_channel_entry(self, channel: int) -> ChannelEntry | None:
        """Snapshot copy; later mutations do not show through."""
        with self._lock:
            entry = self._data.get(channel)
            return entry.copy() if entry is not None else None

    def channels(self) -> list[int]:
        with self._lock:
            return sorted(self._data)

    def all_reminders(self) -> Iterator[tuple[int, ZoneInfo, ReminderId, Reminder]]:
        """Every live reminder as of this call. The lock is not held while iterating."""
        with self._lock:
            snapshot = [
                (channel, entry.tz, rid, reminder)
                for channel, entry in self._data.items()
                for rid, reminder in entry.reminders.items()
            ]
        return iter(snapshot)
