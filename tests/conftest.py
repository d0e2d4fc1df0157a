"""Shared fixtures for remind-bot tests."""

import asyncio
import os

os.environ.pop("REMIND_DEV_GUILD", None)

import pytest

from remind_bot.notify import DeliveryError
from remind_bot.scheduling.manager import ReminderManager
from remind_bot.storage import Store


class RecordingSink:
    """Notification sink that records deliveries instead of sending them."""

    def __init__(self, fail: bool = False):
        self.delivered: list[tuple[int, str]] = []
        self.fail = fail
        self.on_deliver = None

    async def deliver(self, channel: int, message: str) -> None:
        self.delivered.append((channel, message))
        if self.on_deliver is not None:
            self.on_deliver(channel, message)
        if self.fail:
            raise DeliveryError("channel is gone")


class Gate:
    """Stand-in for the manager's sleep: each wait consumes one released permit."""

    def __init__(self):
        self.waits = []
        self._permits: asyncio.Queue[None] = asyncio.Queue()

    async def wait(self, fire_at) -> None:
        self.waits.append(fire_at)
        await self._permits.get()

    def release(self, n: int = 1) -> None:
        for _ in range(n):
            self._permits.put_nowait(None)


@pytest.fixture()
def db_path(tmp_path):
    return tmp_path / "reminders.json"


@pytest.fixture()
def store(db_path):
    s = Store.open(db_path)
    yield s
    s.close()


@pytest.fixture()
def sink():
    return RecordingSink()


@pytest.fixture()
def manager(store, sink):
    return ReminderManager(store, sink)


@pytest.fixture()
def gate(monkeypatch):
    """Replace timer sleeps with a gate the test opens explicitly."""
    import remind_bot.scheduling.manager as manager_mod

    g = Gate()
    monkeypatch.setattr(manager_mod, "_wait_until", g.wait)
    return g


@pytest.fixture()
def failing_sink():
    return RecordingSink(fail=True)
