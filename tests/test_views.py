"""Tests for views.py: postpone buttons and the reminder menu."""

from datetime import timedelta

import discord
import pytest

import remind_bot.views as views_mod
from remind_bot.scheduling.manager import ReminderListing
from remind_bot.scheduling.reminders import Once, Reminder
from remind_bot.slots import ReminderId

CHANNEL = 7


class _FakeResponse:
    def __init__(self):
        self.sent: list[tuple[str, dict]] = []
        self.edited: list[dict] = []

    async def send_message(self, content=None, **kwargs):
        self.sent.append((content, kwargs))

    async def edit_message(self, **kwargs):
        self.edited.append(kwargs)


class _FakeMessage:
    def __init__(self, content: str):
        self.content = content


class _FakeInteraction:
    def __init__(self, content: str = "", channel_id: int | None = CHANNEL, data=None):
        self.message = _FakeMessage(content)
        self.channel_id = channel_id
        self.data = data or {}
        self.response = _FakeResponse()


@pytest.fixture(autouse=True)
def _reset_manager():
    yield
    views_mod._manager = None


def test_menu_options_marks_selection():
    listings = [
        ReminderListing(id=ReminderId(0, 1), schedule="s0", message="first"),
        ReminderListing(id=ReminderId(1, 1), schedule="s1", message="second"),
    ]

    options = views_mod.menu_options(listings, selected="1v1")

    assert [(o.label, o.value, o.default) for o in options] == [
        ("first", "0v1", False),
        ("second", "1v1", True),
    ]


def test_menu_options_truncates_and_caps():
    listings = [
        ReminderListing(id=ReminderId(i, 1), schedule="s", message="m" * 150)
        for i in range(30)
    ]

    options = views_mod.menu_options(listings)

    assert len(options) == 25
    assert len(options[0].label) == 100
    assert options[0].label.endswith("...")


@pytest.mark.asyncio
async def test_postpone_view_has_three_buttons():
    view = views_mod.postpone_view()

    ids = [item.custom_id for item in view.children]

    assert ids == ["postpone:5", "postpone:15", "postpone:30"]


@pytest.mark.asyncio
async def test_postpone_schedules_one_shot_copy(manager, gate):
    views_mod.init(manager)
    button = views_mod.PostponeButton(15)
    interaction = _FakeInteraction(content="drink water")

    await button.callback(interaction)

    [(_, reminder)] = manager.channel_entry(CHANNEL).reminders.items()
    assert reminder.message == "drink water"
    assert isinstance(reminder.kind, Once)
    assert interaction.response.sent == [("postponed 15 min", {"ephemeral": True})]
    await manager.shutdown()


@pytest.mark.asyncio
async def test_postpone_without_content(manager):
    views_mod.init(manager)
    interaction = _FakeInteraction(content="")

    await views_mod.PostponeButton(5).callback(interaction)

    assert manager.channel_entry(CHANNEL) is None
    assert interaction.response.sent[0][0] == "nothing to postpone"


@pytest.mark.asyncio
async def test_menu_empty_channel(manager):
    menu = views_mod.ReminderMenu(manager, CHANNEL)

    assert menu.content == "no reminders"
    assert menu.children == []


@pytest.mark.asyncio
async def test_menu_select_then_delete(manager, gate):
    manager.set_channel_timezone(CHANNEL, "Europe/Paris")
    keep = manager.add_reminder(CHANNEL, Reminder.after("keep", timedelta(hours=1)))
    drop = manager.add_reminder(CHANNEL, Reminder.after("drop", timedelta(hours=2)))
    menu = views_mod.ReminderMenu(manager, CHANNEL)

    assert menu.content == "Channel timezone: Europe/Paris"
    delete = [c for c in menu.children if isinstance(c, discord.ui.Button)][0]
    assert delete.disabled is True

    select_interaction = _FakeInteraction(data={"values": [str(drop)]})
    await menu._on_select(select_interaction)
    delete = [c for c in menu.children if isinstance(c, discord.ui.Button)][0]
    assert delete.disabled is False
    assert select_interaction.response.edited[0]["view"] is menu

    await menu._on_delete(_FakeInteraction())

    assert not manager.store.has_reminder(CHANNEL, drop)
    assert manager.store.has_reminder(CHANNEL, keep)
    assert menu.selected is None
    await manager.shutdown()
