"""Scheduling: the reminder model and the timer-task manager."""

from remind_bot.scheduling.reminders import (
    CronFields,
    InvalidSchedule,
    Once,
    Recurring,
    Reminder,
)

__all__ = [
    "CronFields",
    "InvalidSchedule",
    "Once",
    "Recurring",
    "Reminder",
]
