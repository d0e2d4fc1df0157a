"""Generational slot map used to key reminders within a channel.

A removed slot is reused for the next insert with a bumped generation, so an
id handed out earlier never resolves to the newer occupant.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass
from typing import Generic, NamedTuple, TypeVar

T = TypeVar("T")

# Largest run of vacant slots restore() will create ahead of the current end.
MAX_RESTORE_GAP = 1024


class ReminderId(NamedTuple):
    index: int
    generation: int

    def __str__(self) -> str:
        return f"{self.index}v{self.generation}"

    @classmethod
    def parse(cls, text: str) -> ReminderId:
        """Inverse of str(); raises ValueError on malformed input."""
        index, sep, generation = text.partition("v")
        if not sep:
            raise ValueError(f"Malformed reminder id: {text!r}")
        rid = cls(int(index), int(generation))
        if rid.index < 0 or rid.generation < 1:
            raise ValueError(f"Malformed reminder id: {text!r}")
        return rid


@dataclass(slots=True)
class _Slot(Generic[T]):
    generation: int
    value: T | None = None
    occupied: bool = False


class SlotMap(Generic[T]):
    def __init__(self) -> None:
        self._slots: list[_Slot[T]] = []
        self._free: list[int] = []
        self._len = 0

    def insert(self, value: T) -> ReminderId:
        if self._free:
            index = self._free.pop()
            slot = self._slots[index]
            slot.generation += 1
        else:
            index = len(self._slots)
            slot = _Slot(generation=1)
            self._slots.append(slot)
        slot.value = value
        slot.occupied = True
        self._len += 1
        return ReminderId(index, slot.generation)

    def restore(self, key: ReminderId, value: T) -> None:
        """Place a value at a known id (used when loading persisted state).

        Raises ValueError if the slot is taken or the index lies implausibly
        far past the end of the arena.
        """
        if key.index > len(self._slots) + MAX_RESTORE_GAP:
            raise ValueError(f"Slot index {key.index} is out of range")
        while len(self._slots) <= key.index:
            self._free.append(len(self._slots))
            self._slots.append(_Slot(generation=0))
        slot = self._slots[key.index]
        if slot.occupied:
            raise ValueError(f"Slot {key.index} already holds {slot.generation}")
        self._free.remove(key.index)
        slot.generation = key.generation
        slot.value = value
        slot.occupied = True
        self._len += 1

    def remove(self, key: ReminderId) -> T | None:
        slot = self._live_slot(key)
        if slot is None:
            return None
        value = slot.value
        slot.value = None
        slot.occupied = False
        self._free.append(key.index)
        self._len -= 1
        return value

    def get(self, key: ReminderId) -> T | None:
        slot = self._live_slot(key)
        return slot.value if slot is not None else None

    def _live_slot(self, key: ReminderId) -> _Slot[T] | None:
        if not 0 <= key.index < len(self._slots):
            return None
        slot = self._slots[key.index]
        if not slot.occupied or slot.generation != key.generation:
            return None
        return slot

    def items(self) -> Iterator[tuple[ReminderId, T]]:
        for index, slot in enumerate(self._slots):
            if slot.occupied:
                yield ReminderId(index, slot.generation), slot.value  # type: ignore[misc]

    def copy(self) -> SlotMap[T]:
        dup: SlotMap[T] = SlotMap()
        dup._slots = [_Slot(s.generation, s.value, s.occupied) for s in self._slots]
        dup._free = list(self._free)
        dup._len = self._len
        return dup

    def __contains__(self, key: object) -> bool:
        return isinstance(key, ReminderId) and self._live_slot(key) is not None

    def __len__(self) -> int:
        return self._len

    def __iter__(self) -> Iterator[ReminderId]:
        return (key for key, _ in self.items())
