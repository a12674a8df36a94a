"""
Stall Service — Pickup time-slot capacity

Each slot carries its own lock so the check-and-decrement in try_reserve is
one critical section: two checkouts can never both see available == 1 and
both win. Slots never share a lock, so contention on 12:10 does not slow
down 12:20.
"""
import logging
import math
import threading
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta

from stall.core.errors import SlotFullError, UnknownSlotError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TimeSlot:
    """Read-only snapshot of a slot's counters."""

    id: str
    time: str
    capacity: int
    available: int

    @property
    def is_full(self) -> bool:
        return self.available <= 0


class _SlotEntry:
    __slots__ = ("id", "time", "capacity", "available", "lock")

    def __init__(self, slot_id: str, time: str, capacity: int, available: int):
        self.id = slot_id
        self.time = time
        self.capacity = capacity
        self.available = available
        self.lock = threading.Lock()

    def snapshot(self) -> TimeSlot:
        return TimeSlot(id=self.id, time=self.time, capacity=self.capacity, available=self.available)


class SlotAllocator:
    """Owns the capacity table for the configured pickup slots.

    Slots are listed in the order they were provisioned, which is the
    display order. The set of slots is fixed after construction; only the
    counters change.
    """

    def __init__(self, slots: list[TimeSlot] | None = None):
        self._entries: dict[str, _SlotEntry] = {}
        for slot in slots or []:
            if slot.capacity < 0 or not 0 <= slot.available <= slot.capacity:
                raise ValueError(
                    f"Slot '{slot.id}' violates 0 <= available <= capacity "
                    f"(available={slot.available}, capacity={slot.capacity})"
                )
            if slot.id in self._entries:
                raise ValueError(f"Duplicate slot id '{slot.id}'")
            self._entries[slot.id] = _SlotEntry(slot.id, slot.time, slot.capacity, slot.available)

    @classmethod
    def from_schedule(
        cls,
        start: datetime,
        count: int,
        interval_minutes: int,
        capacity: int,
        lead_minutes: int = 0,
    ) -> "SlotAllocator":
        """Provision ``count`` empty slots, ``interval_minutes`` apart.

        The first slot is ``lead_minutes`` after ``start``, rounded up to the
        next interval boundary (e.g. 12:03 + 5min with 10min slots → 12:10).
        """
        earliest = start + timedelta(minutes=lead_minutes)
        midnight = earliest.replace(hour=0, minute=0, second=0, microsecond=0)
        step = interval_minutes * 60
        offset = math.ceil((earliest - midnight).total_seconds() / step) * step
        first = midnight + timedelta(seconds=offset)

        slots = []
        for i in range(count):
            at = first + timedelta(minutes=i * interval_minutes)
            slots.append(TimeSlot(
                id=str(uuid.uuid4()),
                time=f"{at.hour}:{at.minute:02d}",
                capacity=capacity,
                available=capacity,
            ))
        return cls(slots)

    def _entry(self, slot_id: str) -> _SlotEntry:
        entry = self._entries.get(slot_id)
        if entry is None:
            raise UnknownSlotError(slot_id)
        return entry

    def list_slots(self) -> list[TimeSlot]:
        out = []
        for entry in self._entries.values():
            with entry.lock:
                out.append(entry.snapshot())
        return out

    def get(self, slot_id: str) -> TimeSlot:
        entry = self._entry(slot_id)
        with entry.lock:
            return entry.snapshot()

    def try_reserve(self, slot_id: str) -> TimeSlot:
        """Claim one seat. Raises SlotFullError (counter untouched) or UnknownSlotError."""
        entry = self._entry(slot_id)
        with entry.lock:
            if entry.available <= 0:
                raise SlotFullError(slot_id)
            entry.available -= 1
            return entry.snapshot()

    def release(self, slot_id: str) -> tuple[TimeSlot, bool]:
        """Give one seat back, never exceeding capacity.

        Returns the snapshot and whether a seat was actually returned; a
        retried cancellation that releases twice is a no-op the second time.
        """
        entry = self._entry(slot_id)
        with entry.lock:
            if entry.available >= entry.capacity:
                logger.warning("Release on slot %s ignored: already at capacity %d", slot_id, entry.capacity)
                return entry.snapshot(), False
            entry.available += 1
            return entry.snapshot(), True
