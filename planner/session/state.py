"""
Trip profile state and session object

The profile is the single source of truth for what the dialogue still needs.
The dialogue state is never stored; it is recomputed from the profile on
every call so the two cannot drift apart.
"""

from datetime import date, datetime, timezone
from typing import Any, FrozenSet, List, Optional
import threading
import uuid

from planner.errors import ProfileInvariantError, SessionBusyError
from planner.types import (
    ConversationTurn,
    DialogueState,
    LodgingTier,
    PartyType,
    Slot,
    SLOT_ORDER,
    STATE_FOR_SLOT,
    TripProfile,
)


def slot_value(profile: TripProfile, slot: Slot) -> Any:
    return getattr(profile, slot.value)


def filled_slots(profile: TripProfile) -> FrozenSet[Slot]:
    return frozenset(s for s in SLOT_ORDER if slot_value(profile, s) is not None)


def pending_slot(profile: TripProfile) -> Optional[Slot]:
    """First unset slot in canonical order, None once the profile is complete."""
    for slot in SLOT_ORDER:
        if slot_value(profile, slot) is None:
            return slot
    return None


def derive_state(profile: TripProfile) -> DialogueState:
    slot = pending_slot(profile)
    if slot is None:
        return DialogueState.READY
    return STATE_FOR_SLOT[slot]


def is_complete(profile: TripProfile) -> bool:
    return pending_slot(profile) is None


def get_completion_percentage(profile: TripProfile) -> float:
    """Share of the six slots filled, for progress display."""
    return len(filled_slots(profile)) / len(SLOT_ORDER) * 100


def _validate(slot: Slot, value: Any) -> Any:
    if value is None:
        raise ProfileInvariantError(f"cannot fill {slot.value} with None")
    if slot is Slot.DESTINATION:
        if not isinstance(value, str) or not value.strip():
            raise ProfileInvariantError("destination must be a non-empty string")
        return value
    if slot is Slot.TRAVEL_DATE:
        try:
            date.fromisoformat(str(value))
        except ValueError:
            raise ProfileInvariantError(f"travel_date is not an ISO date: {value!r}")
        return str(value)
    if slot in (Slot.TRIP_LENGTH, Slot.BUDGET):
        if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
            raise ProfileInvariantError(f"{slot.value} must be a positive integer, got {value!r}")
        return value
    if slot is Slot.LODGING:
        try:
            return LodgingTier(value)
        except ValueError:
            raise ProfileInvariantError(f"unknown lodging tier {value!r}")
    if slot is Slot.PARTY:
        try:
            return PartyType(value)
        except ValueError:
            raise ProfileInvariantError(f"unknown party type {value!r}")
    raise ProfileInvariantError(f"unknown slot {slot!r}")


def fill_slot(profile: TripProfile, slot: Slot, value: Any) -> None:
    """Set one slot in place. Slots are append-only within a session."""
    current = slot_value(profile, slot)
    if current is not None:
        raise ProfileInvariantError(
            f"{slot.value} already set to {current!r}; profile slots are append-only"
        )
    setattr(profile, slot.value, _validate(slot, value))


def check_monotonic(before: FrozenSet[Slot], profile: TripProfile) -> None:
    """Raise if any slot filled before a turn is unset after it."""
    lost = before - filled_slots(profile)
    if lost:
        names = ", ".join(sorted(s.value for s in lost))
        raise ProfileInvariantError(f"profile slots were unset mid-session: {names}")


class TripSession:
    """One traveler's conversation: profile, turn log and composing flag.

    Owned by exactly one conversation; nothing else mutates it.
    """

    def __init__(self, session_id: Optional[str] = None, profile: Optional[TripProfile] = None):
        self.session_id = session_id or uuid.uuid4().hex
        self.profile = profile or TripProfile()
        self.turns: List[ConversationTurn] = []
        self.composing = False
        self.created_at = datetime.now(timezone.utc)
        self._turn_lock = threading.Lock()

    @property
    def state(self) -> DialogueState:
        return derive_state(self.profile)

    def begin_turn(self) -> None:
        """Mark the session as composing; refuse a second concurrent turn."""
        if not self._turn_lock.acquire(blocking=False):
            raise SessionBusyError(self.session_id)
        self.composing = True

    def end_turn(self) -> None:
        self.composing = False
        self._turn_lock.release()

    def append_turn(self, turn: ConversationTurn) -> None:
        self.turns.append(turn)

    def recent_turns(self, limit: int) -> List[ConversationTurn]:
        if limit <= 0:
            return []
        return list(self.turns[-limit:])

    def snapshot(self) -> dict:
        """JSON-friendly view for the host and admin endpoints."""
        return {
            "session_id": self.session_id,
            "state": self.state.value,
            "composing": self.composing,
            "profile": self.profile.model_dump(mode="json"),
            "completion": round(get_completion_percentage(self.profile), 1),
            "turns": [t.model_dump(mode="json") for t in self.turns],
            "created_at": self.created_at.isoformat(),
        }
