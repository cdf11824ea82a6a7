"""Dialogue controller for the trip planner.

Drives a single session through six slots in a fixed order:

    destination -> travel date -> trip length -> budget -> lodging -> party type

The current state is always derived from the profile; it is never stored.
Each user turn runs the extractor for the pending slot. A hit fills the slot
and produces a confirmation plus either the next question or, once the profile
is complete, a recommendation. A miss leaves the profile untouched and
produces a slot-specific clarification.

Destination is the one slot accepted out of turn: while it is unset it is
tried first on every message, whatever was last asked.
"""

from typing import Any, Dict, List, Optional, Tuple

from planner.catalog.loader import Catalog
from planner.config import settings
from planner.conversation import prompts
from planner.errors import ProfileInvariantError
from planner.llm.phrasing import Phraser
from planner.obs.context import session_id_var
from planner.obs.logger import log_event
from planner.obs.metrics import inc_counter
from planner.parse.extractors import extract_destination, extract_slot
from planner.rank.selector import build_recommendation, rank_packages
from planner.session.state import (
    TripSession,
    check_monotonic,
    fill_slot,
    filled_slots,
    pending_slot,
    slot_value,
)
from planner.types import (
    ConversationTurn,
    Recommendation,
    Slot,
    TripProfile,
    TurnResult,
)

Reply = Tuple[List[ConversationTurn], Optional[Recommendation]]


class DialogueController:
    """Slot-filling state machine over an explicit ``TripSession``.

    Holds only shared, read-only collaborators (catalog, phraser); all
    per-conversation state lives on the session passed into each call.
    """

    def __init__(self, catalog: Catalog, phraser: Optional[Phraser] = None,
                 history_turns: int = settings.PHRASING_HISTORY_TURNS) -> None:
        self.catalog = catalog
        self.phraser = phraser or Phraser()
        self.history_turns = history_turns

    # Public API

    def start(self, session: TripSession) -> TurnResult:
        """Open the conversation by asking for the pending slot."""
        session_id_var.set(session.session_id)
        session.begin_turn()
        try:
            slot = pending_slot(session.profile)
            if slot is None:
                turns, recommendation = self._recommend(session)
            elif slot is Slot.DESTINATION:
                turns, recommendation = [self._say(session, prompts.GREETING, self._facts(session.profile, slot))], None
            else:
                turns, recommendation = [self._ask(session, slot)], None
        finally:
            session.end_turn()
        log_event("session_started", state=session.state.value)
        return TurnResult(state=session.state, assistant_turns=turns, recommendation=recommendation)

    def submit_user_turn(self, session: TripSession, text: str) -> TurnResult:
        """Process one traveler message and return the assistant's reply turns.

        Blank messages are ignored. Raises ``SessionBusyError`` if the previous
        turn is still composing and ``ProfileInvariantError`` if the profile
        contract is broken along the way.
        """
        session_id_var.set(session.session_id)
        text = (text or "").strip()
        if not text:
            return TurnResult(state=session.state, assistant_turns=[])

        session.begin_turn()
        before = filled_slots(session.profile)
        try:
            session.append_turn(ConversationTurn(role="user", text=text))
            log_event("turn_received", state=session.state.value, text_length=len(text))
            turns, recommendation = self._handle(session, text)
            check_monotonic(before, session.profile)
        except ProfileInvariantError as e:
            log_event("invariant_violation", level="ERROR", error=str(e))
            inc_counter("planner_invariant_violations_total")
            raise
        finally:
            session.end_turn()

        inc_counter("planner_turns_total", {"state": session.state.value})
        return TurnResult(state=session.state, assistant_turns=turns, recommendation=recommendation)

    def recommend(self, profile: TripProfile) -> Recommendation:
        return build_recommendation(rank_packages(profile, self.catalog.packages))

    # Turn handling

    def _handle(self, session: TripSession, text: str) -> Reply:
        profile = session.profile
        slot = pending_slot(profile)
        if slot is None:
            return self._follow_up(session)

        # Destination may be volunteered at any point while it is unset
        if profile.destination is None:
            destination = extract_destination(text, self.catalog.destination_names)
            if destination:
                return self._apply(session, Slot.DESTINATION, destination)

        value = None
        if slot is not Slot.DESTINATION:
            value = extract_slot(slot, text)
            # day counts and budgets must be positive
            if slot in (Slot.TRIP_LENGTH, Slot.BUDGET) and value is not None and value <= 0:
                value = None

        if value is None:
            inc_counter("slot_extraction_total", {"slot": slot.value, "outcome": "miss"})
            log_event("slot_missed", slot=slot.value)
            intent = prompts.slot_intent(prompts.CLARIFY, slot)
            return [self._say(session, intent, self._facts(profile, slot))], None
        return self._apply(session, slot, value)

    def _apply(self, session: TripSession, slot: Slot, value: Any) -> Reply:
        fill_slot(session.profile, slot, value)
        inc_counter("slot_extraction_total", {"slot": slot.value, "outcome": "hit"})
        log_event("slot_filled", slot=slot.value, state=session.state.value)

        confirm = self._say(session, prompts.slot_intent(prompts.CONFIRM, slot),
                            self._facts(session.profile, slot))
        next_slot = pending_slot(session.profile)
        if next_slot is None:
            turns, recommendation = self._recommend(session)
            return [confirm] + turns, recommendation
        return [confirm, self._ask(session, next_slot)], None

    def _ask(self, session: TripSession, slot: Slot) -> ConversationTurn:
        return self._say(session, prompts.slot_intent(prompts.ASK, slot), self._facts(session.profile, slot))

    def _recommend(self, session: TripSession) -> Reply:
        recommendation = self.recommend(session.profile)
        facts = self._facts(session.profile)
        if not recommendation.matched:
            inc_counter("recommendations_total", {"outcome": "no_match"})
            log_event("recommendation", outcome="no_match")
            return [self._say(session, prompts.NO_MATCH, facts)], recommendation

        pkg = recommendation.package
        facts.update(
            package_name=pkg.destination_name,
            duration=pkg.duration,
            price_range=pkg.price_range,
            star_category=pkg.star_category,
            overview=pkg.overview,
            inclusions=pkg.inclusions,
            score=recommendation.score,
        )
        inc_counter("recommendations_total", {"outcome": "matched"})
        log_event("recommendation", outcome="matched", package_id=pkg.id, score=recommendation.score,
                  alternatives=len(recommendation.alternatives))
        return [self._say(session, prompts.RECOMMEND, facts, attached_package=pkg.id)], recommendation

    def _follow_up(self, session: TripSession) -> Reply:
        recommendation = self.recommend(session.profile)
        facts = self._facts(session.profile)
        if recommendation.matched:
            facts["summary"] = (
                f'the "{recommendation.package.destination_name}" package '
                f"({recommendation.package.duration}) is waiting in Trip Details."
            )
        else:
            facts["summary"] = "a travel expert will follow up with options shortly."
        turn = self._say(session, prompts.FOLLOW_UP, facts, attached_package=recommendation.package_id)
        return [turn], recommendation

    # Helpers

    def _say(self, session: TripSession, intent: str, facts: Dict[str, Any],
             attached_package: Optional[str] = None) -> ConversationTurn:
        text = self.phraser.phrase(intent, facts, session.recent_turns(self.history_turns))
        turn = ConversationTurn(role="assistant", text=text, intent=intent, attached_package=attached_package)
        session.append_turn(turn)
        return turn

    def _facts(self, profile: TripProfile, slot: Optional[Slot] = None) -> Dict[str, Any]:
        """Known slot values, plus destination details when talking about it."""
        facts: Dict[str, Any] = {}
        for s in Slot:
            v = slot_value(profile, s)
            if v is not None:
                facts[s.value] = v.value if hasattr(v, "value") else v

        if slot is Slot.DESTINATION:
            dest = self.catalog.get_destination(profile.destination) if profile.destination else None
            if dest:
                facts.update(
                    description=dest.description,
                    best_time_to_visit=dest.best_time_to_visit,
                    typical_duration=dest.typical_duration,
                )
            if not profile.destination:
                facts["examples"] = " or ".join(self.catalog.destination_names[:2]) or "Bali or Kerala"
        return facts
