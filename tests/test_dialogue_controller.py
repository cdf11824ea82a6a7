from unittest.mock import Mock

import httpx
import pytest

from planner.catalog.loader import Catalog
from planner.conversation import prompts
from planner.conversation.dialog_manager import DialogueController
from planner.errors import ProfileInvariantError, SessionBusyError
from planner.llm.phrasing import HttpPhrasingGateway, Phraser
from planner.obs.metrics import get_counter
from planner.session.state import TripSession
from planner.types import DialogueState, LodgingTier, PartyType, TripProfile
from planner.utils.dates import get_current_datetime


def intents(result):
    return [t.intent for t in result.assistant_turns]


@pytest.fixture
def controller(catalog, offline_phraser):
    return DialogueController(catalog, offline_phraser)


class TestOpening:
    def test_start_greets_and_awaits_destination(self, controller):
        session = TripSession()
        result = controller.start(session)
        assert result.state is DialogueState.AWAITING_DESTINATION
        assert intents(result) == [prompts.GREETING]
        assert session.turns[0].role == "assistant"

    def test_start_with_prefilled_destination_asks_date(self, controller):
        session = TripSession(profile=TripProfile(destination="Goa"))
        result = controller.start(session)
        assert intents(result) == ["ask_travel_date"]
        assert "Goa" in result.assistant_turns[0].text


class TestSlotFilling:
    def test_destination_volunteered_in_first_message(self, controller):
        session = TripSession()
        controller.start(session)
        result = controller.submit_user_turn(
            session, "I want to visit Bali with my partner, 5 days, budget around 60000, mid-range hotel"
        )
        assert session.profile.destination == "Bali"
        assert result.state is DialogueState.AWAITING_DATE
        assert intents(result) == ["confirm_destination", "ask_travel_date"]

        # destination is never asked again
        result = controller.submit_user_turn(session, "sometime in march")
        assert result.state is DialogueState.AWAITING_LENGTH
        assert session.profile.destination == "Bali"
        assert all("destination" not in i for i in intents(result))

    def test_month_name_fills_first_of_month(self, controller):
        session = TripSession(profile=TripProfile(destination="Goa"))
        result = controller.submit_user_turn(session, "sometime in march")
        year = get_current_datetime().year
        assert session.profile.travel_date == f"{year}-03-01"
        assert result.state is DialogueState.AWAITING_LENGTH
        assert intents(result) == ["confirm_travel_date", "ask_trip_length_days"]

    def test_miss_clarifies_without_advancing(self, controller):
        session = TripSession(profile=TripProfile(destination="Goa", travel_date="2026-12-20"))
        before = session.profile.model_copy()
        result = controller.submit_user_turn(session, "not sure yet")
        assert result.state is DialogueState.AWAITING_LENGTH
        assert intents(result) == ["clarify_trip_length_days"]
        assert session.profile == before
        assert get_counter("slot_extraction_total", {"slot": "trip_length_days", "outcome": "miss"}) == 1

    @pytest.mark.parametrize(
        "profile,text",
        [
            (TripProfile(destination="Goa", travel_date="2026-12-20"), "0 days"),
            (TripProfile(destination="Goa", travel_date="2026-12-20", trip_length_days=4), "budget of 0"),
        ],
    )
    def test_non_positive_numbers_are_misses(self, controller, profile, text):
        session = TripSession(profile=profile)
        state = session.state
        result = controller.submit_user_turn(session, text)
        assert result.state is state
        assert intents(result)[0].startswith("clarify_")

    def test_unknown_destination_clarifies_with_examples(self, controller):
        session = TripSession()
        result = controller.submit_user_turn(session, "somewhere warm")
        assert result.state is DialogueState.AWAITING_DESTINATION
        assert intents(result) == ["clarify_destination"]
        assert "Bali or Kerala" in result.assistant_turns[0].text

    def test_blank_input_is_ignored(self, controller):
        session = TripSession()
        result = controller.submit_user_turn(session, "   ")
        assert result.assistant_turns == []
        assert result.state is DialogueState.AWAITING_DESTINATION
        assert session.turns == []


class TestFullConversation:
    def test_goa_couple_gets_recommendation(self, controller):
        session = TripSession()
        controller.start(session)
        states = []
        for text in ["Goa please", "2026-12-20", "4 days", "around 45000", "mid-range", "we're a couple"]:
            states.append(controller.submit_user_turn(session, text).state)

        assert states == [
            DialogueState.AWAITING_DATE,
            DialogueState.AWAITING_LENGTH,
            DialogueState.AWAITING_BUDGET,
            DialogueState.AWAITING_LODGING,
            DialogueState.AWAITING_PARTY_TYPE,
            DialogueState.READY,
        ]
        assert session.profile == TripProfile(
            destination="Goa",
            travel_date="2026-12-20",
            trip_length_days=4,
            budget_amount=45000,
            lodging_tier=LodgingTier.MID_RANGE,
            party_type=PartyType.COUPLE,
        )

        last = session.turns[-1]
        assert last.intent == prompts.RECOMMEND
        assert last.attached_package == "goa-couple-4d"
        assert get_counter("recommendations_total", {"outcome": "matched"}) == 1

    def test_ready_result_carries_recommendation(self, controller):
        session = TripSession(profile=TripProfile(
            destination="Goa", travel_date="2026-12-20", trip_length_days=4,
            budget_amount=45000, lodging_tier=LodgingTier.MID_RANGE,
        ))
        result = controller.submit_user_turn(session, "just the two of us, a couple")
        assert result.state is DialogueState.READY
        assert intents(result) == ["confirm_party_type", "recommend"]
        rec = result.recommendation
        assert rec.package_id == "goa-couple-4d"
        assert rec.score == 13
        assert [a.package.id for a in rec.alternatives] == ["goa-friends-5d", "goa-luxury-6d"]

    def test_after_ready_follow_up_keeps_profile(self, controller):
        profile = TripProfile(
            destination="Kerala", travel_date="2026-10-01", trip_length_days=5,
            budget_amount=60000, lodging_tier=LodgingTier.MID_RANGE, party_type=PartyType.COUPLE,
        )
        session = TripSession(profile=profile.model_copy())
        result = controller.submit_user_turn(session, "actually make it Goa")
        assert result.state is DialogueState.READY
        assert intents(result) == [prompts.FOLLOW_UP]
        assert result.assistant_turns[0].attached_package == "kerala-backwaters-5d"
        assert session.profile == profile

    def test_no_match_for_destination_without_packages(self):
        catalog = Catalog(
            packages=[{"id": "goa-1", "destination_name": "Goa", "travel_type": "Solo"}],
            destinations=[{"name": "Goa"}, {"name": "Atlantis"}],
        )
        controller = DialogueController(catalog, Phraser(gateway=None))
        session = TripSession(profile=TripProfile(
            destination="Atlantis", travel_date="2026-12-20", trip_length_days=4,
            budget_amount=45000, lodging_tier=LodgingTier.MID_RANGE,
        ))
        result = controller.submit_user_turn(session, "solo")
        assert result.state is DialogueState.READY
        assert intents(result) == ["confirm_party_type", prompts.NO_MATCH]
        assert not result.recommendation.matched
        assert result.assistant_turns[-1].attached_package is None
        assert "Atlantis" in result.assistant_turns[-1].text


class TestGatewayFailure:
    def test_network_error_still_advances(self, catalog):
        def handler(request):
            raise httpx.ConnectError("network unreachable", request=request)

        gateway = HttpPhrasingGateway("http://phrasing.test", client=httpx.Client(transport=httpx.MockTransport(handler)))
        controller = DialogueController(catalog, Phraser(gateway, retries=1))
        session = TripSession()
        result = controller.submit_user_turn(session, "Kerala")

        assert result.state is DialogueState.AWAITING_DATE
        assert session.profile.destination == "Kerala"
        assert result.assistant_turns[0].text == "Kerala it is, great choice!"
        assert len(result.assistant_turns) == 2
        assert get_counter("phrasing_requests_total", {"outcome": "fallback"}) == 2

    def test_phraser_sees_recent_history(self, catalog):
        phraser = Mock()
        phraser.phrase.return_value = "ok"
        controller = DialogueController(catalog, phraser, history_turns=6)
        session = TripSession()
        for text in ["hmm", "not sure", "anywhere", "Bali"]:
            controller.submit_user_turn(session, text)

        intent, facts, recent = phraser.phrase.call_args.args
        assert intent == "ask_travel_date"
        assert facts["destination"] == "Bali"
        assert len(recent) == 6
        assert recent[-1].intent == "confirm_destination"


class TestTurnGuards:
    def test_busy_session_rejects_turn(self, controller):
        session = TripSession()
        session.begin_turn()
        with pytest.raises(SessionBusyError):
            controller.submit_user_turn(session, "Goa")
        session.end_turn()
        assert controller.submit_user_turn(session, "Goa").state is DialogueState.AWAITING_DATE

    def test_composing_flag_cleared_after_turn(self, controller):
        session = TripSession()
        controller.submit_user_turn(session, "Goa")
        assert session.composing is False

    def test_unset_slot_aborts_turn(self, catalog):
        session = TripSession(profile=TripProfile(destination="Goa"))

        def sabotage(intent, facts, recent_turns):
            session.profile.destination = None
            return "ok"

        phraser = Mock()
        phraser.phrase.side_effect = sabotage
        controller = DialogueController(catalog, phraser)

        with pytest.raises(ProfileInvariantError):
            controller.submit_user_turn(session, "2026-12-20")
        assert session.composing is False
        assert get_counter("planner_invariant_violations_total") == 1

    def test_user_text_never_logged(self, controller, capsys):
        session = TripSession()
        controller.submit_user_turn(session, "Kerala, passport X1234567")
        out = capsys.readouterr().out
        assert "turn_received" in out
        assert "X1234567" not in out

    def test_turn_counter_by_state(self, controller):
        session = TripSession()
        controller.submit_user_turn(session, "Goa")
        controller.submit_user_turn(session, "no idea")
        assert get_counter("planner_turns_total", {"state": "awaiting_date"}) == 2


def test_recommend_on_partial_profile(controller):
    rec = controller.recommend(TripProfile(destination="Manali", party_type=PartyType.SOLO))
    assert rec.package_id == "manali-solo-6d"
