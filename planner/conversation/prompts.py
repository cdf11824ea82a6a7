"""Phrasing intents, the instructions sent to the phrasing service for each,
and the canned fallback text used whenever the service cannot answer.

Intent names are ``<kind>_<slot>`` for slot dialogue (``ask_budget_amount``,
``confirm_destination``, ``clarify_party_type``) plus a few terminal intents.
"""

from typing import Any, Dict, Optional

from planner.types import Slot

ASK = "ask"
CONFIRM = "confirm"
CLARIFY = "clarify"

GREETING = "greeting"
RECOMMEND = "recommend"
NO_MATCH = "no_match"
FOLLOW_UP = "follow_up"


def slot_intent(kind: str, slot: Slot) -> str:
    return f"{kind}_{slot.value}"


def with_style(instruction: str, max_words: int = 35) -> str:
    return f"Keep the reply under {max_words} words. Be clear, upbeat, and avoid repetition. {instruction}"


SYSTEM_PROMPT = (
    "You are a warm and concise AI trip planner for an Indian travel company. "
    "Keep responses under 120 words, ask one question at a time, and use Indian English "
    "nuances when helpful. Only mention facts you are given; never invent packages or prices."
)


INSTRUCTIONS: Dict[str, str] = {
    GREETING: with_style(
        "Greet them briefly and ask which destination they want to plan. Offer two inspirations like Bali or Kerala.", 28
    ),
    slot_intent(ASK, Slot.DESTINATION): with_style(
        "Ask which destination they want to plan. Offer two examples like Bali or Kerala.", 28
    ),
    slot_intent(ASK, Slot.TRAVEL_DATE): with_style(
        "Ask when they plan to travel to {destination}. Mention they can share a month or exact date.", 32
    ),
    slot_intent(ASK, Slot.TRIP_LENGTH): with_style(
        "Ask how many days they want in {destination}.", 30
    ),
    slot_intent(ASK, Slot.BUDGET): with_style(
        "Ask for their total budget in INR and hint at ranges like ₹30k-50k or ₹80k+.", 32
    ),
    slot_intent(ASK, Slot.LODGING): with_style(
        "Ask which stay style they prefer: Budget (3-star), Mid-Range (4-star), Luxury (5-star) or Boutique.", 28
    ),
    slot_intent(ASK, Slot.PARTY): with_style(
        "Ask who they are travelling with: solo, family, couple, or friends.", 26
    ),
    slot_intent(CONFIRM, Slot.DESTINATION): with_style(
        "They picked {destination}. In one sentence mention {description}. Add best time {best_time_to_visit} "
        "and typical duration {typical_duration} if known.", 45
    ),
    slot_intent(CONFIRM, Slot.TRAVEL_DATE): with_style("Acknowledge their travel date of {travel_date}.", 15),
    slot_intent(CONFIRM, Slot.TRIP_LENGTH): with_style("Note their {trip_length_days}-day plan.", 12),
    slot_intent(CONFIRM, Slot.BUDGET): with_style("Thank them for sharing a budget of ₹{budget_amount}.", 15),
    slot_intent(CONFIRM, Slot.LODGING): with_style("Acknowledge their {lodging_tier} stay preference.", 12),
    slot_intent(CONFIRM, Slot.PARTY): with_style("Acknowledge they are travelling as {party_type}.", 12),
    slot_intent(CLARIFY, Slot.DESTINATION): with_style(
        "Let them know you still need to know where they want to go and offer a couple of popular examples "
        "such as {examples}.", 28
    ),
    slot_intent(CLARIFY, Slot.TRAVEL_DATE): with_style(
        "Kindly remind them you still need their travel dates and that a month is enough.", 28
    ),
    slot_intent(CLARIFY, Slot.TRIP_LENGTH): with_style(
        "Let them know the trip length helps shape the plan and ask again for number of days.", 28
    ),
    slot_intent(CLARIFY, Slot.BUDGET): with_style(
        "Explain that even a rough budget helps you recommend the right experiences and ask for an amount or band.", 28
    ),
    slot_intent(CLARIFY, Slot.LODGING): with_style(
        "Ask again about preferred stay style (Budget, Mid-Range, Luxury, Boutique) and explain why it matters.", 28
    ),
    slot_intent(CLARIFY, Slot.PARTY): with_style(
        "Remind them you can personalize better if you know whether they are traveling solo, as a couple, "
        "with family, or friends.", 28
    ),
    RECOMMEND: with_style(
        'Summarize why the "{package_name}" package ({duration}, {price_range}) fits their {party_type} trip to '
        "{destination}. Include 2 short bullet highlights from this overview: {overview} and inclusions: "
        "{inclusions}. End by inviting them to review Trip Details.", 80
    ),
    NO_MATCH: with_style(
        "Explain that you couldn't find a curated package for {destination} yet, but you'll pass their "
        "preferences to a human expert. Encourage them to review Trip Details or try another destination.", 45
    ),
    FOLLOW_UP: with_style(
        "Their trip details are complete. Answer briefly and remind them that {summary}", 40
    ),
}


FALLBACKS: Dict[str, str] = {
    GREETING: "Hi! I'm your trip planner. Where would you like to go? Bali and Kerala are lovely right now.",
    slot_intent(ASK, Slot.DESTINATION): "Where would you like to go? Bali or Kerala, perhaps?",
    slot_intent(ASK, Slot.TRAVEL_DATE): "When are you planning to travel to {destination}? A month or an exact date works.",
    slot_intent(ASK, Slot.TRIP_LENGTH): "How many days would you like to spend in {destination}?",
    slot_intent(ASK, Slot.BUDGET): "What's your total budget in INR? A range like ₹30k-50k or ₹80k+ is fine.",
    slot_intent(ASK, Slot.LODGING): "Which stay style do you prefer: Budget, Mid-Range, Luxury or Boutique?",
    slot_intent(ASK, Slot.PARTY): "Who are you travelling with: solo, family, couple or friends?",
    slot_intent(CONFIRM, Slot.DESTINATION): "{destination} it is, great choice!",
    slot_intent(CONFIRM, Slot.TRAVEL_DATE): "Noted, travelling around {travel_date}.",
    slot_intent(CONFIRM, Slot.TRIP_LENGTH): "A {trip_length_days}-day trip, got it.",
    slot_intent(CONFIRM, Slot.BUDGET): "Thanks, I'll plan around ₹{budget_amount}.",
    slot_intent(CONFIRM, Slot.LODGING): "{lodging_tier} stays, noted.",
    slot_intent(CONFIRM, Slot.PARTY): "Lovely, a {party_type} trip.",
    slot_intent(CLARIFY, Slot.DESTINATION): "I still need to know where you'd like to go. How about {examples}?",
    slot_intent(CLARIFY, Slot.TRAVEL_DATE): "I still need your travel dates. Just the month is enough.",
    slot_intent(CLARIFY, Slot.TRIP_LENGTH): "The trip length helps me shape the plan. How many days are you thinking?",
    slot_intent(CLARIFY, Slot.BUDGET): "Even a rough budget helps me pick the right experiences. Could you share an amount or a band?",
    slot_intent(CLARIFY, Slot.LODGING): "Which stay style suits you: Budget, Mid-Range, Luxury or Boutique?",
    slot_intent(CLARIFY, Slot.PARTY): "Are you travelling solo, as a couple, with family, or with friends?",
    RECOMMEND: (
        'I recommend the "{package_name}" package ({duration}, {price_range}) for your trip to {destination}. '
        "Have a look at Trip Details for the full plan."
    ),
    NO_MATCH: (
        "I couldn't find an exact package match for {destination} yet. I'll pass your preferences to a "
        "travel expert who will follow up shortly."
    ),
    FOLLOW_UP: "Your trip details are all set: {summary}",
}

_GENERIC_FALLBACK = "Thanks! Tell me a little more and I'll take it from there."


class _Facts(dict):
    def __missing__(self, key: str) -> str:
        return ""


def render(template: str, facts: Optional[Dict[str, Any]] = None) -> str:
    """Fill ``{placeholders}`` from facts; unknown keys render empty."""
    values = _Facts({k: ("" if v is None else v) for k, v in (facts or {}).items()})
    try:
        return template.format_map(values)
    except (ValueError, IndexError):
        return template


def instruction_for(intent: str, facts: Optional[Dict[str, Any]] = None) -> str:
    return render(INSTRUCTIONS.get(intent, with_style("Acknowledge their message and let them know you are ready for the required detail.", 28)), facts)


def fallback_for(intent: str, facts: Optional[Dict[str, Any]] = None) -> str:
    return render(FALLBACKS.get(intent, _GENERIC_FALLBACK), facts)
