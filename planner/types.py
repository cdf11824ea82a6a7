from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


class Slot(str, Enum):
    DESTINATION = "destination"
    TRAVEL_DATE = "travel_date"
    TRIP_LENGTH = "trip_length_days"
    BUDGET = "budget_amount"
    LODGING = "lodging_tier"
    PARTY = "party_type"


# Canonical ask order; the only scheduling policy the dialogue uses
SLOT_ORDER: Tuple[Slot, ...] = (
    Slot.DESTINATION,
    Slot.TRAVEL_DATE,
    Slot.TRIP_LENGTH,
    Slot.BUDGET,
    Slot.LODGING,
    Slot.PARTY,
)


class DialogueState(str, Enum):
    AWAITING_DESTINATION = "awaiting_destination"
    AWAITING_DATE = "awaiting_date"
    AWAITING_LENGTH = "awaiting_length"
    AWAITING_BUDGET = "awaiting_budget"
    AWAITING_LODGING = "awaiting_lodging"
    AWAITING_PARTY_TYPE = "awaiting_party_type"
    READY = "ready"


STATE_FOR_SLOT: Dict[Slot, DialogueState] = {
    Slot.DESTINATION: DialogueState.AWAITING_DESTINATION,
    Slot.TRAVEL_DATE: DialogueState.AWAITING_DATE,
    Slot.TRIP_LENGTH: DialogueState.AWAITING_LENGTH,
    Slot.BUDGET: DialogueState.AWAITING_BUDGET,
    Slot.LODGING: DialogueState.AWAITING_LODGING,
    Slot.PARTY: DialogueState.AWAITING_PARTY_TYPE,
}


class LodgingTier(str, Enum):
    BUDGET = "Budget"
    MID_RANGE = "MidRange"
    LUXURY = "Luxury"
    BOUTIQUE = "Boutique"


class PartyType(str, Enum):
    SOLO = "Solo"
    FAMILY = "Family"
    COUPLE = "Couple"
    FRIENDS = "Friends"


class BudgetCategory(str, Enum):
    ECONOMY = "Economy"
    MID = "Mid"
    PREMIUM = "Premium"
    LUXURY = "Luxury"


class TripProfile(BaseModel):
    destination: Optional[str] = None
    travel_date: Optional[str] = Field(None, description="YYYY-MM-DD")
    trip_length_days: Optional[int] = None
    budget_amount: Optional[int] = Field(None, description="INR, no unit conversion")
    lodging_tier: Optional[LodgingTier] = None
    party_type: Optional[PartyType] = None


class ConversationTurn(BaseModel):
    role: Literal["user", "assistant"]
    text: str
    attached_package: Optional[str] = None  # package id, recommendation turns only
    intent: Optional[str] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class Destination(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: str
    description: Optional[str] = None
    best_time_to_visit: Optional[str] = Field(None, alias="bestTimeToVisit")
    typical_duration: Optional[str] = Field(None, alias="duration")


class TravelPackage(BaseModel):
    """Read-only catalog entry.

    Accepts both snake_case keys and the spreadsheet-style headers the
    package sheet is exported with (``Destination_Name``, ``Travel_Type`` ...).
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    destination_name: str = Field(alias="Destination_Name")
    travel_type: Optional[str] = Field(None, alias="Travel_Type")
    budget_category: Optional[str] = Field(None, alias="Budget_Category")
    duration: str = Field("", alias="Duration")
    duration_days: Optional[int] = None
    star_category: Optional[str] = Field(None, alias="Star_Category")
    # display only, not scored
    overview: Optional[str] = Field(None, alias="Overview")
    price_range: Optional[str] = Field(None, alias="Price_Range_INR")
    inclusions: Optional[str] = Field(None, alias="Inclusions")


class ScoredPackage(BaseModel):
    package: TravelPackage
    score: int


class RankingResult(BaseModel):
    candidates: List[ScoredPackage]      # score > 0 only, best first
    best: Optional[ScoredPackage]

    @property
    def no_match(self) -> bool:
        return self.best is None

    def preview(self, limit: int = 2) -> List[ScoredPackage]:
        return self.candidates[:limit]


class Recommendation(BaseModel):
    package_id: Optional[str] = None
    score: int = 0
    package: Optional[TravelPackage] = None
    alternatives: List[ScoredPackage] = []  # up to 2, winner excluded

    @property
    def matched(self) -> bool:
        return self.package_id is not None


class PhrasingRequest(BaseModel):
    intent: str
    facts: Dict[str, Any] = {}
    recent_turns: List[ConversationTurn] = Field(default_factory=list, alias="recentTurns")

    model_config = ConfigDict(populate_by_name=True)


class PhrasingResponse(BaseModel):
    text: str


class TurnResult(BaseModel):
    state: DialogueState
    assistant_turns: List[ConversationTurn]
    recommendation: Optional[Recommendation] = None
