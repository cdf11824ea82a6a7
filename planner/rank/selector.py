"""Package ranking.

Additive integer scoring, no normalisation:

    destination match  +5   (substring either way, ignoring case/spacing/punctuation)
    party type         +3
    budget category    +2
    duration exact     +2   / within 2 days +1
    star-rating hint   +1

Zero-score packages are dropped. Ties keep catalog order.
"""

import re
from typing import Iterable, List, Optional

from planner.types import (
    BudgetCategory,
    LodgingTier,
    RankingResult,
    Recommendation,
    ScoredPackage,
    TravelPackage,
    TripProfile,
)

DESTINATION_POINTS = 5
PARTY_POINTS = 3
BUDGET_POINTS = 2
DURATION_EXACT_POINTS = 2
DURATION_NEAR_POINTS = 1
DURATION_NEAR_DAYS = 2
STAR_POINTS = 1

# Upper bounds (exclusive) for the numeric budget buckets, INR
ECONOMY_CEILING = 60000
MID_CEILING = 100000
PREMIUM_CEILING = 140000

_TIER_CATEGORY = {
    LodgingTier.BUDGET: BudgetCategory.ECONOMY,
    LodgingTier.MID_RANGE: BudgetCategory.MID,
    LodgingTier.LUXURY: BudgetCategory.LUXURY,
    LodgingTier.BOUTIQUE: BudgetCategory.PREMIUM,
}


def _normalize(text: Optional[str]) -> str:
    return re.sub(r"[^a-z0-9]", "", (text or "").lower())


def destination_matches(package_destination: str, wanted: Optional[str]) -> bool:
    pkg = _normalize(package_destination)
    target = _normalize(wanted)
    if not pkg or not target:
        return False
    return target in pkg or pkg in target


def derive_budget_category(amount: Optional[int], tier: Optional[LodgingTier]) -> Optional[BudgetCategory]:
    """Numeric budget wins; lodging tier only when no amount is known."""
    if amount is not None:
        if amount < ECONOMY_CEILING:
            return BudgetCategory.ECONOMY
        if amount < MID_CEILING:
            return BudgetCategory.MID
        if amount < PREMIUM_CEILING:
            return BudgetCategory.PREMIUM
        return BudgetCategory.LUXURY
    if tier is not None:
        return _TIER_CATEGORY[LodgingTier(tier)]
    return None


def star_hint(tier: LodgingTier) -> str:
    if tier is LodgingTier.LUXURY:
        return "5"
    if tier is LodgingTier.BUDGET:
        return "3"
    return "4"


def score_package(profile: TripProfile, pkg: TravelPackage) -> int:
    score = 0
    if profile.destination and destination_matches(pkg.destination_name, profile.destination):
        score += DESTINATION_POINTS

    if profile.party_type and pkg.travel_type:
        if pkg.travel_type.strip().lower() == profile.party_type.value.lower():
            score += PARTY_POINTS

    wanted = derive_budget_category(profile.budget_amount, profile.lodging_tier)
    if wanted and pkg.budget_category and pkg.budget_category.strip().lower() == wanted.value.lower():
        score += BUDGET_POINTS

    if profile.trip_length_days is not None and pkg.duration_days:
        diff = abs(pkg.duration_days - profile.trip_length_days)
        if diff == 0:
            score += DURATION_EXACT_POINTS
        elif diff <= DURATION_NEAR_DAYS:
            score += DURATION_NEAR_POINTS

    if profile.lodging_tier and pkg.star_category:
        if star_hint(LodgingTier(profile.lodging_tier)) in pkg.star_category:
            score += STAR_POINTS

    return score


def rank_packages(profile: TripProfile, packages: Iterable[TravelPackage]) -> RankingResult:
    """Score the catalog against a (possibly partial) profile.

    With a destination on the profile only that destination's packages are
    candidates; an unknown destination therefore yields no match rather than
    packages elsewhere that happen to fit the party or budget.
    """
    pool = list(packages)
    if profile.destination:
        pool = [p for p in pool if destination_matches(p.destination_name, profile.destination)]

    scored = [ScoredPackage(package=p, score=score_package(profile, p)) for p in pool]
    candidates = [s for s in scored if s.score > 0]
    # sorted() is stable: equal scores stay in catalog order
    candidates = sorted(candidates, key=lambda s: s.score, reverse=True)

    best: Optional[ScoredPackage] = None
    for s in scored:
        if s.score > 0 and (best is None or s.score > best.score):
            best = s

    return RankingResult(candidates=candidates, best=best)


def build_recommendation(result: RankingResult, alternatives: int = 2) -> Recommendation:
    """Winner plus up to ``alternatives`` runners-up (winner excluded)."""
    if result.best is None:
        return Recommendation()
    best = result.best
    others: List[ScoredPackage] = []
    for s in result.candidates:
        if s.package.id != best.package.id:
            others.append(s)
        if len(others) == alternatives:
            break
    return Recommendation(
        package_id=best.package.id,
        score=best.score,
        package=best.package,
        alternatives=others,
    )
