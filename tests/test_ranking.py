import pytest

from planner.rank.selector import (
    build_recommendation,
    derive_budget_category,
    destination_matches,
    rank_packages,
    score_package,
)
from planner.types import BudgetCategory, LodgingTier, PartyType, TravelPackage, TripProfile


def pkg(id, dest, travel_type=None, budget=None, duration="", days=None, stars=None):
    return TravelPackage(
        id=id,
        destination_name=dest,
        travel_type=travel_type,
        budget_category=budget,
        duration=duration,
        duration_days=days,
        star_category=stars,
    )


GOA_COUPLE = pkg("goa-couple", "Goa", "Couple", "Mid", "3 Nights / 4 Days", 4, "4 Star")
GOA_FAMILY = pkg("goa-family", "Goa", "Family", "Luxury", "9 Nights / 10 Days", 10, "5 Star")


class TestBudgetCategory:
    @pytest.mark.parametrize(
        "amount,expected",
        [
            (59999, BudgetCategory.ECONOMY),
            (60000, BudgetCategory.MID),
            (99999, BudgetCategory.MID),
            (100000, BudgetCategory.PREMIUM),
            (140000, BudgetCategory.LUXURY),
        ],
    )
    def test_numeric_buckets(self, amount, expected):
        assert derive_budget_category(amount, None) is expected

    @pytest.mark.parametrize(
        "tier,expected",
        [
            (LodgingTier.BUDGET, BudgetCategory.ECONOMY),
            (LodgingTier.MID_RANGE, BudgetCategory.MID),
            (LodgingTier.LUXURY, BudgetCategory.LUXURY),
            (LodgingTier.BOUTIQUE, BudgetCategory.PREMIUM),
        ],
    )
    def test_tier_fallback(self, tier, expected):
        assert derive_budget_category(None, tier) is expected

    def test_numeric_budget_takes_precedence(self):
        assert derive_budget_category(30000, LodgingTier.LUXURY) is BudgetCategory.ECONOMY
        assert derive_budget_category(150000, LodgingTier.BUDGET) is BudgetCategory.LUXURY

    def test_neither_yields_none(self):
        assert derive_budget_category(None, None) is None


class TestScorePackage:
    def test_destination_match_is_fuzzy(self):
        assert destination_matches("North Goa", "goa")
        assert destination_matches("Kerala", "Kerala Backwaters")
        assert destination_matches("Sri-Lanka", "sri lanka")
        assert not destination_matches("Goa", "")
        assert not destination_matches("Bali", "Goa")

    def test_points_table(self):
        profile = TripProfile(
            destination="Goa",
            trip_length_days=4,
            budget_amount=70000,
            lodging_tier=LodgingTier.MID_RANGE,
            party_type=PartyType.COUPLE,
        )
        # 5 destination + 3 party + 2 budget + 2 exact duration + 1 star
        assert score_package(profile, GOA_COUPLE) == 13

    def test_near_duration_earns_one_point(self):
        profile = TripProfile(trip_length_days=6)
        assert score_package(profile, GOA_COUPLE) == 1
        profile = TripProfile(trip_length_days=7)
        assert score_package(profile, GOA_COUPLE) == 0

    def test_star_hint_by_tier(self):
        assert score_package(TripProfile(lodging_tier=LodgingTier.LUXURY), GOA_FAMILY) == 1 + 2
        assert score_package(TripProfile(lodging_tier=LodgingTier.BOUTIQUE), GOA_COUPLE) == 1

    def test_empty_profile_scores_zero(self):
        assert score_package(TripProfile(), GOA_COUPLE) == 0


class TestRankPackages:
    def test_goa_couple_beats_family_luxury(self):
        profile = TripProfile(
            destination="Goa",
            party_type=PartyType.COUPLE,
            budget_amount=45000,
            lodging_tier=LodgingTier.MID_RANGE,
            trip_length_days=4,
        )
        result = rank_packages(profile, [GOA_FAMILY, GOA_COUPLE])
        assert result.best.package.id == "goa-couple"
        assert [c.package.id for c in result.candidates] == ["goa-couple", "goa-family"]
        assert result.candidates[0].score > result.candidates[1].score

    def test_unknown_destination_is_no_match(self):
        profile = TripProfile(
            destination="Atlantis",
            party_type=PartyType.COUPLE,
            budget_amount=45000,
            lodging_tier=LodgingTier.MID_RANGE,
            trip_length_days=4,
        )
        result = rank_packages(profile, [GOA_COUPLE, GOA_FAMILY])
        assert result.candidates == []
        assert result.no_match
        rec = build_recommendation(result)
        assert not rec.matched
        assert rec.package is None

    def test_zero_scores_are_excluded(self):
        profile = TripProfile(party_type=PartyType.FAMILY)
        result = rank_packages(profile, [GOA_COUPLE, GOA_FAMILY])
        assert [c.package.id for c in result.candidates] == ["goa-family"]
        assert all(c.score > 0 for c in result.candidates)

    def test_ties_keep_catalog_order(self):
        a = pkg("a", "Goa", "Friends")
        b = pkg("b", "Goa", "Friends")
        c = pkg("c", "Goa", "Friends")
        result = rank_packages(TripProfile(destination="Goa"), [a, b, c])
        assert [s.package.id for s in result.candidates] == ["a", "b", "c"]
        assert result.best.package.id == "a"

    def test_empty_catalog(self):
        assert rank_packages(TripProfile(destination="Goa"), []).no_match

    def test_recommendation_alternatives(self):
        extra = pkg("goa-extra", "Goa", "Friends", "Economy", "4 Nights / 5 Days", 5, "3 Star")
        profile = TripProfile(destination="Goa", party_type=PartyType.COUPLE, trip_length_days=4)
        result = rank_packages(profile, [GOA_FAMILY, extra, GOA_COUPLE])
        rec = build_recommendation(result)
        assert rec.package_id == "goa-couple"
        assert rec.score == 5 + 3 + 2
        assert [a.package.id for a in rec.alternatives] == ["goa-extra", "goa-family"]
        assert [s.package.id for s in result.preview()] == ["goa-couple", "goa-extra"]


def test_ranking_against_shipped_catalog(catalog):
    profile = TripProfile(
        destination="Bali",
        travel_date="2026-06-01",
        trip_length_days=6,
        budget_amount=80000,
        lodging_tier=LodgingTier.MID_RANGE,
        party_type=PartyType.COUPLE,
    )
    result = rank_packages(profile, catalog.packages)
    assert result.best.package.id == "bali-romance-6d"
    assert all(c.package.destination_name == "Bali" for c in result.candidates)
