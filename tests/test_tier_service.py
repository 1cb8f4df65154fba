"""Tests for tier resolution."""

from chatter_bonus.services.tier_service import Tier, bonus_for_steps, canonical_tiers, resolve_tier

TIERS = [Tier(0, 0), Tier(1000, 100), Tier(5000, 600)]


class TestResolveTier:
    def test_boundaries(self):
        assert resolve_tier(999, TIERS).tier_index == 0
        assert resolve_tier(999, TIERS).steps == 0

        at_first = resolve_tier(1000, TIERS)
        assert (at_first.tier_index, at_first.bonus_cents, at_first.steps) == (1, 100, 1)

        assert resolve_tier(4999, TIERS).tier_index == 1

        at_second = resolve_tier(5000, TIERS)
        assert (at_second.tier_index, at_second.bonus_cents, at_second.steps) == (2, 600, 2)

    def test_below_lowest_tier_resolves_nothing(self):
        assert resolve_tier(499, [Tier(500, 50)]) is None

    def test_unsorted_tiers_are_ordered_first(self):
        resolved = resolve_tier(6000, [Tier(5000, 600), Tier(0, 0), Tier(1000, 100)])

        assert resolved.min_amount_cents == 5000
        assert resolved.steps == 2

    def test_duplicate_minimum_keeps_larger_bonus(self):
        tiers = [Tier(1000, 100), Tier(1000, 250)]

        assert canonical_tiers(tiers) == [Tier(1000, 250)]
        assert resolve_tier(1200, tiers).bonus_cents == 250

    def test_steps_without_zero_floor(self):
        tiers = [Tier(1000, 100), Tier(2000, 300)]

        assert resolve_tier(2500, tiers).steps == 2
        assert resolve_tier(2500, tiers).tier_index == 1

    def test_as_dict_uses_camel_case(self):
        assert resolve_tier(1000, TIERS).as_dict() == {
            "tierIndex": 1,
            "minAmountCents": 1000,
            "bonusCents": 100,
            "steps": 1,
        }


class TestBonusForSteps:
    def test_bonus_of_each_paying_step(self):
        assert bonus_for_steps(0, TIERS) == 0
        assert bonus_for_steps(1, TIERS) == 100
        assert bonus_for_steps(2, TIERS) == 600

    def test_steps_beyond_top_tier_are_capped(self):
        assert bonus_for_steps(5, TIERS) == 600

    def test_zero_bonus_tiers_are_not_steps(self):
        tiers = [Tier(0, 0), Tier(1000, 100), Tier(2000, 0), Tier(3000, 400)]

        assert bonus_for_steps(2, tiers) == 400
        assert resolve_tier(3500, tiers).steps == 2

    def test_no_paying_tiers(self):
        assert bonus_for_steps(1, [Tier(0, 0)]) == 0
