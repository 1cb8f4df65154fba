"""Tests for bonus rule validation and management."""

import pytest

from chatter_bonus.errors import InvalidRuleConfiguration, InvalidTierConfiguration, RuleLocked, RuleNotFound
from chatter_bonus.services.award_service import create_award
from chatter_bonus.services.rule_service import (
    clone_rule,
    create_rule,
    get_rule,
    list_active_rules,
    list_companies_with_active_rules,
    list_rules,
    normalize_config,
    set_rule_active,
    update_rule,
)

from conftest import COMPANY, utc


def _award(db, rule):
    create_award(
        db,
        company_id=COMPANY,
        rule_id=rule.id,
        worker_id="w-1",
        window_start=utc(2024, 3, 15),
        window_end=utc(2024, 3, 16),
        steps_awarded=1,
        bonus_amount_cents=100,
        currency="EUR",
        awarded_at=utc(2024, 3, 15, 12),
        reason="test",
        payload={},
        once_per_window=True,
    )
    db.commit()


class TestNormalizeConfig:
    def test_tiers_sorted_and_defaults_applied(self):
        config = normalize_config(
            {"tiers": [{"min_amount_cents": 5000, "bonus_cents": 600}, {"min_amount_cents": 0, "bonus_cents": 0}]},
            "calendar_day",
        )

        assert [t["min_amount_cents"] for t in config["tiers"]] == [0, 5000]
        assert config["metric"] == "earnings.amount_cents"
        assert config["include_refunds"] is False
        assert config["award_once_per_window"] is True

    def test_duplicate_minimums_rejected(self):
        with pytest.raises(InvalidTierConfiguration):
            normalize_config(
                {"tiers": [{"min_amount_cents": 100, "bonus_cents": 1}, {"min_amount_cents": 100, "bonus_cents": 2}]},
                "calendar_day",
            )

    def test_negative_amounts_rejected(self):
        with pytest.raises(InvalidTierConfiguration):
            normalize_config({"tiers": [{"min_amount_cents": -1, "bonus_cents": 1}]}, "calendar_day")
        with pytest.raises(InvalidTierConfiguration):
            normalize_config({"tiers": [{"min_amount_cents": 1, "bonus_cents": -1}]}, "calendar_day")

    def test_empty_tiers_rejected(self):
        with pytest.raises(InvalidTierConfiguration):
            normalize_config({"tiers": []}, "calendar_day")

    def test_unknown_metric_rejected(self):
        with pytest.raises(InvalidRuleConfiguration):
            normalize_config(
                {"metric": "messages.count", "tiers": [{"min_amount_cents": 0, "bonus_cents": 0}]},
                "calendar_day",
            )

    def test_shift_based_only_kept_for_daily_windows(self):
        tiers = [{"min_amount_cents": 0, "bonus_cents": 0}]

        assert normalize_config({"tiers": tiers, "shift_based": True}, "calendar_day")["shift_based"] is True
        assert normalize_config({"tiers": tiers, "shift_based": True}, "calendar_week")["shift_based"] is False


class TestCreateRule:
    def test_defaults(self, db):
        rule = create_rule(db, COMPANY, {"name": " Daily ", "config": {"tiers": [{"min_amount_cents": 0, "bonus_cents": 0}]}})

        assert rule.name == "Daily"
        assert rule.window_type == "calendar_day"
        assert rule.currency == "EUR"
        assert rule.timezone == "Europe/Amsterdam"
        assert rule.scope == "worker"

    @pytest.mark.parametrize(
        "field,value",
        [
            ("timezone", "Not/AZone"),
            ("currency", "JPY"),
            ("window_type", "fortnight"),
            ("scope", "team"),
            ("name", "   "),
        ],
    )
    def test_invalid_fields_rejected(self, db, field, value):
        data = {"name": "Daily", "config": {"tiers": [{"min_amount_cents": 0, "bonus_cents": 0}]}}
        data[field] = value

        with pytest.raises(InvalidRuleConfiguration):
            create_rule(db, COMPANY, data)


class TestQueries:
    def test_get_rule_is_company_scoped(self, db, make_rule):
        rule = make_rule()

        assert get_rule(db, COMPANY, rule.id).id == rule.id
        with pytest.raises(RuleNotFound):
            get_rule(db, "other", rule.id)

    def test_list_rules_search_and_active_filter(self, db, make_rule):
        make_rule(name="Weekend push")
        make_rule(name="Weekly target", window_type="calendar_week", active=False)
        make_rule(name="Monthly", window_type="calendar_month")

        assert [r.name for r in list_rules(db, COMPANY, search="week")] == ["Weekend push", "Weekly target"]
        assert [r.name for r in list_rules(db, COMPANY, active=False)] == ["Weekly target"]

    def test_active_rules_ordered_by_priority(self, db, make_rule):
        make_rule(name="Late", priority=20)
        make_rule(name="Early", priority=1)
        make_rule(name="Off", priority=0, active=False)
        make_rule(name="Elsewhere", company_id="other")

        assert [r.name for r in list_active_rules(db, COMPANY)] == ["Early", "Late"]
        assert list_companies_with_active_rules(db) == [COMPANY, "other"]


class TestUpdateRule:
    def test_update_without_awards(self, db, make_rule):
        rule = make_rule()

        update_rule(db, COMPANY, rule.id, {"timezone": "Europe/London", "currency": "gbp"})
        db.commit()

        assert rule.timezone == "Europe/London"
        assert rule.currency == "GBP"

    def test_locked_rule_rejects_window_change(self, db, make_rule):
        rule = make_rule()
        _award(db, rule)

        with pytest.raises(RuleLocked) as exc:
            update_rule(db, COMPANY, rule.id, {"window_type": "calendar_week"})
        assert exc.value.context["fields"] == ["window_type"]

    def test_locked_rule_rejects_config_shape_change(self, db, make_rule):
        rule = make_rule()
        _award(db, rule)

        config = dict(rule.config, include_refunds=True)
        with pytest.raises(RuleLocked):
            update_rule(db, COMPANY, rule.id, {"config": config})

    def test_locked_rule_accepts_name_and_tiers(self, db, make_rule):
        rule = make_rule()
        _award(db, rule)

        config = dict(rule.config, tiers=[{"min_amount_cents": 0, "bonus_cents": 0}, {"min_amount_cents": 800, "bonus_cents": 90}])
        update_rule(db, COMPANY, rule.id, {"name": "Renamed", "priority": 3, "config": config})
        db.commit()

        assert rule.name == "Renamed"
        assert rule.priority == 3
        assert rule.config["tiers"][1] == {"min_amount_cents": 800, "bonus_cents": 90}

    def test_set_active(self, db, make_rule):
        rule = make_rule()

        set_rule_active(db, COMPANY, rule.id, False)
        db.commit()

        assert list_active_rules(db, COMPANY) == []


class TestCloneRule:
    def test_clone_is_inactive_copy(self, db, make_rule):
        rule = make_rule(name="Daily")

        clone = clone_rule(db, COMPANY, rule.id)
        db.commit()

        assert clone.id != rule.id
        assert clone.name == "Daily (copy)"
        assert clone.active is False
        assert clone.config == rule.config
