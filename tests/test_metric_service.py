"""Tests for earnings aggregation."""

import pytest

from chatter_bonus.errors import InvalidRuleConfiguration
from chatter_bonus.services.metric_service import (
    aggregate_metric,
    list_active_workers_with_activity,
    qualifying_total,
)
from chatter_bonus.services.sync_service import upsert_worker

from conftest import COMPANY, utc

START = utc(2024, 3, 15)
END = utc(2024, 3, 16)


def _total(db, include_refunds, worker_id="w-1"):
    return aggregate_metric(
        db,
        company_id=COMPANY,
        worker_id=worker_id,
        metric="earnings.amount_cents",
        window_start=START,
        window_end=END,
        include_refunds=include_refunds,
    )


class TestAggregateMetric:
    def test_refunds_excluded_by_default(self, db, worker, add_earning):
        add_earning("w-1", 2000, utc(2024, 3, 15, 9))
        add_earning("w-1", -500, utc(2024, 3, 15, 10))

        assert _total(db, include_refunds=False) == 2000
        assert _total(db, include_refunds=True) == 1500

    def test_window_end_is_exclusive(self, db, worker, add_earning):
        add_earning("w-1", 700, START)
        add_earning("w-1", 300, END)

        assert _total(db, include_refunds=False) == 700

    def test_other_workers_and_companies_ignored(self, db, worker, add_earning):
        add_earning("w-1", 100, utc(2024, 3, 15, 9))
        add_earning("w-2", 900, utc(2024, 3, 15, 9))
        add_earning("w-1", 900, utc(2024, 3, 15, 9), company_id="other")

        assert _total(db, include_refunds=False) == 100

    def test_no_events_is_zero(self, db, worker):
        assert _total(db, include_refunds=True) == 0

    def test_unsupported_metric_raises(self, db):
        with pytest.raises(InvalidRuleConfiguration):
            aggregate_metric(
                db,
                company_id=COMPANY,
                worker_id="w-1",
                metric="messages.count",
                window_start=START,
                window_end=END,
                include_refunds=False,
            )


class TestHelpers:
    def test_qualifying_total_floors_at_zero(self):
        assert qualifying_total(-300) == 0
        assert qualifying_total(None) == 0
        assert qualifying_total(450) == 450


class TestWorkersWithActivity:
    def test_only_active_workers_with_events_in_window(self, db, worker, add_earning):
        upsert_worker(db, COMPANY, "w-2", active=False)
        upsert_worker(db, COMPANY, "w-3")
        db.commit()
        add_earning("w-1", 100, utc(2024, 3, 15, 9))
        add_earning("w-1", 100, utc(2024, 3, 15, 11))
        add_earning("w-2", 100, utc(2024, 3, 15, 9))
        add_earning("w-3", 100, utc(2024, 3, 17, 9))

        workers = list_active_workers_with_activity(db, company_id=COMPANY, window_start=START, window_end=END)

        assert workers == ["w-1"]
