"""
Tests for LimitService.

Tests cover:
1. Remaining allowance per scope
2. Window rollover on day, week and month boundaries
3. Usage reporting
4. Purging closed windows
"""
from datetime import datetime, timedelta

from scholarship_points.models import LimitWindow
from scholarship_points.schemas import LimitRules
from scholarship_points.services.limit_service import LimitService


def _limits(**overrides):
    return LimitRules.model_validate(overrides)


class TestScopes:
    """Tests for scope selection"""

    def test_source_scope_included_when_configured(self, db_session):
        scopes = LimitService(db_session).applicable_scopes("task", _limits())

        assert scopes == ["daily", "weekly", "monthly", "task_daily"]

    def test_source_scope_omitted_when_not_configured(self, db_session):
        scopes = LimitService(db_session).applicable_scopes("badge", _limits())

        assert scopes == ["daily", "weekly", "monthly"]


class TestRemaining:
    """Tests for remaining()"""

    def test_full_cap_without_window(self, db_session, now):
        service = LimitService(db_session)

        assert service.remaining("daily", "s-1", now, _limits()) == 100
        assert service.remaining("task_daily", "s-1", now, _limits()) == 50

    def test_disabled_scope_is_unbounded(self, db_session, now):
        """Monthly is disabled by default"""
        service = LimitService(db_session)

        assert service.remaining("monthly", "s-1", now, _limits()) is None

    def test_disabled_weekly_is_unbounded(self, db_session, now):
        limits = _limits(weekly={"enabled": False, "max_points": 500})

        assert LimitService(db_session).remaining("weekly", "s-1", now, limits) is None

    def test_unconfigured_source_scope_is_unbounded(self, db_session, now):
        assert LimitService(db_session).remaining("badge_daily", "s-1", now, _limits()) is None

    def test_record_reduces_remaining(self, db_session, now):
        service = LimitService(db_session)
        service.record("daily", "s-1", 30, now)
        service.record("daily", "s-1", 25, now)

        assert service.remaining("daily", "s-1", now, _limits()) == 45

    def test_remaining_floors_at_zero(self, db_session, now):
        """Lowering a cap below current usage should not go negative"""
        service = LimitService(db_session)
        service.record("daily", "s-1", 80, now)
        limits = _limits(daily={"enabled": True, "max_points": 50})

        assert service.remaining("daily", "s-1", now, limits) == 0

    def test_records_while_disabled(self, db_session, now):
        """Usage recorded while a cap is disabled counts once it is enabled"""
        service = LimitService(db_session)
        service.record("monthly", "s-1", 300, now)
        limits = _limits(monthly={"enabled": True, "max_points": 1000})

        assert service.remaining("monthly", "s-1", now, limits) == 700


class TestRollover:
    """Tests for calendar window boundaries"""

    def test_daily_resets_at_utc_midnight(self, db_session):
        service = LimitService(db_session)
        service.record("daily", "s-1", 100, datetime(2024, 3, 13, 23, 59))

        assert service.remaining("daily", "s-1", datetime(2024, 3, 13, 23, 59, 59), _limits()) == 0
        assert service.remaining("daily", "s-1", datetime(2024, 3, 14, 0, 0), _limits()) == 100

    def test_rollover_advances_window_start(self, db_session, now):
        service = LimitService(db_session)
        service.record("daily", "s-1", 40, now)

        service.remaining("daily", "s-1", now + timedelta(days=1), _limits())

        window = db_session.query(LimitWindow).filter(LimitWindow.scope == "daily").one()
        assert window.window_start == datetime(2024, 3, 14)
        assert window.accumulated == 0

    def test_weekly_resets_on_sunday(self, db_session):
        service = LimitService(db_session)
        saturday = datetime(2024, 3, 16, 12, 0)
        sunday = datetime(2024, 3, 17, 0, 30)
        service.record("weekly", "s-1", 500, saturday)

        assert service.remaining("weekly", "s-1", saturday, _limits()) == 0
        assert service.remaining("weekly", "s-1", sunday, _limits()) == 500

    def test_monthly_resets_on_first(self, db_session):
        service = LimitService(db_session)
        limits = _limits(monthly={"enabled": True, "max_points": 2000})
        service.record("monthly", "s-1", 2000, datetime(2024, 3, 31, 22, 0))

        assert service.remaining("monthly", "s-1", datetime(2024, 4, 1, 0, 0), limits) == 2000


class TestUsage:
    """Tests for usage()"""

    def test_reports_every_configured_scope(self, db_session, now):
        service = LimitService(db_session)
        service.record("daily", "s-1", 30, now)
        service.record("task_daily", "s-1", 30, now)

        usage = service.usage("s-1", now, _limits())

        assert set(usage) == {"daily", "weekly", "monthly", "attendance_daily", "task_daily"}
        assert usage["daily"]["used"] == 30
        assert usage["daily"]["remaining"] == 70
        assert usage["task_daily"]["remaining"] == 20
        assert usage["monthly"]["remaining"] is None
        assert usage["weekly"]["window_start"] == datetime(2024, 3, 10)

    def test_stale_window_reported_as_unused(self, db_session, now):
        service = LimitService(db_session)
        service.record("daily", "s-1", 30, now)

        usage = service.usage("s-1", now + timedelta(days=1), _limits())

        assert usage["daily"]["used"] == 0
        # Reporting never rolls the stored window
        window = db_session.query(LimitWindow).filter(LimitWindow.scope == "daily").one()
        assert window.accumulated == 30


class TestPurge:
    """Tests for purge_expired()"""

    def test_deletes_only_closed_windows(self, db_session, now):
        service = LimitService(db_session)
        service.record("daily", "s-1", 10, now)
        service.record("weekly", "s-1", 10, now)
        db_session.commit()

        removed = service.purge_expired(now + timedelta(days=1))

        assert removed == 1
        remaining_scopes = {w.scope for w in db_session.query(LimitWindow).all()}
        assert remaining_scopes == {"weekly"}

    def test_nothing_to_purge(self, db_session, now):
        service = LimitService(db_session)
        service.record("daily", "s-1", 10, now)
        db_session.commit()

        assert service.purge_expired(now) == 0
