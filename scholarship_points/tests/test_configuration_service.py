"""
Tests for ConfigurationService.

Tests cover:
1. Version creation and defaults
2. Validation of rule payloads
3. Atomic activation
4. History paging
"""
import pytest
from unittest.mock import patch
from sqlalchemy.exc import IntegrityError

from scholarship_points.exceptions import ValidationError, NotFoundError, ConflictError
from scholarship_points.models import PointConfiguration
from scholarship_points.repositories.configuration_repository import ConfigurationRepository
from scholarship_points.services.configuration_service import ConfigurationService


class TestCreate:
    """Tests for create()"""

    def test_first_version_is_active(self, db_session):
        config = ConfigurationService(db_session).create()

        assert config.version == 1
        assert config.is_active is True
        assert config.activity_points["attendance"]["daily_check_in"] == 5
        assert config.limits["daily"] == {"enabled": True, "max_points": 100}

    def test_later_versions_start_inactive(self, db_session, default_config):
        config = ConfigurationService(db_session).create(created_by="admin")

        assert config.version == 2
        assert config.is_active is False
        assert config.created_by == "admin"

    def test_partial_payload_keeps_defaults(self, db_session):
        config = ConfigurationService(db_session).create({
            "activity_points": {"badges": {"default": 25}},
        })

        assert config.activity_points["badges"]["default"] == 25
        assert config.activity_points["tasks"]["categories"]["homework"] == 10
        assert config.limits["sources"]["task"]["daily"]["max_points"] == 50

    @pytest.mark.parametrize("payload,field", [
        ({"activity_points": {"attendance": {"daily_check_in": -1}}}, "activity_points"),
        ({"activity_points": {"tasks": {"difficulty_multipliers": {"easy": 0.05}}}}, "activity_points"),
        ({"activity_points": {"tasks": {"categories": {"homework": -3}}}}, "activity_points"),
        ({"activity_points": {"behavior": {"negative": 5}}}, "activity_points"),
        ({"limits": {"daily": {"enabled": True, "max_points": -10}}}, "limits"),
        ({"limits": {"sources": {"gossip": {"daily": {"enabled": True, "max_points": 5}}}}}, "limits"),
        ({"activity_points": {"attendance": {"bonus_confetti": 3}}}, "activity_points"),
    ])
    def test_rejects_malformed_rules(self, db_session, payload, field):
        """Malformed rules raise ValidationError and write nothing"""
        with pytest.raises(ValidationError) as exc_info:
            ConfigurationService(db_session).create(payload)

        assert exc_info.value.field.startswith(field)
        assert db_session.query(PointConfiguration).count() == 0

    def test_blank_category_rejected(self, db_session):
        with pytest.raises(ValidationError):
            ConfigurationService(db_session).create({
                "activity_points": {"tasks": {"categories": {" ": 5}}},
            })


class TestActivate:
    """Tests for activate()"""

    def test_swaps_active_version(self, db_session, default_config):
        service = ConfigurationService(db_session)
        v2 = service.create()

        activated = service.activate(v2.version, "admin")

        assert activated.is_active is True
        assert activated.updated_by == "admin"
        active = db_session.query(PointConfiguration).filter(PointConfiguration.is_active == True).all()
        assert [c.version for c in active] == [2]

    def test_previous_version_stamped(self, db_session, default_config):
        service = ConfigurationService(db_session)
        v2 = service.create()
        service.activate(v2.version, "admin")

        previous = service.get_version(default_config.version)
        assert previous.is_active is False
        assert previous.updated_by == "admin"

    def test_can_reactivate_older_version(self, db_session, default_config):
        service = ConfigurationService(db_session)
        v2 = service.create()
        service.activate(v2.version)

        service.activate(default_config.version)

        assert service.get_active().version == default_config.version

    def test_already_active_conflicts(self, db_session, default_config):
        with pytest.raises(ConflictError):
            ConfigurationService(db_session).activate(default_config.version)

    def test_unknown_version(self, db_session, default_config):
        with pytest.raises(NotFoundError):
            ConfigurationService(db_session).activate(99)

    def test_locks_configuration_rows(self, db_session, default_config):
        service = ConfigurationService(db_session)
        v2 = service.create()

        with patch.object(
            ConfigurationRepository, "lock_all", wraps=ConfigurationRepository.lock_all
        ) as lock_all:
            service.activate(v2.version)

        lock_all.assert_called_once_with(db_session)

    def test_second_active_row_rejected(self, db_session, default_config):
        db_session.add(PointConfiguration(
            version=2, is_active=True, activity_points={}, limits={}
        ))

        with pytest.raises(IntegrityError):
            db_session.commit()
        db_session.rollback()

    def test_lost_activation_race_conflicts(self, db_session, default_config):
        """An activation that misses the current active row cannot commit a second one"""
        service = ConfigurationService(db_session)
        v2 = service.create()

        with patch.object(ConfigurationRepository, "deactivate_all_except", return_value=0):
            with pytest.raises(ConflictError):
                service.activate(v2.version)

        assert service.get_active().version == default_config.version
        active = db_session.query(PointConfiguration).filter(PointConfiguration.is_active == True).all()
        assert len(active) == 1


class TestQueries:
    """Tests for read operations"""

    def test_no_active_configuration(self, db_session):
        with pytest.raises(NotFoundError):
            ConfigurationService(db_session).get_active()

    def test_history_newest_first(self, db_session, default_config):
        service = ConfigurationService(db_session)
        service.create()
        service.create()

        items, total = service.list_history(page=1, limit=2)

        assert total == 3
        assert [c.version for c in items] == [3, 2]

    def test_history_second_page(self, db_session, default_config):
        service = ConfigurationService(db_session)
        service.create()
        service.create()

        items, _ = service.list_history(page=2, limit=2)

        assert [c.version for c in items] == [1]

    def test_rules_parse_snapshot(self, db_session, default_config):
        activity, limits = ConfigurationService.rules(default_config)

        assert activity.tasks.difficulty_multipliers["hard"] == 1.5
        assert limits.monthly.enabled is False
