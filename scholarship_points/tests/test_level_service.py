"""
Tests for LevelService.

Tests cover:
1. Default level seeding
2. Resolving totals to levels
3. Adding, updating and deleting levels
"""
import pytest
from unittest.mock import patch
from sqlalchemy.orm import Query

from scholarship_points.exceptions import ValidationError, NotFoundError, ConflictError
from scholarship_points.models import Level, PointAccount
from scholarship_points.repositories.level_repository import LevelRepository
from scholarship_points.services.level_service import LevelService


class TestSeeding:
    """Tests for the default level table"""

    def test_seeds_ten_levels(self, db_session):
        levels = LevelService(db_session).list_levels()

        assert [lvl.level for lvl in levels] == list(range(1, 11))
        assert levels[0].threshold == 0
        assert levels[-1].name == "Premier Scholar"

    def test_thresholds_strictly_increasing(self, db_session):
        thresholds = [lvl.threshold for lvl in LevelService(db_session).list_levels()]

        assert all(a < b for a, b in zip(thresholds, thresholds[1:]))

    def test_seeding_twice_keeps_one_table(self, db_session):
        LevelRepository.seed_defaults(db_session)
        levels = LevelRepository.seed_defaults(db_session)

        assert [lvl.level for lvl in levels] == list(range(1, 11))

    def test_losing_seeder_reads_winners_levels(self, session_factory, db_session):
        """A seeder that inserts after another one committed rolls back and re-reads"""
        LevelRepository.seed_defaults(db_session)
        late = session_factory()
        try:
            with patch.object(Query, "count", return_value=0):
                levels = LevelRepository.seed_defaults(late)
        finally:
            late.close()

        assert len(levels) == 10
        assert db_session.query(Level).count() == 10


class TestResolve:
    """Tests for resolve()"""

    @pytest.mark.parametrize("total,expected_level,expected_next", [
        (0, 1, 100),
        (99, 1, 1),
        (100, 2, 150),
        (999, 4, 1),
        (7499, 9, 1),
    ])
    def test_resolves_highest_reached_level(self, db_session, total, expected_level, expected_next):
        info = LevelService(db_session).resolve(total)

        assert info.level == expected_level
        assert info.points_to_next == expected_next

    def test_max_level_has_no_next(self, db_session):
        info = LevelService(db_session).resolve(20000)

        assert info.level == 10
        assert info.points_to_next is None
        assert info.is_max_level is True
        assert info.progress_percentage == 100.0

    def test_below_first_threshold_resolves_to_first(self, db_session):
        info = LevelService(db_session).resolve(-40)

        assert info.level == 1
        assert info.points_to_next == 140
        assert info.progress_percentage == 0.0

    @pytest.mark.parametrize("total,expected", [
        (0, 0.0),
        (175, 50.0),
        (499, 99.6),
        (1000, 0.0),
    ])
    def test_progress_within_level(self, db_session, total, expected):
        info = LevelService(db_session).resolve(total)

        assert info.progress_percentage == expected
        assert info.is_max_level is False

    def test_monotonic(self, db_session):
        service = LevelService(db_session)
        levels = service.list_levels()
        resolved = [service.resolve(total, levels).level for total in range(-10, 8000, 37)]

        assert resolved == sorted(resolved)


class TestAddLevel:
    """Tests for add_level()"""

    def test_adds_next_level_with_default_name(self, db_session):
        level = LevelService(db_session).add_level(11, 10000)

        assert level.name == "Level 11 Scholar"
        assert LevelService(db_session).resolve(10000).level == 11

    def test_custom_name(self, db_session):
        level = LevelService(db_session).add_level(11, 10000, "Laureate")

        assert level.name == "Laureate"

    def test_skipping_a_number_conflicts(self, db_session):
        with pytest.raises(ConflictError):
            LevelService(db_session).add_level(12, 10000)

    def test_threshold_must_exceed_max(self, db_session):
        with pytest.raises(ConflictError):
            LevelService(db_session).add_level(11, 7500)

    def test_negative_threshold_invalid(self, db_session):
        with pytest.raises(ValidationError):
            LevelService(db_session).add_level(11, -1)


class TestUpdateLevel:
    """Tests for update_level()"""

    def test_moves_threshold_between_neighbors(self, db_session):
        level = LevelService(db_session).update_level(3, threshold=300)

        assert level.threshold == 300

    def test_renames(self, db_session):
        level = LevelService(db_session).update_level(3, name="Rising Scholar")

        assert level.name == "Rising Scholar"
        assert level.threshold == 250

    def test_threshold_at_lower_neighbor_conflicts(self, db_session):
        with pytest.raises(ConflictError):
            LevelService(db_session).update_level(3, threshold=100)

    def test_threshold_at_upper_neighbor_conflicts(self, db_session):
        with pytest.raises(ConflictError):
            LevelService(db_session).update_level(3, threshold=500)

    def test_first_level_may_be_zero(self, db_session):
        service = LevelService(db_session)
        service.update_level(1, threshold=50)

        assert service.update_level(1, threshold=0).threshold == 0

    def test_max_level_has_no_upper_bound(self, db_session):
        assert LevelService(db_session).update_level(10, threshold=99999).threshold == 99999

    def test_unknown_level(self, db_session):
        with pytest.raises(NotFoundError):
            LevelService(db_session).update_level(42, threshold=1)


class TestDeleteLevel:
    """Tests for delete_level()"""

    def test_core_levels_protected(self, db_session):
        with pytest.raises(ConflictError):
            LevelService(db_session).delete_level(5)

    def test_deletes_unheld_level(self, db_session):
        service = LevelService(db_session)
        service.add_level(11, 10000)

        service.delete_level(11)

        assert [lvl.level for lvl in service.list_levels()][-1] == 10

    def test_held_level_conflicts(self, db_session):
        service = LevelService(db_session)
        service.add_level(11, 10000)
        db_session.add(PointAccount(student_id="s-1", total_points=10500))
        db_session.commit()

        with pytest.raises(ConflictError):
            service.delete_level(11)

    def test_account_on_other_level_does_not_block(self, db_session):
        service = LevelService(db_session)
        service.add_level(11, 10000)
        service.add_level(12, 15000)
        db_session.add(PointAccount(student_id="s-1", total_points=16000))
        db_session.commit()

        service.delete_level(11)

        assert [lvl.level for lvl in service.list_levels()][-2:] == [10, 12]

    def test_floor_is_configurable(self, db_session):
        service = LevelService(db_session)
        with patch("scholarship_points.config.PROTECTED_LEVEL_FLOOR", 5):
            service.delete_level(9)

        assert 9 not in [lvl.level for lvl in service.list_levels()]

    def test_unknown_level(self, db_session):
        with pytest.raises(NotFoundError):
            LevelService(db_session).delete_level(42)
