"""
Tests for the +/-30 minute conflict guard (pure and SQL forms).
"""

import sqlite3

import pytest
from datetime import datetime, timedelta, timezone


def at(hour: int, minute: int = 0, day: int = 4) -> datetime:
    """Instant on Wed 2025-06-04 (UTC by default)."""
    return datetime(2025, 6, day, hour, minute, tzinfo=timezone.utc)


def existing(scheduled_at, provider_id=1, status='CONFIRMED', res_type='TOUR', res_id=10):
    return {
        'id': res_id,
        'provider_id': provider_id,
        'status': status,
        'type': res_type,
        'scheduled_at': scheduled_at,
    }


class TestHasConflict:
    """Tests for the pure conflict predicate."""

    def test_fifteen_minutes_after_conflicts(self):
        """Against a CONFIRMED visit at 10:00, 10:15 conflicts and 10:31 does not."""
        from models.reservation_availability import has_conflict

        booked = [existing(at(10))]

        assert has_conflict(at(10, 15), 1, booked) is True
        assert has_conflict(at(10, 31), 1, booked) is False

    @pytest.mark.parametrize('candidate,expected', [
        (at(9, 30), False),
        (at(9, 31), True),
        (at(10, 0), True),
        (at(10, 29), True),
        (at(10, 30), False),
    ])
    def test_window_is_strict_on_both_sides(self, candidate, expected):
        """Exactly 30 minutes apart is never a conflict."""
        from models.reservation_availability import has_conflict

        assert has_conflict(candidate, 1, [existing(at(10))]) is expected

    def test_offsets_compare_absolute_instants(self):
        """10:15+02:00 is 08:15Z, far from a 10:00Z booking."""
        from models.reservation_availability import has_conflict

        candidate = datetime(2025, 6, 4, 10, 15, tzinfo=timezone(timedelta(hours=2)))
        assert has_conflict(candidate, 1, [existing(at(10))]) is False

    @pytest.mark.parametrize('status', ['CANCELLED', 'COMPLETED', 'NO_SHOW'])
    def test_closed_reservations_never_conflict(self, status):
        from models.reservation_availability import has_conflict

        assert has_conflict(at(10), 1, [existing(at(10), status=status)]) is False

    def test_pending_counts_as_active(self):
        from models.reservation_availability import has_conflict

        assert has_conflict(at(10), 1, [existing(at(10), status='PENDING')]) is True

    def test_other_provider_ignored(self):
        from models.reservation_availability import has_conflict

        assert has_conflict(at(10), 1, [existing(at(10), provider_id=2)]) is False

    def test_excluded_reservation_ignored(self):
        """A reschedule never conflicts with its own current slot."""
        from models.reservation_availability import has_conflict

        booked = [existing(at(10), res_id=7)]
        assert has_conflict(at(10, 15), 1, booked, exclude_reservation_id=7) is False
        assert has_conflict(at(10, 15), 1, booked, exclude_reservation_id=8) is True

    def test_untimed_and_enrollment_ignored(self):
        from models.reservation_availability import has_conflict

        booked = [
            existing(None),
            existing(at(10), res_type='ENROLLMENT'),
        ]
        assert has_conflict(at(10), 1, booked) is False

    def test_empty(self):
        from models.reservation_availability import has_conflict
        assert has_conflict(at(10), 1, []) is False


class TestConflictQuery:
    """Tests for the SQL form of the guard."""

    def test_finds_row_inside_window(self, app, daycare, client_user, child, now):
        from models.reservation import create_single
        from models.reservation_availability import check_time_slot_conflict

        booked = create_single(client_user, daycare, child, at(10), now=now)

        conflict = check_time_slot_conflict(daycare, at(10, 29))
        assert conflict is not None
        assert conflict['id'] == booked['id']
        assert conflict['scheduled_at'] == at(10)

        assert check_time_slot_conflict(daycare, at(9, 31)) is not None

    def test_exact_boundary_is_free(self, app, daycare, client_user, child, now):
        from models.reservation import create_single
        from models.reservation_availability import check_time_slot_conflict

        create_single(client_user, daycare, child, at(10), now=now)

        assert check_time_slot_conflict(daycare, at(10, 30)) is None
        assert check_time_slot_conflict(daycare, at(9, 30)) is None

    def test_exclude_and_cancelled(self, app, daycare, client_user, child, now):
        from models.reservation import create_single, cancel
        from models.reservation_availability import check_time_slot_conflict

        booked = create_single(client_user, daycare, child, at(10), now=now)
        assert check_time_slot_conflict(daycare, at(10), exclude_reservation_id=booked['id']) is None

        cancel(client_user, booked['id'], now=now)
        assert check_time_slot_conflict(daycare, at(10)) is None

    def test_other_provider_is_independent(self, app, daycare, medical, client_user, child, now):
        from models.reservation import create_single
        from models.reservation_availability import check_time_slot_conflict

        create_single(client_user, daycare, child, at(10), now=now)
        assert check_time_slot_conflict(medical, at(10)) is None

    def test_find_series_conflicts_returns_first_blocked(self, app, daycare, client_user, child, now):
        from models.reservation import create_single
        from models.reservation_availability import find_series_conflicts

        create_single(client_user, daycare, child, at(10, day=18), now=now)
        occurrences = [at(10, day=4), at(10, day=11), at(10, 15, day=18), at(10, day=25)]

        assert find_series_conflicts(daycare, occurrences) == at(10, 15, day=18)
        assert find_series_conflicts(daycare, occurrences[:2]) is None

    def test_unique_index_rejects_identical_active_slot(self, app, daycare, client_user, child, now):
        """Two active timed rows can never share an instant, even bypassing the guard."""
        from database import get_db
        from models.reservation import create_single

        create_single(client_user, daycare, child, at(10), now=now)

        db = get_db()
        with pytest.raises(sqlite3.IntegrityError):
            with db:
                db.execute('''
                    INSERT INTO reservations (provider_id, client_id, type, status, scheduled_at, duration)
                    VALUES (?, ?, 'TOUR', 'PENDING', '2025-06-04 10:00:00', 30)
                ''', (daycare, client_user))
