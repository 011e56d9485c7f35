"""
Tests for the provider waitlist: joining, leaving, reordering and promotion.
"""

import random

import pytest


def join_as(provider_id, name, now=None):
    """Join with a name-derived email address."""
    from models.waitlist import join
    return join({
        'provider_id': provider_id,
        'client_name': name,
        'client_email': f'{name.lower()}@example.com',
        'desired_date': '2025-07-01',
    }, now=now)


def active_names(provider_id):
    """Names of active entries in position order."""
    from models.waitlist import get_waitlist_for_provider
    entries = get_waitlist_for_provider(provider_id)['entries']
    return [e['client_name'] for e in entries if e['notified_at'] is None]


def positions(provider_id):
    from models.waitlist import get_waitlist_for_provider
    entries = get_waitlist_for_provider(provider_id)['entries']
    return [e['position'] for e in entries if e['notified_at'] is None]


@pytest.fixture
def four_waiting(app, daycare, now):
    """Ana, Ben, Cid and Dee waiting at positions 1..4."""
    return [join_as(daycare, name, now)['id'] for name in ('Ana', 'Ben', 'Cid', 'Dee')]


class TestJoin:
    """Tests for joining the waitlist."""

    def test_positions_grow_by_one(self, app, daycare, now):
        first = join_as(daycare, 'Ana', now)
        second = join_as(daycare, 'Ben', now)

        assert first['position'] == 1
        assert second['position'] == 2
        assert second['notified_at'] is None
        assert second['provider_name'] == 'Sunny Days'

    def test_email_normalized_and_duplicates_rejected(self, app, daycare, now):
        from models.waitlist import join
        from utils.errors import ValidationError

        entry = join({
            'provider_id': daycare, 'client_name': 'Ana',
            'client_email': ' Ana@Example.com ', 'desired_date': '2025-07-01',
        }, now=now)
        assert entry['client_email'] == 'ana@example.com'

        with pytest.raises(ValidationError):
            join_as(daycare, 'Ana', now)

    def test_same_email_may_wait_at_two_providers(self, app, daycare, medical, now):
        join_as(daycare, 'Ana', now)
        assert join_as(medical, 'Ana', now)['position'] == 1

    @pytest.mark.parametrize('changes', [
        {'client_email': 'not-an-email'},
        {'client_name': '   '},
        {'desired_date': None},
        {'desired_date': '01/07/2025'},
        {'client_phone': 'call me'},
    ])
    def test_invalid_data(self, app, daycare, now, changes):
        from models.waitlist import join
        from utils.errors import ValidationError

        data = {
            'provider_id': daycare, 'client_name': 'Ana',
            'client_email': 'ana@example.com', 'desired_date': '2025-07-01',
        }
        data.update(changes)
        with pytest.raises(ValidationError):
            join(data, now=now)

    def test_unknown_provider(self, app, now):
        from utils.errors import NotFound

        with pytest.raises(NotFound):
            join_as(9999, 'Ana', now)

    def test_join_rate_limited_per_email(self, app, daycare, medical, now):
        from models.provider import create_provider
        from utils.errors import TooManyRequests

        app.config['RATELIMIT_ENABLED'] = True
        app.config['RATE_LIMITS'] = {'waitlist': (2, 3600)}
        third = create_provider('Little Oaks', 'daycare', timezone='UTC')

        join_as(daycare, 'Ana', now)
        join_as(medical, 'Ana', now)
        with pytest.raises(TooManyRequests) as exc:
            join_as(third, 'Ana', now)
        assert exc.value.retry_after == 3600


class TestLeaveAndRemove:
    """Tests for leaving and removing entries."""

    def test_remove_middle_entry_renumbers(self, app, daycare, owner, four_waiting):
        """Removing position 2 leaves [1,2,3] in the same order."""
        from models.waitlist import remove

        remove(owner, four_waiting[1])

        assert active_names(daycare) == ['Ana', 'Cid', 'Dee']
        assert positions(daycare) == [1, 2, 3]

    def test_leave_own_entry(self, app, daycare, four_waiting):
        from models.waitlist import leave, get_waitlist_position

        leave(daycare, 'ANA@example.com')

        assert active_names(daycare) == ['Ben', 'Cid', 'Dee']
        assert get_waitlist_position(daycare, 'ana@example.com') is None
        assert get_waitlist_position(daycare, 'dee@example.com') == {
            'entry_id': four_waiting[3], 'position': 3, 'total': 3
        }

    def test_leave_when_not_waiting(self, app, daycare, now):
        from models.waitlist import leave
        from utils.errors import NotFound

        with pytest.raises(NotFound):
            leave(daycare, 'ghost@example.com')

    def test_remove_notified_entry_keeps_positions(self, app, daycare, owner, four_waiting, now):
        from models.waitlist import promote, remove

        promote(owner, four_waiting[0], now=now)
        remove(owner, four_waiting[0])

        assert positions(daycare) == [1, 2, 3]

    def test_remove_requires_manager(self, app, daycare, other_client, four_waiting):
        from models.waitlist import remove
        from utils.errors import Unauthorized

        with pytest.raises(Unauthorized):
            remove(other_client, four_waiting[0])


class TestReorder:
    """Tests for moving entries."""

    def test_move_last_to_front(self, app, daycare, owner, four_waiting):
        from models.waitlist import reorder

        moved = reorder(owner, four_waiting[3], 1)

        assert moved['position'] == 1
        assert active_names(daycare) == ['Dee', 'Ana', 'Ben', 'Cid']
        assert positions(daycare) == [1, 2, 3, 4]

    def test_move_front_down(self, app, daycare, owner, four_waiting):
        from models.waitlist import reorder

        reorder(owner, four_waiting[0], 3)

        assert active_names(daycare) == ['Ben', 'Cid', 'Ana', 'Dee']
        assert positions(daycare) == [1, 2, 3, 4]

    def test_same_position_is_noop(self, app, daycare, owner, four_waiting):
        from models.waitlist import reorder

        reorder(owner, four_waiting[1], 2)
        assert active_names(daycare) == ['Ana', 'Ben', 'Cid', 'Dee']

    @pytest.mark.parametrize('position', [0, 5, 'first'])
    def test_out_of_range(self, app, daycare, owner, four_waiting, position):
        from models.waitlist import reorder
        from utils.errors import ValidationError

        with pytest.raises(ValidationError):
            reorder(owner, four_waiting[0], position)
        assert active_names(daycare) == ['Ana', 'Ben', 'Cid', 'Dee']

    def test_notified_entry_cannot_move(self, app, daycare, owner, four_waiting, now):
        from models.waitlist import promote, reorder
        from utils.errors import InvalidTransition

        promote(owner, four_waiting[0], now=now)
        with pytest.raises(InvalidTransition):
            reorder(owner, four_waiting[0], 1)

    def test_update_notes_only(self, app, daycare, owner, four_waiting):
        from models.waitlist import update_entry

        entry = update_entry(owner, four_waiting[2], notes='Prefers mornings')

        assert entry['notes'] == 'Prefers mornings'
        assert entry['position'] == 3

    def test_plain_staff_cannot_reorder(self, app, daycare, four_waiting):
        from models.provider import add_staff
        from models.user import create_user
        from models.waitlist import reorder
        from utils.errors import Unauthorized

        assistant = create_user('assistant@sunnydays.example', 'secret123', role='PROVIDER')
        add_staff(daycare, assistant, 'staff')

        with pytest.raises(Unauthorized):
            reorder(assistant, four_waiting[3], 1)


class TestPromote:
    """Tests for notifying entries that a spot is free."""

    def test_promote_marks_and_renumbers(self, app, daycare, owner, four_waiting, now):
        from models.waitlist import promote

        result = promote(owner, four_waiting[1], now=now)

        assert result['entry']['notified_at'] == now
        assert result['notification']['delivered'] is True
        assert result['notification']['channels'] == ['email']
        assert active_names(daycare) == ['Ana', 'Cid', 'Dee']
        assert positions(daycare) == [1, 2, 3]

    def test_promote_is_once_only(self, app, daycare, owner, four_waiting, now):
        from models.waitlist import promote
        from utils.errors import InvalidTransition

        promote(owner, four_waiting[0], now=now)
        with pytest.raises(InvalidTransition):
            promote(owner, four_waiting[0], now=now)

    def test_delivery_failure_keeps_promotion(self, app, daycare, owner, four_waiting, now):
        from models.waitlist import promote, get_entry
        from utils.errors import DeliveryFailure
        from utils.notifications import register_notifier

        def broken(recipient, template_kind, message, payload):
            raise DeliveryFailure('mailer offline')

        register_notifier(app, broken)
        result = promote(owner, four_waiting[0], now=now)

        assert result['notification']['delivered'] is False
        assert get_entry(four_waiting[0])['notified_at'] == now
        assert positions(daycare) == [1, 2, 3]

    def test_notification_message(self, app, daycare, owner, four_waiting, now):
        from models.waitlist import promote
        from utils.notifications import register_notifier

        sent = []

        def capture(recipient, template_kind, message, payload):
            sent.append((recipient, template_kind, message))
            return {'channels': ['test']}

        register_notifier(app, capture)
        promote(owner, four_waiting[0], now=now)

        assert sent == [(
            'ana@example.com',
            'waitlist_spot_available',
            {
                'title': 'A spot is available!',
                'body': 'A spot is now available with Sunny Days. Book soon!',
            },
        )]

    def test_rejoin_after_promotion(self, app, daycare, owner, four_waiting, now):
        from models.waitlist import promote

        promote(owner, four_waiting[0], now=now)
        assert join_as(daycare, 'Ana', now)['position'] == 4

    def test_promote_next(self, app, daycare, owner, four_waiting, now):
        from models.waitlist import promote_next

        assert promote_next(owner, daycare, now=now)['entry']['id'] == four_waiting[0]
        assert promote_next(owner, daycare, now=now)['entry']['id'] == four_waiting[1]
        assert active_names(daycare) == ['Cid', 'Dee']

    def test_promote_next_on_empty_list(self, app, daycare, owner, now):
        from models.waitlist import promote_next
        from utils.errors import NotFound

        with pytest.raises(NotFound):
            promote_next(owner, daycare, now=now)

    def test_promote_requires_manager(self, app, daycare, other_client, four_waiting, now):
        from models.waitlist import promote
        from utils.errors import Unauthorized

        with pytest.raises(Unauthorized):
            promote(other_client, four_waiting[0], now=now)


class TestWaitlistViews:
    """Tests for listings and stats."""

    def test_stats_and_ordering(self, app, daycare, owner, four_waiting, now):
        from models.waitlist import promote, get_waitlist_for_provider

        promote(owner, four_waiting[2], now=now)
        waitlist = get_waitlist_for_provider(daycare)

        assert waitlist['stats'] == {'active': 3, 'notified': 1, 'total': 4}
        assert [e['client_name'] for e in waitlist['entries']] == ['Ana', 'Ben', 'Dee', 'Cid']

    def test_client_entries_across_providers(self, app, daycare, medical, now):
        from models.waitlist import get_client_waitlist_entries

        join_as(daycare, 'Ana', now)
        join_as(medical, 'Ana', now)

        entries = get_client_waitlist_entries('ana@example.com')
        assert {e['provider_name'] for e in entries} == {'Sunny Days', 'Family Clinic'}

    def test_serialize_entry(self, app, daycare, owner, four_waiting, now):
        from models.waitlist import promote, get_entry, serialize_entry

        promote(owner, four_waiting[0], now=now)

        assert serialize_entry(get_entry(four_waiting[0]))['is_active'] is False
        assert serialize_entry(get_entry(four_waiting[1]))['is_active'] is True
        assert serialize_entry(get_entry(four_waiting[0]))['notified_at'] == now.isoformat()


class TestContiguity:
    """Positions stay 1..N under arbitrary operation sequences."""

    @pytest.mark.parametrize('seed', [1, 7, 42])
    def test_random_operations(self, app, daycare, owner, now, seed):
        from models.waitlist import (
            get_waitlist_for_provider, leave, promote, remove, reorder,
            check_positions_contiguous
        )

        rng = random.Random(seed)
        counter = 0

        for _ in range(60):
            entries = get_waitlist_for_provider(daycare)['entries']
            active = [e for e in entries if e['notified_at'] is None]
            operation = rng.choice(['join', 'join', 'leave', 'reorder', 'promote', 'remove'])

            if operation == 'join' or not active:
                counter += 1
                join_as(daycare, f'Client{counter}', now)
            elif operation == 'leave':
                leave(daycare, rng.choice(active)['client_email'])
            elif operation == 'reorder':
                reorder(owner, rng.choice(active)['id'], rng.randint(1, len(active)))
            elif operation == 'promote':
                promote(owner, rng.choice(active)['id'], now=now)
            else:
                remove(owner, rng.choice(entries)['id'])

            assert check_positions_contiguous(daycare), operation
