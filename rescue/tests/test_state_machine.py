# rescue/tests/test_state_machine.py
from datetime import timedelta

import pytest
from django.utils import timezone

from rescue import state_machine
from rescue.exceptions import Conflict, DonationValidationError, InvalidTransition, MissingPhoto, NotFound
from rescue.models import Donation, DonationEvent
from rescue.state_machine import TRANSITIONS, Event

from .factories import create_donation, fresh

Status = Donation.Status


def donation_fields(expires_in, window_end_in, window_start_in=timedelta(0)):
    now = timezone.now()
    return {
        'title': 'Sandwiches', 'quantity': 20, 'food_category': Donation.FoodCategory.PACKAGED,
        'pickup_address': 'MG Road', 'expiry_date': now + expires_in,
        'pickup_window_start': now + window_start_in, 'pickup_window_end': now + window_end_in,
    }


def test_create_starts_active_and_is_audited(donor):
    donation = state_machine.create(donor, actor=donor.user, **donation_fields(timedelta(hours=5), timedelta(hours=3)))

    assert donation.status == Status.ACTIVE
    assert donation.delivery_status is None
    assert donation.version == 0
    event = DonationEvent.objects.get(donation=donation)
    assert event.to_status == Status.ACTIVE


def test_window_ending_after_expiry_is_rejected(donor):
    with pytest.raises(DonationValidationError) as excinfo:
        state_machine.create(donor, **donation_fields(timedelta(hours=1), timedelta(hours=1, minutes=30)))

    assert 'pickup_window' in excinfo.value.context['errors']
    assert not Donation.objects.exists()


def test_window_ending_exactly_at_expiry_is_rejected(donor):
    with pytest.raises(DonationValidationError):
        state_machine.create(donor, **donation_fields(timedelta(hours=2), timedelta(hours=2)))


def test_expiry_in_the_past_is_rejected(donor):
    with pytest.raises(DonationValidationError) as excinfo:
        state_machine.create(donor, **donation_fields(-timedelta(minutes=1), timedelta(hours=1)))

    assert 'expiry_date' in excinfo.value.context['errors']


def test_inverted_window_is_rejected(donor):
    with pytest.raises(DonationValidationError):
        state_machine.create(donor, **donation_fields(timedelta(hours=5), timedelta(hours=1), timedelta(hours=2)))


def test_minimum_lead_time_is_configurable(donor, settings):
    settings.DONATION_MIN_HOURS_TO_EXPIRY = 2
    with pytest.raises(DonationValidationError) as excinfo:
        state_machine.create(donor, **donation_fields(timedelta(hours=1, minutes=30), timedelta(hours=1)))

    assert 'at least 2 hours' in excinfo.value.message


@pytest.mark.parametrize('status', Donation.TERMINAL_STATUSES)
def test_terminal_states_accept_no_event(status):
    for event in TRANSITIONS:
        with pytest.raises(InvalidTransition):
            state_machine.next_status(status, event)


def test_unknown_event_is_invalid():
    with pytest.raises(InvalidTransition):
        state_machine.next_status(Status.ACTIVE, 'teleport')


def test_illegal_event_never_writes(donation):
    with pytest.raises(InvalidTransition):
        state_machine.apply(donation, Event.ACCEPT)

    stored = fresh(donation)
    assert stored.status == Status.ACTIVE
    assert stored.version == 0
    assert not DonationEvent.objects.filter(donation=donation).exists()


def test_apply_bumps_version_and_records_event(donation):
    state_machine.apply(donation, Event.EXPIRE)

    stored = fresh(donation)
    assert stored.status == Status.EXPIRED
    assert stored.version == 1
    assert donation.version == 1
    event = DonationEvent.objects.get(donation=donation, event=Event.EXPIRE)
    assert (event.from_status, event.to_status) == (Status.ACTIVE, Status.EXPIRED)


def test_stale_snapshot_loses(donation):
    first, second = fresh(donation), fresh(donation)
    state_machine.apply(first, Event.CANCEL, cancelled_at=timezone.now())

    with pytest.raises(Conflict) as excinfo:
        state_machine.apply(second, Event.EXPIRE)

    assert excinfo.value.reason == Conflict.STALE_VERSION
    assert fresh(donation).status == Status.CANCELLED


def test_complete_requires_recorded_delivery_photo(donor, ngo):
    donation = create_donation(
        donor, status=Status.DELIVERED, claimed_by=ngo, claimed_at=timezone.now(),
        delivery_status=Donation.DeliveryStatus.DELIVERED,
    )
    with pytest.raises(MissingPhoto):
        state_machine.apply(donation, Event.COMPLETE)

    assert fresh(donation).status == Status.DELIVERED


def test_confirm_pickup_requires_photo_change(donor):
    donation = create_donation(donor, status=Status.AT_PICKUP)
    with pytest.raises(MissingPhoto):
        state_machine.apply(donation, Event.CONFIRM_PICKUP)


def test_leaving_claimed_states_clears_the_claim(donor, ngo):
    donation = create_donation(donor, status=Status.ASSIGNED, claimed_by=ngo, claimed_at=timezone.now())
    state_machine.apply(donation, Event.REJECT, rejected_by=ngo)

    stored = fresh(donation)
    assert stored.status == Status.REJECTED
    assert stored.claimed_by is None
    assert stored.rejected_by == ngo


def test_load_missing_donation(db):
    with pytest.raises(NotFound):
        state_machine.load(999999)
