# rescue/state_machine.py
"""
Donation state machine.

Owns the canonical ``status`` / ``delivery_status`` pair of a donation. Every
mutation is a named event validated against ``TRANSITIONS`` and written with a
versioned compare-and-swap, so two actors racing on the same donation can
never both succeed while unrelated donations never wait on each other.
"""

import logging
from datetime import timedelta

from django.conf import settings
from django.db import transaction
from django.db.models import F

from . import expiry
from .exceptions import Conflict, DonationValidationError, InvalidTransition, MissingPhoto, NotFound
from .models import Donation, DonationEvent

logger = logging.getLogger(__name__)

Status = Donation.Status
DeliveryStatus = Donation.DeliveryStatus


class Event:
    CLAIM = 'claim'
    ACCEPT = 'accept'
    ARRIVE_AT_PICKUP = 'arrive_at_pickup'
    CONFIRM_PICKUP = 'confirm_pickup'
    ARRIVE_AT_DELIVERY = 'arrive_at_delivery'
    CONFIRM_DELIVERY = 'confirm_delivery'
    COMPLETE = 'complete'
    REJECT = 'reject'
    EXPIRE = 'expire'
    CANCEL_MISSION = 'cancel_mission'
    CANCEL = 'cancel'


# event -> (legal source states, target state)
TRANSITIONS = {
    Event.CLAIM: ({Status.ACTIVE}, Status.ASSIGNED),
    Event.ACCEPT: ({Status.ASSIGNED}, Status.ACCEPTED),
    Event.ARRIVE_AT_PICKUP: ({Status.ACCEPTED}, Status.AT_PICKUP),
    Event.CONFIRM_PICKUP: ({Status.AT_PICKUP}, Status.PICKED_UP),
    Event.ARRIVE_AT_DELIVERY: ({Status.PICKED_UP}, Status.AT_DELIVERY),
    Event.CONFIRM_DELIVERY: ({Status.AT_DELIVERY}, Status.DELIVERED),
    Event.COMPLETE: ({Status.DELIVERED}, Status.COMPLETED),
    Event.REJECT: ({Status.ACTIVE, Status.ASSIGNED}, Status.REJECTED),
    Event.EXPIRE: ({Status.ACTIVE}, Status.EXPIRED),
    Event.CANCEL_MISSION: (set(Donation.MISSION_STATUSES), Status.ASSIGNED),
    Event.CANCEL: ({Status.ACTIVE, Status.ASSIGNED}, Status.CANCELLED),
}

# Logistics sub-state implied by each claim/fulfillment status while a volunteer holds the mission
DELIVERY_STATUS_FOR = {
    Status.ACCEPTED: DeliveryStatus.PENDING_PICKUP,
    Status.AT_PICKUP: DeliveryStatus.AT_PICKUP,
    Status.PICKED_UP: DeliveryStatus.PICKED_UP,
    Status.AT_DELIVERY: DeliveryStatus.ARRIVED_AT_DELIVERY,
    Status.DELIVERED: DeliveryStatus.DELIVERED,
}

# Delivery sub-state a volunteer may request -> event that produces it
EVENT_FOR_DELIVERY_STATUS = {
    DeliveryStatus.AT_PICKUP: Event.ARRIVE_AT_PICKUP,
    DeliveryStatus.PICKED_UP: Event.CONFIRM_PICKUP,
    DeliveryStatus.ARRIVED_AT_DELIVERY: Event.ARRIVE_AT_DELIVERY,
    DeliveryStatus.DELIVERED: Event.CONFIRM_DELIVERY,
}


def next_status(current, event):
    try:
        sources, target = TRANSITIONS[event]
    except KeyError:
        raise InvalidTransition(current, event, f"Unknown event '{event}'.")
    if current not in sources:
        raise InvalidTransition(current, event)
    return target


def can_apply(current, event):
    sources, _ = TRANSITIONS[event]
    return current in sources


def _check_guards(donation, event, changes):
    if event == Event.CONFIRM_PICKUP and not changes.get('pickup_photo'):
        raise MissingPhoto('A pickup photo is required before the food can be marked as picked up.')
    if event == Event.CONFIRM_DELIVERY and not changes.get('delivery_photo'):
        raise MissingPhoto('A delivery photo is required before the food can be marked as delivered.')
    if event == Event.COMPLETE and not donation.delivery_photo:
        raise MissingPhoto('This donation has no delivery photo on record.')


def validate_schedule(expiry_date, window_start, window_end, current):
    """Reject donations that are already unsafe or cannot be picked up before they expire."""
    errors = {}
    if expiry.is_expired(expiry_date, current):
        errors['expiry_date'] = 'Expiry date must be in the future.'
    elif settings.DONATION_MIN_HOURS_TO_EXPIRY and \
            expiry.time_remaining(expiry_date, current) < timedelta(hours=settings.DONATION_MIN_HOURS_TO_EXPIRY):
        errors['expiry_date'] = (
            f'Food items must be valid for at least {settings.DONATION_MIN_HOURS_TO_EXPIRY:g} hours before expiry for safety.'
        )

    if window_end <= window_start:
        errors['pickup_window'] = 'Pickup window must end after it starts.'
    elif expiry.pickup_window_conflict(window_end, expiry_date):
        errors['pickup_window'] = 'Pickup window must end before the food expires.'

    if errors:
        raise DonationValidationError(' '.join(errors.values()), errors=errors)


def create(donor, actor=None, **fields):
    current = expiry.now()
    validate_schedule(fields['expiry_date'], fields['pickup_window_start'], fields['pickup_window_end'], current)
    with transaction.atomic():
        donation = Donation.objects.create(donor=donor, status=Status.ACTIVE, **fields)
        DonationEvent.objects.create(
            donation=donation, event='post', from_status='', to_status=Status.ACTIVE, actor=actor,
        )
    logger.info("Donation %s posted by donor %s", donation.pk, donor.pk)
    return donation


def load(donation_id):
    try:
        return Donation.objects.select_related('donor', 'claimed_by', 'assigned_volunteer').get(pk=donation_id)
    except (Donation.DoesNotExist, ValueError, TypeError):
        raise NotFound(f"Donation {donation_id} not found.")


def apply(donation, event, actor=None, details=None, **changes):
    """
    Apply ``event`` to the donation snapshot and persist it with a CAS on its version.

    Raises InvalidTransition when the event is illegal from the snapshot's state,
    MissingPhoto when a custody guard fails, and Conflict(stale_version) when
    another actor changed the donation after the snapshot was read.
    """
    source = donation.status
    target = next_status(source, event)
    _check_guards(donation, event, changes)

    changes['status'] = target
    if target in DELIVERY_STATUS_FOR:
        changes['delivery_status'] = DELIVERY_STATUS_FOR[target]
    if event == Event.CANCEL_MISSION:
        changes['delivery_status'] = None
        changes['assigned_volunteer'] = None
    if target not in Donation.CLAIMED_STATUSES:
        changes['claimed_by'] = None
    changes['updated_at'] = expiry.now()

    with transaction.atomic():
        updated = Donation.objects.filter(pk=donation.pk, version=donation.version).update(
            version=F('version') + 1, **changes
        )
        if not updated:
            logger.info("Lost race applying %s to donation %s at version %s", event, donation.pk, donation.version)
            raise Conflict(Conflict.STALE_VERSION, 'This donation was updated by someone else. Please refresh.')
        DonationEvent.objects.create(
            donation=donation, event=event, from_status=source, to_status=target,
            actor=actor, details=details or {},
        )

    for field, value in changes.items():
        setattr(donation, field, value)
    donation.version += 1
    logger.debug("Donation %s: %s -> %s via %s", donation.pk, source, target, event)
    return donation
