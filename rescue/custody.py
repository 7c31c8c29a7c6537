# rescue/custody.py
"""
Proof-of-custody ledger.

Pickup and delivery each need photographic evidence. The CustodyRecord and the
donation's state change are written in one transaction, so there is never a
``picked_up`` donation without its pickup record or the other way round.
"""

import logging

from django.db import transaction

from . import capacity, expiry, state_machine
from .dispatch import active_mission
from .exceptions import DonationValidationError, InvalidTransition, MissingPhoto, NotAuthorized
from .models import CustodyRecord, Mission, VolunteerTrustScore
from .state_machine import Event

logger = logging.getLogger(__name__)


def _require_photo(photo_ref, kind):
    if not photo_ref or not str(photo_ref).strip():
        raise MissingPhoto(f'A {kind} photo is required to confirm this handover.')
    return str(photo_ref).strip()


def require_holder(donation, user):
    if user.is_staff:
        return
    if donation.assigned_volunteer_id is None or donation.assigned_volunteer_id != user.pk:
        raise NotAuthorized('Only the volunteer holding this mission can record custody.')


def _mission_for(donation, event):
    state_machine.next_status(donation.status, event)
    mission = active_mission(donation)
    if mission is None:
        raise InvalidTransition(donation.status, event, 'This donation has no active mission.')
    return mission


def record_pickup(donation, photo_ref, actor, notes=''):
    photo_ref = _require_photo(photo_ref, 'pickup')
    require_holder(donation, actor)
    mission = _mission_for(donation, Event.CONFIRM_PICKUP)

    current = expiry.now()
    with transaction.atomic():
        state_machine.apply(
            donation, Event.CONFIRM_PICKUP, actor=actor, details={'mission': mission.pk},
            pickup_photo=photo_ref, pickup_notes=notes, picked_up_at=current,
        )
        record = CustodyRecord.objects.create(
            donation=donation, mission=mission, kind=CustodyRecord.Kind.PICKUP,
            photo_ref=photo_ref, notes=notes, actor=actor, recorded_at=current,
        )

    logger.info("Pickup of donation %s recorded by user %s", donation.pk, actor.pk)
    return record


def record_delivery(donation, photo_ref, actor, notes=''):
    photo_ref = _require_photo(photo_ref, 'delivery')
    require_holder(donation, actor)
    mission = _mission_for(donation, Event.CONFIRM_DELIVERY)

    current = expiry.now()
    with transaction.atomic():
        state_machine.apply(
            donation, Event.CONFIRM_DELIVERY, actor=actor, details={'mission': mission.pk},
            delivery_photo=photo_ref, delivery_notes=notes, delivered_at=current,
        )
        record = CustodyRecord.objects.create(
            donation=donation, mission=mission, kind=CustodyRecord.Kind.DELIVERY,
            photo_ref=photo_ref, notes=notes, actor=actor, recorded_at=current,
        )
        Mission.objects.filter(pk=mission.pk).update(status=Mission.Status.DELIVERED, ended_at=current)
        trust, _ = VolunteerTrustScore.objects.select_for_update().get_or_create(volunteer=mission.volunteer)
        trust.completed_missions += 1
        trust.update_trust_score()
        trust.save()

    logger.info("Delivery of donation %s recorded by user %s", donation.pk, actor.pk)
    return record


def complete(donation, ngo, rating=None, review='', actor=None):
    """NGO acknowledges receipt of a delivered donation, optionally rating the volunteer."""
    if donation.claimed_by_id != ngo.pk:
        raise NotAuthorized('Only the NGO that claimed this donation can confirm receipt.')
    state_machine.next_status(donation.status, Event.COMPLETE)

    if rating in ('', None):
        rating = None
    else:
        try:
            rating = int(rating)
        except (TypeError, ValueError):
            rating = 0
        if not 1 <= rating <= 5:
            raise DonationValidationError('Rating must be between 1 and 5.', errors={'rating': 'Must be 1-5.'})

    volunteer = donation.assigned_volunteer
    claimed_at = donation.claimed_at
    with transaction.atomic():
        state_machine.apply(
            donation, Event.COMPLETE, actor=actor, details={'rating': rating},
            completed_at=expiry.now(), rating=rating, review=review or '',
        )
        capacity.release(ngo, donation.quantity, claimed_at)
        if rating is not None and volunteer is not None:
            trust, _ = VolunteerTrustScore.objects.select_for_update().get_or_create(volunteer=volunteer)
            trust.add_rating(rating)
            trust.update_trust_score()
            trust.save()

    logger.info("Donation %s completed by NGO %s", donation.pk, ngo.pk)
    return donation
