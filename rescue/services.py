# rescue/services.py
"""
Public operations of the coordination core.

Each function takes identifiers plus the acting user or profile, runs one
lifecycle operation through the state machine, and returns plain dicts ready
for JsonResponse. Views are thin adapters over this module; the management
command and tests call it directly.
"""

import logging

from django.conf import settings
from django.db import transaction
from django.db.models import Count, Q, Sum

from . import capacity, claims, custody, dispatch, expiry, state_machine
from .exceptions import Conflict, DonationValidationError, InvalidTransition, NotAuthorized
from .models import Donation, Mission, NGOProfile, User, VolunteerTrustScore
from .state_machine import EVENT_FOR_DELIVERY_STATUS, Event
from .utils import notifications
from .utils.route_optimization import Location

logger = logging.getLogger(__name__)

Status = Donation.Status
DeliveryStatus = Donation.DeliveryStatus


# --- SERIALIZATION ---

def _iso(value):
    return value.isoformat() if value else None


def serialize_donation(donation, current=None):
    current = current or expiry.now()
    remaining = expiry.time_remaining(donation.expiry_date, current)
    return {
        'id': donation.pk,
        'title': donation.title,
        'description': donation.description,
        'quantity': donation.quantity,
        'estimated_weight_kg': donation.estimated_weight_kg,
        'food_category': donation.food_category,
        'storage_req': donation.storage_req or None,
        'perishability': donation.perishability,
        'allergens': donation.allergens,
        'dietary_tags': donation.dietary_tags,
        'donor': {'id': donation.donor_id, 'organization_name': donation.donor.organization_name},
        'pickup_address': donation.pickup_address,
        'coordinates': donation.coordinates,
        'expiry_date': _iso(donation.expiry_date),
        'pickup_window_start': _iso(donation.pickup_window_start),
        'pickup_window_end': _iso(donation.pickup_window_end),
        'urgency': expiry.urgency(donation.expiry_date, current),
        'minutes_remaining': max(int(remaining.total_seconds() // 60), 0),
        'status': donation.status,
        'delivery_status': donation.delivery_status,
        'version': donation.version,
        'claimed_by': donation.claimed_by_id,
        'claimed_at': _iso(donation.claimed_at),
        'ngo_coordinates': donation.ngo_coordinates,
        'ngo_address': donation.ngo_address,
        'assigned_volunteer': donation.assigned_volunteer_id,
        'volunteer_coordinates': donation.volunteer_coordinates,
        'pickup_photo': donation.pickup_photo or None,
        'delivery_photo': donation.delivery_photo or None,
        'picked_up_at': _iso(donation.picked_up_at),
        'delivered_at': _iso(donation.delivered_at),
        'completed_at': _iso(donation.completed_at),
        'rejection_category': donation.rejection_category or None,
        'rejection_reason': donation.rejection_reason or None,
        'rating': donation.rating,
        'review': donation.review,
        'created_at': _iso(donation.created_at),
    }


def serialize_volunteer(volunteer, distance_km=None):
    return {
        'id': volunteer.pk,
        'full_name': volunteer.full_name,
        'vehicle_type': volunteer.vehicle_type,
        'max_weight_kg': volunteer.max_weight_kg,
        'coordinates': volunteer.coordinates,
        'distance_km': round(distance_km, 2) if distance_km not in (None, float('inf')) else None,
    }


def serialize_mission(mission, current=None):
    return {
        'id': mission.pk,
        'status': mission.status,
        'volunteer': {'id': mission.volunteer_id, 'full_name': mission.volunteer.full_name},
        'accepted_at': _iso(mission.accepted_at),
        'ended_at': _iso(mission.ended_at),
        'cancel_reason': mission.cancel_reason or None,
        'cancel_notes': mission.cancel_notes or None,
        'donation': serialize_donation(mission.donation, current),
    }


def _missions():
    return Mission.objects.select_related(
        'volunteer', 'donation__donor', 'donation__claimed_by', 'donation__assigned_volunteer',
    )


# --- MATCHING ---

def unmet_need(ngo):
    return max(ngo.daily_capacity - capacity.units_claimed(ngo), 0)


def suitability_score(distance_km, need, daily_capacity, is_urgent_need=False):
    """
    Match quality between an NGO and a donation on a 0-100 scale:
    60% proximity, 40% share of the day's capacity still unmet, +20% for urgent need.
    """
    score = (1 / (distance_km + 1)) * 100 * 0.6
    if daily_capacity:
        score += (need / daily_capacity) * 100 * 0.4
    if is_urgent_need:
        score *= 1.2
    return round(min(score, 100), 2)


# --- DONOR OPERATIONS ---

def post_donation(donor, actor=None, **fields):
    if fields.get('latitude') is None or fields.get('longitude') is None:
        fields['latitude'], fields['longitude'] = donor.latitude, donor.longitude
    fields.setdefault('pickup_address', donor.address)

    with transaction.atomic():
        donation = state_machine.create(donor, actor=actor, **fields)
        ngos = NGOProfile.objects.select_related('user')
        if donation.storage_req:
            ngos = [ngo for ngo in ngos if not ngo.storage_facilities or donation.storage_req in ngo.storage_facilities]
        for ngo in ngos:
            notifications.notify(
                ngo.user, f'{donor.organization_name} posted "{donation.title}" ({donation.quantity} units).',
                notifications.Type.DONATION_CREATED, donation,
            )
    return serialize_donation(donation)


def get_donation(donation_id):
    return serialize_donation(state_machine.load(donation_id))


def cancel_donation(donation_id, user):
    donation = state_machine.load(donation_id)
    donor_user, ngo = donation.donor.user, donation.claimed_by
    with transaction.atomic():
        claims.cancel(donation, user)
        recipients = [u for u in (donor_user, ngo.user if ngo else None) if u is not None and u.pk != user.pk]
        notifications.donation_cancelled(donation, recipients)
    return serialize_donation(donation)


# --- NGO OPERATIONS ---

def expire_overdue(current=None):
    """
    Expire every active donation past its expiry and cancel claimed donations
    that expired before any volunteer took them. Each row goes through the same
    version CAS as actor operations, so a donation claimed after it was read is
    left alone.
    """
    current = current or expiry.now()
    expired = cancelled = 0

    overdue = Donation.objects.filter(status=Status.ACTIVE, expiry_date__lte=current).select_related('donor__user')
    for donation in overdue:
        try:
            with transaction.atomic():
                state_machine.apply(donation, Event.EXPIRE, details={'reason': 'expired'})
                notifications.donation_expired(donation)
        except (Conflict, InvalidTransition):
            logger.info("Donation %s changed before it could be expired", donation.pk)
            continue
        expired += 1

    stranded = Donation.objects.filter(
        status=Status.ASSIGNED, assigned_volunteer__isnull=True, expiry_date__lte=current,
    ).select_related('donor__user', 'claimed_by__user')
    for donation in stranded:
        ngo, claimed_at = donation.claimed_by, donation.claimed_at
        try:
            with transaction.atomic():
                state_machine.apply(
                    donation, Event.CANCEL, details={'reason': 'expired_before_pickup'}, cancelled_at=current,
                )
                capacity.release(ngo, donation.quantity, claimed_at)
                notifications.donation_expired(donation, ngo)
        except (Conflict, InvalidTransition):
            logger.info("Donation %s changed before it could be cancelled for expiry", donation.pk)
            continue
        cancelled += 1

    if expired or cancelled:
        logger.info("Expiry sweep: %s expired, %s claimed donations cancelled", expired, cancelled)
    return {'expired': expired, 'cancelled': cancelled}


def list_feed(ngo):
    """
    Active donations this NGO can store, nearest first when the NGO has a location,
    otherwise newest first. Overdue donations are expired before reading.
    """
    current = expiry.now()
    expire_overdue(current)

    donations = Donation.objects.filter(status=Status.ACTIVE, expiry_date__gt=current).select_related('donor')
    if ngo.storage_facilities:
        donations = donations.filter(Q(storage_req='') | Q(storage_req__in=ngo.storage_facilities))
    donations = list(donations.order_by('-created_at'))

    usage = capacity.utilization(ngo)
    need = unmet_need(ngo)
    origin = Location.from_coordinates(ngo.coordinates)

    results = []
    for donation in donations:
        item = serialize_donation(donation, current)
        if origin.has_coordinates:
            distance = origin.distance_to(Location.from_coordinates(donation.coordinates))
            item['distance_km'] = round(distance, 2) if distance != float('inf') else None
            item['suitability_score'] = (
                suitability_score(distance, need, ngo.daily_capacity, ngo.is_urgent_need)
                if distance != float('inf') else 0.0
            )
        results.append(item)

    if origin.has_coordinates:
        results.sort(key=lambda d: (d['distance_km'] is None, d['distance_km'] or 0))

    return {
        'donations': results,
        'capacity_warning': usage['capacity_warning'],
        'near_limit': usage['near_limit'],
        'utilization': usage,
        'count': len(results),
    }


def claim_donation(donation_id, ngo, user=None):
    donation = state_machine.load(donation_id)
    with transaction.atomic():
        projected = claims.claim(donation, ngo, actor=user)
        notifications.donation_claimed(donation)
        notifications.mission_available(donation, dispatch.offer(donation))
    usage = capacity.utilization(ngo)
    return {
        'donation': serialize_donation(donation),
        'utilization': usage,
        'capacity_warning': usage['capacity_warning'] or projected > 1.0,
    }


def reject_donation(donation_id, ngo, category=None, reason='', user=None):
    donation = state_machine.load(donation_id)
    with transaction.atomic():
        claims.reject(donation, ngo, category=category, reason=reason, actor=user)
        notifications.donation_rejected(donation)
    return serialize_donation(donation)


def offer_mission(donation_id, ngo):
    donation = state_machine.load(donation_id)
    if donation.claimed_by_id != ngo.pk:
        raise NotAuthorized('Only the NGO that claimed this donation can see its volunteer offers.')
    pickup = Location.from_coordinates(donation.coordinates)
    return [
        serialize_volunteer(v, pickup.distance_to(Location.from_coordinates(v.coordinates)))
        for v in dispatch.offer(donation)
    ]


def complete_donation(donation_id, ngo, rating=None, review='', user=None):
    donation = state_machine.load(donation_id)
    with transaction.atomic():
        custody.complete(donation, ngo, rating=rating, review=review, actor=user)
        notifications.donation_completed(donation)
    return serialize_donation(donation)


def list_claimed(ngo, status=None):
    """Donations this NGO has claimed, most recently updated first."""
    donations = Donation.objects.filter(claimed_by=ngo).select_related('donor', 'claimed_by', 'assigned_volunteer')
    if status:
        donations = donations.filter(status=status)
    current = expiry.now()
    return [serialize_donation(d, current) for d in donations.order_by('-updated_at', '-pk')]


# --- VOLUNTEER OPERATIONS ---

def list_available_missions(volunteer):
    current = expiry.now()
    expire_overdue(current)
    return [serialize_donation(d, current) for d in dispatch.list_available_missions(volunteer)]


def volunteer_missions(volunteer):
    """The volunteer's held missions and its ended ones, newest first."""
    current = expiry.now()
    active, history = [], []
    for mission in _missions().filter(volunteer=volunteer).order_by('-accepted_at', '-pk'):
        bucket = active if mission.status == Mission.Status.ACTIVE else history
        bucket.append(serialize_mission(mission, current))
    return {'active': active, 'history': history}


def accept_mission(donation_id, volunteer, user=None):
    donation = state_machine.load(donation_id)
    with transaction.atomic():
        mission = dispatch.accept(donation, volunteer, actor=user)
        notifications.mission_assigned(donation, volunteer)
    return {'donation': serialize_donation(donation), 'mission': mission.pk}


def confirm_pickup(donation_id, user, photo_ref, notes=''):
    donation = state_machine.load(donation_id)
    custody.record_pickup(donation, photo_ref, user, notes=notes)
    return serialize_donation(donation)


def confirm_delivery(donation_id, user, photo_ref, notes=''):
    donation = state_machine.load(donation_id)
    with transaction.atomic():
        custody.record_delivery(donation, photo_ref, user, notes=notes)
        notifications.donation_delivered(donation)
    return serialize_donation(donation)


def update_delivery_status(donation_id, user, delivery_status, photo_ref=None, notes=''):
    """
    Advance the delivery sub-state. Photo-gated targets go through the custody
    ledger; ``pending_pickup`` is entered only by accepting a mission.
    """
    if delivery_status == DeliveryStatus.PICKED_UP:
        return confirm_pickup(donation_id, user, photo_ref, notes)
    if delivery_status == DeliveryStatus.DELIVERED:
        return confirm_delivery(donation_id, user, photo_ref, notes)

    donation = state_machine.load(donation_id)
    if delivery_status == DeliveryStatus.PENDING_PICKUP:
        raise InvalidTransition(donation.status, delivery_status, 'A mission returns to pending pickup only by being accepted.')
    event = EVENT_FOR_DELIVERY_STATUS.get(delivery_status)
    if event is None:
        raise DonationValidationError(
            f"Unknown delivery status '{delivery_status}'.",
            errors={'status': f"Choose one of: {', '.join(DeliveryStatus.values)}."},
        )
    custody.require_holder(donation, user)
    state_machine.apply(donation, event, actor=user)
    return serialize_donation(donation)


def cancel_mission(donation_id, user, reason, notes=''):
    donation = state_machine.load(donation_id)
    with transaction.atomic():
        volunteer = dispatch.cancel(donation, user, reason, notes=notes)
        notifications.mission_cancelled(donation, volunteer, dict(Mission.CancelReason.choices)[reason])
        others = [v for v in dispatch.offer(donation) if v.pk != volunteer.pk]
        notifications.mission_available(donation, others)
    return serialize_donation(donation)


def get_optimized_route(donation_id, user):
    donation = state_machine.load(donation_id)
    is_holder = donation.assigned_volunteer_id is not None and donation.assigned_volunteer_id == user.pk
    is_claimer = donation.claimed_by_id is not None and donation.claimed_by_id == user.pk
    previewing = (
        user.user_type == User.UserType.VOLUNTEER
        and donation.status == Status.ASSIGNED and donation.assigned_volunteer_id is None
    )
    if not (is_holder or is_claimer or previewing or user.is_staff):
        raise NotAuthorized('You are not part of this mission.')

    volunteer = user.volunteer_profile if previewing else None
    return dispatch.build_route(donation, volunteer=volunteer)


# --- ADMIN ---

def active_missions():
    """Every mission currently held by a volunteer, oldest acceptance first."""
    current = expiry.now()
    missions = _missions().filter(status=Mission.Status.ACTIVE).order_by('accepted_at', 'pk')
    return [serialize_mission(m, current) for m in missions]


# --- STATS ---

def donor_stats(donor):
    donations = Donation.objects.filter(donor=donor)
    by_status = dict(donations.order_by().values_list('status').annotate(total=Count('pk')))
    total = sum(by_status.values())
    completed = by_status.get(Status.COMPLETED, 0)
    meals_saved = donations.filter(status=Status.COMPLETED).aggregate(total=Sum('quantity'))['total'] or 0
    return {
        'total_donations': total,
        'completed_donations': completed,
        'acceptance_rate': round(completed / total * 100, 2) if total else 0.0,
        'meals_saved': meals_saved,
        'by_status': by_status,
    }


def ngo_stats(ngo):
    claimed = Donation.objects.filter(claimed_by=ngo)
    completed = claimed.filter(status=Status.COMPLETED)
    return {
        'claimed': claimed.count(),
        'in_progress': claimed.filter(status__in=Donation.IN_PROGRESS_STATUSES).count(),
        'completed': completed.count(),
        'rejected': Donation.objects.filter(rejected_by=ngo).count(),
        'meals_received': completed.aggregate(total=Sum('quantity'))['total'] or 0,
        'utilization': capacity.utilization(ngo),
    }


def volunteer_stats(volunteer):
    trust, _ = VolunteerTrustScore.objects.get_or_create(volunteer=volunteer)
    units = Donation.objects.filter(
        assigned_volunteer=volunteer, status=Status.COMPLETED,
    ).aggregate(total=Sum('quantity'))['total'] or 0
    return {
        'total_deliveries': trust.completed_missions,
        'cancelled_missions': trust.cancelled_missions,
        'active_missions': dispatch.active_mission_count(volunteer),
        'reliability_score': round(trust.reliability_score, 2),
        'trust_score': round(trust.trust_score, 2),
        'average_rating': round(trust.average_rating, 2),
        'tier': trust.tier,
        'total_impact_kg': round(units * settings.DONATION_UNIT_WEIGHT_KG, 2),
    }


def get_stats(user):
    if user.user_type == User.UserType.DONOR:
        return donor_stats(user.donor_profile)
    if user.user_type == User.UserType.NGO:
        return ngo_stats(user.ngo_profile)
    if user.user_type == User.UserType.VOLUNTEER:
        return volunteer_stats(user.volunteer_profile)
    raise NotAuthorized('Stats are available to donors, NGOs and volunteers.')
