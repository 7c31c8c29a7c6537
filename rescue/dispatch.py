# rescue/dispatch.py
"""
Mission dispatch: offering claimed donations to volunteers, exclusive mission
acceptance, mission cancellation, and the stop sequence for an accepted mission.
"""

import logging

from django.conf import settings
from django.db import transaction
from django.db.models import Count, Q

from . import expiry, state_machine
from .exceptions import Conflict, DonationValidationError, InvalidTransition, NotAuthorized
from .models import Donation, Mission, VolunteerProfile, VolunteerTrustScore
from .state_machine import Event
from .utils.route_optimization import Location, get_route_optimizer

logger = logging.getLogger(__name__)

Status = Donation.Status

CANCEL_ATTEMPTS = 3


class MissionStop:
    """One stop of a volunteer's route; built per request and never stored"""
    PICKUP = 'pickup'
    DELIVERY = 'delivery'
    DIVERSION = 'diversion'

    def __init__(self, stop_id, stop_type, coordinates, address, priority, is_diversion=False):
        self.id = stop_id
        self.type = stop_type
        self.coordinates = coordinates
        self.address = address
        self.priority = priority
        self.is_diversion = is_diversion

    def to_dict(self):
        return {
            'id': self.id,
            'type': self.type,
            'coordinates': self.coordinates,
            'address': self.address,
            'priority': self.priority,
            'is_diversion': self.is_diversion,
        }


def active_mission_count(volunteer):
    return Donation.objects.filter(assigned_volunteer=volunteer, status__in=Donation.MISSION_STATUSES).count()


def offer(donation):
    """
    Volunteers eligible to take the donation's mission, nearest to the pickup first.

    Eligible means available, able to carry the estimated weight (or with no
    declared limit) and holding fewer than VOLUNTEER_MAX_ACTIVE_MISSIONS missions.
    """
    weight = donation.estimated_weight_kg
    volunteers = VolunteerProfile.objects.filter(
        is_available=True,
    ).filter(
        Q(max_weight_kg__isnull=True) | Q(max_weight_kg__gte=weight)
    ).annotate(
        active_missions=Count('assigned_donations', filter=Q(assigned_donations__status__in=Donation.MISSION_STATUSES))
    ).filter(active_missions__lt=settings.VOLUNTEER_MAX_ACTIVE_MISSIONS)

    pickup = Location.from_coordinates(donation.coordinates)
    return sorted(
        volunteers,
        key=lambda v: (pickup.distance_to(Location.from_coordinates(v.coordinates)), v.pk),
    )


def list_available_missions(volunteer):
    """Claimed donations still waiting for a volunteer that this volunteer can carry."""
    current = expiry.now()
    donations = Donation.objects.filter(
        status=Status.ASSIGNED,
        assigned_volunteer__isnull=True,
        expiry_date__gt=current,
    ).select_related('donor', 'claimed_by').order_by('expiry_date', 'pk')
    return [d for d in donations if volunteer.can_carry(d.estimated_weight_kg)]


def _lost_accept(donation):
    current = Donation.objects.filter(pk=donation.pk).values('status', 'assigned_volunteer_id').first()
    if current and current['assigned_volunteer_id'] is not None:
        return Conflict(Conflict.ALREADY_ASSIGNED, 'Another volunteer has already accepted this mission.')
    if current and current['status'] != Status.ASSIGNED:
        return InvalidTransition(current['status'], Event.ACCEPT)
    return Conflict(Conflict.STALE_VERSION, 'This donation was updated by someone else. Please refresh.')


def accept(donation, volunteer, actor=None):
    """Give ``volunteer`` exclusive hold of the donation's mission."""
    if donation.assigned_volunteer_id is not None:
        raise Conflict(Conflict.ALREADY_ASSIGNED, 'Another volunteer has already accepted this mission.')
    state_machine.next_status(donation.status, Event.ACCEPT)

    weight = donation.estimated_weight_kg
    if not volunteer.can_carry(weight):
        raise DonationValidationError(
            f'This donation weighs about {weight:g} kg, above your limit of {volunteer.max_weight_kg:g} kg.',
            errors={'max_weight_kg': 'Donation is too heavy for this volunteer.'},
        )
    limit = settings.VOLUNTEER_MAX_ACTIVE_MISSIONS
    if active_mission_count(volunteer) >= limit:
        raise DonationValidationError(f'You cannot accept more than {limit} missions at a time.')

    current = expiry.now()
    if expiry.is_expired(donation.expiry_date, current):
        raise InvalidTransition(donation.status, Event.ACCEPT, 'This donation has expired.')

    with transaction.atomic():
        try:
            state_machine.apply(
                donation, Event.ACCEPT, actor=actor, details={'volunteer': volunteer.pk},
                assigned_volunteer=volunteer,
            )
        except Conflict:
            raise _lost_accept(donation)
        mission = Mission.objects.create(donation=donation, volunteer=volunteer, accepted_at=current)

    logger.info("Volunteer %s accepted mission %s for donation %s", volunteer.pk, mission.pk, donation.pk)
    return mission


def active_mission(donation):
    return Mission.objects.filter(donation=donation, status=Mission.Status.ACTIVE).select_related('volunteer').first()


def cancel(donation, user, reason, notes=''):
    """
    Release the mission held on ``donation``. The donation returns to ``assigned``
    with its NGO claim intact. The holding volunteer may always cancel; staff may
    override with a recorded reason.

    A stale snapshot is reloaded and the cancel retried for as long as the same
    volunteer still holds the mission.
    """
    volunteer = donation.assigned_volunteer
    is_holder = volunteer is not None and volunteer.pk == user.pk
    if not (is_holder or user.is_staff):
        raise NotAuthorized('Only the volunteer holding this mission can cancel it.')
    if reason not in Mission.CancelReason.values:
        raise DonationValidationError(
            f"Unknown cancellation reason '{reason}'.",
            errors={'reason': f"Choose one of: {', '.join(Mission.CancelReason.values)}."},
        )
    state_machine.next_status(donation.status, Event.CANCEL_MISSION)

    current = expiry.now()
    for attempt in range(1, CANCEL_ATTEMPTS + 1):
        try:
            _release_mission(donation, volunteer, user, reason, notes, is_holder, current)
            break
        except Conflict as e:
            if e.reason != Conflict.STALE_VERSION or attempt == CANCEL_ATTEMPTS:
                raise
        donation.refresh_from_db()
        if donation.assigned_volunteer_id != volunteer.pk:
            raise InvalidTransition(donation.status, Event.CANCEL_MISSION, 'This mission is no longer held by that volunteer.')
        state_machine.next_status(donation.status, Event.CANCEL_MISSION)
        logger.info("Retrying cancel of mission on donation %s at version %s", donation.pk, donation.version)

    logger.info("Mission on donation %s cancelled by user %s (%s)", donation.pk, user.pk, reason)
    return volunteer


def _release_mission(donation, volunteer, user, reason, notes, is_holder, current):
    with transaction.atomic():
        state_machine.apply(
            donation, Event.CANCEL_MISSION, actor=user,
            details={'volunteer': volunteer.pk, 'reason': reason, 'notes': notes, 'override': not is_holder},
            pickup_photo='', pickup_notes='', picked_up_at=None,
        )
        Mission.objects.filter(donation=donation, status=Mission.Status.ACTIVE).update(
            status=Mission.Status.CANCELLED, ended_at=current,
            cancel_reason=reason, cancel_notes=notes, cancelled_by=user,
        )
        if is_holder:
            trust, _ = VolunteerTrustScore.objects.select_for_update().get_or_create(volunteer=volunteer)
            trust.cancelled_missions += 1
            trust.update_trust_score()
            trust.save()


def build_route(donation, volunteer=None):
    """
    Stops for the donation's mission: its pickup, then diversions to the
    volunteer's other held pickups bound for the same NGO that fit on the way,
    then the NGO delivery. Distance and time are counted from the volunteer's
    current location when it is known.

    A diversion qualifies when it lengthens the pickup-to-delivery leg by at most
    MISSION_DIVERSION_DETOUR_RATIO of that leg and still fits the volunteer's
    remaining payload.
    """
    if donation.claimed_by is None:
        raise InvalidTransition(donation.status, 'route', 'This donation has no NGO to deliver to.')
    volunteer = volunteer or donation.assigned_volunteer
    current = expiry.now()

    pickup = Location.from_coordinates(donation.coordinates, location_id=donation.pk,
                                       location_type=MissionStop.PICKUP, name=donation.pickup_address)
    delivery = Location.from_coordinates(donation.ngo_coordinates, location_id=donation.claimed_by_id,
                                         location_type=MissionStop.DELIVERY, name=donation.ngo_address or '')
    start = None
    if volunteer is not None:
        start = Location.from_coordinates(volunteer.coordinates, location_id=volunteer.pk, location_type='volunteer')

    candidates = []
    routable = pickup.has_coordinates and delivery.has_coordinates
    if routable and volunteer is not None and settings.MISSION_MAX_DIVERSIONS > 0:
        candidates = list(
            Donation.objects.filter(
                assigned_volunteer=volunteer,
                claimed_by_id=donation.claimed_by_id,
                status__in=(Status.ACCEPTED, Status.AT_PICKUP),
                expiry_date__gt=current,
                latitude__isnull=False,
                longitude__isnull=False,
            ).exclude(pk=donation.pk).order_by('pk')
        )

    locations = [pickup, delivery] + [
        Location.from_coordinates(c.coordinates, location_id=c.pk, location_type=MissionStop.DIVERSION,
                                  name=c.pickup_address)
        for c in candidates
    ]
    path_start = []
    if routable and start is not None and start.has_coordinates:
        path_start = [len(locations)]
        locations.append(start)

    selected = []
    total_distance = total_time = 0.0
    if routable:
        optimizer = get_route_optimizer()
        distances, durations = optimizer.distance_matrix(locations)
        direct = distances[0][1]

        eligible = []
        for index in range(2, len(candidates) + 2):
            detour = distances[0][index] + distances[index][1] - direct
            if detour <= settings.MISSION_DIVERSION_DETOUR_RATIO * direct:
                eligible.append((detour, index))

        remaining = None
        if volunteer is not None and volunteer.max_weight_kg is not None:
            remaining = volunteer.max_weight_kg - donation.estimated_weight_kg
        for _, index in sorted(eligible):
            if len(selected) >= settings.MISSION_MAX_DIVERSIONS:
                break
            weight = candidates[index - 2].estimated_weight_kg
            if remaining is not None:
                if weight > remaining:
                    continue
                remaining -= weight
            selected.append(index)

        priorities = {index: expiry.priority(candidates[index - 2].expiry_date, current) for index in selected}
        selected = optimizer.nearest_neighbor_order(0, selected, distances, priorities)
        total_distance, total_time = optimizer.path_totals(path_start + [0] + selected + [1], distances, durations)

    main_priority = expiry.priority(donation.expiry_date, current)
    stops = [MissionStop(donation.pk, MissionStop.PICKUP, donation.coordinates, donation.pickup_address, main_priority)]
    for index in selected:
        candidate = candidates[index - 2]
        stops.append(MissionStop(
            candidate.pk, MissionStop.DIVERSION, candidate.coordinates, candidate.pickup_address,
            expiry.priority(candidate.expiry_date, current), is_diversion=True,
        ))
    stops.append(MissionStop(
        donation.claimed_by_id, MissionStop.DELIVERY, donation.ngo_coordinates, donation.ngo_address, main_priority,
    ))

    return {
        'start': volunteer.coordinates if path_start else None,
        'stops': [stop.to_dict() for stop in stops],
        'total_distance_km': round(total_distance, 2),
        'estimated_time_minutes': round(total_time),
    }
