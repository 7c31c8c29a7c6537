# rescue/tests/test_dispatch.py
from datetime import timedelta
from unittest import mock

import pytest
import requests
from django.utils import timezone

from rescue import dispatch, services
from rescue.exceptions import CollaboratorTimeout, Conflict, DonationValidationError, InvalidTransition, NotAuthorized
from rescue.models import Donation, Mission, VolunteerTrustScore

from .factories import create_donation, create_user, create_volunteer, fresh

Status = Donation.Status
CancelReason = Mission.CancelReason


def claimed_by(ngo, donation):
    Donation.objects.filter(pk=donation.pk).update(status=Status.ASSIGNED, claimed_by=ngo, claimed_at=timezone.now())
    return fresh(donation)


# --- offer / list_available_missions ---

def test_offer_orders_eligible_volunteers_by_distance(claimed, donor):
    near = create_volunteer('near', full_name='Near One', point=(12.9720, 77.5950))
    far = create_volunteer('far', full_name='Far One', point=(13.0500, 77.7000))
    create_volunteer('busy', full_name='Off Duty', is_available=False)
    create_volunteer('small', full_name='Small Bike', max_weight_kg=5)
    unlimited = create_volunteer('van', full_name='Big Van', max_weight_kg=None, point=None)

    assert dispatch.offer(claimed) == [near, far, unlimited]


def test_offer_skips_volunteers_at_mission_limit(accepted, volunteer, other_volunteer, settings):
    settings.VOLUNTEER_MAX_ACTIVE_MISSIONS = 1
    other = create_donation(accepted.donor)

    assert dispatch.offer(other) == [other_volunteer]


def test_available_missions_fit_the_volunteer(donor, ngo, volunteer):
    open_mission = claimed_by(ngo, create_donation(donor, title='Rice'))
    claimed_by(ngo, create_donation(donor, title='Too heavy', quantity=80))
    claimed_by(ngo, create_donation(donor, title='Spoiled', expires_in=-timedelta(minutes=1)))
    create_donation(donor, title='Unclaimed')

    assert dispatch.list_available_missions(volunteer) == [open_mission]


# --- accept ---

def test_accept_opens_a_mission(claimed, volunteer):
    mission = dispatch.accept(claimed, volunteer, actor=volunteer.user)

    stored = fresh(claimed)
    assert stored.status == Status.ACCEPTED
    assert stored.delivery_status == Donation.DeliveryStatus.PENDING_PICKUP
    assert stored.assigned_volunteer == volunteer
    assert stored.claimed_by_id == claimed.claimed_by_id
    assert mission.status == Mission.Status.ACTIVE


def test_simultaneous_accepts_have_one_winner(claimed, volunteer, other_volunteer):
    first, second = fresh(claimed), fresh(claimed)

    dispatch.accept(first, volunteer)
    with pytest.raises(Conflict) as excinfo:
        dispatch.accept(second, other_volunteer)

    assert excinfo.value.reason == Conflict.ALREADY_ASSIGNED
    assert fresh(claimed).assigned_volunteer == volunteer
    assert Mission.objects.filter(donation=claimed, status=Mission.Status.ACTIVE).count() == 1


def test_accept_taken_mission_conflicts(accepted, other_volunteer):
    with pytest.raises(Conflict) as excinfo:
        dispatch.accept(accepted, other_volunteer)

    assert excinfo.value.reason == Conflict.ALREADY_ASSIGNED


def test_accept_unclaimed_donation_is_invalid(donation, volunteer):
    with pytest.raises(InvalidTransition):
        dispatch.accept(donation, volunteer)


def test_overweight_volunteer_is_refused(claimed):
    small = create_volunteer('small', full_name='Small Bike', max_weight_kg=2)

    with pytest.raises(DonationValidationError):
        dispatch.accept(claimed, small)
    assert fresh(claimed).status == Status.ASSIGNED


def test_mission_limit_is_enforced(donor, ngo, volunteer, settings):
    settings.VOLUNTEER_MAX_ACTIVE_MISSIONS = 1
    dispatch.accept(claimed_by(ngo, create_donation(donor)), volunteer)

    with pytest.raises(DonationValidationError):
        dispatch.accept(claimed_by(ngo, create_donation(donor)), volunteer)


# --- cancel ---

def test_holder_cancel_keeps_the_claim(accepted, volunteer, ngo):
    dispatch.cancel(accepted, volunteer.user, CancelReason.VEHICLE_BREAKDOWN, notes='Flat tyre')

    stored = fresh(accepted)
    assert stored.status == Status.ASSIGNED
    assert stored.claimed_by == ngo
    assert stored.assigned_volunteer is None
    assert stored.delivery_status is None
    mission = Mission.objects.get(donation=accepted)
    assert mission.status == Mission.Status.CANCELLED
    assert mission.cancel_reason == CancelReason.VEHICLE_BREAKDOWN
    assert VolunteerTrustScore.objects.get(volunteer=volunteer).cancelled_missions == 1


def test_cancel_after_pickup_clears_pickup_evidence(picked_up, volunteer):
    dispatch.cancel(picked_up, volunteer.user, CancelReason.TRAFFIC_ACCIDENT)

    stored = fresh(picked_up)
    assert stored.status == Status.ASSIGNED
    assert stored.pickup_photo == ''
    assert stored.picked_up_at is None
    assert stored.custody_records.count() == 1


def test_cancelled_mission_can_be_taken_again(accepted, volunteer, other_volunteer):
    dispatch.cancel(accepted, volunteer.user, CancelReason.PERSONAL_EMERGENCY)
    dispatch.accept(fresh(accepted), other_volunteer)

    assert fresh(accepted).assigned_volunteer == other_volunteer
    assert Mission.objects.filter(donation=accepted).count() == 2


def test_only_holder_or_staff_may_cancel(accepted, other_volunteer):
    with pytest.raises(NotAuthorized):
        dispatch.cancel(accepted, other_volunteer.user, CancelReason.OTHER)


def test_staff_override_does_not_penalise_volunteer(accepted, volunteer):
    admin = create_user('admin', 'ADMIN', is_staff=True)

    dispatch.cancel(accepted, admin, CancelReason.DONOR_NOT_FOUND, notes='Donor closed early')

    assert fresh(accepted).status == Status.ASSIGNED
    assert Mission.objects.get(donation=accepted).cancelled_by == admin
    assert not VolunteerTrustScore.objects.filter(volunteer=volunteer, cancelled_missions__gt=0).exists()


def test_cancel_needs_a_known_reason(accepted, volunteer):
    with pytest.raises(DonationValidationError):
        dispatch.cancel(accepted, volunteer.user, 'bored')


def test_holder_cancel_from_a_stale_snapshot(accepted, volunteer, ngo):
    stale = fresh(accepted)
    services.update_delivery_status(accepted.pk, volunteer.user, Donation.DeliveryStatus.AT_PICKUP)

    dispatch.cancel(stale, volunteer.user, CancelReason.OTHER)

    stored = fresh(accepted)
    assert stored.status == Status.ASSIGNED
    assert stored.claimed_by == ngo
    assert stored.assigned_volunteer is None
    assert stale.version == stored.version
    assert Mission.objects.get(donation=accepted).status == Mission.Status.CANCELLED


def test_stale_cancel_stops_once_the_mission_changed_hands(accepted, volunteer, other_volunteer):
    admin = create_user('admin', 'ADMIN', is_staff=True)
    stale = fresh(accepted)
    dispatch.cancel(fresh(accepted), volunteer.user, CancelReason.OTHER)
    dispatch.accept(fresh(accepted), other_volunteer)

    with pytest.raises(InvalidTransition):
        dispatch.cancel(stale, admin, CancelReason.OTHER)

    assert fresh(accepted).assigned_volunteer == other_volunteer


# --- build_route ---

def test_route_is_pickup_then_delivery(accepted, ngo):
    route = dispatch.build_route(accepted)

    assert [stop['type'] for stop in route['stops']] == ['pickup', 'delivery']
    assert route['stops'][-1]['coordinates'] == ngo.coordinates
    assert 4 < route['total_distance_km'] < 7
    assert route['estimated_time_minutes'] > 0


def held_by(volunteer, ngo, donation):
    donation = claimed_by(ngo, donation)
    dispatch.accept(donation, volunteer)
    return fresh(donation)


def test_route_includes_on_the_way_diversions(accepted, donor, ngo, volunteer):
    on_the_way = held_by(volunteer, ngo, create_donation(donor, title='Bread', quantity=5, point=(12.9534, 77.6095)))
    held_by(volunteer, ngo, create_donation(donor, title='Far away', quantity=5, point=(13.1000, 77.4000)))

    route = dispatch.build_route(accepted)

    assert [stop['type'] for stop in route['stops']] == ['pickup', 'diversion', 'delivery']
    assert route['stops'][1]['id'] == on_the_way.pk
    assert route['stops'][1]['is_diversion']


def test_unaccepted_donations_are_never_diversions(accepted, donor, ngo):
    claimed_by(ngo, create_donation(donor, title='Bread', quantity=5, point=(12.9534, 77.6095)))

    route = dispatch.build_route(accepted)

    assert [stop['type'] for stop in route['stops']] == ['pickup', 'delivery']


def test_other_volunteers_missions_are_not_diversions(accepted, donor, ngo, other_volunteer):
    held_by(other_volunteer, ngo, create_donation(donor, title='Bread', quantity=5, point=(12.9534, 77.6095)))

    assert len(dispatch.build_route(accepted)['stops']) == 2


def test_collected_missions_are_not_diversions(accepted, donor, ngo, volunteer):
    bread = held_by(volunteer, ngo, create_donation(donor, title='Bread', quantity=5, point=(12.9534, 77.6095)))
    Donation.objects.filter(pk=bread.pk).update(status=Status.PICKED_UP, picked_up_at=timezone.now())

    assert len(dispatch.build_route(accepted)['stops']) == 2


def test_diversions_respect_remaining_payload(accepted, donor, ngo, volunteer):
    held_by(volunteer, ngo, create_donation(donor, title='Bread', quantity=5, point=(12.9534, 77.6095)))
    volunteer.max_weight_kg = 12
    volunteer.save()

    route = dispatch.build_route(fresh(accepted))

    assert [stop['type'] for stop in route['stops']] == ['pickup', 'delivery']


def test_diversions_can_be_disabled(accepted, donor, ngo, volunteer, settings):
    held_by(volunteer, ngo, create_donation(donor, title='Bread', quantity=5, point=(12.9534, 77.6095)))
    settings.MISSION_MAX_DIVERSIONS = 0

    assert len(dispatch.build_route(accepted)['stops']) == 2


def test_route_starts_from_the_volunteer(accepted, volunteer):
    at_pickup = dispatch.build_route(accepted)
    volunteer.latitude, volunteer.longitude = 13.0500, 77.7000
    volunteer.save()

    route = dispatch.build_route(fresh(accepted))

    assert route['start'] == {'lat': 13.0500, 'lng': 77.7000}
    assert route['total_distance_km'] > at_pickup['total_distance_km'] + 10
    assert route['estimated_time_minutes'] > at_pickup['estimated_time_minutes']


def test_route_without_volunteer_location_starts_at_pickup(accepted, volunteer):
    volunteer.latitude = volunteer.longitude = None
    volunteer.save()

    route = dispatch.build_route(fresh(accepted))

    assert route['start'] is None
    assert 4 < route['total_distance_km'] < 7


def test_route_without_ngo_location(accepted, ngo):
    ngo.latitude = ngo.longitude = None
    ngo.save()

    route = dispatch.build_route(fresh(accepted))

    assert route['stops'][-1]['coordinates'] is None
    assert route['total_distance_km'] == 0


def test_route_needs_a_claim(donation):
    with pytest.raises(InvalidTransition):
        dispatch.build_route(donation)


def test_distance_matrix_timeout_surfaces(accepted, settings):
    settings.MISSION_USE_GOOGLE_MAPS = True
    settings.GOOGLE_MAPS_API_KEY = 'test-key'

    with mock.patch('rescue.utils.route_optimization.requests.Session.get', side_effect=requests.Timeout('slow')):
        with pytest.raises(CollaboratorTimeout):
            dispatch.build_route(accepted)


def test_distance_matrix_error_falls_back_to_geodesic(accepted, settings):
    settings.MISSION_USE_GOOGLE_MAPS = True
    settings.GOOGLE_MAPS_API_KEY = 'test-key'
    response = mock.Mock()
    response.json.return_value = {'status': 'REQUEST_DENIED'}

    with mock.patch('rescue.utils.route_optimization.requests.Session.get', return_value=response):
        route = dispatch.build_route(accepted)

    assert 4 < route['total_distance_km'] < 7
