# rescue/tests/test_views.py
from datetime import timedelta

import pytest
from django.urls import reverse
from django.utils import timezone

from rescue.models import Donation, Mission

from .factories import create_user, fresh

Status = Donation.Status


def post_json(client, url, data=None):
    return client.post(url, data or {}, content_type='application/json')


@pytest.fixture
def as_user(client):
    def login(profile):
        client.force_login(profile.user)
        return client
    return login


def new_donation_payload(**overrides):
    now = timezone.now()
    payload = {
        'title': 'Veg pulao',
        'quantity': 25,
        'food_category': 'cooked',
        'storage_req': 'dry',
        'allergens': ['nuts'],
        'expiry_date': (now + timedelta(hours=6)).isoformat(),
        'pickup_window_start': now.isoformat(),
        'pickup_window_end': (now + timedelta(hours=3)).isoformat(),
    }
    payload.update(overrides)
    return payload


def test_anonymous_users_are_redirected(client, donation):
    response = client.get(reverse('donation_detail', args=[donation.pk]))

    assert response.status_code == 302


def test_donor_posts_donation(as_user, donor):
    response = post_json(as_user(donor), reverse('donor_donations'), new_donation_payload())

    assert response.status_code == 201
    body = response.json()
    assert body['success']
    assert body['donation']['status'] == Status.ACTIVE
    assert body['donation']['allergens'] == ['nuts']
    assert body['donation']['perishability'] == Donation.Perishability.MEDIUM
    assert body['donation']['pickup_address'] == donor.address


def test_invalid_donation_lists_field_errors(as_user, donor):
    response = post_json(as_user(donor), reverse('donor_donations'), new_donation_payload(quantity=0, latitude=12.9))

    assert response.status_code == 400
    body = response.json()
    assert body['error'] == 'validation_error'
    assert set(body['errors']) == {'quantity', 'latitude'}


def test_window_after_expiry_is_a_validation_error(as_user, donor):
    now = timezone.now()
    payload = new_donation_payload(
        expiry_date=(now + timedelta(hours=1)).isoformat(),
        pickup_window_end=(now + timedelta(hours=2)).isoformat(),
    )

    response = post_json(as_user(donor), reverse('donor_donations'), payload)

    assert response.status_code == 400
    assert 'pickup_window' in response.json()['errors']


def test_malformed_json_is_rejected(as_user, donor):
    response = as_user(donor).post(reverse('donor_donations'), '{not json', content_type='application/json')

    assert response.status_code == 400


def test_body_that_is_not_utf8_is_rejected(as_user, donor):
    response = as_user(donor).post(reverse('donor_donations'), b'{"title": "\xc3\x28"}', content_type='application/json')

    assert response.status_code == 400
    assert response.json()['error'] == 'validation_error'


def test_donor_lists_own_donations(as_user, donor, donation, claimed):
    response = as_user(donor).get(reverse('donor_donations'), {'status': 'assigned'})

    assert response.status_code == 200
    assert [d['id'] for d in response.json()['donations']] == [claimed.pk]


def test_wrong_role_is_forbidden(as_user, volunteer):
    response = as_user(volunteer).get(reverse('donation_feed'))

    assert response.status_code == 403
    assert response.json()['error'] == 'not_authorized'


def test_wrong_method_is_not_allowed(as_user, ngo, donation):
    response = as_user(ngo).get(reverse('claim_donation', args=[donation.pk]))

    assert response.status_code == 405


def test_unknown_donation_is_not_found(as_user, ngo):
    response = post_json(as_user(ngo), reverse('claim_donation', args=[999999]))

    assert response.status_code == 404
    assert response.json()['error'] == 'not_found'


def test_ngo_feed_and_claim(as_user, ngo, donation):
    client = as_user(ngo)

    feed = client.get(reverse('donation_feed')).json()
    assert [d['id'] for d in feed['donations']] == [donation.pk]
    assert feed['capacity_warning'] is False

    response = post_json(client, reverse('claim_donation', args=[donation.pk]))
    assert response.status_code == 200
    assert response.json()['donation']['claimed_by'] == ngo.pk


def test_second_claim_conflicts(as_user, claimed, other_ngo):
    response = post_json(as_user(other_ngo), reverse('claim_donation', args=[claimed.pk]))

    assert response.status_code == 409
    body = response.json()
    assert body['error'] == 'conflict'
    assert body['reason'] == 'already_claimed'


def test_reject_with_legacy_reason(as_user, ngo, donation):
    response = post_json(
        as_user(ngo), reverse('reject_donation', args=[donation.pk]),
        {'rejection_reason': '[Food Safety Risk] Container open'},
    )

    assert response.status_code == 200
    assert response.json()['donation']['rejection_category'] == 'hygiene'


def test_offer_lists_volunteers(as_user, ngo, claimed, volunteer):
    body = as_user(ngo).get(reverse('offer_mission', args=[claimed.pk])).json()

    assert body['count'] == 1
    assert body['volunteers'][0]['id'] == volunteer.pk


def test_volunteer_accepts_and_conflicts(as_user, client, claimed, volunteer, other_volunteer):
    missions = as_user(volunteer).get(reverse('available_missions')).json()
    assert missions['count'] == 1

    response = post_json(client, reverse('accept_mission', args=[claimed.pk]))
    assert response.status_code == 200
    assert response.json()['mission'] == Mission.objects.get(donation=claimed).pk

    response = post_json(as_user(other_volunteer), reverse('accept_mission', args=[claimed.pk]))
    assert response.status_code == 409
    assert response.json()['reason'] == 'already_assigned'


def test_accepting_unclaimed_donation_is_unprocessable(as_user, volunteer, donation):
    response = post_json(as_user(volunteer), reverse('accept_mission', args=[donation.pk]))

    assert response.status_code == 422
    assert response.json()['error'] == 'invalid_state'


def test_pickup_without_photo(as_user, volunteer, at_pickup):
    response = post_json(as_user(volunteer), reverse('confirm_pickup', args=[at_pickup.pk]), {'notes': 'No camera'})

    assert response.status_code == 400
    assert response.json()['error'] == 'missing_photo'
    assert fresh(at_pickup).status == Status.AT_PICKUP


def test_mission_walkthrough(as_user, client, ngo, volunteer, accepted):
    as_user(volunteer)
    steps = [
        ('update_mission_status', {'status': 'at_pickup'}, Status.AT_PICKUP),
        ('confirm_pickup', {'photo': 'https://img.example.org/p.jpg'}, Status.PICKED_UP),
        ('update_mission_status', {'status': 'arrived_at_delivery'}, Status.AT_DELIVERY),
        ('update_mission_status', {'status': 'delivered', 'photo': 'https://img.example.org/d.jpg'}, Status.DELIVERED),
    ]
    for name, data, expected in steps:
        response = post_json(client, reverse(name, args=[accepted.pk]), data)
        assert response.status_code == 200, response.json()
        assert response.json()['donation']['status'] == expected

    response = post_json(as_user(ngo), reverse('complete_donation', args=[accepted.pk]), {'rating': 5, 'review': 'Thanks'})
    assert response.status_code == 200
    assert response.json()['donation']['status'] == Status.COMPLETED


def test_volunteer_cancels_mission(as_user, volunteer, accepted):
    response = post_json(
        as_user(volunteer), reverse('cancel_mission', args=[accepted.pk]),
        {'reason': 'vehicle_breakdown', 'notes': 'Chain snapped'},
    )

    assert response.status_code == 200
    assert response.json()['donation']['status'] == Status.ASSIGNED


def test_cancel_mission_needs_reason(as_user, volunteer, accepted):
    response = post_json(as_user(volunteer), reverse('cancel_mission', args=[accepted.pk]))

    assert response.status_code == 400


def test_route_endpoint(as_user, volunteer, accepted):
    body = as_user(volunteer).get(reverse('mission_route', args=[accepted.pk])).json()

    assert [stop['type'] for stop in body['stops']] == ['pickup', 'delivery']
    assert 'total_distance_km' in body


def test_donor_cancels_donation(as_user, donor, donation):
    response = post_json(as_user(donor), reverse('cancel_donation', args=[donation.pk]))

    assert response.status_code == 200
    assert fresh(donation).status == Status.CANCELLED


def test_stats_endpoint(as_user, volunteer):
    body = as_user(volunteer).get(reverse('stats')).json()

    assert body['stats']['tier'] == 'rookie'
    assert body['stats']['total_deliveries'] == 0


def test_donation_detail(as_user, ngo, claimed):
    body = as_user(ngo).get(reverse('donation_detail', args=[claimed.pk])).json()

    assert body['donation']['id'] == claimed.pk
    assert body['donation']['ngo_coordinates'] == ngo.coordinates
    assert body['donation']['urgency'] == 'Low'


def test_ngo_lists_claimed_donations(as_user, ngo, other_ngo, claimed):
    body = as_user(ngo).get(reverse('claimed_donations')).json()
    assert body['count'] == 1
    assert body['donations'][0]['id'] == claimed.pk

    body = as_user(other_ngo).get(reverse('claimed_donations'), {'status': 'assigned'}).json()
    assert body['count'] == 0


def test_volunteer_mission_history(as_user, volunteer, accepted):
    body = as_user(volunteer).get(reverse('mission_history')).json()

    assert body['success']
    assert [m['donation']['id'] for m in body['active']] == [accepted.pk]
    assert body['history'] == []


def test_active_missions_are_for_staff(as_user, client, ngo, accepted):
    admin = create_user('admin', 'ADMIN', is_staff=True)

    assert as_user(ngo).get(reverse('active_missions')).status_code == 403

    client.force_login(admin)
    body = client.get(reverse('active_missions')).json()
    assert body['count'] == 1
    assert body['missions'][0]['donation']['id'] == accepted.pk
