# rescue/tests/conftest.py
import pytest

from rescue import services
from rescue.models import Donation

from .factories import create_donation, create_donor, create_ngo, create_volunteer, fresh


@pytest.fixture
def donor(db):
    return create_donor()


@pytest.fixture
def ngo(db):
    return create_ngo()


@pytest.fixture
def other_ngo(db):
    return create_ngo('ngo2', ngo_name='Food Bank', point=(12.9800, 77.6400))


@pytest.fixture
def volunteer(db):
    return create_volunteer()


@pytest.fixture
def other_volunteer(db):
    return create_volunteer('volunteer2', full_name='Asha Rao', point=(12.9600, 77.6000))


@pytest.fixture
def donation(donor):
    return create_donation(donor)


@pytest.fixture
def claimed(donation, ngo):
    services.claim_donation(donation.pk, ngo, user=ngo.user)
    return fresh(donation)


@pytest.fixture
def accepted(claimed, volunteer):
    services.accept_mission(claimed.pk, volunteer, user=volunteer.user)
    return fresh(claimed)


@pytest.fixture
def at_pickup(accepted, volunteer):
    services.update_delivery_status(accepted.pk, volunteer.user, Donation.DeliveryStatus.AT_PICKUP)
    return fresh(accepted)


@pytest.fixture
def picked_up(at_pickup, volunteer):
    services.confirm_pickup(at_pickup.pk, volunteer.user, 'https://img.example.org/pickup.jpg')
    return fresh(at_pickup)


@pytest.fixture
def delivered(picked_up, volunteer):
    services.update_delivery_status(picked_up.pk, volunteer.user, Donation.DeliveryStatus.ARRIVED_AT_DELIVERY)
    services.confirm_delivery(picked_up.pk, volunteer.user, 'https://img.example.org/delivery.jpg', notes='Left with staff')
    return fresh(picked_up)
