# rescue/tests/factories.py
from datetime import timedelta

from django.utils import timezone

from rescue.models import Donation, DonorProfile, NGOProfile, User, VolunteerProfile

# Bangalore: donor in the centre, NGO about 5 km south-east
DONOR_POINT = (12.9716, 77.5946)
NGO_POINT = (12.9352, 77.6245)


def create_user(username, user_type, **kwargs):
    return User.objects.create_user(username=username, password='pass12345', user_type=user_type, **kwargs)


def create_donor(username='donor', point=DONOR_POINT, **kwargs):
    user = create_user(username, User.UserType.DONOR)
    defaults = {'organization_name': 'Green Leaf Cafe', 'address': 'MG Road', 'latitude': point[0], 'longitude': point[1]}
    defaults.update(kwargs)
    return DonorProfile.objects.create(user=user, **defaults)


def create_ngo(username='ngo', point=NGO_POINT, **kwargs):
    user = create_user(username, User.UserType.NGO)
    latitude, longitude = point if point else (None, None)
    defaults = {
        'ngo_name': 'Helping Hands', 'address': 'Koramangala', 'latitude': latitude, 'longitude': longitude,
        'daily_capacity': 100, 'storage_facilities': ['cold', 'dry'],
    }
    defaults.update(kwargs)
    return NGOProfile.objects.create(user=user, **defaults)


def create_volunteer(username='volunteer', point=DONOR_POINT, **kwargs):
    user = create_user(username, User.UserType.VOLUNTEER)
    latitude, longitude = point if point else (None, None)
    defaults = {'full_name': 'Ravi Kumar', 'vehicle_type': 'scooter', 'max_weight_kg': 50, 'latitude': latitude, 'longitude': longitude}
    defaults.update(kwargs)
    return VolunteerProfile.objects.create(user=user, **defaults)


def create_donation(donor, expires_in=timedelta(hours=8), point=None, **kwargs):
    """Insert a donation directly, skipping schedule validation so tests can build any state."""
    now = timezone.now()
    point = point or (donor.latitude, donor.longitude)
    defaults = {
        'title': 'Veg biryani', 'quantity': 10, 'food_category': Donation.FoodCategory.COOKED,
        'pickup_address': donor.address, 'latitude': point[0], 'longitude': point[1],
        'expiry_date': now + expires_in,
        'pickup_window_start': now, 'pickup_window_end': now + expires_in - timedelta(hours=1),
    }
    defaults.update(kwargs)
    return Donation.objects.create(donor=donor, **defaults)


def fresh(donation):
    return Donation.objects.select_related('donor', 'claimed_by', 'assigned_volunteer').get(pk=donation.pk)


