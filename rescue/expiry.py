# rescue/expiry.py
"""
Clock and expiry evaluation.

Everything here is a pure function of timestamps, except ``now()`` which is the
single current-time source the rest of the core reads from.
"""

from datetime import timedelta

from django.conf import settings
from django.utils import timezone

HIGH = 'High'
NORMAL = 'Normal'
LOW = 'Low'

# Route priority for each urgency class
PRIORITY = {HIGH: 10, NORMAL: 5, LOW: 1}


def now():
    return timezone.now()


def time_remaining(expiry_date, current):
    return expiry_date - current


def is_expired(expiry_date, current):
    return expiry_date <= current


def urgency(expiry_date, current):
    """Classify remaining shelf life: High under 2h, Normal under 6h, Low otherwise."""
    remaining = time_remaining(expiry_date, current)
    if remaining < timedelta(hours=settings.DONATION_URGENCY_HIGH_HOURS):
        return HIGH
    if remaining < timedelta(hours=settings.DONATION_URGENCY_NORMAL_HOURS):
        return NORMAL
    return LOW


def pickup_window_conflict(pickup_window_end, expiry_date):
    return pickup_window_end >= expiry_date


def priority(expiry_date, current):
    return PRIORITY[urgency(expiry_date, current)]
