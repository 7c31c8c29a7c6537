# rescue/capacity.py
"""
NGO capacity admission control.

Units claimed by an NGO are counted in a per-day bucket. The bucket of the
claim's local day is incremented on claim and decremented when the claimed
units leave the NGO's pipeline (completion, cancellation, post-claim rejection).
"""

import logging

from django.conf import settings
from django.db.models import F
from django.db.models.functions import Greatest
from django.utils import timezone

from . import expiry
from .exceptions import CapacityExceeded
from .models import DailyUtilization

logger = logging.getLogger(__name__)


def today():
    return timezone.localdate(expiry.now())


def rate_for(units, daily_capacity):
    if not daily_capacity:
        return 0.0
    return units / daily_capacity


def units_claimed(ngo, day=None):
    day = day or today()
    bucket = DailyUtilization.objects.filter(ngo=ngo, day=day).values_list('units_claimed', flat=True).first()
    return bucket or 0


def utilization(ngo, day=None):
    units = units_claimed(ngo, day)
    rate = rate_for(units, ngo.daily_capacity)
    return {
        'units_claimed_today': units,
        'daily_capacity': ngo.daily_capacity,
        'rate': rate,
        'capacity_warning': rate > settings.DONATION_CAPACITY_WARNING_RATE,
        'near_limit': rate > settings.DONATION_CAPACITY_NEAR_LIMIT_RATE,
    }


def check_admission(ngo, units):
    """
    Evaluate a prospective claim of ``units`` against today's bucket.

    Over-capacity claims are only logged unless DONATION_CAPACITY_HARD_CAP is on,
    in which case CapacityExceeded is raised. Returns the projected rate.
    """
    projected = rate_for(units_claimed(ngo) + units, ngo.daily_capacity)
    if projected > 1.0:
        if settings.DONATION_CAPACITY_HARD_CAP:
            raise CapacityExceeded(
                f'{ngo.ngo_name} has already claimed {units_claimed(ngo)} of {ngo.daily_capacity} units today.',
                projected_rate=round(projected, 4),
            )
        logger.warning("NGO %s claiming %s units beyond daily capacity (projected %.2f)", ngo.pk, units, projected)
    return projected


def record_claim(ngo, units, day=None):
    day = day or today()
    bucket, _ = DailyUtilization.objects.get_or_create(ngo=ngo, day=day)
    DailyUtilization.objects.filter(pk=bucket.pk).update(units_claimed=F('units_claimed') + units)


def release(ngo, units, claimed_at):
    """Return ``units`` to the bucket of the day they were claimed on."""
    if ngo is None or claimed_at is None:
        return
    day = timezone.localdate(claimed_at)
    DailyUtilization.objects.filter(ngo=ngo, day=day).update(
        units_claimed=Greatest(F('units_claimed') - units, 0)
    )
