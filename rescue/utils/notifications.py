# rescue/utils/notifications.py
"""
Notification sink: in-app Notification rows plus best-effort Web Push to volunteers.

Rows are written inside the caller's transaction; pushes go out only after it
commits. Delivery failures are logged and never reach the caller.
"""

import json
import logging

import requests
from django.conf import settings
from django.db import transaction
from pywebpush import WebPushException, webpush

from ..models import Notification

logger = logging.getLogger(__name__)

Type = Notification.Type


def _vapid_configured():
    return bool(settings.WEBPUSH_SETTINGS.get('VAPID_PRIVATE_KEY'))


def send_push(volunteer, title, body, url='/'):
    """Push a message to one volunteer's subscribed browser, if any."""
    if not volunteer.webpush_subscription or not _vapid_configured():
        return False
    try:
        subscription_info = json.loads(volunteer.webpush_subscription)
    except ValueError:
        logger.warning("Volunteer %s has an unreadable push subscription", volunteer.pk)
        return False

    try:
        webpush(
            subscription_info=subscription_info,
            data=json.dumps({'title': title, 'body': body, 'url': url}),
            vapid_private_key=settings.WEBPUSH_SETTINGS['VAPID_PRIVATE_KEY'],
            vapid_claims={"sub": f"mailto:{settings.WEBPUSH_SETTINGS['VAPID_ADMIN_EMAIL']}"},
            timeout=settings.COLLABORATOR_TIMEOUT_SECONDS,
        )
    except (WebPushException, requests.RequestException) as e:
        logger.warning("Failed to send push notification to %s: %s", volunteer.full_name, e)
        return False
    return True


def notify(user, message, type, donation=None):
    """Create an in-app notification for ``user``."""
    if user is None:
        return None
    return Notification.objects.create(recipient=user, message=message, type=type, donation=donation)


def notify_volunteers(volunteers, message, type, donation=None, title='Food Rescue'):
    """Notify each volunteer in-app and queue a push for after commit."""
    volunteers = list(volunteers)
    Notification.objects.bulk_create([
        Notification(recipient_id=volunteer.pk, message=message, type=type, donation=donation)
        for volunteer in volunteers
    ])

    def _push():
        for volunteer in volunteers:
            send_push(volunteer, title, message, url='/missions/available/')

    transaction.on_commit(_push)
    return len(volunteers)


# --------------- Lifecycle helpers used by services ---------------

def donation_claimed(donation):
    notify(
        donation.donor.user,
        f'Your donation "{donation.title}" was claimed by {donation.claimed_by.ngo_name}.',
        Type.DONATION_ASSIGNED, donation,
    )


def mission_available(donation, volunteers):
    return notify_volunteers(
        volunteers,
        f'New pickup available: "{donation.title}" ({donation.quantity} units) at {donation.pickup_address}.',
        Type.MISSION_AVAILABLE, donation, title='New Mission Available!',
    )


def donation_rejected(donation):
    reason = donation.get_rejection_category_display()
    if donation.rejection_reason:
        reason = f'{reason}: {donation.rejection_reason}'
    notify(
        donation.donor.user,
        f'Your donation "{donation.title}" was rejected. Reason: {reason}',
        Type.DONATION_REJECTED, donation,
    )


def donation_cancelled(donation, recipients):
    for user in recipients:
        notify(user, f'The donation "{donation.title}" was cancelled.', Type.DONATION_CANCELLED, donation)


def donation_expired(donation, ngo=None):
    notify(
        donation.donor.user,
        f'Your donation "{donation.title}" expired before it could be delivered.',
        Type.DONATION_EXPIRED, donation,
    )
    if ngo is not None:
        notify(ngo.user, f'The donation "{donation.title}" you claimed has expired.', Type.DONATION_EXPIRED, donation)


def mission_assigned(donation, volunteer):
    message = f'{volunteer.full_name} accepted the pickup of "{donation.title}".'
    notify(donation.donor.user, message, Type.MISSION_ASSIGNED, donation)
    notify(donation.claimed_by.user, message, Type.MISSION_ASSIGNED, donation)


def mission_cancelled(donation, volunteer, reason_label):
    notify(
        donation.claimed_by.user,
        f'{volunteer.full_name} cancelled the pickup of "{donation.title}" ({reason_label}). It is open to volunteers again.',
        Type.MISSION_CANCELLED, donation,
    )


def donation_delivered(donation):
    notify(
        donation.claimed_by.user,
        f'"{donation.title}" has been delivered. Please confirm receipt.',
        Type.DONATION_DELIVERED, donation,
    )


def donation_completed(donation):
    notify(
        donation.donor.user,
        f'Your donation "{donation.title}" reached {donation.claimed_by.ngo_name}. Thank you!',
        Type.DONATION_COMPLETED, donation,
    )
