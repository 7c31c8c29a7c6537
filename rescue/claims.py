# rescue/claims.py
"""
Claim arbitration between NGOs.

A claim is a single conditional UPDATE keyed on the donation's status and
version, so when several NGOs press "claim" at the same instant exactly one
UPDATE matches and every other caller gets a Conflict.
"""

import logging
import re

from django.db import transaction

from . import capacity, expiry, state_machine
from .exceptions import Conflict, InvalidTransition, NotAuthorized
from .models import Donation
from .state_machine import Event

logger = logging.getLogger(__name__)

Status = Donation.Status
RejectionCategory = Donation.RejectionCategory

# Labels older clients send inside a "[Label] free text" reason
LEGACY_REJECTION_LABELS = {
    'food safety risk': RejectionCategory.HYGIENE,
    'hygiene': RejectionCategory.HYGIENE,
    'expired': RejectionCategory.EXPIRED,
    'improper packaging': RejectionCategory.STORAGE,
    'improper packaging / storage': RejectionCategory.STORAGE,
    'storage': RejectionCategory.STORAGE,
    'transport issue': RejectionCategory.LOGISTICS,
    'logistics': RejectionCategory.LOGISTICS,
    'other': RejectionCategory.OTHER,
}

LEGACY_REASON_RE = re.compile(r'^\s*\[(?P<label>[^\]]+)\]\s*(?P<text>.*)$', re.DOTALL)


def parse_rejection(category=None, reason=''):
    """
    Normalize a rejection into ``(category, free_text)``.

    An explicit category wins. Otherwise a ``"[Category] text"`` prefix or a bare
    legacy label is recognised, and anything else is filed under ``other``.
    """
    reason = (reason or '').strip()
    if category:
        if category not in RejectionCategory.values:
            category = LEGACY_REJECTION_LABELS.get(category.strip().lower(), RejectionCategory.OTHER)
        return category, reason

    match = LEGACY_REASON_RE.match(reason)
    if match:
        label = match.group('label').strip().lower()
        return LEGACY_REJECTION_LABELS.get(label, RejectionCategory.OTHER), match.group('text').strip()

    if reason.lower() in LEGACY_REJECTION_LABELS:
        return LEGACY_REJECTION_LABELS[reason.lower()], ''
    return RejectionCategory.OTHER, reason


def _lost_claim(donation):
    """Explain why a claim CAS matched no row, based on the committed state."""
    current = Donation.objects.filter(pk=donation.pk).values_list('status', flat=True).first()
    if current in Donation.CLAIMED_STATUSES:
        return Conflict(Conflict.ALREADY_CLAIMED, 'This donation has already been claimed by another NGO.')
    if current in Donation.TERMINAL_STATUSES:
        return InvalidTransition(current, Event.CLAIM)
    return Conflict(Conflict.STALE_VERSION, 'This donation was updated by someone else. Please refresh.')


def claim(donation, ngo, actor=None):
    """Claim an active donation for ``ngo``; returns the projected capacity rate."""
    if donation.status in Donation.CLAIMED_STATUSES:
        raise Conflict(Conflict.ALREADY_CLAIMED, 'This donation has already been claimed by another NGO.')
    state_machine.next_status(donation.status, Event.CLAIM)

    current = expiry.now()
    if expiry.is_expired(donation.expiry_date, current):
        raise InvalidTransition(donation.status, Event.CLAIM, 'This donation has expired and can no longer be claimed.')

    projected = capacity.check_admission(ngo, donation.quantity)

    with transaction.atomic():
        try:
            state_machine.apply(
                donation, Event.CLAIM, actor=actor,
                details={'ngo': ngo.pk, 'projected_rate': round(projected, 4)},
                claimed_by=ngo, claimed_at=current,
            )
        except Conflict:
            raise _lost_claim(donation)
        capacity.record_claim(ngo, donation.quantity, capacity.today())

    logger.info("Donation %s claimed by NGO %s", donation.pk, ngo.pk)
    return projected


def reject(donation, ngo, category=None, reason='', actor=None):
    """
    Reject a donation. Any NGO may reject an unclaimed donation; after a claim only
    the claiming NGO may, and only before a volunteer has accepted the mission.
    """
    if donation.status == Status.ASSIGNED and donation.claimed_by_id != ngo.pk:
        raise NotAuthorized('Only the NGO that claimed this donation can reject it.')

    category, text = parse_rejection(category, reason)
    previous_ngo, claimed_at = donation.claimed_by, donation.claimed_at

    with transaction.atomic():
        state_machine.apply(
            donation, Event.REJECT, actor=actor,
            details={'category': category, 'reason': text},
            rejected_by=ngo, rejection_category=category, rejection_reason=text,
        )
        if previous_ngo is not None:
            capacity.release(previous_ngo, donation.quantity, claimed_at)

    logger.info("Donation %s rejected by NGO %s (%s)", donation.pk, ngo.pk, category)
    return donation


def cancel(donation, user, actor=None):
    """Withdraw a donation before a volunteer takes it. Allowed for the donor and the claiming NGO."""
    is_donor = donation.donor_id == user.pk
    is_claimer = donation.claimed_by_id is not None and donation.claimed_by_id == user.pk
    if not (is_donor or is_claimer or user.is_staff):
        raise NotAuthorized('Only the donor or the claiming NGO can cancel this donation.')

    previous_ngo, claimed_at = donation.claimed_by, donation.claimed_at
    with transaction.atomic():
        state_machine.apply(
            donation, Event.CANCEL, actor=actor or user,
            details={'by': 'donor' if is_donor else 'ngo' if is_claimer else 'staff'},
            cancelled_at=expiry.now(),
        )
        if previous_ngo is not None:
            capacity.release(previous_ngo, donation.quantity, claimed_at)

    logger.info("Donation %s cancelled by user %s", donation.pk, user.pk)
    return donation
