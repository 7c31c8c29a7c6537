# rescue/views/ngo_views.py
from django.contrib.auth.decorators import login_required
from django.http import JsonResponse

from .. import services
from ..decorators import user_type_required
from .helpers import api_endpoint, profile_for, read_json


@login_required
@user_type_required('NGO')
@api_endpoint('GET')
def donation_feed(request):
    ngo = profile_for(request.user, 'ngo_profile')
    feed = services.list_feed(ngo)
    return JsonResponse({'success': True, **feed})


@login_required
@user_type_required('NGO')
@api_endpoint('POST')
def claim_donation(request, donation_id):
    ngo = profile_for(request.user, 'ngo_profile')
    result = services.claim_donation(donation_id, ngo, user=request.user)
    message = 'Donation claimed! Volunteers have been notified.'
    if result['capacity_warning']:
        message = 'Donation claimed, but you are close to or over your daily capacity.'
    return JsonResponse({'success': True, 'message': message, **result})


@login_required
@user_type_required('NGO')
@api_endpoint('POST')
def reject_donation(request, donation_id):
    """Body: ``category`` (hygiene, expired, storage, logistics, other) and/or ``reason``."""
    ngo = profile_for(request.user, 'ngo_profile')
    data = read_json(request)
    donation = services.reject_donation(
        donation_id, ngo,
        category=data.get('category'),
        reason=data.get('reason') or data.get('rejection_reason', ''),
        user=request.user,
    )
    return JsonResponse({'success': True, 'message': 'Donation rejected.', 'donation': donation})


@login_required
@user_type_required('NGO')
@api_endpoint('POST')
def complete_donation(request, donation_id):
    ngo = profile_for(request.user, 'ngo_profile')
    data = read_json(request)
    donation = services.complete_donation(
        donation_id, ngo, rating=data.get('rating'), review=data.get('review', ''), user=request.user,
    )
    return JsonResponse({'success': True, 'message': 'Receipt confirmed. Thank you!', 'donation': donation})


@login_required
@user_type_required('NGO')
@api_endpoint('GET')
def offer_mission(request, donation_id):
    ngo = profile_for(request.user, 'ngo_profile')
    volunteers = services.offer_mission(donation_id, ngo)
    return JsonResponse({'success': True, 'volunteers': volunteers, 'count': len(volunteers)})


@login_required
@user_type_required('NGO')
@api_endpoint('GET')
def claimed_donations(request):
    ngo = profile_for(request.user, 'ngo_profile')
    donations = services.list_claimed(ngo, status=request.GET.get('status'))
    return JsonResponse({'success': True, 'donations': donations, 'count': len(donations)})
