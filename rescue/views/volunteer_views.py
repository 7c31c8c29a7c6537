# rescue/views/volunteer_views.py
from django.contrib.auth.decorators import login_required
from django.http import JsonResponse

from .. import services
from ..decorators import user_type_required
from .helpers import api_endpoint, profile_for, read_json


@login_required
@user_type_required('VOLUNTEER')
@api_endpoint('GET')
def available_missions(request):
    volunteer = profile_for(request.user, 'volunteer_profile')
    missions = services.list_available_missions(volunteer)
    return JsonResponse({'success': True, 'missions': missions, 'count': len(missions)})


@login_required
@user_type_required('VOLUNTEER')
@api_endpoint('GET')
def mission_history(request):
    volunteer = profile_for(request.user, 'volunteer_profile')
    return JsonResponse({'success': True, **services.volunteer_missions(volunteer)})


@login_required
@user_type_required('VOLUNTEER')
@api_endpoint('POST')
def accept_mission(request, donation_id):
    volunteer = profile_for(request.user, 'volunteer_profile')
    result = services.accept_mission(donation_id, volunteer, user=request.user)
    return JsonResponse({'success': True, 'message': 'Mission accepted! Head to the pickup point.', **result})


@login_required
@user_type_required('VOLUNTEER')
@api_endpoint('POST')
def update_mission_status(request, donation_id):
    """Body: ``status`` (a delivery status) plus ``photo`` and ``notes`` for handovers."""
    data = read_json(request)
    donation = services.update_delivery_status(
        donation_id, request.user, data.get('status'),
        photo_ref=data.get('photo'), notes=data.get('notes', ''),
    )
    return JsonResponse({'success': True, 'message': 'Status updated.', 'donation': donation})


@login_required
@user_type_required('VOLUNTEER')
@api_endpoint('POST')
def confirm_pickup(request, donation_id):
    data = read_json(request)
    donation = services.confirm_pickup(donation_id, request.user, data.get('photo'), notes=data.get('notes', ''))
    return JsonResponse({'success': True, 'message': 'Marked as picked up!', 'donation': donation})


@login_required
@user_type_required('VOLUNTEER')
@api_endpoint('POST')
def confirm_delivery(request, donation_id):
    data = read_json(request)
    donation = services.confirm_delivery(donation_id, request.user, data.get('photo'), notes=data.get('notes', ''))
    return JsonResponse({'success': True, 'message': 'Delivery recorded. The NGO has been notified.', 'donation': donation})


@login_required
@user_type_required('VOLUNTEER')
@api_endpoint('POST')
def cancel_mission(request, donation_id):
    """Staff pass the role check and may cancel on a volunteer's behalf."""
    data = read_json(request)
    donation = services.cancel_mission(donation_id, request.user, data.get('reason'), notes=data.get('notes', ''))
    return JsonResponse({
        'success': True,
        'message': 'Mission cancelled. The donation is now available for other volunteers.',
        'donation': donation,
    })


@login_required
@api_endpoint('GET')
def mission_route(request, donation_id):
    route = services.get_optimized_route(donation_id, request.user)
    return JsonResponse({'success': True, **route})
