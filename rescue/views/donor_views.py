# rescue/views/donor_views.py
from django.contrib.auth.decorators import login_required
from django.http import JsonResponse

from .. import services
from ..decorators import user_type_required
from ..exceptions import DonationValidationError
from ..forms import DonationForm
from ..models import Donation
from .helpers import api_endpoint, profile_for, read_json


@login_required
@user_type_required('DONOR')
@api_endpoint('GET', 'POST')
def donor_donations(request):
    """GET lists the donor's own donations; POST posts a new one."""
    donor = profile_for(request.user, 'donor_profile')

    if request.method == 'POST':
        data = read_json(request)
        data.setdefault('pickup_address', donor.address)
        form = DonationForm(data)
        if not form.is_valid():
            raise DonationValidationError('Please correct the errors below.', errors=form.error_summary())
        donation = services.post_donation(donor, actor=request.user, **form.donation_fields())
        return JsonResponse({'success': True, 'message': 'New donation posted successfully!', 'donation': donation}, status=201)

    donations = Donation.objects.filter(donor=donor).select_related('donor', 'claimed_by', 'assigned_volunteer')
    status = request.GET.get('status')
    if status:
        donations = donations.filter(status=status)
    return JsonResponse({
        'success': True,
        'donations': [services.serialize_donation(d) for d in donations],
    })


@login_required
@api_endpoint('GET')
def donation_detail(request, donation_id):
    return JsonResponse({'success': True, 'donation': services.get_donation(donation_id)})


@login_required
@user_type_required('DONOR', 'NGO')
@api_endpoint('POST')
def cancel_donation(request, donation_id):
    donation = services.cancel_donation(donation_id, request.user)
    return JsonResponse({'success': True, 'message': 'Donation cancelled.', 'donation': donation})


@login_required
@api_endpoint('GET')
def stats(request):
    return JsonResponse({'success': True, 'stats': services.get_stats(request.user)})
