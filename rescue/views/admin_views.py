# rescue/views/admin_views.py
from django.contrib.auth.decorators import login_required
from django.http import JsonResponse

from .. import services
from ..decorators import user_type_required
from .helpers import api_endpoint


@login_required
@user_type_required('ADMIN')
@api_endpoint('GET')
def active_missions(request):
    missions = services.active_missions()
    return JsonResponse({'success': True, 'missions': missions, 'count': len(missions)})
