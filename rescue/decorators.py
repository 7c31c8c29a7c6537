# rescue/decorators.py
from functools import wraps

from django.http import JsonResponse


def user_type_required(*user_types):
    """Restrict a view to users of the given types; staff always pass."""
    def decorator(view_func):
        @wraps(view_func)
        def _wrapped_view(request, *args, **kwargs):
            if request.user.is_staff or request.user.user_type in user_types:
                return view_func(request, *args, **kwargs)
            return JsonResponse({
                'success': False,
                'error': 'not_authorized',
                'message': 'You do not have permission to perform this action.'
            }, status=403)
        return _wrapped_view
    return decorator
