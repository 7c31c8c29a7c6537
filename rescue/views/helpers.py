# rescue/views/helpers.py
import json
import logging
from functools import wraps

from django.http import JsonResponse

from ..exceptions import CoordinationError, DonationValidationError, NotAuthorized

logger = logging.getLogger(__name__)


def read_json(request):
    """Request body as a dict; form-encoded bodies are accepted too."""
    if request.content_type == 'application/json':
        data = json.loads(request.body) if request.body else {}
        if not isinstance(data, dict):
            raise DonationValidationError('Expected a JSON object.')
        return data
    return request.POST.dict()


def profile_for(user, attr):
    profile = getattr(user, attr, None)
    if profile is None:
        raise NotAuthorized('Your account has no profile for this action.')
    return profile


def api_endpoint(*methods):
    """
    Accept only ``methods`` and turn coordination errors into JSON error bodies
    with the status each error carries.
    """
    def decorator(view_func):
        @wraps(view_func)
        def _wrapped_view(request, *args, **kwargs):
            if request.method not in methods:
                return JsonResponse({'success': False, 'error': 'method_not_allowed', 'message': 'Invalid request'}, status=405)
            try:
                return view_func(request, *args, **kwargs)
            except CoordinationError as e:
                return JsonResponse(e.as_dict(), status=e.status)
            except (json.JSONDecodeError, UnicodeDecodeError):
                return JsonResponse({'success': False, 'error': 'validation_error', 'message': 'Invalid JSON data'}, status=400)
            except Exception:
                logger.exception("Error in %s", view_func.__name__)
                return JsonResponse({'success': False, 'error': 'server_error', 'message': 'An unexpected error occurred.'}, status=500)
        return _wrapped_view
    return decorator
