# rescue/views/__init__.py

# Import all views from the separated files
from .donor_views import *
from .ngo_views import *
from .volunteer_views import *
from .admin_views import *
