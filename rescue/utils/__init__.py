# rescue/utils/__init__.py
from .route_optimization import (
    RouteOptimizer,
    Location,
    GoogleMapsService,
    get_route_optimizer
)

__all__ = [
    'RouteOptimizer',
    'Location',
    'GoogleMapsService',
    'get_route_optimizer'
]
