# rescue/utils/route_optimization.py
"""
Distance and ordering utilities for mission routes.
Uses the Google Maps Distance Matrix API when configured, with a geodesic fallback.
"""

import logging
from typing import Dict, List, Optional, Tuple

import requests
from django.conf import settings
from geopy.distance import geodesic
from requests.adapters import HTTPAdapter
from urllib3.exceptions import ConnectTimeoutError, ReadTimeoutError
from urllib3.util.retry import Retry

from ..exceptions import CollaboratorTimeout

logger = logging.getLogger(__name__)

# Assumed city speed when no road durations are available
AVERAGE_SPEED_KMH = 20


class Location:
    """A geographic point on a mission route"""
    def __init__(self, lat: Optional[float], lon: Optional[float], location_id: Optional[int] = None,
                 location_type: str = 'pickup', name: str = ''):
        self.lat = lat
        self.lon = lon
        self.id = location_id
        self.type = location_type  # 'pickup', 'diversion', 'delivery', 'volunteer'
        self.name = name

    @classmethod
    def from_coordinates(cls, coordinates: Optional[Dict], **kwargs) -> 'Location':
        coordinates = coordinates or {}
        return cls(coordinates.get('lat'), coordinates.get('lng'), **kwargs)

    @property
    def has_coordinates(self) -> bool:
        return self.lat is not None and self.lon is not None

    def distance_to(self, other: 'Location') -> float:
        """Geodesic distance to another location in kilometers"""
        if not (self.has_coordinates and other.has_coordinates):
            return float('inf')
        return geodesic((self.lat, self.lon), (other.lat, other.lon)).km

    def to_coords_string(self) -> str:
        return f"{self.lat},{self.lon}"


def travel_minutes(distance_km: float) -> float:
    return distance_km / AVERAGE_SPEED_KMH * 60


def _is_timeout(exc: requests.RequestException) -> bool:
    if isinstance(exc, requests.Timeout):
        return True
    # Exhausted read retries surface as a ConnectionError wrapping MaxRetryError
    reason = getattr(exc.args[0], 'reason', None) if exc.args else None
    return isinstance(reason, (ReadTimeoutError, ConnectTimeoutError))


class GoogleMapsService:
    """Client for the Google Maps Distance Matrix API"""

    BASE_URL = "https://maps.googleapis.com/maps/api/distancematrix/json"

    def __init__(self, api_key: Optional[str] = None, timeout: Optional[float] = None,
                 max_retries: Optional[int] = None):
        self.api_key: str = api_key or getattr(settings, 'GOOGLE_MAPS_API_KEY', '') or ''
        self.timeout = timeout if timeout is not None else settings.COLLABORATOR_TIMEOUT_SECONDS
        retries = max_retries if max_retries is not None else settings.COLLABORATOR_MAX_RETRIES
        self.session = requests.Session()
        self.session.mount('https://', HTTPAdapter(max_retries=Retry(
            total=retries, connect=retries, read=retries, backoff_factor=0.5,
            status_forcelist=(502, 503, 504), allowed_methods=frozenset(['GET']),
        )))

    def is_available(self) -> bool:
        return bool(self.api_key)

    def get_distance_matrix(self, origins: List[Location], destinations: List[Location],
                            mode: str = 'driving') -> Optional[Dict]:
        """
        Fetch road distances (km) and durations (minutes) between every origin and destination.

        Returns None when the API is unconfigured or answers with an error, so callers
        can fall back to geodesic distances. Raises CollaboratorTimeout when the API
        keeps timing out after the configured retries.
        """
        if not self.is_available():
            return None

        params = {
            'origins': '|'.join(loc.to_coords_string() for loc in origins),
            'destinations': '|'.join(loc.to_coords_string() for loc in destinations),
            'mode': mode,
            'departure_time': 'now',
            'key': self.api_key,
        }
        try:
            response = self.session.get(self.BASE_URL, params=params, timeout=self.timeout)
            response.raise_for_status()
            data = response.json()
        except requests.RequestException as e:
            if _is_timeout(e):
                logger.warning("Google Maps distance matrix timed out: %s", e)
                raise CollaboratorTimeout('The routing service did not respond in time. Please retry.')
            logger.warning("Google Maps distance matrix request failed: %s", e)
            return None
        except ValueError as e:
            logger.warning("Google Maps returned an unreadable response: %s", e)
            return None

        if data.get('status') != 'OK':
            logger.warning("Google Maps API error: %s", data.get('status'))
            return None

        return self._parse_distance_matrix(data, origins, destinations)

    def _parse_distance_matrix(self, data: Dict, origins: List[Location],
                               destinations: List[Location]) -> Dict:
        result = {'distances': [], 'durations': []}

        for i, row in enumerate(data.get('rows', [])):
            distance_row = []
            duration_row = []
            for j, element in enumerate(row.get('elements', [])):
                if element.get('status') == 'OK':
                    distance_km = element.get('distance', {}).get('value', 0) / 1000
                    # Prefer live-traffic duration when present
                    duration_s = element.get('duration_in_traffic', element.get('duration', {})).get('value', 0)
                    distance_row.append(distance_km)
                    duration_row.append(duration_s / 60)
                else:
                    fallback = origins[i].distance_to(destinations[j])
                    distance_row.append(fallback)
                    duration_row.append(travel_minutes(fallback))
            result['distances'].append(distance_row)
            result['durations'].append(duration_row)

        return result


class RouteOptimizer:
    """Distance matrices and nearest-neighbour ordering over mission stops"""

    def __init__(self, use_google_maps: bool = True):
        self.google_maps: Optional[GoogleMapsService] = GoogleMapsService() if use_google_maps else None
        self._use_google_maps = self.google_maps is not None and self.google_maps.is_available()

    def distance_matrix(self, locations: List[Location]) -> Tuple[List[List[float]], List[List[float]]]:
        """Square (distances_km, durations_min) matrices over ``locations``."""
        if self._use_google_maps and self.google_maps is not None:
            matrix = self.google_maps.get_distance_matrix(locations, locations)
            if matrix and len(matrix['distances']) == len(locations):
                return matrix['distances'], matrix['durations']

        distances = [[a.distance_to(b) if a is not b else 0.0 for b in locations] for a in locations]
        durations = [[travel_minutes(d) for d in row] for row in distances]
        return distances, durations

    @staticmethod
    def priority_weight(priority: Optional[int]) -> float:
        """Scale factor on leg cost; priority 10 costs a tenth of priority 1."""
        if not priority:
            return 1.0
        return (11 - priority) * 0.1

    def nearest_neighbor_order(self, start: int, candidates: List[int], distances: List[List[float]],
                               priorities: Optional[Dict[int, int]] = None) -> List[int]:
        """
        Nearest Neighbor ordering of ``candidates`` (matrix indices) beginning at ``start``.

        With ``priorities`` each leg's distance is weighted by the target stop's
        priority, so urgent stops are pulled earlier in the route.
        """
        priorities = priorities or {}
        remaining = list(candidates)
        order = []
        current = start
        while remaining:
            nearest = min(remaining, key=lambda i: distances[current][i] * self.priority_weight(priorities.get(i)))
            order.append(nearest)
            remaining.remove(nearest)
            current = nearest
        return order

    @staticmethod
    def path_totals(path: List[int], distances: List[List[float]],
                    durations: List[List[float]]) -> Tuple[float, float]:
        total_distance = 0.0
        total_time = 0.0
        for a, b in zip(path, path[1:]):
            if distances[a][b] == float('inf'):
                continue
            total_distance += distances[a][b]
            total_time += durations[a][b]
        return total_distance, total_time


def get_route_optimizer() -> RouteOptimizer:
    """RouteOptimizer configured from settings"""
    return RouteOptimizer(use_google_maps=settings.MISSION_USE_GOOGLE_MAPS)
