"""
Road distance between two place names.

Lookup order:
  1. Google Distance Matrix API (when GOOGLE_MAPS_API_KEY is set)
  2. Static city-pair table (approximate road distances)
  3. Fixed default of 500 km

Pricing must never block on a mapping outage, so resolve_distance() never
raises: every fallback result carries a human-readable warning instead.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional
import logging
import math
import re

import requests

from config import GOOGLE_MAPS_API_KEY, DISTANCE_API_TIMEOUT

logger = logging.getLogger(__name__)

DISTANCE_MATRIX_URL = 'https://maps.googleapis.com/maps/api/distancematrix/json'

DEFAULT_DISTANCE_KM = 500

# Approximate road distances (km). Keys are normalized first tokens; the
# reversed key is tried as well, so each pair is listed once.
_FALLBACK_CITY_DISTANCES_KM = {
    'delhi-mumbai': 1400,
    'delhi-bangalore': 2100,
    'mumbai-bangalore': 980,
    'delhi-chennai': 2200,
    'mumbai-chennai': 1340,
    'delhi-kolkata': 1500,
    'varanasi-hyderabad': 1200,
    'delhi-hyderabad': 1600,
    'mumbai-hyderabad': 700,
    'varanasi-delhi': 800,
    'varanasi-mumbai': 1200,
    'varanasi-bangalore': 1500,
    'varanasi-chennai': 1300,
    'varanasi-kolkata': 700,
}


@dataclass(frozen=True)
class DistanceResult:
    distance_km: float
    warning: Optional[str] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        result = {'distance': self.distance_km}
        if self.warning:
            result['warning'] = self.warning
        if self.error:
            result['error'] = self.error
        return result


class DistanceLookupError(Exception):
    """Raised internally when the live service gives no usable distance."""
    pass


def normalize_city_name(name: str) -> str:
    """'New Delhi, India' -> 'new'; 'Varanasi' -> 'varanasi'."""
    cleaned = re.sub(r'[^a-z\s]', '', (name or '').lower()).strip()
    parts = cleaned.split()
    return parts[0] if parts else ''


def estimate_fallback_distance(pickup_name: str, destination_name: str) -> float:
    pickup = normalize_city_name(pickup_name)
    destination = normalize_city_name(destination_name)

    key = f"{pickup}-{destination}"
    reverse_key = f"{destination}-{pickup}"

    distance = (
        _FALLBACK_CITY_DISTANCES_KM.get(key)
        or _FALLBACK_CITY_DISTANCES_KM.get(reverse_key)
        or DEFAULT_DISTANCE_KM
    )
    logger.info(f"Fallback distance for {key}: {distance} km")
    return distance


class DistanceResolver:
    """Wraps the Distance Matrix API with the static fallback table."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        timeout: float = DISTANCE_API_TIMEOUT,
        session: Optional[requests.Session] = None
    ):
        self.api_key = GOOGLE_MAPS_API_KEY if api_key is None else api_key
        self.timeout = timeout
        self.session = session or requests.Session()

    def fetch_road_distance(self, pickup_name: str, destination_name: str) -> float:
        """
        Query the Distance Matrix API. Returns kilometres (rounded).
        Raises DistanceLookupError or requests.RequestException on failure.
        """
        if not self.api_key:
            raise DistanceLookupError('Google Maps API key not configured')

        resp = self.session.get(
            DISTANCE_MATRIX_URL,
            params={
                'origins': pickup_name,
                'destinations': destination_name,
                'units': 'metric',
                'key': self.api_key,
            },
            timeout=self.timeout,
        )
        if not resp.ok:
            raise DistanceLookupError(f"Distance Matrix HTTP {resp.status_code}")

        data = resp.json()
        if not isinstance(data, dict) or data.get('status') != 'OK' or not data.get('rows'):
            message = data.get('error_message') if isinstance(data, dict) else None
            raise DistanceLookupError(message or 'Distance calculation failed')

        try:
            element = data['rows'][0]['elements'][0]
        except (KeyError, IndexError, TypeError):
            raise DistanceLookupError('Malformed Distance Matrix response')

        if not isinstance(element, dict) or not isinstance(element.get('distance'), dict):
            status = element.get('status') if isinstance(element, dict) else None
            raise DistanceLookupError(f"Google Maps API error: {status}")
        if element.get('status') != 'OK':
            raise DistanceLookupError(f"Google Maps API error: {element.get('status')}")

        meters = element['distance'].get('value')
        if not isinstance(meters, (int, float)) or not math.isfinite(meters) or meters <= 0:
            raise DistanceLookupError(f"Invalid distance value: {meters!r}")

        return round(meters / 1000)

    def resolve_distance(self, pickup_name: str, destination_name: str) -> DistanceResult:
        logger.info(f"Calculating distance between: {pickup_name} and {destination_name}")

        if not self.api_key:
            logger.warning("Google Maps API key not configured - using estimated distance")
            return DistanceResult(
                distance_km=estimate_fallback_distance(pickup_name, destination_name),
                warning='Google Maps API key not configured - using estimated distance',
                error='API key missing',
            )

        try:
            distance = self.fetch_road_distance(pickup_name, destination_name)
        except (requests.RequestException, ValueError, ArithmeticError, DistanceLookupError) as e:
            logger.warning(f"Distance lookup failed for {pickup_name} -> {destination_name}: {e} — using fallback")
            return DistanceResult(
                distance_km=estimate_fallback_distance(pickup_name, destination_name),
                warning='Using estimated distance due to API error',
                error=str(e),
            )

        if distance <= 0:
            logger.warning(f"Non-positive distance {distance} for {pickup_name} -> {destination_name}")
            return DistanceResult(
                distance_km=estimate_fallback_distance(pickup_name, destination_name),
                warning='No valid distance returned from API, using estimated distance',
            )

        logger.info(f"Distance calculated successfully: {distance} km")
        return DistanceResult(distance_km=distance)


def resolve_distance(pickup_name: str, destination_name: str) -> DistanceResult:
    return DistanceResolver().resolve_distance(pickup_name, destination_name)
