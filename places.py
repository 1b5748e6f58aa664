"""
Place autocomplete and place details (Google Places API).

Used upstream of rate resolution: the search form turns a typed address
into either a known city id or a free-text PlaceDestination. Results are
restricted to India. The API key stays server-side.
"""

from typing import Any, Dict, List, Optional
import logging

import requests

from config import GOOGLE_MAPS_API_KEY, PLACES_API_TIMEOUT
from pricing_engine import PlacesServiceError

logger = logging.getLogger(__name__)

AUTOCOMPLETE_URL = 'https://maps.googleapis.com/maps/api/place/autocomplete/json'
PLACE_DETAILS_URL = 'https://maps.googleapis.com/maps/api/place/details/json'
PLACE_DETAIL_FIELDS = 'geometry,address_components,formatted_address,name'


class PlacesClient:

    def __init__(
        self,
        api_key: Optional[str] = None,
        timeout: float = PLACES_API_TIMEOUT,
        session: Optional[requests.Session] = None
    ):
        self.api_key = GOOGLE_MAPS_API_KEY if api_key is None else api_key
        self.timeout = timeout
        self.session = session or requests.Session()

    def _get(self, url: str, params: Dict[str, Any]) -> Dict[str, Any]:
        if not self.api_key:
            raise PlacesServiceError('Google Maps API key not configured')

        params = dict(params, key=self.api_key)
        try:
            resp = self.session.get(url, params=params, timeout=self.timeout)
            resp.raise_for_status()
            data = resp.json()
        except (requests.RequestException, ValueError) as e:
            logger.error(f"Places API request failed: {e}")
            raise PlacesServiceError('Places service unavailable') from e

        status = data.get('status')
        if status not in ('OK', 'ZERO_RESULTS'):
            logger.error(f"Places API returned status {status}: {data.get('error_message', '')}")
            raise PlacesServiceError(f"Places API error: {status}")
        return data

    def autocomplete(self, text: str, session_token: Optional[str] = None) -> List[Dict[str, Any]]:
        text = (text or '').strip()
        if not text:
            return []

        params = {'input': text, 'components': 'country:in'}
        if session_token:
            params['sessiontoken'] = session_token

        data = self._get(AUTOCOMPLETE_URL, params)
        return [
            {
                'placeId': p.get('place_id'),
                'description': p.get('description', ''),
                'mainText': (p.get('structured_formatting') or {}).get('main_text', p.get('description', '')),
            }
            for p in data.get('predictions', [])
        ]

    def place_details(self, place_id: str, session_token: Optional[str] = None) -> Dict[str, Any]:
        if not place_id:
            raise PlacesServiceError('placeId is required')

        params = {'place_id': place_id, 'fields': PLACE_DETAIL_FIELDS}
        if session_token:
            params['sessiontoken'] = session_token

        result = self._get(PLACE_DETAILS_URL, params).get('result') or {}
        location = (result.get('geometry') or {}).get('location') or {}
        return {
            'placeId': place_id,
            'name': result.get('name', ''),
            'formattedAddress': result.get('formatted_address', ''),
            'city': extract_locality(result.get('address_components') or []) or result.get('name', ''),
            'lat': location.get('lat'),
            'lng': location.get('lng'),
        }


def extract_locality(components: List[Dict[str, Any]]) -> Optional[str]:
    """City name from Google address components."""
    for wanted in ('locality', 'administrative_area_level_2'):
        for component in components:
            if wanted in component.get('types', []):
                return component.get('long_name')
    return None


def find_city_id_by_name(cursor, name: str) -> Optional[str]:
    """Match a geocoded city name against the cities table (case-insensitive)."""
    if not name:
        return None
    cursor.execute(
        "SELECT id FROM cities WHERE LOWER(name) = LOWER(%s) LIMIT 1",
        (name.strip(),)
    )
    row = cursor.fetchone()
    return str(row[0]) if row else None
