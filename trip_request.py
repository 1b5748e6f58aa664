"""
Trip request model.

A TripRequest is the immutable description of what the customer searched
for. The destination is an explicit tagged variant:

    CityDestination    — a city present in the cities table
    PlaceDestination   — a free-text / geocoded place (or an airport)
    PackageDestination — a local hourly package
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional, Union
from uuid import UUID
import logging

from pricing_engine import InvalidTripRequestError, DurationCalculator

logger = logging.getLogger(__name__)

LEGACY_PLACE_PREFIX = 'google_maps_'
DEFAULT_PICKUP_TIME = '09:00:00'


def is_uuid(value: Any) -> bool:
    try:
        UUID(str(value))
        return True
    except (TypeError, ValueError):
        return False


class TripType(str, Enum):
    ROUND = 'round'
    ONEWAY = 'oneway'
    LOCAL = 'local'
    AIRPORT = 'airport'

    @property
    def rate_trip_type(self) -> str:
        """Trip type value as stored in vehicle_rates / common_rates."""
        return _RATE_TRIP_TYPES[self]

    @classmethod
    def parse(cls, value: Any) -> 'TripType':
        if isinstance(value, cls):
            return value
        key = str(value or '').strip().lower().replace('-', '_')
        trip_type = _TRIP_TYPE_ALIASES.get(key)
        if trip_type is None:
            raise InvalidTripRequestError(f"Unknown trip type: {value!r}")
        return trip_type


_RATE_TRIP_TYPES = {
    TripType.ROUND: 'round_trip',
    TripType.ONEWAY: 'oneway_trip',
    TripType.LOCAL: 'local',
    TripType.AIRPORT: 'airport',
}

_TRIP_TYPE_ALIASES = {
    'round': TripType.ROUND,
    'round_trip': TripType.ROUND,
    'oneway': TripType.ONEWAY,
    'one_way': TripType.ONEWAY,
    'oneway_trip': TripType.ONEWAY,
    'local': TripType.LOCAL,
    'airport': TripType.AIRPORT,
}


class TransferType(str, Enum):
    GOING_TO = 'going-to'
    COMING_FROM = 'coming-from'


@dataclass(frozen=True)
class CityDestination:
    city_id: str
    name: Optional[str] = None


@dataclass(frozen=True)
class PlaceDestination:
    name: str
    place_id: Optional[str] = None


@dataclass(frozen=True)
class PackageDestination:
    package_id: str


Destination = Union[CityDestination, PlaceDestination, PackageDestination]


@dataclass(frozen=True)
class TripRequest:
    trip_type: TripType
    pickup_city_id: str
    destination: Optional[Destination]
    pickup_date: str
    return_date: Optional[str] = None
    pickup_time: str = DEFAULT_PICKUP_TIME
    vehicle_id: Optional[str] = None
    pickup_city_name: Optional[str] = None
    transfer_type: Optional[TransferType] = None
    additional_city_id: Optional[str] = None

    @property
    def destination_city_id(self) -> Optional[str]:
        if isinstance(self.destination, CityDestination):
            return self.destination.city_id
        return None

    @property
    def destination_name(self) -> Optional[str]:
        if isinstance(self.destination, CityDestination):
            return self.destination.name
        if isinstance(self.destination, PlaceDestination):
            return self.destination.name
        return None

    @property
    def package_id(self) -> Optional[str]:
        if isinstance(self.destination, PackageDestination):
            return self.destination.package_id
        return None

    @property
    def airport_name(self) -> Optional[str]:
        if self.trip_type == TripType.AIRPORT and isinstance(self.destination, PlaceDestination):
            return self.destination.name
        return None

    def validate(self) -> None:
        """Reject incomplete requests before any lookup or calculation."""
        if not self.pickup_city_id:
            raise InvalidTripRequestError("Pickup city is required.")
        if not is_uuid(self.pickup_city_id):
            raise InvalidTripRequestError("Please select a pickup city from the list.")
        if not self.pickup_date:
            raise InvalidTripRequestError("Pickup date is required.")

        if self.trip_type in (TripType.ROUND, TripType.ONEWAY):
            if not isinstance(self.destination, (CityDestination, PlaceDestination)):
                raise InvalidTripRequestError("Destination city or place is required.")
            if isinstance(self.destination, PlaceDestination) and not self.destination.name:
                raise InvalidTripRequestError("Destination name is required.")
        elif self.trip_type == TripType.LOCAL:
            if not isinstance(self.destination, PackageDestination):
                raise InvalidTripRequestError("Local package is required.")
            if not is_uuid(self.destination.package_id):
                raise InvalidTripRequestError("Please select a local package from the list.")
        elif self.trip_type == TripType.AIRPORT:
            if not isinstance(self.destination, PlaceDestination) or not self.destination.name:
                raise InvalidTripRequestError("Airport name is required.")
            if self.transfer_type is None:
                raise InvalidTripRequestError("Airport transfer direction is required.")

        pickup = DurationCalculator.parse_date(self.pickup_date)
        returning = DurationCalculator.parse_date(self.return_date)
        if returning is not None and returning < pickup:
            raise InvalidTripRequestError("Return date cannot be before pickup date.")

    def booking_trip_type(self) -> TripType:
        """
        Trip type recorded on the booking.

        A return date makes a point-to-point booking round-trip-shaped,
        whichever search tab it started from.
        """
        if self.trip_type == TripType.LOCAL and self.package_id:
            return TripType.LOCAL
        if self.trip_type == TripType.AIRPORT and self.airport_name:
            return TripType.AIRPORT
        return TripType.ROUND if self.return_date else TripType.ONEWAY

    def to_dict(self) -> Dict[str, Any]:
        return {
            'tripType': self.trip_type.value,
            'pickupCityId': self.pickup_city_id,
            'pickupCityName': self.pickup_city_name,
            'destinationCityId': self.destination_city_id,
            'destinationName': self.destination_name,
            'packageId': self.package_id,
            'airportName': self.airport_name,
            'transferType': self.transfer_type.value if self.transfer_type else None,
            'pickupDate': self.pickup_date,
            'returnDate': self.return_date,
            'pickupTime': self.pickup_time,
            'vehicleId': self.vehicle_id,
            'additionalCityId': self.additional_city_id,
        }


# =====================================================
# PAYLOAD PARSING
# =====================================================

def _clean(value: Any) -> Optional[str]:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def normalize_pickup_time(value: Any) -> str:
    value = _clean(value)
    if not value:
        return DEFAULT_PICKUP_TIME
    if value.count(':') == 1:
        return value + ':00'
    return value


def parse_legacy_place_token(token: str) -> PlaceDestination:
    """Decode 'google_maps_<name>_<placeId>' ids sent by older clients."""
    parts = token.split('_', 3)
    name = parts[2] if len(parts) > 2 and parts[2] else 'Custom Location'
    place_id = parts[3] if len(parts) > 3 else None
    return PlaceDestination(name=name, place_id=place_id)


def _parse_destination(
    payload: Dict[str, Any],
    trip_type: TripType,
    is_known_city: Optional[Callable[[str], bool]]
) -> Optional[Destination]:
    if trip_type == TripType.LOCAL:
        package_id = _clean(payload.get('packageId') or payload.get('package'))
        return PackageDestination(package_id) if package_id else None

    if trip_type == TripType.AIRPORT:
        airport_name = _clean(payload.get('airportName'))
        return PlaceDestination(name=airport_name) if airport_name else None

    block = payload.get('destination')
    if isinstance(block, dict):
        kind = (block.get('type') or '').lower()
        if kind == 'city' and _clean(block.get('id')):
            return CityDestination(city_id=_clean(block.get('id')), name=_clean(block.get('name')))
        if kind == 'place' and _clean(block.get('name')):
            return PlaceDestination(name=_clean(block.get('name')), place_id=_clean(block.get('placeId')))
        return None

    raw_id = _clean(payload.get('destinationCityId') or payload.get('destinationCity'))
    name = _clean(payload.get('destinationName') or payload.get('destinationCityName'))

    if raw_id and raw_id.startswith(LEGACY_PLACE_PREFIX):
        place = parse_legacy_place_token(raw_id)
        return PlaceDestination(name=name or place.name, place_id=place.place_id)

    if raw_id:
        if is_known_city is None or is_known_city(raw_id):
            return CityDestination(city_id=raw_id, name=name)
        logger.info(f"Destination {raw_id!r} is not a known city, treating as free-text place")
        return PlaceDestination(name=name or raw_id)

    if name:
        return PlaceDestination(name=name, place_id=_clean(payload.get('destinationPlaceId')))

    return None


def parse_trip_request(
    payload: Dict[str, Any],
    is_known_city: Optional[Callable[[str], bool]] = None
) -> TripRequest:
    """
    Build and validate a TripRequest from a JSON payload.

    is_known_city, when given, decides whether a bare destination id is a
    row of the cities table; unknown ids become PlaceDestination.
    """
    if not payload:
        raise InvalidTripRequestError("No data provided")

    trip_type = TripType.parse(payload.get('tripType', 'round'))

    transfer_type = None
    if trip_type == TripType.AIRPORT:
        raw_transfer = _clean(payload.get('transferType') or payload.get('airportSection'))
        if raw_transfer:
            try:
                transfer_type = TransferType(raw_transfer)
            except ValueError:
                raise InvalidTripRequestError(f"Unknown transfer type: {raw_transfer!r}")

    additional_city_id = _clean(payload.get('additionalCityId') or payload.get('additionalCity'))
    if additional_city_id and not is_uuid(additional_city_id):
        additional_city_id = None

    trip = TripRequest(
        trip_type=trip_type,
        pickup_city_id=_clean(payload.get('pickupCityId') or payload.get('pickupCity')),
        destination=_parse_destination(payload, trip_type, is_known_city),
        pickup_date=_clean(payload.get('pickupDate')),
        return_date=_clean(payload.get('returnDate')),
        pickup_time=normalize_pickup_time(payload.get('pickupTime')),
        vehicle_id=_clean(payload.get('vehicleId')),
        pickup_city_name=_clean(payload.get('pickupCityName')),
        transfer_type=transfer_type,
        additional_city_id=additional_city_id,
    )
    trip.validate()
    return trip
