"""
Rate resolution.

Resolution order for one (pickup city, destination, vehicle, trip type):
  1. Exact route rate      — vehicle_rates row for a known destination city
  2. Local package rate    — vehicle_rates row for (pickup, package, 'local')
  3. Common rate fallback  — common_rates row + estimated distance
  4. None                  — "no vehicles available"

No rate is not an error: callers show "no vehicles available" rather than
a priced card.
"""

from decimal import Decimal
from typing import Any, Dict, Optional, Tuple
import logging

from distance_resolver import DistanceResolver, DistanceResult
from pricing_engine import RateCard
from trip_request import (
    CityDestination,
    Destination,
    PackageDestination,
    PlaceDestination,
    TripRequest,
    TripType,
)

logger = logging.getLogger(__name__)

# Used when a place name needed for the distance lookup is unavailable.
UNRESOLVED_DISTANCE_KM = 300

RATE_COLUMNS = """id, vehicle_id, trip_type, daily_km_limit, per_km_charges,
                  extra_per_km_charge, extra_per_hour_charge, day_driver_allowance,
                  night_charge, base_fare"""


class RateResolver:
    """
    Resolves the applicable RateCard for a single vehicle.

    Distance lookups are memoized per instance by (pickup, destination)
    name pair, so resolving every vehicle of one search costs at most one
    call to the mapping service. Create one resolver per request.
    """

    def __init__(self, db_connection, distance_resolver: Optional[DistanceResolver] = None):
        self.db = db_connection
        self.distance_resolver = distance_resolver or DistanceResolver()
        self._distance_cache: Dict[Tuple[str, str], DistanceResult] = {}
        self._city_names: Dict[str, Optional[str]] = {}

    # -------------------------------------------------
    # MAIN ENTRY POINT
    # -------------------------------------------------

    def resolve_rate(
        self,
        pickup_city_id: str,
        destination: Optional[Destination],
        vehicle_id: str,
        trip_type: TripType,
        pickup_city_name: Optional[str] = None,
        destination_name: Optional[str] = None
    ) -> Optional[RateCard]:
        trip_type = TripType.parse(trip_type)
        rate_trip_type = trip_type.rate_trip_type

        if trip_type == TripType.LOCAL:
            if isinstance(destination, PackageDestination):
                row = self._fetch_local_rate(pickup_city_id, destination.package_id, vehicle_id)
                if row:
                    logger.info(f"Using local package rate {row['id']} for vehicle {vehicle_id}")
                    return RateCard.from_row(row, source='local', total_running_km=None)

        elif isinstance(destination, CityDestination):
            row = self._fetch_route_rate(pickup_city_id, destination.city_id, vehicle_id, rate_trip_type)
            if row:
                logger.info(f"Using route rate {row['id']} for vehicle {vehicle_id}")
                return RateCard.from_row(row, source='route')

        common = self._fetch_common_rate(pickup_city_id, vehicle_id, rate_trip_type)
        if not common:
            logger.info(
                f"No rate for pickup={pickup_city_id} vehicle={vehicle_id} trip_type={rate_trip_type}"
            )
            return None

        if trip_type == TripType.LOCAL:
            logger.info(f"Using common local rate {common['id']} for vehicle {vehicle_id}")
            return RateCard.from_row(common, source='common', total_running_km=None)

        if destination_name is None:
            destination_name = self._destination_name(destination)
        distance = self._resolve_distance(
            pickup_city_name or self._city_name(pickup_city_id),
            destination_name
        )

        distance_km = Decimal(str(distance.distance_km))
        total_running_km = distance_km * 2 if trip_type == TripType.ROUND else distance_km

        logger.info(
            f"Using common rate {common['id']} for vehicle {vehicle_id} "
            f"with estimated distance {distance_km} km (total_running_km={total_running_km})"
        )
        return RateCard.from_row(
            common,
            source='common',
            total_running_km=total_running_km,
            distance_km=distance_km,
            distance_warning=distance.warning,
        )

    def resolve_for_trip(self, trip: TripRequest, vehicle_id: str) -> Optional[RateCard]:
        return self.resolve_rate(
            trip.pickup_city_id,
            trip.destination,
            vehicle_id,
            trip.trip_type,
            pickup_city_name=trip.pickup_city_name,
            destination_name=trip.destination_name,
        )

    # -------------------------------------------------
    # DISTANCE
    # -------------------------------------------------

    def _resolve_distance(self, pickup_name: Optional[str], destination_name: Optional[str]) -> DistanceResult:
        if not pickup_name or not destination_name:
            logger.warning(
                f"Missing place name for distance lookup (pickup={pickup_name!r}, "
                f"destination={destination_name!r}), using {UNRESOLVED_DISTANCE_KM} km"
            )
            return DistanceResult(distance_km=UNRESOLVED_DISTANCE_KM, warning='Using default distance')

        key = (pickup_name, destination_name)
        if key not in self._distance_cache:
            self._distance_cache[key] = self.distance_resolver.resolve_distance(pickup_name, destination_name)
        return self._distance_cache[key]

    def _destination_name(self, destination: Optional[Destination]) -> Optional[str]:
        if isinstance(destination, PlaceDestination):
            return destination.name
        if isinstance(destination, CityDestination):
            return destination.name or self._city_name(destination.city_id)
        return None

    def _city_name(self, city_id: Optional[str]) -> Optional[str]:
        if not city_id:
            return None
        if city_id not in self._city_names:
            cursor = self.db.cursor()
            cursor.execute("SELECT name FROM cities WHERE id = %s", (city_id,))
            row = cursor.fetchone()
            self._city_names[city_id] = row[0] if row else None
        return self._city_names[city_id]

    # -------------------------------------------------
    # RATE LOOKUPS
    # -------------------------------------------------

    def _fetch_one(self, query: str, params) -> Optional[Dict[str, Any]]:
        cursor = self.db.cursor()
        cursor.execute(query, params)
        row = cursor.fetchone()
        if not row:
            return None
        columns = [desc[0] for desc in cursor.description]
        return dict(zip(columns, row))

    def _fetch_route_rate(
        self, pickup_city_id: str, destination_city_id: str, vehicle_id: str, rate_trip_type: str
    ) -> Optional[Dict[str, Any]]:
        return self._fetch_one(
            f"""SELECT {RATE_COLUMNS}, total_running_km
                FROM vehicle_rates
                WHERE pickup_city_id = %s AND destination_city_id = %s
                  AND vehicle_id = %s AND trip_type = %s AND is_active = TRUE
                ORDER BY updated_at DESC LIMIT 1""",
            (pickup_city_id, destination_city_id, vehicle_id, rate_trip_type)
        )

    def _fetch_local_rate(
        self, pickup_city_id: str, package_id: str, vehicle_id: str
    ) -> Optional[Dict[str, Any]]:
        return self._fetch_one(
            f"""SELECT {RATE_COLUMNS}, total_running_km
                FROM vehicle_rates
                WHERE pickup_city_id = %s AND package_id = %s
                  AND vehicle_id = %s AND trip_type = 'local' AND is_active = TRUE
                ORDER BY updated_at DESC LIMIT 1""",
            (pickup_city_id, package_id, vehicle_id)
        )

    def _fetch_common_rate(
        self, pickup_city_id: str, vehicle_id: str, rate_trip_type: str
    ) -> Optional[Dict[str, Any]]:
        return self._fetch_one(
            f"""SELECT {RATE_COLUMNS}
                FROM common_rates
                WHERE pickup_city_id = %s AND vehicle_id = %s
                  AND trip_type = %s AND is_active = TRUE
                ORDER BY updated_at DESC LIMIT 1""",
            (pickup_city_id, vehicle_id, rate_trip_type)
        )
