"""
Vehicle quotes for a trip search.

Combines the rate resolver with the duration and fare calculators to
produce one priced card per available vehicle, cheapest first.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, List, Optional
import logging

from pricing_engine import (
    DurationCalculator,
    DurationResult,
    FareBreakdown,
    FareCalculator,
    RateCard,
    RateNotFoundError,
    compute_advance_amount,
)
from rate_resolver import RateResolver
from trip_request import TripRequest

logger = logging.getLogger(__name__)

NO_VEHICLES_MESSAGE = 'No vehicles available'


@dataclass(frozen=True)
class VehicleQuote:
    vehicle: Dict[str, Any]
    rate: RateCard
    duration: DurationResult
    fare: FareBreakdown
    advance_amount: Decimal

    def to_dict(self) -> Dict[str, Any]:
        return {
            'vehicle': self.vehicle,
            'rate': self.rate.to_dict(),
            'fare': self.fare.to_dict(),
            'advanceAmount': round(float(self.advance_amount), 2),
        }


class CabQuoteEngine:

    def __init__(
        self,
        db_connection,
        rate_resolver: Optional[RateResolver] = None,
        fare_calculator: Optional[FareCalculator] = None
    ):
        self.db = db_connection
        self.rate_resolver = rate_resolver or RateResolver(db_connection)
        self.fare_calculator = fare_calculator or FareCalculator()

    def fetch_active_vehicles(self) -> List[Dict[str, Any]]:
        cursor = self.db.cursor()
        cursor.execute(
            """SELECT id, name, model, seating_capacity, image_url, vehicle_type
               FROM vehicles
               WHERE is_active = TRUE
               ORDER BY name"""
        )
        columns = [desc[0] for desc in cursor.description]
        return [
            dict(zip(columns, row), id=str(row[0]))
            for row in cursor.fetchall()
        ]

    def quote_vehicle(
        self,
        trip: TripRequest,
        vehicle: Dict[str, Any],
        duration: Optional[DurationResult] = None
    ) -> Optional[VehicleQuote]:
        rate = self.rate_resolver.resolve_for_trip(trip, vehicle['id'])
        if rate is None:
            return None

        if duration is None:
            duration = DurationCalculator.calculate_days_and_nights(trip.pickup_date, trip.return_date)

        fare = self.fare_calculator.calculate_fare_breakdown(
            rate, duration.number_of_days, duration.number_of_nights
        )
        return VehicleQuote(
            vehicle=vehicle,
            rate=rate,
            duration=duration,
            fare=fare,
            advance_amount=compute_advance_amount(fare.total),
        )

    def quote_vehicles(self, trip: TripRequest) -> List[VehicleQuote]:
        """Priced quotes for every active vehicle with a rate, cheapest first."""
        duration = DurationCalculator.calculate_days_and_nights(trip.pickup_date, trip.return_date)

        quotes = []
        for vehicle in self.fetch_active_vehicles():
            quote = self.quote_vehicle(trip, vehicle, duration)
            if quote is not None:
                quotes.append(quote)

        quotes.sort(key=lambda q: q.fare.total)
        logger.info(
            f"Vehicle search {trip.trip_type.value} from {trip.pickup_city_id}: "
            f"{len(quotes)} priced vehicle(s)"
        )
        return quotes

    def quote_selected_vehicle(self, trip: TripRequest) -> VehicleQuote:
        """Quote for trip.vehicle_id; raises RateNotFoundError when unpriced."""
        cursor = self.db.cursor()
        cursor.execute(
            """SELECT id, name, model, seating_capacity, image_url, vehicle_type
               FROM vehicles
               WHERE id = %s AND is_active = TRUE""",
            (trip.vehicle_id,)
        )
        row = cursor.fetchone()
        if not row:
            raise RateNotFoundError(f"Vehicle {trip.vehicle_id} not found or inactive")

        columns = [desc[0] for desc in cursor.description]
        vehicle = dict(zip(columns, row), id=str(row[0]))

        quote = self.quote_vehicle(trip, vehicle)
        if quote is None:
            raise RateNotFoundError(f"No rate available for vehicle {trip.vehicle_id}")
        return quote
