"""
Cab Fare Engine
===============
Pure fare arithmetic for the cab booking backend:
  - Duration calculator (calendar-inclusive days, billed nights)
  - Normalized rate card (route-specific, local package and common rates)
  - Fare breakdown calculator (base fare, extra km, driver allowance,
    night charge, GST, total)
  - Advance amount helper

This is the SINGLE SOURCE OF TRUTH for all fare computation.
Routes, quote listings and the booking flow MUST call these functions —
never compute fares themselves.

All arithmetic is done on Decimal and is never rounded internally;
rounding happens only when values are serialized for display.
"""

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Dict, Any, Optional, Union
import math
import logging

from config import GST_RATE, ADVANCE_RATE

logger = logging.getLogger(__name__)

ZERO = Decimal('0')


# =====================================================
# EXCEPTIONS
# =====================================================

class PricingEngineError(Exception):
    """Base exception for fare engine errors"""
    pass

class InvalidTripRequestError(PricingEngineError):
    pass

class RateNotFoundError(PricingEngineError):
    pass

class BookingPersistenceError(PricingEngineError):
    pass

class PlacesServiceError(PricingEngineError):
    pass


def to_decimal(value) -> Decimal:
    """Coerce a DB/JSON number to Decimal; None and '' become 0."""
    if value is None or value == '':
        return ZERO
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


# =====================================================
# DURATION CALCULATOR
# =====================================================

DateLike = Union[str, date, datetime, None]


@dataclass(frozen=True)
class DurationResult:
    number_of_days: int
    number_of_nights: int

    def to_dict(self) -> Dict[str, int]:
        return {
            'numberOfDays': self.number_of_days,
            'numberOfNights': self.number_of_nights,
        }


class DurationCalculator:
    """
    Calendar-inclusive trip duration.

    Pickup day and return day both count as travel days. A trip is never
    billed as zero duration: the floor is 1 day and 1 night, so a same-day
    round trip still bills one night.
    """

    @staticmethod
    def parse_date(value: DateLike) -> Optional[datetime]:
        if value is None or value == '':
            return None
        if isinstance(value, datetime):
            parsed = value
        elif isinstance(value, date):
            return datetime(value.year, value.month, value.day)
        else:
            try:
                parsed = datetime.fromisoformat(str(value).strip())
            except ValueError:
                raise InvalidTripRequestError(f"Invalid date: {value!r}")
        # Trip dates are local wall-clock times; any UTC offset is dropped.
        return parsed.replace(tzinfo=None)

    @staticmethod
    def calculate_days_and_nights(pickup_date: DateLike, return_date: DateLike) -> DurationResult:
        pickup = DurationCalculator.parse_date(pickup_date)
        return_d = DurationCalculator.parse_date(return_date)

        if pickup is None or return_d is None:
            return DurationResult(number_of_days=1, number_of_nights=1)

        seconds = (return_d - pickup).total_seconds()
        days_difference = math.ceil(seconds / 86400)

        number_of_days = days_difference + 1
        number_of_nights = days_difference if days_difference >= 1 else 1

        return DurationResult(
            number_of_days=max(1, number_of_days),
            number_of_nights=max(1, number_of_nights),
        )


def calculate_days_and_nights(pickup_date: DateLike, return_date: DateLike) -> DurationResult:
    return DurationCalculator.calculate_days_and_nights(pickup_date, return_date)


# =====================================================
# RATE CARD
# =====================================================

@dataclass(frozen=True)
class RateCard:
    """
    Normalized priced terms for one (pickup city, vehicle, trip type).

    source:
      'route'  — vehicle_rates row for an exact destination city
      'local'  — vehicle_rates row for a local package
      'common' — common_rates row combined with an estimated distance
    """
    daily_km_limit: Decimal = ZERO
    per_km_charge: Decimal = ZERO
    extra_per_km_charge: Decimal = ZERO
    extra_per_hour_charge: Decimal = ZERO
    day_driver_allowance: Decimal = ZERO
    night_charge: Decimal = ZERO
    base_fare: Decimal = ZERO
    total_running_km: Optional[Decimal] = None
    rate_id: Optional[str] = None
    vehicle_id: Optional[str] = None
    trip_type: Optional[str] = None
    source: str = 'route'
    distance_km: Optional[Decimal] = None
    distance_warning: Optional[str] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any], source: str = 'route', **overrides) -> 'RateCard':
        """Build a RateCard from a vehicle_rates / common_rates row."""
        total_running_km = row.get('total_running_km')
        fields = {
            'daily_km_limit': to_decimal(row.get('daily_km_limit')),
            'per_km_charge': to_decimal(row.get('per_km_charges', row.get('per_km_charge'))),
            'extra_per_km_charge': to_decimal(row.get('extra_per_km_charge')),
            'extra_per_hour_charge': to_decimal(row.get('extra_per_hour_charge')),
            'day_driver_allowance': to_decimal(row.get('day_driver_allowance')),
            'night_charge': to_decimal(row.get('night_charge')),
            'base_fare': to_decimal(row.get('base_fare')),
            'total_running_km': to_decimal(total_running_km) if total_running_km is not None else None,
            'rate_id': str(row['id']) if row.get('id') is not None else None,
            'vehicle_id': str(row['vehicle_id']) if row.get('vehicle_id') is not None else None,
            'trip_type': row.get('trip_type'),
            'source': source,
        }
        fields.update(overrides)
        return cls(**fields)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'rateId': self.rate_id,
            'vehicleId': self.vehicle_id,
            'tripType': self.trip_type,
            'source': self.source,
            'dailyKmLimit': float(self.daily_km_limit),
            'perKmCharge': float(self.per_km_charge),
            'extraPerKmCharge': float(self.extra_per_km_charge),
            'extraPerHourCharge': float(self.extra_per_hour_charge),
            'dayDriverAllowance': float(self.day_driver_allowance),
            'nightCharge': float(self.night_charge),
            'baseFare': float(self.base_fare),
            'totalRunningKm': float(self.total_running_km) if self.total_running_km is not None else None,
            'distanceKm': float(self.distance_km) if self.distance_km is not None else None,
            'distanceWarning': self.distance_warning,
        }


# =====================================================
# FARE CALCULATOR
# =====================================================

@dataclass(frozen=True)
class FareBreakdown:
    base_fare: Decimal
    extra_km: Decimal
    extra_km_charge: Decimal
    day_driver_allowance: Decimal
    night_charge: Decimal
    total_day_driver_allowance: Decimal
    total_night_charge: Decimal
    subtotal: Decimal
    gst: Decimal
    total: Decimal

    def to_dict(self) -> Dict[str, float]:
        return {
            'baseFare': round(float(self.base_fare), 2),
            'extraKm': round(float(self.extra_km), 2),
            'extraKmCharge': round(float(self.extra_km_charge), 2),
            'dayDriverAllowance': round(float(self.day_driver_allowance), 2),
            'nightCharge': round(float(self.night_charge), 2),
            'totalDayDriverAllowance': round(float(self.total_day_driver_allowance), 2),
            'totalNightCharge': round(float(self.total_night_charge), 2),
            'subtotal': round(float(self.subtotal), 2),
            'gst': round(float(self.gst), 2),
            'total': round(float(self.total), 2),
        }


class FareCalculator:
    """
    Turns a RateCard and a stay duration into a FareBreakdown.

    Formulas:
        base_fare        = daily_km_limit × days × per_km_charge
        allowed_km       = daily_km_limit × days
        extra_km         = max(0, total_running_km − allowed_km)
        extra_km_charge  = extra_km × extra_per_km_charge
        driver_allowance = days × day_driver_allowance
        night_charge     = nights × night_charge
        gst              = subtotal × GST_RATE
        total            = subtotal + gst

    Pure and deterministic: safe to evaluate per vehicle in parallel.
    """

    def __init__(self, gst_rate: Decimal = GST_RATE):
        self.gst_rate = to_decimal(gst_rate)

    def calculate_fare_breakdown(
        self,
        rate: RateCard,
        number_of_days: int,
        number_of_nights: int
    ) -> FareBreakdown:
        days = Decimal(int(number_of_days))
        nights = Decimal(int(number_of_nights))

        daily_km_limit = to_decimal(rate.daily_km_limit)
        base_fare = daily_km_limit * days * to_decimal(rate.per_km_charge)

        total_allowed_km = daily_km_limit * days
        extra_km = max(ZERO, to_decimal(rate.total_running_km) - total_allowed_km)
        extra_km_charge = extra_km * to_decimal(rate.extra_per_km_charge)

        day_driver_allowance = to_decimal(rate.day_driver_allowance)
        night_charge = to_decimal(rate.night_charge)
        total_day_driver_allowance = days * day_driver_allowance
        total_night_charge = nights * night_charge

        subtotal = base_fare + extra_km_charge + total_day_driver_allowance + total_night_charge
        gst = subtotal * self.gst_rate
        total = subtotal + gst

        return FareBreakdown(
            base_fare=base_fare,
            extra_km=extra_km,
            extra_km_charge=extra_km_charge,
            day_driver_allowance=day_driver_allowance,
            night_charge=night_charge,
            total_day_driver_allowance=total_day_driver_allowance,
            total_night_charge=total_night_charge,
            subtotal=subtotal,
            gst=gst,
            total=total,
        )


def calculate_fare_breakdown(rate: RateCard, number_of_days: int, number_of_nights: int) -> FareBreakdown:
    return FareCalculator().calculate_fare_breakdown(rate, number_of_days, number_of_nights)


def compute_advance_amount(total, advance_rate: Decimal = ADVANCE_RATE) -> Decimal:
    """Deposit required to confirm a booking (20% of total by default)."""
    return to_decimal(total) * to_decimal(advance_rate)
