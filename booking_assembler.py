"""
Booking assembly and persistence.

A confirmed trip is stored as one row in `bookings` plus exactly one
trip-type sub-record (round / oneway / local / airport). Both inserts run
in a single database transaction: either both rows exist or neither does.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, Optional
import logging

from pricing_engine import (
    BookingPersistenceError,
    DurationResult,
    FareBreakdown,
    InvalidTripRequestError,
    compute_advance_amount,
)
from trip_request import TripRequest, TripType, TransferType

logger = logging.getLogger(__name__)

TICKET_PREFIX = 'RAC'

BOOKING_STATUSES = ('draft', 'pending', 'confirmed', 'completed', 'cancelled')
PAYMENT_STATUSES = ('pending', 'paid', 'failed')

SUB_RECORD_TABLES = {
    TripType.ROUND: 'round_trip_bookings',
    TripType.ONEWAY: 'oneway_trip_bookings',
    TripType.LOCAL: 'local_trip_bookings',
    TripType.AIRPORT: 'airport_trip_bookings',
}


@dataclass(frozen=True)
class ContactDetails:
    user_phone: str
    user_name: Optional[str] = None
    user_email: Optional[str] = None
    pickup_address: Optional[str] = None
    destination_address: Optional[str] = None
    number_of_persons: int = 1

    @classmethod
    def from_payload(cls, data: Dict[str, Any]) -> 'ContactDetails':
        phone = str(data.get('user_phone') or data.get('mobileNumber') or '').strip()
        if not phone:
            raise InvalidTripRequestError("Phone number is required.")
        try:
            persons = int(data.get('number_of_persons') or 1)
        except (TypeError, ValueError):
            raise InvalidTripRequestError("number_of_persons must be a whole number.")
        if persons < 1:
            raise InvalidTripRequestError("number_of_persons must be at least 1.")
        return cls(
            user_phone=phone,
            user_name=(data.get('user_name') or None),
            user_email=(data.get('user_email') or None),
            pickup_address=(data.get('pickup_address') or None),
            destination_address=(data.get('destination_address') or None),
            number_of_persons=persons,
        )


def format_ticket_id(sequence_value: int) -> str:
    return f"{TICKET_PREFIX}{int(sequence_value):06d}"


class BookingAssembler:

    def __init__(self, db_connection):
        self.db = db_connection

    def build_booking_row(
        self,
        trip: TripRequest,
        vehicle_id: str,
        fare: FareBreakdown,
        duration: DurationResult,
        contact: ContactDetails
    ) -> Dict[str, Any]:
        """
        Column values for the bookings table.

        advance_amount is frozen here; later admin edits to total_amount
        never recompute it.
        """
        trip_type = trip.booking_trip_type()
        total = fare.total.quantize(Decimal('0.01'))
        advance = compute_advance_amount(fare.total).quantize(Decimal('0.01'))

        return {
            'user_phone': contact.user_phone,
            'user_name': contact.user_name,
            'user_email': contact.user_email,
            'pickup_address': contact.pickup_address,
            'destination_address': contact.destination_address,
            'number_of_persons': contact.number_of_persons,
            'pickup_city_id': trip.pickup_city_id,
            'destination_city_id': trip.destination_city_id,
            'destination_name': trip.destination_name if trip_type in (TripType.ROUND, TripType.ONEWAY) else None,
            'additional_city_id': trip.additional_city_id,
            'vehicle_id': vehicle_id,
            'package_id': trip.package_id,
            'airport_name': trip.airport_name,
            'pickup_date': trip.pickup_date,
            'pickup_time': trip.pickup_time,
            'return_date': trip.return_date,
            'number_of_days': duration.number_of_days,
            'total_amount': total,
            'advance_amount': advance,
            'advance_paid': False,
            'booking_status': 'pending',
            'payment_status': 'pending',
            'trip_type': trip_type.value,
        }

    def build_sub_record(self, trip: TripRequest, booking_id) -> Dict[str, Any]:
        trip_type = trip.booking_trip_type()
        record = {'booking_id': booking_id, 'pickup_city_id': trip.pickup_city_id}

        if trip_type == TripType.ROUND:
            record.update({
                'destination_city_id': trip.destination_city_id,
                'destination_name': trip.destination_name,
                'additional_city_id': trip.additional_city_id,
                'return_date': trip.return_date,
            })
        elif trip_type == TripType.ONEWAY:
            record.update({
                'destination_city_id': trip.destination_city_id,
                'destination_name': trip.destination_name,
            })
        elif trip_type == TripType.LOCAL:
            record['package_id'] = trip.package_id
        else:
            transfer = trip.transfer_type or TransferType.GOING_TO
            record.update({
                'airport_name': trip.airport_name,
                'transfer_type': transfer.value,
            })
        return record

    def create_booking(
        self,
        trip: TripRequest,
        vehicle_id: str,
        fare: FareBreakdown,
        duration: DurationResult,
        contact: ContactDetails
    ) -> Dict[str, Any]:
        """
        Insert the booking and its sub-record in one transaction.
        Returns the booking row (with id and ticket_id).
        Raises BookingPersistenceError after rolling back on any failure.
        """
        if not vehicle_id:
            raise InvalidTripRequestError("Vehicle information is missing.")

        booking = self.build_booking_row(trip, vehicle_id, fare, duration, contact)
        trip_type = TripType(booking['trip_type'])
        table = SUB_RECORD_TABLES[trip_type]

        cursor = self.db.cursor()
        try:
            cursor.execute("SELECT nextval('booking_ticket_seq')")
            booking['ticket_id'] = format_ticket_id(cursor.fetchone()[0])

            columns = list(booking.keys())
            cursor.execute(
                f"INSERT INTO bookings ({', '.join(columns)}) "
                f"VALUES ({', '.join(['%s'] * len(columns))}) RETURNING id",
                [booking[c] for c in columns]
            )
            booking_id = cursor.fetchone()[0]

            sub_record = self.build_sub_record(trip, booking_id)
            sub_columns = list(sub_record.keys())
            cursor.execute(
                f"INSERT INTO {table} ({', '.join(sub_columns)}) "
                f"VALUES ({', '.join(['%s'] * len(sub_columns))})",
                [sub_record[c] for c in sub_columns]
            )

            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error creating {trip_type.value} booking: {e}", exc_info=True)
            raise BookingPersistenceError("Failed to create booking. Please try again.") from e

        booking['id'] = str(booking_id)
        logger.info(
            f"Created booking {booking['id']} ({booking['ticket_id']}): {trip_type.value}, "
            f"total={booking['total_amount']}, advance={booking['advance_amount']}"
        )
        return booking


# =====================================================
# TICKET VIEW
# =====================================================

def fetch_booking_ticket(db_connection, booking_id: str) -> Optional[Dict[str, Any]]:
    """Booking row joined with city/vehicle names, plus its trip sub-record."""
    cursor = db_connection.cursor()
    cursor.execute(
        """SELECT b.*, pc.name AS pickup_city_name, dc.name AS destination_city_name,
                  v.name AS vehicle_name, v.model AS vehicle_model,
                  lp.name AS package_name, lp.hours AS package_hours,
                  lp.kilometers AS package_kilometers
           FROM bookings b
           LEFT JOIN cities pc ON pc.id = b.pickup_city_id
           LEFT JOIN cities dc ON dc.id = b.destination_city_id
           LEFT JOIN vehicles v ON v.id = b.vehicle_id
           LEFT JOIN local_packages lp ON lp.id = b.package_id
           WHERE b.id = %s""",
        (booking_id,)
    )
    row = cursor.fetchone()
    if not row:
        return None
    columns = [desc[0] for desc in cursor.description]
    booking = dict(zip(columns, row))

    if not booking.get('ticket_id'):
        booking['ticket_id'] = f"{TICKET_PREFIX}{str(booking['id'])[-8:].upper()}"

    try:
        table = SUB_RECORD_TABLES[TripType(booking.get('trip_type'))]
    except ValueError:
        logger.warning(f"Booking {booking_id} has unknown trip type {booking.get('trip_type')!r}")
        table = None
    booking['trip_details'] = None
    if table:
        cursor.execute(f"SELECT * FROM {table} WHERE booking_id = %s", (booking_id,))
        sub_row = cursor.fetchone()
        if sub_row:
            sub_columns = [desc[0] for desc in cursor.description]
            booking['trip_details'] = dict(zip(sub_columns, sub_row))

    return booking
