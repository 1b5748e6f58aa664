"""Discount-coupon leads captured from the vehicle listing popup."""

from typing import Any, Dict, List, Optional
import logging

from pricing_engine import InvalidTripRequestError
from trip_request import TripType, is_uuid

logger = logging.getLogger(__name__)

LEAD_STATUSES = ('pending', 'contacted', 'converted', 'not_interested')


def _id_or_none(value: Any) -> Optional[str]:
    value = str(value).strip() if value else ''
    if not value or not is_uuid(value):
        return None
    return value


def build_lead_row(data: Dict[str, Any]) -> Dict[str, Any]:
    mobile = str(data.get('mobileNumber') or data.get('mobile_number') or '').strip()
    if not mobile:
        raise InvalidTripRequestError("Mobile number is required.")

    trip_type = data.get('tripType')
    if trip_type:
        trip_type = TripType.parse(trip_type).value

    return {
        'mobile_number': mobile,
        'vehicle_name': data.get('vehicleName') or '',
        'vehicle_id': _id_or_none(data.get('vehicleId')),
        'pickup_city_id': _id_or_none(data.get('pickupCityId') or data.get('pickupCity')),
        'destination_city_id': _id_or_none(data.get('destinationCityId') or data.get('destinationCity')),
        'trip_type': trip_type or None,
        'pickup_date': data.get('pickupDate') or None,
        'return_date': data.get('returnDate') or None,
        'lead_source': 'discount_popup',
        'coupon_requested': True,
        'status': 'pending',
    }


def create_discount_lead(db_connection, data: Dict[str, Any]) -> str:
    lead = build_lead_row(data)
    columns = list(lead.keys())

    cursor = db_connection.cursor()
    try:
        cursor.execute(
            f"INSERT INTO discount_leads ({', '.join(columns)}) "
            f"VALUES ({', '.join(['%s'] * len(columns))}) RETURNING id",
            [lead[c] for c in columns]
        )
        lead_id = str(cursor.fetchone()[0])
        db_connection.commit()
    except Exception:
        db_connection.rollback()
        raise

    logger.info(f"Lead saved: {lead_id} ({lead['trip_type']}, vehicle={lead['vehicle_name']})")
    return lead_id


def list_leads(db_connection, status: Optional[str] = None) -> List[Dict[str, Any]]:
    cursor = db_connection.cursor()
    if status and status != 'all':
        cursor.execute(
            "SELECT * FROM discount_leads WHERE status = %s ORDER BY created_at DESC",
            (status,)
        )
    else:
        cursor.execute("SELECT * FROM discount_leads ORDER BY created_at DESC")
    columns = [desc[0] for desc in cursor.description]
    return [dict(zip(columns, r)) for r in cursor.fetchall()]


def update_lead(db_connection, lead_id: str, data: Dict[str, Any]) -> bool:
    status = data.get('status')
    if status is not None and status not in LEAD_STATUSES:
        raise InvalidTripRequestError(f"Invalid lead status: {status!r}")

    cursor = db_connection.cursor()
    try:
        cursor.execute(
            """UPDATE discount_leads
               SET status = COALESCE(%s, status),
                   notes = COALESCE(%s, notes),
                   contacted_at = CASE WHEN %s = 'contacted' THEN NOW() ELSE contacted_at END,
                   updated_at = NOW()
               WHERE id = %s""",
            (status, data.get('notes'), status, lead_id)
        )
        updated = cursor.rowcount > 0
        db_connection.commit()
    except Exception:
        db_connection.rollback()
        raise
    return updated
