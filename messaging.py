"""WhatsApp enquiry message for customers who prefer to book by chat."""

from typing import Any, Dict
from urllib.parse import quote

from config import WHATSAPP_NUMBER
from trip_request import TripType


def format_whatsapp_message(trip_type: TripType, details: Dict[str, Any], mobile_number: str) -> str:
    trip_type = TripType.parse(trip_type)

    def get(key):
        return details.get(key) or ''

    if trip_type == TripType.ROUND:
        lines = [
            'Round Trip Booking:',
            f"Pickup City: {get('pickupCity')}",
            f"Destination City: {get('destinationCity')}",
            f"Additional City: {get('additionalCity')}",
            f"Pickup Date: {get('pickupDate')}",
            f"Pickup Time: {get('pickupTime')}",
            f"Return Date: {get('returnDate')}",
        ]
    elif trip_type == TripType.ONEWAY:
        lines = [
            'One Way Booking:',
            f"Pickup City: {get('pickupCity')}",
            f"Destination: {get('destination') or get('destinationCity')}",
            f"Pickup Date: {get('pickupDate')}",
            f"Pickup Time: {get('pickupTime')}",
        ]
    elif trip_type == TripType.LOCAL:
        lines = [
            'Local Booking:',
            f"Pickup City: {get('pickupCity')}",
            f"Package: {get('package')}",
            f"Pickup Date: {get('pickupDate')}",
            f"Pickup Time: {get('pickupTime')}",
        ]
    else:
        direction = 'Going to Airport' if get('transferType') != 'coming-from' else 'Coming from Airport'
        lines = [
            f"Airport Transfer ({direction}):",
            f"Pickup City: {get('pickupCity')}",
            f"Airport Name: {get('airportName')}",
            f"Pickup Date: {get('pickupDate')}",
            f"Pickup Time: {get('pickupTime')}",
        ]

    lines.append(f"Mobile Number: {mobile_number}")
    return '\n'.join(lines)


def whatsapp_link(message: str, number: str = WHATSAPP_NUMBER) -> str:
    return f"https://wa.me/{number}?text={quote(message, safe='')}"
