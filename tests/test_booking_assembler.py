from decimal import Decimal
from uuid import UUID

import pytest

from booking_assembler import (
    BookingAssembler,
    ContactDetails,
    fetch_booking_ticket,
    format_ticket_id,
)
from pricing_engine import (
    BookingPersistenceError,
    InvalidTripRequestError,
    calculate_days_and_nights,
    calculate_fare_breakdown,
)
from trip_request import parse_trip_request

from conftest import DEST_CITY_ID, PACKAGE_ID, PICKUP_CITY_ID, VEHICLE_ID

BOOKING_ID = UUID('55555555-5555-5555-5555-555555555555')


def make_trip(**overrides):
    payload = {
        'tripType': 'round',
        'pickupCity': PICKUP_CITY_ID,
        'destinationCity': DEST_CITY_ID,
        'pickupDate': '2026-03-10',
        'returnDate': '2026-03-11',
    }
    payload.update(overrides)
    return parse_trip_request(payload)


@pytest.fixture
def contact():
    return ContactDetails.from_payload({'user_phone': '9876543210', 'user_name': 'Asha', 'number_of_persons': '3'})


@pytest.fixture
def booking_db(fake_db):
    fake_db.add("nextval('booking_ticket_seq')", [(42,)])
    fake_db.add('INSERT INTO bookings', [(BOOKING_ID,)])
    return fake_db


def create(db, trip, rate, contact):
    duration = calculate_days_and_nights(trip.pickup_date, trip.return_date)
    fare = calculate_fare_breakdown(rate, duration.number_of_days, duration.number_of_nights)
    return BookingAssembler(db).create_booking(trip, VEHICLE_ID, fare, duration, contact)


class TestContactDetails:

    def test_phone_required(self):
        with pytest.raises(InvalidTripRequestError, match='Phone number'):
            ContactDetails.from_payload({'user_name': 'Asha'})

    def test_mobile_number_alias(self):
        assert ContactDetails.from_payload({'mobileNumber': '9000000000'}).user_phone == '9000000000'

    def test_persons_must_be_positive(self):
        with pytest.raises(InvalidTripRequestError):
            ContactDetails.from_payload({'user_phone': '9', 'number_of_persons': -2})


class TestCreateBooking:

    def test_round_trip_writes_booking_and_sub_record(self, booking_db, sample_rate_card, contact):
        booking = create(booking_db, make_trip(), sample_rate_card, contact)

        assert booking['id'] == str(BOOKING_ID)
        assert booking['ticket_id'] == 'RAC000042'
        assert booking['trip_type'] == 'round'
        assert booking['total_amount'] == Decimal('8400.00')
        assert booking['advance_amount'] == Decimal('1680.00')
        assert booking['advance_paid'] is False
        assert booking['booking_status'] == 'pending'
        assert booking['payment_status'] == 'pending'
        assert booking['number_of_persons'] == 3

        sub_inserts = booking_db.queries('INSERT INTO round_trip_bookings')
        assert len(sub_inserts) == 1
        assert BOOKING_ID in sub_inserts[0][1]
        assert booking_db.committed
        assert not booking_db.rolled_back

    def test_round_tab_without_return_date_is_oneway(self, booking_db, sample_rate_card, contact):
        booking = create(booking_db, make_trip(returnDate=None), sample_rate_card, contact)

        assert booking['trip_type'] == 'oneway'
        assert booking_db.queries('INSERT INTO oneway_trip_bookings')
        assert not booking_db.queries('INSERT INTO round_trip_bookings')

    def test_place_destination_keeps_name_without_city_id(self, booking_db, sample_rate_card, contact):
        trip = make_trip(destinationCity='google_maps_Hyderabad_ChIJ1')

        booking = create(booking_db, trip, sample_rate_card, contact)

        assert booking['destination_city_id'] is None
        assert booking['destination_name'] == 'Hyderabad'

    def test_local_booking(self, booking_db, sample_rate_card, contact):
        trip = parse_trip_request({
            'tripType': 'local', 'pickupCity': PICKUP_CITY_ID,
            'package': PACKAGE_ID, 'pickupDate': '2026-03-10',
        })

        booking = create(booking_db, trip, sample_rate_card, contact)

        assert booking['trip_type'] == 'local'
        assert booking['package_id'] == PACKAGE_ID
        _, params = booking_db.queries('INSERT INTO local_trip_bookings')[0]
        assert PACKAGE_ID in params

    def test_airport_booking(self, booking_db, sample_rate_card, contact):
        trip = parse_trip_request({
            'tripType': 'airport', 'pickupCity': PICKUP_CITY_ID,
            'airportName': 'LBS Airport', 'transferType': 'going-to',
            'pickupDate': '2026-03-10',
        })

        booking = create(booking_db, trip, sample_rate_card, contact)

        assert booking['trip_type'] == 'airport'
        _, params = booking_db.queries('INSERT INTO airport_trip_bookings')[0]
        assert 'LBS Airport' in params
        assert 'going-to' in params

    def test_sub_record_failure_rolls_back(self, booking_db, sample_rate_card, contact):
        booking_db.fail_on('INSERT INTO round_trip_bookings', RuntimeError('constraint violated'))

        with pytest.raises(BookingPersistenceError):
            create(booking_db, make_trip(), sample_rate_card, contact)

        assert booking_db.rolled_back
        assert not booking_db.committed

    def test_vehicle_required(self, booking_db, sample_rate_card, contact):
        trip = make_trip()
        duration = calculate_days_and_nights(trip.pickup_date, trip.return_date)
        fare = calculate_fare_breakdown(sample_rate_card, 2, 1)

        with pytest.raises(InvalidTripRequestError):
            BookingAssembler(booking_db).create_booking(trip, None, fare, duration, contact)
        assert not booking_db.executed


class TestTicketView:

    def test_ticket_includes_trip_details(self, fake_db):
        fake_db.add_dicts('FROM bookings b', [{
            'id': BOOKING_ID, 'ticket_id': 'RAC000042', 'trip_type': 'round',
            'pickup_city_name': 'Varanasi', 'destination_city_name': 'Delhi',
        }])
        fake_db.add_dicts('FROM round_trip_bookings', [{'booking_id': BOOKING_ID, 'return_date': '2026-03-11'}])

        booking = fetch_booking_ticket(fake_db, str(BOOKING_ID))

        assert booking['ticket_id'] == 'RAC000042'
        assert booking['trip_details']['return_date'] == '2026-03-11'

    def test_missing_ticket_id_derived_from_booking_id(self, fake_db):
        fake_db.add_dicts('FROM bookings b', [{'id': BOOKING_ID, 'ticket_id': None, 'trip_type': 'oneway'}])

        booking = fetch_booking_ticket(fake_db, str(BOOKING_ID))

        assert booking['ticket_id'] == 'RAC55555555'
        assert booking['trip_details'] is None

    def test_unknown_booking(self, fake_db):
        assert fetch_booking_ticket(fake_db, str(BOOKING_ID)) is None


def test_format_ticket_id():
    assert format_ticket_id(7) == 'RAC000007'
    assert format_ticket_id(1234567) == 'RAC1234567'
