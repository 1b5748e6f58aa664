import pytest

from pricing_engine import InvalidTripRequestError
from trip_request import (
    CityDestination,
    PackageDestination,
    PlaceDestination,
    TransferType,
    TripType,
    normalize_pickup_time,
    parse_legacy_place_token,
    parse_trip_request,
)

from conftest import DEST_CITY_ID, PACKAGE_ID, PICKUP_CITY_ID


def round_payload(**overrides):
    payload = {
        'tripType': 'round',
        'pickupCity': PICKUP_CITY_ID,
        'destinationCity': DEST_CITY_ID,
        'pickupDate': '2026-03-10',
        'returnDate': '2026-03-12',
    }
    payload.update(overrides)
    return payload


class TestTripType:

    @pytest.mark.parametrize('raw,expected', [
        ('round', TripType.ROUND),
        ('round_trip', TripType.ROUND),
        ('one-way', TripType.ONEWAY),
        ('oneway_trip', TripType.ONEWAY),
        ('LOCAL', TripType.LOCAL),
        ('airport', TripType.AIRPORT),
    ])
    def test_parse_aliases(self, raw, expected):
        assert TripType.parse(raw) is expected

    def test_unknown_trip_type_rejected(self):
        with pytest.raises(InvalidTripRequestError):
            TripType.parse('helicopter')

    def test_rate_table_values(self):
        assert TripType.ROUND.rate_trip_type == 'round_trip'
        assert TripType.ONEWAY.rate_trip_type == 'oneway_trip'
        assert TripType.LOCAL.rate_trip_type == 'local'


class TestParseTripRequest:

    def test_round_trip_with_city_destination(self):
        trip = parse_trip_request(round_payload())
        assert trip.trip_type == TripType.ROUND
        assert trip.destination == CityDestination(city_id=DEST_CITY_ID)
        assert trip.pickup_time == '09:00:00'

    def test_empty_payload_rejected(self):
        with pytest.raises(InvalidTripRequestError, match='No data provided'):
            parse_trip_request({})

    def test_missing_pickup_city_rejected(self):
        with pytest.raises(InvalidTripRequestError, match='Pickup city'):
            parse_trip_request(round_payload(pickupCity=''))

    def test_missing_destination_rejected(self):
        with pytest.raises(InvalidTripRequestError, match='Destination'):
            parse_trip_request(round_payload(destinationCity=None))

    def test_return_before_pickup_rejected(self):
        with pytest.raises(InvalidTripRequestError, match='Return date'):
            parse_trip_request(round_payload(returnDate='2026-03-01'))

    def test_unknown_city_id_becomes_place(self):
        trip = parse_trip_request(
            round_payload(destinationCity='Hyderabad'),
            is_known_city=lambda city_id: False,
        )
        assert trip.destination == PlaceDestination(name='Hyderabad')
        assert trip.destination_city_id is None
        assert trip.destination_name == 'Hyderabad'

    def test_legacy_place_token_becomes_place(self):
        trip = parse_trip_request(round_payload(destinationCity='google_maps_Hyderabad_ChIJx9'))
        assert trip.destination == PlaceDestination(name='Hyderabad', place_id='ChIJx9')

    def test_explicit_destination_block(self):
        trip = parse_trip_request(round_payload(
            destinationCity=None,
            destination={'type': 'place', 'name': 'Ooty', 'placeId': 'abc'},
        ))
        assert trip.destination == PlaceDestination(name='Ooty', place_id='abc')

    def test_local_requires_package(self):
        with pytest.raises(InvalidTripRequestError, match='package'):
            parse_trip_request({'tripType': 'local', 'pickupCity': PICKUP_CITY_ID, 'pickupDate': '2026-03-10'})

    def test_local_with_package(self):
        trip = parse_trip_request({
            'tripType': 'local',
            'pickupCity': PICKUP_CITY_ID,
            'package': PACKAGE_ID,
            'pickupDate': '2026-03-10',
            'pickupTime': '07:30',
        })
        assert trip.destination == PackageDestination(PACKAGE_ID)
        assert trip.pickup_time == '07:30:00'

    def test_airport_requires_direction(self):
        with pytest.raises(InvalidTripRequestError, match='direction'):
            parse_trip_request({
                'tripType': 'airport',
                'pickupCity': PICKUP_CITY_ID,
                'airportName': 'LBS Airport',
                'pickupDate': '2026-03-10',
            })

    def test_airport_transfer(self):
        trip = parse_trip_request({
            'tripType': 'airport',
            'pickupCity': PICKUP_CITY_ID,
            'airportName': 'LBS Airport',
            'airportSection': 'coming-from',
            'pickupDate': '2026-03-10',
        })
        assert trip.airport_name == 'LBS Airport'
        assert trip.transfer_type == TransferType.COMING_FROM

    def test_legacy_additional_city_dropped(self):
        trip = parse_trip_request(round_payload(additionalCityId='google_maps_Agra_xyz'))
        assert trip.additional_city_id is None

    def test_free_text_additional_city_dropped(self):
        trip = parse_trip_request(round_payload(additionalCityId='Agra'))
        assert trip.additional_city_id is None

    def test_pickup_city_must_be_a_city_id(self):
        with pytest.raises(InvalidTripRequestError, match='pickup city'):
            parse_trip_request(round_payload(pickupCity='varanasi'))

    def test_package_must_be_a_package_id(self):
        with pytest.raises(InvalidTripRequestError, match='local package'):
            parse_trip_request({
                'tripType': 'local', 'pickupCity': PICKUP_CITY_ID,
                'package': '8hr-80km', 'pickupDate': '2026-03-10',
            })

    def test_return_date_with_utc_offset_accepted(self):
        trip = parse_trip_request(round_payload(returnDate='2026-03-12T10:00:00+05:30'))
        assert trip.return_date == '2026-03-12T10:00:00+05:30'

    def test_offset_return_date_before_pickup_rejected(self):
        with pytest.raises(InvalidTripRequestError, match='Return date'):
            parse_trip_request(round_payload(returnDate='2026-03-09T23:00:00+05:30'))


class TestBookingTripType:

    def test_round_without_return_date_is_oneway(self):
        trip = parse_trip_request(round_payload(returnDate=None))
        assert trip.booking_trip_type() == TripType.ONEWAY

    def test_oneway_with_return_date_is_round(self):
        trip = parse_trip_request(round_payload(tripType='oneway'))
        assert trip.booking_trip_type() == TripType.ROUND

    def test_local_stays_local(self):
        trip = parse_trip_request({
            'tripType': 'local', 'pickupCity': PICKUP_CITY_ID,
            'package': PACKAGE_ID, 'pickupDate': '2026-03-10',
        })
        assert trip.booking_trip_type() == TripType.LOCAL


def test_normalize_pickup_time():
    assert normalize_pickup_time(None) == '09:00:00'
    assert normalize_pickup_time('18:15') == '18:15:00'
    assert normalize_pickup_time('18:15:30') == '18:15:30'


def test_legacy_token_without_name():
    assert parse_legacy_place_token('google_maps_').name == 'Custom Location'
