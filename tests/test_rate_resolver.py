from decimal import Decimal
from unittest.mock import Mock

import pytest

from distance_resolver import DistanceResult
from rate_resolver import UNRESOLVED_DISTANCE_KM, RateResolver
from trip_request import CityDestination, PackageDestination, PlaceDestination, TripType

from conftest import DEST_CITY_ID, PACKAGE_ID, PICKUP_CITY_ID, VEHICLE_ID

ROUTE_RATE = 'FROM vehicle_rates WHERE pickup_city_id = %s AND destination_city_id = %s'
LOCAL_RATE = 'AND package_id = %s'
COMMON_RATE = 'FROM common_rates'
CITY_NAME = 'SELECT name FROM cities WHERE id = %s'


@pytest.fixture
def distance_resolver():
    resolver = Mock()
    resolver.resolve_distance.return_value = DistanceResult(distance_km=1200)
    return resolver


class TestRatePrecedence:

    def test_route_rate_beats_common_rate(self, fake_db, sample_rate_row, distance_resolver):
        fake_db.add_dicts(ROUTE_RATE, [dict(sample_rate_row, id='route-1', total_running_km=640)])
        fake_db.add_dicts(COMMON_RATE, [dict(sample_rate_row, id='common-1')])

        rate = RateResolver(fake_db, distance_resolver).resolve_rate(
            PICKUP_CITY_ID, CityDestination(DEST_CITY_ID), VEHICLE_ID, TripType.ROUND
        )

        assert rate.source == 'route'
        assert rate.rate_id == 'route-1'
        assert rate.total_running_km == Decimal('640')
        distance_resolver.resolve_distance.assert_not_called()
        assert not fake_db.queries(COMMON_RATE)

    def test_route_lookup_uses_rate_table_trip_type(self, fake_db, sample_rate_row, distance_resolver):
        fake_db.add_dicts(ROUTE_RATE, [dict(sample_rate_row, total_running_km=320)])

        RateResolver(fake_db, distance_resolver).resolve_rate(
            PICKUP_CITY_ID, CityDestination(DEST_CITY_ID), VEHICLE_ID, TripType.ONEWAY
        )

        _, params = fake_db.queries(ROUTE_RATE)[0]
        assert params == (PICKUP_CITY_ID, DEST_CITY_ID, VEHICLE_ID, 'oneway_trip')


class TestCommonRateFallback:

    def test_round_trip_doubles_estimated_distance(self, fake_db, sample_rate_row, offline_distance_resolver):
        fake_db.add_dicts(COMMON_RATE, [sample_rate_row])

        rate = RateResolver(fake_db, offline_distance_resolver).resolve_rate(
            PICKUP_CITY_ID, PlaceDestination('Hyderabad'), VEHICLE_ID, TripType.ROUND,
            pickup_city_name='Varanasi',
        )

        assert rate.source == 'common'
        assert rate.distance_km == Decimal('1200')
        assert rate.total_running_km == Decimal('2400')
        assert rate.distance_warning

    def test_oneway_uses_single_distance(self, fake_db, sample_rate_row, distance_resolver):
        fake_db.add_dicts(COMMON_RATE, [sample_rate_row])

        rate = RateResolver(fake_db, distance_resolver).resolve_rate(
            PICKUP_CITY_ID, PlaceDestination('Hyderabad'), VEHICLE_ID, TripType.ONEWAY,
            pickup_city_name='Varanasi',
        )

        assert rate.total_running_km == Decimal('1200')

    def test_city_without_route_rate_uses_city_names(self, fake_db, sample_rate_row, distance_resolver):
        fake_db.add(CITY_NAME, [('Varanasi',)], ['name'], when=lambda p: p == (PICKUP_CITY_ID,))
        fake_db.add(CITY_NAME, [('Hyderabad',)], ['name'], when=lambda p: p == (DEST_CITY_ID,))
        fake_db.add_dicts(COMMON_RATE, [sample_rate_row])

        rate = RateResolver(fake_db, distance_resolver).resolve_rate(
            PICKUP_CITY_ID, CityDestination(DEST_CITY_ID), VEHICLE_ID, TripType.ROUND
        )

        assert rate.source == 'common'
        distance_resolver.resolve_distance.assert_called_once_with('Varanasi', 'Hyderabad')

    def test_missing_pickup_name_uses_default_distance(self, fake_db, sample_rate_row, distance_resolver):
        fake_db.add_dicts(COMMON_RATE, [sample_rate_row])

        rate = RateResolver(fake_db, distance_resolver).resolve_rate(
            PICKUP_CITY_ID, PlaceDestination('Hyderabad'), VEHICLE_ID, TripType.ONEWAY
        )

        assert rate.distance_km == Decimal(UNRESOLVED_DISTANCE_KM)
        assert rate.distance_warning == 'Using default distance'
        distance_resolver.resolve_distance.assert_not_called()

    def test_distance_memoized_across_vehicles(self, fake_db, sample_rate_row, distance_resolver):
        fake_db.add_dicts(COMMON_RATE, [sample_rate_row])
        resolver = RateResolver(fake_db, distance_resolver)

        for vehicle_id in ('v1', 'v2', 'v3'):
            resolver.resolve_rate(
                PICKUP_CITY_ID, PlaceDestination('Hyderabad'), vehicle_id, TripType.ROUND,
                pickup_city_name='Varanasi',
            )

        assert distance_resolver.resolve_distance.call_count == 1


class TestLocalRates:

    def test_package_rate_ignores_running_km(self, fake_db, sample_rate_row, distance_resolver):
        fake_db.add_dicts(LOCAL_RATE, [dict(sample_rate_row, trip_type='local', total_running_km=80)])

        rate = RateResolver(fake_db, distance_resolver).resolve_rate(
            PICKUP_CITY_ID, PackageDestination(PACKAGE_ID), VEHICLE_ID, TripType.LOCAL
        )

        assert rate.source == 'local'
        assert rate.total_running_km is None
        distance_resolver.resolve_distance.assert_not_called()

    def test_local_common_rate_skips_distance(self, fake_db, sample_rate_row, distance_resolver):
        fake_db.add_dicts(COMMON_RATE, [dict(sample_rate_row, trip_type='local')])

        rate = RateResolver(fake_db, distance_resolver).resolve_rate(
            PICKUP_CITY_ID, PackageDestination(PACKAGE_ID), VEHICLE_ID, TripType.LOCAL
        )

        assert rate.source == 'common'
        assert rate.total_running_km is None
        distance_resolver.resolve_distance.assert_not_called()


def test_no_rate_returns_none(fake_db, distance_resolver):
    rate = RateResolver(fake_db, distance_resolver).resolve_rate(
        PICKUP_CITY_ID, CityDestination(DEST_CITY_ID), VEHICLE_ID, TripType.ROUND
    )
    assert rate is None
