import pytest
from unittest.mock import Mock

from pricing_engine import RateCard


class FakeCursor:
    """Answers queries from the owning FakeConnection's canned results."""

    def __init__(self, conn):
        self.conn = conn
        self.description = None
        self.rowcount = -1
        self._rows = []

    def execute(self, query, params=None):
        sql = ' '.join(query.split())
        self.conn.executed.append((sql, params))

        for fragment, error in self.conn.failures:
            if fragment in sql:
                raise error

        for entry in self.conn.results:
            if entry['fragment'] in sql and (entry['when'] is None or entry['when'](params)):
                self._rows = list(entry['rows'])
                self.description = tuple((c,) for c in entry['columns']) if entry['columns'] else None
                self.rowcount = entry['rowcount'] if entry['rowcount'] is not None else len(self._rows)
                return

        self._rows = []
        self.description = None
        self.rowcount = self.conn.default_rowcount

    def fetchone(self):
        return self._rows.pop(0) if self._rows else None

    def fetchall(self):
        rows, self._rows = self._rows, []
        return rows


class FakeConnection:
    """
    Stand-in for a psycopg2 connection.

    Register results with add(); the first entry whose SQL fragment appears
    in the (whitespace-normalized) query answers it.
    """

    def __init__(self):
        self.results = []
        self.failures = []
        self.executed = []
        self.default_rowcount = 1
        self.committed = False
        self.rolled_back = False
        self.closed = False

    def add(self, fragment, rows=(), columns=None, rowcount=None, when=None):
        self.results.append({
            'fragment': fragment,
            'rows': [tuple(r) for r in rows],
            'columns': columns,
            'rowcount': rowcount,
            'when': when,
        })
        return self

    def add_dicts(self, fragment, dicts, when=None):
        columns = list(dicts[0].keys()) if dicts else []
        return self.add(fragment, [tuple(d[c] for c in columns) for d in dicts], columns, when=when)

    def fail_on(self, fragment, error):
        self.failures.append((fragment, error))
        return self

    def cursor(self):
        return FakeCursor(self)

    def commit(self):
        self.committed = True

    def rollback(self):
        self.rolled_back = True

    def close(self):
        self.closed = True

    def queries(self, fragment):
        return [(sql, params) for sql, params in self.executed if fragment in sql]


# =====================================================
# SHARED FIXTURES
# =====================================================

PICKUP_CITY_ID = '11111111-1111-1111-1111-111111111111'
DEST_CITY_ID = '22222222-2222-2222-2222-222222222222'
VEHICLE_ID = '33333333-3333-3333-3333-333333333333'
PACKAGE_ID = '44444444-4444-4444-4444-444444444444'


@pytest.fixture
def fake_db():
    return FakeConnection()


@pytest.fixture
def sample_rate_row():
    return {
        'id': 'rate-1',
        'vehicle_id': VEHICLE_ID,
        'trip_type': 'round_trip',
        'daily_km_limit': 300,
        'per_km_charges': 12,
        'extra_per_km_charge': 15,
        'extra_per_hour_charge': 100,
        'day_driver_allowance': 300,
        'night_charge': 200,
        'base_fare': 0,
    }


@pytest.fixture
def sample_rate_card(sample_rate_row):
    return RateCard.from_row(dict(sample_rate_row, total_running_km=600))


@pytest.fixture
def offline_distance_resolver():
    """DistanceResolver with no API key: always the static table."""
    from distance_resolver import DistanceResolver
    return DistanceResolver(api_key='', session=Mock())
