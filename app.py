"""
Cab Booking Backend — Flask API
===============================
Public endpoints:
  - Catalog (cities, vehicles, local packages)
  - Distance lookup and place autocomplete (Google Maps, server-side key)
  - Vehicle search: per-vehicle rate resolution + fare breakdown, cheapest first
  - Booking creation (fare re-resolved server-side) and ticket view
  - Discount-coupon lead capture, WhatsApp enquiry link

Admin endpoints (session login):
  - Cities, vehicles, local packages, route rates, common rates
  - Booking status / payment management
  - Lead follow-up

All fare arithmetic lives in pricing_engine.py; this module never computes
prices itself.
"""

from flask import Flask, request, jsonify, session
from flask_cors import CORS
from functools import wraps
import logging
import math

from booking_assembler import (
    BOOKING_STATUSES,
    PAYMENT_STATUSES,
    BookingAssembler,
    ContactDetails,
    fetch_booking_ticket,
)
from config import SECRET_KEY, ADMIN_USER, ADMIN_PASS
from db import get_db, rows_to_dicts, row_to_dict, json_safe
from distance_resolver import DistanceResolver
from leads import create_discount_lead, list_leads, update_lead
from messaging import format_whatsapp_message, whatsapp_link
from places import PlacesClient, find_city_id_by_name
from pricing_engine import (
    BookingPersistenceError,
    DurationCalculator,
    FareCalculator,
    InvalidTripRequestError,
    PlacesServiceError,
    PricingEngineError,
    RateCard,
    RateNotFoundError,
    compute_advance_amount,
)
from quote_engine import CabQuoteEngine, NO_VEHICLES_MESSAGE
from trip_request import TripType, is_uuid, parse_trip_request

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

app = Flask(__name__)
app.secret_key = SECRET_KEY
CORS(app)


# =====================================================
# HELPERS
# =====================================================

def error_response(message, status=400, **extra):
    body = {'success': False, 'error': message}
    body.update(extra)
    return jsonify(body), status


def known_city_checker(cursor):
    """Callable telling whether an id is a row of the cities table."""
    def is_known_city(city_id):
        if not is_uuid(city_id):
            return False
        cursor.execute("SELECT 1 FROM cities WHERE id = %s", (city_id,))
        return cursor.fetchone() is not None
    return is_known_city


# =====================================================
# AUTHENTICATION
# =====================================================

def admin_login_required(f):
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not session.get('admin_logged_in'):
            return error_response('Authentication required', 401)
        return f(*args, **kwargs)
    return decorated_function


@app.route('/admin/login', methods=['POST'])
def admin_login():
    data = request.get_json(silent=True) or request.form
    username = data.get('username', '')
    password = data.get('password', '')
    if username == ADMIN_USER and password == ADMIN_PASS:
        session['admin_logged_in'] = True
        session['admin_username'] = username
        logger.info(f"Admin login: {username}")
        return jsonify({'success': True})
    logger.warning(f"Failed admin login attempt for {username!r}")
    return error_response('Invalid credentials', 401)


@app.route('/admin/logout')
def admin_logout():
    session.pop('admin_logged_in', None)
    session.pop('admin_username', None)
    return jsonify({'success': True})


# =====================================================
# CATALOG (PUBLIC)
# =====================================================

@app.route('/api/cities', methods=['GET'])
def list_cities():
    db = get_db()
    try:
        cur = db.cursor()
        cur.execute("SELECT id, name, state_code FROM cities ORDER BY name")
        return jsonify(json_safe(rows_to_dicts(cur, cur.fetchall())))
    except Exception as e:
        logger.error(f"Error listing cities: {e}", exc_info=True)
        return error_response(str(e), 500)
    finally:
        db.close()


@app.route('/api/vehicles', methods=['GET'])
def list_vehicles():
    include_inactive = request.args.get('all') == '1' and session.get('admin_logged_in')
    db = get_db()
    try:
        cur = db.cursor()
        if include_inactive:
            cur.execute("SELECT * FROM vehicles ORDER BY name")
        else:
            cur.execute("SELECT * FROM vehicles WHERE is_active = TRUE ORDER BY name")
        return jsonify(json_safe(rows_to_dicts(cur, cur.fetchall())))
    except Exception as e:
        logger.error(f"Error listing vehicles: {e}", exc_info=True)
        return error_response(str(e), 500)
    finally:
        db.close()


@app.route('/api/local-packages', methods=['GET'])
def list_local_packages():
    db = get_db()
    try:
        cur = db.cursor()
        cur.execute("SELECT id, name, hours, kilometers FROM local_packages ORDER BY hours, kilometers")
        return jsonify(json_safe(rows_to_dicts(cur, cur.fetchall())))
    except Exception as e:
        logger.error(f"Error listing local packages: {e}", exc_info=True)
        return error_response(str(e), 500)
    finally:
        db.close()


# =====================================================
# ADMIN CRUD — SHARED
# =====================================================
# Column whitelists: request bodies may only write these columns.

ADMIN_TABLES = {
    'cities': ('name', 'state_code'),
    'vehicles': ('name', 'model', 'seating_capacity', 'image_url', 'vehicle_type', 'is_active'),
    'local_packages': ('name', 'hours', 'kilometers'),
    'vehicle_rates': (
        'pickup_city_id', 'destination_city_id', 'vehicle_id', 'package_id', 'trip_type',
        'total_running_km', 'daily_km_limit', 'per_km_charges', 'extra_per_km_charge',
        'extra_per_hour_charge', 'day_driver_allowance', 'night_charge', 'base_fare', 'is_active',
    ),
    'common_rates': (
        'pickup_city_id', 'vehicle_id', 'trip_type', 'daily_km_limit', 'per_km_charges',
        'extra_per_km_charge', 'extra_per_hour_charge', 'day_driver_allowance',
        'night_charge', 'base_fare', 'is_active',
    ),
}

REQUIRED_FIELDS = {
    'cities': ('name',),
    'vehicles': ('name', 'vehicle_type'),
    'local_packages': ('name', 'hours', 'kilometers'),
    'vehicle_rates': ('pickup_city_id', 'vehicle_id', 'trip_type', 'daily_km_limit', 'per_km_charges'),
    'common_rates': ('pickup_city_id', 'vehicle_id', 'trip_type', 'daily_km_limit', 'per_km_charges'),
}

RATE_NUMERIC_FIELDS = (
    'total_running_km', 'daily_km_limit', 'per_km_charges', 'extra_per_km_charge',
    'extra_per_hour_charge', 'day_driver_allowance', 'night_charge', 'base_fare',
)

RATE_TRIP_TYPES = tuple(t.rate_trip_type for t in TripType)


def validate_rate_payload(data):
    """Rate values must be non-negative; daily km limit must be positive."""
    for field in RATE_NUMERIC_FIELDS:
        value = data.get(field)
        if value is None or value == '':
            continue
        try:
            number = float(value)
        except (TypeError, ValueError):
            raise InvalidTripRequestError(f"{field} must be a number")
        if not math.isfinite(number):
            raise InvalidTripRequestError(f"{field} must be a finite number")
        if number < 0:
            raise InvalidTripRequestError(f"{field} cannot be negative")

    if 'daily_km_limit' in data and float(data.get('daily_km_limit') or 0) <= 0:
        raise InvalidTripRequestError("daily_km_limit must be greater than 0")

    trip_type = data.get('trip_type')
    if trip_type is not None and trip_type not in RATE_TRIP_TYPES:
        raise InvalidTripRequestError(f"trip_type must be one of {', '.join(RATE_TRIP_TYPES)}")


def _writable_fields(table, data):
    return {k: data[k] for k in ADMIN_TABLES[table] if k in data}


def _admin_list(table, order_by):
    db = get_db()
    try:
        cur = db.cursor()
        cur.execute(f"SELECT * FROM {table} ORDER BY {order_by}")
        return jsonify(json_safe(rows_to_dicts(cur, cur.fetchall())))
    except Exception as e:
        logger.error(f"Error listing {table}: {e}", exc_info=True)
        return error_response(str(e), 500)
    finally:
        db.close()


def _admin_create(table):
    data = request.get_json(silent=True) or {}
    missing = [f for f in REQUIRED_FIELDS[table] if data.get(f) in (None, '')]
    if missing:
        return error_response(f"Missing required fields: {', '.join(missing)}")

    try:
        if table in ('vehicle_rates', 'common_rates'):
            validate_rate_payload(data)
    except InvalidTripRequestError as e:
        return error_response(str(e))

    fields = _writable_fields(table, data)
    columns = list(fields.keys())

    db = get_db()
    try:
        cur = db.cursor()
        cur.execute(
            f"INSERT INTO {table} ({', '.join(columns)}) "
            f"VALUES ({', '.join(['%s'] * len(columns))}) RETURNING id",
            [fields[c] for c in columns]
        )
        new_id = cur.fetchone()[0]
        db.commit()
        logger.info(f"Created {table} row {new_id}")
        return jsonify({'id': str(new_id), 'message': 'Created'}), 201
    except Exception as e:
        db.rollback()
        logger.error(f"Error creating {table} row: {e}", exc_info=True)
        return error_response(str(e), 500)
    finally:
        db.close()


def _admin_update(table, row_id):
    data = request.get_json(silent=True) or {}
    try:
        if table in ('vehicle_rates', 'common_rates'):
            validate_rate_payload(data)
    except InvalidTripRequestError as e:
        return error_response(str(e))

    fields = _writable_fields(table, data)
    if not fields:
        return error_response('No updatable fields provided')

    assignments = ', '.join(f"{c} = %s" for c in fields)
    db = get_db()
    try:
        cur = db.cursor()
        cur.execute(
            f"UPDATE {table} SET {assignments}, updated_at = NOW() WHERE id = %s",
            list(fields.values()) + [row_id]
        )
        if cur.rowcount == 0:
            db.rollback()
            return error_response('Not found', 404)
        db.commit()
        return jsonify({'message': 'Updated'})
    except Exception as e:
        db.rollback()
        logger.error(f"Error updating {table} row {row_id}: {e}", exc_info=True)
        return error_response(str(e), 500)
    finally:
        db.close()


def _admin_toggle(table, row_id):
    data = request.get_json(silent=True) or {}
    db = get_db()
    try:
        cur = db.cursor()
        cur.execute(
            f"UPDATE {table} SET is_active = %s, updated_at = NOW() WHERE id = %s",
            (bool(data.get('is_active', data.get('active'))), row_id)
        )
        db.commit()
        return jsonify({'message': 'Toggled'})
    except Exception as e:
        db.rollback()
        logger.error(f"Error toggling {table} row {row_id}: {e}", exc_info=True)
        return error_response(str(e), 500)
    finally:
        db.close()


def _admin_delete(table, row_id):
    db = get_db()
    try:
        cur = db.cursor()
        cur.execute(f"DELETE FROM {table} WHERE id = %s", (row_id,))
        db.commit()
        return jsonify({'message': 'Deleted'})
    except Exception as e:
        db.rollback()
        logger.error(f"Error deleting {table} row {row_id}: {e}", exc_info=True)
        return error_response(str(e), 500)
    finally:
        db.close()


# =====================================================
# ADMIN — CITIES / VEHICLES / PACKAGES
# =====================================================

@app.route('/api/admin/cities', methods=['GET'])
@admin_login_required
def admin_list_cities():
    return _admin_list('cities', 'name')


@app.route('/api/admin/cities', methods=['POST'])
@admin_login_required
def admin_create_city():
    return _admin_create('cities')


@app.route('/api/admin/cities/<cid>', methods=['PUT'])
@admin_login_required
def admin_update_city(cid):
    return _admin_update('cities', cid)


@app.route('/api/admin/cities/<cid>', methods=['DELETE'])
@admin_login_required
def admin_delete_city(cid):
    return _admin_delete('cities', cid)


@app.route('/api/admin/vehicles', methods=['GET'])
@admin_login_required
def admin_list_vehicles():
    return _admin_list('vehicles', 'name')


@app.route('/api/admin/vehicles', methods=['POST'])
@admin_login_required
def admin_create_vehicle():
    return _admin_create('vehicles')


@app.route('/api/admin/vehicles/<vid>', methods=['PUT'])
@admin_login_required
def admin_update_vehicle(vid):
    return _admin_update('vehicles', vid)


@app.route('/api/admin/vehicles/<vid>/toggle', methods=['PATCH'])
@admin_login_required
def admin_toggle_vehicle(vid):
    return _admin_toggle('vehicles', vid)


@app.route('/api/admin/vehicles/<vid>', methods=['DELETE'])
@admin_login_required
def admin_delete_vehicle(vid):
    return _admin_delete('vehicles', vid)


@app.route('/api/admin/local-packages', methods=['GET'])
@admin_login_required
def admin_list_local_packages():
    return _admin_list('local_packages', 'hours, kilometers')


@app.route('/api/admin/local-packages', methods=['POST'])
@admin_login_required
def admin_create_local_package():
    return _admin_create('local_packages')


@app.route('/api/admin/local-packages/<pid>', methods=['PUT'])
@admin_login_required
def admin_update_local_package(pid):
    return _admin_update('local_packages', pid)


@app.route('/api/admin/local-packages/<pid>', methods=['DELETE'])
@admin_login_required
def admin_delete_local_package(pid):
    return _admin_delete('local_packages', pid)


# =====================================================
# ADMIN — ROUTE RATES / COMMON RATES
# =====================================================

@app.route('/api/admin/vehicle-rates', methods=['GET'])
@admin_login_required
def admin_list_vehicle_rates():
    return _admin_list('vehicle_rates', 'pickup_city_id, trip_type, vehicle_id')


def route_rate_shape_error(rate):
    """Local rates need a package; every other trip type needs a destination city."""
    trip_type = rate.get('trip_type')
    if trip_type == 'local' and not rate.get('package_id'):
        return 'package_id is required for local rates'
    if trip_type and trip_type != 'local' and not rate.get('destination_city_id'):
        return 'destination_city_id is required for route rates'
    return None


@app.route('/api/admin/vehicle-rates', methods=['POST'])
@admin_login_required
def admin_create_vehicle_rate():
    message = route_rate_shape_error(request.get_json(silent=True) or {})
    if message:
        return error_response(message)
    return _admin_create('vehicle_rates')


@app.route('/api/admin/vehicle-rates/<rid>', methods=['PUT'])
@admin_login_required
def admin_update_vehicle_rate(rid):
    data = request.get_json(silent=True) or {}
    if {'trip_type', 'package_id', 'destination_city_id'} & set(data):
        db = get_db()
        try:
            cur = db.cursor()
            cur.execute(
                "SELECT trip_type, package_id, destination_city_id FROM vehicle_rates WHERE id = %s",
                (rid,)
            )
            current = row_to_dict(cur, cur.fetchone())
        except Exception as e:
            logger.error(f"Error loading vehicle rate {rid}: {e}", exc_info=True)
            return error_response(str(e), 500)
        finally:
            db.close()
        if current is None:
            return error_response('Not found', 404)
        message = route_rate_shape_error(dict(current, **data))
        if message:
            return error_response(message)
    return _admin_update('vehicle_rates', rid)


@app.route('/api/admin/vehicle-rates/<rid>/toggle', methods=['PATCH'])
@admin_login_required
def admin_toggle_vehicle_rate(rid):
    return _admin_toggle('vehicle_rates', rid)


@app.route('/api/admin/vehicle-rates/<rid>', methods=['DELETE'])
@admin_login_required
def admin_delete_vehicle_rate(rid):
    return _admin_delete('vehicle_rates', rid)


@app.route('/api/admin/common-rates', methods=['GET'])
@admin_login_required
def admin_list_common_rates():
    return _admin_list('common_rates', 'pickup_city_id, trip_type, vehicle_id')


@app.route('/api/admin/common-rates', methods=['POST'])
@admin_login_required
def admin_create_common_rate():
    return _admin_create('common_rates')


@app.route('/api/admin/common-rates/<rid>', methods=['PUT'])
@admin_login_required
def admin_update_common_rate(rid):
    return _admin_update('common_rates', rid)


@app.route('/api/admin/common-rates/<rid>/toggle', methods=['PATCH'])
@admin_login_required
def admin_toggle_common_rate(rid):
    return _admin_toggle('common_rates', rid)


@app.route('/api/admin/common-rates/<rid>', methods=['DELETE'])
@admin_login_required
def admin_delete_common_rate(rid):
    return _admin_delete('common_rates', rid)


# =====================================================
# DISTANCE & PLACES
# =====================================================

@app.route('/api/distance', methods=['POST'])
def distance_lookup():
    """Road distance between two place names. Always answers 200."""
    data = request.get_json(silent=True) or {}
    pickup = (data.get('pickupCity') or '').strip() or 'Unknown'
    destination = (data.get('destinationCity') or '').strip() or 'Unknown'
    result = DistanceResolver().resolve_distance(pickup, destination)
    return jsonify(result.to_dict())


@app.route('/api/places/autocomplete', methods=['POST'])
def places_autocomplete():
    data = request.get_json(silent=True) or {}
    try:
        predictions = PlacesClient().autocomplete(data.get('input', ''), data.get('sessionToken'))
        return jsonify({'predictions': predictions})
    except PlacesServiceError as e:
        return error_response(str(e), 502, predictions=[])


@app.route('/api/places/details', methods=['POST'])
def places_details():
    """
    Place details, annotated with the matching city id when the place's
    locality is one of our cities (so rate lookup can use route rates).
    """
    data = request.get_json(silent=True) or {}
    try:
        details = PlacesClient().place_details(data.get('placeId', ''), data.get('sessionToken'))
    except PlacesServiceError as e:
        return error_response(str(e), 502)

    db = get_db()
    try:
        details['cityId'] = find_city_id_by_name(db.cursor(), details.get('city'))
    except Exception as e:
        logger.error(f"City match failed for place {details.get('placeId')}: {e}", exc_info=True)
        details['cityId'] = None
    finally:
        db.close()
    return jsonify(details)


# =====================================================
# VEHICLE SEARCH & FARES
# =====================================================

@app.route('/api/vehicle-search', methods=['POST'])
def vehicle_search():
    """
    Priced vehicle list for a trip search.

    Accepts the search form payload:
    {
        "tripType":        "round" | "oneway" | "local" | "airport",
        "pickupCity":      "<city id>",
        "destinationCity": "<city id>"        # or "destination": {"type": "place", "name": ...}
        "package":         "<package id>",    # local only
        "airportName":     "...",             # airport only
        "transferType":    "going-to" | "coming-from",
        "pickupDate":      "2026-03-10",
        "returnDate":      "2026-03-12"
    }
    """
    payload = request.get_json(silent=True)
    db = None
    try:
        db = get_db()
        cur = db.cursor()
        trip = parse_trip_request(payload, known_city_checker(cur))

        engine = CabQuoteEngine(db)
        quotes = engine.quote_vehicles(trip)
        duration = DurationCalculator.calculate_days_and_nights(trip.pickup_date, trip.return_date)

        distance_info = None
        for quote in quotes:
            if quote.rate.source == 'common' and quote.rate.distance_km is not None:
                distance_info = {
                    'distance': float(quote.rate.distance_km),
                    'warning': quote.rate.distance_warning or 'Distance calculated successfully',
                }
                break

        result = {
            'success': True,
            'trip': trip.to_dict(),
            'duration': duration.to_dict(),
            'distanceInfo': distance_info,
            'vehicles': [q.to_dict() for q in quotes],
        }
        if not quotes:
            result['message'] = NO_VEHICLES_MESSAGE
        return jsonify(json_safe(result))

    except InvalidTripRequestError as e:
        logger.error(f"Invalid trip request: {e}")
        return error_response(str(e), 400, vehicles=[])
    except Exception as e:
        logger.error(f"Vehicle search error: {e}", exc_info=True)
        return error_response('Failed to load vehicle rates', 500, vehicles=[])
    finally:
        if db:
            db.close()


@app.route('/api/fare-breakdown', methods=['POST'])
def fare_breakdown():
    """
    Stateless fare calculation for an explicit rate card.
    Duration comes from pickupDate/returnDate or numberOfDays/numberOfNights.
    """
    data = request.get_json(silent=True) or {}
    rate_data = data.get('rate') or {}
    try:
        row = {
            'daily_km_limit': rate_data.get('dailyKmLimit'),
            'per_km_charges': rate_data.get('perKmCharge'),
            'extra_per_km_charge': rate_data.get('extraPerKmCharge'),
            'extra_per_hour_charge': rate_data.get('extraPerHourCharge'),
            'day_driver_allowance': rate_data.get('dayDriverAllowance'),
            'night_charge': rate_data.get('nightCharge'),
            'base_fare': rate_data.get('baseFare'),
            'total_running_km': rate_data.get('totalRunningKm'),
        }
        validate_rate_payload({k: v for k, v in row.items() if v is not None})
        rate = RateCard.from_row(row)

        if 'numberOfDays' in data:
            days = int(data['numberOfDays'])
            nights = int(data.get('numberOfNights', 1))
            if days < 1 or nights < 1:
                raise InvalidTripRequestError("numberOfDays and numberOfNights must be at least 1")
        else:
            duration = DurationCalculator.calculate_days_and_nights(
                data.get('pickupDate'), data.get('returnDate')
            )
            days, nights = duration.number_of_days, duration.number_of_nights

        fare = FareCalculator().calculate_fare_breakdown(rate, days, nights)
        return jsonify({
            'success': True,
            'numberOfDays': days,
            'numberOfNights': nights,
            'fare': fare.to_dict(),
            'advanceAmount': round(float(compute_advance_amount(fare.total)), 2),
        })
    except (InvalidTripRequestError, ArithmeticError, TypeError, ValueError) as e:
        logger.error(f"Fare breakdown error: {e}")
        return error_response(f"Invalid fare input: {e}")


# =====================================================
# BOOKINGS
# =====================================================

@app.route('/api/bookings', methods=['POST'])
def create_booking():
    """
    Confirm a booking. The fare is re-resolved from the rate tables; any
    amounts sent by the client are ignored.
    """
    payload = request.get_json(silent=True)
    db = None
    try:
        if not payload:
            raise InvalidTripRequestError('No data provided')
        if not payload.get('vehicleId'):
            raise InvalidTripRequestError('Vehicle information is missing. Please start the booking process again.')
        if not is_uuid(payload['vehicleId']):
            raise InvalidTripRequestError('Please select a vehicle from the list.')
        contact = ContactDetails.from_payload(payload)

        db = get_db()
        trip = parse_trip_request(payload, known_city_checker(db.cursor()))

        quote = CabQuoteEngine(db).quote_selected_vehicle(trip)
        booking = BookingAssembler(db).create_booking(
            trip, quote.vehicle['id'], quote.fare, quote.duration, contact
        )
        return jsonify(json_safe({
            'success': True,
            'booking': booking,
            'fare': quote.fare.to_dict(),
        })), 201

    except InvalidTripRequestError as e:
        logger.error(f"Invalid booking request: {e}")
        return error_response(str(e), 400)
    except RateNotFoundError as e:
        logger.error(f"Booking without rate: {e}")
        return error_response(NO_VEHICLES_MESSAGE, 404)
    except BookingPersistenceError as e:
        return error_response(str(e), 500, retryable=True)
    except Exception as e:
        logger.error(f"Unexpected booking error: {e}", exc_info=True)
        return error_response('An unexpected error occurred. Please try again.', 500, retryable=True)
    finally:
        if db:
            db.close()


@app.route('/api/bookings/<booking_id>', methods=['GET'])
def get_booking_ticket(booking_id):
    if not is_uuid(booking_id):
        return error_response('Booking not found', 404)
    db = get_db()
    try:
        booking = fetch_booking_ticket(db, booking_id)
        if not booking:
            return error_response('Booking not found', 404)
        return jsonify(json_safe({'success': True, 'booking': booking}))
    except Exception as e:
        logger.error(f"Error loading booking {booking_id}: {e}", exc_info=True)
        return error_response(str(e), 500)
    finally:
        db.close()


@app.route('/api/admin/bookings', methods=['GET'])
@admin_login_required
def admin_list_bookings():
    status = request.args.get('status')
    trip_type = request.args.get('tripType')
    search = (request.args.get('search') or '').strip()

    query = """SELECT b.*, pc.name AS pickup_city_name, dc.name AS destination_city_name,
                      v.name AS vehicle_name
               FROM bookings b
               LEFT JOIN cities pc ON pc.id = b.pickup_city_id
               LEFT JOIN cities dc ON dc.id = b.destination_city_id
               LEFT JOIN vehicles v ON v.id = b.vehicle_id
               WHERE 1 = 1"""
    params = []
    if status and status != 'all':
        query += " AND b.booking_status = %s"
        params.append(status)
    if trip_type and trip_type != 'all':
        try:
            params.append(TripType.parse(trip_type).value)
        except InvalidTripRequestError as e:
            return error_response(str(e))
        query += " AND b.trip_type = %s"
    if search:
        query += " AND (b.ticket_id ILIKE %s OR b.user_phone ILIKE %s OR b.user_name ILIKE %s)"
        params.extend([f"%{search}%"] * 3)
    query += " ORDER BY b.created_at DESC"

    db = get_db()
    try:
        cur = db.cursor()
        cur.execute(query, params)
        return jsonify(json_safe(rows_to_dicts(cur, cur.fetchall())))
    except Exception as e:
        logger.error(f"Error listing bookings: {e}", exc_info=True)
        return error_response(str(e), 500)
    finally:
        db.close()


BOOKING_ADMIN_FIELDS = (
    'booking_status', 'payment_status', 'advance_paid', 'total_amount',
    'user_name', 'user_email', 'user_phone', 'pickup_address', 'destination_address',
    'pickup_date', 'pickup_time', 'return_date',
)


@app.route('/api/admin/bookings/<booking_id>', methods=['PATCH'])
@admin_login_required
def admin_update_booking(booking_id):
    """
    Manual admin edits. total_amount is an override: advance_amount is
    frozen at booking time and is never recomputed here.
    """
    data = request.get_json(silent=True) or {}
    if data.get('booking_status') is not None and data['booking_status'] not in BOOKING_STATUSES:
        return error_response(f"Invalid booking status: {data['booking_status']}")
    if data.get('payment_status') is not None and data['payment_status'] not in PAYMENT_STATUSES:
        return error_response(f"Invalid payment status: {data['payment_status']}")

    fields = {k: data[k] for k in BOOKING_ADMIN_FIELDS if k in data}
    if not fields:
        return error_response('No updatable fields provided')

    assignments = ', '.join(f"{c} = %s" for c in fields)
    db = get_db()
    try:
        cur = db.cursor()
        cur.execute(
            f"UPDATE bookings SET {assignments}, updated_at = NOW() WHERE id = %s RETURNING *",
            list(fields.values()) + [booking_id]
        )
        row = row_to_dict(cur, cur.fetchone())
        if row is None:
            db.rollback()
            return error_response('Booking not found', 404)
        db.commit()
        logger.info(f"Booking {booking_id} updated by admin: {', '.join(fields)}")
        return jsonify(json_safe({'success': True, 'booking': row}))
    except Exception as e:
        db.rollback()
        logger.error(f"Error updating booking {booking_id}: {e}", exc_info=True)
        return error_response(str(e), 500)
    finally:
        db.close()


# =====================================================
# LEADS
# =====================================================

@app.route('/api/leads', methods=['POST'])
def submit_lead():
    data = request.get_json(silent=True) or {}
    db = None
    try:
        db = get_db()
        lead_id = create_discount_lead(db, data)
        return jsonify({
            'success': True,
            'id': lead_id,
            'message': 'Your discount coupon request has been submitted. Our team will contact you soon.',
        }), 201
    except InvalidTripRequestError as e:
        return error_response(str(e))
    except Exception as e:
        logger.error(f"Error saving lead: {e}", exc_info=True)
        return error_response('Failed to save your request. Please try again.', 500)
    finally:
        if db:
            db.close()


@app.route('/api/admin/leads', methods=['GET'])
@admin_login_required
def admin_list_leads():
    db = get_db()
    try:
        return jsonify(json_safe(list_leads(db, request.args.get('status'))))
    except Exception as e:
        logger.error(f"Error fetching leads: {e}", exc_info=True)
        return error_response('Failed to fetch leads', 500)
    finally:
        db.close()


@app.route('/api/admin/leads/<lead_id>', methods=['PATCH'])
@admin_login_required
def admin_update_lead(lead_id):
    data = request.get_json(silent=True) or {}
    db = get_db()
    try:
        if not update_lead(db, lead_id, data):
            return error_response('Lead not found', 404)
        return jsonify({'success': True})
    except InvalidTripRequestError as e:
        return error_response(str(e))
    except Exception as e:
        logger.error(f"Error updating lead {lead_id}: {e}", exc_info=True)
        return error_response(str(e), 500)
    finally:
        db.close()


# =====================================================
# WHATSAPP ENQUIRY
# =====================================================

@app.route('/api/whatsapp-link', methods=['POST'])
def whatsapp_enquiry():
    data = request.get_json(silent=True) or {}
    mobile = (data.get('mobileNumber') or '').strip()
    try:
        message = format_whatsapp_message(data.get('tripType', 'round'), data, mobile)
    except PricingEngineError as e:
        return error_response(str(e))
    return jsonify({'message': message, 'url': whatsapp_link(message)})


# =====================================================
# ENTRY POINT
# =====================================================

if __name__ == '__main__':
    app.run(debug=True, host='0.0.0.0', port=5001)
