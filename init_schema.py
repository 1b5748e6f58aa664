#!/usr/bin/env python3
"""
Schema setup for the cab booking backend.
Idempotent: safe to run on every deploy.

Run: python init_schema.py
"""
import sys

import psycopg2

from config import DB_CONFIG

TABLES = [
    ('cities', """
        CREATE TABLE IF NOT EXISTS cities (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            name VARCHAR(120) NOT NULL UNIQUE,
            state_code VARCHAR(10),
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )"""),
    ('vehicles', """
        CREATE TABLE IF NOT EXISTS vehicles (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            name VARCHAR(120) NOT NULL,
            model VARCHAR(120),
            seating_capacity INTEGER,
            image_url TEXT,
            vehicle_type VARCHAR(50) NOT NULL,
            is_active BOOLEAN NOT NULL DEFAULT TRUE,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )"""),
    ('local_packages', """
        CREATE TABLE IF NOT EXISTS local_packages (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            name VARCHAR(120) NOT NULL,
            hours INTEGER NOT NULL CHECK (hours > 0),
            kilometers INTEGER NOT NULL CHECK (kilometers > 0),
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )"""),
    ('vehicle_rates', """
        CREATE TABLE IF NOT EXISTS vehicle_rates (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            pickup_city_id UUID NOT NULL REFERENCES cities(id) ON DELETE CASCADE,
            destination_city_id UUID REFERENCES cities(id) ON DELETE CASCADE,
            vehicle_id UUID NOT NULL REFERENCES vehicles(id) ON DELETE CASCADE,
            package_id UUID REFERENCES local_packages(id) ON DELETE CASCADE,
            trip_type VARCHAR(20) NOT NULL
                CHECK (trip_type IN ('round_trip', 'oneway_trip', 'local', 'airport')),
            total_running_km NUMERIC(10, 2) CHECK (total_running_km >= 0),
            daily_km_limit NUMERIC(10, 2) NOT NULL CHECK (daily_km_limit > 0),
            per_km_charges NUMERIC(10, 2) NOT NULL DEFAULT 0 CHECK (per_km_charges >= 0),
            extra_per_km_charge NUMERIC(10, 2) NOT NULL DEFAULT 0 CHECK (extra_per_km_charge >= 0),
            extra_per_hour_charge NUMERIC(10, 2) NOT NULL DEFAULT 0 CHECK (extra_per_hour_charge >= 0),
            day_driver_allowance NUMERIC(10, 2) NOT NULL DEFAULT 0 CHECK (day_driver_allowance >= 0),
            night_charge NUMERIC(10, 2) NOT NULL DEFAULT 0 CHECK (night_charge >= 0),
            base_fare NUMERIC(10, 2) NOT NULL DEFAULT 0 CHECK (base_fare >= 0),
            is_active BOOLEAN NOT NULL DEFAULT TRUE,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )"""),
    ('common_rates', """
        CREATE TABLE IF NOT EXISTS common_rates (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            pickup_city_id UUID NOT NULL REFERENCES cities(id) ON DELETE CASCADE,
            vehicle_id UUID NOT NULL REFERENCES vehicles(id) ON DELETE CASCADE,
            trip_type VARCHAR(20) NOT NULL
                CHECK (trip_type IN ('round_trip', 'oneway_trip', 'local', 'airport')),
            daily_km_limit NUMERIC(10, 2) NOT NULL CHECK (daily_km_limit > 0),
            per_km_charges NUMERIC(10, 2) NOT NULL DEFAULT 0 CHECK (per_km_charges >= 0),
            extra_per_km_charge NUMERIC(10, 2) NOT NULL DEFAULT 0 CHECK (extra_per_km_charge >= 0),
            extra_per_hour_charge NUMERIC(10, 2) NOT NULL DEFAULT 0 CHECK (extra_per_hour_charge >= 0),
            day_driver_allowance NUMERIC(10, 2) NOT NULL DEFAULT 0 CHECK (day_driver_allowance >= 0),
            night_charge NUMERIC(10, 2) NOT NULL DEFAULT 0 CHECK (night_charge >= 0),
            base_fare NUMERIC(10, 2) NOT NULL DEFAULT 0 CHECK (base_fare >= 0),
            is_active BOOLEAN NOT NULL DEFAULT TRUE,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )"""),
    ('bookings', """
        CREATE TABLE IF NOT EXISTS bookings (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            ticket_id VARCHAR(20) UNIQUE,
            user_phone VARCHAR(30) NOT NULL,
            user_name VARCHAR(200),
            user_email VARCHAR(200),
            pickup_address TEXT,
            destination_address TEXT,
            number_of_persons INTEGER NOT NULL DEFAULT 1 CHECK (number_of_persons >= 1),
            pickup_city_id UUID REFERENCES cities(id),
            destination_city_id UUID REFERENCES cities(id),
            destination_name VARCHAR(255),
            additional_city_id UUID REFERENCES cities(id),
            vehicle_id UUID REFERENCES vehicles(id),
            package_id UUID REFERENCES local_packages(id),
            airport_name VARCHAR(255),
            trip_type VARCHAR(20) NOT NULL
                CHECK (trip_type IN ('round', 'oneway', 'local', 'airport')),
            pickup_date DATE NOT NULL,
            pickup_time TIME NOT NULL DEFAULT '09:00:00',
            return_date DATE,
            number_of_days INTEGER NOT NULL DEFAULT 1,
            total_amount NUMERIC(12, 2) NOT NULL CHECK (total_amount >= 0),
            advance_amount NUMERIC(12, 2) NOT NULL CHECK (advance_amount >= 0),
            advance_paid BOOLEAN NOT NULL DEFAULT FALSE,
            booking_status VARCHAR(20) NOT NULL DEFAULT 'pending'
                CHECK (booking_status IN ('draft', 'pending', 'confirmed', 'completed', 'cancelled')),
            payment_status VARCHAR(20) NOT NULL DEFAULT 'pending'
                CHECK (payment_status IN ('pending', 'paid', 'failed')),
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )"""),
    ('round_trip_bookings', """
        CREATE TABLE IF NOT EXISTS round_trip_bookings (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            booking_id UUID NOT NULL UNIQUE REFERENCES bookings(id) ON DELETE CASCADE,
            pickup_city_id UUID REFERENCES cities(id),
            destination_city_id UUID REFERENCES cities(id),
            destination_name VARCHAR(255),
            additional_city_id UUID REFERENCES cities(id),
            return_date DATE,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )"""),
    ('oneway_trip_bookings', """
        CREATE TABLE IF NOT EXISTS oneway_trip_bookings (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            booking_id UUID NOT NULL UNIQUE REFERENCES bookings(id) ON DELETE CASCADE,
            pickup_city_id UUID REFERENCES cities(id),
            destination_city_id UUID REFERENCES cities(id),
            destination_name VARCHAR(255),
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )"""),
    ('local_trip_bookings', """
        CREATE TABLE IF NOT EXISTS local_trip_bookings (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            booking_id UUID NOT NULL UNIQUE REFERENCES bookings(id) ON DELETE CASCADE,
            pickup_city_id UUID REFERENCES cities(id),
            package_id UUID REFERENCES local_packages(id),
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )"""),
    ('airport_trip_bookings', """
        CREATE TABLE IF NOT EXISTS airport_trip_bookings (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            booking_id UUID NOT NULL UNIQUE REFERENCES bookings(id) ON DELETE CASCADE,
            pickup_city_id UUID REFERENCES cities(id),
            airport_name VARCHAR(255) NOT NULL,
            transfer_type VARCHAR(20) NOT NULL DEFAULT 'going-to'
                CHECK (transfer_type IN ('going-to', 'coming-from')),
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )"""),
    ('discount_leads', """
        CREATE TABLE IF NOT EXISTS discount_leads (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            mobile_number VARCHAR(30) NOT NULL,
            vehicle_name VARCHAR(200),
            vehicle_id UUID REFERENCES vehicles(id) ON DELETE SET NULL,
            pickup_city_id UUID REFERENCES cities(id) ON DELETE SET NULL,
            destination_city_id UUID REFERENCES cities(id) ON DELETE SET NULL,
            trip_type VARCHAR(20),
            pickup_date DATE,
            return_date DATE,
            lead_source VARCHAR(50) NOT NULL DEFAULT 'discount_popup',
            coupon_requested BOOLEAN NOT NULL DEFAULT TRUE,
            status VARCHAR(20) NOT NULL DEFAULT 'pending'
                CHECK (status IN ('pending', 'contacted', 'converted', 'not_interested')),
            notes TEXT,
            contacted_at TIMESTAMP,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )"""),
]

INDEXES = [
    ('idx_vehicle_rates_route',
     "CREATE INDEX IF NOT EXISTS idx_vehicle_rates_route ON vehicle_rates"
     "(pickup_city_id, destination_city_id, vehicle_id, trip_type) WHERE is_active"),
    ('idx_vehicle_rates_package',
     "CREATE INDEX IF NOT EXISTS idx_vehicle_rates_package ON vehicle_rates"
     "(pickup_city_id, package_id, vehicle_id) WHERE trip_type = 'local' AND is_active"),
    ('idx_common_rates_lookup',
     "CREATE INDEX IF NOT EXISTS idx_common_rates_lookup ON common_rates"
     "(pickup_city_id, vehicle_id, trip_type) WHERE is_active"),
    ('idx_bookings_status', "CREATE INDEX IF NOT EXISTS idx_bookings_status ON bookings(booking_status)"),
    ('idx_bookings_phone', "CREATE INDEX IF NOT EXISTS idx_bookings_phone ON bookings(user_phone)"),
    ('idx_discount_leads_status', "CREATE INDEX IF NOT EXISTS idx_discount_leads_status ON discount_leads(status)"),
]


def check_table_exists(cursor, table_name):
    cursor.execute(
        "SELECT EXISTS (SELECT 1 FROM information_schema.tables WHERE table_name = %s);",
        (table_name,)
    )
    return cursor.fetchone()[0]


def create_tables(conn):
    cursor = conn.cursor()
    changes = []
    print("\n" + "=" * 70)
    print("CREATING TABLES")
    print("=" * 70)

    # gen_random_uuid() is built in from PostgreSQL 13; pgcrypto covers older servers
    cursor.execute("CREATE EXTENSION IF NOT EXISTS pgcrypto")

    for table_name, ddl in TABLES:
        if check_table_exists(cursor, table_name):
            print(f"  ✓ {table_name} already exists")
            continue
        cursor.execute(ddl)
        changes.append(f"Created table {table_name}")
        print(f"  ✅ Created {table_name}")

    cursor.execute("CREATE SEQUENCE IF NOT EXISTS booking_ticket_seq START 1")
    return changes


def create_indexes(conn):
    cursor = conn.cursor()
    print("\n" + "=" * 70)
    print("CREATING INDEXES")
    print("=" * 70)
    for index_name, ddl in INDEXES:
        cursor.execute(ddl)
        print(f"  ✓ {index_name}")
    return []


def main():
    print("=" * 70)
    print("CAB BOOKING SCHEMA SETUP")
    print("=" * 70)
    try:
        conn = psycopg2.connect(**DB_CONFIG)
    except psycopg2.Error as e:
        print(f"❌ Could not connect to database: {e}")
        sys.exit(1)

    try:
        changes = create_tables(conn)
        changes += create_indexes(conn)
        conn.commit()
    except psycopg2.Error as e:
        conn.rollback()
        print(f"\n❌ Schema setup failed, rolled back: {e}")
        sys.exit(1)
    finally:
        conn.close()

    print("\n" + "=" * 70)
    if changes:
        print(f"✅ {len(changes)} change(s) applied:")
        for change in changes:
            print(f"   - {change}")
    else:
        print("✅ Schema already up to date")
    print("=" * 70)


if __name__ == '__main__':
    main()
