"""
Runtime configuration.

All settings come from environment variables (a local .env file is loaded
first when present). Nothing here is ever returned to API clients.
"""

import os
from decimal import Decimal

from dotenv import load_dotenv

load_dotenv()


# =====================================================
# DATABASE
# =====================================================

DB_CONFIG = {
    'host': os.environ.get('DB_HOST', 'localhost'),
    'port': int(os.environ.get('DB_PORT', 5432)),
    'database': os.environ.get('DB_NAME', 'cab_booking'),
    'user': os.environ.get('DB_USER', 'postgres'),
    'password': os.environ.get('DB_PASS', ''),
}


# =====================================================
# FLASK / ADMIN
# =====================================================

SECRET_KEY = os.environ.get('SECRET_KEY', 'your-secret-key-change-in-production')
ADMIN_USER = os.environ.get('ADMIN_USER', 'admin')
ADMIN_PASS = os.environ.get('ADMIN_PASS', 'admin123')


# =====================================================
# GOOGLE MAPS
# =====================================================
# GOOGLE_MAPS_API_KEY — used for Distance Matrix and Places calls.
# When unset, distance lookups fall back to the static city-pair table
# and place autocomplete reports a configuration error.

GOOGLE_MAPS_API_KEY = os.environ.get('GOOGLE_MAPS_API_KEY', '').strip()
DISTANCE_API_TIMEOUT = float(os.environ.get('DISTANCE_API_TIMEOUT', 10))
PLACES_API_TIMEOUT = float(os.environ.get('PLACES_API_TIMEOUT', 10))


# =====================================================
# PRICING CONSTANTS
# =====================================================
# Defaults must not change without product sign-off.

GST_RATE = Decimal(os.environ.get('GST_RATE', '0.05'))
ADVANCE_RATE = Decimal(os.environ.get('ADVANCE_RATE', '0.20'))


# =====================================================
# CUSTOMER CONTACT
# =====================================================

WHATSAPP_NUMBER = os.environ.get('WHATSAPP_NUMBER', '917497974808')
