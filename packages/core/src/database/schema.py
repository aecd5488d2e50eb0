"""
Schema DDL for the ApArt Hotel listings database.

Defines the two tables the chat relay reads from as a single SQL string
constant. This module is imported by generate_mock_data.py to create the
database schema before populating it, and by the test-suite fixtures.

The relay itself only ever opens this database read-only; the tables are
owned and written by the booking back office.

Tables:
    properties   : Apartments listed on the site (price, size, capacity)
    bookings     : Reservations per property (date range + status)
"""

# Complete schema DDL as a single SQL script.
SCHEMA_SQL = """
-- ============================================================================
-- PROPERTIES: Apartments managed in hotel regime
-- ============================================================================

CREATE TABLE properties (
    id INTEGER PRIMARY KEY,
    name TEXT NOT NULL,
    property_code TEXT UNIQUE,
    location TEXT NOT NULL,
    area_sqm REAL NOT NULL,
    capacity INTEGER NOT NULL DEFAULT 2,
    bedrooms INTEGER NOT NULL DEFAULT 1,
    price_per_night REAL NOT NULL,
    booking_url TEXT,
    is_active INTEGER NOT NULL DEFAULT 1,
    display_order INTEGER NOT NULL DEFAULT 0,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

CREATE INDEX idx_properties_active ON properties(is_active, display_order);
CREATE INDEX idx_properties_location ON properties(location);

-- ============================================================================
-- BOOKINGS: Reservations, check_out is exclusive (departure day)
-- ============================================================================

CREATE TABLE bookings (
    id INTEGER PRIMARY KEY,
    property_id INTEGER NOT NULL,
    check_in DATE NOT NULL,
    check_out DATE NOT NULL,
    status TEXT NOT NULL DEFAULT 'pending'
        CHECK(status IN ('pending', 'confirmed', 'cancelled')),
    guest_name TEXT,
    source TEXT,           -- direct, booking, airbnb
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    FOREIGN KEY (property_id) REFERENCES properties(id) ON DELETE CASCADE
);

-- Overlap checks filter by status and date range
CREATE INDEX idx_bookings_range ON bookings(status, check_in, check_out);
CREATE INDEX idx_bookings_property ON bookings(property_id);
"""
