"""
ApArt Hotel chat relay — mock listings database generation.

Generates a SQLite database with the apartments shown on the site and a few
months of bookings around today, so the chat tools have realistic
availability to report.

Usage:
    python scripts/generate_mock_data.py [--output PATH] [--seed N]
"""

import argparse
import datetime
import random
import sqlite3
import sys
from pathlib import Path

# The schema module lives in packages/core/src; make it importable when the
# script is run from a plain checkout.
_CORE_SRC = Path(__file__).resolve().parent.parent / "packages" / "core" / "src"
if str(_CORE_SRC) not in sys.path:
    sys.path.insert(0, str(_CORE_SRC))

from database.schema import SCHEMA_SQL  # type: ignore


BOOKING_DAYS_BACK = 30
BOOKING_DAYS_AHEAD = 120
TARGET_OCCUPANCY = 0.7
CANCELLED_FRACTION = 0.1
PENDING_FRACTION = 0.1

# (name, code, location, area_sqm, capacity, bedrooms, price_per_night, booking_url)
PROPERTY_DEFINITIONS = [
    ("RING ApArt Hotel - Spacious DeLuxe Apartment", "ring", "Strada Loichița Vasile",
     80, 4, 2, 85, "https://ring.pynbooking.direct/"),
    ("GREEN FOREST ApArt Hotel", "green-forest", "Denya Forest",
     58, 4, 2, 75, "https://denya-forest-5.pynbooking.direct/"),
    ("Fructus Plaza ULTRACENTRAL ApArt Hotel", "fructus-plaza", "Fructus Plaza",
     100, 6, 2, 95, "https://fructus-plaza.pynbooking.direct/"),
    ("FullView Studio DeLuxe", "fullview", "City of Mara",
     40, 2, 1, 65, "https://m9.pynbooking.direct/"),
    ("AVENUE of MARA ApArt Hotel", "avenue-mara", "Circumvalațiunii",
     40, 2, 1, 60, "https://apart-hotel.pynbooking.direct/"),
    ("HELIOS ApArt Hotel - DeLuxe Residence", "helios", "Strada Argeș",
     50, 2, 1, 55, "https://helios.pynbooking.direct/"),
    ("ATENEO - TREVI 2 ApArt Hotel", "ateneo-2", "Calea Torontalului",
     68, 4, 2, 80, "https://ateneo-2.pynbooking.direct/"),
    ("Sunset Da-Ra - Studio DeLuxe", "sunset-dara", "Circumvalațiunii",
     42, 2, 1, 58, "https://m11.pynbooking.direct/"),
    ("MARA Luxury Golden ApArt Hotel", "mara-golden", "Ultracentral",
     54, 4, 2, 90, "https://www.booking.com/hotel/ro/mara-gold-accent-deluxe-residence.html"),
    ("ATENEO ApArt Hotel - Studio DeLuxe", "ateneo-1", "Calea Torontalului",
     44, 2, 1, 68, "https://ateneo-1.pynbooking.direct/"),
    ("MODERN Studio ApArt Hotel", "modern", "Simion Bărnuțiu",
     36, 2, 1, 52, "https://modern.pynbooking.direct/"),
]

GUEST_NAMES = [
    "Andrei Popescu", "Maria Ionescu", "Elena Dumitru", "Mihai Stan",
    "Ioana Radu", "Cristian Matei", "Anna Schmidt", "Lukas Weber",
    "Sophie Martin", "David Kovacs", "Laura Rossi", "Tom Baker",
]

BOOKING_SOURCES = ["direct", "booking", "airbnb"]


# =============================================================================
# CLI Argument Parsing
# =============================================================================


def parse_args():
    """Parse command-line arguments for the mock data generator.

    Returns:
        argparse.Namespace with 'output' (Path) and 'seed' (int or None).
    """
    parser = argparse.ArgumentParser(
        description="Generate ApArt Hotel mock listings and bookings (SQLite).",
    )
    parser.add_argument(
        "--output",
        type=Path,
        default=Path("data/apart.db"),
        help="Output path for the SQLite database file (default: data/apart.db)",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=None,
        help="Random seed for reproducible output (default: random)",
    )
    return parser.parse_args()


# =============================================================================
# Data generation
# =============================================================================


def generate_properties(cursor):
    """Insert every listed apartment and return their ids in display order."""
    ids = []
    for order, definition in enumerate(PROPERTY_DEFINITIONS):
        name, code, location, area, capacity, bedrooms, price, url = definition
        cursor.execute(
            "INSERT INTO properties (name, property_code, location, area_sqm, "
            "capacity, bedrooms, price_per_night, booking_url, is_active, display_order) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?, 1, ?)",
            (name, code, location, area, capacity, bedrooms, price, url, order),
        )
        ids.append(cursor.lastrowid)
    return ids


def _booking_status():
    roll = random.random()
    if roll < CANCELLED_FRACTION:
        return "cancelled"
    if roll < CANCELLED_FRACTION + PENDING_FRACTION:
        return "pending"
    return "confirmed"


def generate_bookings(cursor, property_ids, today):
    """Fill each property's calendar with back-to-back stays and gaps.

    Stays never overlap within a property. Roughly ``TARGET_OCCUPANCY`` of
    the nights in the window are booked.
    """
    count = 0
    window_start = today - datetime.timedelta(days=BOOKING_DAYS_BACK)
    window_end = today + datetime.timedelta(days=BOOKING_DAYS_AHEAD)

    for property_id in property_ids:
        day = window_start
        while day < window_end:
            if random.random() > TARGET_OCCUPANCY:
                day += datetime.timedelta(days=random.randint(1, 3))
                continue
            nights = random.choice([1, 2, 2, 3, 3, 4, 5, 7])
            check_out = min(day + datetime.timedelta(days=nights), window_end)
            cursor.execute(
                "INSERT INTO bookings (property_id, check_in, check_out, status, "
                "guest_name, source) VALUES (?, ?, ?, ?, ?, ?)",
                (
                    property_id,
                    day.isoformat(),
                    check_out.isoformat(),
                    _booking_status(),
                    random.choice(GUEST_NAMES),
                    random.choice(BOOKING_SOURCES),
                ),
            )
            count += 1
            day = check_out
    return count


def print_summary(output_path, seed, counts):
    """Print the generation summary."""
    print(f"Database: {output_path}")
    print(f"Seed: {seed}")
    print(f"  properties: {counts['properties']}")
    print(f"  bookings:   {counts['bookings']}")


def main():
    """Create DB from schema, then properties → bookings; print summary."""
    args = parse_args()
    output_path = args.output

    # Without a seed, pick one and print it so the run can be reproduced.
    if args.seed is not None:
        seed = args.seed
    else:
        seed = random.randint(0, 2**31 - 1)

    random.seed(seed)

    try:
        output_path.parent.mkdir(parents=True, exist_ok=True)
        if output_path.exists():
            output_path.unlink()
    except PermissionError:
        print(
            f"Error: Cannot write to {output_path} — Permission denied",
            file=sys.stderr,
        )
        sys.exit(1)
    except OSError as e:
        print(f"Error: Cannot prepare output path {output_path} — {e}", file=sys.stderr)
        sys.exit(1)

    conn = None
    try:
        conn = sqlite3.connect(str(output_path))
        cursor = conn.cursor()
        cursor.execute("PRAGMA foreign_keys = ON")
        cursor.executescript(SCHEMA_SQL)

        cursor.execute("BEGIN TRANSACTION")
        property_ids = generate_properties(cursor)
        booking_count = generate_bookings(cursor, property_ids, datetime.date.today())
        conn.commit()

        print_summary(
            output_path,
            seed,
            {"properties": len(property_ids), "bookings": booking_count},
        )

    except sqlite3.Error as e:
        print(f"Error: Database operation failed — {e}", file=sys.stderr)
        if conn:
            conn.close()
            conn = None
        if output_path.exists():
            output_path.unlink()
        sys.exit(1)

    finally:
        if conn:
            conn.close()


if __name__ == "__main__":
    main()
