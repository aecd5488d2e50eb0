"""Read queries over properties and bookings used by the chat tools."""

import sqlite3
from datetime import date

from database.QueryExecutor import QueryExecutor

# Used when no active property in the requested area has a size on record.
DEFAULT_PRICE_PER_SQM = 1.4

_PROPERTY_COLUMNS = (
    "id, name, property_code, location, area_sqm, capacity, bedrooms, "
    "price_per_night, booking_url"
)


class PropertyRepository:
    """Bounded, parameterized lookups against the listings tables."""

    def __init__(self, executor: QueryExecutor) -> None:
        self._executor = executor

    def active_properties(
        self,
        location: str | None = None,
        name: str | None = None,
        min_capacity: int = 1,
        limit: int = 20,
    ) -> list[sqlite3.Row]:
        """Return active properties, optionally filtered by location/name.

        Filters are case-insensitive substring matches.
        """
        query = (
            f"SELECT {_PROPERTY_COLUMNS} FROM properties "
            "WHERE is_active = 1 AND capacity >= ?"
        )
        params: list[object] = [min_capacity]
        if location:
            query += " AND location LIKE ?"
            params.append(f"%{location}%")
        if name:
            query += " AND (name LIKE ? OR property_code LIKE ?)"
            params.extend([f"%{name}%", f"%{name}%"])
        query += " ORDER BY display_order, id LIMIT ?"
        params.append(limit)
        return self._executor.fetch_all(query, params)

    def booked_property_ids(self, check_in: date, check_out: date) -> set[int]:
        """Return ids of properties with a confirmed booking overlapping the stay.

        ``check_out`` is the departure day, so a booking ending on the
        requested check-in day does not overlap.
        """
        rows = self._executor.fetch_all(
            "SELECT DISTINCT property_id FROM bookings "
            "WHERE status = 'confirmed' AND check_in < ? AND check_out > ?",
            (check_out.isoformat(), check_in.isoformat()),
        )
        return {row["property_id"] for row in rows}

    def price_per_sqm(self, location: str | None = None) -> float:
        """Average nightly price per square metre across active properties."""
        query = (
            "SELECT AVG(price_per_night / area_sqm) AS rate FROM properties "
            "WHERE is_active = 1 AND area_sqm > 0"
        )
        params: list[object] = []
        if location:
            query += " AND location LIKE ?"
            params.append(f"%{location}%")
        row = self._executor.fetch_one(query, params)
        if row is None or row["rate"] is None:
            return DEFAULT_PRICE_PER_SQM
        return float(row["rate"])
