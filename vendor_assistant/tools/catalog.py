"""
Vendor catalog: nearby vendors and a vendor's priced services.

In production, this would query the relational catalog (vendors with
geo coordinates, approved and active services grouped by category).
``InMemoryCatalog`` serves seeded data with the same row shapes so the
assistant can run offline.
"""

import logging
import math
from enum import IntEnum
from typing import Optional, Protocol, TypedDict

logger = logging.getLogger(__name__)

EARTH_RADIUS_KM = 6371.0
PERCENTAGE_DISCOUNT = 1


class ServiceFilter(IntEnum):
    """Dietary filter for service listings."""

    ALL = 0
    VEG = 1
    NON_VEG = 2
    EGG = 3


class _VendorRowRequired(TypedDict):
    id: int
    store_name: str


class VendorRow(_VendorRowRequired, total=False):
    """A nearby vendor as returned by the catalog."""

    distance_km: float
    vendor_rating: Optional[float]


class _ServiceRowRequired(TypedDict):
    id: int
    name: str
    price: float


class ServiceRow(_ServiceRowRequired, total=False):
    """A vendor's service. ``discount`` is always an absolute amount."""

    discount: float
    discount_type: str
    veg: bool
    category_id: int
    category_name: str


class Catalog(Protocol):
    """Read-only catalog queries. Either call may return an empty list."""

    async def nearby_vendors(
        self, latitude: float, longitude: float, vendor_type: str, limit: int
    ) -> list[VendorRow]: ...

    async def vendor_services(
        self,
        vendor_id: int,
        limit: int,
        page: int = 1,
        service_filter: ServiceFilter = ServiceFilter.ALL,
    ) -> list[ServiceRow]: ...


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance between two coordinates in kilometres."""
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)
    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    return 2 * EARTH_RADIUS_KM * math.asin(math.sqrt(a))


# Seed data. Vendors carry coordinates and status flags; services carry
# the raw discount column (percentage when discount_type == 1).
SAMPLE_VENDORS: list[dict] = [
    {"id": 101, "store_name": "Spice Route", "vendor_type": "Food",
     "latitude": 26.4499, "longitude": 80.3319, "vendor_rating": 4.5, "listed": True},
    {"id": 102, "store_name": "Pizza Planet", "vendor_type": "Food",
     "latitude": 26.4612, "longitude": 80.3498, "vendor_rating": 4.1, "listed": True},
    {"id": 103, "store_name": "Green Bowl", "vendor_type": "Food",
     "latitude": 26.4801, "longitude": 80.3102, "vendor_rating": None, "listed": True},
    {"id": 104, "store_name": "Closed Kitchen", "vendor_type": "Food",
     "latitude": 26.4500, "longitude": 80.3320, "vendor_rating": 3.0, "listed": False},
    {"id": 201, "store_name": "Quick Fix Salon", "vendor_type": "Salon",
     "latitude": 26.4510, "longitude": 80.3330, "vendor_rating": 4.8, "listed": True},
]

SAMPLE_CATEGORIES: dict[int, str] = {
    11: "Starters",
    12: "Main Course",
    13: "Breads",
    21: "Pizzas",
    22: "Sides",
    31: "Bowls",
}

SAMPLE_SERVICES: dict[int, list[dict]] = {
    101: [
        {"id": 5001, "name": "Paneer Tikka", "price": 240.0, "discount": 10, "discount_type": 1,
         "diet": ServiceFilter.VEG, "category_id": 11, "priority": 1},
        {"id": 5002, "name": "Chicken Tikka", "price": 280.0, "discount": None, "discount_type": None,
         "diet": ServiceFilter.NON_VEG, "category_id": 11, "priority": 2},
        {"id": 5003, "name": "Butter Chicken", "price": 320.0, "discount": 40, "discount_type": 0,
         "diet": ServiceFilter.NON_VEG, "category_id": 12, "priority": 1},
        {"id": 5004, "name": "Dal Makhani", "price": 220.0, "discount": None, "discount_type": None,
         "diet": ServiceFilter.VEG, "category_id": 12, "priority": 2},
        {"id": 5005, "name": "Egg Curry", "price": 180.0, "discount": None, "discount_type": None,
         "diet": ServiceFilter.EGG, "category_id": 12, "priority": 3},
        {"id": 5006, "name": "Butter Naan", "price": 50.0, "discount": None, "discount_type": None,
         "diet": ServiceFilter.VEG, "category_id": 13, "priority": 1},
        {"id": 5007, "name": "Garlic Naan", "price": 60.0, "discount": None, "discount_type": None,
         "diet": ServiceFilter.VEG, "category_id": 13, "priority": 2},
    ],
    102: [
        {"id": 6001, "name": "Margherita Pizza", "price": 299.0, "discount": 20, "discount_type": 1,
         "diet": ServiceFilter.VEG, "category_id": 21, "priority": 1},
        {"id": 6002, "name": "Farmhouse Pizza", "price": 399.0, "discount": None, "discount_type": None,
         "diet": ServiceFilter.VEG, "category_id": 21, "priority": 2},
        {"id": 6003, "name": "Chicken Pepperoni Pizza", "price": 449.0, "discount": None,
         "discount_type": None, "diet": ServiceFilter.NON_VEG, "category_id": 21, "priority": 3},
        {"id": 6004, "name": "Garlic Bread", "price": 129.0, "discount": None, "discount_type": None,
         "diet": ServiceFilter.VEG, "category_id": 22, "priority": 1},
    ],
    103: [
        {"id": 7001, "name": "Quinoa Bowl", "price": 260.0, "discount": 30, "discount_type": 0,
         "diet": ServiceFilter.VEG, "category_id": 31, "priority": 1},
    ],
}


def _to_service_row(raw: dict) -> ServiceRow:
    row: ServiceRow = {"id": raw["id"], "name": raw["name"], "price": float(raw["price"] or 0)}
    if raw.get("discount") is not None:
        discount = float(raw["discount"])
        if raw.get("discount_type") == PERCENTAGE_DISCOUNT:
            discount = row["price"] * (discount / 100)
        row["discount"] = round(discount, 2)
        row["discount_type"] = "percentage" if raw["discount_type"] == PERCENTAGE_DISCOUNT else "flat"
    if raw.get("diet") is not None:
        row["veg"] = raw["diet"] == ServiceFilter.VEG
    if raw.get("category_id") is not None:
        row["category_id"] = raw["category_id"]
        name = SAMPLE_CATEGORIES.get(raw["category_id"])
        if name:
            row["category_name"] = name
    return row


class InMemoryCatalog:
    """Catalog over seeded dictionaries. Pass custom data to override the samples."""

    def __init__(
        self,
        vendors: Optional[list[dict]] = None,
        services: Optional[dict[int, list[dict]]] = None,
    ) -> None:
        self._vendors = SAMPLE_VENDORS if vendors is None else vendors
        self._services = SAMPLE_SERVICES if services is None else services

    async def nearby_vendors(
        self, latitude: float, longitude: float, vendor_type: str, limit: int
    ) -> list[VendorRow]:
        """Listed vendors of ``vendor_type``, nearest first."""
        rows: list[VendorRow] = []
        for vendor in self._vendors:
            if vendor.get("vendor_type") != vendor_type or not vendor.get("listed", True):
                continue
            row: VendorRow = {
                "id": vendor["id"],
                "store_name": vendor["store_name"],
                "distance_km": haversine_km(
                    latitude, longitude, vendor["latitude"], vendor["longitude"]
                ),
            }
            if vendor.get("vendor_rating") is not None:
                row["vendor_rating"] = float(vendor["vendor_rating"])
            rows.append(row)

        rows.sort(key=lambda r: r["distance_km"])
        logger.info("Nearby vendors: %d of type '%s'", min(len(rows), limit), vendor_type)
        return rows[:limit]

    async def vendor_services(
        self,
        vendor_id: int,
        limit: int,
        page: int = 1,
        service_filter: ServiceFilter = ServiceFilter.ALL,
    ) -> list[ServiceRow]:
        """One page of a vendor's priced services, ordered by category then item priority."""
        page = max(1, page)
        offset = (page - 1) * limit
        raw = [
            s for s in self._services.get(vendor_id, [])
            if s.get("price") and s["price"] > 0
            and (service_filter == ServiceFilter.ALL or s.get("diet") == service_filter)
        ]
        raw.sort(key=lambda s: (s.get("category_id") or 0, s.get("priority", 0)))
        page_rows = [_to_service_row(s) for s in raw[offset:offset + limit]]
        logger.info(
            "Vendor %s services: page %d, %d of %d", vendor_id, page, len(page_rows), len(raw)
        )
        return page_rows
