"""
ownerrez_cache/core/resources.py
Static descriptors for the cached OwnerRez collections.

  properties → GET /properties
  bookings   → GET /bookings?property_ids=…&since_utc=…
  listings   → GET /listings?include_amenities=true&… (nested sub-resources)
  guests     → GET /guests?created_since_utc=…   (items unwrapped for id lookup)
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping

from ownerrez_cache.core.config import Settings

SHAPE_BODY  = "body"    # cache the parsed response body verbatim
SHAPE_ITEMS = "items"   # cache the "items" array of the paged envelope

PROPERTIES = "properties"
BOOKINGS   = "bookings"
LISTINGS   = "listings"
GUESTS     = "guests"

RESOURCE_NAMES = (PROPERTIES, BOOKINGS, LISTINGS, GUESTS)


@dataclass(frozen=True)
class ResourceDescriptor:
    name: str
    path: str
    params: Mapping[str, str] = field(default_factory=dict)
    result_shape: str = SHAPE_BODY

    def __post_init__(self):
        if self.result_shape not in (SHAPE_BODY, SHAPE_ITEMS):
            raise ValueError(f"unknown result shape {self.result_shape!r}")
        # Read-only view; params never change after startup
        object.__setattr__(self, "params", MappingProxyType(dict(self.params)))


def build_descriptors(settings: Settings) -> dict[str, ResourceDescriptor]:
    bookings_params = {"since_utc": settings.bookings_since_utc}
    if settings.bookings_property_ids:
        bookings_params["property_ids"] = ",".join(settings.bookings_property_ids)

    descriptors = [
        ResourceDescriptor(PROPERTIES, "/properties"),
        ResourceDescriptor(BOOKINGS, "/bookings", bookings_params),
        ResourceDescriptor(
            LISTINGS,
            "/listings",
            {
                "include_amenities":    "true",
                "include_rooms":        "true",
                "include_bathrooms":    "true",
                "include_descriptions": "true",
            },
        ),
        ResourceDescriptor(
            GUESTS,
            "/guests",
            {"created_since_utc": settings.guests_created_since_utc},
            result_shape=SHAPE_ITEMS,
        ),
    ]
    return {d.name: d for d in descriptors}
