"""Domain models for map polygons and placed objects.

This module defines the geographic value type and the two aggregates the
application persists. Entities validate their own invariants on
construction, so an invalid polygon or coordinate never reaches storage.

Coordinates are stored as latitude/longitude pairs in WGS84 degrees. The
GeoJSON helpers convert to and from ``[longitude, latitude]`` positions,
which is the order MongoDB's ``2dsphere`` index expects.

Example:
    Building a polygon ring:
        >>> from map_server.db.models import Coordinate, Polygon
        >>> square = Polygon(
        ...     coordinates=[
        ...         Coordinate(0, 0),
        ...         Coordinate(0, 1),
        ...         Coordinate(1, 1),
        ...         Coordinate(1, 0),
        ...     ]
        ... )
        >>> square.coordinates[0] == square.coordinates[-1]
        True
        >>> square.id is None
        True

    Placing an object:
        >>> from map_server.db.models import MapObject
        >>> marker = MapObject(location=Coordinate(45.8, 15.9), object_type="Jeep")
"""

from __future__ import annotations

import dataclasses
import math
import numbers
from typing import TYPE_CHECKING

from map_server.core import errors

if TYPE_CHECKING:
    from collections.abc import Sequence

Position = list[float]

MIN_POLYGON_POINTS = 3


def _require_number(name: str, value: object) -> float:
    """Return ``value`` as float, rejecting non-numeric and bool inputs."""
    if isinstance(value, bool) or not isinstance(value, numbers.Real):
        raise errors.ValidationError(f"{name} must be a number")

    return float(value)


@dataclasses.dataclass(frozen=True)
class Coordinate:
    """Immutable latitude/longitude pair in WGS84 degrees.

    Attributes:
        latitude: Degrees north, within [-90, 90].
        longitude: Degrees east, within [-180, 180].

    Raises:
        ValidationError: If either value is not a number or is out of range.
    """

    latitude: float
    longitude: float

    def __post_init__(self) -> None:
        latitude = _require_number("Latitude", self.latitude)
        longitude = _require_number("Longitude", self.longitude)
        # NaN fails both comparisons and is rejected here too.
        if not -90.0 <= latitude <= 90.0:
            raise errors.ValidationError(
                f"Latitude must be between -90 and 90, got {self.latitude}"
            )
        if not -180.0 <= longitude <= 180.0:
            raise errors.ValidationError(
                f"Longitude must be between -180 and 180, got {self.longitude}"
            )
        object.__setattr__(self, "latitude", latitude)
        object.__setattr__(self, "longitude", longitude)

    def to_position(self) -> Position:
        """Return the GeoJSON position ``[longitude, latitude]``."""
        return [self.longitude, self.latitude]

    @classmethod
    def from_position(cls, position: Sequence[float]) -> Coordinate:
        """Build a coordinate from a GeoJSON ``[longitude, latitude]`` pair."""
        if len(position) < 2:
            raise errors.ValidationError(
                "GeoJSON position needs longitude and latitude"
            )
        return cls(latitude=position[1], longitude=position[0])


def close_ring(coordinates: Sequence[Coordinate]) -> tuple[Coordinate, ...]:
    """Return the ring with its first coordinate repeated at the end.

    Rings that are already closed are returned unchanged (as a new tuple).
    """
    ring = tuple(coordinates)
    if ring and ring[0] != ring[-1]:
        ring = (*ring, ring[0])
    return ring


@dataclasses.dataclass(frozen=True)
class Polygon:
    """A closed ring drawn on the map.

    The ring is normalized on construction: when the last coordinate differs
    from the first, the first one is appended. Polygons are immutable, so
    the ring checked here is the ring that gets stored. Topological validity
    (self-intersection, degenerate loops) is left to the storage engine's
    spatial index.

    Attributes:
        coordinates: Closed ring of coordinates, first equal to last.
        id: Store-assigned identifier, None until the polygon is persisted.

    Raises:
        ValidationError: If the ring has fewer than three distinct
            coordinates or contains something other than ``Coordinate``.
    """

    coordinates: tuple[Coordinate, ...]
    id: str | None = None

    def __post_init__(self) -> None:
        coordinates = tuple(self.coordinates)
        if not all(isinstance(c, Coordinate) for c in coordinates):
            raise errors.ValidationError(
                "Polygon coordinates must be Coordinate values"
            )
        if len(set(coordinates)) < MIN_POLYGON_POINTS:
            raise errors.ValidationError(
                f"Polygon must have at least {MIN_POLYGON_POINTS} coordinates"
            )
        object.__setattr__(self, "coordinates", close_ring(coordinates))


@dataclasses.dataclass(frozen=True)
class MapObject:
    """A typed point placed on the map.

    ``object_type`` is an opaque label owned by the client (e.g. "Marker",
    "Jeep"); no closed set of types is enforced here.

    Attributes:
        location: Where the object sits.
        object_type: Client-defined type label.
        id: Store-assigned identifier, None until the object is persisted.
    """

    location: Coordinate
    object_type: str
    id: str | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.location, Coordinate):
            raise errors.ValidationError("Location must be a Coordinate")
        if not isinstance(self.object_type, str):
            raise errors.ValidationError("ObjectType must be a string")
