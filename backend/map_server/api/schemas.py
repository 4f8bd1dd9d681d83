"""Request and response models for the map API.

These pydantic models describe the JSON shapes exchanged with the map
client. They only handle payload structure; range checks and ring
normalization live in the domain models, so converting a request into an
entity (``to_domain``) is where a ``ValidationError`` can surface.

Example:
    Build a polygon from a request body:
        >>> body = CreatePolygonRequest.model_validate(
        ...     {"coordinates": [
        ...         {"latitude": 0, "longitude": 0},
        ...         {"latitude": 0, "longitude": 1},
        ...         {"latitude": 1, "longitude": 1},
        ...     ]}
        ... )
        >>> polygon = body.to_domain()
"""

from __future__ import annotations

import pydantic

from map_server.db import models as db_models


class CoordinateModel(pydantic.BaseModel):
    """Latitude/longitude pair as JSON numbers; bools and strings are refused."""

    latitude: pydantic.StrictFloat
    longitude: pydantic.StrictFloat

    def to_domain(self) -> db_models.Coordinate:
        return db_models.Coordinate(
            latitude=self.latitude,
            longitude=self.longitude,
        )

    @classmethod
    def from_domain(cls, coordinate: db_models.Coordinate) -> CoordinateModel:
        return cls(latitude=coordinate.latitude, longitude=coordinate.longitude)


class CreatePolygonRequest(pydantic.BaseModel):
    """Body of ``POST /api/polygons``."""

    coordinates: list[CoordinateModel]

    def to_domain(self) -> db_models.Polygon:
        return db_models.Polygon(
            coordinates=tuple(c.to_domain() for c in self.coordinates),
        )


class PolygonResponse(pydantic.BaseModel):
    id: str | None
    coordinates: list[CoordinateModel]

    @classmethod
    def from_domain(cls, polygon: db_models.Polygon) -> PolygonResponse:
        return cls(
            id=polygon.id,
            coordinates=[
                CoordinateModel.from_domain(c) for c in polygon.coordinates
            ],
        )


class CreateMapObjectRequest(pydantic.BaseModel):
    """Body of ``POST /api/objects`` and one item of a batch request.

    ``objectType`` is a free-form label; it only has to be non-blank.
    """

    model_config = pydantic.ConfigDict(populate_by_name=True)

    location: CoordinateModel
    object_type: str = pydantic.Field(alias="objectType")

    @pydantic.field_validator("object_type")
    @classmethod
    def _object_type_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("ObjectType is required")
        return value

    def to_domain(self) -> db_models.MapObject:
        return db_models.MapObject(
            location=self.location.to_domain(),
            object_type=self.object_type,
        )


class BatchCreateMapObjectsRequest(pydantic.BaseModel):
    """Body of ``POST /api/objects/batch``."""

    objects: list[CreateMapObjectRequest] = []


class MapObjectResponse(pydantic.BaseModel):
    model_config = pydantic.ConfigDict(populate_by_name=True)

    id: str | None
    location: CoordinateModel
    object_type: str = pydantic.Field(serialization_alias="objectType")

    @classmethod
    def from_domain(cls, map_object: db_models.MapObject) -> MapObjectResponse:
        return cls(
            id=map_object.id,
            location=CoordinateModel.from_domain(map_object.location),
            object_type=map_object.object_type,
        )
