"""Storage handle and repositories for polygons and map objects."""

from __future__ import annotations

import contextlib
import dataclasses
import logging
import uuid
from typing import TYPE_CHECKING, Any, Protocol

import bson
import pymongo
import pymongo.errors

from map_server.core import errors
from map_server.db import models as db_models

if TYPE_CHECKING:
    from collections.abc import Iterator, Sequence

    from pymongo.collection import Collection

    from map_server.core import config

logger = logging.getLogger(__name__)

Document = dict[str, Any]


class PolygonRepositoryProtocol(Protocol):
    """Protocol interface for storing and retrieving polygons.

    Polygons are append/delete-only: there is no update operation.
    """

    def all(self) -> list[db_models.Polygon]: ...

    def get(self, polygon_id: str) -> db_models.Polygon | None: ...

    def create(self, polygon: db_models.Polygon) -> db_models.Polygon: ...

    def delete(self, polygon_id: str) -> bool: ...

    def delete_all(self) -> None: ...


class MapObjectRepositoryProtocol(Protocol):
    """Protocol interface for storing and retrieving map objects.

    Adds batch creation and an unconditional wipe on top of the polygon
    operations. Map objects have no update operation either.
    """

    def all(self) -> list[db_models.MapObject]: ...

    def get(self, object_id: str) -> db_models.MapObject | None: ...

    def create(self, map_object: db_models.MapObject) -> db_models.MapObject: ...

    def create_many(
        self,
        map_objects: Sequence[db_models.MapObject],
    ) -> list[db_models.MapObject]: ...

    def delete(self, object_id: str) -> bool: ...

    def delete_all(self) -> None: ...


def _require_unassigned(entity: db_models.Polygon | db_models.MapObject) -> None:
    """Reject entities that already carry a store-assigned identity."""
    if entity.id is not None:
        raise errors.ValidationError(
            f"{type(entity).__name__} already has an ID and cannot be created again"
        )


class InMemoryPolygonRepository(PolygonRepositoryProtocol):
    """Simple in-memory polygon store for tests and local development.

    Identifiers are random hex strings. Geometry is not checked beyond the
    entity's own invariants, since no spatial index is involved.
    """

    def __init__(self) -> None:
        """Initialize an empty in-memory repository."""
        self._store: dict[str, db_models.Polygon] = {}

    def all(self) -> list[db_models.Polygon]:
        """Get all stored polygons.

        Returns:
            Polygons in insertion order.
        """
        return list(self._store.values())

    def get(self, polygon_id: str) -> db_models.Polygon | None:
        """Retrieve a polygon by ID.

        Args:
            polygon_id: Identifier returned by ``create``.

        Returns:
            Polygon if found, None otherwise.
        """
        return self._store.get(polygon_id)

    def create(self, polygon: db_models.Polygon) -> db_models.Polygon:
        """Store a new polygon under a fresh identifier.

        Args:
            polygon: Unpersisted polygon (``id`` is None).

        Returns:
            A copy of the polygon carrying its assigned id.

        Raises:
            ValidationError: If the polygon already has an id.
        """
        _require_unassigned(polygon)
        created = dataclasses.replace(polygon, id=uuid.uuid4().hex)
        self._store[created.id] = created  # type: ignore[index]
        return created

    def delete(self, polygon_id: str) -> bool:
        """Remove a polygon.

        Args:
            polygon_id: Identifier of the polygon to remove.

        Returns:
            True if a polygon was removed, False if none matched.
        """
        return self._store.pop(polygon_id, None) is not None

    def delete_all(self) -> None:
        """Remove every stored polygon."""
        self._store.clear()


class InMemoryMapObjectRepository(MapObjectRepositoryProtocol):
    """Simple in-memory map object store for tests and local development."""

    def __init__(self) -> None:
        """Initialize an empty in-memory repository."""
        self._store: dict[str, db_models.MapObject] = {}

    def all(self) -> list[db_models.MapObject]:
        """Get all stored map objects.

        Returns:
            Map objects in insertion order.
        """
        return list(self._store.values())

    def get(self, object_id: str) -> db_models.MapObject | None:
        """Retrieve a map object by ID.

        Args:
            object_id: Identifier returned by ``create``.

        Returns:
            MapObject if found, None otherwise.
        """
        return self._store.get(object_id)

    def create(self, map_object: db_models.MapObject) -> db_models.MapObject:
        """Store a new map object under a fresh identifier.

        Args:
            map_object: Unpersisted map object (``id`` is None).

        Returns:
            A copy of the object carrying its assigned id.

        Raises:
            ValidationError: If the object already has an id.
        """
        _require_unassigned(map_object)
        created = dataclasses.replace(map_object, id=uuid.uuid4().hex)
        self._store[created.id] = created  # type: ignore[index]
        return created

    def create_many(
        self,
        map_objects: Sequence[db_models.MapObject],
    ) -> list[db_models.MapObject]:
        """Store several map objects, checking all of them before writing.

        Args:
            map_objects: Unpersisted objects, in the order to return them.

        Returns:
            The objects with their assigned ids, in input order.

        Raises:
            ValidationError: If any object already has an id. Nothing is
                stored in that case.
        """
        for map_object in map_objects:
            _require_unassigned(map_object)
        return [self.create(map_object) for map_object in map_objects]

    def delete(self, object_id: str) -> bool:
        """Remove a map object.

        Args:
            object_id: Identifier of the object to remove.

        Returns:
            True if an object was removed, False if none matched.
        """
        return self._store.pop(object_id, None) is not None

    def delete_all(self) -> None:
        """Remove every stored map object."""
        self._store.clear()


class MongoStore:
    """Process-wide MongoDB handle owning the map collections.

    Constructed once at startup and shared by every repository. The
    ``pymongo`` client pools connections and is safe for concurrent use, so
    no per-request setup happens. Construction provisions a ``2dsphere``
    index on each collection's geometry field; ``create_index`` is a no-op
    when the index already exists. Any provisioning failure propagates out
    of the constructor so the application refuses to start.

    The ``2dsphere`` index also makes MongoDB reject self-intersecting or
    degenerate rings at write time, which is the only topological geometry
    validation the application performs.

    Attributes:
        client: Underlying MongoClient.
        polygons: Collection of polygon documents.
        objects: Collection of map object documents.
    """

    def __init__(
        self,
        settings: config.Settings,
        client: pymongo.MongoClient[Document] | None = None,
    ) -> None:
        """Connect to MongoDB and provision the spatial indexes.

        Args:
            settings: Application settings with connection and collection
                names.
            client: Pre-built client, mainly for tests. A new client is
                created from ``settings.mongodb_url`` when omitted.

        Raises:
            pymongo.errors.PyMongoError: If the spatial indexes cannot be
                created.
        """
        if client is None:
            client = pymongo.MongoClient(
                settings.mongodb_url,
                serverSelectionTimeoutMS=settings.server_selection_timeout_ms,
            )
        self.client = client
        database = self.client[settings.database_name]
        self.polygons: Collection[Document] = database[settings.polygons_collection]
        self.objects: Collection[Document] = database[settings.objects_collection]
        self._ensure_indexes()

    def _ensure_indexes(self) -> None:
        try:
            self.polygons.create_index([("geometry", pymongo.GEOSPHERE)])
            self.objects.create_index([("location", pymongo.GEOSPHERE)])
        except pymongo.errors.PyMongoError:
            logger.exception("Failed to provision 2dsphere indexes")
            raise
        logger.info(
            "2dsphere indexes ready on %s and %s",
            self.polygons.full_name,
            self.objects.full_name,
        )

    def close(self) -> None:
        """Release pooled connections at shutdown."""
        self.client.close()


@contextlib.contextmanager
def _storage_errors() -> Iterator[None]:
    """Convert driver failures raised inside the block to error kinds."""
    try:
        yield
    except pymongo.errors.PyMongoError as exc:
        raise errors.classify_storage_error(exc) from exc


def _object_id(entity_id: str) -> bson.ObjectId | None:
    """Parse an id, returning None for strings that are not ObjectIds."""
    if not bson.ObjectId.is_valid(entity_id):
        return None
    return bson.ObjectId(entity_id)


def polygon_to_document(polygon: db_models.Polygon) -> Document:
    """Encode a polygon as a GeoJSON document (without ``_id``)."""
    return {
        "geometry": {
            "type": "Polygon",
            "coordinates": [[c.to_position() for c in polygon.coordinates]],
        }
    }


def polygon_from_document(document: Document) -> db_models.Polygon:
    """Decode a stored polygon document."""
    exterior = document["geometry"]["coordinates"][0]
    return db_models.Polygon(
        coordinates=tuple(db_models.Coordinate.from_position(p) for p in exterior),
        id=str(document["_id"]),
    )


def map_object_to_document(map_object: db_models.MapObject) -> Document:
    """Encode a map object as a GeoJSON point document (without ``_id``)."""
    return {
        "location": {
            "type": "Point",
            "coordinates": map_object.location.to_position(),
        },
        "objectType": map_object.object_type,
    }


def map_object_from_document(document: Document) -> db_models.MapObject:
    """Decode a stored map object document."""
    return db_models.MapObject(
        location=db_models.Coordinate.from_position(
            document["location"]["coordinates"]
        ),
        object_type=document.get("objectType", ""),
        id=str(document["_id"]),
    )


class MongoPolygonRepository(PolygonRepositoryProtocol):
    """MongoDB-backed polygon repository.

    Results come back in the collection's natural order.
    """

    def __init__(self, store: MongoStore) -> None:
        """Bind the repository to the shared store's polygon collection."""
        self._collection = store.polygons

    def all(self) -> list[db_models.Polygon]:
        """Get all stored polygons.

        Returns:
            Every polygon in the collection.

        Raises:
            DatabaseError: If the query fails.
        """
        with _storage_errors():
            return [polygon_from_document(d) for d in self._collection.find({})]

    def get(self, polygon_id: str) -> db_models.Polygon | None:
        """Retrieve a polygon by ID.

        Args:
            polygon_id: Hex ObjectId string. Anything else is treated as
                absent without querying MongoDB.

        Returns:
            Polygon if found, None otherwise.

        Raises:
            DatabaseError: If the query fails.
        """
        object_id = _object_id(polygon_id)
        if object_id is None:
            return None
        with _storage_errors():
            document = self._collection.find_one({"_id": object_id})
        return None if document is None else polygon_from_document(document)

    def create(self, polygon: db_models.Polygon) -> db_models.Polygon:
        """Insert a polygon as a GeoJSON document.

        Args:
            polygon: Unpersisted polygon (``id`` is None).

        Returns:
            A copy of the polygon carrying the ObjectId MongoDB assigned.

        Raises:
            ValidationError: If the polygon already has an id.
            InvalidGeometryError: If the ``2dsphere`` index rejects the ring.
            DatabaseError: For any other write failure.
        """
        _require_unassigned(polygon)
        with _storage_errors():
            result = self._collection.insert_one(polygon_to_document(polygon))
        return dataclasses.replace(polygon, id=str(result.inserted_id))

    def delete(self, polygon_id: str) -> bool:
        """Remove a polygon.

        Args:
            polygon_id: Hex ObjectId string of the polygon to remove.

        Returns:
            True if a document was deleted, False if none matched.

        Raises:
            DatabaseError: If the delete fails.
        """
        object_id = _object_id(polygon_id)
        if object_id is None:
            return False
        with _storage_errors():
            result = self._collection.delete_one({"_id": object_id})
        return result.deleted_count > 0

    def delete_all(self) -> None:
        """Remove every polygon document."""
        with _storage_errors():
            self._collection.delete_many({})


class MongoMapObjectRepository(MapObjectRepositoryProtocol):
    """MongoDB-backed map object repository."""

    def __init__(self, store: MongoStore) -> None:
        """Bind the repository to the shared store's object collection."""
        self._collection = store.objects

    def all(self) -> list[db_models.MapObject]:
        """Get all stored map objects.

        Raises:
            DatabaseError: If the query fails.
        """
        with _storage_errors():
            return [map_object_from_document(d) for d in self._collection.find({})]

    def get(self, object_id: str) -> db_models.MapObject | None:
        """Retrieve a map object by ID.

        Args:
            object_id: Hex ObjectId string. Anything else is treated as
                absent without querying MongoDB.

        Returns:
            MapObject if found, None otherwise.
        """
        parsed_id = _object_id(object_id)
        if parsed_id is None:
            return None
        with _storage_errors():
            document = self._collection.find_one({"_id": parsed_id})
        return None if document is None else map_object_from_document(document)

    def create(self, map_object: db_models.MapObject) -> db_models.MapObject:
        """Insert a map object as a GeoJSON point document.

        Args:
            map_object: Unpersisted map object (``id`` is None).

        Returns:
            A copy of the object carrying the ObjectId MongoDB assigned.

        Raises:
            ValidationError: If the object already has an id.
            InvalidGeometryError: If the ``2dsphere`` index rejects the point.
            DatabaseError: For any other write failure.
        """
        _require_unassigned(map_object)
        with _storage_errors():
            result = self._collection.insert_one(map_object_to_document(map_object))
        return dataclasses.replace(map_object, id=str(result.inserted_id))

    def create_many(
        self,
        map_objects: Sequence[db_models.MapObject],
    ) -> list[db_models.MapObject]:
        """Insert all objects in one batch write.

        The batch is not atomic: if MongoDB fails part way, the error is
        reported once without identifying which documents were written.

        Args:
            map_objects: Unpersisted objects, in the order to return them.

        Returns:
            The objects with their assigned ids, in input order.
        """
        if not map_objects:
            return []
        for map_object in map_objects:
            _require_unassigned(map_object)
        documents = [map_object_to_document(o) for o in map_objects]
        with _storage_errors():
            result = self._collection.insert_many(documents)
        return [
            dataclasses.replace(map_object, id=str(inserted_id))
            for map_object, inserted_id in zip(
                map_objects, result.inserted_ids, strict=True
            )
        ]

    def delete(self, object_id: str) -> bool:
        """Remove a map object.

        Args:
            object_id: Hex ObjectId string of the object to remove.

        Returns:
            True if a document was deleted, False if none matched.
        """
        parsed_id = _object_id(object_id)
        if parsed_id is None:
            return False
        with _storage_errors():
            result = self._collection.delete_one({"_id": parsed_id})
        return result.deleted_count > 0

    def delete_all(self) -> None:
        """Remove every map object document."""
        with _storage_errors():
            self._collection.delete_many({})


def get_polygon_repository(store: MongoStore) -> PolygonRepositoryProtocol:
    """Factory function to create the production polygon repository."""
    return MongoPolygonRepository(store)


def get_map_object_repository(store: MongoStore) -> MapObjectRepositoryProtocol:
    """Factory function to create the production map object repository."""
    return MongoMapObjectRepository(store)
