"""Error taxonomy and storage-failure classification.

Every failure the application reports belongs to one of a small set of
kinds, each an exception class carrying the HTTP status and title it is
rendered with:

    - EntityNotFoundError: lookup or delete target is absent (404).
    - ValidationError: malformed input shape or range (400).
    - InvalidGeometryError: the storage engine rejected a geometry as
      topologically invalid (400, fixed friendly message).
    - DatabaseError: any other storage-engine failure (500).

Anything else is treated as an unknown server error by the translator in
``map_server.api.problems``.

MongoDB does not raise a dedicated exception type for geometries its
``2dsphere`` index cannot represent. Detection relies on the vendor error
code and on diagnostic substrings in the error message, kept as data in
``GeometrySignature`` so a different engine only needs a different table.

Example:
    Classifying a raw write failure:
        >>> from map_server.core import errors
        >>> errors.classify_write_error(16755, "Can't extract geo keys")
        <class 'map_server.core.errors.InvalidGeometryError'>
        >>> errors.classify_write_error(11000, "E11000 duplicate key") is None
        True
"""

from __future__ import annotations

import dataclasses
from collections.abc import Iterable, Mapping
from typing import Any

import pymongo.errors

SINGLE_GEOMETRY_MESSAGE = (
    "The provided geometry is invalid. Polygon edges must not cross each "
    "other (self-intersection)."
)
BATCH_GEOMETRY_MESSAGE = (
    "One or more geometries are invalid. Polygon edges must not cross each "
    "other (self-intersection)."
)
DATABASE_ERROR_MESSAGE = "A database error occurred."
UNKNOWN_ERROR_MESSAGE = "An unexpected error occurred."


class MapServerError(Exception):
    """Base class for every error kind the API renders."""

    status_code: int = 500
    title: str = "Server error"


class EntityNotFoundError(MapServerError):
    """Raised when an entity with the requested id does not exist."""

    status_code = 404
    title = "Not found"

    def __init__(self, entity_type: str, entity_id: str) -> None:
        super().__init__(f"{entity_type} with ID '{entity_id}' was not found")
        self.entity_type = entity_type
        self.entity_id = entity_id


class ValidationError(MapServerError):
    """Raised when input fails shape or range validation."""

    status_code = 400
    title = "Validation error"


class InvalidGeometryError(MapServerError):
    """Raised when the storage engine rejects a geometry.

    Not a ``ValidationError``: input validation happens before storage and
    this kind is only produced by classifying a rejected write. The message
    is always one of the fixed friendly strings, never the engine's own
    diagnostic text.
    """

    status_code = 400
    title = "Invalid geometry"

    def __init__(self, *, batch: bool = False) -> None:
        super().__init__(BATCH_GEOMETRY_MESSAGE if batch else SINGLE_GEOMETRY_MESSAGE)
        self.batch = batch


class DatabaseError(MapServerError):
    """Raised for storage failures that are not geometry rejections."""

    status_code = 500
    title = "Database error"
    public_message = DATABASE_ERROR_MESSAGE


@dataclasses.dataclass(frozen=True)
class GeometrySignature:
    """Vendor fingerprint of a geometry rejection.

    Attributes:
        codes: Server error codes that always mean an invalid geometry.
        substrings: Diagnostic fragments matched case-insensitively against
            the error message. Either signal alone is sufficient.
    """

    codes: frozenset[int]
    substrings: tuple[str, ...]

    def matches(self, code: int | None, message: str | None) -> bool:
        if code is not None and code in self.codes:
            return True
        lowered = (message or "").lower()
        return any(fragment.lower() in lowered for fragment in self.substrings)


MONGODB_GEOMETRY_SIGNATURE = GeometrySignature(
    codes=frozenset({16755}),
    substrings=("Can't extract geo keys", "Loop is not valid"),
)


def classify_write_error(
    code: int | None,
    message: str | None,
    signature: GeometrySignature = MONGODB_GEOMETRY_SIGNATURE,
) -> type[MapServerError] | None:
    """Map one raw write failure to an error kind.

    Args:
        code: Vendor error code, if the engine reported one.
        message: Vendor diagnostic message.
        signature: Geometry fingerprint to match against.

    Returns:
        InvalidGeometryError when the failure matches the signature,
        None when it carries no known meaning.
    """
    if signature.matches(code, message):
        return InvalidGeometryError
    return None


def _bulk_write_errors(details: Mapping[str, Any] | None) -> Iterable[Mapping[str, Any]]:
    if not details:
        return ()
    return details.get("writeErrors") or ()


def classify_storage_error(
    exc: pymongo.errors.PyMongoError,
    signature: GeometrySignature = MONGODB_GEOMETRY_SIGNATURE,
) -> MapServerError:
    """Convert a MongoDB driver failure into exactly one error kind.

    Bulk failures are reported as a single ``InvalidGeometryError`` when any
    of their write errors matches the geometry signature, without trying to
    tell which subset of the batch was applied.

    Args:
        exc: Exception raised by pymongo.
        signature: Geometry fingerprint to match against.

    Returns:
        An ``InvalidGeometryError`` or ``DatabaseError`` instance. The
        caller is expected to raise it ``from exc``.
    """
    if isinstance(exc, pymongo.errors.BulkWriteError):
        for write_error in _bulk_write_errors(exc.details):
            kind = classify_write_error(
                write_error.get("code"), write_error.get("errmsg"), signature
            )
            if kind is InvalidGeometryError:
                return InvalidGeometryError(batch=True)
    elif isinstance(exc, pymongo.errors.OperationFailure):
        details = exc.details or {}
        message = details.get("errmsg") or str(exc)
        if classify_write_error(exc.code, message, signature) is InvalidGeometryError:
            return InvalidGeometryError()

    return DatabaseError(str(exc))
