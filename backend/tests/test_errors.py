"""Tests for the error taxonomy and storage-error classification.

Coverage:
    - classify_write_error matching on vendor code or message fragment,
    - classify_storage_error for single writes, bulk writes and
      non-geometry failures,
    - swapping the signature table for another engine,
    - EntityNotFoundError message format.

See Also:
    - backend/map_server/core/errors.py for the implementation.
"""

from __future__ import annotations

import pytest
from pymongo import errors as pymongo_errors

from map_server.core import errors

GEO_KEYS_MESSAGE = (
    "Can't extract geo keys: { _id: ObjectId('665f...'), geometry: { ... } } "
    "Loop is not valid: Edges 0 and 2 cross."
)


@pytest.mark.parametrize(
    ("code", "message"),
    [
        (16755, "anything"),
        (None, "Can't extract geo keys: bad loop"),
        (2, "loop is not valid: duplicate vertices"),
        (None, "CAN'T EXTRACT GEO KEYS"),
    ],
)
def test_classify_write_error_geometry(code: int | None, message: str) -> None:
    """Test that either the code or a fragment identifies a bad geometry."""
    assert errors.classify_write_error(code, message) is errors.InvalidGeometryError


@pytest.mark.parametrize(
    ("code", "message"),
    [
        (11000, "E11000 duplicate key error"),
        (None, None),
        (None, ""),
    ],
)
def test_classify_write_error_unknown(code: int | None, message: str | None) -> None:
    """Test that unrelated failures are not classified as geometry errors."""
    assert errors.classify_write_error(code, message) is None


def test_classify_write_error_custom_signature() -> None:
    """Test that another engine's fingerprint can be plugged in."""
    signature = errors.GeometrySignature(
        codes=frozenset({7}),
        substrings=("ring self-intersection",),
    )
    assert errors.classify_write_error(7, "", signature) is errors.InvalidGeometryError
    assert (
        errors.classify_write_error(None, "Ring Self-Intersection at 1 2", signature)
        is errors.InvalidGeometryError
    )
    assert errors.classify_write_error(16755, "", signature) is None


def test_classify_single_write_error_by_code() -> None:
    """Test that a WriteError with the geometry code becomes InvalidGeometryError."""
    exc = pymongo_errors.WriteError(
        "raw engine text", 16755, {"code": 16755, "errmsg": "raw engine text"}
    )
    result = errors.classify_storage_error(exc)
    assert isinstance(result, errors.InvalidGeometryError)
    assert str(result) == errors.SINGLE_GEOMETRY_MESSAGE
    assert "raw engine text" not in str(result)


def test_classify_single_write_error_by_message() -> None:
    """Test that the diagnostic text alone is enough."""
    exc = pymongo_errors.WriteError(GEO_KEYS_MESSAGE, 2, {"errmsg": GEO_KEYS_MESSAGE})
    result = errors.classify_storage_error(exc)
    assert isinstance(result, errors.InvalidGeometryError)
    assert result.batch is False


def test_classify_bulk_write_error_any_item() -> None:
    """Test that one bad geometry makes the whole batch invalid."""
    exc = pymongo_errors.BulkWriteError(
        {
            "writeErrors": [
                {"index": 0, "code": 11000, "errmsg": "E11000 duplicate key"},
                {"index": 2, "code": 16755, "errmsg": GEO_KEYS_MESSAGE},
            ],
            "nInserted": 1,
        }
    )
    result = errors.classify_storage_error(exc)
    assert isinstance(result, errors.InvalidGeometryError)
    assert result.batch is True
    assert str(result) == errors.BATCH_GEOMETRY_MESSAGE


def test_classify_bulk_write_error_without_geometry() -> None:
    """Test that a bulk failure without geometry errors is a DatabaseError."""
    exc = pymongo_errors.BulkWriteError(
        {
            "writeErrors": [
                {"index": 0, "code": 11000, "errmsg": "E11000 duplicate key"},
            ],
        }
    )
    result = errors.classify_storage_error(exc)
    assert type(result) is errors.DatabaseError


def test_classify_connection_failure() -> None:
    """Test that connectivity failures are DatabaseErrors keeping raw text."""
    exc = pymongo_errors.ServerSelectionTimeoutError("localhost:27017: refused")
    result = errors.classify_storage_error(exc)
    assert isinstance(result, errors.DatabaseError)
    assert "refused" in str(result)


def test_invalid_geometry_is_distinct_client_error() -> None:
    """Test that geometry errors are 400s but not input validation errors."""
    exc = errors.InvalidGeometryError()
    assert not isinstance(exc, errors.ValidationError)
    assert isinstance(exc, errors.MapServerError)
    assert exc.status_code == 400
    assert exc.title == "Invalid geometry"


def test_entity_not_found_message() -> None:
    """Test that the message names the entity type and id."""
    exc = errors.EntityNotFoundError("Polygon", "abc123")
    assert str(exc) == "Polygon with ID 'abc123' was not found"
    assert exc.entity_type == "Polygon"
    assert exc.entity_id == "abc123"
    assert exc.status_code == 404
