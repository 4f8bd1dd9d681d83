"""Polygon API endpoints.

Polygons are created, listed, fetched and deleted; there is no update.
Coordinates in request and response bodies are
``{"latitude": ..., "longitude": ...}`` objects, and returned rings are
closed (the first coordinate is repeated at the end).

Example:
    Create a polygon:
        >>> response = client.post(
        ...     "/api/polygons",
        ...     json={"coordinates": [
        ...         {"latitude": 0, "longitude": 0},
        ...         {"latitude": 0, "longitude": 1},
        ...         {"latitude": 1, "longitude": 1},
        ...     ]},
        ... )
        >>> response.status_code
        201

    A self-intersecting ring is rejected by MongoDB's 2dsphere index and
    reported as a 400 "Invalid geometry" problem.
"""

import fastapi

from map_server.api import schemas
from map_server.core import errors
from map_server.db import database

router = fastapi.APIRouter(prefix="/api/polygons", tags=["polygons"])

ENTITY_TYPE = "Polygon"


def _get_repo(request: fastapi.Request) -> database.PolygonRepositoryProtocol:
    """Resolve the polygon repository from the shared storage handle.

    Args:
        request: Current request, used to reach ``app.state.store``.

    Returns:
        PolygonRepositoryProtocol implementation
            (MongoPolygonRepository in production).
    """
    return database.get_polygon_repository(request.app.state.store)


@router.get("", response_model=list[schemas.PolygonResponse])
def list_polygons(
    repo: database.PolygonRepositoryProtocol = fastapi.Depends(_get_repo),  # noqa: B008
) -> list[schemas.PolygonResponse]:
    """List every stored polygon in storage order."""
    return [schemas.PolygonResponse.from_domain(p) for p in repo.all()]


@router.get("/{polygon_id}", response_model=schemas.PolygonResponse)
def get_polygon(
    polygon_id: str,
    repo: database.PolygonRepositoryProtocol = fastapi.Depends(_get_repo),  # noqa: B008
) -> schemas.PolygonResponse:
    """Fetch one polygon.

    Raises:
        EntityNotFoundError: If no polygon has this id (404).
    """
    polygon = repo.get(polygon_id)
    if polygon is None:
        raise errors.EntityNotFoundError(ENTITY_TYPE, polygon_id)

    return schemas.PolygonResponse.from_domain(polygon)


@router.post(
    "",
    response_model=schemas.PolygonResponse,
    status_code=fastapi.status.HTTP_201_CREATED,
)
def create_polygon(
    body: schemas.CreatePolygonRequest,
    response: fastapi.Response,
    repo: database.PolygonRepositoryProtocol = fastapi.Depends(_get_repo),  # noqa: B008
) -> schemas.PolygonResponse:
    """Validate and store a new polygon.

    Raises:
        ValidationError: Fewer than three distinct coordinates or an
            out-of-range coordinate (400, before any storage call).
        InvalidGeometryError: MongoDB rejected the ring (400).
    """
    created = repo.create(body.to_domain())
    response.headers["Location"] = f"{router.prefix}/{created.id}"
    return schemas.PolygonResponse.from_domain(created)


@router.delete("/{polygon_id}", status_code=fastapi.status.HTTP_204_NO_CONTENT)
def delete_polygon(
    polygon_id: str,
    repo: database.PolygonRepositoryProtocol = fastapi.Depends(_get_repo),  # noqa: B008
) -> None:
    """Delete one polygon.

    Raises:
        EntityNotFoundError: If no polygon has this id (404).
    """
    if not repo.delete(polygon_id):
        raise errors.EntityNotFoundError(ENTITY_TYPE, polygon_id)
