"""Map object API endpoints.

Objects are typed points ("Marker", "Jeep", ...). The set of valid types
belongs to the client; the server stores any non-blank label.
"""

import fastapi

from map_server.api import schemas
from map_server.core import errors
from map_server.db import database

router = fastapi.APIRouter(prefix="/api/objects", tags=["objects"])

ENTITY_TYPE = "MapObject"


def _get_repo(request: fastapi.Request) -> database.MapObjectRepositoryProtocol:
    """Resolve the map object repository from the shared storage handle."""
    return database.get_map_object_repository(request.app.state.store)


@router.get("", response_model=list[schemas.MapObjectResponse])
def list_objects(
    repo: database.MapObjectRepositoryProtocol = fastapi.Depends(_get_repo),  # noqa: B008
) -> list[schemas.MapObjectResponse]:
    """List all map objects.

    Returns:
        Every stored object with its id, location and type label.
    """
    return [schemas.MapObjectResponse.from_domain(o) for o in repo.all()]


@router.get("/{object_id}", response_model=schemas.MapObjectResponse)
def get_object(
    object_id: str,
    repo: database.MapObjectRepositoryProtocol = fastapi.Depends(_get_repo),  # noqa: B008
) -> schemas.MapObjectResponse:
    """Get a single map object by ID.

    Args:
        object_id: Identifier returned when the object was created.
        repo: Map object repository (injected via FastAPI Depends).

    Raises:
        EntityNotFoundError: If no object has this ID (404).
    """
    map_object = repo.get(object_id)
    if map_object is None:
        raise errors.EntityNotFoundError(ENTITY_TYPE, object_id)

    return schemas.MapObjectResponse.from_domain(map_object)


@router.post(
    "",
    response_model=schemas.MapObjectResponse,
    status_code=fastapi.status.HTTP_201_CREATED,
)
def create_object(
    body: schemas.CreateMapObjectRequest,
    response: fastapi.Response,
    repo: database.MapObjectRepositoryProtocol = fastapi.Depends(_get_repo),  # noqa: B008
) -> schemas.MapObjectResponse:
    """Create one map object.

    Responds 201 with the stored object and a ``Location`` header pointing
    at it.

    Raises:
        ValidationError: Blank type label or out-of-range location (400).
        InvalidGeometryError: MongoDB rejected the point (400).
    """
    created = repo.create(body.to_domain())
    response.headers["Location"] = f"{router.prefix}/{created.id}"
    return schemas.MapObjectResponse.from_domain(created)


@router.post("/batch", response_model=list[schemas.MapObjectResponse])
def create_objects_batch(
    body: schemas.BatchCreateMapObjectsRequest,
    repo: database.MapObjectRepositoryProtocol = fastapi.Depends(_get_repo),  # noqa: B008
) -> list[schemas.MapObjectResponse]:
    """Store several objects with a single batch write.

    The response lists the created objects in request order.

    Raises:
        ValidationError: If the batch is empty or any item is invalid.
        InvalidGeometryError: If MongoDB rejected any item's geometry.
    """
    if not body.objects:
        raise errors.ValidationError("At least one object is required")

    created = repo.create_many([item.to_domain() for item in body.objects])
    return [schemas.MapObjectResponse.from_domain(o) for o in created]


@router.delete("/{object_id}", status_code=fastapi.status.HTTP_204_NO_CONTENT)
def delete_object(
    object_id: str,
    repo: database.MapObjectRepositoryProtocol = fastapi.Depends(_get_repo),  # noqa: B008
) -> None:
    """Delete a map object by ID.

    Raises:
        EntityNotFoundError: If no object has this ID (404).
    """
    if not repo.delete(object_id):
        raise errors.EntityNotFoundError(ENTITY_TYPE, object_id)


@router.delete("", status_code=fastapi.status.HTTP_204_NO_CONTENT)
def delete_all_objects(
    repo: database.MapObjectRepositoryProtocol = fastapi.Depends(_get_repo),  # noqa: B008
) -> None:
    """Remove every map object."""
    repo.delete_all()
