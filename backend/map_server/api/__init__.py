"""API router subpackage for the map server.

Submodules:
    - polygons: create, list, fetch and delete polygons.
    - objects: create (single and batch), list, fetch and delete map
      objects.
    - schemas: pydantic request/response models shared by the routers.
    - problems: translation of failures into problem+json responses.
"""
