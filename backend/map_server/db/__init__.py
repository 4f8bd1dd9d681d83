"""Domain models and repository abstractions.

``models`` holds the coordinate value type and the Polygon and MapObject
entities. ``database`` holds the repository protocols, their in-memory and
MongoDB implementations, and the ``MongoStore`` storage handle.

Example:
    Use in a FastAPI dependency:
        >>> from map_server.db import database
        >>> repo = database.get_polygon_repository(request.app.state.store)
"""
