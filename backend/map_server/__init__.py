"""Map server backend for drawn polygons and placed map objects.

This package persists the shapes a map client draws: closed polygon rings
and typed point objects. Storage is MongoDB with a ``2dsphere`` index on
each collection, which also rejects topologically invalid rings at write
time.

- Domain models validate coordinates and ring size before anything is
  written (``map_server.db.models``)
- Repositories hide the MongoDB document shape behind small protocols,
  with in-memory implementations for tests (``map_server.db.database``)
- Storage failures, including geometry rejections, are classified into a
  fixed error taxonomy (``map_server.core.errors``) and rendered as
  RFC 7807 problem documents (``map_server.api.problems``)
"""
