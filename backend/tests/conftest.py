"""Shared fixtures: an in-process stand-in for the pymongo client.

``FakeClient`` mimics the slice of the pymongo API that ``MongoStore`` and
the Mongo repositories use (``client[db][collection]``, ``create_index``,
``insert_one``, ``insert_many``, ``find``, ``find_one``, ``delete_one``,
``delete_many``). Collections can be told to fail a given operation, or to
reject documents the way a 2dsphere index rejects invalid rings.
"""

from __future__ import annotations

import copy
from collections.abc import Callable
from typing import Any

import bson
import pytest
from pymongo import errors as pymongo_errors
from pymongo import results

from map_server.core import config
from map_server.db import database

GEO_KEYS_MESSAGE = (
    "Can't extract geo keys: { geometry: { type: \"Polygon\" } } "
    "Loop is not valid: Edges 0 and 2 cross."
)

Document = dict[str, Any]


def geometry_write_error(index: int = 0) -> Document:
    """Write error entry as MongoDB reports it for an invalid ring."""
    return {"index": index, "code": 16755, "errmsg": GEO_KEYS_MESSAGE}


class FakeCollection:
    """Dict-backed collection recording which operations were called."""

    def __init__(self, database_name: str, name: str) -> None:
        self.full_name = f"{database_name}.{name}"
        self.documents: list[Document] = []
        self.indexes: list[list[tuple[str, str]]] = []
        self.calls: list[str] = []
        self.fail_on: dict[str, Exception] = {}
        self.reject: Callable[[Document], bool] | None = None

    def _enter(self, operation: str) -> None:
        self.calls.append(operation)
        if operation in self.fail_on:
            raise self.fail_on[operation]

    def _store(self, document: Document) -> bson.ObjectId:
        stored = copy.deepcopy(document)
        stored["_id"] = bson.ObjectId()
        self.documents.append(stored)
        return stored["_id"]

    def create_index(self, keys: list[tuple[str, str]]) -> str:
        self._enter("create_index")
        if keys not in self.indexes:
            self.indexes.append(keys)
        return "_".join(f"{field}_{kind}" for field, kind in keys)

    def insert_one(self, document: Document) -> results.InsertOneResult:
        self._enter("insert_one")
        if self.reject is not None and self.reject(document):
            raise pymongo_errors.WriteError(
                GEO_KEYS_MESSAGE, 16755, geometry_write_error()
            )
        return results.InsertOneResult(self._store(document), True)

    def insert_many(self, documents: list[Document]) -> results.InsertManyResult:
        self._enter("insert_many")
        inserted = []
        for index, document in enumerate(documents):
            if self.reject is not None and self.reject(document):
                raise pymongo_errors.BulkWriteError(
                    {
                        "writeErrors": [geometry_write_error(index)],
                        "nInserted": len(inserted),
                    }
                )
            inserted.append(self._store(document))
        return results.InsertManyResult(inserted, True)

    def find(self, query: Document) -> list[Document]:
        self._enter("find")
        return [copy.deepcopy(d) for d in self.documents]

    def find_one(self, query: Document) -> Document | None:
        self._enter("find_one")
        for document in self.documents:
            if document["_id"] == query["_id"]:
                return copy.deepcopy(document)
        return None

    def delete_one(self, query: Document) -> results.DeleteResult:
        self._enter("delete_one")
        for document in self.documents:
            if document["_id"] == query["_id"]:
                self.documents.remove(document)
                return results.DeleteResult({"n": 1}, True)
        return results.DeleteResult({"n": 0}, True)

    def delete_many(self, query: Document) -> results.DeleteResult:
        self._enter("delete_many")
        removed = len(self.documents)
        self.documents.clear()
        return results.DeleteResult({"n": removed}, True)


class FakeDatabase:
    def __init__(self, name: str) -> None:
        self.name = name
        self.collections: dict[str, FakeCollection] = {}

    def __getitem__(self, name: str) -> FakeCollection:
        if name not in self.collections:
            self.collections[name] = FakeCollection(self.name, name)
        return self.collections[name]


class FakeClient:
    def __init__(self) -> None:
        self.databases: dict[str, FakeDatabase] = {}
        self.closed = False

    def __getitem__(self, name: str) -> FakeDatabase:
        if name not in self.databases:
            self.databases[name] = FakeDatabase(name)
        return self.databases[name]

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def settings() -> config.Settings:
    return config.Settings(database_name="test_map")


@pytest.fixture
def fake_client() -> FakeClient:
    return FakeClient()


@pytest.fixture
def store(
    settings: config.Settings,
    fake_client: FakeClient,
) -> database.MongoStore:
    return database.MongoStore(settings, client=fake_client)  # type: ignore[arg-type]
