"""
MongoDB access

`Database` owns the client for the lifetime of the application. It is
created in the app lifespan, kept on `app.state.db` and handed to route
handlers through the `get_db` dependency.
"""
import logging
import re
from typing import Any, Dict, Iterable, Optional, Tuple

from bson import ObjectId
from fastapi import Request
from pymongo import MongoClient

logger = logging.getLogger(__name__)

CARS = "cars"
BOOKINGS = "bookings"
USERS = "users"


class Database:
    def __init__(self, client: MongoClient, name: str):
        self.client = client
        self.name = name
        self.db = client[name]

    @classmethod
    def connect(cls, url: str, name: str) -> "Database":
        logger.info(f"Connecting to MongoDB database {name!r}")
        return cls(MongoClient(url), name)

    @property
    def cars(self):
        return self.db[CARS]

    @property
    def bookings(self):
        return self.db[BOOKINGS]

    @property
    def users(self):
        return self.db[USERS]

    def list_collection_names(self):
        return self.db.list_collection_names()

    def close(self):
        logger.info(f"Closing MongoDB connection for {self.name!r}")
        self.client.close()


def get_db(request: Request) -> Database:
    return request.app.state.db


def parse_object_id(value: str) -> Optional[ObjectId]:
    """Return an ObjectId for `value`, or None when it is not well formed."""
    if not ObjectId.is_valid(value):
        return None
    return ObjectId(value)


def search_filter(term: Optional[str], fields: Iterable[str]) -> Dict[str, Any]:
    """Case-insensitive substring match of `term` against any of `fields`."""
    if not term:
        return {}
    pattern = re.escape(term)
    conditions = [{field: {"$regex": pattern, "$options": "i"}} for field in fields]
    if len(conditions) == 1:
        return conditions[0]
    return {"$or": conditions}


def page_window(page: int, limit: int) -> Tuple[int, int]:
    """Return (skip, limit); a limit of 0 means no limit and no skip."""
    if limit <= 0:
        return 0, 0
    return (page - 1) * limit, limit


def count_and_find(
    collection,
    filt: Dict[str, Any],
    projection: Optional[Dict[str, int]] = None,
    sort: Optional[Tuple[str, int]] = None,
    page: int = 1,
    limit: int = 0,
):
    """Run a page query and an independent count over the same filter.

    The two reads are not a snapshot; under concurrent writes the total may
    not match the page that was returned.
    """
    skip, limit = page_window(page, limit)
    logger.debug(f"{collection.name}: filter={filt} skip={skip} limit={limit} sort={sort}")
    cursor = collection.find(filt, projection)
    if sort:
        cursor = cursor.sort([sort])
    cursor = cursor.skip(skip).limit(limit)
    documents = list(cursor)
    total = collection.count_documents(filt)
    return documents, total
