"""
Database Helper Functions

MongoDB access for the `user`, `match` and `event` collections. Every write
touches a single document; there are no multi-document transactions.
"""
import logging
from typing import Any, Dict, Iterable, List, Optional, Union

from bson import ObjectId
from pydantic import BaseModel
from pymongo import ASCENDING, DESCENDING, MongoClient, ReturnDocument
from pymongo.errors import DuplicateKeyError

from config import Settings
from errors import Conflict, NotFound
from schemas import Event, Match, User, utcnow

logger = logging.getLogger(__name__)

USERS = "user"
MATCHES = "match"
EVENTS = "event"

# Fields a reference list may be appended to, per collection
REFERENCE_LISTS = {
    USERS: ("matches", "events"),
    EVENTS: ("participants",),
}


def to_object_id(value: Union[str, ObjectId, None]) -> Optional[ObjectId]:
    """Parse an id string; None when it cannot name a document."""
    if isinstance(value, ObjectId):
        return value
    if isinstance(value, str) and ObjectId.is_valid(value):
        return ObjectId(value)
    return None


def serialize(value: Any) -> Any:
    """Convert a stored document into its JSON shape: `_id` -> `id`, ObjectId -> str."""
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, list):
        return [serialize(v) for v in value]
    if isinstance(value, dict):
        out = {}
        for key, item in value.items():
            out["id" if key == "_id" else key] = serialize(item)
        return out
    return value


def sanitize_user(doc: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if doc is None:
        return None
    safe = {k: v for k, v in doc.items() if k != "password"}
    return serialize(safe)


class Database:
    def __init__(self, settings: Settings, client: Optional[MongoClient] = None):
        self._client = client if client is not None else MongoClient(settings.database_url)
        self.name = settings.database_name
        self.db = self._client[settings.database_name]

    def __getitem__(self, collection_name: str):
        return self.db[collection_name]

    def close(self) -> None:
        self._client.close()

    def ensure_indexes(self) -> None:
        self.db[USERS].create_index([("email", ASCENDING)], unique=True)
        self.db[MATCHES].create_index([("challenger", ASCENDING), ("date", DESCENDING)])
        self.db[MATCHES].create_index([("opponent", ASCENDING), ("date", DESCENDING)])
        self.db[EVENTS].create_index([("date", ASCENDING)])
        logger.info("Indexes ensured on database %s", self.name)

    def list_collection_names(self) -> List[str]:
        return self.db.list_collection_names()

    # Generic helpers
    def create_document(self, collection_name: str, data: Union[BaseModel, dict]) -> ObjectId:
        if isinstance(data, BaseModel):
            data_dict = data.model_dump()
        else:
            data_dict = data.copy()
        result = self.db[collection_name].insert_one(data_dict)
        return result.inserted_id

    def get_document(
        self, collection_name: str, doc_id: Union[str, ObjectId], projection: Optional[dict] = None
    ) -> Dict[str, Any]:
        oid = to_object_id(doc_id)
        doc = self.db[collection_name].find_one({"_id": oid}, projection) if oid else None
        if doc is None:
            raise NotFound(f"{collection_name.capitalize()} not found")
        return doc

    def get_documents(
        self,
        collection_name: str,
        filter_dict: Optional[dict] = None,
        sort: Optional[list] = None,
        limit: Optional[int] = None,
        projection: Optional[dict] = None,
    ) -> List[Dict[str, Any]]:
        cursor = self.db[collection_name].find(filter_dict or {}, projection)
        if sort:
            cursor = cursor.sort(sort)
        if limit:
            cursor = cursor.limit(limit)
        return list(cursor)

    def get_by_ids(self, collection_name: str, ids: Iterable[ObjectId]) -> List[Dict[str, Any]]:
        """Fetch documents for a reference list, keeping the list's order."""
        ids = list(ids)
        if not ids:
            return []
        found = {d["_id"]: d for d in self.db[collection_name].find({"_id": {"$in": ids}})}
        return [found[i] for i in ids if i in found]

    def append_reference(
        self, collection_name: str, entity_id: ObjectId, list_field: str, reference_id: ObjectId
    ) -> Dict[str, Any]:
        """Add `reference_id` to a reference list unless it is already there."""
        if list_field not in REFERENCE_LISTS.get(collection_name, ()):
            raise ValueError(f"{collection_name}.{list_field} is not a reference list")
        doc = self.db[collection_name].find_one_and_update(
            {"_id": entity_id},
            {"$addToSet": {list_field: reference_id}},
            return_document=ReturnDocument.AFTER,
        )
        if doc is None:
            raise NotFound(f"{collection_name.capitalize()} not found")
        return doc

    # Users
    def create_user(self, user: User) -> Dict[str, Any]:
        doc = user.model_dump()
        try:
            doc["_id"] = self.db[USERS].insert_one(doc).inserted_id
        except DuplicateKeyError:
            raise Conflict("User already exists")
        return doc

    def find_user_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        return self.db[USERS].find_one({"email": email})

    def find_user_by_id(self, user_id: Union[str, ObjectId]) -> Dict[str, Any]:
        return self.get_document(USERS, user_id)

    def list_users(self) -> List[Dict[str, Any]]:
        return self.get_documents(USERS, sort=[("registeredAt", DESCENDING)], projection={"password": 0})

    def update_user(self, user_id: Union[str, ObjectId], fields: Dict[str, Any]) -> Dict[str, Any]:
        oid = to_object_id(user_id)
        doc = None
        if oid is not None:
            doc = self.db[USERS].find_one_and_update(
                {"_id": oid}, {"$set": fields}, return_document=ReturnDocument.AFTER
            )
        if doc is None:
            raise NotFound("User not found")
        return doc

    # Matches
    def create_match(self, match: Match) -> Dict[str, Any]:
        doc = match.model_dump()
        doc["_id"] = self.create_document(MATCHES, doc)
        return doc

    def find_match_by_id(self, match_id: Union[str, ObjectId]) -> Dict[str, Any]:
        return self.get_document(MATCHES, match_id)

    def find_matches_for_user(self, user_id: ObjectId) -> List[Dict[str, Any]]:
        return self.get_documents(
            MATCHES,
            {"$or": [{"challenger": user_id}, {"opponent": user_id}]},
            sort=[("date", DESCENDING)],
        )

    def update_match(self, match_id: ObjectId, fields: Dict[str, Any]) -> Dict[str, Any]:
        doc = self.db[MATCHES].find_one_and_update(
            {"_id": match_id}, {"$set": fields}, return_document=ReturnDocument.AFTER
        )
        if doc is None:
            raise NotFound("Match not found")
        return doc

    # Events
    def create_event(self, event: Event) -> Dict[str, Any]:
        doc = event.model_dump()
        doc["_id"] = self.create_document(EVENTS, doc)
        return doc

    def find_event_by_id(self, event_id: Union[str, ObjectId]) -> Dict[str, Any]:
        return self.get_document(EVENTS, event_id)

    def list_events(self) -> List[Dict[str, Any]]:
        return self.get_documents(EVENTS, sort=[("date", ASCENDING)])

    def find_upcoming_events(self) -> List[Dict[str, Any]]:
        return self.get_documents(EVENTS, {"date": {"$gte": utcnow()}}, sort=[("date", ASCENDING)])

    def find_announcements(self, limit: int = 5) -> List[Dict[str, Any]]:
        return self.get_documents(EVENTS, {"status": "upcoming"}, sort=[("createdAt", DESCENDING)], limit=limit)

    def update_event(self, event_id: Union[str, ObjectId], fields: Dict[str, Any]) -> Dict[str, Any]:
        oid = to_object_id(event_id)
        doc = None
        if oid is not None:
            doc = self.db[EVENTS].find_one_and_update(
                {"_id": oid}, {"$set": fields}, return_document=ReturnDocument.AFTER
            )
        if doc is None:
            raise NotFound("Event not found")
        return doc

    def add_participant(self, event_id: Union[str, ObjectId], user_id: ObjectId) -> Dict[str, Any]:
        """
        Append `user_id` to an event's participants in one conditional write.

        Raises NotFound if the event does not exist and Conflict if the user is
        already a participant; concurrent duplicates cannot both succeed.
        """
        oid = to_object_id(event_id)
        if oid is None:
            raise NotFound("Event not found")
        doc = self.db[EVENTS].find_one_and_update(
            {"_id": oid, "participants": {"$ne": user_id}},
            {"$push": {"participants": user_id}},
            return_document=ReturnDocument.AFTER,
        )
        if doc is None:
            if self.db[EVENTS].find_one({"_id": oid}, {"_id": 1}) is None:
                raise NotFound("Event not found")
            raise Conflict("Already registered")
        return doc
