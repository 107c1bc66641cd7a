# braindump/store.py
from datetime import datetime

import structlog
from bson import ObjectId
from pymongo import ASCENDING, MongoClient, ReturnDocument
from pymongo.database import Database
from pymongo.errors import BulkWriteError, PyMongoError

from braindump import ordering
from braindump.errors import ConfigurationError, NotFoundError
from braindump.models import (
    DEFAULT_BUCKETS,
    NEUTRAL_GRAY,
    UNSORTED,
    UNSORTED_ORDER,
    Bucket,
    Card,
    IntakeSession,
    IntakeStatus,
    UserPreferences,
)
from braindump.ordering import to_object_id
from braindump.timeutil import to_storage, utcnow

logger = structlog.get_logger(__name__)

BUCKETS = "braindump-buckets"
CARDS = "braindump-cards"
INTAKES = "braindump-intakes"
PREFERENCES = "preferences"

# ties on order fall back to insertion order
_ORDERED = [("order", ASCENDING), ("_id", ASCENDING)]


def _storable(value):
    if isinstance(value, datetime):
        return to_storage(value)
    if isinstance(value, IntakeStatus):
        return value.value
    if isinstance(value, dict):
        return {k: _storable(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_storable(v) for v in value]
    return value


class BrainDumpStore:
    """Per-user access to buckets, cards, intake sessions and preferences."""

    def __init__(self, db: Database, client: MongoClient | None = None):
        self.db = db
        self._client = client
        self.buckets = db[BUCKETS]
        self.cards = db[CARDS]
        self.sessions = db[INTAKES]
        self.preferences = db[PREFERENCES]

    @classmethod
    def connect(cls, uri: str | None, db_name: str) -> "BrainDumpStore":
        if not uri:
            raise ConfigurationError("MONGODB_URI environment variable is not set")
        client = MongoClient(uri)
        try:
            client.admin.command("ping")
        except PyMongoError as e:
            client.close()
            raise ConfigurationError(f"MongoDB connection failed: {e}") from e
        logger.info("mongo_connected", db=db_name)
        store = cls(client[db_name], client)
        store.ensure_indexes()
        return store

    def close(self):
        if self._client is not None:
            self._client.close()
            logger.info("mongo_disconnected")

    def ensure_indexes(self):
        self.buckets.create_index([("userId", ASCENDING), ("order", ASCENDING)])
        self.buckets.create_index(
            [("userId", ASCENDING), ("defaultKey", ASCENDING)],
            unique=True,
            partialFilterExpression={"defaultKey": {"$exists": True}},
        )
        self.cards.create_index([("userId", ASCENDING), ("bucketId", ASCENDING), ("order", ASCENDING)])
        self.sessions.create_index([("userId", ASCENDING)])
        self.preferences.create_index([("userId", ASCENDING)], unique=True)

    # ---------- Buckets ----------

    def list_buckets(self, user_id: str) -> list[Bucket]:
        return [Bucket.model_validate(d) for d in self.buckets.find({"userId": user_id}, sort=_ORDERED)]

    def get_bucket(self, user_id: str, bucket_id: str) -> Bucket | None:
        oid = to_object_id(bucket_id)
        if oid is None:
            return None
        doc = self.buckets.find_one({"_id": oid, "userId": user_id})
        return Bucket.model_validate(doc) if doc else None

    def create_default_buckets(self, user_id: str) -> list[Bucket]:
        now = utcnow()
        docs = [
            {"_id": ObjectId(), **b, "userId": user_id, "isDefault": True, "defaultKey": b["name"],
             "createdAt": now, "updatedAt": now}
            for b in DEFAULT_BUCKETS
        ]
        try:
            self.buckets.insert_many(docs)
        except BulkWriteError:
            # a concurrent first request already bootstrapped this user
            logger.info("default_buckets_raced", user_id=user_id)
            return self.list_buckets(user_id)
        logger.info("default_buckets_created", user_id=user_id, count=len(docs))
        return [Bucket.model_validate(d) for d in docs]

    def ensure_default_buckets(self, user_id: str) -> list[Bucket]:
        existing = self.list_buckets(user_id)
        if existing:
            return existing
        return self.create_default_buckets(user_id)

    def create_bucket(self, user_id: str, name: str | None = None, color: str | None = None,
                      order: int | None = None) -> Bucket:
        now = utcnow()
        doc = {
            "_id": ObjectId(),
            "userId": user_id,
            "name": name or "New Bucket",
            "color": color or NEUTRAL_GRAY,
            "order": order if order is not None else ordering.next_order(self.buckets, {"userId": user_id}),
            "isDefault": False,
            "createdAt": now,
            "updatedAt": now,
        }
        self.buckets.insert_one(doc)
        return Bucket.model_validate(doc)

    def update_bucket(self, user_id: str, bucket_id: str, data: dict) -> Bucket | None:
        oid = to_object_id(bucket_id)
        if oid is None:
            return None
        doc = self.buckets.find_one_and_update(
            {"_id": oid, "userId": user_id},
            {"$set": {**_storable(data), "updatedAt": utcnow()}},
            return_document=ReturnDocument.AFTER,
        )
        return Bucket.model_validate(doc) if doc else None

    def ensure_unsorted_bucket(self, user_id: str, exclude_id: ObjectId | None = None) -> Bucket:
        query = {"userId": user_id, "name": {"$regex": f"^{UNSORTED}$", "$options": "i"}}
        if exclude_id is not None:
            query["_id"] = {"$ne": exclude_id}
        doc = self.buckets.find_one(query, sort=_ORDERED)
        if doc:
            return Bucket.model_validate(doc)
        logger.info("unsorted_bucket_created", user_id=user_id)
        return self.create_bucket(user_id, UNSORTED, NEUTRAL_GRAY, UNSORTED_ORDER)

    def delete_bucket(self, user_id: str, bucket_id: str) -> int | None:
        """Delete a bucket after moving its cards to Unsorted.

        Returns the number of cards moved, or None when the bucket does not
        exist. The two writes are not atomic: if the delete fails, the cards
        have already been moved and the bucket is left empty.
        """
        oid = to_object_id(bucket_id)
        if oid is None or self.buckets.find_one({"_id": oid, "userId": user_id}) is None:
            return None

        # deleting Unsorted itself needs a fresh Unsorted to receive its cards
        unsorted = self.ensure_unsorted_bucket(user_id, exclude_id=oid)
        moved = self.cards.update_many(
            {"userId": user_id, "bucketId": oid},
            {"$set": {"bucketId": ObjectId(unsorted.id), "updatedAt": utcnow()}},
        ).modified_count
        self.buckets.delete_one({"_id": oid, "userId": user_id})
        logger.info("bucket_deleted", user_id=user_id, bucket_id=bucket_id, moved_cards=moved)
        return moved

    def reorder_buckets(self, user_id: str, ordered_ids: list[str]) -> int:
        return ordering.reorder(self.buckets, {"userId": user_id}, ordered_ids)

    # ---------- Cards ----------

    def _require_bucket(self, user_id: str, bucket_id) -> ObjectId:
        oid = to_object_id(bucket_id)
        if oid is None or self.buckets.count_documents({"_id": oid, "userId": user_id}, limit=1) == 0:
            raise NotFoundError("Bucket not found")
        return oid

    def list_cards(self, user_id: str, bucket_id: str | None = None) -> list[Card]:
        query = {"userId": user_id}
        if bucket_id is not None:
            oid = to_object_id(bucket_id)
            if oid is None:
                return []
            query["bucketId"] = oid
        return [Card.model_validate(d) for d in self.cards.find(query, sort=_ORDERED)]

    def get_card(self, user_id: str, card_id: str) -> Card | None:
        oid = to_object_id(card_id)
        if oid is None:
            return None
        doc = self.cards.find_one({"_id": oid, "userId": user_id})
        return Card.model_validate(doc) if doc else None

    def create_card(self, user_id: str, bucket_id: str, data: dict | None = None) -> Card:
        """Insert a card at the end of its bucket unless ``data`` pins an order."""
        data = data or {}
        bucket_oid = self._require_bucket(user_id, bucket_id)
        now = utcnow()
        order = data.get("order")
        if order is None:
            order = ordering.next_order(self.cards, {"userId": user_id, "bucketId": bucket_oid})
        source = data.get("sourceIntakeId")
        doc = _storable({
            "_id": ObjectId(),
            "userId": user_id,
            "bucketId": bucket_oid,
            "title": data.get("title") or "Untitled",
            "content": data.get("content") or "",
            "labels": data.get("labels") or [],
            "order": order,
            "isActionable": bool(data.get("isActionable") or False),
            "priority": data.get("priority"),
            "reminder": data.get("reminder"),
            "sourceIntakeId": to_object_id(source) if source else None,
            "createdAt": now,
            "updatedAt": now,
        })
        self.cards.insert_one(doc)
        return Card.model_validate(doc)

    def update_card(self, user_id: str, card_id: str, data: dict) -> Card | None:
        oid = to_object_id(card_id)
        if oid is None:
            return None
        data = _storable(data)
        if "bucketId" in data:
            data["bucketId"] = self._require_bucket(user_id, data["bucketId"])
        doc = self.cards.find_one_and_update(
            {"_id": oid, "userId": user_id},
            {"$set": {**data, "updatedAt": utcnow()}},
            return_document=ReturnDocument.AFTER,
        )
        return Card.model_validate(doc) if doc else None

    def delete_card(self, user_id: str, card_id: str) -> bool:
        oid = to_object_id(card_id)
        if oid is None:
            return False
        return self.cards.delete_one({"_id": oid, "userId": user_id}).deleted_count > 0

    def move_card(self, user_id: str, card_id: str, to_bucket_id: str, order: int) -> Card | None:
        oid = to_object_id(card_id)
        if oid is None:
            return None
        bucket_oid = self._require_bucket(user_id, to_bucket_id)
        doc = self.cards.find_one_and_update(
            {"_id": oid, "userId": user_id},
            ordering.move_update(bucket_oid, order),
            return_document=ReturnDocument.AFTER,
        )
        return Card.model_validate(doc) if doc else None

    def reorder_cards(self, user_id: str, bucket_id: str, ordered_ids: list[str]) -> int:
        bucket_oid = to_object_id(bucket_id)
        if bucket_oid is None:
            return 0
        return ordering.reorder(self.cards, {"userId": user_id, "bucketId": bucket_oid}, ordered_ids)

    # ---------- Intake sessions ----------

    def create_session(self, user_id: str, raw_content: str, filename: str | None = None) -> IntakeSession:
        now = utcnow()
        doc = {
            "_id": ObjectId(),
            "userId": user_id,
            "rawContent": raw_content,
            "filename": filename,
            "parsedIdeas": [],
            "status": IntakeStatus.PENDING.value,
            "createdAt": now,
            "updatedAt": now,
        }
        self.sessions.insert_one(doc)
        return IntakeSession.model_validate(doc)

    def get_session(self, user_id: str, session_id: str) -> IntakeSession | None:
        oid = to_object_id(session_id)
        if oid is None:
            return None
        doc = self.sessions.find_one({"_id": oid, "userId": user_id})
        return IntakeSession.model_validate(doc) if doc else None

    def update_session(self, user_id: str, session_id: str, data: dict) -> IntakeSession | None:
        oid = to_object_id(session_id)
        if oid is None:
            return None
        doc = self.sessions.find_one_and_update(
            {"_id": oid, "userId": user_id},
            {"$set": {**_storable(data), "updatedAt": utcnow()}},
            return_document=ReturnDocument.AFTER,
        )
        return IntakeSession.model_validate(doc) if doc else None

    def transition_session(self, user_id: str, session_id: str, from_status: IntakeStatus,
                           to_status: IntakeStatus, data: dict | None = None) -> IntakeSession | None:
        """Compare-and-set status change; None when the stored status is not ``from_status``."""
        oid = to_object_id(session_id)
        if oid is None:
            return None
        fields = {**_storable(data or {}), "status": to_status.value, "updatedAt": utcnow()}
        doc = self.sessions.find_one_and_update(
            {"_id": oid, "userId": user_id, "status": from_status.value},
            {"$set": fields},
            return_document=ReturnDocument.AFTER,
        )
        return IntakeSession.model_validate(doc) if doc else None

    # ---------- Preferences ----------

    def get_preferences(self, user_id: str) -> UserPreferences | None:
        doc = self.preferences.find_one({"userId": user_id})
        return UserPreferences.model_validate(doc) if doc else None

    def update_preferences(self, user_id: str, data: dict) -> UserPreferences:
        now = utcnow()
        doc = self.preferences.find_one_and_update(
            {"userId": user_id},
            {"$set": {**_storable(data), "userId": user_id, "updatedAt": now}, "$setOnInsert": {"createdAt": now}},
            upsert=True,
            return_document=ReturnDocument.AFTER,
        )
        return UserPreferences.model_validate(doc)
