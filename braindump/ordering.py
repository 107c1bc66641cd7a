# braindump/ordering.py
# A scope is the filter bounding one ordered list: {"userId"} for buckets,
# {"userId", "bucketId"} for cards. Gaps and ties in order are allowed.

from bson import ObjectId
from bson.errors import InvalidId
from pymongo import DESCENDING, UpdateMany
from pymongo.collection import Collection

from braindump.timeutil import utcnow


def to_object_id(value) -> ObjectId | None:
    """Parse an id from the API; anything unparsable is treated as unknown."""
    if isinstance(value, ObjectId):
        return value
    if value is None:
        # ObjectId(None) would mint a fresh id
        return None
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        return None


def next_order(collection: Collection, scope: dict) -> int:
    """Append position: one past the highest order in the scope, or 0."""
    top = collection.find_one(scope, sort=[("order", DESCENDING)], projection={"order": 1})
    if top is None:
        return 0
    return int(top.get("order", 0)) + 1


def reorder(collection: Collection, scope: dict, ordered_ids: list[str]) -> int:
    """Set ``order = index`` for each id, in one bulk write.

    Ids outside the scope match nothing and are left as they are, as are
    documents the caller did not list.
    """
    now = utcnow()
    ops = []
    for index, raw_id in enumerate(ordered_ids):
        oid = to_object_id(raw_id)
        if oid is None:
            continue
        # keyed on _id, so each op matches at most one document
        ops.append(UpdateMany({**scope, "_id": oid}, {"$set": {"order": index, "updatedAt": now}}))
    if not ops:
        return 0
    result = collection.bulk_write(ops)
    return result.modified_count


def move_update(to_bucket_id: ObjectId, order: int) -> dict:
    """Single-write reassignment of a card; siblings are not renumbered."""
    return {"$set": {"bucketId": to_bucket_id, "order": order, "updatedAt": utcnow()}}
