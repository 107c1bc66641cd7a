from bson import ObjectId
import mongomock
import pytest

from braindump import ordering


@pytest.fixture
def collection():
    return mongomock.MongoClient()["ordering"]["items"]


def _insert(collection, scope, order):
    oid = ObjectId()
    collection.insert_one({"_id": oid, **scope, "order": order})
    return oid


def test_next_order_empty_scope(collection):
    assert ordering.next_order(collection, {"userId": "u"}) == 0


def test_next_order_is_max_plus_one(collection):
    _insert(collection, {"userId": "u"}, 3)
    _insert(collection, {"userId": "u"}, 99)
    _insert(collection, {"userId": "other"}, 500)
    assert ordering.next_order(collection, {"userId": "u"}) == 100


def test_reorder_assigns_index(collection):
    a = _insert(collection, {"userId": "u"}, 0)
    b = _insert(collection, {"userId": "u"}, 1)
    c = _insert(collection, {"userId": "u"}, 2)

    modified = ordering.reorder(collection, {"userId": "u"}, [str(c), str(a), str(b)])

    assert modified == 3
    orders = {doc["_id"]: doc["order"] for doc in collection.find()}
    assert orders == {c: 0, a: 1, b: 2}


def test_reorder_skips_unparsable_and_out_of_scope_ids(collection):
    mine = _insert(collection, {"userId": "u"}, 5)
    theirs = _insert(collection, {"userId": "other"}, 5)

    ordering.reorder(collection, {"userId": "u"}, ["nope", str(theirs), str(mine)])

    assert collection.find_one({"_id": mine})["order"] == 2
    assert collection.find_one({"_id": theirs})["order"] == 5


def test_reorder_leaves_unlisted_documents(collection):
    listed = _insert(collection, {"userId": "u"}, 4)
    unlisted = _insert(collection, {"userId": "u"}, 0)

    ordering.reorder(collection, {"userId": "u"}, [str(listed)])

    assert collection.find_one({"_id": listed})["order"] == 0
    assert collection.find_one({"_id": unlisted})["order"] == 0


def test_reorder_empty_is_a_no_op(collection):
    assert ordering.reorder(collection, {"userId": "u"}, []) == 0


def test_move_update():
    bucket = ObjectId()
    update = ordering.move_update(bucket, 3)["$set"]
    assert update["bucketId"] == bucket
    assert update["order"] == 3
    assert "updatedAt" in update


@pytest.mark.parametrize("value", ["", "xyz", None, 12])
def test_to_object_id_rejects_garbage(value):
    assert ordering.to_object_id(value) is None
