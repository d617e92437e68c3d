"""MongoDB access for users, children, vaccination records, certificates and rewards."""

import logging
import re
import secrets
from datetime import date, datetime, time, timezone

from bson import ObjectId
from bson.errors import InvalidId
from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.database import Database

from config import settings
from vaccinations import AdministeredDose

logger = logging.getLogger(__name__)

_client: MongoClient | None = None
_indexed: set[str] = set()


class InvalidIdError(ValueError):
    pass


def get_client() -> MongoClient:
    global _client
    if _client is None:
        _client = MongoClient(settings.MONGODB_URI)
        logger.info("Connected MongoDB client to %s", settings.MONGODB_URI)
    return _client


def get_db() -> Database:
    db = get_client()[settings.MONGODB_DB]
    if db.name not in _indexed:
        ensure_indexes(db)
        _indexed.add(db.name)
    return db


def ensure_indexes(db: Database) -> None:
    db.users.create_index("email", unique=True)
    db.users.create_index("mobile")
    db.children.create_index("parent")
    db.children.create_index("childId", unique=True)
    db.vaccination_records.create_index(
        [("childId", ASCENDING), ("vaccineName", ASCENDING), ("doseNumber", ASCENDING)]
    )
    db.vaccination_records.create_index([("childId", ASCENDING), ("dateGiven", DESCENDING)])
    db.certificates.create_index([("childId", ASCENDING), ("certificateType", ASCENDING)], unique=True)
    db.token_rewards.create_index("childId", unique=True)


# ------------------ helpers ------------------

def now() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def as_datetime(value: date) -> datetime:
    if isinstance(value, datetime):
        return value
    return datetime.combine(value, time())


def to_object_id(value) -> ObjectId:
    if isinstance(value, ObjectId):
        return value
    try:
        return ObjectId(value)
    except (InvalidId, TypeError) as exc:
        raise InvalidIdError(f"Invalid ID format: {value!r}") from exc


PRIVATE_FIELDS = {"passwordHash"}


def serialize(doc):
    """Mongo document -> JSON-friendly dict (ObjectIds as strings, `_id` as `id`)."""
    if isinstance(doc, ObjectId):
        return str(doc)
    if isinstance(doc, list):
        return [serialize(item) for item in doc]
    if isinstance(doc, dict):
        out = {}
        for key, value in doc.items():
            if key in PRIVATE_FIELDS:
                continue
            out["id" if key == "_id" else key] = serialize(value)
        return out
    return doc


# ------------------ users ------------------

def create_user(db: Database, data: dict) -> dict:
    doc = {
        **data,
        "email": data["email"].strip().lower(),
        "isActive": True,
        "createdAt": now(),
    }
    result = db.users.insert_one(doc)
    doc["_id"] = result.inserted_id
    logger.info("Created %s account %s", doc.get("userType"), result.inserted_id)
    return doc


def find_user(db: Database, user_id) -> dict | None:
    return db.users.find_one({"_id": to_object_id(user_id)})


def find_user_by_email(db: Database, email: str) -> dict | None:
    return db.users.find_one({"email": email.strip().lower()})


def find_user_by_mobile(db: Database, mobile: str) -> dict | None:
    return db.users.find_one({"mobile": mobile, "isActive": True})


def update_user(db: Database, user_id, changes: dict) -> dict | None:
    oid = to_object_id(user_id)
    if changes:
        db.users.update_one({"_id": oid}, {"$set": {**changes, "updatedAt": now()}})
    return db.users.find_one({"_id": oid})


def list_users(db: Database, user_type: str | None = None, active: bool | None = None) -> list[dict]:
    query = {}
    if user_type:
        query["userType"] = user_type
    if active is not None:
        query["isActive"] = active
    return list(db.users.find(query).sort("createdAt", DESCENDING))


# ------------------ children ------------------

def new_child_code() -> str:
    return "CH" + secrets.token_hex(5).upper()


def create_child(db: Database, parent_id, data: dict) -> dict:
    doc = {
        "childId": new_child_code(),
        "fullName": data["fullName"],
        "dateOfBirth": as_datetime(data["dateOfBirth"]),
        "gender": data["gender"],
        "bloodType": data.get("bloodType"),
        "parent": to_object_id(parent_id),
        "isActive": True,
        "createdAt": now(),
    }
    result = db.children.insert_one(doc)
    doc["_id"] = result.inserted_id
    logger.info("Registered child %s for parent %s", doc["childId"], parent_id)
    return doc


def find_child(db: Database, child_id, include_inactive: bool = False) -> dict | None:
    query = {"_id": to_object_id(child_id)}
    if not include_inactive:
        query["isActive"] = True
    return db.children.find_one(query)


def children_for_parent(db: Database, parent_id) -> list[dict]:
    return list(
        db.children.find({"parent": to_object_id(parent_id), "isActive": True})
        .sort("dateOfBirth", ASCENDING)
    )


def search_children(db: Database, text: str, limit: int = 20) -> list[dict]:
    pattern = {"$regex": re.escape(text.strip()), "$options": "i"}
    query = {"isActive": True, "$or": [{"fullName": pattern}, {"childId": pattern}]}
    return list(db.children.find(query).sort("fullName", ASCENDING).limit(limit))


def update_child(db: Database, child_id, changes: dict) -> dict | None:
    oid = to_object_id(child_id)
    if "dateOfBirth" in changes:
        changes["dateOfBirth"] = as_datetime(changes["dateOfBirth"])
    if changes:
        db.children.update_one({"_id": oid}, {"$set": {**changes, "updatedAt": now()}})
    return db.children.find_one({"_id": oid})


# ------------------ vaccination records ------------------

def add_record(db: Database, data: dict) -> dict:
    """Append one administered dose. Records are never updated afterwards."""
    doc = {
        "childId": to_object_id(data["childId"]),
        "vaccineName": data["vaccineName"],
        "doseNumber": data["doseNumber"],
        "visitAge": data.get("visitAge"),
        "dateGiven": as_datetime(data["dateGiven"]),
        "givenBy": to_object_id(data["givenBy"]),
        "location": data["location"],
        "notes": data.get("notes") or "",
        "createdAt": now(),
    }
    result = db.vaccination_records.insert_one(doc)
    doc["_id"] = result.inserted_id
    return doc


def records_for_child(db: Database, child_id) -> list[dict]:
    return list(
        db.vaccination_records.find({"childId": to_object_id(child_id)})
        .sort("dateGiven", DESCENDING)
    )


def _provider_query(provider_id, start: datetime | None = None, end: datetime | None = None) -> dict:
    query = {"givenBy": to_object_id(provider_id)}
    if start or end:
        window = {}
        if start:
            window["$gte"] = start
        if end:
            window["$lte"] = end
        query["dateGiven"] = window
    return query


def records_by_provider(db: Database, provider_id, start=None, end=None, skip: int = 0, limit: int = 0) -> list[dict]:
    cursor = (
        db.vaccination_records.find(_provider_query(provider_id, start, end))
        .sort("dateGiven", DESCENDING)
        .skip(skip)
        .limit(limit)
    )
    return list(cursor)


def count_provider_records(db: Database, provider_id, start=None, end=None) -> int:
    return db.vaccination_records.count_documents(_provider_query(provider_id, start, end))


def recent_records(db: Database, limit: int = 100) -> list[dict]:
    return list(db.vaccination_records.find().sort("dateGiven", DESCENDING).limit(limit))


def load_doses(db: Database, child_id) -> list[AdministeredDose]:
    return [AdministeredDose.from_record(doc) for doc in records_for_child(db, child_id)]


# ------------------ providers ------------------

def list_providers(
    db: Database,
    search: str | None = None,
    specialization: str | None = None,
    skip: int = 0,
    limit: int = 20,
) -> tuple[list[dict], int]:
    query: dict = {"userType": "healthcare_provider"}
    if search:
        pattern = {"$regex": re.escape(search.strip()), "$options": "i"}
        query["$or"] = [
            {"fullName": pattern},
            {"email": pattern},
            {"healthcareProvider.specialization": pattern},
        ]
    if specialization:
        query["healthcareProvider.specialization"] = {
            "$regex": re.escape(specialization.strip()), "$options": "i"
        }
    docs = list(db.users.find(query).sort("createdAt", DESCENDING).skip(skip).limit(limit))
    return docs, db.users.count_documents(query)


def top_vaccines(db: Database, provider_id, limit: int = 5) -> list[dict]:
    pipeline = [
        {"$match": {"givenBy": to_object_id(provider_id)}},
        {"$group": {"_id": "$vaccineName", "count": {"$sum": 1}}},
        {"$sort": {"count": DESCENDING, "_id": ASCENDING}},
        {"$limit": limit},
    ]
    return [
        {"vaccineName": row["_id"], "count": row["count"]}
        for row in db.vaccination_records.aggregate(pipeline)
    ]


def monthly_counts(db: Database, provider_id, since: datetime) -> dict[str, int]:
    """Doses given per calendar month since `since`, keyed "YYYY-MM"."""
    pipeline = [
        {"$match": {"givenBy": to_object_id(provider_id), "dateGiven": {"$gte": since}}},
        {"$group": {
            "_id": {"year": {"$year": "$dateGiven"}, "month": {"$month": "$dateGiven"}},
            "count": {"$sum": 1},
        }},
    ]
    return {
        f"{row['_id']['year']:04d}-{row['_id']['month']:02d}": row["count"]
        for row in db.vaccination_records.aggregate(pipeline)
    }


def children_seen(db: Database, provider_id, start=None, end=None) -> int:
    return len(db.vaccination_records.distinct("childId", _provider_query(provider_id, start, end)))


def child_names(db: Database, child_ids) -> dict:
    ids = list({to_object_id(c) for c in child_ids})
    return {c["_id"]: c["fullName"] for c in db.children.find({"_id": {"$in": ids}}, {"fullName": 1})}


# ------------------ certificates ------------------

def find_certificate(db: Database, child_id, certificate_type: str) -> dict | None:
    return db.certificates.find_one(
        {"childId": to_object_id(child_id), "certificateType": certificate_type}
    )


def find_certificate_by_code(db: Database, certificate_id: str) -> dict | None:
    return db.certificates.find_one({"certificateId": certificate_id})


def insert_certificate(db: Database, doc: dict) -> dict:
    result = db.certificates.insert_one(doc)
    doc["_id"] = result.inserted_id
    return doc


def certificates_for_child(db: Database, child_id) -> list[dict]:
    return list(
        db.certificates.find({"childId": to_object_id(child_id)})
        .sort("generatedAt", DESCENDING)
    )


# ------------------ token rewards ------------------

def insert_reward(db: Database, doc: dict) -> dict:
    """Raises pymongo DuplicateKeyError when the child was already rewarded."""
    result = db.token_rewards.insert_one(doc)
    doc["_id"] = result.inserted_id
    return doc


def find_reward(db: Database, child_id) -> dict | None:
    return db.token_rewards.find_one({"childId": to_object_id(child_id)})


def reward_totals(db: Database) -> dict:
    claims = list(db.token_rewards.find({}, {"amount": 1, "parent": 1}))
    return {
        "totalRewardsDistributed": sum(c.get("amount", 0) for c in claims),
        "totalChildrenRewarded": len(claims),
        "totalParentsRewarded": len({c.get("parent") for c in claims}),
    }


# ------------------ statistics ------------------

def collection_counts(db: Database) -> dict:
    users = {
        user_type: db.users.count_documents({"userType": user_type, "isActive": True})
        for user_type in ("parent", "healthcare_provider", "admin")
    }
    return {
        "users": users,
        "inactiveUsers": db.users.count_documents({"isActive": False}),
        "children": db.children.count_documents({"isActive": True}),
        "vaccinationRecords": db.vaccination_records.count_documents({}),
        "certificates": db.certificates.count_documents({}),
        "tokenRewards": db.token_rewards.count_documents({}),
    }
