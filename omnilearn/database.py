import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pydantic import ValidationError
from pymongo.errors import PyMongoError

from . import config
from .schemas import Coupon, Course, MerchantSettings, Transaction, parse_records

logger = logging.getLogger(__name__)

COURSES = "courses"
TRANSACTIONS = "transactions"
MERCHANT_SETTINGS = "merchantSettings"
SHORT_LINKS = "shortLinks"
COUPONS = "coupons"
SESSIONS = "sessions"

# merchantSettings is a single record rather than a keyed map
_SETTINGS_KEY = "current"

_client: Optional[AsyncIOMotorClient] = None
_db: Optional[AsyncIOMotorDatabase] = None


class StoreError(Exception):
    pass


async def get_db() -> AsyncIOMotorDatabase:
    global _client, _db
    if _db is None:
        _client = AsyncIOMotorClient(config.DATABASE_URL)
        _db = _client[config.DATABASE_NAME]
    return _db


def new_key() -> str:
    return str(ObjectId())


# --- Primitives: every namespace is a flat key -> value map ---

async def get_value(namespace: str, key: str) -> Any:
    db = await get_db()
    doc = await db[namespace].find_one({"_id": key})
    return doc["value"] if doc else None


async def get_all(namespace: str) -> Dict[str, Any]:
    db = await get_db()
    out = {}
    async for d in db[namespace].find({}):
        out[str(d["_id"])] = d.get("value")
    return out


async def exists(namespace: str, key: str) -> bool:
    db = await get_db()
    return await db[namespace].find_one({"_id": key}, {"_id": 1}) is not None


async def set_value(namespace: str, key: str, value: Any) -> None:
    db = await get_db()
    now = datetime.utcnow().isoformat()
    await db[namespace].replace_one(
        {"_id": key}, {"_id": key, "value": value, "updated_at": now}, upsert=True
    )


async def push_value(namespace: str, value: Any) -> str:
    key = new_key()
    await set_value(namespace, key, value)
    return key


async def update_value(namespace: str, key: str, fields: Dict[str, Any],
                       where: Optional[Dict[str, Any]] = None) -> bool:
    """Set fields inside a stored value; where narrows the match to values holding those fields."""
    db = await get_db()
    query = {"_id": key}
    query.update({f"value.{k}": v for k, v in (where or {}).items()})
    changes = {f"value.{k}": v for k, v in fields.items()}
    changes["updated_at"] = datetime.utcnow().isoformat()
    res = await db[namespace].update_one(query, {"$set": changes})
    return res.matched_count > 0


async def remove_value(namespace: str, key: str) -> None:
    db = await get_db()
    await db[namespace].delete_one({"_id": key})


# --- Courses ---

async def fetch_courses() -> List[Course]:
    try:
        return parse_records(Course, await get_all(COURSES))
    except PyMongoError as e:
        logger.error("Error fetching courses: %s", e)
        return []


async def fetch_course(course_id: str) -> Optional[Course]:
    try:
        data = await get_value(COURSES, course_id)
    except PyMongoError as e:
        logger.error("Error fetching course %s: %s", course_id, e)
        return None
    found = parse_records(Course, {course_id: data}) if data is not None else []
    return found[0] if found else None


def _is_new_course_id(course_id: str) -> bool:
    return not course_id or course_id.startswith("new-")


async def save_course(course: Course) -> str:
    """Create or replace a course; returns its store key."""
    data = course.to_document()
    data.pop("id", None)
    try:
        if _is_new_course_id(course.id):
            return await push_value(COURSES, data)
        await set_value(COURSES, course.id, data)
        return course.id
    except PyMongoError as e:
        logger.error("Error saving course: %s", e)
        raise StoreError("Failed to save course") from e


async def delete_course(course_id: str) -> None:
    try:
        await remove_value(COURSES, course_id)
    except PyMongoError as e:
        logger.error("Error deleting course: %s", e)
        raise StoreError("Failed to delete course") from e


async def seed_initial_courses(courses: List[Course]) -> bool:
    """Populate the catalog when the courses namespace is empty."""
    try:
        db = await get_db()
        if await db[COURSES].find_one({}) is not None:
            return False
        logger.info("Seeding database with %d courses", len(courses))
        for c in courses:
            data = c.to_document()
            key = data.pop("id", "") or new_key()
            await set_value(COURSES, key, data)
        return True
    except PyMongoError as e:
        logger.error("Error seeding courses: %s", e)
        return False


# --- Transactions ---

async def save_transaction(txn: Transaction) -> Optional[str]:
    data = txn.to_document()
    data.pop("storeKey", None)
    try:
        return await push_value(TRANSACTIONS, data)
    except PyMongoError as e:
        logger.error("Error saving transaction %s: %s", txn.id, e)
        return None


async def fetch_transactions() -> List[Transaction]:
    try:
        return parse_records(Transaction, await get_all(TRANSACTIONS), key_field="storeKey")
    except PyMongoError as e:
        logger.error("Error fetching transactions: %s", e)
        return []


async def update_transaction_status(order_id: str, decision: str, store_key: Optional[str] = None) -> bool:
    """Apply an admin decision ("approved" or "rejected") to a pending order."""
    if decision not in ("approved", "rejected"):
        raise ValueError(f"Unknown decision: {decision}")
    fields = {
        "status": "success" if decision == "approved" else "failed",
        "approvalStatus": decision,
    }
    try:
        if store_key and await update_value(TRANSACTIONS, store_key, fields):
            return True
        # Fall back to a scan by order id
        for key, value in (await get_all(TRANSACTIONS)).items():
            if isinstance(value, dict) and value.get("id") == order_id:
                return await update_value(TRANSACTIONS, key, fields)
        return False
    except PyMongoError as e:
        logger.error("Error updating transaction %s: %s", order_id, e)
        raise StoreError("Failed to update transaction") from e


# --- Merchant settings ---

async def fetch_merchant_settings() -> Optional[MerchantSettings]:
    try:
        data = await get_value(MERCHANT_SETTINGS, _SETTINGS_KEY)
    except PyMongoError as e:
        logger.error("Error fetching merchant settings: %s", e)
        return None
    if data is None:
        return None
    try:
        return MerchantSettings.model_validate(data)
    except ValidationError as e:
        logger.warning("Ignoring invalid merchant settings: %s", e.errors())
        return None


async def save_merchant_settings(settings: MerchantSettings) -> None:
    try:
        await set_value(MERCHANT_SETTINGS, _SETTINGS_KEY, settings.to_document())
    except PyMongoError as e:
        logger.error("Error saving settings: %s", e)
        raise StoreError("Failed to save merchant settings") from e


# --- Coupon registry ---

async def save_coupon(coupon: Coupon) -> str:
    data = coupon.to_document()
    data.pop("id", None)
    try:
        if not coupon.id:
            return await push_value(COUPONS, data)
        await set_value(COUPONS, coupon.id, data)
        return coupon.id
    except PyMongoError as e:
        logger.error("Error saving coupon: %s", e)
        raise StoreError("Failed to save coupon") from e


async def fetch_coupons() -> List[Coupon]:
    try:
        return parse_records(Coupon, await get_all(COUPONS))
    except PyMongoError as e:
        logger.error("Error fetching coupons: %s", e)
        return []


async def delete_coupon(coupon_id: str) -> None:
    try:
        await remove_value(COUPONS, coupon_id)
    except PyMongoError as e:
        logger.error("Error deleting coupon: %s", e)
        raise StoreError("Failed to delete coupon") from e


async def validate_coupon_code(code: str) -> Optional[Coupon]:
    for c in await fetch_coupons():
        if c.is_active and c.matches(code):
            return c
    return None
