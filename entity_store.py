"""
Entity Store.

Persistence facade over the `users`, `stores` and `ratings` collections plus the
single current-session document. Every write touches one document; writes that
span several documents are serialized by the store's writer lock.
"""

import asyncio
import logging
import re
import threading
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

from pymongo import ASCENDING, DESCENDING
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from schemas import Rating, Role, Session, Store, User
from security import hash_password

logger = logging.getLogger(__name__)

USERS = "users"
STORES = "stores"
RATINGS = "ratings"
SESSION = "session"
SESSION_ID = "current"

USER_SEARCH_FIELDS = ("name", "email", "address", "role")
STORE_SEARCH_FIELDS = ("name", "email", "address")


def new_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:12]}"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def build_query(
    search: Optional[str] = None,
    search_fields: Sequence[str] = (),
    contains: Optional[Dict[str, Optional[str]]] = None,
    exact: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """Mongo filter from a free-text search, per-field substrings and exact matches.

    Substring matches are case-insensitive; `search` matches if any of
    `search_fields` contains it.
    """
    q: Dict[str, Any] = {}
    for field, value in (contains or {}).items():
        if value:
            q[field] = {"$regex": re.escape(value), "$options": "i"}
    for field, value in (exact or {}).items():
        if value is not None:
            q[field] = value.value if isinstance(value, Role) else value
    if search and search_fields:
        pattern = {"$regex": re.escape(search), "$options": "i"}
        clauses = []
        for field in search_fields:
            if field == "role":
                # roles are stored as codes but searched by code or display label
                needle = search.lower()
                roles = [r.value for r in Role if needle in r.value or needle in r.label.lower()]
                clauses.append({"role": {"$in": roles}})
            else:
                clauses.append({field: pattern})
        q["$or"] = clauses
    return q


def _sort_spec(sort_by: str, order: str):
    field = "_id" if sort_by == "id" else sort_by
    return [(field, ASCENDING if order == "asc" else DESCENDING)]


DEMO_USERS = [
    {
        "id": "u-1",
        "name": "Master System Administrator Account 01",
        "email": "admin@example.com",
        "password": "AdminPassword1!",
        "address": "123 Admin St, Tech City, 54321",
        "role": Role.ADMIN,
    },
    {
        "id": "u-2",
        "name": "Johnathan Doe Registered User Account 02",
        "email": "user@example.com",
        "password": "UserPassword1!",
        "address": "456 User Ave, Consumer Town, 12345",
        "role": Role.USER,
    },
    {
        "id": "u-3",
        "name": "Sarah Smith Store Owner Business Owner",
        "email": "owner@example.com",
        "password": "OwnerPassword1!",
        "address": "789 Business Rd, Enterprise Hub, 67890",
        "role": Role.OWNER,
    },
    {
        "id": "u-4",
        "name": "Michael Chen Global Retailer Proprietor",
        "email": "michael@owner.com",
        "password": "OwnerPassword2!",
        "address": "321 Commerce Way, Trade District, 11223",
        "role": Role.OWNER,
    },
]

DEMO_STORES = [
    Store(
        id="s-1",
        owner_id="u-3",
        name="The Tech Emporium Superstore Premium",
        email="tech@emporium.com",
        address="101 Silicon Valley Blvd, CA 94000",
        description="Premier destination for high-end hardware and gadgets.",
    ),
    Store(
        id="s-2",
        owner_id="u-4",
        name="Gourmet Delights & Fine Groceries",
        email="info@gourmetdelights.com",
        address="45 Artisan Lane, Foodie District, NY 10001",
        description="Organic produce, imported cheeses, and artisan breads.",
    ),
    Store(
        id="s-3",
        owner_id="u-3",
        name="Urban Fashion Hub - Downtown",
        email="contact@urbanfashion.com",
        address="77 Trendy Ave, Metropolitan Area, IL 60601",
        description="Latest styles in streetwear and high-end fashion.",
    ),
    Store(
        id="s-4",
        owner_id="u-4",
        name="Eco-Living & Sustainable Home",
        email="hello@ecoliving.com",
        address="12 Green Way, Eco Village, WA 98101",
        description="Everything you need for a zero-waste and sustainable lifestyle.",
    ),
]

# (id, user_id, store_id, score)
DEMO_RATINGS = [
    ("r-1", "u-2", "s-1", 5),
    ("r-2", "u-2", "s-2", 4),
]


class EntityStore:
    """
    Owns all persisted records.

    Args:
        db: pymongo (or mongomock) database handle
        latency_ms: artificial delay awaited by `simulate_latency`
    """

    def __init__(self, db: Database, latency_ms: int = 0):
        self.db = db
        self.latency_ms = latency_ms
        self._write_lock = threading.RLock()

    @property
    def users(self):
        return self.db[USERS]

    @property
    def stores(self):
        return self.db[STORES]

    @property
    def ratings(self):
        return self.db[RATINGS]

    async def simulate_latency(self) -> None:
        if self.latency_ms > 0:
            await asyncio.sleep(self.latency_ms / 1000)

    def ensure_indexes(self) -> None:
        self.ratings.create_index([("user_id", ASCENDING), ("store_id", ASCENDING)], unique=True)
        self.ratings.create_index("store_id")
        self.users.create_index("email")
        self.stores.create_index("owner_id")

    # Users

    def list_users(self, query: Optional[Dict[str, Any]] = None, sort_by: str = "name", order: str = "asc") -> List[User]:
        cursor = self.users.find(query or {}).sort(_sort_spec(sort_by, order))
        return [User.from_doc(d) for d in cursor]

    def get_user(self, user_id: str) -> Optional[User]:
        doc = self.users.find_one({"_id": user_id})
        return User.from_doc(doc) if doc else None

    def find_user_by_email(self, email: str) -> Optional[User]:
        doc = self.users.find_one({"email": email})
        return User.from_doc(doc) if doc else None

    def add_user(self, user: User) -> None:
        self.users.insert_one(user.to_doc())
        logger.info(f"Added user {user.id} ({user.role.value})")

    def set_password_hash(self, user_id: str, password_hash: str) -> bool:
        """Replace a user's hash, and the session copy if it is the same user."""
        with self._write_lock:
            res = self.users.update_one({"_id": user_id}, {"$set": {"password_hash": password_hash}})
            if res.matched_count == 0:
                return False
            self.db[SESSION].update_one(
                {"_id": SESSION_ID, "user.id": user_id},
                {"$set": {"user.password_hash": password_hash}},
            )
        return True

    # Stores

    def list_stores(self, query: Optional[Dict[str, Any]] = None, sort_by: str = "name", order: str = "asc") -> List[Store]:
        cursor = self.stores.find(query or {}).sort(_sort_spec(sort_by, order))
        return [Store.from_doc(d) for d in cursor]

    def get_store(self, store_id: str) -> Optional[Store]:
        doc = self.stores.find_one({"_id": store_id})
        return Store.from_doc(doc) if doc else None

    def stores_owned_by(self, owner_id: str) -> List[Store]:
        return self.list_stores({"owner_id": owner_id})

    def add_store(self, store: Store) -> None:
        self.stores.insert_one(store.to_doc())
        logger.info(f"Added store {store.id} owned by {store.owner_id}")

    # Ratings

    def list_ratings(self, store_id: Optional[str] = None, user_id: Optional[str] = None) -> List[Rating]:
        q: Dict[str, Any] = {}
        if store_id is not None:
            q["store_id"] = store_id
        if user_id is not None:
            q["user_id"] = user_id
        return [Rating.from_doc(d) for d in self.ratings.find(q).sort([("_id", ASCENDING)])]

    def find_rating(self, user_id: str, store_id: str) -> Optional[Rating]:
        doc = self.ratings.find_one({"user_id": user_id, "store_id": store_id})
        return Rating.from_doc(doc) if doc else None

    def upsert_rating(self, user_id: str, store_id: str, score: int) -> Rating:
        """Overwrite the pair's score and timestamp in place, else insert a new rating."""
        with self._write_lock:
            existing = self.find_rating(user_id, store_id)
            if existing is None:
                rating = Rating(id=new_id("r"), user_id=user_id, store_id=store_id, score=score, created_at=utcnow())
                try:
                    self.ratings.insert_one(rating.to_doc())
                    logger.info(f"Inserted rating {rating.id}: user={user_id} store={store_id} score={score}")
                    return rating
                except DuplicateKeyError:
                    # another writer inserted the pair first
                    existing = self.find_rating(user_id, store_id)
            rating = existing.model_copy(update={"score": score, "created_at": utcnow()})
            self.ratings.update_one(
                {"_id": rating.id},
                {"$set": {"score": score, "created_at": rating.to_doc()["created_at"]}},
            )
            logger.info(f"Updated rating {rating.id}: user={user_id} store={store_id} score={score}")
            return rating

    # Session

    def get_session(self) -> Optional[User]:
        doc = self.db[SESSION].find_one({"_id": SESSION_ID})
        if not doc:
            return None
        return Session.model_validate(doc).user

    def session_token(self) -> Optional[str]:
        doc = self.db[SESSION].find_one({"_id": SESSION_ID})
        return doc.get("token") if doc else None

    def set_session(self, user: User, token: Optional[str] = None) -> None:
        doc = Session(user=user, token=token).model_dump(mode="json")
        doc["_id"] = SESSION_ID
        self.db[SESSION].replace_one({"_id": SESSION_ID}, doc, upsert=True)

    def clear_session(self) -> None:
        self.db[SESSION].delete_one({"_id": SESSION_ID})

    # Misc

    def count(self, collection: str) -> int:
        return self.db[collection].count_documents({})

    def seed_demo_data(self) -> bool:
        """Insert the demo users, stores and ratings if no users exist yet."""
        with self._write_lock:
            if self.users.count_documents({}) > 0:
                return False
            for entry in DEMO_USERS:
                self.add_user(User(
                    id=entry["id"],
                    name=entry["name"],
                    email=entry["email"],
                    address=entry["address"],
                    role=entry["role"],
                    password_hash=hash_password(entry["password"]),
                ))
            for store in DEMO_STORES:
                self.add_store(store)
            now = utcnow()
            for rating_id, user_id, store_id, score in DEMO_RATINGS:
                rating = Rating(id=rating_id, user_id=user_id, store_id=store_id, score=score, created_at=now)
                self.ratings.insert_one(rating.to_doc())
        logger.info(
            f"Seeded demo data: {len(DEMO_USERS)} users, {len(DEMO_STORES)} stores, "
            f"{len(DEMO_RATINGS)} ratings"
        )
        return True
