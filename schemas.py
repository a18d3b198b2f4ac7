"""
Database Schemas for the Rating Platform

MongoDB collections are described below with Pydantic models. Documents keep
their identifier in `_id`; the models expose it as `id`.

Collections:
- users: system users (admin, normal user, store owner)
- stores: registered stores
- ratings: one rating per user and store
- session: the single current-session document
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class Role(str, Enum):
    ADMIN = "admin"
    USER = "user"
    OWNER = "owner"

    @property
    def label(self) -> str:
        return ROLE_LABELS[self]


ROLE_LABELS = {
    Role.ADMIN: "System Administrator",
    Role.USER: "Normal User",
    Role.OWNER: "Store Owner",
}


class Document(BaseModel):
    """Base for persisted records; maps Mongo's `_id` onto `id`."""

    @classmethod
    def from_doc(cls, doc: Dict[str, Any]):
        d = {k: v for k, v in doc.items() if k != "_id"}
        d["id"] = doc["_id"]
        return cls.model_validate(d)

    def to_doc(self) -> Dict[str, Any]:
        d = self.model_dump(mode="json")
        d["_id"] = d.pop("id")
        return d


class User(Document):
    id: str
    name: str
    email: str
    address: str
    role: Role = Role.USER
    password_hash: str = Field(..., description="BCrypt hash of password")

    def public(self) -> "PublicUser":
        return PublicUser(**self.model_dump(exclude={"password_hash"}))


class Store(Document):
    id: str
    owner_id: str = Field(..., description="Reference to users._id (owner)")
    name: str
    email: str
    address: str
    description: Optional[str] = None


class Rating(Document):
    id: str
    user_id: str
    store_id: str
    score: int = Field(..., ge=1, le=5)
    created_at: datetime


class Session(BaseModel):
    user: User
    token: Optional[str] = None


# API views

class PublicUser(BaseModel):
    id: str
    name: str
    email: str
    address: str
    role: Role


class AdminUserView(PublicUser):
    average_rating: Optional[float] = None


class StoreWithRating(Store):
    average_rating: float = 0.0
    total_ratings: int = 0
    user_rating: Optional[int] = None


class RaterEntry(BaseModel):
    rating_id: str
    user_id: str
    user_name: str
    user_email: str
    score: int
    created_at: datetime


class OwnerStoreReport(BaseModel):
    store: Store
    average_rating: float
    total_ratings: int
    ratings: List[RaterEntry]


class DashboardStats(BaseModel):
    total_users: int
    total_stores: int
    total_ratings: int
