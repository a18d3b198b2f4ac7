from entity_store import RATINGS, STORES, USERS, EntityStore
from schemas import DashboardStats


def compute(store: EntityStore) -> DashboardStats:
    """Collection sizes for the admin overview."""
    return DashboardStats(
        total_users=store.count(USERS),
        total_stores=store.count(STORES),
        total_ratings=store.count(RATINGS),
    )
