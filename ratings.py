"""
Rating aggregation: per-store averages, a user's existing rating, and the
validated upsert used when a user submits or edits a rating.
"""

from typing import Dict, Iterable, List, NamedTuple, Optional

from entity_store import EntityStore
from errors import InvalidScore
from schemas import Rating, RaterEntry

MIN_SCORE = 1
MAX_SCORE = 5

ANONYMOUS_NAME = "Anonymous User"
ANONYMOUS_EMAIL = "-"


class RatingSummary(NamedTuple):
    average: float
    count: int
    user_score: Optional[int] = None


EMPTY_SUMMARY = RatingSummary(0.0, 0, None)


def is_valid_score(score) -> bool:
    # bool is an int subclass; True must not count as a 1-star rating
    return isinstance(score, int) and not isinstance(score, bool) and MIN_SCORE <= score <= MAX_SCORE


class RatingAggregator:
    def __init__(self, store: EntityStore):
        self.store = store

    def ratings_for(self, store_id: str) -> List[Rating]:
        return self.store.list_ratings(store_id=store_id)

    def average_for(self, store_id: str) -> float:
        """Mean score for a store, 0.0 when it has no ratings."""
        return self.summarize([store_id]).get(store_id, EMPTY_SUMMARY).average

    def existing_rating_for(self, user_id: str, store_id: str) -> Optional[int]:
        rating = self.store.find_rating(user_id, store_id)
        return rating.score if rating else None

    def submit(self, user_id: str, store_id: str, score: int) -> Rating:
        if not is_valid_score(score):
            raise InvalidScore()
        return self.store.upsert_rating(user_id, store_id, score)

    def summarize(self, store_ids: Optional[Iterable[str]] = None, user_id: Optional[str] = None) -> Dict[str, RatingSummary]:
        """
        Average, count and (optionally) one user's score per store.

        Stores without ratings are absent from the result; callers fall back
        to EMPTY_SUMMARY.
        """
        pipeline = []
        if store_ids is not None:
            pipeline.append({"$match": {"store_id": {"$in": list(store_ids)}}})
        pipeline.append({"$group": {"_id": "$store_id", "avg": {"$avg": "$score"}, "count": {"$sum": 1}}})

        mine: Dict[str, int] = {}
        if user_id is not None:
            mine = {r.store_id: r.score for r in self.store.list_ratings(user_id=user_id)}

        result = {}
        for row in self.store.ratings.aggregate(pipeline):
            result[row["_id"]] = RatingSummary(float(row["avg"]), row["count"], mine.get(row["_id"]))
        return result

    def raters_for(self, store_id: str) -> List[RaterEntry]:
        """Ratings for a store joined with the rater's name and email."""
        entries = []
        for r in self.ratings_for(store_id):
            rater = self.store.get_user(r.user_id)
            entries.append(RaterEntry(
                rating_id=r.id,
                user_id=r.user_id,
                user_name=rater.name if rater else ANONYMOUS_NAME,
                user_email=rater.email if rater else ANONYMOUS_EMAIL,
                score=r.score,
                created_at=r.created_at,
            ))
        return entries
