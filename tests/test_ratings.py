"""
Tests for rating aggregation and the submit upsert.
"""

import pytest

from errors import InvalidScore
from ratings import ANONYMOUS_NAME, EMPTY_SUMMARY, is_valid_score
from schemas import Role, User


def test_average_with_no_ratings_is_zero(aggregator):
    assert aggregator.average_for("s-1") == 0


def test_average_is_exact_mean(aggregator):
    for user_id, score in (("u-a", 5), ("u-b", 4), ("u-c", 3)):
        aggregator.submit(user_id, "s-1", score)
    assert aggregator.average_for("s-1") == 4.0


def test_resubmit_overwrites(aggregator):
    aggregator.submit("u-a", "s-1", 3)
    aggregator.submit("u-a", "s-1", 5)
    ratings = aggregator.ratings_for("s-1")
    assert len(ratings) == 1
    assert ratings[0].score == 5


def test_end_to_end_example(aggregator):
    aggregator.submit("A", "s-1", 5)
    aggregator.submit("B", "s-1", 3)
    assert aggregator.average_for("s-1") == 4.0
    assert aggregator.existing_rating_for("B", "s-1") == 3

    aggregator.submit("B", "s-1", 1)
    assert aggregator.average_for("s-1") == 3.0


def test_existing_rating_missing(aggregator):
    assert aggregator.existing_rating_for("A", "s-1") is None


@pytest.mark.parametrize("score", [0, 6, -1, 2.5, "3", True, None])
def test_submit_rejects_invalid_scores(aggregator, score):
    with pytest.raises(InvalidScore):
        aggregator.submit("A", "s-1", score)
    assert aggregator.ratings_for("s-1") == []


def test_is_valid_score_bounds():
    assert is_valid_score(1) and is_valid_score(5)
    assert not is_valid_score(False)


def test_summarize_per_store(aggregator):
    aggregator.submit("A", "s-1", 5)
    aggregator.submit("B", "s-1", 2)
    aggregator.submit("A", "s-2", 4)

    summaries = aggregator.summarize(["s-1", "s-2", "s-3"], user_id="B")
    assert summaries["s-1"].average == 3.5
    assert summaries["s-1"].count == 2
    assert summaries["s-1"].user_score == 2
    assert summaries["s-2"].user_score is None
    assert summaries.get("s-3", EMPTY_SUMMARY) == EMPTY_SUMMARY


def test_summarize_all_stores(aggregator):
    aggregator.submit("A", "s-1", 5)
    aggregator.submit("A", "s-9", 1)
    assert set(aggregator.summarize()) == {"s-1", "s-9"}


def test_raters_for_joins_user_identity(aggregator):
    aggregator.store.add_user(User(
        id="A", name="Alice Anderson Frequent Shopper", email="alice@example.com",
        address="1 Road", role=Role.USER, password_hash="x",
    ))
    aggregator.submit("A", "s-1", 4)
    aggregator.submit("ghost", "s-1", 2)

    entries = {e.user_id: e for e in aggregator.raters_for("s-1")}
    assert entries["A"].user_name == "Alice Anderson Frequent Shopper"
    assert entries["A"].user_email == "alice@example.com"
    assert entries["ghost"].user_name == ANONYMOUS_NAME
    assert entries["ghost"].user_email == "-"


def test_seeded_averages(seeded_store):
    from ratings import RatingAggregator

    agg = RatingAggregator(seeded_store)
    assert agg.average_for("s-1") == 5.0
    assert agg.average_for("s-2") == 4.0
    assert agg.average_for("s-3") == 0
    assert agg.existing_rating_for("u-2", "s-2") == 4
