import stats


def test_empty_store_counts_are_zero(store):
    result = stats.compute(store)
    assert (result.total_users, result.total_stores, result.total_ratings) == (0, 0, 0)


def test_seeded_counts(seeded_store):
    result = stats.compute(seeded_store)
    assert result.total_users == 4
    assert result.total_stores == 4
    assert result.total_ratings == 2


def test_upsert_does_not_inflate_rating_count(seeded_store):
    seeded_store.upsert_rating("u-2", "s-1", 1)
    assert stats.compute(seeded_store).total_ratings == 2
    seeded_store.upsert_rating("u-2", "s-3", 1)
    assert stats.compute(seeded_store).total_ratings == 3
