from datetime import datetime, timezone

from models import Item, ItemType


def movie(imdb_id, rating=None, rated_at=None):
    return Item(id=imdb_id, type=ItemType.MOVIE, rating=rating, rated_at=rated_at)


def rated(imdb_id, rating, day=1, item_type=ItemType.MOVIE):
    return Item(
        id=imdb_id,
        type=item_type,
        rating=rating,
        rated_at=datetime(2024, 1, day, tzinfo=timezone.utc),
    )
