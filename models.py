"""
models.py – Data structures shared by the IMDb/Trakt clients and the syncer.

An :class:`Item` is a single title keyed by its IMDb id.  A
:class:`DataPair` holds one IMDb collection together with its Trakt
counterpart, and :func:`difference` computes what has to change on the Trakt
side for the two to match.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum


class ItemType(str, Enum):
    MOVIE = "movie"
    SHOW = "show"
    EPISODE = "episode"

    @property
    def plural(self) -> str:
        """Name of the Trakt payload / URL segment for this type."""
        return f"{self.value}s"


@dataclass(frozen=True)
class Item:
    """A single movie, show or episode.

    ``rating`` and ``rated_at`` are only populated when the item was read from
    a ratings collection.
    """

    id: str
    type: ItemType
    rating: int | None = None
    rated_at: datetime | None = None
    title: str | None = field(default=None, compare=False)

    def rated_at_utc(self) -> str | None:
        """Return ``rated_at`` as a UTC ISO-8601 string (``...Z``)."""
        if self.rated_at is None:
            return None
        value = self.rated_at
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.000Z")


@dataclass(frozen=True)
class Diff:
    to_add: list[Item]
    to_remove: list[Item]

    def is_empty(self) -> bool:
        return not self.to_add and not self.to_remove


@dataclass
class DataPair:
    """An IMDb collection paired with its Trakt mirror.

    The ratings pairing leaves the id/name fields empty.
    """

    imdb_list_id: str = ""
    trakt_list_id: str | None = None
    name: str = ""
    is_watchlist: bool = False
    imdb_items: list[Item] = field(default_factory=list)
    trakt_items: list[Item] = field(default_factory=list)

    def difference(self) -> Diff:
        return difference(self.imdb_items, self.trakt_items)


def _unique_by_id(items: list[Item]) -> dict[str, Item]:
    unique: dict[str, Item] = {}
    for item in items:
        unique.setdefault(item.id, item)
    return unique


def difference(imdb_items: list[Item], trakt_items: list[Item]) -> Diff:
    """Compare two collections by IMDb id.

    Items present on both sides are left out entirely, even when their
    ratings differ.  Order of first appearance is preserved and each id is
    reported at most once.
    """
    imdb_by_id = _unique_by_id(imdb_items)
    trakt_by_id = _unique_by_id(trakt_items)
    to_add = [item for key, item in imdb_by_id.items() if key not in trakt_by_id]
    to_remove = [item for key, item in trakt_by_id.items() if key not in imdb_by_id]
    return Diff(to_add=to_add, to_remove=to_remove)


def contains(pairs: list[DataPair], name: str) -> bool:
    """Return whether any pairing is named *name*."""
    for pair in pairs:
        if pair.name == name:
            return True
    return False
