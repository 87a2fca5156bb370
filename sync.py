"""
sync.py – Core synchronisation logic for IMDb -> Trakt.

A run has three phases, executed strictly in order by :meth:`Syncer.run`:

1. **Hydrate** – read every IMDb list (either the ones configured, or all of
   them), the watchlist and the ratings, and pair each with its Trakt
   counterpart.  Trakt lists that do not exist yet are created on the way.
2. **Sync lists** – push the membership difference of every pairing to
   Trakt, then delete Trakt lists that no longer have an IMDb counterpart.
3. **Sync ratings** – push rating additions/removals (plus the matching
   watch-history entries) and overwrite ratings whose value changed on IMDb.

IMDb is the source of record: whatever Trakt holds is made to match it.
Nothing is cached between runs.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any

from config import parse_list_ids
from errors import ApiError, ItemIdError, NotFoundError, SyncError
from imdb import ImdbClient
from models import DataPair, Item, contains
from trakt import TraktClient, format_list_slug

logger = logging.getLogger(__name__)

WATCHLIST_NAME: str = "watchlist"


class Syncer:
    """Drives one IMDb -> Trakt run.

    Args:
        config: The configuration dict from :func:`config.load_config`.
        imdb_client: Source of record; anything exposing the
            :class:`imdb.ImdbClient` operations.
        trakt_client: Mirror; anything exposing the
            :class:`trakt.TraktClient` operations.
    """

    def __init__(
        self,
        config: dict[str, Any],
        imdb_client: ImdbClient,
        trakt_client: TraktClient,
    ) -> None:
        self._imdb = imdb_client
        self._trakt = trakt_client
        self.lists: list[DataPair] = [
            DataPair(imdb_list_id=list_id)
            for list_id in parse_list_ids(config.get("imdb_list_ids"))
        ]
        self.ratings: DataPair = DataPair()

    def run(self) -> None:
        """Hydrate, then sync lists, then sync ratings.

        Raises:
            SyncError: On the first unrecoverable failure, chained to the
                underlying :class:`~errors.ApiError` / :class:`~errors.ItemIdError`.
        """
        for phase, step in (
            ("hydrating the syncer", self.hydrate),
            ("syncing lists", self.sync_lists),
            ("syncing ratings", self.sync_ratings),
        ):
            try:
                step()
            except (ApiError, ItemIdError) as exc:
                raise SyncError(f"failure {phase}: {exc}") from exc
        logger.info("Successfully synced Trakt with IMDb")

    # ------------------------------------------------------------------
    # Hydration
    # ------------------------------------------------------------------

    def hydrate(self) -> None:
        if self.lists:
            self._cleanup_lists()
        else:
            self.lists = self._imdb.lists_discover_all()

        watchlist_id, watchlist_items = self._imdb.watchlist_get()
        self.lists.append(
            DataPair(
                imdb_list_id=watchlist_id,
                name=WATCHLIST_NAME,
                is_watchlist=True,
                imdb_items=watchlist_items,
            )
        )

        for pair in self.lists:
            if pair.is_watchlist:
                pair.trakt_items = self._trakt.watchlist_get()
                continue

            if not pair.trakt_list_id:
                pair.trakt_list_id = format_list_slug(pair.name)
            try:
                pair.trakt_items = self._trakt.list_get(pair.trakt_list_id)
            except NotFoundError as exc:
                logger.warning(
                    "Trakt list %s does not exist yet, creating it: %s",
                    pair.trakt_list_id,
                    exc,
                )
                self._trakt.list_create(pair.trakt_list_id, pair.name)
                pair.trakt_items = []

        self.ratings = DataPair(
            imdb_items=self._imdb.ratings_get(),
            trakt_items=self._trakt.ratings_get(),
        )
        logger.info(
            "Hydrated %d lists and %d IMDb ratings",
            len(self.lists),
            len(self.ratings.imdb_items),
        )

    def _cleanup_lists(self) -> None:
        """Fetch the configured IMDb lists, skipping duplicates and missing ones."""
        seen: set[str] = set()
        lists: list[DataPair] = []
        for pair in self.lists:
            if pair.imdb_list_id in seen:
                continue
            seen.add(pair.imdb_list_id)
            try:
                name, items = self._imdb.list_get(pair.imdb_list_id)
            except NotFoundError as exc:
                logger.warning(
                    "Skipping IMDb list %s, it does not exist: %s",
                    pair.imdb_list_id,
                    exc,
                )
                continue
            lists.append(
                DataPair(
                    imdb_list_id=pair.imdb_list_id,
                    trakt_list_id=format_list_slug(name),
                    name=name,
                    imdb_items=items,
                )
            )
        self.lists = lists

    # ------------------------------------------------------------------
    # Lists
    # ------------------------------------------------------------------

    def sync_lists(self) -> None:
        for pair in self.lists:
            diff = pair.difference()
            if pair.is_watchlist:
                if diff.to_add:
                    self._trakt.watchlist_items_add(diff.to_add)
                if diff.to_remove:
                    self._trakt.watchlist_items_remove(diff.to_remove)
            else:
                if diff.to_add:
                    self._trakt.list_items_add(pair.trakt_list_id, diff.to_add)
                if diff.to_remove:
                    self._trakt.list_items_remove(pair.trakt_list_id, diff.to_remove)
            logger.info(
                "List %r: %d added, %d removed",
                pair.name,
                len(diff.to_add),
                len(diff.to_remove),
            )

        # Trakt lists without an IMDb counterpart
        for trakt_list in self._trakt.lists_get_all():
            if not contains(self.lists, trakt_list["name"]):
                logger.info("Removing orphaned Trakt list %r", trakt_list["name"])
                self._trakt.list_delete(trakt_list["slug"])

    # ------------------------------------------------------------------
    # Ratings
    # ------------------------------------------------------------------

    def sync_ratings(self) -> None:
        diff = self.ratings.difference()

        if diff.to_add:
            self._trakt.ratings_add(diff.to_add)
            history_to_add = self._filter_by_history(diff.to_add, watched=False)
            if history_to_add:
                self._trakt.history_add(history_to_add)

        if diff.to_remove:
            self._trakt.ratings_remove(diff.to_remove)
            history_to_remove = self._filter_by_history(diff.to_remove, watched=True)
            if history_to_remove:
                self._trakt.history_remove(history_to_remove)

        updates = self.rating_updates()
        if updates:
            self._trakt.ratings_add(updates)

        logger.info(
            "Ratings: %d added, %d removed, %d updated",
            len(diff.to_add),
            len(diff.to_remove),
            len(updates),
        )

    def _filter_by_history(self, items: list[Item], *, watched: bool) -> list[Item]:
        """Keep the items whose Trakt history is non-empty (*watched*) or empty."""
        selected: list[Item] = []
        for item in items:
            history = self._trakt.history_get(item.type, item.id)
            if bool(history) == watched:
                selected.append(item)
        return selected

    def rating_updates(self) -> list[Item]:
        """Return Trakt ratings restamped with the differing IMDb rating.

        Only titles rated on both sides are considered.  The Trakt
        collection itself is left untouched; new items are returned.
        """
        updates: list[Item] = []
        for imdb_item in self.ratings.imdb_items:
            if imdb_item.rating is None:
                continue
            for trakt_item in self.ratings.trakt_items:
                if (
                    trakt_item.type == imdb_item.type
                    and trakt_item.id == imdb_item.id
                    and trakt_item.rating != imdb_item.rating
                ):
                    updates.append(
                        replace(
                            trakt_item,
                            rating=imdb_item.rating,
                            rated_at=imdb_item.rated_at,
                        )
                    )
        return updates


def run_sync(config: dict[str, Any]) -> None:
    """Build both clients from *config* and run one sync.

    Raises:
        SyncError: If any phase fails.
    """
    imdb_client = ImdbClient(config)
    trakt_client = TraktClient(config)
    try:
        trakt_client.authenticate()
    except ApiError as exc:
        raise SyncError(f"failure authenticating with Trakt: {exc}") from exc
    Syncer(config, imdb_client, trakt_client).run()
