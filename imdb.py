"""
imdb.py – IMDb account scraping client.

IMDb has no public API for private lists or ratings, so :class:`ImdbClient`
signs requests with the ``at-main`` / ``ubid-main`` session cookies of the
user's browser and reads the CSV exports that IMDb offers for every list and
for the ratings page.  List names and ids are pulled out of the rendered HTML
with regular expressions.
"""

from __future__ import annotations

import csv
import html
import io
import logging
import re
from datetime import datetime, timezone
from typing import Any

import requests

from errors import ApiError, ItemIdError, NotFoundError, NotTitleListError
from models import DataPair, Item, ItemType
from trakt import format_list_slug

logger = logging.getLogger(__name__)

IMDB_BASE: str = "https://www.imdb.com"

# Maximum number of "your lists" pages to scrape (safety guard)
_MAX_PAGES: int = 20

_REQUEST_HEADERS: dict[str, str] = {
    "User-Agent": (
        "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/122.0.0.0 Safari/537.36"
    ),
    "Accept-Language": "en-US,en;q=0.9",
}

# Normalised ``Title Type`` column values that are not movies.
_TITLE_TYPES: dict[str, ItemType] = {
    "tvseries": ItemType.SHOW,
    "tvminiseries": ItemType.SHOW,
    "tvepisode": ItemType.EPISODE,
}

_TITLE_ID_RE = re.compile(r"^tt\d+$")
# people (nm) and image (rm) lists share the list export format
_NON_TITLE_ID_RE = re.compile(r"^(nm|rm)\d+$")
_LIST_LINK_RE = re.compile(r'href="/list/(ls\d+)/?[^"]*"')


def _item_type(title_type: str) -> ItemType:
    key = re.sub(r"[^a-z]", "", title_type.lower())
    return _TITLE_TYPES.get(key, ItemType.MOVIE)


def _parse_rated_at(value: str) -> datetime | None:
    value = value.strip()
    if not value:
        return None
    for fmt in ("%Y-%m-%d", "%Y-%m-%dT%H:%M:%S"):
        try:
            return datetime.strptime(value, fmt).replace(tzinfo=timezone.utc)
        except ValueError:
            continue
    raise ItemIdError(f"Unparseable IMDb rating date: {value!r}")


def parse_export(text: str) -> list[Item]:
    """Parse an IMDb list or ratings CSV export into items.

    Rows without a ``tt`` id make the whole export invalid, since silently
    dropping them would make the item look removed on the next diff.

    Raises:
        NotTitleListError: If the export lists people or images.
        ItemIdError: If a row has no usable ``Const`` value or a malformed
            rating.
    """
    items: list[Item] = []
    reader = csv.DictReader(io.StringIO(text.lstrip("\ufeff")))
    for row in reader:
        title_id = (row.get("Const") or "").strip()
        if _NON_TITLE_ID_RE.match(title_id):
            raise NotTitleListError(f"IMDb export is not a title list: {title_id}")
        if not _TITLE_ID_RE.match(title_id):
            raise ItemIdError(f"IMDb export row without a title id: {row!r}")

        rating: int | None = None
        raw_rating = (row.get("Your Rating") or "").strip()
        if raw_rating:
            try:
                rating = int(raw_rating)
            except ValueError as exc:
                raise ItemIdError(
                    f"Invalid rating {raw_rating!r} for {title_id}"
                ) from exc

        items.append(
            Item(
                id=title_id,
                type=_item_type(row.get("Title Type") or ""),
                rating=rating,
                rated_at=_parse_rated_at(row.get("Date Rated") or ""),
                title=row.get("Title") or None,
            )
        )
    return items


def _extract_list_name(page: str) -> str | None:
    match = re.search(r'<meta property="og:title" content="([^"]+)"', page)
    if not match:
        match = re.search(r"<h1[^>]*>(.*?)</h1>", page, re.DOTALL)
    if not match:
        return None
    name = re.sub(r"<[^>]+>", "", match.group(1))
    name = html.unescape(name).strip()
    if name.endswith(" - IMDb"):
        name = name[: -len(" - IMDb")].rstrip()
    return name or None


class ImdbClient:
    """Read-only client for one IMDb account."""

    def __init__(self, config: dict[str, Any], *, timeout: int = 30) -> None:
        self._timeout = timeout
        self._session = requests.Session()
        self._session.headers.update(_REQUEST_HEADERS)
        for cookie, key in (
            ("at-main", "imdb_cookie_at_main"),
            ("ubid-main", "imdb_cookie_ubid_main"),
        ):
            self._session.cookies.set(
                cookie, str(config.get(key) or ""), domain=".imdb.com"
            )

        user_id = str(config.get("imdb_user_id") or "").strip()
        self._user_id: str | None = (
            user_id if user_id and user_id != "scrape" else None
        )

    # ------------------------------------------------------------------
    # HTTP plumbing
    # ------------------------------------------------------------------

    def _get(self, path: str, what: str) -> requests.Response:
        url = f"{IMDB_BASE}{path}"
        try:
            resp = self._session.get(url, timeout=self._timeout)
        except requests.exceptions.RequestException as exc:
            raise ApiError(f"Failed to fetch IMDb {what}: {exc!s}") from exc

        if resp.status_code == 404:
            raise NotFoundError(f"IMDb {what} not found ({url})")
        if resp.status_code >= 400:
            raise ApiError(
                f"Failed to fetch IMDb {what} (Status {resp.status_code})",
                status_code=resp.status_code,
            )
        return resp

    @property
    def user_id(self) -> str:
        """The ``ur\\d+`` id of the account, scraped on first use if unset."""
        if self._user_id is None:
            resp = self._get("/profile", "profile")
            match = re.search(r"/user/(ur\d+)", resp.text)
            if not match:
                raise ApiError(
                    "Could not determine the IMDb user id; check the session cookies"
                )
            self._user_id = match.group(1)
            logger.debug("Discovered IMDb user id %s", self._user_id)
        return self._user_id

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    def list_get(self, list_id: str) -> tuple[str, list[Item]]:
        """Return the display name and items of list *list_id*.

        Raises:
            NotFoundError: If the list does not exist (or is not visible).
            ApiError: For any other HTTP failure.
            NotTitleListError: If the list holds people or images.
            ItemIdError: If the export contains a malformed row.
        """
        page = self._get(f"/list/{list_id}/", f"list {list_id}")
        name = _extract_list_name(page.text)
        if name is None:
            logger.warning("Could not read the name of IMDb list %s; using its id", list_id)
            name = list_id
        export = self._get(f"/list/{list_id}/export", f"list {list_id} export")
        return name, parse_export(export.text)

    def lists_discover_all(self) -> list[DataPair]:
        """Scrape every list owned by the account, with its contents."""
        list_ids: list[str] = []
        page = 1
        while True:
            resp = self._get(
                f"/user/{self.user_id}/lists?page={page}", f"lists page {page}"
            )
            page_html = resp.text

            for list_id in _LIST_LINK_RE.findall(page_html):
                if list_id not in list_ids:
                    list_ids.append(list_id)

            has_next = re.search(r'class="[^"]*next-page[^"]*"', page_html) or re.search(
                r'rel="next"', page_html
            )
            if not has_next or page >= _MAX_PAGES:
                break
            page += 1

        logger.info("Discovered %d IMDb lists", len(list_ids))
        pairs: list[DataPair] = []
        for list_id in list_ids:
            try:
                name, items = self.list_get(list_id)
            except NotTitleListError:
                logger.warning("Skipping IMDb list %s: it does not contain titles", list_id)
                continue
            pairs.append(
                DataPair(
                    imdb_list_id=list_id,
                    trakt_list_id=format_list_slug(name),
                    name=name,
                    imdb_items=items,
                )
            )
        return pairs

    def watchlist_get(self) -> tuple[str, list[Item]]:
        """Return the list id backing the watchlist and its items."""
        resp = self._get(f"/user/{self.user_id}/watchlist", "watchlist")
        match = re.search(r'"listId"\s*:\s*"(ls\d+)"', resp.text) or re.search(
            r"/list/(ls\d+)", resp.text
        )
        if not match:
            raise ApiError("Could not find the IMDb watchlist id")
        list_id = match.group(1)
        export = self._get(f"/list/{list_id}/export", "watchlist export")
        return list_id, parse_export(export.text)

    def ratings_get(self) -> list[Item]:
        """Return every rated title, with ``rating`` and ``rated_at`` set."""
        export = self._get(f"/user/{self.user_id}/ratings/export", "ratings export")
        return parse_export(export.text)
