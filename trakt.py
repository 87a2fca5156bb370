"""
trakt.py – Trakt API v2 client.

:class:`TraktClient` covers the endpoints the syncer writes to: personal
lists, the watchlist, ratings and watch history.  Items are always addressed
by their IMDb id, so the payloads built here never need Trakt's own ids.

Authentication uses an OAuth access token.  When no token is configured the
client signs in to trakt.tv with the account's username and password,
authorises the API application and exchanges the resulting code for a token,
so unattended runs only need long-lived credentials.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime
from typing import Any
from urllib.parse import urlencode

import requests

from errors import ApiError, ItemIdError, NotFoundError
from models import Item, ItemType

logger = logging.getLogger(__name__)

TRAKT_API_BASE: str = "https://api.trakt.tv"
TRAKT_WEB_BASE: str = "https://trakt.tv"

# Out-of-band redirect: Trakt renders the code on a page instead of redirecting.
_REDIRECT_URI: str = "urn:ietf:wg:oauth:2.0:oob"

USER_AGENT: str = "imdb-trakt-sync"

_ITEM_TYPES: frozenset[str] = frozenset(t.value for t in ItemType)


def format_list_slug(name: str) -> str:
    """Return the slug Trakt derives for a list called *name*.

    >>> format_list_slug("My Favourite Films (2024)!")
    'my-favourite-films-2024'
    """
    return re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")


def _parse_timestamp(value: str | None) -> datetime | None:
    if not value:
        return None
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def item_from_trakt(entry: dict[str, Any]) -> Item:
    """Convert a Trakt list/watchlist/ratings entry into an :class:`Item`.

    Raises:
        ItemIdError: If the entry is not a movie, show or episode, or carries
            no IMDb id.
    """
    raw_type: str | None = entry.get("type")
    try:
        item_type = ItemType(raw_type)
    except ValueError as exc:
        raise ItemIdError(f"Unsupported Trakt item type {raw_type!r}") from exc

    media: dict[str, Any] = entry.get(item_type.value) or {}
    imdb_id: str | None = (media.get("ids") or {}).get("imdb")
    if not imdb_id:
        raise ItemIdError(
            f"Trakt {item_type.value} {media.get('title')!r} has no IMDb id"
        )
    return Item(
        id=imdb_id,
        type=item_type,
        rating=entry.get("rating"),
        rated_at=_parse_timestamp(entry.get("rated_at")),
        title=media.get("title"),
    )


def build_payload(
    items: list[Item], *, ratings: bool = False, watched: bool = False
) -> dict[str, list[dict[str, Any]]]:
    """Group *items* into the ``movies`` / ``shows`` / ``episodes`` body Trakt expects.

    Args:
        items: Items to send.
        ratings: Include ``rating`` and ``rated_at`` (ratings endpoints).
        watched: Include ``watched_at``, taken from the rating date (history
            endpoint).
    """
    payload: dict[str, list[dict[str, Any]]] = {}
    for item in items:
        entry: dict[str, Any] = {"ids": {"imdb": item.id}}
        timestamp = item.rated_at_utc()
        if ratings and item.rating is not None:
            entry["rating"] = item.rating
            if timestamp:
                entry["rated_at"] = timestamp
        if watched and timestamp:
            entry["watched_at"] = timestamp
        payload.setdefault(item.type.plural, []).append(entry)
    return payload


def _form_value(page: str, name: str) -> str | None:
    match = re.search(
        rf'name="{re.escape(name)}"[^>]*value="([^"]*)"', page
    ) or re.search(rf'value="([^"]*)"[^>]*name="{re.escape(name)}"', page)
    return match.group(1) if match else None


def _auth_code(page: str) -> str | None:
    match = re.search(r'id="auth-code"[^>]*>\s*([^<\s]+)\s*<', page)
    return match.group(1) if match else None


class TraktClient:
    """Read/write client for one Trakt account."""

    def __init__(
        self,
        config: dict[str, Any],
        *,
        base_url: str = TRAKT_API_BASE,
        web_url: str = TRAKT_WEB_BASE,
        timeout: int = 30,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._web_url = web_url.rstrip("/")
        self._timeout = timeout
        self._client_id = str(config.get("trakt_client_id") or "")
        self._client_secret = str(config.get("trakt_client_secret") or "")
        self._username = str(config.get("trakt_username") or "")
        self._password = str(config.get("trakt_password") or "")
        self._access_token = str(config.get("trakt_access_token") or "")

        self._session = requests.Session()
        self._session.headers.update(
            {
                "trakt-api-key": self._client_id,
                "trakt-api-version": "2",
                "Content-Type": "application/json",
                "User-Agent": USER_AGENT,
            }
        )
        if self._access_token:
            self._session.headers["Authorization"] = f"Bearer {self._access_token}"

    # ------------------------------------------------------------------
    # Authentication
    # ------------------------------------------------------------------

    def authenticate(self) -> None:
        """Make sure API calls carry a bearer token.

        Raises:
            ApiError: If signing in, authorising or the code exchange fails.
        """
        if self._access_token:
            return
        code = self._authorize_with_password()
        data = self._request(
            "POST",
            "/oauth/token",
            "exchange Trakt authorisation code",
            json={
                "code": code,
                "client_id": self._client_id,
                "client_secret": self._client_secret,
                "redirect_uri": _REDIRECT_URI,
                "grant_type": "authorization_code",
            },
        )
        token = (data or {}).get("access_token")
        if not token:
            raise ApiError("Trakt token exchange returned no access token")
        self._access_token = token
        self._session.headers["Authorization"] = f"Bearer {token}"
        logger.info("Obtained Trakt access token for %s", self._username)

    def _web(
        self, web: requests.Session, method: str, path: str, what: str, **kwargs: Any
    ) -> requests.Response:
        try:
            resp = web.request(
                method, f"{self._web_url}{path}", timeout=self._timeout, **kwargs
            )
        except requests.exceptions.RequestException as exc:
            raise ApiError(f"Failed to {what}: {exc!s}") from exc
        if resp.status_code >= 400:
            raise ApiError(
                f"Failed to {what} (Status {resp.status_code})",
                status_code=resp.status_code,
            )
        return resp

    def _authorize_with_password(self) -> str:
        web = requests.Session()
        web.headers["User-Agent"] = USER_AGENT

        signin = self._web(web, "GET", "/auth/signin", "load Trakt sign-in page")
        self._web(
            web,
            "POST",
            "/auth/signin",
            "sign in to Trakt",
            data={
                "authenticity_token": _form_value(signin.text, "authenticity_token") or "",
                "user[login]": self._username,
                "user[password]": self._password,
                "user[remember_me]": "1",
            },
        )

        query = urlencode(
            {
                "response_type": "code",
                "client_id": self._client_id,
                "redirect_uri": _REDIRECT_URI,
            }
        )
        page = self._web(
            web, "GET", f"/oauth/authorize?{query}", "open Trakt authorisation page"
        )
        code = _auth_code(page.text)
        if code is None:
            # First run for this application: confirm the authorisation form.
            page = self._web(
                web,
                "POST",
                "/oauth/authorize",
                "authorise Trakt application",
                data={
                    "authenticity_token": _form_value(page.text, "authenticity_token") or "",
                    "client_id": self._client_id,
                    "redirect_uri": _REDIRECT_URI,
                    "response_type": "code",
                    "commit": "Yes",
                },
            )
            code = _auth_code(page.text)
        if code is None:
            raise ApiError("Trakt authorisation failed; check username and password")
        return code

    # ------------------------------------------------------------------
    # HTTP plumbing
    # ------------------------------------------------------------------

    def _request(
        self, method: str, path: str, what: str, *, json: Any = None
    ) -> Any:
        url = f"{self._base_url}{path}"
        try:
            resp = self._session.request(method, url, json=json, timeout=self._timeout)
        except requests.exceptions.RequestException as exc:
            raise ApiError(f"Failed to {what}: {exc!s}") from exc

        if resp.status_code == 404:
            raise NotFoundError(f"Failed to {what}: not found ({method} {path})")
        if resp.status_code >= 400:
            raise ApiError(
                f"Failed to {what} (Status {resp.status_code}): {resp.text[:200]}",
                status_code=resp.status_code,
            )
        if resp.status_code == 204 or not resp.content:
            return None
        return resp.json()

    def _send(self, path: str, what: str, payload: dict[str, Any]) -> None:
        data = self._request("POST", path, what, json=payload)
        not_found = (data or {}).get("not_found") or {}
        for kind, entries in not_found.items():
            if entries:
                logger.warning("Trakt could not match %d %s while trying to %s", len(entries), kind, what)

    def _items(self, path: str, what: str) -> list[Item]:
        data = self._request("GET", path, what) or []
        items: list[Item] = []
        skipped = 0
        for entry in data:
            # seasons and people can be rated or listed on trakt.tv but have no IMDb title
            if entry.get("type") not in _ITEM_TYPES:
                skipped += 1
                continue
            items.append(item_from_trakt(entry))
        if skipped:
            logger.info("Ignored %d unsupported entries while trying to %s", skipped, what)
        return items

    # ------------------------------------------------------------------
    # Lists
    # ------------------------------------------------------------------

    def list_get(self, list_id: str) -> list[Item]:
        return self._items(
            f"/users/{self._username}/lists/{list_id}/items",
            f"fetch Trakt list {list_id}",
        )

    def list_create(self, list_id: str, name: str) -> None:
        self._request(
            "POST",
            f"/users/{self._username}/lists",
            f"create Trakt list {list_id}",
            json={"name": name, "privacy": "private"},
        )
        logger.info("Created Trakt list %r (%s)", name, list_id)

    def list_delete(self, slug: str) -> None:
        self._request(
            "DELETE", f"/users/{self._username}/lists/{slug}", f"delete Trakt list {slug}"
        )
        logger.info("Deleted Trakt list %s", slug)

    def lists_get_all(self) -> list[dict[str, str]]:
        """Return ``{"name", "slug"}`` for every personal list."""
        data = self._request(
            "GET", f"/users/{self._username}/lists", "fetch Trakt lists"
        ) or []
        return [
            {"name": entry.get("name", ""), "slug": (entry.get("ids") or {}).get("slug", "")}
            for entry in data
        ]

    def list_items_add(self, list_id: str, items: list[Item]) -> None:
        self._send(
            f"/users/{self._username}/lists/{list_id}/items",
            f"add items to Trakt list {list_id}",
            build_payload(items),
        )

    def list_items_remove(self, list_id: str, items: list[Item]) -> None:
        self._send(
            f"/users/{self._username}/lists/{list_id}/items/remove",
            f"remove items from Trakt list {list_id}",
            build_payload(items),
        )

    # ------------------------------------------------------------------
    # Watchlist
    # ------------------------------------------------------------------

    def watchlist_get(self) -> list[Item]:
        return self._items("/sync/watchlist", "fetch Trakt watchlist")

    def watchlist_items_add(self, items: list[Item]) -> None:
        self._send("/sync/watchlist", "add items to Trakt watchlist", build_payload(items))

    def watchlist_items_remove(self, items: list[Item]) -> None:
        self._send(
            "/sync/watchlist/remove",
            "remove items from Trakt watchlist",
            build_payload(items),
        )

    # ------------------------------------------------------------------
    # Ratings
    # ------------------------------------------------------------------

    def ratings_get(self) -> list[Item]:
        return self._items("/sync/ratings", "fetch Trakt ratings")

    def ratings_add(self, items: list[Item]) -> None:
        """Add or overwrite ratings; Trakt treats this endpoint as an upsert."""
        self._send("/sync/ratings", "add Trakt ratings", build_payload(items, ratings=True))

    def ratings_remove(self, items: list[Item]) -> None:
        self._send("/sync/ratings/remove", "remove Trakt ratings", build_payload(items))

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    def history_get(self, item_type: ItemType, item_id: str) -> list[dict[str, Any]]:
        """Return the raw watch-history entries of one title."""
        data = self._request(
            "GET",
            f"/sync/history/{item_type.plural}/{item_id}",
            f"fetch Trakt history for {item_type.value} {item_id}",
        )
        return list(data or [])

    def history_add(self, items: list[Item]) -> None:
        self._send("/sync/history", "add Trakt history", build_payload(items, watched=True))

    def history_remove(self, items: list[Item]) -> None:
        self._send("/sync/history/remove", "remove Trakt history", build_payload(items))
