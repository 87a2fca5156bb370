"""
config.py – Configuration loading and validation.

Settings come from three layers, later ones winning: :data:`DEFAULT_CONFIG`,
an optional ``config.json`` file, and environment variables (a ``.env`` file
in the working directory is loaded first).  The resulting dict is built once
per process and handed to the syncer.
"""

from __future__ import annotations

import json
import os
from typing import Any

from dotenv import load_dotenv

# ---------------------------------------------------------------------------
# Paths
# ---------------------------------------------------------------------------

CONFIG_DIR: str = os.path.join(os.path.dirname(__file__), "config")
CONFIG_FILE: str = os.environ.get(
    "IMDB_TRAKT_SYNC_CONFIG", os.path.join(CONFIG_DIR, "config.json")
)

# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------

# Value of ``imdb_list_ids`` that means "discover every list on the account".
SYNC_ALL_LISTS: str = "all"

DEFAULT_CONFIG: dict[str, Any] = {
    "imdb_list_ids": "",
    "imdb_user_id": "",
    "imdb_cookie_at_main": "",
    "imdb_cookie_ubid_main": "",
    "trakt_client_id": "",
    "trakt_client_secret": "",
    "trakt_username": "",
    "trakt_password": "",
    "trakt_access_token": "",
    "sync_schedule": "",
    "log_level": "INFO",
}

# Config key -> environment variable overriding it.
ENV_VARS: dict[str, str] = {
    "imdb_list_ids": "IMDB_LIST_IDS",
    "imdb_user_id": "IMDB_USER_ID",
    "imdb_cookie_at_main": "IMDB_COOKIE_AT_MAIN",
    "imdb_cookie_ubid_main": "IMDB_COOKIE_UBID_MAIN",
    "trakt_client_id": "TRAKT_CLIENT_ID",
    "trakt_client_secret": "TRAKT_CLIENT_SECRET",
    "trakt_username": "TRAKT_USERNAME",
    "trakt_password": "TRAKT_PASSWORD",
    "trakt_access_token": "TRAKT_ACCESS_TOKEN",
    "sync_schedule": "SYNC_SCHEDULE",
    "log_level": "LOG_LEVEL",
}

# TRAKT_PASSWORD stays required even when TRAKT_ACCESS_TOKEN is set, which skips the sign-in
REQUIRED_KEYS: tuple[str, ...] = (
    "imdb_list_ids",
    "imdb_cookie_at_main",
    "imdb_cookie_ubid_main",
    "trakt_client_id",
    "trakt_client_secret",
    "trakt_username",
    "trakt_password",
)

# ---------------------------------------------------------------------------
# Public helpers
# ---------------------------------------------------------------------------


def load_config() -> dict[str, Any]:
    """Build the configuration dict for this process.

    Missing file keys are filled in from :data:`DEFAULT_CONFIG`.  Any
    environment variable listed in :data:`ENV_VARS` that is set (even to an
    empty string) overrides the file value.

    Returns:
        The merged configuration dictionary.

    Raises:
        ValueError: If ``config.json`` exists but is not valid JSON.
    """
    load_dotenv()

    cfg: dict[str, Any] = DEFAULT_CONFIG.copy()
    if os.path.exists(CONFIG_FILE):
        try:
            with open(CONFIG_FILE, "r", encoding="utf-8") as fh:
                cfg.update(json.load(fh))
        except json.JSONDecodeError as exc:
            raise ValueError(f"Invalid config file {CONFIG_FILE}: {exc}") from exc

    for key, env_var in ENV_VARS.items():
        value = os.environ.get(env_var)
        if value is not None:
            cfg[key] = value

    # config.json may hold the ids as a JSON array
    if isinstance(cfg.get("imdb_list_ids"), list):
        cfg["imdb_list_ids"] = ",".join(cfg["imdb_list_ids"])

    return cfg


def validate_config(config: dict[str, Any]) -> list[str]:
    """Return the environment-variable names of every missing required input.

    An empty return value means the configuration is complete.  The list-ids
    input counts as present when it is ``"all"``.
    """
    missing: list[str] = []
    for key in REQUIRED_KEYS:
        value = str(config.get(key) or "").strip()
        if not value:
            missing.append(ENV_VARS[key])
    return missing


def parse_list_ids(value: str | None) -> list[str]:
    """Split the ``imdb_list_ids`` setting into individual list ids.

    ``""`` and ``"all"`` yield an empty list, which tells the syncer to
    discover every list on the account.  Whitespace inside entries is
    removed and empty entries are dropped; duplicates are kept (the syncer
    dedupes them while hydrating).
    """
    value = (value or "").strip()
    if not value or value.lower() == SYNC_ALL_LISTS:
        return []
    ids: list[str] = []
    for part in value.split(","):
        list_id = "".join(part.split())
        if list_id:
            ids.append(list_id)
    return ids
