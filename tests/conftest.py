import threading
import time
from unittest.mock import MagicMock

import pytest
import requests

from tests import virtual_trakt as trakt_mock
from tests.virtual_trakt import app as trakt_mock_app

VIRTUAL_TRAKT_PORT = 8097


@pytest.fixture(scope="session")
def virtual_trakt_server():
    """Fixture to run a virtual Trakt server in a background thread."""
    server_thread = threading.Thread(
        target=lambda: trakt_mock_app.run(port=VIRTUAL_TRAKT_PORT, debug=False, use_reloader=False)
    )
    server_thread.daemon = True
    server_thread.start()

    # Wait for server to be ready
    base_url = f"http://localhost:{VIRTUAL_TRAKT_PORT}"
    timeout = 5
    start_time = time.time()
    while time.time() - start_time < timeout:
        try:
            requests.get(f"{base_url}/auth/signin")
            break
        except requests.exceptions.ConnectionError:
            time.sleep(0.1)
    else:
        pytest.fail("Virtual Trakt server failed to start")

    return base_url


@pytest.fixture
def virtual_trakt(virtual_trakt_server):
    """Base URL of the virtual Trakt server, with its state reset."""
    trakt_mock.reset()
    yield virtual_trakt_server
    trakt_mock.reset()


@pytest.fixture
def trakt_config():
    return {
        "trakt_client_id": trakt_mock.CLIENT_ID,
        "trakt_client_secret": trakt_mock.CLIENT_SECRET,
        "trakt_username": trakt_mock.USERNAME,
        "trakt_password": trakt_mock.PASSWORD,
        "trakt_access_token": trakt_mock.ACCESS_TOKEN,
    }


@pytest.fixture
def base_config():
    return {
        "imdb_list_ids": "all",
        "imdb_user_id": "ur1234567",
        "imdb_cookie_at_main": "at",
        "imdb_cookie_ubid_main": "ubid",
        "trakt_client_id": "cid",
        "trakt_client_secret": "secret",
        "trakt_username": "tester",
        "trakt_password": "pw",
        "trakt_access_token": "",
        "sync_schedule": "",
        "log_level": "INFO",
    }


@pytest.fixture
def imdb_client():
    """IMDb client double with an empty watchlist and no ratings."""
    client = MagicMock()
    client.watchlist_get.return_value = ("ls000000001", [])
    client.lists_discover_all.return_value = []
    client.ratings_get.return_value = []
    return client


@pytest.fixture
def trakt_client():
    """Trakt client double with no lists, watchlist, ratings or history."""
    client = MagicMock()
    client.watchlist_get.return_value = []
    client.list_get.return_value = []
    client.lists_get_all.return_value = []
    client.ratings_get.return_value = []
    client.history_get.return_value = []
    return client

