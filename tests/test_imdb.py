from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

import pytest
import requests

from errors import ApiError, ItemIdError, NotFoundError, NotTitleListError
from imdb import ImdbClient, parse_export
from models import ItemType

LIST_EXPORT = (
    "Position,Const,Created,Modified,Description,Title,URL,Title Type\n"
    "1,tt0111161,2024-01-01,2024-01-01,,The Shawshank Redemption,https://www.imdb.com/title/tt0111161/,Movie\n"
    "2,tt0903747,2024-01-01,2024-01-01,,Breaking Bad,https://www.imdb.com/title/tt0903747/,TV Series\n"
    "3,tt0959621,2024-01-01,2024-01-01,,Pilot,https://www.imdb.com/title/tt0959621/,tvEpisode\n"
)

RATINGS_EXPORT = (
    "\ufeffConst,Your Rating,Date Rated,Title,URL,Title Type\n"
    "tt0111161,10,2023-05-04,The Shawshank Redemption,https://www.imdb.com/title/tt0111161/,movie\n"
    "tt2560140,8,2023-06-01,Attack on Titan,https://www.imdb.com/title/tt2560140/,tvMiniSeries\n"
)

PEOPLE_EXPORT = (
    "Position,Const,Created,Modified,Description,Title,URL,Title Type\n"
    "1,nm0000138,2024-01-01,2024-01-01,,Leonardo DiCaprio,https://www.imdb.com/name/nm0000138/,\n"
)


def _resp(text="", status_code=200):
    resp = MagicMock()
    resp.status_code = status_code
    resp.text = text
    return resp


@pytest.fixture
def client(base_config):
    return ImdbClient(base_config)


def test_parse_export_maps_title_types():
    items = parse_export(LIST_EXPORT)
    assert [(i.id, i.type) for i in items] == [
        ("tt0111161", ItemType.MOVIE),
        ("tt0903747", ItemType.SHOW),
        ("tt0959621", ItemType.EPISODE),
    ]
    assert items[0].title == "The Shawshank Redemption"
    assert items[0].rating is None


def test_parse_export_ratings():
    items = parse_export(RATINGS_EXPORT)
    assert items[0].rating == 10
    assert items[0].rated_at == datetime(2023, 5, 4, tzinfo=timezone.utc)
    assert items[1].type == ItemType.SHOW


def test_parse_export_rejects_missing_id():
    with pytest.raises(ItemIdError):
        parse_export("Const,Title\n,No id\n")


def test_parse_export_people_list():
    with pytest.raises(NotTitleListError, match="nm0000138"):
        parse_export(PEOPLE_EXPORT)


def test_parse_export_title_list_with_bad_row_stays_fatal():
    with pytest.raises(ItemIdError) as exc_info:
        parse_export("Const,Title\ntt1,Fine\nbogus,Broken\n")
    assert not isinstance(exc_info.value, NotTitleListError)


def test_parse_export_rejects_bad_rating():
    with pytest.raises(ItemIdError, match="Invalid rating"):
        parse_export("Const,Your Rating\ntt1,ten\n")


def test_client_sets_session_cookies(client):
    assert client._session.cookies.get("at-main", domain=".imdb.com") == "at"
    assert client._session.cookies.get("ubid-main", domain=".imdb.com") == "ubid"


@patch('requests.Session.get')
def test_list_get(mock_get, client):
    page = _resp('<meta property="og:title" content="Best &amp; Brightest - IMDb">')
    mock_get.side_effect = [page, _resp(LIST_EXPORT)]

    name, items = client.list_get("ls000000042")

    assert name == "Best & Brightest"
    assert len(items) == 3
    urls = [c.args[0] for c in mock_get.call_args_list]
    assert urls == [
        "https://www.imdb.com/list/ls000000042/",
        "https://www.imdb.com/list/ls000000042/export",
    ]


@patch('requests.Session.get')
def test_list_get_falls_back_to_h1(mock_get, client):
    mock_get.side_effect = [_resp("<h1 class='header'><span>My List</span></h1>"), _resp(LIST_EXPORT)]
    name, _ = client.list_get("ls1")
    assert name == "My List"


@patch('requests.Session.get')
def test_list_get_not_found(mock_get, client):
    mock_get.return_value = _resp("gone", status_code=404)
    with pytest.raises(NotFoundError) as exc_info:
        client.list_get("ls404")
    assert exc_info.value.status_code == 404


@patch('requests.Session.get')
def test_list_get_server_error(mock_get, client):
    mock_get.return_value = _resp("boom", status_code=503)
    with pytest.raises(ApiError) as exc_info:
        client.list_get("ls1")
    assert not isinstance(exc_info.value, NotFoundError)
    assert exc_info.value.status_code == 503


@patch('requests.Session.get')
def test_network_error_becomes_api_error(mock_get, client):
    mock_get.side_effect = requests.exceptions.ConnectionError("offline")
    with pytest.raises(ApiError, match="offline") as exc_info:
        client.ratings_get()
    assert exc_info.value.status_code is None


@patch('requests.Session.get')
def test_user_id_is_scraped_when_unset(mock_get, base_config):
    base_config["imdb_user_id"] = "scrape"
    client = ImdbClient(base_config)
    mock_get.side_effect = [
        _resp('<a href="/user/ur7654321/ratings">Your ratings</a>'),
        _resp(RATINGS_EXPORT),
    ]

    items = client.ratings_get()

    assert client.user_id == "ur7654321"
    assert len(items) == 2
    assert mock_get.call_args_list[1].args[0] == (
        "https://www.imdb.com/user/ur7654321/ratings/export"
    )


@patch('requests.Session.get')
def test_user_id_missing_from_profile(mock_get, base_config):
    base_config["imdb_user_id"] = ""
    mock_get.return_value = _resp("<html>signed out</html>")
    with pytest.raises(ApiError, match="user id"):
        ImdbClient(base_config).ratings_get()


@patch('requests.Session.get')
def test_watchlist_get(mock_get, client):
    mock_get.side_effect = [
        _resp('<script>{"listId":"ls099999999"}</script>'),
        _resp(LIST_EXPORT),
    ]
    list_id, items = client.watchlist_get()
    assert list_id == "ls099999999"
    assert len(items) == 3
    assert mock_get.call_args_list[0].args[0] == "https://www.imdb.com/user/ur1234567/watchlist"


@patch('requests.Session.get')
def test_watchlist_id_not_found(mock_get, client):
    mock_get.return_value = _resp("<html></html>")
    with pytest.raises(ApiError, match="watchlist id"):
        client.watchlist_get()


@patch('requests.Session.get')
def test_lists_discover_all_paginates(mock_get, client):
    page1 = _resp('<a href="/list/ls1/">A</a><a href="/list/ls2/?ref_=x">B</a><a class="next-page">')
    page2 = _resp('<a href="/list/ls2/">B</a><a href="/list/ls3/">C</a>')
    mock_get.side_effect = [
        page1,
        page2,
        _resp('<meta property="og:title" content="Sci-Fi Picks">'), _resp(LIST_EXPORT),
        _resp('<meta property="og:title" content="Horror">'), _resp(""),
        _resp('<meta property="og:title" content="Docs">'), _resp(LIST_EXPORT),
    ]

    pairs = client.lists_discover_all()

    assert [p.imdb_list_id for p in pairs] == ["ls1", "ls2", "ls3"]
    assert [p.trakt_list_id for p in pairs] == ["sci-fi-picks", "horror", "docs"]
    assert pairs[1].imdb_items == []
    assert not any(p.is_watchlist for p in pairs)


@patch('requests.Session.get')
def test_lists_discover_all_skips_people_lists(mock_get, client, caplog):
    mock_get.side_effect = [
        _resp('<a href="/list/ls1/">Actors</a><a href="/list/ls2/">Films</a>'),
        _resp('<meta property="og:title" content="Actors">'), _resp(PEOPLE_EXPORT),
        _resp('<meta property="og:title" content="Films">'), _resp(LIST_EXPORT),
    ]

    pairs = client.lists_discover_all()

    assert [p.imdb_list_id for p in pairs] == ["ls2"]
    assert len(pairs[0].imdb_items) == 3
    assert "Skipping IMDb list ls1" in caplog.text


@patch('requests.Session.get')
def test_list_get_people_list_is_fatal_when_named(mock_get, client):
    mock_get.side_effect = [
        _resp('<meta property="og:title" content="Actors">'), _resp(PEOPLE_EXPORT),
    ]
    with pytest.raises(ItemIdError):
        client.list_get("ls1")
