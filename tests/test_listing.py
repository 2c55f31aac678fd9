import pytest

from onenote_repository.repository import OneNoteRepository
from onenote_repository.services.listing import default_icon, list_items, parse_timestamp, resolve_path

from conftest import API

NOTEBOOK = {
    "id": "nb-1",
    "displayName": "Physics",
    "lastModifiedDateTime": "2014-05-01T10:00:00.1234567Z",
    "createdBy": {"user": {"displayName": "Ann"}},
    "self": f"{API}/notebooks/nb-1",
    "links": {"oneNoteWebUrl": {"href": "https://onenote.test/nb-1"}},
}


@pytest.mark.parametrize(
    "path, expected",
    [
        ("", ("notebook", None)),
        ("/nb-1", ("section", "nb-1")),
        ("/nb-1/sec%211", ("page", "sec!1")),
    ],
)
def test_resolve_path(path, expected):
    assert resolve_path(path) == expected


def test_parse_timestamp():
    assert parse_timestamp("1970-01-01T00:01:00Z") == 60
    assert parse_timestamp("1970-01-01T00:00:01.5Z") == 1
    assert parse_timestamp("not a date") is None
    assert parse_timestamp(None) is None


def test_default_icon():
    assert default_icon("Lecture.zip") == "f/zip-90"
    assert default_icon("Physics") == "f/unknown-90"


def test_notebook_listing(fake_http, client):
    fake_http.add("GET", f"{API}/notebooks", json={"value": [NOTEBOOK]})

    [item] = list_items(client, "")

    assert item.to_dict() == {
        "title": "Physics",
        "path": "/nb-1",
        "date": parse_timestamp("2014-05-01T10:00:00Z"),
        "thumbnail": "f/unknown-90",
        "source": "nb-1",
        "url": "https://onenote.test/nb-1",
        "author": {"user": {"displayName": "Ann"}},
        "id": "nb-1",
        "children": [],
    }


def test_section_listing_uses_self_link(fake_http, client):
    section = {
        "id": "sec 1",
        "name": "Week 1",
        "lastModifiedTime": "2014-05-02T00:00:00Z",
        "createdBy": "Ann",
        "self": f"{API}/sections/sec%201",
    }
    fake_http.add("GET", f"{API}/notebooks/nb-1/sections", json={"value": [section]})

    [item] = list_items(client, "/nb-1")

    assert item.title == "Week 1"
    assert item.url == f"{API}/sections/sec%201"
    assert item.path == "/nb-1/sec%201"
    assert item.children == []


def test_page_listing(fake_http, client):
    page = {
        "id": "p-1",
        "title": "Lecture",
        "createdDateTime": "2014-05-03T00:00:00Z",
        "createdByAppId": "app-1",
        "links": {"oneNoteWebUrl": {"href": "https://onenote.test/p-1"}},
    }
    fake_http.add("GET", f"{API}/sections/sec-1/pages", json={"value": [page]})

    [item] = list_items(client, "/nb-1/sec-1", icon=lambda title: f"icon:{title}")

    data = item.to_dict()
    assert data["title"] == "Lecture.zip"
    assert data["thumbnail"] == "icon:Lecture.zip"
    assert data["author"] == "app-1"
    assert data["path"] == "/nb-1/sec-1/p-1"
    assert "children" not in data


def test_repository_listing_error_logs_out(fake_http, client, token_session):
    fake_http.add("GET", f"{API}/notebooks", json={"error": {"message": "throttled"}})
    repo = OneNoteRepository(client)

    assert repo.list_items("") == []
    assert token_session.is_logged_in() is False
