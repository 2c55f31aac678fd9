import json
import time
from urllib.parse import parse_qs, urlsplit

import pytest
import requests

from onenote_repository.errors import AuthError
from onenote_repository.models.models import TokenState
from onenote_repository.services.oauth import TokenSession


@pytest.fixture
def oauth(msal_app):
    return TokenSession("client-1", "secret-1", "https://moodle.test/callback", app=msal_app)


def _expired_session(msal_app):
    return TokenSession(
        "c",
        "s",
        "r",
        app=msal_app,
        token=TokenState("old", refresh_token="rt-1", expires_at=time.time() - 10),
    )


def test_authorization_url(oauth, msal_app):
    url = oauth.authorization_url(state="/repository/callback?repo_id=3")
    query = parse_qs(urlsplit(url).query)

    assert query["client_id"] == ["client-1"]
    assert query["redirect_uri"] == ["https://moodle.test/callback"]
    assert query["state"] == ["/repository/callback?repo_id=3"]
    assert msal_app.calls == [
        ("authorize", ["Notes.ReadWrite"], "/repository/callback?repo_id=3", "https://moodle.test/callback")
    ]


def test_signin_link_escapes_url(oauth):
    link = oauth.signin_link(state="a&b")

    assert link.startswith("<a onclick=")
    assert "&amp;" in link
    assert ">Sign in to OneNote</a>" in link


def test_exchange_code_stores_token(oauth, msal_app):
    msal_app.results.append({"access_token": "at-1", "refresh_token": "rt-1", "expires_in": 3600})

    token = oauth.exchange_code("code-1")

    assert token.access_token == "at-1"
    assert oauth.access_token == "at-1"
    assert msal_app.calls[0] == (
        "authorization_code",
        "code-1",
        ["Notes.ReadWrite"],
        "https://moodle.test/callback",
    )


def test_rejected_code_raises_auth_error(oauth, msal_app):
    msal_app.results.append({"error": "invalid_grant", "error_description": "code expired"})

    with pytest.raises(AuthError, match="code expired"):
        oauth.exchange_code("code-1")
    assert oauth.is_logged_in() is False


def test_expired_token_is_refreshed(msal_app):
    session = _expired_session(msal_app)
    msal_app.results.append({"access_token": "new", "expires_in": 3600})

    assert session.access_token == "new"
    assert session.token.refresh_token == "rt-1"
    assert msal_app.calls[0] == ("refresh_token", "rt-1", ["Notes.ReadWrite"])


def test_failed_refresh_logs_out(msal_app):
    session = _expired_session(msal_app)
    msal_app.results.append({"error": "invalid_grant"})

    assert session.is_logged_in() is False
    assert session.token is None


def test_refresh_with_non_json_response_logs_out(msal_app):
    session = _expired_session(msal_app)
    msal_app.results.append(json.JSONDecodeError("Expecting value", "<html>", 0))

    with pytest.raises(AuthError):
        session.refresh()
    assert session.token is None


def test_refresh_without_access_token_logs_out(msal_app):
    session = _expired_session(msal_app)
    msal_app.results.append({"token_type": "Bearer"})

    with pytest.raises(AuthError, match="no access_token"):
        session.access_token
    assert session.token is None


def test_unreachable_token_endpoint_logs_out(msal_app):
    session = _expired_session(msal_app)
    msal_app.results.append(requests.ConnectionError("down"))

    assert session.is_logged_in() is False


def test_log_out_requires_login_again():
    session = TokenSession.from_access_token("at")
    assert session.is_logged_in()

    session.log_out()

    assert session.is_logged_in() is False
    with pytest.raises(AuthError):
        session.access_token


def test_token_name_does_not_contain_token():
    session = TokenSession.from_access_token("super-secret")

    assert "super-secret" not in session.token_name
    assert session.token_name == TokenSession.from_access_token("super-secret").token_name


def test_token_expiry_skew():
    assert TokenState("t", expires_at=1000).is_expired(now=950) is True
    assert TokenState("t", expires_at=1000).is_expired(now=900) is False
    assert TokenState("t").is_expired() is False
