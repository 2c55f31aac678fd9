from __future__ import annotations

import json as _json
from collections import defaultdict, deque
from typing import Any, Optional
from urllib.parse import urlencode

import pytest
import requests

from onenote_repository.services.graph_client import GraphRetryPolicy, OneNoteClient
from onenote_repository.services.oauth import TokenSession

API = "https://api.test/onenote"


class FakeResponse:
    def __init__(self, status_code: int = 200, content: bytes = b"", headers: Optional[dict] = None) -> None:
        self.status_code = status_code
        self.content = content
        self.headers = headers or {}
        # requests と同様に Content-Type の charset を encoding にする
        content_type = self.headers.get("Content-Type", "")
        self.encoding = content_type.split("charset=", 1)[1].strip() if "charset=" in content_type else None

    @property
    def text(self) -> str:
        return self.content.decode("utf-8", errors="replace")

    def json(self) -> Any:
        return _json.loads(self.content)


class FakeSession:
    """requests.Session の代わりに登録済みレスポンスを返す。"""

    def __init__(self) -> None:
        self.routes: dict[tuple[str, str], deque] = defaultdict(deque)
        self.calls: list[dict] = []
        self.closed = False

    def add(
        self,
        method: str,
        url: str,
        *,
        status: int = 200,
        body: bytes | str = b"",
        json: Any = None,
        headers: Optional[dict] = None,
        exc: Optional[Exception] = None,
    ) -> None:
        if json is not None:
            body = _json.dumps(json)
            headers = {"Content-Type": "application/json", **(headers or {})}
        if isinstance(body, str):
            body = body.encode("utf-8")
        self.routes[(method, url)].append(exc or FakeResponse(status, body, headers))

    def request(self, method: str, url: str, **kwargs: Any) -> FakeResponse:
        self.calls.append({"method": method, "url": url, **kwargs})
        queue = self.routes.get((method, url))
        if not queue:
            return FakeResponse(404, b'{"error": {"message": "not registered"}}')
        item = queue.popleft() if len(queue) > 1 else queue[0]
        if isinstance(item, Exception):
            raise item
        return item

    def post(self, url: str, **kwargs: Any) -> FakeResponse:
        return self.request("POST", url, **kwargs)

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def fake_http() -> FakeSession:
    return FakeSession()


@pytest.fixture
def token_session() -> TokenSession:
    return TokenSession.from_access_token("test-token")


@pytest.fixture
def client(fake_http: FakeSession, token_session: TokenSession) -> OneNoteClient:
    return OneNoteClient(
        token_session,
        api_base=API,
        session=fake_http,
        retry_policy=GraphRetryPolicy(max_retries=3, default_retry_after=0),
    )


@pytest.fixture
def connection_error() -> Exception:
    return requests.ConnectionError("connection refused")


class FakeMsalApp:
    """msal.ConfidentialClientApplication の代わり。結果を順に返す。"""

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        self.client_id = args[0] if args else kwargs.get("client_id")
        self.results: deque = deque()
        self.calls: list[tuple] = []

    def get_authorization_request_url(self, scopes, state=None, redirect_uri=None, **kwargs):
        self.calls.append(("authorize", list(scopes), state, redirect_uri))
        params = {"client_id": self.client_id, "scope": " ".join(scopes), "redirect_uri": redirect_uri}
        if state:
            params["state"] = state
        return "https://login.test/authorize?" + urlencode(params)

    def _next(self) -> Any:
        item = self.results.popleft()
        if isinstance(item, Exception):
            raise item
        return item

    def acquire_token_by_authorization_code(self, code, scopes, redirect_uri=None, **kwargs):
        self.calls.append(("authorization_code", code, list(scopes), redirect_uri))
        return self._next()

    def acquire_token_by_refresh_token(self, refresh_token, scopes, **kwargs):
        self.calls.append(("refresh_token", refresh_token, list(scopes)))
        return self._next()


@pytest.fixture
def msal_app() -> FakeMsalApp:
    return FakeMsalApp("client-1")
