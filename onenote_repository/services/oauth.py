from __future__ import annotations

import hashlib
import html
import logging
import time
from typing import Any, Callable, Optional, Sequence

import msal
import requests

from .. import config
from ..errors import AuthError
from ..models.models import TokenState


class TokenSession:
    """
    OAuth2（authorization code フロー）のトークン状態を保持する。

    - 認可URL生成・コード交換・リフレッシュは msal に任せる
    - トークンはホスト側セッションに載せられるよう TokenState で持つ
    - log_out で状態を破棄（次回呼び出しは再認証が必要）
    - OneNoteClient はここから Bearer トークンを受け取る
    """

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        redirect_uri: str,
        *,
        scopes: Sequence[str] = tuple(config.SCOPES),
        authority: str = config.AUTHORITY,
        app: Optional[msal.ConfidentialClientApplication] = None,
        token: Optional[TokenState] = None,
    ) -> None:
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self.scopes = list(scopes)
        self.authority = authority
        self._app = app
        self._token = token
        self._logger = logging.getLogger(__name__)

    @classmethod
    def from_access_token(cls, access_token: str) -> "TokenSession":
        """取得済みトークンだけで動かす（CLI/テスト用）。"""
        return cls("", "", "", token=TokenState(access_token=access_token))

    @property
    def app(self) -> msal.ConfidentialClientApplication:
        # 生成時に authority のメタデータ取得が走るので、必要になるまで作らない
        if self._app is None:
            self._app = msal.ConfidentialClientApplication(
                self.client_id,
                client_credential=self.client_secret,
                authority=self.authority,
            )
        return self._app

    @property
    def token(self) -> Optional[TokenState]:
        return self._token

    def authorization_url(self, state: str = "") -> str:
        return self.app.get_authorization_request_url(
            self.scopes,
            state=state or None,
            redirect_uri=self.redirect_uri,
        )

    def signin_link(self, state: str = "", label: str = "Sign in to OneNote") -> str:
        """認可画面をポップアップで開くリンクHTML。"""
        href = html.escape(self.authorization_url(state), quote=True)
        return (
            "<a onclick=\"window.open(this.href,'mywin',"
            "'left=20,top=20,width=500,height=500,toolbar=1,resizable=0'); return false;\" "
            f"href=\"{href}\" style=\"{config.LINK_BUTTON_STYLE}\">{html.escape(label)}</a>"
        )

    def exchange_code(self, code: str) -> TokenState:
        """認可コードをアクセストークンに交換する。"""
        if not code:
            raise AuthError("Authorization code is empty.")
        return self._acquire(
            "authorization_code",
            lambda: self.app.acquire_token_by_authorization_code(
                code,
                scopes=self.scopes,
                redirect_uri=self.redirect_uri,
            ),
        )

    def refresh(self) -> TokenState:
        if self._token is None or not self._token.refresh_token:
            self.log_out()
            raise AuthError("No refresh token available. Sign in again.")
        refresh_token = self._token.refresh_token
        return self._acquire(
            "refresh_token",
            lambda: self.app.acquire_token_by_refresh_token(refresh_token, scopes=self.scopes),
        )

    def _acquire(self, grant: str, call: Callable[[], Any]) -> TokenState:
        """msal 呼び出しの結果を TokenState にする。失敗時はログアウトして AuthError。"""
        try:
            result = call()
        except (requests.RequestException, ValueError) as e:
            # トークンエンドポイントに繋がらない / JSON でない応答
            self._logger.error("Token request failed (grant_type=%s): %s", grant, e)
            self.log_out()
            raise AuthError(f"Token request failed: {e}") from e

        if not isinstance(result, dict) or "access_token" not in result:
            detail = (result.get("error_description") or result.get("error")) if isinstance(result, dict) else None
            self._logger.error("Token request rejected (grant_type=%s): %s", grant, detail)
            self.log_out()
            raise AuthError(f"Token request rejected: {detail or 'no access_token in response'}")

        expires_in = result.get("expires_in")
        self._token = TokenState(
            access_token=result["access_token"],
            # refresh_token が返らない場合は前回のものを使い続ける
            refresh_token=result.get("refresh_token")
            or (self._token.refresh_token if self._token else None),
            expires_at=time.time() + int(expires_in) if expires_in else None,
        )
        self._logger.info("Token acquired (grant_type=%s)", grant)
        return self._token

    def is_logged_in(self) -> bool:
        """有効なトークンを保持しているか。期限切れなら refresh を試みる。"""
        if self._token is None:
            return False
        if not self._token.is_expired():
            return True
        try:
            self.refresh()
        except AuthError:
            return False
        return True

    def log_out(self) -> None:
        if self._token is not None:
            self._logger.info("Logging out OneNote session")
        self._token = None

    @property
    def access_token(self) -> str:
        if not self.is_logged_in():
            raise AuthError("Not logged in to OneNote.")
        assert self._token is not None
        return self._token.access_token

    @property
    def token_name(self) -> str:
        """キャッシュキー用のトークン識別子（トークン本体はキーに入れない）。"""
        if self._token is None:
            return "anonymous"
        return hashlib.sha1(self._token.access_token.encode("utf-8")).hexdigest()[:16]
