from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Tuple
from urllib.parse import quote

import requests

from .. import config
from ..errors import ApiError, AuthError, NotFoundError, OneNoteError, TransportError
from ..logging.graph_logging import mask_headers, mask_url, summarize_request_kwargs, truncate_text
from ..models.models import PagePayload
from .oauth import TokenSession

MultipartPart = Tuple[str, bytes, str]  # (filename, content, content_type)


@dataclass(frozen=True)
class GraphRetryPolicy:
    """OneNote APIリクエストのリトライ設定"""

    max_retries: int = 5
    retry_statuses: tuple[int, ...] = (429, 503)
    default_retry_after: int = 2


class OneNoteClient:
    """
    OneNote REST API の呼び出しをシンプルに扱うためのクライアント

    - 動詞ごとにメソッドを分ける（get / get_json / post_json / post_multipart）
    - 401は AuthError、404は NotFoundError
    - 429/503はRetry-Afterで待って再試行
    - 2xxでもボディに error があれば ApiError
    """

    def __init__(
        self,
        token_session: TokenSession,
        *,
        api_base: str = config.API_BASE,
        session: Optional[requests.Session] = None,
        retry_policy: Optional[GraphRetryPolicy] = None,
        timeout: float = 60.0,
    ) -> None:
        self.token_session = token_session
        self.api_base = api_base.rstrip("/")
        self._session = session or requests.Session()
        self._owns_session = session is None
        self._retry = retry_policy or GraphRetryPolicy()
        self._timeout = timeout
        self._logger = logging.getLogger(__name__)

    def close(self) -> None:
        """必要に応じて内部Sessionを閉じる。"""
        if self._owns_session:
            self._session.close()

    def __enter__(self) -> "OneNoteClient":
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    def url(self, *segments: str) -> str:
        """api_base 配下のURLを組み立てる（各セグメントはURLエンコード）。"""
        return "/".join([self.api_base, *(quote(s, safe="") for s in segments)])

    def _merged_headers(self, headers: Optional[dict]) -> dict:
        # 呼び出し側が Authorization を渡しても上書きされるように固定
        merged = dict(headers or {})
        merged["Authorization"] = f"Bearer {self.token_session.access_token}"
        return merged

    # ==============================
    # リクエスト送信・リトライ制御（共通）
    # ==============================
    def _request_with_retry(
        self,
        method: str,
        url: str,
        *,
        headers: Optional[dict] = None,
        **request_kwargs: Any,
    ) -> requests.Response:

        merged_headers = self._merged_headers(headers)
        log_url = mask_url(url)

        self._logger.debug(
            "OneNote request: %s %s headers=%s kwargs=%s",
            method,
            log_url,
            mask_headers(merged_headers),
            summarize_request_kwargs(dict(request_kwargs)),
        )

        for attempt in range(1, self._retry.max_retries + 1):
            start = time.perf_counter()

            try:
                resp = self._session.request(
                    method,
                    url,
                    headers=merged_headers,
                    timeout=self._timeout,
                    **request_kwargs,
                )
            except requests.RequestException as e:
                self._logger.error("OneNote transport error: %s %s error=%s", method, log_url, e)
                raise TransportError(f"{method} {log_url} failed: {e}") from e

            elapsed_ms = int((time.perf_counter() - start) * 1000)

            if resp.status_code in self._retry.retry_statuses:
                wait = int(resp.headers.get("Retry-After", self._retry.default_retry_after))
                self._logger.warning(
                    "OneNote retryable response: %s %s status=%s attempt=%s/%s wait=%ss elapsed=%sms",
                    method,
                    log_url,
                    resp.status_code,
                    attempt,
                    self._retry.max_retries,
                    wait,
                    elapsed_ms,
                )
                time.sleep(wait)
                continue

            if resp.status_code == 401:
                self._logger.error(
                    "OneNote unauthorized: %s %s status=401 elapsed=%sms body=%s",
                    method,
                    log_url,
                    elapsed_ms,
                    truncate_text(resp.text, limit=500),
                )
                raise AuthError("401 Unauthorized. Access token expired/invalid.", status_code=401)

            if resp.status_code >= 400:
                self._logger.error(
                    "OneNote request failed: %s %s status=%s elapsed=%sms body=%s",
                    method,
                    log_url,
                    resp.status_code,
                    elapsed_ms,
                    truncate_text(resp.text, limit=1000),
                )
                if resp.status_code == 404:
                    error_cls = NotFoundError
                elif _has_error_payload(resp):
                    error_cls = ApiError
                else:
                    error_cls = OneNoteError
                raise error_cls(
                    f"{method} {log_url} failed with status {resp.status_code}.",
                    status_code=resp.status_code,
                )

            self._logger.info(
                "OneNote request success: %s %s status=%s elapsed=%sms",
                method,
                log_url,
                resp.status_code,
                elapsed_ms,
            )
            return resp

        self._logger.error("%s %s failed after retries (%s).", method, log_url, self._retry.retry_statuses)
        raise OneNoteError(f"{method} failed after retries (429/503).")

    @staticmethod
    def _json_or_raise(resp: requests.Response) -> dict:
        try:
            data = resp.json()
        except ValueError as e:
            raise ApiError("Response body is not JSON.", status_code=resp.status_code) from e
        if isinstance(data, dict) and data.get("error"):
            err = data["error"]
            message = err.get("message") if isinstance(err, dict) else str(err)
            raise ApiError(f"OneNote API error: {message}", status_code=resp.status_code)
        return data

    def get(self, url: str, *, params: Optional[Mapping[str, Any]] = None) -> requests.Response:
        """GETしてResponseをそのまま返す（HTML本文や画像バイナリ用）。"""
        return self._request_with_retry("GET", url, params=params)

    def get_json(self, url: str, *, params: Optional[Mapping[str, Any]] = None) -> dict:
        """GETしてJSONを返す。"""
        return self._json_or_raise(self.get(url, params=params))

    def post_json(self, url: str, body: Any) -> dict:
        """JSONボディでPOSTする（Content-Type は requests が付与）。"""
        return self._json_or_raise(self._request_with_retry("POST", url, json=body))

    def post_multipart(self, url: str, data_parts: Dict[str, MultipartPart]) -> dict:
        """requests の files= に渡して multipart/form-data でPOSTする。"""
        return self._json_or_raise(self._request_with_retry("POST", url, files=data_parts))

    # ==============================
    # OneNote 固有の操作
    # ==============================
    def get_page(self, page_id: str) -> Optional[dict]:
        """ページのメタ情報を返す。取得できなければ None。"""
        try:
            data = self.get_json(self.url("pages", page_id))
        except OneNoteError as e:
            self._logger.warning("Page lookup failed: page_id=%s error=%s", page_id, e)
            return None
        return first_item(data)

    def create_page(self, section_id: str, payload: PagePayload) -> dict:
        """
        セクションにページを作成する。

        - Presentation: ページ本体のHTML
        - その他のパート: 本文中の name:<パート名> で参照されるバイナリ
        """
        data_parts: Dict[str, MultipartPart] = {
            "Presentation": (
                "presentation.html",
                payload.presentation_html.encode("utf-8"),
                "text/html",
            ),
        }
        for part in payload.parts:
            data_parts[part.name] = (part.filename, part.data, part.content_type)

        return self.post_multipart(self.url("sections", section_id, "pages"), data_parts)


def _has_error_payload(resp: requests.Response) -> bool:
    """4xx/5xx のボディが {"error": ...} 形式か。"""
    try:
        data = resp.json()
    except ValueError:
        return False
    return isinstance(data, dict) and bool(data.get("error"))


def first_item(data: Any) -> Optional[dict]:
    """{"value": [...]} 形式なら先頭要素を、単体オブジェクトならそれ自体を返す。"""
    if not isinstance(data, dict):
        return None
    if "value" in data:
        items = data.get("value") or []
        return items[0] if items else None
    return data
