from __future__ import annotations

import json
from typing import Any, Dict, Mapping
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit


REDACTED = "***REDACTED***"

_SECRET_HEADERS = ("authorization", "cookie", "set-cookie", "x-authorization")
_SECRET_FIELDS = ("access_token", "refresh_token", "client_secret", "code")


def mask_headers(headers: Mapping[str, str]) -> Dict[str, str]:
    """Authorization / Cookie などをログに出さないようマスクする。"""
    masked = dict(headers)
    for k in list(masked.keys()):
        if k.lower() in _SECRET_HEADERS:
            masked[k] = REDACTED
    return masked


def mask_form(data: Mapping[str, Any]) -> Dict[str, Any]:
    """トークンエンドポイントへ送るフォームの秘匿値をマスクする。"""
    return {k: (REDACTED if k in _SECRET_FIELDS else v) for k, v in data.items()}


def mask_url(url: str) -> str:
    """クエリ文字列に含まれるトークン類をマスクする。"""
    parts = urlsplit(url)
    if not parts.query:
        return url
    query = [
        (k, REDACTED if k in _SECRET_FIELDS else v)
        for k, v in parse_qsl(parts.query, keep_blank_values=True)
    ]
    return urlunsplit(parts._replace(query=urlencode(query, safe="$*")))


def truncate_text(text: str | None, limit: int = 2000) -> str:
    """ログ肥大化防止のための切り詰め。"""
    if text is None:
        return ""
    if len(text) <= limit:
        return text
    return text[:limit] + f"...(truncated {len(text) - limit} chars)"


def safe_json_preview(obj: Any, limit: int = 2000) -> str:
    if obj is None:
        return ""
    try:
        s = json.dumps(obj, ensure_ascii=False, separators=(",", ":"), default=str)
    except (TypeError, ValueError):
        s = str(obj)
    return truncate_text(s, limit=limit)


def summarize_multipart_files(files: Mapping[str, Any] | None) -> list[dict]:
    """
    requests の files（multipart）を中身無しで要約する。

    想定: dict[name] = (filename, content, content_type)
    """
    if not files:
        return []

    out: list[dict] = []
    for name, value in files.items():
        filename, content, content_type = (tuple(value) + (None, None, None))[:3]
        size = len(content) if isinstance(content, (bytes, bytearray, str)) else None
        out.append(
            {
                "part": str(name),
                "filename": filename,
                "content_type": content_type,
                "size": size,
            }
        )
    return out


def summarize_request_kwargs(request_kwargs: Dict[str, Any]) -> Dict[str, Any]:
    """_session.request(...) に渡す kwargs をログ用に安全に要約する。"""
    summary: Dict[str, Any] = {}

    if request_kwargs.get("params") is not None:
        summary["params"] = request_kwargs["params"]

    if request_kwargs.get("json") is not None:
        summary["json"] = safe_json_preview(request_kwargs["json"])

    data = request_kwargs.get("data")
    if data is not None:
        if isinstance(data, (bytes, bytearray)):
            summary["data_bytes"] = len(data)
        elif isinstance(data, Mapping):
            summary["data"] = mask_form(data)
        else:
            summary["data_preview"] = truncate_text(str(data), limit=500)

    if request_kwargs.get("files") is not None:
        summary["multipart_parts"] = summarize_multipart_files(request_kwargs["files"])

    if request_kwargs.get("timeout") is not None:
        summary["timeout"] = request_kwargs["timeout"]

    return summary
