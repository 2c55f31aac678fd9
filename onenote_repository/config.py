from __future__ import annotations

import os
from dataclasses import dataclass

API_BASE = "https://graph.microsoft.com/v1.0/me/onenote"

AUTHORITY = "https://login.microsoftonline.com/common"
# offline_access は msal が自動で付けるので含めない（予約スコープ）
SCOPES = ["Notes.ReadWrite"]

# コース用に自動作成するノートブック名
NOTEBOOK_NAME = "Moodle Notebook"

TEMP_PREFIX = "asg_"  # ページ取得時の作業ディレクトリ接頭辞
PAGE_FILES_DIR = "page_files"
PAGE_HTML_NAME = "page.html"

LINK_BUTTON_STYLE = (
    "background-color: #80397B; color: #fff; display: inline-block; "
    "padding: 4px 10px; margin: 5px 0px;"
)


@dataclass(frozen=True)
class AppSettings:
    """アプリ全体で使う設定値をひとまとめにする。"""

    client_id: str
    client_secret: str
    redirect_uri: str
    access_token: str | None
    api_base: str
    notebook_name: str
    log_level: str


def _env(name: str, default: str = "") -> str:
    return (os.getenv(name) or default).strip()


def load_settings() -> AppSettings:
    """環境変数からAppSettingsを組み立てる。"""
    client_id = _env("ONENOTE_CLIENT_ID")
    client_secret = _env("ONENOTE_CLIENT_SECRET")
    access_token = _env("ONENOTE_ACCESS_TOKEN") or None

    # トークン直指定が無い場合はOAuthの資格情報が必須
    if not access_token and not (client_id and client_secret):
        raise RuntimeError(
            "OneNote credentials not configured. "
            "Set ONENOTE_ACCESS_TOKEN or ONENOTE_CLIENT_ID/ONENOTE_CLIENT_SECRET."
        )

    return AppSettings(
        client_id=client_id,
        client_secret=client_secret,
        redirect_uri=_env("ONENOTE_REDIRECT_URI", "http://localhost:8888/callback"),
        access_token=access_token,
        api_base=_env("ONENOTE_API_BASE", API_BASE).rstrip("/"),
        notebook_name=_env("ONENOTE_NOTEBOOK_NAME", NOTEBOOK_NAME),
        log_level=_env("ONENOTE_LOG_LEVEL", "INFO"),
    )
