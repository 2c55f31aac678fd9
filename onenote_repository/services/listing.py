from __future__ import annotations

import logging
import os
import re
from datetime import datetime
from typing import Any, Callable, List, Optional
from urllib.parse import quote, unquote

from ..models.models import ItemType, ListingItem
from .graph_client import OneNoteClient

IconProvider = Callable[[str], str]

_FRACTION_RE = re.compile(r"(\d*)(.*)", re.DOTALL)

logger = logging.getLogger(__name__)


def default_icon(title: str, size: int = 90) -> str:
    """拡張子からアイコン名を決める（例: "f/zip-90"）。"""
    ext = os.path.splitext(title)[1].lstrip(".").lower()
    return f"f/{ext or 'unknown'}-{size}"


def parse_timestamp(value: Optional[str]) -> Optional[int]:
    """ISO 8601（末尾Z可）をepoch秒にする。解釈できなければ None。"""
    if not value:
        return None
    text = str(value).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    # 小数秒が7桁で返ることがあるので6桁に揃える
    if "." in text:
        head, _, tail = text.partition(".")
        m = _FRACTION_RE.match(tail)
        digits, zone = m.group(1), m.group(2)
        text = f"{head}.{digits[:6].ljust(6, '0')}{zone}"
    try:
        return int(datetime.fromisoformat(text).timestamp())
    except ValueError:
        return None


def _pick(item: dict, *keys: str) -> Any:
    for key in keys:
        if item.get(key) is not None:
            return item[key]
    return None


def _web_url(item: dict) -> Optional[str]:
    return ((item.get("links") or {}).get("oneNoteWebUrl") or {}).get("href")


def resolve_path(path: str) -> tuple[ItemType, Optional[str]]:
    """
    ブラウズ用パスから一覧の種類と親IDを決める。

    - ""             → notebook 一覧
    - "/<nb>"        → nb のセクション一覧
    - "/<nb>/<sec>"  → sec のページ一覧
    """
    parts = [p for p in (path or "").split("/") if p]
    if not parts:
        return "notebook", None
    if len(parts) == 1:
        return "section", unquote(parts[-1])
    return "page", unquote(parts[-1])


def to_listing_item(item_type: ItemType, item: dict, parent_path: str, icon: IconProvider) -> ListingItem:
    item_id = item.get("id", "")
    child_path = f"{parent_path}/{quote(item_id, safe='')}"

    if item_type == "page":
        title = f"{item.get('title') or ''}.zip"
        return ListingItem(
            item_type=item_type,
            title=title,
            path=child_path,
            date=parse_timestamp(_pick(item, "createdDateTime", "createdTime")),
            thumbnail=icon(title),
            source=item_id,
            url=_web_url(item),
            author=item.get("createdByAppId"),
            id=item_id,
            children=None,
        )

    name = _pick(item, "displayName", "name") or ""
    return ListingItem(
        item_type=item_type,
        title=name,
        path=child_path,
        date=parse_timestamp(_pick(item, "lastModifiedDateTime", "lastModifiedTime")),
        thumbnail=icon(name),
        source=item_id,
        url=_web_url(item) if item_type == "notebook" else item.get("self"),
        author=item.get("createdBy"),
        id=item_id,
        children=[],
    )


def list_items(client: OneNoteClient, path: str = "", *, icon: IconProvider = default_icon) -> List[ListingItem]:
    """path に対応する notebook / section / page の一覧を取得する。"""
    item_type, parent_id = resolve_path(path)

    if item_type == "notebook":
        url = client.url("notebooks")
    elif item_type == "section":
        url = client.url("notebooks", parent_id or "", "sections")
    else:
        url = client.url("sections", parent_id or "", "pages")

    data = client.get_json(url)
    values = data.get("value") or []
    logger.debug("Listed %s %s item(s) for path=%r", len(values), item_type, path)

    return [to_listing_item(item_type, v, path, icon) for v in values]
