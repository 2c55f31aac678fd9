from __future__ import annotations

import logging
from typing import MutableMapping, Optional

from ..errors import OneNoteError
from .graph_client import OneNoteClient, first_item


class ItemNameResolver:
    """
    notebook / section のIDから表示名を引く。

    - キャッシュキーは「トークン識別子_ID」（ログアウト後は別キーになる）
    - notebooks で見つからなければ sections を試す
    - 戻り値はダウンロード時のファイル名として使うので ".zip" 付き
    """

    def __init__(self, client: OneNoteClient, cache: Optional[MutableMapping[str, str]] = None) -> None:
        self._client = client
        self._cache: MutableMapping[str, str] = cache if cache is not None else {}
        self._logger = logging.getLogger(__name__)

    def cache_key(self, item_id: str) -> str:
        return f"{self._client.token_session.token_name}_{item_id}"

    def _lookup(self, kind: str, item_id: str) -> Optional[str]:
        try:
            item = first_item(self._client.get_json(self._client.url(kind, item_id)))
        except OneNoteError as e:
            self._logger.debug("Lookup failed: %s/%s error=%s", kind, item_id, e)
            return None
        if not item:
            return None
        return item.get("displayName") or item.get("name")

    def get_item_name(self, item_id: str) -> Optional[str]:
        if not item_id:
            raise ValueError("Empty item_id passed to get_item_name")

        key = self.cache_key(item_id)
        cached = self._cache.get(key)
        if cached:
            return f"{cached}.zip"

        name = self._lookup("notebooks", item_id) or self._lookup("sections", item_id)

        if not name:
            self._logger.warning("Item not found as notebook or section: %s", item_id)
            self._client.token_session.log_out()
            return None

        self._cache[key] = name
        return f"{name}.zip"
