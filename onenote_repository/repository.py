from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import List, Optional

from .errors import OneNoteError
from .models.models import FetchResult, ListingItem, PagePayload
from .services.course_sync import CourseNotebookSync
from .services.graph_client import OneNoteClient
from .services.item_names import ItemNameResolver
from .services.listing import IconProvider, default_icon, list_items
from .services.oauth import TokenSession
from .services.page_fetcher import PageFetcher


class OneNoteRepository:
    """
    ファイルリポジトリ（ホスト側）から使う OneNote の窓口。

    呼び出し側で1つ作って使い回す。依存（HTTPクライアント、コース同期、
    アイコン決定）はすべて引数で受け取る。
    """

    def __init__(
        self,
        client: OneNoteClient,
        *,
        course_sync: Optional[CourseNotebookSync] = None,
        icon: IconProvider = default_icon,
        temp_root: Optional[Path] = None,
    ) -> None:
        self.client = client
        self._course_sync = course_sync
        self._icon = icon
        self._fetcher = PageFetcher(client, temp_root=temp_root)
        self._names = ItemNameResolver(client)
        self._logger = logging.getLogger(__name__)

    @property
    def token_session(self) -> TokenSession:
        return self.client.token_session

    def is_logged_in(self) -> bool:
        return self.token_session.is_logged_in()

    def log_out(self) -> None:
        self.token_session.log_out()

    def list_items(self, path: str = "") -> List[ListingItem]:
        """
        一覧を返す。APIエラー時はログアウトして空リスト。

        ルート（notebook一覧）を開いたときにコース用ノートブックを同期する。
        """
        try:
            items = list_items(self.client, path, icon=self._icon)
        except OneNoteError as e:
            self._logger.warning("Listing failed for path=%r: %s", path, e)
            self.log_out()
            return []

        if not path and self._course_sync is not None:
            try:
                self._course_sync.sync(items)
            except OneNoteError as e:
                self._logger.error("Course notebook sync failed: %s", e)

        return items

    def get_item_name(self, item_id: str) -> Optional[str]:
        return self._names.get_item_name(item_id)

    def download_page(self, page_id: str, destination_path: str | os.PathLike[str]) -> FetchResult:
        return self._fetcher.fetch(page_id, destination_path)

    def get_page(self, page_id: str) -> Optional[dict]:
        return self.client.get_page(page_id)

    def create_page(self, section_id: str, payload: PagePayload) -> dict:
        return self.client.create_page(section_id, payload)

    def close(self) -> None:
        self.client.close()
