from __future__ import annotations

import logging
from typing import Callable, Dict, Iterable, Optional, Protocol, Tuple

from ..models.models import Course, ListingItem
from .graph_client import OneNoteClient

CourseProvider = Callable[[], Iterable[Course]]


class SectionMappingStore(Protocol):
    """ユーザー×コース → OneNoteセクションID の対応表（ホスト側DB）。"""

    def save(self, user_id: int, course_id: int, section_id: str) -> None: ...

    def get(self, user_id: int, course_id: int) -> Optional[str]: ...


class InMemorySectionMappingStore:
    def __init__(self) -> None:
        self._rows: Dict[Tuple[int, int], str] = {}

    def save(self, user_id: int, course_id: int, section_id: str) -> None:
        # 既存行があれば更新、無ければ追加
        self._rows[(user_id, course_id)] = section_id

    def get(self, user_id: int, course_id: int) -> Optional[str]:
        return self._rows.get((user_id, course_id))

    def __len__(self) -> int:
        return len(self._rows)


class CourseNotebookSync:
    """
    受講中コースごとのセクションを持つノートブックを用意する。

    1. notebook_name のノートブックが無ければ作成、あればセクション一覧を取得
    2. コース名（fullname）のセクションが無ければ作成
    3. コースとセクションIDの対応を mappings に保存
    """

    def __init__(
        self,
        client: OneNoteClient,
        *,
        notebook_name: str,
        courses: CourseProvider,
        mappings: SectionMappingStore,
        user_id: int,
    ) -> None:
        self._client = client
        self.notebook_name = notebook_name
        self._courses = courses
        self._mappings = mappings
        self.user_id = user_id
        self._logger = logging.getLogger(__name__)

    def sync(self, notebooks: Iterable[ListingItem]) -> Optional[str]:
        """
        ルート一覧（notebooks）を受け取って同期し、ノートブックIDを返す。

        一覧が空の場合はまだ何も無いアカウントとみなして何もしない。
        """
        by_id = {nb.id: nb.title for nb in notebooks if nb.id}
        if not by_id:
            return None

        notebook_id = next((i for i, title in by_id.items() if title == self.notebook_name), None)
        sections: Dict[str, str] = {}

        if notebook_id is None:
            created = self._client.post_json(self._client.url("notebooks"), {"displayName": self.notebook_name})
            notebook_id = created.get("id")
            if not notebook_id:
                self._logger.warning("Notebook creation returned no id: %s", self.notebook_name)
                return None
            self._logger.info("Created course notebook: %s (%s)", self.notebook_name, notebook_id)
        else:
            data = self._client.get_json(self._client.url("notebooks", notebook_id, "sections"))
            for section in data.get("value") or []:
                sections[section["id"]] = section.get("displayName") or section.get("name") or ""

        self._create_sections(notebook_id, sections)
        return notebook_id

    def _create_sections(self, notebook_id: str, sections: Dict[str, str]) -> None:
        section_url = self._client.url("notebooks", notebook_id, "sections")
        id_by_name = {name: sid for sid, name in sections.items()}

        for course in self._courses():
            section_id = id_by_name.get(course.fullname)
            if section_id is None:
                created = self._client.post_json(section_url, {"displayName": course.fullname})
                section_id = created.get("id")
                if not section_id:
                    continue
                id_by_name[course.fullname] = section_id
                self._logger.info("Created section for course %s: %s", course.id, course.fullname)

            self._mappings.save(self.user_id, course.id, section_id)
