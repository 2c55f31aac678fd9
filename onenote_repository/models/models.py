from __future__ import annotations

import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional


ItemType = Literal["notebook", "section", "page"]


# =========================
#  ファイルピッカー向けの一覧1件
# =========================
@dataclass(slots=True)
class ListingItem:
    """
    notebook / section / page を同じ形で表す一覧要素。

    - path      ブラウズ用のパス（親パス + "/" + URLエンコード済みID）
    - date      更新日時（ページは作成日時）のepoch秒
    - children  notebook/section は空リスト、page は None（葉）
    """
    item_type: ItemType
    title: str
    path: str
    date: Optional[int]
    thumbnail: str
    source: str
    url: Optional[str]
    author: Any
    id: str
    children: Optional[list] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "title": self.title,
            "path": self.path,
            "date": self.date,
            "thumbnail": self.thumbnail,
            "source": self.source,
            "url": self.url,
            "author": self.author,
            "id": self.id,
        }
        if self.children is not None:
            out["children"] = list(self.children)
        return out


@dataclass(frozen=True)
class FetchResult:
    path: Path
    url: str


@dataclass(frozen=True)
class Course:
    id: int
    fullname: str


# 課題ページ作成時のバイナリパートデータモデル
@dataclass(frozen=True)
class BinaryPart:
    name: str
    filename: str
    content_type: str
    data: bytes


@dataclass(slots=True)
class PagePayload:
    """
    ページ作成（multipart）用の素材。

    - page_title        ページタイトル
    - presentation_html Presentationパートに入れるHTML全体
    - parts             name:<part名> で参照されるバイナリ
    """
    page_title: str
    presentation_html: str
    parts: List[BinaryPart] = field(default_factory=list)


@dataclass(frozen=True)
class StoredFile:
    """ホスト側ファイルストレージから取り出したファイル。"""
    filename: str
    content: bytes


@dataclass(frozen=True)
class TokenState:
    access_token: str
    refresh_token: Optional[str] = None
    expires_at: Optional[float] = None  # epoch秒。None は期限不明

    def is_expired(self, *, skew: float = 60.0, now: Optional[float] = None) -> bool:
        if self.expires_at is None:
            return False
        current = time.time() if now is None else now
        return current + skew >= self.expires_at
