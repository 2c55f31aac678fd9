from __future__ import annotations

import html
import logging
import mimetypes
import posixpath
from datetime import datetime
from typing import Callable, List, Optional
from urllib.parse import quote, unquote

import lxml.html
from lxml import etree

from ..models.models import BinaryPart, PagePayload, StoredFile

# ホスト側ファイル参照: (filepath, filename) -> StoredFile | None
FileLookup = Callable[[str, str], Optional[StoredFile]]

PLUGINFILE_PREFIX = "@@PLUGINFILE@@"

_BODY_STYLE = "font-family:'Helvetica Neue',Helvetica,Arial,sans-serif;font-size:14px; color:rgb(3,3,3);"

logger = logging.getLogger(__name__)


def _guess_mime(filename: str) -> str:
    mime, _ = mimetypes.guess_type(filename)
    # 拡張子から分からない場合は画像として送る
    return mime or "image/jpeg"


def _split_pluginfile(src: str) -> Optional[tuple[str, str]]:
    """@@PLUGINFILE@@/dir/name.png → ("/dir/", "name.png")"""
    decoded = unquote(src)
    if not decoded.startswith(PLUGINFILE_PREFIX):
        return None
    dirname, basename = posixpath.split(decoded[len(PLUGINFILE_PREFIX):])
    if not basename:
        return None
    return dirname.rstrip("/") + "/", basename


def _body_inner_html(body: etree._Element) -> str:
    out = [html.escape(body.text or "")]
    for child in body:
        out.append(lxml.html.tostring(child, encoding="unicode", method="html"))
    return "".join(out)


def build_assignment_page(
    name: str,
    intro_html: str,
    file_lookup: FileLookup,
    *,
    created: Optional[datetime] = None,
) -> PagePayload:
    """
    課題の説明HTMLをOneNoteページ作成用の素材にする。

    - 本文中の @@PLUGINFILE@@ 参照をホストのファイルから取り出し、バイナリパートにする
    - img 等の src は name:<パート名> に書き換える（見つからないファイルはそのまま）
    """
    parts: List[BinaryPart] = []
    body_html = ""

    if intro_html and intro_html.strip():
        doc = lxml.html.document_fromstring(intro_html)
        body = doc.body

        for el in body.xpath(".//*[@src]"):
            split = _split_pluginfile(el.get("src"))
            if split is None:
                continue
            filepath, filename = split

            stored = file_lookup(filepath, filename)
            if stored is None:
                logger.warning("Embedded file not found: %s%s", filepath, filename)
                continue

            part_name = quote(posixpath.splitext(filename)[0], safe="")
            if any(p.name == part_name for p in parts):
                part_name = f"{part_name}_{len(parts) + 1}"

            el.set("src", f"name:{part_name}")
            parts.append(
                BinaryPart(
                    name=part_name,
                    filename=quote(stored.filename, safe=""),
                    content_type=_guess_mime(stored.filename),
                    data=stored.content,
                )
            )

        body_html = _body_inner_html(body)

    stamp = (created or datetime.now()).strftime("%Y-%m-%d %H:%M:%S")
    title = f"Assignment: {name}"
    presentation = f"""<!DOCTYPE html>
<html>
<head>
<title>{html.escape(title)}</title>
<meta name="created" content="{stamp}"/>
</head>
<body style="{_BODY_STYLE}">{body_html}</body>
</html>"""

    return PagePayload(page_title=title, presentation_html=presentation, parts=parts)
