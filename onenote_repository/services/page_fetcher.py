from __future__ import annotations

import codecs
import json
import logging
import os
import shutil
import tempfile
import uuid
import zipfile
from pathlib import Path
from typing import Optional
from urllib.parse import urljoin

import lxml.html
from lxml import etree

from .. import config
from ..errors import ApiError, AuthError, NotFoundError, OneNoteError, PackagingError
from ..models.models import FetchResult
from .graph_client import OneNoteClient

# zip内のタイムスタンプを固定して、同じ内容なら同じバイト列になるようにする
_ZIP_DATE_TIME = (1980, 1, 1, 0, 0, 0)

logger = logging.getLogger(__name__)


def create_temp_folder(*, prefix: str = config.TEMP_PREFIX, root: Optional[Path] = None) -> Path:
    """
    呼び出しごとに一意な作業ディレクトリを作る。

    同名ディレクトリが残っていた場合は先に削除してから作り直す。
    """
    base = Path(root) if root is not None else Path(tempfile.gettempdir())
    folder = base / f"{prefix}{uuid.uuid4().hex}"
    if folder.exists():
        shutil.rmtree(folder)
    try:
        folder.mkdir(parents=True)
    except OSError as e:
        raise PackagingError(f"Cannot create temp folder {folder}: {e}") from e
    return folder


def archive_folder(folder: Path, destination: Path) -> None:
    """folder 配下を（folder自体は含めず）zipにまとめる。"""
    entries = sorted(folder.rglob("*"), key=lambda p: p.relative_to(folder).as_posix())
    try:
        with zipfile.ZipFile(destination, "w", compression=zipfile.ZIP_DEFLATED) as zf:
            for path in entries:
                arcname = path.relative_to(folder).as_posix()
                if path.is_dir():
                    info = zipfile.ZipInfo(arcname + "/", date_time=_ZIP_DATE_TIME)
                    info.external_attr = (0o40755 << 16) | 0x10
                    zf.writestr(info, b"")
                    continue
                info = zipfile.ZipInfo(arcname, date_time=_ZIP_DATE_TIME)
                info.compress_type = zipfile.ZIP_DEFLATED
                info.external_attr = 0o644 << 16
                zf.writestr(info, path.read_bytes())
    except (OSError, zipfile.BadZipFile) as e:
        # 中途半端なzipは残さない
        destination.unlink(missing_ok=True)
        raise PackagingError(f"Cannot archive {folder} to {destination}: {e}") from e


class PageFetcher:
    """
    OneNoteページをダウンロードしてファイルにする。

    - 画像が無いページ: レスポンス本文をそのまま書き出す
    - 画像があるページ: page.html + page_files/1..N をzipにまとめる
    - 画像の取得に1つでも失敗したらページ全体を失敗とする（部分的な成果物は作らない）
    """

    def __init__(self, client: OneNoteClient, *, temp_root: Optional[Path] = None) -> None:
        self._client = client
        self._temp_root = temp_root

    def content_url(self, page_id: str) -> str:
        return self._client.url("pages", page_id, "content")

    def fetch(self, page_id: str, destination_path: str | os.PathLike[str]) -> FetchResult:
        if not page_id:
            raise ValueError("page_id must not be empty")

        destination = Path(destination_path)
        url = self.content_url(page_id)
        logger.info("Downloading page: page_id=%s destination=%s", page_id, destination)

        try:
            resp = self._client.get(url)
            _raise_for_error_payload(resp.headers.get("Content-Type", ""), resp.content)
        except (AuthError, NotFoundError):
            # 失効トークン等を引きずらないよう、次回は再認証させる
            self._client.token_session.log_out()
            raise
        except OneNoteError as e:
            # 403/5xx/リトライ切れもページ取得失敗として扱う
            self._client.token_session.log_out()
            raise NotFoundError(f"Page {page_id} could not be fetched: {e}", status_code=e.status_code) from e

        body = resp.content
        encoding = _response_encoding(resp.headers.get("Content-Type", ""), resp.encoding)
        doc = _parse_html(body, encoding)
        images = [img for img in doc.xpath("//img[@src]") if img.get("src", "").strip()] if doc is not None else []

        if not images:
            _write_bytes(destination, body)
            logger.info("Page saved without images: %s", destination)
            return FetchResult(path=destination, url=url)

        temp_folder = create_temp_folder(root=self._temp_root)
        try:
            files_folder = temp_folder / config.PAGE_FILES_DIR
            try:
                files_folder.mkdir()
            except OSError as e:
                raise PackagingError(f"Cannot create {files_folder}: {e}") from e

            for i, img in enumerate(images, start=1):
                src = urljoin(url, img.get("src").strip())
                try:
                    image_resp = self._client.get(src)
                except AuthError:
                    self._client.token_session.log_out()
                    raise
                _write_bytes(files_folder / str(i), image_resp.content)
                img.set("src", f"./{config.PAGE_FILES_DIR}/{i}")

            # 元と同じ文字コードで書き戻す（meta charset と食い違わないように）
            _write_bytes(
                temp_folder / config.PAGE_HTML_NAME,
                lxml.html.tostring(doc.getroottree(), method="html", encoding=encoding),
            )
            archive_folder(temp_folder, destination)
        finally:
            shutil.rmtree(temp_folder, ignore_errors=True)

        logger.info("Page archived with %s image(s): %s", len(images), destination)
        return FetchResult(path=destination, url=url)


def _raise_for_error_payload(content_type: str, body: bytes) -> None:
    """content エンドポイントがJSONのエラーを返してきた場合に ApiError にする。"""
    if "json" not in content_type.lower():
        return
    try:
        data = json.loads(body)
    except ValueError:
        return
    if isinstance(data, dict) and data.get("error"):
        raise ApiError(f"OneNote API error: {data['error']}")


def _response_encoding(content_type: str, declared: Optional[str]) -> str:
    """
    Content-Type に charset があればそれを、無ければ UTF-8 を使う。

    requests は charset 無しの text/* を ISO-8859-1 とみなすので、その値は使わない。
    """
    if declared and "charset=" in content_type.lower():
        try:
            codecs.lookup(declared)
            return declared
        except LookupError:
            logger.warning("Unknown charset %r, falling back to utf-8", declared)
    return "utf-8"


def _parse_html(body: bytes, encoding: str) -> Optional[etree._Element]:
    if not body.strip():
        return None
    parser = lxml.html.HTMLParser(encoding=encoding)
    try:
        return lxml.html.document_fromstring(body, parser=parser)
    except etree.ParserError:
        return None


def _write_bytes(path: Path, data: bytes) -> None:
    try:
        path.write_bytes(data)
    except OSError as e:
        raise PackagingError(f"Cannot write {path}: {e}") from e
