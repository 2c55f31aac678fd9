from __future__ import annotations


class OneNoteError(RuntimeError):
    """OneNote API 呼び出しで発生するエラーの基底クラス。"""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class AuthError(OneNoteError):
    """トークンが無い / 失効している（401）。"""


class NotFoundError(OneNoteError):
    """APIが対象を返さなかった（404、エラーペイロード等）。"""


class ApiError(NotFoundError):
    """2xx だがボディに error が入っていたケース。"""


class TransportError(NotFoundError):
    """接続失敗・タイムアウトなど、レスポンスが得られなかったケース。"""


class PackagingError(OneNoteError):
    """作業ディレクトリ/ファイル作成、zip化の失敗。"""
