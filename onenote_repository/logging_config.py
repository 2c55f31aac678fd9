from __future__ import annotations

import logging
import os
from logging.handlers import RotatingFileHandler
from pathlib import Path


def setup_logging(
    *,
    log_dir: str | None = "logs",
    level: str = "INFO",
    filename: str = "onenote_repository.log",
    max_bytes: int = 5 * 1024 * 1024,  # 5MB
    backup_count: int = 3,
) -> None:
    """
    ロギング設定（コンソール + ローテーションファイル）を行う。

    - ルートロガーに既にハンドラがあれば何もしない。
    - log_dir に None を渡すとファイル出力を行わない。
    """
    root = logging.getLogger()
    if root.handlers:
        return

    fmt = logging.Formatter(
        fmt="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    console = logging.StreamHandler()
    console.setFormatter(fmt)
    root.addHandler(console)

    if log_dir:
        Path(log_dir).mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            os.path.join(log_dir, filename),
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
        file_handler.setFormatter(fmt)
        root.addHandler(file_handler)

    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    # urllib3 の接続ログはDEBUGでもうるさいので抑える
    logging.getLogger("urllib3").setLevel(logging.WARNING)
