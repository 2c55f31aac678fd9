# main.py
from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Optional, Sequence

from .config import AppSettings, load_settings
from .errors import OneNoteError
from .logging_config import setup_logging
from .models.models import Course
from .repository import OneNoteRepository
from .services.course_sync import CourseNotebookSync, InMemorySectionMappingStore
from .services.graph_client import OneNoteClient
from .services.oauth import TokenSession

logger = logging.getLogger(__name__)


def _course(value: str) -> Course:
    """「ID=コース名」形式の引数を Course にする。"""
    course_id, sep, fullname = value.partition("=")
    if not sep or not course_id.strip().isdigit() or not fullname.strip():
        raise argparse.ArgumentTypeError(f"expected ID=NAME, got {value!r}")
    return Course(id=int(course_id), fullname=fullname.strip())


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="onenote-repository",
        description="Browse and download OneNote notebooks, sections and pages.",
    )
    parser.add_argument("--log-dir", default=None, help="Write rotating log files to this directory.")
    sub = parser.add_subparsers(dest="command", required=True)

    p_list = sub.add_parser("list", help="List notebooks, sections (/NB) or pages (/NB/SECTION).")
    p_list.add_argument("path", nargs="?", default="")

    p_dl = sub.add_parser("download", help="Download a page (zip if it has images).")
    p_dl.add_argument("page_id")
    p_dl.add_argument("destination")

    p_sync = sub.add_parser("provision", help="Create the course notebook and one section per course.")
    p_sync.add_argument("--course", dest="courses", type=_course, action="append", required=True,
                        metavar="ID=NAME")
    p_sync.add_argument("--user-id", type=int, default=0)

    sub.add_parser("signin-url", help="Print the OAuth2 authorization URL.")
    return parser


def _token_session(settings: AppSettings) -> TokenSession:
    """ACCESS_TOKEN が設定されていればそれを使い、無ければOAuth用のセッションを作る。"""
    if settings.access_token:
        return TokenSession.from_access_token(settings.access_token)
    return TokenSession(settings.client_id, settings.client_secret, settings.redirect_uri)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = _build_parser().parse_args(argv)
    settings = load_settings()
    setup_logging(log_dir=args.log_dir, level=settings.log_level)

    token_session = _token_session(settings)

    if args.command == "signin-url":
        print(token_session.authorization_url())
        return 0

    client = OneNoteClient(token_session, api_base=settings.api_base)
    mappings = InMemorySectionMappingStore()
    course_sync = None
    if args.command == "provision":
        course_sync = CourseNotebookSync(
            client,
            notebook_name=settings.notebook_name,
            courses=lambda: args.courses,
            mappings=mappings,
            user_id=args.user_id,
        )

    repo = OneNoteRepository(client, course_sync=course_sync)
    try:
        if args.command == "list":
            items = repo.list_items(args.path)
            print(json.dumps([item.to_dict() for item in items], ensure_ascii=False, indent=2))
            return 0

        if args.command == "provision":
            # ルート一覧を開くと同期が走る
            repo.list_items("")
            rows = [
                {"course_id": c.id, "section_id": mappings.get(args.user_id, c.id)}
                for c in args.courses
            ]
            print(json.dumps(rows, ensure_ascii=False, indent=2))
            return 0 if all(r["section_id"] for r in rows) else 1

        result = repo.download_page(args.page_id, args.destination)
        print(f"[OK] saved {result.path} from {result.url}")
        return 0
    except OneNoteError as e:
        logger.error("Command %s failed: %s", args.command, e)
        return 1
    finally:
        repo.close()


if __name__ == "__main__":
    sys.exit(main())
