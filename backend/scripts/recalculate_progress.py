from __future__ import annotations

import argparse
import logging
import os
import pathlib
import sys

# Ensure imports work when running from any CWD (local) and in Docker (/app)
_HERE = pathlib.Path(__file__).resolve()
_BACKEND_ROOT = _HERE.parents[1]
sys.path.insert(0, str(_BACKEND_ROOT))
sys.path.insert(0, "/app")
sys.path.insert(0, os.getcwd())

from elearning.core.config import settings
from elearning.core.errors import PersistenceError
from elearning.db.session import SessionLocal
from elearning.services.progress import ProgressService
from elearning.store import DocumentStore, HttpDocumentStore, SqlDocumentStore


log = logging.getLogger("recalculate_progress")


def recalculate(service: ProgressService, user_ids: list[str], course_id: str | None = None) -> tuple[int, int]:
    """Recompute course summaries from module records. Returns (ok, failed)."""
    ok = 0
    failed = 0
    for user_id in user_ids:
        course_ids = [course_id] if course_id else service.list_course_ids(user_id)
        for cid in course_ids:
            try:
                cp = service.recalculate(user_id, cid)
            except PersistenceError as e:
                failed += 1
                log.warning("user=%s course=%s failed: %s", user_id, cid, e)
                continue
            ok += 1
            print(f"{user_id}\t{cid}\t{cp.completed_modules}/{cp.total_modules}\t{cp.progress}%\t{'completed' if cp.completed else ''}")
    return ok, failed


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Recalculate stored course progress from module records.")
    parser.add_argument("--user", dest="user_id", help="only this user (default: every user with progress)")
    parser.add_argument("--course", dest="course_id", help="only this course")
    parser.add_argument("--backend", choices=["sql", "http"], default=None, help="override STORE_BACKEND")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s %(message)s")

    backend = (args.backend or settings.store_backend or "sql").strip().lower()
    db = None
    store: DocumentStore
    if backend == "http":
        store = HttpDocumentStore.from_settings()
    else:
        db = SessionLocal()
        store = SqlDocumentStore(db)

    try:
        service = ProgressService(store)
        user_ids = [args.user_id] if args.user_id else service.list_user_ids()
        ok, failed = recalculate(service, user_ids, args.course_id)
    finally:
        if db is not None:
            db.close()

    print(f"recalculated={ok} failed={failed}")
    return 1 if failed else 0


if __name__ == "__main__":
    raise SystemExit(main())
