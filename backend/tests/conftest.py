import fnmatch
import sys
import time
import uuid
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

backend_dir = Path(__file__).resolve().parents[1]
if str(backend_dir) not in sys.path:
    sys.path.insert(0, str(backend_dir))

from jose import jwt
from sqlalchemy import create_engine, delete
from sqlalchemy.pool import StaticPool

from elearning.core.cache import MemoryCache, get_cache
from elearning.core.config import settings
from elearning.db.base import Base
from elearning.db import session as session_module
from elearning.main import create_app
from elearning.store import SqlDocumentStore, get_store, join_path

# Import models so that they are registered in Base.metadata before create_all.
from elearning.models.document import Document


class _MemoryRedis:
    def __init__(self):
        self._data: dict[str, tuple[str, float | None]] = {}

    def ping(self):
        return True

    def _now(self) -> float:
        return time.time()

    def _get_entry(self, key: str):
        v = self._data.get(key)
        if not v:
            return None
        value, exp = v
        if exp is not None and exp <= self._now():
            self._data.pop(key, None)
            return None
        return value, exp

    def get(self, key: str):
        entry = self._get_entry(key)
        return entry[0] if entry else None

    def set(self, key: str, value: str, ex: int | None = None):
        exp = (self._now() + int(ex)) if ex else None
        self._data[key] = (value, exp)
        return True

    def delete(self, *keys: str):
        removed = 0
        for key in keys:
            if self._data.pop(key, None) is not None:
                removed += 1
        return removed

    def scan_iter(self, match: str | None = None):
        for key in list(self._data):
            if match is None or fnmatch.fnmatchcase(key, match):
                yield key

    def incr(self, key: str):
        cur = self.get(key)
        n = int(cur or 0) + 1
        _, exp = self._data.get(key, ("", None))
        self._data[key] = (str(n), exp)
        return n

    def expire(self, key: str, seconds: int):
        entry = self._get_entry(key)
        if not entry:
            return False
        value, _ = entry
        self._data[key] = (value, self._now() + int(seconds))
        return True

    def ttl(self, key: str):
        entry = self._get_entry(key)
        if not entry:
            return -2
        _, exp = entry
        if exp is None:
            return -1
        return max(0, int(exp - self._now()))


# Configure test DB (SQLite in-memory) at import time so every SessionLocal() in the
# tests and in the app shares one connection.
_engine = create_engine(
    "sqlite+pysqlite:///:memory:",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
Base.metadata.create_all(bind=_engine)
session_module.engine = _engine
session_module.SessionLocal = session_module.sessionmaker(autocommit=False, autoflush=False, bind=_engine)


# Stub Redis at import time (rate limiting).
_mem_redis = _MemoryRedis()
import elearning.core.redis_client as redis_client_module

redis_client_module.get_redis = lambda: _mem_redis

import elearning.core.rate_limit as rate_limit_module

rate_limit_module.get_redis = lambda: _mem_redis


QUIZ_ANSWERS = [1, 0, 2, 1, 3]


def make_quiz(correct: list[int] | None = None) -> dict:
    correct = correct or QUIZ_ANSWERS
    return {
        "questions": [
            {"question": f"Question {idx + 1}", "options": ["a", "b", "c", "d"], "correctAnswer": answer}
            for idx, answer in enumerate(correct)
        ]
    }


def answers_with(correct_count: int) -> dict[int, int]:
    """Answers for the default quiz with exactly ``correct_count`` of them right."""
    out: dict[int, int] = {}
    for idx, answer in enumerate(QUIZ_ANSWERS):
        out[idx] = answer if idx < correct_count else (answer + 1) % 4
    return out


def seed_course(store, course_id: str, module_ids: list[str], with_quiz: bool = True) -> None:
    modules = {}
    for mid in module_ids:
        modules[mid] = {"title": f"Module {mid}"}
        if with_quiz:
            modules[mid]["quiz"] = make_quiz()
    store.set(join_path(settings.catalog_path, course_id), {"title": f"Course {course_id}", "modules": modules})


def seed_user(store, user_id: str, **info) -> None:
    store.set(join_path(settings.users_path, user_id), {"name": "Test User", "email": "test@example.com", **info})


def make_token(user_id: str, role: str = "student") -> str:
    return jwt.encode(
        {"sub": user_id, "role": role, "iss": settings.jwt_issuer, "exp": int(time.time()) + 3600},
        settings.jwt_secret_key,
        algorithm=settings.jwt_algorithm,
    )


@pytest.fixture(autouse=True)
def _clean_documents():
    with session_module.SessionLocal() as db:
        db.execute(delete(Document))
        db.commit()
    _mem_redis._data.clear()
    yield


@pytest.fixture()
def db():
    with session_module.SessionLocal() as session:
        yield session


@pytest.fixture()
def store(db):
    return SqlDocumentStore(db)


@pytest.fixture()
def cache():
    return MemoryCache(ttl_seconds=300)


@pytest.fixture()
def client(cache):
    app = create_app()

    # Ensure app dependencies use our session factory.
    def _get_db_override():
        db = session_module.SessionLocal()
        try:
            yield db
        finally:
            db.close()

    def _get_store_override():
        db = session_module.SessionLocal()
        try:
            yield SqlDocumentStore(db)
        finally:
            db.close()

    app.dependency_overrides[session_module.get_db] = _get_db_override
    app.dependency_overrides[get_store] = _get_store_override
    app.dependency_overrides[get_cache] = lambda: cache
    return TestClient(app)


@pytest.fixture()
def user_id():
    return f"user_{uuid.uuid4().hex[:8]}"


@pytest.fixture()
def auth_headers(user_id):
    return {"Authorization": f"Bearer {make_token(user_id)}"}


@pytest.fixture()
def admin_headers():
    return {"Authorization": f"Bearer {make_token('admin_' + uuid.uuid4().hex[:8], role='admin')}"}
