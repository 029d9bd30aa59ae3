from __future__ import annotations

import contextlib
import re
from abc import ABC, abstractmethod
from collections.abc import Iterator, Mapping
from typing import Any


_FORBIDDEN_KEY_CHARS = re.compile(r"[.$#\[\]]")


class InvalidPath(ValueError):
    pass


def normalize_path(path: str) -> str:
    """Collapse slashes and validate each segment against realtime-database key rules."""
    segments = [s for s in str(path or "").split("/") if s]
    if not segments:
        raise InvalidPath("empty document path")
    for seg in segments:
        if _FORBIDDEN_KEY_CHARS.search(seg):
            raise InvalidPath(f"invalid path segment: {seg!r}")
    return "/".join(segments)


def join_path(*parts: object) -> str:
    return normalize_path("/".join(str(p) for p in parts))


def ancestors(path: str) -> list[str]:
    segments = path.split("/")
    return ["/".join(segments[:i]) for i in range(1, len(segments))]


class DocumentStore(ABC):
    """Hierarchical JSON store addressed by slash-delimited paths.

    ``set`` replaces the subtree at a path (``None`` deletes it), ``update`` replaces
    only the named children. Backend failures are raised as ``PersistenceError``.
    """

    @abstractmethod
    def get(self, path: str) -> Any | None: ...

    @abstractmethod
    def set(self, path: str, value: Any) -> None: ...

    @abstractmethod
    def update(self, path: str, values: Mapping[str, Any]) -> None: ...

    @abstractmethod
    def ping(self) -> None: ...

    def delete(self, path: str) -> None:
        self.set(path, None)

    @contextlib.contextmanager
    def transaction(self) -> Iterator[None]:
        # Backends without multi-key transactions apply each write immediately.
        yield
