from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any
from urllib.parse import quote

import httpx

from elearning.core.config import settings
from elearning.core.errors import PersistenceError
from elearning.store.base import DocumentStore, join_path, normalize_path


log = logging.getLogger(__name__)


class HttpDocumentStore(DocumentStore):
    """Realtime-database REST client: ``{base_url}/{path}.json`` with GET/PUT/PATCH/DELETE.

    A JSON ``null`` body means the path is absent. The service has no multi-key
    transactions, so ``transaction()`` is the inherited no-op and every write lands
    on its own.
    """

    def __init__(
        self,
        base_url: str,
        *,
        auth_token: str | None = None,
        client: httpx.Client | None = None,
        timeout_connect: float | None = None,
        timeout_read: float | None = None,
    ):
        self.base_url = str(base_url or "").rstrip("/")
        if not self.base_url:
            raise ValueError("base_url is required")
        self.auth_token = auth_token
        if client is None:
            connect = float(timeout_connect if timeout_connect is not None else settings.store_timeout_connect)
            read = float(timeout_read if timeout_read is not None else settings.store_timeout_read)
            client = httpx.Client(timeout=httpx.Timeout(read, connect=connect))
        self.client = client

    @classmethod
    def from_settings(cls) -> "HttpDocumentStore":
        return cls(str(settings.store_base_url or ""), auth_token=settings.store_auth_token)

    def _url(self, path: str) -> str:
        return f"{self.base_url}/{quote(path)}.json"

    def _params(self, **extra: str) -> dict[str, str]:
        params = dict(extra)
        if self.auth_token:
            params["auth"] = self.auth_token
        return params

    def _request(self, method: str, path: str, *, json: Any = None, params: dict[str, str] | None = None) -> Any:
        try:
            resp = self.client.request(method, self._url(path), json=json, params=params or self._params())
            resp.raise_for_status()
            if method in {"PUT", "PATCH", "DELETE"}:
                return None
            return resp.json()
        except httpx.HTTPStatusError as e:
            log.warning("http_store: %s %s -> %s", method, path, e.response.status_code)
            raise PersistenceError(f"{method} {path} failed with status {e.response.status_code}") from e
        except httpx.HTTPError as e:
            log.warning("http_store: %s %s transport error: %s", method, path, type(e).__name__)
            raise PersistenceError(f"{method} {path} failed") from e
        except ValueError as e:
            raise PersistenceError(f"{method} {path} returned invalid JSON") from e

    def get(self, path: str) -> Any | None:
        return self._request("GET", normalize_path(path))

    def set(self, path: str, value: Any) -> None:
        p = normalize_path(path)
        if value is None:
            self._request("DELETE", p)
            return
        self._request("PUT", p, json=value)

    def update(self, path: str, values: Mapping[str, Any]) -> None:
        p = normalize_path(path)
        # PATCH keys are relative paths; normalize them the same way as full paths.
        body = {join_path(key): value for key, value in values.items()}
        self._request("PATCH", p, json=body)

    def ping(self) -> None:
        self._request("GET", normalize_path(settings.store_namespace), params=self._params(shallow="true"))

    def close(self) -> None:
        self.client.close()
