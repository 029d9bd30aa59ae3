import uuid
import time
import json
import logging
from datetime import datetime, timezone
from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from elearning.core.config import settings
from elearning.core.errors import ProgressError
from elearning.routers import evaluations, health, me, progress
from elearning.store.base import InvalidPath


def _error_payload(request: Request, error_code: str, error_message: str) -> dict:
    rid = getattr(getattr(request, "state", None), "request_id", None)
    return {
        "ok": False,
        "error_code": error_code,
        "error_message": error_message,
        "request_id": str(rid or "").strip() or None,
    }


def create_app() -> FastAPI:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s %(message)s")
    app = FastAPI(title="E-learning Progress API", version="1.0.0")

    logger = logging.getLogger("elearning")
    logging.getLogger("httpx").setLevel(logging.WARNING)

    allow_origins = [o.strip() for o in str(settings.cors_allow_origins or "").split(",") if o.strip()]
    if "*" in allow_origins:
        raise RuntimeError("CORS_ALLOW_ORIGINS must not include '*' when allow_credentials=true")

    is_prod = (settings.app_env or "").strip().lower() in {"prod", "production"}

    @app.middleware("http")
    async def request_id_middleware(request: Request, call_next):
        t0 = time.perf_counter()
        rid = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = rid
        status_code: int | None = None
        try:
            response = await call_next(request)
            status_code = int(getattr(response, "status_code", 0) or 0)
        except Exception:
            status_code = 500
            raise
        finally:
            path = request.url.path
            if not path.startswith("/health"):
                logger.info(
                    json.dumps(
                        {
                            "ts": datetime.now(timezone.utc).isoformat(),
                            "rid": rid,
                            "user_id": getattr(request.state, "user_id", None),
                            "method": request.method,
                            "path": path,
                            "status": status_code,
                            "duration_ms": int((time.perf_counter() - t0) * 1000),
                        },
                        ensure_ascii=False,
                    )
                )
        response.headers["X-Request-ID"] = rid

        response.headers.setdefault("X-Content-Type-Options", "nosniff")
        response.headers.setdefault("X-Frame-Options", "DENY")
        response.headers.setdefault("Referrer-Policy", "no-referrer")
        if is_prod:
            response.headers.setdefault("Strict-Transport-Security", "max-age=31536000; includeSubDomains")
        return response

    @app.exception_handler(ProgressError)
    async def progress_error_handler(request: Request, exc: ProgressError):
        if exc.status_code >= 500:
            logger.warning("request failed: %s", exc.message)
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_payload(request, exc.error_code, exc.message),
        )

    @app.exception_handler(InvalidPath)
    async def invalid_path_handler(request: Request, exc: InvalidPath):
        return JSONResponse(status_code=400, content=_error_payload(request, "invalid_path", str(exc)))

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        detail = exc.detail
        if isinstance(detail, dict):
            error_code = str(detail.get("error_code") or "http_error")
            error_message = str(detail.get("error_message") or detail.get("detail") or "request failed")
        else:
            error_code = {401: "unauthorized", 403: "forbidden", 429: "rate_limited"}.get(int(exc.status_code), "http_error")
            error_message = str(detail or "request failed")

        return JSONResponse(
            status_code=int(exc.status_code),
            content=_error_payload(request, error_code, error_message),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception("unhandled exception", extra={"rid": getattr(request.state, "request_id", None)})
        return JSONResponse(
            status_code=500,
            content=_error_payload(request, "internal_error", "internal server error"),
        )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=allow_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"] if is_prod else ["*"],
        allow_headers=["authorization", "content-type", "x-request-id"] if is_prod else ["*"],
    )

    app.include_router(health.router)
    app.include_router(evaluations.router)
    app.include_router(progress.router)
    app.include_router(me.router)

    return app


app = create_app()
