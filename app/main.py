import logging

import uvicorn
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.api.v1.routers.objects import router as objects_router
from app.common.config import Settings, get_settings
from app.common.logging import setup_logging
from app.infra.observability.metrics import metrics_app
from app.infra.observability.middleware import MetricsMiddleware

PROBLEM_JSON = "application/problem+json"

ERROR_CODE_BY_STATUS = {
    400: "bad_request",
    401: "unauthorized",
    404: "not_found",
    405: "method_not_allowed",
    413: "payload_too_large",
    500: "internal_error",
    503: "service_unavailable",
}


def _normalize_detail(detail):
    if isinstance(detail, dict):
        maybe_code = detail.get("error_code")
        cleaned = {k: v for k, v in detail.items() if k != "error_code"}
        if len(cleaned) == 1 and "message" in cleaned:
            cleaned = cleaned["message"]
        if not cleaned:
            cleaned = None
        return cleaned, maybe_code if isinstance(maybe_code, str) else None
    return detail, None


def _resolve_error_code(status_code: int, override: str | None = None) -> str:
    if override:
        return override
    if status_code == 422:
        return "validation_error"
    return ERROR_CODE_BY_STATUS.get(status_code, "unknown_error")


def _describe_storage_target(settings: Settings) -> str:
    # never include credentials
    endpoint = settings.S3_ENDPOINT_URL or "aws"
    region = settings.S3_REGION or "-"
    return (
        f"bucket={settings.S3_BUCKET}, endpoint={endpoint}, region={region}, "
        f"part_size_bytes={settings.STORAGE_PART_SIZE_BYTES}, "
        f"upload_concurrency={settings.UPLOAD_CONCURRENCY}, "
        f"max_list_keys={settings.S3_MAX_LIST_KEYS}"
    )


def _problem(
    request: Request,
    *,
    status_code: int,
    title: str,
    detail,
    error_code: str,
    headers: dict | None = None,
) -> JSONResponse:
    """Render an RFC 7807 problem document."""
    return JSONResponse(
        status_code=status_code,
        media_type=PROBLEM_JSON,
        headers=headers,
        content={
            "type": "about:blank",
            "title": title,
            "status": status_code,
            "detail": detail,
            "error_code": error_code,
            "instance": str(request.url),
            "request_id": request.headers.get("X-Request-Id"),
        },
    )


def _register_error_handlers(app: FastAPI) -> None:
    logger = logging.getLogger("http")

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        detail, code_override = _normalize_detail(exc.detail)
        context = {
            "status": exc.status_code,
            "detail": detail,
            "method": request.method,
            "route": request.url.path,
            "request_id": request.headers.get("X-Request-Id"),
        }
        server_fault = exc.status_code >= 500
        logger.log(
            logging.ERROR if server_fault else logging.WARNING,
            "http_exception status=%s detail=%s method=%s path=%s request_id=%s",
            exc.status_code,
            detail,
            request.method,
            request.url.path,
            context["request_id"],
            # the storage fault behind a 500 is chained as __cause__
            exc_info=exc.__cause__ if server_fault else None,
            extra={"extra": context},
        )
        return _problem(
            request,
            status_code=exc.status_code,
            title="HTTP Error",
            detail=detail,
            error_code=_resolve_error_code(exc.status_code, code_override),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_exception_handler(
        request: Request, exc: RequestValidationError
    ):
        return _problem(
            request,
            status_code=422,
            title="Validation Error",
            detail=jsonable_encoder(exc.errors()),
            error_code=_resolve_error_code(422),
        )


def create_app() -> FastAPI:
    settings = get_settings()
    setup_logging(settings.LOG_LEVEL)
    app = FastAPI(
        title="Cloudstore",
        version="v1.0",
        description="Per-user object storage backed by S3 multipart uploads",
    )

    if settings.CORS_ENABLED:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.CORS_ORIGINS or ["*"],
            allow_credentials=True,
            allow_methods=["GET", "POST"],
            allow_headers=["*"],
            expose_headers=["Location", "X-Request-Id"],
        )

    app.include_router(objects_router, tags=["objects"])

    if settings.ENABLE_METRICS:
        app.add_middleware(MetricsMiddleware)
        app.mount("/metrics", metrics_app)

    @app.on_event("startup")
    def on_startup() -> None:
        logging.getLogger("app.startup").info(
            "Object storage configured. [event=storage_configured] (%s)",
            _describe_storage_target(settings),
        )

    _register_error_handlers(app)

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    return app


app = create_app()

if __name__ == "__main__":
    uvicorn.run("app.main:app", host="0.0.0.0", port=8080, reload=True)
