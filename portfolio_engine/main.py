# portfolio_engine/main.py
from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import settings
from .domain.errors import EngineError
from .logging_config import configure_logging
from .middleware.request_id import RequestIDMiddleware
from .middleware.structured_logging import StructuredLoggingMiddleware

from .routers.health import router as health_router
from .routers.landlords import router as landlords_router
from .routers.tenancies import router as tenancies_router
from .routers.rent_payments import router as rent_payments_router
from .routers.maintenance import router as maintenance_router
from .routers.inspections import router as inspections_router
from .routers.financial_reports import router as financial_reports_router

API_PREFIX = "/api"

log = logging.getLogger("portfolio_engine.api")


def _cors_origins() -> list[str]:
    val = getattr(settings, "cors_allow_origins", ["*"])
    if isinstance(val, str):
        v = val.strip()
        return ["*"] if v == "*" else [x.strip() for x in v.split(",") if x.strip()]
    if isinstance(val, list) and val:
        return val
    return ["*"]


async def engine_error_handler(request: Request, exc: EngineError) -> JSONResponse:
    level = logging.WARNING if exc.status_code >= 409 else logging.INFO
    log.log(
        level,
        "%s: %s",
        exc.code,
        exc.message,
        extra={"http": {"method": request.method, "path": request.url.path, "status_code": exc.status_code}},
    )
    return JSONResponse(status_code=exc.status_code, content=exc.as_dict())


def create_app() -> FastAPI:
    configure_logging()

    app = FastAPI(
        title="Portfolio Lifecycle Engine",
        version=settings.app_version,
    )

    # Request-ID first so the request log line carries it
    app.add_middleware(StructuredLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=_cors_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(EngineError, engine_error_handler)

    app.include_router(health_router, prefix=API_PREFIX)

    app.include_router(landlords_router, prefix=API_PREFIX)
    app.include_router(tenancies_router, prefix=API_PREFIX)
    app.include_router(rent_payments_router, prefix=API_PREFIX)
    app.include_router(maintenance_router, prefix=API_PREFIX)
    app.include_router(inspections_router, prefix=API_PREFIX)
    app.include_router(financial_reports_router, prefix=API_PREFIX)

    return app


app = create_app()
