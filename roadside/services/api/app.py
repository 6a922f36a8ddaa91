# roadside/services/api/app.py
"""
FastAPI приложение Roadside Dispatch.
"""

from __future__ import annotations

import time
from contextlib import asynccontextmanager
from typing import AsyncGenerator
from uuid import uuid4

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from roadside.common.constants import TypeMsg
from roadside.common.exceptions import DomainError
from roadside.common.logger import log_error, log_info, log_warning
from roadside.config import settings
from roadside.services.api import dependencies
from roadside.services.api.routes import admin, auth, chat, dev, mechanics, pricing, requests, users, wallet, ws
from roadside.services.realtime import RedisSubscriber, forward_to_connections, manager
from roadside.shared.models import ErrorResponse, HealthStatus

API_PREFIX = "/api/v1"

_started_at = time.monotonic()


# =============================================================================
# LIFESPAN
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Жизненный цикл приложения."""
    await log_info("Roadside API запускается...", type_msg=TypeMsg.INFO)

    await dependencies.init_dependencies()
    subscriber = RedisSubscriber(await dependencies.get_redis(), forward_to_connections(manager))
    await subscriber.start()

    yield

    await subscriber.stop()
    await dependencies.close_dependencies()
    await log_info("Roadside API остановлен", type_msg=TypeMsg.INFO)


# =============================================================================
# ПРИЛОЖЕНИЕ
# =============================================================================

app = FastAPI(
    title="Roadside Dispatch",
    description="Маркетплейс помощи на дороге: заявки, механики, выплаты",
    version=settings.system.VERSION,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

for module in (auth, users, mechanics, pricing, requests, chat, wallet, admin, dev):
    app.include_router(module.router, prefix=API_PREFIX)
app.include_router(ws.router)


# =============================================================================
# ОБРАБОТКА ОШИБОК
# =============================================================================

def _request_id(request: Request) -> str:
    return request.headers.get("X-Request-ID") or uuid4().hex


def _error_response(status_code: int, body: ErrorResponse) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"))


@app.exception_handler(DomainError)
async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    if exc.status_code >= 500:
        await log_error(f"{request.method} {request.url.path}: {exc.code} {exc.message}")
    else:
        await log_warning(f"{request.method} {request.url.path}: {exc.code} {exc.message}")

    return _error_response(
        exc.status_code,
        ErrorResponse(
            error_code=exc.code,
            message=exc.message,
            details=exc.details,
            request_id=_request_id(request),
        ),
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [
        {"loc": [str(part) for part in err.get("loc", ())], "msg": err.get("msg", ""), "type": err.get("type", "")}
        for err in exc.errors()
    ]
    return _error_response(
        status.HTTP_400_BAD_REQUEST,
        ErrorResponse(
            error_code="validation_error",
            message="Некорректные данные запроса",
            details={"errors": errors},
            request_id=_request_id(request),
        ),
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    await log_error(f"{request.method} {request.url.path}: необработанная ошибка {exc}", exc_info=True)
    return _error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        ErrorResponse(
            error_code="internal_error",
            message="Внутренняя ошибка сервера",
            request_id=_request_id(request),
        ),
    )


# =============================================================================
# HEALTH CHECK
# =============================================================================

@app.get("/health", response_model=HealthStatus, tags=["Health"])
async def health_check() -> HealthStatus:
    """Проверка здоровья сервиса."""
    deps: dict[str, str] = {}

    checks = {
        "postgres": dependencies.get_db,
        "redis": dependencies.get_redis,
        "rabbitmq": dependencies.get_event_bus,
    }
    for name, getter in checks.items():
        try:
            client = await getter()
            healthy = await client.health_check()
        except RuntimeError:
            healthy = False
        deps[name] = "healthy" if healthy else "unhealthy"

    overall = "healthy" if all(v == "healthy" for v in deps.values()) else "degraded"

    return HealthStatus(
        service="roadside_api",
        status=overall,
        version=settings.system.VERSION,
        uptime_seconds=round(time.monotonic() - _started_at, 1),
        dependencies=deps,
    )
