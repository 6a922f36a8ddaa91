#!/usr/bin/env python3
# main.py
"""
Главная точка входа Roadside Dispatch.
Запускает HTTP API (вместе с WebSocket шлюзом) или применяет схему БД.
"""

from __future__ import annotations

import asyncio
import sys

import uvicorn

from roadside.common.constants import TypeMsg
from roadside.common.logger import log_info, setup_logging
from roadside.config import settings
from roadside.infra.database import close_db, init_db


async def run_api() -> None:
    """Запуск API."""
    await log_info(
        f"Запуск Roadside API на {settings.deployment.API_HOST}:{settings.deployment.API_PORT}",
        type_msg=TypeMsg.INFO,
    )

    config = uvicorn.Config(
        "roadside.services.api.app:app",
        host=settings.deployment.API_HOST,
        port=settings.deployment.API_PORT,
        log_level="debug" if settings.system.DEBUG else "info",
    )
    server = uvicorn.Server(config)
    await server.serve()


async def run_migrations() -> None:
    """Применяет migrations/init.sql и выходит."""
    # init_db уже применяет схему при подключении
    await init_db()
    await close_db()


async def main(mode: str) -> None:
    setup_logging()

    if mode == "api":
        await run_api()
    elif mode == "migrate":
        await run_migrations()


def print_usage() -> None:
    print("""
Roadside Dispatch

Использование:
    python main.py [режим]

Режимы:
    api        - HTTP API и WebSocket шлюз (по умолчанию)
    migrate    - применить схему БД и выйти

Примеры:
    python main.py
    python main.py migrate
    """)


if __name__ == "__main__":
    mode = "api"

    if len(sys.argv) > 1:
        arg = sys.argv[1].lower()
        if arg in ("--help", "-h"):
            print_usage()
            sys.exit(0)
        elif arg in ("api", "migrate"):
            mode = arg
        else:
            print(f"Ошибка: неизвестный режим '{arg}'")
            print_usage()
            sys.exit(1)

    try:
        asyncio.run(main(mode))
    except KeyboardInterrupt:
        pass
