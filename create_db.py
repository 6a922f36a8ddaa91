"""
Создаёт базу данных из конфига, если её нет, и применяет схему.
"""

import asyncio

import asyncpg

from roadside.config import settings
from roadside.infra.database import close_db, init_db


async def create_db() -> None:
    name = settings.database.DB_NAME

    # Подключаемся к служебной БД, чтобы создать новую
    sys_conn = await asyncpg.connect(
        user=settings.database.DB_USER,
        password=settings.database.DB_PASSWORD,
        host=settings.database.DB_HOST,
        port=settings.database.DB_PORT,
        database="postgres",
    )
    try:
        exists = await sys_conn.fetchval("SELECT 1 FROM pg_database WHERE datname = $1", name)
        if not exists:
            print(f"Creating database {name}...")
            # Имя БД нельзя передать параметром
            await sys_conn.execute(f'CREATE DATABASE "{name}"')
            print("Database created.")
        else:
            print(f"Database {name} already exists.")
    finally:
        await sys_conn.close()

    await init_db()
    await close_db()
    print("Schema applied.")


if __name__ == "__main__":
    asyncio.run(create_db())
