"""
Создаёт тестовых пользователей для локальной разработки
и печатает их токены сессий.
"""

import asyncio

from roadside.common.constants import PixKeyType, UserRole
from roadside.common.exceptions import ValidationError
from roadside.core.users.models import BaseLocationInput, LoginInput, PayoutDestinationInput, RegisterInput
from roadside.core.users.service import UserService
from roadside.infra.database import close_db, get_db, init_db
from roadside.infra.redis_client import close_redis, get_redis, init_redis

DEV_PASSWORD = "devpass123"

DEV_USERS = [
    ("client@dev.local", "Dev Client", UserRole.CLIENT),
    ("mechanic@dev.local", "Dev Mechanic", UserRole.WORKER),
    ("admin@dev.local", "Dev Admin", UserRole.ADMIN),
]

# Av. Paulista, São Paulo
DEV_BASE = BaseLocationInput(base_address="Av. Paulista, 1000", base_lat=-23.5631, base_lng=-46.6544)


async def main() -> None:
    await init_db()
    await init_redis()
    users = UserService(get_db(), get_redis())

    try:
        for email, name, role in DEV_USERS:
            try:
                user, token = await users.register(
                    RegisterInput(email=email, password=DEV_PASSWORD, full_name=name),
                    role=role,
                )
                print(f"Created {role.value} {email}")
            except ValidationError:
                user, token = await users.authenticate(LoginInput(email=email, password=DEV_PASSWORD))
                print(f"{email} already exists")

            if role == UserRole.WORKER:
                user = await users.update_base(user, DEV_BASE)
                await users.update_payout(
                    user,
                    PayoutDestinationInput(pix_key=email, pix_key_type=PixKeyType.EMAIL),
                )

            print(f"  id={user.id} token={token}")
    finally:
        await close_redis()
        await close_db()


if __name__ == "__main__":
    asyncio.run(main())
