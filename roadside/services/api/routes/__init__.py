from roadside.services.api.routes import admin, auth, chat, dev, mechanics, pricing, requests, users, wallet, ws

__all__ = ["admin", "auth", "chat", "dev", "mechanics", "pricing", "requests", "users", "wallet", "ws"]
