# tests/services/test_api.py
"""
Тесты HTTP API поверх in-memory сервисов.

Зависимости подменяются через app.dependency_overrides, lifespan
не запускается, поэтому PostgreSQL, Redis и RabbitMQ не нужны.
"""

from __future__ import annotations

import asyncio
from decimal import Decimal
from typing import Iterator
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from roadside.common.constants import CaptureStatus, TransactionType, UserRole
from roadside.core.payments import SimulatedPaymentGateway
from roadside.core.users.models import RegisterInput
from roadside.core.users.service import UserService
from roadside.core.users.sessions import SessionStore
from roadside.services.api import dependencies
from roadside.services.api.app import app
from roadside.services.api.dependencies import parse_bearer
from tests.fakes import Marketplace

PICKUP = {
    "service_type": "mechanic",
    "pickup_lat": -23.56,
    "pickup_lng": -46.64,
    "pickup_address": "Rua Haddock Lobo, 595",
    "description": "Carro não liga",
    "payment_ref": "pay-1",
}


@pytest.fixture
def user_service(market: Marketplace) -> UserService:
    return UserService(MagicMock(), market.redis, repository=market.users, sessions=SessionStore(market.redis, ttl=60))


@pytest.fixture
def client(market: Marketplace, user_service: UserService) -> Iterator[TestClient]:
    overrides = {
        dependencies.get_user_service: user_service,
        dependencies.get_coordinator: market.coordinator,
        dependencies.get_ledger: market.ledger,
        dependencies.get_presence: market.presence,
        dependencies.get_pricing: market.coordinator._pricing,
        dependencies.get_gateway: market.gateway,
    }
    for getter, value in overrides.items():
        app.dependency_overrides[getter] = _provide(value)

    yield TestClient(app, raise_server_exceptions=False)

    app.dependency_overrides.clear()


def _provide(value):
    return lambda: value


def _auth(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def _register(client: TestClient, email: str, role: str = "client") -> tuple[str, str]:
    response = client.post(
        "/api/v1/auth/register",
        json={"email": email, "password": "secret1", "full_name": email.split("@")[0], "role": role},
    )
    assert response.status_code == 201
    body = response.json()
    return body["user"]["id"], body["token"]


def _online_worker(client: TestClient, email: str = "mech@example.com") -> tuple[str, str]:
    worker_id, token = _register(client, email, role="worker")
    client.patch(
        "/api/v1/users/me/base",
        json={"base_address": "Av. Paulista, 1000", "base_lat": -23.55, "base_lng": -46.63},
        headers=_auth(token),
    )
    client.patch(
        "/api/v1/users/me/payout",
        json={"pix_key": email, "pix_key_type": "email"},
        headers=_auth(token),
    )
    response = client.post("/api/v1/users/me/online", json={"is_online": True}, headers=_auth(token))
    assert response.json()["is_online"] is True
    return worker_id, token


class TestBearerParsing:
    """Тесты разбора заголовка Authorization."""

    @pytest.mark.parametrize(
        "header,expected",
        [
            ("Bearer abc", "abc"),
            ("bearer abc ", "abc"),
            ("Basic abc", None),
            ("Bearer ", None),
            ("", None),
            (None, None),
        ],
    )
    def test_parse(self, header, expected) -> None:
        assert parse_bearer(header) == expected


class TestErrors:
    """Тесты формата ошибок."""

    def test_missing_token(self, client: TestClient) -> None:
        response = client.get("/api/v1/users/me")

        assert response.status_code == 401
        body = response.json()
        assert body["error_code"] == "unauthorized"
        assert body["request_id"]

    def test_invalid_token(self, client: TestClient) -> None:
        response = client.get("/api/v1/users/me", headers=_auth("bogus"))
        assert response.status_code == 401

    def test_request_id_echoed(self, client: TestClient) -> None:
        response = client.get("/api/v1/users/me", headers={"X-Request-ID": "req-42"})
        assert response.json()["request_id"] == "req-42"

    def test_validation_error(self, client: TestClient) -> None:
        response = client.post("/api/v1/auth/register", json={"email": "not-an-email"})

        assert response.status_code == 400
        body = response.json()
        assert body["error_code"] == "validation_error"
        assert body["details"]["errors"]

    def test_admin_role_rejected_at_registration(self, client: TestClient) -> None:
        response = client.post(
            "/api/v1/auth/register",
            json={"email": "x@example.com", "password": "secret1", "full_name": "X", "role": "admin"},
        )
        assert response.status_code == 400

    def test_domain_error_status(self, client: TestClient) -> None:
        _, token = _register(client, "c@example.com")

        response = client.post("/api/v1/requests/missing/accept", headers=_auth(token))

        assert response.status_code == 403
        assert response.json()["error_code"] == "forbidden"

    def test_unhandled_error(self, client: TestClient) -> None:
        _, token = _register(client, "c@example.com")
        broken = MagicMock()
        broken.balance = AsyncMock(side_effect=RuntimeError("boom"))
        app.dependency_overrides[dependencies.get_ledger] = lambda: broken

        response = client.get("/api/v1/wallet/balance", headers=_auth(token))

        assert response.status_code == 500
        assert response.json()["error_code"] == "internal_error"


class TestAuth:
    """Тесты входа и выхода."""

    def test_login_and_logout(self, client: TestClient) -> None:
        _register(client, "ana@example.com")

        login = client.post("/api/v1/auth/login", json={"email": "ana@example.com", "password": "secret1"})
        token = login.json()["token"]

        assert client.get("/api/v1/users/me", headers=_auth(token)).json()["email"] == "ana@example.com"
        assert client.post("/api/v1/auth/logout", headers=_auth(token)).json() == {"status": "ok"}
        assert client.get("/api/v1/users/me", headers=_auth(token)).status_code == 401

    def test_bad_password(self, client: TestClient) -> None:
        _register(client, "ana@example.com")

        response = client.post("/api/v1/auth/login", json={"email": "ana@example.com", "password": "wrong1"})

        assert response.status_code == 403

    def test_password_hash_never_returned(self, client: TestClient) -> None:
        _, token = _register(client, "ana@example.com")
        assert "password_hash" not in client.get("/api/v1/users/me", headers=_auth(token)).json()


class TestRequestFlow:
    """Полный цикл заявки через API."""

    def test_happy_path(self, client: TestClient, market: Marketplace) -> None:
        client_id, client_token = _register(client, "cli@example.com")
        worker_id, worker_token = _online_worker(client)
        market.gateway.captures["pay-1"] = CaptureStatus.APPROVED

        created = client.post("/api/v1/requests", json=PICKUP, headers=_auth(client_token))
        assert created.status_code == 201
        request_id = created.json()["id"]
        assert created.json()["total_price"] == "50.00"

        pending = client.get("/api/v1/requests/pending", headers=_auth(worker_token)).json()
        assert [r["id"] for r in pending] == [request_id]

        accepted = client.post(f"/api/v1/requests/{request_id}/accept", headers=_auth(worker_token)).json()
        assert accepted["mechanic_id"] == worker_id
        assert abs(accepted["distance_km"] - 1.47) < 0.05

        for path, token in [
            ("arrive", worker_token),
            ("complete", worker_token),
            ("confirm", worker_token),
            ("confirm", client_token),
        ]:
            response = client.post(f"/api/v1/requests/{request_id}/{path}", headers=_auth(token))
            assert response.status_code == 200, response.json()

        client.post(f"/api/v1/requests/{request_id}/rate", json={"rating": 5}, headers=_auth(client_token))
        rated = client.post(
            f"/api/v1/requests/{request_id}/rate", json={"rating": 5, "comment": "Gentil"}, headers=_auth(worker_token)
        )
        assert rated.json()["status"] == "rated"

        balance = client.get("/api/v1/wallet/balance", headers=_auth(worker_token)).json()
        assert Decimal(balance["pending"]) == Decimal("40.00")
        assert Decimal(balance["available"]) == Decimal("0.00")

        history = client.get("/api/v1/requests/history", headers=_auth(client_token)).json()
        assert [r["id"] for r in history] == [request_id]
        assert client_id == history[0]["client_id"]

    def test_second_accept_conflicts(self, client: TestClient, market: Marketplace) -> None:
        _, client_token = _register(client, "cli@example.com")
        _, first = _online_worker(client, "m1@example.com")
        _, second = _online_worker(client, "m2@example.com")
        market.gateway.captures["pay-1"] = CaptureStatus.APPROVED
        request_id = client.post("/api/v1/requests", json=PICKUP, headers=_auth(client_token)).json()["id"]

        assert client.post(f"/api/v1/requests/{request_id}/accept", headers=_auth(first)).status_code == 200
        response = client.post(f"/api/v1/requests/{request_id}/accept", headers=_auth(second))

        assert response.status_code == 409
        assert response.json()["error_code"] == "already_accepted"

    def test_cancel_with_reason(self, client: TestClient, market: Marketplace) -> None:
        _, client_token = _register(client, "cli@example.com")
        market.gateway.captures["pay-1"] = CaptureStatus.APPROVED
        request_id = client.post("/api/v1/requests", json=PICKUP, headers=_auth(client_token)).json()["id"]

        cancelled = client.post(
            f"/api/v1/requests/{request_id}/cancel", json={"reason": "Resolvido"}, headers=_auth(client_token)
        )

        assert cancelled.json()["status"] == "cancelled"
        assert cancelled.json()["payment_status"] == "refunded"
        transactions = client.get("/api/v1/wallet/transactions", headers=_auth(client_token)).json()
        assert [t["type"] for t in transactions] == [TransactionType.REFUND.value]

    def test_cancel_without_body(self, client: TestClient, market: Marketplace) -> None:
        _, client_token = _register(client, "cli@example.com")
        market.gateway.captures["pay-1"] = CaptureStatus.APPROVED
        request_id = client.post("/api/v1/requests", json=PICKUP, headers=_auth(client_token)).json()["id"]

        response = client.post(f"/api/v1/requests/{request_id}/cancel", headers=_auth(client_token))

        assert response.status_code == 200

    def test_unpaid_request_rejected(self, client: TestClient) -> None:
        _, client_token = _register(client, "cli@example.com")

        response = client.post("/api/v1/requests", json=PICKUP, headers=_auth(client_token))

        assert response.status_code == 400
        assert response.json()["details"]["capture_status"] == "pending"


class TestWalletAndAdmin:
    """Тесты кошелька и админских эндпоинтов."""

    @pytest.fixture
    def admin_token(self, user_service: UserService) -> str:
        _, token = asyncio.run(user_service.register(
            RegisterInput(email="root@example.com", password="secret1", full_name="Root"),
            role=UserRole.ADMIN,
        ))
        return token

    def test_insufficient_funds(self, client: TestClient) -> None:
        _, worker_token = _online_worker(client)

        response = client.post("/api/v1/wallet/withdrawals", json={"amount": "100"}, headers=_auth(worker_token))

        assert response.status_code == 422
        assert response.json()["error_code"] == "insufficient_funds"

    def test_admin_completes_withdrawal_once(
        self, client: TestClient, market: Marketplace, admin_token: str
    ) -> None:
        worker_id, worker_token = _online_worker(client)
        asyncio.run(market.ledger.record(worker_id, TransactionType.WORKER_EARNINGS, "100", "Seed"))

        created = client.post("/api/v1/wallet/withdrawals", json={"amount": "30"}, headers=_auth(worker_token))
        assert created.status_code == 201
        tx_id = created.json()["id"]

        pending = client.get("/api/v1/admin/withdrawals/pending", headers=_auth(admin_token)).json()
        assert [p["transaction"]["id"] for p in pending] == [tx_id]

        first = client.post(f"/api/v1/admin/withdrawals/{tx_id}/complete", headers=_auth(admin_token))
        second = client.post(f"/api/v1/admin/withdrawals/{tx_id}/complete", headers=_auth(admin_token))

        assert first.json()["status"] == "completed"
        assert second.status_code == 409
        assert second.json()["error_code"] == "already_processed"

    def test_admin_only(self, client: TestClient) -> None:
        _, token = _register(client, "cli@example.com")

        response = client.get("/api/v1/admin/withdrawals/pending", headers=_auth(token))

        assert response.status_code == 403


class TestMechanics:
    """Тесты поиска механиков онлайн."""

    def test_online_and_nearby(self, client: TestClient) -> None:
        near_id, near_token = _online_worker(client, "near@example.com")
        far_id, far_token = _online_worker(client, "far@example.com")
        client.post("/api/v1/users/me/location", json={"lat": -23.56, "lng": -46.64}, headers=_auth(near_token))
        client.post("/api/v1/users/me/location", json={"lat": -22.90, "lng": -43.17}, headers=_auth(far_token))
        _, client_token = _register(client, "cli@example.com")

        online = client.get("/api/v1/mechanics/online", headers=_auth(client_token)).json()
        nearby = client.get(
            "/api/v1/mechanics/nearby",
            params={"lat": -23.55, "lng": -46.63},
            headers=_auth(client_token),
        ).json()

        assert sorted(m["id"] for m in online) == sorted([near_id, far_id])
        assert [m["id"] for m in nearby] == [near_id]
        assert 0 < nearby[0]["distance_km"] < 2
        assert "password_hash" not in nearby[0]

    def test_nearby_requires_coordinates(self, client: TestClient) -> None:
        _, token = _register(client, "cli@example.com")

        response = client.get("/api/v1/mechanics/nearby", params={"lat": -23.55}, headers=_auth(token))

        assert response.status_code == 400
        assert response.json()["error_code"] == "validation_error"

    def test_requires_auth(self, client: TestClient) -> None:
        assert client.get("/api/v1/mechanics/online").status_code == 401


class TestMisc:
    """Тарифы, dev-эндпоинты и health."""

    def test_quote_after_hours(self, client: TestClient) -> None:
        body = client.get("/api/v1/pricing/quote", params={"at": "2024-05-10T06:00:00Z"}).json()

        assert body["is_after_hours"] is True
        assert body["total_price"] == "100.00"

    def test_dev_endpoints_need_simulated_gateway(self, client: TestClient) -> None:
        assert client.post("/api/v1/dev/payments/p-1/approve").status_code == 404

    def test_dev_approve(self, client: TestClient) -> None:
        gateway = SimulatedPaymentGateway()
        app.dependency_overrides[dependencies.get_gateway] = lambda: gateway

        response = client.post("/api/v1/dev/payments/p-1/approve")

        assert response.status_code == 200
        assert gateway._payments["p-1"] == CaptureStatus.APPROVED

    def test_health_degraded_without_infrastructure(self, client: TestClient) -> None:
        body = client.get("/health").json()

        assert body["service"] == "roadside_api"
        assert body["status"] == "degraded"
        assert body["dependencies"] == {"postgres": "unhealthy", "redis": "unhealthy", "rabbitmq": "unhealthy"}


class TestWebSocket:
    """Тесты WebSocket шлюза."""

    def test_requires_token(self, client: TestClient) -> None:
        with pytest.raises(WebSocketDisconnect) as exc:
            with client.websocket_connect("/ws"):
                pass

        assert exc.value.code == 4401

    def test_ping_pong(self, client: TestClient) -> None:
        _, token = _register(client, "cli@example.com")

        with client.websocket_connect(f"/ws?token={token}") as websocket:
            websocket.send_text('{"type": "ping"}')
            assert websocket.receive_json() == {"type": "pong"}

    def test_stats_admin_only(self, client: TestClient) -> None:
        _, token = _register(client, "cli@example.com")
        assert client.get("/ws/stats", headers=_auth(token)).status_code == 403
