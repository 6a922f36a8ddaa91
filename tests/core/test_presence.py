# tests/core/test_presence.py
"""
Тесты каталога механиков онлайн.
"""

from __future__ import annotations

import pytest

from roadside.common.exceptions import Forbidden, ValidationError
from roadside.core.presence.directory import ONLINE_WORKERS_KEY, WORKER_LOCATIONS_KEY
from roadside.core.users.models import User
from tests.fakes import Marketplace


class TestSetOnline:
    """Тесты переключения приёма вызовов."""

    @pytest.mark.asyncio
    async def test_go_online_and_offline(self, market: Marketplace, worker_user: User) -> None:
        await market.presence.set_online(worker_user, True)

        assert await market.presence.is_online("worker-1") is True
        assert market.user("worker-1").is_online is True
        assert await market.presence.online_worker_ids() == ["worker-1"]

        await market.presence.set_online(worker_user, False)

        assert await market.presence.is_online("worker-1") is False
        assert market.user("worker-1").is_online is False

    @pytest.mark.asyncio
    async def test_publishes_domain_events(self, market: Marketplace, worker_user: User) -> None:
        await market.presence.set_online(worker_user, True)
        await market.presence.set_online(worker_user, False)

        event_types = [call.args[0].event_type for call in market.event_bus.publish.await_args_list]
        assert event_types == ["worker.online", "worker.offline"]

    @pytest.mark.asyncio
    async def test_client_cannot_go_online(self, market: Marketplace, client_user: User) -> None:
        with pytest.raises(Forbidden):
            await market.presence.set_online(client_user, True)

    @pytest.mark.asyncio
    async def test_base_required(self, market: Marketplace, second_worker: User) -> None:
        no_base = second_worker.model_copy(update={"base_lat": None, "base_lng": None})

        with pytest.raises(ValidationError):
            await market.presence.set_online(no_base, True)
        assert await market.presence.is_online("worker-2") is False

    @pytest.mark.asyncio
    async def test_offline_drops_location(self, market: Marketplace, worker_user: User) -> None:
        await market.presence.set_online(worker_user, True)
        await market.presence.update_location("worker-1", -23.55, -46.63)

        await market.presence.set_online(worker_user, False)

        assert await market.presence.last_location("worker-1") is None

    @pytest.mark.asyncio
    async def test_event_bus_failure_is_not_fatal(self, market: Marketplace, worker_user: User) -> None:
        market.event_bus.publish.side_effect = RuntimeError("broker down")

        await market.presence.set_online(worker_user, True)

        assert await market.presence.is_online("worker-1") is True


class TestLocation:
    """Тесты обновления положения."""

    @pytest.mark.asyncio
    async def test_online_worker_indexed(self, market: Marketplace, worker_user: User) -> None:
        await market.presence.set_online(worker_user, True)

        await market.presence.update_location("worker-1", -23.561, -46.655)

        assert await market.presence.last_location("worker-1") == (-23.561, -46.655)
        assert market.redis.geo[WORKER_LOCATIONS_KEY]["worker-1"] == (-46.655, -23.561)
        assert market.user("worker-1").current_lat == -23.561

    @pytest.mark.asyncio
    async def test_offline_user_not_indexed(self, market: Marketplace) -> None:
        await market.presence.update_location("client-1", -23.5, -46.6)

        assert await market.presence.last_location("client-1") is None
        assert market.user("client-1").current_lng == -46.6

    @pytest.mark.asyncio
    @pytest.mark.parametrize("lat,lng", [(91.0, 0.0), (0.0, -181.0)])
    async def test_invalid_coordinates(self, market: Marketplace, lat: float, lng: float) -> None:
        with pytest.raises(ValidationError):
            await market.presence.update_location("worker-1", lat, lng)


class TestSyncFromDb:
    """Тесты восстановления присутствия."""

    @pytest.mark.asyncio
    async def test_restores_online_workers(self, market: Marketplace) -> None:
        market.users.users["worker-1"] = market.user("worker-1").model_copy(update={"is_online": True})

        restored = await market.presence.sync_from_db()

        assert restored == 1
        assert market.redis.sets[ONLINE_WORKERS_KEY] == {"worker-1"}

    @pytest.mark.asyncio
    async def test_nothing_to_restore(self, market: Marketplace) -> None:
        assert await market.presence.sync_from_db() == 0
        assert ONLINE_WORKERS_KEY not in market.redis.sets


class TestNearby:
    """Тесты поиска механиков рядом."""

    @pytest.mark.asyncio
    async def test_sorted_by_distance_within_radius(
        self, market: Marketplace, worker_user: User, second_worker: User
    ) -> None:
        await market.go_online(worker_user)
        await market.go_online(second_worker)
        await market.presence.update_location("worker-1", -23.60, -46.70)
        await market.presence.update_location("worker-2", -23.551, -46.631)

        nearby = await market.presence.online_workers_near(-23.55, -46.63, radius_km=20)

        assert [m.id for m in nearby] == ["worker-2", "worker-1"]
        assert nearby[0].distance_km < nearby[1].distance_km
        assert nearby[0].current_lat == -23.551

        assert [m.id for m in await market.presence.online_workers_near(-23.55, -46.63, radius_km=1)] == ["worker-2"]
        assert len(await market.presence.online_workers_near(-23.55, -46.63, radius_km=20, limit=1)) == 1

    @pytest.mark.asyncio
    async def test_stale_geo_entry_skipped(self, market: Marketplace, worker_user: User) -> None:
        await market.go_online(worker_user)
        await market.presence.update_location("worker-1", -23.55, -46.63)
        market.redis.sets[ONLINE_WORKERS_KEY].discard("worker-1")

        assert await market.presence.online_workers_near(-23.55, -46.63) == []

    @pytest.mark.asyncio
    async def test_going_online_indexes_known_location(self, market: Marketplace) -> None:
        await market.presence.update_location("worker-1", -23.55, -46.63)
        assert WORKER_LOCATIONS_KEY not in market.redis.geo

        await market.go_online(market.user("worker-1"))

        nearby = await market.presence.online_workers_near(-23.55, -46.63)
        assert [m.id for m in nearby] == ["worker-1"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("lat,lng,radius", [(91.0, 0.0, 10.0), (0.0, 0.0, 0.0)])
    async def test_invalid_query(self, market: Marketplace, lat: float, lng: float, radius: float) -> None:
        with pytest.raises(ValidationError):
            await market.presence.online_workers_near(lat, lng, radius_km=radius)

    @pytest.mark.asyncio
    async def test_online_workers_profiles(
        self, market: Marketplace, worker_user: User, second_worker: User
    ) -> None:
        await market.go_online(worker_user)

        workers = await market.presence.online_workers()

        assert [w.id for w in workers] == ["worker-1"]
