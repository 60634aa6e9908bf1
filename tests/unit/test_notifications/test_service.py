"""Unit tests for the NotificationService facade."""

from __future__ import annotations

import json

import httpx
import pytest

from notification_service.core.database import RepositoryError
from notification_service.core.results import ErrorKind
from notification_service.features.notifications.models import Channel, NotificationType, Priority
from notification_service.features.notifications.preferences import ChannelPreference, UserPreferences
from notification_service.features.notifications.schemas import NotificationFilter, Paging


def _intake(notification_id: str, **overrides):
    values = {
        "notificationId": notification_id,
        "userId": "u1",
        "type": "match",
        "title": "New Match",
        "message": "You matched with Alex",
        "channels": {"inApp": True, "push": False, "email": False, "realtime": False},
    }
    values.update(overrides)
    return values


@pytest.mark.unit
class TestInbox:
    """Test suite for the inbox operations."""

    @pytest.mark.asyncio
    async def test_list_count_and_read(self, build_container):
        container = await build_container()
        service = container.service
        await service.dispatch(_intake("n1"))
        await service.dispatch(_intake("n2", type="like"))

        page = (await service.list("u1", NotificationFilter(type=NotificationType.LIKE), Paging(limit=5))).value
        assert [item.notification_id for item in page.items] == ["n2"]
        assert await service.count_unread("u1") == 2

        await service.mark_read("u1", "n2")
        assert await service.count_unread("u1") == 1
        assert await service.mark_all_read("u1") == 1

        groups = await service.group_by_type("u1", include_read=True)
        assert {g.type for g in groups} == {"match", "like"}

    @pytest.mark.asyncio
    async def test_list_by_type_and_group(self, build_container):
        container = await build_container()
        service = container.service
        await service.dispatch(_intake("n1", grouping={"groupId": "g1"}))
        await service.dispatch(_intake("n2", grouping={"groupId": "g1"}, type="like"))
        await service.dispatch(_intake("n3", type="like"))

        likes = (await service.list_by_type("u1", NotificationType.LIKE)).value
        group = (await service.list_by_group("g1")).value

        assert likes.total == 2
        assert {item.notification_id for item in group.items} == {"n1", "n2"}

    @pytest.mark.asyncio
    async def test_get_click_and_delete(self, build_container):
        container = await build_container()
        service = container.service
        await service.dispatch(_intake("n1"))

        fetched = (await service.get("u1", "n1")).value
        await service.record_click("u1", "n1", {"target": "cta"})
        await service.mark_delivered("u1", "n1")

        assert fetched.analytics.impressions == 1
        assert (await service.delete("u1", "n1")).is_ok
        assert (await service.get("u1", "n1")).kind is ErrorKind.NOT_FOUND

    @pytest.mark.asyncio
    async def test_analytics(self, build_container):
        container = await build_container()
        service = container.service
        await service.dispatch(_intake("n1"))
        await service.mark_read("u1", "n1")

        buckets = await service.analytics("u1", group_by="month")

        assert len(buckets) == 1
        assert (buckets[0].type, buckets[0].count, buckets[0].read) == ("match", 1, 1)

    @pytest.mark.asyncio
    async def test_preference_update_applies_to_next_dispatch(self, build_container, scripted):
        """Test that saved preferences invalidate the resolver cache."""
        push = scripted(Channel.PUSH)
        container = await build_container(push)
        service = container.service
        intake = {"userId": "u1", "type": "match", "title": "t", "message": "m", "channels": {"email": False}}

        await service.dispatch({**intake, "notificationId": "n1"})
        await container.preference_source.update(
            "u1",
            UserPreferences(channels={Channel.PUSH: ChannelPreference(enabled=False)}),
        )
        second = await service.dispatch({**intake, "notificationId": "n2"})

        assert len(push.calls) == 1
        assert second.value.channels["push"].enabled is False


@pytest.mark.unit
class TestAdmin:
    """Test suite for broadcast and health."""

    @pytest.mark.asyncio
    async def test_broadcast_goes_to_realtime_gateway(self, container, gateway):
        result = await container.service.broadcast_system("Maintenance", "Back soon", priority=Priority.HIGH)

        assert result.is_ok
        body = json.loads(gateway.calls("/notify")[0].content)
        assert body["broadcast"] is True
        assert body["notification"]["title"] == "Maintenance"
        assert body["notification"]["priority"] == "high"
        assert body["notification"]["id"].startswith("system_")

    @pytest.mark.asyncio
    async def test_broadcast_failure(self, container, gateway):
        gateway.queue("/notify", httpx.Response(503))

        result = await container.service.broadcast_system("Maintenance", "Back soon")

        assert result.kind is ErrorKind.TRANSIENT_DELIVERY

    @pytest.mark.asyncio
    async def test_broadcast_without_realtime(self, build_container, scripted):
        container = await build_container(scripted(Channel.PUSH))

        result = await container.service.broadcast_system("Maintenance", "Back soon")

        assert result.kind is ErrorKind.UNAVAILABLE

    @pytest.mark.asyncio
    async def test_health(self, container):
        await container.service.dispatch(_intake("n1"))

        snapshot = await container.service.health()

        assert snapshot.status == "healthy"
        assert snapshot.accepting is True
        assert snapshot.store.total == 1
        assert set(snapshot.channels) == {"realtime", "email", "sms", "inApp", "push"}
        assert snapshot.to_dict()["intakesInFlight"] == 0

    @pytest.mark.asyncio
    async def test_health_degraded(self, container, monkeypatch):
        async def broken_stats():
            raise RepositoryError("Store operation stats failed")

        monkeypatch.setattr(container.store, "stats", broken_stats)

        snapshot = await container.service.health()

        assert snapshot.status == "degraded"
        assert snapshot.store is None
        assert "stats failed" in snapshot.error

    @pytest.mark.asyncio
    async def test_health_while_shutting_down(self, container):
        await container.dispatcher.close(grace_period=0)

        snapshot = await container.service.health()

        assert snapshot.status == "shutting_down"
        assert snapshot.accepting is False
