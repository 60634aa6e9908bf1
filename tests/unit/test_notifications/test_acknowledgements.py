"""Unit tests for the read/acknowledge path."""

from __future__ import annotations

import asyncio

import pytest

from notification_service.core.results import ErrorKind
from notification_service.features.notifications.acknowledgements import AcknowledgementService
from notification_service.features.notifications.models import NotificationStatus, NotificationType


@pytest.fixture
def acks(store) -> AcknowledgementService:
    return AcknowledgementService(store)


@pytest.mark.unit
class TestAcknowledgementService:
    """Test suite for idempotent client transitions."""

    @pytest.mark.asyncio
    async def test_concurrent_mark_read_applies_once(self, acks, store, make_draft):
        """Test that racing mark-read calls append exactly one read entry."""
        await store.create(make_draft("n1"))

        await asyncio.gather(*(acks.mark_read("u1", "n1") for _ in range(4)))

        view = (await store.get("u1", "n1")).value
        assert view.analytics.impressions == 1
        assert [i.type for i in view.analytics.interactions] == ["read"]

    @pytest.mark.asyncio
    async def test_mark_read_wrong_owner(self, acks, store, make_draft):
        await store.create(make_draft("n1"))

        result = await acks.mark_read("u2", "n1")

        assert result.kind is ErrorKind.NOT_FOUND
        assert (await store.get("u1", "n1")).value.read_status is False

    @pytest.mark.asyncio
    async def test_mark_all_read(self, acks, store, make_draft):
        await store.create(make_draft("n1"))
        await store.create(make_draft("n2", type=NotificationType.LIKE))

        assert await acks.mark_all_read("u1") == 2
        assert await store.count_unread("u1") == 0

    @pytest.mark.asyncio
    async def test_mark_delivered(self, acks, store, make_draft):
        await store.create(make_draft("n1"))
        await store.finalize_status("n1", any_success=True)

        view = (await acks.mark_delivered("u1", "n1")).value

        assert view.status is NotificationStatus.DELIVERED

    @pytest.mark.asyncio
    async def test_get_counts_an_impression(self, acks, store, make_draft):
        """Test that fetching a record is tracked as an impression."""
        await store.create(make_draft("n1"))

        view = (await acks.get("u1", "n1")).value
        untracked = (await acks.get("u1", "n1", track_impression=False)).value

        assert view.analytics.impressions == 1
        assert view.analytics.interactions[-1].type == "impression"
        assert view.analytics.interactions[-1].metadata == {"source": "fetch"}
        assert untracked.analytics.impressions == 1

    @pytest.mark.asyncio
    async def test_get_missing(self, acks):
        assert (await acks.get("u1", "nope")).kind is ErrorKind.NOT_FOUND

    @pytest.mark.asyncio
    async def test_click_and_impression(self, acks, store, make_draft):
        await store.create(make_draft("n1"))

        await acks.record_impression("n1", {"surface": "feed"})
        await acks.record_click("n1", {"target": "cta"}, user_id="u1")
        other = await acks.record_click("n1", user_id="u2")

        view = (await store.get("u1", "n1")).value
        assert (view.analytics.impressions, view.analytics.clicks) == (1, 1)
        assert [i.type for i in view.analytics.interactions] == ["impression", "click"]
        assert other.kind is ErrorKind.NOT_FOUND
