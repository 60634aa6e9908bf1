"""Tests for engine lifespan management."""

from __future__ import annotations

import asyncio

import pytest

from notification_service.app.lifespan import lifespan
from notification_service.features.notifications.models import Channel
from notification_service.workers.scheduler import SWEEP_JOB_ID, scheduler


@pytest.mark.unit
class TestLifespan:
    """Test suite for the lifespan context manager."""

    @pytest.mark.asyncio
    async def test_engine_usable_inside_block(self, settings, scripted, directory):
        push = scripted(Channel.PUSH)

        async with lifespan(settings, schedule_sweep=False, drivers=[push], directory=directory) as container:
            result = await container.service.dispatch(
                {"userId": "u1", "type": "like", "title": "New like", "message": "Someone liked you"}
            )
            assert result.is_ok
            assert container.dispatcher.accepting is True

        assert container.dispatcher.accepting is False
        assert push.closed is True
        assert len(push.calls) == 1

    @pytest.mark.asyncio
    async def test_sweep_scheduled_while_running(self, settings, scripted, directory):
        try:
            async with lifespan(settings, drivers=[scripted(Channel.PUSH)], directory=directory):
                assert scheduler.running is True
                assert scheduler.get_job(SWEEP_JOB_ID) is not None
            # Shutdown is delivered through the event loop
            await asyncio.sleep(0)
            assert scheduler.running is False
        finally:
            if scheduler.get_job(SWEEP_JOB_ID) is not None:
                scheduler.remove_job(SWEEP_JOB_ID)

    @pytest.mark.asyncio
    async def test_shutdown_runs_when_block_raises(self, settings, scripted, directory):
        push = scripted(Channel.PUSH)

        with pytest.raises(RuntimeError, match="caller failed"):
            async with lifespan(settings, schedule_sweep=False, drivers=[push], directory=directory):
                raise RuntimeError("caller failed")

        assert push.closed is True
