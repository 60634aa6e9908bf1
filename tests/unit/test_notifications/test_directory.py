"""Unit tests for recipient directories."""

from __future__ import annotations

import json

import httpx
import pytest

from notification_service.core.settings import UserServiceSettings
from notification_service.features.notifications.directory import StaticDirectory, UserServiceDirectory

IDENTITY_PATH = "/user/get-user-identity"


@pytest.fixture
def user_service(http_client):
    return UserServiceDirectory(UserServiceSettings(url="http://users.test"), client=http_client)


@pytest.mark.unit
class TestUserServiceDirectory:
    """Test suite for identity lookups against the user service."""

    @pytest.mark.asyncio
    async def test_email_lookup(self, user_service, gateway):
        gateway.queue(IDENTITY_PATH, httpx.Response(200, json={"data": {"email": "u9@example.com"}}))

        assert await user_service.email_for("u9") == "u9@example.com"
        assert json.loads(gateway.calls(IDENTITY_PATH)[0].content) == {"user_id": "u9"}

    @pytest.mark.asyncio
    async def test_phone_accepts_legacy_field(self, user_service, gateway):
        gateway.queue(IDENTITY_PATH, httpx.Response(200, json={"data": {"phoneNumber": "+15550009"}}))

        assert await user_service.phone_for("u9") == "+15550009"

    @pytest.mark.asyncio
    async def test_error_response_means_unknown(self, user_service, gateway):
        gateway.queue(IDENTITY_PATH, httpx.Response(500))

        assert await user_service.email_for("u9") is None

    @pytest.mark.asyncio
    async def test_missing_data_means_unknown(self, user_service, gateway):
        gateway.queue(IDENTITY_PATH, httpx.Response(200, json={"success": False}))

        assert await user_service.phone_for("u9") is None

    def test_requires_url(self):
        with pytest.raises(ValueError, match="USER_SERVICE_URL"):
            UserServiceDirectory(UserServiceSettings(url=None))


@pytest.mark.unit
class TestStaticDirectory:
    """Test suite for the in-process directory."""

    @pytest.mark.asyncio
    async def test_lookups(self):
        directory = StaticDirectory(emails={"u1": "u1@example.com"})

        assert await directory.email_for("u1") == "u1@example.com"
        assert await directory.phone_for("u1") is None
