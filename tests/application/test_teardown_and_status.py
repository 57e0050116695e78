"""Tests for the TeardownStack and StackStatus use cases."""

import pytest
from unittest.mock import AsyncMock, MagicMock
from taskbot_deploy.application.dtos.provision_dtos import TeardownRequest
from taskbot_deploy.application.use_cases.stack_status import StackStatus
from taskbot_deploy.application.use_cases.teardown_stack import TeardownStack
from taskbot_deploy.domain.entities.deployment_state import DeploymentState
from taskbot_deploy.domain.value_objects.service_state import ServiceState


def _lifecycle(existing=True, states=()):
    lifecycle = AsyncMock()
    lifecycle.detect_existing = AsyncMock(return_value=existing)
    lifecycle.status = AsyncMock(return_value=list(states))
    return lifecycle


class TestTeardownStack:
    @pytest.mark.asyncio
    async def test_keeps_volumes_and_state(self):
        lifecycle = _lifecycle()
        state_repository = MagicMock()
        existed = await TeardownStack(lifecycle, state_repository).execute(TeardownRequest())
        assert existed is True
        lifecycle.teardown.assert_awaited_once_with(destroy_volumes=False)
        state_repository.delete.assert_not_called()

    @pytest.mark.asyncio
    async def test_destroy_volumes_forgets_state(self):
        lifecycle = _lifecycle(existing=False)
        state_repository = MagicMock()
        request = TeardownRequest(destroy_volumes=True, confirmed_destroy=True)
        existed = await TeardownStack(lifecycle, state_repository).execute(request)
        assert existed is False
        lifecycle.teardown.assert_awaited_once_with(destroy_volumes=True)
        state_repository.delete.assert_called_once()

    def test_destroy_requires_confirmation(self):
        with pytest.raises(ValueError, match="confirmed"):
            TeardownRequest(destroy_volumes=True)


class TestStackStatus:
    @pytest.mark.asyncio
    async def test_not_deployed(self):
        state_repository = MagicMock()
        state_repository.load.return_value = None
        status = await StackStatus(_lifecycle(), state_repository).execute()
        assert status.deployed is False
        assert status.public_url is None

    @pytest.mark.asyncio
    async def test_containers_without_state_count_as_deployed(self):
        state_repository = MagicMock()
        state_repository.load.return_value = None
        lifecycle = _lifecycle(states=[ServiceState("redis", "running")])
        status = await StackStatus(lifecycle, state_repository).execute()
        assert status.deployed is True
        assert status.services == (ServiceState("redis", "running"),)

    @pytest.mark.asyncio
    async def test_public_url_from_state(self):
        state_repository = MagicMock()
        state_repository.load.return_value = DeploymentState(
            public_host="taskbot.example.com", tls_mode="self_signed"
        )
        lifecycle = _lifecycle(states=[ServiceState("nginx", "running")])
        status = await StackStatus(lifecycle, state_repository).execute()
        assert status.deployed is True
        assert status.public_url == "https://taskbot.example.com"
        assert status.tls_mode == "self_signed"

    @pytest.mark.asyncio
    async def test_ipv6_host_and_default_tls(self):
        state_repository = MagicMock()
        state_repository.load.return_value = DeploymentState(public_host="fe80::1")
        status = await StackStatus(_lifecycle(), state_repository).execute()
        assert status.public_url == "http://[fe80::1]"
        assert status.tls_mode == "none"
