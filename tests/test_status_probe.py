import asyncio

import pytest

from app.models.status import ConnectionCheck
from app.services.status_probe import ExternalStatusProbe


class DummyClient:
    def __init__(self, check=None, delay=0.0, error=None):
        self.check = check or ConnectionCheck(ok=True)
        self.delay = delay
        self.error = error
        self.calls = 0

    async def test_connection(self):
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return self.check


@pytest.mark.asyncio
async def test_healthy_status_is_cached():
    client = DummyClient()
    probe = ExternalStatusProbe(client, cache_seconds=60, check_timeout_seconds=1)

    first = await probe.get_status()
    second = await probe.get_status()

    assert first.state == "healthy"
    assert first.can_proceed_with_reports
    assert not first.from_cache
    assert second.from_cache
    assert client.calls == 1


@pytest.mark.asyncio
async def test_force_refresh_bypasses_cache():
    client = DummyClient()
    probe = ExternalStatusProbe(client, cache_seconds=60, check_timeout_seconds=1)

    await probe.get_status()
    await probe.get_status(force_refresh=True)

    assert client.calls == 2


@pytest.mark.asyncio
async def test_concurrent_refreshes_share_one_check():
    client = DummyClient(delay=0.05)
    probe = ExternalStatusProbe(client, cache_seconds=60, check_timeout_seconds=1)

    results = await asyncio.gather(*(probe.get_status() for _ in range(5)))

    assert client.calls == 1
    assert results[0].state == "healthy"
    assert all(r.state == "checking" for r in results[1:])


@pytest.mark.asyncio
async def test_timeout_reports_unavailable_and_fallback():
    probe = ExternalStatusProbe(DummyClient(delay=0.5), cache_seconds=60, check_timeout_seconds=0.01)

    status = await probe.get_status()

    assert status.state == "unavailable"
    assert not status.can_proceed_with_reports
    assert status.fallback_to_basic_creation
    assert "timed out" in status.error_detail


@pytest.mark.asyncio
async def test_expired_credentials_are_classified():
    client = DummyClient(check=ConnectionCheck(ok=False, error_detail="ExpiredTokenException: token expired"))
    probe = ExternalStatusProbe(client, cache_seconds=60, check_timeout_seconds=1)

    status = await probe.get_status()

    assert status.state == "expired_credentials"
    assert status.fallback_to_basic_creation


@pytest.mark.asyncio
async def test_client_exception_never_escapes():
    probe = ExternalStatusProbe(DummyClient(error=RuntimeError("boom")), cache_seconds=60, check_timeout_seconds=1)

    status = await probe.get_status()

    assert status.state == "unavailable"
    assert status.error_detail == "boom"


@pytest.mark.asyncio
async def test_cached_status_and_clear():
    probe = ExternalStatusProbe(DummyClient(), cache_seconds=60, check_timeout_seconds=1)
    assert probe.get_cached_status() is None

    await probe.get_status()
    assert probe.get_cached_status().from_cache

    probe.clear_cache()
    assert probe.get_cached_status() is None
