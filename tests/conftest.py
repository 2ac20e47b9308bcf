"""
Shared fixtures.

Provides an in-memory FakeTransport with the three bridge streams open,
and resets the process-wide metrics collector between tests.
"""

from __future__ import annotations

import pytest
import pytest_asyncio

from fakes import FakeTransport
from shipbot.bridge import BridgeIdentity
from shipbot.core.metrics import metrics


@pytest.fixture(autouse=True)
def _reset_metrics():
    metrics.reset()
    yield
    metrics.reset()


@pytest.fixture
def identity() -> BridgeIdentity:
    return BridgeIdentity("~bot")


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport(ship="~bot")


@pytest_asyncio.fixture
async def subscribed(transport: FakeTransport) -> FakeTransport:
    """Transport with graph, metadata and invite streams already open."""
    await transport.open_subscription("graph-store", "/updates")
    await transport.open_subscription("metadata-store", "/all")
    await transport.open_subscription("invite-store", "/updates", auto_ack=False)
    return transport
