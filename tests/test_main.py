"""Tests for the entry point's startup and shutdown handling."""

import asyncio

import pytest

from fakes import GRAPH, FakeTransport, graph_post
from shipbot.core.config import BridgeConfig, ShipbotConfig
from shipbot.main import run_bridge
from shipbot.responders import ChartResponder
from shipbot.transport.base import AuthenticationError

CONFIG = ShipbotConfig(bridge=BridgeConfig(poll_interval=0.01, join_spacing=0))


@pytest.mark.asyncio
async def test_login_failure_exits_nonzero():
    class NoLogin(FakeTransport):
        async def connect(self):
            raise AuthenticationError("login rejected (HTTP 400)")

    transport = NoLogin()

    status = await run_bridge(CONFIG, ChartResponder(), transport=transport)

    assert status == 1
    assert transport.closed


@pytest.mark.asyncio
async def test_subscription_failure_exits_nonzero():
    transport = FakeTransport()
    transport.fail_subscribe.add("invite-store")

    status = await run_bridge(CONFIG, ChartResponder(), transport=transport)

    assert status == 1
    assert transport.closed


@pytest.mark.asyncio
async def test_runs_until_cancelled_and_closes():
    transport = FakeTransport()
    task = asyncio.create_task(run_bridge(CONFIG, ChartResponder(), transport=transport))
    while len(transport.subscriptions()) < 3:
        await asyncio.sleep(0.005)

    transport.push(GRAPH, graph_post("~zod", "c ethusd 1h"))
    while not transport.posts:
        await asyncio.sleep(0.005)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert transport.closed
