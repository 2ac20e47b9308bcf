"""
Shipbot entry point.

    $ SHIPBOT_URL=http://localhost:8080 SHIPBOT_CODE=lidlut-tabwed-pillex-ridrup shipbot

Or with your own reply policy:

    from shipbot.main import main
    from shipbot.urbit import Message

    def respond(message):
        if message.contents.to_formatted_string() == "ping":
            return Message().add_text("pong")
        return None

    main(respond)
"""

from __future__ import annotations

import asyncio
import logging
import signal
import sys
from typing import Optional

from shipbot import __version__
from shipbot.bridge import BridgeIdentity, DispatchLoop
from shipbot.core.config import ShipbotConfig
from shipbot.core.logging import setup_logging
from shipbot.responders import ChartResponder
from shipbot.responders.base import Responder, ResponderFn
from shipbot.transport import EyreTransport, Transport, TransportError

logger = logging.getLogger("shipbot")


async def run_bridge(
    config: ShipbotConfig,
    responder: Responder | ResponderFn,
    transport: Optional[Transport] = None,
) -> int:
    """Connect, subscribe and run until SIGINT/SIGTERM. Returns an exit status."""
    transport = transport or EyreTransport(config.ship)
    try:
        await transport.connect()
        bridge = DispatchLoop(
            transport, responder, BridgeIdentity(transport.ship), config.bridge
        )
        await bridge.start()
    except TransportError as e:
        logger.error("Startup failed: %s", e)
        await transport.close()
        return 1

    event_loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            event_loop.add_signal_handler(sig, bridge.stop)
        except (NotImplementedError, RuntimeError):
            pass  # not supported on this platform

    try:
        await bridge.run()
    finally:
        await transport.close()
    return 0


def main(responder: Responder | ResponderFn | None = None) -> None:
    setup_logging()
    config = ShipbotConfig.from_env()
    logger.info("Shipbot %s starting (ship=%s)", __version__, config.ship.url)
    status = asyncio.run(run_bridge(config, responder or ChartResponder()))
    sys.exit(status)


if __name__ == "__main__":
    main()
