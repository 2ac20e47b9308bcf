"""
EyreTransport — talks to a ship over its HTTP channel interface.

Protocol:
- POST /~/login (form: password=<code>) sets the urbauth-~ship cookie
- PUT  /~/channel/<uid> with a JSON list of actions (poke, subscribe,
  ack, delete). The first PUT creates the channel.
- GET  /~/channel/<uid> (text/event-stream) streams responses:
      {"id": <request id>, "response": "poke" | "subscribe" | "diff" | "quit", ...}
- POST /spider/<desk>/<input-mark>/<thread>/<output-mark>.json runs a thread

One background task reads the event stream:
- "diff" responses become Frames in their subscription's buffer
- "poke"/"subscribe" responses resolve the request waiting on them
- "quit" (the ship kicked us) resubscribes on the same path
- every event is acked unless it belongs to a manual-ack subscription

Stream errors reconnect with a doubling delay, resuming from Last-Event-ID.

Limitation: the ship keeps one event id sequence per channel and treats
an ack as "everything up to this id", not per subscription. Once a later
auto-acked event (say a graph-store diff) is acked, earlier invite-store
events on the same channel count as acked too. ``auto_ack=False`` only
stops this transport from acking those frames itself; it does not keep
them unacked on the ship until the caller's send_ack(). Redelivery of an
unhandled invite after reconnect is therefore not guaranteed.
"""

from __future__ import annotations

import asyncio
import json
import logging
import secrets
import time
from typing import Any, Optional

import httpx

from shipbot.core.config import ShipConfig
from shipbot.transport.base import (
    AuthenticationError,
    Frame,
    PokeError,
    Subscription,
    SubscriptionError,
    Transport,
    TransportError,
)
from shipbot.transport.sse import SSEEvent, SSEParser
from shipbot.urbit.resource import normalize_ship

logger = logging.getLogger(__name__)

_COOKIE_PREFIX = "urbauth-"


class EyreTransport(Transport):
    """Transport over a ship's channel API, built on httpx.AsyncClient."""

    name = "eyre"

    def __init__(
        self,
        config: ShipConfig,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        super().__init__()
        self._config = config
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=config.url,
            timeout=config.request_timeout,
        )
        self._ship = normalize_ship(config.ship) if config.ship else ""
        self._channel_id = f"{int(time.time())}-{secrets.token_hex(3)}"
        self._next_id = 0
        self._pending: dict[int, asyncio.Future] = {}
        self._by_request: dict[int, Subscription] = {}
        self._parser = SSEParser()
        self._reader: Optional[asyncio.Task] = None
        self._connected = False
        self._closed = False

    @property
    def ship(self) -> str:
        return self._ship

    @property
    def channel_path(self) -> str:
        return f"/~/channel/{self._channel_id}"

    # ─── Lifecycle ───────────────────────────────────────────────

    async def connect(self) -> None:
        """Log in with the access code and resolve our ship name."""
        if not self._config.code:
            raise AuthenticationError("SHIPBOT_CODE not set")
        try:
            resp = await self._client.post(
                "/~/login", data={"password": self._config.code}
            )
        except httpx.HTTPError as e:
            raise AuthenticationError(f"login request failed: {e}") from e
        if resp.status_code >= 400:
            raise AuthenticationError(f"login rejected (HTTP {resp.status_code})")

        if not self._ship:
            self._ship = self._ship_from_cookies(resp)
        if not self._ship:
            raise AuthenticationError(
                "could not determine ship name; set SHIPBOT_SHIP"
            )
        self._connected = True
        logger.info("Logged in to %s as %s", self._config.url, self._ship)

    async def close(self) -> None:
        """Delete the channel, stop the reader, fail anything still waiting."""
        if self._closed:
            return
        self._closed = True

        if self._reader is not None:
            self._reader.cancel()
            try:
                await self._reader
            except asyncio.CancelledError:
                pass
            self._reader = None

        if self._connected:
            try:
                await self._put([{"id": self._request_id(), "action": "delete"}])
            except TransportError as e:
                logger.warning("Channel delete failed: %s", e)

        self._fail_pending(TransportError("transport closed"))
        self._subscriptions.clear()
        self._by_request.clear()
        if self._owns_client:
            await self._client.aclose()
        logger.info("Eyre transport closed")

    # ─── Requests ────────────────────────────────────────────────

    async def open_subscription(
        self, app: str, path: str, *, auto_ack: bool = True
    ) -> Subscription:
        request_id = self._request_id()
        subscription = self._register(
            Subscription(app=app, path=path, auto_ack=auto_ack, request_id=request_id)
        )
        self._by_request[request_id] = subscription
        try:
            await self._request(
                request_id,
                {"action": "subscribe", "app": app, "path": path},
                error=SubscriptionError,
            )
        except TransportError as e:
            self._subscriptions.pop(subscription.key, None)
            self._by_request.pop(request_id, None)
            if isinstance(e, SubscriptionError):
                raise
            raise SubscriptionError(f"subscribe to {subscription} failed: {e}") from e
        logger.info("Subscribed to %s (auto_ack=%s)", subscription, auto_ack)
        return subscription

    async def send_poke(self, app: str, mark: str, payload: dict) -> None:
        request_id = self._request_id()
        await self._request(
            request_id,
            {"action": "poke", "app": app, "mark": mark, "json": payload},
            error=PokeError,
        )

    async def send_ack(self, subscription: Subscription, frame_id: int) -> None:
        await self._ack(frame_id)
        logger.debug("Acked frame %d on %s", frame_id, subscription)

    async def run_thread(
        self, input_mark: str, thread: str, output_mark: str, payload: dict
    ) -> Any:
        url = (
            f"/spider/{self._config.thread_desk}/{input_mark}/{thread}/{output_mark}.json"
        )
        try:
            resp = await self._client.post(url, json=payload)
        except httpx.HTTPError as e:
            raise TransportError(f"thread {thread} request failed: {e}") from e
        if resp.status_code >= 400:
            raise PokeError(f"thread {thread} failed (HTTP {resp.status_code}): {resp.text}")
        if not resp.content:
            return None
        try:
            return resp.json()
        except ValueError:
            return resp.text

    # ─── Channel Plumbing ────────────────────────────────────────

    def _request_id(self) -> int:
        self._next_id += 1
        return self._next_id

    async def _put(self, actions: list[dict]) -> None:
        try:
            resp = await self._client.put(self.channel_path, json=actions)
        except httpx.HTTPError as e:
            raise TransportError(f"channel request failed: {e}") from e
        if resp.status_code >= 400:
            raise TransportError(f"channel request rejected (HTTP {resp.status_code})")

    async def _request(
        self, request_id: int, action: dict, error: type[TransportError]
    ) -> None:
        """PUT one action and wait for the ship's ok/err on the event stream."""
        future: asyncio.Future = asyncio.get_running_loop().create_future()
        self._pending[request_id] = future
        body = {"id": request_id, "ship": self._ship.lstrip("~"), **action}
        try:
            await self._put([body])
            self._ensure_reader()
            try:
                await asyncio.wait_for(future, timeout=self._config.poke_timeout)
            except asyncio.TimeoutError as e:
                raise error(
                    f"no response to {action['action']} {request_id} "
                    f"after {self._config.poke_timeout}s"
                ) from e
        except (PokeError, SubscriptionError):
            raise
        except TransportError as e:
            raise error(str(e)) from e
        finally:
            self._pending.pop(request_id, None)

    async def _ack(self, event_id: int) -> None:
        await self._put(
            [{"id": self._request_id(), "action": "ack", "event-id": event_id}]
        )

    def _ensure_reader(self) -> None:
        if self._reader is None and not self._closed:
            self._reader = asyncio.create_task(self._read_events())

    # ─── Event Stream ────────────────────────────────────────────

    async def _read_events(self) -> None:
        """Read the event stream forever, reconnecting on failure."""
        failures = 0
        while not self._closed:
            headers = {"Accept": "text/event-stream"}
            if self._parser.last_event_id is not None:
                headers["Last-Event-ID"] = self._parser.last_event_id
            try:
                async with self._client.stream(
                    "GET",
                    self.channel_path,
                    headers=headers,
                    timeout=httpx.Timeout(self._config.request_timeout, read=None),
                ) as resp:
                    if resp.status_code >= 400:
                        raise TransportError(
                            f"event stream rejected (HTTP {resp.status_code})"
                        )
                    failures = 0
                    async for line in resp.aiter_lines():
                        event = self._parser.feed(line)
                        if event is not None:
                            await self._handle_event(event)
                logger.debug("Event stream ended, reconnecting")
            except asyncio.CancelledError:
                raise
            except (httpx.HTTPError, TransportError) as e:
                failures += 1
                delay = self._config.reconnect_delay * 2 ** min(
                    failures - 1, self._config.reconnect_attempts
                )
                log = logger.warning
                if failures > self._config.reconnect_attempts:
                    log = logger.error
                log(
                    "Event stream error (%s), reconnect attempt %d in %.1fs",
                    e,
                    failures,
                    delay,
                )
                await asyncio.sleep(delay)
                continue
            await asyncio.sleep(self._config.reconnect_delay)

    async def _handle_event(self, event: SSEEvent) -> None:
        try:
            data = json.loads(event.data)
        except json.JSONDecodeError:
            logger.warning("Undecodable event %s: %.200s", event.id, event.data)
            return
        if not isinstance(data, dict):
            return

        event_id = int(event.id) if event.id and event.id.isdigit() else None
        request_id = data.get("id")
        response = data.get("response")
        needs_ack = True

        if response in ("poke", "subscribe"):
            self._resolve(request_id, response, data)
        elif response == "diff":
            subscription = self._by_request.get(request_id)
            if subscription is None:
                logger.debug("Diff for unknown request %s", request_id)
            elif event_id is None:
                logger.warning("Diff on %s without an event id, dropped", subscription)
            else:
                frame = Frame(
                    id=event_id,
                    data=json.dumps(data.get("json")),
                    app=subscription.app,
                    path=subscription.path,
                )
                self._deliver(subscription, frame)
                needs_ack = subscription.auto_ack
        elif response == "quit":
            await self._resubscribe(request_id)

        if needs_ack and event_id is not None:
            try:
                await self._ack(event_id)
            except TransportError as e:
                logger.warning("Ack of event %d failed: %s", event_id, e)

    def _resolve(self, request_id: Any, response: str, data: dict) -> None:
        future = self._pending.get(request_id)
        if future is None or future.done():
            if "err" in data:
                logger.warning("Ship rejected %s %s: %s", response, request_id, data["err"])
            return
        if "err" in data:
            error = SubscriptionError if response == "subscribe" else PokeError
            future.set_exception(error(f"{response} {request_id} failed: {data['err']}"))
        else:
            future.set_result(None)

    async def _resubscribe(self, request_id: Any) -> None:
        """The ship closed a subscription; open it again on a fresh request id."""
        subscription = self._by_request.pop(request_id, None)
        if subscription is None or self._closed:
            return
        new_id = self._request_id()
        subscription.request_id = new_id
        self._by_request[new_id] = subscription
        try:
            await self._put(
                [
                    {
                        "id": new_id,
                        "action": "subscribe",
                        "ship": self._ship.lstrip("~"),
                        "app": subscription.app,
                        "path": subscription.path,
                    }
                ]
            )
            logger.info("Resubscribed to %s after kick", subscription)
        except TransportError as e:
            logger.error("Resubscribe to %s failed: %s", subscription, e)

    def _fail_pending(self, error: Exception) -> None:
        for future in self._pending.values():
            if not future.done():
                future.set_exception(error)
        self._pending.clear()

    @staticmethod
    def _ship_from_cookies(resp: httpx.Response) -> str:
        for name in resp.cookies.keys():
            if name.startswith(_COOKIE_PREFIX):
                return normalize_ship(name[len(_COOKIE_PREFIX):])
        return ""
