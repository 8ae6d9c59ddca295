from __future__ import annotations

"""
Server-sent events client for the node's event stream (async) with
auto-reconnect and per-kind callbacks.

- Uses httpx + httpx-sse (`aconnect_sse`).
- Each message's data is a JSON object with a single key naming the event
  kind, e.g. ``{"DeployProcessed": {...}}``; handlers receive the inner body.
- Handlers run synchronously on the reader task in registration order. A
  handler that raises is logged and the next handler still runs.
- After a disconnect the stream resumes with ``start_from=<last id + 1>``.

Example:
    import asyncio
    from casper_clients.rpc.sse import EventKind, EventStreamClient

    async def main():
        stream = EventStreamClient("http://localhost:9999/events/main")
        stream.add_event_callback(EventKind.DEPLOY_PROCESSED, "printer", lambda kind, body: print(body["deploy_hash"]))
        await stream.start_listening()
        await asyncio.sleep(60)
        await stream.stop_listening()

    asyncio.run(main())
"""

import asyncio
import contextlib
import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Mapping, Optional

import httpx
from httpx_sse import SSEError, aconnect_sse

from ..config import ClientConfig
from ..utils.retry import backoff_delay
from ..version import user_agent

log = logging.getLogger(__name__)


class EventKind(str, Enum):
    API_VERSION = "ApiVersion"
    BLOCK_ADDED = "BlockAdded"
    DEPLOY_ACCEPTED = "DeployAccepted"
    DEPLOY_PROCESSED = "DeployProcessed"
    DEPLOY_EXPIRED = "DeployExpired"
    FAULT = "Fault"
    FINALITY_SIGNATURE = "FinalitySignature"
    STEP = "Step"
    SHUTDOWN = "Shutdown"
    # Pseudo-kind: receives every event.
    ALL = "All"


EventHandler = Callable[[EventKind, Mapping[str, Any]], None]


@dataclass
class EventStreamClient:
    url: str
    headers: Optional[Mapping[str, str]] = None
    connect_timeout: float = 15.0
    max_reconnects: Optional[int] = None
    backoff_base: float = 0.5
    backoff_max: float = 30.0
    transport: Optional[httpx.AsyncBaseTransport] = None
    _callbacks: Dict[EventKind, Dict[str, EventHandler]] = field(init=False, default_factory=dict)
    _task: Optional[asyncio.Task] = field(init=False, default=None)
    _last_event_id: Optional[int] = field(init=False, default=None)
    _closing: bool = field(init=False, default=False)

    @classmethod
    def from_config(cls, config: ClientConfig, **kwargs: Any) -> "EventStreamClient":
        return cls(
            url=config.resolved_events_url(),
            connect_timeout=config.request_timeout,
            headers={"User-Agent": config.user_agent},
            **kwargs,
        )

    # ------------- callbacks -------------------

    def add_event_callback(self, kind: EventKind, callback_id: str, handler: EventHandler) -> None:
        """Register `handler` for `kind`; re-using a callback id replaces the handler."""
        self._callbacks.setdefault(EventKind(kind), {})[callback_id] = handler

    def remove_event_callback(self, kind: EventKind, callback_id: str) -> bool:
        handlers = self._callbacks.get(EventKind(kind))
        if not handlers or callback_id not in handlers:
            return False
        del handlers[callback_id]
        return True

    # ------------- lifecycle -------------------

    @property
    def is_listening(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start_listening(self) -> None:
        """Start the background reader task (idempotent)."""
        if self.is_listening:
            return
        self._closing = False
        self._task = asyncio.create_task(self._run(), name="EventStreamClient.reader")

    async def stop_listening(self) -> None:
        self._closing = True
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

    async def __aenter__(self) -> "EventStreamClient":
        await self.start_listening()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:  # noqa: ANN001
        await self.stop_listening()

    # ------------- reader ----------------------

    async def listen_once(self) -> int:
        """
        Connect, dispatch events until the server closes the stream and return
        the number of events seen. Transport errors propagate.
        """
        params: Dict[str, Any] = {}
        if self._last_event_id is not None:
            params["start_from"] = self._last_event_id + 1
        hdrs = {"User-Agent": user_agent(), "Accept": "text/event-stream"}
        if self.headers:
            hdrs.update(dict(self.headers))
        timeout = httpx.Timeout(self.connect_timeout, read=None)
        seen = 0
        async with httpx.AsyncClient(headers=hdrs, timeout=timeout, transport=self.transport) as client:
            async with aconnect_sse(client, "GET", self.url, params=params) as source:
                async for sse in source.aiter_sse():
                    if sse.id and sse.id.isdigit():
                        self._last_event_id = int(sse.id)
                    if not sse.data:
                        continue
                    seen += 1
                    self.dispatch_raw(sse.data)
        return seen

    async def _run(self) -> None:
        attempt = 0
        while not self._closing:
            try:
                seen = await self.listen_once()
                if seen:
                    attempt = 0
                log.info("event stream %s closed by server", self.url)
            except asyncio.CancelledError:
                raise
            except (httpx.HTTPError, SSEError) as e:
                log.warning("event stream %s failed: %s", self.url, e)
            except Exception:
                log.exception("event stream %s reader crashed", self.url)
            if self._closing:
                break
            attempt += 1
            if self.max_reconnects is not None and attempt > self.max_reconnects:
                log.error("event stream %s: giving up after %d reconnects", self.url, attempt - 1)
                break
            delay = backoff_delay(attempt, base=self.backoff_base, max_delay=self.backoff_max)
            log.warning("event stream reconnecting in %.2fs (attempt %d)", delay, attempt)
            await asyncio.sleep(delay)

    # ------------- dispatch --------------------

    def dispatch_raw(self, data: str) -> None:
        """Decode one message's data and dispatch it; undecodable data is logged and dropped."""
        try:
            msg = json.loads(data)
        except ValueError:
            log.warning("dropping non-JSON event data: %.120s", data)
            return
        if not isinstance(msg, Mapping) or len(msg) != 1:
            log.warning("dropping event with unexpected shape: %.120s", data)
            return
        (name, body), = msg.items()
        try:
            kind = EventKind(name)
        except ValueError:
            log.debug("ignoring unknown event kind %s", name)
            return
        self.dispatch(kind, body if isinstance(body, Mapping) else {"value": body})

    def dispatch(self, kind: EventKind, body: Mapping[str, Any]) -> None:
        handlers = list(self._callbacks.get(kind, {}).items())
        handlers += list(self._callbacks.get(EventKind.ALL, {}).items())
        for callback_id, handler in handlers:
            try:
                handler(kind, body)
            except Exception:
                log.exception("event handler %r for %s raised", callback_id, kind.value)


__all__ = ["EventKind", "EventHandler", "EventStreamClient"]
