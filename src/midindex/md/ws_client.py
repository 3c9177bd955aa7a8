from __future__ import annotations
import asyncio, contextlib, time
from dataclasses import dataclass
from typing import Any, AsyncIterator, Callable, Dict, Iterable, List, Optional, Protocol, Union

import websockets

from midindex.core.cache import SnapshotCache, cache_key
from midindex.core.errors import InvalidQuote, ParseError, VenueConnectionError
from midindex.core.logger import get_logger
from midindex.core.types import ConnectionState, VenueConfig
from midindex.core.utils import to_json
from midindex.md.normalize import decode_frame, parse_depth
from midindex.md.venues import MessageKind, VenueProtocol, protocol_for


# --- stream events ---

@dataclass(frozen=True)
class Opened:
    pass

@dataclass(frozen=True)
class Message:
    data: Union[str, bytes]

@dataclass(frozen=True)
class Closed:
    code: Optional[int] = None
    reason: str = ""

@dataclass(frozen=True)
class Errored:
    error: BaseException

StreamEvent = Union[Opened, Message, Closed, Errored]


# --- transport ---

class StreamSocket(Protocol):
    async def send(self, message: str) -> None: ...
    async def close(self) -> None: ...
    def __aiter__(self) -> AsyncIterator[Union[str, bytes]]: ...

class StreamTransport(Protocol):
    async def open(self, url: str) -> StreamSocket: ...


class WebsocketsTransport:
    def __init__(self, ping_interval: float = 20.0, ping_timeout: float = 20.0, close_timeout: float = 5.0):
        self.ping_interval = ping_interval
        self.ping_timeout = ping_timeout
        self.close_timeout = close_timeout

    async def open(self, url: str) -> StreamSocket:
        # protocol-level ping/pong frames are answered by websockets itself
        return await websockets.connect(
            url,
            ping_interval=self.ping_interval,
            ping_timeout=self.ping_timeout,
            close_timeout=self.close_timeout,
            max_size=2 ** 22,
        )


class Backoff:
    """Reconnect delay: doubles per consecutive failure, capped, reset on open."""

    def __init__(self, initial_ms: int = 5_000, max_ms: int = 60_000):
        self.initial_ms = initial_ms
        self.max_ms = max_ms
        self._next = initial_ms

    def next_delay_ms(self) -> int:
        delay = self._next
        self._next = min(self._next * 2, self.max_ms)
        return delay

    def peek_ms(self) -> int:
        return self._next

    def reset(self) -> None:
        self._next = self.initial_ms


def _ordered(pairs: Iterable[str]) -> List[str]:
    return list(dict.fromkeys(p.upper() for p in pairs))


class VenueConnector:
    """
    One venue's persistent depth stream.

    State machine: DISCONNECTED -> CONNECTING on connect attempt,
    CONNECTING -> SUBSCRIBED on the venue's subscribe acknowledgement,
    back to DISCONNECTED on any close, transport error, rejected subscribe
    or missing acknowledgement within connect_timeout_ms (a reconnect is
    then scheduled with backoff), CLOSING once close() is called.

    Socket callbacks are funnelled through ``handle_event`` as typed
    events, so the transitions can be driven without a network.
    """

    def __init__(self, cfg: VenueConfig, cache: SnapshotCache,
                 transport: Optional[StreamTransport] = None,
                 protocol: Optional[VenueProtocol] = None,
                 clock: Callable[[], float] = time.monotonic):
        self.cfg = cfg
        self.venue = cfg.id
        self.cache = cache
        self.transport = transport or WebsocketsTransport()
        self.protocol = protocol or protocol_for(cfg)
        self.backoff = Backoff(cfg.reconnect_initial_ms, cfg.reconnect_max_ms)
        self.state = ConnectionState.DISCONNECTED
        self.pairs: List[str] = []
        self.started = False
        self.log = get_logger(f"md.ws.{self.venue}")
        self._clock = clock
        self._socket: Optional[StreamSocket] = None
        self._run_task: Optional[asyncio.Task] = None
        self._reconnect_task: Optional[asyncio.Task] = None
        self._ack_task: Optional[asyncio.Task] = None
        self._snapshot_at: Dict[str, float] = {}
        self._requested_at: Dict[str, float] = {}

    # --- public contract ---

    def is_connected(self) -> bool:
        return self.state is ConnectionState.SUBSCRIBED

    @property
    def reconnect_pending(self) -> bool:
        return self._reconnect_task is not None and not self._reconnect_task.done()

    async def connect(self, pairs: Iterable[str]) -> None:
        if self.state is ConnectionState.CLOSING:
            raise RuntimeError(f"{self.venue}: connector is closed")
        await self._teardown()
        self.pairs = _ordered(pairs)
        self.started = True
        self._start()

    async def update_subscription(self, pairs: Iterable[str]) -> bool:
        """Hot-update the subscription. Returns False (and does nothing) unless subscribed."""
        if self.state is not ConnectionState.SUBSCRIBED:
            return False
        new = _ordered(pairs)
        try:
            if set(new) != set(self.pairs):
                self.log.info(f"{self.venue}: updating subscription {self.pairs} -> {new}")
                self.pairs = new
                await self._subscribe(new)
            if self.protocol.snapshot_only and self.cfg.resubscribe_after_ms:
                await self._resubscribe_stale()
        except Exception as e:
            self.log.warning(f"{self.venue}: subscription update failed ({e!r})")
            return False
        return True

    async def close(self) -> None:
        self.state = ConnectionState.CLOSING
        await self._teardown()
        self.log.info(f"{self.venue}: stream closed")

    # --- event handling ---

    async def handle_event(self, event: StreamEvent) -> None:
        if isinstance(event, Opened):
            await self._on_opened()
        elif isinstance(event, Message):
            await self._on_message(event.data)
        elif isinstance(event, (Closed, Errored)):
            await self._on_lost(event)

    async def _on_opened(self):
        self.backoff.reset()
        self.log.info(f"{self.venue}: stream open at {self.cfg.ws_url}, subscribing {self.pairs}")
        if not self.pairs:
            # nothing to acknowledge
            self.state = ConnectionState.SUBSCRIBED
            return
        await self._subscribe(self.pairs)
        self._cancel_ack_deadline()
        self._ack_task = asyncio.create_task(self._ack_deadline(self._socket))

    async def _on_message(self, raw: Union[str, bytes]):
        try:
            msg = decode_frame(self.venue, raw)
        except ParseError as e:
            self.log.warning(f"dropping message: {e}")
            return

        kind = self.protocol.classify(msg)
        if kind is MessageKind.PING:
            reply = self.protocol.pong(msg)
            if reply is not None:
                await self._send(reply)
            return
        if kind is MessageKind.ACK:
            if self.state is ConnectionState.CONNECTING:
                self._cancel_ack_deadline()
                self.state = ConnectionState.SUBSCRIBED
                self.log.info(f"{self.venue}: subscribed {self.pairs}")
            return
        if kind is MessageKind.REJECT:
            self.log.warning(f"{self.venue}: request rejected: {msg}")
            if self.state is ConnectionState.CONNECTING:
                await self.handle_event(Errored(VenueConnectionError(self.venue, f"subscription rejected: {msg}")))
            return
        if kind is MessageKind.INFO:
            self.log.debug(f"{self.venue}: {str(msg)[:200]}")
            return

        try:
            book = parse_depth(self.venue, msg)
        except (ParseError, InvalidQuote) as e:
            self.log.warning(f"dropping depth message: {e}")
            return
        self.cache.set(cache_key(self.venue, book.pair), book)
        self._snapshot_at[book.pair] = self._clock()
        if self.state is ConnectionState.CONNECTING:
            # data flowing means the subscription took
            self.state = ConnectionState.SUBSCRIBED

    async def _on_lost(self, event: Union[Closed, Errored]):
        if self.state is ConnectionState.CLOSING:
            return
        self._cancel_ack_deadline()
        await self._close_socket()
        self.state = ConnectionState.DISCONNECTED
        delay = self.backoff.next_delay_ms()
        if isinstance(event, Closed):
            self.log.warning(f"{self.venue}: stream closed ({event.code} {event.reason}); reconnecting in {delay} ms")
        else:
            self.log.error(f"{self.venue}: stream error ({event.error!r}); reconnecting in {delay} ms")
        if self._reconnect_task is not None:
            self._reconnect_task.cancel()
        self._reconnect_task = asyncio.create_task(self._reconnect_after(delay))

    # --- internals ---

    def _start(self):
        self.state = ConnectionState.CONNECTING
        self._run_task = asyncio.create_task(self._run())

    async def _run(self):
        try:
            sock = await asyncio.wait_for(self.transport.open(self.cfg.ws_url),
                                          timeout=self.cfg.connect_timeout_ms / 1000)
        except Exception as e:
            await self.handle_event(Errored(VenueConnectionError(self.venue, f"open failed: {e!r}")))
            return
        self._socket = sock
        try:
            await self.handle_event(Opened())
            async for raw in sock:
                if self._socket is not sock:
                    break
                await self.handle_event(Message(raw))
        except Exception as e:
            if self._socket is sock:
                await self.handle_event(Errored(VenueConnectionError(self.venue, repr(e))))
        else:
            # a socket we already gave up on ends quietly
            if self._socket is sock:
                await self.handle_event(Closed(code=getattr(sock, "close_code", None),
                                               reason=getattr(sock, "close_reason", "") or ""))

    async def _ack_deadline(self, sock: Optional[StreamSocket]):
        await asyncio.sleep(self.cfg.connect_timeout_ms / 1000)
        self._ack_task = None
        if self.state is ConnectionState.CONNECTING and self._socket is sock:
            await self.handle_event(Errored(VenueConnectionError(
                self.venue, f"no subscribe acknowledgement within {self.cfg.connect_timeout_ms} ms")))

    def _cancel_ack_deadline(self):
        task, self._ack_task = self._ack_task, None
        if task is not None and task is not asyncio.current_task():
            task.cancel()

    async def _reconnect_after(self, delay_ms: int):
        await asyncio.sleep(delay_ms / 1000)
        self._reconnect_task = None
        if self.state is ConnectionState.DISCONNECTED:
            self.log.info(f"{self.venue}: reconnecting")
            self._start()

    async def _subscribe(self, pairs: List[str]):
        for m in self.protocol.subscribe_messages(pairs):
            await self._send(m)
        now = self._clock()
        for p in pairs:
            self._requested_at[p] = now

    async def _resubscribe_stale(self):
        now = self._clock()
        limit = self.cfg.resubscribe_after_ms / 1000
        stale = [p for p in self.pairs
                 if now - max(self._snapshot_at.get(p, 0.0), self._requested_at.get(p, 0.0)) > limit]
        if not stale:
            return
        self.log.info(f"{self.venue}: refreshing snapshots for {stale}")
        for m in self.protocol.unsubscribe_messages(stale):
            await self._send(m)
        await self._subscribe(stale)

    async def _send(self, msg: Any):
        if self._socket is None:
            raise VenueConnectionError(self.venue, "no open socket")
        await self._socket.send(to_json(msg))

    async def _close_socket(self):
        sock, self._socket = self._socket, None
        if sock is None:
            return
        try:
            await sock.close()
        except Exception as e:
            self.log.debug(f"{self.venue}: error while closing socket: {e!r}")

    async def _teardown(self):
        self._cancel_ack_deadline()
        if self._reconnect_task is not None:
            self._reconnect_task.cancel()
            self._reconnect_task = None
        task, self._run_task = self._run_task, None
        if task is not None and task is not asyncio.current_task():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        await self._close_socket()
