"""Websocket relay client implementing the publish and fetch capabilities."""

import asyncio
import inspect
import uuid
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

import aiohttp

from common.constants import RELAY_TIMEOUT_SECONDS
from common.exceptions import ConfigError, RelayError
from common.logging_config import get_logger
from common.protocol import (
    close_frame,
    event_frame,
    event_to_message,
    message_to_event,
    parse_frame,
    req_frame,
)
from common.types import TaggedMessage

logger = get_logger(__name__)

Signer = Callable[[Dict[str, Any]], Union[Dict[str, Any], Awaitable[Dict[str, Any]]]]


class RelayClient:
    """
    Client for a single relay over one websocket connection.

    A background reader routes OK frames to the publish call waiting on
    that event id and EVENT/EOSE/CLOSED frames to the subscription they
    belong to, so publish() and fetch() may run concurrently.

    Signing is external: publish() passes each unsigned event dict
    (kind, content, tags) to the signer, which must return the complete
    signed event including its id.
    """

    def __init__(
        self,
        url: str,
        signer: Optional[Signer] = None,
        timeout: float = RELAY_TIMEOUT_SECONDS,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self.url = url
        self.signer = signer
        self.timeout = timeout
        self._session = session
        self._owns_session = session is None
        self._ws: Optional[aiohttp.ClientWebSocketResponse] = None
        self._reader: Optional[asyncio.Task] = None
        self._pending: Dict[str, asyncio.Future] = {}
        self._subscriptions: Dict[str, asyncio.Queue] = {}
        self._connect_lock = asyncio.Lock()
        self._send_lock = asyncio.Lock()

    @property
    def relay_url(self) -> str:
        return self.url

    @property
    def connected(self) -> bool:
        return self._ws is not None and not self._ws.closed

    async def __aenter__(self) -> "RelayClient":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def connect(self) -> None:
        """
        Open the websocket if it is not open yet.

        Raises:
            RelayError: If the relay cannot be reached
        """
        async with self._connect_lock:
            if self.connected:
                return
            if self._session is None:
                self._session = aiohttp.ClientSession()
            try:
                self._ws = await asyncio.wait_for(self._session.ws_connect(self.url), self.timeout)
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                raise RelayError(f"Could not connect to relay {self.url}: {e}") from e
            self._reader = asyncio.create_task(self._read_loop())
            logger.info(f"Connected to relay {self.url}")

    async def close(self) -> None:
        if self._ws is not None:
            await self._ws.close()
        if self._reader is not None:
            await self._reader
            self._reader = None
        if self._owns_session and self._session is not None:
            await self._session.close()
            self._session = None
        self._ws = None

    async def publish(self, message: TaggedMessage) -> str:
        """
        Sign and send one message, waiting for the relay's OK.

        Returns:
            The accepted event id

        Raises:
            ConfigError: If the client has no signer
            RelayError: If the relay rejects the event, times out or disconnects
        """
        if self.signer is None:
            raise ConfigError("RelayClient needs a signer to publish")

        await self.connect()

        signed = self.signer(message_to_event(message))
        if inspect.isawaitable(signed):
            signed = await signed
        event_id = signed.get("id")
        if not event_id:
            raise RelayError("Signer returned an event without an id")

        future = asyncio.get_running_loop().create_future()
        self._pending[event_id] = future
        try:
            await self._send(event_frame(signed))
            accepted, reason = await asyncio.wait_for(future, self.timeout)
        except asyncio.TimeoutError as e:
            raise RelayError(f"Relay {self.url} did not acknowledge {event_id[:12]}") from e
        except (aiohttp.ClientError, ConnectionResetError) as e:
            raise RelayError(f"Lost connection to {self.url}: {e}") from e
        finally:
            self._pending.pop(event_id, None)

        if not accepted:
            raise RelayError(f"Relay {self.url} rejected {event_id[:12]}: {reason}")

        logger.debug(f"Relay {self.url} accepted {event_id[:12]}")
        return event_id

    async def fetch(self, filters: Union[Dict[str, Any], List[Dict[str, Any]]]) -> List[TaggedMessage]:
        """
        Query stored events and return them once the relay sends EOSE.

        Events that fail validation are logged and skipped. If the relay
        never sends EOSE the events received before the timeout are
        returned.

        Raises:
            RelayError: If the relay closes the subscription or disconnects
        """
        if isinstance(filters, dict):
            filters = [filters]

        await self.connect()

        subscription_id = uuid.uuid4().hex[:16]
        queue: asyncio.Queue = asyncio.Queue()
        self._subscriptions[subscription_id] = queue
        messages: List[TaggedMessage] = []

        try:
            await self._send(req_frame(subscription_id, filters))
            while True:
                try:
                    frame = await asyncio.wait_for(queue.get(), self.timeout)
                except asyncio.TimeoutError:
                    logger.warning(f"Relay {self.url} sent no EOSE, returning {len(messages)} events")
                    break

                frame_type = frame[0]
                if frame_type == "EVENT" and len(frame) >= 3:
                    try:
                        messages.append(event_to_message(frame[2]))
                    except RelayError as e:
                        logger.warning(f"Skipping event from {self.url}: {e}")
                elif frame_type == "EOSE":
                    break
                elif frame_type == "CLOSED":
                    reason = frame[2] if len(frame) > 2 else ""
                    raise RelayError(f"Relay {self.url} closed subscription: {reason}")
        finally:
            self._subscriptions.pop(subscription_id, None)
            if self.connected:
                try:
                    await self._send(close_frame(subscription_id))
                except (aiohttp.ClientError, ConnectionResetError) as e:
                    logger.warning(f"Could not close subscription {subscription_id} on {self.url}: {e}")

        logger.info(f"Fetched {len(messages)} events from {self.url}")
        return messages

    async def _send(self, frame: str) -> None:
        async with self._send_lock:
            await self._ws.send_str(frame)

    async def _read_loop(self) -> None:
        ws = self._ws
        try:
            async for msg in ws:
                if msg.type == aiohttp.WSMsgType.TEXT:
                    try:
                        self._dispatch(parse_frame(msg.data))
                    except RelayError as e:
                        logger.warning(str(e))
                elif msg.type == aiohttp.WSMsgType.ERROR:
                    logger.error(f"Websocket error from {self.url}: {ws.exception()}")
                    break
        finally:
            self._fail_waiters(RelayError(f"Connection to {self.url} closed"))

    def _dispatch(self, frame: List[Any]) -> None:
        frame_type = frame[0]
        if len(frame) > 1 and not isinstance(frame[1], str):
            logger.debug(f"Ignoring {frame_type} frame with non-string id from {self.url}")
            return

        if frame_type == "OK" and len(frame) >= 3:
            future = self._pending.get(frame[1])
            if future is not None and not future.done():
                reason = frame[3] if len(frame) > 3 else ""
                future.set_result((bool(frame[2]), reason))
        elif frame_type in ("EVENT", "EOSE", "CLOSED") and len(frame) >= 2:
            queue = self._subscriptions.get(frame[1])
            if queue is not None:
                queue.put_nowait(frame)
        elif frame_type == "NOTICE":
            logger.info(f"Notice from {self.url}: {frame[1] if len(frame) > 1 else ''}")
        else:
            logger.debug(f"Ignoring frame {frame_type} from {self.url}")

    def _fail_waiters(self, error: RelayError) -> None:
        for future in self._pending.values():
            if not future.done():
                future.set_exception(error)
        for subscription_id, queue in self._subscriptions.items():
            queue.put_nowait(["CLOSED", subscription_id, str(error)])
