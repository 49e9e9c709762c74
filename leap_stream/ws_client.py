"""
WebSocket client for the Leap Motion tracking service.

Handles:
- Connection and configuration handshake (gestures, background frames)
- A single receive loop decoding messages and dispatching frames in order
- Skipping malformed messages without stopping the stream
- Idempotent close and a one-shot done signal when the loop exits
"""

import asyncio
import concurrent.futures
import inspect
import json
import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Set, Union

import websockets
from websockets.asyncio.client import ClientConnection
from websockets.exceptions import ConnectionClosed

from .config import ClientConfig
from .frame import DeviceEvent, Frame, FrameDecodeError, ServiceInfo, decode_message

logger = logging.getLogger(__name__)

FrameHandler = Callable[[Frame], Union[None, Awaitable[None]]]
DeviceEventHandler = Callable[[DeviceEvent], Union[None, Awaitable[None]]]
ErrorHandler = Callable[[Exception], None]


@dataclass
class StreamStats:
    """Statistics about the tracking stream."""
    connect_time: Optional[float] = None
    disconnect_time: Optional[float] = None
    messages_received: int = 0
    frames_delivered: int = 0
    decode_errors: int = 0
    handler_errors: int = 0
    device_events: int = 0
    last_frame_time: Optional[float] = None


class LeapClient:
    """
    Async client for the Leap Motion WebSocket stream.

    Created with ``await LeapClient.connect(handler)``. One receive task runs
    for the lifetime of the connection and calls the handler for each frame,
    one at a time and in arrival order. Messages that fail to decode are
    dropped and the loop carries on; only a closed connection ends it.
    """

    def __init__(
        self,
        ws: ClientConnection,
        handler: Optional[FrameHandler] = None,
        config: Optional[ClientConfig] = None,
        on_error: Optional[ErrorHandler] = None,
        on_device_event: Optional[DeviceEventHandler] = None,
    ):
        """
        Wrap an open connection. Use ``connect`` instead of calling this.

        Args:
            ws: Open WebSocket connection that completed the handshake
            handler: Called with every decoded Frame
            config: Settings the connection was opened with
            on_error: Called with each decode or handler error
            on_device_event: Called with every DeviceEvent
        """
        self._ws = ws
        self.handler = handler
        self.config = config or ClientConfig()
        self.on_error = on_error
        self.on_device_event = on_device_event

        self.service_info: Optional[ServiceInfo] = None
        self.stats = StreamStats(connect_time=time.time())

        self._done = asyncio.Event()
        self._receive_task: Optional[asyncio.Task] = None

    @classmethod
    async def connect(
        cls,
        handler: Optional[FrameHandler] = None,
        config: Optional[ClientConfig] = None,
        *,
        on_error: Optional[ErrorHandler] = None,
        on_device_event: Optional[DeviceEventHandler] = None,
    ) -> 'LeapClient':
        """
        Connect to the service, send the handshake and start receiving.

        Returns as soon as the handshake messages are sent; it does not wait
        for the first frame.

        Raises:
            OSError: If the service is unreachable
            asyncio.TimeoutError: If the opening handshake times out
            websockets.exceptions.WebSocketException: On handshake or send
                failure
        """
        config = config or ClientConfig()

        logger.info(f"Connecting to {config.url}...")
        ws = await websockets.connect(
            config.url,
            origin=config.origin,
            open_timeout=config.open_timeout,
            close_timeout=config.close_timeout,
            ping_interval=config.ping_interval,
            max_size=config.max_size,
        )

        try:
            for message in config.handshake_messages():
                await ws.send(json.dumps(message))
        except Exception as e:
            logger.error(f"Handshake failed: {e}")
            await ws.close()
            raise

        client = cls(
            ws,
            handler=handler,
            config=config,
            on_error=on_error,
            on_device_event=on_device_event,
        )
        client._receive_task = asyncio.create_task(client._receive_loop())

        logger.info("Leap Motion stream connected")
        return client

    @property
    def is_done(self) -> bool:
        """True once the receive loop has exited."""
        return self._done.is_set()

    async def wait_done(self, timeout: Optional[float] = None) -> bool:
        """
        Wait for the receive loop to exit.

        Returns:
            True if the loop exited, False if the timeout elapsed first
        """
        try:
            await asyncio.wait_for(self._done.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            return False
        return True

    async def close(self) -> None:
        """
        Close the connection.

        Safe to call more than once and while a receive is in flight. Does
        not wait for the receive loop; use ``wait_done`` for that.
        """
        if self._ws is None:
            return
        logger.info("Closing Leap Motion stream")
        await self._ws.close()

    async def _receive_loop(self) -> None:
        """Receive, decode and dispatch messages until the connection closes."""
        ws = self._ws
        try:
            while True:
                try:
                    raw = await ws.recv()
                except ConnectionClosed as e:
                    logger.info(f"Connection closed: {e}")
                    break

                self.stats.messages_received += 1

                try:
                    message = decode_message(raw)
                except FrameDecodeError as e:
                    self.stats.decode_errors += 1
                    logger.debug(f"Skipping undecodable message: {e}")
                    self._report_error(e)
                    continue

                await self._dispatch(message)
        finally:
            self.stats.disconnect_time = time.time()
            self._done.set()

    async def _dispatch(self, message) -> None:
        """Route one decoded message to the matching callback."""
        if isinstance(message, Frame):
            self.stats.last_frame_time = time.time()
            if self.handler is None:
                return
            if await self._call(self.handler, message):
                self.stats.frames_delivered += 1
        elif isinstance(message, DeviceEvent):
            self.stats.device_events += 1
            logger.info(
                f"Device {message.id or '?'}: attached={message.attached} "
                f"streaming={message.streaming}"
            )
            if self.on_device_event is not None:
                await self._call(self.on_device_event, message)
        elif isinstance(message, ServiceInfo):
            self.service_info = message
            logger.info(
                f"Leap service {message.service_version} (protocol v{message.version})"
            )

    async def _call(self, callback: Callable[[Any], Any], arg: Any) -> bool:
        """Invoke a sync or async callback, absorbing its exceptions."""
        try:
            result = callback(arg)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            self.stats.handler_errors += 1
            logger.exception(f"Handler raised: {e}")
            self._report_error(e)
            return False
        return True

    def _report_error(self, error: Exception) -> None:
        if self.on_error is None:
            return
        try:
            self.on_error(error)
        except Exception:
            logger.exception("Error observer raised")

    def get_stats(self) -> dict:
        """Get stream statistics."""
        return {
            "done": self.is_done,
            "connect_time": self.stats.connect_time,
            "disconnect_time": self.stats.disconnect_time,
            "messages_received": self.stats.messages_received,
            "frames_delivered": self.stats.frames_delivered,
            "decode_errors": self.stats.decode_errors,
            "handler_errors": self.stats.handler_errors,
            "device_events": self.stats.device_events,
            "last_frame_time": self.stats.last_frame_time,
            "service_version": self.service_info.service_version if self.service_info else None,
        }


class SyncLeapClient:
    """
    Synchronous wrapper around LeapClient for use in non-async code.

    Runs the async client on a private event loop in a background thread.
    The frame handler is called on that thread.
    """

    def __init__(
        self,
        client: LeapClient,
        loop: asyncio.AbstractEventLoop,
        thread: threading.Thread,
    ):
        self._client = client
        self._loop = loop
        self._thread = thread
        self._done = threading.Event()
        self._close_lock = threading.Lock()
        self._closed = False
        self._close_tasks: Set[asyncio.Task] = set()

    @classmethod
    def connect(
        cls,
        handler: Optional[FrameHandler] = None,
        config: Optional[ClientConfig] = None,
        *,
        on_error: Optional[ErrorHandler] = None,
        on_device_event: Optional[DeviceEventHandler] = None,
    ) -> 'SyncLeapClient':
        """
        Connect and start streaming in a background thread.

        Blocks until the handshake is sent. Connection errors are raised in
        the calling thread and the background thread is stopped.
        """
        loop = asyncio.new_event_loop()
        thread = threading.Thread(
            target=cls._run_loop,
            args=(loop,),
            name="leap-stream",
            daemon=True,
        )
        thread.start()

        future = asyncio.run_coroutine_threadsafe(
            LeapClient.connect(
                handler,
                config,
                on_error=on_error,
                on_device_event=on_device_event,
            ),
            loop,
        )
        try:
            client = future.result()
        except BaseException:
            loop.call_soon_threadsafe(loop.stop)
            thread.join()
            raise

        sync_client = cls(client, loop, thread)
        asyncio.run_coroutine_threadsafe(sync_client._watch_done(), loop)
        asyncio.run_coroutine_threadsafe(sync_client._stop_when_done(), loop)
        return sync_client

    @staticmethod
    def _run_loop(loop: asyncio.AbstractEventLoop) -> None:
        """Run the async event loop."""
        asyncio.set_event_loop(loop)
        try:
            loop.run_forever()
        finally:
            loop.close()

    async def _watch_done(self) -> None:
        await self._client.wait_done()
        self._done.set()

    async def _close_on_loop(self) -> None:
        task = asyncio.current_task()
        self._close_tasks.add(task)
        try:
            await self._client.close()
        finally:
            self._close_tasks.discard(task)

    async def _stop_when_done(self) -> None:
        """Stop the event loop once the receive loop and any close() finish."""
        await self._client.wait_done()

        # Let an in-flight close() deliver its result before stopping
        if self._close_tasks:
            await asyncio.wait(set(self._close_tasks), timeout=self._client.config.close_timeout)

        logger.debug("Leap stream event loop stopping")
        asyncio.get_running_loop().stop()

    def close(self, timeout: Optional[float] = None) -> None:
        """
        Close the connection.

        Idempotent and thread-safe. Does not wait for the receive loop; use
        ``wait_done`` for that. The background thread exits by itself once
        the receive loop has finished.

        Raises:
            concurrent.futures.TimeoutError: If the close did not finish in
                time. The client stays open and close() may be retried.
        """
        with self._close_lock:
            if self._closed:
                return
            if self._done.is_set():
                # Connection already closed; the loop thread is stopping.
                self._closed = True
                return

            if timeout is None:
                timeout = self._client.config.close_timeout + 1.0

            future = asyncio.run_coroutine_threadsafe(self._close_on_loop(), self._loop)
            try:
                future.result(timeout=timeout)
            except concurrent.futures.TimeoutError:
                future.cancel()
                if self._done.is_set():
                    self._closed = True
                    return
                raise
            self._closed = True

    @property
    def is_done(self) -> bool:
        """True once the receive loop has exited."""
        return self._done.is_set()

    def wait_done(self, timeout: Optional[float] = None) -> bool:
        """Block until the receive loop exits. False if the timeout elapsed."""
        return self._done.wait(timeout)

    @property
    def service_info(self) -> Optional[ServiceInfo]:
        return self._client.service_info

    def get_stats(self) -> dict:
        """Get stream statistics."""
        return self._client.get_stats()
