"""WebSocket session with the skill debug relay.

This is the core of the debug mode. It:
1. Opens an authenticated WebSocket to the relay's development endpoint
2. Reads one request frame at a time
3. Runs the skill handler on the decoded domain request
4. Writes the success or failure frame back before reading the next one

Transport failures end the session with a ConnectivityError. Handler and
serialization failures are answered in-band and the session keeps going.
"""

import asyncio
import logging
import threading
import time
from enum import Enum
from typing import Any, Callable, Mapping, Optional

import websockets
from pydantic import BaseModel
from rich.console import Console

from .envelope import (
    SkillRequest,
    SkillResponse,
    decode_inner_request,
    decode_request,
    encode_inner_response,
    encode_response,
    failure_response,
    success_response,
)
from .errors import ConfigurationError, ConnectivityError, DecodeError, EncodeError
from .handler import Handler, HandlerContext, invoke_handler
from .regions import REGION_ENDPOINTS, build_debug_url, resolve_region

logger = logging.getLogger(__name__)
console = Console()

CLOSE_NORMAL = 1000
CLOSE_INTERNAL_ERROR = 1011


class SessionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    AUTHENTICATED = "authenticated"
    LOOPING = "looping"
    CLOSING = "closing"
    CLOSED = "closed"
    FAILED = "failed"


TERMINAL_STATES = frozenset({SessionState.CLOSED, SessionState.FAILED})


class DebugSession:
    """
    One authenticated connection to the skill debug relay.

    Frames are processed strictly in order: the next read only starts once
    the previous response has been written. Each instance owns its own
    transport and cancellation scope, so several sessions can coexist.
    """

    def __init__(
        self,
        access_token: str,
        skill_id: str,
        handler: Handler,
        region: str = "NA",
        endpoints: Mapping[str, str] = REGION_ENDPOINTS,
        request_model: Optional[type[BaseModel]] = None,
        recover_malformed_payloads: bool = False,
        send_timeout: Optional[float] = 5.0,
        open_timeout: float = 10.0,
        connector: Callable[..., Any] = websockets.connect,
        log_callback: Callable[[str, str], None] | None = None,
    ):
        self.access_token = access_token
        self.skill_id = skill_id
        self.handler = handler
        self.region = region
        self.endpoints = endpoints
        self.request_model = request_model
        self.recover_malformed_payloads = recover_malformed_payloads
        self.send_timeout = send_timeout
        self.open_timeout = open_timeout
        self.log_callback = log_callback
        self._connector = connector

        self.ws: Any = None
        self.state = SessionState.DISCONNECTED
        self.frames_processed = 0
        self.frames_failed = 0
        self._cancel_event = threading.Event()
        self._shutdown_requested = False
        self._task: asyncio.Task | None = None

        # Called after each response frame is written
        # Signature: (request_id: str, succeeded: bool, elapsed_ms: float) -> None
        self.on_frame_complete: Callable[[str, bool, float], None] | None = None

    def _log(self, message: str, level: str = "info"):
        """Log a message through callback or fallback to console."""
        if self.log_callback:
            self.log_callback(message, level)
        else:
            color_map = {
                "info": "cyan",
                "success": "green",
                "error": "red",
                "warn": "yellow",
            }
            color = color_map.get(level, "white")
            console.print(f"[{color}]{message}[/{color}]")

    def _transition(self, state: SessionState):
        logger.debug("Session state %s -> %s", self.state.value, state.value)
        self.state = state

    # =========================================================================
    # Connection lifecycle
    # =========================================================================

    async def connect(self):
        """Open the WebSocket and complete the authenticated handshake.

        Raises:
            ConfigurationError: region unknown or credentials missing
            ConnectivityError: the relay could not be reached or rejected us
        """
        if self.state is not SessionState.DISCONNECTED:
            raise RuntimeError(f"Cannot connect a session in state {self.state.value}")

        self._transition(SessionState.CONNECTING)

        hostname = resolve_region(self.region, self.endpoints)
        if not hostname:
            self._transition(SessionState.FAILED)
            raise ConfigurationError(f"Unknown region: {self.region!r}")
        if not self.access_token or not self.skill_id:
            self._transition(SessionState.FAILED)
            raise ConfigurationError("Access token and skill ID are required")

        url = build_debug_url(hostname, self.skill_id)
        self._log("Starting skill debug connection", "info")
        self._log(f"Connecting to: {url}", "warn")

        try:
            # The relay only accepts the header name in lower case
            self.ws = await self._connector(
                url,
                additional_headers={"authorization": self.access_token},
                compression=None,
                open_timeout=self.open_timeout,
            )
        except websockets.exceptions.InvalidStatus as e:
            status = e.response.status_code
            logger.error("Debug endpoint rejected connection: HTTP %s", status)
            if status in (401, 403):
                raise self._connect_failure(f"HTTP {status}: Invalid or expired access token") from e
            raise self._connect_failure(f"HTTP {status}") from e
        except websockets.exceptions.InvalidURI as e:
            logger.error("Invalid WebSocket URI: %s", e)
            raise self._connect_failure(f"Invalid debug endpoint URL: {e}") from e
        except websockets.exceptions.InvalidHandshake as e:
            logger.error("WebSocket handshake failed: %s", e)
            raise self._connect_failure(f"Handshake failed: {e}") from e
        except asyncio.TimeoutError as e:
            raise self._connect_failure(f"Timed out after {self.open_timeout}s") from e
        except OSError as e:
            logger.error("Network error: %s", e)
            raise self._connect_failure(f"Network error: {e}") from e

        self._transition(SessionState.AUTHENTICATED)
        self._log("Debug session successfully started", "success")
        self._log("This session is authorized for 1 hour", "info")

    def _connect_failure(self, reason: str) -> ConnectivityError:
        self._transition(SessionState.FAILED)
        self._log(f"Failed to connect to debug endpoint: {reason}", "error")
        return ConnectivityError(f"Failed to connect to debug endpoint: {reason}")

    async def run(self):
        """Connect if needed and serve frames until shutdown or failure.

        Returns normally after ``shutdown()``. Raises ConnectivityError or
        DecodeError when the session fails; re-raises CancelledError when the
        task is cancelled from outside. The transport is closed on every path.
        """
        if self.state not in (SessionState.DISCONNECTED, SessionState.AUTHENTICATED):
            raise RuntimeError(f"Cannot run a session in state {self.state.value}")

        self._task = asyncio.current_task()
        try:
            if self.state is SessionState.DISCONNECTED:
                await self.connect()
            self._transition(SessionState.LOOPING)
            while not self._shutdown_requested:
                await self._serve_one()
        except asyncio.CancelledError:
            self._cancel_event.set()
            await self._close(CLOSE_NORMAL, "bye")
            if not self._shutdown_requested:
                raise
        except BaseException as e:
            # Includes SystemExit and KeyboardInterrupt raised by the handler
            self._transition(SessionState.FAILED)
            self._cancel_event.set()
            await self._release(CLOSE_INTERNAL_ERROR, type(e).__name__)
            raise
        else:
            await self._close(CLOSE_NORMAL, "bye")
        finally:
            self._task = None

    def shutdown(self):
        """Request a graceful close of the running session.

        Repeated calls are ignored so a second signal cannot interrupt the
        close handshake.
        """
        if self._shutdown_requested:
            return
        self._shutdown_requested = True
        self._cancel_event.set()
        if self._task and not self._task.done():
            self._task.cancel()

    async def _close(self, code: int, reason: str):
        if self.state not in TERMINAL_STATES:
            self._transition(SessionState.CLOSING)
        await self._release(code, reason)
        if self.state is SessionState.CLOSING:
            self._transition(SessionState.CLOSED)
            self._log("Debug session closed", "warn")

    async def _release(self, code: int, reason: str):
        """Close the transport exactly once."""
        ws, self.ws = self.ws, None
        if ws is None:
            return
        try:
            await ws.close(code=code, reason=reason)
        except Exception as e:
            logger.warning("Error while closing debug connection: %s", e)

    # =========================================================================
    # Frame loop
    # =========================================================================

    async def _serve_one(self):
        raw = await self._read()
        start_time = time.time()

        request = decode_request(raw)
        logger.debug("Received message: %s", request)
        self._log(f"Received request {request.request_id[:8]}... ({request.type})", "info")

        response = await self.process(request)

        logger.debug("Sending response: %s", response)
        await self._write(response)

        elapsed_ms = (time.time() - start_time) * 1000
        self.frames_processed += 1
        if response.succeeded:
            self._log(f"Response sent for {request.request_id[:8]}... ({elapsed_ms:.0f}ms)", "success")
        else:
            self.frames_failed += 1
            self._log(f"Failure sent for {request.request_id[:8]}... ({elapsed_ms:.0f}ms)", "warn")

        if self.on_frame_complete:
            self.on_frame_complete(request.request_id, response.succeeded, elapsed_ms)

    async def process(self, request: SkillRequest) -> SkillResponse:
        """Run one request frame through decode, handler and encode.

        Raises:
            DecodeError: the inner payload is malformed and recovery is off
        """
        try:
            domain_request = decode_inner_request(request.request_payload, self.request_model)
        except DecodeError as e:
            if not self.recover_malformed_payloads:
                self._log(f"Failed to unmarshal request payload: {e}", "error")
                raise
            logger.warning("Malformed payload in %s: %s", request.request_id, e)
            return failure_response(request)

        ctx = HandlerContext(
            request_id=request.request_id,
            skill_id=self.skill_id,
            cancel_event=self._cancel_event,
        )
        try:
            result = await invoke_handler(self.handler, ctx, domain_request)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.exception("Skill handler error")
            self._log(f"Failed to handle skill request: {e}", "error")
            return failure_response(request)

        try:
            payload = encode_inner_response(result)
        except EncodeError as e:
            self._log(f"Failed to marshal skill response: {e}", "error")
            return failure_response(request)

        return success_response(request, payload)

    async def _read(self) -> str | bytes:
        try:
            return await self.ws.recv()
        except websockets.ConnectionClosed as e:
            self._log(f"Connection closed: {e}", "error")
            raise ConnectivityError(f"Failed to read message: {e}") from e
        except (OSError, RuntimeError) as e:
            self._log(f"Read error: {e}", "error")
            raise ConnectivityError(f"Failed to read message: {e}") from e

    async def _write(self, response: SkillResponse):
        try:
            await asyncio.wait_for(self.ws.send(encode_response(response)), timeout=self.send_timeout)
        except asyncio.TimeoutError as e:
            logger.error("WebSocket send timed out after %ss", self.send_timeout)
            raise ConnectivityError(f"Failed to write response: timed out after {self.send_timeout}s") from e
        except (websockets.ConnectionClosed, OSError, RuntimeError) as e:
            self._log(f"Send error: {e}", "error")
            raise ConnectivityError(f"Failed to write response: {e}") from e
