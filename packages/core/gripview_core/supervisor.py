"""Capture thread that keeps a stream session alive until shutdown."""

from __future__ import annotations

import threading
import time
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Any

from gripview_imaging import decode_image
from gripview_protocol import FrameBuffer, SocketTransport
from gripview_protocol.models import CloseReason, SessionState

from .config import SessionSettings, SettingsStore
from .frame_state import SharedFrameState
from .logging_setup import get_logger
from .session import CancellationToken, CancelReason, Decoder, SessionResult, StreamSession


@dataclass
class SupervisorStatus:
    state: SessionState = SessionState.IDLE
    connected: bool = False
    host: str | None = None
    port: int | None = None
    fps: float = 0.0
    throughput_bps: float = 0.0
    frames_received: int = 0
    sessions_started: int = 0
    last_error: str | None = None
    backoff_seconds: float = 0.0
    reconnect_attempts: int = 0


class ConnectionSupervisor:
    """Owns the capture thread.

    Each attempt snapshots the current settings and runs one
    :class:`StreamSession`.  A failed attempt is followed by a fixed backoff
    delay; an attempt cancelled by :meth:`request_restart` is retried at once.
    Both the session and the delay are interrupted by either request.
    """

    def __init__(
        self,
        settings: SettingsStore | None = None,
        frame_state: SharedFrameState | None = None,
        decoder: Decoder = decode_image,
        on_redraw: Callable[[], None] | None = None,
        transport_factory: Callable[[], SocketTransport] = SocketTransport,
        backoff_seconds: float | None = None,
    ) -> None:
        self.settings = settings or SettingsStore()
        self.frame_state = frame_state or SharedFrameState()
        self._backoff_override = backoff_seconds
        self._decoder = decoder
        self._on_redraw = on_redraw
        self._transport_factory = transport_factory
        self._buffer = FrameBuffer(self.settings.initial_buffer_bytes)

        # One Event per start(); a thread that outlives stop() keeps its own.
        self._shutdown = threading.Event()
        self._token_lock = threading.Lock()
        self._token = CancellationToken()
        self._thread: threading.Thread | None = None
        self._session: StreamSession | None = None

        self._lock = threading.RLock()
        self._status = SupervisorStatus()
        self._events: deque[dict[str, Any]] = deque(maxlen=1000)
        self._last_frame_at: float | None = None
        self._ewma_bps = 0.0
        self._logger = get_logger("supervisor")

    @property
    def backoff_seconds(self) -> float:
        if self._backoff_override is not None:
            return self._backoff_override
        return self.settings.backoff_seconds

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    @property
    def status(self) -> SupervisorStatus:
        with self._lock:
            snapshot = replace(self._status)
        session = self._session
        if session is not None and snapshot.state is not SessionState.BACKOFF_WAIT:
            snapshot.state = session.state
        return snapshot

    @property
    def buffer_capacity(self) -> int:
        return self._buffer.capacity

    def recent_events(self, limit: int = 200) -> list[dict[str, Any]]:
        with self._lock:
            return list(self._events)[-limit:]

    def _log_event(self, event: str, **fields: Any) -> None:
        with self._lock:
            row = {
                "ts_utc": datetime.now(timezone.utc).isoformat(),
                "event": event,
                "state": self._status.state.value,
            }
            row.update(fields)
            self._events.append(row)

    def start(self) -> None:
        if self.running and not self._shutdown.is_set():
            return
        shutdown = threading.Event()
        with self._token_lock:
            self._shutdown = shutdown
            self._token = CancellationToken()
        self.settings.subscribe(self._on_settings_changed)
        self._thread = threading.Thread(target=self.run_forever, args=(shutdown,), name="Capture", daemon=True)
        self._thread.start()
        self._log_event("start")

    def stop(self, timeout: float | None = 5.0) -> None:
        self.request_shutdown()
        self.settings.unsubscribe(self._on_settings_changed)
        thread = self._thread
        if thread is None or thread is threading.current_thread():
            return
        thread.join(timeout)
        if thread.is_alive():
            self._logger.warning(
                "capture thread still blocked after %.1fs; it will exit when the call returns",
                timeout or 0.0,
                extra={"event": "stop_timeout"},
            )
            return
        self._thread = None

    def request_restart(self) -> None:
        with self._token_lock:
            token = self._token
        self._logger.info("restart requested", extra={"event": "restart_requested"})
        self._log_event("restart_requested")
        token.cancel(CancelReason.RESTART)

    def request_shutdown(self) -> None:
        with self._token_lock:
            self._shutdown.set()
            token = self._token
        self._log_event("shutdown_requested")
        token.cancel(CancelReason.SHUTDOWN)

    def _on_settings_changed(self, _settings: SessionSettings) -> None:
        self.request_restart()

    def run_forever(self, shutdown: threading.Event | None = None) -> None:
        """Attempt to stream until shutdown; blocks the calling thread."""
        if shutdown is None:
            shutdown = self._shutdown
        self._logger.info("capture loop started", extra={"event": "capture_start"})
        while not shutdown.is_set():
            with self._token_lock:
                if shutdown.is_set():
                    break
                token = CancellationToken()
                self._token = token

            result = self._run_session(token, shutdown)
            if shutdown.is_set():
                break
            if result.cancelled:
                self._logger.info("capture session interrupted, reconnecting", extra={"event": "reconnect_now"})
                continue
            self._wait_backoff(token)

        # A newer start() may own the shared status by now.
        if shutdown is self._shutdown:
            with self._lock:
                self._status.state = SessionState.CLOSED
                self._status.connected = False
            self._log_event("capture_stop")
        self._logger.info("capture loop stopped", extra={"event": "capture_stop"})

    def _run_session(self, token: CancellationToken, shutdown: threading.Event) -> SessionResult:
        settings = self.settings.snapshot()
        with self._lock:
            self._status.host = settings.target.host
            self._status.port = settings.target.port
            self._status.backoff_seconds = 0.0
            self._status.sessions_started += 1
            self._status.state = SessionState.CONNECTING
            self._last_frame_at = None
        self._log_event("connect_start", host=settings.target.host, port=settings.target.port, fps=settings.params.fps)

        session = StreamSession(
            settings,
            self.frame_state,
            token=token,
            buffer=self._buffer,
            decoder=self._decoder,
            on_redraw=self._on_redraw,
            on_frame=self._record_frame,
            transport=self._transport_factory(),
        )
        self._session = session
        try:
            result = session.run()
        finally:
            if self._session is session:
                self._session = None

        if shutdown is not self._shutdown:
            return result
        with self._lock:
            self._status.connected = False
            self._status.state = SessionState.CLOSED
            if result.reason is CloseReason.ERROR:
                self._status.last_error = str(result.error)
        self._log_event(
            "session_closed",
            reason=result.reason.value,
            frames=result.frames,
            bytes_received=result.bytes_received,
            error=None if result.error is None else str(result.error),
        )
        return result

    def _wait_backoff(self, token: CancellationToken) -> None:
        delay = self.backoff_seconds
        with self._lock:
            self._status.state = SessionState.BACKOFF_WAIT
            self._status.backoff_seconds = delay
            self._status.reconnect_attempts += 1
            attempt = self._status.reconnect_attempts
        self._log_event("recover_wait", attempt=attempt, wait_s=delay)
        self._logger.info(
            "waiting %.1fs before reconnecting",
            delay,
            extra={"event": "recover_wait", "attempt": attempt, "wait_s": delay},
        )
        if token.wait(delay):
            self._logger.info("backoff interrupted", extra={"event": "backoff_interrupted"})

    def _record_frame(self, size: int) -> None:
        now = time.perf_counter()
        with self._lock:
            if self._last_frame_at is not None:
                elapsed = max(now - self._last_frame_at, 1e-9)
                bps = size / elapsed
                self._status.fps = 1.0 / elapsed
                self._ewma_bps = bps if self._ewma_bps == 0 else (0.75 * self._ewma_bps + 0.25 * bps)
                self._status.throughput_bps = self._ewma_bps
            self._last_frame_at = now
            self._status.connected = True
            self._status.frames_received += 1
            self._status.reconnect_attempts = 0
            self._status.last_error = None
