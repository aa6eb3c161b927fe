"""One connection's worth of streaming: connect, handshake, read frames."""

from __future__ import annotations

import threading
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from PIL import Image

from gripview_imaging import decode_image
from gripview_protocol import FrameBuffer, SocketTransport, decode_frame_header, encode_handshake, read_payload
from gripview_protocol.errors import StreamConnectionError
from gripview_protocol.models import CloseReason, SessionState

from .config import SessionSettings
from .frame_state import SharedFrameState
from .logging_setup import get_logger


class CancelReason(str, Enum):
    RESTART = "restart"
    SHUTDOWN = "shutdown"


class CancellationToken:
    """Cooperative cancellation with a restart/shutdown flavor.

    Interrupt callbacks unblock whatever the owner is waiting on (normally a
    socket shutdown).  They run outside the token lock, once per cancel.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._event = threading.Event()
        self._reason: CancelReason | None = None
        self._interrupts: list[Callable[[], None]] = []

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> CancelReason | None:
        with self._lock:
            return self._reason

    def cancel(self, reason: CancelReason = CancelReason.RESTART) -> None:
        with self._lock:
            if self._reason is None or reason is CancelReason.SHUTDOWN:
                self._reason = reason
            self._event.set()
            interrupts = list(self._interrupts)
        for interrupt in interrupts:
            interrupt()

    def wait(self, timeout: float | None = None) -> bool:
        """Block until cancelled or ``timeout`` elapses; True if cancelled."""
        return self._event.wait(timeout)

    def add_interrupt(self, callback: Callable[[], None]) -> None:
        with self._lock:
            self._interrupts.append(callback)
            already = self._event.is_set()
        if already:
            callback()

    def remove_interrupt(self, callback: Callable[[], None]) -> None:
        with self._lock:
            if callback in self._interrupts:
                self._interrupts.remove(callback)


@dataclass(frozen=True)
class SessionResult:
    reason: CloseReason
    error: Exception | None = None
    frames: int = 0
    bytes_received: int = 0

    @property
    def cancelled(self) -> bool:
        return self.reason is CloseReason.CANCELLED


Decoder = Callable[[bytes], Image.Image]


class StreamSession:
    """Runs a single connection until it fails, is cancelled or disconnected.

    Frames are only ever abandoned by I/O failure; the token is consulted
    between frames, and an interrupted read is reported as a cancellation
    rather than as an error.
    """

    def __init__(
        self,
        settings: SessionSettings,
        frame_state: SharedFrameState,
        token: CancellationToken | None = None,
        buffer: FrameBuffer | None = None,
        decoder: Decoder = decode_image,
        on_redraw: Callable[[], None] | None = None,
        on_frame: Callable[[int], None] | None = None,
        transport: SocketTransport | None = None,
    ) -> None:
        self.settings = settings
        self.frame_state = frame_state
        self.token = token or CancellationToken()
        self.buffer = buffer or FrameBuffer()
        self._decoder = decoder
        self._on_redraw = on_redraw
        self._on_frame = on_frame
        self._transport = transport or SocketTransport()
        self._state = SessionState.IDLE
        self._disconnect = threading.Event()
        self._frames = 0
        self._bytes = 0
        self._logger = get_logger("session")

    @property
    def state(self) -> SessionState:
        return self._state

    def disconnect(self) -> None:
        """Stop streaming on purpose; the session closes with ``ok``."""
        self._disconnect.set()
        self._transport.interrupt()

    def run(self) -> SessionResult:
        interrupt = self._transport.interrupt
        self.token.add_interrupt(interrupt)
        try:
            return self._run()
        finally:
            self.token.remove_interrupt(interrupt)
            self._transport.close()
            self._state = SessionState.CLOSED

    def _stopping(self) -> bool:
        return self.token.cancelled or self._disconnect.is_set()

    def _run(self) -> SessionResult:
        target = self.settings.target
        try:
            self._state = SessionState.CONNECTING
            self._transport.open(target.host, target.port)
            if self._stopping():
                return self._closed()
            self._logger.info(
                "established connection to %s",
                self._transport.peer or f"{target.host}:{target.port}",
                extra={"event": "connect_ok", "host": target.host, "port": target.port},
            )

            self._state = SessionState.HANDSHAKING
            params = self.settings.params
            self._transport.write(encode_handshake(params.fps, params.compression, params.size_mode))

            self._state = SessionState.STREAMING
            while not self._stopping():
                self._read_frame()
            return self._closed()
        except Exception as exc:
            if self._stopping():
                return self._closed()
            self._logger.warning(
                "error in capture session: %s",
                exc,
                exc_info=True,
                extra={"event": "session_error", "host": target.host, "port": target.port},
            )
            self.frame_state.publish_error(str(exc))
            self._notify_redraw()
            return SessionResult(CloseReason.ERROR, error=exc, frames=self._frames, bytes_received=self._bytes)

    def _closed(self) -> SessionResult:
        reason = CloseReason.CANCELLED if self.token.cancelled else CloseReason.OK
        self._logger.info(
            "capture session closed (%s)", reason.value, extra={"event": "session_closed", "reason": reason.value}
        )
        return SessionResult(reason, frames=self._frames, bytes_received=self._bytes)

    def _read_frame(self) -> None:
        length = decode_frame_header(self._transport, max_length=self.settings.max_frame_bytes)
        data = self.buffer.ensure(length)
        received = read_payload(self._transport, data, length, exact=self.settings.strict_payload_reads)
        if length > 0 and received == 0:
            raise StreamConnectionError("connection closed by peer")
        self._bytes += received

        image = self._decoder(bytes(self.buffer.view(received)))
        self.frame_state.publish_image(image)
        self._frames += 1
        self._call_hook("on_frame", self._on_frame, received)
        self._notify_redraw()

    def _notify_redraw(self) -> None:
        self._call_hook("on_redraw", self._on_redraw)

    def _call_hook(self, name: str, hook: Callable[..., None] | None, *args: object) -> None:
        # Consumer callbacks never decide the fate of the stream.
        if hook is None:
            return
        try:
            hook(*args)
        except Exception:
            self._logger.warning("%s callback failed", name, exc_info=True, extra={"event": "callback_error"})
