"""TCP transport abstraction for the GRIP dashboard stream."""

from __future__ import annotations

import socket
import threading
from dataclasses import dataclass

from .errors import StreamConnectionError
from .models import DEFAULT_PORT


@dataclass
class SocketConfig:
    host: str
    port: int = DEFAULT_PORT
    timeout_s: float | None = None


class SocketTransport:
    """Thin wrapper over a blocking TCP socket.

    ``interrupt`` may be called from any thread; it shuts the socket down so
    that a blocked ``recv``/``sendall`` returns promptly.
    """

    def __init__(self) -> None:
        self._sock: socket.socket | None = None
        self._lock = threading.Lock()
        self.config: SocketConfig | None = None

    @property
    def is_open(self) -> bool:
        return self._sock is not None

    @property
    def peer(self) -> str | None:
        if self._sock is None:
            return None
        try:
            host, port = self._sock.getpeername()[:2]
        except OSError:
            return None
        return f"{host}:{port}"

    def open(self, host: str, port: int = DEFAULT_PORT, timeout_s: float | None = None) -> None:
        if self.is_open:
            return
        self.config = SocketConfig(host=host, port=port, timeout_s=timeout_s)
        try:
            sock = socket.create_connection((host, port), timeout=timeout_s)
        except OSError as exc:
            raise StreamConnectionError(f"cannot connect to {host}:{port}: {exc}") from exc
        sock.settimeout(timeout_s)
        with self._lock:
            self._sock = sock

    def close(self) -> None:
        with self._lock:
            sock, self._sock = self._sock, None
        if sock is not None:
            sock.close()

    def interrupt(self) -> None:
        with self._lock:
            sock = self._sock
        if sock is None:
            return
        try:
            sock.shutdown(socket.SHUT_RDWR)
        except OSError:
            # Already disconnected; the blocked call fails on its own.
            return

    def write(self, payload: bytes) -> int:
        sock = self._require_open()
        try:
            sock.sendall(payload)
        except OSError as exc:
            raise StreamConnectionError(f"write failed: {exc}") from exc
        return len(payload)

    def read_exact(self, size: int) -> bytes:
        sock = self._require_open()
        chunks = bytearray()
        while len(chunks) < size:
            try:
                chunk = sock.recv(size - len(chunks))
            except OSError as exc:
                raise StreamConnectionError(f"read failed: {exc}") from exc
            if not chunk:
                raise StreamConnectionError("connection closed by peer")
            chunks += chunk
        return bytes(chunks)

    def read_into(self, view: memoryview) -> int:
        sock = self._require_open()
        try:
            return sock.recv_into(view, len(view))
        except OSError as exc:
            raise StreamConnectionError(f"read failed: {exc}") from exc

    def _require_open(self) -> socket.socket:
        sock = self._sock
        if sock is None:
            raise StreamConnectionError("socket is not open")
        return sock
