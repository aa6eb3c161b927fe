"""Viewer settings schema, environment loading and the live settings store."""

from __future__ import annotations

import os
import threading
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field, replace
from typing import Any

from gripview_protocol.models import DEFAULT_PORT, ConnectionTarget, StreamParameters


ENV_PREFIX = "GRIPVIEW_"


@dataclass
class ConnectionConfig:
    host: str = "localhost"
    port: int = DEFAULT_PORT


@dataclass
class StreamConfig:
    fps: int = 30
    strict_payload_reads: bool = True
    backoff_seconds: float = 1.0
    initial_buffer_bytes: int = 64 * 1024
    max_frame_bytes: int = 16 * 1024 * 1024


@dataclass
class LoggingConfig:
    keep_files: int = 7
    console: bool = True
    directory: str | None = None


@dataclass
class ViewerConfig:
    connection: ConnectionConfig = field(default_factory=ConnectionConfig)
    stream: StreamConfig = field(default_factory=StreamConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


DEFAULT_CONFIG = ViewerConfig()

# Only read when the capture thread is built; changing them live has no effect.
STARTUP_ONLY_SETTINGS = ("initial_buffer_bytes",)


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("1", "true", "yes", "on")


def _merge(dataclass_type, raw: Mapping[str, Any]):
    defaults = dataclass_type()  # type: ignore[misc]
    for k, v in raw.items():
        if hasattr(defaults, k):
            setattr(defaults, k, v)
    return defaults


def _normalize_connection(cfg: ViewerConfig) -> None:
    cfg.connection.host = str(cfg.connection.host).strip() or "localhost"
    cfg.connection.port = int(cfg.connection.port)
    if not 1 <= cfg.connection.port <= 65535:
        raise ValueError(f"port must be in 1..65535, got {cfg.connection.port}")


def _normalize_stream(cfg: ViewerConfig) -> None:
    cfg.stream.fps = int(cfg.stream.fps)
    if cfg.stream.fps < 1:
        raise ValueError(f"fps must be at least 1, got {cfg.stream.fps}")
    cfg.stream.strict_payload_reads = _as_bool(cfg.stream.strict_payload_reads)
    cfg.stream.backoff_seconds = float(max(0.0, float(cfg.stream.backoff_seconds)))
    cfg.stream.initial_buffer_bytes = max(2, int(cfg.stream.initial_buffer_bytes))
    cfg.stream.max_frame_bytes = int(cfg.stream.max_frame_bytes)
    if cfg.stream.max_frame_bytes < 1:
        raise ValueError(f"max_frame_bytes must be positive, got {cfg.stream.max_frame_bytes}")


def _normalize_logging(cfg: ViewerConfig) -> None:
    cfg.logging.keep_files = max(2, int(cfg.logging.keep_files))
    cfg.logging.console = _as_bool(cfg.logging.console)
    if cfg.logging.directory is not None:
        cfg.logging.directory = str(cfg.logging.directory).strip() or None


def _from_env(environ: Mapping[str, str]) -> dict[str, dict[str, Any]]:
    sections: dict[str, dict[str, Any]] = {"connection": {}, "stream": {}, "logging": {}}
    mapping = {
        "HOST": ("connection", "host"),
        "PORT": ("connection", "port"),
        "FPS": ("stream", "fps"),
        "STRICT_READS": ("stream", "strict_payload_reads"),
        "BACKOFF_SECONDS": ("stream", "backoff_seconds"),
        "MAX_FRAME_BYTES": ("stream", "max_frame_bytes"),
        "LOG_KEEP_FILES": ("logging", "keep_files"),
        "LOG_CONSOLE": ("logging", "console"),
        "LOG_DIR": ("logging", "directory"),
    }
    for suffix, (section, key) in mapping.items():
        value = environ.get(ENV_PREFIX + suffix)
        if value is not None and value != "":
            sections[section][key] = value
    return sections


def load_config(environ: Mapping[str, str] | None = None, **overrides: Any) -> ViewerConfig:
    """Build a config from defaults, ``GRIPVIEW_*`` variables and overrides.

    Overrides use the flat names ``host``, ``port``, ``fps`` and
    ``strict_payload_reads``; ``None`` values are ignored so argparse
    defaults can be passed straight through.
    """
    data = _from_env(os.environ if environ is None else environ)
    for key, value in overrides.items():
        if value is None:
            continue
        section = "connection" if key in ("host", "port") else "stream"
        data[section][key] = value

    cfg = ViewerConfig(
        connection=_merge(ConnectionConfig, data["connection"]),
        stream=_merge(StreamConfig, data["stream"]),
        logging=_merge(LoggingConfig, data["logging"]),
    )
    try:
        _normalize_connection(cfg)
        _normalize_stream(cfg)
        _normalize_logging(cfg)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"invalid viewer configuration: {exc}") from exc
    return cfg


@dataclass(frozen=True)
class SessionSettings:
    target: ConnectionTarget
    params: StreamParameters
    strict_payload_reads: bool = True
    max_frame_bytes: int | None = None


SettingsListener = Callable[[SessionSettings], None]


class SettingsStore:
    """Thread-safe live settings with change notification.

    The capture thread calls ``snapshot()`` once per connection attempt;
    editors call ``update()`` which notifies every subscriber after the
    change is visible. ``initial_buffer_bytes`` is fixed once the capture
    thread has been built and cannot be updated.
    """

    def __init__(self, config: ViewerConfig | None = None) -> None:
        cfg = config or load_config(environ={})
        self._lock = threading.Lock()
        self._connection = replace(cfg.connection)
        self._stream = replace(cfg.stream)
        self._listeners: list[SettingsListener] = []

    @property
    def backoff_seconds(self) -> float:
        with self._lock:
            return self._stream.backoff_seconds

    @property
    def initial_buffer_bytes(self) -> int:
        with self._lock:
            return self._stream.initial_buffer_bytes

    def snapshot(self) -> SessionSettings:
        with self._lock:
            return SessionSettings(
                target=ConnectionTarget(host=self._connection.host, port=self._connection.port),
                params=StreamParameters(fps=self._stream.fps),
                strict_payload_reads=self._stream.strict_payload_reads,
                max_frame_bytes=self._stream.max_frame_bytes,
            )

    def update(self, **changes: Any) -> SessionSettings:
        with self._lock:
            cfg = ViewerConfig(connection=replace(self._connection), stream=replace(self._stream))
            for key, value in changes.items():
                if key in STARTUP_ONLY_SETTINGS:
                    raise KeyError(f"{key} cannot be changed while running")
                if hasattr(cfg.connection, key):
                    setattr(cfg.connection, key, value)
                elif hasattr(cfg.stream, key):
                    setattr(cfg.stream, key, value)
                else:
                    raise KeyError(f"unknown setting: {key}")
            _normalize_connection(cfg)
            _normalize_stream(cfg)
            self._connection = cfg.connection
            self._stream = cfg.stream
            listeners = list(self._listeners)

        current = self.snapshot()
        for listener in listeners:
            listener(current)
        return current

    def subscribe(self, listener: SettingsListener) -> None:
        with self._lock:
            self._listeners.append(listener)

    def unsubscribe(self, listener: SettingsListener) -> None:
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)
