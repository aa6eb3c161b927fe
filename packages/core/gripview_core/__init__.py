"""Core runtime: settings, logging, the shared frame cell, sessions and the supervisor."""

from .config import SessionSettings, SettingsStore, ViewerConfig, load_config
from .frame_state import FrameSnapshot, SharedFrameState
from .session import CancellationToken, CancelReason, SessionResult, StreamSession
from .supervisor import ConnectionSupervisor, SupervisorStatus

__all__ = [
    "CancelReason",
    "CancellationToken",
    "ConnectionSupervisor",
    "FrameSnapshot",
    "SessionResult",
    "SessionSettings",
    "SettingsStore",
    "SharedFrameState",
    "StreamSession",
    "SupervisorStatus",
    "ViewerConfig",
    "load_config",
]
