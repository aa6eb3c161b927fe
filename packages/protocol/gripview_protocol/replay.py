"""Replay/analysis utilities for captured GRIP stream transcripts."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from pathlib import Path

from .codec import HANDSHAKE, HEADER_SIZE, decode_handshake, parse_frame_header
from .errors import ProtocolError


_HEX_CLEAN = re.compile(r"[^0-9a-fA-F]")

CLIENT_TO_SERVER = "client_to_server"
SERVER_TO_CLIENT = "server_to_client"


@dataclass(frozen=True)
class ReplayEvent:
    line: int
    direction: str
    payload: bytes


@dataclass
class ReplayReport:
    total_events: int = 0
    client_to_server_events: int = 0
    server_to_client_events: int = 0
    handshake_count: int = 0
    requested_fps: int | None = None
    frame_count: int = 0
    empty_frames: int = 0
    payload_bytes_total: int = 0
    largest_frame: int = 0
    raw_bytes_total: int = 0
    errors: list[str] = field(default_factory=list)


class ReplayRunner:
    @staticmethod
    def _decode_hex(value: str) -> bytes:
        cleaned = _HEX_CLEAN.sub("", value)
        if len(cleaned) % 2 == 1:
            cleaned = cleaned[:-1]
        if not cleaned:
            return b""
        return bytes.fromhex(cleaned)

    def _parse_line(self, line_no: int, line: str) -> ReplayEvent | None:
        stripped = line.strip()
        if not stripped:
            return None
        obj = json.loads(stripped)
        direction = obj.get("dir") or obj.get("direction") or "unknown"
        hex_value = obj.get("payload_hex") or obj.get("hex") or ""
        return ReplayEvent(line=line_no, direction=direction, payload=self._decode_hex(str(hex_value)))

    def parse(self, transcript_path: Path) -> list[ReplayEvent]:
        events: list[ReplayEvent] = []
        for idx, line in enumerate(transcript_path.read_text(encoding="utf-8").splitlines(), start=1):
            event = self._parse_line(idx, line)
            if event is not None:
                events.append(event)
        return events

    def run(self, transcript_path: Path, strict: bool = True) -> ReplayReport:
        return self.analyze(self.parse(transcript_path), strict=strict)

    def analyze(self, events: list[ReplayEvent], strict: bool = True) -> ReplayReport:
        report = ReplayReport(total_events=len(events))
        client = bytearray()
        server = bytearray()

        for event in events:
            report.raw_bytes_total += len(event.payload)
            if event.direction == CLIENT_TO_SERVER:
                report.client_to_server_events += 1
                client += event.payload
            elif event.direction == SERVER_TO_CLIENT:
                report.server_to_client_events += 1
                server += event.payload

        self._check_handshake(bytes(client), report, strict)
        self._walk_frames(bytes(server), report)
        return report

    @staticmethod
    def _check_handshake(client: bytes, report: ReplayReport, strict: bool) -> None:
        if not client:
            if strict:
                report.errors.append("missing_handshake")
            return
        try:
            params = decode_handshake(client[: HANDSHAKE.size])
        except ProtocolError:
            report.errors.append("bad_handshake")
            return
        report.handshake_count = len(client) // HANDSHAKE.size
        report.requested_fps = params.fps
        if len(client) % HANDSHAKE.size:
            report.errors.append("bad_handshake")

    @staticmethod
    def _walk_frames(server: bytes, report: ReplayReport) -> None:
        offset = 0
        while offset < len(server):
            if len(server) - offset < HEADER_SIZE:
                report.errors.append(f"truncated_frame@{offset}")
                return
            try:
                header = parse_frame_header(server[offset : offset + HEADER_SIZE])
            except ProtocolError:
                # The stream is desynchronized; nothing after this is trustworthy.
                report.errors.append(f"invalid_magic@{offset}")
                return
            end = offset + HEADER_SIZE + header.payload_length
            if end > len(server):
                report.errors.append(f"truncated_frame@{offset}")
                return

            report.frame_count += 1
            report.payload_bytes_total += header.payload_length
            report.largest_frame = max(report.largest_frame, header.payload_length)
            if header.payload_length == 0:
                report.empty_frames += 1
            offset = end
