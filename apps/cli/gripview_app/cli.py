"""CLI entrypoints for watching, probing and replaying GRIP image streams."""

from __future__ import annotations

import argparse
import json
import threading
import time
from dataclasses import asdict
from pathlib import Path

from PIL import Image

from gripview_core import (
    CancellationToken,
    ConnectionSupervisor,
    SettingsStore,
    SharedFrameState,
    StreamSession,
    load_config,
)
from gripview_core.frame_state import FrameSnapshot
from gripview_core.logging_setup import configure_logging, get_logger, install_crash_hooks
from gripview_imaging import describe_image
from gripview_protocol import ReplayRunner


def _print_json(data: object) -> None:
    print(json.dumps(data, indent=2, sort_keys=True, default=str))


def _config_from_args(args: argparse.Namespace):
    return load_config(
        host=args.host,
        port=args.port,
        fps=args.fps,
        strict_payload_reads=(False if args.single_read else None),
    )


def _frame_payload(snapshot: FrameSnapshot) -> dict[str, object]:
    if snapshot.image is None:
        return {"image": None, "error": snapshot.display_text, "sequence": snapshot.sequence}
    return {"image": describe_image(snapshot.image), "error": None, "sequence": snapshot.sequence}


def cmd_watch(args: argparse.Namespace) -> int:
    cfg = _config_from_args(args)
    settings = SettingsStore(cfg)
    state = SharedFrameState()
    logger = get_logger("cli")
    snapshot_path = None
    if args.snapshot:
        snapshot_path = Path(args.snapshot).expanduser()
        if snapshot_path.suffix.lower() not in Image.registered_extensions():
            _print_json({"error": f"unsupported snapshot format: {snapshot_path.name}"})
            return 2

    def _on_redraw() -> None:
        if snapshot_path is None:
            return
        snap = state.get()
        if snap.image is None:
            return
        try:
            snap.image.save(snapshot_path)
        except (OSError, ValueError):
            logger.warning("could not write snapshot %s", snapshot_path, exc_info=True, extra={"event": "snapshot_failed"})

    supervisor = ConnectionSupervisor(settings, state, on_redraw=_on_redraw)
    supervisor.start()
    logger.info("watching %s:%d at %d fps", cfg.connection.host, cfg.connection.port, cfg.stream.fps)
    try:
        deadline = time.monotonic() + args.seconds if args.seconds else None
        while deadline is None or time.monotonic() < deadline:
            time.sleep(0.2)
    except KeyboardInterrupt:
        logger.info("interrupted by user", extra={"event": "keyboard_interrupt"})
    finally:
        supervisor.stop()

    _print_json(
        {
            "status": asdict(supervisor.status),
            "frame": _frame_payload(state.get()),
            "events": supervisor.recent_events(limit=20),
        }
    )
    return 0


def cmd_probe(args: argparse.Namespace) -> int:
    cfg = _config_from_args(args)
    settings = SettingsStore(cfg).snapshot()
    state = SharedFrameState()
    token = CancellationToken()

    timer = None
    if args.timeout:
        timer = threading.Timer(args.timeout, token.cancel)
        timer.daemon = True
        timer.start()

    session = StreamSession(settings, state, token=token, on_frame=lambda _size: token.cancel())
    try:
        result = session.run()
    finally:
        if timer is not None:
            timer.cancel()

    snap = state.get()
    if snap.image is not None and args.out:
        snap.image.save(Path(args.out).expanduser())

    payload = _frame_payload(snap)
    payload.update(
        {
            "host": settings.target.host,
            "port": settings.target.port,
            "reason": result.reason.value,
            "bytes_received": result.bytes_received,
        }
    )
    if snap.image is None and result.cancelled:
        payload["error"] = "timed out waiting for a frame"
    _print_json(payload)
    return 0 if snap.image is not None else 2


def cmd_replay(args: argparse.Namespace) -> int:
    runner = ReplayRunner()
    report = runner.run(Path(args.transcript), strict=not args.no_strict)
    payload = asdict(report)
    payload["success"] = len(report.errors) == 0
    _print_json(payload)
    return 0 if not report.errors else 2


def _add_connection_args(cmd: argparse.ArgumentParser) -> None:
    cmd.add_argument("--host", default=None, help="GRIP host (default: $GRIPVIEW_HOST or localhost)")
    cmd.add_argument("--port", type=int, default=None, help="Stream port (default: 1180)")
    cmd.add_argument("--fps", type=int, default=None, help="Requested frame rate (default: 30)")
    cmd.add_argument("--single-read", action="store_true", help="Read each payload with one recv call")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="gripview", description="GRIP output viewer stream client")
    sub = parser.add_subparsers(dest="command", required=True)

    watch_cmd = sub.add_parser("watch", help="Stream continuously, reconnecting on failure")
    _add_connection_args(watch_cmd)
    watch_cmd.add_argument("--seconds", type=float, default=0.0, help="Stop after this many seconds (0 = forever)")
    watch_cmd.add_argument("--snapshot", default=None, help="Write every new frame to this image path")
    watch_cmd.set_defaults(func=cmd_watch)

    probe_cmd = sub.add_parser("probe", help="Connect once and report the first frame")
    _add_connection_args(probe_cmd)
    probe_cmd.add_argument("--timeout", type=float, default=10.0, help="Give up after this many seconds (0 = never)")
    probe_cmd.add_argument("--out", default=None, help="Optional path to save the first frame")
    probe_cmd.set_defaults(func=cmd_probe)

    replay_cmd = sub.add_parser("replay", help="Analyze a captured stream transcript")
    replay_cmd.add_argument("--transcript", required=True, help="Path to JSONL transcript")
    replay_cmd.add_argument("--no-strict", action="store_true", help="Do not require the client handshake")
    replay_cmd.set_defaults(func=cmd_replay)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    cfg = load_config()
    directory = Path(cfg.logging.directory).expanduser() if cfg.logging.directory else None
    configure_logging(keep_files=cfg.logging.keep_files, console=cfg.logging.console, directory=directory)
    install_crash_hooks(directory)
    return int(args.func(args))


if __name__ == "__main__":
    raise SystemExit(main())
