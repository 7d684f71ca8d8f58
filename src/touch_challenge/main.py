"""
Touch Challenge - don't touch your face for as long as you can
"""

import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from . import __version__
from .body_parts import MockSegmenter
from .camera import CameraFrameSource, find_available_cameras
from .config import AppConfig, get_config
from .controller import ChallengeController, ChallengeState, LoggingListener
from .notifier import NotificationListener, NotificationManager
from .progress import ProgressStore
from .sensors import ForegroundSignal, RemoteMotionSensor
from .server import ChallengeWebSocketServer
from .tiers import format_duration

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="touch-challenge", description="Touch Challenge - don't touch your face")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--verbose", action="store_true", help="Enable verbose logging")
    subparsers = parser.add_subparsers(dest="command")

    def add_camera_options(subparser):
        subparser.add_argument("--camera", type=int, help="Camera index to use")
        subparser.add_argument("--mock-camera", action="store_true", help="Use a synthetic camera and a still face for CI/testing (no model is loaded)")
        subparser.add_argument("--no-notify", action="store_true", help="Disable desktop notifications")

    play = subparsers.add_parser("play", help="Run one challenge attempt with the local camera")
    add_camera_options(play)

    serve = subparsers.add_parser("serve", help="Run the challenge behind a WebSocket front-end")
    add_camera_options(serve)
    serve.add_argument("--host", help="Host to bind")
    serve.add_argument("--port", type=int, help="Port to bind")
    serve.add_argument("--remote-motion", action="store_true", help="Accept gyroscope readings from the front-end")

    subparsers.add_parser("status", help="Show current level and challenge time")
    subparsers.add_parser("tiers", help="List reward tiers")
    subparsers.add_parser("cameras", help="List available cameras")

    reset = subparsers.add_parser("reset", help="Reset level and preferences")
    reset.add_argument("--yes", action="store_true", help="Do not ask for confirmation")

    sound = subparsers.add_parser("sound", help="Turn notification sounds on or off")
    sound.add_argument("setting", choices=["on", "off"])

    set_camera = subparsers.add_parser("set-camera", help="Remember the camera to use (see 'cameras')")
    set_camera.add_argument("label", help="Camera label, e.g. 'Camera 1'")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    log_level = logging.DEBUG if args.verbose else logging.INFO
    logging.basicConfig(level=log_level, format="%(asctime)s - %(levelname)s - %(message)s")

    if not args.command:
        parser.print_help()
        return 0

    config = get_config()
    store = ProgressStore()

    if args.command == "status":
        return show_status(config, store)
    elif args.command == "tiers":
        return show_tiers(config, store)
    elif args.command == "cameras":
        return show_cameras(store)
    elif args.command == "reset":
        return reset_progress(store, args.yes)
    elif args.command == "sound":
        store.set_sound_enabled(args.setting == "on")
        print(f"Sound {args.setting}")
        return 0
    elif args.command == "set-camera":
        store.set_preferred_camera_label(args.label)
        print(f"Preferred camera: {args.label}")
        return 0

    try:
        if args.command == "play":
            return asyncio.run(run_play(args, config, store))
        return asyncio.run(run_serve(args, config, store))
    except KeyboardInterrupt:
        print("\nShutting down...")
        return 130


def show_status(config: AppConfig, store: ProgressStore) -> int:
    tiers = config.challenge.tier_table()
    level = store.get_level()
    print(f"Level: {level}")
    print(f"Challenge time: {format_duration(tiers.threshold_for(level))}")
    if tiers.is_all_cleared(level):
        print("All tiers cleared!")
    print(f"Sound: {'on' if store.get_sound_enabled() else 'off'}")
    print(f"Camera: {store.get_preferred_camera_label() or 'default'}")
    return 0


def show_tiers(config: AppConfig, store: ProgressStore) -> int:
    level = store.get_level()
    for i, tier in enumerate(config.challenge.tier_table(), start=1):
        mark = "✓" if i <= level else "?"
        print(f"{mark} Lv.{i} ({format_duration(tier.time_limit_seconds, shorten=True)}) {tier.reward_asset if i <= level else ''}".rstrip())
    return 0


def show_cameras(store: ProgressStore) -> int:
    cameras = find_available_cameras()
    if not cameras:
        print("No cameras found!")
        return 1
    preferred = store.get_preferred_camera_label()
    for camera in cameras:
        selected = "*" if camera["label"] == preferred else " "
        print(f"{selected} {camera['label']}: {camera['width']}x{camera['height']} @ {camera['fps']}fps")
    return 0


def reset_progress(store: ProgressStore, assume_yes: bool) -> int:
    if not assume_yes:
        answer = input("Are you sure? Your level is reset to Zero. [y/N] ")
        if answer.strip().lower() not in ("y", "yes"):
            print("Cancelled")
            return 1
    store.reset_all()
    print("Progress reset")
    return 0


def build_controller(args, config: AppConfig, store: ProgressStore, **kwargs) -> ChallengeController:
    if args.mock_camera:
        segmenter = MockSegmenter()
    else:
        # MediaPipe is only loaded for commands that analyse real video.
        from .segmentation import LandmarkSegmenter

        segmenter = LandmarkSegmenter(config.segmentation)

    frame_source = CameraFrameSource(config.camera, store.get_preferred_camera_label(), args.camera, args.mock_camera)
    listeners = [LoggingListener()]
    if not args.no_notify:
        listeners.append(NotificationListener(NotificationManager(config.notifications, store.get_sound_enabled)))

    return ChallengeController(
        frame_source,
        segmenter,
        store,
        config.challenge,
        segmentation_options=config.segmentation.options(),
        listeners=listeners,
        **kwargs,
    )


async def drain_notifications(controller: ChallengeController) -> None:
    for listener in controller.listeners:
        if isinstance(listener, NotificationListener):
            await listener.drain()


async def run_play(args, config: AppConfig, store: ProgressStore) -> int:
    controller = build_controller(args, config, store)
    level = store.get_level()
    print(f"Level {level}: don't touch your face for {format_duration(controller.current_threshold_seconds(level))}")

    try:
        await controller.start()
        state = await controller.wait_finished()
    except asyncio.CancelledError:
        controller.stop()
        raise
    finally:
        controller.segmenter.close()
        await drain_notifications(controller)

    if state is ChallengeState.SUCCEEDED:
        new_level = store.get_level()
        print("All Cleared!" if controller.tiers.is_all_cleared(new_level) else "Cleared!")
        print(f"Reward: {controller.reward_asset_for(new_level - 1)}")
        print(f"Next challenge: {format_duration(controller.current_threshold_seconds(new_level))}")
        return 0
    elif state is ChallengeState.FAILED:
        print("Failed!")
        return 1

    if controller.last_error:
        print(f"Stopped: {controller.last_error}")
    return 2


async def run_serve(args, config: AppConfig, store: ProgressStore) -> int:
    foreground = ForegroundSignal()
    motion_sensor = RemoteMotionSensor() if args.remote_motion else None
    controller = build_controller(args, config, store, motion_sensor=motion_sensor, is_foreground=foreground)

    server = ChallengeWebSocketServer(
        controller,
        host=args.host or config.server.host,
        port=args.port if args.port is not None else config.server.port,
        foreground=foreground,
        motion_sensor=motion_sensor,
    )
    if not await server.start_server():
        return 1

    print(f"Touch Challenge listening on ws://{server.host}:{server.port}")
    try:
        await asyncio.Future()
    except asyncio.CancelledError:
        logger.info("Shutting down")
        controller.stop()
        raise
    finally:
        await server.stop_server()
        controller.segmenter.close()
        await drain_notifications(controller)
    return 0


if __name__ == "__main__":
    sys.exit(main())
