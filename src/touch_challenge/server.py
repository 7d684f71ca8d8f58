"""
WebSocket server connecting the challenge controller to a front-end
"""

import asyncio
import json
import logging
from typing import Any, Dict, Optional, Set

import websockets

from .controller import ChallengeController, ChallengeListener
from .errors import ChallengeError
from .sensors import ForegroundSignal, RemoteMotionSensor
from .tiers import format_duration

logger = logging.getLogger(__name__)


class ChallengeWebSocketServer(ChallengeListener):
    """Broadcasts challenge events and relays front-end commands to the controller.

    Runs on the controller's event loop, so commands and events never race with
    the analysis and countdown cycles.
    """

    def __init__(
        self,
        controller: ChallengeController,
        host: str = "localhost",
        port: int = 8765,
        foreground: Optional[ForegroundSignal] = None,
        motion_sensor: Optional[RemoteMotionSensor] = None,
    ):
        self.controller = controller
        self.host = host
        self.port = port
        self.foreground = foreground
        self.motion_sensor = motion_sensor
        self.clients: Set[Any] = set()
        self.server = None
        self.running = False
        self._pending: Set[asyncio.Task] = set()

        controller.add_listener(self)

    # Client bookkeeping

    async def register_client(self, websocket):
        """Register a new WebSocket client and send it the current status"""
        self.clients.add(websocket)
        logger.info(f"Client {id(websocket)} connected. Total clients: {len(self.clients)}")
        await self.send_to_client(websocket, self.status_message())

    async def unregister_client(self, websocket):
        was_registered = websocket in self.clients
        self.clients.discard(websocket)
        if was_registered:
            logger.info(f"Client {id(websocket)} disconnected. Total clients: {len(self.clients)}")

    async def send_to_client(self, websocket, message: Dict[str, Any]) -> bool:
        """Send message to a specific client"""
        client_id = id(websocket)
        try:
            await websocket.send(json.dumps(message))
            return True
        except websockets.exceptions.ConnectionClosed as e:
            logger.info(f"Connection closed when sending to client {client_id}: {e}")
            await self.unregister_client(websocket)
            return False
        except Exception as e:
            logger.error(f"Error sending message to client {client_id}: {e}")
            return False

    async def broadcast_to_all(self, message: Dict[str, Any]):
        """Broadcast message to all connected clients"""
        if not self.clients:
            logger.debug("No clients connected, skipping broadcast")
            return

        clients_copy = self.clients.copy()
        results = await asyncio.gather(*[self.send_to_client(client, message) for client in clients_copy], return_exceptions=True)

        successful = sum(1 for r in results if r is True)
        if successful < len(clients_copy):
            logger.debug(f"Broadcast completed: {successful}/{len(clients_copy)} clients received message")

    def _schedule_broadcast(self, message: Dict[str, Any]) -> None:
        if not (self.clients and self.running):
            return
        task = asyncio.get_running_loop().create_task(self.broadcast_to_all(message))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    # Status

    def status_message(self) -> Dict[str, Any]:
        controller = self.controller
        store = controller.store
        level = store.get_level()
        threshold = controller.current_threshold_seconds(level)
        return {
            "type": "status",
            "state": controller.state.value,
            "level": level,
            "threshold_seconds": threshold,
            "challenge_time": format_duration(threshold),
            "remaining_seconds": controller.remaining_seconds,
            "face_visible": controller.face_visible,
            "shaking": controller.is_shaking,
            "sound_enabled": store.get_sound_enabled(),
            "camera_label": store.get_preferred_camera_label(),
            "motion_sensor": self.motion_sensor is not None,
            "tiers": [
                {"level": i + 1, "seconds": tier.time_limit_seconds, "reward": tier.reward_asset, "unlocked": i + 1 <= level}
                for i, tier in enumerate(controller.tiers)
            ],
        }

    # Commands

    async def handle_client_message(self, websocket, message_str: str):
        """Handle incoming messages from clients"""
        try:
            message = json.loads(message_str)
            message_type = message.get("type")

            if message_type == "ping":
                await self.send_to_client(websocket, {"type": "pong"})

            elif message_type == "status":
                await self.send_to_client(websocket, self.status_message())

            elif message_type == "visibility":
                if self.foreground is not None:
                    self.foreground.set_visible(bool(message.get("visible", True)))

            elif message_type == "motion":
                if self.motion_sensor is not None:
                    self.motion_sensor.push(message.get("x", 0.0), message.get("y", 0.0), message.get("z", 0.0))

            elif message_type in ("start", "stop", "acknowledge", "reset_level", "set_sound", "set_camera"):
                await self._run_command(websocket, message_type, message)

            else:
                logger.warning(f"Unknown message type: {message_type}")

        except json.JSONDecodeError:
            logger.error(f"Invalid JSON received: {message_str}")
        except Exception as e:
            logger.error(f"Error handling client message: {e}")

    async def _run_command(self, websocket, command: str, message: Dict[str, Any]):
        controller = self.controller
        store = controller.store
        try:
            if command == "start":
                await controller.start()
            elif command == "stop":
                controller.stop()
            elif command == "acknowledge":
                controller.acknowledge()
            elif command == "reset_level":
                if controller.is_active:
                    raise ChallengeError("Cannot reset progress during a challenge")
                store.reset_all()
            elif command == "set_sound":
                store.set_sound_enabled(bool(message.get("enabled", True)))
            elif command == "set_camera":
                store.set_preferred_camera_label(message.get("label"))
        except ChallengeError as e:
            logger.info(f"Command {command} rejected: {e}")
            await self.send_to_client(websocket, {"type": "command_response", "command": command, "status": "error", "message": str(e)})
            return

        await self.send_to_client(websocket, {"type": "command_response", "command": command, "status": "success", "state": controller.state.value})

    async def client_handler(self, websocket):
        """Handle individual client connections"""
        client_id = id(websocket)
        await self.register_client(websocket)

        try:
            async for message in websocket:
                await self.handle_client_message(websocket, message)
        except websockets.exceptions.ConnectionClosed as e:
            logger.info(f"Client {client_id} connection closed: {e}")
        finally:
            await self.unregister_client(websocket)

    # Challenge events

    def on_loading_started(self) -> None:
        self._schedule_broadcast({"type": "event", "event": "loading_started"})

    def on_running_started(self) -> None:
        self._schedule_broadcast({"type": "event", "event": "running_started", "threshold_seconds": self.controller.current_threshold_seconds()})

    def on_tick(self, remaining_seconds: float) -> None:
        self._schedule_broadcast(
            {
                "type": "event",
                "event": "tick",
                "remaining_seconds": remaining_seconds,
                "countdown": format_duration(remaining_seconds, for_countdown=True),
            }
        )

    def on_face_lost(self) -> None:
        self._schedule_broadcast({"type": "event", "event": "face_lost"})

    def on_face_regained(self) -> None:
        self._schedule_broadcast({"type": "event", "event": "face_regained"})

    def on_shake_detected(self, shaking: bool) -> None:
        self._schedule_broadcast({"type": "event", "event": "shake_detected", "shaking": shaking})

    def on_succeeded(self, new_level: int, reward_asset: str, all_cleared: bool) -> None:
        self._schedule_broadcast(
            {
                "type": "event",
                "event": "succeeded",
                "level": new_level,
                "reward": reward_asset,
                "all_cleared": all_cleared,
                "message": "All Cleared!" if all_cleared else "Cleared!",
                "challenge_time": format_duration(self.controller.current_threshold_seconds(new_level)),
            }
        )

    def on_failed(self, reward_asset: str) -> None:
        self._schedule_broadcast({"type": "event", "event": "failed", "reward": reward_asset, "message": "Failed!"})

    def on_stopped(self, error: Optional[ChallengeError]) -> None:
        self._schedule_broadcast({"type": "event", "event": "stopped", "error": str(error) if error else None})

    # Server lifecycle

    async def start_server(self) -> bool:
        """Start the WebSocket server"""
        logger.info(f"Starting WebSocket server on {self.host}:{self.port}")
        try:
            self.server = await websockets.serve(self.client_handler, self.host, self.port, ping_interval=20, ping_timeout=10)
        except OSError as e:
            logger.error(f"Failed to start WebSocket server: {e}")
            self.running = False
            return False

        if self.port == 0:
            self.port = next(iter(self.server.sockets)).getsockname()[1]
        self.running = True
        logger.info(f"WebSocket server listening on ws://{self.host}:{self.port}")
        return True

    async def stop_server(self):
        """Stop the WebSocket server"""
        self.running = False
        if self.server:
            self.server.close()
            await self.server.wait_closed()
            self.server = None
            logger.info("WebSocket server stopped")
