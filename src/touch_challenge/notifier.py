"""Cross-platform desktop notifications for challenge outcomes."""

import asyncio
import logging
import platform
import subprocess
from typing import Callable, Optional, Set

from .config import NotificationConfig
from .controller import ChallengeListener
from .errors import ChallengeError

logger = logging.getLogger(__name__)


class NotificationManager:
    """Manages desktop notifications with automatic method detection."""

    def __init__(self, config: NotificationConfig, sound_enabled: Callable[[], bool] = lambda: True):
        self.config = config
        self.sound_enabled = sound_enabled
        self.system = platform.system()
        self._working_method = self._detect_notification_method()

    @property
    def method(self) -> Optional[str]:
        return self._working_method

    def _detect_notification_method(self) -> Optional[str]:
        """Detect the best available notification method."""
        if self.system == "Darwin":  # macOS
            try:
                import pync  # noqa: F401

                return "pync"
            except ImportError:
                try:
                    subprocess.run(["osascript", "-e", ""], capture_output=True, timeout=1)
                    return "osascript"
                except (OSError, subprocess.SubprocessError):
                    pass

        elif self.system == "Linux":
            try:
                subprocess.run(["notify-send", "--version"], capture_output=True, timeout=1)
                return "notify-send"
            except (OSError, subprocess.SubprocessError):
                pass

        elif self.system == "Windows":
            try:
                import win10toast  # noqa: F401

                return "win10toast"
            except ImportError:
                pass

        # Fallback
        try:
            from plyer import notification  # noqa: F401

            return "plyer"
        except ImportError:
            return None

    def send(self, message: str, title: Optional[str] = None) -> bool:
        """Send a notification using the detected method."""
        if not self.config.enabled:
            return False

        title = title or self.config.title
        with_sound = self.sound_enabled()

        if not self._working_method:
            logger.info(f"{title}: {message}")
            return True

        try:
            if self._working_method == "pync":
                import pync

                options = {"title": title}
                if with_sound:
                    options["sound"] = "default"
                pync.notify(message, **options)

            elif self._working_method == "osascript":
                script = f'display notification "{message}" with title "{title}"'
                if with_sound:
                    script += ' sound name "Glass"'
                result = subprocess.run(["osascript", "-e", script], capture_output=True, text=True, timeout=5)
                if result.returncode != 0 and "not allowed" in result.stderr:
                    logger.warning("Notification permission required. Please grant permission in System Preferences.")

            elif self._working_method == "notify-send":
                subprocess.run(
                    ["notify-send", "--expire-time", str(self.config.duration_seconds * 1000), title, message],
                    capture_output=True,
                    timeout=5,
                )

            elif self._working_method == "win10toast":
                from win10toast import ToastNotifier

                toaster = ToastNotifier()
                toaster.show_toast(title, message, duration=self.config.duration_seconds, threaded=True)

            elif self._working_method == "plyer":
                from plyer import notification

                notification.notify(title=title, message=message, timeout=self.config.duration_seconds)

            return True

        except Exception as e:
            logger.warning(f"Notification failed ({self._working_method}): {e}")
            logger.info(f"{title}: {message}")
            return False


class NotificationListener(ChallengeListener):
    """Shows the outcome of each attempt as a desktop notification.

    Each notification is sent from a worker thread; backends may block on a
    subprocess for seconds.
    """

    def __init__(self, notifier: NotificationManager):
        self.notifier = notifier
        self._pending: Set[asyncio.Task] = set()

    def _send(self, message: str) -> None:
        task = asyncio.get_running_loop().create_task(asyncio.to_thread(self.notifier.send, message))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def drain(self) -> None:
        """Wait for notifications still being delivered."""
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)

    def on_running_started(self) -> None:
        self._send("Challenge started. Don't touch your face!")

    def on_succeeded(self, new_level: int, reward_asset: str, all_cleared: bool) -> None:
        if all_cleared:
            self._send(f"All Cleared! You reached level {new_level}.")
        else:
            self._send(f"Cleared! Level {new_level} unlocked.")

    def on_failed(self, reward_asset: str) -> None:
        self._send("Failed! You touched your face.")

    def on_stopped(self, error: Optional[ChallengeError]) -> None:
        if error:
            self._send(f"Challenge stopped: {error}")
