from __future__ import annotations

import logging
from threading import Lock, Timer
from typing import Optional, Sequence

from plyer import notification, vibrator

logger = logging.getLogger(__name__)

APP_NAME = "Zora"


class Notifier:
    """System notifications and haptics, silently skipped where unsupported."""

    def __init__(self, app_name: str = APP_NAME, timeout: int = 10):
        self.app_name = app_name
        self.timeout = timeout
        self._can_notify = True
        self._can_vibrate = True

    def notify(self, title: str, body: str) -> None:
        if not self._can_notify:
            return
        try:
            notification.notify(title=title, message=body, app_name=self.app_name, timeout=self.timeout)
        except NotImplementedError:
            logger.debug("Notifications unsupported on this platform")
            self._can_notify = False
        except Exception as exc:
            logger.warning("Notification failed: %s", exc)

    def vibrate(self, pattern: Sequence[float], repeat: bool = False) -> None:
        """Vibrate with an off/on pattern in seconds."""
        if not self._can_vibrate:
            return
        try:
            vibrator.pattern(pattern=tuple(pattern), repeat=0 if repeat else -1)
        except NotImplementedError:
            logger.debug("Vibration unsupported on this platform")
            self._can_vibrate = False
        except Exception as exc:
            logger.warning("Vibration failed: %s", exc)

    def cancel_vibration(self) -> None:
        if not self._can_vibrate:
            return
        try:
            vibrator.cancel()
        except NotImplementedError:
            self._can_vibrate = False
        except Exception as exc:
            logger.warning("Vibration cancel failed: %s", exc)


class Banner:
    """In-app banner that clears itself after a fixed duration."""

    def __init__(self) -> None:
        self._lock = Lock()
        self._text: Optional[str] = None
        self._timer: Optional[Timer] = None

    @property
    def text(self) -> Optional[str]:
        with self._lock:
            return self._text

    def show(self, text: str, seconds: float) -> None:
        with self._lock:
            if self._timer:
                self._timer.cancel()
            self._text = text
            self._timer = Timer(seconds, self.clear)
            self._timer.daemon = True
            self._timer.start()
        logger.info("Banner: %s", text)

    def clear(self) -> None:
        with self._lock:
            self._text = None
            if self._timer:
                self._timer.cancel()
            self._timer = None
