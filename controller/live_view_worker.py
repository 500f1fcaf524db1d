import logging
import threading
import time
from typing import Optional, TYPE_CHECKING

from controller.health import HealthCode, HealthSource

if TYPE_CHECKING:  # pragma: no cover
    from controller.controller import CameraController

logger = logging.getLogger(__name__)


class LiveViewWorker:
    """
    Owns live view polling + recovery throttling.

    IMPORTANT:
    - Controller remains the single source of truth.
    - This worker does not own state; it reads/writes via controller methods/locks.
    - Frames are only polled while the camera screen is shown.
    """

    POLL_INTERVAL = 0.5  # ~2 FPS
    IDLE_INTERVAL = 0.2

    def __init__(self, controller: "CameraController"):
        self._controller = controller
        self._thread: Optional[threading.Thread] = None
        self._running = False

        self._live_view_failure_since: Optional[float] = None
        self._last_recovery_attempt: float = 0.0

    def start(self) -> None:
        if self._running:
            return
        self._running = True
        self._thread = threading.Thread(target=self._run, daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self._running = False

    def _run(self) -> None:
        while self._running and self._controller._is_running():
            if self._poll_once(time.monotonic()):
                time.sleep(self.POLL_INTERVAL)
            else:
                time.sleep(self.IDLE_INTERVAL)

    def _poll_once(self, now: float) -> bool:
        """Run one polling step. Returns False when the preview is hidden."""
        # Avoid circular import at module import time
        from controller.controller import Screen

        if self._controller._get_screen() != Screen.CAMERA:
            self._live_view_failure_since = None
            return False

        # --- Recovery path (camera off at boot, turned on later) ---
        if self._controller._is_unhealthy() and (
                now - self._last_recovery_attempt
        ) >= self._controller.RECOVERY_ATTEMPT_INTERVAL:
            self._last_recovery_attempt = now
            try:
                self._controller.camera.start_live_view()
                self._clear_live_view_error()
                self._live_view_failure_since = None
            except Exception:
                logger.debug("Live view recovery failed", exc_info=True)

        # --- Frame polling + debounced error ---
        try:
            frame = self._controller.camera.get_live_view_frame()
            self._controller._set_latest_live_view_frame(frame)

            self._live_view_failure_since = None
            self._clear_live_view_error()

        except Exception:
            if self._live_view_failure_since is None:
                self._live_view_failure_since = now

            # Only surface a generic error if failures persist
            if (now - self._live_view_failure_since) >= self._controller.LIVE_VIEW_ERROR_AFTER:
                self._controller._set_camera_error(
                    HealthCode.CAMERA_NOT_DETECTED,
                    "Camera not responding",
                    source=HealthSource.LIVE_VIEW,
                )

        return True

    def _clear_live_view_error(self) -> None:
        # Capture and storage failures stay visible until the next successful capture
        if self._controller._get_health_source() not in (HealthSource.CAPTURE, HealthSource.STORAGE):
            self._controller._mark_camera_ok()
