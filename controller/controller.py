"""
Camera application controller

Single authoritative owner of navigation and camera health state.

Goals:
- Command loop never blocks on slow camera I/O
- Live view worker always runs (enables recovery when camera is off at boot)
- Exactly one outcome per capture: gallery on success, camera screen on failure
- Photo selection lives here, not in the session store
"""

import logging
import threading
from dataclasses import dataclass
from enum import Enum, auto
from queue import Queue, Empty
from typing import Optional

from controller.camera_base import Camera
from controller.capture_flow import CaptureError, CaptureFlow, CaptureStorageError
from controller.gallery_flow import DeleteError, GalleryFlow, SaveError
from controller.health import (
    CAMERA_INSTRUCTIONS,
    STORAGE_INSTRUCTIONS,
    HealthCode,
    HealthLevel,
    HealthSource,
    HealthStatus,
)
from controller.live_view_worker import LiveViewWorker
from controller.media_storage_base import MediaStorage
from controller.photo_store import PhotoReference, PhotoSessionStore

logger = logging.getLogger(__name__)


class Screen(Enum):
    CAMERA = auto()
    CAPTURING = auto()
    GALLERY = auto()
    REVIEWING = auto()


class CommandType(Enum):
    CAPTURE = auto()


class Command:
    def __init__(self, command_type):
        self.command_type = command_type


class InvalidTransition(Exception):
    pass


@dataclass(frozen=True)
class Notice:
    level: str
    message: str

    def to_dict(self) -> dict:
        return {"level": self.level, "message": self.message}


class CameraController:
    # How long live view must be failing (while on the camera screen) before surfacing an error
    LIVE_VIEW_ERROR_AFTER = 2.5  # seconds

    # How often to attempt recovery when unhealthy (camera off/unplugged)
    RECOVERY_ATTEMPT_INTERVAL = 2.0  # seconds

    def __init__(
            self,
            camera: Camera,
            storage: MediaStorage,
            store: PhotoSessionStore,
            capture_flow: CaptureFlow,
            gallery_flow: GalleryFlow,
            discover_album: Optional[str] = None,
    ):
        self._state_lock = threading.Lock()

        # Collaborators
        self.camera = camera
        self.storage = storage
        self.store = store
        self._capture_flow = capture_flow
        self._gallery_flow = gallery_flow
        self._discover_album = discover_album

        # Navigation state
        self.screen = Screen.CAMERA
        self.selected: Optional[PhotoReference] = None
        self._notice: Optional[Notice] = None

        # Controller loop
        self.command_queue = Queue()
        self._thread = threading.Thread(target=self._run, daemon=True)
        self._running = False

        # Live view
        self._latest_live_view_frame: Optional[bytes] = None
        self._live_view_lock = threading.Lock()
        self._live_view_running = False

        # Health
        self._health_lock = threading.Lock()
        self._health_status = HealthStatus.ok()
        self._health_source: Optional[HealthSource] = None

        self._live_view_worker = LiveViewWorker(controller=self)

    # ---------- Lifecycle ----------

    def start(self):
        if self._discover_album is not None:
            for ref in self.storage.list_album(self._discover_album):
                self.store.add_photo(ref)
            logger.info("Discovered %d photos in %s", len(self.store), self._discover_album)

        self._running = True

        # Always start worker so recovery is possible even if camera is OFF at boot.
        self._start_live_view_worker()

        # Best-effort initial live view start. Failure is ok; worker will recover later.
        try:
            self.camera.start_live_view()
            self._mark_camera_ok()
        except Exception:
            logger.warning("Camera not detected at startup")
            self._set_camera_error(
                HealthCode.CAMERA_NOT_DETECTED,
                "Camera not detected",
                source=HealthSource.LIVE_VIEW,
            )

        self._thread.start()

    def stop(self):
        self._running = False
        self._live_view_worker.stop()
        try:
            self.camera.stop_live_view()
        except Exception:
            logger.debug("Ignoring camera error on stop", exc_info=True)

    # ---------- Public API ----------

    def enqueue(self, command: Command):
        self.command_queue.put(command)

    def get_status(self):
        with self._state_lock:
            return {
                "screen": self.screen.name,
                "busy": self.screen == Screen.CAPTURING,
                "photos": [ref.locator for ref in self.store.current_photos()],
                "selected": self.selected.locator if self.selected else None,
                "notice": self._notice.to_dict() if self._notice else None,
            }

    def get_live_view_frame(self) -> Optional[bytes]:
        with self._live_view_lock:
            return self._latest_live_view_frame

    def get_health(self) -> HealthStatus:
        with self._health_lock:
            return self._health_status

    # ---------- Navigation ----------

    def open_gallery(self) -> None:
        with self._state_lock:
            self._require(Screen.CAMERA)
            self.screen = Screen.GALLERY

    def back_to_camera(self) -> None:
        with self._state_lock:
            self._require(Screen.GALLERY, Screen.REVIEWING)
            self.selected = None
            self.screen = Screen.CAMERA

    def select_photo(self, ref: PhotoReference) -> None:
        with self._state_lock:
            self._require(Screen.GALLERY)
            if ref not in self.store.current_photos():
                raise KeyError(ref.locator)
            self.selected = ref
            self.screen = Screen.REVIEWING

    def dismiss_review(self) -> None:
        with self._state_lock:
            self._require(Screen.REVIEWING)
            self._close_review()

    def save_selected(self) -> PhotoReference:
        ref = self._reviewed_photo()
        try:
            copy = self._gallery_flow.save(ref)
        except SaveError as e:
            self._finish_review(ref, Notice("error", str(e)))
            raise
        self._finish_review(ref, Notice("info", "Photo Saved"))
        return copy

    def delete_selected(self) -> PhotoReference:
        ref = self._reviewed_photo()
        try:
            self._gallery_flow.delete(ref)
        except DeleteError as e:
            self._finish_review(ref, Notice("error", str(e)))
            raise
        self._finish_review(ref, Notice("info", "Photo Deleted"))
        return ref

    # ---------- Controller loop ----------

    def _run(self):
        while self._running:
            try:
                command = self.command_queue.get(timeout=0.1)
                self._handle_command(command)
            except Empty:
                continue
            except Exception:
                # Keep controller loop alive.
                logger.exception("Controller error")

    def _handle_command(self, command: Command):
        if command.command_type == CommandType.CAPTURE:
            with self._state_lock:
                if self.screen != Screen.CAMERA:
                    logger.debug("Ignoring capture on %s screen", self.screen.name)
                    return
                self.screen = Screen.CAPTURING
            self._capture_flow.capture_in_background(
                on_success=self._on_captured,
                on_failure=self._on_capture_failed,
            )

    def _on_captured(self, ref: PhotoReference) -> None:
        self._mark_camera_ok()
        with self._state_lock:
            self._notice = Notice("info", "Photo Saved")
            self.screen = Screen.GALLERY

    def _on_capture_failed(self, error: CaptureError) -> None:
        if isinstance(error, CaptureStorageError):
            self._set_camera_error(
                HealthCode.STORAGE_FAILED,
                str(error),
                source=HealthSource.STORAGE,
                instructions=STORAGE_INSTRUCTIONS,
            )
        else:
            self._set_camera_error(
                HealthCode.CAPTURE_FAILED,
                str(error),
                source=HealthSource.CAPTURE,
            )
        with self._state_lock:
            self._notice = Notice("error", str(error))
            self.screen = Screen.CAMERA

    def _start_live_view_worker(self):
        if self._live_view_running:
            return

        self._live_view_running = True
        self._live_view_worker.start()

    # ---------- Internal helpers used by workers ----------

    # Caller holds _state_lock
    def _require(self, *screens: Screen) -> None:
        if self.screen not in screens:
            raise InvalidTransition(f"Not allowed on the {self.screen.name} screen")

    def _close_review(self) -> None:
        self.selected = None
        self.screen = Screen.GALLERY

    def _reviewed_photo(self) -> PhotoReference:
        with self._state_lock:
            self._require(Screen.REVIEWING)
            return self.selected

    def _finish_review(self, ref: PhotoReference, notice: Notice) -> None:
        with self._state_lock:
            self._notice = notice
            # the user may have navigated away while storage was busy
            if self.screen == Screen.REVIEWING and self.selected == ref:
                self._close_review()

    # Running flag for worker loops
    def _is_running(self) -> bool:
        return self._running

    # State access for workers
    def _get_screen(self) -> Screen:
        with self._state_lock:
            return self.screen

    # Live view frame update
    def _set_latest_live_view_frame(self, frame: Optional[bytes]) -> None:
        with self._live_view_lock:
            self._latest_live_view_frame = frame

    # Health inspection
    def _is_unhealthy(self) -> bool:
        with self._health_lock:
            return self._health_status.level == HealthLevel.ERROR

    # ---------- Health helpers ----------

    def _get_health_source(self) -> Optional[HealthSource]:
        with self._health_lock:
            return self._health_source

    def _mark_camera_ok(self):
        with self._health_lock:
            self._health_source = None
            self._health_status = HealthStatus.ok()

    def _set_camera_error(
            self,
            code: HealthCode,
            message: str,
            *,
            source: HealthSource,
            instructions=CAMERA_INSTRUCTIONS,
    ):
        with self._health_lock:
            if self._health_status.level == HealthLevel.ERROR:
                return
            self._health_source = source
            self._health_status = HealthStatus.error(
                code=code,
                message=message,
                instructions=instructions,
            )
