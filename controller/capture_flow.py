import logging
import threading
import time
from typing import Callable

from controller.camera_base import Camera
from controller.media_storage_base import JPEG_MIME_TYPE, MediaStorage, StorageError
from controller.photo_store import PhotoReference, PhotoSessionStore

logger = logging.getLogger(__name__)

CAPTURE_PREFIX = "CameraImage"


class CaptureError(Exception):
    pass


class CaptureStorageError(CaptureError):
    """The camera delivered a photo but storage could not keep it."""


def epoch_millis() -> int:
    return time.time_ns() // 1_000_000


class CaptureFlow:
    """
    Capture sequencing: camera -> media storage -> session store.

    Exactly one outcome per capture request. A failed capture never touches
    the store and is not retried.
    """

    def __init__(
            self,
            camera: Camera,
            storage: MediaStorage,
            store: PhotoSessionStore,
            album: str,
            clock: Callable[[], int] = epoch_millis,
    ):
        self._camera = camera
        self._storage = storage
        self._store = store
        self._album = album
        self._clock = clock

    def capture(self) -> PhotoReference:
        try:
            data = self._camera.capture()
        except Exception as e:
            raise CaptureError(f"Capture failed: {e}") from e

        name = f"{CAPTURE_PREFIX}_{self._clock()}.jpeg"
        try:
            ref = self._storage.write(data, name, JPEG_MIME_TYPE, self._album)
        except StorageError as e:
            raise CaptureStorageError(f"Could not store photo: {e}") from e

        self._store.add_photo(ref)
        logger.info("Captured %s", ref)
        return ref

    def capture_in_background(
            self,
            on_success: Callable[[PhotoReference], None],
            on_failure: Callable[[CaptureError], None],
    ) -> threading.Thread:
        thread = threading.Thread(
            target=self._capture_worker,
            args=(on_success, on_failure),
            daemon=True,
        )
        thread.start()
        return thread

    # ---------- Workers ----------

    def _capture_worker(self, on_success, on_failure) -> None:
        try:
            ref = self.capture()
        except CaptureError as e:
            logger.warning("%s", e)
            on_failure(e)
            return
        except Exception as e:
            logger.exception("Unexpected capture error")
            error = CaptureError(f"Capture failed: {e}")
            error.__cause__ = e
            on_failure(error)
            return

        on_success(ref)
