import time
from typing import Callable

from controller.capture_flow import CaptureFlow
from controller.controller import CameraController
from controller.gallery_flow import GalleryFlow
from controller.photo_store import PhotoSessionStore
from tests.fakes.fake_camera import FakeCamera
from tests.fakes.storage import FlakyMediaStorage

CAPTURES = "Pictures/Camera"
SAVED = "Pictures/SavedImages"


def wait_for(
        condition: Callable[[], bool],
        timeout: float = 5.0,
        interval: float = 0.05,
):
    """
    Wait until condition() returns True or timeout is reached.

    Raises AssertionError on timeout.
    """
    deadline = time.time() + timeout

    while time.time() < deadline:
        if condition():
            return
        time.sleep(interval)

    raise AssertionError("Condition not met before timeout")


def make_controller(tmp_path, discover=False, camera=None) -> CameraController:
    """Controller wired to a fake camera and flaky file storage under tmp_path."""
    ticks = iter(range(1, 1000))

    def clock():
        return next(ticks)

    camera = camera or FakeCamera()
    storage = FlakyMediaStorage(tmp_path)
    store = PhotoSessionStore()
    return CameraController(
        camera=camera,
        storage=storage,
        store=store,
        capture_flow=CaptureFlow(camera, storage, store, album=CAPTURES, clock=clock),
        gallery_flow=GalleryFlow(storage, store, album=SAVED, clock=clock),
        discover_album=CAPTURES if discover else None,
    )
