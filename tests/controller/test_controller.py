import threading

import pytest

from controller.controller import (
    Command,
    CommandType,
    InvalidTransition,
    Screen,
)
from controller.gallery_flow import DeleteError, SaveError
from controller.health import HealthCode, HealthLevel, HealthSource
from controller.media_storage_base import JPEG_MIME_TYPE
from controller.photo_store import PhotoReference
from tests.fakes.fake_camera import FakeCamera
from tests.fakes.storage import FlakyMediaStorage
from tests.helpers import CAPTURES, make_controller, wait_for


@pytest.fixture
def controller(tmp_path):
    controller = make_controller(tmp_path)
    controller.start()
    yield controller
    controller.stop()


def capture(controller):
    count = len(controller.store)
    controller.enqueue(Command(CommandType.CAPTURE))
    wait_for(lambda: controller.screen == Screen.GALLERY and len(controller.store) == count + 1)
    return controller.store.current_photos()[-1]


def review(controller, ref):
    controller.select_photo(ref)
    assert controller.screen == Screen.REVIEWING


def test_starts_on_camera_screen(controller):
    status = controller.get_status()
    assert status["screen"] == "CAMERA"
    assert status["busy"] is False
    assert status["photos"] == []
    assert status["selected"] is None


def test_capture_moves_to_gallery(controller):
    ref = capture(controller)

    status = controller.get_status()
    assert status["screen"] == "GALLERY"
    assert status["photos"] == [ref.locator]
    assert status["notice"] == {"level": "info", "message": "Photo Saved"}


def test_capture_ignored_off_camera_screen(controller):
    capture(controller)

    controller._handle_command(Command(CommandType.CAPTURE))

    assert controller.screen == Screen.GALLERY
    assert len(controller.store) == 1


def test_capture_failure_returns_to_camera(controller):
    controller.camera.connected = False
    controller.enqueue(Command(CommandType.CAPTURE))

    wait_for(lambda: controller.get_health().level == HealthLevel.ERROR)
    wait_for(lambda: controller.screen == Screen.CAMERA)

    assert controller.store.current_photos() == ()
    assert controller.get_status()["notice"]["level"] == "error"


def test_capture_failure_sets_capture_health(tmp_path):
    camera = FakeCamera()
    controller = make_controller(tmp_path, camera=camera)
    controller.start()
    try:
        def stuck():
            raise RuntimeError("shutter stuck")

        camera.capture = stuck
        controller.enqueue(Command(CommandType.CAPTURE))

        wait_for(lambda: controller.get_health().level == HealthLevel.ERROR)
        health = controller.get_health()
        assert health.code == HealthCode.CAPTURE_FAILED
        assert "shutter stuck" in health.message
        assert controller._get_health_source() == HealthSource.CAPTURE
    finally:
        controller.stop()


def test_end_to_end_capture_review_delete(controller):
    a = capture(controller)
    controller.back_to_camera()
    b = capture(controller)
    assert controller.store.current_photos() == (a, b)

    review(controller, a)
    controller.delete_selected()
    assert controller.store.current_photos() == (b,)
    assert controller.screen == Screen.GALLERY
    assert controller.get_status()["notice"]["message"] == "Photo Deleted"

    # Deleting the same reference again goes through the flow without error
    controller._gallery_flow.delete(a)
    assert controller.store.current_photos() == (b,)


def test_save_selected_keeps_session_list(controller):
    ref = capture(controller)
    review(controller, ref)

    copy = controller.save_selected()

    assert copy.locator.startswith("Pictures/SavedImages/SavedImage_")
    assert controller.store.current_photos() == (ref,)
    assert controller.screen == Screen.GALLERY
    assert controller.selected is None


def test_save_failure_closes_review_and_reports(controller):
    ref = capture(controller)
    review(controller, ref)
    controller.storage.fail_write = True

    with pytest.raises(SaveError):
        controller.save_selected()

    status = controller.get_status()
    assert status["screen"] == "GALLERY"
    assert status["notice"]["level"] == "error"


def test_delete_failure_keeps_photo(controller):
    ref = capture(controller)
    review(controller, ref)
    controller.storage.fail_delete = True

    with pytest.raises(DeleteError):
        controller.delete_selected()

    assert controller.store.current_photos() == (ref,)
    assert controller.screen == Screen.GALLERY


def test_dismiss_review(controller):
    ref = capture(controller)
    review(controller, ref)

    controller.dismiss_review()

    assert controller.screen == Screen.GALLERY
    assert controller.selected is None


def test_select_unknown_photo(controller):
    capture(controller)
    with pytest.raises(KeyError):
        controller.select_photo(PhotoReference("Pictures/Camera/other.jpeg"))
    assert controller.screen == Screen.GALLERY


def test_invalid_transitions(controller):
    with pytest.raises(InvalidTransition):
        controller.back_to_camera()
    with pytest.raises(InvalidTransition):
        controller.dismiss_review()
    with pytest.raises(InvalidTransition):
        controller.save_selected()

    controller.open_gallery()
    with pytest.raises(InvalidTransition):
        controller.open_gallery()
    with pytest.raises(InvalidTransition):
        controller.delete_selected()


def test_back_to_camera_from_review_clears_selection(controller):
    ref = capture(controller)
    review(controller, ref)

    controller.back_to_camera()

    assert controller.screen == Screen.CAMERA
    assert controller.selected is None


def test_discovers_existing_photos_on_start(tmp_path):
    storage = FlakyMediaStorage(tmp_path)
    old = storage.write(b"\xff\xd8old", "CameraImage_0.jpeg", JPEG_MIME_TYPE, CAPTURES)

    controller = make_controller(tmp_path, discover=True)
    controller.start()
    try:
        assert controller.store.current_photos() == (old,)
    finally:
        controller.stop()


def test_no_discovery_by_default(tmp_path):
    storage = FlakyMediaStorage(tmp_path)
    storage.write(b"\xff\xd8old", "CameraImage_0.jpeg", JPEG_MIME_TYPE, CAPTURES)

    controller = make_controller(tmp_path)
    controller.start()
    try:
        assert controller.store.current_photos() == ()
    finally:
        controller.stop()


def test_controller_stop_calls_camera_stop_live_view(tmp_path):
    controller = make_controller(tmp_path)

    controller.start()
    assert controller._running is True
    assert controller.camera.live_view_active is True

    controller.stop()

    assert controller._running is False
    assert controller.camera.live_view_active is False


def test_controller_stop_ignores_camera_errors(tmp_path, monkeypatch):
    controller = make_controller(tmp_path)
    controller.start()

    def boom():
        raise RuntimeError("camera exploded")

    monkeypatch.setattr(controller.camera, "stop_live_view", boom)

    # Should NOT raise
    controller.stop()

    assert controller._running is False


def test_camera_off_at_boot_reports_not_detected(tmp_path):
    camera = FakeCamera()
    camera.connected = False
    controller = make_controller(tmp_path, camera=camera)

    controller.start()
    try:
        health = controller.get_health()
        assert health.level == HealthLevel.ERROR
        assert health.code == HealthCode.CAMERA_NOT_DETECTED
    finally:
        controller.stop()


def test_run_loop_logs_unhandled_exceptions(tmp_path, caplog, monkeypatch):
    controller = make_controller(tmp_path)

    def boom(_command):
        raise RuntimeError("kaboom")

    monkeypatch.setattr(controller, "_handle_command", boom)

    controller.start()
    try:
        controller.enqueue(Command(CommandType.CAPTURE))
        wait_for(lambda: "Controller error" in caplog.text, timeout=2.0)
        assert "kaboom" in caplog.text
    finally:
        controller.stop()


def test_storage_failure_during_capture_reports_storage_health(controller):
    controller.storage.fail_write = True
    controller.enqueue(Command(CommandType.CAPTURE))

    wait_for(lambda: controller.get_health().level == HealthLevel.ERROR)
    wait_for(lambda: controller.screen == Screen.CAMERA)

    health = controller.get_health()
    assert health.code == HealthCode.STORAGE_FAILED
    assert "Check the USB cable" not in health.instructions
    assert controller._get_health_source() == HealthSource.STORAGE
    assert controller.store.current_photos() == ()


def test_unexpected_storage_error_does_not_stick_in_capturing(controller, monkeypatch):
    def broken_write(*args, **kwargs):
        raise RuntimeError("driver bug")

    monkeypatch.setattr(controller.storage, "write", broken_write)
    controller.enqueue(Command(CommandType.CAPTURE))

    wait_for(lambda: controller.get_health().level == HealthLevel.ERROR)
    wait_for(lambda: controller.screen == Screen.CAMERA)
    assert controller.get_status()["busy"] is False


def test_status_not_blocked_while_saving(controller, monkeypatch):
    ref = capture(controller)
    review(controller, ref)

    reading = threading.Event()
    release = threading.Event()
    original_read = controller.storage.read

    def slow_read(photo):
        reading.set()
        release.wait(timeout=5)
        return original_read(photo)

    monkeypatch.setattr(controller.storage, "read", slow_read)

    saver = threading.Thread(target=controller.save_selected, daemon=True)
    saver.start()
    try:
        assert reading.wait(timeout=5)

        statuses = []
        reader = threading.Thread(target=lambda: statuses.append(controller.get_status()), daemon=True)
        reader.start()
        reader.join(timeout=1)

        assert statuses and statuses[0]["screen"] == "REVIEWING"
    finally:
        release.set()
        saver.join(timeout=5)

    assert controller.screen == Screen.GALLERY
    assert controller.get_status()["notice"]["message"] == "Photo Saved"


def test_navigation_during_delete_is_kept(controller, monkeypatch):
    ref = capture(controller)
    review(controller, ref)
    original_delete = controller.storage.delete

    def delete_then_leave(photo):
        original_delete(photo)
        controller.back_to_camera()

    monkeypatch.setattr(controller.storage, "delete", delete_then_leave)

    controller.delete_selected()

    assert controller.screen == Screen.CAMERA
    assert controller.store.current_photos() == ()
