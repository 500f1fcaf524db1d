"""
Flask application for the camera UI and API.
"""
import json
import logging
import queue
from typing import Iterator

from flask import Flask, Response, jsonify, request, render_template, abort

from controller.capture_flow import CaptureFlow
from controller.controller import CameraController, Command, CommandType, InvalidTransition
from controller.file_media_storage import FileMediaStorage
from controller.gallery_flow import DeleteError, GalleryFlow, SaveError
from controller.gphoto_camera import GPhotoCamera
from controller.media_storage_base import StorageError
from controller.photo_store import PhotoList, PhotoReference, PhotoSessionStore
from imaging.thumbnail import ThumbnailError, render_thumbnail
from web.config import Settings

logger = logging.getLogger(__name__)

EVENT_KEEPALIVE = 15.0  # seconds


def photo_events(store: PhotoSessionStore, keepalive: float = EVENT_KEEPALIVE) -> Iterator[str]:
    """Yield one server-sent event per photo list snapshot."""
    snapshots: "queue.Queue[PhotoList]" = queue.Queue()
    subscription = store.subscribe(snapshots.put)
    try:
        while True:
            try:
                photos = snapshots.get(timeout=keepalive)
            except queue.Empty:
                yield ": keepalive\n\n"
                continue
            payload = json.dumps({"photos": [ref.locator for ref in photos]})
            yield f"data: {payload}\n\n"
    finally:
        store.unsubscribe(subscription)


def create_app(camera=None, storage=None, settings: Settings | None = None):
    if settings is None:
        settings = Settings()

    app = Flask(__name__)
    app.config["SETTINGS"] = settings

    if camera is None:
        camera = GPhotoCamera(timeout=settings.capture_timeout)
    if storage is None:
        storage = FileMediaStorage(settings.media_root)

    # One store per session, handed to everything that needs it.
    store = PhotoSessionStore()
    controller = CameraController(
        camera=camera,
        storage=storage,
        store=store,
        capture_flow=CaptureFlow(camera, storage, store, album=settings.capture_album),
        gallery_flow=GalleryFlow(storage, store, album=settings.saved_album),
        discover_album=settings.capture_album if settings.discover_existing_photos else None,
    )
    controller.LIVE_VIEW_ERROR_AFTER = settings.live_view_error_after
    controller.RECOVERY_ATTEMPT_INTERVAL = settings.recovery_attempt_interval
    controller.start()
    app.controller = controller

    def _reference(locator: str) -> PhotoReference:
        try:
            return PhotoReference(locator)
        except ValueError:
            abort(404)

    def _conflict(error: Exception):
        return jsonify({"ok": False, "error": "not_allowed", "message": str(error)}), 409

    @app.route("/", methods=["GET"])
    def index():
        return render_template("index.html")

    @app.route("/health", methods=["GET"])
    def health():
        return jsonify(app.controller.get_health().to_dict())

    @app.route("/status", methods=["GET"])
    def status():
        return jsonify(app.controller.get_status())

    @app.route("/live-view", methods=["GET"])
    def live_view():
        frame = app.controller.get_live_view_frame()
        if not frame:
            return "", 204
        return Response(frame, mimetype="image/jpeg")

    # ---------- Navigation ----------

    @app.route("/capture", methods=["POST"])
    def capture():
        status = app.controller.get_status()

        if status["screen"] != "CAMERA":
            return jsonify({"ok": False, "error": "not_ready"}), 409

        app.controller.enqueue(
            Command(CommandType.CAPTURE)
        )

        return jsonify({"ok": True})

    @app.route("/gallery", methods=["POST"])
    def gallery():
        try:
            app.controller.open_gallery()
        except InvalidTransition as e:
            return _conflict(e)
        return jsonify({"ok": True})

    @app.route("/camera", methods=["POST"])
    def back_to_camera():
        try:
            app.controller.back_to_camera()
        except InvalidTransition as e:
            return _conflict(e)
        return jsonify({"ok": True})

    # ---------- Gallery ----------

    @app.route("/photos", methods=["GET"])
    def photos():
        return jsonify({"photos": [ref.locator for ref in store.current_photos()]})

    @app.route("/photos/events", methods=["GET"])
    def events():
        return Response(
            photo_events(store),
            mimetype="text/event-stream",
            headers={"Cache-Control": "no-cache"},
        )

    @app.route("/photos/select", methods=["POST"])
    def select_photo():
        data = request.get_json(silent=True) or {}
        locator = data.get("locator")
        if not locator:
            return jsonify({"ok": False, "error": "locator_required"}), 400

        try:
            app.controller.select_photo(_reference(locator))
        except KeyError:
            return jsonify({"ok": False, "error": "not_found"}), 404
        except InvalidTransition as e:
            return _conflict(e)
        return jsonify({"ok": True})

    @app.route("/review/dismiss", methods=["POST"])
    def dismiss_review():
        try:
            app.controller.dismiss_review()
        except InvalidTransition as e:
            return _conflict(e)
        return jsonify({"ok": True})

    @app.route("/review/save", methods=["POST"])
    def save_photo():
        try:
            copy = app.controller.save_selected()
        except InvalidTransition as e:
            return _conflict(e)
        except SaveError as e:
            return jsonify({"ok": False, "error": "save_failed", "message": str(e)}), 500
        return jsonify({"ok": True, "message": "Photo Saved", "saved": copy.locator})

    @app.route("/review/delete", methods=["POST"])
    def delete_photo():
        try:
            ref = app.controller.delete_selected()
        except InvalidTransition as e:
            return _conflict(e)
        except DeleteError as e:
            return jsonify({"ok": False, "error": "delete_failed", "message": str(e)}), 500
        return jsonify({"ok": True, "message": "Photo Deleted", "deleted": ref.locator})

    # ---------- Media ----------

    @app.route("/media/<path:locator>")
    def media(locator: str):
        try:
            data = storage.read(_reference(locator))
        except StorageError:
            abort(404)
        return Response(data, mimetype="image/jpeg")

    @app.route("/thumbnails/<path:locator>")
    def thumbnail(locator: str):
        try:
            data = storage.read(_reference(locator))
        except StorageError:
            abort(404)

        try:
            tile = render_thumbnail(data, settings.thumbnail_size)
        except ThumbnailError:
            logger.warning("Could not render thumbnail for %s", locator)
            abort(404)
        return Response(tile, mimetype="image/jpeg")

    return app
