import logging
from pathlib import Path

from web.app_logging import APP_LOGGERS, configure_logging
from web.config import Settings


def test_settings_defaults(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)

    settings = Settings()

    assert settings.media_root == Path("media")
    assert settings.capture_album == "Pictures/Camera"
    assert settings.saved_album == "Pictures/SavedImages"
    assert settings.discover_existing_photos is False
    assert settings.thumbnail_size == (320, 200)


def test_settings_from_environment(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("CAMERA_APP_MEDIA_ROOT", str(tmp_path))
    monkeypatch.setenv("CAMERA_APP_CAPTURE_TIMEOUT", "3")
    monkeypatch.setenv("CAMERA_APP_DISCOVER_EXISTING_PHOTOS", "true")

    settings = Settings()

    assert settings.media_root == tmp_path
    assert settings.capture_timeout == 3
    assert settings.discover_existing_photos is True


def test_configure_logging_is_idempotent():
    loggers = [logging.getLogger(name) for name in APP_LOGGERS]
    saved = [(lg.handlers[:], lg.level, lg.propagate) for lg in loggers]
    try:
        for lg in loggers:
            lg.handlers = []

        configure_logging("debug")
        configure_logging("debug")

        for lg in loggers:
            assert len(lg.handlers) == 1
            assert lg.level == logging.DEBUG
            assert lg.propagate is False
    finally:
        for lg, (handlers, level, propagate) in zip(loggers, saved):
            lg.handlers = handlers
            lg.setLevel(level)
            lg.propagate = propagate
