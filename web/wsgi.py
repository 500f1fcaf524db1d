"""
WSGI entrypoint for production (gunicorn/systemd).

This module should have no side effects beyond creating the Flask app (which starts the controller).
"""
from web.app import create_app
from web.app_logging import configure_logging
from web.config import Settings

settings = Settings()
configure_logging(settings.log_level)

app = create_app(settings=settings)
