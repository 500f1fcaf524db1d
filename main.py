#!/usr/bin/env python
"""Development server for the camera app."""
from web.app import create_app
from web.app_logging import configure_logging
from web.config import Settings


def main():
    settings = Settings()
    configure_logging(settings.log_level)

    app = create_app(settings=settings)
    try:
        # threaded: the photo event stream holds a connection open
        app.run(host=settings.host, port=settings.port, threaded=True, use_reloader=False)
    finally:
        app.controller.stop()


if __name__ == '__main__':
    main()
