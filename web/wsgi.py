"""
WSGI entrypoint for production (gunicorn/systemd).

This module should have no side effects beyond logging setup and creating the
Flask app. The camera itself starts when the page asks for it.
"""
import logging

from web.app import create_app

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = create_app()
