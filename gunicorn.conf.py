"""Gunicorn settings for ``gunicorn main:app``."""

import os

from recipebox.config import port_from_env

bind = f"0.0.0.0:{port_from_env()}"
workers = int(os.environ.get("WEB_CONCURRENCY", "2"))
threads = int(os.environ.get("GUNICORN_THREADS", "4"))
accesslog = None
errorlog = "-"
