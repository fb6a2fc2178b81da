"""WSGI entrypoint for the Recipe Box application.

The Flask development server is intentionally not started from this module so
that deployments rely on Gunicorn (``gunicorn main:app``, which reads
``gunicorn.conf.py``). Local development can still use ``flask --app main run``
which imports the ``app`` object defined below.
"""

from recipebox import create_app

app = create_app()


__all__ = ["app"]
