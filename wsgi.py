"""
WSGI entry point.

Usage:
    gunicorn wsgi:app
    flask --app wsgi seed-demo      # load the demo project
"""

from completions import create_app

app = create_app()
