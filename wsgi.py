"""
WSGI / Flask-Migrate entry point.

Usage:
    flask --app wsgi db upgrade
    flask --app wsgi seed-rule-templates
    gunicorn wsgi:app
"""

from collab import create_app

app = create_app()
