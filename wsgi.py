"""
WSGI / Flask-Migrate entry point.

Usage:
    FLASK_APP=wsgi.py flask db upgrade
    FLASK_APP=wsgi.py flask run
"""

from grc_portal import create_app

app = create_app()
