"""
GRC Portal — ORM models package.

``db`` is the single Flask-SQLAlchemy extension instance. Model modules import
it from here; the app factory binds it with ``db.init_app(app)``.
"""

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()
