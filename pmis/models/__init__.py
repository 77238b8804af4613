"""
PMIS data models.

The single ``db`` instance is shared by every model module and bound to the
Flask app in ``pmis.create_app``.
"""

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()
