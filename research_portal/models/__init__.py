"""
Research Project Portal
SQLAlchemy models.

All domain modules import the shared ``db`` handle from here:

    from research_portal.models import db
"""

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()
