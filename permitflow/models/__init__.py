"""
permitflow
SQLAlchemy extension instance shared by every model module.

Usage:
    from permitflow.models import db
"""

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()
