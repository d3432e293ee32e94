"""
OPEX Framework
Database models package.

The shared ``db`` handle is created here so that model modules and the
application factory import the same Flask-SQLAlchemy instance.
"""

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()

from opex.models.framework import (  # noqa: E402,F401
    ActionPlan,
    Element,
    LevelScore,
    Pillar,
)
