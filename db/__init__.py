# Database package: SQLAlchemy instance, session scope and key-value store

from db.database import db, init_db

__all__ = ['db', 'init_db']
