#!/usr/bin/env python3
"""
Initialize the Notespace identity service database.

This script creates all database tables without starting the web server.
Useful for development and for provisioning a new deployment.
"""

from app import create_app


if __name__ == '__main__':
    print("Initializing Notespace identity database...")
    app = create_app()
    print("Database initialized successfully!")
    print(f"Database location: {app.config.get('SQLALCHEMY_DATABASE_URI', 'sqlite:///notespace_auth.db')}")
