#!/usr/bin/env python3
"""
Build script for deployment.
This script creates the database tables and the default admin account.
"""

import logging

from app import create_app, initialize_database

logger = logging.getLogger(__name__)


def main():
    app = create_app()
    with app.app_context():
        logger.info("Creating database tables...")
        initialize_database()
        logger.info("Database initialization completed successfully!")


if __name__ == "__main__":
    main()
