#!/usr/bin/env python
"""
Initialize Database Script
Creates the sync tables and optionally seeds the Dockmaster account row.

Usage:
    python scripts/init_db.py
    python scripts/init_db.py --store-credentials   # from DOCKMASTER_USERNAME / DOCKMASTER_PASSWORD
    python scripts/init_db.py --drop                # recreate from scratch
"""

import argparse
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from sqlalchemy import inspect
from sqlalchemy.exc import SQLAlchemyError

from dockmaster_sync.config_manager import ConfigManager
from dockmaster_sync.database.connection import get_db
from dockmaster_sync.database.gateway import PersistenceGateway
from dockmaster_sync.database.models import Base
from dockmaster_sync.exceptions import DockmasterSyncError
from dockmaster_sync.utils.logger import setup_logging, get_logger


def confirm_drop() -> bool:
    answer = input("Drop every sync table, including cached work orders? (yes/no): ")
    return answer.strip().lower() == 'yes'


def seed_credentials(gateway: PersistenceGateway) -> None:
    """Copy the configured Dockmaster account into ``dockmaster_config``."""
    dockmaster_config = ConfigManager().get_dockmaster_config()
    username = dockmaster_config.get('username')
    password = dockmaster_config.get('password')
    if not username or not password:
        raise DockmasterSyncError("DOCKMASTER_USERNAME and DOCKMASTER_PASSWORD must be set")

    gateway.store_credentials(username, password)
    print(f"Stored Dockmaster credentials for {username}")


def main():
    parser = argparse.ArgumentParser(description='Create the Dockmaster sync schema')
    parser.add_argument('--drop', action='store_true', help='Drop existing tables first (DANGEROUS)')
    parser.add_argument(
        '--store-credentials',
        action='store_true',
        help='Save the configured Dockmaster account to the dockmaster_config table'
    )
    args = parser.parse_args()

    setup_logging()
    logger = get_logger(__name__)

    db = get_db()
    if not db.check_connection():
        print("Error: Cannot connect to database")
        sys.exit(1)

    try:
        if args.drop:
            if not confirm_drop():
                print("Cancelled")
                sys.exit(0)
            logger.warning("Dropping all sync tables")
            Base.metadata.drop_all(db.engine)

        Base.metadata.create_all(db.engine)
        logger.info("Schema created")

        if args.store_credentials:
            seed_credentials(PersistenceGateway(db))

    except (DockmasterSyncError, SQLAlchemyError) as e:
        logger.error(f"Database initialization failed: {e}")
        print(f"\nError: {e}")
        sys.exit(1)

    existing = set(inspect(db.engine).get_table_names())
    print("\nSync tables:")
    for table in sorted(Base.metadata.tables):
        print(f"  [{'x' if table in existing else ' '}] {table}")


if __name__ == '__main__':
    main()
