#!/usr/bin/env python3
"""
Initialize the document catalog database.

Creates the identity_documents table together with its indexes, including
the partial unique index that allows one ACTIVE document per owner and slot.

Usage:
    python scripts/init_database.py            # same as 'init'
    python scripts/init_database.py status
    python scripts/init_database.py drop

    # With environment file
    ENV_FILE=.env.production python scripts/init_database.py

Environment Variables:
    DATABASE_URL - Full async connection string
    DATABASE_HOST, DATABASE_PORT, DATABASE_NAME, DATABASE_USER, DATABASE_PASSWORD
        - Used to build a postgresql+asyncpg URL when DATABASE_URL is unset
"""

import asyncio
import logging
import os
import sys
from pathlib import Path

# Configure logging for CLI output
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

# Load environment variables
from dotenv import load_dotenv

env_file = os.environ.get("ENV_FILE", ".env")
env_path = project_root / env_file
if env_path.exists():
    load_dotenv(env_path)
    logger.info(f"Loaded environment from: {env_path}")
else:
    logger.warning(f"No environment file found at: {env_path}")
    logger.info("Using system environment variables")


def _database():
    from app.core.config import settings
    from app.core.db_client import DatabaseManager

    return DatabaseManager.from_settings(settings)


async def init_tables():
    """Create all catalog tables."""
    db = _database()

    logger.info("=== Catalog Database Initialization ===")

    logger.info("Testing database connection...")
    if not await db.test_connection():
        logger.error("Could not connect to database")
        logger.error("Please check DATABASE_URL or the DATABASE_* settings")
        sys.exit(1)

    logger.info("Database connection successful!")

    logger.info("Creating tables...")
    try:
        await db.create_tables()
    except Exception as e:
        logger.error(f"Failed to create tables: {e}")
        sys.exit(1)

    logger.info("Tables present:")
    for table_name in await db.table_names():
        logger.info(f"  - {table_name}")

    await db.close()
    logger.info("=== Initialization Complete ===")


async def drop_tables():
    """Drop all tables (use with caution!)."""
    db = _database()

    logger.warning("=== WARNING: Dropping All Tables ===")

    confirm = input("Are you sure you want to drop all tables? (type 'yes' to confirm): ")
    if confirm.lower() != "yes":
        logger.info("Aborted.")
        return

    await db.drop_tables()
    logger.info("All tables dropped.")
    await db.close()


async def show_status():
    """Show table information and document counts per state."""
    from sqlalchemy import func, select

    from app.models.orm import IdentityDocumentModel

    db = _database()

    logger.info("=== Database Status ===")

    if not await db.test_connection():
        logger.error("Could not connect to database")
        sys.exit(1)

    tables = await db.table_names()
    if IdentityDocumentModel.__tablename__ not in tables:
        logger.info("No catalog table found. Run 'init' to create tables.")
        await db.close()
        return

    async with db.session_factory() as session:
        result = await session.execute(
            select(IdentityDocumentModel.state, func.count())
            .group_by(IdentityDocumentModel.state)
            .order_by(IdentityDocumentModel.state)
        )
        counts = result.all()

    logger.info(f"Table {IdentityDocumentModel.__tablename__}:")
    if not counts:
        logger.info("  (empty)")
    for state, count in counts:
        logger.info(f"  - {state}: {count} rows")

    await db.close()


def main():
    """Main entry point."""
    import argparse

    parser = argparse.ArgumentParser(
        description="Initialize the catalog database for the Identity Document Vault"
    )
    parser.add_argument(
        "command",
        nargs="?",
        default="init",
        choices=["init", "drop", "status"],
        help="Command to run (default: init)"
    )

    args = parser.parse_args()

    if args.command == "init":
        asyncio.run(init_tables())
    elif args.command == "drop":
        asyncio.run(drop_tables())
    elif args.command == "status":
        asyncio.run(show_status())


if __name__ == "__main__":
    main()
