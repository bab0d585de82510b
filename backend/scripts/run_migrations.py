#!/usr/bin/env python
"""Bring the carshop schema to a given alembic revision (head by default)"""
import argparse
import os
import sys
import logging
from alembic import command
from alembic.config import Config

BACKEND_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.append(BACKEND_DIR)

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("migrations")


def alembic_config() -> Config:
    cfg = Config(os.path.join(BACKEND_DIR, 'alembic.ini'))
    # alembic/env.py reads DATABASE_URL and swaps in the synchronous driver
    cfg.set_main_option("script_location", os.path.join(BACKEND_DIR, 'alembic'))
    return cfg


def run_migrations(revision: str = "head") -> bool:
    try:
        logger.info(f"Upgrading carshop schema to {revision}")
        command.upgrade(alembic_config(), revision)
        logger.info("Migrations applied")
        return True
    except Exception as e:
        logger.error(f"Migrations failed: {e}")
        return False


def main():
    parser = argparse.ArgumentParser(description="Apply carshop database migrations")
    parser.add_argument("revision", nargs="?", default="head", help="Target revision (default: head)")
    args = parser.parse_args()

    if not run_migrations(args.revision):
        sys.exit(1)


if __name__ == "__main__":
    main()
