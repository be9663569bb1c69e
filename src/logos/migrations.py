"""Programmatic Alembic migration runner for the CRM schema.

Lets ``logos db-upgrade`` (and deployments) apply migrations without
shelling out to the Alembic CLI.
"""

from __future__ import annotations

import logging
from pathlib import Path

from alembic.config import Config

from alembic import command

logger = logging.getLogger(__name__)

# Root of the alembic directory (sibling to src/)
ALEMBIC_DIR = Path(__file__).resolve().parent.parent.parent / "alembic"

CHAIN = "crm"


def build_alembic_config(db_url: str) -> Config:
    """Build an Alembic Config pointing at the CRM version directory."""
    config = Config(str(ALEMBIC_DIR / "alembic.ini"))
    config.set_main_option("script_location", str(ALEMBIC_DIR))
    # Alembic Config uses configparser interpolation; percent-encoded DB URLs
    # must escape '%' as '%%'.
    config.set_main_option("sqlalchemy.url", db_url.replace("%", "%%"))
    config.set_main_option("version_locations", str(ALEMBIC_DIR / "versions" / CHAIN))
    return config


def run_migrations(db_url: str, revision: str = "head") -> None:
    """Upgrade the database at *db_url* to *revision*."""
    logger.info("Running migration chain %s to %s", CHAIN, revision)
    target = f"{CHAIN}@{revision}" if revision == "head" else revision
    command.upgrade(build_alembic_config(db_url), target)
