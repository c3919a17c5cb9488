"""Construction of the ledger's storage backend.

The ledger file is chosen in this order: an explicit path (the ``--db-path``
option), the ``BUDGETLEDGER_DB_PATH`` environment variable, then
``~/.budgetledger/ledger.db``.
"""

import logging
import os
from pathlib import Path
from typing import Optional

from budgetledger.database.sqlalchemy_db import SQLAlchemyDatabase

logger = logging.getLogger(__name__)

DB_PATH_ENV = "BUDGETLEDGER_DB_PATH"
LEDGER_DIR_NAME = ".budgetledger"
LEDGER_FILE_NAME = "ledger.db"


def default_ledger_path() -> Path:
    """Location of the ledger file when none is configured."""
    return Path.home() / LEDGER_DIR_NAME / LEDGER_FILE_NAME


def create_sqlite_database(database_path: Optional[str] = None) -> SQLAlchemyDatabase:
    """Open the SQLite file holding purchase entries and budget allocations.

    Missing parent directories are created so a fresh path works on first use.

    Args:
        database_path: Ledger file to use, overriding the environment and
            the default location

    Returns:
        SQLAlchemyDatabase connected to the ledger file
    """
    path = database_path or os.environ.get(DB_PATH_ENV)
    ledger_path = Path(path).expanduser() if path else default_ledger_path()
    ledger_path.parent.mkdir(parents=True, exist_ok=True)

    logger.debug("Using ledger file %s", ledger_path)
    return SQLAlchemyDatabase(f"sqlite:///{ledger_path}")
