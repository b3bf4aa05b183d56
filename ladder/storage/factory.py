"""
Storage backend selection from configuration.
"""

import logging
import os

from dotenv import load_dotenv

from ladder.storage.base import Storage

load_dotenv()

logger = logging.getLogger(__name__)

DEFAULT_DOCUMENT_STORE_PATH = "ladder_db.json"


def build_storage() -> Storage:
    """
    Build the backend named by STORAGE_BACKEND ("sql" or "document").

    The relational backend uses the engine configured from DATABASE_URL; the
    document backend keeps its state in DOCUMENT_STORE_PATH.
    """
    backend = os.getenv("STORAGE_BACKEND", "sql").strip().lower()
    if backend == "document":
        from ladder.storage.document_storage import DocumentStorage

        path = os.getenv("DOCUMENT_STORE_PATH", DEFAULT_DOCUMENT_STORE_PATH)
        logger.info(f"Using document storage at {path}")
        return DocumentStorage(path)
    if backend == "sql":
        from ladder.database import db
        from ladder.storage.sql_storage import SqlStorage

        logger.info("Using relational storage")
        return SqlStorage(db.AsyncSessionLocal, engine=db.engine)
    raise ValueError(f"Unknown STORAGE_BACKEND: {backend!r}")
