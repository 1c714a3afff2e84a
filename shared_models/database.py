# PostgreSQL access shared by both services.
# The Statistics API only reads; the Device Registration API owns all writes.

import logging
import os

import psycopg2

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Configuration — all values come from environment variables, never hardcoded
# ---------------------------------------------------------------------------

DB_HOST     = os.getenv("DB_HOST", "localhost")
DB_PORT     = os.getenv("DB_PORT", "5432")
DB_NAME     = os.getenv("DB_NAME", "devicedb")
DB_USER     = os.getenv("DB_USER", "postgres")
DB_PASSWORD = os.getenv("DB_PASSWORD", "postgres")

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

SCHEMA_STATEMENTS = (
    """
    CREATE TABLE IF NOT EXISTS device_registrations (
        id          BIGSERIAL PRIMARY KEY,
        user_key    VARCHAR(255) NOT NULL,
        device_type VARCHAR(50)  NOT NULL
                    CHECK (device_type IN ('iOS', 'Android', 'Watch', 'TV')),
        created_at  TIMESTAMP    NOT NULL DEFAULT now(),
        updated_at  TIMESTAMP    NOT NULL DEFAULT now(),
        CONSTRAINT uk_user_device UNIQUE (user_key, device_type)
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_device_type ON device_registrations (device_type)",
    "CREATE INDEX IF NOT EXISTS idx_user_key ON device_registrations (user_key)",
    "CREATE INDEX IF NOT EXISTS idx_created_at ON device_registrations (created_at)",
)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def get_db_connection():
    """
    Opens a new database connection using the env vars.
    Callers open one per request and close it in a finally block
    to avoid holding idle connections.
    """
    return psycopg2.connect(
        host=DB_HOST,
        port=DB_PORT,
        dbname=DB_NAME,
        user=DB_USER,
        password=DB_PASSWORD
    )


def init_schema():
    """Creates the table, its unique constraint and indexes if missing."""
    conn = None
    try:
        conn = get_db_connection()
        cursor = conn.cursor()
        for statement in SCHEMA_STATEMENTS:
            cursor.execute(statement)
        conn.commit()
        logger.info("device_registrations schema is in place")

    except Exception:
        if conn:
            conn.rollback()
        raise

    finally:
        if conn:
            conn.close()
