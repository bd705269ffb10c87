"""
Database utilities for the METAR ingest pipeline.

This module provides functions to:
- Connect to the PostgreSQL database (psycopg3)
- Create the metars table if it is missing
- Upsert one parsed observation inside the caller's transaction
- Check database health (for API health checks)

Usage hints:
- Expects a valid PostgreSQL DATABASE_URL (see .env.example)
- The full CSV row is stored as a TEXT[] so upstream column changes need no migration
- Upserts use ON CONFLICT (station, time) for idempotent re-ingestion
- upsert_observation() never commits; transaction scope belongs to the ingestor
"""
import logging

import psycopg
from psycopg import Connection, Cursor, OperationalError

from metar_ingest.errors import WriteError
from metar_ingest.transform import Observation

logger = logging.getLogger(__name__)

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS metars (
    station TEXT NOT NULL,
    time TIMESTAMPTZ NOT NULL,
    csv_parts TEXT[] NOT NULL,
    PRIMARY KEY (station, time)
);
"""

UPSERT_SQL = """
INSERT INTO metars (station, time, csv_parts)
VALUES (%(station)s, %(time)s, %(csv_parts)s)
ON CONFLICT (station, time) DO UPDATE SET csv_parts = EXCLUDED.csv_parts;
"""


def get_connection(db_url: str) -> Connection:
    """
    Get a psycopg3 connection to the database.

    Args:
        db_url (str): PostgreSQL connection string (see .env.example)
    Returns:
        psycopg.Connection: Active database connection
    Raises:
        OperationalError: If connection fails, with diagnostics for debugging
    """
    try:
        return psycopg.connect(db_url)
    except OperationalError as e:
        diag = getattr(e, 'diag', None)
        msg = f"Could not connect to database: {e}"
        if diag:
            # Add extra diagnostic info if available (SQLSTATE, message)
            msg += f" | SQLSTATE: {getattr(diag, 'sqlstate', None)} | Message: {getattr(diag, 'message_primary', None)}"
        raise OperationalError(msg) from e


def create_schema(conn: Connection) -> None:
    """
    Create the metars table if it does not exist.
    Idempotent: safe to call on every run.

    Args:
        conn (psycopg.Connection): Active database connection
    """
    with conn.cursor() as cur:
        cur.execute(SCHEMA_SQL)
    conn.commit()


def upsert_observation(cur: Cursor, observation: Observation) -> None:
    """
    Insert one observation, replacing csv_parts if (station, time) already exists.

    Runs on the caller's cursor and never commits or rolls back.

    Args:
        cur (psycopg.Cursor): Cursor inside the ingest transaction
        observation (Observation): Parsed data row
    Raises:
        WriteError: If the statement fails, naming the raw line
    """
    try:
        cur.execute(
            UPSERT_SQL,
            {
                "station": observation.station,
                "time": observation.observation_time,
                "csv_parts": observation.csv_parts,
            },
        )
    except psycopg.Error as e:
        raise WriteError(f"writing line {observation.line!r}: {e}", observation.line) from e


def ping(conn: Connection) -> None:
    """Run a trivial query; raises if the database is not usable."""
    with conn.cursor() as cur:
        cur.execute("SELECT 1;")
        cur.fetchone()
