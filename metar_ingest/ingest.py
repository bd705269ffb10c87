"""
File ingestion: header check, then every data line parsed and upserted in one transaction.

A file is all-or-nothing with respect to the store. Any failure after the
transaction has begun rolls it back and propagates; the file itself is never
touched.
"""
import logging
from typing import Iterator, Pattern, Sequence, TextIO

import psycopg
from psycopg import Connection

from metar_ingest import db
from metar_ingest.errors import IngestError, RecordError, StoreError, WriteError
from metar_ingest.headers import METAR_HEADERS, check_headers
from metar_ingest.transform import parse_record

logger = logging.getLogger(__name__)


def _read_lines(f: TextIO, filename: str) -> Iterator[str]:
    # Lines split on \n only; one trailing \r is dropped. I/O and decode failures become IngestError.
    try:
        for line in f:
            if line.endswith("\n"):
                line = line[:-1]
            if line.endswith("\r"):
                line = line[:-1]
            yield line
    except (OSError, UnicodeDecodeError) as e:
        raise IngestError(f"reading file {filename!r}: {e}") from e


def ingest_file(conn: Connection, filename: str, patterns: Sequence[Pattern[str]] = METAR_HEADERS) -> int:
    """
    Validate and store one METAR CSV file.

    Args:
        conn (psycopg.Connection): Open database connection
        filename (str): Path to the decompressed CSV file
        patterns: Expected header patterns (defaults to the METAR feed header)
    Returns:
        int: Number of rows upserted
    Raises:
        IngestError: File could not be opened or read
        HeaderError: Header block missing or mismatched
        RecordError: A data line could not be parsed (transaction rolled back)
        StoreError: A write, begin or commit failed (transaction rolled back)
    """
    try:
        f = open(filename, encoding="utf-8", newline="\n")
    except OSError as e:
        raise IngestError(f"opening file {filename!r}: {e}") from e

    with f:
        lines = _read_lines(f, filename)
        check_headers(patterns, lines)
        logger.info("Header block of %s is valid", filename)

        count = 0
        lineno = len(patterns)
        try:
            with conn.transaction():
                with conn.cursor() as cur:
                    for line in lines:
                        lineno += 1
                        observation = parse_record(line)
                        db.upsert_observation(cur, observation)
                        count += 1
        except RecordError as e:
            raise RecordError(f"line {lineno} {e.line!r}: {e}", e.line) from e
        except WriteError as e:
            raise WriteError(f"line {lineno}: {e}", e.line) from e
        except psycopg.Error as e:
            raise StoreError(f"transaction on {filename!r} failed: {e}") from e

    logger.info("Upserted %d observations from %s", count, filename)
    return count
