"""
METAR Pipeline driver for the METAR ingest project.

This module sequences one run:
- Optionally download the METAR cache into the target file
- Ingest the file into Postgres (header check, parse, upsert, one transaction)
- Optionally delete the downloaded file once its rows are committed

Usage hints:
- CLI: python -m metar_ingest.pipeline --dburl ... --filename ... [--no-download]
- Flags default to DATABASE_URL, METAR_FILENAME/METAR_DATA_DIR, METAR_DOWNLOAD (see .env.example)
- Also triggered through the FastAPI /v1/run-pipeline endpoint by Airflow
- Any failure ends the run; the local file is kept for inspection
"""
import argparse
import logging
import os
import sys
from typing import List, Optional

import psycopg

from metar_ingest import db, fetch, ingest
from metar_ingest.config import PipelineConfig
from metar_ingest.errors import CleanupError, FetchError, MetarPipelineError

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


class MetarPipeline:
    """
    Pipeline to fetch, validate, and store one METAR cache file.
    """
    def __init__(self, config: PipelineConfig) -> None:
        """
        Args:
            config (PipelineConfig): Immutable run parameters
        """
        self.config = config

    def run(self) -> int:
        """
        Run the pipeline once.

        Returns:
            int: Number of observations upserted
        Raises:
            FetchError: Download failed; nothing was ingested
            OperationalError: Database not reachable
            MetarPipelineError: Ingest or cleanup failed
        """
        config = self.config
        if config.download:
            directory = os.path.dirname(config.filename)
            if directory:
                try:
                    os.makedirs(directory, exist_ok=True)
                except OSError as e:
                    raise FetchError(f"error creating directory {directory!r}: {e}") from e
            fetch.download_file(config.url, config.filename, timeout=config.timeout)

        with db.get_connection(config.db_url) as conn:
            db.create_schema(conn)
            count = ingest.ingest_file(conn, config.filename)

        if config.download:
            try:
                os.remove(config.filename)
            except OSError as e:
                raise CleanupError(f"removing file {config.filename!r}: {e}") from e
            logger.info("Removed %s", config.filename)
        return count


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Download the aviationweather.gov METAR cache and upsert it into PostgreSQL.",
    )
    parser.add_argument("--dburl", help="URL or connection string to the database. Default: $DATABASE_URL.")
    parser.add_argument("--filename", help="File to read from (and download to). Default: $METAR_FILENAME.")
    parser.add_argument(
        "--download",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="If set, the file is downloaded first and deleted on success. Default: $METAR_DOWNLOAD or true.",
    )
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> None:
    """
    Entry point for a scheduled run. Exits with status 1 on any failure.
    """
    logging.basicConfig(level=os.environ.get("LOG_LEVEL", "INFO").upper(), format=LOG_FORMAT)
    args = parse_args(argv)
    try:
        config = PipelineConfig.from_env(db_url=args.dburl, filename=args.filename, download=args.download)
        count = MetarPipeline(config).run()
    except (MetarPipelineError, psycopg.Error, RuntimeError, ValueError) as e:
        logger.error("METAR pipeline failed: %s", e, exc_info=True)
        sys.exit(1)
    logger.info("METAR pipeline finished: %d observations stored", count)


if __name__ == "__main__":
    main()
