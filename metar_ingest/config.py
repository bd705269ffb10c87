"""
Run configuration for the METAR ingest pipeline.

Values come from the environment (loaded from .env by the package initializer)
and can be overridden per run, e.g. by CLI flags or an API request body.
"""
import os
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from metar_ingest.fetch import DEFAULT_TIMEOUT, METAR_URL

TRUTHY = {"1", "true", "yes", "on"}
FALSY = {"0", "false", "no", "off"}


def env_flag(name: str, default: bool) -> bool:
    """Read a boolean environment variable ("true"/"false", "1"/"0", ...)."""
    value = os.environ.get(name)
    if value is None or value.strip() == "":
        return default
    value = value.strip().lower()
    if value in TRUTHY:
        return True
    if value in FALSY:
        return False
    raise ValueError(f"{name} must be a boolean, got {value!r}")


def default_filename(data_dir: str, now: Optional[datetime] = None) -> str:
    """Timestamped download path, e.g. data/2024_01_01_0005.csv."""
    now = now or datetime.now()
    return os.path.join(data_dir, f"{now:%Y_%m_%d_%H%M}.csv")


@dataclass(frozen=True)
class PipelineConfig:
    """
    Immutable parameters of one pipeline run.

    download=True means: fetch the feed into ``filename`` first and delete the
    file after a successful ingest. download=False ingests an existing file and
    leaves it in place.
    """

    db_url: str
    filename: str
    download: bool = True
    url: str = METAR_URL
    timeout: float = DEFAULT_TIMEOUT

    @classmethod
    def from_env(
        cls,
        db_url: Optional[str] = None,
        filename: Optional[str] = None,
        download: Optional[bool] = None,
    ) -> "PipelineConfig":
        """
        Build a config from DATABASE_URL, METAR_FILENAME, METAR_DATA_DIR,
        METAR_DOWNLOAD and METAR_HTTP_TIMEOUT; explicit arguments win.

        Raises:
            RuntimeError: If no database URL is available.
        """
        db_url = db_url or os.environ.get("DATABASE_URL")
        if not db_url:
            raise RuntimeError("DATABASE_URL environment variable is required.")
        filename = filename or os.environ.get("METAR_FILENAME")
        if not filename:
            filename = default_filename(os.environ.get("METAR_DATA_DIR", "data"))
        if download is None:
            download = env_flag("METAR_DOWNLOAD", True)
        timeout = float(os.environ.get("METAR_HTTP_TIMEOUT", DEFAULT_TIMEOUT))
        return cls(db_url=db_url, filename=filename, download=download, timeout=timeout)
