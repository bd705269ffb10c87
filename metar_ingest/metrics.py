"""
Metrics module for the METAR ingest project.

Provides read-side analytics over the metars table:
- Latest stored observation per station, decoded into named columns
- Observation counts per flight category over a recent window

Each function expects an open database connection. Stored csv_parts arrays are
decoded with transform.observations_frame() so queries stay independent of
the upstream column layout.
"""

import polars as pl
from psycopg import Connection

from metar_ingest.transform import observations_frame

LATEST_COLUMNS = [
    "station_id",
    "observation_time",
    "temp_c",
    "dewpoint_c",
    "wind_dir_degrees",
    "wind_speed_kt",
    "visibility_statute_mi",
    "altim_in_hg",
    "flight_category",
    "raw_text",
]


def get_latest_observations(conn: Connection) -> list[dict]:
    """
    Return the newest stored observation for every station.

    Args:
        conn (Connection): psycopg database connection
    Returns:
        List[dict]: One dict per station with the LATEST_COLUMNS fields, ordered by station
    """
    sql = """
    SELECT DISTINCT ON (station) station, time, csv_parts
    FROM metars
    ORDER BY station, time DESC;
    """
    with conn.cursor() as cur:
        cur.execute(sql)
        rows = cur.fetchall()
    df = observations_frame([row[2] for row in rows])
    return df.select(LATEST_COLUMNS).to_dicts()


def get_flight_category_counts(conn: Connection, hours: int = 24) -> list[dict]:
    """
    Count observations per flight category (VFR, MVFR, IFR, LIFR) in the last ``hours`` hours.

    Args:
        conn (Connection): psycopg database connection
        hours (int): Size of the window ending now
    Returns:
        List[dict]: {"flight_category", "observations", "stations"} per category, most frequent first.
            Observations without a category are reported under flight_category None.
    """
    sql = """
    SELECT csv_parts
    FROM metars
    WHERE time >= now() - make_interval(hours => %s);
    """
    with conn.cursor() as cur:
        cur.execute(sql, (hours,))
        rows = cur.fetchall()
    df = observations_frame([row[0] for row in rows])
    counts = (
        df.group_by("flight_category")
        .agg(
            pl.len().alias("observations"),
            pl.col("station_id").n_unique().alias("stations"),
        )
        .sort(["observations", "flight_category"], descending=[True, False], nulls_last=True)
    )
    return counts.to_dicts()
