"""
Record parsing and shaping for METAR CSV rows.

- parse_record() turns one data line into an Observation (the write path)
- observations_frame() turns stored csv_parts arrays into a Polars DataFrame
  with named, typed columns (the metrics path)
"""
import csv
import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import List, Optional, Sequence, Tuple

import polars as pl

from metar_ingest.errors import RecordError
from metar_ingest.headers import METAR_COLUMNS

STATION_FIELD = 1
TIME_FIELD = 2

# RFC 3339 date-time: full date, "T", full time, optional fraction, Z or numeric offset.
RFC3339_RE = re.compile(
    r"([0-9]{4})-([0-9]{2})-([0-9]{2})T([0-9]{2}):([0-9]{2}):([0-9]{2})(?:\.([0-9]+))?(Z|[+-][0-9]{2}:[0-9]{2})"
)

NUMERIC_COLUMNS = (
    "latitude",
    "longitude",
    "temp_c",
    "dewpoint_c",
    "wind_dir_degrees",
    "wind_speed_kt",
    "wind_gust_kt",
    "visibility_statute_mi",
    "altim_in_hg",
    "sea_level_pressure_mb",
    "three_hr_pressure_tendency_mb",
    "maxT_c",
    "minT_c",
    "maxT24hr_c",
    "minT24hr_c",
    "precip_in",
    "pcp3hr_in",
    "pcp6hr_in",
    "pcp24hr_in",
    "snow_in",
    "vert_vis_ft",
    "elevation_m",
)


@dataclass(frozen=True)
class Observation:
    """One parsed data row of the METAR feed."""

    fields: Tuple[str, ...]
    station: str
    observation_time: datetime
    line: str

    @property
    def csv_parts(self) -> List[str]:
        return list(self.fields)


def parse_timestamp(value: str) -> datetime:
    """
    Parse a strict RFC 3339 timestamp into an aware datetime.

    Accepts e.g. "2024-01-01T00:00:00Z" or "2024-01-01T00:00:00.5-07:00".
    Rejects date-only values, space separators, missing offsets, and
    out-of-range components such as "2024-13-40T00:00:00Z".

    Raises:
        ValueError: If the value is not a valid RFC 3339 date-time.
    """
    match = RFC3339_RE.fullmatch(value)
    if not match:
        raise ValueError(f"not an RFC 3339 timestamp: {value!r}")
    year, month, day, hour, minute, second, fraction, offset = match.groups()
    microsecond = int((fraction or "0")[:6].ljust(6, "0"))
    if offset == "Z":
        tz = timezone.utc
    else:
        sign = -1 if offset[0] == "-" else 1
        hours, minutes = int(offset[1:3]), int(offset[4:6])
        if hours > 23 or minutes > 59:
            raise ValueError(f"offset out of range: {offset!r}")
        tz = timezone(sign * timedelta(hours=hours, minutes=minutes))
    return datetime(
        int(year), int(month), int(day), int(hour), int(minute), int(second), microsecond, tzinfo=tz
    )


def parse_record(line: str) -> Observation:
    """
    Parse a single CSV data line into an Observation.

    Args:
        line (str): One line of the feed, line ending stripped.
    Returns:
        Observation: All fields plus the extracted station and observation time.
    Raises:
        RecordError: If the CSV syntax is invalid, the row is too short, the
            station is empty, or the observation time is not strict RFC 3339.
    """
    try:
        fields = next(csv.reader([line], strict=True), None)
    except csv.Error as e:
        raise RecordError(f"parsing line: {e}", line) from e
    if not fields:
        raise RecordError("parsing line: empty record", line)
    if len(fields) <= TIME_FIELD:
        raise RecordError(f"parsing line: expected at least {TIME_FIELD + 1} fields, got {len(fields)}", line)
    station = fields[STATION_FIELD]
    if not station:
        raise RecordError("empty station id", line)
    raw_time = fields[TIME_FIELD]
    try:
        observation_time = parse_timestamp(raw_time)
    except ValueError as e:
        raise RecordError(f"bad time {raw_time!r}: {e}", line) from e
    return Observation(fields=tuple(fields), station=station, observation_time=observation_time, line=line)


def frame_columns() -> List[str]:
    """
    Unique DataFrame column names for the feed's columns.

    The feed repeats sky_cover/cloud_base_ft_agl four times; those become
    sky_cover_1..sky_cover_4 and cloud_base_ft_agl_1..cloud_base_ft_agl_4.
    """
    totals = {name: METAR_COLUMNS.count(name) for name in METAR_COLUMNS}
    seen: dict = {}
    columns = []
    for name in METAR_COLUMNS:
        if totals[name] > 1:
            seen[name] = seen.get(name, 0) + 1
            columns.append(f"{name}_{seen[name]}")
        else:
            columns.append(name)
    return columns


def observations_frame(rows: Sequence[Sequence[Optional[str]]]) -> pl.DataFrame:
    """
    Build a Polars DataFrame from stored csv_parts arrays.

    Short rows are padded with nulls and extra trailing fields are dropped, so
    rows stored before an upstream column change still line up. Empty strings
    become nulls and numeric columns are cast to Float64 (unparseable values
    become null).

    Args:
        rows: Sequence of csv_parts arrays as stored in the metars table.
    Returns:
        pl.DataFrame: One row per input, columns from frame_columns().
    """
    columns = frame_columns()
    width = len(columns)
    records = []
    for parts in rows:
        padded = [value if value != "" else None for value in list(parts)[:width]]
        padded.extend([None] * (width - len(padded)))
        records.append(padded)
    df = pl.DataFrame(records, schema={name: pl.Utf8 for name in columns}, orient="row")
    return df.with_columns([pl.col(name).cast(pl.Float64, strict=False) for name in NUMERIC_COLUMNS])
