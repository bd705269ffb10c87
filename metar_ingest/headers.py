"""
Header block validation for the aviationweather.gov METAR cache file.

The feed starts with five status lines followed by the CSV column header:

    No errors
    No warnings
    12 ms
    data source=metars
    4711 results
    raw_text,station_id,observation_time,...

Anything else means the query upstream failed or the column layout changed,
and the payload must not be trusted.
"""
import re
from typing import Iterator, Pattern, Sequence

from metar_ingest.errors import HeaderError, HeaderTruncatedError

METAR_COLUMNS = (
    "raw_text",
    "station_id",
    "observation_time",
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
    "corrected",
    "auto",
    "auto_station",
    "maintenance_indicator_on",
    "no_signal",
    "lightning_sensor_off",
    "freezing_rain_sensor_off",
    "present_weather_sensor_off",
    "wx_string",
    "sky_cover",
    "cloud_base_ft_agl",
    "sky_cover",
    "cloud_base_ft_agl",
    "sky_cover",
    "cloud_base_ft_agl",
    "sky_cover",
    "cloud_base_ft_agl",
    "flight_category",
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
    "metar_type",
    "elevation_m",
)

METAR_HEADERS = [
    re.compile(r"No errors"),
    re.compile(r"No warnings"),
    re.compile(r"[0-9]+ ms"),
    re.compile(r"data source=metars"),
    re.compile(r"[0-9]+ results"),
    re.compile(re.escape(",".join(METAR_COLUMNS))),
]


class HeaderValidator:
    """
    Ordered state machine over a sequence of header patterns.

    ``state`` is the index of the next pattern to match. Each fed line must
    fully match that pattern, after which the state advances by one. The
    validator is complete once every pattern has been consumed.
    """

    def __init__(self, patterns: Sequence[Pattern[str]]) -> None:
        self.patterns = list(patterns)
        self.state = 0

    @property
    def complete(self) -> bool:
        return self.state >= len(self.patterns)

    @property
    def expected(self) -> Pattern[str]:
        return self.patterns[self.state]

    def feed(self, line: str) -> None:
        """
        Match one line against the current pattern and advance.

        Raises:
            HeaderError: If the line does not match, or all patterns are already consumed.
        """
        if self.complete:
            raise HeaderError(f"unexpected header line {line!r}: all header lines already matched")
        pattern = self.expected
        if not pattern.fullmatch(line):
            raise HeaderError(f"header line {self.state + 1}: expected {pattern.pattern!r}, got {line!r}")
        self.state += 1

    def finish(self) -> None:
        """
        Raises:
            HeaderTruncatedError: If input ended before all patterns were matched.
        """
        if not self.complete:
            raise HeaderTruncatedError(
                f"unexpected end of input while looking for {self.expected.pattern!r} "
                f"(header line {self.state + 1} of {len(self.patterns)})"
            )


def check_headers(patterns: Sequence[Pattern[str]], lines: Iterator[str]) -> None:
    """
    Consume exactly one line from ``lines`` per pattern and validate it.

    Args:
        patterns: Expected header patterns, in order.
        lines: Iterator of lines with line endings already stripped.
    Raises:
        HeaderTruncatedError: If ``lines`` runs out first.
        HeaderError: On the first mismatching line.
    """
    validator = HeaderValidator(patterns)
    while not validator.complete:
        line = next(lines, None)
        if line is None:
            validator.finish()
        validator.feed(line)
