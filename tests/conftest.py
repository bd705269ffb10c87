from contextlib import contextmanager

import psycopg
import pytest

from metar_ingest.headers import METAR_COLUMNS

HEADER_LINES = [
    "No errors",
    "No warnings",
    "13 ms",
    "data source=metars",
    "2 results",
    ",".join(METAR_COLUMNS),
]


def make_row(station="KSEA", time="2024-01-01T00:00:00Z", temp="8.0", category="VFR", raw=None):
    """Build one 44-column METAR CSV line."""
    fields = [""] * len(METAR_COLUMNS)
    fields[0] = raw or f"{station} 010000Z 18005KT 10SM FEW050 08/03 A3012"
    fields[1] = station
    fields[2] = time
    fields[3] = "47.45"
    fields[4] = "-122.31"
    fields[5] = temp
    fields[6] = "3.0"
    fields[7] = "180"
    fields[8] = "5"
    fields[10] = "10.0"
    fields[11] = "30.12"
    fields[22] = "FEW"
    fields[23] = "5000"
    fields[30] = category
    fields[42] = "METAR"
    fields[43] = "130.0"
    return ",".join(fields)


def write_feed(path, rows, header=None, newline="\n"):
    lines = list(HEADER_LINES if header is None else header) + list(rows)
    path.write_text(newline.join(lines) + newline, encoding="utf-8")
    return str(path)


class FakeCursor:
    def __init__(self, conn):
        self.conn = conn
        self.results = []

    def execute(self, sql, params=None):
        self.conn.executed.append((sql, params))
        if "INSERT INTO metars" not in sql:
            return
        if params["station"] == self.conn.fail_station:
            raise psycopg.OperationalError("server closed the connection unexpectedly")
        target = self.conn.pending if self.conn.pending is not None else self.conn.rows
        target[(params["station"], params["time"])] = list(params["csv_parts"])

    def fetchone(self):
        return (1,)

    def fetchall(self):
        return self.results

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        pass


class FakeConn:
    """
    In-memory stand-in for a psycopg connection holding the metars table.

    rows maps (station, time) -> csv_parts. transaction() stages writes and
    publishes them only if the block exits cleanly.
    """

    def __init__(self):
        self.rows = {}
        self.pending = None
        self.executed = []
        self.commits = 0
        self.rollbacks = 0
        self.fail_station = None
        self.fail_commit = False
        self.closed = False

    @contextmanager
    def transaction(self):
        self.pending = dict(self.rows)
        try:
            yield self
            if self.fail_commit:
                raise psycopg.OperationalError("could not commit")
            self.rows = self.pending
            self.commits += 1
        except BaseException:
            self.rollbacks += 1
            raise
        finally:
            self.pending = None

    def cursor(self):
        return FakeCursor(self)

    def commit(self):
        pass

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.closed = True


@pytest.fixture
def conn():
    return FakeConn()
