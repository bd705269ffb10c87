from datetime import datetime, timezone

import pytest

from conftest import HEADER_LINES, make_row, write_feed
from metar_ingest.errors import (
    HeaderError,
    HeaderTruncatedError,
    IngestError,
    RecordError,
    StoreError,
    WriteError,
)
from metar_ingest.ingest import ingest_file
from metar_ingest.transform import parse_record

KSEA_ROW = make_row("KSEA", "2024-01-01T00:00:00Z")
KPDX_ROW = make_row("KPDX", "2024-01-01T00:05:00Z", temp="6.0", category="MVFR")
T0 = datetime(2024, 1, 1, 0, 0, tzinfo=timezone.utc)
T5 = datetime(2024, 1, 1, 0, 5, tzinfo=timezone.utc)


def test_two_row_file_end_to_end(conn, tmp_path):
    path = write_feed(tmp_path / "metars.csv", [KSEA_ROW, KPDX_ROW])
    assert ingest_file(conn, path) == 2
    assert conn.rows == {
        ("KSEA", T0): parse_record(KSEA_ROW).csv_parts,
        ("KPDX", T5): parse_record(KPDX_ROW).csv_parts,
    }
    assert conn.commits == 1
    assert conn.rollbacks == 0


def test_ingest_is_idempotent(conn, tmp_path):
    path = write_feed(tmp_path / "metars.csv", [KSEA_ROW, KPDX_ROW])
    ingest_file(conn, path)
    once = dict(conn.rows)
    ingest_file(conn, path)
    assert conn.rows == once
    assert len(conn.rows) == 2


def test_second_file_replaces_same_key(conn, tmp_path):
    first = make_row("KSEA", "2024-01-01T00:00:00Z", temp="1.0", raw="KSEA 010000Z 00000KT 01/M01")
    second = make_row("KSEA", "2024-01-01T00:00:00Z", temp="2.0", raw="KSEA 010000Z COR 00000KT 02/M01")
    ingest_file(conn, write_feed(tmp_path / "a.csv", [first]))
    ingest_file(conn, write_feed(tmp_path / "b.csv", [second]))
    assert conn.rows == {("KSEA", T0): parse_record(second).csv_parts}


def test_record_error_rolls_back_whole_file(conn, tmp_path):
    ingest_file(conn, write_feed(tmp_path / "seed.csv", [KSEA_ROW]))
    before = dict(conn.rows)
    bad = make_row("KBFI", "2024-13-40")
    path = write_feed(tmp_path / "metars.csv", [KPDX_ROW, bad, make_row("KBLI", "2024-01-01T00:10:00Z")])
    with pytest.raises(RecordError) as exc:
        ingest_file(conn, path)
    assert conn.rows == before
    assert conn.rollbacks == 1
    assert "line 8" in str(exc.value)
    assert "2024-13-40" in str(exc.value)
    assert exc.value.line == bad


def test_write_error_rolls_back_whole_file(conn, tmp_path):
    conn.fail_station = "KPDX"
    path = write_feed(tmp_path / "metars.csv", [KSEA_ROW, KPDX_ROW])
    with pytest.raises(WriteError) as exc:
        ingest_file(conn, path)
    assert conn.rows == {}
    assert exc.value.line == KPDX_ROW
    assert "line 8" in str(exc.value)


def test_commit_failure_is_store_error(conn, tmp_path):
    conn.fail_commit = True
    path = write_feed(tmp_path / "metars.csv", [KSEA_ROW, KPDX_ROW])
    with pytest.raises(StoreError):
        ingest_file(conn, path)
    assert conn.rows == {}


@pytest.mark.parametrize("missing", range(6))
def test_missing_header_line_stores_nothing(conn, tmp_path, missing):
    header = HEADER_LINES[:missing] + HEADER_LINES[missing + 1:]
    path = write_feed(tmp_path / "metars.csv", [KSEA_ROW, KPDX_ROW], header=header)
    with pytest.raises(HeaderError):
        ingest_file(conn, path)
    assert conn.rows == {}
    assert conn.commits == 0


def test_altered_header_line_stores_nothing(conn, tmp_path):
    header = list(HEADER_LINES)
    header[4] = "5result"
    path = write_feed(tmp_path / "metars.csv", [KSEA_ROW], header=header)
    with pytest.raises(HeaderError, match="5result"):
        ingest_file(conn, path)
    assert conn.rows == {}


def test_short_file_is_truncated_header(conn, tmp_path):
    path = write_feed(tmp_path / "metars.csv", [], header=HEADER_LINES[:3])
    with pytest.raises(HeaderTruncatedError):
        ingest_file(conn, path)


def test_header_only_file_commits_nothing(conn, tmp_path):
    path = write_feed(tmp_path / "metars.csv", [])
    assert ingest_file(conn, path) == 0
    assert conn.rows == {}
    assert conn.commits == 1


def test_crlf_line_endings(conn, tmp_path):
    path = write_feed(tmp_path / "metars.csv", [KSEA_ROW, KPDX_ROW], newline="\r\n")
    assert ingest_file(conn, path) == 2
    assert conn.rows[("KPDX", T5)][-1] == "130.0"


def test_blank_data_line_aborts(conn, tmp_path):
    path = write_feed(tmp_path / "metars.csv", [KSEA_ROW, "", KPDX_ROW])
    with pytest.raises(RecordError):
        ingest_file(conn, path)
    assert conn.rows == {}


def test_missing_file(conn, tmp_path):
    with pytest.raises(IngestError, match="opening file"):
        ingest_file(conn, str(tmp_path / "nope.csv"))


def test_undecodable_file(conn, tmp_path):
    path = tmp_path / "metars.csv"
    path.write_bytes(("\n".join(HEADER_LINES) + "\n").encode() + b"\xff\xfe,KSEA\n")
    with pytest.raises(IngestError, match="reading file"):
        ingest_file(conn, str(path))
    assert conn.rows == {}


def test_file_is_left_in_place(conn, tmp_path):
    path = write_feed(tmp_path / "metars.csv", [KSEA_ROW])
    content = (tmp_path / "metars.csv").read_text()
    ingest_file(conn, path)
    assert (tmp_path / "metars.csv").read_text() == content


def test_lone_carriage_return_stays_inside_record(conn, tmp_path):
    row = make_row("KSEA", "2024-01-01T00:00:00Z")
    line = '"KSEA 010000Z\rRMK AO2"' + row[row.index(","):]
    path = write_feed(tmp_path / "metars.csv", [line, KPDX_ROW])
    assert ingest_file(conn, path) == 2
    assert conn.rows[("KSEA", T0)][0] == "KSEA 010000Z\rRMK AO2"
