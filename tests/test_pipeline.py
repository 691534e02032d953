from __future__ import annotations

import pytest

from capture_netcdf.config import ConvertOptions
from capture_netcdf.errors import InputValidationError, MetadataError, SchemaError, SchemaMismatchError
from capture_netcdf.pipeline import convert
from capture_netcdf.store.writer import partial_path
from capture_netcdf.utils.io import load_capture_frame, load_samples, store_summary

from conftest import HEADER_V2, HEADER_V3, v2_line, v3_line


def _options(*inputs, **kwargs):
    kwargs.setdefault("sample_width", 16)
    return ConvertOptions(inputs=list(inputs), **kwargs)


def test_counts_written_and_rejected_lines(write_capture):
    path = write_capture(
        "session.csv",
        HEADER_V2,
        [
            v2_line(gps_time=1),
            "",
            "# operator note",
            v2_line(gps_time=2, checksum=99),
            "garbage",
            v2_line(gps_time=3, samples=(4, 5, 6)),
            v2_line(gps_time=4, checksum=1),
        ],
    )
    report = convert(_options(path))

    assert report.output == path.with_name("session.csv.nc")
    assert report.schema_version == 2
    assert report.records_written == 2
    assert report.errors == 3
    assert report.errors_by_kind == {"checksum": 2, "coercion": 1}
    assert report.lines_total == 3 + 7

    frame = load_capture_frame(report.output)
    assert len(frame) == 2
    assert list(frame["gps_time"]) == [1, 3]
    assert list(frame["parsing_errors"]) == [0, 2]
    assert load_samples(report.output, 1).tolist() == [4, 5, 6]

    attrs = store_summary(report.output)["attributes"]
    assert attrs["parsing_errors_total"] == 3
    assert attrs["trailing_parsing_errors"] == 1
    assert attrs["version"] == "2"


def test_headerless_file_is_schema_v1(write_capture):
    path = write_capture("legacy.csv", "", ["0.5,1,2,3", "1.0,4,4"])
    report = convert(_options(path))
    assert report.schema_version == 1
    assert report.records_written == 2
    assert load_samples(report.output, 0).tolist() == [1, 2]
    assert store_summary(report.output)["attributes"]["original_schema_version"] == 1


def test_multiple_files_continue_time_index(write_capture, tmp_path):
    a = write_capture("a.csv", HEADER_V3, [v3_line(computer_time=1.0), v3_line(computer_time=2.0)])
    b = write_capture("b.csv", HEADER_V3, [v3_line(computer_time=3.0, checksum=0), v3_line(computer_time=4.0)])
    out = tmp_path / "merged.nc"
    report = convert(_options(a, b, output=out))

    assert report.records_written == 3
    assert report.files == [a, b]
    frame = load_capture_frame(out)
    assert frame["computer_time"].tolist() == pytest.approx([1.0, 2.0, 4.0])
    assert list(frame["parsing_errors"]) == [0, 0, 1]
    assert store_summary(out)["attributes"]["station_id"] == "north-ridge"


def test_schema_mismatch_aborts_before_output(write_capture, tmp_path):
    a = write_capture("a.csv", HEADER_V2, [v2_line()])
    b = write_capture("b.csv", HEADER_V3, [v3_line()])
    out = tmp_path / "never.nc"
    with pytest.raises(SchemaMismatchError):
        convert(_options(a, b, output=out))
    assert not out.exists()
    assert not partial_path(out).exists()


def test_explicit_version_overrides_detection(write_capture):
    path = write_capture("v2data.csv", "", [v2_line()])
    report = convert(_options(path, schema_version=2))
    assert report.schema_version == 2
    assert report.records_written == 1


def test_unsupported_version_is_fatal(write_capture, tmp_path):
    path = write_capture("x.csv", "## BEGIN METADATA ##\n#VERSION 7\n## END METADATA ##\n", [v2_line()])
    with pytest.raises(SchemaError):
        convert(_options(path, output=tmp_path / "x.nc"))
    assert not (tmp_path / "x.nc").exists()


def test_missing_input(tmp_path):
    with pytest.raises(InputValidationError):
        convert(_options(tmp_path / "nope.csv"))


def test_wrong_extension(write_capture):
    path = write_capture("session.txt", HEADER_V2, [v2_line()])
    with pytest.raises(InputValidationError):
        convert(_options(path))


def test_extension_check_is_case_insensitive(write_capture):
    path = write_capture("SESSION.CSV", HEADER_V2, [v2_line()])
    assert convert(_options(path)).records_written == 1


def test_corrupt_header_is_fatal(write_capture):
    path = write_capture("bad.csv", "## END METADATA ##\n", [v2_line()])
    with pytest.raises(MetadataError):
        convert(_options(path))
    assert not path.with_name("bad.csv.nc").exists()


def test_scaffold_writes_no_records(write_capture):
    path = write_capture("s.csv", HEADER_V3, [v3_line(), v3_line()])
    report = convert(_options(path, scaffold=True, compression=5))
    assert report.scaffold
    assert report.records_written == 0
    summary = store_summary(report.output)
    assert summary["dimensions"]["time"]["size"] == 0
    assert summary["dimensions"]["sample"]["size"] == 16
    assert "samples" in summary["variables"]


def test_scaffold_is_idempotent(write_capture, tmp_path):
    path = write_capture("s.csv", HEADER_V3, [v3_line()])
    first = convert(_options(path, scaffold=True, output=tmp_path / "one.nc"))
    second = convert(_options(path, scaffold=True, output=tmp_path / "two.nc"))
    assert store_summary(first.output) == store_summary(second.output)


def test_errors_only_file_still_produces_store(write_capture):
    path = write_capture("bad_lines.csv", HEADER_V2, ["1,2,3", v2_line(checksum=5)])
    report = convert(_options(path))
    assert report.records_written == 0
    assert report.errors == 2
    assert report.output.exists()
    assert store_summary(report.output)["attributes"]["trailing_parsing_errors"] == 2


def test_tolerated_header_lines_are_not_decode_errors(write_capture):
    header = (
        "## BEGIN METADATA ##\n"
        "#VERSION 2\n"
        "no hash here\n"
        "1,2,3\n"
        "## END METADATA ##\n"
    )
    path = write_capture("noisy_header.csv", header, [v2_line()])
    report = convert(_options(path))
    assert report.errors == 0
    assert report.records_written == 1
    assert store_summary(report.output)["attributes"]["parsing_errors_total"] == 0


def test_undecodable_bytes_fail_only_their_line(tmp_path):
    path = tmp_path / "garbled.csv"
    path.write_bytes(
        HEADER_V2.encode()
        + (v2_line(gps_time=1) + "\n").encode()
        + b"\xff\xfe,garbage\n"
        + (v2_line(gps_time=2) + "\n").encode()
    )
    report = convert(_options(path))
    assert report.records_written == 2
    assert report.errors == 1
    assert report.errors_by_kind == {"coercion": 1}
    assert report.lines_total == 6
    assert list(load_capture_frame(report.output)["parsing_errors"]) == [0, 1]


def test_explicit_version_tolerates_unreadable_version_key(write_capture):
    header = "## BEGIN METADATA ##\n#VERSION two\n## END METADATA ##\n"
    path = write_capture("odd_version.csv", header, [v2_line()])
    with pytest.raises(MetadataError):
        convert(_options(path))
    report = convert(_options(path, schema_version=2))
    assert report.schema_version == 2
    assert report.records_written == 1
