import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from capture_netcdf.schema import resolve

HEADER_V2 = "## BEGIN METADATA ##\n#VERSION 2\n## END METADATA ##\n"
HEADER_V3 = (
    "## BEGIN METADATA ##\n"
    "#VERSION 3\n"
    "#STATION_ID north-ridge\n"
    "#FIRMWARE 1.4.2\n"
    "## END METADATA ##\n"
)


def v2_line(gps_time=100, flags="GC", samples=(1, 1), checksum=None, count=None):
    checksum = sum(samples) if checksum is None else checksum
    count = len(samples) if count is None else count
    fields = [gps_time, flags, "50.0", "1.0", "2.0", "3.0", 4, "5.0", "6.0", count, *samples, checksum]
    return ",".join(str(f) for f in fields)


def v3_line(computer_time=12.5, **kwargs):
    return f"{computer_time}," + v2_line(**kwargs)


@pytest.fixture
def schema_v1():
    return resolve(1)


@pytest.fixture
def schema_v2():
    return resolve(2)


@pytest.fixture
def schema_v3():
    return resolve(3)


@pytest.fixture
def write_capture(tmp_path):
    def _write(name: str, header: str, lines) -> Path:
        path = tmp_path / name
        path.write_text(header + "".join(line + "\n" for line in lines), encoding="utf-8")
        return path

    return _write
