"""
convert_capture.py
~~~~~~~~~~~~~~~~~~
Run the capture converter straight from a source checkout, without installing
the package. Same arguments as the ``capture-netcdf`` console script:

* one or more capture CSV files, converted in the order given;
* ``--scaffold`` to emit only the empty NetCDF structure;
* ``--config`` to read defaults from a YAML file (``config.yaml`` otherwise).
"""

import sys
from pathlib import Path

SRC = Path(__file__).resolve().parents[1] / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from capture_netcdf.cli import main


if __name__ == "__main__":
    sys.exit(main())
