import os
import sys
from pathlib import Path

import pytest
import xarray as xr

# Make tests able to import from other files in tests/
sys.path.append(str(Path(__file__).parent.parent))

# This needs to run before any application imports to ensure that
# Config.env is set to test.
os.environ["NDVI_TS_ENV"] = "test"

from tests.synthetic import make_collection  # noqa: E402


@pytest.fixture
def two_image_collection() -> xr.Dataset:
    """One pixel, two images: the first clear, the second cloudy."""
    return make_collection(
        times=["2020-01-01", "2020-01-09"],
        nir=[[[5000]], [[5000]]],
        red=[[[1000]], [[1000]]],
        qa=[[[0]], [[1 << 10]]],
        day_of_year=[[[3]], [[12]]],
    )
