import numpy as np
import pytest
import xarray as xr

from ndvi_timeseries.bands import COMMON_BANDS, MODIS_BANDS, select_bands
from ndvi_timeseries.common.errors import ConfigurationError


def _image() -> xr.Dataset:
    bands = [*MODIS_BANDS, "StateQA", "sur_refl_b05"]
    return xr.Dataset(
        {band: (("x",), np.array([float(i), float(i) + 0.5])) for i, band in enumerate(bands)}
    )


def test_select_bands_renames_positionally() -> None:
    image = _image()
    result = select_bands(image)

    assert list(result.data_vars) == list(COMMON_BANDS)
    for source, target in zip(MODIS_BANDS, COMMON_BANDS, strict=True):
        np.testing.assert_array_equal(result[target].values, image[source].values)


def test_select_bands_is_a_bijection() -> None:
    result = select_bands(_image())
    assert len(set(result.data_vars)) == len(MODIS_BANDS)
    assert result["nir"].values[0] == MODIS_BANDS.index("sur_refl_b02")
    assert result["red"].values[0] == MODIS_BANDS.index("sur_refl_b01")


def test_select_bands_drops_unlisted_bands() -> None:
    result = select_bands(_image())
    assert "StateQA" not in result.data_vars
    assert "sur_refl_b05" not in result.data_vars


def test_select_bands_length_mismatch() -> None:
    with pytest.raises(ConfigurationError, match="differ in length"):
        select_bands(_image(), MODIS_BANDS, COMMON_BANDS[:-1])


def test_select_bands_missing_source_band() -> None:
    image = _image().drop_vars("sur_refl_b07")
    with pytest.raises(ConfigurationError, match="sur_refl_b07"):
        select_bands(image)


def test_select_bands_duplicate_target() -> None:
    with pytest.raises(ConfigurationError, match="Duplicate target"):
        select_bands(_image(), ["sur_refl_b01", "sur_refl_b02"], ["red", "red"])
