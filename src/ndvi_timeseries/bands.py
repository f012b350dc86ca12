from collections.abc import Sequence

import xarray as xr

from ndvi_timeseries.common.errors import ConfigurationError

DAY_OF_YEAR = "DayOfYear"

# MODIS band names and the more familiar Landsat style names they map to
MODIS_BANDS: tuple[str, ...] = (
    "sur_refl_b03",
    "sur_refl_b04",
    "sur_refl_b01",
    "sur_refl_b02",
    "sur_refl_b06",
    "sur_refl_b07",
    "NDVI",
    DAY_OF_YEAR,
)
COMMON_BANDS: tuple[str, ...] = (
    "blue",
    "green",
    "red",
    "nir",
    "swir1",
    "swir2",
    "NDVI",
    DAY_OF_YEAR,
)


def check_band_lists(source: Sequence[str], target: Sequence[str]) -> None:
    if len(source) != len(target):
        raise ConfigurationError(
            f"Band lists differ in length: {len(source)} source names, {len(target)} target names"
        )
    if len(set(source)) != len(source):
        raise ConfigurationError(f"Duplicate source band names: {list(source)}")
    if len(set(target)) != len(target):
        raise ConfigurationError(f"Duplicate target band names: {list(target)}")


def select_bands(
    image: xr.Dataset,
    source: Sequence[str] = MODIS_BANDS,
    target: Sequence[str] = COMMON_BANDS,
) -> xr.Dataset:
    """Keep only the `source` bands of `image`, renamed positionally to `target`."""
    check_band_lists(source, target)
    if missing := [band for band in source if band not in image.data_vars]:
        raise ConfigurationError(
            f"Bands {missing} not found in image, available: {list(image.data_vars)}"
        )
    renames = {s: t for s, t in zip(source, target, strict=True) if s != t}
    return image[list(source)].rename(renames)
