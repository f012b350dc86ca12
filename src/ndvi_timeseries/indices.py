import numpy as np
import xarray as xr

NDVI = "NDVI"
NIR_BAND = "sur_refl_b02"
RED_BAND = "sur_refl_b01"


def normalized_difference(image: xr.Dataset, first: str, second: str) -> xr.DataArray:
    """(first - second) / (first + second), NaN where the denominator is zero or either input is masked."""
    a = image[first].astype(np.float64)
    b = image[second].astype(np.float64)
    total = a + b
    # Zero denominators are replaced before dividing so numpy never warns,
    # then masked back out to NaN.
    safe_total = total.where(total != 0, 1.0)
    return ((a - b) / safe_total).where(total != 0)


def add_ndvi(
    image: xr.Dataset, nir_band: str = NIR_BAND, red_band: str = RED_BAND
) -> xr.Dataset:
    """Return `image` with an NDVI band appended."""
    ndvi = normalized_difference(image, nir_band, red_band).rename(NDVI)
    return image.assign({NDVI: ndvi})
