"""
Per time step reductions of a band over a region.

Conventions, shared by every series:
- Only non-NaN pixels contribute. A time step with no valid pixel in the
  region reduces to NaN ("no data"), never to zero.
- median: middle value, mean of the two middle values for an even count.
- stddev: population standard deviation (ddof=0).
- mode: most frequent value, ties broken by the smallest value.
"""

import math
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor

import numpy as np
import pandas as pd
import xarray as xr
from rasterio.transform import Affine

from ndvi_timeseries.bands import DAY_OF_YEAR
from ndvi_timeseries.collection import TIME_DIM, pixel_size, spatial_dims
from ndvi_timeseries.common.errors import ConfigurationError
from ndvi_timeseries.common.logging import get_logger
from ndvi_timeseries.common.types import Array1D, Statistic
from ndvi_timeseries.indices import NDVI
from ndvi_timeseries.region import Region, region_mask

log = get_logger(__name__)

DEFAULT_RESOLUTION = 500.0

# Output column -> (band, statistic)
TIME_SERIES: dict[str, tuple[str, Statistic]] = {
    "ndvi_median": (NDVI, Statistic.median),
    "ndvi_stddev": (NDVI, Statistic.stddev),
    "doy_mode": (DAY_OF_YEAR, Statistic.mode),
    "doy_stddev": (DAY_OF_YEAR, Statistic.stddev),
}


def median(values: Array1D[np.float64]) -> float:
    return float(np.median(values))


def stddev(values: Array1D[np.float64]) -> float:
    return float(np.std(values, ddof=0))


def mode(values: Array1D[np.float64]) -> float:
    # np.unique sorts, so argmax returns the smallest of equally common values
    unique, counts = np.unique(values, return_counts=True)
    return float(unique[np.argmax(counts)])


REDUCERS: dict[Statistic, Callable[[Array1D[np.float64]], float]] = {
    Statistic.median: median,
    Statistic.stddev: stddev,
    Statistic.mode: mode,
}


def reduce_values(values: np.ndarray, statistic: Statistic) -> float:
    """Reduce the valid (non-NaN) values to one scalar, NaN if there are none."""
    values = np.asarray(values, dtype=np.float64).ravel()
    valid = values[~np.isnan(values)]
    if valid.size == 0:
        return math.nan
    return REDUCERS[statistic](valid)


def _analysis_centers(
    centers: np.ndarray, native_size: float, resolution: float
) -> Array1D[np.float64]:
    """Centers of analysis pixels, aligned to whole multiples of `resolution`, inside the native extent."""
    low = float(centers.min()) - native_size / 2
    high = float(centers.max()) + native_size / 2
    cells = np.arange(math.floor(low / resolution), math.ceil(high / resolution))
    analysis = (cells + 0.5) * resolution
    return analysis[(analysis > low) & (analysis < high)]


def analysis_grid(
    ds: xr.Dataset | xr.DataArray, resolution: float
) -> tuple[Array1D[np.float64], Array1D[np.float64]]:
    """Analysis pixel centers (x ascending, y descending) of `ds`'s grid at `resolution`.

    `resolution` is in the grid's coordinate units, so degrees on a
    latitude/longitude grid.

    Raises:
        ConfigurationError: If no analysis pixel center falls inside the grid
    """
    y_dim, x_dim = spatial_dims(ds)
    x = ds[x_dim].values
    y = ds[y_dim].values
    native_x = pixel_size(x) or resolution
    native_y = pixel_size(y) or resolution

    new_x = _analysis_centers(x, native_x, resolution)
    new_y = _analysis_centers(y, native_y, resolution)[::-1]
    if new_x.size == 0 or new_y.size == 0:
        units = "degrees" if x_dim == "longitude" else "grid coordinate units"
        raise ConfigurationError(
            f"Resolution {resolution} ({units}) leaves no analysis pixel inside the collection grid "
            f"{x_dim}=[{x.min()}, {x.max()}], {y_dim}=[{y.min()}, {y.max()}]"
        )
    return new_x, new_y


def resample_nearest(
    da: xr.DataArray, resolution: float
) -> tuple[xr.DataArray, Affine]:
    """Nearest neighbour resample of `da` onto a north-up grid with `resolution` sized pixels.

    Returns the resampled array and the grid's affine transform.
    """
    y_dim, x_dim = spatial_dims(da)
    new_x, new_y = analysis_grid(da, resolution)

    resampled = da.sel({x_dim: new_x, y_dim: new_y}, method="nearest").assign_coords(
        {x_dim: new_x, y_dim: new_y}
    )
    transform = Affine(
        resolution,
        0.0,
        new_x[0] - resolution / 2,
        0.0,
        -resolution,
        new_y[0] + resolution / 2,
    )
    return resampled, transform


def series_by_region(
    collection: xr.Dataset,
    region: Region,
    band: str,
    statistic: Statistic,
    resolution: float = DEFAULT_RESOLUTION,
    time_dim: str = TIME_DIM,
    crs: str | None = None,
) -> pd.Series:
    """Reduce `band` over `region` for every image of `collection`, indexed by image time."""
    da, transform = resample_nearest(collection[band], resolution)
    y_dim, x_dim = spatial_dims(da)
    da = da.transpose(time_dim, y_dim, x_dim)

    mask = region_mask(
        region, da[x_dim].values, da[y_dim].values, transform=transform, grid_crs=crs
    )
    if not mask.any():
        log.warning(
            f"Region covers no {resolution} unit pixel centers, {band} {statistic} has no data"
        )

    pixels = da.values[:, mask]
    values = [reduce_values(image_pixels, statistic) for image_pixels in pixels]
    return pd.Series(
        values,
        index=pd.DatetimeIndex(collection[time_dim].values, name=time_dim),
        name=f"{band}_{statistic}",
        dtype=np.float64,
    )


def time_series_table(
    collection: xr.Dataset,
    region: Region,
    resolution: float = DEFAULT_RESOLUTION,
    time_dim: str = TIME_DIM,
    crs: str | None = None,
) -> pd.DataFrame:
    """NDVI median and stddev, day of year mode and stddev, one row per image ordered by time."""
    with ThreadPoolExecutor(max_workers=len(TIME_SERIES)) as executor:
        futures = {
            column: executor.submit(
                series_by_region,
                collection,
                region,
                band,
                statistic,
                resolution,
                time_dim,
                crs,
            )
            for column, (band, statistic) in TIME_SERIES.items()
        }
        columns = {column: future.result() for column, future in futures.items()}

    # Positional columns: image times may repeat
    table = pd.DataFrame(
        {column: series.to_numpy() for column, series in columns.items()},
        index=pd.DatetimeIndex(collection[time_dim].values, name="timestamp"),
    )
    return table.sort_index(kind="stable")
