from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

import numpy as np
import pandas as pd
import xarray as xr

from ndvi_timeseries.common.errors import ConfigurationError
from ndvi_timeseries.common.logging import get_logger
from ndvi_timeseries.common.types import DatetimeLike
from ndvi_timeseries.region import Region

log = get_logger(__name__)

TIME_DIM = "time"


def open_collection(path: Path) -> xr.Dataset:
    """Open an image collection: a dataset with (time, y, x) dimensions and one data variable per band."""
    if not path.exists():
        raise ConfigurationError(f"Collection {path} does not exist")
    # Keep integer QA bit patterns as integers: no fill value masking or scaling on read.
    if path.suffix == ".zarr":
        return xr.open_zarr(path, chunks=None, mask_and_scale=False)
    return xr.open_dataset(path, mask_and_scale=False)


def spatial_dims(ds: xr.Dataset | xr.DataArray) -> tuple[str, str]:
    """Names of the (y, x) dimensions."""
    if "latitude" in ds.dims and "longitude" in ds.dims:
        return "latitude", "longitude"
    if "x" in ds.dims and "y" in ds.dims:
        return "y", "x"
    raise ValueError(f"Can't infer spatial dimensions from {tuple(ds.dims)}")


def grid_crs(ds: xr.Dataset) -> str | None:
    crs = ds.attrs.get("crs")
    return str(crs) if crs is not None else None


def pixel_size(centers: np.ndarray) -> float | None:
    """Absolute spacing of regularly spaced pixel centers, None for a single pixel."""
    if len(centers) < 2:  # noqa: PLR2004
        return None
    return float(abs(centers[1] - centers[0]))


def filter_date(
    collection: xr.Dataset,
    start: DatetimeLike,
    end: DatetimeLike,
    time_dim: str = TIME_DIM,
) -> xr.Dataset:
    """Images with start <= time < end, sorted by time."""
    times = collection[time_dim]
    in_range = (times >= pd.Timestamp(start)) & (times < pd.Timestamp(end))
    return collection.isel({time_dim: in_range.values}).sortby(time_dim)


def filter_bounds(
    collection: xr.Dataset, region: Region, resolution: float
) -> xr.Dataset:
    """Clip the grid to the region's bounding box, keeping enough margin to resample at `resolution`.

    Raises ConfigurationError when the region lies outside the grid.
    """
    y_dim, x_dim = spatial_dims(collection)
    x = collection[x_dim].values
    y = collection[y_dim].values

    native_size = max(pixel_size(x) or 0.0, pixel_size(y) or 0.0)
    margin = resolution + native_size
    min_x, min_y, max_x, max_y = region.bounds(grid_crs(collection))

    keep_x = (x >= min_x - margin) & (x <= max_x + margin)
    keep_y = (y >= min_y - margin) & (y <= max_y + margin)
    if not keep_x.any() or not keep_y.any():
        raise ConfigurationError(
            f"Region bounds {(min_x, min_y, max_x, max_y)} do not intersect the collection grid "
            f"x=[{x.min()}, {x.max()}], y=[{y.min()}, {y.max()}]"
        )
    return collection.isel({x_dim: keep_x, y_dim: keep_y})


def describe_collection(collection: xr.Dataset, time_dim: str = TIME_DIM) -> str:
    """One line summary of a collection: image count, time span, bands and grid shape."""
    y_dim, x_dim = spatial_dims(collection)
    count = collection.sizes.get(time_dim, 0)
    if count:
        times = pd.DatetimeIndex(collection[time_dim].values)
        span = f"{times.min():%Y-%m-%d} to {times.max():%Y-%m-%d}"
    else:
        span = "empty"
    summary = (
        f"{count} images ({span}), bands {list(collection.data_vars)}, "
        f"grid {collection.sizes[y_dim]}x{collection.sizes[x_dim]}"
    )
    log.info(f"Collection: {summary}")
    return summary


def map_images(
    collection: xr.Dataset,
    fn: Callable[[xr.Dataset], xr.Dataset],
    workers: int = 1,
    time_dim: str = TIME_DIM,
) -> xr.Dataset:
    """Apply `fn` to every image (time step) of `collection`.

    An image whose processing fails is logged and kept as an all-NaN time step,
    so other images still produce results. Configuration errors are raised.
    """
    times = collection[time_dim].values
    assert len(times) > 0, "Cannot map over an empty collection"
    if workers < 1:
        raise ConfigurationError(f"Workers must be at least 1, got {workers}")

    def _apply_one(index: int) -> xr.Dataset | None:
        image = collection.isel({time_dim: index})
        try:
            return fn(image).load()
        except ConfigurationError:
            raise
        except Exception:
            log.exception(f"Processing failed for image {pd.Timestamp(times[index])}")
            return None

    with ThreadPoolExecutor(max_workers=workers) as executor:
        results = list(executor.map(_apply_one, range(len(times))))

    succeeded = [result for result in results if result is not None]
    if not succeeded:
        raise ValueError(f"Processing failed for all {len(times)} images")
    if failed := len(results) - len(succeeded):
        log.warning(f"{failed} of {len(results)} images failed and have no data")

    # Failed time steps are reinserted as NaN by position, times may repeat
    no_data = xr.full_like(succeeded[0], np.nan, dtype=np.float64)
    images = [
        no_data.assign_coords({time_dim: times[index]}) if result is None else result
        for index, result in enumerate(results)
    ]
    return xr.concat(images, dim=time_dim)
