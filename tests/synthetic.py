from collections.abc import Sequence

import numpy as np
import pandas as pd
import xarray as xr

from ndvi_timeseries.bands import DAY_OF_YEAR
from ndvi_timeseries.quality_flags import QA_BAND

type Values = Sequence[Sequence[Sequence[float]]] | np.ndarray


def grid_coords(ny: int, nx: int, pixel_size: float = 500.0) -> tuple[np.ndarray, np.ndarray]:
    """North-up pixel centers with the grid's upper left corner at (0, ny * pixel_size)."""
    x = (np.arange(nx) + 0.5) * pixel_size
    y = ((np.arange(ny) + 0.5) * pixel_size)[::-1]
    return x, y


def make_collection(
    times: Sequence[str],
    nir: Values,
    red: Values,
    qa: Values,
    day_of_year: Values,
    pixel_size: float = 500.0,
) -> xr.Dataset:
    """A MOD09A1 like collection with scaled int16 reflectance, uint16 StateQA and int16 day of year."""
    nir_array = np.asarray(nir, dtype=np.int16)
    n_times, ny, nx = nir_array.shape
    assert n_times == len(times)
    x, y = grid_coords(ny, nx, pixel_size)
    dims = ("time", "y", "x")
    other_reflectance = np.full(nir_array.shape, 1200, dtype=np.int16)

    return xr.Dataset(
        {
            "sur_refl_b01": (dims, np.asarray(red, dtype=np.int16)),
            "sur_refl_b02": (dims, nir_array),
            "sur_refl_b03": (dims, other_reflectance),
            "sur_refl_b04": (dims, other_reflectance + 1),
            "sur_refl_b05": (dims, other_reflectance + 2),
            "sur_refl_b06": (dims, other_reflectance + 3),
            "sur_refl_b07": (dims, other_reflectance + 4),
            QA_BAND: (dims, np.asarray(qa, dtype=np.uint16)),
            DAY_OF_YEAR: (dims, np.asarray(day_of_year, dtype=np.int16)),
        },
        coords={"time": pd.to_datetime(list(times)), "y": y, "x": x},
    )


def uniform_collection(
    times: Sequence[str], ny: int, nx: int, pixel_size: float = 500.0
) -> xr.Dataset:
    """Cloud free collection where every pixel has NDVI 0.5 and day of year 1."""
    shape = (len(times), ny, nx)
    return make_collection(
        times=times,
        nir=np.full(shape, 3000),
        red=np.full(shape, 1000),
        qa=np.zeros(shape),
        day_of_year=np.ones(shape),
        pixel_size=pixel_size,
    )


def lat_lon_collection(
    times: Sequence[str],
    ny: int,
    nx: int,
    west: float = -75.2,
    north: float = 40.2,
    pixel_size: float = 0.1,
) -> xr.Dataset:
    """Uniform collection on a latitude/longitude grid in degrees, first pixel centered at (west, north)."""
    collection = uniform_collection(times, ny, nx)
    return collection.assign_coords(
        x=west + np.arange(nx) * pixel_size,
        y=north - np.arange(ny) * pixel_size,
    ).rename({"x": "longitude", "y": "latitude"})
