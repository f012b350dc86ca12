from enum import StrEnum
from typing import Annotated

import numpy as np
import pandas as pd
import pydantic

type DatetimeLike = pd.Timestamp | np.datetime64 | str
type Timestamp = Annotated[
    pd.Timestamp,
    pydantic.PlainValidator(pd.Timestamp),
]
type Array1D[D: np.generic] = np.ndarray[tuple[int], np.dtype[D]]
type Array2D[D: np.generic] = np.ndarray[tuple[int, int], np.dtype[D]]

# GeoJSON positions are (x, y), i.e. (lon, lat) for EPSG:4326
type Position = tuple[float, float]


class Statistic(StrEnum):
    median = "median"
    stddev = "stddev"
    mode = "mode"
