from collections.abc import Sequence
from functools import partial

import pandas as pd
import pydantic
import xarray as xr

from ndvi_timeseries import validation
from ndvi_timeseries.aggregation import (
    DEFAULT_RESOLUTION,
    TIME_SERIES,
    analysis_grid,
    time_series_table,
)
from ndvi_timeseries.bands import (
    COMMON_BANDS,
    DAY_OF_YEAR,
    MODIS_BANDS,
    check_band_lists,
    select_bands,
)
from ndvi_timeseries.collection import (
    TIME_DIM,
    describe_collection,
    filter_bounds,
    filter_date,
    grid_crs,
    map_images,
)
from ndvi_timeseries.common.config import Config
from ndvi_timeseries.common.errors import ConfigurationError
from ndvi_timeseries.common.logging import get_logger
from ndvi_timeseries.common.pydantic import FrozenBaseModel
from ndvi_timeseries.common.types import Timestamp
from ndvi_timeseries.indices import NDVI, NIR_BAND, RED_BAND, add_ndvi
from ndvi_timeseries.quality_flags import (
    INTERNAL_QUALITY_END_BIT,
    INTERNAL_QUALITY_START_BIT,
    QA_BAND,
    mask_quality,
)
from ndvi_timeseries.region import Region

log = get_logger(__name__)


class AnalysisSettings(FrozenBaseModel):
    region: Region
    start_date: Timestamp
    end_date: Timestamp
    resolution: float = DEFAULT_RESOLUTION
    time_dim: str = TIME_DIM

    qa_band: str = QA_BAND
    qa_start_bit: int = INTERNAL_QUALITY_START_BIT
    qa_end_bit: int = INTERNAL_QUALITY_END_BIT

    nir_band: str = NIR_BAND
    red_band: str = RED_BAND

    source_bands: tuple[str, ...] = MODIS_BANDS
    target_bands: tuple[str, ...] = COMMON_BANDS

    @pydantic.model_validator(mode="after")
    def _check_settings(self) -> "AnalysisSettings":
        if self.start_date >= self.end_date:
            raise ConfigurationError(
                f"Start date {self.start_date} must be before end date {self.end_date}"
            )
        if self.resolution <= 0:
            raise ConfigurationError(
                f"Resolution must be positive, got {self.resolution}"
            )
        if not 0 <= self.qa_start_bit <= self.qa_end_bit:
            raise ConfigurationError(
                f"Invalid QA bit range {self.qa_start_bit}..{self.qa_end_bit}"
            )
        check_band_lists(self.source_bands, self.target_bands)
        if missing := {NDVI, DAY_OF_YEAR} - set(self.target_bands):
            raise ConfigurationError(
                f"Target bands must include {sorted(missing)} to build the time series"
            )
        return self

    def required_bands(self) -> set[str]:
        """Bands the collection must provide; NDVI is computed."""
        return (set(self.source_bands) - {NDVI}) | {
            self.qa_band,
            self.nir_band,
            self.red_band,
        }


def prepare_image(image: xr.Dataset, settings: AnalysisSettings) -> xr.Dataset:
    """Cloud mask, add NDVI and select the renamed bands of one image."""
    masked = mask_quality(
        image, settings.qa_band, settings.qa_start_bit, settings.qa_end_bit
    )
    with_ndvi = add_ndvi(masked, settings.nir_band, settings.red_band)
    return select_bands(with_ndvi, settings.source_bands, settings.target_bands)


def empty_table() -> pd.DataFrame:
    table = pd.DataFrame(
        {column: pd.Series(dtype="float64") for column in TIME_SERIES},
        index=pd.DatetimeIndex([], name="timestamp"),
    )
    return table


def run_analysis(
    collection: xr.Dataset,
    settings: AnalysisSettings,
    workers: int | None = None,
    validators: Sequence[validation.TableValidator] = validation.DEFAULT_VALIDATORS,
    strict: bool = False,
) -> pd.DataFrame:
    """Compute the NDVI and day of year time series of `collection` over the settings' region and dates."""
    if workers is None:
        workers = Config.workers
    if missing := settings.required_bands() - set(collection.data_vars):
        raise ConfigurationError(
            f"Collection is missing bands {sorted(missing)}, available: {list(collection.data_vars)}"
        )
    crs = grid_crs(collection)

    clipped = filter_bounds(collection, settings.region, settings.resolution)
    analysis_grid(clipped, settings.resolution)
    filtered = filter_date(
        clipped, settings.start_date, settings.end_date, settings.time_dim
    )
    describe_collection(filtered, settings.time_dim)

    if filtered.sizes.get(settings.time_dim, 0) == 0:
        log.warning(
            f"No images between {settings.start_date} and {settings.end_date}"
        )
        table = empty_table()
    else:
        prepared = map_images(
            filtered,
            partial(prepare_image, settings=settings),
            workers=workers,
            time_dim=settings.time_dim,
        )
        table = time_series_table(
            prepared,
            settings.region,
            settings.resolution,
            settings.time_dim,
            crs,
        )

    validation.validate_time_series(table, validators, strict=strict)
    return table
