import os
from enum import StrEnum

import pydantic

from ndvi_timeseries.common.errors import ConfigurationError

_positive_int = pydantic.TypeAdapter(pydantic.PositiveInt)


class Env(StrEnum):
    dev = "dev"
    prod = "prod"
    test = "test"


class NdviTimeSeriesConfig(pydantic.BaseModel):
    env: Env = Env(os.getenv("NDVI_TS_ENV", "dev"))

    sentry_dsn: str | None = os.getenv("NDVI_TS_SENTRY_DSN")

    # Raw NDVI_TS_WORKERS, validated when `workers` is read
    workers_setting: str | None = os.getenv("NDVI_TS_WORKERS")

    @property
    def workers(self) -> int:
        """Threads used to prepare images (cloud mask, index, band selection)."""
        if self.workers_setting is None:
            return os.cpu_count() or 1
        try:
            return _positive_int.validate_python(self.workers_setting)
        except pydantic.ValidationError as e:
            raise ConfigurationError(
                f"NDVI_TS_WORKERS must be a positive integer, got {self.workers_setting!r}"
            ) from e

    @property
    def is_dev(self) -> bool:
        return self.env == Env.dev

    @property
    def is_prod(self) -> bool:
        return self.env == Env.prod

    @property
    def is_sentry_enabled(self) -> bool:
        return self.sentry_dsn is not None and not self.env == Env.test


Config = NdviTimeSeriesConfig()
