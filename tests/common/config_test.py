import os

import pytest

from ndvi_timeseries.common.config import Config, Env, NdviTimeSeriesConfig
from ndvi_timeseries.common.errors import ConfigurationError


def test_config_env_is_test() -> None:
    assert Config.env == Env.test
    assert not Config.is_sentry_enabled


def test_workers_default_to_cpu_count() -> None:
    config = NdviTimeSeriesConfig(workers_setting=None)
    assert config.workers == (os.cpu_count() or 1)


def test_workers_from_setting() -> None:
    assert NdviTimeSeriesConfig(workers_setting="3").workers == 3


@pytest.mark.parametrize("setting", ["auto", "0", "-2", "1.5"])
def test_invalid_workers_setting(setting: str) -> None:
    config = NdviTimeSeriesConfig(workers_setting=setting)
    with pytest.raises(ConfigurationError, match="NDVI_TS_WORKERS"):
        _ = config.workers
