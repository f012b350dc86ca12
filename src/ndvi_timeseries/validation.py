from collections.abc import Sequence
from functools import partial
from typing import Protocol, runtime_checkable

import pandas as pd
import pydantic

from ndvi_timeseries.common.logging import get_logger

log = get_logger(__name__)


class ValidationResult(pydantic.BaseModel):
    """Result of a validation check."""

    passed: bool
    message: str


@runtime_checkable
class TableValidator(Protocol):
    """Protocol for validation functions."""

    def __call__(self, table: pd.DataFrame) -> ValidationResult: ...


def validate_time_series(
    table: pd.DataFrame,
    validators: Sequence[TableValidator],
    strict: bool = False,
) -> list[ValidationResult]:
    """
    Run quality checks over a time series table.

    Data gaps are expected in cloudy regions, so failed checks are only logged
    unless `strict` is set.

    Raises:
        ValueError: If `strict` and any validation check fails
    """
    results = [validator(table) for validator in validators]
    failed = [result.message for result in results if not result.passed]

    for result in results:
        if result.passed:
            log.info(f"Passed validation: {result.message}")
        else:
            log.warning(f"Failed validation: {result.message}")

    if failed and strict:
        raise ValueError(
            "Time series validation failed:\n"
            + "\n".join(f"- {msg}" for msg in failed)
        )
    return results


def check_not_empty(table: pd.DataFrame) -> ValidationResult:
    """Fails if the table has no time steps."""
    if len(table) == 0:
        return ValidationResult(passed=False, message="No images in the time series")
    return ValidationResult(passed=True, message=f"{len(table)} time steps")


def check_no_data_fraction(
    table: pd.DataFrame, column: str = "ndvi_median", max_no_data_percentage: float = 50
) -> ValidationResult:
    """Fails if more than max_no_data_percentage of `column` is no data (NaN)."""
    if len(table) == 0:
        return ValidationResult(passed=True, message=f"No {column} values to check")

    no_data_percentage = table[column].isna().mean() * 100
    if no_data_percentage > max_no_data_percentage:
        return ValidationResult(
            passed=False,
            message=f"{column}: {no_data_percentage:.1f}% of time steps have no data",
        )
    return ValidationResult(
        passed=True,
        message=f"{column} has an acceptable no data percentage ({no_data_percentage:.1f}% <= {max_no_data_percentage}%)",
    )


DEFAULT_VALIDATORS: tuple[TableValidator, ...] = (
    check_not_empty,
    partial(check_no_data_fraction, column="ndvi_median"),
)
