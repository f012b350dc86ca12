import sys
from pathlib import Path
from typing import Annotated

import pydantic
import typer

from ndvi_timeseries.aggregation import DEFAULT_RESOLUTION
from ndvi_timeseries.collection import describe_collection, open_collection
from ndvi_timeseries.common.errors import ConfigurationError
from ndvi_timeseries.common.logging import get_logger
from ndvi_timeseries.pipeline import AnalysisSettings, run_analysis
from ndvi_timeseries.region import DEFAULT_CRS, Region

log = get_logger(__name__)

CONFIGURATION_ERROR_EXIT_CODE = 2

app = typer.Typer(pretty_exceptions_show_locals=False)


def _load_region(region_path: Path | None, point: str | None, crs: str) -> Region:
    if (region_path is None) == (point is None):
        raise ConfigurationError("Pass exactly one of --region or --point")
    if region_path is not None:
        return Region.from_file(region_path, crs)
    assert point is not None
    return Region.parse_point(point, crs)


@app.command()
def series(
    collection_path: Annotated[
        Path, typer.Argument(help="Zarr store or netCDF file of the image collection")
    ],
    start_date: Annotated[str, typer.Option(help="First date to include")],
    end_date: Annotated[str, typer.Option(help="End date (exclusive)")],
    region_path: Annotated[
        Path | None,
        typer.Option("--region", help="GeoJSON file with a Point or Polygon"),
    ] = None,
    point: Annotated[
        str | None, typer.Option(help="Point region given as 'x,y' (lon,lat)")
    ] = None,
    region_crs: Annotated[
        str, typer.Option(help="CRS of the region coordinates")
    ] = DEFAULT_CRS,
    resolution: Annotated[
        float, typer.Option(help="Pixel size the region is reduced at")
    ] = DEFAULT_RESOLUTION,
    output: Annotated[
        Path | None, typer.Option(help="CSV file to write, stdout if omitted")
    ] = None,
    workers: Annotated[
        int | None,
        typer.Option(
            min=1, help="Threads used to prepare images, NDVI_TS_WORKERS or the CPU count if omitted"
        ),
    ] = None,
    strict: Annotated[
        bool, typer.Option(help="Fail when output validation checks fail")
    ] = False,
) -> None:
    """Write NDVI median/stddev and day of year mode/stddev per image as CSV."""
    try:
        settings = AnalysisSettings(
            region=_load_region(region_path, point, region_crs),
            start_date=start_date,
            end_date=end_date,
            resolution=resolution,
        )
        collection = open_collection(collection_path)
        table = run_analysis(collection, settings, workers=workers, strict=strict)
    except (ConfigurationError, pydantic.ValidationError) as e:
        log.error(f"Invalid configuration: {e}")
        raise typer.Exit(code=CONFIGURATION_ERROR_EXIT_CODE) from e

    if output is None:
        table.to_csv(sys.stdout, date_format="%Y-%m-%d")
    else:
        table.to_csv(output, date_format="%Y-%m-%d")
        log.info(f"Wrote {len(table)} time steps to {output}")


@app.command()
def describe(
    collection_path: Annotated[
        Path, typer.Argument(help="Zarr store or netCDF file of the image collection")
    ],
) -> None:
    """Print a summary of an image collection."""
    try:
        collection = open_collection(collection_path)
    except ConfigurationError as e:
        log.error(str(e))
        raise typer.Exit(code=CONFIGURATION_ERROR_EXIT_CODE) from e
    typer.echo(describe_collection(collection))
