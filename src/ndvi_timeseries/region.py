import json
from pathlib import Path
from typing import Any, Literal

import numpy as np
import pydantic
import rasterio.features
import rasterio.warp
from rasterio.transform import Affine

from ndvi_timeseries.common.errors import ConfigurationError
from ndvi_timeseries.common.logging import get_logger
from ndvi_timeseries.common.pydantic import FrozenBaseModel
from ndvi_timeseries.common.types import Array1D, Array2D, Position

log = get_logger(__name__)

DEFAULT_CRS = "EPSG:4326"


class Region(FrozenBaseModel):
    """A GeoJSON Point or Polygon the time series is aggregated over."""

    type: Literal["Point", "Polygon"]
    coordinates: Position | tuple[tuple[Position, ...], ...]
    crs: str = DEFAULT_CRS

    @pydantic.model_validator(mode="after")
    def _check_geometry(self) -> "Region":
        match self.type:
            case "Point":
                if not _is_position(self.coordinates):
                    raise ConfigurationError(
                        f"Point coordinates must be a single position, got {self.coordinates}"
                    )
            case "Polygon":
                if _is_position(self.coordinates) or len(self.coordinates) == 0:
                    raise ConfigurationError("Polygon region has no rings")
                for ring in self.coordinates:
                    assert not _is_position(ring)
                    if len(ring) < 4:
                        raise ConfigurationError(
                            f"Polygon ring needs at least 4 positions, got {len(ring)}"
                        )
                    if _ring_area(ring) == 0:
                        raise ConfigurationError(f"Polygon ring has zero area: {ring}")
        return self

    @classmethod
    def point(cls, x: float, y: float, crs: str = DEFAULT_CRS) -> "Region":
        return cls(type="Point", coordinates=(x, y), crs=crs)

    @classmethod
    def from_geojson(cls, geojson: dict[str, Any], crs: str = DEFAULT_CRS) -> "Region":
        """Build a region from a GeoJSON geometry, Feature, or single feature FeatureCollection."""
        match geojson.get("type"):
            case "FeatureCollection":
                features = geojson.get("features", [])
                if len(features) != 1:
                    raise ConfigurationError(
                        f"Expected exactly one feature in region, got {len(features)}"
                    )
                return cls.from_geojson(features[0], crs)
            case "Feature":
                if not geojson.get("geometry"):
                    raise ConfigurationError("Region feature has no geometry")
                return cls.from_geojson(geojson["geometry"], crs)
            case "Point" | "Polygon":
                return cls(
                    type=geojson["type"], coordinates=geojson["coordinates"], crs=crs
                )
            case other:
                raise ConfigurationError(f"Unsupported region geometry type: {other}")

    @classmethod
    def from_file(cls, path: Path, crs: str = DEFAULT_CRS) -> "Region":
        if not path.exists():
            raise ConfigurationError(f"Region file {path} does not exist")
        return cls.from_geojson(json.loads(path.read_text()), crs)

    @classmethod
    def parse_point(cls, text: str, crs: str = DEFAULT_CRS) -> "Region":
        """Parse "x,y" (lon,lat) into a point region."""
        try:
            x, y = (float(part) for part in text.split(","))
        except ValueError:
            raise ConfigurationError(
                f"Expected a point as 'x,y', got {text!r}"
            ) from None
        return cls.point(x, y, crs)

    @property
    def __geo_interface__(self) -> dict[str, Any]:
        return {"type": self.type, "coordinates": self.coordinates}

    def geometry(self, target_crs: str | None = None) -> dict[str, Any]:
        """GeoJSON geometry, reprojected to `target_crs` when it differs from the region's crs."""
        geometry = self.__geo_interface__
        if target_crs is None or target_crs == self.crs:
            return geometry
        log.debug(f"Reprojecting region from {self.crs} to {target_crs}")
        return dict(rasterio.warp.transform_geom(self.crs, target_crs, geometry))

    def bounds(self, target_crs: str | None = None) -> tuple[float, float, float, float]:
        """(min x, min y, max x, max y) of the region."""
        geometry = self.geometry(target_crs)
        coordinates = geometry["coordinates"]
        if geometry["type"] == "Point":
            x, y = coordinates
            return x, y, x, y
        xs = [position[0] for ring in coordinates for position in ring]
        ys = [position[1] for ring in coordinates for position in ring]
        return min(xs), min(ys), max(xs), max(ys)


def _is_position(coordinates: object) -> bool:
    return (
        isinstance(coordinates, tuple)
        and len(coordinates) == 2
        and all(isinstance(c, int | float) for c in coordinates)
    )


def _ring_area(ring: tuple[Position, ...]) -> float:
    """Unsigned shoelace area, zero for repeated or collinear positions."""
    twice_area = sum(
        x0 * y1 - x1 * y0 for (x0, y0), (x1, y1) in zip(ring, ring[1:] + ring[:1])
    )
    return abs(twice_area) / 2


def grid_transform(x: Array1D[np.floating], y: Array1D[np.floating]) -> Affine:
    """Affine transform of a regular grid given its pixel center coordinates."""
    assert len(x) > 0 and len(y) > 0
    dx = _spacing(x)
    dy = _spacing(y)
    return Affine(dx, 0.0, x[0] - dx / 2, 0.0, dy, y[0] - dy / 2)


def _spacing(centers: Array1D[np.floating]) -> float:
    if len(centers) < 2:  # noqa: PLR2004
        raise ConfigurationError(
            "Cannot infer pixel size from a single coordinate, pass the resolution explicitly"
        )
    steps = np.diff(centers)
    assert np.allclose(steps, steps[0]), "Grid coordinates must be regularly spaced"
    return float(steps[0])


def region_mask(
    region: Region,
    x: Array1D[np.floating],
    y: Array1D[np.floating],
    transform: Affine | None = None,
    grid_crs: str | None = None,
) -> Array2D[np.bool_]:
    """True for pixels whose center falls inside the region, or the pixel containing a point region."""
    if transform is None:
        transform = grid_transform(x, y)
    return rasterio.features.geometry_mask(
        [region.geometry(grid_crs)],
        out_shape=(len(y), len(x)),
        transform=transform,
        all_touched=False,
        invert=True,
    )
