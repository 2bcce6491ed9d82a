"""Supported national areas, as bounding boxes in WGS84."""

from __future__ import annotations

from typing import TYPE_CHECKING, Final

from shapely.geometry import box

from parcelaudit.domain.model import Area

if TYPE_CHECKING:
    from collections.abc import Mapping

    from shapely.geometry import Polygon
    from shapely.geometry.base import BaseGeometry

# (min lon, min lat, max lon, max lat)
AREA_BOUNDS: Final[dict[Area, tuple[float, float, float, float]]] = {
    Area.METROPOLE: (-5.1412, 41.334, 9.5597, 51.0888),
    Area.ANTILLES: (-61.8098, 14.3947, -60.8106, 16.511),
    Area.GUYANE: (-54.6023, 2.1111, -51.619, 5.7487),
    Area.REUNION: (55.2166, -21.3891, 55.8366, -20.8721),
    Area.MAYOTTE: (45.0185, -13.0001, 45.298, -12.6366),
}


class BoundingBoxRegions:
    """Locate geometries among named region polygons."""

    def __init__(self, regions: Mapping[str, Polygon] | None = None) -> None:
        self._regions: dict[str, Polygon] = (
            dict(regions)
            if regions is not None
            else {str(area): box(*bounds) for area, bounds in AREA_BOUNDS.items()}
        )

    def locate(self, geometry: BaseGeometry) -> str | None:
        for name, region in self._regions.items():
            if region.intersects(geometry):
                return name
        return None
