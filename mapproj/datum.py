"""
Geodetic datums and the datum factory.

A Datum pairs an ellipsoid with the geographic CRS it defines. Shifting a point
between datums is delegated to PROJ through pyproj; this module never implements
a datum-shift algorithm itself.

Datum codes follow the alpha codes used in persisted projection state
("WGE" = WGS84, "NAR-C" = NAD83, ...). Datums are also reachable by the EPSG
code of their geographic CRS.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

from pyproj import Transformer

from mapproj.compare import CompareMode
from mapproj.ellipsoid import Ellipsoid
from mapproj.points import GeodeticPoint

logger = logging.getLogger(__name__)

WGS84_CODE = "WGE"


@dataclass(frozen=True)
class Datum:
    """A geodetic reference frame.

    Attributes:
        code: Alpha code used in persisted state (e.g. "WGE").
        name: Human readable name.
        ellipsoid: Reference ellipsoid.
        epsg: EPSG code of the datum's geographic 2D CRS, None if unknown.
        proj_datum: PROJ "+datum=" name when PROJ knows the datum by name.
    """

    code: str
    name: str
    ellipsoid: Ellipsoid
    epsg: Optional[int] = None
    proj_datum: Optional[str] = None

    def shift_to(self, point: GeodeticPoint, target: Datum) -> GeodeticPoint:
        """
        Shift point from this datum to target.

        Height is carried through unchanged. When either datum has no EPSG code
        the point is re-tagged without moving it.

        Args:
            point: Point expressed on this datum
            target: Datum to express the point on

        Returns:
            Point expressed on target
        """
        if self.epsg is None or target.epsg is None:
            logger.warning(
                f"Cannot shift from datum {self.code} to {target.code}: "
                f"missing EPSG code, coordinates are re-tagged only"
            )
            return GeodeticPoint(point.lat, point.lon, point.height, target)

        transformer = _datum_transformer(self.epsg, target.epsg)
        lon, lat = transformer.transform(point.lon, point.lat)
        if not (math.isfinite(lon) and math.isfinite(lat)):
            lon, lat = math.nan, math.nan
        return GeodeticPoint(lat, lon, point.height, target)

    def is_equal_to(self, other: Datum, mode: CompareMode = CompareMode.TOLERANT) -> bool:
        """Compare code and ellipsoid."""
        return self.code == other.code and self.ellipsoid.is_equal_to(other.ellipsoid, mode)


@lru_cache(maxsize=32)
def _datum_transformer(source_epsg: int, target_epsg: int) -> Transformer:
    return Transformer.from_crs(f"EPSG:{source_epsg}", f"EPSG:{target_epsg}", always_xy=True)


class DatumFactory:
    """
    Registry of known datums.

    The factory hands out one shared instance per datum so that projections
    loaded from the same state reference the same Datum object.

    Usage:
        >>> factory = get_datum_factory()
        >>> wgs84 = factory.wgs84()
        >>> factory.create("WGE") is wgs84
        True
    """

    def __init__(self):
        self._by_code: dict[str, Datum] = {}
        for datum in _builtin_datums():
            self.register(datum)

    def register(self, datum: Datum) -> None:
        """Add (or replace) a datum."""
        self._by_code[datum.code.upper()] = datum

    def codes(self) -> list[str]:
        """Return the registered datum codes."""
        return sorted(self._by_code)

    def create(self, code: str | None) -> Datum | None:
        """
        Look up a datum by alpha code or "EPSG:nnnn" string.

        Args:
            code: Datum code

        Returns:
            Registered Datum, or None when the code is unknown
        """
        if not code:
            return None
        key = str(code).strip().upper()
        if key.startswith("EPSG:"):
            try:
                return self.from_epsg(int(key[5:]))
            except ValueError:
                logger.warning(f"Malformed EPSG datum code '{code}'")
                return None
        datum = self._by_code.get(key)
        if datum is None:
            logger.warning(f"Unknown datum code '{code}'")
        return datum

    def from_epsg(self, epsg: int) -> Datum | None:
        """Look up a datum by the EPSG code of its geographic CRS."""
        for datum in self._by_code.values():
            if datum.epsg == epsg:
                return datum
        return None

    def wgs84(self) -> Datum:
        """Return the WGS84 datum."""
        return self._by_code[WGS84_CODE]


def _builtin_datums() -> list[Datum]:
    return [
        Datum(WGS84_CODE, "World Geodetic System 1984", Ellipsoid.from_proj("WGS84"), 4326, "WGS84"),
        Datum("WGD", "World Geodetic System 1972", Ellipsoid.from_proj("WGS72"), 4322),
        Datum("NAR-C", "North American Datum 1983", Ellipsoid.from_proj("GRS80"), 4269, "NAD83"),
        Datum("NAS-C", "North American Datum 1927", Ellipsoid.from_proj("clrk66"), 4267, "NAD27"),
        Datum("EUR-M", "European Datum 1950", Ellipsoid.from_proj("intl"), 4230),
        Datum("ETRS89", "European Terrestrial Reference System 1989", Ellipsoid.from_proj("GRS80"), 4258),
    ]


# Global factory instance (lazily initialized)
_datum_factory: Optional[DatumFactory] = None


def get_datum_factory() -> DatumFactory:
    """
    Get or create the shared datum factory.

    Returns:
        DatumFactory instance
    """
    global _datum_factory
    if _datum_factory is None:
        _datum_factory = DatumFactory()
    return _datum_factory
