"""
Keyword-list persistence of MapProjection state.

State is a flat mapping of keyword -> string value, every keyword optionally
preceded by a prefix (e.g. "image0.") so several projections can share one list.

Written keywords:
    type, projection_parameters, origin_latitude, central_meridian,
    major_axis, minor_axis, datum, srs_name, pcs_code,
    tie_point_xy / tie_point_units, pixel_scale_xy / pixel_scale_units,
    false_easting_northing / false_easting_northing_units,
    elevation_lookup_flag, image_model_transform_matrix (when not identity),
    original_map_units (when known)

Also read:
    meters_per_pixel_x/y, decimal_degrees_per_pixel_lat/lon,
    tie_point_lat/lon, tie_point_easting/northing, false_easting,
    false_northing (legacy keys, used only when the grouped keys are absent),
    pixel_type ("area" converts the tie point to the pixel-is-point convention)

Point values are written as "(x, y)"; geodetic pairs are (lon, lat).
"""

from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Mapping, Optional

from mapproj.affine import MATRIX_ELEMENT_COUNT, ModelTransform
from mapproj.datum import Datum, DatumFactory
from mapproj.points import GeodeticPoint, ProjectedPoint
from mapproj.units import UnitConverter, UnitType, is_angular, is_linear, parse_unit

if TYPE_CHECKING:
    from mapproj.projection import MapProjection

logger = logging.getLogger(__name__)

TYPE_KW = "type"
PROJECTION_PARAMETERS_KW = "projection_parameters"
ORIGIN_LATITUDE_KW = "origin_latitude"
CENTRAL_MERIDIAN_KW = "central_meridian"
MAJOR_AXIS_KW = "major_axis"
MINOR_AXIS_KW = "minor_axis"
DATUM_KW = "datum"
SRS_NAME_KW = "srs_name"
PCS_CODE_KW = "pcs_code"
ORIGINAL_MAP_UNITS_KW = "original_map_units"
TIE_POINT_XY_KW = "tie_point_xy"
TIE_POINT_UNITS_KW = "tie_point_units"
PIXEL_SCALE_XY_KW = "pixel_scale_xy"
PIXEL_SCALE_UNITS_KW = "pixel_scale_units"
FALSE_EASTING_NORTHING_KW = "false_easting_northing"
FALSE_EASTING_NORTHING_UNITS_KW = "false_easting_northing_units"
ELEVATION_LOOKUP_FLAG_KW = "elevation_lookup_flag"
IMAGE_MODEL_TRANSFORM_MATRIX_KW = "image_model_transform_matrix"
PIXEL_TYPE_KW = "pixel_type"

# Legacy keys
METERS_PER_PIXEL_X_KW = "meters_per_pixel_x"
METERS_PER_PIXEL_Y_KW = "meters_per_pixel_y"
DECIMAL_DEGREES_PER_PIXEL_LAT_KW = "decimal_degrees_per_pixel_lat"
DECIMAL_DEGREES_PER_PIXEL_LON_KW = "decimal_degrees_per_pixel_lon"
TIE_POINT_LAT_KW = "tie_point_lat"
TIE_POINT_LON_KW = "tie_point_lon"
TIE_POINT_EASTING_KW = "tie_point_easting"
TIE_POINT_NORTHING_KW = "tie_point_northing"
FALSE_EASTING_KW = "false_easting"
FALSE_NORTHING_KW = "false_northing"

_TRUE_STRINGS = {"true", "1", "yes", "y", "on", "t"}
_SEPARATORS = re.compile(r"[\s,]+")


@dataclass
class PersistedState:
    """Projection fields recovered from a keyword list; None means "not given"."""

    datum: Optional[Datum] = None
    major_axis: Optional[float] = None
    minor_axis: Optional[float] = None
    origin_latitude: Optional[float] = None
    central_meridian: Optional[float] = None
    pcs_code: int = 0
    units: Optional[UnitType] = None
    elevation_lookup: Optional[bool] = None
    degrees_per_pixel: Optional[ProjectedPoint] = None
    meters_per_pixel: Optional[ProjectedPoint] = None
    ul_geodetic: Optional[GeodeticPoint] = None
    ul_easting_northing: Optional[ProjectedPoint] = None
    false_easting_northing: ProjectedPoint = field(default_factory=lambda: ProjectedPoint(0.0, 0.0))
    transform: Optional[ModelTransform] = None


def format_point(point: ProjectedPoint) -> str:
    """Format a pair as "(x, y)" with round-trippable floats."""
    return f"({float(point.x)!r}, {float(point.y)!r})"


def parse_point(text: str) -> Optional[ProjectedPoint]:
    """
    Parse "(x, y)", "x, y" or "x y" into a ProjectedPoint.

    Returns:
        ProjectedPoint, or None (with a warning) when text is not two numbers
    """
    values = _parse_floats(text.strip().strip("()"))
    if values is None or len(values) != 2:
        logger.warning(f"Expected a point '(x, y)', got '{text}'")
        return None
    return ProjectedPoint(values[0], values[1])


def parse_bool(text: str) -> bool:
    return text.strip().lower() in _TRUE_STRINGS


def _parse_floats(text: str) -> Optional[list[float]]:
    tokens = [t for t in _SEPARATORS.split(text.strip()) if t]
    try:
        return [float(t) for t in tokens]
    except ValueError:
        return None


def _parse_float(kwl: Mapping[str, str], key: str) -> Optional[float]:
    text = kwl.get(key)
    if text is None:
        return None
    try:
        return float(text)
    except ValueError:
        logger.warning(f"Ignoring non-numeric value for {key}: '{text}'")
        return None


def _pair(x: Optional[float], y: Optional[float]) -> Optional[ProjectedPoint]:
    if x is None and y is None:
        return None
    return ProjectedPoint(math.nan if x is None else x, math.nan if y is None else y)


def _convert_pair(point: ProjectedPoint, unit: UnitType, target: UnitType,
                  converter: UnitConverter) -> ProjectedPoint:
    return ProjectedPoint(converter.convert(point.x, unit, target), converter.convert(point.y, unit, target))


def _classify(unit: UnitType, geographic: bool, key: str) -> UnitType:
    """Map a pair's declared unit to the native unit family it is stored in."""
    if is_angular(unit):
        return UnitType.DEGREES
    if is_linear(unit):
        return UnitType.METERS
    native = UnitType.DEGREES if geographic else UnitType.METERS
    logger.warning(f"No usable unit for {key}, treating value as {native.value}")
    return native


def format_kernel_parameters(parameters: Mapping[str, Any]) -> str:
    """Format kernel PROJ parameters as space separated key=value tokens."""
    tokens = []
    for key, value in parameters.items():
        if value is True:
            tokens.append(str(key))
        else:
            tokens.append(f"{key}={value!r}" if isinstance(value, float) else f"{key}={value}")
    return " ".join(tokens)


def read_kernel_parameters(kwl: Mapping[str, str], prefix: str = "") -> dict[str, Any]:
    """Parse the projection_parameters entry back into a PROJ parameter dict."""
    text = kwl.get(prefix + PROJECTION_PARAMETERS_KW, "")
    parameters: dict[str, Any] = {}
    for token in text.split():
        if "=" not in token:
            parameters[token] = True
            continue
        key, value = token.split("=", 1)
        try:
            parameters[key] = int(value)
        except ValueError:
            try:
                parameters[key] = float(value)
            except ValueError:
                parameters[key] = value
    return parameters


def save_state(projection: MapProjection, prefix: str = "") -> dict[str, str]:
    """
    Write projection state to a new keyword list.

    Args:
        projection: Projection to persist
        prefix: Prefix prepended to every keyword

    Returns:
        Keyword list mapping prefixed keyword -> string value
    """
    kwl: dict[str, str] = {}

    def add(key: str, value: str) -> None:
        kwl[prefix + key] = value

    add(TYPE_KW, projection.kernel.name)
    kernel_parameters = projection.kernel.options.get("parameters")
    if kernel_parameters:
        add(PROJECTION_PARAMETERS_KW, format_kernel_parameters(kernel_parameters))

    add(ORIGIN_LATITUDE_KW, repr(float(projection.origin.lat)))
    add(CENTRAL_MERIDIAN_KW, repr(float(projection.origin.lon)))
    add(MAJOR_AXIS_KW, repr(float(projection.a)))
    add(MINOR_AXIS_KW, repr(float(projection.b)))
    add(DATUM_KW, projection.datum.code)

    code = projection.memoized_pcs_code
    if code:
        add(SRS_NAME_KW, f"EPSG:{code}")

    if projection.is_geographic():
        gpt = projection.ul_geodetic
        add(TIE_POINT_XY_KW, format_point(ProjectedPoint(gpt.lon, gpt.lat)))
        add(TIE_POINT_UNITS_KW, UnitType.DEGREES.value)
        add(PIXEL_SCALE_XY_KW, format_point(projection.decimal_degrees_per_pixel))
        add(PIXEL_SCALE_UNITS_KW, UnitType.DEGREES.value)
    else:
        add(TIE_POINT_XY_KW, format_point(projection.ul_easting_northing))
        add(TIE_POINT_UNITS_KW, UnitType.METERS.value)
        add(PIXEL_SCALE_XY_KW, format_point(projection.meters_per_pixel))
        add(PIXEL_SCALE_UNITS_KW, UnitType.METERS.value)

    add(PCS_CODE_KW, str(code))
    add(FALSE_EASTING_NORTHING_KW, format_point(projection.false_easting_northing))
    add(FALSE_EASTING_NORTHING_UNITS_KW, UnitType.METERS.value)
    add(ELEVATION_LOOKUP_FLAG_KW, "true" if projection.elevation_lookup_flag else "false")

    transform = projection.model_transform
    if not transform.is_identity():
        add(IMAGE_MODEL_TRANSFORM_MATRIX_KW, " ".join(repr(v) for v in transform.to_elements()))

    if projection.projection_units is not UnitType.UNKNOWN:
        add(ORIGINAL_MAP_UNITS_KW, projection.projection_units.value)

    return kwl


def read_state(kwl: Mapping[str, str], prefix: str, geographic: bool,
               datum_factory: DatumFactory) -> PersistedState:
    """
    Parse a keyword list into a PersistedState.

    Unit tags are resolved here: angular pairs are converted to degrees and
    linear pairs to meters. Pixel-is-area tie points are moved half a pixel to
    the pixel-is-point convention.

    Args:
        kwl: Keyword list
        prefix: Keyword prefix
        geographic: True when the receiving projection's native unit is degrees
        datum_factory: Datum registry for the datum code

    Returns:
        Parsed state
    """
    def find(key: str) -> Optional[str]:
        return kwl.get(prefix + key)

    def number(key: str) -> Optional[float]:
        return _parse_float(kwl, prefix + key)

    state = PersistedState()
    converter = UnitConverter()

    flag = find(ELEVATION_LOOKUP_FLAG_KW)
    if flag is not None:
        state.elevation_lookup = parse_bool(flag)

    state.major_axis = number(MAJOR_AXIS_KW)
    state.minor_axis = number(MINOR_AXIS_KW)

    pcs = find(PCS_CODE_KW)
    srs_name = find(SRS_NAME_KW)
    if pcs is not None:
        try:
            state.pcs_code = int(float(pcs))
        except ValueError:
            logger.warning(f"Ignoring malformed {PCS_CODE_KW} '{pcs}'")
    elif srs_name and srs_name.upper().startswith("EPSG:"):
        try:
            state.pcs_code = int(srs_name[5:])
        except ValueError:
            logger.warning(f"Ignoring malformed {SRS_NAME_KW} '{srs_name}'")

    datum_code = find(DATUM_KW)
    if datum_code:
        state.datum = datum_factory.create(datum_code)

    state.origin_latitude = number(ORIGIN_LATITUDE_KW)
    state.central_meridian = number(CENTRAL_MERIDIAN_KW)

    # Pixel scale
    scale_units = find(PIXEL_SCALE_UNITS_KW)
    scale_text = find(PIXEL_SCALE_XY_KW)
    if scale_units is not None or scale_text is not None:
        scale = parse_point(scale_text) if scale_text is not None else None
        if scale is not None:
            unit = parse_unit(scale_units)
            family = _classify(unit, geographic, PIXEL_SCALE_UNITS_KW)
            if unit is not UnitType.UNKNOWN:
                scale = _convert_pair(scale, unit, family, converter)
            if family is UnitType.DEGREES:
                state.degrees_per_pixel = scale
            else:
                state.meters_per_pixel = scale
    else:
        mpp_x, mpp_y = number(METERS_PER_PIXEL_X_KW), number(METERS_PER_PIXEL_Y_KW)
        state.meters_per_pixel = _pair(
            None if mpp_x is None else abs(mpp_x), None if mpp_y is None else abs(mpp_y)
        )
        dpp_lat, dpp_lon = number(DECIMAL_DEGREES_PER_PIXEL_LAT_KW), number(DECIMAL_DEGREES_PER_PIXEL_LON_KW)
        state.degrees_per_pixel = _pair(
            None if dpp_lon is None else abs(dpp_lon), None if dpp_lat is None else abs(dpp_lat)
        )

    # Tie point
    tie_units = find(TIE_POINT_UNITS_KW)
    tie_text = find(TIE_POINT_XY_KW)
    if tie_units is not None or tie_text is not None:
        tie = parse_point(tie_text) if tie_text is not None else None
        if tie is not None:
            unit = parse_unit(tie_units)
            family = _classify(unit, geographic, TIE_POINT_UNITS_KW)
            if unit is not UnitType.UNKNOWN:
                tie = _convert_pair(tie, unit, family, converter)
            if family is UnitType.DEGREES:
                state.ul_geodetic = GeodeticPoint(tie.y, tie.x)
            else:
                state.ul_easting_northing = tie
    else:
        state.ul_easting_northing = _pair(number(TIE_POINT_EASTING_KW), number(TIE_POINT_NORTHING_KW))
        lat, lon = number(TIE_POINT_LAT_KW), number(TIE_POINT_LON_KW)
        if lat is not None or lon is not None:
            state.ul_geodetic = GeodeticPoint(math.nan if lat is None else lat, math.nan if lon is None else lon)

    # False easting / northing
    fen_text = find(FALSE_EASTING_NORTHING_KW)
    if fen_text is not None:
        fen = parse_point(fen_text)
        if fen is not None:
            unit = parse_unit(find(FALSE_EASTING_NORTHING_UNITS_KW) or UnitType.METERS.value)
            if is_linear(unit):
                fen = _convert_pair(fen, unit, UnitType.METERS, converter)
            elif unit is not UnitType.UNKNOWN:
                logger.warning(f"False easting/northing in {unit.value} is not supported, treating as meters")
            state.false_easting_northing = fen
    else:
        fe, fn = number(FALSE_EASTING_KW), number(FALSE_NORTHING_KW)
        state.false_easting_northing = ProjectedPoint(0.0 if fe is None else fe, 0.0 if fn is None else fn)

    pixel_type = find(PIXEL_TYPE_KW)
    if pixel_type and "area" in pixel_type.strip().lower():
        _shift_area_to_point(state)

    units = find(ORIGINAL_MAP_UNITS_KW)
    if units is not None:
        state.units = parse_unit(units)

    matrix_text = find(IMAGE_MODEL_TRANSFORM_MATRIX_KW)
    if matrix_text is not None and matrix_text.strip():
        elements = _parse_floats(matrix_text)
        if elements is None or len(elements) != MATRIX_ELEMENT_COUNT:
            logger.warning(
                f"Ignoring {IMAGE_MODEL_TRANSFORM_MATRIX_KW}: model transform matrix must have "
                f"{MATRIX_ELEMENT_COUNT} numeric elements"
            )
        else:
            state.transform = ModelTransform.from_elements(elements)

    return state


def _shift_area_to_point(state: PersistedState) -> None:
    """Move tie points from the upper-left pixel corner to the upper-left pixel centre."""
    mpp = state.meters_per_pixel
    en = state.ul_easting_northing
    if mpp is not None and not mpp.has_nans() and en is not None and not en.has_nans():
        state.ul_easting_northing = ProjectedPoint(en.x + mpp.x * 0.5, en.y - mpp.y * 0.5)

    dpp = state.degrees_per_pixel
    gpt = state.ul_geodetic
    if dpp is not None and not dpp.has_nans() and gpt is not None:
        state.ul_geodetic = GeodeticPoint(gpt.lat - dpp.y * 0.5, gpt.lon + dpp.x * 0.5)
