"""
UTM zone and hemisphere bookkeeping
"""

__all__ = [
    'HEMISPHERES', 'central_meridian', 'epsg_code', 'hemisphere',
    'normalize_longitude', 'zone_number',
]

import math
from typing import Literal

from geoutm._const import ZONE_WIDTH_DEGREES

HEMISPHERES = ('N', 'S')


def zone_number(lng: float) -> int:
    """
    The UTM zone of a longitude, floor((lng + 180) / 6) + 1.

    Longitudes are not validated; only values in [-180, 180) produce a zone in
    [1, 60]. Use normalize_longitude() first if the input may be out of range.
    """
    return int(math.floor((lng + 180) / ZONE_WIDTH_DEGREES)) + 1


def central_meridian(zone: int) -> float:
    """
    The longitude (degrees) of a zone's central meridian. Also applies elementwise
    to numpy arrays of zones.
    """
    return (zone - 1) * ZONE_WIDTH_DEGREES - 180 + ZONE_WIDTH_DEGREES / 2


def hemisphere(lat: float) -> Literal['N', 'S']:
    """'N' for latitudes >= 0, otherwise 'S'"""
    return 'N' if lat >= 0 else 'S'


def normalize_longitude(lng: float) -> float:
    """
    Wraps a longitude into [-180, 180)

    Args:
        lng:
            A longitude, in degrees

    Returns:
        float
    """
    while not -180 <= lng <= 180:
        # Crosses the antimeridian
        lng = lng - 360 if lng > 180 else lng + 360

    if lng == 180:
        lng = -180.

    return float(lng)


def epsg_code(zone: int, hemi: str) -> int:
    """
    The EPSG code of the WGS84 / UTM zone, e.g. 32631 for zone 31 north
    and 32756 for zone 56 south.
    """
    if hemi not in HEMISPHERES:
        raise ValueError(f"Hemisphere must be one of {HEMISPHERES}, not {hemi!r}")

    return (32600 if hemi == 'N' else 32700) + zone
