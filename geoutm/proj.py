"""
Cross-checks against PROJ. Requires the optional pyproj package (geoutm[proj]).

PROJ's UTM implementation evaluates the same 6th order series by an independent
code path, so the two should agree to well under a millimeter inside a zone.
"""

__all__ = ['forward_deviation', 'inverse_deviation', 'proj_forward', 'proj_inverse']

from functools import lru_cache
import math
from typing import Iterable, Optional, Sequence, Tuple

from geoutm import dispatch
from geoutm.coordinates import LatLng, UTMCoordinate
from geoutm.zones import epsg_code, hemisphere, zone_number


@lru_cache(maxsize=128)
def _transformer(source: str, target: str):
    from pyproj import Transformer  # pylint: disable=import-outside-toplevel
    return Transformer.from_crs(source, target, always_xy=True)


def proj_forward(lat: float, lng: float) -> UTMCoordinate:
    """
    Projects a coordinate with PROJ, into the same zone geoutm would choose.

    Args:
        lat:
            Latitude, degrees

        lng:
            Longitude, degrees in [-180, 180)

    Returns:
        UTMCoordinate
    """
    zone, hemi = zone_number(lng), hemisphere(lat)
    easting, northing = _transformer(
        'EPSG:4326', f'EPSG:{epsg_code(zone, hemi)}'
    ).transform(lng, lat)
    return UTMCoordinate(easting, northing, zone, hemi)


def proj_inverse(utm: UTMCoordinate) -> LatLng:
    """Converts a UTM coordinate back to latitude and longitude with PROJ"""
    lng, lat = _transformer(f'EPSG:{utm.epsg}', 'EPSG:4326').transform(
        utm.easting, utm.northing
    )
    return LatLng(lat, lng)


def forward_deviation(
    coords: Iterable[Tuple[float, float]],
    backend: Optional[str] = None
) -> float:
    """
    The largest grid distance (meters) between a backend's forward projection and
    PROJ's over a batch of coordinates.

    Args:
        coords:
            (lat, lng) pairs

        backend: (Default None)
            Backend name, see geoutm.dispatch.set_backend

    Returns:
        float
    """
    coords = [(float(lat), float(lng)) for lat, lng in coords]
    ours = dispatch.project_forward_batch(coords, backend=backend)
    return max(
        (
            math.hypot(utm.easting - theirs.easting, utm.northing - theirs.northing)
            for utm, theirs in zip(ours, (proj_forward(lat, lng) for lat, lng in coords))
        ),
        default=0.
    )


def inverse_deviation(
    utms: Sequence[UTMCoordinate],
    backend: Optional[str] = None
) -> float:
    """
    The largest angular difference (degrees, latitude or longitude) between a
    backend's inverse projection and PROJ's over a batch of UTM coordinates.
    """
    ours = dispatch.project_inverse_batch(utms, backend=backend)
    return max(
        (
            max(abs(point.lat - theirs.lat), abs(point.lng - theirs.lng))
            for point, theirs in zip(ours, (proj_inverse(utm) for utm in utms))
        ),
        default=0.
    )
