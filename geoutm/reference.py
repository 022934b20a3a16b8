"""
Reference (scalar, float64) UTM projector.

Karney/Krüger 6th order series: nanometer-level agreement with the exact transverse
Mercator projection within a UTM zone.
"""

__all__ = [
    'NEWTON_MAX_ITERATIONS', 'NEWTON_TOLERANCE',
    'forward_batch', 'inverse_batch', 'project_forward', 'project_inverse',
    'solve_tau',
]

import math
from typing import Iterable, List, Sequence, Tuple

from geoutm._const import FALSE_EASTING, FALSE_NORTHING_SOUTH
from geoutm.coordinates import LatLng, UTMCoordinate
from geoutm.ellipsoid import WGS84
from geoutm.series import krueger_series
from geoutm.zones import central_meridian, hemisphere, zone_number

NEWTON_TOLERANCE = 1e-12
NEWTON_MAX_ITERATIONS = 5

_E = WGS84.e
_ONE_MINUS_E2 = WGS84.one_minus_e2
_K0A = WGS84.k0a
_ALPHA = WGS84.alpha
_BETA = WGS84.beta


def _atanh(x: float) -> float:
    """atanh, except that +-1 map to +-inf (as in IEEE arithmetic) rather than raising"""
    if abs(x) == 1:
        return math.copysign(math.inf, x)

    return math.atanh(x)


def _sinh(x: float) -> float:
    """sinh, except that overflow gives +-inf rather than raising"""
    try:
        return math.sinh(x)
    except OverflowError:
        return math.copysign(math.inf, x)


def _cosh(x: float) -> float:
    """cosh, except that overflow gives inf rather than raising"""
    try:
        return math.cosh(x)
    except OverflowError:
        return math.inf


def _sin_cos(x: float) -> Tuple[float, float]:
    """(sin, cos), NaN for infinite angles rather than raising"""
    if math.isinf(x):
        return math.nan, math.nan

    return math.sin(x), math.cos(x)


def solve_tau(tau0: float) -> float:
    """
    Recovers tan(geodetic latitude) from tan(conformal latitude) by Newton-Raphson.

    Stops once the update falls below NEWTON_TOLERANCE, or after
    NEWTON_MAX_ITERATIONS updates. Running out of iterations is not an error; the
    last estimate is returned.

    Args:
        tau0:
            The tangent of the conformal latitude

    Returns:
        float, the tangent of the geodetic latitude
    """
    tau = tau0
    for _ in range(NEWTON_MAX_ITERATIONS):
        tau2 = tau * tau
        sqrt1tau2 = math.sqrt(1 + tau2)
        sigma = _sinh(_E * _atanh(_E * tau / sqrt1tau2))
        tau_p = tau * math.sqrt(1 + sigma * sigma) - sigma * sqrt1tau2
        dtau = (
            (tau0 - tau_p) * (1 + _ONE_MINUS_E2 * tau2)
            / (_ONE_MINUS_E2 * math.sqrt((1 + tau2) * (1 + tau_p * tau_p)))
        )
        tau += dtau
        if abs(dtau) < NEWTON_TOLERANCE:
            break

    return tau


def project_forward(lat: float, lng: float) -> UTMCoordinate:
    """
    Projects a geodetic coordinate onto the UTM grid.

    The zone is derived from the longitude; longitudes outside [-180, 180) are not
    normalized (see geoutm.zones.normalize_longitude).

    Args:
        lat:
            Latitude, degrees in [-90, 90]

        lng:
            Longitude, degrees in [-180, 180)

    Returns:
        UTMCoordinate
    """
    zone = zone_number(lng)
    phi = math.radians(lat)
    lam = math.radians(lng - central_meridian(zone))
    sin_lam, cos_lam = _sin_cos(lam)

    sin_phi = math.sin(phi)
    t = _sinh(_atanh(sin_phi) - _E * _atanh(_E * sin_phi))
    xi = math.atan2(t, cos_lam)
    eta = _atanh(sin_lam / math.sqrt(1 + t * t))

    xi2, eta2 = 2 * xi, 2 * eta
    xi_corr, eta_corr = krueger_series(
        _ALPHA, math.sin(xi2), math.cos(xi2), _sinh(eta2), _cosh(eta2)
    )

    easting = FALSE_EASTING + _K0A * (eta + eta_corr)
    northing = _K0A * (xi + xi_corr)
    if lat < 0:
        northing += FALSE_NORTHING_SOUTH

    return UTMCoordinate(easting, northing, zone, hemisphere(lat))


def project_inverse(easting: float, northing: float, zone: int, hemi: str) -> LatLng:
    """
    Converts a UTM grid coordinate back to latitude and longitude.

    The hemisphere only decides whether the false northing is removed. Grid values
    that no forward projection could have produced give a defined, but
    geodetically meaningless, answer.

    Args:
        easting:
            Meters

        northing:
            Meters

        zone:
            UTM zone, 1 to 60

        hemi:
            'N' or 'S'

    Returns:
        LatLng
    """
    if hemi == 'S':
        northing -= FALSE_NORTHING_SOUTH

    xi = northing / _K0A
    eta = (easting - FALSE_EASTING) / _K0A

    xi2, eta2 = 2 * xi, 2 * eta
    xi_corr, eta_corr = krueger_series(_BETA, *_sin_cos(xi2), _sinh(eta2), _cosh(eta2))
    xi_p = xi - xi_corr
    eta_p = eta - eta_corr

    sinh_eta_p = _sinh(eta_p)
    sin_xi_p, cos_xi_p = _sin_cos(xi_p)

    # tan of the conformal latitude
    tau0 = sin_xi_p / math.sqrt(sinh_eta_p * sinh_eta_p + cos_xi_p * cos_xi_p)
    tau = solve_tau(tau0)

    return LatLng(
        math.degrees(math.atan(tau)),
        central_meridian(zone) + math.degrees(math.atan2(sinh_eta_p, cos_xi_p)),
    )


def forward_batch(coords: Iterable[Tuple[float, float]]) -> List[UTMCoordinate]:
    """Projects (lat, lng) pairs one at a time"""
    return [project_forward(float(lat), float(lng)) for lat, lng in coords]


def inverse_batch(utms: Sequence[UTMCoordinate]) -> List[LatLng]:
    """Inverts UTM coordinates one at a time"""
    return [
        project_inverse(utm.easting, utm.northing, utm.zone, utm.hemisphere)
        for utm in utms
    ]
