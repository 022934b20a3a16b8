"""
Vectorized (numpy, float64) UTM projector.

Same algorithm and precision as geoutm.reference, evaluated over whole arrays at once.
"""

__all__ = [
    'forward_arrays', 'forward_batch', 'inverse_arrays', 'inverse_batch', 'probe',
]

from typing import Iterable, List, Sequence, Tuple

import numpy as np

from geoutm._const import FALSE_EASTING, FALSE_NORTHING_SOUTH, ZONE_WIDTH_DEGREES
from geoutm.coordinates import LatLng, UTMCoordinate
from geoutm.ellipsoid import WGS84
from geoutm.exceptions import BackendUnavailableError
from geoutm.reference import NEWTON_MAX_ITERATIONS, NEWTON_TOLERANCE
from geoutm.series import krueger_series
from geoutm.zones import central_meridian

_E = WGS84.e
_ONE_MINUS_E2 = WGS84.one_minus_e2
_K0A = WGS84.k0a
_ALPHA = WGS84.alpha
_BETA = WGS84.beta


def _solve_tau(tau0: np.ndarray) -> np.ndarray:
    """Elementwise Newton solve; stops when every element has converged"""
    tau = tau0
    for _ in range(NEWTON_MAX_ITERATIONS):
        tau2 = tau * tau
        sqrt1tau2 = np.sqrt(1 + tau2)
        sigma = np.sinh(_E * np.arctanh(_E * tau / sqrt1tau2))
        tau_p = tau * np.sqrt(1 + sigma * sigma) - sigma * sqrt1tau2
        dtau = (
            (tau0 - tau_p) * (1 + _ONE_MINUS_E2 * tau2)
            / (_ONE_MINUS_E2 * np.sqrt((1 + tau2) * (1 + tau_p * tau_p)))
        )
        tau = tau + dtau
        if not np.any(np.abs(dtau) >= NEWTON_TOLERANCE):
            break

    return tau


def forward_arrays(
    lat: np.ndarray,
    lng: np.ndarray
) -> Tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray]:
    """
    Projects arrays of latitudes and longitudes onto the UTM grid.

    Args:
        lat:
            Latitudes, degrees

        lng:
            Longitudes, degrees in [-180, 180)

    Returns:
        (easting, northing, zone, is_north); zone is an int64 array and is_north
        a boolean array
    """
    lat = np.asarray(lat, dtype=np.float64)
    lng = np.asarray(lng, dtype=np.float64)

    # Poles give atanh(+-1) = +-inf, which the rest of the formula absorbs
    with np.errstate(divide='ignore', invalid='ignore', over='ignore'):
        zone = np.floor((lng + 180) / ZONE_WIDTH_DEGREES) + 1
        phi = np.radians(lat)
        lam = np.radians(lng - central_meridian(zone))

        sin_phi = np.sin(phi)
        t = np.sinh(np.arctanh(sin_phi) - _E * np.arctanh(_E * sin_phi))
        xi = np.arctan2(t, np.cos(lam))
        eta = np.arctanh(np.sin(lam) / np.sqrt(1 + t * t))

        xi2, eta2 = 2 * xi, 2 * eta
        xi_corr, eta_corr = krueger_series(
            _ALPHA, np.sin(xi2), np.cos(xi2), np.sinh(eta2), np.cosh(eta2)
        )

        easting = FALSE_EASTING + _K0A * (eta + eta_corr)
        northing = _K0A * (xi + xi_corr)
        northing = np.where(lat < 0, northing + FALSE_NORTHING_SOUTH, northing)
        zone = zone.astype(np.int64)

    return easting, northing, zone, lat >= 0


def inverse_arrays(
    easting: np.ndarray,
    northing: np.ndarray,
    zone: np.ndarray,
    is_north: np.ndarray,
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Converts arrays of UTM grid coordinates back to latitude and longitude.

    Args:
        easting:
            Meters

        northing:
            Meters

        zone:
            UTM zones, 1 to 60

        is_north:
            Boolean array, False where the false northing must be removed

    Returns:
        (lat, lng) arrays, in degrees
    """
    easting = np.asarray(easting, dtype=np.float64)
    northing = np.asarray(northing, dtype=np.float64)
    zone = np.asarray(zone, dtype=np.float64)
    is_north = np.asarray(is_north, dtype=bool)

    with np.errstate(divide='ignore', invalid='ignore', over='ignore'):
        northing = np.where(is_north, northing, northing - FALSE_NORTHING_SOUTH)
        xi = northing / _K0A
        eta = (easting - FALSE_EASTING) / _K0A

        xi2, eta2 = 2 * xi, 2 * eta
        xi_corr, eta_corr = krueger_series(
            _BETA, np.sin(xi2), np.cos(xi2), np.sinh(eta2), np.cosh(eta2)
        )
        xi_p = xi - xi_corr
        eta_p = eta - eta_corr

        sinh_eta_p = np.sinh(eta_p)
        cos_xi_p = np.cos(xi_p)
        tau0 = np.sin(xi_p) / np.sqrt(sinh_eta_p * sinh_eta_p + cos_xi_p * cos_xi_p)
        tau = _solve_tau(tau0)

        lat = np.degrees(np.arctan(tau))
        lng = central_meridian(zone) + np.degrees(np.arctan2(sinh_eta_p, cos_xi_p))

    return lat, lng


def forward_batch(coords: Iterable[Tuple[float, float]]) -> List[UTMCoordinate]:
    """Projects a sequence (or an (N, 2) array) of (lat, lng) pairs"""
    arr = np.asarray(coords, dtype=np.float64).reshape(-1, 2)
    easting, northing, zone, is_north = forward_arrays(arr[:, 0], arr[:, 1])
    return [
        UTMCoordinate(e, n, z, 'N' if north else 'S')
        for e, n, z, north in zip(
            easting.tolist(), northing.tolist(), zone.tolist(), is_north.tolist()
        )
    ]


def inverse_batch(utms: Sequence[UTMCoordinate]) -> List[LatLng]:
    """Inverts a sequence of UTM coordinates"""
    lat, lng = inverse_arrays(
        np.array([x.easting for x in utms], dtype=np.float64),
        np.array([x.northing for x in utms], dtype=np.float64),
        np.array([x.zone for x in utms], dtype=np.float64),
        np.array([x.hemisphere == 'N' for x in utms], dtype=bool),
    )
    return [LatLng(y, x) for y, x in zip(lat.tolist(), lng.tolist())]


def probe() -> None:
    """
    Checks that the vectorized projector runs on this host.

    Raises:
        BackendUnavailableError, if the probe computation produces a wrong zone
    """
    _, _, zone, _ = forward_arrays(np.zeros(1), np.zeros(1))
    if zone[0] != 31:
        raise BackendUnavailableError('vectorized', f'probe returned zone {zone[0]}')
