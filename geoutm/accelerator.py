"""
Accelerator UTM projector.

Runs the projection as data-parallel kernels over float32 buffers, the only float
type many accelerators execute natively, and recovers float64-class precision by
carrying every value as an extended precision pair (see geoutm.extended).

Buffers are row-per-coordinate float32 arrays:

    forward in   (N, 4): lat_hi, lat_lo, lng_hi, lng_lo
    forward out  (N, 8): east_hi, east_lo, north_hi, north_lo, zone, is_north, 0, 0
    inverse in   (N, 8): same layout as forward out
    inverse out  (N, 4): lat_hi, lat_lo, lng_hi, lng_lo

Kernels are submitted to a Device, which returns a Future for the output buffer.
The default EmulatedDevice runs kernels on a host thread pool; set_device_factory()
plugs in anything else that honors the same contract.
"""

__all__ = [
    'Device', 'EmulatedDevice', 'FORWARD_IN_WIDTH', 'FORWARD_OUT_WIDTH',
    'INVERSE_IN_WIDTH', 'INVERSE_OUT_WIDTH', 'METERS_PER_DEGREE',
    'combine_float64', 'forward_batch', 'forward_kernel', 'get_device',
    'inverse_batch', 'inverse_kernel', 'pack_forward', 'pack_inverse', 'probe',
    'set_device_factory', 'set_refine_iterations', 'split_float64',
]

import abc
from concurrent.futures import Future, ThreadPoolExecutor
from fractions import Fraction
from functools import partial
import threading
from typing import Callable, Iterable, List, Optional, Sequence, Tuple

import numpy as np

from geoutm import extended as ext, vectorized
from geoutm._const import (
    FALSE_EASTING, FALSE_NORTHING_SOUTH, PI, ZONE_WIDTH_DEGREES
)
from geoutm.coordinates import LatLng, UTMCoordinate
from geoutm.ellipsoid import WGS84
from geoutm.exceptions import BackendUnavailableError
from geoutm.extended import FULL, ExtendedFloat, PrecisionTier
from geoutm.series import krueger_series
from geoutm.utils.mixins import LoggingMixin

FORWARD_IN_WIDTH = 4
FORWARD_OUT_WIDTH = 8
INVERSE_IN_WIDTH = 8
INVERSE_OUT_WIDTH = 4

# Rough meridian degree length, used only to scale refinement corrections
METERS_PER_DEGREE = 111_320.0

DEFAULT_CHUNK_ROWS = 4096

_E = ext.constant(WGS84.exact('e'))
_ONE_MINUS_E2 = ext.constant(WGS84.exact('one_minus_e2'))
_K0A = ext.constant(WGS84.exact('k0a'))
_INV_K0A = ext.constant(1 / WGS84.exact('k0a'))
_ALPHA = tuple(ext.constant(x) for x in WGS84.exact('alpha'))
_BETA = tuple(ext.constant(x) for x in WGS84.exact('beta'))

_DEG_TO_RAD = ext.constant(Fraction(PI) / 180)
_RAD_TO_DEG = ext.constant(180 / Fraction(PI))
_FALSE_EASTING = ext.constant(FALSE_EASTING)
_FALSE_NORTHING = ext.constant(FALSE_NORTHING_SOUTH)
_ZONE_WIDTH = ext.constant(ZONE_WIDTH_DEGREES)
_ANTIMERIDIAN = ext.constant(180)
# central meridian = zone * width - (180 + width / 2)
_MERIDIAN_OFFSET = ext.constant(180 + Fraction(ZONE_WIDTH_DEGREES, 2))
_NEGATIVE_SUBNORMAL = np.nextafter(np.float32(0), np.float32(-1))

_refine_iterations = 0


def set_refine_iterations(iterations: int) -> None:
    """
    Sets the default number of refinement passes applied by forward_batch().

    Each pass inverts the accelerator result with the float64 projector and nudges
    easting/northing by the angular error times METERS_PER_DEGREE. Refinement is
    off (0) by default; the FULL tier needs none.

    Args:
        iterations:
            Number of passes, >= 0

    Returns:
        None
    """
    global _refine_iterations  # pylint: disable=global-statement
    if iterations < 0:
        raise ValueError(f'Refinement iterations must be >= 0, not {iterations}')

    _refine_iterations = int(iterations)


# -------------------------------------------------------------------------
# Buffer packing
# -------------------------------------------------------------------------

def split_float64(values) -> Tuple[np.ndarray, np.ndarray]:
    """Splits float64 values into (hi, lo) float32 arrays"""
    pair = ext.from_float64(values)
    return pair.hi, pair.lo


def combine_float64(hi: np.ndarray, lo: np.ndarray) -> np.ndarray:
    """Recombines (hi, lo) float32 arrays into float64 values"""
    return ext.to_float64(ExtendedFloat(hi, lo))


def pack_forward(lat, lng) -> np.ndarray:
    """
    Builds an (N, 4) forward input buffer from latitude and longitude arrays.

    Negative latitudes too small for float32 (both halves flush to zero) get the
    smallest negative subnormal as their low half, so the kernel still places them
    in the southern hemisphere.
    """
    lat = np.atleast_1d(np.asarray(lat, dtype=np.float64))
    lat_hi, lat_lo = split_float64(lat)
    lat_lo = np.where(
        (lat < 0) & (lat_hi == 0) & (lat_lo == 0), _NEGATIVE_SUBNORMAL, lat_lo
    ).astype(np.float32)
    lng_hi, lng_lo = split_float64(lng)
    return np.column_stack([lat_hi, lat_lo, lng_hi, lng_lo]).astype(np.float32)


def pack_inverse(easting, northing, zone, is_north) -> np.ndarray:
    """Builds an (N, 8) inverse input buffer from UTM component arrays"""
    east_hi, east_lo = split_float64(easting)
    north_hi, north_lo = split_float64(northing)
    buffer = np.zeros((len(east_hi), INVERSE_IN_WIDTH), dtype=np.float32)
    buffer[:, 0] = east_hi
    buffer[:, 1] = east_lo
    buffer[:, 2] = north_hi
    buffer[:, 3] = north_lo
    buffer[:, 4] = np.asarray(zone, dtype=np.float32)
    buffer[:, 5] = np.where(np.asarray(is_north, dtype=bool), 1, 0)
    return buffer


# -------------------------------------------------------------------------
# Kernels
# -------------------------------------------------------------------------

def _atanh(x: ExtendedFloat, tier: PrecisionTier) -> ExtendedFloat:
    return ext.log(ext.div(ext.ONE + x, ext.ONE - x, tier.div_steps), tier) * ext.HALF


def _sinh_cosh(x: ExtendedFloat, tier: PrecisionTier) -> Tuple[ExtendedFloat, ExtendedFloat]:
    exp_x = ext.exp(x, tier)
    exp_neg_x = ext.div(ext.ONE, exp_x, tier.div_steps)
    return (exp_x - exp_neg_x) * ext.HALF, (exp_x + exp_neg_x) * ext.HALF


def _series(
    coeffs: Sequence[ExtendedFloat],
    xi: ExtendedFloat,
    eta: ExtendedFloat,
    tier: PrecisionTier
) -> Tuple[ExtendedFloat, ExtendedFloat]:
    sin2, cos2 = ext.sincos(xi * ext.TWO, tier)
    sinh2, cosh2 = _sinh_cosh(eta * ext.TWO, tier)
    return krueger_series(coeffs, sin2, cos2, sinh2, cosh2)


def _solve_tau(tau0: ExtendedFloat, tier: PrecisionTier) -> ExtendedFloat:
    """
    Newton solve for tan(latitude), as in geoutm.reference.solve_tau, but with
    tier.newton_iterations unconditional steps and no convergence test.
    """
    steps, sqrt_iterations = tier.div_steps, tier.sqrt_iterations
    tau = tau0
    for _ in range(tier.newton_iterations):
        tau2 = tau * tau
        sqrt1tau2 = ext.sqrt(ext.ONE + tau2, sqrt_iterations)
        sigma, _ = _sinh_cosh(
            _E * _atanh(ext.div(_E * tau, sqrt1tau2, steps), tier), tier
        )
        tau_p = tau * ext.sqrt(ext.ONE + sigma * sigma, sqrt_iterations) - sigma * sqrt1tau2
        dtau = ext.div(
            (tau0 - tau_p) * (ext.ONE + _ONE_MINUS_E2 * tau2),
            _ONE_MINUS_E2 * ext.sqrt(
                (ext.ONE + tau2) * (ext.ONE + tau_p * tau_p), sqrt_iterations
            ),
            steps
        )
        tau = tau + dtau

    return tau


def forward_kernel(buffer: np.ndarray, tier: PrecisionTier = FULL) -> np.ndarray:
    """
    Forward projection over a (N, 4) float32 buffer.

    Args:
        buffer:
            Forward input buffer (see module docstring)

        tier: (Default FULL)
            Iteration counts for the extended precision operations

    Returns:
        (N, 8) float32 output buffer
    """
    buffer = np.asarray(buffer, dtype=np.float32).reshape(-1, FORWARD_IN_WIDTH)
    lat = ExtendedFloat(buffer[:, 0], buffer[:, 1])
    lng = ExtendedFloat(buffer[:, 2], buffer[:, 3])

    with np.errstate(all='ignore'):
        zone = ext.floor(ext.div(lng + _ANTIMERIDIAN, _ZONE_WIDTH, tier.div_steps)) + ext.ONE
        phi = lat * _DEG_TO_RAD
        lam = (lng - (zone * _ZONE_WIDTH - _MERIDIAN_OFFSET)) * _DEG_TO_RAD

        sin_phi, _ = ext.sincos(phi, tier)
        sin_lam, cos_lam = ext.sincos(lam, tier)
        t, cosh_t = _sinh_cosh(
            _atanh(sin_phi, tier) - _E * _atanh(_E * sin_phi, tier), tier
        )
        xi = ext.atan2(t, cos_lam, tier)
        # atanh(sin(lam) / cosh(t)), written as one log of a quotient
        eta = ext.log(
            ext.div(cosh_t + sin_lam, cosh_t - sin_lam, tier.div_steps), tier
        ) * ext.HALF

        xi_corr, eta_corr = _series(_ALPHA, xi, eta, tier)
        easting = _FALSE_EASTING + _K0A * (eta + eta_corr)
        northing = _K0A * (xi + xi_corr)
        south = ext.lt(lat, ext.ZERO)
        northing = ext.select(south, northing + _FALSE_NORTHING, northing)
        # NaN latitudes report S, as geoutm.zones.hemisphere does
        north = (lat.hi > 0) | ((lat.hi == 0) & (lat.lo >= 0))

    out = np.zeros((len(buffer), FORWARD_OUT_WIDTH), dtype=np.float32)
    out[:, 0] = easting.hi
    out[:, 1] = easting.lo
    out[:, 2] = northing.hi
    out[:, 3] = northing.lo
    out[:, 4] = zone.hi
    out[:, 5] = np.where(north, 1, 0)
    return out


def inverse_kernel(buffer: np.ndarray, tier: PrecisionTier = FULL) -> np.ndarray:
    """
    Inverse projection over a (N, 8) float32 buffer.

    Args:
        buffer:
            Inverse input buffer (see module docstring)

        tier: (Default FULL)
            Iteration counts for the extended precision operations

    Returns:
        (N, 4) float32 output buffer
    """
    buffer = np.asarray(buffer, dtype=np.float32).reshape(-1, INVERSE_IN_WIDTH)
    easting = ExtendedFloat(buffer[:, 0], buffer[:, 1])
    northing = ExtendedFloat(buffer[:, 2], buffer[:, 3])
    zone = ExtendedFloat(buffer[:, 4], np.zeros_like(buffer[:, 4]))
    is_north = buffer[:, 5] > 0.5

    with np.errstate(all='ignore'):
        northing = ext.select(is_north, northing, northing - _FALSE_NORTHING)
        xi = northing * _INV_K0A
        eta = (easting - _FALSE_EASTING) * _INV_K0A

        xi_corr, eta_corr = _series(_BETA, xi, eta, tier)
        xi_p = xi - xi_corr
        eta_p = eta - eta_corr

        sinh_eta_p, _ = _sinh_cosh(eta_p, tier)
        sin_xi_p, cos_xi_p = ext.sincos(xi_p, tier)
        tau0 = ext.div(
            sin_xi_p,
            ext.sqrt(sinh_eta_p * sinh_eta_p + cos_xi_p * cos_xi_p, tier.sqrt_iterations),
            tier.div_steps
        )
        tau = _solve_tau(tau0, tier)

        lat = ext.atan(tau, tier) * _RAD_TO_DEG
        lng = (
            (zone * _ZONE_WIDTH - _MERIDIAN_OFFSET)
            + ext.atan2(sinh_eta_p, cos_xi_p, tier) * _RAD_TO_DEG
        )

    out = np.zeros((len(buffer), INVERSE_OUT_WIDTH), dtype=np.float32)
    out[:, 0] = lat.hi
    out[:, 1] = lat.lo
    out[:, 2] = lng.hi
    out[:, 3] = lng.lo
    return out


# -------------------------------------------------------------------------
# Devices
# -------------------------------------------------------------------------

Kernel = Callable[[np.ndarray], np.ndarray]


class Device(abc.ABC):
    """
    Something that executes kernels asynchronously.

    A kernel maps an (rows, in_width) float32 buffer to an (rows, out_width) one,
    row by row. submit() must not block on the computation; the returned Future
    resolves with the complete output buffer, or fails as a whole.
    """

    @abc.abstractmethod
    def submit(self, kernel: Kernel, buffer: np.ndarray, out_width: int) -> Future:
        """
        Schedules a kernel over a buffer.

        Args:
            kernel:
                The kernel function

            buffer:
                float32 input buffer, one row per coordinate

            out_width:
                Columns in the output buffer

        Returns:
            Future resolving to the float32 output buffer
        """

    def close(self) -> None:
        """Releases the device's resources"""


class EmulatedDevice(LoggingMixin, Device):
    """
    Runs kernels on the host, split into row chunks over a thread pool. numpy releases
    the GIL inside its array loops, so large chunks overlap.

    Args:
        max_workers: (Default None)
            Thread pool size; None lets concurrent.futures decide

        chunk_rows: (Default 4096)
            Rows per chunk
    """

    def __init__(self, max_workers: Optional[int] = None, chunk_rows: int = DEFAULT_CHUNK_ROWS):
        super().__init__()
        if chunk_rows < 1:
            raise ValueError(f'chunk_rows must be at least 1, not {chunk_rows}')

        if np.finfo(np.float32).nmant != 23:
            raise BackendUnavailableError('accelerator', 'float32 is not IEEE single precision')

        self.chunk_rows = chunk_rows
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers,
            thread_name_prefix='geoutm-device'
        )
        self.logger.debug('Started emulated device (chunk_rows=%d)', chunk_rows)

    def submit(self, kernel: Kernel, buffer: np.ndarray, out_width: int) -> Future:
        buffer = np.ascontiguousarray(buffer, dtype=np.float32)
        rows = buffer.shape[0]
        output = np.zeros((rows, out_width), dtype=np.float32)

        batch: Future = Future()
        # Batches cannot be cancelled once submitted
        batch.set_running_or_notify_cancel()
        if rows == 0:
            batch.set_result(output)
            return batch

        starts = range(0, rows, self.chunk_rows)
        remaining = [len(starts)]
        lock = threading.Lock()

        def run_chunk(start: int) -> None:
            stop = min(start + self.chunk_rows, rows)
            output[start:stop] = kernel(buffer[start:stop])

        def chunk_done(chunk: Future) -> None:
            error = chunk.exception()
            with lock:
                if batch.done():
                    return

                if error is not None:
                    self.logger.debug('Kernel chunk failed: %s', error)
                    batch.set_exception(error)
                    return

                remaining[0] -= 1
                if remaining[0] == 0:
                    batch.set_result(output)

        for start in starts:
            self._executor.submit(run_chunk, start).add_done_callback(chunk_done)

        return batch

    def close(self) -> None:
        self._executor.shutdown(wait=True)


_device_factory: Callable[[], Device] = EmulatedDevice
_device: Optional[Device] = None
_device_lock = threading.Lock()


def set_device_factory(factory: Callable[[], Device]) -> None:
    """
    Replaces the factory used to create the accelerator device. The current device,
    if one was created, is closed; the next call to get_device() uses the new factory.

    Args:
        factory:
            A zero-argument callable returning a Device

    Returns:
        None
    """
    global _device, _device_factory  # pylint: disable=global-statement
    with _device_lock:
        previous, _device = _device, None
        _device_factory = factory

    if previous is not None:
        previous.close()


def get_device() -> Device:
    """
    The process-wide accelerator device, created on first use.

    Raises:
        BackendUnavailableError, if the device cannot be created
    """
    global _device  # pylint: disable=global-statement
    with _device_lock:
        if _device is None:
            try:
                _device = _device_factory()
            except BackendUnavailableError:
                raise
            except Exception as exc:  # pylint: disable=broad-except
                raise BackendUnavailableError('accelerator', str(exc)) from exc

        return _device


# -------------------------------------------------------------------------
# Batch projection
# -------------------------------------------------------------------------

def _refine(
    lat: np.ndarray,
    lng: np.ndarray,
    easting: np.ndarray,
    northing: np.ndarray,
    zone: np.ndarray,
    is_north: np.ndarray,
    iterations: int,
) -> Tuple[np.ndarray, np.ndarray]:
    for _ in range(iterations):
        back_lat, back_lng = vectorized.inverse_arrays(easting, northing, zone, is_north)
        easting = easting + (lng - back_lng) * METERS_PER_DEGREE * np.cos(np.radians(lat))
        northing = northing + (lat - back_lat) * METERS_PER_DEGREE

    return easting, northing


def forward_batch(
    coords: Iterable[Tuple[float, float]],
    tier: PrecisionTier = FULL,
    refine_iterations: Optional[int] = None,
) -> List[UTMCoordinate]:
    """
    Projects (lat, lng) pairs on the accelerator device.

    Args:
        coords:
            A sequence (or (N, 2) array) of (lat, lng) pairs

        tier: (Default FULL)
            The precision tier of the kernel

        refine_iterations: (Default None)
            Refinement passes; None uses the set_refine_iterations() setting

    Returns:
        List of UTMCoordinate, in input order
    """
    arr = np.asarray(coords, dtype=np.float64).reshape(-1, 2)
    lat, lng = arr[:, 0], arr[:, 1]
    out = get_device().submit(
        partial(forward_kernel, tier=tier), pack_forward(lat, lng), FORWARD_OUT_WIDTH
    ).result()

    easting = combine_float64(out[:, 0], out[:, 1])
    northing = combine_float64(out[:, 2], out[:, 3])
    with np.errstate(invalid='ignore'):
        zone = out[:, 4].astype(np.int64)
    is_north = out[:, 5] > 0.5

    iterations = _refine_iterations if refine_iterations is None else refine_iterations
    if iterations:
        easting, northing = _refine(lat, lng, easting, northing, zone, is_north, iterations)

    return [
        UTMCoordinate(e, n, z, 'N' if north else 'S')
        for e, n, z, north in zip(
            easting.tolist(), northing.tolist(), zone.tolist(), is_north.tolist()
        )
    ]


def inverse_batch(utms: Sequence[UTMCoordinate], tier: PrecisionTier = FULL) -> List[LatLng]:
    """
    Inverts UTM coordinates on the accelerator device.

    Args:
        utms:
            A sequence of UTMCoordinate

        tier: (Default FULL)
            The precision tier of the kernel

    Returns:
        List of LatLng, in input order
    """
    buffer = pack_inverse(
        [x.easting for x in utms],
        [x.northing for x in utms],
        [x.zone for x in utms],
        [x.hemisphere == 'N' for x in utms],
    )
    out = get_device().submit(
        partial(inverse_kernel, tier=tier), buffer, INVERSE_OUT_WIDTH
    ).result()

    lat = combine_float64(out[:, 0], out[:, 1])
    lng = combine_float64(out[:, 2], out[:, 3])
    return [LatLng(y, x) for y, x in zip(lat.tolist(), lng.tolist())]


def probe(tier: PrecisionTier = FULL) -> None:
    """
    Checks that the accelerator device starts and computes: (0, 0) must land in zone 31.

    Raises:
        BackendUnavailableError, if the device cannot be created or the probe
        computation gives a wrong zone
    """
    out = get_device().submit(
        partial(forward_kernel, tier=tier),
        pack_forward(np.zeros(1), np.zeros(1)),
        FORWARD_OUT_WIDTH
    ).result()
    if out[0, 4] != 31:
        raise BackendUnavailableError('accelerator', f'probe returned zone {out[0, 4]}')
