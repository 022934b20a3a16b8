"""
Batch projection dispatch.

Every backend implements the same forward/inverse contract; they differ in how they
run and in their precision tier:

    reference         scalar float64, one coordinate at a time
    vectorized        numpy float64 over whole arrays
    accelerator       float32-pair kernels on the accelerator device (FULL tier)
    accelerator-fast  as above, FAST tier

The process-wide backend defaults to 'auto', which picks per batch by size and
availability and falls back to the reference backend when a faster one cannot run.
"""

__all__ = [
    'ACCELERATOR_THRESHOLD', 'AUTO', 'ProjectionBackend', 'VECTORIZED_THRESHOLD',
    'get_backend', 'is_accelerator_available', 'is_available', 'project_forward_batch',
    'project_inverse_batch', 'reset_capabilities', 'set_auto_accelerator', 'set_backend',
]

import abc
import threading
from typing import Callable, Dict, Iterable, List, Optional, Tuple, Union

import numpy as np

from geoutm import accelerator, reference, vectorized
from geoutm.coordinates import LatLng, UTMCoordinate
from geoutm.exceptions import BackendUnavailableError
from geoutm.extended import FAST, FULL, PrecisionTier
from geoutm.utils.logging import LOGGER, reset_warnings, warn_once
from geoutm.utils.mixins import LoggingMixin

AUTO = 'auto'

# Batches at least this long go to the vectorized backend in auto mode
VECTORIZED_THRESHOLD = 64

# Batches at least this long go to the accelerator in auto mode, when enabled
ACCELERATOR_THRESHOLD = 100_000

_COORDS = Union[np.ndarray, Iterable[Union[LatLng, Tuple[float, float]]]]
_UTMS = Iterable[Union[UTMCoordinate, Tuple[float, float, int, str]]]


class _Capability:
    """
    Lazily probed, memoized availability of one backend. The probe runs at most
    once until reset(), however many threads ask concurrently.
    """

    def __init__(self, name: str, probe: Callable[[], None]):
        self.name = name
        self._probe = probe
        self._lock = threading.Lock()
        self._available: Optional[bool] = None
        self.reason = ''

    def get(self) -> bool:
        with self._lock:
            if self._available is None:
                self._available = self._run_probe()

            return self._available

    def _run_probe(self) -> bool:
        try:
            self._probe()
        except Exception as exc:  # pylint: disable=broad-except
            # Any failure at all means unavailable
            self.reason = str(exc)
            LOGGER.info("Backend '%s' is unavailable: %s", self.name, exc)
            return False

        LOGGER.debug("Backend '%s' is available", self.name)
        return True

    def reset(self) -> None:
        with self._lock:
            self._available = None
            self.reason = ''


class ProjectionBackend(LoggingMixin, abc.ABC):
    """
    Base class for projection backends.

    Subclasses implement the batch projections and a probe, a small computation
    that raises when the backend cannot run on this host.
    """

    name: str

    def __init__(self):
        super().__init__()
        self._capability = _Capability(self.name, self._probe)

    def __repr__(self):
        return f'<{self.__class__.__name__}({self.name!r})>'

    @abc.abstractmethod
    def _probe(self) -> None:
        """Raises if the backend cannot run"""

    @abc.abstractmethod
    def forward_batch(self, coords: np.ndarray) -> List[UTMCoordinate]:
        """
        Projects an (N, 2) array of (lat, lng) rows.

        Args:
            coords:
                float64 array of shape (N, 2)

        Returns:
            List of UTMCoordinate, in input order
        """

    @abc.abstractmethod
    def inverse_batch(self, utms: List[UTMCoordinate]) -> List[LatLng]:
        """
        Inverts a list of UTM coordinates.

        Args:
            utms:
                List of UTMCoordinate

        Returns:
            List of LatLng, in input order
        """

    def is_available(self) -> bool:
        """Whether the backend can run (probed once, then cached)"""
        return self._capability.get()

    def ensure_available(self) -> None:
        """
        Raises:
            BackendUnavailableError, if the backend cannot run
        """
        if not self.is_available():
            raise BackendUnavailableError(self.name, self._capability.reason)

    def reset(self) -> None:
        """Forgets the cached probe outcome"""
        self._capability.reset()


class ReferenceBackend(ProjectionBackend):
    """The scalar reference projector; always available"""
    name = 'reference'

    def _probe(self) -> None:
        pass

    def forward_batch(self, coords: np.ndarray) -> List[UTMCoordinate]:
        return reference.forward_batch(coords)

    def inverse_batch(self, utms: List[UTMCoordinate]) -> List[LatLng]:
        return reference.inverse_batch(utms)


class VectorizedBackend(ProjectionBackend):
    """The numpy float64 projector"""
    name = 'vectorized'

    def _probe(self) -> None:
        vectorized.probe()

    def forward_batch(self, coords: np.ndarray) -> List[UTMCoordinate]:
        return vectorized.forward_batch(coords)

    def inverse_batch(self, utms: List[UTMCoordinate]) -> List[LatLng]:
        return vectorized.inverse_batch(utms)


class AcceleratorBackend(ProjectionBackend):
    """
    The float32-pair kernels on the accelerator device.

    Args:
        name:
            Backend name

        tier:
            Precision tier of the kernels
    """

    def __init__(self, name: str, tier: PrecisionTier):
        self.name = name
        self.tier = tier
        super().__init__()

    def _probe(self) -> None:
        accelerator.probe(self.tier)

    def forward_batch(self, coords: np.ndarray) -> List[UTMCoordinate]:
        self.logger.debug('Forward batch of %d at %s tier', len(coords), self.tier.name)
        return accelerator.forward_batch(coords, tier=self.tier)

    def inverse_batch(self, utms: List[UTMCoordinate]) -> List[LatLng]:
        self.logger.debug('Inverse batch of %d at %s tier', len(utms), self.tier.name)
        return accelerator.inverse_batch(utms, tier=self.tier)


_BACKENDS: Dict[str, ProjectionBackend] = {
    'reference': ReferenceBackend(),
    'vectorized': VectorizedBackend(),
    'accelerator': AcceleratorBackend('accelerator', FULL),
    'accelerator-fast': AcceleratorBackend('accelerator-fast', FAST),
}

_backend = AUTO
_auto_accelerator = False


def _validate_name(backend: str) -> None:
    if backend != AUTO and backend not in _BACKENDS:
        raise ValueError(
            f"Unknown backend '{backend}'. Options: {[AUTO] + list(_BACKENDS.keys())}"
        )


def set_backend(backend: str) -> None:
    """
    Sets the process-wide default backend.

    Args:
        backend:
            One of 'auto', 'reference', 'vectorized', 'accelerator',
            'accelerator-fast'

    Returns:
        None
    """
    global _backend  # pylint: disable=global-statement
    _validate_name(backend)
    _backend = backend


def get_backend() -> str:
    """The process-wide default backend name"""
    return _backend


def set_auto_accelerator(enabled: bool) -> None:
    """
    Allows auto mode to route very large batches (ACCELERATOR_THRESHOLD and up) to
    the accelerator. Off by default, since the accelerator results carry the
    FULL tier error bound rather than float64's.

    Args:
        enabled:
            Whether auto mode may use the accelerator

    Returns:
        None
    """
    global _auto_accelerator  # pylint: disable=global-statement
    _auto_accelerator = bool(enabled)


def is_available(backend: str) -> bool:
    """
    Whether a backend can run on this host. 'auto' is always available.

    Raises:
        ValueError, if the backend name is unknown
    """
    _validate_name(backend)
    if backend == AUTO:
        return True

    return _BACKENDS[backend].is_available()


def is_accelerator_available() -> bool:
    """Whether the accelerator device starts and computes correctly"""
    return _BACKENDS['accelerator'].is_available()


def reset_capabilities() -> None:
    """
    Forgets every cached probe outcome, e.g. after replacing the accelerator device,
    and re-arms the one-time fallback warnings.
    """
    for backend in _BACKENDS.values():
        backend.reset()

    reset_warnings()


def _select(backend: Optional[str], size: int) -> ProjectionBackend:
    name = _backend if backend is None else backend
    _validate_name(name)

    if name != AUTO:
        chosen = _BACKENDS[name]
        chosen.ensure_available()
        return chosen

    candidates = []
    if _auto_accelerator and size >= ACCELERATOR_THRESHOLD:
        candidates.append('accelerator')
    if size >= VECTORIZED_THRESHOLD:
        candidates.append('vectorized')

    for candidate in candidates:
        chosen = _BACKENDS[candidate]
        if chosen.is_available():
            LOGGER.debug("Routing batch of %d to '%s'", size, candidate)
            return chosen

        warn_once(
            "Backend '%s' is unavailable; auto mode falls back to a slower backend",
            candidate
        )

    return _BACKENDS['reference']


def _as_coord_array(coords: _COORDS) -> np.ndarray:
    if not isinstance(coords, np.ndarray):
        coords = [
            coord.to_float() if isinstance(coord, LatLng) else coord
            for coord in coords
        ]

    arr = np.asarray(coords, dtype=np.float64)
    if arr.size == 0:
        return arr.reshape(0, 2)

    if arr.ndim != 2 or arr.shape[1] != 2:
        raise ValueError(f'Coordinates must be (lat, lng) pairs, got shape {arr.shape}')

    return arr


def project_forward_batch(
    coords: _COORDS,
    backend: Optional[str] = None
) -> List[UTMCoordinate]:
    """
    Projects a batch of geodetic coordinates onto the UTM grid.

    Args:
        coords:
            (lat, lng) pairs, LatLng objects, or an (N, 2) array

        backend: (Default None)
            Backend name; None uses the process-wide setting (see set_backend)

    Returns:
        List of UTMCoordinate, in input order

    Raises:
        BackendUnavailableError, if an explicitly requested backend cannot run
    """
    arr = _as_coord_array(coords)
    return _select(backend, len(arr)).forward_batch(arr)


def project_inverse_batch(
    utms: _UTMS,
    backend: Optional[str] = None
) -> List[LatLng]:
    """
    Converts a batch of UTM coordinates back to latitude and longitude.

    Args:
        utms:
            UTMCoordinate objects or (easting, northing, zone, hemisphere) tuples

        backend: (Default None)
            Backend name; None uses the process-wide setting (see set_backend)

    Returns:
        List of LatLng, in input order

    Raises:
        BackendUnavailableError, if an explicitly requested backend cannot run
    """
    utms = [
        utm if isinstance(utm, UTMCoordinate) else UTMCoordinate(*utm)
        for utm in utms
    ]
    return _select(backend, len(utms)).inverse_batch(utms)
