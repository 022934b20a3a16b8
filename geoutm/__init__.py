
import sys

from geoutm._version import __version__  # noqa: F401
from geoutm.utils.logging import LOGGER
from geoutm.coordinates import LatLng, UTMCoordinate
from geoutm.ellipsoid import WGS84, Ellipsoid
from geoutm.exceptions import BackendUnavailableError, GeoUTMError
from geoutm.reference import project_forward, project_inverse
from geoutm.dispatch import (
    get_backend, is_accelerator_available, is_available, project_forward_batch,
    project_inverse_batch, set_backend
)
from geoutm.utils.conditional_imports import ConditionalPackageInterceptor


ConditionalPackageInterceptor.permit_packages(
    {
        'pyproj': 'geoutm[proj]',
    }
)
sys.meta_path.append(ConditionalPackageInterceptor)  # type: ignore

__all__ = [
    'BackendUnavailableError',
    'Ellipsoid',
    'GeoUTMError',
    'LatLng',
    'UTMCoordinate',
    'WGS84',
    'get_backend',
    'is_accelerator_available',
    'is_available',
    'project_forward',
    'project_forward_batch',
    'project_inverse',
    'project_inverse_batch',
    'set_backend',
    'LOGGER',
]
