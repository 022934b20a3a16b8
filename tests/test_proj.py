import pytest

from geoutm.coordinates import UTMCoordinate
from geoutm.proj import forward_deviation, inverse_deviation, proj_forward, proj_inverse
from geoutm.reference import project_forward

from tests.functions import assert_utm_close, sample_coords

pytest.importorskip('pyproj')


def test_proj_forward():
    # Same zone selection and hemisphere convention as EPSG:326xx / 327xx
    assert_utm_close(proj_forward(0., 0.), project_forward(0., 0.), abs_tol=1e-6)
    assert_utm_close(
        proj_forward(-33.8688, 151.2093), project_forward(-33.8688, 151.2093), abs_tol=1e-6
    )


def test_proj_inverse():
    utm = UTMCoordinate(166021.44308054, 0., 31, 'N')
    point = proj_inverse(utm)
    assert point.lat == pytest.approx(0., abs=1e-9)
    assert point.lng == pytest.approx(0., abs=1e-9)


@pytest.mark.parametrize('backend', ['reference', 'vectorized'])
def test_deviation(backend):
    coords = sample_coords(100, seed=7)
    assert forward_deviation(coords, backend=backend) < 1e-6

    utms = [project_forward(lat, lng) for lat, lng in coords]
    assert inverse_deviation(utms, backend=backend) < 1e-10


def test_deviation_accelerator():
    coords = sample_coords(20, seed=8)
    assert forward_deviation(coords, backend='accelerator') < 1e-3


def test_empty():
    assert forward_deviation([]) == 0.
    assert inverse_deviation([]) == 0.
