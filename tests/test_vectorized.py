import numpy as np
from pytest import approx

from geoutm.coordinates import LatLng, UTMCoordinate
from geoutm import reference
from geoutm.vectorized import (
    forward_arrays, forward_batch, inverse_arrays, inverse_batch, probe
)

from tests.functions import assert_latlng_close, assert_utm_close, sample_coords


def test_forward_arrays():
    easting, northing, zone, is_north = forward_arrays(
        np.array([0., 40.7128, -33.8688]),
        np.array([0., -74.0060, 151.2093]),
    )
    assert zone.dtype == np.int64
    assert zone.tolist() == [31, 18, 56]
    assert is_north.tolist() == [True, True, False]
    assert easting[0] == approx(166021.44, abs=0.01)
    assert northing[0] == 0.
    assert northing[2] > 6_000_000


def test_matches_reference():
    coords = sample_coords(300)
    for actual, (lat, lng) in zip(forward_batch(coords), coords):
        assert_utm_close(actual, reference.project_forward(lat, lng), abs_tol=1e-6)


def test_round_trip():
    coords = np.array(sample_coords(1000))
    easting, northing, zone, is_north = forward_arrays(coords[:, 0], coords[:, 1])
    lat, lng = inverse_arrays(easting, northing, zone, is_north)
    assert np.max(np.abs(lat - coords[:, 0])) < 1e-9
    assert np.max(np.abs(lng - coords[:, 1])) < 1e-9


def test_inverse_batch():
    utms = [
        UTMCoordinate(500000., 0., 31, 'N'),
        UTMCoordinate(166021.4431, 0., 31, 'N'),
        UTMCoordinate(500000., 10_000_000., 56, 'S'),
    ]
    points = inverse_batch(utms)
    assert_latlng_close(points[0], LatLng(0., 3.), abs_tol=1e-12)
    assert_latlng_close(points[1], LatLng(0., 0.), abs_tol=1e-8)
    assert_latlng_close(points[2], LatLng(0., 153.), abs_tol=1e-12)

    for actual, utm in zip(inverse_batch(utms), utms):
        expected = reference.project_inverse(utm.easting, utm.northing, utm.zone, utm.hemisphere)
        assert_latlng_close(actual, expected, abs_tol=1e-12)


def test_pole():
    easting, northing, zone, is_north = forward_arrays(np.array([90., -90.]), np.array([0., 0.]))
    assert zone.tolist() == [31, 31]
    assert is_north.tolist() == [True, False]
    assert northing[0] == approx(9997964.943, abs=1e-3)
    assert northing[1] == approx(10_000_000 - 9997964.943, abs=1e-3)


def test_batches():
    assert forward_batch([]) == []
    assert inverse_batch([]) == []

    # Accepts an (N, 2) array as well as pairs
    coords = sample_coords(5)
    assert forward_batch(np.array(coords)) == forward_batch(coords)


def test_probe():
    probe()
