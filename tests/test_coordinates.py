import pytest

from geoutm.coordinates import LatLng, UTMCoordinate


def test_latlng_init():
    point = LatLng('1.5', 2)
    assert point.lat == 1.5
    assert point.lng == 2.
    assert isinstance(point.lng, float)

    # Out of range values are stored as given
    point = LatLng(100., 200.)
    assert point.to_float() == (100., 200.)


def test_latlng_dunders():
    assert LatLng(1., 2.) == LatLng(1, 2)
    assert LatLng(1., 2.) != LatLng(2., 1.)
    assert LatLng(1., 2.) != (1., 2.)

    assert hash(LatLng(1., 2.)) == hash(LatLng(1., 2.))
    assert len({LatLng(1., 2.), LatLng(1., 2.), LatLng(0., 0.)}) == 2

    assert repr(LatLng(1., 2.)) == '<LatLng(1.0, 2.0)>'


def test_utm_init():
    utm = UTMCoordinate(500000, '0', 31.0, 'N')
    assert utm.easting == 500000.
    assert utm.northing == 0.
    assert utm.zone == 31
    assert isinstance(utm.zone, int)

    with pytest.raises(ValueError):
        UTMCoordinate(500000., 0., 31, 'north')


def test_utm_dunders():
    utm = UTMCoordinate(500000., 100., 31, 'N')
    assert utm == UTMCoordinate(500000., 100., 31, 'N')
    assert utm != UTMCoordinate(500000., 100., 31, 'S')
    assert utm != UTMCoordinate(500000., 100., 32, 'N')
    assert utm != 'not a coordinate'

    assert hash(utm) == hash(UTMCoordinate(500000., 100., 31, 'N'))
    assert repr(utm) == '<UTMCoordinate(500000.0, 100.0, 31N)>'


def test_utm_properties():
    utm = UTMCoordinate(334368.6, 6250948.3, 56, 'S')
    assert utm.central_meridian == 153.
    assert utm.epsg == 32756
    assert utm.to_float() == (334368.6, 6250948.3, 56, 'S')
