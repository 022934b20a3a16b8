import pytest

from geoutm.zones import (
    central_meridian, epsg_code, hemisphere, normalize_longitude, zone_number
)


def test_zone_number():
    assert zone_number(-180.) == 1
    assert zone_number(-174.0000001) == 1
    assert zone_number(-174.) == 2
    assert zone_number(-0.0000001) == 30
    assert zone_number(0.) == 31
    assert zone_number(3.) == 31
    assert zone_number(6.) == 32
    assert zone_number(179.9999999) == 60


def test_zone_number_every_zone():
    for zone in range(1, 61):
        west_edge = (zone - 1) * 6 - 180
        assert zone_number(west_edge) == zone
        assert zone_number(west_edge + 5.999) == zone
        assert zone_number(central_meridian(zone)) == zone


def test_central_meridian():
    assert central_meridian(1) == -177.
    assert central_meridian(31) == 3.
    assert central_meridian(60) == 177.


def test_hemisphere():
    assert hemisphere(0.) == 'N'
    assert hemisphere(-0.) == 'N'
    assert hemisphere(45.) == 'N'
    assert hemisphere(-1e-12) == 'S'
    assert hemisphere(-90.) == 'S'


def test_normalize_longitude():
    assert normalize_longitude(0.) == 0.
    assert normalize_longitude(190.) == -170.
    assert normalize_longitude(-190.) == 170.
    assert normalize_longitude(180.) == -180.
    assert normalize_longitude(-180.) == -180.
    assert normalize_longitude(720. + 10.) == 10.
    assert isinstance(normalize_longitude(10), float)


def test_epsg_code():
    assert epsg_code(31, 'N') == 32631
    assert epsg_code(56, 'S') == 32756
    assert epsg_code(1, 'S') == 32701

    with pytest.raises(ValueError):
        epsg_code(31, 'X')
