"""
Representation of geodetic and projected (UTM) coordinates
"""

__all__ = ['LatLng', 'UTMCoordinate']

from typing import Literal, Tuple, Union

from geoutm.zones import HEMISPHERES, central_meridian, epsg_code


class LatLng:
    """
    A geodetic coordinate (latitude, longitude) in degrees.

    Unlike most coordinate types, values are stored exactly as given: projecting a
    latitude outside [-90, 90] or an unnormalized longitude is a precondition
    violation that yields a defined (but meaningless) result, not an error.
    """

    def __init__(self, lat: Union[float, int, str], lng: Union[float, int, str]):
        self.lat = float(lat)
        self.lng = float(lng)

    def __eq__(self, other):
        if not isinstance(other, LatLng):
            return False

        return self.lat == other.lat and self.lng == other.lng

    def __hash__(self):
        return hash((self.lat, self.lng))

    def __repr__(self):
        return f'<LatLng({self.lat}, {self.lng})>'

    def to_float(self) -> Tuple[float, float]:
        """The coordinate as a (lat, lng) tuple"""
        return self.lat, self.lng


class UTMCoordinate:
    """
    A UTM grid coordinate.

    Easting carries the 500,000 m false easting; in the southern hemisphere northing
    carries the 10,000,000 m false northing, so that northing is never negative.

    Args:
        easting:
            Meters, central meridian at 500,000

        northing:
            Meters from the equator (plus the false northing when hemisphere is 'S')

        zone:
            The UTM zone, 1 to 60

        hemisphere:
            'N' or 'S'
    """

    def __init__(
        self,
        easting: Union[float, int, str],
        northing: Union[float, int, str],
        zone: int,
        hemisphere: Literal['N', 'S'],
    ):
        if hemisphere not in HEMISPHERES:
            raise ValueError(f"Hemisphere must be one of {HEMISPHERES}, not {hemisphere!r}")

        self.easting = float(easting)
        self.northing = float(northing)
        self.zone = int(zone)
        self.hemisphere = hemisphere

    def __eq__(self, other):
        if not isinstance(other, UTMCoordinate):
            return False

        return (
            self.easting == other.easting and
            self.northing == other.northing and
            self.zone == other.zone and
            self.hemisphere == other.hemisphere
        )

    def __hash__(self):
        return hash((self.easting, self.northing, self.zone, self.hemisphere))

    def __repr__(self):
        return (
            f'<UTMCoordinate({self.easting}, {self.northing}, '
            f'{self.zone}{self.hemisphere})>'
        )

    @property
    def central_meridian(self) -> float:
        """Longitude of this coordinate's zone central meridian"""
        return central_meridian(self.zone)

    @property
    def epsg(self) -> int:
        """The EPSG code of this coordinate's WGS84 / UTM zone"""
        return epsg_code(self.zone, self.hemisphere)

    def to_float(self) -> Tuple[float, float, int, str]:
        """The coordinate as an (easting, northing, zone, hemisphere) tuple"""
        return self.easting, self.northing, self.zone, self.hemisphere
