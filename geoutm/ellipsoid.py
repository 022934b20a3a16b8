"""
Ellipsoid parameters and the derived constants of the Krüger transverse Mercator series.

Reference: C.F.F. Karney, "Transverse Mercator with an accuracy of a few nanometers",
J. Geodesy 85(8), 475-485 (2011)
"""

__all__ = ['Ellipsoid', 'WGS84']

from decimal import Decimal, localcontext
from fractions import Fraction
from typing import Tuple, Union

from geoutm._const import UTM_SCALE_FACTOR, WGS84_A, WGS84_INVERSE_FLATTENING

_NUMBER = Union[Fraction, float, int, str]

# Digits carried by the one irrational constant (the eccentricity)
_SQRT_PRECISION = 50


def _sqrt(value: Fraction) -> Fraction:
    with localcontext() as ctx:
        ctx.prec = _SQRT_PRECISION
        root = (Decimal(value.numerator) / Decimal(value.denominator)).sqrt()
    return Fraction(root)


def _alpha(n: Fraction) -> Tuple[Fraction, ...]:
    """Forward (geodetic -> grid) series coefficients, 6th order in n"""
    n2, n3, n4, n5, n6 = n**2, n**3, n**4, n**5, n**6
    return (
        n/2 - 2*n2/3 + 5*n3/16 + 41*n4/180 - 127*n5/288 + 7891*n6/37800,
        13*n2/48 - 3*n3/5 + 557*n4/1440 + 281*n5/630 - 1983433*n6/1935360,
        61*n3/240 - 103*n4/140 + 15061*n5/26880 + 167603*n6/181440,
        49561*n4/161280 - 179*n5/168 + 6601661*n6/7257600,
        34729*n5/80640 - 3418889*n6/1995840,
        212378941*n6/319334400,
    )


def _beta(n: Fraction) -> Tuple[Fraction, ...]:
    """Inverse (grid -> geodetic) series coefficients, 6th order in n"""
    n2, n3, n4, n5, n6 = n**2, n**3, n**4, n**5, n**6
    return (
        n/2 - 2*n2/3 + 37*n3/96 - n4/360 - 81*n5/512 + 96199*n6/604800,
        n2/48 + n3/15 - 437*n4/1440 + 46*n5/105 - 1118711*n6/3870720,
        17*n3/480 - 37*n4/840 - 209*n5/4480 + 5569*n6/90720,
        4397*n4/161280 - 11*n5/504 - 830251*n6/7257600,
        4583*n5/161280 - 108847*n6/3991680,
        20648693*n6/638668800,
    )


class Ellipsoid:
    """
    A reference ellipsoid together with every constant the UTM projectors need.

    All constants are derived with exact rational arithmetic (the eccentricity
    with a 50 digit square root) and only then rounded, so the float attributes
    are the correctly rounded values of the closed-form expressions. The exact
    values stay available through `exact()` for tiers that need to split a
    constant into more than one float.

    Instances are immutable.

    Args:
        a:
            Semi-major axis, in meters

        f:
            Flattening. Pass a Fraction or a string (e.g. 1 / Fraction('298.257223563'))
            to avoid the rounding already present in a float

        k0: (Default 0.9996)
            Central meridian scale factor
    """

    def __init__(self, a: _NUMBER, f: _NUMBER, k0: _NUMBER = UTM_SCALE_FACTOR):
        a, f, k0 = Fraction(a), Fraction(f), Fraction(k0)

        n = f / (2 - f)
        rectifying_radius = a / (1 + n) * (1 + n**2/4 + n**4/64 + n**6/256)
        e2 = 2*f - f*f

        exact = {
            'a': a,
            'f': f,
            'n': n,
            'A': rectifying_radius,
            'e2': e2,
            'e': _sqrt(e2),
            'one_minus_e2': 1 - e2,
            'k0': k0,
            'k0a': k0 * rectifying_radius,
            'alpha': _alpha(n),
            'beta': _beta(n),
        }
        object.__setattr__(self, '_exact', exact)
        for name, value in exact.items():
            if isinstance(value, tuple):
                object.__setattr__(self, name, tuple(float(x) for x in value))
            else:
                object.__setattr__(self, name, float(value))

        object.__setattr__(self, 'n_powers', tuple(float(n**i) for i in range(1, 7)))

    def __setattr__(self, name, value):
        raise AttributeError(f'{self.__class__.__name__} is immutable')

    def __delattr__(self, name):
        raise AttributeError(f'{self.__class__.__name__} is immutable')

    def __repr__(self):
        return f'<Ellipsoid(a={self.a}, 1/f={float(1 / self._exact["f"])})>'

    def exact(self, name: str) -> Union[Fraction, Tuple[Fraction, ...]]:
        """
        The exact (rational) value of a derived constant.

        Args:
            name:
                One of 'a', 'f', 'n', 'A', 'e2', 'e', 'one_minus_e2', 'k0', 'k0a',
                'alpha', 'beta'

        Returns:
            Fraction, or a tuple of Fractions for the series coefficients
        """
        try:
            return self._exact[name]
        except KeyError:
            raise ValueError(
                f"Unknown constant '{name}'. Options: {list(self._exact.keys())}"
            ) from None


WGS84 = Ellipsoid(WGS84_A, 1 / Fraction(WGS84_INVERSE_FLATTENING))
