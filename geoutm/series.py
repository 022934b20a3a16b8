"""
Krüger series evaluation shared by every projector tier
"""

__all__ = ['krueger_series']

from typing import Sequence, Tuple, TypeVar

_T = TypeVar('_T')


def krueger_series(
    coeffs: Sequence[float],
    sin2: _T,
    cos2: _T,
    sinh2: _T,
    cosh2: _T,
) -> Tuple[_T, _T]:
    """
    Evaluates the two trigonometric series of the transverse Mercator projection:

        sum_j c_j * sin(2j xi) * cosh(2j eta)
        sum_j c_j * cos(2j xi) * sinh(2j eta)

    Only the base terms sin/cos(2 xi) and sinh/cosh(2 eta) are evaluated by the
    caller; the higher multiples come from the angle addition identities, so
    the series costs four transcendental calls no matter its order.

    Pure arithmetic: works on Python floats, numpy arrays and ExtendedFloat pairs alike.

    Args:
        coeffs:
            The series coefficients (alpha for forward, beta for inverse), lowest
            order first

        sin2, cos2:
            sin(2 xi), cos(2 xi)

        sinh2, cosh2:
            sinh(2 eta), cosh(2 eta)

    Returns:
        (xi correction, eta correction)
    """
    s, c, sh, ch = sin2, cos2, sinh2, cosh2
    xi_corr = coeffs[0] * s * ch
    eta_corr = coeffs[0] * c * sh
    for coeff in coeffs[1:]:
        s, c = s * cos2 + c * sin2, c * cos2 - s * sin2
        sh, ch = sh * cosh2 + ch * sinh2, ch * cosh2 + sh * sinh2
        xi_corr = xi_corr + coeff * s * ch
        eta_corr = eta_corr + coeff * c * sh

    return xi_corr, eta_corr
