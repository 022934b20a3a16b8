"""
Extended precision arithmetic from pairs of float32 values.

An ExtendedFloat holds an unevaluated sum hi + lo of two float32 numpy arrays, with
|lo| <= ulp(hi) / 2. Every operation below keeps that invariant by way of error-free
transformations, which gives roughly 44-48 significant bits out of 24-bit hardware:
enough for micrometer-level UTM coordinates where only single precision is native.

All functions are elementwise over numpy arrays of any (broadcastable) shape.

Transcendental functions are rebuilt from the four arithmetic operations plus one
float32 seed value, refined by a fixed number of iterations. The iteration counts
trade precision against cost and are grouped into tiers (see PrecisionTier):

    FULL  reaches the precision limit of the float32 pair
    FAST  drops to roughly 40 bits, which still keeps UTM grid values
          within millimeters of the float64 result

Reference: Y. Hida, X.S. Li, D.H. Bailey, "Library for Double-Double and
Quad-Double Arithmetic" (2007)
"""

__all__ = [
    'ExtendedFloat', 'FAST', 'FULL', 'HALF', 'ONE', 'PI', 'PrecisionTier', 'TWO',
    'ZERO', 'add', 'atan', 'atan2', 'constant', 'div', 'exp', 'floor', 'from_float64',
    'gt', 'log', 'lt', 'mul', 'neg', 'quick_two_sum', 'select', 'sincos', 'sqrt',
    'sub', 'to_float64', 'two_prod', 'two_sum',
]

from dataclasses import dataclass
from fractions import Fraction
from math import factorial
from typing import NamedTuple, Tuple, Union

import numpy as np

from geoutm._const import LN2 as _LN2_DIGITS, PI as _PI_DIGITS

_F32 = np.float32
_F64 = np.float64

# Largest binary exponent applied by exp(); anything beyond over/underflows float32 anyway
_MAX_EXP_SCALE = 1024


class ExtendedFloat(NamedTuple):
    """
    An unevaluated sum hi + lo of two float32 arrays.

    The +, - and * operators (and unary -) map to add, sub and mul. Division has
    no operator since its cost depends on the number of correction steps.
    """
    hi: np.ndarray
    lo: np.ndarray

    def __add__(self, other):  # type: ignore[override]
        return add(self, other)

    def __sub__(self, other):
        return sub(self, other)

    def __mul__(self, other):  # type: ignore[override]
        return mul(self, other)

    def __neg__(self):
        return neg(self)


@dataclass(frozen=True)
class PrecisionTier:
    """
    Fixed iteration counts for the extended precision operations.

    The counts never depend on the data, so a batch runs the same instruction
    stream for every element.

    Attributes:
        name:
            Tier name, for logging

        div_steps:
            Quotient digits computed by div(), 1 to 3; each step after the first
            corrects the quotient against the exact residual

        sqrt_iterations:
            Newton steps on 1/sqrt(x) from a float32 seed

        exp_terms:
            Taylor terms for exp() after range reduction by ln 2

        log_iterations:
            Newton steps of y <- y + 2 (x - exp(y)) / (x + exp(y))

        sincos_terms:
            Taylor terms for sin and cos after reduction into [-pi, pi]

        atan_iterations:
            Newton steps for atan() from a float32 seed

        newton_iterations:
            Newton steps of the UTM inverse latitude solve
    """
    name: str
    div_steps: int
    sqrt_iterations: int
    exp_terms: int
    log_iterations: int
    sincos_terms: int
    atan_iterations: int
    newton_iterations: int

    def __post_init__(self):
        if not 1 <= self.div_steps <= 3:
            raise ValueError(f'div_steps must be between 1 and 3, not {self.div_steps}')

        for field in (
            'sqrt_iterations', 'exp_terms', 'log_iterations', 'sincos_terms',
            'atan_iterations', 'newton_iterations'
        ):
            if getattr(self, field) < 1:
                raise ValueError(f'{field} must be at least 1')

        if self.exp_terms > len(_INV_FACTORIALS) - 1:
            raise ValueError(f'exp_terms cannot exceed {len(_INV_FACTORIALS) - 1}')

        if self.sincos_terms > len(_SIN_FACTORS):
            raise ValueError(f'sincos_terms cannot exceed {len(_SIN_FACTORS)}')


# -------------------------------------------------------------------------
# Conversion
# -------------------------------------------------------------------------

def from_float64(x: Union[np.ndarray, float]) -> ExtendedFloat:
    """Splits float64 values into float32 pairs (always at least 1-d)"""
    x = np.atleast_1d(np.asarray(x, dtype=_F64))
    with np.errstate(over='ignore', invalid='ignore'):
        hi = x.astype(_F32)
        lo = (x - hi.astype(_F64)).astype(_F32)

    return ExtendedFloat(hi, lo)


def to_float64(x: ExtendedFloat) -> np.ndarray:
    """Collapses float32 pairs to float64 values"""
    return np.asarray(x.hi, dtype=_F64) + np.asarray(x.lo, dtype=_F64)


def constant(value: Union[Fraction, float, int, str]) -> ExtendedFloat:
    """
    Splits an exact value into a float32 scalar pair, e.g. constant(Fraction(1, 3)).

    Splitting from the exact value keeps the pair as close as the format allows,
    which a float64 intermediate would not.
    """
    value = Fraction(value)
    hi = _F32(float(value))
    lo = _F32(float(value - Fraction(float(hi))))
    return ExtendedFloat(hi, lo)


def select(mask: np.ndarray, a: ExtendedFloat, b: ExtendedFloat) -> ExtendedFloat:
    """Elementwise a where mask is True, else b"""
    return ExtendedFloat(np.where(mask, a.hi, b.hi), np.where(mask, a.lo, b.lo))


def _extend(x: np.ndarray) -> ExtendedFloat:
    return ExtendedFloat(x, np.zeros_like(x))


# -------------------------------------------------------------------------
# Error-free transformations
# -------------------------------------------------------------------------

def two_sum(a: np.ndarray, b: np.ndarray) -> ExtendedFloat:
    """a + b as an exact (sum, rounding error) pair"""
    s = a + b
    v = s - a
    return ExtendedFloat(s, (a - (s - v)) + (b - v))


def quick_two_sum(a: np.ndarray, b: np.ndarray) -> ExtendedFloat:
    """a + b as an exact (sum, rounding error) pair; requires |a| >= |b|"""
    s = a + b
    return ExtendedFloat(s, b - (s - a))


def two_prod(a: np.ndarray, b: np.ndarray) -> ExtendedFloat:
    """
    a * b as an exact (product, rounding error) pair.

    The error term is fma(a, b, -p). A float32 product has at most 48 significant
    bits, so it is exact in float64, and so is its difference from the rounded
    product; widening therefore computes the fused multiply-add exactly.
    """
    p = a * b
    err = np.asarray(a, dtype=_F64) * np.asarray(b, dtype=_F64) - np.asarray(p, dtype=_F64)
    return ExtendedFloat(p, err.astype(_F32))


# -------------------------------------------------------------------------
# Arithmetic
# -------------------------------------------------------------------------

def add(a: ExtendedFloat, b: ExtendedFloat) -> ExtendedFloat:
    s = two_sum(a.hi, b.hi)
    t = two_sum(a.lo, b.lo)
    s = quick_two_sum(s.hi, s.lo + t.hi)
    return quick_two_sum(s.hi, s.lo + t.lo)


def neg(a: ExtendedFloat) -> ExtendedFloat:
    return ExtendedFloat(-a.hi, -a.lo)


def sub(a: ExtendedFloat, b: ExtendedFloat) -> ExtendedFloat:
    return add(a, neg(b))


def mul(a: ExtendedFloat, b: ExtendedFloat) -> ExtendedFloat:
    p = two_prod(a.hi, b.hi)
    # Cross terms; lo * lo is below the precision of the result
    return quick_two_sum(p.hi, p.lo + (a.hi * b.lo + a.lo * b.hi))


def div(a: ExtendedFloat, b: ExtendedFloat, steps: int = 3) -> ExtendedFloat:
    """
    a / b by long division: each step divides the remaining residual by b.hi in
    float32 and subtracts the exact product from the residual.

    Args:
        a:
            Dividend

        b:
            Divisor

        steps: (Default 3)
            Quotient digits to compute. 1 is plain float32 division, 2 reaches
            ~46 bits and 3 the full precision of the pair
    """
    q = a.hi / b.hi
    result = _extend(q)
    remainder = a
    for _ in range(steps - 1):
        remainder = sub(remainder, mul(_extend(q), b))
        q = remainder.hi / b.hi
        result = add(result, _extend(q))

    return result


def sqrt(x: ExtendedFloat, iterations: int = 5) -> ExtendedFloat:
    """
    Square root via Newton iteration on y = 1/sqrt(x), seeded in float32.
    Non-positive inputs give zero.
    """
    positive = x.hi > 0
    # Non-positive lanes iterate on 1 and are masked out at the end
    safe_x = select(positive, x, ONE)
    y = _extend(_F32(1) / np.sqrt(safe_x.hi))
    half_x = mul(HALF, safe_x)
    for _ in range(iterations):
        y = mul(y, sub(_THREE_HALVES, mul(half_x, mul(y, y))))

    return select(positive, mul(safe_x, y), ZERO)


def gt(a: ExtendedFloat, b: ExtendedFloat) -> np.ndarray:
    return (a.hi > b.hi) | ((a.hi == b.hi) & (a.lo > b.lo))


def lt(a: ExtendedFloat, b: ExtendedFloat) -> np.ndarray:
    return (a.hi < b.hi) | ((a.hi == b.hi) & (a.lo < b.lo))


def floor(x: ExtendedFloat) -> ExtendedFloat:
    """
    Largest integer <= hi + lo. Exact: when hi is itself an integer the
    answer depends on the sign of lo, which floor(hi + lo) in float32 would lose.
    """
    f = np.floor(x.hi)
    integral = quick_two_sum(f, np.floor(x.lo))
    return select(f == x.hi, integral, _extend(f))


# -------------------------------------------------------------------------
# Constants
# -------------------------------------------------------------------------

ZERO = constant(0)
ONE = constant(1)
TWO = constant(2)
HALF = constant(Fraction(1, 2))
_THREE_HALVES = constant(Fraction(3, 2))

PI = constant(_PI_DIGITS)
HALF_PI = constant(Fraction(_PI_DIGITS) / 2)
TWO_PI = constant(Fraction(_PI_DIGITS) * 2)
LN2 = constant(_LN2_DIGITS)

# 1/k! for the exp() Taylor series
_INV_FACTORIALS = tuple(constant(Fraction(1, factorial(k))) for k in range(21))
# 1/((2k)(2k+1)) and 1/((2k-1)(2k)), the ratios between consecutive sin/cos terms
_SIN_FACTORS = tuple(constant(Fraction(1, 2*k * (2*k + 1))) for k in range(1, 13))
_COS_FACTORS = tuple(constant(Fraction(1, (2*k - 1) * 2*k)) for k in range(1, 13))

# Masked 2 pi steps after the quotient-based reduction in sincos()
_ANGLE_CORRECTIONS = 2

FULL = PrecisionTier(
    name='full',
    div_steps=3,
    sqrt_iterations=5,
    exp_terms=20,
    log_iterations=6,
    sincos_terms=12,
    atan_iterations=6,
    newton_iterations=8,
)

FAST = PrecisionTier(
    name='fast',
    div_steps=2,
    sqrt_iterations=2,
    exp_terms=10,
    log_iterations=2,
    sincos_terms=10,
    atan_iterations=2,
    newton_iterations=2,
)


# -------------------------------------------------------------------------
# Transcendental functions
# -------------------------------------------------------------------------

def exp(x: ExtendedFloat, tier: PrecisionTier = FULL) -> ExtendedFloat:
    """
    e**x. Reduces x = k ln2 + r with |r| <= ln2 / 2, sums the Taylor series of e**r
    (Horner form, tier.exp_terms terms) and scales by 2**k. Scaling a float by a
    power of two is exact, so doubling/halving k times is done in one ldexp.
    """
    k = np.floor(x.hi / LN2.hi + _F32(0.5))
    r = sub(x, mul(_extend(k), LN2))

    total = _INV_FACTORIALS[tier.exp_terms]
    for coeff in reversed(_INV_FACTORIALS[:tier.exp_terms]):
        total = add(mul(total, r), coeff)

    scale = np.clip(np.nan_to_num(k), -_MAX_EXP_SCALE, _MAX_EXP_SCALE).astype(np.int32)
    return ExtendedFloat(np.ldexp(total.hi, scale), np.ldexp(total.lo, scale))


def log(x: ExtendedFloat, tier: PrecisionTier = FULL) -> ExtendedFloat:
    """
    Natural logarithm: float32 seed refined by tier.log_iterations Newton steps
    y <- y + 2 (x - e**y) / (x + e**y), which triples the correct digits each step.
    """
    y = _extend(np.log(x.hi))
    for _ in range(tier.log_iterations):
        ey = exp(y, tier)
        y = add(y, mul(TWO, div(sub(x, ey), add(x, ey), tier.div_steps)))

    return y


def _reduce_angle(x: ExtendedFloat) -> ExtendedFloat:
    """
    Reduces an angle into [-pi, pi]: removes the nearest multiple of 2 pi, taken from
    the extended quotient x / 2 pi, then applies _ANGLE_CORRECTIONS masked steps of
    2 pi each way. The step count is fixed, so huge (meaningless) angles cost no more
    than small ones.
    """
    k = floor(add(div(x, TWO_PI), HALF))
    r = sub(x, mul(k, TWO_PI))

    for _ in range(_ANGLE_CORRECTIONS):
        r = select(gt(r, PI), sub(r, TWO_PI), r)
        r = select(lt(r, neg(PI)), add(r, TWO_PI), r)

    return r


def sincos(x: ExtendedFloat, tier: PrecisionTier = FULL) -> Tuple[ExtendedFloat, ExtendedFloat]:
    """
    (sin(x), cos(x)), from Taylor series of tier.sincos_terms terms evaluated
    together. Both series advance by the same r**2 factor, computed once.
    """
    r = _reduce_angle(x)
    r2 = mul(r, r)
    sin_term, cos_term = r, ONE
    sin_sum, cos_sum = r, ONE
    for i in range(tier.sincos_terms):
        sin_term = neg(mul(mul(sin_term, r2), _SIN_FACTORS[i]))
        cos_term = neg(mul(mul(cos_term, r2), _COS_FACTORS[i]))
        sin_sum = add(sin_sum, sin_term)
        cos_sum = add(cos_sum, cos_term)

    return sin_sum, cos_sum


def atan(x: ExtendedFloat, tier: PrecisionTier = FULL) -> ExtendedFloat:
    """
    Arctangent: float32 seed refined by tier.atan_iterations Newton steps on
    tan(y) = x, i.e. y <- y + (x - sin y / cos y) cos**2 y.
    """
    y = _extend(np.arctan(x.hi))
    for _ in range(tier.atan_iterations):
        s, c = sincos(y, tier)
        # (x - s/c) * c**2, without the division
        y = add(y, mul(sub(mul(x, c), s), c))

    return y


def atan2(y: ExtendedFloat, x: ExtendedFloat, tier: PrecisionTier = FULL) -> ExtendedFloat:
    """
    Four-quadrant arctangent of y / x, in (-pi, pi].

    The x == 0 cases are answered directly (pi/2, -pi/2 or 0 by the sign of y)
    rather than dividing by a vanishing value.
    """
    on_axis = x.hi == 0
    safe_x = select(on_axis, ONE, x)
    base = atan(div(y, safe_x, tier.div_steps), tier)

    left = x.hi < 0
    y_negative = y.hi < 0
    result = select(left & ~y_negative, add(base, PI), base)
    result = select(left & y_negative, sub(base, PI), result)

    axis = select(y.hi > 0, HALF_PI, select(y_negative, neg(HALF_PI), ZERO))
    return select(on_axis, axis, result)
