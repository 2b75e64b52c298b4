"""
Hazard rate functions for age-dependent transitions.

Every function in this module maps an elapsed age ``x`` (time spent in
a sojourn) and a set of distribution parameters to an instantaneous
transition rate. Multiplying the rate by the time step yields the
per-step transition probability used by the proxel driver.

The normal and lognormal rates need a cumulative distribution function,
which is evaluated through the regularised lower incomplete gamma
function ``P(0.5, z**2/2)``. ``P`` is computed with the classical series
expansion below ``a + 1`` and with a continued fraction above it, each
iterated to a relative tolerance of ``GAMMA_EPS`` or ``GAMMA_MAXIT``
terms.

All functions are pure and never raise for finite input. Scale and
standard deviation parameters must be strictly positive; this is a
precondition and is not checked at runtime. Where a closed form would
divide by a vanishing survival probability the rate is reported as
``math.inf``, which the driver treats as a saturated transition.
"""

from __future__ import annotations

import math
from functools import partial
from typing import Callable

#: Relative tolerance for the incomplete gamma expansions
GAMMA_EPS = 1e-7

#: Maximum number of terms for the incomplete gamma expansions
GAMMA_MAXIT = 100

#: Ages above this value have a lognormal rate of zero (overflow guard)
LOGNORMAL_CUTOFF = 70000.0

SQRT_2PI = math.sqrt(2.0 * math.pi)

_LANCZOS_COEF = (
    76.18009173,
    -86.50532033,
    24.01409822,
    -1.231739516,
    0.00120858003,
    -0.00000536382,
)

Hazard = Callable[[float], float]


# ----------------------------------------------------------------------
# Elementary hazard rates

def exponential_hrf(x: float, rate: float) -> float:
    """Constant rate; the exponential law is memoryless."""
    return rate


def deterministic_hrf(x: float, d: float, dt: float) -> float:
    """Fire with certainty within half a step of age ``d``.

    The returned rate ``1/dt`` becomes a transition probability of one
    once multiplied by the step size.
    """
    if abs(x - d) < dt / 2.0:
        return 1.0 / dt
    return 0.0


def uniform_hrf(x: float, a: float, b: float) -> float:
    if a <= x < b:
        return 1.0 / (b - x)
    return 0.0


def weibull_hrf(x: float, alpha: float, beta: float, x0: float = 0.0) -> float:
    """Weibull rate with scale ``alpha``, shape ``beta`` and offset ``x0``."""
    t = x - x0
    if t < 0.0:
        return 0.0
    if t == 0.0 and beta < 1.0:
        return math.inf
    return beta / alpha * (t / alpha) ** (beta - 1.0)


# ----------------------------------------------------------------------
# Incomplete gamma function

def log_gamma(x: float) -> float:
    """Return ``ln(Gamma(x))`` using a six-term Lanczos approximation."""
    t = x - 1.0
    tmp = t + 5.5
    tmp = (t + 0.5) * math.log(tmp) - tmp
    ser = 1.0
    for coef in _LANCZOS_COEF:
        t += 1.0
        ser += coef / t
    return tmp + math.log(2.50662827465 * ser)


def gamma_series(x: float, a: float) -> float:
    """Series representation of ``P(a, x)``, valid for ``x < a + 1``."""
    gln = log_gamma(a)
    ap = a
    term = 1.0 / a
    total = term
    for _ in range(GAMMA_MAXIT):
        ap += 1.0
        term *= x / ap
        total += term
        if abs(term) < abs(total) * GAMMA_EPS:
            break
    return total * math.exp(-x + a * math.log(x) - gln)


def gamma_cf(x: float, a: float) -> float:
    """Continued fraction for ``Q(a, x) = 1 - P(a, x)``, valid for ``x >= a + 1``."""
    gln = log_gamma(a)
    g = 0.0
    gold = 0.0
    a0, a1 = 1.0, x
    b0, b1 = 0.0, 1.0
    fac = 1.0
    for n in range(1, GAMMA_MAXIT + 1):
        an = float(n)
        ana = an - a
        a0 = (a1 + a0 * ana) * fac
        b0 = (b1 + b0 * ana) * fac
        anf = an * fac
        a1 = x * a0 + anf * a1
        b1 = x * b0 + anf * b1
        if a1 != 0.0:
            fac = 1.0 / a1
            g = b1 * fac
            if g != 0.0 and abs((g - gold) / g) < GAMMA_EPS:
                break
            gold = g
    return math.exp(-x + a * math.log(x) - gln) * g


def gamma_cdf(x: float, a: float) -> float:
    """Regularised lower incomplete gamma function ``P(a, x)``."""
    if x <= 0.0:
        return 0.0
    if x < a + 1.0:
        return gamma_series(x, a)
    return 1.0 - gamma_cf(x, a)


# ----------------------------------------------------------------------
# Normal and lognormal laws

def _standard_normal_cdf(z: float) -> float:
    half = 0.5 * gamma_cdf(z * z / 2.0, 0.5)
    if z >= 0.0:
        return 0.5 + half
    return 0.5 - half


def _ratio(pdf: float, cdf: float) -> float:
    survival = 1.0 - cdf
    if survival <= 0.0:
        return math.inf
    return pdf / survival


def normal_pdf(x: float, m: float, s: float) -> float:
    z = (x - m) / s
    return math.exp(-z * z / 2.0) / (SQRT_2PI * s)


def normal_cdf(x: float, m: float, s: float) -> float:
    return _standard_normal_cdf((x - m) / s)


def normal_hrf(x: float, m: float, s: float) -> float:
    return _ratio(normal_pdf(x, m, s), normal_cdf(x, m, s))


def lognormal_pdf(x: float, mu: float, sigma: float) -> float:
    if x <= 0.0:
        return 0.0
    z = (math.log(x) - mu) / sigma
    return math.exp(-z * z / 2.0) / (x * SQRT_2PI * sigma)


def lognormal_cdf(x: float, mu: float, sigma: float) -> float:
    if x <= 0.0:
        return 0.0
    return _standard_normal_cdf((math.log(x) - mu) / sigma)


def lognormal_hrf(x: float, mu: float, sigma: float) -> float:
    """Lognormal rate from the log-mean ``mu`` and log-stdev ``sigma``.

    Defined as zero at ``x <= 0`` (no ``log(0)``) and beyond
    ``LOGNORMAL_CUTOFF`` where the closed form overflows.
    """
    if x <= 0.0 or x > LOGNORMAL_CUTOFF:
        return 0.0
    return _ratio(lognormal_pdf(x, mu, sigma), lognormal_cdf(x, mu, sigma))


# ----------------------------------------------------------------------
# Factories binding parameters into one-argument hazards

def exponential(rate: float) -> Hazard:
    return partial(exponential_hrf, rate=rate)


def deterministic(d: float, dt: float) -> Hazard:
    return partial(deterministic_hrf, d=d, dt=dt)


def uniform(a: float, b: float) -> Hazard:
    return partial(uniform_hrf, a=a, b=b)


def weibull(alpha: float, beta: float, x0: float = 0.0) -> Hazard:
    return partial(weibull_hrf, alpha=alpha, beta=beta, x0=x0)


def normal(m: float, s: float) -> Hazard:
    return partial(normal_hrf, m=m, s=s)


def lognormal(mu: float, sigma: float) -> Hazard:
    return partial(lognormal_hrf, mu=mu, sigma=sigma)
