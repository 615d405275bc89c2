"""Cardinality estimation from a register bank.

Two estimators are provided. ``original`` is the estimator from the
HyperLogLog paper (Flajolet et al., 2007) with linear counting for small
cardinalities. ``ertl_improved`` is Ertl's improved raw estimator (2017),
which works from the register histogram and needs no range corrections.

Hashes are 64 bits wide, so the paper's 32-bit large-range correction does
not apply and is never used.
"""
from __future__ import annotations
import math
import numpy as np # type: ignore
from cardinal.lib.registers import RegisterBank
from cardinal.lib.hashing import HASH_BITS

METHODS = ("original", "ertl_improved")

# 1 / (2 ln 2)
ALPHA_INF = 0.7213475204444817


def alpha(m: int) -> float:
    """Get alpha bias-correction constant for m registers."""
    if m == 16:
        return 0.673
    elif m == 32:
        return 0.697
    elif m == 64:
        return 0.709
    else:
        return 0.7213 / (1.0 + 1.079 / m)


def standard_error(precision: int) -> float:
    """Relative standard error of the estimate for a precision."""
    return 1.04 / math.sqrt(1 << precision)


def raw_estimate(bank: RegisterBank) -> float:
    """Harmonic-mean estimate before any range correction."""
    m = float(bank.num_registers)
    register_harmonics = np.exp2(-bank.registers.astype(np.float64))
    return alpha(bank.num_registers) * m * m / float(np.sum(register_harmonics))


def original_estimate(bank: RegisterBank) -> float:
    m = float(bank.num_registers)
    estimate = raw_estimate(bank)

    # Small range correction
    if estimate <= 2.5 * m:
        v = bank.zero_count()
        if v > 0:
            estimate = m * math.log(m / float(v))
    return estimate


def _get_sigma(x: float) -> float:
    """Calculate sigma value for the zero-register correction.

    Args:
        x: Fraction of registers still at zero

    Returns:
        Bias correction factor sigma(x)
    """
    if x == 1.0:
        return float('inf')
    z = x
    zprev = 0.0
    y = 1.0
    while z != zprev:
        x = x * x
        zprev = z
        z += x * y
        y += y
        if math.isnan(z):
            return zprev
    return z


def _get_tau(x: float) -> float:
    """Calculate tau value for the saturated-register correction.

    Args:
        x: Fraction of registers below the maximum rank

    Returns:
        Bias correction factor tau(x)
    """
    if x == 0.0 or x == 1.0:
        return 0.0
    z = 1.0 - x
    y = 1.0
    zprev = x
    while zprev != z:
        x = math.sqrt(x)
        zprev = z
        y *= 0.5
        tmp = 1.0 - x
        z -= tmp * tmp * y
    return z / 3.0


def ertl_improved_estimate(bank: RegisterBank) -> float:
    m = float(bank.num_registers)
    q = HASH_BITS - bank.precision
    counts = bank.register_histogram()

    z = m * _get_tau((m - counts[q + 1]) / m)
    for k in range(q, 0, -1):
        z += counts[k]
        z *= 0.5
    z += m * _get_sigma(counts[0] / m)
    return ALPHA_INF * m * m / z


def estimate(bank: RegisterBank, method: str = "original") -> int:
    """Estimate the number of distinct values recorded in a bank.

    Args:
        bank: Register bank to estimate from
        method: "original" or "ertl_improved"

    Returns:
        Estimated cardinality rounded to the nearest integer
    """
    if method == "original":
        func = original_estimate
    elif method == "ertl_improved":
        func = ertl_improved_estimate
    else:
        raise ValueError(f"Invalid method: {method}")
    if bank.is_empty():
        return 0
    return int(math.floor(func(bank) + 0.5))
