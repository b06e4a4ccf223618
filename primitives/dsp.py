"""Numba-based scalar DSP primitives shared by both compressor engines.

Every function here is a pure scalar helper. They are njit-compiled so the
Numba kernel can inline them, and stay callable from plain Python for the
reference engine and the once-per-run solvers.
"""

import math

import numpy as np
from numba import njit


@njit(cache=True)
def db2lin(db):
    """dB to linear amplitude."""
    return math.pow(10.0, 0.05 * db)


@njit(cache=True)
def lin2db(lin):
    """Linear amplitude to dB. Zero maps to -inf."""
    if lin <= 0.0:
        return -np.inf
    return 20.0 * math.log10(lin)


@njit(cache=True)
def clamp(v, lo, hi):
    if v < lo:
        return lo
    if v > hi:
        return hi
    return v


@njit(cache=True)
def knee_curve(x, k, linear_threshold):
    """Exponential soft-knee segment, starting at the threshold with slope 1."""
    return linear_threshold + (1.0 - math.exp(-k * (x - linear_threshold))) / k


@njit(cache=True)
def knee_slope(x, k, linear_threshold):
    """Slope in dB/dB of knee_curve at x. Monotonically decreasing in k."""
    return k * x / ((k * linear_threshold + 1.0) * math.exp(k * (x - linear_threshold)) - 1.0)


@njit(cache=True)
def comp_curve(x, k, slope, linear_threshold, linear_threshold_knee,
               threshold, knee, knee_db_offset):
    """Static compression curve: input amplitude -> compressed amplitude.

    Below threshold: identity. Inside the knee: knee_curve. Above the knee:
    the ratio line, offset so it meets the knee at its upper edge.
    """
    if x < linear_threshold:
        return x
    if knee <= 0.0:  # hard knee
        return db2lin(threshold + slope * (lin2db(x) - threshold))
    if x < linear_threshold_knee:
        return knee_curve(x, k, linear_threshold)
    return db2lin(knee_db_offset + slope * (lin2db(x) - threshold - knee))


@njit(cache=True)
def adaptive_release_curve(x, a, b, c, d):
    """a*x^3 + b*x^2 + c*x + d"""
    x2 = x * x
    return a * x2 * x + b * x2 + c * x + d
