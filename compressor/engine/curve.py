"""Once-per-run solvers: knee shape, adaptive release polynomial, master gain.

Everything the per-sample loop treats as read-only is derived here, from the
params and the sample rate, into a RunConstants value.

For the knee curve: above the threshold the curve starts as an exponential
with slope 1 (in dB/dB) and bends down. k sets how fast it bends. We search
for the k whose slope at the top of the knee equals 1/ratio, so the knee
hands over to the straight ratio line without a kink.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

from primitives.delay_line import lookahead_samples
from primitives.dsp import db2lin, lin2db, knee_curve, knee_slope, comp_curve, adaptive_release_curve

# Knee search
K_INITIAL = 5.0
K_MIN = 0.1
K_MAX = 10000.0
K_ITERATIONS = 15

# Loudness compensation exponent for the master gain
MASTER_GAIN_EXPONENT = 0.6

SATURATION_RELEASE = 0.0025  # seconds
METER_FALLOFF = 0.325        # seconds


@dataclass(frozen=True)
class KneeShape:
    k: float
    knee_db_offset: float
    linear_threshold_knee: float


@dataclass(frozen=True)
class ReleaseCurve:
    """Cubic y = a*x^3 + b*x^2 + c*x + d over x in [0, 3], y in samples."""
    a: float
    b: float
    c: float
    d: float

    def __call__(self, x: float) -> float:
        return adaptive_release_curve(x, self.a, self.b, self.c, self.d)


@dataclass(frozen=True)
class RunConstants:
    """Everything derived from (params, rate) before the first sample."""

    threshold: float
    knee: float
    linear_threshold: float
    slope: float
    k: float
    knee_db_offset: float
    linear_threshold_knee: float
    attack_samples: float
    attack_samples_inv: float
    release_samples: float
    sat_release_samples_inv: float
    release_a: float
    release_b: float
    release_c: float
    release_d: float
    master_gain: float
    wet: float
    dry: float
    meter_release: float
    predelay_samples: int

    def curve(self, x: float) -> float:
        return comp_curve(x, self.k, self.slope, self.linear_threshold,
                          self.linear_threshold_knee, self.threshold, self.knee,
                          self.knee_db_offset)


def solve_knee(threshold: float, knee: float, slope: float) -> KneeShape:
    """Binary search (geometric) for the knee sharpness k.

    With no knee the search is skipped and the curve is two straight segments;
    the offsets are then unused.
    """
    if knee <= 0.0:
        return KneeShape(K_INITIAL, 0.0, 0.0)

    linear_threshold = db2lin(threshold)
    xknee = db2lin(threshold + knee)
    k = K_INITIAL
    mink = K_MIN
    maxk = K_MAX
    # knee_slope falls as k grows: too shallow -> k too big
    for _ in range(K_ITERATIONS):
        if knee_slope(xknee, k, linear_threshold) < slope:
            maxk = k
        else:
            mink = k
        k = math.sqrt(mink * maxk)

    knee_db_offset = lin2db(knee_curve(xknee, k, linear_threshold))
    return KneeShape(k, knee_db_offset, xknee)


def solve_release_curve(release_samples: float, zones) -> ReleaseCurve:
    """Cubic through (0, y1), (1, y2), (2, y3), (3, y4), yi = release_samples * zone_i."""
    y1, y2, y3, y4 = (release_samples * z for z in zones)
    a = (-y1 + 3.0 * y2 - 3.0 * y3 + y4) / 6.0
    b = y1 - 2.5 * y2 + 2.0 * y3 - 0.5 * y4
    c = (-11.0 * y1 + 18.0 * y2 - 9.0 * y3 + 2.0 * y4) / 6.0
    d = y1
    return ReleaseCurve(a, b, c, d)


def master_gain(full_level: float, postgain: float) -> float:
    """Normalization so full-scale input lands at a musically sensible level."""
    return db2lin(postgain) * math.pow(1.0 / full_level, MASTER_GAIN_EXPONENT)


def derive_constants(params, rate: int) -> RunConstants:
    """Solve everything the chunk loop needs, once."""
    linear_threshold = db2lin(params.threshold)
    slope = 1.0 / params.ratio
    attack_samples = rate * params.attack
    release_samples = rate * params.release
    knee = solve_knee(params.threshold, params.knee, slope)

    full_level = comp_curve(1.0, knee.k, slope, linear_threshold, knee.linear_threshold_knee,
                            params.threshold, params.knee, knee.knee_db_offset)
    release = solve_release_curve(release_samples, (params.releasezone1, params.releasezone2,
                                                    params.releasezone3, params.releasezone4))

    return RunConstants(
        threshold=params.threshold,
        knee=params.knee,
        linear_threshold=linear_threshold,
        slope=slope,
        k=knee.k,
        knee_db_offset=knee.knee_db_offset,
        linear_threshold_knee=knee.linear_threshold_knee,
        attack_samples=attack_samples,
        attack_samples_inv=1.0 / attack_samples if attack_samples > 0.0 else math.inf,
        release_samples=release_samples,
        sat_release_samples_inv=1.0 / (rate * SATURATION_RELEASE),
        release_a=release.a,
        release_b=release.b,
        release_c=release.c,
        release_d=release.d,
        master_gain=master_gain(full_level, params.postgain),
        wet=params.wet,
        dry=1.0 - params.wet,
        meter_release=1.0 - math.exp(-1.0 / (rate * METER_FALLOFF)),
        predelay_samples=lookahead_samples(rate, params.predelay),
    )
