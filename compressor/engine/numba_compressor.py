"""Numba-optimized compressor loop.

Same algorithm as engine/compressor.py, but all state is flat scalars and
numpy arrays so Numba can JIT the entire chunk/sample loop. The meter hook
can't be called from compiled code, so the kernel records one meter value
per chunk and the hook is replayed afterwards, in order.
"""

import math

import numpy as np
from numba import njit

from compressor.engine.compressor import (
    ANG90, ANG90_INV, ATTACK_OVERSHOOT_FLOOR, CHUNK_SIZE, COMP_DIFF_UNDEFINED_DB,
    MAX_COMP_DIFF_UNSET, SAT_RELEASE_FLOOR_DB, SILENCE_FLOOR, SPACING_DB, EnvelopeState,
)
from compressor.engine.curve import derive_constants
from primitives.dsp import adaptive_release_curve, clamp, comp_curve, db2lin, lin2db

# state vector layout
_DETECTOR_AVG = 0
_COMP_GAIN = 1
_MAX_COMP_DIFF_DB = 2
_METER_GAIN = 3


@njit(cache=True)
def _process_chunks(
    samples, output, gains, meter_out,
    # Pre-delay ring (depth + 1 frames)
    delay_buf, delay_samples,
    # Static curve
    k, slope, linear_threshold, linear_threshold_knee, threshold, knee, knee_db_offset,
    # Timing
    attack_samples_inv, sat_release_samples_inv,
    # Adaptive release polynomial
    rel_a, rel_b, rel_c, rel_d,
    # Mix
    master_gain, wet, dry, meter_release,
    # Envelope state (in/out)
    state,
):
    chunks = output.shape[0] // CHUNK_SIZE
    delay_len = delay_samples + 1
    delay_wi = 0

    detector_avg = state[_DETECTOR_AVG]
    comp_gain = state[_COMP_GAIN]
    max_comp_diff_db = state[_MAX_COMP_DIFF_DB]
    meter_gain = state[_METER_GAIN]

    pos = 0
    for ch in range(chunks):
        # --- Per-chunk envelope rate ---
        scaled_desired_gain = math.asin(detector_avg) * ANG90_INV
        if scaled_desired_gain > 0.0:
            comp_diff_db = lin2db(comp_gain / scaled_desired_gain)
        else:
            comp_diff_db = COMP_DIFF_UNDEFINED_DB
        if not math.isfinite(comp_diff_db):
            comp_diff_db = COMP_DIFF_UNDEFINED_DB

        if comp_diff_db < 0.0:  # releasing
            max_comp_diff_db = MAX_COMP_DIFF_UNSET
            x = (clamp(comp_diff_db, -12.0, 0.0) + 12.0) * 0.25
            release_samples = adaptive_release_curve(x, rel_a, rel_b, rel_c, rel_d)
            if release_samples > 0.0:
                envelope_rate = db2lin(SPACING_DB / release_samples)
            else:
                envelope_rate = np.inf
        else:  # attacking
            if max_comp_diff_db == MAX_COMP_DIFF_UNSET or max_comp_diff_db < comp_diff_db:
                max_comp_diff_db = comp_diff_db
            attenuate = max_comp_diff_db
            if attenuate < ATTACK_OVERSHOOT_FLOOR:
                attenuate = ATTACK_OVERSHOOT_FLOOR
            envelope_rate = 1.0 - math.pow(0.25 / attenuate, attack_samples_inv)

        # --- Per-sample ---
        for _ in range(CHUNK_SIZE):
            in_l = samples[pos, 0]
            in_r = samples[pos, 1]

            # Pre-delay: write, then read the oldest frame
            delay_buf[delay_wi, 0] = in_l
            delay_buf[delay_wi, 1] = in_r
            delay_wi = (delay_wi + 1) % delay_len
            delayed_l = delay_buf[delay_wi, 0]
            delayed_r = delay_buf[delay_wi, 1]

            input_max = max(abs(in_l), abs(in_r))
            if input_max < SILENCE_FLOOR:
                attenuation = 1.0
            else:
                attenuation = comp_curve(input_max, k, slope, linear_threshold,
                                         linear_threshold_knee, threshold, knee,
                                         knee_db_offset) / input_max

            if attenuation > detector_avg:  # releasing
                attenuation_db = -lin2db(attenuation)
                if attenuation_db < SAT_RELEASE_FLOOR_DB:
                    attenuation_db = SAT_RELEASE_FLOOR_DB
                rate = db2lin(attenuation_db * sat_release_samples_inv) - 1.0
            else:
                rate = 1.0
            detector_avg += (attenuation - detector_avg) * rate
            if detector_avg > 1.0:
                detector_avg = 1.0

            if envelope_rate < 1.0:  # attack
                comp_gain += (scaled_desired_gain - comp_gain) * envelope_rate
            else:  # release
                comp_gain *= envelope_rate
                if comp_gain > 1.0:
                    comp_gain = 1.0

            premix_gain = math.sin(ANG90 * comp_gain)
            gain = dry + wet * master_gain * premix_gain

            premix_gain_db = lin2db(premix_gain)
            if premix_gain_db < meter_gain:
                meter_gain = premix_gain_db
            else:
                meter_gain += (premix_gain_db - meter_gain) * meter_release

            output[pos, 0] = delayed_l * gain
            output[pos, 1] = delayed_r * gain
            gains[pos] = gain
            pos += 1

        meter_out[ch] = meter_gain

    state[_DETECTOR_AVG] = detector_avg
    state[_COMP_GAIN] = comp_gain
    state[_MAX_COMP_DIFF_DB] = max_comp_diff_db
    state[_METER_GAIN] = meter_gain


def render_compressor_fast(samples: np.ndarray, rate: int, params, n_out: int,
                           meter=None):
    """Drop-in replacement for the reference Compressor loop, Numba-accelerated.

    Returns (output (n_out, 2), gains (n_out,)).
    """
    c = derive_constants(params, rate)

    init = EnvelopeState()
    state = np.array([init.detector_avg, init.comp_gain,
                      init.max_comp_diff_db, init.meter_gain], dtype=np.float64)

    delay_buf = np.zeros((c.predelay_samples + 1, 2), dtype=np.float64)
    output = np.empty((n_out, 2), dtype=np.float64)
    gains = np.empty(n_out, dtype=np.float64)
    meter_out = np.empty(n_out // CHUNK_SIZE, dtype=np.float64)

    _process_chunks(
        np.ascontiguousarray(samples, dtype=np.float64), output, gains, meter_out,
        delay_buf, c.predelay_samples,
        c.k, c.slope, c.linear_threshold, c.linear_threshold_knee,
        float(c.threshold), float(c.knee), c.knee_db_offset,
        c.attack_samples_inv, c.sat_release_samples_inv,
        c.release_a, c.release_b, c.release_c, c.release_d,
        c.master_gain, float(c.wet), float(c.dry), c.meter_release,
        state,
    )

    if meter is not None:
        for gain_db in meter_out:
            meter(float(gain_db))

    return output, gains
