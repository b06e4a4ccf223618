"""Feed-forward compressor -- the core engine.

Signal flow:
    Input -> [Level detect] -> [Static curve] -> [Detector avg] -> [Gain smoothing]
      |
      +-> [Pre-delay] ----------------------------------------------> x gain -> Output

Per chunk (32 samples):
    1. Turn the detector average into a target gain (sine-warped)
    2. Decide attack vs release, pick one envelope rate for the whole chunk
       (adaptive release curve when releasing, overshoot-scaled when attacking)

Per sample:
    1. Write the input into the pre-delay, read the delayed frame
    2. Peak of the *current* frame -> static curve -> attenuation
    3. Detector average: snaps down instantly, recovers at a saturating rate
    4. Compressor gain moves toward the chunk's target at the envelope rate
    5. Gain = dry + wet * master * sin(pi/2 * compgain), applied to the delayed frame
    6. Meter (peak-hold dB) -- reported once per chunk

This module is the readable reference. numba_compressor.py runs the same
algorithm compiled; compress() uses that by default.
"""

from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass
from typing import Callable

import numpy as np

from compressor.engine.curve import RunConstants, derive_constants
from compressor.engine.params import DEFAULTS, CompressorParams
from primitives.delay_line import DelayLine
from primitives.dsp import adaptive_release_curve, clamp, comp_curve, db2lin, lin2db
from shared.sound import Sound

log = logging.getLogger(__name__)

CHUNK_SIZE = 32
SPACING_DB = 5.0            # how far each release step moves
SILENCE_FLOOR = 0.0001      # below this the input counts as silence (unity gain)
SAT_RELEASE_FLOOR_DB = 2.0
ATTACK_OVERSHOOT_FLOOR = 0.5
MAX_COMP_DIFF_UNSET = -1.0
COMP_DIFF_UNDEFINED_DB = -1.0  # stands in for a non-finite chunk gain difference

ANG90 = math.pi * 0.5
ANG90_INV = 2.0 / math.pi

MeterHook = Callable[[float], None]


def null_meter(gain_db: float) -> None:
    """Default meter hook: does nothing."""


@dataclass
class EnvelopeState:
    """Running state carried sample to sample within one invocation."""

    detector_avg: float = 0.0
    comp_gain: float = 1.0
    max_comp_diff_db: float = MAX_COMP_DIFF_UNSET
    meter_gain: float = 1.0


class Compressor:
    """Stateful compressor for one pass over one sound."""

    def __init__(self, params: CompressorParams, rate: int, meter: MeterHook | None = None):
        self.params = params
        self.rate = rate
        self.const: RunConstants = derive_constants(params, rate)
        self.meter = meter if meter is not None else null_meter
        self.state = EnvelopeState()
        self.delay = DelayLine(self.const.predelay_samples, channels=2)

    def chunk_rate(self) -> tuple[float, float]:
        """Target gain and envelope rate for the next chunk.

        Returns (scaled_desired_gain, envelope_rate). A rate below 1 means
        attack (approach the target); 1 or above means release (multiply).
        """
        c = self.const
        s = self.state
        scaled_desired_gain = math.asin(s.detector_avg) * ANG90_INV
        if scaled_desired_gain > 0.0:
            comp_diff_db = lin2db(s.comp_gain / scaled_desired_gain)
        else:
            comp_diff_db = COMP_DIFF_UNDEFINED_DB
        # no usable target (empty detector, zero gain): treat as a gentle release
        if not math.isfinite(comp_diff_db):
            comp_diff_db = COMP_DIFF_UNDEFINED_DB

        if comp_diff_db < 0.0:  # comp gain below target: releasing
            s.max_comp_diff_db = MAX_COMP_DIFF_UNSET
            # map [-12, 0] dB onto the curve's [0, 3] domain
            x = (clamp(comp_diff_db, -12.0, 0.0) + 12.0) * 0.25
            release_samples = adaptive_release_curve(x, c.release_a, c.release_b,
                                                     c.release_c, c.release_d)
            if release_samples > 0.0:
                envelope_rate = db2lin(SPACING_DB / release_samples)
            else:
                envelope_rate = math.inf
        else:  # attacking
            if s.max_comp_diff_db == MAX_COMP_DIFF_UNSET or s.max_comp_diff_db < comp_diff_db:
                s.max_comp_diff_db = comp_diff_db
            attenuate = max(s.max_comp_diff_db, ATTACK_OVERSHOOT_FLOOR)
            envelope_rate = 1.0 - math.pow(0.25 / attenuate, c.attack_samples_inv)
        return scaled_desired_gain, envelope_rate

    def process_sample(self, frame, scaled_desired_gain: float, envelope_rate: float):
        """One frame through the detector and gain smoother.

        Returns (output_frame, gain).
        """
        c = self.const
        s = self.state

        self.delay.write(frame)
        delayed = self.delay.read()

        input_max = max(abs(frame[0]), abs(frame[1]))
        if input_max < SILENCE_FLOOR:
            attenuation = 1.0
        else:
            attenuation = comp_curve(input_max, c.k, c.slope, c.linear_threshold,
                                     c.linear_threshold_knee, c.threshold, c.knee,
                                     c.knee_db_offset) / input_max

        if attenuation > s.detector_avg:  # releasing
            attenuation_db = max(-lin2db(attenuation), SAT_RELEASE_FLOOR_DB)
            rate = db2lin(attenuation_db * c.sat_release_samples_inv) - 1.0
        else:
            rate = 1.0
        s.detector_avg += (attenuation - s.detector_avg) * rate
        if s.detector_avg > 1.0:
            s.detector_avg = 1.0

        if envelope_rate < 1.0:  # attack, reduce gain
            s.comp_gain += (scaled_desired_gain - s.comp_gain) * envelope_rate
        else:  # release, increase gain
            s.comp_gain *= envelope_rate
            if s.comp_gain > 1.0:
                s.comp_gain = 1.0

        premix_gain = math.sin(ANG90 * s.comp_gain)
        gain = c.dry + c.wet * c.master_gain * premix_gain

        premix_gain_db = lin2db(premix_gain)
        if premix_gain_db < s.meter_gain:
            s.meter_gain = premix_gain_db  # spike immediately
        else:
            s.meter_gain += (premix_gain_db - s.meter_gain) * c.meter_release  # fall slowly

        return delayed * gain, gain

    def process(self, samples: np.ndarray, output: np.ndarray, gains: np.ndarray):
        """Run whole chunks of `samples` into preallocated `output` / `gains`."""
        chunks = output.shape[0] // CHUNK_SIZE
        pos = 0
        for _ in range(chunks):
            scaled_desired_gain, envelope_rate = self.chunk_rate()
            for _ in range(CHUNK_SIZE):
                output[pos], gains[pos] = self.process_sample(
                    samples[pos], scaled_desired_gain, envelope_rate)
                pos += 1
            self.meter(self.state.meter_gain)


def output_length(n_samples: int) -> int:
    """Whole chunks only; a trailing partial chunk is dropped."""
    return (n_samples // CHUNK_SIZE) * CHUNK_SIZE


def _render_python(sound: Sound, params: CompressorParams, meter, n_out):
    output = np.empty((n_out, 2), dtype=np.float64)
    gains = np.empty(n_out, dtype=np.float64)
    comp = Compressor(params, sound.rate, meter)
    comp.process(sound.samples, output, gains)
    return output, gains


def _render_numba(sound: Sound, params: CompressorParams, meter, n_out):
    from compressor.engine.numba_compressor import render_compressor_fast
    return render_compressor_fast(sound.samples, sound.rate, params, n_out, meter)


_ENGINES = {
    "python": _render_python,
    "numba": _render_numba,
}


def compress_with_gain(sound: Sound, params: CompressorParams = DEFAULTS,
                       meter: MeterHook | None = None, engine: str = "numba"):
    """Compress and also return the per-sample gain that was applied.

    Args:
        sound: input Sound (read-only; never modified)
        params: CompressorParams (see engine/params.py); not validated
        meter: optional hook called once per 32-sample chunk with the meter
            value in dB. Observational only.
        engine: "numba" (default) or "python" (reference, slow)

    Returns:
        (Sound, gains) with len == 32 * floor(len(sound) / 32), or None if
        the buffers could not be allocated.
    """
    if engine not in _ENGINES:
        raise ValueError(f"Unknown engine '{engine}'. Options: {list(_ENGINES.keys())}")

    t0 = time.perf_counter()
    n_out = output_length(len(sound))
    try:
        output, gains = _ENGINES[engine](sound, params, meter, n_out)
    except MemoryError:
        log.error("compress: could not allocate buffers for %d samples", len(sound))
        return None

    elapsed = time.perf_counter() - t0
    duration = len(sound) / sound.rate
    rtf = duration / elapsed if elapsed > 0 else float("inf")
    log.info("compress %.2fs audio in %.3fs (%s, %.0fx RT, %d tail samples dropped)",
             duration, elapsed, engine, rtf, len(sound) - n_out)
    return Sound(output, sound.rate), gains


def compress(sound: Sound, params: CompressorParams = DEFAULTS,
             meter: MeterHook | None = None, engine: str = "numba") -> Sound | None:
    """The single entry point. The CLI renderer, presets, and scripts all
    call this same function.

    Returns a new Sound, or None if allocation failed.
    """
    result = compress_with_gain(sound, params, meter, engine)
    if result is None:
        return None
    return result[0]
