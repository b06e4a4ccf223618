"""Test the compressor end to end: length, bypass, silence, gain bounds,
determinism, the lookahead impulse and a steady-tone scenario.

Run: uv run pytest tests/test_compressor.py
"""

import math
import os
import sys

import numpy as np
import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
import compressor.engine.compressor as engine
from compressor.engine.compressor import CHUNK_SIZE, compress, compress_with_gain, output_length
from compressor.engine.curve import derive_constants
from compressor.engine.params import DEFAULTS, CompressorParams
from shared.metering import MeterLog
from shared.sound import Sound

SR = 44100

PARAM_SETS = [
    DEFAULTS,
    CompressorParams(knee=0.0, ratio=20.0, threshold=-6.0, attack=0.001, release=0.1),
    CompressorParams(threshold=-18.0, knee=12.0, ratio=4.0, predelay=0.0, wet=0.5, postgain=3.0),
    CompressorParams(attack=0.0, release=0.0, predelay=0.0),
    CompressorParams(threshold=-60.0, knee=40.0, ratio=20.0, attack=1.0, release=1.0),
]


def make_noise(n, amplitude=0.5, seed=0):
    """Noise with a slow swell, peaks past full scale."""
    rng = np.random.default_rng(seed)
    swell = 0.2 + 1.8 * np.abs(np.sin(np.linspace(0, 6 * np.pi, n)))
    return Sound(rng.standard_normal((n, 2)) * amplitude * swell[:, None], SR)


def make_constant(n, level):
    return Sound(np.full((n, 2), level), SR)


# ---------------------------------------------------------------------------
# Length
# ---------------------------------------------------------------------------
@pytest.mark.parametrize("n", [0, 1, 31, 32, 33, 64, 100, 1000, 32 * 50])
def test_length_truncation(n):
    out = compress(make_noise(n) if n else Sound.silence(0, SR))
    assert len(out) == CHUNK_SIZE * (n // CHUNK_SIZE)
    assert len(out) == output_length(n)
    assert out.rate == SR


def test_rate_is_preserved():
    sound = Sound(np.zeros((320, 2)), 22050)
    assert compress(sound).rate == 22050


# ---------------------------------------------------------------------------
# Bypass (wet = 0)
# ---------------------------------------------------------------------------
def test_wet_zero_is_identity_without_lookahead():
    sound = make_noise(32 * 40)
    for params in PARAM_SETS:
        out = compress(sound, params.replace(wet=0.0, predelay=0.0))
        assert np.allclose(out.samples, sound.samples, rtol=0, atol=1e-12)


def test_wet_zero_with_lookahead_is_pure_delay():
    sound = make_noise(32 * 40)
    out = compress(sound, DEFAULTS.replace(wet=0.0))
    d = derive_constants(DEFAULTS, SR).predelay_samples
    assert np.allclose(out.samples[:d], 0.0)
    assert np.allclose(out.samples[d:], sound.samples[:-d], rtol=0, atol=1e-12)


# ---------------------------------------------------------------------------
# Silence
# ---------------------------------------------------------------------------
def test_silence_in_silence_out():
    for params in PARAM_SETS:
        out, gains = compress_with_gain(Sound.silence(32 * 100, SR), params)
        assert np.all(out.samples == 0.0)
        assert np.all(np.isfinite(gains))


# ---------------------------------------------------------------------------
# Gain bounds
# ---------------------------------------------------------------------------
def test_gain_bounded():
    sound = make_noise(32 * 300, amplitude=0.8)
    for params in PARAM_SETS:
        const = derive_constants(params, SR)
        out, gains = compress_with_gain(sound, params)
        assert np.all(np.isfinite(gains))
        assert np.all(np.isfinite(out.samples))
        assert np.all(gains >= 0.0)
        assert np.all(gains <= const.dry + const.wet * const.master_gain + 1e-12)


@pytest.mark.parametrize("engine_name", ["numba", "python"])
def test_loud_noise_is_reduced(engine_name):
    # peaks well above threshold: gain must drop below the uncompressed level
    sound = make_noise(SR * 2, amplitude=0.9)
    for params in [DEFAULTS, CompressorParams(knee=0.0, ratio=20.0, threshold=-12.0)]:
        const = derive_constants(params, SR)
        unity = const.dry + const.wet * const.master_gain
        _, gains = compress_with_gain(sound, params, engine=engine_name)
        assert gains.min() < unity * 0.9
        assert gains.max() <= unity + 1e-12


def test_quiet_signal_gets_master_gain_only():
    # well under threshold: no gain reduction once the detector has settled
    sound = make_constant(SR, 0.01)
    params = DEFAULTS.replace(predelay=0.0)
    const = derive_constants(params, SR)
    _, gains = compress_with_gain(sound, params)
    assert math.isclose(gains[-1], const.master_gain, rel_tol=1e-3)


# ---------------------------------------------------------------------------
# Determinism and input safety
# ---------------------------------------------------------------------------
def test_deterministic():
    sound = make_noise(32 * 100)
    a = compress(sound)
    b = compress(sound)
    assert np.array_equal(a.samples, b.samples)


def test_input_not_modified():
    sound = make_noise(32 * 50 + 7)
    before = sound.samples.copy()
    compress(sound)
    compress(sound, engine="python")
    assert np.array_equal(sound.samples, before)


def test_unknown_engine():
    with pytest.raises(ValueError):
        compress(make_noise(64), engine="rust")


# ---------------------------------------------------------------------------
# Lookahead: impulse appears exactly `predelay` samples later
# ---------------------------------------------------------------------------
def test_predelay_impulse():
    samples = np.zeros((32 * 20, 2))
    samples[0] = 1.0
    out, gains = compress_with_gain(Sound(samples, SR), DEFAULTS.replace(predelay=0.006))
    d = 265
    assert out.samples[d, 0] > 0.0
    assert out.samples[d, 0] == out.samples[d, 1]
    assert math.isclose(out.samples[d, 0], gains[d], rel_tol=1e-12)
    others = np.delete(out.samples, d, axis=0)
    assert np.all(others == 0.0)


# ---------------------------------------------------------------------------
# Scenario: steady 0.5 tone, -24 dB threshold, 12:1, 30 dB knee
# ---------------------------------------------------------------------------
def _premix(gains, params):
    const = derive_constants(params, SR)
    return (gains - const.dry) / (const.wet * const.master_gain), const


def test_steady_tone_trajectory():
    params = DEFAULTS
    _, gains = compress_with_gain(make_constant(32 * 100, 0.5), params)
    premix, const = _premix(gains, params)
    steady = const.curve(0.5) / 0.5

    # starts at unity before the detector has seen anything
    assert np.allclose(premix[:CHUNK_SIZE], 1.0)
    # gain reduction engages and stays inside [0, 1]
    assert np.all((premix >= 0.0) & (premix <= 1.0 + 1e-12))
    assert premix.min() < steady
    assert premix[-1] < 0.95


def test_steady_tone_settles():
    params = DEFAULTS
    _, gains = compress_with_gain(make_constant(SR, 0.5), params)
    premix, const = _premix(gains, params)
    steady = const.curve(0.5) / 0.5
    assert 0.5 < steady < 0.9  # ~ -3 dB of reduction at -6 dBFS
    assert abs(premix[-1] - steady) < 0.02
    assert np.all(np.abs(premix[-CHUNK_SIZE * 10:] - steady) < 0.02)


def test_louder_input_gets_more_reduction():
    finals = []
    for level in [0.1, 0.3, 0.6, 0.9]:
        _, gains = compress_with_gain(make_constant(SR, level), DEFAULTS)
        finals.append(gains[-1])
    assert all(a > b for a, b in zip(finals, finals[1:]))


# ---------------------------------------------------------------------------
# Metering hook
# ---------------------------------------------------------------------------
def test_meter_called_once_per_chunk():
    for engine_name in ["numba", "python"]:
        meter = MeterLog()
        compress(make_noise(32 * 25 + 5), meter=meter, engine=engine_name)
        assert len(meter) == 25
        assert np.all(meter.as_array() <= 0.0)


def test_meter_does_not_change_output():
    sound = make_noise(32 * 50)
    a = compress(sound)
    b = compress(sound, meter=MeterLog())
    assert np.array_equal(a.samples, b.samples)


# ---------------------------------------------------------------------------
# Allocation failure
# ---------------------------------------------------------------------------
def test_allocation_failure_returns_none(monkeypatch):
    def out_of_memory(*args, **kwargs):
        raise MemoryError

    monkeypatch.setitem(engine._ENGINES, "numba", out_of_memory)
    assert compress(make_noise(320)) is None
    assert compress_with_gain(make_noise(320)) is None


def test_allocation_failure_python_engine(monkeypatch):
    class NoMemoryDelayLine:
        def __init__(self, *args, **kwargs):
            raise MemoryError

    monkeypatch.setattr(engine, "DelayLine", NoMemoryDelayLine)
    assert compress(make_noise(320), engine="python") is None
