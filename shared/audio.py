"""Audio I/O utilities for the renderer.

load_wav / save_wav convert between WAV files and Sound buffers. The engine
never touches files; this is the only place that does.
"""

import logging

import numpy as np
from scipy.io import wavfile

from shared.sound import Sound

log = logging.getLogger(__name__)


def load_wav(path) -> Sound:
    """Load a WAV file as a stereo float64 Sound at the file's own rate.

    int16/int32 PCM is scaled to [-1, 1). Mono is duplicated to both
    channels; anything beyond two channels is dropped.
    """
    rate, data = wavfile.read(path)
    if data.dtype == np.int16:
        audio = data.astype(np.float64) / 32768.0
    elif data.dtype == np.int32:
        audio = data.astype(np.float64) / 2147483648.0
    elif data.dtype == np.uint8:
        audio = (data.astype(np.float64) - 128.0) / 128.0
    else:
        audio = data.astype(np.float64)
    if audio.ndim == 2 and audio.shape[1] > 2:
        log.warning("%s has %d channels, keeping the first two", path, audio.shape[1])
        audio = audio[:, :2]
    return Sound.from_array(audio, rate)


def save_wav(path, sound: Sound):
    """Save to a 16-bit WAV. Clips to [-1, 1]; no normalization, so the
    compressor's levels are what ends up in the file."""
    out = (np.clip(sound.samples, -1.0, 1.0) * 32767).astype(np.int16)
    wavfile.write(path, sound.rate, out)


def make_impulse(rate=44100, seconds=0.5) -> Sound:
    """Unit impulse on both channels at sample 0."""
    n = int(rate * seconds)
    impulse = np.zeros(n)
    impulse[0] = 1.0
    return Sound.from_array(impulse, rate)


def make_tone(freq=440.0, amplitude=0.5, rate=44100, seconds=1.0) -> Sound:
    """Steady sine on both channels."""
    t = np.arange(int(rate * seconds)) / rate
    return Sound.from_array(amplitude * np.sin(2 * np.pi * freq * t), rate)
