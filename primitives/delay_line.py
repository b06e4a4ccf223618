"""Circular buffer delay line for multi-channel frames (compressor lookahead)."""

from __future__ import annotations

import numpy as np


class DelayLine:
    """Fixed-depth circular buffer of `channels`-wide frames.

    The ring holds depth + 1 frames, so a depth of 0 is a valid pass-through
    and the ring is never empty. Write first, then read: read() returns the
    frame written `depth` samples ago.

    Usage:
        dl = DelayLine(depth=265, channels=2)
        dl.write(frame)
        out = dl.read()    # frame from `depth` samples ago
    """

    def __init__(self, depth: int, channels: int = 2):
        self.depth = int(depth)
        self.length = self.depth + 1
        self.buffer = np.zeros((self.length, channels), dtype=np.float64)
        self.write_idx = 0

    @classmethod
    def for_seconds(cls, rate: int, seconds: float, channels: int = 2):
        """Delay line holding round(rate * seconds) samples of lookahead."""
        return cls(lookahead_samples(rate, seconds), channels)

    def write(self, frame):
        """Write a frame and advance the write pointer."""
        self.buffer[self.write_idx] = frame
        self.write_idx = (self.write_idx + 1) % self.length

    def read(self) -> np.ndarray:
        """Frame written `depth` steps ago (the oldest slot in the ring)."""
        return self.buffer[self.write_idx]

    def process(self, frame) -> np.ndarray:
        """write() then read() at full depth; returns a copy."""
        self.write(frame)
        return self.read().copy()

    def reset(self):
        """Clear the buffer."""
        self.buffer[:] = 0.0
        self.write_idx = 0


def lookahead_samples(rate: int, seconds: float) -> int:
    """Delay depth in samples for a lookahead time; never negative."""
    return max(0, int(round(rate * seconds)))
