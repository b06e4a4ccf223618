"""Sound buffer: stereo float64 frames plus a sample rate."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np


@dataclass(frozen=True)
class Sound:
    """samples: float64 array of shape (n, 2) -- columns are L, R.
    rate: samples per second.
    """

    samples: np.ndarray
    rate: int

    def __post_init__(self):
        samples = np.asarray(self.samples, dtype=np.float64)
        if samples.ndim != 2 or samples.shape[1] != 2:
            raise ValueError(f"Sound needs (n, 2) stereo samples, got shape {samples.shape}")
        if int(self.rate) <= 0:
            raise ValueError(f"Sample rate must be positive, got {self.rate}")
        object.__setattr__(self, "samples", samples)
        object.__setattr__(self, "rate", int(self.rate))

    @classmethod
    def from_array(cls, audio, rate: int) -> "Sound":
        """Wrap a mono (n,) or stereo (n, 2) array. Mono is duplicated to both channels."""
        audio = np.asarray(audio, dtype=np.float64)
        if audio.ndim == 1:
            audio = np.column_stack([audio, audio])
        elif audio.ndim == 2 and audio.shape[1] == 1:
            audio = np.column_stack([audio[:, 0], audio[:, 0]])
        return cls(audio, rate)

    @classmethod
    def silence(cls, n: int, rate: int) -> "Sound":
        return cls(np.zeros((n, 2)), rate)

    def __len__(self):
        return self.samples.shape[0]

    @property
    def duration(self) -> float:
        return len(self) / self.rate

    @property
    def left(self) -> np.ndarray:
        return self.samples[:, 0]

    @property
    def right(self) -> np.ndarray:
        return self.samples[:, 1]
